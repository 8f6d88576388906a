from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

import streamlit as st

CONFIG_FILE_NAME = "settings.json"
ENV_DATA_DIR = "SHOP_LEDGER_DATA_DIR"
ENV_CURRENCY = "SHOP_LEDGER_CURRENCY"
ENV_LOG_LEVEL = "SHOP_LEDGER_LOG_LEVEL"
SESSION_DATA_DIR_KEY = "shop_ledger_data_dir"


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    db_path: Path
    currency: str = "RS"
    log_level: str = "INFO"


def _default_data_dir() -> Path:
    return Path.home() / ".shop_ledger"


def _load_persisted_settings(data_dir: Path) -> dict:
    cfg = data_dir / CONFIG_FILE_NAME
    if cfg.exists():
        try:
            return json.loads(cfg.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}
    return {}


def persist_data_dir(data_dir_str: str, *, default_dir: Optional[Path] = None) -> Path:
    """
    Remember a data directory across restarts.

    The pointer is written into the default folder (that is where startup
    looks) and into the new folder itself.
    """
    data_dir = Path(data_dir_str).expanduser().resolve()
    data_dir.mkdir(parents=True, exist_ok=True)

    payload = json.dumps({"data_dir": str(data_dir)}, indent=2)
    home = default_dir or _default_data_dir()
    home.mkdir(parents=True, exist_ok=True)
    for folder in {home, data_dir}:
        (folder / CONFIG_FILE_NAME).write_text(payload, encoding="utf-8")

    return data_dir


def resolve_settings(
    session_data_dir: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    default_dir: Optional[Path] = None,
) -> Settings:
    # Priority order:
    # 1) Session state (set via Data Management page)
    # 2) Environment variable
    # 3) Persisted settings in default folder
    # 4) Default folder
    env = os.environ if env is None else env
    default_dir = default_dir or _default_data_dir()

    if session_data_dir:
        data_dir = Path(session_data_dir).expanduser().resolve()
    elif env.get(ENV_DATA_DIR):
        data_dir = Path(env[ENV_DATA_DIR]).expanduser().resolve()
    else:
        persisted = _load_persisted_settings(default_dir)
        data_dir = Path(persisted.get("data_dir", default_dir)).expanduser().resolve()

    data_dir.mkdir(parents=True, exist_ok=True)
    return Settings(
        data_dir=data_dir,
        db_path=data_dir / "ledger.db",
        currency=env.get(ENV_CURRENCY) or "RS",
        log_level=(env.get(ENV_LOG_LEVEL) or "INFO").upper(),
    )


@st.cache_resource
def get_settings() -> Settings:
    return resolve_settings(st.session_state.get(SESSION_DATA_DIR_KEY))
