from __future__ import annotations

import logging
import re

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
SENSITIVE_KEYS = ("password", "password_hash", "current_password", "new_password")

_HANDLER_NAME = "shopledger"
_MASK_RE = re.compile(r"(?P<key>%s)(?P<sep>['\"]?\s*[:=]\s*['\"]?)[^'\",}\s]+" % "|".join(SENSITIVE_KEYS))


def _mask(text: str) -> str:
    return _MASK_RE.sub(lambda m: f"{m.group('key')}{m.group('sep')}[REDACTED]", text)


class MaskingFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if record.args:
            record.msg = record.getMessage()
            record.args = None
        if isinstance(record.msg, str):
            record.msg = _mask(record.msg)
        return True


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach a single stream handler to the package logger (idempotent)."""
    root = logging.getLogger("shopledger")
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    if not any(h.get_name() == _HANDLER_NAME for h in root.handlers):
        handler = logging.StreamHandler()
        handler.set_name(_HANDLER_NAME)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.addFilter(MaskingFilter())
        root.addHandler(handler)
    return root
