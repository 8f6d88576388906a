from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Optional, Union

from shopledger.db import q, x
from shopledger.utils import in_range, iso_now

if TYPE_CHECKING:
    from shopledger.auth import User

logger = logging.getLogger(__name__)

ACTIONS = (
    "ITEM_ADDED",
    "ITEM_UPDATED",
    "ITEM_DELETED",
    "ITEMS_IMPORTED",
    "SALE_COMPLETED",
    "SALE_DELETED",
    "PURCHASE_RECORDED",
    "PURCHASE_UPDATED",
    "PURCHASE_DELETED",
    "EXPENSE_ADDED",
    "EXPENSE_UPDATED",
    "EXPENSE_DELETED",
    "USER_SIGNUP",
    "USER_LOGIN",
    "USER_LOGOUT",
    "PROFILE_UPDATED",
)


@dataclass
class ActivityLog:
    id: int
    owner_id: int
    user_name: str
    action: str
    details: str
    ts: str
    metadata: dict[str, Any] = field(default_factory=dict)


def _row_to_log(r) -> ActivityLog:
    meta = r["metadata"]
    return ActivityLog(
        id=int(r["id"]),
        owner_id=int(r["owner_id"]),
        user_name=str(r["user_name"]),
        action=str(r["action"]),
        details=str(r["details"]),
        ts=str(r["ts"]),
        metadata=json.loads(meta) if meta else {},
    )


def log_activity(
    conn,
    user: "User",
    action: str,
    details: str,
    metadata: Optional[dict[str, Any]] = None,
) -> Optional[int]:
    """
    Append one entry to the activity log.

    A storage failure here must not undo the action being recorded, so it is
    logged and None is returned instead.
    """
    if action not in ACTIONS:
        raise ValueError(f"Unknown activity action: {action}")

    meta = {k: v for k, v in (metadata or {}).items() if v is not None}
    try:
        return x(
            conn,
            """
            INSERT INTO activity_logs (owner_id, user_name, action, details, metadata, ts)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                int(user.id),
                user.name,
                action,
                str(details),
                json.dumps(meta, default=str) if meta else None,
                iso_now(),
            ),
        )
    except sqlite3.Error:
        logger.exception("Error logging activity %s", action)
        return None


def list_activity(
    conn,
    owner_id: Optional[int] = None,
    *,
    action: Optional[str] = None,
    start: Optional[Union[date, datetime]] = None,
    end: Optional[Union[date, datetime]] = None,
) -> list[ActivityLog]:
    where = ["1=1"]
    params: list[Any] = []
    if owner_id is not None:
        where.append("owner_id = ?")
        params.append(int(owner_id))
    if action:
        where.append("action = ?")
        params.append(action)

    rows = q(
        conn,
        f"SELECT * FROM activity_logs WHERE {' AND '.join(where)} ORDER BY ts DESC, id DESC",
        params,
    )
    logs = [_row_to_log(r) for r in rows]
    if start is None and end is None:
        return logs
    return [log for log in logs if in_range(log.ts, start, end)]
