"""
Email/password accounts and the signed-in session.

Passwords are hashed with bcrypt. The session user lives in Streamlit's
session state, and so do the listeners registered with
`on_auth_state_changed`: each browser session only hears its own sign-in and
sign-out.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, MutableMapping, Optional

import bcrypt
import streamlit as st

from shopledger.db import q, x
from shopledger.services.activity import log_activity
from shopledger.utils import iso_now

logger = logging.getLogger(__name__)

SESSION_USER_KEY = "shop_ledger_user"
MIN_PASSWORD_LENGTH = 6
BCRYPT_ROUNDS = 12

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

SESSION_LISTENERS_KEY = "shop_ledger_auth_listeners"

AuthListener = Callable[[Optional["User"]], Any]


class AuthError(ValueError):
    pass


@dataclass(frozen=True)
class User:
    id: int
    email: str
    display_name: str = ""

    @property
    def name(self) -> str:
        return self.display_name or self.email or "Unknown"


def _row_to_user(r) -> User:
    return User(id=int(r["id"]), email=str(r["email"]), display_name=str(r["display_name"] or ""))


def hash_password(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def _normalize_email(email: str) -> str:
    e = str(email or "").strip().lower()
    if not _EMAIL_RE.match(e):
        raise AuthError("Please enter a valid email address.")
    return e


def _check_password(password: str) -> None:
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise AuthError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")


def get_user(conn, user_id: int) -> Optional[User]:
    rows = q(conn, "SELECT * FROM users WHERE id=?", (int(user_id),))
    return _row_to_user(rows[0]) if rows else None


def sign_up(conn, email: str, password: str, display_name: str = "", *, rounds: int = BCRYPT_ROUNDS) -> User:
    e = _normalize_email(email)
    _check_password(password)
    if q(conn, "SELECT id FROM users WHERE email=?", (e,)):
        raise AuthError("An account with this email already exists.")

    now = iso_now()
    user_id = x(
        conn,
        """
        INSERT INTO users (email, display_name, password_hash, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?)
        """,
        (e, str(display_name or "").strip(), hash_password(password, rounds), now, now),
    )
    user = User(id=int(user_id), email=e, display_name=str(display_name or "").strip())
    logger.info("User %s signed up", user.id)
    log_activity(conn, user, "USER_SIGNUP", f"Account created for {user.email}")
    return user


def sign_in(conn, email: str, password: str) -> User:
    rows = q(conn, "SELECT * FROM users WHERE email=?", (str(email or "").strip().lower(),))
    if not rows or not verify_password(password or "", str(rows[0]["password_hash"])):
        logger.warning("Failed sign-in attempt")
        raise AuthError("Invalid email or password.")

    user = _row_to_user(rows[0])
    log_activity(conn, user, "USER_LOGIN", f"{user.name} signed in")
    return user


def sign_out(conn, user: User) -> None:
    log_activity(conn, user, "USER_LOGOUT", f"{user.name} signed out")


def update_profile(
    conn,
    user: User,
    *,
    display_name: Optional[str] = None,
    new_password: Optional[str] = None,
    current_password: Optional[str] = None,
    rounds: int = BCRYPT_ROUNDS,
) -> User:
    changes: list[str] = []

    if new_password:
        _check_password(new_password)
        rows = q(conn, "SELECT password_hash FROM users WHERE id=?", (int(user.id),))
        if not rows:
            raise AuthError("Account not found.")
        if not verify_password(current_password or "", str(rows[0]["password_hash"])):
            raise AuthError("Current password is incorrect.")
        x(
            conn,
            "UPDATE users SET password_hash=?, updated_at=? WHERE id=?",
            (hash_password(new_password, rounds), iso_now(), int(user.id)),
        )
        changes.append("password")

    if display_name is not None and display_name.strip() != user.display_name:
        x(
            conn,
            "UPDATE users SET display_name=?, updated_at=? WHERE id=?",
            (display_name.strip(), iso_now(), int(user.id)),
        )
        changes.append("display name")

    updated = get_user(conn, user.id) or user
    if changes:
        log_activity(conn, updated, "PROFILE_UPDATED", f"Updated {', '.join(changes)}")
    return updated


# -------------------------
# Session state
# -------------------------

def _state(state: Optional[MutableMapping]) -> MutableMapping:
    return st.session_state if state is None else state


def on_auth_state_changed(
    callback: AuthListener, state: Optional[MutableMapping] = None
) -> Callable[[], None]:
    """
    Register a listener for this session only; returns a function that
    unsubscribes it.
    """
    listeners = _state(state).setdefault(SESSION_LISTENERS_KEY, [])
    if callback not in listeners:
        listeners.append(callback)

    def unsubscribe() -> None:
        if callback in listeners:
            listeners.remove(callback)

    return unsubscribe


def _notify(user: Optional[User], state: MutableMapping) -> None:
    for cb in list(state.get(SESSION_LISTENERS_KEY, ())):
        try:
            cb(user)
        except Exception:
            logger.exception("Auth state listener failed")


def current_user(state: Optional[MutableMapping] = None) -> Optional[User]:
    return _state(state).get(SESSION_USER_KEY)


def set_current_user(user: User, state: Optional[MutableMapping] = None) -> None:
    s = _state(state)
    s[SESSION_USER_KEY] = user
    _notify(user, s)


def clear_current_user(state: Optional[MutableMapping] = None) -> None:
    s = _state(state)
    if SESSION_USER_KEY in s:
        del s[SESSION_USER_KEY]
    _notify(None, s)
