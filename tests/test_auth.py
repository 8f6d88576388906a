import pytest

from shopledger.auth import (
    AuthError,
    clear_current_user,
    current_user,
    hash_password,
    on_auth_state_changed,
    set_current_user,
    sign_in,
    sign_out,
    sign_up,
    update_profile,
    verify_password,
)
from shopledger.services.activity import list_activity


def test_password_is_hashed(conn, user):
    stored = conn.execute("SELECT password_hash FROM users WHERE id=?", (user.id,)).fetchone()["password_hash"]
    assert stored != "secret123"
    assert stored.startswith("$2")
    assert verify_password("secret123", stored)
    assert not verify_password("wrong", stored)


def test_verify_password_tolerates_garbage_hash():
    assert verify_password("secret123", "not-a-hash") is False


def test_sign_up_normalizes_email(conn):
    u = sign_up(conn, "  Shop@Example.COM ", "secret123", rounds=4)
    assert u.email == "shop@example.com"
    assert u.name == "shop@example.com"


@pytest.mark.parametrize(
    "email, password, message",
    [
        ("not-an-email", "secret123", "valid email"),
        ("a@b.co", "123", "at least 6 characters"),
    ],
)
def test_sign_up_validation(conn, email, password, message):
    with pytest.raises(AuthError, match=message):
        sign_up(conn, email, password, rounds=4)


def test_duplicate_email_rejected(conn, user):
    with pytest.raises(AuthError, match="An account with this email already exists."):
        sign_up(conn, "OWNER@example.com", "another1", rounds=4)


def test_sign_in_and_out_are_logged(conn, user):
    signed_in = sign_in(conn, "Owner@Example.com", "secret123")
    assert signed_in == user
    sign_out(conn, signed_in)
    assert [l.action for l in list_activity(conn, user.id)] == ["USER_LOGOUT", "USER_LOGIN", "USER_SIGNUP"]


@pytest.mark.parametrize("email, password", [("owner@example.com", "wrong-pass"), ("nobody@example.com", "secret123")])
def test_sign_in_failure_message_is_generic(conn, user, email, password):
    with pytest.raises(AuthError, match="Invalid email or password."):
        sign_in(conn, email, password)


def test_update_profile_display_name(conn, user):
    updated = update_profile(conn, user, display_name="Shop Owner")
    assert updated.display_name == "Shop Owner"
    assert list_activity(conn, user.id, action="PROFILE_UPDATED")[0].details == "Updated display name"


def test_update_profile_password_requires_current(conn, user):
    with pytest.raises(AuthError, match="Current password is incorrect."):
        update_profile(conn, user, new_password="newsecret", current_password="nope", rounds=4)

    update_profile(conn, user, new_password="newsecret", current_password="secret123", rounds=4)
    assert sign_in(conn, user.email, "newsecret").id == user.id


def test_update_profile_without_changes_logs_nothing(conn, user):
    update_profile(conn, user, display_name="Owner")
    assert list_activity(conn, user.id, action="PROFILE_UPDATED") == []


def test_session_helpers_notify_listeners(user):
    state = {}
    seen = []
    unsubscribe = on_auth_state_changed(seen.append, state)
    try:
        assert current_user(state) is None
        set_current_user(user, state)
        assert current_user(state) == user
        clear_current_user(state)
        assert current_user(state) is None
    finally:
        unsubscribe()

    set_current_user(user, state)
    assert seen == [user, None]


def test_listeners_only_hear_their_own_session(user):
    mine, theirs = {}, {}
    heard = []
    on_auth_state_changed(heard.append, theirs)

    set_current_user(user, mine)
    clear_current_user(mine)

    assert heard == []
    set_current_user(user, theirs)
    assert heard == [user]


def test_hash_password_rounds():
    assert hash_password("secret123", rounds=4).startswith("$2b$04$")
