"""
Pytest fixtures for Shop Ledger tests.

Every test gets a fresh in-memory SQLite database with the full schema and a
signed-up shop owner. bcrypt runs at its minimum cost to keep the suite fast.
"""
from pathlib import Path

import pytest

from shopledger.auth import sign_up
from shopledger.db import _connect, ensure_schema
from shopledger.services.items import add_item, get_item


@pytest.fixture
def conn():
    c = _connect(Path(":memory:"))
    ensure_schema(c)
    yield c
    c.close()


@pytest.fixture
def user(conn):
    return sign_up(conn, "owner@example.com", "secret123", "Owner", rounds=4)


@pytest.fixture
def other_user(conn):
    return sign_up(conn, "other@example.com", "secret123", "Other", rounds=4)


@pytest.fixture
def make_item(conn, user):
    """Create an item for `user` and return it as stored."""

    def _make(name="Widget", price=10.0, quantity=0, **kwargs):
        item_id = add_item(conn, user, name=name, price=price, quantity=quantity, **kwargs)
        return get_item(conn, user.id, item_id)

    return _make
