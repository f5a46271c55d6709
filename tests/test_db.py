from __future__ import annotations

from contextlib import contextmanager

import psycopg
import pytest

from cobbler import db as db_module
from cobbler.config import DbConfig
from cobbler.db import Db, DbError

CFG = DbConfig(host="db.local", port=5432, name="cobbler", user="crm", password="pw")


class FakeConnection:
    def __init__(self) -> None:
        self.events: list[str] = []

    @contextmanager
    def transaction(self):
        self.events.append("begin")
        try:
            yield
        except Exception:
            self.events.append("rollback")
            raise
        self.events.append("commit")

    def close(self) -> None:
        self.events.append("close")


@pytest.fixture
def conn(monkeypatch):
    fake = FakeConnection()
    seen = {}

    def connect(**kwargs):
        seen.update(kwargs)
        return fake

    monkeypatch.setattr(db_module.psycopg, "connect", connect)
    fake.connect_kwargs = seen
    return fake


def test_connect_uses_config_in_autocommit_mode(conn):
    with Db(CFG).session() as c:
        assert c is conn
    assert conn.connect_kwargs["dbname"] == "cobbler"
    assert conn.connect_kwargs["connect_timeout"] == 5
    assert conn.connect_kwargs["autocommit"] is True
    assert conn.events == ["close"]


def test_transaction_commits_and_closes(conn):
    with Db(CFG).transaction():
        pass
    assert conn.events == ["begin", "commit", "close"]


def test_transaction_rolls_back_on_error(conn):
    with pytest.raises(ValueError):
        with Db(CFG).transaction():
            raise ValueError("bad row")
    assert conn.events == ["begin", "rollback", "close"]


def test_unreachable_server_raises_db_error(monkeypatch):
    def refuse(**kwargs):
        raise psycopg.OperationalError("connection refused")

    monkeypatch.setattr(db_module.psycopg, "connect", refuse)
    with pytest.raises(DbError, match="db.local:5432"):
        Db(CFG).connect()


def test_dropped_connection_becomes_db_error(conn):
    with pytest.raises(DbError, match="Lost the database connection"):
        with Db(CFG).session():
            raise psycopg.OperationalError("server closed the connection")
    assert conn.events == ["close"]
