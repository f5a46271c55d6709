from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

import psycopg
from psycopg import Connection

from .config import DbConfig

logger = logging.getLogger(__name__)


class DbError(Exception):
    pass


@dataclass(frozen=True)
class Db:
    """One short-lived connection per request or CLI action.

    Connections are opened in autocommit mode; `transaction()` wraps its block
    in a psycopg transaction that rolls back if the block raises.
    """

    cfg: DbConfig

    def connect(self) -> Connection:
        try:
            return psycopg.connect(
                host=self.cfg.host,
                port=self.cfg.port,
                dbname=self.cfg.name,
                user=self.cfg.user,
                password=self.cfg.password,
                sslmode=self.cfg.sslmode,
                connect_timeout=self.cfg.connect_timeout,
                application_name="cobbler-crm",
                autocommit=True,
            )
        except psycopg.OperationalError as e:
            logger.error("Connecting to %s:%s/%s failed: %s", self.cfg.host, self.cfg.port, self.cfg.name, e)
            raise DbError(
                f"Cannot connect to database '{self.cfg.name}' on {self.cfg.host}:{self.cfg.port}. "
                "Check config.toml [db] and that PostgreSQL is running."
            ) from e

    @contextmanager
    def session(self) -> Iterator[Connection]:
        conn = self.connect()
        try:
            yield conn
        except psycopg.OperationalError as e:
            raise DbError(f"Lost the database connection: {e}") from e
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        with self.session() as conn, conn.transaction():
            yield conn


def rows_as_dicts(cur) -> list[dict]:
    cols = [d.name for d in cur.description]
    return [dict(zip(cols, row)) for row in cur.fetchall()]


def row_as_dict(cur) -> dict | None:
    row = cur.fetchone()
    if not row:
        return None
    cols = [d.name for d in cur.description]
    return dict(zip(cols, row))
