"""Apply a plain SQL migration file.

    python -m cobbler.migrations migrations/001_widen_product_types.sql

Statements are separated by ";" and run in one transaction, so a failing
statement leaves the schema untouched.
"""
from __future__ import annotations

import argparse
import logging
from pathlib import Path

from .config import ConfigError, load_config
from .db import Db, DbError
from .logs import configure_logging

logger = logging.getLogger(__name__)


class MigrationError(Exception):
    pass


def split_statements(sql: str) -> list[str]:
    lines = [line for line in sql.splitlines() if not line.strip().startswith("--")]
    return [s.strip() for s in "\n".join(lines).split(";") if s.strip()]


def run_sql_file(db: Db, path: str | Path) -> int:
    p = Path(path)
    if not p.exists():
        raise MigrationError(f"Migration file not found: {p.resolve()}")

    statements = split_statements(p.read_text(encoding="utf-8"))
    if not statements:
        raise MigrationError(f"No SQL statements in {p.name}")

    logger.info("Applying %s (%d statements)", p.name, len(statements))
    try:
        with db.transaction() as conn:
            for stmt in statements:
                logger.info("Executing: %s...", " ".join(stmt.split())[:100])
                conn.execute(stmt)
    except DbError:
        raise
    except Exception as e:
        raise MigrationError(f"Migration {p.name} failed: {e}") from e

    logger.info("Migration %s completed", p.name)
    return len(statements)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="cobbler.migrations", description="Run SQL migration files")
    parser.add_argument("files", nargs="+", help="SQL files, applied in the given order")
    parser.add_argument("--config", default="config.toml")
    args = parser.parse_args(argv)

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        print(f"[CONFIG ERROR] {e}")
        return 2

    configure_logging(cfg.log_level)
    db = Db(cfg.db)
    try:
        for f in args.files:
            run_sql_file(db, f)
    except DbError as e:
        print(f"[DB ERROR] {e}")
        return 3
    except MigrationError as e:
        print(f"[MIGRATION ERROR] {e}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
