from __future__ import annotations

from cobbler.cli import run_cli
from cobbler.config import ConfigError, load_config
from cobbler.db import Db, DbError
from cobbler.logs import configure_logging


def main() -> int:
    try:
        cfg = load_config("config.toml")
        configure_logging(cfg.log_level)
        db = Db(cfg.db)
        run_cli(db, cfg)
        return 0
    except ConfigError as e:
        print(f"[CONFIG ERROR] {e}")
        return 2
    except DbError as e:
        print(f"[DB ERROR] {e}")
        return 3
    except KeyboardInterrupt:
        print("\nInterrupted.")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
