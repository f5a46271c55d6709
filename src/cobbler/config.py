from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class DbConfig:
    host: str
    port: int
    name: str
    user: str
    password: str
    sslmode: str = "disable"
    connect_timeout: int = 5


@dataclass(frozen=True)
class BusinessConfig:
    min_quoted_amount: Decimal = Decimal("1")
    min_delivery_gap_days: int = 15
    max_item_photos: int = 4
    currency: str = "INR"
    default_gst_rate: Decimal = Decimal("18")


@dataclass(frozen=True)
class ClientConfig:
    base_url: str = "http://127.0.0.1:5000/api"
    timeout: float = 15.0
    poll_interval: float = 5.0


@dataclass(frozen=True)
class AppConfig:
    name: str
    log_level: str
    api_token: str
    upload_dir: str
    db: DbConfig
    business: BusinessConfig = field(default_factory=BusinessConfig)
    client: ClientConfig = field(default_factory=ClientConfig)
    cors_origins: tuple[str, ...] = ("*",)


def load_config(path: str | Path) -> AppConfig:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Config file not found: {p.resolve()}")

    try:
        data = tomllib.loads(p.read_text(encoding="utf-8"))
    except Exception as e:
        raise ConfigError(f"Failed to read config TOML: {e}") from e

    try:
        app = data["app"]
        db = data["db"]
        business = data.get("business", {})
        client = data.get("client", {})

        api_token = os.environ.get("COBBLER_API_TOKEN") or app.get("api_token")
        if not api_token:
            raise ConfigError("app.api_token is empty (set it or COBBLER_API_TOKEN)")

        return AppConfig(
            name=str(app.get("name", "Cobbler CRM")),
            log_level=str(app.get("log_level", "INFO")),
            api_token=str(api_token),
            upload_dir=str(app.get("upload_dir", "uploads")),
            cors_origins=tuple(app.get("cors_origins", ["*"])),
            db=DbConfig(
                host=str(db["host"]),
                port=int(db.get("port", 5432)),
                name=str(db["name"]),
                user=str(db["user"]),
                password=str(db["password"]),
                sslmode=str(db.get("sslmode", "disable")),
                connect_timeout=int(db.get("connect_timeout", 5)),
            ),
            business=BusinessConfig(
                min_quoted_amount=Decimal(str(business.get("min_quoted_amount", "1"))),
                min_delivery_gap_days=int(business.get("min_delivery_gap_days", 15)),
                max_item_photos=int(business.get("max_item_photos", 4)),
                currency=str(business.get("currency", "INR")),
                default_gst_rate=Decimal(str(business.get("default_gst_rate", "18"))),
            ),
            client=ClientConfig(
                base_url=str(client.get("base_url", "http://127.0.0.1:5000/api")),
                timeout=float(client.get("timeout", 15.0)),
                poll_interval=float(client.get("poll_interval", 5.0)),
            ),
        )
    except ConfigError:
        raise
    except KeyError as e:
        raise ConfigError(f"Missing config key: {e}") from e
    except Exception as e:
        raise ConfigError(f"Invalid config values: {e}") from e
