from __future__ import annotations

from decimal import Decimal

import pytest

from cobbler.config import ConfigError, load_config

CONFIG = """
[app]
name = "Cobbler CRM"
log_level = "DEBUG"
api_token = "from-file"
upload_dir = "bills"
cors_origins = ["http://localhost:5173"]

[db]
host = "db.local"
name = "cobbler"
user = "crm"
password = "pw"

[business]
min_quoted_amount = "250"
min_delivery_gap_days = 10
"""


@pytest.fixture
def config_file(tmp_path):
    p = tmp_path / "config.toml"
    p.write_text(CONFIG, encoding="utf-8")
    return p


def test_loads_sections_with_defaults(config_file, monkeypatch):
    monkeypatch.delenv("COBBLER_API_TOKEN", raising=False)
    cfg = load_config(config_file)
    assert cfg.api_token == "from-file"
    assert cfg.cors_origins == ("http://localhost:5173",)
    assert cfg.db.port == 5432
    assert cfg.db.sslmode == "disable"
    assert cfg.business.min_quoted_amount == Decimal("250")
    assert cfg.business.min_delivery_gap_days == 10
    assert cfg.business.max_item_photos == 4
    assert cfg.client.timeout == 15.0


def test_env_token_overrides_file(config_file, monkeypatch):
    monkeypatch.setenv("COBBLER_API_TOKEN", "from-env")
    assert load_config(config_file).api_token == "from-env"


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "nope.toml")


def test_missing_db_section(tmp_path, monkeypatch):
    monkeypatch.delenv("COBBLER_API_TOKEN", raising=False)
    p = tmp_path / "config.toml"
    p.write_text('[app]\napi_token = "x"\n', encoding="utf-8")
    with pytest.raises(ConfigError, match="Missing config key"):
        load_config(p)


def test_empty_token_is_rejected(tmp_path, monkeypatch):
    monkeypatch.delenv("COBBLER_API_TOKEN", raising=False)
    p = tmp_path / "config.toml"
    p.write_text(CONFIG.replace('"from-file"', '""'), encoding="utf-8")
    with pytest.raises(ConfigError, match="api_token"):
        load_config(p)


def test_invalid_toml(tmp_path):
    p = tmp_path / "config.toml"
    p.write_text("[app\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="TOML"):
        load_config(p)
