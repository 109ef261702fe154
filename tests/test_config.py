import os
from pathlib import Path

import pytest

from gastos.backend import config as config_module
from gastos.backend.config import load_config
from gastos.backend.config import load_dotenv

ENV_VARS = (
    "TELEGRAM_BOT_TOKEN",
    "APP_TIMEZONE",
    "APP_CURRENCY",
    "MIN_AMOUNT_COP",
    "MAX_AMOUNT_COP",
    "EXPENSES_DB_PATH",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # Keep a developer's local .env out of the way.
    monkeypatch.setattr(config_module, "__file__", str(tmp_path / "config.py"))


def test_missing_token_raises():
    with pytest.raises(RuntimeError, match="TELEGRAM_BOT_TOKEN"):
        load_config()


def test_defaults(monkeypatch):
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "abc")
    config = load_config()
    assert config.token == "abc"
    assert config.timezone_name == "America/Bogota"
    assert config.default_currency == "COP"
    assert config.min_amount == 100
    assert config.max_amount == 50_000_000


def test_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "abc")
    monkeypatch.setenv("MIN_AMOUNT_COP", "500")
    monkeypatch.setenv("EXPENSES_DB_PATH", str(tmp_path / "x.db"))
    config = load_config()
    assert config.min_amount == 500
    assert config.db_path == Path(tmp_path / "x.db")


def test_invalid_amount_limit(monkeypatch):
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "abc")
    monkeypatch.setenv("MAX_AMOUNT_COP", "mucho")
    with pytest.raises(RuntimeError, match="MAX_AMOUNT_COP"):
        load_config()


def test_load_dotenv_does_not_override(monkeypatch, tmp_path):
    monkeypatch.setenv("APP_TIMEZONE", "UTC")
    dotenv = tmp_path / ".env"
    dotenv.write_text(
        "# comment\nAPP_TIMEZONE=America/Lima\nAPP_CURRENCY='COP'\nnot a pair\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("APP_CURRENCY", "")
    monkeypatch.delenv("APP_CURRENCY")
    load_dotenv(dotenv)

    assert os.environ["APP_TIMEZONE"] == "UTC"
    assert os.environ["APP_CURRENCY"] == "COP"
