from decimal import Decimal

import pytest
from pydantic import ValidationError

from app.config import Settings
from app.core.money import format_money, quantize_money, to_money
from app.services.auction_errors import InvalidPrice


def _settings(monkeypatch, **env) -> Settings:
    for key in ("ENVIRONMENT", "CORS_ORIGINS", "MIN_BID_DECREMENT", "ENABLE_DOCS"):
        monkeypatch.delenv(key, raising=False)
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return Settings(_env_file=None)


def test_min_bid_decrement_defaults_to_fifty(monkeypatch):
    s = _settings(monkeypatch)
    assert s.min_bid_decrement == Decimal("50")


def test_min_bid_decrement_from_env(monkeypatch):
    s = _settings(monkeypatch, MIN_BID_DECREMENT="12.50")
    assert s.min_bid_decrement == Decimal("12.50")


@pytest.mark.parametrize("value", ["-1", "0.001", "ten"])
def test_min_bid_decrement_rejects_bad_values(monkeypatch, value):
    with pytest.raises(ValidationError):
        _settings(monkeypatch, MIN_BID_DECREMENT=value)


def test_postgres_urls_use_psycopg3(monkeypatch):
    s = _settings(monkeypatch, DATABASE_URL="postgres://u:p@db:5432/poolbid")
    assert s.database_url == "postgresql+psycopg://u:p@db:5432/poolbid"


def test_cors_origins_parsing(monkeypatch):
    s = _settings(monkeypatch, CORS_ORIGINS='["https://a.example/", "https://b.example"]')
    assert s.cors_origins == ["https://a.example", "https://b.example"]

    s = _settings(monkeypatch, CORS_ORIGINS="https://a.example, https://b.example")
    assert s.cors_origins == ["https://a.example", "https://b.example"]

    s = _settings(monkeypatch)
    assert "http://localhost:5173" in s.cors_origins


def test_production_guards(monkeypatch):
    with pytest.raises(ValidationError):
        _settings(monkeypatch, ENVIRONMENT="production", DATABASE_URL="sqlite:///./x.db")

    s = _settings(
        monkeypatch,
        ENVIRONMENT="production",
        DATABASE_URL="postgresql://u:p@db/poolbid",
        CORS_ORIGINS="https://app.example",
    )
    assert s.enable_docs is False


def test_docs_enabled_by_default_outside_production(monkeypatch):
    assert _settings(monkeypatch, ENVIRONMENT="dev").enable_docs is True
    assert _settings(monkeypatch, ENVIRONMENT="dev", ENABLE_DOCS="false").enable_docs is False


@pytest.mark.parametrize(
    "value,expected",
    [
        (500, Decimal("500.00")),
        ("450.5", Decimal("450.50")),
        (450.1, Decimal("450.10")),
        (Decimal("0.01"), Decimal("0.01")),
        (" 12 ", Decimal("12.00")),
    ],
)
def test_to_money_accepts_exact_amounts(value, expected):
    assert to_money(value) == expected


def test_to_money_rejects_excess_precision_and_huge_values():
    with pytest.raises(InvalidPrice) as excinfo:
        to_money("1.005")
    assert "2 decimal places" in str(excinfo.value)

    with pytest.raises(InvalidPrice):
        to_money("10000000000")


def test_quantize_and_format():
    assert quantize_money("2.345") == Decimal("2.35")
    assert quantize_money("2.344") == Decimal("2.34")
    assert format_money(Decimal("450")) == "450.00"
    assert format_money(None) is None
