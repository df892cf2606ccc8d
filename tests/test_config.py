"""Unit tests for marketplace/config.py."""

from decimal import Decimal

from marketplace.config import Settings


def test_default_settings_testable() -> None:
    s = Settings()
    assert s.env != "production"
    assert s.is_production is False


def test_is_production() -> None:
    assert Settings(env="production").is_production is True


def test_approval_defaults() -> None:
    s = Settings()
    assert s.approval_max_attempts >= 1
    assert s.approval_retry_backoff_seconds > 0
    assert s.inflight_lock_ttl_seconds > 0


def test_env_override(monkeypatch) -> None:  # type: ignore[no-untyped-def]
    monkeypatch.setenv("APPROVAL_MAX_ATTEMPTS", "5")
    monkeypatch.setenv("MAX_PRICE", "2500.50")
    s = Settings()
    assert s.approval_max_attempts == 5
    assert s.max_price == Decimal("2500.50")


def test_rate_limit_ordering() -> None:
    s = Settings()
    assert s.rate_limit_registration_capacity < s.rate_limit_write_capacity < s.rate_limit_read_capacity
