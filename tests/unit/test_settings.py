"""Tests for settings and payout policy."""

from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from earnings_calculator import TaxStatus
from payouts.config.policy import PayoutPolicy
from payouts.config.settings import Settings


def make_settings(**overrides) -> Settings:
    """Settings isolated from .env and the process environment."""
    values = {
        "database_url": "sqlite+aiosqlite:///:memory:",
        "environment": "test",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class TestSettings:
    """Settings validation."""

    def test_defaults(self):
        """Business defaults."""
        settings = make_settings()

        assert settings.minimum_withdrawal == 100_000
        assert settings.rejection_reason_min_length == 10
        assert settings.withdrawal_require_processing is False
        assert settings.bonus_default_expiry_days == 365
        assert settings.concurrency_max_retries == 3

    def test_database_url_driver(self):
        """Only async drivers are accepted."""
        with pytest.raises(PydanticValidationError, match="DATABASE_URL"):
            make_settings(database_url="postgresql://user@localhost/db")

    def test_sqlite_forbidden_in_production(self):
        """Production requires PostgreSQL."""
        with pytest.raises(PydanticValidationError, match="SQLite"):
            make_settings(environment="production")

    def test_debug_forbidden_in_production(self):
        """DEBUG must be off in production."""
        with pytest.raises(PydanticValidationError, match="DEBUG"):
            make_settings(
                environment="production",
                debug=True,
                database_url="postgresql+asyncpg://u:p@localhost/db",
            )

    def test_log_level_normalised(self):
        """Log level is upper-cased."""
        assert make_settings(log_level="debug").log_level == "DEBUG"

    def test_unknown_log_level(self):
        """Unknown log level is rejected."""
        with pytest.raises(PydanticValidationError):
            make_settings(log_level="LOUD")

    def test_minimum_withdrawal_positive(self):
        """Minimum withdrawal must be positive."""
        with pytest.raises(PydanticValidationError):
            make_settings(minimum_withdrawal=0)


class TestPayoutPolicy:
    """Immutable policy snapshot."""

    def test_from_settings(self):
        """Policy copies business settings."""
        settings = make_settings(
            minimum_withdrawal=50_000,
            withdrawal_require_processing=True,
            concurrency_max_retries=5,
        )
        policy = PayoutPolicy.from_settings(settings)

        assert policy.minimum_withdrawal == 50_000
        assert policy.withdrawal_require_processing is True
        assert policy.max_retries == 5

    def test_default_rate_tables(self):
        """Rate tables default to the business constants."""
        policy = PayoutPolicy()

        assert policy.tax_rates[TaxStatus.INDIVIDUAL] == Decimal("0.13")
        assert policy.commission_rates[1] == Decimal("0.10")
        assert len(policy.partner_levels) == 5

    def test_frozen(self):
        """Policy cannot be changed after construction."""
        policy = PayoutPolicy()
        with pytest.raises(PydanticValidationError):
            policy.minimum_withdrawal = 1
