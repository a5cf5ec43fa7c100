"""
Tests for configuration loading and structured logging.
"""

import json
import logging

import pytest
import structlog

from inductlite_core.config import SignOutSettings, load_settings
from inductlite_core.errors import ConfigurationError

SECRET = "s" * 32


class TestLoadSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self):
        settings = load_settings({"SIGN_OUT_TOKEN_SECRET": SECRET})

        assert settings.secret == SECRET
        assert settings.public_url is None
        assert settings.environment == "development"
        assert settings.is_production is False
        assert settings.default_phone_region == "NZ"
        assert settings.token_ttl_ms == 8 * 60 * 60 * 1000
        assert settings.trust_proxy is False
        assert settings.database_url is None

    def test_session_secret_fallback(self):
        settings = load_settings({"SESSION_SECRET": SECRET})

        assert settings.secret == SECRET

    def test_dedicated_secret_preferred(self):
        settings = load_settings({
            "SIGN_OUT_TOKEN_SECRET": "t" * 40,
            "SESSION_SECRET": SECRET,
        })

        assert settings.secret == "t" * 40

    def test_missing_secret_is_fatal(self):
        with pytest.raises(ConfigurationError):
            load_settings({})

    def test_short_secret_is_fatal(self):
        with pytest.raises(ConfigurationError) as exc_info:
            load_settings({"SIGN_OUT_TOKEN_SECRET": "short"})

        assert "short" not in str(exc_info.value)

    def test_full_environment(self):
        settings = load_settings({
            "SIGN_OUT_TOKEN_SECRET": SECRET,
            "PUBLIC_APP_URL": " https://signin.example.com ",
            "APP_ENV": "Production",
            "DEFAULT_PHONE_REGION": "au",
            "SIGN_OUT_TOKEN_TTL_HOURS": "0.5",
            "TRUST_PROXY": "true",
            "DATABASE_URL": "postgresql+asyncpg://localhost/inductlite",
        })

        assert settings.public_url == "https://signin.example.com"
        assert settings.is_production is True
        assert settings.default_phone_region == "AU"
        assert settings.token_ttl_ms == 30 * 60 * 1000
        assert settings.trust_proxy is True
        assert settings.database_url == "postgresql+asyncpg://localhost/inductlite"

    @pytest.mark.parametrize("ttl", ["abc", "0", "-1", "nan", "inf", "-inf", "1e308"])
    def test_invalid_ttl(self, ttl):
        with pytest.raises(ConfigurationError):
            load_settings({"SIGN_OUT_TOKEN_SECRET": SECRET, "SIGN_OUT_TOKEN_TTL_HOURS": ttl})

    @pytest.mark.parametrize("region", ["NZL", "1Z"])
    def test_invalid_region(self, region):
        with pytest.raises(ConfigurationError):
            load_settings({"SIGN_OUT_TOKEN_SECRET": SECRET, "DEFAULT_PHONE_REGION": region})

    def test_repr_hides_secret(self):
        settings = SignOutSettings(secret=SECRET, environment="production")

        assert SECRET not in repr(settings)
        assert "production" in repr(settings)

    def test_verifier_from_settings_uses_region(self):
        from inductlite_core.signout_token import TokenVerifier

        settings = load_settings({"SIGN_OUT_TOKEN_SECRET": SECRET, "DEFAULT_PHONE_REGION": "AU"})
        verifier = TokenVerifier.from_settings(settings, clock=lambda: 0)

        assert verifier.hash_phone("0412 345 678") == verifier.hash_phone("+61412345678")


class TestStructuredLogging:
    """Tests for the JSON log pipeline."""

    @pytest.fixture(autouse=True)
    def reset_logging(self):
        yield
        structlog.reset_defaults()
        logging.getLogger().handlers.clear()

    def test_json_formatter_merges_event_dict(self):
        from inductlite_core.logging import JSONFormatter, request_id_var

        token = request_id_var.set("req-123")
        try:
            record = logging.LogRecord(
                "inductlite_core.service", logging.INFO, __file__, 1,
                {"event": "visitor_signed_out", "sign_in_record_id": "rec-1"}, (), None,
            )
            data = json.loads(JSONFormatter().format(record))
        finally:
            request_id_var.reset(token)

        assert data["event"] == "visitor_signed_out"
        assert data["sign_in_record_id"] == "rec-1"
        assert data["request_id"] == "req-123"
        assert data["level"] == "INFO"

    def test_json_formatter_plain_message(self):
        from inductlite_core.logging import JSONFormatter

        record = logging.LogRecord("tenacity", logging.WARNING, __file__, 1, "retrying %s", ("x",), None)
        data = json.loads(JSONFormatter().format(record))

        assert data["event"] == "retrying x"
        assert data["request_id"] is None

    def test_setup_logging_emits_json(self, capsys):
        from inductlite_core.logging import get_logger, setup_logging

        setup_logging(service_name="inductlite-test", level="INFO")
        get_logger("inductlite_core.tests").info("sign_out_refused", reason="EXPIRED")

        lines = [json.loads(line) for line in capsys.readouterr().out.strip().splitlines()]
        event = lines[-1]
        assert event["event"] == "sign_out_refused"
        assert event["reason"] == "EXPIRED"
        assert event["service"] == "inductlite-test"
        assert event["level"] == "info"
