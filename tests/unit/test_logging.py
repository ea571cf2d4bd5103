"""Unit tests for logging service."""

from credential_service.services.logging_service import (
    configure_logging,
    get_logger,
    mask_email,
    redact_sensitive,
)


class TestRedactSensitive:
    """Tests for redact_sensitive processor."""

    def test_redacts_tokens(self):
        event_dict = {"access_token": "a", "refresh_token": "r", "event": "test"}
        result = redact_sensitive(None, None, event_dict)
        assert result["access_token"] == "REDACTED"
        assert result["refresh_token"] == "REDACTED"
        assert result["event"] == "test"

    def test_redacts_password_and_secret_variants(self):
        event_dict = {"password_hash": "$2b$", "jwt_refresh_secret": "s", "raw_secret": "x"}
        result = redact_sensitive(None, None, event_dict)
        assert set(result.values()) == {"REDACTED"}

    def test_redacts_api_keys(self):
        event_dict = {"smtp_api_key": "k", "API_KEY": "K"}
        result = redact_sensitive(None, None, event_dict)
        assert result == {"smtp_api_key": "REDACTED", "API_KEY": "REDACTED"}

    def test_case_insensitive_redaction(self):
        event_dict = {"Authorization": "Bearer abc", "PASSWORD": "pw"}
        result = redact_sensitive(None, None, event_dict)
        assert result["Authorization"] == "REDACTED"
        assert result["PASSWORD"] == "REDACTED"

    def test_preserves_identifiers(self):
        event_dict = {"user_id": "u1", "jti": "j1", "reset_token_id": "t1", "correlation_id": "c"}
        result = redact_sensitive(None, None, event_dict.copy())
        assert result == event_dict


class TestMaskEmail:
    """Tests for mask_email."""

    def test_masks_local_part(self):
        assert mask_email("alice@example.com") == "a***@example.com"

    def test_not_an_email(self):
        assert mask_email("nonsense") == "***"


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_configure_and_get_logger(self):
        configure_logging("DEBUG")
        assert get_logger("test") is not None

    def test_console_renderer(self):
        configure_logging("INFO", json_output=False)
        assert get_logger() is not None
