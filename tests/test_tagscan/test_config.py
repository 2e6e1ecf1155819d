"""
Tests for environment-driven settings.
"""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from tagscan.config import TagScanSettings, TransportKind
from tagscan.throttle import ThrottlePolicy


class TestSettings:

    def test_defaults(self, monkeypatch):
        for name in ["EMAIL_TRANSPORT", "THROTTLE_MINUTES", "THROTTLE_POLICY", "SCAN_LEASE_SECONDS"]:
            monkeypatch.delenv(name, raising=False)

        settings = TagScanSettings(_env_file=None)

        assert settings.email_transport == TransportKind.CONSOLE
        assert settings.throttle_window == timedelta(minutes=30)
        assert settings.throttle_policy == ThrottlePolicy.ANY_EVENT
        assert settings.scan_lease_ttl == timedelta(seconds=60)

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("EMAIL_TRANSPORT", "sendgrid")
        monkeypatch.setenv("SENDGRID_API_KEY", "SG.env")
        monkeypatch.setenv("THROTTLE_MINUTES", "10")
        monkeypatch.setenv("THROTTLE_POLICY", "notified_only")

        settings = TagScanSettings(_env_file=None)

        assert settings.email_transport == TransportKind.SENDGRID
        assert settings.sendgrid_api_key == "SG.env"
        assert settings.throttle_window == timedelta(minutes=10)
        assert settings.throttle_policy == ThrottlePolicy.NOTIFIED_ONLY
        assert settings.missing_credentials() == []

    def test_unknown_transport_rejected(self, monkeypatch):
        monkeypatch.setenv("EMAIL_TRANSPORT", "carrier-pigeon")

        with pytest.raises(ValidationError):
            TagScanSettings(_env_file=None)

    def test_window_must_be_positive(self):
        with pytest.raises(ValidationError):
            TagScanSettings(_env_file=None, throttle_minutes=0)

    def test_console_needs_no_credentials(self):
        assert TagScanSettings(_env_file=None, email_transport="console").missing_credentials() == []
