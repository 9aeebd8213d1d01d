"""Tests for environment-based operator settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from operator_core.config import OperatorSettings


class TestOperatorSettings:
    """Tests for defaults and REDIS_OPERATOR_* overrides."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("REDIS_OPERATOR_WORKERS", raising=False)
        settings = OperatorSettings()

        assert settings.manifests_dir == Path("manifests")
        assert settings.workers == 4
        assert settings.pass_timeout_seconds == 60.0
        assert settings.redis_password is None
        assert settings.failover_flush_data is False
        assert settings.failover_hard_reset is False

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("REDIS_OPERATOR_MANIFESTS_DIR", "/etc/redis-operator")
        monkeypatch.setenv("REDIS_OPERATOR_WORKERS", "8")
        monkeypatch.setenv("REDIS_OPERATOR_REDIS_PASSWORD", "s3cret")
        monkeypatch.setenv("REDIS_OPERATOR_FAILOVER_FLUSH_DATA", "true")
        monkeypatch.setenv("REDIS_OPERATOR_FAILOVER_HARD_RESET", "1")

        settings = OperatorSettings()

        assert settings.manifests_dir == Path("/etc/redis-operator")
        assert settings.workers == 8
        assert settings.redis_password == "s3cret"
        assert settings.failover_flush_data is True
        assert settings.failover_hard_reset is True

    def test_keyword_overrides_environment(self, monkeypatch):
        monkeypatch.setenv("REDIS_OPERATOR_WORKERS", "8")
        assert OperatorSettings(workers=2).workers == 2

    def test_invalid_values_rejected(self, monkeypatch):
        monkeypatch.setenv("REDIS_OPERATOR_WORKERS", "0")
        with pytest.raises(ValidationError):
            OperatorSettings()
