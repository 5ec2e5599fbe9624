"""Tests for auth configuration."""

import pytest
from pydantic import ValidationError

from auth.config import AuthConfig, GateConfig
from auth.types import Role


class TestAuthConfig:
    """Defaults, bounds and environment loading."""

    def test_defaults(self):
        config = AuthConfig()

        assert config.session_timeout_ms == 1_800_000
        assert config.production is False
        assert config.login_rate_limit_attempts == 5
        assert config.login_rate_limit_window_minutes == 15
        assert config.payment_rate_limit_attempts == 10

    @pytest.mark.parametrize("timeout", [59_999, 86_400_001])
    def test_timeout_bounds(self, timeout):
        with pytest.raises(ValidationError):
            AuthConfig(session_timeout_ms=timeout)

    def test_from_env_reads_timeout_and_environment(self, monkeypatch):
        monkeypatch.setenv("SESSION_TIMEOUT", "900000")
        monkeypatch.setenv("APP_ENV", "Production")

        config = AuthConfig.from_env()

        assert config.session_timeout_ms == 900_000
        assert config.production is True

    def test_from_env_defaults(self, monkeypatch):
        monkeypatch.delenv("SESSION_TIMEOUT", raising=False)
        monkeypatch.delenv("APP_ENV", raising=False)

        config = AuthConfig.from_env()

        assert config.session_timeout_ms == 1_800_000
        assert config.production is False


class TestGateConfig:
    """Gate paths."""

    def test_defaults(self):
        gate = GateConfig()

        assert gate.protected_prefix == "/admin"
        assert gate.login_path in gate.public_paths
        assert gate.restricted_paths == {"/admin/settings": Role.SUPERADMIN}
