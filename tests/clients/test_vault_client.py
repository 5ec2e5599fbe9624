"""Tests for VaultClient - HashiCorp Vault secrets management."""

from unittest.mock import patch

import pytest
from hvac.exceptions import Forbidden, InvalidPath

import clients.vault_client as vault_module
from clients.vault_client import (
    VaultClient,
    VaultError,
    get_database_url,
    get_identity_config,
    get_payhere_config,
)


@pytest.fixture
def vault_env(monkeypatch):
    monkeypatch.setenv("VAULT_ADDR", "https://vault.test.local:8200")
    monkeypatch.setenv("VAULT_ROLE_ID", "role-id")
    monkeypatch.setenv("VAULT_SECRET_ID", "secret-id")
    monkeypatch.delenv("VAULT_NAMESPACE", raising=False)


@pytest.fixture
def hvac_client(vault_env):
    """Patched hvac.Client that authenticates."""
    with patch("hvac.Client") as client_cls:
        client = client_cls.return_value
        client.auth.approle.login.return_value = {"auth": {"client_token": "token"}}
        client.is_authenticated.return_value = True
        yield client


@pytest.fixture(autouse=True)
def reset_singleton():
    vault_module._vault_client_instance = None
    vault_module._secret_cache.clear()
    yield
    vault_module._vault_client_instance = None
    vault_module._secret_cache.clear()


def kv_response(data: dict) -> dict:
    return {"data": {"data": data}}


class TestVaultClientInit:
    """Initialization and authentication."""

    def test_missing_vault_addr_raises(self, monkeypatch):
        monkeypatch.delenv("VAULT_ADDR", raising=False)

        with pytest.raises(ValueError, match="VAULT_ADDR"):
            VaultClient()

    def test_missing_approle_credentials_raises(self, vault_env, monkeypatch):
        monkeypatch.delenv("VAULT_ROLE_ID")

        with pytest.raises(ValueError, match="VAULT_ROLE_ID"):
            VaultClient()

    def test_rejected_approle_raises(self, hvac_client):
        hvac_client.auth.approle.login.side_effect = Forbidden("permission denied")

        with pytest.raises(VaultError, match="AppRole"):
            VaultClient()

    def test_valid_approle_sets_token(self, hvac_client):
        VaultClient()

        assert hvac_client.token == "token"


class TestGetSecret:
    """Secret retrieval - paths scoped to gem_admin/."""

    def test_path_is_scoped(self, hvac_client):
        hvac_client.secrets.kv.v2.read_secret_version.return_value = kv_response({"url": "postgres://x"})

        assert VaultClient().get_secret("database", "url") == "postgres://x"
        assert hvac_client.secrets.kv.v2.read_secret_version.call_args.kwargs["path"] == "gem_admin/database"

    def test_missing_path_raises(self, hvac_client):
        hvac_client.secrets.kv.v2.read_secret_version.side_effect = InvalidPath()

        with pytest.raises(VaultError, match="not found"):
            VaultClient().get_secret("nope", "url")

    def test_missing_field_lists_available(self, hvac_client):
        hvac_client.secrets.kv.v2.read_secret_version.return_value = kv_response({"url": "x"})

        with pytest.raises(KeyError, match="Available: url"):
            VaultClient().get_secret("database", "password")


class TestHelpers:
    """Typed getters go through the process cache."""

    def test_database_url_cached(self, hvac_client):
        hvac_client.secrets.kv.v2.read_secret_version.return_value = kv_response({"url": "postgres://x"})

        assert get_database_url() == "postgres://x"
        assert get_database_url() == "postgres://x"
        assert hvac_client.secrets.kv.v2.read_secret_version.call_count == 1

    def test_identity_config(self, hvac_client):
        hvac_client.secrets.kv.v2.read_secret_version.return_value = kv_response(
            {"url": "https://project.supabase.co", "anon_key": "anon"}
        )

        assert get_identity_config() == {"url": "https://project.supabase.co", "anon_key": "anon"}

    def test_payhere_config(self, hvac_client):
        hvac_client.secrets.kv.v2.read_secret_version.return_value = kv_response(
            {"merchant_id": "1211149", "merchant_secret": "s3cret"}
        )

        assert get_payhere_config() == {"merchant_id": "1211149", "merchant_secret": "s3cret"}
