"""
Unit tests for src/utils/vault_client.py

Tests HashiCorp Vault integration for fetching the database URI.
"""

from unittest.mock import Mock, patch

import pytest
import requests

from utils.vault_client import VaultClient, kv2_data_path


def make_response(status_code=200, data=None):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = {"data": {"data": data or {}}}
    return response


class TestKv2DataPath:
    """Test KV v2 path handling"""

    @pytest.mark.parametrize("path, expected", [
        ("secret/database/mongodb", "secret/data/database/mongodb"),
        ("secret/data/database/mongodb", "secret/data/database/mongodb"),
        ("kv/mirror", "kv/data/mirror"),
        ("secret", "secret/data"),
    ])
    def test_data_segment(self, path, expected):
        assert kv2_data_path(path) == expected

    @pytest.mark.parametrize("path", [
        "", "secret/../sys", "//secret", "secret/", "secret/mongo db", "secret;rm",
    ])
    def test_invalid_paths_rejected(self, path):
        with pytest.raises(ValueError):
            kv2_data_path(path)


class TestVaultClientInit:
    """Test VaultClient initialization"""

    def test_init_with_explicit_params(self):
        """Test initialization with explicit parameters"""
        # Arrange & Act
        client = VaultClient(
            vault_addr="https://vault.example.com/",
            vault_token="test-token-123"
        )

        # Assert
        assert client.vault_addr == "https://vault.example.com"
        assert client.namespace is None
        assert client.session.headers["X-Vault-Token"] == "test-token-123"
        assert client.session.headers["Content-Type"] == "application/json"
        assert "X-Vault-Namespace" not in client.session.headers

    def test_init_with_namespace(self):
        client = VaultClient(
            vault_addr="https://vault.example.com",
            vault_token="test-token-123",
            namespace="team-a"
        )

        assert client.session.headers["X-Vault-Namespace"] == "team-a"

    def test_init_from_environment_variables(self, monkeypatch):
        monkeypatch.setenv("VAULT_ADDR", "https://vault.env.com")
        monkeypatch.setenv("VAULT_TOKEN", "env-token-456")

        client = VaultClient()

        assert client.vault_addr == "https://vault.env.com"
        assert client.session.headers["X-Vault-Token"] == "env-token-456"

    def test_init_missing_vault_addr_raises_error(self):
        with pytest.raises(ValueError) as exc_info:
            VaultClient(vault_token="test-token")

        assert "Vault address not provided" in str(exc_info.value)
        assert "VAULT_ADDR" in str(exc_info.value)

    def test_init_missing_vault_token_raises_error(self):
        with pytest.raises(ValueError) as exc_info:
            VaultClient(vault_addr="https://vault.example.com")

        assert "Vault token not provided" in str(exc_info.value)
        assert "VAULT_TOKEN" in str(exc_info.value)


class TestGetSecret:
    """Test get_secret method"""

    def setup_method(self):
        self.client = VaultClient(
            vault_addr="https://vault.example.com",
            vault_token="test-token"
        )

    def test_get_secret_success(self):
        """Test successful secret retrieval"""
        with patch.object(self.client.session, "get") as mock_get:
            # Arrange
            mock_get.return_value = make_response(data={"uri": "mongodb://db:27017/app"})

            # Act
            result = self.client.get_secret("secret/database/mongodb")

        # Assert
        assert result == {"uri": "mongodb://db:27017/app"}
        mock_get.assert_called_once_with(
            "https://vault.example.com/v1/secret/data/database/mongodb",
            timeout=10.0
        )

    def test_get_secret_404_raises_value_error(self):
        with patch.object(self.client.session, "get", return_value=make_response(status_code=404)):
            with pytest.raises(ValueError) as exc_info:
                self.client.get_secret("secret/notfound")

        assert "Secret not found at path" in str(exc_info.value)
        assert "secret/data/notfound" in str(exc_info.value)

    def test_get_secret_http_error_raises_exception(self):
        """Test that HTTP errors are raised"""
        response = make_response(status_code=403)
        response.raise_for_status.side_effect = requests.HTTPError("Forbidden")

        with patch.object(self.client.session, "get", return_value=response):
            with pytest.raises(requests.HTTPError):
                self.client.get_secret("secret/forbidden")

    def test_get_secret_empty_data_raises_value_error(self):
        with patch.object(self.client.session, "get", return_value=make_response(data={})):
            with pytest.raises(ValueError) as exc_info:
                self.client.get_secret("secret/empty")

        assert "No data found in secret" in str(exc_info.value)

    def test_get_secret_missing_data_field(self):
        response = make_response()
        response.json.return_value = {"data": None}

        with patch.object(self.client.session, "get", return_value=response):
            with pytest.raises(ValueError, match="No data found in secret"):
                self.client.get_secret("secret/invalid")

    def test_invalid_path_never_requested(self):
        with patch.object(self.client.session, "get") as mock_get:
            with pytest.raises(ValueError):
                self.client.get_secret("secret/../sys/policies")

        mock_get.assert_not_called()


class TestGetDatabaseUri:
    """Test get_database_uri method"""

    def setup_method(self):
        self.client = VaultClient(
            vault_addr="https://vault.example.com",
            vault_token="test-token"
        )

    def test_default_path(self):
        with patch.object(self.client.session, "get") as mock_get:
            mock_get.return_value = make_response(data={"uri": "mongodb://db:27017/app"})

            uri = self.client.get_database_uri()

        assert uri == "mongodb://db:27017/app"
        assert mock_get.call_args[0][0] == (
            "https://vault.example.com/v1/secret/data/database/mongodb"
        )

    def test_missing_uri_raises_value_error(self):
        with patch.object(
            self.client.session, "get", return_value=make_response(data={"username": "mirror"})
        ):
            with pytest.raises(ValueError) as exc_info:
                self.client.get_database_uri()

        assert "Missing required field in secret: uri" in str(exc_info.value)

    def test_close_releases_session(self):
        with patch.object(self.client.session, "close") as mock_close:
            self.client.close()

        mock_close.assert_called_once()
