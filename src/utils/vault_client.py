"""
HashiCorp Vault client for the database connection string.

The sync process reads the MongoDB URI from Vault's KV v2 engine when
``DB_URI`` is not set. Only reads are supported.
"""

import logging
import os
import re
from typing import Any

import requests

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_SECRET_PATH = "secret/database/mongodb"

# mount/sub/path made of [A-Za-z0-9_-] segments
_SECRET_PATH = re.compile(r"[A-Za-z0-9_-]+(/[A-Za-z0-9_-]+)*")


def kv2_data_path(secret_path: str) -> str:
    """
    API path of a KV v2 secret.

    ``secret/database/mongodb`` becomes ``secret/data/database/mongodb``;
    paths that already contain ``/data/`` are used as given.

    Raises:
        ValueError: If the path is empty, tries to traverse, or holds
            characters outside ``[A-Za-z0-9/_-]``
    """
    if not secret_path or not isinstance(secret_path, str):
        raise ValueError("secret_path must be a non-empty string")

    if ".." in secret_path or not _SECRET_PATH.fullmatch(secret_path):
        raise ValueError(
            f"Invalid secret_path: {secret_path}. "
            "Use slash-separated segments of letters, digits, underscores and hyphens."
        )

    if "/data/" in secret_path:
        return secret_path

    mount, _, rest = secret_path.partition("/")
    return f"{mount}/data/{rest}" if rest else f"{mount}/data"


class VaultClient:
    """Read-only KV v2 client authenticated with a token."""

    def __init__(
        self,
        vault_addr: str | None = None,
        vault_token: str | None = None,
        namespace: str | None = None,
        timeout: float = 10.0,
    ):
        """
        Args:
            vault_addr: Vault server address (default: VAULT_ADDR)
            vault_token: Vault token (default: VAULT_TOKEN)
            namespace: Vault Enterprise namespace
            timeout: HTTP timeout in seconds

        Raises:
            ValueError: If the address or token is missing
        """
        vault_addr = vault_addr or os.getenv("VAULT_ADDR")
        vault_token = vault_token or os.getenv("VAULT_TOKEN")

        if not vault_addr:
            raise ValueError(
                "Vault address not provided. Set VAULT_ADDR or pass vault_addr."
            )
        if not vault_token:
            raise ValueError(
                "Vault token not provided. Set VAULT_TOKEN or pass vault_token."
            )

        self.vault_addr = vault_addr.rstrip("/")
        self.namespace = namespace
        self.timeout = timeout

        self.session = requests.Session()
        self.session.headers.update({
            "X-Vault-Token": vault_token,
            "Content-Type": "application/json",
        })
        if namespace:
            self.session.headers["X-Vault-Namespace"] = namespace

        logger.info(f"Initialized Vault client for {self.vault_addr}")

    def get_secret(self, secret_path: str) -> dict[str, Any]:
        """
        Read the current version of a KV v2 secret.

        Raises:
            ValueError: If the path is invalid or the secret is missing or empty
            requests.RequestException: If the request fails
        """
        api_path = kv2_data_path(secret_path)
        url = f"{self.vault_addr}/v1/{api_path}"
        logger.debug(f"Fetching secret from: {url}")

        response = self.session.get(url, timeout=self.timeout)
        if response.status_code == 404:
            raise ValueError(f"Secret not found at path: {api_path}")
        response.raise_for_status()

        data = (response.json().get("data") or {}).get("data") or {}
        if not data:
            raise ValueError(f"No data found in secret at path: {api_path}")
        return data

    def get_database_uri(self, secret_path: str = DEFAULT_DATABASE_SECRET_PATH) -> str:
        """
        MongoDB connection string stored under the secret's ``uri`` key.

        Raises:
            ValueError: If the secret has no ``uri``
        """
        uri = self.get_secret(secret_path).get("uri")
        if not uri:
            raise ValueError("Missing required field in secret: uri")

        logger.info("Fetched database URI from Vault")
        return uri

    def close(self) -> None:
        self.session.close()
