"""
Database connection string resolution for the CLI.

``DB_URI`` wins; otherwise the URI is fetched from HashiCorp Vault when
``VAULT_ADDR`` and ``VAULT_TOKEN`` are both set.
"""

import logging
import os

import requests

from utils.vault_client import VaultClient

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)


def resolve_database_uri() -> str:
    """
    Get the MongoDB connection string from the environment or Vault

    Returns:
        Connection string

    Raises:
        ConfigurationError: If neither source provides a URI
    """
    uri = os.getenv("DB_URI")
    if uri:
        return uri

    if not (os.getenv("VAULT_ADDR") and os.getenv("VAULT_TOKEN")):
        raise ConfigurationError("DB_URI is not defined in the environment variables")

    try:
        client = VaultClient()
        try:
            uri = client.get_database_uri()
        finally:
            client.close()
    except (ValueError, requests.RequestException) as e:
        logger.error(f"Failed to fetch database URI from Vault: {e}")
        raise ConfigurationError(f"Could not read database URI from Vault: {e}") from e

    logger.info("Using database URI from Vault")
    return uri
