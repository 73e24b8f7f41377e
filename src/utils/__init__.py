"""
Utility modules for the anonymized mirror

Provides:
- db: owned MongoDB connection handle
- retry: exponential backoff and transient-error classification
- vault_client: HashiCorp Vault integration for the database URI
- metrics: Prometheus metrics publishing
"""

__version__ = "1.0.0"
__all__ = ["db", "retry", "vault_client", "metrics"]
