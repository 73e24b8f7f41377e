"""
Customer record anonymizer.

``anonymize_customer`` is the single entry point the sync engine uses:
pure, deterministic and total for any customer document.
"""

from typing import Any

from .transformers import create_customer_pipeline, pseudonymize

_customer_pipeline = create_customer_pipeline()


def anonymize_value(value: str) -> str:
    """Pseudonymize a single string (8 characters from [A-Za-z0-9])."""
    return pseudonymize(value)


def anonymize_customer(customer: dict[str, Any]) -> dict[str, Any]:
    """
    Return the scrubbed copy of a customer document.

    ``_id`` is preserved, which is what makes sink writes idempotent by
    identity. The input document is left untouched.
    """
    return _customer_pipeline.transform_document(customer)
