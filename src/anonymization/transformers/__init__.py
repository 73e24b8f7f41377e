"""
Field transformers for anonymizing documents.

Supports:
- Deterministic 8-character pseudonyms for personal strings
- Email pseudonyms that keep the domain
- Dotted-path pipelines over nested documents
"""

from .base import Transformer
from .pseudonym import (
    EmailPseudonymTransformer,
    PseudonymTransformer,
    pseudonymize,
    rolling_hash,
)
from .rules import CUSTOMER_PERSONAL_FIELDS, create_customer_pipeline
from .types import TransformationPipeline

__all__ = [
    "Transformer",
    "PseudonymTransformer",
    "EmailPseudonymTransformer",
    "TransformationPipeline",
    "CUSTOMER_PERSONAL_FIELDS",
    "create_customer_pipeline",
    "pseudonymize",
    "rolling_hash",
]
