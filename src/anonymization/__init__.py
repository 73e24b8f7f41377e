"""
Anonymization of customer records for the mirror.

Provides deterministic pseudonymization of personal fields.
"""

from anonymization.anonymizer import anonymize_customer, anonymize_value
from anonymization.transformers import (
    CUSTOMER_PERSONAL_FIELDS,
    EmailPseudonymTransformer,
    PseudonymTransformer,
    TransformationPipeline,
    Transformer,
    create_customer_pipeline,
)

__all__ = [
    "anonymize_customer",
    "anonymize_value",
    "Transformer",
    "PseudonymTransformer",
    "EmailPseudonymTransformer",
    "TransformationPipeline",
    "CUSTOMER_PERSONAL_FIELDS",
    "create_customer_pipeline",
]
