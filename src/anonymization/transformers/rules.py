"""
Pipeline factories for known record shapes.
"""

import logging
import re

from .pseudonym import EmailPseudonymTransformer, PseudonymTransformer
from .types import TransformationPipeline

logger = logging.getLogger(__name__)

# Personal fields of a customer record (dotted paths)
CUSTOMER_PSEUDONYM_FIELDS = (
    "firstName",
    "lastName",
    "address.line1",
    "address.line2",
    "address.postcode",
)
CUSTOMER_EMAIL_FIELD = "email"
CUSTOMER_PERSONAL_FIELDS = CUSTOMER_PSEUDONYM_FIELDS + (CUSTOMER_EMAIL_FIELD,)


def create_customer_pipeline() -> TransformationPipeline:
    """
    Create the customer anonymization pipeline.

    Names, address lines and postcode are replaced by pseudonyms; email
    keeps its domain. Identity, city, state, country and createdAt pass
    through unchanged.

    Returns:
        Configured TransformationPipeline
    """
    pipeline = TransformationPipeline()

    pseudonym = PseudonymTransformer()
    for field_path in CUSTOMER_PSEUDONYM_FIELDS:
        pipeline.add_transformer(re.escape(field_path), pseudonym)

    pipeline.add_transformer(re.escape(CUSTOMER_EMAIL_FIELD), EmailPseudonymTransformer())

    logger.debug(
        f"Created customer pipeline with {pipeline.get_transformer_count()} transformers"
    )

    return pipeline
