"""
Base transformer class and common utilities.

Provides the abstract base class for all field transformers and shared
metrics for tracking anonymization operations.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

from prometheus_client import Counter, Histogram

from utils.metrics import get_or_create_metric

logger = logging.getLogger(__name__)


# Metrics
TRANSFORMATIONS_APPLIED = get_or_create_metric(
    lambda: Counter(
        "anonymization_transformations_applied_total",
        "Total field transformations applied",
        ["transformer_type", "field_name"],
    ),
    "anonymization_transformations_applied_total",
)

TRANSFORMATION_TIME = get_or_create_metric(
    lambda: Histogram(
        "anonymization_transformation_seconds",
        "Time to apply a field transformation",
        ["transformer_type"],
        buckets=[0.00001, 0.00005, 0.0001, 0.0005, 0.001, 0.005],
    ),
    "anonymization_transformation_seconds",
)


class Transformer(ABC):
    """Base class for field transformers."""

    @abstractmethod
    def transform(self, value: Any, context: dict[str, Any]) -> Any:
        """
        Transform a single field value.

        Args:
            value: Value to transform
            context: Transformation context (field_name, document_id)

        Returns:
            Transformed value
        """

    def get_type(self) -> str:
        """Get transformer type for metrics."""
        return self.__class__.__name__
