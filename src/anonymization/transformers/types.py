"""
Field-path transformation pipeline.

Applies registered transformers to the fields of a (possibly nested)
document. Nested fields are addressed by dotted paths such as
``address.postcode``.
"""

import logging
import re
from re import Pattern
from typing import Any

from .base import Transformer

logger = logging.getLogger(__name__)


class TransformationPipeline:
    """
    Chain transformers for document fields whose dotted path matches a pattern.

    Patterns must match the whole path, so ``email`` does not also
    catch ``emailVerified``.
    """

    def __init__(self):
        self.field_transformers: dict[str, list[Transformer]] = {}
        self.compiled_patterns: dict[str, Pattern] = {}

    def add_transformer(self, field_pattern: str, transformer: Transformer) -> None:
        """
        Add transformer for field paths matching pattern.

        Args:
            field_pattern: Regex matched against the full dotted field path
            transformer: Transformer to apply
        """
        self.field_transformers.setdefault(field_pattern, []).append(transformer)

        self.compiled_patterns[field_pattern] = re.compile(field_pattern)

        logger.debug(f"Added {transformer.get_type()} for pattern '{field_pattern}'")

    def transform_value(self, path: str, value: Any, context: dict[str, Any]) -> Any:
        for pattern_str, transformers in self.field_transformers.items():
            if self.compiled_patterns[pattern_str].fullmatch(path):
                for transformer in transformers:
                    value = transformer.transform(value, {**context, "field_name": path})
        return value

    def transform_document(self, document: dict[str, Any]) -> dict[str, Any]:
        """
        Transform all matching fields of a document.

        The input is never mutated; nested dictionaries are copied.

        Args:
            document: Document to transform

        Returns:
            New document with transformed fields
        """
        context = {"document_id": document.get("_id")}
        return self._transform_mapping(document, "", context)

    def _transform_mapping(
        self,
        mapping: dict[str, Any],
        prefix: str,
        context: dict[str, Any],
    ) -> dict[str, Any]:
        transformed = {}
        for key, value in mapping.items():
            path = f"{prefix}{key}"
            if isinstance(value, dict):
                transformed[key] = self._transform_mapping(value, f"{path}.", context)
            else:
                transformed[key] = self.transform_value(path, value, context)
        return transformed

    def get_transformer_count(self) -> int:
        """Get total number of registered transformers."""
        return sum(len(transformers) for transformers in self.field_transformers.values())
