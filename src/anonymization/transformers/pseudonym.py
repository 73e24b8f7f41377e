"""
Deterministic pseudonym transformers.

Replaces personal string values with an 8-character alphanumeric
pseudonym derived from a 32-bit rolling hash. The same input always
yields the same pseudonym, so joins and grouping on anonymized fields
keep working in the mirror.

This is pseudonymization, not encryption: the hash space is small,
collisions between distinct inputs are expected, and the mapping must
never be treated as a security boundary.
"""

import logging
import string
from typing import Any

from .base import TRANSFORMATION_TIME, TRANSFORMATIONS_APPLIED, Transformer

logger = logging.getLogger(__name__)

PSEUDONYM_LENGTH = 8
WINDOW_SIZE = 4

# 0-25 -> A-Z, 26-51 -> a-z, 52-61 -> 0-9
ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits

_INT32_MASK = 0xFFFFFFFF
_INT32_SIGN = 0x80000000


def rolling_hash(text: str) -> int:
    """
    Signed 32-bit rolling hash: ``h = h * 31 + ord(ch)`` for every character.

    Examples:
        >>> rolling_hash("")
        0
        >>> rolling_hash("ab")
        3105
    """
    h = 0
    for ch in text:
        h = (h * 31 + ord(ch)) & _INT32_MASK
    return h - (1 << 32) if h & _INT32_SIGN else h


def pseudonymize(text: str) -> str:
    """
    Map a string to its 8-character pseudonym.

    The decimal digits of the hash are repeated until there are enough
    of them for eight 4-digit windows; each window is read as hexadecimal
    and reduced modulo 62 into ALPHABET.

    Examples:
        >>> pseudonymize("a")
        '55555555'
        >>> pseudonymize("ab")
        'ZZZZZZZZ'
    """
    digits = str(abs(rolling_hash(text)))
    needed = PSEUDONYM_LENGTH * WINDOW_SIZE
    stream = (digits * (needed // len(digits) + 1))[:needed]

    return "".join(
        ALPHABET[int(stream[i:i + WINDOW_SIZE], 16) % len(ALPHABET)]
        for i in range(0, needed, WINDOW_SIZE)
    )


class PseudonymTransformer(Transformer):
    """
    Replace a string value with its pseudonym.

    Non-string values (None, missing optional fields) pass through.
    """

    def transform(self, value: Any, context: dict[str, Any]) -> Any:
        with TRANSFORMATION_TIME.labels(transformer_type=self.get_type()).time():
            if not isinstance(value, str):
                return value

            TRANSFORMATIONS_APPLIED.labels(
                transformer_type=self.get_type(),
                field_name=context.get("field_name", "unknown"),
            ).inc()
            return pseudonymize(value)


class EmailPseudonymTransformer(PseudonymTransformer):
    """
    Pseudonymize the local part of an email address.

    Everything from the first ``@`` on is kept verbatim so the mirror
    still reflects the domain distribution. A value without ``@`` is
    pseudonymized as a whole.

    Examples:
        jane.doe@example.com -> <8 chars>@example.com
    """

    def transform(self, value: Any, context: dict[str, Any]) -> Any:
        if not isinstance(value, str) or "@" not in value:
            return super().transform(value, context)

        local, _, domain = value.partition("@")
        return f"{super().transform(local, context)}@{domain}"
