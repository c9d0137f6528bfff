"""
CNPJ (Brazilian company tax ID) masking and validation.

A CNPJ has 14 digits and is displayed as ``NN.NNN.NNN/NNNN-NN``. The
separators are presentation only: the backend always receives and returns
the bare digits.
"""

import re

from .exceptions import ValidationException

CNPJ_LENGTH = 14
CNPJ_MASKED_LENGTH = 18

# Digit offsets after which a separator is inserted
CNPJ_SEPARATORS = ((2, "."), (5, "."), (8, "/"), (12, "-"))

NON_DIGIT_PATTERN = re.compile(r"[^0-9]")


def strip_non_digits(value: str) -> str:
    """
    Remove every character that is not an ASCII digit.

    Args:
        value: Raw or masked input

    Returns:
        Digit-only string
    """
    return NON_DIGIT_PATTERN.sub("", value or "")


def format_cnpj(value: str) -> str:
    """
    Mask a CNPJ progressively, as it is being typed.

    Extra digits beyond 14 are dropped. A separator is only emitted once
    at least one digit follows its offset, so ``"12"`` stays ``"12"`` and
    ``"123"`` becomes ``"12.3"``.

    Args:
        value: Raw input, may already contain separators

    Returns:
        Masked CNPJ, at most 18 characters
    """
    digits = strip_non_digits(value)[:CNPJ_LENGTH]

    parts = []
    start = 0
    for offset, separator in CNPJ_SEPARATORS:
        if len(digits) <= offset:
            break
        parts.append(digits[start:offset])
        parts.append(separator)
        start = offset
    parts.append(digits[start:])

    return "".join(parts)


def validate_cnpj(value: str) -> str:
    """
    Validate a CNPJ for submission.

    Args:
        value: Raw or masked input

    Returns:
        The 14 digits to send to the backend

    Raises:
        ValidationException: If the input does not hold exactly 14 digits
    """
    digits = strip_non_digits(value)
    if len(digits) != CNPJ_LENGTH:
        raise ValidationException(
            field_name="tax_id",
            value=value,
            reason=f"Tax ID must have {CNPJ_LENGTH} digits",
        )
    return digits
