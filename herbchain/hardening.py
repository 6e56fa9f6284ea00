"""
HerbChain Validation and Hardening Module

Input validation and invariant enforcement for the ledger. It addresses:

1. Input validation with sanitization (identifiers, free text, quantities)
2. Quality snapshot bounds
3. Store invariant enforcement

Security Model:
    - All caller inputs are untrusted until validated
    - Quantities are Decimals, finite and bounded
    - Store invariants raise instead of silently clamping
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, List, Optional

from herbchain.core import to_decimal


# =============================================================================
# VALIDATION ERROR TYPES
# =============================================================================

class ValidationError(Exception):
    """Base exception for validation failures."""

    def __init__(self, field: str, message: str, value: Any = None):
        self.field = field
        self.message = message
        self.value = value
        super().__init__(f"{field}: {message}")


class ValidationErrors(Exception):
    """Collection of validation errors."""

    def __init__(self, errors: List[ValidationError]):
        self.errors = errors
        messages = "; ".join(f"{e.field}: {e.message}" for e in errors)
        super().__init__(f"Validation failed: {messages}")


class InvariantViolation(Exception):
    """Ledger store invariant violated."""
    pass


# =============================================================================
# VALIDATION RESULT
# =============================================================================

@dataclass
class ValidationResult:
    """Result of a validation operation."""
    is_valid: bool
    errors: List[ValidationError] = field(default_factory=list)
    sanitized_value: Any = None

    def raise_if_invalid(self) -> None:
        """Raise ValidationErrors if validation failed."""
        if not self.is_valid:
            raise ValidationErrors(self.errors)

    @property
    def message(self) -> str:
        return "; ".join(f"{e.field}: {e.message}" for e in self.errors)

    @classmethod
    def success(cls, sanitized_value: Any = None) -> 'ValidationResult':
        return cls(is_valid=True, sanitized_value=sanitized_value)

    @classmethod
    def failure(cls, errors: List[ValidationError]) -> 'ValidationResult':
        return cls(is_valid=False, errors=errors)


# =============================================================================
# INPUT VALIDATORS
# =============================================================================

class Validators:
    """Collection of input validators."""

    # Patterns
    IDENTIFIER_PATTERN = re.compile(r'^[A-Za-z0-9][A-Za-z0-9._:-]{0,127}$')

    # Limits
    MAX_STRING_LENGTH = 4096
    MAX_QUANTITY = Decimal("1000000000")
    MIN_SCORE = 0
    MAX_SCORE = 100

    @classmethod
    def validate_string(
        cls,
        value: Any,
        field_name: str,
        min_length: int = 1,
        max_length: Optional[int] = None,
        pattern: Optional[re.Pattern] = None,
    ) -> ValidationResult:
        """Validate a string value."""
        max_length = max_length or cls.MAX_STRING_LENGTH
        errors = []

        if not isinstance(value, str):
            errors.append(ValidationError(field_name, f"Expected string, got {type(value).__name__}", value))
            return ValidationResult.failure(errors)

        # Sanitize: strip whitespace and null bytes
        sanitized = value.strip().replace('\x00', '')

        if len(sanitized) < min_length:
            errors.append(ValidationError(field_name, f"Too short (min {min_length} chars)", value))

        if len(sanitized) > max_length:
            errors.append(ValidationError(field_name, f"Too long (max {max_length} chars)", value))
            sanitized = sanitized[:max_length]

        if pattern and not pattern.match(sanitized):
            errors.append(ValidationError(field_name, "Does not match required pattern", value))

        if errors:
            return ValidationResult.failure(errors)
        return ValidationResult.success(sanitized)

    @classmethod
    def validate_identifier(cls, value: Any, field_name: str) -> ValidationResult:
        """Validate an actor, item, batch or unit identifier."""
        return cls.validate_string(
            value, field_name,
            min_length=1, max_length=128,
            pattern=cls.IDENTIFIER_PATTERN,
        )

    @classmethod
    def validate_text(cls, value: Any, field_name: str, allow_empty: bool = False) -> ValidationResult:
        """Validate free text such as herb names, units and locations."""
        return cls.validate_string(value, field_name, min_length=0 if allow_empty else 1)

    @classmethod
    def validate_quantity(
        cls,
        value: Any,
        field_name: str = "quantity",
        allow_zero: bool = False,
        max_value: Optional[Decimal] = None,
    ) -> ValidationResult:
        """Validate a physical quantity (weight or unit count)."""
        max_value = max_value if max_value is not None else cls.MAX_QUANTITY
        try:
            amount = to_decimal(value, field_name)
        except ValueError as e:
            return ValidationResult.failure([ValidationError(field_name, str(e).split(": ", 1)[-1], value)])

        if amount < 0 or (amount == 0 and not allow_zero):
            bound = "non-negative" if allow_zero else "positive"
            return ValidationResult.failure([ValidationError(field_name, f"Must be {bound}", value)])

        if amount > max_value:
            return ValidationResult.failure([ValidationError(field_name, f"Above maximum ({max_value})", value)])

        return ValidationResult.success(amount)

    @classmethod
    def validate_score(cls, value: Any, field_name: str = "quality.score") -> ValidationResult:
        """Validate a quality score (integer 0-100)."""
        if isinstance(value, bool) or not isinstance(value, int):
            return ValidationResult.failure([
                ValidationError(field_name, f"Expected integer, got {type(value).__name__}", value)
            ])
        if not cls.MIN_SCORE <= value <= cls.MAX_SCORE:
            return ValidationResult.failure([
                ValidationError(field_name, f"Must be between {cls.MIN_SCORE} and {cls.MAX_SCORE}", value)
            ])
        return ValidationResult.success(value)


def collect(*results: ValidationResult) -> ValidationResult:
    """Merge several validation results; sanitized values come back as a list."""
    errors: List[ValidationError] = []
    values: List[Any] = []
    for r in results:
        errors.extend(r.errors)
        values.append(r.sanitized_value)
    if errors:
        return ValidationResult.failure(errors)
    return ValidationResult.success(values)
