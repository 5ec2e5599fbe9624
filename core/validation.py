"""
Field-level validation for raw JSON payloads.

Rules are declarative and every rule is checked, so a response can list all
problems at once instead of stopping at the first.
"""

import math
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any


@dataclass(frozen=True)
class ValidationRule:
    """One field's constraints.

    type is "string" or "number". Bounds apply to numbers;
    min is exclusive when exclusive_min is set.
    """

    field: str
    type: str
    required: bool = False
    min: float | None = None
    max: float | None = None
    exclusive_min: bool = False
    max_length: int | None = None


@dataclass
class ValidationResult:
    """Outcome of validating a payload against a rule set."""

    errors: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


def is_number(value: Any) -> bool:
    """True for finite ints, floats and Decimals. Booleans are not numbers."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return math.isfinite(value)
    if isinstance(value, Decimal):
        return value.is_finite()
    return False


def _format_bound(bound: float) -> str:
    return str(int(bound)) if float(bound).is_integer() else str(bound)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _check_rule(rule: ValidationRule, value: Any) -> str | None:
    if rule.type == "string":
        if not isinstance(value, str):
            return f"{rule.field} must be a string"
        if rule.max_length is not None and len(value) > rule.max_length:
            return f"{rule.field} must be at most {rule.max_length} characters"
        return None

    if rule.type == "number":
        if not is_number(value):
            return f"{rule.field} must be a number"
        if rule.min is not None:
            if rule.exclusive_min and value <= rule.min:
                return f"{rule.field} must be greater than {_format_bound(rule.min)}"
            if not rule.exclusive_min and value < rule.min:
                return f"{rule.field} must be at least {_format_bound(rule.min)}"
        if rule.max is not None and value > rule.max:
            return f"{rule.field} must be at most {_format_bound(rule.max)}"
        return None

    raise ValueError(f"Unknown validation type '{rule.type}' for {rule.field}")


def validate_input(data: dict[str, Any], rules: list[ValidationRule]) -> ValidationResult:
    """Check every rule against data and collect every violation."""
    result = ValidationResult()

    for rule in rules:
        value = data.get(rule.field)

        if _is_blank(value):
            if rule.required:
                result.errors.append(f"{rule.field} is required")
            continue

        error = _check_rule(rule, value)
        if error:
            result.errors.append(error)

    return result
