"""Field validation for resources before they are sent.

Each resource type declares a constraint table::

    CONSTRAINTS = {
        "client_id": [Required(), LengthRange(min=5, max=20)],
        "password": [RequiredWithout("id"), LengthRange(max=16)],
    }

``validate`` walks the whole table and returns every violation, so callers
get all problems with an input at once instead of fixing them one by one.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from .exceptions import ValidationError


@dataclass(frozen=True)
class Required:
    """Field must be non-empty."""


@dataclass(frozen=True)
class RequiredWithout:
    """Field must be non-empty when ``other`` is empty."""
    other: str


@dataclass(frozen=True)
class RequiredWith:
    """Field must be non-empty when ``other`` is non-empty."""
    other: str


@dataclass(frozen=True)
class LengthRange:
    """Length bounds for strings and collections (inclusive)."""
    min: Optional[int] = None
    max: Optional[int] = None


@dataclass(frozen=True)
class NumericRange:
    """Value bounds for numbers (inclusive)."""
    min: Optional[float] = None
    max: Optional[float] = None


Constraint = Union[Required, RequiredWithout, RequiredWith, LengthRange, NumericRange]


@dataclass(frozen=True)
class Violation:
    field: str
    rule: str
    message: str


def is_empty(value: Any) -> bool:
    """Return True for None, empty strings and empty collections."""
    if value is None:
        return True
    if isinstance(value, (str, bytes, list, tuple, set, dict)):
        return len(value) == 0
    return False


def _check(resource: Any, field: str, constraint: Constraint) -> Optional[Violation]:
    value = getattr(resource, field, None)

    if isinstance(constraint, Required):
        if is_empty(value):
            return Violation(field, "required", f"{field} is required")
        return None

    if isinstance(constraint, RequiredWithout):
        other = getattr(resource, constraint.other, None)
        if is_empty(value) and is_empty(other):
            return Violation(
                field,
                "required_without",
                f"{field} is required when {constraint.other} is not set",
            )
        return None

    if isinstance(constraint, RequiredWith):
        other = getattr(resource, constraint.other, None)
        if is_empty(value) and not is_empty(other):
            return Violation(
                field,
                "required_with",
                f"{field} is required when {constraint.other} is set",
            )
        return None

    if isinstance(constraint, LengthRange):
        # Emptiness is the business of Required*
        if is_empty(value):
            return None
        length = len(value)
        if constraint.min is not None and length < constraint.min:
            return Violation(field, "min", f"{field} must have at least {constraint.min} characters or items")
        if constraint.max is not None and length > constraint.max:
            return Violation(field, "max", f"{field} must not exceed {constraint.max} characters or items")
        return None

    if isinstance(constraint, NumericRange):
        if value is None:
            return None
        if constraint.min is not None and value < constraint.min:
            return Violation(field, "min", f"{field} must be >= {constraint.min}")
        if constraint.max is not None and value > constraint.max:
            return Violation(field, "max", f"{field} must be <= {constraint.max}")
        return None

    raise TypeError(f"Unknown constraint for {field}: {constraint!r}")


def validate(
    resource: Any,
    constraints: Optional[Mapping[str, Sequence[Constraint]]] = None,
) -> List[Violation]:
    """Evaluate a constraint table against a resource.

    Args:
        resource: Object whose attributes are checked
        constraints: Field -> constraints table (defaults to ``type(resource).CONSTRAINTS``)

    Returns:
        All violations found; empty list when the resource is valid
    """
    if constraints is None:
        constraints = getattr(type(resource), "CONSTRAINTS", {})

    violations: List[Violation] = []
    for field, rules in constraints.items():
        for rule in rules:
            violation = _check(resource, field, rule)
            if violation is not None:
                violations.append(violation)
    return violations


def ensure_valid(
    resource: Any,
    constraints: Optional[Dict[str, Sequence[Constraint]]] = None,
) -> None:
    """Raise ValidationError when ``resource`` violates its constraint table."""
    violations = validate(resource, constraints)
    if violations:
        raise ValidationError(violations)
