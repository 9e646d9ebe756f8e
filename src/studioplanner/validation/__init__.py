"""Validation module for placement constraints."""

from studioplanner.validation.validator import (
    ConstraintCheckResult,
    ConstraintValidator,
    ConstraintViolation,
    ValidationIssue,
    ValidationReport,
)

__all__ = [
    "ConstraintCheckResult",
    "ConstraintValidator",
    "ConstraintViolation",
    "ValidationIssue",
    "ValidationReport",
]
