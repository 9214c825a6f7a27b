"""Accuracy validation for the documentation corpus."""

from .accuracy import (
    AccuracyValidator,
    CodeExampleValidator,
    PointerTargetValidator,
    ProsePathValidator,
    StaleValidationValidator,
    UnlinkedDocumentValidator,
    ValidationReport,
)
from .base import ValidationContext, ValidationIssue, Validator

__all__ = [
    "AccuracyValidator",
    "CodeExampleValidator",
    "PointerTargetValidator",
    "ProsePathValidator",
    "StaleValidationValidator",
    "UnlinkedDocumentValidator",
    "ValidationContext",
    "ValidationIssue",
    "ValidationReport",
    "Validator",
]
