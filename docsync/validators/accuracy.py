"""Accuracy checks for documentation against the live source tree."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..analyzers.coverage import round_percentage
from ..analyzers.staleness import StalenessEstimator
from ..logging import get_logger
from ..markdown import iter_fenced_blocks, prose_lines
from ..stores.reports import format_timestamp
from .base import ERROR, INFO, WARNING, ValidationContext, ValidationIssue, Validator

_CONTEXT_CHARS = 100

logger = get_logger("validators.accuracy")


class PointerTargetValidator:
    """Every recorded pointer must still point at an existing file."""

    name = "pointer_targets"

    def validate(self, context: ValidationContext) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        for pointer in context.pointer_map.pointers():
            if (context.root / pointer.source).is_file():
                continue
            issues.append(
                ValidationIssue(
                    doc_file=context.doc_path(pointer.document),
                    type="broken_code_link",
                    severity=ERROR,
                    message=f"CODE_POINTERS references non-existent file: {pointer.source}",
                    code_file=pointer.source,
                )
            )
        return issues


def prose_path_patterns(extensions: Sequence[str]) -> List[re.Pattern[str]]:
    suffixes = sorted({ext.lstrip(".").lower() for ext in extensions if ext}, key=len, reverse=True)
    group = "|".join(re.escape(suffix) for suffix in suffixes) or r"\w+"
    return [
        re.compile(rf"`([^`\s]+\.(?:{group}))(?::\d+)?`"),
        re.compile(rf"\(([^()\s]+\.(?:{group}))\)"),
        re.compile(rf"[\"']([^\"'\s]+\.(?:{group}))[\"']"),
    ]


class ProsePathValidator:
    """Literal file paths written in prose must exist.

    Paths are resolved against the repository root first and then against
    the documentation directory. Fenced code is not prose and is skipped.
    """

    name = "prose_paths"

    def validate(self, context: ValidationContext) -> List[ValidationIssue]:
        patterns = prose_path_patterns(context.extensions)
        docs_dir = context.root / context.docs_prefix if context.docs_prefix else context.root
        issues: List[ValidationIssue] = []
        for document in context.documents:
            seen: set[str] = set()
            for number, line in prose_lines(document.text):
                for pattern in patterns:
                    for match in pattern.finditer(line):
                        value = match.group(1)
                        if "://" in value or value in seen:
                            continue
                        seen.add(value)
                        relative = value[2:] if value.startswith("./") else value.lstrip("/")
                        if (context.root / relative).exists() or (docs_dir / relative).exists():
                            continue
                        issues.append(
                            ValidationIssue(
                                doc_file=document.path,
                                type="broken_reference",
                                severity=ERROR,
                                message=f"Referenced file does not exist: {value}",
                                line=number,
                            )
                        )
        return issues


class CodeExampleValidator:
    """Shallow checks on fenced examples in recognised languages."""

    name = "code_examples"

    def validate(self, context: ValidationContext) -> List[ValidationIssue]:
        languages = {language.lower() for language in context.settings.example_languages}
        patterns = context.settings.deprecated_patterns
        issues: List[ValidationIssue] = []
        for document in context.documents:
            for block in iter_fenced_blocks(document.text):
                if not block.closed or block.language not in languages:
                    continue
                body = block.body.strip()
                snippet = body[:_CONTEXT_CHARS]
                if body.count("{") != body.count("}"):
                    issues.append(
                        ValidationIssue(
                            doc_file=document.path,
                            type="code_example_error",
                            severity=WARNING,
                            message="Code example has unmatched braces",
                            line=block.start_line,
                            context=snippet,
                        )
                    )
                for pattern, suggestion in patterns.items():
                    if pattern not in body:
                        continue
                    shown = pattern + ")" if pattern.endswith("(") else pattern
                    issues.append(
                        ValidationIssue(
                            doc_file=document.path,
                            type="deprecated_api",
                            severity=WARNING,
                            message=f"Code example may use deprecated API: {shown}",
                            line=block.start_line,
                            context=snippet,
                            suggestion=suggestion,
                        )
                    )
        return issues


class StaleValidationValidator:
    """Pointers whose target changed after their last validation."""

    name = "stale_validation"

    def __init__(self, estimator: StalenessEstimator | None = None) -> None:
        self._estimator = estimator

    def validate(self, context: ValidationContext) -> List[ValidationIssue]:
        estimator = self._estimator or StalenessEstimator(
            stale_error_days=context.settings.stale_error_days
        )
        issues: List[ValidationIssue] = []
        flagged = estimator.stale_validations(context.pointer_map.pointers(), context.target_times)
        for flag in flagged:
            issues.append(
                ValidationIssue(
                    doc_file=context.doc_path(flag.pointer.document),
                    type="stale_documentation",
                    severity=flag.severity,
                    message=f"Code changed {round(flag.gap_days)} days after last validation",
                    code_file=flag.pointer.source,
                    last_validated=flag.last_validated,
                    code_modified=flag.code_modified,
                    requires_review=True,
                )
            )
        return issues


class UnlinkedDocumentValidator:
    name = "unlinked_documents"

    def validate(self, context: ValidationContext) -> List[ValidationIssue]:
        return [
            ValidationIssue(
                doc_file=document.path,
                type="unlinked_document",
                severity=INFO,
                message="Document has no pointers to source files",
            )
            for document in context.documents
            if not context.pointer_map.sources_for(document.name)
        ]


def default_validators() -> List[Validator]:
    return [
        PointerTargetValidator(),
        ProsePathValidator(),
        CodeExampleValidator(),
        StaleValidationValidator(),
        UnlinkedDocumentValidator(),
    ]


@dataclass
class ValidationReport:
    """Aggregated findings.

    Each corpus document is one check; it passes unless some error-severity
    finding names it.
    """

    total_checks: int
    passed: int
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)
    info: List[ValidationIssue] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return self.total_checks - self.passed

    @property
    def accuracy_score(self) -> float:
        if self.total_checks == 0:
            return 1.0
        return round_percentage(self.passed, self.total_checks)

    def to_dict(self, *, generated: datetime) -> Dict[str, Any]:
        return {
            "generated": format_timestamp(generated),
            "validation_results": {
                "total_checks": self.total_checks,
                "passed": self.passed,
                "failed": self.failed,
                "errors": len(self.errors),
                "warnings": len(self.warnings),
                "accuracy_score": self.accuracy_score,
            },
            "errors": [issue.to_dict() for issue in self.errors],
            "warnings": [issue.to_dict() for issue in self.warnings],
            "info": [issue.to_dict() for issue in self.info],
        }


class AccuracyValidator:
    """Runs every check and folds the findings into one report."""

    def __init__(self, validators: Optional[Iterable[Validator]] = None) -> None:
        self.validators: List[Validator] = list(validators) if validators is not None else default_validators()

    def run(self, context: ValidationContext) -> ValidationReport:
        findings: List[ValidationIssue] = []
        for validator in self.validators:
            issues = validator.validate(context)
            logger.debug("%s produced %d findings", validator.name, len(issues))
            findings.extend(issues)

        errors = [issue for issue in findings if issue.severity == ERROR]
        failing = {issue.doc_file for issue in errors}
        passed = sum(1 for document in context.documents if document.path not in failing)
        return ValidationReport(
            total_checks=len(context.documents),
            passed=passed,
            errors=errors,
            warnings=[issue for issue in findings if issue.severity == WARNING],
            info=[issue for issue in findings if issue.severity == INFO],
        )


__all__ = [
    "AccuracyValidator",
    "CodeExampleValidator",
    "PointerTargetValidator",
    "ProsePathValidator",
    "StaleValidationValidator",
    "UnlinkedDocumentValidator",
    "ValidationReport",
    "default_validators",
    "prose_path_patterns",
]
