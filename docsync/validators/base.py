"""Core validation data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

from ..config import ValidationConfig
from ..models import DocumentFile
from ..pointers.resolver import PointerMap
from ..stores.reports import format_timestamp

ERROR = "error"
WARNING = "warning"
INFO = "info"


@dataclass
class ValidationIssue:
    """A single finding about one document.

    ``requires_review`` marks findings that need a directed human or model
    review instead of an automatic fix.
    """

    doc_file: str
    type: str
    severity: str
    message: str
    code_file: Optional[str] = None
    line: Optional[int] = None
    context: Optional[str] = None
    suggestion: Optional[str] = None
    auto_fixable: bool = False
    requires_review: bool = False
    last_validated: Optional[datetime] = None
    code_modified: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "docFile": self.doc_file,
            "type": self.type,
            "severity": self.severity,
            "message": self.message,
        }
        if self.code_file is not None:
            data["codeFile"] = self.code_file
        if self.line is not None:
            data["line"] = self.line
        if self.context is not None:
            data["context"] = self.context
        if self.suggestion is not None:
            data["suggestion"] = self.suggestion
        if self.last_validated is not None:
            data["lastValidated"] = format_timestamp(self.last_validated)
        if self.code_modified is not None:
            data["codeModified"] = format_timestamp(self.code_modified)
        data["autoFixable"] = self.auto_fixable
        if self.requires_review:
            data["requiresAIReview"] = True
        return data


@dataclass
class ValidationContext:
    """Everything a validator may inspect during one pass."""

    root: Path
    docs_prefix: str
    documents: Sequence[DocumentFile]
    pointer_map: PointerMap
    target_times: Mapping[str, datetime] = field(default_factory=dict)
    extensions: Sequence[str] = ()
    settings: ValidationConfig = field(default_factory=ValidationConfig)

    def doc_path(self, name: str) -> str:
        """Repository-relative path for a document known by its pointer-map name."""
        return f"{self.docs_prefix}/{name}" if self.docs_prefix else name


class Validator(Protocol):
    """Protocol implemented by accuracy checks."""

    name: str

    def validate(self, context: ValidationContext) -> List[ValidationIssue]:
        """Run the check and return any findings."""


__all__ = [
    "ERROR",
    "INFO",
    "ValidationContext",
    "ValidationIssue",
    "Validator",
    "WARNING",
]
