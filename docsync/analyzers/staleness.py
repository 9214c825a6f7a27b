"""Staleness estimation and the per-document state report."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from ..corpus import COMPLETE_THRESHOLD
from ..logging import get_logger
from ..models import DocumentFile, Pointer, RiskTier
from ..pointers.resolver import PointerMap
from ..stores.reports import format_timestamp

DOC_STATE_VERSION = "2.0.0"

PRIORITY_ORDER = {"critical": 0, "high": 1, "medium": 2, "low": 3}

logger = get_logger("analyzers.staleness")


def days_between(earlier: datetime, later: datetime) -> int:
    """Whole days between two instants, rounded up."""
    seconds = abs((later - earlier).total_seconds())
    return math.ceil(seconds / 86400)


@dataclass(frozen=True)
class StaleValidation:
    """A pointer whose target changed after it was last validated."""

    pointer: Pointer
    last_validated: datetime
    code_modified: datetime
    gap_days: float
    severity: str


class StalenessEstimator:
    """Turns document and dependency timestamps into risk tiers."""

    def __init__(self, *, stale_error_days: int = 7) -> None:
        self.stale_error_days = stale_error_days

    def estimate(self, document_updated: datetime, change_times: Iterable[Optional[datetime]]) -> RiskTier:
        latest = max((stamp for stamp in change_times if stamp is not None), default=None)
        if latest is None or document_updated >= latest:
            return RiskTier.NONE
        gap = days_between(document_updated, latest)
        if gap > 30:
            return RiskTier.CRITICAL
        if gap > 7:
            return RiskTier.HIGH
        if gap > 3:
            return RiskTier.MEDIUM
        return RiskTier.LOW

    def stale_validations(
        self, pointers: Iterable[Pointer], target_times: Mapping[str, datetime]
    ) -> List[StaleValidation]:
        """Flag pointers whose ``last_validated`` predates their target's last change."""
        flagged: List[StaleValidation] = []
        for pointer in pointers:
            validated = pointer.last_validated
            if validated is None:
                continue
            modified = target_times.get(pointer.source)
            if modified is None or modified <= validated:
                continue
            gap = (modified - validated).total_seconds() / 86400
            flagged.append(
                StaleValidation(
                    pointer=pointer,
                    last_validated=validated,
                    code_modified=modified,
                    gap_days=gap,
                    severity="error" if gap > self.stale_error_days else "warning",
                )
            )
        return flagged


@dataclass
class DocumentState:
    document: DocumentFile
    linked_files: List[str]
    last_code_change: Optional[datetime]
    risk: RiskTier
    stale_validations: List[StaleValidation] = field(default_factory=list)
    previous_status: Optional[str] = None

    @property
    def status(self) -> str:
        return "stale" if self.risk.is_stale else "current"

    @property
    def validation_needed(self) -> bool:
        return self.risk.is_stale or bool(self.stale_validations)

    @property
    def newly_stale(self) -> bool:
        return self.status == "stale" and self.previous_status == "current"

    def to_dict(self) -> Dict[str, Any]:
        document = self.document
        return {
            "status": self.status,
            "completeness": document.completeness,
            "lastUpdated": format_timestamp(document.last_modified),
            "linkedFiles": list(self.linked_files),
            "lastCodeChange": format_timestamp(self.last_code_change) if self.last_code_change else None,
            "validationNeeded": self.validation_needed,
            "sectionCount": document.section_count,
            "wordCount": document.word_count,
            "codeBlockCount": document.code_block_count,
            "staleRisk": self.risk.value,
            "previousStatus": self.previous_status,
            "headings": [
                {"text": heading.text, "level": heading.level, "line": heading.line}
                for heading in document.headings
            ],
        }


class DocStateAnalyzer:
    """Combines the corpus, pointer map and change times into document states.

    ``change_times`` holds the latest in-window change per source path and
    drives the risk tier; ``target_times`` holds each source's last
    modification and is compared with ``lastValidated`` stamps.
    """

    def __init__(self, estimator: StalenessEstimator | None = None) -> None:
        self.estimator = estimator or StalenessEstimator()

    def analyze(
        self,
        documents: Sequence[DocumentFile],
        pointer_map: PointerMap,
        change_times: Mapping[str, datetime],
        *,
        target_times: Mapping[str, datetime] | None = None,
        prior: Mapping[str, Any] | None = None,
    ) -> List[DocumentState]:
        prior_files = _prior_files(prior)
        states: List[DocumentState] = []
        for document in documents:
            linked = pointer_map.sources_for(document.name)
            linked_changes = [change_times[path] for path in linked if path in change_times]
            last_change = max(linked_changes, default=None)
            risk = self.estimator.estimate(document.last_modified, linked_changes)
            stale = self.estimator.stale_validations(
                pointer_map.for_document(document.name), target_times or change_times
            )
            previous = prior_files.get(document.path, {}).get("status")
            states.append(
                DocumentState(
                    document=document,
                    linked_files=linked,
                    last_code_change=last_change,
                    risk=risk,
                    stale_validations=stale,
                    previous_status=previous if isinstance(previous, str) else None,
                )
            )
            if risk.is_stale:
                logger.debug("%s is %s risk (last code change %s)", document.path, risk.value, last_change)
        return states


def build_priorities(states: Sequence[DocumentState]) -> List[Dict[str, str]]:
    priorities: List[Dict[str, str]] = []
    for state in states:
        document = state.document
        if document.completeness < COMPLETE_THRESHOLD:
            priorities.append(
                {
                    "file": document.path,
                    "action": "enhance",
                    "reason": f"Low completeness score ({round(document.completeness * 100)}%)",
                    "impact": "high" if document.completeness < 0.4 else "medium",
                }
            )
        if state.risk in (RiskTier.HIGH, RiskTier.CRITICAL):
            changed = format_timestamp(state.last_code_change) if state.last_code_change else "unknown"
            priorities.append(
                {
                    "file": document.path,
                    "action": "update",
                    "reason": f"Stale documentation (code changed {changed})",
                    "impact": state.risk.value,
                }
            )
        if state.stale_validations:
            sources = ", ".join(sorted({flag.pointer.source for flag in state.stale_validations}))
            priorities.append(
                {
                    "file": document.path,
                    "action": "review",
                    "reason": f"Linked code changed since last validation: {sources}",
                    "impact": "medium",
                }
            )
    priorities.sort(key=lambda item: PRIORITY_ORDER.get(item["impact"], len(PRIORITY_ORDER)))
    return priorities


def doc_state_payload(
    states: Sequence[DocumentState],
    *,
    generated: datetime,
    history_mode: str,
    accuracy_score: float = 1.0,
    coverage_percentage: float = 0.0,
) -> Dict[str, Any]:
    complete = sum(1 for state in states if state.document.completeness >= COMPLETE_THRESHOLD)
    return {
        "generated": format_timestamp(generated),
        "version": DOC_STATE_VERSION,
        "history_mode": history_mode,
        "files": {state.document.path: state.to_dict() for state in states},
        "metrics": {
            "total_docs": len(states),
            "complete_docs": complete,
            "incomplete_docs": len(states) - complete,
            "stale_docs": sum(1 for state in states if state.status == "stale"),
            "newly_stale_docs": sum(1 for state in states if state.newly_stale),
            "accuracy_score": accuracy_score,
            "coverage_percentage": coverage_percentage,
        },
        "priorities": build_priorities(states),
    }


def _prior_files(prior: Mapping[str, Any] | None) -> Dict[str, Dict[str, Any]]:
    if not prior:
        return {}
    files = prior.get("files")
    if not isinstance(files, dict):
        return {}
    return {path: entry for path, entry in files.items() if isinstance(entry, dict)}


__all__ = [
    "DOC_STATE_VERSION",
    "DocStateAnalyzer",
    "DocumentState",
    "StaleValidation",
    "StalenessEstimator",
    "build_priorities",
    "days_between",
    "doc_state_payload",
]
