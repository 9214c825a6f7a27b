"""Staleness and coverage analyzers."""

from .coverage import CoverageAggregator, CoverageResult
from .staleness import DocStateAnalyzer, DocumentState, StalenessEstimator, doc_state_payload

__all__ = [
    "CoverageAggregator",
    "CoverageResult",
    "DocStateAnalyzer",
    "DocumentState",
    "StalenessEstimator",
    "doc_state_payload",
]
