"""Stage orchestration shared by the CLI and the service."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from .analyzers.coverage import CoverageAggregator, CoverageResult
from .analyzers.staleness import DocStateAnalyzer, StalenessEstimator, doc_state_payload
from .config import DocSyncConfig, load_config
from .corpus import load_corpus
from .git.history import ChangeHistory, FileTimeChangeHistory, select_history
from .git.runner import CommandRunner, default_runner
from .git.tracker import ChangeHistoryTracker, latest_change_times, sort_by_impact
from .logging import get_logger
from .models import DocumentFile, FileChange, ImpactTier, SourceFile
from .pointers import ReferenceExtractor, SourceResolver, build_pointer_map
from .pointers.resolver import PointerMap
from .repo_scanner import SourceIndex, SourceScanner, has_extension
from .stores.reports import (
    CHANGES_FILE,
    COVERAGE_FILE,
    DOC_STATE_FILE,
    POINTERS_FILE,
    VALIDATION_FILE,
    ReportStore,
    format_timestamp,
    pointer_map_from_dict,
    pointer_map_to_dict,
)
from .validators import AccuracyValidator, ValidationContext, ValidationReport, Validator

STAGES = ("pointers", "changes", "coverage", "validate", "state")

HistoryFactory = Callable[[DocSyncConfig, Sequence[SourceFile]], ChangeHistory]


class UnknownDocumentError(LookupError):
    """Raised when a document is not present in the pointer map."""


@dataclass
class StageResult:
    """Outcome of one stage: the report payload, where it was written and a summary."""

    stage: str
    payload: Dict[str, Any]
    path: Optional[Path] = None
    summary: Dict[str, Any] = field(default_factory=dict)


@dataclass
class _Workspace:
    config: DocSyncConfig
    files: List[SourceFile]
    index: SourceIndex
    source_index: SourceIndex
    store: ReportStore

    def target_times(self, change_times: Dict[str, datetime]) -> Dict[str, datetime]:
        """Latest known modification per source: file mtime or in-window change, whichever is newer."""
        times = {file.path: file.last_modified for file in self.files}
        for path, stamp in change_times.items():
            if path not in times or stamp > times[path]:
                times[path] = stamp
        return times


class Orchestrator:
    """Runs the consistency stages against one repository at a time."""

    def __init__(
        self,
        scanner: SourceScanner | None = None,
        *,
        runner: CommandRunner | None = None,
        history_factory: HistoryFactory | None = None,
        validators: Optional[Iterable[Validator]] = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._runner = runner or default_runner
        self.scanner = scanner or SourceScanner(self._runner)
        self._history_factory = history_factory
        self._validators = list(validators) if validators is not None else None
        self._clock = clock or (lambda: datetime.now(UTC))
        self.logger = get_logger("orchestrator")

    # ------------------------------------------------------------------
    # Stages

    def run_pointers(self, path: str) -> StageResult:
        workspace = self._prepare(path)
        documents = load_corpus(workspace.config.docs_dir, root=workspace.config.root)
        pointer_map = self._build_pointer_map(workspace, documents, workspace.store.load_pointer_map())
        now = self._clock()
        written = workspace.store.save_pointer_map(
            pointer_map, generated=now, total_source_files=len(workspace.source_index)
        )
        payload = pointer_map_to_dict(
            pointer_map, generated=now, total_source_files=len(workspace.source_index)
        )
        return StageResult("pointers", payload, written, self._pointer_summary(payload, documents))

    def run_changes(self, path: str, *, window_days: int | None = None) -> StageResult:
        workspace = self._prepare(path)
        pointer_map = workspace.store.load_pointer_map(required=True)
        result = self._changes_stage(workspace, pointer_map, window_days)
        result.path = workspace.store.write(CHANGES_FILE, result.payload)
        return result

    def run_state(self, path: str, *, window_days: int | None = None) -> StageResult:
        workspace = self._prepare(path)
        documents = load_corpus(workspace.config.docs_dir, root=workspace.config.root)
        pointer_map = workspace.store.load_pointer_map(required=True)
        accuracy = workspace.store.load(VALIDATION_FILE).get("validation_results", {})
        coverage = workspace.store.load(COVERAGE_FILE).get("coverage_stats", {})
        result = self._state_stage(
            workspace,
            documents,
            pointer_map,
            window_days=window_days,
            accuracy_score=_as_float(accuracy, "accuracy_score", 1.0),
            coverage_percentage=_as_float(coverage, "coverage_percentage", 0.0),
        )
        result.path = workspace.store.write(DOC_STATE_FILE, result.payload)
        return result

    def run_coverage(self, path: str) -> StageResult:
        workspace = self._prepare(path)
        pointer_map = workspace.store.load_pointer_map(required=True)
        result, _ = self._coverage_stage(workspace, pointer_map)
        result.path = workspace.store.write(COVERAGE_FILE, result.payload)
        return result

    def run_validate(self, path: str) -> StageResult:
        workspace = self._prepare(path)
        documents = load_corpus(workspace.config.docs_dir, root=workspace.config.root)
        pointer_map = workspace.store.load_pointer_map(required=True)
        result, _ = self._validate_stage(workspace, documents, pointer_map)
        result.path = workspace.store.write(VALIDATION_FILE, result.payload)
        return result

    def run_all(self, path: str, *, stages: Sequence[str] | None = None) -> Dict[str, StageResult]:
        """Compute the selected stages in memory, then write their reports together.

        Stages that are not selected but are needed by a selected one still
        run; their reports are not written.
        """
        selected = _normalize_stages(stages)
        workspace = self._prepare(path)
        config = workspace.config
        self.logger.info("Running %s for %s", ", ".join(selected), config.root)

        documents = load_corpus(config.docs_dir, root=config.root)
        prior = workspace.store.load_pointer_map()
        pointer_map = self._build_pointer_map(workspace, documents, prior)
        now = self._clock()
        results: Dict[str, StageResult] = {}

        pointers_payload = pointer_map_to_dict(
            pointer_map, generated=now, total_source_files=len(workspace.source_index)
        )
        results["pointers"] = StageResult(
            "pointers", pointers_payload, summary=self._pointer_summary(pointers_payload, documents)
        )
        if "changes" in selected:
            results["changes"] = self._changes_stage(workspace, pointer_map, None)
        coverage: Optional[CoverageResult] = None
        report: Optional[ValidationReport] = None
        if "coverage" in selected or "state" in selected:
            results["coverage"], coverage = self._coverage_stage(workspace, pointer_map)
        if "validate" in selected or "state" in selected:
            # Prior pointers whose target vanished since the last run are validated too.
            names = {document.name for document in documents}
            checked = pointer_map.with_prior(
                prior,
                lambda document, source: document in names and not (config.root / source).is_file(),
            )
            results["validate"], report = self._validate_stage(workspace, documents, checked)
        if "state" in selected:
            results["state"] = self._state_stage(
                workspace,
                documents,
                pointer_map,
                accuracy_score=report.accuracy_score if report else 1.0,
                coverage_percentage=coverage.percentage if coverage else 0.0,
            )

        file_names = {
            "pointers": POINTERS_FILE,
            "changes": CHANGES_FILE,
            "coverage": COVERAGE_FILE,
            "validate": VALIDATION_FILE,
            "state": DOC_STATE_FILE,
        }
        for stage in selected:
            result = results[stage]
            result.path = workspace.store.write(file_names[stage], result.payload)
        return {stage: results[stage] for stage in selected}

    def mark_validated(
        self,
        path: str,
        document: str,
        *,
        sources: Sequence[str] | None = None,
        at: datetime | None = None,
    ) -> List[str]:
        """Stamp ``lastValidated`` on a document's pointers and rewrite the pointer map."""
        config = self._load_config(path)
        store = ReportStore(config.output_dir)
        data = store.load(POINTERS_FILE, required=True)
        pointer_map = pointer_map_from_dict(data)
        name = Path(document).name
        stamp = at or self._clock()
        try:
            marked = pointer_map.mark_validated(name, stamp, sources)
        except KeyError:
            raise UnknownDocumentError(f"{document} has no pointers in {POINTERS_FILE}") from None
        total = data.get("total_source_files")
        store.save_pointer_map(
            pointer_map,
            generated=self._clock(),
            total_source_files=total if isinstance(total, int) else 0,
        )
        self.logger.info("Marked %d pointers of %s validated", len(marked), name)
        return marked

    # ------------------------------------------------------------------
    # Stage bodies

    def _build_pointer_map(
        self, workspace: _Workspace, documents: Sequence[DocumentFile], prior: PointerMap
    ) -> PointerMap:
        config = workspace.config
        pointer_map = build_pointer_map(
            documents,
            workspace.source_index,
            extractor=ReferenceExtractor(config.source_extensions),
            resolver=SourceResolver(workspace.source_index),
        )
        pointer_map.carry_validation(prior)
        self.logger.debug(
            "Pointer map: %d documents, %d pointers",
            len(pointer_map.mappings),
            len(pointer_map.pointers()),
        )
        return pointer_map

    def _changes_stage(
        self, workspace: _Workspace, pointer_map: PointerMap, window_days: int | None
    ) -> StageResult:
        window = workspace.config.history.change_window_days if window_days is None else window_days
        tracker = self._tracker(workspace)
        changes = tracker.track(window)
        for path, change in changes.items():
            change.affected_documents = frozenset(pointer_map.documents_for(path))
        ordered = sort_by_impact(changes.values())
        affected = {doc for change in ordered for doc in change.affected_documents}
        payload = {
            "generated": format_timestamp(self._clock()),
            "changes_since": f"{window} days ago",
            "mode": tracker.mode,
            "total_code_changes": len(ordered),
            "affected_docs": len(affected),
            "changes": [_change_to_dict(change) for change in ordered],
        }
        summary = {
            "mode": tracker.mode,
            "changed_files": len(ordered),
            "high_impact": sum(1 for change in ordered if change.impact is ImpactTier.HIGH),
            "affected_docs": len(affected),
        }
        return StageResult("changes", payload, summary=summary)

    def _state_stage(
        self,
        workspace: _Workspace,
        documents: Sequence[DocumentFile],
        pointer_map: PointerMap,
        *,
        window_days: int | None = None,
        accuracy_score: float = 1.0,
        coverage_percentage: float = 0.0,
    ) -> StageResult:
        config = workspace.config
        tracker = self._tracker(workspace)
        change_times = latest_change_times(
            tracker.track(config.history.staleness_window_days if window_days is None else window_days)
        )
        estimator = StalenessEstimator(stale_error_days=config.validation.stale_error_days)
        states = DocStateAnalyzer(estimator).analyze(
            documents,
            pointer_map,
            change_times,
            target_times=workspace.target_times(change_times),
            prior=workspace.store.load(DOC_STATE_FILE),
        )
        payload = doc_state_payload(
            states,
            generated=self._clock(),
            history_mode=tracker.mode,
            accuracy_score=accuracy_score,
            coverage_percentage=coverage_percentage,
        )
        metrics = payload["metrics"]
        summary = {
            "documents": metrics["total_docs"],
            "complete": metrics["complete_docs"],
            "stale": metrics["stale_docs"],
            "priorities": len(payload["priorities"]),
        }
        return StageResult("state", payload, summary=summary)

    def _coverage_stage(
        self, workspace: _Workspace, pointer_map: PointerMap
    ) -> tuple[StageResult, CoverageResult]:
        config = workspace.config
        aggregator = CoverageAggregator(
            config.coverage_extensions,
            suggested_locations=config.coverage.suggested_locations,
            docs_prefix=config.docs_prefix,
        )
        coverage = aggregator.aggregate(workspace.index, pointer_map.all_sources())
        payload = coverage.to_dict(generated=self._clock())
        summary = dict(payload["coverage_stats"])
        return StageResult("coverage", payload, summary=summary), coverage

    def _validate_stage(
        self,
        workspace: _Workspace,
        documents: Sequence[DocumentFile],
        pointer_map: PointerMap,
    ) -> tuple[StageResult, ValidationReport]:
        config = workspace.config
        context = ValidationContext(
            root=config.root,
            docs_prefix=config.docs_prefix,
            documents=documents,
            pointer_map=pointer_map,
            target_times=workspace.target_times({}),
            extensions=config.source_extensions,
            settings=config.validation,
        )
        report = AccuracyValidator(self._validators).run(context)
        payload = report.to_dict(generated=self._clock())
        summary = dict(payload["validation_results"])
        if report.errors:
            self.logger.warning("Found %d validation errors that need attention", len(report.errors))
        return StageResult("validate", payload, summary=summary), report

    # ------------------------------------------------------------------
    # Helpers

    def _prepare(self, path: str) -> _Workspace:
        config = self._load_config(path)
        extensions = list(dict.fromkeys(config.source_extensions + config.coverage_extensions))
        files = self.scanner.scan(config.root, extensions, exclude_paths=config.exclude_paths)
        source_files = [file for file in files if has_extension(file.path, config.source_extensions)]
        self.logger.debug("Scanner discovered %d files", len(files))
        return _Workspace(
            config=config,
            files=files,
            index=SourceIndex(config.root, files),
            source_index=SourceIndex(config.root, source_files),
            store=ReportStore(config.output_dir),
        )

    @staticmethod
    def _load_config(path: str) -> DocSyncConfig:
        repo_path = Path(path).expanduser().resolve()
        if not repo_path.is_dir():
            raise FileNotFoundError(f"Repository path not found: {repo_path}")
        return load_config(repo_path)

    def _tracker(self, workspace: _Workspace) -> ChangeHistoryTracker:
        config = workspace.config
        if self._history_factory is not None:
            history = self._history_factory(config, workspace.files)
        else:
            history = select_history(
                config.root,
                workspace.files,
                use_git=config.history.use_git,
                runner=self._runner,
                clock=self._clock,
            )
        fallback = None
        if not isinstance(history, FileTimeChangeHistory):
            fallback = FileTimeChangeHistory(workspace.files, clock=self._clock)
        return ChangeHistoryTracker(history, fallback=fallback, extensions=config.source_extensions)

    @staticmethod
    def _pointer_summary(payload: Dict[str, Any], documents: Sequence[DocumentFile]) -> Dict[str, Any]:
        return {
            "documents": len(documents),
            "mapped_documents": payload["total_mappings"],
            "pointers": sum(len(targets) for targets in payload["mappings"].values()),
            "source_files": payload["total_source_files"],
            "unresolved": sum(len(values) for values in payload["unresolved"].values()),
        }


def _change_to_dict(change: FileChange) -> Dict[str, Any]:
    latest = change.latest
    return {
        "code_file": change.path,
        "change_type": change.change_type.value,
        "lines_added": change.lines_added,
        "lines_removed": change.lines_removed,
        "lines_changed": change.lines_changed,
        "impact": change.impact.value,
        "breaking_change": change.breaking,
        "affected_documentation": sorted(change.affected_documents),
        "most_recent_commit": {
            "hash": latest.commit[:7],
            "message": latest.message,
            "timestamp": format_timestamp(latest.timestamp),
        },
    }


def _normalize_stages(stages: Sequence[str] | None) -> List[str]:
    if not stages:
        return list(STAGES)
    unknown = [stage for stage in stages if stage not in STAGES]
    if unknown:
        raise ValueError(f"Unknown stage(s): {', '.join(unknown)}")
    # Pointers always run first; the rest keep canonical order.
    return [stage for stage in STAGES if stage == "pointers" or stage in stages]


def _as_float(data: Any, key: str, default: float) -> float:
    if not isinstance(data, dict):
        return default
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return float(value)


__all__ = ["Orchestrator", "STAGES", "StageResult", "UnknownDocumentError"]
