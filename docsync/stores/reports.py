"""Persisted report files: atomic writes and tolerant reads."""

from __future__ import annotations

import json
import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from ..corpus import MissingPrerequisiteError
from ..logging import get_logger
from ..pointers.resolver import PointerMap

POINTERS_FILE = "CODE_POINTERS.json"
CHANGES_FILE = "CODE_CHANGES.json"
DOC_STATE_FILE = "DOC_STATE.json"
COVERAGE_FILE = "COVERAGE.json"
VALIDATION_FILE = "VALIDATION.json"

logger = get_logger("stores.reports")


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: object) -> Optional[datetime]:
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class ReportStore:
    """Reads and writes the JSON reports inside one output directory.

    Every write replaces the whole file in one step so a reader never sees a
    half-written report.
    """

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = Path(output_dir)

    def path(self, name: str) -> Path:
        return self.output_dir / name

    def write(self, name: str, payload: Mapping[str, Any]) -> Path:
        target = self.path(name)
        target.parent.mkdir(parents=True, exist_ok=True)
        handle = tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=target.parent, prefix=f".{name}.", suffix=".tmp", delete=False
        )
        try:
            with handle:
                json.dump(payload, handle, indent=2)
                handle.write("\n")
            os.replace(handle.name, target)
        except BaseException:
            Path(handle.name).unlink(missing_ok=True)
            raise
        logger.debug("Wrote %s", target)
        return target

    def load(self, name: str, *, required: bool = False) -> Dict[str, Any]:
        """Return the parsed report, or ``{}`` for absent/unparseable optional state."""
        target = self.path(name)
        try:
            data = json.loads(target.read_text(encoding="utf-8"))
        except FileNotFoundError:
            if required:
                raise MissingPrerequisiteError(
                    f"{name} not found in {self.output_dir}; run `docsync pointers` first"
                ) from None
            return {}
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            if required:
                raise MissingPrerequisiteError(f"{name} is not valid JSON: {exc}") from exc
            logger.warning("Ignoring unreadable prior report %s: %s", name, exc)
            return {}
        if not isinstance(data, dict):
            if required:
                raise MissingPrerequisiteError(f"{name} must contain a JSON object")
            logger.warning("Ignoring prior report %s: not a JSON object", name)
            return {}
        return data

    # ------------------------------------------------------------------
    # Pointer map

    def load_pointer_map(self, *, required: bool = False) -> PointerMap:
        return pointer_map_from_dict(self.load(POINTERS_FILE, required=required))

    def save_pointer_map(
        self, pointer_map: PointerMap, *, generated: datetime, total_source_files: int
    ) -> Path:
        return self.write(
            POINTERS_FILE,
            pointer_map_to_dict(
                pointer_map, generated=generated, total_source_files=total_source_files
            ),
        )


def pointer_map_to_dict(
    pointer_map: PointerMap, *, generated: datetime, total_source_files: int
) -> Dict[str, Any]:
    return {
        "generated": format_timestamp(generated),
        "total_source_files": total_source_files,
        "total_mappings": len(pointer_map.mappings),
        "mappings": {
            document: {source: list(reasons) for source, reasons in sorted(targets.items())}
            for document, targets in sorted(pointer_map.mappings.items())
        },
        "validated": {
            document: {source: format_timestamp(stamp) for source, stamp in sorted(stamps.items())}
            for document, stamps in sorted(pointer_map.validated.items())
            if stamps
        },
        "unresolved": {
            document: list(values) for document, values in sorted(pointer_map.unresolved.items())
        },
    }


def pointer_map_from_dict(data: Mapping[str, Any]) -> PointerMap:
    """Rebuild a pointer map, skipping malformed entries one by one."""
    pointer_map = PointerMap()
    mappings = data.get("mappings")
    if isinstance(mappings, dict):
        for document, targets in mappings.items():
            if not isinstance(document, str) or not isinstance(targets, dict):
                logger.debug("Skipping malformed pointer entry for %r", document)
                continue
            cleaned: Dict[str, list] = {}
            for source, reasons in targets.items():
                if not isinstance(source, str) or not isinstance(reasons, list):
                    continue
                texts = [reason for reason in reasons if isinstance(reason, str)]
                if texts:
                    cleaned[source] = texts
            if cleaned:
                pointer_map.mappings[document] = cleaned

    validated = data.get("validated")
    if isinstance(validated, dict):
        for document, stamps in validated.items():
            if not isinstance(document, str) or not isinstance(stamps, dict):
                continue
            parsed = {
                source: stamp
                for source, stamp in (
                    (source, parse_timestamp(raw)) for source, raw in stamps.items()
                )
                if isinstance(source, str) and stamp is not None
            }
            if parsed:
                pointer_map.validated[document] = parsed

    unresolved = data.get("unresolved")
    if isinstance(unresolved, dict):
        for document, values in unresolved.items():
            if isinstance(document, str) and isinstance(values, list):
                pointer_map.unresolved[document] = [v for v in values if isinstance(v, str)]
    return pointer_map


__all__ = [
    "CHANGES_FILE",
    "COVERAGE_FILE",
    "DOC_STATE_FILE",
    "POINTERS_FILE",
    "ReportStore",
    "VALIDATION_FILE",
    "format_timestamp",
    "parse_timestamp",
    "pointer_map_from_dict",
    "pointer_map_to_dict",
]
