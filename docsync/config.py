"""Configuration loading for docsync (.docsync.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

CONFIG_FILENAME = ".docsync.yml"

DEFAULT_DOCS_DIR = "context_for_llms"

DEFAULT_SOURCE_EXTENSIONS: Sequence[str] = (
    ".js",
    ".ts",
    ".jsx",
    ".tsx",
    ".py",
    ".go",
    ".rs",
    ".java",
    ".rb",
    ".php",
)

DEFAULT_COVERAGE_EXTENSIONS: Sequence[str] = (
    ".js",
    ".ts",
    ".jsx",
    ".tsx",
    ".py",
    ".go",
    ".rs",
    ".java",
)

DEFAULT_EXAMPLE_LANGUAGES: Sequence[str] = ("javascript", "typescript", "js", "ts", "jsx", "tsx")

DEFAULT_DEPRECATED_PATTERNS: Dict[str, str] = {
    "app.start(": "Check if app.listen() should be used instead",
}

DEFAULT_SUGGESTED_LOCATIONS: Dict[str, str] = {
    "utility": "utilities.md",
    "api": "api-overview.md",
    "model": "domains-and-modules.md",
    "component": "architecture.md",
    "config": "development-workflows.md",
    "module": "architecture.md",
}


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class HistoryConfig:
    """Version-control history settings."""

    use_git: bool = True
    staleness_window_days: int = 30
    change_window_days: int = 7


@dataclass
class ValidationConfig:
    """Accuracy validation knobs."""

    example_languages: List[str] = field(default_factory=lambda: list(DEFAULT_EXAMPLE_LANGUAGES))
    deprecated_patterns: Dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_DEPRECATED_PATTERNS)
    )
    stale_error_days: int = 7


@dataclass
class CoverageConfig:
    """Coverage backlog settings."""

    suggested_locations: Dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_SUGGESTED_LOCATIONS)
    )


@dataclass
class DocSyncConfig:
    """Represents the settings defined in .docsync.yml, resolved against the root."""

    root: Path
    docs_dir: Path
    output_dir: Path
    source_extensions: List[str] = field(default_factory=lambda: list(DEFAULT_SOURCE_EXTENSIONS))
    coverage_extensions: List[str] = field(
        default_factory=lambda: list(DEFAULT_COVERAGE_EXTENSIONS)
    )
    exclude_paths: List[str] = field(default_factory=list)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    coverage: CoverageConfig = field(default_factory=CoverageConfig)

    @classmethod
    def defaults(cls, root: Path) -> "DocSyncConfig":
        root = root.resolve()
        docs_dir = root / DEFAULT_DOCS_DIR
        return cls(root=root, docs_dir=docs_dir, output_dir=docs_dir)

    @property
    def docs_prefix(self) -> str:
        """Documentation root relative to the repository root, POSIX style."""
        try:
            return self.docs_dir.relative_to(self.root).as_posix()
        except ValueError:
            return self.docs_dir.as_posix()


def load_config(config_path: Path) -> DocSyncConfig:
    """Load configuration from disk; a missing file yields defaults."""
    config_file = _resolve_config_path(Path(config_path))
    root = config_file.parent.resolve()
    config = DocSyncConfig.defaults(root)

    if not config_file.exists():
        return config

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    docs_dir = _as_str(data.get("docs_dir"))
    if docs_dir:
        config.docs_dir = (root / docs_dir).resolve()
    output_dir = _as_str(data.get("output_dir"))
    config.output_dir = (root / output_dir).resolve() if output_dir else config.docs_dir

    source_extensions = _as_extension_list(data.get("source_extensions"))
    if source_extensions:
        config.source_extensions = source_extensions
    coverage_extensions = _as_extension_list(data.get("coverage_extensions"))
    if coverage_extensions:
        config.coverage_extensions = coverage_extensions
    config.exclude_paths = _as_str_list(data.get("exclude_paths"))

    history_data = _as_dict(data.get("history"))
    if history_data:
        use_git = _as_bool(history_data.get("use_git"))
        if use_git is not None:
            config.history.use_git = use_git
        staleness_window = _as_positive_int(history_data.get("staleness_window_days"))
        if staleness_window is not None:
            config.history.staleness_window_days = staleness_window
        change_window = _as_positive_int(history_data.get("change_window_days"))
        if change_window is not None:
            config.history.change_window_days = change_window

    validation_data = _as_dict(data.get("validation"))
    if validation_data:
        languages = _as_str_list(validation_data.get("example_languages"))
        if languages:
            config.validation.example_languages = [lang.lower() for lang in languages]
        patterns = _as_dict(validation_data.get("deprecated_patterns"))
        if patterns:
            config.validation.deprecated_patterns = {
                str(pattern): str(suggestion) for pattern, suggestion in patterns.items()
            }
        error_days = _as_positive_int(validation_data.get("stale_error_days"))
        if error_days is not None:
            config.validation.stale_error_days = error_days

    coverage_data = _as_dict(data.get("coverage"))
    if coverage_data:
        locations = _as_dict(coverage_data.get("suggested_locations"))
        for file_type, document in locations.items():
            location = _as_str(document)
            if location:
                config.coverage.suggested_locations[str(file_type)] = location

    return config


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ConfigError(f"{path.name} is not valid UTF-8: {exc}") from exc
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return {} if loaded is None else loaded


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _as_positive_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str):
        try:
            parsed = int(value)
        except ValueError:
            return None
        return parsed if parsed > 0 else None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float)) and not isinstance(item, bool)]
    return []


def _as_extension_list(value: Any) -> List[str]:
    extensions: List[str] = []
    for item in _as_str_list(value):
        cleaned = item.strip().lower()
        if not cleaned:
            continue
        if not cleaned.startswith("."):
            cleaned = f".{cleaned}"
        if cleaned not in extensions:
            extensions.append(cleaned)
    return extensions


__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "CoverageConfig",
    "DocSyncConfig",
    "HistoryConfig",
    "ValidationConfig",
    "load_config",
]
