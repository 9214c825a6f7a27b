"""Reference extraction and resolution into documentation pointers."""

from .extractor import ReferenceExtractor, extract_references
from .resolver import Match, PointerMap, SourceResolver, build_pointer_map

__all__ = [
    "Match",
    "PointerMap",
    "ReferenceExtractor",
    "SourceResolver",
    "build_pointer_map",
    "extract_references",
]
