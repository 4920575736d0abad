"""Route changed files to review instructions and aggregate their summaries."""
from __future__ import annotations

from .batcher import ChangeSource, FilterConfig, collect_changed_files, should_process_file
from .changes import ChangeDescriptor, ChangeSourceError, ChangeStatus, InMemoryChangeSource, JsonChangeSource
from .instructions import PathInstruction, resolve_instructions
from .patterns import matches_glob_pattern, pattern_specificity

__version__ = "0.1.0"

__all__ = [
    "ChangeDescriptor",
    "ChangeStatus",
    "ChangeSource",
    "ChangeSourceError",
    "InMemoryChangeSource",
    "JsonChangeSource",
    "FilterConfig",
    "collect_changed_files",
    "should_process_file",
    "PathInstruction",
    "resolve_instructions",
    "matches_glob_pattern",
    "pattern_specificity",
]
