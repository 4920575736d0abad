"""Resolve the review instructions that apply to a file path."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

from .patterns import matches_glob_pattern, pattern_specificity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PathInstruction:
    """A glob pattern paired with the instructions for files it matches."""

    path: str
    instructions: str


InstructionEntry = Union[PathInstruction, Mapping[str, Any]]


def resolve_instructions(
    file_path: str,
    instructions: Optional[Sequence[InstructionEntry]],
) -> str:
    """Combine every matching instruction, most specific pattern first.

    Equally specific patterns keep their declaration order. Texts are joined
    with a blank line; an empty string means nothing applies.
    """
    if not instructions:
        return ""

    matched: List[Tuple[int, int, str]] = []
    for index, entry in enumerate(instructions):
        pattern, text = _unpack(entry)
        if not isinstance(pattern, str):
            logger.warning("Ignoring path instruction #%d with invalid pattern: %r", index, entry)
            continue
        try:
            if not matches_glob_pattern(file_path, pattern):
                continue
        except Exception as exc:
            logger.warning("Error matching pattern %r against %s: %s", pattern, file_path, exc)
            continue
        if not isinstance(text, str):
            logger.debug("Path instruction #%d (%s) has no instruction text", index, pattern)
            continue
        matched.append((pattern_specificity(pattern), index, text))

    matched.sort(key=lambda item: (-item[0], item[1]))
    return "\n\n".join(text for _, _, text in matched)


def _unpack(entry: Any) -> Tuple[Any, Any]:
    if isinstance(entry, PathInstruction):
        return entry.path, entry.instructions
    if isinstance(entry, Mapping):
        return entry.get("path"), entry.get("instructions")
    return None, None
