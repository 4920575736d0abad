"""Glob matching and specificity scoring for path-based review routing."""
from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import List, Optional

logger = logging.getLogger(__name__)

_SEPARATOR = "/"
_LONE_STAR = re.compile(r"(?<!\*)\*(?!\*)")


def matches_glob_pattern(file_path: str, pattern: str) -> bool:
    """Return True when ``file_path`` matches the glob ``pattern`` as a whole.

    Supported syntax: ``*`` (no separator), ``**`` (any depth), ``?``,
    ``{a,b}`` alternation and ``\\`` escapes. Anything else is literal.
    Invalid input never raises; it is logged and treated as a non-match.
    """
    try:
        regex = _compile(pattern)
        return regex.fullmatch(file_path) is not None
    except (re.error, TypeError, RecursionError) as exc:
        logger.warning("Invalid glob pattern %r: %s", pattern, exc)
        return False


def pattern_specificity(pattern: str) -> int:
    """Score how precise a pattern is; higher scores win when several match."""
    score = len(pattern)
    score -= pattern.count("**") * 3
    score -= len(_LONE_STAR.findall(pattern)) * 2
    if "." in pattern:
        score += 5
    if "{" in pattern:
        score += 3
    return score


@lru_cache(maxsize=512)
def _compile(pattern: str) -> "re.Pattern[str]":
    if not isinstance(pattern, str):
        raise TypeError(f"pattern must be a string, got {type(pattern).__name__}")
    return re.compile(translate_glob(pattern), re.DOTALL)


def translate_glob(pattern: str) -> str:
    """Translate a glob pattern into an (unanchored) regular expression body."""
    parts: List[str] = []
    index = 0
    length = len(pattern)

    while index < length:
        char = pattern[index]
        index += 1

        if char == "*":
            if index < length and pattern[index] == "*":
                parts.append(".*")
                index += 1
            else:
                parts.append(f"[^{_SEPARATOR}]*")
        elif char == "?":
            parts.append(f"[^{_SEPARATOR}]")
        elif char == "{":
            group_end = _find_group_end(pattern, index)
            if group_end is None:
                # Unclosed group: the brace and everything after it are literal.
                parts.append(re.escape(_unescape(pattern[index - 1 :])))
                break
            alternatives = _split_alternatives(pattern[index:group_end])
            parts.append("(?:" + "|".join(translate_glob(alt) for alt in alternatives) + ")")
            index = group_end + 1
        elif char == "\\":
            if index < length:
                parts.append(re.escape(pattern[index]))
                index += 1
            else:
                parts.append(re.escape("\\"))
        else:
            parts.append(re.escape(char))

    return "".join(parts)


def _find_group_end(pattern: str, start: int) -> Optional[int]:
    """Return the index of the ``}`` closing the group opened before ``start``."""
    depth = 1
    index = start
    while index < len(pattern):
        char = pattern[index]
        if char == "\\":
            index += 2
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
        index += 1
    return None


def _split_alternatives(body: str) -> List[str]:
    """Split a group body on top-level, unescaped commas; escapes are kept."""
    alternatives: List[str] = []
    current: List[str] = []
    depth = 0
    index = 0
    while index < len(body):
        char = body[index]
        if char == "\\":
            current.append(body[index : index + 2])
            index += 2
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
        elif char == "," and depth == 0:
            alternatives.append("".join(current))
            current = []
            index += 1
            continue
        current.append(char)
        index += 1
    alternatives.append("".join(current))
    return alternatives


def _unescape(text: str) -> str:
    return re.sub(r"\\(.)", r"\1", text, flags=re.DOTALL)
