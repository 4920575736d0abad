"""Load review settings from a ``.coderabbitai.yaml``-style file.

Loading never fails the run: a missing or broken file falls back to the
defaults, and a field with the wrong type is ignored with a warning.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from .batcher import FilterConfig
from .changes import ChangeStatus
from .instructions import PathInstruction

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = ".coderabbitai.yaml"
DEFAULT_EXCLUDE = ("node_modules/**", "**/node_modules/**", "*.lock", "**/*.lock")


@dataclass(frozen=True)
class SummarySettings:
    batch_size: int = 2
    passes: int = 2
    max_tokens: int = 4000
    token_margin: int = 100


@dataclass(frozen=True)
class ReviewConfig:
    language: Optional[str] = None
    file_path_instructions: Tuple[PathInstruction, ...] = ()
    path_instructions: Tuple[PathInstruction, ...] = ()
    file_filter: FilterConfig = field(default_factory=lambda: FilterConfig(exclude=DEFAULT_EXCLUDE))
    skip_simple_changes: bool = False
    summary: SummarySettings = field(default_factory=SummarySettings)

    @property
    def instructions(self) -> Tuple[PathInstruction, ...]:
        """All path instructions, in declaration order."""
        return self.file_path_instructions + self.path_instructions


DEFAULT_CONFIG = ReviewConfig()


def load_review_config(config_path: Optional[Path] = None) -> ReviewConfig:
    """Read ``config_path`` and merge it over :data:`DEFAULT_CONFIG`."""
    path = Path(config_path or DEFAULT_CONFIG_FILENAME).expanduser()
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError:
        logger.warning("Config file %s not found or not readable, using default config.", path)
        return DEFAULT_CONFIG
    except yaml.YAMLError as exc:
        logger.error("Error parsing config file %s: %s", path, exc)
        return DEFAULT_CONFIG

    if raw is None:
        return DEFAULT_CONFIG
    if not isinstance(raw, Mapping):
        logger.warning("Config file %s must contain a mapping, using default config.", path)
        return DEFAULT_CONFIG

    config = config_from_mapping(raw, source=str(path))
    logger.debug("Loaded review config", extra={"config": {"path": str(path), "language": config.language}})
    return config


def config_from_mapping(raw: Mapping[str, Any], source: str = "<config>") -> ReviewConfig:
    if raw.get("use_default_config") is True:
        logger.info('"use_default_config" is true in %s, using default config.', source)
        return DEFAULT_CONFIG

    config = DEFAULT_CONFIG
    language = _typed(raw, "language", str, source)
    if language is not None:
        config = replace(config, language=language)

    skip_simple = _typed(raw, "skip_simple_changes", bool, source)
    if skip_simple is not None:
        config = replace(config, skip_simple_changes=skip_simple)

    for key in ("file_path_instructions", "path_instructions"):
        entries = _typed(raw, key, list, source)
        if entries is not None:
            config = replace(config, **{key: _parse_instructions(entries, key, source)})

    file_filter = _typed(raw, "file_filter", dict, source)
    if file_filter is not None:
        config = replace(config, file_filter=_parse_filter(file_filter, config.file_filter, source))

    summary = _typed(raw, "summary", dict, source)
    if summary is not None:
        config = replace(config, summary=_parse_summary(summary, config.summary, source))

    return config


def _parse_instructions(entries: List[Any], key: str, source: str) -> Tuple[PathInstruction, ...]:
    parsed: List[PathInstruction] = []
    for index, entry in enumerate(entries):
        if (
            isinstance(entry, Mapping)
            and isinstance(entry.get("path"), str)
            and isinstance(entry.get("instructions"), str)
        ):
            parsed.append(PathInstruction(path=entry["path"], instructions=entry["instructions"]))
        else:
            logger.warning("Ignoring invalid %s[%d] in %s: %r", key, index, source, entry)
    return tuple(parsed)


def _parse_filter(raw: Mapping[str, Any], default: FilterConfig, source: str) -> FilterConfig:
    values: Dict[str, Any] = {}
    for key in ("include", "exclude"):
        patterns = _typed(raw, key, list, source)
        if patterns is not None:
            values[key] = tuple(p for p in patterns if isinstance(p, str))

    max_changes = _typed(raw, "max_changes", int, source)
    if max_changes is not None:
        values["max_changes"] = max_changes

    statuses = _typed(raw, "allowed_statuses", list, source)
    if statuses is not None:
        allowed = set()
        for status in statuses:
            try:
                allowed.add(ChangeStatus(status))
            except ValueError:
                logger.warning("Ignoring unknown status %r in %s", status, source)
        values["allowed_statuses"] = frozenset(allowed)

    return replace(default, **values)


def _parse_summary(raw: Mapping[str, Any], default: SummarySettings, source: str) -> SummarySettings:
    values = {}
    for key in ("batch_size", "passes", "max_tokens", "token_margin"):
        value = _typed(raw, key, int, source)
        if value is None:
            continue
        if value < (0 if key == "token_margin" else 1):
            logger.warning("Ignoring out-of-range summary.%s=%r in %s", key, value, source)
            continue
        values[key] = value
    return replace(default, **values)


def _typed(raw: Mapping[str, Any], key: str, expected: type, source: str) -> Any:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
        logger.warning("Ignoring %s in %s: expected %s, got %s", key, source, expected.__name__, type(value).__name__)
        return None
    return value


def get_openrouter_config_path() -> Path:
    return Path("~/.config/openrouter/key").expanduser()


def load_openrouter_api_key() -> Optional[str]:
    env_key = os.getenv("OPENROUTER_API_KEY")
    if env_key and env_key.strip():
        return env_key.strip()

    config_path = get_openrouter_config_path()
    try:
        contents = config_path.read_text(encoding="utf-8").strip()
    except OSError:
        return None
    return contents or None
