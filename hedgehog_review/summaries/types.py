"""Dataclasses shared across the summaries feature."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple


class SummaryParseError(ValueError):
    """Raised when a summarizer response does not have the expected shape."""


class ImpactLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _IMPACT_RANKS[self]

    @classmethod
    def parse(cls, value: Any) -> "ImpactLevel":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise SummaryParseError(f"Unknown impact level: {value!r}")


_IMPACT_RANKS = {ImpactLevel.HIGH: 3, ImpactLevel.MEDIUM: 2, ImpactLevel.LOW: 1}


@dataclass(frozen=True)
class PullRequestInfo:
    """Immutable pull request metadata handed to the summarizer."""

    title: str
    body: str = ""
    number: Optional[int] = None
    head_branch: Optional[str] = None
    base_branch: Optional[str] = None


@dataclass(frozen=True)
class Aspect:
    key: str
    description: str
    impact: ImpactLevel

    def to_dict(self) -> Dict[str, str]:
        return {"key": self.key, "description": self.description, "impact": self.impact.value}


@dataclass(frozen=True)
class AspectMapping:
    """An aspect plus the files it applies to (duplicates are dropped)."""

    aspect: Aspect
    files: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "files", tuple(dict.fromkeys(self.files)))

    @property
    def key(self) -> str:
        return self.aspect.key

    def to_dict(self) -> Dict[str, Any]:
        return {"aspect": self.aspect.to_dict(), "files": list(self.files)}


@dataclass(frozen=True)
class OverallSummary:
    """Consolidated view of a change set, grouped by review aspect."""

    description: str
    aspect_mappings: Tuple[AspectMapping, ...] = ()
    cross_cutting_concerns: Optional[Tuple[str, ...]] = None

    def mapping_for(self, key: str) -> Optional[AspectMapping]:
        for mapping in self.aspect_mappings:
            if mapping.key == key:
                return mapping
        return None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "description": self.description,
            "aspectMappings": [mapping.to_dict() for mapping in self.aspect_mappings],
        }
        if self.cross_cutting_concerns is not None:
            payload["crossCuttingConcerns"] = list(self.cross_cutting_concerns)
        return payload

    @classmethod
    def from_dict(cls, data: Any) -> "OverallSummary":
        """Validate a decoded JSON payload and build a summary from it.

        Mappings are taken as given; duplicate keys are only folded when the
        summary is merged.
        """
        if not isinstance(data, Mapping):
            raise SummaryParseError("Overall summary must be a JSON object")

        description = data.get("description")
        if not isinstance(description, str):
            raise SummaryParseError("Overall summary is missing a description")

        raw_mappings = data.get("aspectMappings", [])
        if not isinstance(raw_mappings, list):
            raise SummaryParseError("aspectMappings must be a list")
        mappings = tuple(_parse_mapping(item) for item in raw_mappings)

        raw_concerns = data.get("crossCuttingConcerns")
        concerns: Optional[Tuple[str, ...]] = None
        if raw_concerns is not None:
            if not isinstance(raw_concerns, list) or not all(isinstance(c, str) for c in raw_concerns):
                raise SummaryParseError("crossCuttingConcerns must be a list of strings")
            concerns = tuple(raw_concerns)

        return cls(description=description, aspect_mappings=mappings, cross_cutting_concerns=concerns)


@dataclass(frozen=True)
class FileAssessment:
    """Lightweight per-file verdict returned by the summarizer."""

    summary: Optional[str]
    needs_review: bool
    reason: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "FileAssessment":
        if not isinstance(data, Mapping):
            raise SummaryParseError("File assessment must be a JSON object")
        needs_review = data.get("needsReview")
        if not isinstance(needs_review, bool):
            raise SummaryParseError("File assessment is missing a boolean needsReview")
        summary = data.get("summary")
        reason = data.get("reason") or ""
        return cls(
            summary=summary if isinstance(summary, str) else None,
            needs_review=needs_review,
            reason=reason if isinstance(reason, str) else str(reason),
        )


@dataclass
class SummarizeResult:
    """Triage outcome for one file; ``aspects`` is filled after aggregation."""

    needs_review: bool
    reason: str
    summary: Optional[str] = None
    aspects: Tuple[Aspect, ...] = ()


@dataclass
class PreparedReview:
    """Everything the detailed review stage needs, keyed by file path."""

    summarize_results: Dict[str, SummarizeResult]
    overall_summary: Optional[OverallSummary]
    instructions: Dict[str, str] = field(default_factory=dict)

    def files_needing_review(self) -> List[str]:
        return [path for path, result in self.summarize_results.items() if result.needs_review]


def _parse_mapping(item: Any) -> AspectMapping:
    if not isinstance(item, Mapping):
        raise SummaryParseError("Aspect mapping must be a JSON object")
    raw_aspect = item.get("aspect")
    if not isinstance(raw_aspect, Mapping):
        raise SummaryParseError("Aspect mapping is missing its aspect")
    key = raw_aspect.get("key")
    description = raw_aspect.get("description", "")
    if not isinstance(key, str) or not key:
        raise SummaryParseError("Aspect is missing a key")
    if not isinstance(description, str):
        raise SummaryParseError(f"Aspect {key!r} has a non-string description")
    files = item.get("files", [])
    if not isinstance(files, list) or not all(isinstance(path, str) for path in files):
        raise SummaryParseError(f"Aspect {key!r} files must be a list of strings")
    aspect = Aspect(key=key, description=description, impact=ImpactLevel.parse(raw_aspect.get("impact")))
    return AspectMapping(aspect=aspect, files=tuple(files))
