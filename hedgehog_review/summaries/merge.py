"""Fold per-batch overall summaries into one running result."""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from .types import Aspect, AspectMapping, ImpactLevel, OverallSummary


def merge_impact_levels(levels: Iterable[ImpactLevel]) -> ImpactLevel:
    """Return the highest impact (high > medium > low); empty input is low."""
    return max(levels, key=lambda level: level.rank, default=ImpactLevel.LOW)


def merge_aspect_mappings(previous: AspectMapping, latest: AspectMapping) -> AspectMapping:
    """Combine two mappings for the same key.

    The latest description wins, the impact never goes down and the file
    lists are unioned with earlier files first.
    """
    aspect = Aspect(
        key=latest.aspect.key,
        description=latest.aspect.description,
        impact=merge_impact_levels([previous.aspect.impact, latest.aspect.impact]),
    )
    return AspectMapping(aspect=aspect, files=previous.files + latest.files)


def merge_overall_summaries(
    accumulator: Optional[OverallSummary],
    latest: OverallSummary,
) -> OverallSummary:
    """Merge one batch result into the accumulated summary and return a new value.

    Aspects the batch does not mention are carried over unchanged, ahead of
    the batch's own aspects. ``description`` and ``cross_cutting_concerns``
    are replaced by the batch's values.
    """
    incoming = _fold_duplicate_keys(latest.aspect_mappings)
    previous = {mapping.key: mapping for mapping in accumulator.aspect_mappings} if accumulator else {}

    preserved = [mapping for key, mapping in previous.items() if key not in incoming]
    updated = [
        merge_aspect_mappings(previous[key], mapping) if key in previous else mapping
        for key, mapping in incoming.items()
    ]

    return OverallSummary(
        description=latest.description,
        aspect_mappings=tuple(preserved + updated),
        cross_cutting_concerns=latest.cross_cutting_concerns,
    )


def _fold_duplicate_keys(mappings: Iterable[AspectMapping]) -> Dict[str, AspectMapping]:
    folded: Dict[str, AspectMapping] = {}
    for mapping in mappings:
        existing = folded.get(mapping.key)
        folded[mapping.key] = merge_aspect_mappings(existing, mapping) if existing else mapping
    return folded


def rank_by_impact(mappings: Iterable[AspectMapping]) -> List[AspectMapping]:
    """Order mappings high impact first, keeping the merge order within a level."""
    return sorted(mappings, key=lambda mapping: -mapping.aspect.impact.rank)
