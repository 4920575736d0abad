"""
Tests for folding batch summaries into the running accumulator.
"""
from hedgehog_review.summaries import (
    Aspect,
    AspectMapping,
    ImpactLevel,
    OverallSummary,
    merge_impact_levels,
    merge_overall_summaries,
    rank_by_impact,
)


def mapping(key, impact, files, description=None):
    aspect = Aspect(key=key, description=description or f"{key} changes", impact=ImpactLevel(impact))
    return AspectMapping(aspect=aspect, files=tuple(files))


def test_first_merge_returns_batch_result():
    batch = OverallSummary("first", (mapping("api", "low", ["a.ts"]),), ("watch latency",))
    merged = merge_overall_summaries(None, batch)
    assert merged == batch


def test_merge_into_itself_is_idempotent():
    summary = OverallSummary(
        "same",
        (mapping("api", "high", ["a.ts", "b.ts"]), mapping("docs", "low", ["README.md"])),
    )
    merged = merge_overall_summaries(summary, summary)
    assert [(m.key, m.aspect.impact, m.files) for m in merged.aspect_mappings] == [
        (m.key, m.aspect.impact, m.files) for m in summary.aspect_mappings
    ]


def test_unreferenced_aspects_are_preserved():
    accumulator = OverallSummary("before", (mapping("x", "medium", ["x.py"]),))
    merged = merge_overall_summaries(accumulator, OverallSummary("after"))
    assert merged.aspect_mappings == accumulator.aspect_mappings
    assert merged.description == "after"


def test_impact_never_decreases():
    low_then_high = merge_overall_summaries(
        OverallSummary("1", (mapping("a", "low", ["a"]),)),
        OverallSummary("2", (mapping("a", "high", ["a"]),)),
    )
    high_then_low = merge_overall_summaries(
        OverallSummary("1", (mapping("a", "high", ["a"]),)),
        OverallSummary("2", (mapping("a", "low", ["a"]),)),
    )
    assert low_then_high.mapping_for("a").aspect.impact is ImpactLevel.HIGH
    assert high_then_low.mapping_for("a").aspect.impact is ImpactLevel.HIGH


def test_latest_description_wins_and_files_are_unioned():
    merged = merge_overall_summaries(
        OverallSummary("1", (mapping("a", "medium", ["one.ts", "two.ts"], "old text"),)),
        OverallSummary("2", (mapping("a", "low", ["two.ts", "three.ts"], "new text"),)),
    )
    result = merged.mapping_for("a")
    assert result.aspect.description == "new text"
    assert result.aspect.impact is ImpactLevel.MEDIUM
    assert result.files == ("one.ts", "two.ts", "three.ts")


def test_preserved_aspects_come_before_batch_aspects():
    merged = merge_overall_summaries(
        OverallSummary("1", (mapping("a", "low", ["a"]), mapping("b", "low", ["b"]))),
        OverallSummary("2", (mapping("c", "low", ["c"]), mapping("a", "low", ["a2"]))),
    )
    assert [m.key for m in merged.aspect_mappings] == ["b", "c", "a"]


def test_cross_cutting_concerns_are_replaced():
    merged = merge_overall_summaries(
        OverallSummary("1", (), ("retries",)),
        OverallSummary("2", (), None),
    )
    assert merged.cross_cutting_concerns is None


def test_duplicate_keys_within_a_batch_are_folded():
    batch = OverallSummary("1", (mapping("a", "low", ["x"]), mapping("a", "high", ["y"])))
    merged = merge_overall_summaries(None, batch)
    assert len(merged.aspect_mappings) == 1
    assert merged.mapping_for("a").files == ("x", "y")
    assert merged.mapping_for("a").aspect.impact is ImpactLevel.HIGH


def test_merge_does_not_mutate_inputs():
    accumulator = OverallSummary("1", (mapping("a", "low", ["x"]),))
    merge_overall_summaries(accumulator, OverallSummary("2", (mapping("a", "high", ["y"]),)))
    assert accumulator.mapping_for("a").files == ("x",)
    assert accumulator.mapping_for("a").aspect.impact is ImpactLevel.LOW


def test_merge_impact_levels():
    assert merge_impact_levels([]) is ImpactLevel.LOW
    assert merge_impact_levels([ImpactLevel.LOW, ImpactLevel.MEDIUM]) is ImpactLevel.MEDIUM


def test_rank_by_impact_is_stable():
    mappings = [mapping("l", "low", []), mapping("h1", "high", []), mapping("m", "medium", []), mapping("h2", "high", [])]
    assert [m.key for m in rank_by_impact(mappings)] == ["h1", "h2", "m", "l"]


def test_mapping_files_are_deduplicated():
    assert mapping("a", "low", ["x", "y", "x"]).files == ("x", "y")
