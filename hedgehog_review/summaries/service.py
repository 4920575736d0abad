"""Shared orchestration layer for triaging files and aggregating summaries."""
from __future__ import annotations

import json
import logging
import math
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple, Union

from ..changes import ChangeDescriptor
from ..instructions import InstructionEntry, resolve_instructions
from .merge import merge_overall_summaries
from .planning import plan_batches, strategy_for_pass
from .types import (
    FileAssessment,
    OverallSummary,
    PreparedReview,
    PullRequestInfo,
    SummarizeResult,
    SummaryParseError,
)

DEFAULT_BATCH_SIZE = 2
DEFAULT_PASSES = 2
DEFAULT_MAX_TOKENS = 4000
DEFAULT_TOKEN_MARGIN = 100
_CHARS_PER_TOKEN = 4
_COMMENT_PREFIXES = ("//", "/*", "*", "#")


class ChangeSummarizer(Protocol):
    """External collaborator producing per-file and per-batch assessments."""

    def summarize_file(
        self,
        pr: PullRequestInfo,
        change: ChangeDescriptor,
        needs_review_hint: bool,
    ) -> FileAssessment:
        ...

    def summarize_batch(
        self,
        pr: PullRequestInfo,
        changes: Sequence[ChangeDescriptor],
        results: Sequence[Tuple[str, SummarizeResult]],
        previous_analysis: Optional[str],
    ) -> Union[OverallSummary, Mapping[str, Any], None]:
        ...


def estimate_token_count(text: str) -> int:
    return math.ceil(len(text) / _CHARS_PER_TOKEN)


def is_simple_change(patch: str) -> bool:
    """True when the added/removed lines are only blanks, comments or indentation."""
    for line in patch.split("\n"):
        if not line.startswith(("+", "-")) or line.startswith(("+++", "---")):
            continue
        code = line[1:].strip()
        if code == "" or code.startswith(_COMMENT_PREFIXES):
            continue
        return False
    return True


def serialize_analysis(summary: Optional[OverallSummary]) -> Optional[str]:
    """Render the running accumulator as context for the next batch call."""
    if summary is None:
        return None
    return json.dumps(summary.to_dict(), indent=2, ensure_ascii=False)


class ReviewSummaryService:
    """Public facade used by the CLI to prepare a change set for review."""

    def __init__(
        self,
        summarizer: ChangeSummarizer,
        *,
        instructions: Optional[Sequence[InstructionEntry]] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        passes: int = DEFAULT_PASSES,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        token_margin: int = DEFAULT_TOKEN_MARGIN,
        skip_simple_changes: bool = False,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._summarizer = summarizer
        self.instructions = list(instructions or [])
        self.batch_size = batch_size
        self.passes = passes
        self.max_tokens = max_tokens
        self.token_margin = token_margin
        self.skip_simple_changes = skip_simple_changes
        self._logger = logger or logging.getLogger(__name__)

    def prepare(self, pr: PullRequestInfo, changes: Sequence[ChangeDescriptor]) -> PreparedReview:
        """Triage every file, aggregate the results and attach routing context."""
        results = self.summarize(pr, changes)
        overall = self.generate_overall_summary(pr, changes, results)
        if overall is not None:
            results = self.attach_aspects(results, overall)
        instructions = {change.path: resolve_instructions(change.path, self.instructions) for change in changes}
        return PreparedReview(summarize_results=results, overall_summary=overall, instructions=instructions)

    def triage(self, change: ChangeDescriptor) -> SummarizeResult:
        """Cheap local pre-check run before asking the summarizer."""
        if not change.patch:
            return SummarizeResult(needs_review=False, reason="No changes detected in file")

        token_count = estimate_token_count(change.patch)
        if token_count > self.max_tokens - self.token_margin:
            return SummarizeResult(needs_review=False, reason=f"Token count ({token_count}) exceeds limit")

        if self.skip_simple_changes and is_simple_change(change.patch):
            return SummarizeResult(
                needs_review=False,
                reason="Changes appear to be simple (formatting, comments, etc.)",
            )

        return SummarizeResult(needs_review=True, reason="Changes require detailed review")

    def summarize(self, pr: PullRequestInfo, changes: Sequence[ChangeDescriptor]) -> Dict[str, SummarizeResult]:
        results: Dict[str, SummarizeResult] = {}
        for change in changes:
            base = self.triage(change)
            try:
                assessment = self._summarizer.summarize_file(pr, change, base.needs_review)
            except Exception as exc:
                self._logger.error("Triage error for %s: %s", change.path, exc)
                results[change.path] = SummarizeResult(needs_review=True, reason=f"Error during triage: {exc}")
                continue

            needs_review = base.needs_review and assessment.needs_review
            reason = base.reason
            if base.needs_review and not assessment.needs_review:
                reason = assessment.reason or "Summarizer found no need for detailed review"
            results[change.path] = SummarizeResult(
                needs_review=needs_review,
                reason=reason,
                summary=assessment.summary,
            )
        return results

    def generate_overall_summary(
        self,
        pr: PullRequestInfo,
        changes: Sequence[ChangeDescriptor],
        results: Mapping[str, SummarizeResult],
    ) -> Optional[OverallSummary]:
        """Run every aggregation pass and return the merged summary.

        Batches are processed in order because each call sees the summary
        accumulated so far. A failing batch is logged and skipped.
        """
        entries = list(results.items())
        by_path = {change.path: change for change in changes}
        accumulated: Optional[OverallSummary] = None

        for pass_number in range(1, self.passes + 1):
            strategy = strategy_for_pass(pass_number)
            batches = plan_batches(entries, self.batch_size, strategy)
            self._log_debug(
                "pass-start",
                {"pass": pass_number, "passes": self.passes, "strategy": strategy.value, "batches": len(batches)},
            )

            for batch_number, batch_entries in enumerate(batches, start=1):
                label = f"[Pass {pass_number}/{self.passes}] batch {batch_number}/{len(batches)}"
                batch_changes = [by_path[path] for path, _ in batch_entries if path in by_path]
                try:
                    response = self._summarizer.summarize_batch(
                        pr,
                        batch_changes,
                        batch_entries,
                        serialize_analysis(accumulated),
                    )
                    if response is None:
                        self._logger.error("%s produced no output", label)
                        continue
                    batch_result = _coerce_summary(response)
                except Exception as exc:
                    self._logger.error("%s failed: %s", label, exc)
                    continue

                accumulated = merge_overall_summaries(accumulated, batch_result)
                self._log_debug(
                    "batch-merged",
                    {"label": label, "files": [path for path, _ in batch_entries], "aspects": _aspect_keys(accumulated)},
                )

        if accumulated is None:
            self._logger.error("No results generated from any batch")
        return accumulated

    def attach_aspects(
        self,
        results: Mapping[str, SummarizeResult],
        overall: OverallSummary,
    ) -> Dict[str, SummarizeResult]:
        """Return copies of ``results`` with each file's aspects filled in."""
        updated: Dict[str, SummarizeResult] = {}
        for path, result in results.items():
            aspects = list(result.aspects)
            keys = {aspect.key for aspect in aspects}
            for mapping in overall.aspect_mappings:
                if path in mapping.files and mapping.key not in keys:
                    aspects.append(mapping.aspect)
                    keys.add(mapping.key)
            updated[path] = replace(result, aspects=tuple(aspects))
        return updated

    def _log_debug(self, event: str, extra: Mapping[str, object]) -> None:
        payload = {"event": event}
        payload.update(dict(extra))
        self._logger.debug("summary-service", extra={"summary": payload})


def _coerce_summary(response: Union[OverallSummary, Mapping[str, Any]]) -> OverallSummary:
    if isinstance(response, OverallSummary):
        return response
    if isinstance(response, Mapping):
        return OverallSummary.from_dict(response)
    raise SummaryParseError(f"Unexpected summarizer result of type {type(response).__name__}")


def _aspect_keys(summary: OverallSummary) -> List[str]:
    return [mapping.key for mapping in summary.aspect_mappings]
