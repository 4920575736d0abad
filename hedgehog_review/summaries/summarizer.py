"""OpenRouter-backed implementation of the change summarizer."""
from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from ..changes import ChangeDescriptor
from .openrouter_client import OpenRouterClient
from .prompts import PromptLoader
from .types import FileAssessment, OverallSummary, PullRequestInfo, SummarizeResult, SummaryParseError

NO_CHANGES = "No changes"


class OpenRouterSummarizer:
    """Ask a chat model for per-file triage and per-batch aspect grouping."""

    def __init__(
        self,
        client: OpenRouterClient,
        model: str,
        *,
        prompt_loader: Optional[PromptLoader] = None,
        language: Optional[str] = None,
        temperature: float = 0.2,
        max_tokens: Optional[int] = None,
        reasoning_effort: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._client = client
        self.model = model
        self._prompts = prompt_loader or PromptLoader()
        self.language = language
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.reasoning_effort = reasoning_effort
        self._logger = logger or logging.getLogger(__name__)

    def summarize_file(
        self,
        pr: PullRequestInfo,
        change: ChangeDescriptor,
        needs_review_hint: bool,
    ) -> FileAssessment:
        if needs_review_hint:
            rule = "true if the changes require detailed review, otherwise false"
        else:
            rule = "false (fixed value for this file)"
        prompt = self._prompts.render(
            "triage",
            language_note=self._language_note(),
            title=pr.title,
            description=pr.body or "",
            file_path=change.path,
            patch=change.patch or NO_CHANGES,
            needs_review_rule=rule,
        )
        return FileAssessment.from_dict(self._complete_json(prompt))

    def summarize_batch(
        self,
        pr: PullRequestInfo,
        changes: Sequence[ChangeDescriptor],
        results: Sequence[Tuple[str, SummarizeResult]],
        previous_analysis: Optional[str],
    ) -> OverallSummary:
        prompt = self._prompts.render(
            "grouping",
            language_note=self._language_note(),
            previous_analysis_section=_previous_analysis_section(previous_analysis),
            title=pr.title,
            description=pr.body or "",
            batch_files="\n".join(_format_file(change) for change in changes),
            batch_summaries="\n".join(
                f"- {path}: {result.summary or 'No summary available'}" for path, result in results
            ),
        )
        return OverallSummary.from_dict(self._complete_json(prompt))

    def _complete_json(self, prompt: str) -> Any:
        messages: List[Mapping[str, str]] = [{"role": "user", "content": prompt}]
        result = self._client.generate(
            self.model,
            messages,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            reasoning_effort=self.reasoning_effort,
            json_mode=True,
        )
        self._logger.debug(
            "summarizer-completion",
            extra={"summary": {"model": self.model, "usage": dict(result.usage), "finish_reason": result.finish_reason}},
        )
        try:
            return result.json()
        except ValueError as exc:
            raise SummaryParseError(f"Model returned non-JSON content: {exc}") from exc

    def _language_note(self) -> str:
        if not self.language:
            return ""
        return f"\nWrite every free-text field in {self.language}.\n"


def _previous_analysis_section(previous_analysis: Optional[str]) -> str:
    if not previous_analysis:
        return ""
    return (
        "## Previous Analysis (reference for aspect consistency)\n\n"
        "The analysis of earlier batches is given below. Use it only to keep aspect keys consistent.\n\n"
        f"```json\n{previous_analysis}\n```\n"
    )


def _format_file(change: ChangeDescriptor) -> str:
    return f"### {change.path}\n\n```diff\n{change.patch or NO_CHANGES}\n```\n"

