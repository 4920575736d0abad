"""Shared exports for the change summaries feature."""
from __future__ import annotations

from .merge import merge_impact_levels, merge_overall_summaries, rank_by_impact
from .openrouter_client import (
    AuthenticationError,
    ChatCompletionResult,
    ClientConfigurationError,
    OpenRouterClient,
    OpenRouterError,
    RateLimitError,
    TransientError,
)
from .planning import BatchStrategy, plan_batches, strategy_for_pass
from .prompts import PromptDocument, PromptLoader, PromptValidationError
from .service import ChangeSummarizer, ReviewSummaryService
from .storage import load_report_metadata, render_report, write_report
from .summarizer import OpenRouterSummarizer
from .types import (
    Aspect,
    AspectMapping,
    FileAssessment,
    ImpactLevel,
    OverallSummary,
    PreparedReview,
    PullRequestInfo,
    SummarizeResult,
    SummaryParseError,
)


__all__ = [
    "Aspect",
    "AspectMapping",
    "ImpactLevel",
    "OverallSummary",
    "FileAssessment",
    "SummarizeResult",
    "PreparedReview",
    "PullRequestInfo",
    "SummaryParseError",
    "BatchStrategy",
    "plan_batches",
    "strategy_for_pass",
    "merge_overall_summaries",
    "merge_impact_levels",
    "rank_by_impact",
    "PromptLoader",
    "PromptDocument",
    "PromptValidationError",
    "render_report",
    "write_report",
    "load_report_metadata",
    "OpenRouterClient",
    "ChatCompletionResult",
    "OpenRouterError",
    "AuthenticationError",
    "RateLimitError",
    "TransientError",
    "ClientConfigurationError",
    "OpenRouterSummarizer",
    "ChangeSummarizer",
    "ReviewSummaryService",
]
