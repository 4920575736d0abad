from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional, Sequence

from .batcher import FilterConfig, collect_changed_files
from .changes import ChangeDescriptor, ChangeSourceError, ChangeStatus, JsonChangeSource
from .config import ReviewConfig, load_openrouter_api_key, load_review_config
from .instructions import resolve_instructions
from .summaries import (
    AuthenticationError,
    BatchStrategy,
    OpenRouterClient,
    OpenRouterError,
    OpenRouterSummarizer,
    PromptValidationError,
    PullRequestInfo,
    ReviewSummaryService,
    plan_batches,
    render_report,
    write_report,
)

DEFAULT_MODEL = "x-ai/grok-4-fast:free"


def build_openrouter_client() -> OpenRouterClient:
    api_key = load_openrouter_api_key()
    if not api_key:
        raise AuthenticationError(
            "OpenRouter API key not found. Set OPENROUTER_API_KEY or place a key in ~/.config/openrouter/key."
        )

    base_url = os.getenv("OPENROUTER_API_BASE", "https://openrouter.ai/api/v1")
    referer = os.getenv("OPENROUTER_REFERER") or None
    title = os.getenv("OPENROUTER_TITLE", "hedgehog-review") or None
    return OpenRouterClient(api_key=api_key, base_url=base_url, referer=referer, title=title)


def normalize_reasoning_effort(value: Optional[str]) -> Optional[str]:
    if value is None or value.lower() == "none":
        return None
    return value


def effective_filter(args: argparse.Namespace, config: ReviewConfig) -> FilterConfig:
    """Command-line filter options override the ones from the config file."""
    file_filter = config.file_filter
    overrides = {}
    if args.include:
        overrides["include"] = tuple(args.include)
    if args.exclude:
        overrides["exclude"] = tuple(args.exclude)
    if args.max_changes is not None:
        overrides["max_changes"] = args.max_changes
    if args.status:
        overrides["allowed_statuses"] = frozenset(ChangeStatus(status) for status in args.status)
    return replace(file_filter, **overrides) if overrides else file_filter


def collect_all(args: argparse.Namespace, config: ReviewConfig) -> List[ChangeDescriptor]:
    source = JsonChangeSource(args.changes)
    collected: List[ChangeDescriptor] = []
    for batch in collect_changed_files(source, effective_filter(args, config), args.batch_size):
        collected.extend(batch)
    return collected


def handle_filter(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    config = load_review_config(args.config)
    source = JsonChangeSource(args.changes)
    try:
        for number, batch in enumerate(
            collect_changed_files(source, effective_filter(args, config), args.batch_size), start=1
        ):
            print(f"Batch {number} ({len(batch)} files)")
            for change in batch:
                print(f"  {change.status.value:<9} {change.changes:>6}  {change.path}")
    except ChangeSourceError as exc:
        parser.error(str(exc))
        return 2
    return 0


def handle_instructions(args: argparse.Namespace) -> int:
    config = load_review_config(args.config)
    for index, path in enumerate(args.paths):
        if index:
            print()
        resolved = resolve_instructions(path, config.instructions)
        print(f"## {path}")
        print(resolved if resolved else "(no matching instructions)")
    return 0


def handle_plan(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    config = load_review_config(args.config)
    try:
        paths = [change.path for change in collect_all(args, config)]
    except ChangeSourceError as exc:
        parser.error(str(exc))
        return 2
    batch_size = _option_or(args.summary_batch_size, config.summary.batch_size)
    for number, batch in enumerate(plan_batches(paths, batch_size, BatchStrategy(args.strategy)), start=1):
        print(f"{number}: {', '.join(batch)}")
    return 0


def handle_summarize(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    if args.stdout and args.output:
        parser.error("Specify either --output or --stdout, not both.")

    config = load_review_config(args.config)
    try:
        changes = collect_all(args, config)
    except ChangeSourceError as exc:
        parser.error(str(exc))
        return 2

    try:
        client = build_openrouter_client()
    except OpenRouterError as exc:
        parser.error(str(exc))
        return 2

    with client:
        summarizer = OpenRouterSummarizer(
            client,
            args.model,
            language=config.language,
            temperature=args.temperature,
            max_tokens=args.max_tokens,
            reasoning_effort=normalize_reasoning_effort(args.reasoning_effort),
        )
        service = ReviewSummaryService(
            summarizer,
            instructions=config.instructions,
            batch_size=_option_or(args.summary_batch_size, config.summary.batch_size),
            passes=_option_or(args.passes, config.summary.passes),
            max_tokens=config.summary.max_tokens,
            token_margin=config.summary.token_margin,
            skip_simple_changes=config.skip_simple_changes,
        )
        pr = PullRequestInfo(title=args.title, body=args.body or "")
        try:
            prepared = service.prepare(pr, changes)
        except (PromptValidationError, FileNotFoundError) as exc:
            parser.error(str(exc))
            return 2

    if args.stdout:
        sys.stdout.write(render_report(prepared))
        return 0

    output = args.output or Path("review-summary.md")
    metadata = {"model": args.model, "title": args.title, "passes": service.passes, "batch_size": service.batch_size}
    write_report(output, prepared, metadata)
    print(f"Wrote summary for {len(changes)} files to {output}")
    if args.json:
        print(json.dumps(prepared.overall_summary.to_dict() if prepared.overall_summary else None, indent=2))
    return 0


def _option_or(value: Optional[int], default: int) -> int:
    return default if value is None else value


def _add_filter_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument("changes", type=Path, help="JSON array or JSON Lines file of changed files")
    p.add_argument("--batch-size", type=int, default=10, help="Files per emitted batch (default: 10)")
    p.add_argument("--include", action="append", help="Only process paths matching this glob (repeatable)")
    p.add_argument("--exclude", action="append", help="Skip paths matching this glob (repeatable)")
    p.add_argument("--max-changes", type=int, help="Skip files with more changed lines than this")
    p.add_argument(
        "--status",
        action="append",
        choices=[status.value for status in ChangeStatus],
        help="Only process files with this status (repeatable)",
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="hedgehog-review",
        description="Route changed files to review instructions and aggregate per-file summaries.",
    )
    p.add_argument(
        "--config",
        type=Path,
        default=Path(".coderabbitai.yaml"),
        help="Review configuration file (default: .coderabbitai.yaml)",
    )
    p.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: WARNING)",
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    p_filter = sub.add_parser("filter", help="Filter a change set and print the resulting batches")
    _add_filter_arguments(p_filter)

    p_instructions = sub.add_parser("instructions", help="Show the instructions that apply to file paths")
    p_instructions.add_argument("paths", nargs="+", help="Repository-relative file paths")

    p_plan = sub.add_parser("plan", help="Show how accepted files are grouped for aggregation")
    _add_filter_arguments(p_plan)
    p_plan.add_argument("--summary-batch-size", type=int, help="Files per aggregation batch")
    p_plan.add_argument(
        "--strategy",
        choices=[strategy.value for strategy in BatchStrategy],
        default=BatchStrategy.HORIZONTAL.value,
        help="Batching strategy (default: horizontal)",
    )

    p_summarize = sub.add_parser("summarize", help="Triage and aggregate a change set via OpenRouter")
    _add_filter_arguments(p_summarize)
    p_summarize.add_argument("--title", required=True, help="Pull request title")
    p_summarize.add_argument("--body", help="Pull request description")
    p_summarize.add_argument(
        "--model",
        default=DEFAULT_MODEL,
        help=f"OpenRouter model identifier to use (default: {DEFAULT_MODEL})",
    )
    p_summarize.add_argument(
        "--temperature",
        type=float,
        default=0.2,
        help="Sampling temperature for the completions (default: 0.2)",
    )
    p_summarize.add_argument("--max-tokens", type=int, help="Optional cap for completion tokens")
    p_summarize.add_argument(
        "--reasoning-effort",
        choices=["low", "medium", "high", "none"],
        default="none",
        help="Reasoning effort hint when supported by the chosen model (default: none)",
    )
    p_summarize.add_argument("--summary-batch-size", type=int, help="Files per aggregation batch")
    p_summarize.add_argument("--passes", type=int, help="Number of aggregation passes")
    p_summarize.add_argument("-o", "--output", type=Path, help="Report path (default: review-summary.md)")
    p_summarize.add_argument("--stdout", action="store_true", help="Print the report instead of writing it")
    p_summarize.add_argument("--json", action="store_true", help="Also print the overall summary as JSON")

    return p


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    for option in ("batch_size", "summary_batch_size", "passes"):
        value = getattr(args, option, None)
        if value is not None and value < 1:
            parser.error(f"--{option.replace('_', '-')} must be at least 1")

    if args.cmd == "filter":
        return handle_filter(args, parser)
    if args.cmd == "instructions":
        return handle_instructions(args)
    if args.cmd == "plan":
        return handle_plan(args, parser)
    if args.cmd == "summarize":
        return handle_summarize(args, parser)

    parser.error("Unknown command")
    return 2


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
