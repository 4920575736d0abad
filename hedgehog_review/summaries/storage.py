"""Render prepared reviews as Markdown and persist them with YAML front matter."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

import yaml

from .merge import rank_by_impact
from .types import PreparedReview

_FRONT_MATTER_DELIMITER = "---"


def create_collapsible_section(summary: str, content: str) -> str:
    return f"<details>\n<summary>{summary}</summary>\n\n{content}\n</details>"


def _table_cell(text: str) -> str:
    return " ".join(text.splitlines()).replace("|", "\\|")


def format_file_summary_table(file_summaries: Mapping[str, str]) -> str:
    rows = ["| File | Description |", "|------|-------------|"]
    for path, summary in file_summaries.items():
        rows.append(f"| `{path}` | {_table_cell(summary)} |")
    return "\n".join(rows)


def render_report(prepared: PreparedReview) -> str:
    """Render the consolidated summary as Markdown."""
    sections: List[str] = ["# Change Summary"]
    overall = prepared.overall_summary

    if overall is None:
        sections.append("_No overall summary could be generated._")
    else:
        sections.append(overall.description.strip() or "_No description._")
        if overall.aspect_mappings:
            rows = ["| Aspect | Impact | Description | Files |", "|--------|--------|-------------|-------|"]
            for mapping in rank_by_impact(overall.aspect_mappings):
                files = ", ".join(f"`{path}`" for path in mapping.files)
                description = _table_cell(mapping.aspect.description)
                rows.append(f"| {_table_cell(mapping.key)} | {mapping.aspect.impact.value} | {description} | {files} |")
            sections.append("## Aspects\n\n" + "\n".join(rows))
        if overall.cross_cutting_concerns:
            concerns = "\n".join(f"- {concern}" for concern in overall.cross_cutting_concerns)
            sections.append("## Cross-cutting Concerns\n\n" + concerns)

    summaries = {
        path: result.summary or result.reason for path, result in prepared.summarize_results.items()
    }
    if summaries:
        sections.append("## Files\n\n" + format_file_summary_table(summaries))

    skipped = [
        f"- `{path}`: {result.reason}"
        for path, result in prepared.summarize_results.items()
        if not result.needs_review
    ]
    if skipped:
        sections.append(
            create_collapsible_section(f"Files without detailed review ({len(skipped)})", "\n".join(skipped))
        )

    return "\n\n".join(sections) + "\n"


def write_report(
    markdown_path: Path,
    prepared: PreparedReview,
    metadata: Optional[Dict[str, object]] = None,
) -> Path:
    """Persist the report markdown with YAML front matter and return its path."""
    markdown_path = Path(markdown_path)
    markdown_path.parent.mkdir(parents=True, exist_ok=True)
    if metadata is None:
        metadata = {}
    if not isinstance(metadata, dict):
        raise TypeError("metadata must be a mapping")

    serialized_metadata = dict(metadata)
    serialized_metadata.setdefault("files", len(prepared.summarize_results))
    serialized_metadata.setdefault("files_needing_review", len(prepared.files_needing_review()))
    if prepared.overall_summary is not None:
        serialized_metadata.setdefault("aspects", [m.key for m in prepared.overall_summary.aspect_mappings])

    front_matter = yaml.safe_dump(serialized_metadata, sort_keys=True, allow_unicode=False).strip()
    sections = [f"{_FRONT_MATTER_DELIMITER}\n{front_matter}\n{_FRONT_MATTER_DELIMITER}", ""]
    sections.append(render_report(prepared))
    markdown_path.write_text("\n".join(sections), encoding="utf-8")
    return markdown_path


def load_report_metadata(markdown_path: Path) -> Dict[str, object]:
    """Read back the YAML front matter written by :func:`write_report`."""
    metadata, _ = _split_front_matter(Path(markdown_path).read_text(encoding="utf-8"))
    return metadata


def _split_front_matter(content: str) -> Tuple[Dict[str, object], str]:
    lines = content.splitlines()
    if not lines or lines[0].strip() != _FRONT_MATTER_DELIMITER:
        return {}, content

    for idx in range(1, len(lines)):
        if lines[idx].strip() == _FRONT_MATTER_DELIMITER:
            front_matter_text = "\n".join(lines[1:idx]).strip()
            metadata = yaml.safe_load(front_matter_text) if front_matter_text else {}
            if metadata is None:
                metadata = {}
            if not isinstance(metadata, dict):
                raise ValueError("Report front matter must deserialize to a mapping")
            return metadata, "\n".join(lines[idx + 1 :])

    return {}, content
