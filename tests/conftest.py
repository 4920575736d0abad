"""
Pytest fixtures for hedgehog-review tests.

Provides change descriptors and a scripted summarizer that stand in for a
VCS host and a chat model.
"""
import json

import pytest

from hedgehog_review.changes import ChangeDescriptor, ChangeStatus
from hedgehog_review.summaries import FileAssessment, OverallSummary, PullRequestInfo


def make_change(path, patch="+x = 1", changes=1, status=ChangeStatus.MODIFIED):
    return ChangeDescriptor(path=path, patch=patch, changes=changes, status=status)


def summary_payload(description, *mappings, concerns=None):
    """Build a wire-format overall summary from (key, impact, files) tuples."""
    payload = {
        "description": description,
        "aspectMappings": [
            {"aspect": {"key": key, "description": f"{key} changes", "impact": impact}, "files": list(files)}
            for key, impact, files in mappings
        ],
    }
    if concerns is not None:
        payload["crossCuttingConcerns"] = list(concerns)
    return payload


class ScriptedSummarizer:
    """Summarizer double that records its calls and replays canned batch results."""

    def __init__(self, batch_responses=None, file_assessments=None):
        self.batch_responses = list(batch_responses or [])
        self.file_assessments = dict(file_assessments or {})
        self.file_calls = []
        self.batch_calls = []

    def summarize_file(self, pr, change, needs_review_hint):
        self.file_calls.append((change.path, needs_review_hint))
        outcome = self.file_assessments.get(change.path)
        if isinstance(outcome, Exception):
            raise outcome
        if outcome is not None:
            return outcome
        return FileAssessment(summary=f"Summary of {change.path}", needs_review=True)

    def summarize_batch(self, pr, changes, results, previous_analysis):
        self.batch_calls.append(
            {
                "paths": [path for path, _ in results],
                "previous_analysis": json.loads(previous_analysis) if previous_analysis else None,
            }
        )
        response = self.batch_responses.pop(0) if self.batch_responses else None
        if isinstance(response, Exception):
            raise response
        if isinstance(response, dict):
            return OverallSummary.from_dict(response)
        return response


@pytest.fixture
def pr():
    return PullRequestInfo(title="Add payment retries", body="Retries failed charges.")


@pytest.fixture
def sample_changes():
    return [
        make_change("src/api/payments.ts", patch="+retry()\n-return", changes=2),
        make_change("src/api/users.ts", patch="+validate()", changes=1),
        make_change("docs/README.md", patch="+More docs", changes=1, status=ChangeStatus.ADDED),
        make_change("yarn.lock", patch="+lock", changes=400),
    ]


@pytest.fixture
def changes_file(tmp_path, sample_changes):
    path = tmp_path / "changes.json"
    path.write_text(json.dumps([change.to_dict() for change in sample_changes]), encoding="utf-8")
    return path
