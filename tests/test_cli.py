"""
Tests for the hedgehog-review command line.
"""
import json

import httpx
import pytest

from hedgehog_review import cli
from hedgehog_review.summaries import OpenRouterClient, load_report_metadata

from conftest import summary_payload


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / ".coderabbitai.yaml"
    path.write_text(
        """
path_instructions:
  - path: "src/api/**"
    instructions: "Check auth."
  - path: "src/api/payments.ts"
    instructions: "Check idempotency."
"""
    )
    return path


def test_filter_prints_batches(changes_file, config_file, capsys):
    code = cli.main(["--config", str(config_file), "filter", str(changes_file), "--batch-size", "2"])
    out = capsys.readouterr().out
    assert code == 0
    assert "Batch 1 (2 files)" in out
    assert "Batch 2 (1 files)" in out
    assert "yarn.lock" not in out


def test_filter_options_override_config(changes_file, config_file, capsys):
    code = cli.main(
        ["--config", str(config_file), "filter", str(changes_file), "--status", "added", "--max-changes", "5"]
    )
    out = capsys.readouterr().out
    assert code == 0
    assert "docs/README.md" in out
    assert "src/api/users.ts" not in out


def test_filter_missing_changes_file(tmp_path, capsys):
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--config", str(tmp_path / "none.yaml"), "filter", str(tmp_path / "absent.json")])
    assert excinfo.value.code == 2
    assert "Change file not found" in capsys.readouterr().err


def test_instructions_command(config_file, capsys):
    code = cli.main(["--config", str(config_file), "instructions", "src/api/payments.ts", "README.md"])
    out = capsys.readouterr().out
    assert code == 0
    assert "## src/api/payments.ts\nCheck idempotency.\n\nCheck auth." in out
    assert "## README.md\n(no matching instructions)" in out


def test_plan_command(changes_file, config_file, capsys):
    code = cli.main(
        ["--config", str(config_file), "plan", str(changes_file), "--summary-batch-size", "2", "--strategy", "vertical"]
    )
    out = capsys.readouterr().out.splitlines()
    assert code == 0
    assert out == ["1: src/api/payments.ts, docs/README.md", "2: src/api/users.ts"]


def test_invalid_batch_size_is_rejected(changes_file):
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["filter", str(changes_file), "--batch-size", "0"])
    assert excinfo.value.code == 2


@pytest.mark.parametrize(
    "argv, option",
    [
        (["plan", "--summary-batch-size", "0"], "--summary-batch-size"),
        (["summarize", "--title", "t", "--summary-batch-size", "0"], "--summary-batch-size"),
        (["summarize", "--title", "t", "--passes", "0"], "--passes"),
        (["summarize", "--title", "t", "--passes", "-1"], "--passes"),
    ],
)
def test_zero_or_negative_summary_options_are_rejected(changes_file, tmp_path, capsys, argv, option):
    """Explicit values below 1 must not fall back to the config defaults."""
    command, *rest = argv
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--config", str(tmp_path / "none.yaml"), command, str(changes_file), *rest])
    assert excinfo.value.code == 2
    assert f"{option} must be at least 1" in capsys.readouterr().err


def fake_openrouter(request):
    prompt = json.loads(request.content)["messages"][0]["content"]
    if "initial triage" in prompt:
        content = {"summary": "Adjusts payment flow", "needsReview": True, "reason": ""}
    else:
        content = summary_payload("Payment retries", ("payments", "high", ["src/api/payments.ts"]))
    body = {"choices": [{"message": {"content": json.dumps(content)}, "finish_reason": "stop"}], "usage": {}}
    return httpx.Response(200, json=body)


def test_summarize_writes_report(changes_file, config_file, tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(
        cli,
        "build_openrouter_client",
        lambda: OpenRouterClient("sk-test", transport=httpx.MockTransport(fake_openrouter), max_retries=0),
    )
    output = tmp_path / "review.md"

    code = cli.main(
        [
            "--config",
            str(config_file),
            "summarize",
            str(changes_file),
            "--title",
            "Add payment retries",
            "--model",
            "test/model",
            "-o",
            str(output),
        ]
    )

    assert code == 0
    assert "Wrote summary for 3 files" in capsys.readouterr().out
    metadata = load_report_metadata(output)
    assert metadata["model"] == "test/model"
    assert metadata["files"] == 3
    assert metadata["aspects"] == ["payments"]
    assert "| payments | high |" in output.read_text(encoding="utf-8")


def test_summarize_without_api_key(changes_file, tmp_path, monkeypatch):
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
    monkeypatch.setattr("hedgehog_review.cli.load_openrouter_api_key", lambda: None)
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--config", str(tmp_path / "none.yaml"), "summarize", str(changes_file), "--title", "t"])
    assert excinfo.value.code == 2


def test_summarize_output_and_stdout_conflict(changes_file, tmp_path):
    with pytest.raises(SystemExit):
        cli.main(["summarize", str(changes_file), "--title", "t", "--stdout", "-o", str(tmp_path / "x.md")])
