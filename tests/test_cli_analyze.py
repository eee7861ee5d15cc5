"""Tests for the rulesmith analyze and estimate CLI commands.

The analysis client is patched out so no network access is needed.
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from typer.testing import CliRunner

from rulesmith import __version__
from rulesmith.cli.main import app
from rulesmith.models.result import (
    AnalysisPayload,
    QuickAnalysisResult,
    RunResult,
    TokenEstimate,
)
from rulesmith.streaming.events import Completed, Status

runner = CliRunner()

DATASET = "transaction_id,amount,country\nt1,12.50,US\nt2,980.00,NG\n"
PAYLOAD = AnalysisPayload.model_validate(
    {"rules": [{"rule_name": "High value abroad", "risk_score": 90, "conditions": "amount > 500"}]}
)


@pytest.fixture(autouse=True)
def _isolated(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("RULESMITH_ENDPOINT", "https://analysis.test")
    monkeypatch.setenv("RULESMITH_API_KEY", "test-key-1234567890")


def _write_dataset(tmp_path: Path, content: str = DATASET) -> Path:
    path = tmp_path / "march.csv"
    path.write_text(content, encoding="utf-8")
    return path


def _mock_client(
    quick: QuickAnalysisResult | None = None,
    stream: RunResult | None = None,
    events: list | None = None,
) -> MagicMock:
    client = MagicMock()
    client.analyze = AsyncMock(return_value=quick)

    async def analyze_stream(text, instructions, *, observer=None, file_name=None):
        for event in events or []:
            observer(event)
        return stream

    client.analyze_stream = AsyncMock(side_effect=analyze_stream)
    return client


class TestAnalyzeCommand:
    """Test rulesmith analyze."""

    def test_quick_success(self, tmp_path: Path):
        path = _write_dataset(tmp_path)
        client = _mock_client(
            quick=QuickAnalysisResult(
                success=True,
                data=PAYLOAD,
                estimate=TokenEstimate(original_record_count=2, processed_record_count=2),
                elapsed_seconds=1.2,
            )
        )

        with patch("rulesmith.cli.analyze_cmd.AnalysisClient", return_value=client):
            result = runner.invoke(app, ["analyze", str(path), "-i", "focus on amounts"])

        assert result.exit_code == 0, f"Output: {result.output}"
        assert "High value abroad" in result.output
        client.analyze.assert_awaited_once_with(DATASET, "focus on amounts", file_name="march.csv")

    def test_quick_failure_exit_code(self, tmp_path: Path):
        path = _write_dataset(tmp_path)
        client = _mock_client(quick=QuickAnalysisResult(success=False, error="Model unavailable"))

        with patch("rulesmith.cli.analyze_cmd.AnalysisClient", return_value=client):
            result = runner.invoke(app, ["analyze", str(path)])

        assert result.exit_code == 1
        assert "Model unavailable" in result.output

    def test_deep_renders_events(self, tmp_path: Path):
        path = _write_dataset(tmp_path)
        client = _mock_client(
            stream=RunResult(success=True, data=PAYLOAD, thread_id="thr_42"),
            events=[
                Status(step=1, status="running", text="Uploading dataset"),
                Completed(data={"rules": []}, text="Analysis completed"),
            ],
        )

        with patch("rulesmith.cli.analyze_cmd.AnalysisClient", return_value=client):
            result = runner.invoke(app, ["analyze", str(path), "--deep"])

        assert result.exit_code == 0, f"Output: {result.output}"
        assert "Uploading dataset" in result.output
        assert "thr_42" in result.output
        client.analyze.assert_not_called()

    def test_deep_json_output(self, tmp_path: Path):
        path = _write_dataset(tmp_path)
        client = _mock_client(
            stream=RunResult(success=True, data=PAYLOAD, thread_id="thr_1"),
            events=[Status(step=1, status="running", text="Uploading dataset")],
        )

        with patch("rulesmith.cli.analyze_cmd.AnalysisClient", return_value=client):
            result = runner.invoke(app, ["analyze", str(path), "--deep", "--json"])

        assert result.exit_code == 0
        parsed = json.loads(result.stdout)
        assert parsed["thread_id"] == "thr_1"
        assert parsed["data"]["rules"][0]["rule_name"] == "High value abroad"

    def test_missing_file(self, tmp_path: Path):
        result = runner.invoke(app, ["analyze", str(tmp_path / "nope.csv")])
        assert result.exit_code == 1
        assert "File not found" in result.output

    def test_invalid_dataset(self, tmp_path: Path):
        path = _write_dataset(tmp_path, "name,age\nann,3\n")
        result = runner.invoke(app, ["analyze", str(path)])
        assert result.exit_code == 1
        assert "transaction-related" in result.output

    def test_missing_credentials(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("RULESMITH_API_KEY")
        path = _write_dataset(tmp_path)

        result = runner.invoke(app, ["analyze", str(path)])

        assert result.exit_code == 2
        assert "API key" in result.output

    def test_project_config_is_read(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("RULESMITH_ENDPOINT")
        (tmp_path / "rulesmith.yaml").write_text(
            "client:\n  endpoint: https://from-file.test\n", encoding="utf-8"
        )
        path = _write_dataset(tmp_path)
        client = _mock_client(quick=QuickAnalysisResult(success=True, data=PAYLOAD))

        with patch("rulesmith.cli.analyze_cmd.AnalysisClient", return_value=client) as factory:
            result = runner.invoke(app, ["analyze", str(path)])

        assert result.exit_code == 0, f"Output: {result.output}"
        client_config = factory.call_args.args[0]
        assert client_config.endpoint == "https://from-file.test"


class TestEstimateCommand:
    """Test rulesmith estimate."""

    def test_json(self, tmp_path: Path):
        path = _write_dataset(tmp_path)
        result = runner.invoke(app, ["estimate", str(path), "--json"])

        assert result.exit_code == 0
        parsed = json.loads(result.stdout)
        assert parsed["original_record_count"] == 2
        assert parsed["sampling_applied"] is False

    def test_record_cap_from_config(self, tmp_path: Path):
        (tmp_path / "rulesmith.yaml").write_text(
            "estimator:\n"
            "  max_records: 50\n"
            "  target_records: 50\n"
            "  max_tokens: null\n"
            "  target_tokens: null\n",
            encoding="utf-8",
        )
        rows = "\n".join(f"t{i},{i}" for i in range(120))
        path = _write_dataset(tmp_path, f"transaction_id,amount\n{rows}\n")

        result = runner.invoke(app, ["estimate", str(path), "--json"])

        parsed = json.loads(result.stdout)
        assert parsed["processed_record_count"] == 50
        assert parsed["sampling_applied"] is True

    def test_table(self, tmp_path: Path):
        path = _write_dataset(tmp_path)
        result = runner.invoke(app, ["estimate", str(path)])
        assert result.exit_code == 0
        assert "2/2" in result.output

    def test_missing_file(self, tmp_path: Path):
        result = runner.invoke(app, ["estimate", str(tmp_path / "missing.csv")])
        assert result.exit_code == 1


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output
