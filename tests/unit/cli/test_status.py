"""Tests for dashrag status command and top-level app options."""

from __future__ import annotations

from typer.testing import CliRunner

from dashrag.cli.main import app

runner = CliRunner()


# ---------------------------------------------------------------------------
# dashrag --version / version
# ---------------------------------------------------------------------------


def test_version_flag_exits_zero() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "dashrag" in result.output.lower()


def test_version_command() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert result.output.startswith("dashrag ")


def test_help_lists_commands() -> None:
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for command in ("ingest", "query", "data", "remove", "history", "status"):
        assert command in result.output


def test_bad_log_level_rejected(cli_env) -> None:
    result = runner.invoke(app, ["--log-level", "loud", "status"])
    assert result.exit_code == 2


# ---------------------------------------------------------------------------
# dashrag status
# ---------------------------------------------------------------------------


def test_status_without_db(cli_env) -> None:
    result = runner.invoke(app, ["status"])
    assert result.exit_code == 0
    assert "No database found" in result.output
    assert "openai/gpt-4o-mini" in result.output


def test_status_lists_sources(cli_env, report_csv) -> None:
    runner.invoke(app, ["ingest", str(report_csv)])
    result = runner.invoke(app, ["status"])
    assert result.exit_code == 0, result.output
    assert "report.csv" in result.output
    assert "Knowledge Base" in result.output
    assert "Schema version: 1" in result.output


def test_status_empty_db(cli_env, report_csv) -> None:
    runner.invoke(app, ["ingest", str(report_csv)])
    runner.invoke(app, ["remove", "--source", "report.csv", "--yes"])
    result = runner.invoke(app, ["status"])
    assert "Knowledge base is empty" in result.output


def test_invalid_config_exits_1(cli_env) -> None:
    (cli_env.path / "dashrag.yaml").write_text(
        "retrieval:\n  fallback_policy: blend\n", encoding="utf-8"
    )
    result = runner.invoke(app, ["status"])
    assert result.exit_code == 1
    assert "fallback_policy" in result.output
