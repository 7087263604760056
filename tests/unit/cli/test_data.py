"""Tests for dashrag data command."""

from __future__ import annotations

import json

from typer.testing import CliRunner

from dashrag.cli.main import app

runner = CliRunner()


def test_data_no_db_exits_1(cli_env) -> None:
    result = runner.invoke(app, ["data"])
    assert result.exit_code == 1
    assert "No database" in result.output


def test_data_lists_snapshots(cli_env, report_csv) -> None:
    runner.invoke(app, ["ingest", str(report_csv)])
    result = runner.invoke(app, ["data"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    [snapshot] = payload["data"]
    assert snapshot["source"] == "report.csv"
    assert snapshot["table_data"] == [{"Name": "A", "Value": "1"}, {"Name": "B", "Value": "2"}]


def test_data_source_filter(cli_env, report_csv) -> None:
    runner.invoke(app, ["ingest", str(report_csv)])
    result = runner.invoke(app, ["data", "--source", "other.csv"])
    assert result.exit_code == 0
    assert json.loads(result.output) == {"data": []}
