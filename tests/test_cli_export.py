import csv
import json
import os
import re

import pytest
from typer.testing import CliRunner

from nzunload.main import app

runner = CliRunner()

PIPE_RE = re.compile(r"CREATE EXTERNAL TABLE '([^']+)'")


class DummyUnloadCursor:
    def __init__(self, payload: bytes, error: Exception | None = None) -> None:
        self.payload = payload
        self.error = error
        self.queries: list[str] = []

    def execute(self, operation: str):
        self.queries.append(operation)
        with open(PIPE_RE.search(operation).group(1), "wb") as pipe:
            pipe.write(self.payload)
        if self.error is not None:
            raise self.error

    def close(self) -> None:
        pass


class DummyConnection:
    def __init__(self, cursor: DummyUnloadCursor) -> None:
        self._cursor = cursor
        self.closed = False

    def cursor(self):
        return self._cursor

    def close(self) -> None:
        self.closed = True


def patch_connection(monkeypatch, cursor: DummyUnloadCursor) -> DummyConnection:
    import nzunload.main as cli_module

    conn = DummyConnection(cursor)
    monkeypatch.setattr(cli_module, "openWarehouseConnection", lambda settings: conn)
    return conn


def base_args(tmp_path) -> list[str]:
    return [
        "--log-dir",
        str(tmp_path / "logs"),
        "--report-dir",
        str(tmp_path / "reports"),
        "--pipe-dir",
        str(tmp_path / "pipes"),
        "--run-id",
        "run-42",
        "--host",
        "nz.local",
        "--database",
        "SALES",
        "--username",
        "loader",
        "--password",
        "secret",
        "--encoding",
        "utf-8",
    ]


def read_report(tmp_path) -> dict:
    return json.loads((tmp_path / "reports" / "report_export_run-42.json").read_text(encoding="utf-8"))


def test_help_shows_commands():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "export" in result.stdout
    assert "show-query" in result.stdout


def test_show_query_prints_unload_sql(tmp_path):
    result = runner.invoke(
        app,
        [
            "--log-dir",
            str(tmp_path / "logs"),
            "--report-dir",
            str(tmp_path / "reports"),
            "show-query",
            "--table",
            "EMP",
            "--column",
            "ID",
            "--filter",
            "AGE>=30",
        ],
    )
    assert result.exit_code == 0
    assert "CREATE EXTERNAL TABLE '<pipe>'" in result.stdout
    assert "delimiter '\\x01'" in result.stdout
    assert "SELECT ID FROM EMP WHERE AGE >= 30" in result.stdout


def test_show_query_rejects_bad_filter(tmp_path):
    result = runner.invoke(
        app,
        ["--log-dir", str(tmp_path / "logs"), "--report-dir", str(tmp_path / "reports"),
         "show-query", "--table", "EMP", "--filter", "nonsense"],
    )
    assert result.exit_code == 2


@pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="named pipes require POSIX")
def test_export_writes_csv_and_report(tmp_path, monkeypatch):
    cursor = DummyUnloadCursor(b"1\x01alice\r\n2\x01null\r\n3\x01a\\\x01b\r\n")
    conn = patch_connection(monkeypatch, cursor)
    out = tmp_path / "out" / "emp.csv"

    result = runner.invoke(
        app,
        base_args(tmp_path)
        + ["export", "--table", "EMP", "--column", "ID", "--column", "NAME", "--out", str(out), "--header"],
    )

    assert result.exit_code == 0, result.output
    assert "password=***" in result.stdout
    assert "secret" not in result.stdout
    assert "rows=3" in result.stdout
    with open(out, encoding="utf-8", newline="") as f:
        assert list(csv.reader(f)) == [["ID", "NAME"], ["1", "alice"], ["2", ""], ["3", "a\x01b"]]
    assert conn.closed is True
    assert cursor.queries[0].endswith("AS SELECT ID,NAME FROM EMP")
    assert list((tmp_path / "pipes").iterdir()) == []

    report = read_report(tmp_path)
    assert report["status"] == "SUCCESS"
    assert report["summary"]["rows_total"] == 3
    assert report["meta"]["table"] == "EMP"
    assert report["context"]["outcome"]["rows"] == 3
    assert report["context"]["outcome"]["output_path"] == str(out)
    assert report["context"]["outcome"]["failure_code"] is None
    assert report["context"]["unload"]["database"] == "SALES"
    assert "secret" not in json.dumps(report)

    log_text = (tmp_path / "logs" / "export_run-42.log").read_text(encoding="utf-8")
    assert "External Table Query" in log_text
    assert "export finished rows=3" in log_text


@pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="named pipes require POSIX")
def test_export_reports_unload_failure(tmp_path, monkeypatch):
    cursor = DummyUnloadCursor(b"1\x01alice\n", error=RuntimeError("ERROR: permission denied"))
    patch_connection(monkeypatch, cursor)

    result = runner.invoke(
        app,
        base_args(tmp_path) + ["export", "--table", "EMP", "--out", str(tmp_path / "emp.csv")],
    )

    assert result.exit_code == 2
    report = read_report(tmp_path)
    assert report["status"] == "FAILED"
    assert report["errors"][0]["code"] == "UNLOAD_FAILED"
    assert report["context"]["outcome"]["failure_code"] == "UNLOAD_FAILED"
    assert report["context"]["outcome"]["table"] == "EMP"
    assert "permission denied" in report["errors"][0]["message"]
