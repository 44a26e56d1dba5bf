import json

from nzunload.config import Settings
from nzunload.infra.artifacts.report_writer import createEmptyReport, finalizeReport, writeReportJson


def test_report_carries_unload_context_and_outcome(tmp_path):
    settings = Settings(host="nz.local", database="SALES", password="secret", pipe_dir="/var/pipes")
    report = createEmptyReport(runId="r1", command="export", settings=settings, configSources=["env"])
    report.meta.table = "EMP"
    report.meta.output_path = "emp.csv"
    report.add_rows(5)
    report.add_error("UNLOAD_FAILED", "boom")

    finalizeReport(report, durationMs=12, logFile="export_r1.log")
    path = writeReportJson(report, str(tmp_path / "reports"))

    assert path.endswith("report_export_r1.json")
    data = json.loads(open(path, encoding="utf-8").read())
    assert data["status"] == "FAILED"
    assert data["meta"]["duration_ms"] == 12
    assert data["context"]["config"] == {"sources": ["env"]}
    assert data["context"]["unload"]["pipe_dir"] == "/var/pipes"
    assert data["context"]["outcome"] == {
        "table": "EMP",
        "output_path": "emp.csv",
        "rows": 5,
        "failure_code": "UNLOAD_FAILED",
        "log_file": "export_r1.log",
    }
    assert "secret" not in json.dumps(data)
