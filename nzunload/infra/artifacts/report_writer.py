from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from nzunload.config import Settings
from nzunload.domain.reporting.collector import ReportCollector, asdict_report


def createEmptyReport(runId: str, command: str, settings: Settings, configSources: list[str]) -> ReportCollector:
    """
    Назначение:
        Создаёт отчёт-скелет команды с параметрами выгрузки.

    Входные данные:
        settings: Settings
            Источник контекста "unload" (каталог канала, кодировка, REMOTESOURCE).
            Пароль в отчёт не попадает.
    """
    collector = ReportCollector(run_id=runId, command=command)
    if configSources:
        collector.set_context("config", {"sources": configSources})
    collector.set_context(
        "unload",
        {
            "host": settings.host,
            "database": settings.database,
            "pipe_dir": settings.pipe_dir,
            "encoding": settings.encoding,
            "remote_source": settings.remote_source,
        },
    )
    return collector


def finalizeReport(report: ReportCollector, durationMs: int, logFile: str | None) -> None:
    """
    Назначение:
        Финализирует отчёт: длительность, путь к логу и итог выгрузки.

    Алгоритм:
        - "outcome" повторяет таблицу, файл выгрузки и число строк из meta/summary
          и добавляет код первой ошибки (None при успехе).
    """
    failureCode = report.errors[0]["code"] if report.errors else None
    report.set_context(
        "outcome",
        {
            "table": report.meta.table,
            "output_path": report.meta.output_path,
            "rows": report.summary.rows_total,
            "failure_code": failureCode,
            "log_file": logFile,
        },
    )
    report.finish(duration_ms=durationMs)


def reportFileName(command: str, runId: str) -> str:
    return f"report_{command}_{runId}.json"


def writeReportJson(report: ReportCollector, reportDir: str) -> str:
    """
    Назначение:
        Записывает report_<command>_<runId>.json на диск.

    Выходные данные:
        str
            Путь к файлу отчёта.
    """
    Path(reportDir).mkdir(parents=True, exist_ok=True)
    reportPath = str(Path(reportDir) / reportFileName(report.meta.command, report.meta.run_id))

    data: dict[str, Any] = asdict_report(report.build())

    with open(reportPath, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)

    return reportPath
