from __future__ import annotations

from dataclasses import asdict
from typing import Any

from nzunload.common.sanitize import truncateText
from nzunload.common.time import getNowIso
from nzunload.domain.reporting.models import ReportEnvelope, ReportMeta, ReportSummary


class ReportCollector:
    """
    Назначение/ответственность:
        Сборщик отчёта команды: счётчики строк, ошибки, контекст запуска.
    """

    def __init__(self, run_id: str, command: str, started_at: str | None = None) -> None:
        self.meta = ReportMeta(
            run_id=run_id,
            command=command,
            started_at=started_at or getNowIso(),
        )
        self.summary = ReportSummary()
        self.errors: list[dict[str, Any]] = []
        self.context: dict[str, Any] = {}
        self.status: str | None = None

    def set_context(self, name: str, value: dict[str, Any]) -> None:
        self.context[name] = value

    def add_rows(self, count: int) -> None:
        self.summary.rows_total += count

    def add_error(self, code: str, message: str) -> None:
        self.summary.errors_total += 1
        self.errors.append({"code": code, "message": truncateText(message)})

    def finish(self, finished_at: str | None = None, duration_ms: int | None = None) -> None:
        self.meta.finished_at = finished_at or getNowIso()
        self.meta.duration_ms = duration_ms
        if self.status is None:
            self.status = self._derive_status()

    def build(self) -> ReportEnvelope:
        return ReportEnvelope(
            status=self.status or self._derive_status(),
            meta=self.meta,
            summary=self.summary,
            errors=self.errors,
            context=self.context,
        )

    def _derive_status(self) -> str:
        return "FAILED" if self.summary.errors_total else "SUCCESS"


def asdict_report(envelope: ReportEnvelope) -> dict[str, Any]:
    return asdict(envelope)
