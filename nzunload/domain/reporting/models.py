from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ReportMeta:
    """
    Назначение:
        Метаданные запуска команды выгрузки.
    """

    run_id: str
    command: str
    started_at: str
    table: str | None = None
    output_path: str | None = None
    finished_at: str | None = None
    duration_ms: int | None = None


@dataclass
class ReportSummary:
    rows_total: int = 0
    errors_total: int = 0


@dataclass
class ReportEnvelope:
    """
    Назначение:
        Корневой объект отчёта.
    """

    status: str
    meta: ReportMeta
    summary: ReportSummary
    errors: list[dict[str, Any]]
    context: dict[str, Any] = field(default_factory=dict)
