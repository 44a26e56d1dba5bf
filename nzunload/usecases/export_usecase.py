from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Callable, Sequence

from nzunload.domain.exceptions import RecordFormatError, UnloadError
from nzunload.infra.logging.setup import logEvent
from nzunload.infra.unload.reader import PipeRecordReader

PROGRESS_EVERY_ROWS = 100_000


class ExportUseCase:
    """
    Назначение/ответственность:
        Выгрузка таблицы хранилища в CSV-файл через PipeRecordReader.
    Взаимодействия:
        - reader_factory создаёт незапущенный PipeRecordReader.
        - Ридер закрывается всегда, включая путь ошибки.
    """

    def __init__(
        self,
        reader_factory: Callable[[], PipeRecordReader],
        null_text: str = "",
        progress_every: int = PROGRESS_EVERY_ROWS,
    ) -> None:
        self.reader_factory = reader_factory
        self.null_text = null_text
        self.progress_every = progress_every

    def run(
        self,
        out_path: str,
        header: Sequence[str] | None,
        logger: logging.Logger,
        run_id: str,
        report,
    ) -> int:
        """
        Контракт (вход/выход):
            Вход: путь выходного CSV, заголовок (или None).
            Выход: exit code (0 - успех, 1 - ошибка выгрузки).
        """
        Path(out_path).parent.mkdir(parents=True, exist_ok=True)
        rows = 0
        logEvent(logger, logging.INFO, run_id, "export", f"export start out={out_path}")
        try:
            with open(out_path, "w", encoding="utf-8", newline="") as f:
                writer = csv.writer(f)
                if header:
                    writer.writerow(header)
                with self.reader_factory() as reader:
                    for row in reader:
                        writer.writerow([self.null_text if v is None else v for v in row])
                        rows += 1
                        if self.progress_every and rows % self.progress_every == 0:
                            logEvent(logger, logging.INFO, run_id, "export", f"rows exported: {rows}")
        except UnloadError as exc:
            report.add_rows(rows)
            report.add_error(exc.code.value, exc.message)
            logEvent(logger, logging.ERROR, run_id, "export", f"export failed after {rows} rows: {exc}")
            return 1
        except RecordFormatError as exc:
            report.add_rows(rows)
            report.add_error(exc.code.value, str(exc))
            logEvent(logger, logging.ERROR, run_id, "export", f"bad record after {rows} rows: {exc}")
            return 1

        report.add_rows(rows)
        logEvent(logger, logging.INFO, run_id, "export", f"export finished rows={rows}")
        return 0
