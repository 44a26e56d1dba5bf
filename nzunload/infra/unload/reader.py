from __future__ import annotations

import io
import locale
import logging
from contextlib import ExitStack
from enum import Enum
from typing import Sequence

from nzunload.common.sanitize import printableSql
from nzunload.domain.error_codes import ErrorCode
from nzunload.domain.exceptions import UnloadError
from nzunload.domain.ports.warehouse import ConnectionProtocol, CursorProtocol
from nzunload.domain.unload.filters import DataSlicePartition, Filter
from nzunload.domain.unload.query_builder import (
    DEFAULT_REMOTE_SOURCE,
    UNLOAD_DELIMITER,
    UNLOAD_ESCAPE,
    UNLOAD_NULL_VALUE,
    build_unload_query,
)
from nzunload.domain.unload.record_parser import RecordParser, Row
from nzunload.domain.unload.scanner import DEFAULT_CHUNK_SIZE, EscapedLineScanner, ScanState
from nzunload.infra.pipe.named_pipe import (
    DEFAULT_POLL_INTERVAL_SECONDS,
    create_pipe,
    delete_pipe,
    open_pipe_reader,
    release_blocked_writer,
)
from nzunload.infra.unload.producer import ProducerState, UnloadProducer

logger = logging.getLogger(__name__)


class ReaderCursor(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    BUFFERED = "BUFFERED"
    EXHAUSTED = "EXHAUSTED"
    CLOSED = "CLOSED"


class PipeRecordReader:
    """
    Назначение/ответственность:
        Ленивый итератор строк таблицы хранилища, читаемых из именованного канала.
        CREATE EXTERNAL TABLE выполняется в UnloadProducer, параллельно с чтением.
    Алгоритм:
        - start(): канал -> текст запроса -> cursor() -> поток-писатель -> открытие канала.
        - has_next(): упреждающее чтение одной записи.
        - Перед каждым чтением из канала проверяется отказ писателя.
        - На конце потока дожидаемся писателя и проверяем отказ ещё раз:
          оборванный канал после ошибки не выдаётся за чистый конец данных.
        - close(): идемпотентное освобождение ресурсов (см. close()).
    Ограничения:
        - Один потребитель; вызовы из нескольких потоков не поддерживаются.
        - Ошибка выгрузки терминальна, повтор - новым экземпляром.
    """

    def __init__(
        self,
        conn: ConnectionProtocol,
        table: str,
        columns: Sequence[str] = (),
        filters: Sequence[Filter] = (),
        partition: DataSlicePartition | None = None,
        *,
        pipe_dir: str | None = None,
        encoding: str | None = None,
        remote_source: str = DEFAULT_REMOTE_SOURCE,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        parser: RecordParser | None = None,
    ) -> None:
        self.conn = conn
        self.table = table
        self.columns = list(columns)
        self.filters = list(filters)
        self.partition = partition
        self.pipe_dir = pipe_dir
        self.encoding = encoding or locale.getpreferredencoding(False)
        self.remote_source = remote_source
        self.poll_interval = poll_interval
        self.chunk_size = chunk_size
        self.parser = parser or RecordParser(
            delimiter=UNLOAD_DELIMITER,
            escape=UNLOAD_ESCAPE,
            null_value=UNLOAD_NULL_VALUE,
            expected_columns=len(self.columns) or None,
        )

        self.pipe_path: str | None = None
        self.query: str | None = None
        self.rows_read = 0

        self._stmt: CursorProtocol | None = None
        self._producer: UnloadProducer | None = None
        self._input: io.RawIOBase | None = None
        self._scanner: EscapedLineScanner | None = None
        self._scan_state = ScanState()
        self._next_line: bytes | None = None
        self._cursor_state = ReaderCursor.NOT_STARTED
        self._failure: UnloadError | None = None
        self._started = False
        self._closed = False

    def start(self) -> "PipeRecordReader":
        """
        Назначение:
            Запускает выгрузку. Вынесено из конструктора, чтобы при ошибке
            вызывающий мог выполнить close() над уже созданными ресурсами.
        """
        if self._started:
            raise RuntimeError("reader already started")
        if self._closed:
            raise RuntimeError("reader is closed")
        self._started = True

        self.pipe_path = create_pipe(self.pipe_dir)
        self.query = build_unload_query(
            self.pipe_path,
            self.table,
            self.columns,
            self.filters,
            self.partition,
            remote_source=self.remote_source,
        )
        logger.info("External Table Query: %s", printableSql(self.query))

        # prepare before the thread starts so statement errors surface here
        try:
            self._stmt = self.conn.cursor()
        except Exception as exc:
            raise UnloadError(f"Failed to prepare unload statement: {exc}", ErrorCode.PREPARE_FAILED) from exc

        self._producer = UnloadProducer(self._stmt, self.query)
        self._producer.start()

        self._input = open_pipe_reader(self.pipe_path, self._producer.is_done, self.poll_interval)
        self._scanner = EscapedLineScanner(self._input, escape=UNLOAD_ESCAPE.encode("ascii"), chunk_size=self.chunk_size)
        return self

    def has_next(self) -> bool:
        """
        Контракт:
            True - есть буферизованная запись. Первый вызов читает запись из канала,
            последующие только сообщают о наличии буфера.
            Отказ писателя поднимается как UnloadError при каждом обращении.
        """
        if self._failure is not None:
            raise self._failure
        if self._cursor_state is ReaderCursor.NOT_STARTED:
            if self._scanner is None:
                raise RuntimeError("reader is not started")
            line = self._fetch()
            self._next_line = line
            self._cursor_state = ReaderCursor.BUFFERED if line is not None else ReaderCursor.EXHAUSTED
        return self._cursor_state is ReaderCursor.BUFFERED

    def __iter__(self) -> "PipeRecordReader":
        return self

    def __next__(self) -> Row:
        if not self.has_next():
            raise StopIteration
        if self._next_line is None:
            raise RuntimeError("reader has no buffered record")
        # malformed bytes decode to U+FFFD
        row = self.parser.parse(self._next_line.decode(self.encoding, errors="replace"))
        self.rows_read += 1
        # refresh lookahead; a failure here belongs to the following call
        try:
            line = self._fetch()
        except UnloadError as exc:
            self._failure = exc
            self._next_line = None
            return row
        self._next_line = line
        if line is None:
            self._cursor_state = ReaderCursor.EXHAUSTED
        return row

    def _fetch(self) -> bytes | None:
        self._raise_if_unload_failed()
        if self._scanner is None or self._producer is None:
            raise RuntimeError("reader is not started")
        line = self._scanner.read_record(self._scan_state)
        if self._scan_state.eof:
            # writer side is gone; trust the end of data only after the statement returned
            self._producer.await_completion()
            self._raise_if_unload_failed()
        return line

    def _raise_if_unload_failed(self) -> None:
        if self._producer is None or not self._producer.has_failed():
            return
        cause = self._producer.failure_cause()
        try:
            self.close()
        except UnloadError as close_exc:
            logger.warning("release after unload failure raised: %s", close_exc)
        error = UnloadError(f"Error creating external table pipe: {cause}", ErrorCode.UNLOAD_FAILED)
        self._failure = error
        raise error from cause

    def close(self) -> None:
        """
        Назначение:
            Идемпотентное освобождение ресурсов.
        Алгоритм (порядок важен):
            1. Писателю сообщается о досрочной остановке, если он ещё не упал.
            2. Закрывается оператор.
            3. Удаляется файл канала.
            4. Закрывается сторона чтения канала.
            5. Ожидается завершение потока-писателя.
            6. Ридер помечается закрытым.
            Каждый шаг выполняется, даже если предыдущий упал; ошибка
            поднимается как UnloadError(RELEASE_FAILED).
        """
        if self._closed:
            return
        try:
            with ExitStack() as stack:
                stack.callback(self._await_producer)
                stack.callback(self._close_input)
                stack.callback(self._close_pipe)
                stack.callback(self._close_statement)
                if self._producer is not None:
                    self._producer.request_early_abandon()
        except Exception as exc:
            raise UnloadError(f"Failed to release unload resources: {exc}", ErrorCode.RELEASE_FAILED) from exc
        finally:
            self._closed = True
            self._cursor_state = ReaderCursor.CLOSED
            self._next_line = None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def producer_state(self) -> ProducerState | None:
        return self._producer.state if self._producer is not None else None

    def _close_statement(self) -> None:
        if self._stmt is not None:
            stmt, self._stmt = self._stmt, None
            stmt.close()

    def _close_pipe(self) -> None:
        logger.info("close pipe")
        if self.pipe_path is None:
            return
        if self._input is None and self._producer is not None and not self._producer.is_done():
            release_blocked_writer(self.pipe_path)
        delete_pipe(self.pipe_path)

    def _close_input(self) -> None:
        logger.info("close input stream")
        self._scanner = None
        if self._input is not None:
            stream, self._input = self._input, None
            stream.close()

    def _await_producer(self) -> None:
        if self._producer is not None:
            self._producer.await_completion()

    def __enter__(self) -> "PipeRecordReader":
        try:
            return self.start()
        except BaseException:
            self.close()
            raise

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
