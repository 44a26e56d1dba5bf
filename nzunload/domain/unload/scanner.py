from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

CR = 0x0D
LF = 0x0A
DEFAULT_ESCAPE = b"\\"
DEFAULT_CHUNK_SIZE = 64 * 1024


class ByteSourceProtocol(Protocol):
    """
    Назначение/ответственность:
        Источник байтов для сканера (конец чтения канала, BytesIO в тестах).
    Контракт:
        read(size) возвращает от 1 до size байт; b"" означает конец потока.
    """

    def read(self, size: int = -1) -> bytes:
        ...


@dataclass
class ScanState:
    """
    Назначение:
        Состояние сканера, переживающее границы вызовов read_record.

    Поля:
        skip_lf: bool
            Предыдущая запись закончилась на CR; LF в начале следующего вызова
            относится к той же паре CRLF и отбрасывается.
        pending: bytes
            Прочитанные из источника, но ещё не разобранные байты.
        pos: int
            Позиция первого неразобранного байта в pending.
        eof: bool
            Источник вернул конец потока.
        terminated: bool
            Последняя возвращённая запись закончилась переводом строки
            (False - запись оборвана концом потока).
    """

    skip_lf: bool = False
    pending: bytes = b""
    pos: int = 0
    eof: bool = False
    terminated: bool = False


class EscapedLineScanner:
    """
    Назначение/ответственность:
        Побайтовый автомат, выделяющий записи из потока выгрузки.
        Перевод строки - CR, LF или CRLF. Перевод строки сразу после активного
        escape-символа считается данными. Экранированный escape-символ
        не экранирует следующий байт.
    Ограничения:
        - Не потокобезопасен: вызывается только из одного потребителя.
        - Escape-символы остаются в записи, их снимает разбор полей.
    """

    def __init__(
        self,
        source: ByteSourceProtocol,
        escape: bytes = DEFAULT_ESCAPE,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        if len(escape) != 1:
            raise ValueError("escape must be a single byte")
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        self._source = source
        self._escape = escape[0]
        self._chunk_size = chunk_size

    def read_record(self, state: ScanState) -> bytes | None:
        """
        Контракт (вход/выход):
            Вход: ScanState, принадлежащий этому сканеру.
            Выход: байты следующей записи без завершающего перевода строки;
                None - поток исчерпан и буфер пуст.
        Алгоритм:
            - Если предыдущая запись закончилась на CR, первый LF пропускается.
            - CR/LF после активного escape добавляются в запись. Экранируется
              только один байт: LF после экранированного CR завершает запись.
            - Неэкранированный CR/LF завершает запись; CR выставляет skip_lf.
            - Второй escape подряд гасит первый: после него escape не активен.
            - Конец потока при непустом буфере отдаёт буфер как последнюю запись.
        """
        record = bytearray()
        escaped = False
        state.terminated = False

        while True:
            if state.pos >= len(state.pending):
                if not self._fill(state):
                    break

            c = state.pending[state.pos]
            state.pos += 1

            if state.skip_lf:
                state.skip_lf = False
                if c == LF:
                    continue

            if c == CR or c == LF:
                if escaped:
                    record.append(c)
                    escaped = False
                    continue
                if c == CR:
                    state.skip_lf = True
                state.terminated = True
                return bytes(record)

            record.append(c)
            if c == self._escape:
                # escaped escape is plain data for the next byte
                escaped = not escaped
            else:
                escaped = False

        if record:
            return bytes(record)
        return None

    def _fill(self, state: ScanState) -> bool:
        if state.eof:
            return False
        chunk = self._source.read(self._chunk_size)
        if not chunk:
            state.eof = True
            state.pending = b""
            state.pos = 0
            return False
        state.pending = chunk
        state.pos = 0
        return True
