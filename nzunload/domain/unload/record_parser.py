from __future__ import annotations

from nzunload.domain.exceptions import RecordFormatError

DEFAULT_DELIMITER = "\001"
DEFAULT_ESCAPE = "\\"
DEFAULT_NULL_VALUE = "null"

Row = tuple[str | None, ...]


class RecordParser:
    """
    Назначение/ответственность:
        Разбор сырой записи выгрузки на поля.
    Алгоритм:
        - Неэкранированный разделитель завершает поле.
        - Символ после escape берётся буквально, сам escape удаляется.
        - Поле, целиком равное null_value и не содержащее экранирования, становится None.
    Ограничения:
        - Типизация полей (числа, даты, BoolStyle T_F) остаётся за потребителем строк.
    """

    def __init__(
        self,
        delimiter: str = DEFAULT_DELIMITER,
        escape: str = DEFAULT_ESCAPE,
        null_value: str = DEFAULT_NULL_VALUE,
        expected_columns: int | None = None,
    ) -> None:
        if len(delimiter) != 1 or len(escape) != 1:
            raise ValueError("delimiter and escape must be single characters")
        if delimiter == escape:
            raise ValueError("delimiter and escape must differ")
        self.delimiter = delimiter
        self.escape = escape
        self.null_value = null_value
        self.expected_columns = expected_columns

    def parse(self, line: str) -> Row:
        fields: list[str | None] = []
        current: list[str] = []
        had_escape = False
        escaped = False

        for ch in line:
            if escaped:
                current.append(ch)
                escaped = False
            elif ch == self.escape:
                escaped = True
                had_escape = True
            elif ch == self.delimiter:
                fields.append(self._finish(current, had_escape))
                current = []
                had_escape = False
            else:
                current.append(ch)

        if escaped:
            # trailing lone escape is kept as data
            current.append(self.escape)
        fields.append(self._finish(current, had_escape))

        if self.expected_columns is not None and len(fields) != self.expected_columns:
            raise RecordFormatError(
                f"Invalid column count: expected {self.expected_columns}, got {len(fields)}"
            )
        return tuple(fields)

    def _finish(self, chars: list[str], had_escape: bool) -> str | None:
        value = "".join(chars)
        if not had_escape and value == self.null_value:
            return None
        return value
