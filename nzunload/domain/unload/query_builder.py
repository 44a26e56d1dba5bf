from __future__ import annotations

import re
from typing import Sequence

from nzunload.domain.unload.filters import DataSlicePartition, Filter, get_where_clause

UNLOAD_DELIMITER = "\001"
UNLOAD_ESCAPE = "\\"
UNLOAD_NULL_VALUE = "null"
UNLOAD_BOOL_STYLE = "T_F"
DEFAULT_REMOTE_SOURCE = "PYTHON"

_TABLE_NAME = re.compile(r"^[A-Za-z_\"][A-Za-z0-9_$.\"]*$")


def build_select(
    table: str,
    columns: Sequence[str],
    filters: Sequence[Filter] = (),
    partition: DataSlicePartition | None = None,
) -> str:
    """
    Назначение:
        Базовый SELECT для выгрузки. Без колонок выбирается константа 1:
        одна запись на строку таблицы.
    """
    if not _TABLE_NAME.match(table or ""):
        raise ValueError(f"Invalid table name: {table!r}")
    column_list = ",".join(columns) if columns else "1"
    where_clause = get_where_clause(filters, partition)
    return f"SELECT {column_list} FROM {table} {where_clause}".rstrip()


def build_unload_query(
    pipe_path: str,
    table: str,
    columns: Sequence[str],
    filters: Sequence[Filter] = (),
    partition: DataSlicePartition | None = None,
    remote_source: str = DEFAULT_REMOTE_SOURCE,
) -> str:
    """
    Назначение:
        Строит CREATE EXTERNAL TABLE, выгружающий результат SELECT в именованный канал.

    Входные данные:
        pipe_path: str
            Путь к каналу на стороне клиента.
        table, columns, filters, partition
            Что выгружать.
        remote_source: str
            Тег драйвера, который принимает поток (REMOTESOURCE).

    Выходные данные:
        str

    Инварианты:
        - Разделитель, escape, NullValue и BoolStyle фиксированы и совпадают
          с настройками EscapedLineScanner и RecordParser.
    """
    if "'" in pipe_path:
        raise ValueError(f"Pipe path must not contain quotes: {pipe_path!r}")
    base_query = build_select(table, columns, filters, partition)
    return (
        f"CREATE EXTERNAL TABLE '{pipe_path}'"
        f" USING (delimiter '{UNLOAD_DELIMITER}'"
        f" escapeChar '{UNLOAD_ESCAPE}'"
        f" REMOTESOURCE '{remote_source}'"
        f" NullValue '{UNLOAD_NULL_VALUE}'"
        f" BoolStyle '{UNLOAD_BOOL_STYLE}')"
        f" AS {base_query}"
    )
