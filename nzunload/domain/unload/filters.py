from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

_BINARY_OPS = ("=", "<>", "<", "<=", ">", ">=")
_UNARY_OPS = ("IS NULL", "IS NOT NULL")
SUPPORTED_OPS = _BINARY_OPS + _UNARY_OPS + ("IN",)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]*(\.[A-Za-z_][A-Za-z0-9_$]*)*$")
_EXPRESSION = re.compile(
    r"^\s*(?P<column>[A-Za-z_][A-Za-z0-9_$.]*)\s*"
    r"(?:(?P<unary>is\s+not\s+null|is\s+null)"
    r"|(?P<op><>|!=|<=|>=|=|<|>)\s*(?P<value>.*?)"
    r"|in\s*\((?P<values>.*)\))\s*$",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class Filter:
    """
    Назначение:
        Предикат по одной колонке, переводимый в SQL-условие WHERE.

    Поля:
        column: str
        op: str
            Один из SUPPORTED_OPS.
        value: Any
            Литерал для бинарных операций, последовательность для IN, None для IS [NOT] NULL.
    """

    column: str
    op: str
    value: Any = None

    def __post_init__(self) -> None:
        if not _IDENTIFIER.match(self.column):
            raise ValueError(f"Invalid column name: {self.column!r}")
        if self.op not in SUPPORTED_OPS:
            raise ValueError(f"Unsupported filter operator: {self.op!r}")
        if self.op == "IN" and (isinstance(self.value, (str, bytes)) or not self.value):
            raise ValueError("IN filter requires a non-empty sequence of values")

    def to_sql(self) -> str:
        if self.op in _UNARY_OPS:
            return f"{self.column} {self.op}"
        if self.op == "IN":
            items = ", ".join(sql_literal(v) for v in self.value)
            return f"{self.column} IN ({items})"
        return f"{self.column} {self.op} {sql_literal(self.value)}"


@dataclass(frozen=True)
class DataSlicePartition:
    """
    Назначение:
        Диапазон data slice'ов Netezza, читаемый одним ридером.
    """

    lower: int
    upper: int

    def __post_init__(self) -> None:
        if self.lower < 0 or self.upper < self.lower:
            raise ValueError(f"Invalid data slice range: {self.lower}..{self.upper}")

    def to_sql(self) -> str:
        return f"DATASLICEID BETWEEN {self.lower} AND {self.upper}"


def sql_literal(value: Any) -> str:
    """
    Назначение:
        Преобразует Python-значение в SQL-литерал.
    """
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float)):
        return repr(value)
    text = str(value).replace("'", "''")
    return f"'{text}'"


def get_where_clause(filters: Iterable[Filter], partition: DataSlicePartition | None = None) -> str:
    """
    Назначение:
        Собирает WHERE из фильтров и диапазона data slice'ов.

    Выходные данные:
        str
            "WHERE a AND b" либо пустая строка, если условий нет.
    """
    predicates = [f.to_sql() for f in filters]
    if partition is not None:
        predicates.append(partition.to_sql())
    if not predicates:
        return ""
    return "WHERE " + " AND ".join(predicates)


def _parse_value(raw: str) -> Any:
    text = raw.strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        return text[1:-1]
    lowered = text.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return text


def parse_filter_expression(expression: str) -> Filter:
    """
    Назначение:
        Разбор фильтра из CLI: "age>=30", "name='Bob'", "city is null", "id in (1,2,3)".
    """
    m = _EXPRESSION.match(expression or "")
    if not m:
        raise ValueError(f"Cannot parse filter expression: {expression!r}")
    column = m.group("column")
    if m.group("unary"):
        op = " ".join(m.group("unary").upper().split())
        return Filter(column, op)
    if m.group("values") is not None:
        values = [_parse_value(v) for v in m.group("values").split(",") if v.strip()]
        return Filter(column, "IN", tuple(values))
    op = "<>" if m.group("op") == "!=" else m.group("op")
    return Filter(column, op, _parse_value(m.group("value")))


def parse_filter_expressions(expressions: Sequence[str] | None) -> list[Filter]:
    return [parse_filter_expression(e) for e in expressions or []]
