from __future__ import annotations

import re


def maskSecret(value: str | None) -> str | None:
    """
    Назначение:
        Маскирует секреты для безопасного вывода в stdout/logs.

    Входные данные:
        value: str | None
            Исходное значение (например, пароль к хранилищу).

    Выходные данные:
        str | None
            Если value задано - возвращает '***', иначе None.
    """
    if value is None:
        return None
    return "***"


def truncateText(value: str | None, limit: int = 500) -> str | None:
    """
    Назначение:
        Ограничивает длину текста, чтобы SQL и сообщения об ошибках не раздували логи/отчёты.
    """
    if value is None:
        return None
    if len(value) <= limit:
        return value
    suffix = "..." if limit > 3 else ""
    head = limit - len(suffix)
    return value[:head] + suffix


_CONTROL_BYTES = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")


def printableSql(sql: str) -> str:
    """
    Назначение:
        Делает SQL пригодным для однострочного лога: управляющие символы
        (например, разделитель '\\001') выводятся как \\xNN.
    """
    return _CONTROL_BYTES.sub(lambda m: f"\\x{ord(m.group(0)):02x}", sql)
