from __future__ import annotations

from datetime import datetime


def getNowIso() -> str:
    """
    Назначение:
        Возвращает текущее время в ISO 8601 с timezone.
    """
    return datetime.now().astimezone().isoformat()


def getDurationMs(startMonotonic: float, endMonotonic: float) -> int:
    """
    Назначение:
        Считает длительность в миллисекундах по monotonic timestamps.
    """
    return int((endMonotonic - startMonotonic) * 1000)
