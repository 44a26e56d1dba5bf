from __future__ import annotations

import uuid


def generate_run_id() -> str:
    """
    Назначение:
        Сгенерировать run_id для запуска команды выгрузки.
    """
    return str(uuid.uuid4())


def generate_pipe_token() -> str:
    """
    Назначение:
        Короткий уникальный токен для имени именованного канала.
    """
    return uuid.uuid4().hex[:16]
