from __future__ import annotations

import nzpy

from nzunload.config import Settings
from nzunload.domain.error_codes import ErrorCode
from nzunload.domain.exceptions import UnloadError
from nzunload.domain.ports.warehouse import ConnectionProtocol


def missingConnectionSettings(settings: Settings) -> list[str]:
    """
    Назначение:
        Список незаполненных параметров подключения к хранилищу.
    """
    missing = []
    if not settings.host:
        missing.append("host")
    if not settings.port:
        missing.append("port")
    if not settings.database:
        missing.append("database")
    if not settings.username:
        missing.append("username")
    if not settings.password:
        missing.append("password")
    return missing


def openWarehouseConnection(settings: Settings) -> ConnectionProtocol:
    """
    Назначение:
        Открывает DB-API соединение с Netezza через nzpy.

    Поведение:
        - Ошибки драйвера оборачиваются в UnloadError(CONNECTION_ERROR).
    """
    try:
        return nzpy.connect(
            user=settings.username,
            password=settings.password,
            host=settings.host,
            port=settings.port,
            database=settings.database,
        )
    except Exception as exc:
        raise UnloadError(
            f"Failed to connect to {settings.host}:{settings.port}/{settings.database}: {exc}",
            ErrorCode.CONNECTION_ERROR,
        ) from exc
