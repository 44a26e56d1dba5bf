from __future__ import annotations

from typing import Any, Protocol


class CursorProtocol(Protocol):
    """
    Назначение/ответственность:
        Подготовленный оператор DB-API, выполняющий выгрузку.
    Взаимодействия:
        execute() вызывается в потоке UnloadProducer, close() - из PipeRecordReader.close().
    """

    def execute(self, operation: str, *args: Any) -> Any:
        ...

    def close(self) -> None:
        ...


class ConnectionProtocol(Protocol):
    """
    Назначение/ответственность:
        Соединение DB-API с хранилищем (nzpy.Connection или тестовый двойник).
    """

    def cursor(self) -> CursorProtocol:
        ...

    def close(self) -> None:
        ...
