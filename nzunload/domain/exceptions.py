from __future__ import annotations

from nzunload.domain.error_codes import ErrorCode


class UnloadError(RuntimeError):
    """
    Назначение:
        Фатальная ошибка выгрузки данных через именованный канал.
    Инварианты/гарантии:
        - Исходная причина доступна через __cause__ (raise ... from cause).
        - Экземпляр итератора после такой ошибки к повтору не пригоден.
    """

    def __init__(self, message: str, code: ErrorCode = ErrorCode.UNLOAD_FAILED) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class RecordFormatError(ValueError):
    """
    Назначение:
        Запись из канала не соответствует ожидаемому формату (число полей и т.п.).
    """

    code = ErrorCode.RECORD_FORMAT


__all__ = ["UnloadError", "RecordFormatError"]
