from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """
    Назначение:
        Единая таксономия кодов ошибок выгрузки.
    """

    PREPARE_FAILED = "PREPARE_FAILED"
    UNLOAD_FAILED = "UNLOAD_FAILED"
    RELEASE_FAILED = "RELEASE_FAILED"
    PIPE_ERROR = "PIPE_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    RECORD_FORMAT = "RECORD_FORMAT"
    CONFIG_ERROR = "CONFIG_ERROR"
