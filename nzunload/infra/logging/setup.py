from __future__ import annotations

import logging
from pathlib import Path

CORE_LOGGER_NAME = "nzunload"


class EnsureFieldsFilter(logging.Filter):
    """
    Назначение:
        Гарантирует наличие полей runId и component в LogRecord,
        чтобы форматтер не падал KeyError на записях модулей ядра.

    Входные данные:
        runId: str
            Идентификатор запуска.
        defaultComponent: str
            Компонент по умолчанию, если не задан.
    """

    def __init__(self, runId: str, defaultComponent: str = "core"):
        super().__init__()
        self.runId = runId
        self.defaultComponent = defaultComponent

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "runId"):
            record.runId = self.runId
        if not hasattr(record, "component"):
            record.component = record.name.rsplit(".", 1)[-1] if record.name.startswith(CORE_LOGGER_NAME + ".") else self.defaultComponent
        return True


def mapLogLevel(levelName: str) -> int:
    """
    Назначение:
        Преобразует строковый уровень логирования в logging level.

    Входные данные:
        levelName: str
            ERROR|WARN|INFO|DEBUG

    Выходные данные:
        int
    """
    value = (levelName or "").strip().upper()
    if value == "ERROR":
        return logging.ERROR
    if value in ("WARN", "WARNING"):
        return logging.WARNING
    if value == "INFO":
        return logging.INFO
    if value == "DEBUG":
        return logging.DEBUG
    raise ValueError(f"Unsupported log level: {levelName}")


def createCommandLogger(commandName: str, logDir: str, runId: str, logLevel: str) -> tuple[logging.Logger, str]:
    """
    Назначение:
        Создаёт логгер для конкретной команды и возвращает путь к log-файлу.
        Тот же файловый обработчик подключается к логгеру ядра "nzunload",
        чтобы события канала, писателя и закрытия попадали в лог команды.

    Входные данные:
        commandName: str
        logDir: str
        runId: str
        logLevel: str

    Выходные данные:
        (logger, logFilePath)
    """
    Path(logDir).mkdir(parents=True, exist_ok=True)

    logFilePath = str(Path(logDir) / f"{commandName}_{runId}.log")

    level = mapLogLevel(logLevel)

    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s runId=%(runId)s comp=%(component)s msg=%(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    fileHandler = logging.FileHandler(logFilePath, encoding="utf-8")
    fileHandler.setLevel(level)
    fileHandler.setFormatter(formatter)
    fileHandler.addFilter(EnsureFieldsFilter(runId=runId))

    loggerName = f"nzunloadCli.{commandName}.{runId}"
    logger = logging.getLogger(loggerName)
    logger.handlers.clear()
    logger.propagate = False
    logger.setLevel(level)
    logger.addHandler(fileHandler)

    coreLogger = logging.getLogger(CORE_LOGGER_NAME)
    for handler in list(coreLogger.handlers):
        if getattr(handler, "nzunloadCommandHandler", False):
            coreLogger.removeHandler(handler)
            handler.close()
    fileHandler.nzunloadCommandHandler = True
    coreLogger.setLevel(level)
    coreLogger.addHandler(fileHandler)

    return logger, logFilePath


def closeCommandLogger(logger: logging.Logger) -> None:
    """
    Назначение:
        Отключает и закрывает файловые обработчики команды (в т.ч. у логгера ядра).
    """
    coreLogger = logging.getLogger(CORE_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        if handler in coreLogger.handlers:
            coreLogger.removeHandler(handler)
        handler.close()


def logEvent(logger: logging.Logger, level: int, runId: str, component: str, message: str) -> None:
    """
    Назначение:
        Унифицированная запись событий с runId/component.
    """
    logger.log(level, message, extra={"runId": runId, "component": component})
