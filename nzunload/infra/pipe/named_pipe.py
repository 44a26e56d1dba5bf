from __future__ import annotations

import io
import logging
import os
import select
import tempfile
from pathlib import Path
from typing import Callable

from nzunload.common.run_id import generate_pipe_token
from nzunload.domain.error_codes import ErrorCode
from nzunload.domain.exceptions import UnloadError

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 0.1


def create_pipe(pipe_dir: str | None = None) -> str:
    """
    Назначение:
        Создаёт именованный канал (FIFO) с уникальным именем.

    Входные данные:
        pipe_dir: str | None
            Каталог для канала; None - системный временный каталог.

    Выходные данные:
        str
            Путь к созданному каналу.
    """
    directory = Path(pipe_dir) if pipe_dir else Path(tempfile.gettempdir())
    try:
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"nzunload_{generate_pipe_token()}.pipe"
        os.mkfifo(path, 0o600)
    except OSError as exc:
        raise UnloadError(f"Failed to create named pipe in {directory}: {exc}", ErrorCode.PIPE_ERROR) from exc
    logger.debug("named pipe created: %s", path)
    return str(path)


def delete_pipe(path: str | None) -> bool:
    """
    Назначение:
        Удаляет канал из файловой системы. Открытые дескрипторы остаются рабочими.

    Выходные данные:
        bool
            True, если файл был удалён.
    """
    if not path:
        return False
    p = Path(path)
    if not p.exists():
        return False
    p.unlink()
    logger.debug("named pipe deleted: %s", path)
    return True


def release_blocked_writer(path: str) -> None:
    """
    Назначение:
        Будит писателя, зависшего в open() на запись: кратко открывает канал на чтение.
        Последующая запись писателя получит EPIPE.
    """
    try:
        fd = os.open(path, os.O_RDONLY | os.O_NONBLOCK)
    except FileNotFoundError:
        return
    os.close(fd)


def open_pipe_reader(
    path: str,
    is_writer_done: Callable[[], bool],
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
) -> io.RawIOBase:
    """
    Назначение:
        Открывает канал на чтение и ждёт появления писателя.

    Входные данные:
        path: str
        is_writer_done: Callable[[], bool]
            True, когда поток-писатель завершился (успешно или нет).
        poll_interval: float
            Период опроса, сек.

    Выходные данные:
        io.RawIOBase
            Небуферизованный бинарный поток; read(n) возвращает доступные байты.

    Алгоритм:
        - open(O_RDONLY | O_NONBLOCK) не блокируется без писателя.
        - select() ждёт данных или закрытия стороны записи; пока писатель
          ни разу не подключался, канал не считается готовым.
        - Если писатель завершился, так и не открыв канал, ожидание прекращается:
          чтение вернёт конец потока, а ошибку писателя проверит вызывающий.
        - Затем дескриптор переводится в блокирующий режим.
    """
    fd = os.open(path, os.O_RDONLY | os.O_NONBLOCK)
    try:
        while True:
            readable, _, _ = select.select([fd], [], [], poll_interval)
            if readable:
                break
            if is_writer_done():
                logger.debug("pipe writer finished before attaching: %s", path)
                break
        os.set_blocking(fd, True)
        return os.fdopen(fd, "rb", buffering=0)
    except BaseException:
        os.close(fd)
        raise
