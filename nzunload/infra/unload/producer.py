from __future__ import annotations

import logging
import threading
from enum import Enum

from nzunload.domain.ports.warehouse import CursorProtocol

logger = logging.getLogger(__name__)


class ProducerState(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    ABANDONED = "ABANDONED"


class UnloadProducer:
    """
    Назначение/ответственность:
        Выполняет блокирующий оператор выгрузки в отдельном потоке.
        Ошибка выполнения не пробрасывается между потоками: она сохраняется
        и опрашивается потребителем через has_failed()/failure_cause().
    Инварианты/гарантии:
        - Состояние и флаг отказа от чтения меняются только под self._lock.
        - Итоговое состояние выставляется до выхода из потока.
        - Ошибка, пойманная после request_early_abandon(), не считается отказом.
    Ограничения:
        - Поток не прерываемый: await_completion() ждёт без таймаута.
    """

    def __init__(self, cursor: CursorProtocol, query: str, name: str = "nzunload-producer") -> None:
        self._cursor = cursor
        self._query = query
        self._lock = threading.Lock()
        self._state = ProducerState.NOT_STARTED
        self._cause: BaseException | None = None
        self._abandon_requested = False
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self) -> None:
        with self._lock:
            if self._state is not ProducerState.NOT_STARTED:
                raise RuntimeError("producer already started")
            self._state = ProducerState.RUNNING
        logger.info("start thread to create external table")
        self._thread.start()

    def _run(self) -> None:
        try:
            self._cursor.execute(self._query)
        except Exception as exc:
            with self._lock:
                failed = not self._abandon_requested
                if failed:
                    self._state = ProducerState.FAILED
                    self._cause = exc
                else:
                    self._state = ProducerState.ABANDONED
            if failed:
                logger.error("external table unload failed: %s", exc)
            else:
                logger.info("external table unload stopped after early close: %s", exc)
            return
        with self._lock:
            self._state = ProducerState.ABANDONED if self._abandon_requested else ProducerState.SUCCEEDED
        logger.info("external table unload finished")

    @property
    def state(self) -> ProducerState:
        with self._lock:
            return self._state

    def has_failed(self) -> bool:
        with self._lock:
            return self._state is ProducerState.FAILED

    def failure_cause(self) -> BaseException:
        with self._lock:
            if self._state is not ProducerState.FAILED or self._cause is None:
                raise RuntimeError("producer has not failed")
            return self._cause

    def is_done(self) -> bool:
        with self._lock:
            return self._state not in (ProducerState.NOT_STARTED, ProducerState.RUNNING)

    def request_early_abandon(self) -> bool:
        """
        Назначение:
            Помечает остановку как инициированную потребителем.

        Выходные данные:
            bool
                False, если поток уже завершился с ошибкой: такая ошибка остаётся в силе.
        """
        with self._lock:
            if self._state is ProducerState.FAILED:
                return False
            self._abandon_requested = True
            return True

    def await_completion(self) -> None:
        if self._thread.is_alive():
            self._thread.join()
