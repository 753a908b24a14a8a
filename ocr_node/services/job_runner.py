"""
Запуск задачи распознавания с ретраями.

Ретраи реализованы как явная машина состояний:

    IDLE -> ATTEMPTING -> SUCCEEDED
                 |
                 v
              WAITING -> ATTEMPTING -> ... -> FAILED

Пауза между попытками берётся из внедряемой функции sleep,
поэтому тесты проходят без реального ожидания.
Пауза выполняется только МЕЖДУ попытками, никогда после последней.
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

from ocr_node.errors import ConfigurationError, RecognitionError
from ocr_node.schemas import Attempt
from ocr_node.services.engine import Scheduler

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


class RetryState(str, Enum):
    """Состояние JobRunner."""

    IDLE = "idle"
    ATTEMPTING = "attempting"
    WAITING = "waiting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class JobRunner:
    """
    Одноразовый исполнитель задачи распознавания с ретраями.

    Attributes:
        max_attempts: максимальное число попыток (>= 1)
        delay_seconds: пауза между попытками
        state: текущее состояние (RetryState)
        attempts: история попыток
    """

    def __init__(
        self,
        max_attempts: int,
        delay_seconds: float = 1.0,
        sleep: Optional[SleepFunc] = None,
        log: Optional[logging.Logger] = None,
    ):
        # bool является подклассом int, но True как число попыток недопустимо
        if isinstance(max_attempts, bool) or not isinstance(max_attempts, int):
            raise ConfigurationError(
                f"Число попыток должно быть целым, получено: {max_attempts!r}"
            )
        if max_attempts < 1:
            raise ConfigurationError(
                f"Число попыток должно быть >= 1, получено: {max_attempts}"
            )
        if delay_seconds < 0:
            raise ConfigurationError(
                f"Пауза между попытками не может быть отрицательной: {delay_seconds}"
            )

        self.max_attempts = max_attempts
        self.delay_seconds = delay_seconds
        self._sleep = sleep or asyncio.sleep
        self._log = log or logger

        self.state = RetryState.IDLE
        self.attempts: list[Attempt] = []

    async def run(self, scheduler: Scheduler, image: bytes) -> str:
        """
        Отправляет изображение в планировщик, повторяя при ошибках.

        Args:
            scheduler: планировщик с готовыми воркерами
            image: байты изображения

        Returns:
            str: распознанный текст первой успешной попытки

        Raises:
            RecognitionError: все попытки неудачны (сообщение последней)
            RuntimeError: runner уже использовался
        """
        if self.state != RetryState.IDLE:
            raise RuntimeError(f"JobRunner уже использован (состояние: {self.state.value})")

        number = 1
        try:
            while True:
                self.state = RetryState.ATTEMPTING
                try:
                    text = await scheduler.add_job(image)
                except Exception as e:
                    self.attempts.append(Attempt(number=number, error=e))
                    self._log.warning(f"OCR попытка {number} не удалась: {e}")

                    if number >= self.max_attempts:
                        self.state = RetryState.FAILED
                        raise RecognitionError(str(e), attempts=number) from e

                    self.state = RetryState.WAITING
                    await self._sleep(self.delay_seconds)
                    number += 1
                    continue

                self.attempts.append(Attempt(number=number, text=text))
                self.state = RetryState.SUCCEEDED
                return text
        except asyncio.CancelledError:
            self.state = RetryState.FAILED
            raise


async def run_with_retry(
    scheduler: Scheduler,
    image: bytes,
    max_attempts: int,
    delay_seconds: float = 1.0,
    sleep: Optional[SleepFunc] = None,
    log: Optional[logging.Logger] = None,
) -> str:
    """Короткая форма: JobRunner(...).run(scheduler, image)."""
    runner = JobRunner(max_attempts, delay_seconds=delay_seconds, sleep=sleep, log=log)
    return await runner.run(scheduler, image)
