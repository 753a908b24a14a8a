"""
Общие фикстуры тестов OCR Node.

FakeEngine заменяет Tesseract: считает созданные и завершённые воркеры,
отправленные задачи и отдаёт заранее заданные результаты
(строка — успех, исключение — ошибка распознавания).
"""

import asyncio
import logging
from typing import Optional

import pytest


class FakeWorker:
    """Воркер фейкового движка."""

    def __init__(self, engine: "FakeEngine", language: str):
        self.engine = engine
        self.language = language
        self.terminated = False

    async def recognize(self, image: bytes) -> str:
        self.engine.submissions.append((self.language, image))
        if self.engine.recognize_delay:
            await asyncio.sleep(self.engine.recognize_delay)
        if self.engine.outcomes:
            outcome = self.engine.outcomes.pop(0)
        else:
            outcome = self.engine.default_outcome
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def terminate(self) -> None:
        self.engine.terminate_calls.append(self.language)
        if self.language in self.engine.fail_terminate:
            raise RuntimeError(f"terminate failed for {self.language}")
        self.terminated = True


class FakeEngine:
    """
    Фейковый OCR движок.

    Attributes:
        outcomes: очередь результатов recognize (str или исключение)
        default_outcome: результат, когда очередь пуста
        fail_create: языки, для которых создание воркера падает
        fail_terminate: языки, для которых terminate падает
        recognize_delay: реальная задержка recognize (для таймаутов)
    """

    def __init__(
        self,
        outcomes: Optional[list] = None,
        default_outcome=None,
        fail_create: tuple = (),
        fail_terminate: tuple = (),
        recognize_delay: float = 0.0,
    ):
        self.outcomes = list(outcomes or [])
        self.default_outcome = "TEXT" if default_outcome is None else default_outcome
        self.fail_create = set(fail_create)
        self.fail_terminate = set(fail_terminate)
        self.recognize_delay = recognize_delay

        self.created: list[FakeWorker] = []
        self.submissions: list[tuple[str, bytes]] = []
        self.terminate_calls: list[str] = []
        self.progress: list[tuple[str, float]] = []

    async def create_worker(self, language, on_progress=None) -> FakeWorker:
        if on_progress is not None:
            on_progress("loading", 0.0)
        if language in self.fail_create:
            raise RuntimeError(f"cannot load {language}")
        worker = FakeWorker(self, language)
        self.created.append(worker)
        if on_progress is not None:
            on_progress("initialized", 1.0)
        return worker

    @property
    def live_workers(self) -> int:
        return sum(1 for w in self.created if not w.terminated)


class FakeSleep:
    """Пауза без реального ожидания: только записывает задержки."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def fake_sleep() -> FakeSleep:
    return FakeSleep()


@pytest.fixture
def test_logger() -> logging.Logger:
    return logging.getLogger("ocr_node.tests")
