"""
Адаптер OCR движка: воркеры Tesseract и планировщик задач.

Воркер привязан к одному языку, распознаёт изображение и должен быть
явно завершён (terminate). Планировщик раздаёт задачи свободным
зарегистрированным воркерам, но не владеет ими: завершает их
менеджер пула (worker_pool).

Блокирующие вызовы pytesseract выполняются в threadpool,
чтобы не блокировать event loop.
"""

import asyncio
import io
import logging
from typing import Awaitable, Callable, Optional, Protocol

import pytesseract
from PIL import Image
from starlette.concurrency import run_in_threadpool

from ocr_node.config import settings

logger = logging.getLogger(__name__)

# Колбэк прогресса воркера: (статус, прогресс 0..1)
ProgressCallback = Callable[[str, float], None]


class OCRWorker(Protocol):
    """Воркер OCR движка, привязанный к одному языку."""

    language: str

    async def recognize(self, image: bytes) -> str:
        """Распознаёт текст на изображении."""
        ...

    async def terminate(self) -> None:
        """Освобождает ресурсы воркера."""
        ...


# Фабрика воркеров: (язык, колбэк прогресса) -> готовый воркер
WorkerFactory = Callable[[str, ProgressCallback], Awaitable[OCRWorker]]


class TesseractWorker:
    """
    Воркер Tesseract для одного языка.

    Tesseract запускается отдельным процессом на каждый вызов,
    поэтому воркер хранит только язык, конфиг и флаг завершения.

    Attributes:
        language: язык Tesseract ("eng", "rus", "rus+eng")
        config: строка конфига Tesseract (OEM, PSM)
    """

    def __init__(
        self,
        language: str,
        on_progress: Optional[ProgressCallback] = None,
    ):
        self.language = language
        self.config = f"--oem {settings.ocr_oem} --psm {settings.ocr_psm}"
        self._on_progress = on_progress
        self._terminated = False

    @property
    def terminated(self) -> bool:
        return self._terminated

    async def recognize(self, image: bytes) -> str:
        """
        Распознаёт текст на изображении через pytesseract.

        Args:
            image: байты изображения (PNG, JPEG, TIFF...)

        Returns:
            str: распознанный текст

        Raises:
            RuntimeError: если воркер уже завершён
        """
        if self._terminated:
            raise RuntimeError(f"Воркер [{self.language}] уже завершён")

        self._report("recognizing text", 0.0)
        text = await run_in_threadpool(self._recognize_sync, image)
        self._report("recognizing text", 1.0)
        return text

    def _recognize_sync(self, image: bytes) -> str:
        with Image.open(io.BytesIO(image)) as img:
            img.load()
            return pytesseract.image_to_string(
                img,
                lang=self.language,
                config=self.config,
            )

    async def terminate(self) -> None:
        if self._terminated:
            return
        self._terminated = True
        logger.debug(f"Воркер [{self.language}] завершён")

    def _report(self, status: str, progress: float) -> None:
        if self._on_progress is not None:
            self._on_progress(status, progress)


async def create_worker(
    language: str,
    on_progress: Optional[ProgressCallback] = None,
) -> TesseractWorker:
    """
    Создаёт воркер Tesseract и проверяет, что язык установлен.

    Args:
        language: язык Tesseract, допускается "rus+eng"
        on_progress: колбэк прогресса инициализации

    Returns:
        TesseractWorker: готовый к работе воркер

    Raises:
        RuntimeError: Tesseract недоступен или язык не установлен
    """
    if on_progress is not None:
        on_progress("loading language traineddata", 0.0)

    try:
        installed = await run_in_threadpool(pytesseract.get_languages, config="")
    except pytesseract.TesseractNotFoundError as e:
        raise RuntimeError(f"Tesseract не найден: {e}") from e

    missing = [lang for lang in language.split("+") if lang not in installed]
    if missing:
        raise RuntimeError(
            f"Язык не установлен в Tesseract: {', '.join(missing)} "
            f"(доступны: {', '.join(sorted(installed))})"
        )

    if on_progress is not None:
        on_progress("initialized api", 1.0)

    return TesseractWorker(language, on_progress=on_progress)


class Scheduler:
    """
    Планировщик задач распознавания.

    Раздаёт задачу первому свободному зарегистрированному воркеру.
    Регистрация не означает владения: планировщик никогда
    не завершает воркеры.
    """

    def __init__(self):
        self._workers: list[OCRWorker] = []
        self._idle: asyncio.Queue = asyncio.Queue()

    def add_worker(self, worker: OCRWorker) -> None:
        self._workers.append(worker)
        self._idle.put_nowait(worker)

    @property
    def num_workers(self) -> int:
        return len(self._workers)

    async def add_job(self, image: bytes) -> str:
        """
        Отправляет задачу распознавания свободному воркеру.

        Args:
            image: байты изображения

        Returns:
            str: распознанный текст

        Raises:
            RuntimeError: если нет ни одного зарегистрированного воркера
            Exception: ошибка распознавания пробрасывается как есть
        """
        if not self._workers:
            raise RuntimeError("В планировщике нет воркеров")

        worker = await self._idle.get()
        try:
            return await worker.recognize(image)
        finally:
            # Воркер снова свободен, даже если задача упала
            self._idle.put_nowait(worker)
