"""
Процессор OCR — оркестрация распознавания.

Содержит:
    - perform_advanced_ocr: препроцессинг -> пул воркеров -> ретраи -> очистка
    - perform_ocr: простой вариант (один язык, без препроцессинга, одна попытка)

Пул воркеров освобождается ровно один раз на любом пути выхода,
включая отмену по таймауту вызывающей стороны.
"""

import logging
from typing import Callable, Optional

from starlette.concurrency import run_in_threadpool

from ocr_node.errors import (
    CleanupError,
    ConfigurationError,
    OCRNodeError,
    PreprocessingError,
)
from ocr_node.schemas import OCROptions, OcrOutcome, OcrRequest, PreprocessingOptions
from ocr_node.services.engine import WorkerFactory, create_worker
from ocr_node.services.job_runner import JobRunner, SleepFunc
from ocr_node.services.pdf_processor import load_pages
from ocr_node.services.preprocessor import preprocess_image
from ocr_node.services.worker_pool import worker_pool

logger = logging.getLogger(__name__)

# Препроцессор: (изображение, параметры) -> изображение. Синхронный.
Preprocessor = Callable[[bytes, PreprocessingOptions], bytes]


async def _prepare_pages(
    request: OcrRequest,
    preprocessor: Preprocessor,
) -> list[bytes]:
    """
    Готовит изображения страниц: рендер PDF и препроцессинг.

    Raises:
        PreprocessingError: ошибка рендеринга или фильтров
    """
    log = request.logger
    options = request.options

    try:
        pages = await run_in_threadpool(load_pages, request.image, request.mime_type)
    except Exception as e:
        raise PreprocessingError(f"Не удалось подготовить документ: {e}") from e

    if not options.preprocessing:
        return pages

    log.info("Препроцессинг изображения для улучшения OCR...")
    processed = []
    for page in pages:
        try:
            processed.append(
                await run_in_threadpool(
                    preprocessor, page, options.preprocessing_options
                )
            )
        except Exception as e:
            raise PreprocessingError(f"Ошибка препроцессинга: {e}") from e
    log.info("Препроцессинг завершён.")
    return processed


async def perform_advanced_ocr(
    request: OcrRequest,
    worker_factory: Optional[WorkerFactory] = None,
    preprocessor: Optional[Preprocessor] = None,
    sleep: Optional[SleepFunc] = None,
    cleanup_errors: Optional[list[CleanupError]] = None,
) -> OcrOutcome:
    """
    Распознаёт текст с препроцессингом, несколькими языками и ретраями.

    Последовательность:
        1. Проверка конфигурации (ретраи, языки) — до захвата ресурсов
        2. Рендер PDF / препроцессинг (без ретраев)
        3. Захват пула воркеров (по одному на язык)
        4. Распознавание каждой страницы через JobRunner
        5. Освобождение пула — всегда, ровно один раз

    Args:
        request: запрос (изображение, конфигурация, логгер)
        worker_factory: фабрика воркеров (по умолчанию Tesseract)
        preprocessor: функция препроцессинга (по умолчанию Pillow)
        sleep: функция паузы между попытками (по умолчанию asyncio.sleep)
        cleanup_errors: список для ошибок завершения воркеров; заполняется
            и при отмене (таймауте), когда ни результата, ни ошибки нет

    Returns:
        OcrOutcome: текст, попытки, ошибки очистки

    Raises:
        ConfigurationError: некорректные ретраи или пустой список языков
        PreprocessingError: ошибка подготовки изображения
        InitializationError: воркер не стартовал
        RecognitionError: все попытки распознавания неудачны
    """
    worker_factory = worker_factory or create_worker
    preprocessor = preprocessor or preprocess_image
    options = request.options
    log = request.logger

    if not request.languages:
        raise ConfigurationError("Список языков пуст")
    # Валидация ретраев до любой работы: JobRunner бросит ConfigurationError
    JobRunner(options.retries, delay_seconds=options.retry_delay_seconds)

    pages = await _prepare_pages(request, preprocessor)

    texts: list[str] = []
    attempts = []
    pool = None
    try:
        async with worker_pool(
            request.languages,
            worker_factory,
            log=log,
            cleanup_errors=cleanup_errors,
        ) as pool:
            log.info("Запуск OCR...")
            for page_num, page in enumerate(pages, start=1):
                if len(pages) > 1:
                    log.info(f"Страница {page_num}/{len(pages)}")
                runner = JobRunner(
                    options.retries,
                    delay_seconds=options.retry_delay_seconds,
                    sleep=sleep,
                    log=log,
                )
                try:
                    texts.append(await runner.run(pool.scheduler, page))
                finally:
                    attempts.extend(runner.attempts)
            log.info("OCR успешно завершён")
    except OCRNodeError as e:
        if pool is not None:
            e.cleanup_errors.extend(pool.cleanup_errors)
        raise

    return OcrOutcome(
        text="\n\n".join(texts),
        pages=len(pages),
        attempts=attempts,
        cleanup_errors=list(pool.cleanup_errors),
    )


async def perform_ocr(
    image: bytes,
    language: str = "eng",
    log: Optional[logging.Logger] = None,
    worker_factory: Optional[WorkerFactory] = None,
) -> str:
    """
    Простой OCR: один воркер, без препроцессинга, одна попытка.

    Воркер завершается всегда, даже при ошибке распознавания.

    Args:
        image: байты изображения
        language: язык Tesseract
        log: логгер
        worker_factory: фабрика воркеров (по умолчанию Tesseract)

    Returns:
        str: распознанный текст
    """
    request = OcrRequest(
        image=image,
        options=OCROptions(languages=[language], preprocessing=False, retries=1),
        logger=log or logger,
    )
    outcome = await perform_advanced_ocr(request, worker_factory=worker_factory)
    return outcome.text
