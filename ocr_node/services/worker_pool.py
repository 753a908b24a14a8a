"""
Менеджер пула воркеров.

Создаёт по одному воркеру на язык (последовательно, в порядке списка),
регистрирует каждый в планировщике и гарантирует завершение всех
воркеров на любом пути выхода: успех, исчерпание ретраев,
ошибка инициализации, отмена по таймауту.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, Optional, Sequence

from ocr_node.errors import CleanupError, ConfigurationError, InitializationError
from ocr_node.services.engine import OCRWorker, Scheduler, WorkerFactory

logger = logging.getLogger(__name__)

# Колбэк прогресса пула: (язык, статус, прогресс 0..1)
PoolProgressCallback = Callable[[str, str, float], None]


@dataclass
class WorkerPool:
    """
    Захваченный пул воркеров одного запроса.

    Attributes:
        scheduler: планировщик с зарегистрированными воркерами
        workers: созданные воркеры (в порядке языков)
        cleanup_errors: ошибки завершения воркеров после release
    """

    scheduler: Scheduler
    workers: list[OCRWorker]
    cleanup_errors: list[CleanupError] = field(default_factory=list)


def _log_progress(log: logging.Logger) -> PoolProgressCallback:
    def on_progress(language: str, status: str, progress: float) -> None:
        log.info(f"[{language}] {status}: {int(progress * 100)}%")

    return on_progress


async def acquire_workers(
    languages: Sequence[str],
    worker_factory: WorkerFactory,
    log: Optional[logging.Logger] = None,
    on_progress: Optional[PoolProgressCallback] = None,
    cleanup_errors: Optional[list[CleanupError]] = None,
) -> tuple[Scheduler, list[OCRWorker]]:
    """
    Создаёт воркеры для всех языков и регистрирует их в планировщике.

    Воркеры создаются последовательно. Если какой-то воркер не
    стартовал, уже созданные завершаются до того, как ошибка
    уйдёт наружу.

    Args:
        languages: непустой список языков
        worker_factory: фабрика воркеров (язык, колбэк) -> воркер
        log: логгер запроса
        on_progress: колбэк прогресса (по умолчанию — строка в лог)
        cleanup_errors: список, куда дописываются ошибки завершения,
            если захват прерван (ошибкой или отменой)

    Returns:
        tuple: (Scheduler, список воркеров)

    Raises:
        ConfigurationError: пустой список языков
        InitializationError: воркер для одного из языков не стартовал
    """
    log = log or logger
    if not languages:
        raise ConfigurationError("Список языков пуст")

    on_progress = on_progress or _log_progress(log)
    scheduler = Scheduler()
    workers: list[OCRWorker] = []
    language = None

    try:
        for language in languages:
            log.info(f"Инициализация воркера для языка: {language}")
            worker = await worker_factory(
                language,
                lambda status, progress, lang=language: on_progress(lang, status, progress),
            )
            workers.append(worker)
            scheduler.add_worker(worker)
    except Exception as e:
        log.error(f"Ошибка инициализации воркера [{language}]: {e}")
        errors = await release_workers(workers, log)
        if cleanup_errors is not None:
            cleanup_errors.extend(errors)
        error = InitializationError(
            f"Не удалось инициализировать воркер для языка {language}: {e}",
            language=language,
        )
        error.cleanup_errors.extend(errors)
        raise error from e
    except asyncio.CancelledError:
        # Отмена посреди инициализации: созданное всё равно освобождаем
        errors = await release_workers(workers, log)
        if cleanup_errors is not None:
            cleanup_errors.extend(errors)
        raise

    log.info(f"Воркеры готовы: {scheduler.num_workers}")
    return scheduler, workers


async def release_workers(
    workers: Sequence[OCRWorker],
    log: Optional[logging.Logger] = None,
) -> list[CleanupError]:
    """
    Завершает все воркеры (best-effort).

    Ошибка завершения одного воркера не прерывает завершение
    остальных и никогда не становится фатальной — она логируется
    и возвращается в списке.

    Args:
        workers: воркеры для завершения
        log: логгер запроса

    Returns:
        list[CleanupError]: ошибки завершения (пустой список если всё ок)
    """
    log = log or logger
    if not workers:
        return []

    log.info("Завершение воркеров...")
    results = await asyncio.gather(
        *(worker.terminate() for worker in workers),
        return_exceptions=True,
    )

    cleanup_errors: list[CleanupError] = []
    for worker, result in zip(workers, results):
        if isinstance(result, BaseException):
            language = getattr(worker, "language", None)
            log.warning(f"Не удалось завершить воркер [{language}]: {result}")
            cleanup_errors.append(
                CleanupError(
                    f"Не удалось завершить воркер [{language}]: {result}",
                    language=language,
                )
            )

    if cleanup_errors:
        log.info(f"Воркеры завершены, ошибок: {len(cleanup_errors)}")
    else:
        log.info("Все воркеры завершены")
    return cleanup_errors


@asynccontextmanager
async def worker_pool(
    languages: Sequence[str],
    worker_factory: WorkerFactory,
    log: Optional[logging.Logger] = None,
    on_progress: Optional[PoolProgressCallback] = None,
    cleanup_errors: Optional[list[CleanupError]] = None,
) -> AsyncIterator[WorkerPool]:
    """
    Пул воркеров на время одного запроса.

    Захват при входе, освобождение ровно один раз при выходе —
    в том числе при исключении или отмене внутри блока.

    Если передан cleanup_errors, ошибки завершения пишутся в этот
    список: так они доступны вызывающему и после отмены, когда
    объект пула до него не дошёл.

    Пример:
        async with worker_pool(["eng"], create_worker) as pool:
            text = await pool.scheduler.add_job(image)
        pool.cleanup_errors  # ошибки завершения, если были
    """
    if cleanup_errors is None:
        cleanup_errors = []
    scheduler, workers = await acquire_workers(
        languages,
        worker_factory,
        log=log,
        on_progress=on_progress,
        cleanup_errors=cleanup_errors,
    )
    pool = WorkerPool(scheduler=scheduler, workers=workers, cleanup_errors=cleanup_errors)
    try:
        yield pool
    finally:
        pool.cleanup_errors.extend(await release_workers(workers, log))
