"""
Обёртка OCR для workflow runtime (function node).

Получает бинарные данные через InputProvider, запускает оркестрацию
и всегда возвращает запись {"json": {...}} — ошибки представлены
данными (success=False), исключения наружу не выходят.
"""

import asyncio
import base64
import binascii
import logging
import traceback
from datetime import datetime, timezone
from typing import Any, Optional, Protocol, Sequence

from ocr_node.config import settings
from ocr_node.errors import CleanupError, OCRNodeError
from ocr_node.schemas import (
    BinaryInput,
    NodeResult,
    OCROptions,
    OcrRequest,
    TextStatistics,
)
from ocr_node.services.engine import WorkerFactory
from ocr_node.services.job_runner import SleepFunc
from ocr_node.services.ocr_processor import Preprocessor, perform_advanced_ocr
from ocr_node.services.preprocessor import options_for_mime_type

logger = logging.getLogger("ocr_node")


class InputProvider(Protocol):
    """Источник бинарных данных от хоста."""

    def get_binary(self) -> Optional[BinaryInput]:
        ...


class StaticInputProvider:
    """Провайдер с заранее известными данными (base64 + MIME)."""

    def __init__(self, data: Optional[str], mime_type: Optional[str] = None):
        self._data = data
        self._mime_type = mime_type

    @classmethod
    def from_bytes(cls, data: bytes, mime_type: Optional[str] = None) -> "StaticInputProvider":
        return cls(base64.b64encode(data).decode("ascii"), mime_type)

    def get_binary(self) -> Optional[BinaryInput]:
        if not self._data:
            return None
        return BinaryInput(data=self._data, mime_type=self._mime_type)


class ItemInputProvider:
    """
    Провайдер поверх items workflow.

    Берёт первый item и его бинарное поле:
        [{"json": {...}, "binary": {"data": {"data": "<base64>", "mimeType": "image/png"}}}]

    Attributes:
        items: входные items ноды
        binary_property: имя бинарного поля ("data")
    """

    def __init__(self, items: Sequence[dict[str, Any]], binary_property: str = "data"):
        self.items = items
        self.binary_property = binary_property

    def get_binary(self) -> Optional[BinaryInput]:
        if not self.items:
            return None
        binary = self.items[0].get("binary") or {}
        entry = binary.get(self.binary_property)
        if not entry or not entry.get("data"):
            return None
        return BinaryInput(data=entry["data"], mime_type=entry.get("mimeType"))


def _utc_timestamp() -> str:
    # ISO-8601 с миллисекундами и суффиксом Z
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def compute_statistics(text: str) -> TextStatistics:
    """
    Считает простую статистику текста.

    Args:
        text: распознанный текст

    Returns:
        TextStatistics: длина, строки, слова, время
    """
    return TextStatistics(
        text_length=len(text),
        line_count=len(text.split("\n")),
        word_count=len(text.split()),
        timestamp=_utc_timestamp(),
    )


def _decode_binary(binary: BinaryInput) -> bytes:
    # Переносы строк допустимы (base64 по RFC 2045, 76 символов в строке)
    data = "".join(binary.data.split())
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Бинарные данные не являются корректным base64: {e}") from e


def _failure(error: BaseException, message: str, cleanup_errors: list) -> dict:
    return NodeResult(
        success=False,
        error=message,
        stack="".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        ),
        timestamp=_utc_timestamp(),
        cleanup_errors=[str(e) for e in cleanup_errors],
    ).to_item()


async def run_ocr_node(
    input_provider: InputProvider,
    options: Optional[OCROptions] = None,
    log: Optional[logging.Logger] = None,
    timeout: Optional[float] = None,
    worker_factory: Optional[WorkerFactory] = None,
    preprocessor: Optional[Preprocessor] = None,
    sleep: Optional[SleepFunc] = None,
) -> dict:
    """
    Точка входа function node: бинарные данные -> текст + статистика.

    Если options не переданы, параметры препроцессинга подбираются
    по MIME типу входа (options_for_mime_type).

    Args:
        input_provider: источник бинарных данных
        options: конфигурация OCR
        log: логгер запроса
        timeout: таймаут на весь вызов (по умолчанию из настроек)
        worker_factory: фабрика воркеров (для тестов)
        preprocessor: функция препроцессинга (для тестов)
        sleep: пауза между попытками (для тестов)

    Returns:
        dict: {"json": {"success": True, "text": ..., "statistics": ...}}
            или {"json": {"success": False, "error": ..., "stack": ...}}
    """
    log = log or logger
    timeout = settings.timeout_seconds if timeout is None else timeout
    # Ошибки завершения воркеров, доступные и после отмены по таймауту
    cleanup_errors: list[CleanupError] = []

    try:
        binary = input_provider.get_binary()
        if binary is None:
            raise ValueError(
                "Во входных данных нет бинарных данных. "
                "Подключите ноду, которая отдаёт изображение."
            )

        image = _decode_binary(binary)
        mime_type = binary.mime_type

        if options is None:
            options = OCROptions(preprocessing_options=options_for_mime_type(mime_type))

        request = OcrRequest(image=image, options=options, mime_type=mime_type, logger=log)

        log.info(
            f"Запуск OCR: {len(image)} байт, MIME: {mime_type or 'не указан'}, "
            f"языки: {'+'.join(options.languages)}"
        )
        outcome = await asyncio.wait_for(
            perform_advanced_ocr(
                request,
                worker_factory=worker_factory,
                preprocessor=preprocessor,
                sleep=sleep,
                cleanup_errors=cleanup_errors,
            ),
            timeout=timeout,
        )
    except asyncio.TimeoutError as e:
        message = f"OCR не завершился за {timeout} секунд"
        log.error(f"Ошибка OCR ноды: {message}")
        return _failure(e, message, cleanup_errors)
    except OCRNodeError as e:
        log.error(f"Ошибка OCR ноды: {e}")
        return _failure(e, str(e), e.cleanup_errors)
    except Exception as e:
        log.exception(f"Ошибка OCR ноды: {e}")
        return _failure(e, str(e), cleanup_errors)

    statistics = compute_statistics(outcome.text)
    log.info(
        f"OCR завершён: {statistics.text_length} символов, "
        f"{statistics.word_count} слов, попыток: {len(outcome.attempts)}"
    )

    return NodeResult(
        success=True,
        text=outcome.text,
        statistics=statistics,
        languages=list(options.languages),
        mime_type=mime_type,
        cleanup_errors=[str(e) for e in outcome.cleanup_errors],
    ).to_item()
