"""
Единые схемы данных OCR Node.

Включает:
    - Pydantic модели конфигурации (OCR, препроцессинг)
    - Pydantic модели записи-результата для хоста (workflow runtime)
    - Внутренние dataclass'ы оркестрации (запрос, попытка, исход)
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ocr_node.config import settings


# =============================================================================
# Pydantic модели конфигурации
# =============================================================================


class PreprocessingOptions(BaseModel):
    """
    Параметры препроцессинга изображения перед OCR.

    Фильтры применяются в фиксированном порядке:
        grayscale -> normalize -> threshold -> resize -> sharpen
        -> contrast/brightness -> remove_noise

    Attributes:
        grayscale: перевод в оттенки серого
        normalize: растяжение гистограммы (autocontrast)
        threshold: бинаризация по порогу threshold_value
        threshold_value: порог бинаризации (0-255)
        resize: уменьшение до ширины width (без увеличения)
        width: целевая ширина в пикселях
        sharpen: повышение резкости
        remove_noise: медианный фильтр 3x3
        contrast: множитель контраста (1.0 = без изменений)
        brightness: множитель яркости (1.0 = без изменений)
    """

    model_config = ConfigDict(populate_by_name=True)

    grayscale: bool = True
    normalize: bool = True
    threshold: bool = False
    threshold_value: int = Field(default=128, ge=0, le=255, alias="thresholdValue")
    resize: bool = False
    width: int = Field(default=1800, ge=1)
    sharpen: bool = True
    remove_noise: bool = Field(default=True, alias="removeNoise")
    contrast: float = 1.0
    brightness: float = 1.0


class OCROptions(BaseModel):
    """
    Конфигурация одного вызова OCR.

    Границы retries намеренно не валидируются здесь:
    некорректное значение отвергает JobRunner (ConfigurationError).

    Attributes:
        languages: языки Tesseract, по одному воркеру на язык
        preprocessing: включить препроцессинг
        preprocessing_options: параметры препроцессинга
        retries: максимальное число попыток распознавания
        retry_delay_seconds: пауза между попытками
    """

    model_config = ConfigDict(populate_by_name=True)

    languages: list[str] = Field(
        default_factory=lambda: list(settings.default_languages),
        description="Языки для OCR: ['eng'], ['eng', 'fra']",
    )
    preprocessing: bool = settings.preprocessing
    preprocessing_options: PreprocessingOptions = Field(
        default_factory=PreprocessingOptions,
        alias="preprocessingOptions",
    )
    retries: int = settings.retries
    retry_delay_seconds: float = Field(
        default=settings.retry_delay_seconds,
        ge=0,
        alias="retryDelaySeconds",
    )


# =============================================================================
# Pydantic модели результата для хоста
# =============================================================================


class TextStatistics(BaseModel):
    """Простая статистика распознанного текста."""

    model_config = ConfigDict(populate_by_name=True)

    text_length: int = Field(alias="textLength")
    line_count: int = Field(alias="lineCount")
    word_count: int = Field(alias="wordCount")
    timestamp: str


class NodeResult(BaseModel):
    """
    Запись, которую нода возвращает хосту.

    Ошибки представлены данными (success=False), а не исключениями.

    Attributes:
        success: успешность операции
        text: распознанный текст (только при success=True)
        statistics: статистика текста (только при success=True)
        languages: использованные языки
        mime_type: MIME тип входных данных
        error: сообщение об ошибке (если success=False)
        stack: трейсбэк для диагностики (если success=False)
        timestamp: время ошибки
        cleanup_errors: некритичные ошибки завершения воркеров
    """

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    text: Optional[str] = None
    statistics: Optional[TextStatistics] = None
    languages: Optional[list[str]] = None
    mime_type: Optional[str] = Field(default=None, alias="mimeType")
    error: Optional[str] = None
    stack: Optional[str] = None
    timestamp: Optional[str] = None
    cleanup_errors: list[str] = Field(default_factory=list, alias="cleanupErrors")

    def to_item(self) -> dict:
        """Упаковывает результат в item формата workflow: {"json": {...}}."""
        payload = self.model_dump(by_alias=True, exclude_none=True)
        if not self.cleanup_errors:
            payload.pop("cleanupErrors", None)
        return {"json": payload}


class NodeInput(BaseModel):
    """
    Тело запроса POST /ocr/execute.

    Attributes:
        data: base64 изображения или PDF
        mime_type: MIME тип данных
        languages: языки (по умолчанию из настроек)
        preprocessing: включить препроцессинг
        retries: максимальное число попыток
    """

    model_config = ConfigDict(populate_by_name=True)

    data: str
    mime_type: Optional[str] = Field(default=None, alias="mimeType")
    languages: Optional[list[str]] = None
    preprocessing: Optional[bool] = None
    retries: Optional[int] = None


# =============================================================================
# Внутренние структуры оркестрации
# =============================================================================


@dataclass(frozen=True)
class BinaryInput:
    """
    Бинарные данные от хоста.

    Attributes:
        data: содержимое в base64
        mime_type: заявленный MIME тип (может отсутствовать)
    """

    data: str
    mime_type: Optional[str] = None


@dataclass(frozen=True)
class OcrRequest:
    """
    Один запрос на распознавание. Создаётся один раз, не изменяется.

    Attributes:
        image: байты изображения или PDF
        options: конфигурация (языки, препроцессинг, ретраи)
        mime_type: MIME тип входных данных
        logger: куда писать прогресс и ошибки
    """

    image: bytes
    options: OCROptions = field(default_factory=OCROptions)
    mime_type: Optional[str] = None
    logger: logging.Logger = field(
        default_factory=lambda: logging.getLogger("ocr_node"),
    )

    @property
    def languages(self) -> list[str]:
        return self.options.languages


@dataclass
class Attempt:
    """
    Одна попытка распознавания.

    Attributes:
        number: номер попытки (начинается с 1)
        text: распознанный текст (при успехе)
        error: ошибка (при неудаче)
    """

    number: int
    text: Optional[str] = None
    error: Optional[BaseException] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class OcrOutcome:
    """
    Успешный результат оркестрации.

    Attributes:
        text: распознанный текст (страницы через пустую строку)
        pages: количество распознанных страниц
        attempts: все попытки по всем страницам
        cleanup_errors: некритичные ошибки завершения воркеров
    """

    text: str
    pages: int = 1
    attempts: list[Attempt] = field(default_factory=list)
    cleanup_errors: list = field(default_factory=list)
