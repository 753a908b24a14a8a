"""
Ошибки OCR Node.

Таксономия:
    - ConfigurationError: некорректная конфигурация (ретраи, языки)
    - PreprocessingError: ошибка препроцессинга / рендеринга PDF
    - InitializationError: не удалось запустить воркер
    - RecognitionError: все попытки распознавания неудачны
    - CleanupError: воркер не завершился (не фатально)

Все ошибки наследуются от OCRNodeError и несут список
некритичных ошибок очистки (cleanup_errors).
"""

from typing import Optional


class OCRNodeError(Exception):
    """Базовая ошибка OCR Node."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        # Некритичные ошибки завершения воркеров, собранные по пути
        self.cleanup_errors: list["CleanupError"] = []


class ConfigurationError(OCRNodeError, ValueError):
    """Некорректная конфигурация, ресурсы не захватываются."""


class PreprocessingError(OCRNodeError):
    """Ошибка препроцессинга изображения. Не ретраится."""


class InitializationError(OCRNodeError):
    """
    Не удалось инициализировать воркер для одного из языков.

    Attributes:
        language: язык, на котором упала инициализация
    """

    def __init__(self, message: str, language: Optional[str] = None):
        super().__init__(message)
        self.language = language


class RecognitionError(OCRNodeError):
    """
    Все попытки распознавания завершились ошибкой.

    Сообщение берётся из ошибки последней попытки.

    Attributes:
        attempts: сколько попыток было выполнено
    """

    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts


class CleanupError(OCRNodeError):
    """
    Воркер не удалось завершить.

    Никогда не поднимается наружу как фатальная ошибка:
    только логируется и прикрепляется к результату.
    """

    def __init__(self, message: str, language: Optional[str] = None):
        super().__init__(message)
        self.language = language
