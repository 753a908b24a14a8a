"""
Конфигурация OCR Node.

Все значения читаются из .env файла (или переменных окружения).
В отличие от сервиса, у каждого параметра есть дефолт —
нода должна запускаться и без .env.

Единый префикс: OCR_
Документация по параметрам: .env.example
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Настройки OCR Node.

    Читает переменные с префиксом OCR_ из .env файла.
    Объединяет параметры HTTP-обёртки, ретраев и Tesseract.
    """

    model_config = SettingsConfigDict(
        env_prefix="OCR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Сервер ---
    host: str = "0.0.0.0"
    port: int = 8000

    # --- Лимиты ---
    max_file_size_mb: int = 20
    # Таймаут на весь вызов ноды (препроцессинг + воркеры + OCR)
    timeout_seconds: float = 120.0

    # --- Оркестрация ---
    default_languages: list[str] = ["eng"]
    # Максимальное число попыток распознавания (>= 1)
    retries: int = 2
    retry_delay_seconds: float = 1.0
    preprocessing: bool = True

    # --- OCR: Tesseract ---
    ocr_oem: int = 3
    ocr_psm: int = 3

    # --- PDF -> images ---
    render_dpi: int = 300
    render_thread_count: int = 4
    render_format: str = "png"


# Глобальный экземпляр настроек
settings = Settings()
