"""
OCR Node — HTTP обёртка для workflow-инструментов.

Workflow (например, HTTP Request нода) отправляет изображение или PDF,
получает запись ноды: {"json": {"success": ..., "text": ..., ...}}.
Ошибки OCR возвращаются данными (HTTP 200, success=False).

Эндпоинты:
    POST /ocr/execute — JSON: base64 данные + MIME + опции
    POST /ocr/upload — multipart: файл + JSON конфиг
    GET  /health — проверка работоспособности (Tesseract + конфиг)

Запуск:
    uvicorn ocr_node.main:app --host 0.0.0.0 --port 8000
"""

import json
import logging
import os
from typing import Optional

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.responses import JSONResponse

from ocr_node.config import settings
from ocr_node.node import StaticInputProvider, run_ocr_node
from ocr_node.schemas import NodeInput, OCROptions
from ocr_node.services.preprocessor import options_for_mime_type

# Настройка логгера
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [OCR-Node] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


class UnicodeJSONResponse(JSONResponse):
    """JSON ответ без \\uXXXX экранирования: сообщения ошибок на кириллице."""

    def render(self, content) -> bytes:
        return json.dumps(
            content,
            ensure_ascii=False,
            allow_nan=False,
            indent=None,
            separators=(",", ":"),
        ).encode("utf-8")


# FastAPI приложение
app = FastAPI(
    title="OCR Node",
    description="Распознавание текста из изображений и PDF для workflow (Tesseract OCR)",
    version="1.0.0",
    default_response_class=UnicodeJSONResponse,
)


@app.get("/health")
async def health_check() -> dict:
    """
    Проверка работоспособности сервиса.

    Returns:
        dict: статус, версия Tesseract, установленные языки, конфиг
    """
    # Проверяем доступность Tesseract
    tesseract_ok = False
    tesseract_version = "unknown"
    languages: list[str] = []
    try:
        import pytesseract
        tesseract_version = pytesseract.get_tesseract_version().public
        languages = sorted(pytesseract.get_languages(config=""))
        tesseract_ok = True
    except Exception as e:
        tesseract_version = f"error: {e}"

    return {
        "status": "ok" if tesseract_ok else "degraded",
        "service": "ocr-node",
        "cpu_count": os.cpu_count(),
        "tesseract": {
            "available": tesseract_ok,
            "version": tesseract_version,
            "languages": languages,
        },
        "config": {
            "max_file_size_mb": settings.max_file_size_mb,
            "timeout_seconds": settings.timeout_seconds,
            "default_languages": settings.default_languages,
            "retries": settings.retries,
            "ocr_oem": settings.ocr_oem,
            "ocr_psm": settings.ocr_psm,
        },
    }


@app.post("/ocr/execute")
async def execute_ocr(body: NodeInput) -> dict:
    """
    Распознаёт текст из base64 данных.

    Args:
        body: base64 данные, MIME тип и опции OCR

    Returns:
        dict: запись ноды {"json": {...}}

    Raises:
        HTTPException: 413 если данные превышают лимит
    """
    # base64 раздувает данные на ~4/3
    approx_size = len(body.data) * 3 // 4
    _check_size(approx_size)

    options = _build_options(
        body.mime_type,
        languages=body.languages,
        preprocessing=body.preprocessing,
        retries=body.retries,
    )
    logger.info(f"Получены данные: ~{approx_size} байт, MIME: {body.mime_type}")

    provider = StaticInputProvider(body.data, body.mime_type)
    return await run_ocr_node(provider, options)


@app.post("/ocr/upload")
async def upload_ocr(
    file: UploadFile = File(..., description="Изображение или PDF"),
    config: Optional[str] = Form(
        default=None,
        description='JSON конфигурация: {"languages": ["eng"], "retries": 2}',
    ),
) -> dict:
    """
    Распознаёт текст из загруженного файла.

    Args:
        file: изображение или PDF (multipart/form-data)
        config: JSON строка с полями languages, preprocessing, retries

    Returns:
        dict: запись ноды {"json": {...}}

    Raises:
        HTTPException: 400 при некорректном config, 413 при превышении лимита
    """
    config_dict = _parse_config(config)

    file_bytes = await file.read()
    _check_size(len(file_bytes))
    logger.info(
        f"Получен файл: {file.filename}, {len(file_bytes)} байт, "
        f"MIME: {file.content_type}"
    )

    try:
        options = _build_options(file.content_type, **config_dict)
    except Exception as e:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "invalid_config",
                "message": f"Ошибка параметров config: {str(e)}",
            },
        )

    provider = StaticInputProvider.from_bytes(file_bytes, file.content_type)
    return await run_ocr_node(provider, options)


def _build_options(
    mime_type: Optional[str],
    languages: Optional[list[str]] = None,
    preprocessing: Optional[bool] = None,
    retries: Optional[int] = None,
) -> OCROptions:
    """
    Собирает OCROptions: явные поля запроса поверх дефолтов из настроек.

    Параметры препроцессинга подбираются по MIME типу.
    """
    fields: dict = {"preprocessing_options": options_for_mime_type(mime_type)}
    if languages is not None:
        fields["languages"] = languages
    if preprocessing is not None:
        fields["preprocessing"] = preprocessing
    if retries is not None:
        fields["retries"] = retries
    return OCROptions(**fields)


def _check_size(size_bytes: int) -> None:
    max_size = settings.max_file_size_mb * 1024 * 1024
    if size_bytes > max_size:
        raise HTTPException(
            status_code=413,
            detail={
                "error": "file_too_large",
                "message": f"Файл слишком большой: {size_bytes} байт, "
                f"максимум: {settings.max_file_size_mb} МБ",
            },
        )


def _parse_config(config_json: Optional[str]) -> dict:
    """
    Парсит JSON конфигурацию из строки.

    Args:
        config_json: JSON строка или None

    Returns:
        dict: только поля languages, preprocessing, retries
    """
    if not config_json:
        return {}

    try:
        config_dict = json.loads(config_json)
    except json.JSONDecodeError as e:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "invalid_config",
                "message": f"Некорректный JSON в config: {str(e)}",
            },
        )

    if not isinstance(config_dict, dict):
        raise HTTPException(
            status_code=400,
            detail={
                "error": "invalid_config",
                "message": "config должен быть JSON объектом",
            },
        )

    allowed = ("languages", "preprocessing", "retries")
    return {key: config_dict[key] for key in allowed if key in config_dict}


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Запуск OCR Node на порту {settings.port}")
    logger.info(
        f"Конфиг: языки={settings.default_languages}, ретраи={settings.retries}, "
        f"OEM={settings.ocr_oem}, PSM={settings.ocr_psm}"
    )

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level="info",
    )
