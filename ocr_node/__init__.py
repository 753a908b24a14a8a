"""
OCR Node — распознавание текста для workflow-инструментов.

Принимает изображение или PDF (base64), выполняет:
    - препроцессинг (Pillow)
    - OCR на пуле воркеров Tesseract, по одному на язык
    - ретраи с паузой между попытками
    - гарантированное завершение воркеров

Возвращает текст и простую статистику в виде записи ноды.
"""

from ocr_node.config import settings
from ocr_node.node import run_ocr_node
from ocr_node.schemas import NodeResult, OCROptions, OcrRequest, PreprocessingOptions
from ocr_node.services.ocr_processor import perform_advanced_ocr, perform_ocr

__all__ = [
    "settings",
    "run_ocr_node",
    "perform_advanced_ocr",
    "perform_ocr",
    "NodeResult",
    "OCROptions",
    "OcrRequest",
    "PreprocessingOptions",
]
