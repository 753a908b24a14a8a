"""
Процессор PDF: разбиение на изображения страниц.

Использует pdf2image (pdftoppm) для рендеринга страниц.
Tesseract не читает PDF напрямую, поэтому каждая страница
становится отдельным PNG, который уходит в OCR как обычное изображение.
"""

import io
import logging
from typing import Optional

from pdf2image import convert_from_bytes

from ocr_node.config import settings

logger = logging.getLogger(__name__)

PDF_SIGNATURE = b"%PDF"


def is_pdf(data: bytes, mime_type: Optional[str] = None) -> bool:
    """
    Определяет, являются ли данные PDF.

    Проверяет заявленный MIME тип и сигнатуру %PDF
    (многие клиенты присылают application/octet-stream).
    """
    if mime_type and "application/pdf" in mime_type:
        return True
    return data.startswith(PDF_SIGNATURE)


def split_pdf_to_images(pdf_bytes: bytes) -> list[bytes]:
    """
    Разбивает PDF на изображения страниц.

    Args:
        pdf_bytes: содержимое PDF файла

    Returns:
        list[bytes]: PNG каждой страницы, в порядке страниц

    Raises:
        ValueError: если PDF не содержит страниц
        Exception: при ошибках рендеринга (pdftoppm не найден и т.п.)
    """
    logger.info(
        f"Разбиение PDF: dpi={settings.render_dpi}, "
        f"threads={settings.render_thread_count}"
    )

    images = convert_from_bytes(
        pdf_bytes,
        dpi=settings.render_dpi,
        fmt=settings.render_format,
        thread_count=settings.render_thread_count,
    )

    if not images:
        raise ValueError("PDF не содержит страниц")

    pages = []
    for img in images:
        buffer = io.BytesIO()
        img.save(buffer, format="PNG")
        pages.append(buffer.getvalue())

    logger.info(f"Разбиение завершено: {len(pages)} страниц")
    return pages


def load_pages(data: bytes, mime_type: Optional[str] = None) -> list[bytes]:
    """
    Возвращает изображения для OCR: страницы PDF или само изображение.

    Args:
        data: байты изображения или PDF
        mime_type: заявленный MIME тип

    Returns:
        list[bytes]: изображения страниц
    """
    if is_pdf(data, mime_type):
        return split_pdf_to_images(data)
    return [data]
