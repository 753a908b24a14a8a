"""
Сервисы OCR Node.

Модули:
    - engine: воркеры Tesseract и планировщик задач
    - worker_pool: захват и освобождение пула воркеров
    - job_runner: распознавание с ретраями (машина состояний)
    - preprocessor: фильтры Pillow перед OCR
    - pdf_processor: разбиение PDF на изображения
    - ocr_processor: оркестрация всего пайплайна
"""

from ocr_node.services.engine import Scheduler, TesseractWorker, create_worker
from ocr_node.services.job_runner import JobRunner, RetryState, run_with_retry
from ocr_node.services.ocr_processor import perform_advanced_ocr, perform_ocr
from ocr_node.services.pdf_processor import load_pages, split_pdf_to_images
from ocr_node.services.preprocessor import options_for_mime_type, preprocess_image
from ocr_node.services.worker_pool import acquire_workers, release_workers, worker_pool

__all__ = [
    "Scheduler",
    "TesseractWorker",
    "create_worker",
    "JobRunner",
    "RetryState",
    "run_with_retry",
    "perform_advanced_ocr",
    "perform_ocr",
    "load_pages",
    "split_pdf_to_images",
    "options_for_mime_type",
    "preprocess_image",
    "acquire_workers",
    "release_workers",
    "worker_pool",
]
