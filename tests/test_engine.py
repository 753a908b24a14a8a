"""
Тесты адаптера Tesseract (pytesseract подменяется через monkeypatch).
"""

import asyncio
import io

import pytest
from PIL import Image

from ocr_node.services import engine as engine_module
from ocr_node.services.engine import TesseractWorker, create_worker


def _png() -> bytes:
    buffer = io.BytesIO()
    Image.new("L", (40, 20), 255).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def tesseract(monkeypatch):
    calls = []

    def image_to_string(img, lang=None, config=None):
        calls.append((img.size, lang, config))
        return f"text in {lang}"

    monkeypatch.setattr(
        engine_module.pytesseract, "get_languages", lambda config="": ["eng", "fra", "osd"]
    )
    monkeypatch.setattr(engine_module.pytesseract, "image_to_string", image_to_string)
    return calls


def test_create_worker_reports_progress(tesseract):
    progress = []

    worker = asyncio.run(create_worker("eng", lambda s, p: progress.append(p)))

    assert isinstance(worker, TesseractWorker)
    assert worker.language == "eng"
    assert progress == [0.0, 1.0]


def test_create_worker_accepts_combined_languages(tesseract):
    worker = asyncio.run(create_worker("eng+fra"))

    assert worker.language == "eng+fra"


def test_create_worker_rejects_missing_language(tesseract):
    with pytest.raises(RuntimeError) as exc_info:
        asyncio.run(create_worker("jpn"))

    assert "jpn" in str(exc_info.value)


def test_create_worker_without_tesseract(monkeypatch):
    def missing(config=""):
        raise engine_module.pytesseract.TesseractNotFoundError()

    monkeypatch.setattr(engine_module.pytesseract, "get_languages", missing)

    with pytest.raises(RuntimeError):
        asyncio.run(create_worker("eng"))


def test_recognize_uses_language_and_config(tesseract):
    async def scenario():
        worker = await create_worker("fra")
        return await worker.recognize(_png())

    assert asyncio.run(scenario()) == "text in fra"
    size, lang, config = tesseract[0]
    assert size == (40, 20)
    assert lang == "fra"
    assert config.startswith("--oem ")


def test_recognize_after_terminate_fails(tesseract):
    async def scenario():
        worker = await create_worker("eng")
        await worker.terminate()
        await worker.terminate()  # повторный вызов безопасен
        assert worker.terminated
        await worker.recognize(_png())

    with pytest.raises(RuntimeError):
        asyncio.run(scenario())
    assert tesseract == []
