"""
Препроцессинг изображения перед OCR.

Набор фильтров Pillow, включаемых флагами PreprocessingOptions.
Порядок применения фиксирован:
    1. grayscale — перевод в оттенки серого
    2. normalize — autocontrast (растяжение гистограммы)
    3. threshold — бинаризация по порогу
    4. resize — уменьшение до заданной ширины (без увеличения)
    5. sharpen — повышение резкости
    6. contrast/brightness — модуляция (если множитель != 1)
    7. remove_noise — медианный фильтр 3x3

Результат всегда PNG (без потерь), чтобы не добавлять артефакты JPEG.
"""

import io
import logging
from typing import Optional

from PIL import Image, ImageEnhance, ImageFilter, ImageOps

from ocr_node.schemas import PreprocessingOptions

logger = logging.getLogger(__name__)

# Режимы, с которыми работают все фильтры ниже
_SUPPORTED_MODES = ("L", "RGB")
_ALPHA_MODES = ("RGBA", "LA", "PA")


def _flatten(src: Image.Image) -> Image.Image:
    """Приводит изображение к L/RGB, прозрачность заливается белым."""
    if src.mode in _SUPPORTED_MODES:
        return src
    if src.mode in _ALPHA_MODES or "transparency" in src.info:
        # Без подложки прозрачный фон после convert("RGB") становится чёрным
        rgba = src.convert("RGBA")
        background = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
        return Image.alpha_composite(background, rgba).convert("RGB")
    return src.convert("RGB")


def preprocess_image(
    image: bytes,
    options: Optional[PreprocessingOptions] = None,
) -> bytes:
    """
    Применяет фильтры препроцессинга к изображению.

    Args:
        image: байты исходного изображения
        options: параметры препроцессинга (по умолчанию — дефолты)

    Returns:
        bytes: обработанное изображение в PNG

    Raises:
        PIL.UnidentifiedImageError: данные не являются изображением
    """
    options = options or PreprocessingOptions()

    with Image.open(io.BytesIO(image)) as src:
        src.load()
        img = _flatten(src)

        if options.grayscale:
            img = img.convert("L")

        if options.normalize:
            img = ImageOps.autocontrast(img)

        if options.threshold:
            value = options.threshold_value
            img = img.convert("L").point(lambda p: 255 if p >= value else 0)

        if options.resize and img.width > options.width:
            height = max(1, round(img.height * options.width / img.width))
            img = img.resize((options.width, height), Image.Resampling.LANCZOS)

        if options.sharpen:
            img = img.filter(ImageFilter.SHARPEN)

        if options.brightness != 1:
            img = ImageEnhance.Brightness(img).enhance(options.brightness)
        if options.contrast != 1:
            img = ImageEnhance.Contrast(img).enhance(options.contrast)

        if options.remove_noise:
            img = img.filter(ImageFilter.MedianFilter(3))

        buffer = io.BytesIO()
        img.save(buffer, format="PNG")

    logger.debug(f"Препроцессинг: {img.mode} {img.width}x{img.height}")
    return buffer.getvalue()


def options_for_mime_type(mime_type: Optional[str]) -> PreprocessingOptions:
    """
    Подбирает параметры препроцессинга по MIME типу.

    Не указанные флаги остаются дефолтными:
        - JPEG: grayscale, normalize, sharpen, contrast 1.2
        - PNG: grayscale, без sharpen, remove_noise
        - остальное: grayscale, normalize

    Args:
        mime_type: MIME тип входных данных (может быть None)

    Returns:
        PreprocessingOptions: параметры для этого типа
    """
    mime_type = mime_type or ""

    if "image/jpeg" in mime_type or "image/jpg" in mime_type:
        return PreprocessingOptions(
            grayscale=True,
            normalize=True,
            sharpen=True,
            contrast=1.2,
        )
    if "image/png" in mime_type:
        return PreprocessingOptions(
            grayscale=True,
            sharpen=False,
            remove_noise=True,
        )
    return PreprocessingOptions(grayscale=True, normalize=True)
