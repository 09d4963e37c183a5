"""Image preprocessing adapter using Pillow."""

import logging
from pathlib import Path

from PIL import Image, ImageEnhance, ImageFilter, UnidentifiedImageError

from ...domain.errors import ExternalToolError
from ...ports.image import ImagePort

logger = logging.getLogger(__name__)

MIN_SIDE = 1500
MAX_SIDE = 4000
JPEG_QUALITY = 95

# (contrast, sharpness, brightness, blur radius) per variant
VARIANTS = {
    "enhanced": (1.2, 1.6, 1.05, 0.0),
    "high_contrast": (1.8, 2.0, 1.0, 0.0),
    "denoised": (1.4, 1.8, 1.0, 1.0),
}


def fit_to_box(
    width: int, height: int, low: int = MIN_SIDE, high: int = MAX_SIDE
) -> tuple[int, int]:
    """Scale down images over high on either side, up when both sides are under low."""
    if width > high or height > high:
        scale = min(high / width, high / height)
    elif width < low and height < low:
        scale = min(low / width, low / height)
    else:
        return width, height
    return int(width * scale), int(height * scale)


class PillowAdapter(ImagePort):
    """Greyscale, contrast, sharpen and resize images for OCR."""

    def preprocess(self, image: Path, variant: str, output_dir: Path) -> Path:
        if variant == "original":
            return image
        if variant not in VARIANTS:
            raise ExternalToolError("pillow", f"unknown preprocessing variant: {variant}")

        contrast, sharpness, brightness, blur = VARIANTS[variant]
        output = output_dir / f"preprocessed_{variant}.jpg"

        try:
            with Image.open(image) as img:
                processed = img.convert("L")
                if blur:
                    processed = processed.filter(ImageFilter.GaussianBlur(blur))
                processed = ImageEnhance.Contrast(processed).enhance(contrast)
                processed = ImageEnhance.Sharpness(processed).enhance(sharpness)
                if brightness != 1.0:
                    processed = ImageEnhance.Brightness(processed).enhance(brightness)

                size = fit_to_box(*processed.size)
                if size != processed.size:
                    processed = processed.resize(size, Image.Resampling.BICUBIC)

                processed.save(output, "JPEG", quality=JPEG_QUALITY)
        except (OSError, UnidentifiedImageError, ValueError) as e:
            raise ExternalToolError("pillow", f"{variant}: {e}") from e

        logger.debug(f"Preprocessed {image.name} with {variant}")
        return output

    def dimensions(self, image: Path) -> tuple[int, int]:
        try:
            with Image.open(image) as img:
                return img.size
        except (OSError, UnidentifiedImageError) as e:
            raise ExternalToolError("pillow", str(e)) from e
