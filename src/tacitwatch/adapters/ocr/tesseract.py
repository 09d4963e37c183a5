"""OCR adapter using Tesseract through pytesseract."""

import logging
from pathlib import Path

import pytesseract
from PIL import Image

from ...domain.errors import ExternalToolError
from ...domain.models import EngineConfig
from ...ports.ocr import OCRPort

logger = logging.getLogger(__name__)


def check_availability() -> dict[str, bool]:
    try:
        version = pytesseract.get_tesseract_version()
    except (pytesseract.TesseractNotFoundError, OSError):
        return {"tesseract": False}
    logger.debug(f"Tesseract {version}")
    return {"tesseract": True}


class TesseractAdapter(OCRPort):
    """OCR implementation using Tesseract."""

    def __init__(self, languages: str = "fra+eng", timeout: float = 120.0) -> None:
        self.languages = languages
        self.timeout = timeout

    def recognize(self, image: Path, engine: EngineConfig) -> str:
        config = f"--psm {engine.psm} --oem {engine.oem}"
        try:
            with Image.open(image) as img:
                return pytesseract.image_to_string(
                    img, lang=self.languages, config=config, timeout=self.timeout
                )
        except pytesseract.TesseractNotFoundError as e:
            raise ExternalToolError("tesseract", "not installed") from e
        except pytesseract.TesseractError as e:
            raise ExternalToolError("tesseract", str(e)) from e
        except RuntimeError as e:
            # pytesseract signals its timeout with a bare RuntimeError
            raise ExternalToolError("tesseract", str(e), timed_out=True) from e
        except OSError as e:
            raise ExternalToolError("tesseract", str(e)) from e
