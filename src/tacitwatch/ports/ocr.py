"""OCR port - interface for OCR engines."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..domain.models import EngineConfig


class OCRPort(ABC):
    """Interface for OCR processing."""

    @abstractmethod
    def recognize(self, image: Path, engine: "EngineConfig") -> str:
        """Run OCR on an image with the given engine configuration.

        Raises ExternalToolError on engine failure or timeout.
        """
        pass
