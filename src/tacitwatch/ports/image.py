"""Image port - interface for OCR preprocessing."""

from abc import ABC, abstractmethod
from pathlib import Path


class ImagePort(ABC):
    """Interface for image preprocessing."""

    @abstractmethod
    def preprocess(self, image: Path, variant: str, output_dir: Path) -> Path:
        """Write a preprocessed copy of image into output_dir.

        The "original" variant returns image unchanged.
        """
        pass

    @abstractmethod
    def dimensions(self, image: Path) -> tuple[int, int]:
        """Return (width, height) of image."""
        pass
