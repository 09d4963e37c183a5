"""PDF port - interface for PDF inspection, text layer and rasterization."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any


class PdfPort(ABC):
    """Interface for PDF tooling."""

    @abstractmethod
    def inspect(self, path: Path) -> dict[str, Any]:
        """Open the PDF and return basic facts (page count, encryption).

        Raises DocumentUnreadable if the file cannot be opened.
        """
        pass

    @abstractmethod
    def extract_text(self, path: Path) -> str:
        """Extract the native text layer."""
        pass

    @abstractmethod
    def rasterize(self, path: Path, output_dir: Path, dpi: int) -> Path:
        """Render the first page to an image inside output_dir.

        Returns path to the image.
        """
        pass
