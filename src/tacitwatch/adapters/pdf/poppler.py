"""PDF adapter using pikepdf for inspection and poppler-utils for text and rendering."""

import logging
import shutil
import subprocess
from pathlib import Path
from typing import Any

import pikepdf

from ...domain.errors import DocumentUnreadable, ExternalToolError
from ...ports.pdf import PdfPort

logger = logging.getLogger(__name__)


def check_availability() -> dict[str, bool]:
    return {tool: shutil.which(tool) is not None for tool in ("pdftotext", "pdftoppm")}


class PopplerAdapter(PdfPort):
    """PDF implementation using pikepdf, pdftotext and pdftoppm."""

    def __init__(self, timeout: float = 120.0) -> None:
        self.timeout = timeout

    def inspect(self, path: Path) -> dict[str, Any]:
        try:
            with pikepdf.open(path) as pdf:
                return {"pages": len(pdf.pages), "encrypted": pdf.is_encrypted}
        except pikepdf.PasswordError as e:
            raise DocumentUnreadable(f"PDF is encrypted: {path.name}") from e
        except (pikepdf.PdfError, OSError) as e:
            raise DocumentUnreadable(f"Cannot open PDF {path.name}: {e}") from e

    def extract_text(self, path: Path) -> str:
        result = self._run("pdftotext", ["-layout", str(path), "-"])
        return result.stdout

    def rasterize(self, path: Path, output_dir: Path, dpi: int) -> Path:
        prefix = output_dir / "page"
        logger.debug(f"Rasterizing {path.name} at {dpi} DPI")
        self._run(
            "pdftoppm",
            ["-png", "-r", str(dpi), "-f", "1", "-l", "1", "-singlefile", str(path), str(prefix)],
        )
        image = prefix.with_suffix(".png")
        if not image.exists():
            raise ExternalToolError("pdftoppm", f"no image produced for {path.name}")
        return image

    def _run(self, tool: str, args: list[str]) -> subprocess.CompletedProcess[str]:
        try:
            return subprocess.run(
                [tool, *args],
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                check=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise ExternalToolError(tool, f"timed out after {self.timeout}s", timed_out=True) from e
        except subprocess.CalledProcessError as e:
            raise ExternalToolError(tool, e.stderr.strip() or f"exit code {e.returncode}") from e
        except FileNotFoundError as e:
            raise ExternalToolError(tool, "not installed") from e
