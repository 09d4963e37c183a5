"""Text extraction: native PDF text first, multi-strategy OCR otherwise."""

import logging
import tempfile
import time
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from ..ports.image import ImagePort
from ..ports.ocr import OCRPort
from ..ports.pdf import PdfPort
from ..ports.store import KeyValueStore
from .errors import DocumentUnreadable, ExtractionFailed, ExternalToolError
from .models import (
    DEFAULT_ENGINE_CONFIGS,
    EngineConfig,
    ExtractionAttempt,
    ExtractionResult,
    RawDocument,
)
from .scoring import clean_text, is_readable, score_confidence

logger = logging.getLogger(__name__)

CACHE_PREFIX = "ocr:extraction"
NATIVE_METHOD = "native"
DEFAULT_VARIANTS = ("original", "enhanced", "high_contrast", "denoised")


class SelectionPolicy(str, Enum):
    FIRST_ABOVE_THRESHOLD = "first_above_threshold"
    BEST_OF_N = "best_of_n"


@dataclass(frozen=True)
class Strategy:
    variant: str
    engine: EngineConfig


def build_strategies(
    variants: Sequence[str],
    engines: Sequence[EngineConfig],
    hint: str | None = None,
) -> list[Strategy]:
    """Variant-major list of strategies; a hinted variant goes first."""
    ordered = list(variants)
    if hint and hint in ordered:
        ordered.remove(hint)
        ordered.insert(0, hint)
    elif hint:
        logger.warning(f"Ignoring unknown strategy hint: {hint}")
    return [Strategy(variant, engine) for variant in ordered for engine in engines]


def select_best(attempts: Sequence[ExtractionAttempt]) -> ExtractionAttempt:
    """Highest confidence wins; the earlier attempt wins a tie."""
    best = attempts[0]
    for attempt in attempts[1:]:
        if attempt.confidence > best.confidence:
            best = attempt
    return best


class TextExtractionService:
    """Extract text from a contract with the best available strategy."""

    def __init__(
        self,
        pdf: PdfPort,
        ocr: OCRPort,
        images: ImagePort,
        cache: KeyValueStore | None = None,
        dpi: int = 400,
        native_min_length: int = 50,
        native_min_ratio: float = 0.3,
        early_exit_confidence: float = 85.0,
        variants: Sequence[str] = DEFAULT_VARIANTS,
        engines: Sequence[EngineConfig] = DEFAULT_ENGINE_CONFIGS,
        selection_policy: SelectionPolicy = SelectionPolicy.FIRST_ABOVE_THRESHOLD,
        enable_preprocessing: bool = True,
        cache_ttl: float = 3600.0,
    ) -> None:
        self.pdf = pdf
        self.ocr = ocr
        self.images = images
        self.cache = cache
        self.dpi = dpi
        self.native_min_length = native_min_length
        self.native_min_ratio = native_min_ratio
        self.early_exit_confidence = early_exit_confidence
        self.variants = tuple(variants) if enable_preprocessing else ("original",)
        self.engines = tuple(engines)
        self.selection_policy = SelectionPolicy(selection_policy)
        self.cache_ttl = cache_ttl

    def extract(
        self, document: RawDocument, strategy_hint: str | None = None
    ) -> ExtractionResult:
        """Extract text from document.

        Raises DocumentUnreadable for missing or corrupt input and
        ExtractionFailed when no strategy produced any text.
        """
        if not document.path.is_file():
            raise DocumentUnreadable(f"Document not found: {document.path}")

        cache_key = f"{CACHE_PREFIX}:{document.fingerprint()}"
        if self.cache is not None:
            cached = self.cache.get(cache_key)
            if cached:
                logger.info(f"Using cached extraction for {document.path.name}")
                return ExtractionResult.from_dict(cached)

        started = time.monotonic()
        with tempfile.TemporaryDirectory(prefix="tacitwatch-") as tmp:
            result = self._extract(document, Path(tmp), strategy_hint)

        result.metadata["processing_time"] = round(time.monotonic() - started, 3)
        result.metadata["file_size"] = document.size
        logger.info(
            f"Extracted {len(result.text)} chars from {document.path.name} "
            f"via {result.method_used} ({result.confidence:.1f}%)"
        )

        if self.cache is not None:
            self.cache.set(cache_key, result.to_dict(), ttl=self.cache_ttl)
        return result

    def _extract(
        self, document: RawDocument, work_dir: Path, strategy_hint: str | None
    ) -> ExtractionResult:
        metadata: dict[str, Any] = {}

        if document.is_pdf:
            metadata.update(self.pdf.inspect(document.path))
            native = self._native(document.path)
            if native is not None:
                return ExtractionResult(
                    text=native.text,
                    confidence=native.confidence,
                    method_used=NATIVE_METHOD,
                    all_attempts=[native],
                    metadata={**metadata, "attempts_tried": 1},
                )
            try:
                image = self.pdf.rasterize(document.path, work_dir, self.dpi)
            except ExternalToolError as e:
                raise ExtractionFailed(f"Could not rasterize PDF: {e}") from e
        elif document.mime_type.startswith("image/"):
            image = document.path
        else:
            raise DocumentUnreadable(f"Unsupported document type: {document.mime_type}")

        try:
            metadata["image_dimensions"] = list(self.images.dimensions(image))
        except ExternalToolError as e:
            logger.warning(f"Could not read image dimensions: {e}")

        strategies = build_strategies(self.variants, self.engines, strategy_hint)
        attempts, tried = self._run_ocr(image, work_dir, strategies)
        metadata["attempts_tried"] = tried

        if not attempts:
            raise ExtractionFailed("No text could be extracted", attempts_tried=tried)

        best = select_best(attempts)
        return ExtractionResult(
            text=best.text,
            confidence=best.confidence,
            method_used=best.method,
            all_attempts=attempts,
            metadata=metadata,
        )

    def _native(self, path: Path) -> ExtractionAttempt | None:
        started = time.monotonic()
        try:
            text = self.pdf.extract_text(path)
        except ExternalToolError as e:
            logger.debug(f"No native text layer: {e}")
            return None

        if not is_readable(text, self.native_min_length, self.native_min_ratio):
            return None

        cleaned = clean_text(text)
        logger.info(f"PDF contains native text: {path.name}")
        return ExtractionAttempt(
            text=cleaned,
            confidence=score_confidence(cleaned),
            method=NATIVE_METHOD,
            processing_time=time.monotonic() - started,
        )

    def _run_ocr(
        self, image: Path, work_dir: Path, strategies: Sequence[Strategy]
    ) -> tuple[list[ExtractionAttempt], int]:
        attempts: list[ExtractionAttempt] = []
        prepared: dict[str, Path] = {}
        tried = 0

        for strategy in strategies:
            if strategy.variant not in prepared:
                prepared[strategy.variant] = self._prepare(image, strategy.variant, work_dir)

            tried += 1
            started = time.monotonic()
            try:
                raw = self.ocr.recognize(prepared[strategy.variant], strategy.engine)
            except ExternalToolError as e:
                logger.warning(
                    f"OCR attempt {strategy.variant}/{strategy.engine.name} failed: {e}"
                )
                continue

            text = clean_text(raw)
            if not text:
                continue

            attempt = ExtractionAttempt(
                text=text,
                confidence=score_confidence(text),
                method=strategy.variant,
                engine=strategy.engine.name,
                processing_time=time.monotonic() - started,
            )
            attempts.append(attempt)
            logger.debug(
                f"OCR {strategy.variant}/{strategy.engine.name}: "
                f"{attempt.confidence:.1f}%"
            )

            if (
                self.selection_policy is SelectionPolicy.FIRST_ABOVE_THRESHOLD
                and attempt.confidence > self.early_exit_confidence
            ):
                break

        return attempts, tried

    def _prepare(self, image: Path, variant: str, work_dir: Path) -> Path:
        try:
            return self.images.preprocess(image, variant, work_dir)
        except ExternalToolError as e:
            logger.warning(f"Preprocessing {variant} failed, using original image: {e}")
            return image
