"""Domain services - orchestrate business logic."""

import logging

from ..ports.storage import DocumentRepository
from .ai_analysis import AIAnalysisService
from .errors import TacitwatchError
from .extraction import TextExtractionService
from .models import (
    DocumentRecord,
    ProcessingOutcome,
    RawDocument,
    Stage,
    StageStatus,
)
from .recommendations import build_recommendations

logger = logging.getLogger(__name__)

LOW_CONFIDENCE_WARNING = "Text extraction confidence too low for AI analysis, pattern matching used"


class ProcessingService:
    """Orchestrates the contract processing pipeline."""

    def __init__(
        self,
        extractor: TextExtractionService,
        analyzer: AIAnalysisService,
        documents: DocumentRepository | None = None,
        min_ai_confidence: float = 60.0,
        low_quality_threshold: float = 70.0,
    ) -> None:
        self.extractor = extractor
        self.analyzer = analyzer
        self.documents = documents
        self.min_ai_confidence = min_ai_confidence
        self.low_quality_threshold = low_quality_threshold

    def process(
        self,
        document_id: str,
        document: RawDocument,
        strategy_hint: str | None = None,
        use_ai: bool = True,
    ) -> ProcessingOutcome:
        """Process a contract through the full pipeline.

        Pipeline:
            1. Extract text (native or OCR)
            2. Analyze (AI when extraction is reliable, else patterns)
            3. Build recommendations

        Stage statuses are saved to the repository as they change. On
        failure the affected stages are marked failed and the outcome
        carries the error message.
        """
        outcome = ProcessingOutcome(document_id=document_id)
        record = self._load(document_id, document)
        logger.info(f"Processing: {document.path.name} ({document_id})")

        stage = Stage.EXTRACTION
        try:
            self._set(record, Stage.EXTRACTION, StageStatus.PROCESSING)
            hint = strategy_hint or record.strategy_hint
            outcome.extraction = self.extractor.extract(document, strategy_hint=hint)
            record.text = outcome.extraction.text
            self._set(record, Stage.EXTRACTION, StageStatus.COMPLETED)

            stage = Stage.ANALYSIS
            self._set(record, Stage.ANALYSIS, StageStatus.PROCESSING)
            reliable = outcome.extraction.confidence >= self.min_ai_confidence
            analysis = self.analyzer.analyze(outcome.extraction.text, use_ai=use_ai and reliable)
            if use_ai and not reliable:
                logger.warning(
                    f"Extraction confidence {outcome.extraction.confidence:.1f}% "
                    f"below {self.min_ai_confidence:.0f}%, skipping AI"
                )
                analysis.validation_warnings.append(LOW_CONFIDENCE_WARNING)
            outcome.analysis = analysis
            self._set(record, Stage.ANALYSIS, StageStatus.COMPLETED)

            outcome.recommendations = build_recommendations(
                analysis, outcome.extraction, self.low_quality_threshold
            )
            logger.info(
                f"Analysis complete: tacit_renewal={analysis.tacit_renewal_detected} "
                f"({analysis.analysis_method.value}, {analysis.confidence_score:.2f})"
            )

        except TacitwatchError as e:
            logger.exception(f"Processing failed at {stage.value} for {document_id}: {e}")
            outcome.errors.append(f"{stage.value.capitalize()} failed: {e}")
            self._fail(record, stage)
        except Exception as e:
            logger.exception(f"Unexpected error at {stage.value} for {document_id}: {e}")
            outcome.errors.append(f"{stage.value.capitalize()} failed: internal error")
            self._fail(record, stage)

        return outcome

    def analyze_stored(self, document_id: str, use_ai: bool = True) -> ProcessingOutcome:
        """Re-run analysis on the text kept from an earlier extraction."""
        outcome = ProcessingOutcome(document_id=document_id)
        record = self.documents.get(document_id) if self.documents else None
        if record is None or not record.text:
            logger.warning(f"No extracted text stored for {document_id}")
            outcome.errors.append(f"Analysis failed: no extracted text for {document_id}")
            if record is not None:
                self._fail(record, Stage.ANALYSIS)
            return outcome

        try:
            self._set(record, Stage.ANALYSIS, StageStatus.PROCESSING)
            outcome.analysis = self.analyzer.analyze(record.text, use_ai=use_ai)
            self._set(record, Stage.ANALYSIS, StageStatus.COMPLETED)
            outcome.recommendations = build_recommendations(
                outcome.analysis, low_quality_threshold=self.low_quality_threshold
            )
        except TacitwatchError as e:
            logger.exception(f"Analysis failed for {document_id}: {e}")
            outcome.errors.append(f"Analysis failed: {e}")
            self._fail(record, Stage.ANALYSIS)
        except Exception as e:
            logger.exception(f"Unexpected error analyzing {document_id}: {e}")
            outcome.errors.append("Analysis failed: internal error")
            self._fail(record, Stage.ANALYSIS)

        return outcome

    def _load(self, document_id: str, document: RawDocument) -> DocumentRecord:
        record = self.documents.get(document_id) if self.documents else None
        if record is None:
            record = DocumentRecord(
                document_id=document_id,
                source_path=document.path,
                mime_type=document.mime_type,
            )
        return record

    def _set(self, record: DocumentRecord, stage: Stage, status: StageStatus) -> None:
        record.set_status(stage, status)
        if self.documents:
            self.documents.save(record)

    def _fail(self, record: DocumentRecord, stage: Stage) -> None:
        record.set_status(stage, StageStatus.FAILED)
        if stage is Stage.EXTRACTION:
            record.set_status(Stage.ANALYSIS, StageStatus.FAILED)
        if self.documents:
            try:
                self.documents.save(record)
            except Exception:
                logger.exception(f"Could not save failed state for {record.document_id}")
