"""Unit tests for domain models."""

from datetime import date
from pathlib import Path

from tacitwatch.domain.models import (
    AnalysisMethod,
    AnalysisResult,
    DocumentRecord,
    ExtractedField,
    ExtractedFields,
    ExtractionAttempt,
    ExtractionResult,
    FieldType,
    ProcessingOutcome,
    RawDocument,
    Stage,
    StageStatus,
)


def analysis() -> AnalysisResult:
    return AnalysisResult(
        tacit_renewal_detected=False,
        confidence_score=0.4,
        analysis_method=AnalysisMethod.PATTERN,
    )


class TestProcessingOutcome:
    """Tests for ProcessingOutcome."""

    def test_success_when_no_errors_and_has_analysis(self) -> None:
        outcome = ProcessingOutcome(document_id="doc-1", analysis=analysis())
        assert outcome.success is True

    def test_failure_when_has_errors(self) -> None:
        outcome = ProcessingOutcome(
            document_id="doc-1", analysis=analysis(), errors=["Analysis failed: boom"]
        )
        assert outcome.success is False

    def test_failure_when_no_analysis(self) -> None:
        assert ProcessingOutcome(document_id="doc-1").success is False

    def test_defaults(self) -> None:
        outcome = ProcessingOutcome(document_id="doc-1")
        assert outcome.extraction is None
        assert outcome.recommendations == []
        assert outcome.errors == []


class TestClamping:
    """Confidence values are clamped on construction."""

    def test_extraction_confidence(self) -> None:
        assert ExtractionAttempt(text="x", confidence=140, method="original").confidence == 100
        assert ExtractionResult(text="x", confidence=-3, method_used="native").confidence == 0

    def test_analysis_confidence(self) -> None:
        result = AnalysisResult(
            tacit_renewal_detected=True,
            confidence_score=1.7,
            analysis_method=AnalysisMethod.AI,
        )
        assert result.confidence_score == 1.0


class TestExtractionResult:
    """Tests for ExtractionResult serialization."""

    def test_dict_round_trip(self) -> None:
        result = ExtractionResult(
            text="Contrat",
            confidence=72.5,
            method_used="enhanced",
            all_attempts=[
                ExtractionAttempt(
                    text="Contrat", confidence=72.5, method="enhanced", engine="default"
                )
            ],
            metadata={"attempts_tried": 4},
        )

        restored = ExtractionResult.from_dict(result.to_dict())

        assert restored == result


class TestExtractedFields:
    """Tests for ExtractedFields."""

    def test_first_is_earliest(self) -> None:
        fields = ExtractedFields()
        fields.add(ExtractedField("end_dates", FieldType.DATE, date(2024, 12, 31), 0.8))
        fields.add(ExtractedField("end_dates", FieldType.DATE, date(2025, 12, 31), 0.8))

        assert fields.first("end_dates").value == date(2024, 12, 31)
        assert fields.first("start_dates") is None

    def test_to_dict_formats_dates(self) -> None:
        fields = ExtractedFields(notice_period_days=30)
        fields.add(ExtractedField("end_dates", FieldType.DATE, date(2024, 12, 31), 0.8))

        data = fields.to_dict()

        assert data["end_dates"][0]["value"] == "2024-12-31"
        assert data["notice_period_days"] == 30


class TestRawDocument:
    """Tests for RawDocument."""

    def test_fingerprint_depends_on_content(self, tmp_path: Path) -> None:
        a = tmp_path / "a.pdf"
        b = tmp_path / "b.pdf"
        a.write_bytes(b"same")
        b.write_bytes(b"same")

        first = RawDocument.from_path(a, "application/pdf")
        second = RawDocument.from_path(b, "application/pdf")

        assert first.fingerprint() == second.fingerprint()
        assert first.size == 4

    def test_pdf_by_extension(self) -> None:
        document = RawDocument(Path("/scan.PDF"), "application/octet-stream", 0)
        assert document.is_pdf is True


class TestDocumentRecord:
    """Tests for DocumentRecord."""

    def test_set_status_touches_updated_at(self) -> None:
        record = DocumentRecord(document_id="doc-1")
        before = record.updated_at

        record.set_status(Stage.ANALYSIS, StageStatus.FAILED)

        assert record.status(Stage.ANALYSIS) is StageStatus.FAILED
        assert record.status(Stage.EXTRACTION) is StageStatus.PENDING
        assert record.updated_at >= before
