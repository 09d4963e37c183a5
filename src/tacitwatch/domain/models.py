"""Domain models."""

import hashlib
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Any


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class ClauseCategory(str, Enum):
    EXPLICIT = "explicit"
    IMPLICIT = "implicit"
    TERMINATION_CONDITION = "termination_condition"


class FieldType(str, Enum):
    DATE = "date"
    AMOUNT = "amount"
    DURATION = "duration"


class AnalysisMethod(str, Enum):
    AI = "ai"
    PATTERN = "pattern"
    PATTERN_FALLBACK = "pattern_fallback"


class CircuitStatus(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class Stage(str, Enum):
    EXTRACTION = "extraction"
    ANALYSIS = "analysis"


class StageStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class TaskType(str, Enum):
    EXTRACT_TEXT = "extract_text"
    ANALYZE = "analyze"
    CREATE_ALERTS = "create_alerts"


@dataclass(frozen=True)
class RawDocument:
    """Input document, owned by the caller and never mutated."""

    path: Path
    mime_type: str
    size: int

    @classmethod
    def from_path(cls, path: Path, mime_type: str) -> "RawDocument":
        return cls(path=path, mime_type=mime_type, size=path.stat().st_size)

    @property
    def is_pdf(self) -> bool:
        return self.mime_type == "application/pdf" or self.path.suffix.lower() == ".pdf"

    def fingerprint(self) -> str:
        """SHA-256 of the document content."""
        digest = hashlib.sha256()
        with open(self.path, "rb") as f:
            for chunk in iter(lambda: f.read(65536), b""):
                digest.update(chunk)
        return digest.hexdigest()


@dataclass(frozen=True)
class EngineConfig:
    """OCR engine configuration (page segmentation and engine mode)."""

    name: str
    psm: int
    oem: int


DEFAULT_ENGINE_CONFIGS = (
    EngineConfig(name="default", psm=3, oem=3),
    EngineConfig(name="alternative", psm=1, oem=1),
    EngineConfig(name="fallback", psm=6, oem=2),
)


@dataclass
class ExtractionAttempt:
    """One preprocessing variant x engine config trial."""

    text: str
    confidence: float
    method: str
    engine: str | None = None
    processing_time: float = 0.0

    def __post_init__(self) -> None:
        self.confidence = clamp(float(self.confidence), 0.0, 100.0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "confidence": self.confidence,
            "method": self.method,
            "engine": self.engine,
            "processing_time": self.processing_time,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExtractionAttempt":
        return cls(
            text=data["text"],
            confidence=data["confidence"],
            method=data["method"],
            engine=data.get("engine"),
            processing_time=data.get("processing_time", 0.0),
        )


@dataclass
class ExtractionResult:
    """Best extraction for a document, plus every attempt that produced text."""

    text: str
    confidence: float
    method_used: str
    all_attempts: list[ExtractionAttempt] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.confidence = clamp(float(self.confidence), 0.0, 100.0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "confidence": self.confidence,
            "method_used": self.method_used,
            "all_attempts": [a.to_dict() for a in self.all_attempts],
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExtractionResult":
        return cls(
            text=data["text"],
            confidence=data["confidence"],
            method_used=data["method_used"],
            all_attempts=[
                ExtractionAttempt.from_dict(a) for a in data.get("all_attempts", [])
            ],
            metadata=dict(data.get("metadata", {})),
        )


@dataclass
class ClauseMatch:
    category: ClauseCategory
    pattern_id: str
    matched_text: str
    confidence: float


@dataclass
class ExtractedField:
    """A single extracted value.

    Dates are ``date``, amounts ``float`` and durations ``int`` days.
    """

    name: str
    field_type: FieldType
    value: date | float | int
    confidence: float
    source_text: str = ""

    def to_dict(self) -> dict[str, Any]:
        value = self.value.isoformat() if isinstance(self.value, date) else self.value
        return {
            "type": self.field_type.value,
            "value": value,
            "confidence": self.confidence,
            "source_text": self.source_text,
        }


@dataclass
class ExtractedFields:
    """Extracted values grouped by name; the first of each list is most likely."""

    fields: dict[str, list[ExtractedField]] = field(default_factory=dict)
    notice_period_days: int | None = None

    def add(self, item: ExtractedField) -> None:
        self.fields.setdefault(item.name, []).append(item)

    def get(self, name: str) -> list[ExtractedField]:
        return self.fields.get(name, [])

    def first(self, name: str) -> ExtractedField | None:
        items = self.get(name)
        return items[0] if items else None

    def has(self, name: str) -> bool:
        return bool(self.get(name))

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            name: [item.to_dict() for item in items]
            for name, items in self.fields.items()
        }
        data["notice_period_days"] = self.notice_period_days
        return data


@dataclass
class AnalysisResult:
    """Terminal output of one analysis pass for one document."""

    tacit_renewal_detected: bool
    confidence_score: float
    analysis_method: AnalysisMethod
    extracted_fields: ExtractedFields = field(default_factory=ExtractedFields)
    clause_matches: list[ClauseMatch] = field(default_factory=list)
    validation_warnings: list[str] = field(default_factory=list)
    fallback_reason: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.confidence_score = clamp(float(self.confidence_score), 0.0, 1.0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "tacit_renewal_detected": self.tacit_renewal_detected,
            "confidence_score": self.confidence_score,
            "analysis_method": self.analysis_method.value,
            "extracted_fields": self.extracted_fields.to_dict(),
            "clause_matches": [
                {
                    "category": m.category.value,
                    "pattern_id": m.pattern_id,
                    "matched_text": m.matched_text,
                    "confidence": m.confidence,
                }
                for m in self.clause_matches
            ],
            "validation_warnings": list(self.validation_warnings),
            "fallback_reason": self.fallback_reason,
            "metadata": dict(self.metadata),
        }


@dataclass
class CircuitState:
    service_name: str
    state: CircuitStatus
    failure_count: int = 0
    success_count: int = 0
    last_failure_time: float | None = None


@dataclass
class CircuitMetrics(CircuitState):
    failure_threshold: int = 0
    success_threshold: int = 0
    recovery_timeout: float = 0.0
    remaining_recovery_time: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "service_name": self.service_name,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "success_count": self.success_count,
            "failure_threshold": self.failure_threshold,
            "success_threshold": self.success_threshold,
            "recovery_timeout": self.recovery_timeout,
            "last_failure_time": self.last_failure_time,
            "remaining_recovery_time": self.remaining_recovery_time,
        }


@dataclass
class DocumentRecord:
    """Processing state of one contract, as held by the persistence layer."""

    document_id: str
    source_path: Path | None = None
    mime_type: str = "application/pdf"
    extraction_status: StageStatus = StageStatus.PENDING
    analysis_status: StageStatus = StageStatus.PENDING
    updated_at: datetime = field(default_factory=datetime.now)
    text: str | None = None
    strategy_hint: str | None = None
    recovery_attempts: int = 0

    def status(self, stage: Stage) -> StageStatus:
        if stage is Stage.EXTRACTION:
            return self.extraction_status
        return self.analysis_status

    def set_status(self, stage: Stage, status: StageStatus) -> None:
        if stage is Stage.EXTRACTION:
            self.extraction_status = status
        else:
            self.analysis_status = status
        self.updated_at = datetime.now()


@dataclass
class TaskRequest:
    task_type: TaskType
    document_id: str
    delay: timedelta = timedelta(0)
    options: dict[str, Any] = field(default_factory=dict)


@dataclass
class QueuedTask:
    """A dispatched task as read back from the queue."""

    task_id: str
    task_type: str
    document_id: str
    run_at: datetime
    options: dict[str, Any] = field(default_factory=dict)

    def is_due(self, now: datetime) -> bool:
        return self.run_at <= now


@dataclass
class FailedTask:
    task_id: str
    task_type: str
    document_id: str | None
    failed_at: datetime
    payload: dict[str, Any] = field(default_factory=dict)
    error: str | None = None


@dataclass
class Recommendation:
    kind: str
    priority: str
    message: str
    action_required: bool = False
    details: list[str] = field(default_factory=list)


@dataclass
class ProcessingOutcome:
    """Result of running one document through the pipeline."""

    document_id: str
    extraction: ExtractionResult | None = None
    analysis: AnalysisResult | None = None
    recommendations: list[Recommendation] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return len(self.errors) == 0 and self.analysis is not None
