"""Domain errors.

Only status enums and human-readable messages leave the core; the
exception text here is meant for logs.
"""

from datetime import timedelta


class TacitwatchError(Exception):
    """Base class for all pipeline errors."""

    retryable = True


class DocumentUnreadable(TacitwatchError):
    """Input is missing or corrupt. Retrying will not help."""

    retryable = False


class ExtractionFailed(TacitwatchError):
    """Every extraction strategy was exhausted without usable text."""

    def __init__(self, message: str, attempts_tried: int = 0) -> None:
        super().__init__(message)
        self.attempts_tried = attempts_tried


class ServiceUnavailable(TacitwatchError):
    """Circuit is open for a dependency and no fallback was given."""

    def __init__(self, service_name: str, retry_after: float = 0.0) -> None:
        super().__init__(
            f"Circuit breaker is open for {service_name}. "
            f"Retry in {retry_after:.0f} seconds."
        )
        self.service_name = service_name
        self.retry_after = retry_after


class AnalysisParseFailed(TacitwatchError):
    """AI response could not be parsed as structured data."""


class StaleProcessing(TacitwatchError):
    """A document stage has been processing for too long."""

    def __init__(self, document_id: str, stage: str, age: timedelta) -> None:
        hours = age.total_seconds() / 3600
        super().__init__(
            f"Document {document_id} stuck in {stage} for {hours:.1f}h"
        )
        self.document_id = document_id
        self.stage = stage
        self.age = age


class ExternalToolError(TacitwatchError):
    """An external tool (poppler, tesseract, image library) failed or timed out."""

    def __init__(self, tool: str, message: str, timed_out: bool = False) -> None:
        super().__init__(f"{tool}: {message}")
        self.tool = tool
        self.timed_out = timed_out
