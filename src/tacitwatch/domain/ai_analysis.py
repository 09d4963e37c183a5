"""AI-backed contract analysis with pattern matching as the safety net."""

import json
import logging
import math
import re
from datetime import date
from typing import Any

from ..ports.llm import LLMPort
from .circuit_breaker import CircuitBreaker
from .errors import AnalysisParseFailed, ServiceUnavailable
from .models import (
    AnalysisMethod,
    AnalysisResult,
    ExtractedField,
    ExtractedFields,
    FieldType,
    clamp,
)
from .patterns import PatternAnalyzer, normalize_text, validate_fields
from .rules import DEGRADED_RENEWAL_PHRASES
from .validation import sanitize_field, wrap_document

logger = logging.getLogger(__name__)

UNAVAILABLE_REASON = "AI service unavailable - using pattern matching"
FAILED_REASON = "AI analysis failed - using pattern matching"
FALLBACK_WARNING = "AI service temporarily unavailable, basic analysis used"
DEGRADED_WARNING = "AI response could not be parsed, result is approximate"

DEFAULT_CONFIDENCE = 0.5
DEGRADED_CONFIDENCE = 0.1
DEGRADED_RENEWAL_CONFIDENCE = 0.3

PAYMENT_FREQUENCIES = ("monthly", "quarterly", "annual", "other")

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def parse_response(raw: str) -> dict[str, Any]:
    """Parse a model response into a dict, tolerating code fences."""
    cleaned = _CODE_FENCE.sub("", raw.strip())
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise AnalysisParseFailed(f"Invalid JSON response: {e}") from e
    if not isinstance(data, dict):
        raise AnalysisParseFailed(f"Expected a JSON object, got {type(data).__name__}")
    return data


def _as_date(value: Any) -> date | None:
    if not isinstance(value, str) or not _ISO_DATE.match(value.strip()):
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        logger.warning(f"Invalid date from AI: {value}")
        return None


def _as_number(value: Any, signed: bool = False) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(str(value).replace(",", "."))
    except ValueError:
        return None
    if not math.isfinite(number) or (number < 0 and not signed):
        return None
    return number


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "oui", "1")
    return bool(value)


def _as_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    items = (sanitize_field(item, None) for item in value)
    return [item for item in items if item]


class AIAnalysisService:
    """Analyze contract text with an LLM behind a circuit breaker.

    Falls back to pattern matching when the circuit is open or the call
    fails. Without an LLM, pattern matching is the primary analyzer.
    """

    def __init__(
        self,
        llm: LLMPort | None,
        breaker: CircuitBreaker,
        patterns: PatternAnalyzer,
        max_chars: int = 8000,
    ) -> None:
        self.llm = llm
        self.breaker = breaker
        self.patterns = patterns
        self.max_chars = max_chars

    def analyze(self, text: str, use_ai: bool = True) -> AnalysisResult:
        if self.llm is None or not use_ai:
            return self.patterns.analyze(text)

        prompt = wrap_document(text, self.max_chars)
        return self.breaker.execute(
            lambda: self._analyze_with_ai(prompt),
            lambda error: self._fallback(text, error),
        )

    def _analyze_with_ai(self, prompt: str) -> AnalysisResult:
        raw = self.llm.analyze(prompt)
        logger.info(f"AI response received ({len(raw)} chars)")
        try:
            data = parse_response(raw)
        except AnalysisParseFailed as e:
            logger.warning(f"{e}: {raw[:200]}")
            return self._degraded(raw)
        return self.to_result(data)

    def to_result(self, data: dict[str, Any]) -> AnalysisResult:
        """Validate and clamp AI output into an AnalysisResult."""
        confidence = _as_number(data.get("confidence_score"), signed=True)
        confidence = clamp(confidence, 0.0, 1.0) if confidence is not None else DEFAULT_CONFIDENCE

        fields = ExtractedFields()
        for name, key in (("start_dates", "start_date"), ("end_dates", "end_date")):
            value = _as_date(data.get(key))
            if value is not None:
                fields.add(ExtractedField(name, FieldType.DATE, value, confidence))

        notice = _as_number(data.get("notice_period_days"))
        if notice is not None and notice > self.patterns.max_contract_days:
            logger.warning(f"Ignoring notice period of {notice:g} days from AI")
            notice = None
        if notice is not None:
            fields.notice_period_days = int(notice)
            fields.add(
                ExtractedField("notice_period", FieldType.DURATION, int(notice), confidence)
            )

        frequency = sanitize_field(data.get("payment_frequency"), "other")
        if frequency not in PAYMENT_FREQUENCIES:
            frequency = "other"
        amount = _as_number(data.get("amount"))
        if amount is not None and frequency in ("monthly", "annual"):
            fields.add(
                ExtractedField(f"{frequency}_amount", FieldType.AMOUNT, amount, confidence)
            )

        return AnalysisResult(
            tacit_renewal_detected=_as_bool(data.get("tacit_renewal", False)),
            confidence_score=confidence,
            analysis_method=AnalysisMethod.AI,
            extracted_fields=fields,
            validation_warnings=validate_fields(
                fields, self.patterns.max_contract_days, self.patterns.amount_tolerance
            ),
            metadata={
                "contract_type": sanitize_field(data.get("contract_type"), "other"),
                "commitment_duration": sanitize_field(data.get("commitment_duration"), None),
                "payment_frequency": frequency,
                "amount": amount,
                "termination_conditions": _as_list(data.get("termination_conditions")),
                "important_clauses": _as_list(data.get("important_clauses")),
            },
        )

    def _degraded(self, raw: str) -> AnalysisResult:
        detected = bool(DEGRADED_RENEWAL_PHRASES.search(normalize_text(raw)))
        return AnalysisResult(
            tacit_renewal_detected=detected,
            confidence_score=DEGRADED_RENEWAL_CONFIDENCE if detected else DEGRADED_CONFIDENCE,
            analysis_method=AnalysisMethod.AI,
            validation_warnings=[DEGRADED_WARNING],
            metadata={"degraded": True},
        )

    def _fallback(self, text: str, error: Exception) -> AnalysisResult:
        if isinstance(error, ServiceUnavailable):
            reason = UNAVAILABLE_REASON
            logger.info(f"AI skipped: {error}")
        else:
            reason = FAILED_REASON
            logger.error(f"AI analysis failed: {error}")

        result = self.patterns.analyze(text)
        result.analysis_method = AnalysisMethod.PATTERN_FALLBACK
        result.fallback_reason = reason
        result.validation_warnings.append(FALLBACK_WARNING)
        result.metadata["circuit_state"] = self.breaker.state().state.value
        return result
