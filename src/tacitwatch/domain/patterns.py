"""Pattern matching rule engine for tacit renewal clauses."""

import logging
import re
import unicodedata
from collections.abc import Sequence
from datetime import date
from typing import Any

from .models import (
    AnalysisMethod,
    AnalysisResult,
    ClauseCategory,
    ClauseMatch,
    ExtractedField,
    ExtractedFields,
    FieldType,
    clamp,
)
from .rules import FIELD_RULES, RENEWAL_RULES, FieldRule, Rule, to_days

logger = logging.getLogger(__name__)

_GLYPHS = str.maketrans({
    "‐": "-", "‑": "-", "‒": "-", "–": "-", "—": "-", "−": "-",
    "‘": "'", "’": "'", "‚": "'", "′": "'", "`": "'",
    "“": '"', "”": '"', "„": '"', "«": '"', "»": '"',
})

DATA_WEIGHTS = {
    "start_dates": 0.2,
    "end_dates": 0.2,
    "amount": 0.2,
    "notice_period": 0.3,
    "contract_duration": 0.1,
}


def normalize_text(text: str) -> str:
    """Fold accents, map typographic glyphs to ASCII and collapse whitespace."""
    decomposed = unicodedata.normalize("NFKD", text)
    folded = "".join(c for c in decomposed if not unicodedata.combining(c))
    return " ".join(folded.translate(_GLYPHS).split())


def _parse_number(raw: str) -> float:
    return float(raw.replace(",", "."))


def _parse_date(groups: Sequence[str]) -> date:
    first, second, third = (int(g) for g in groups)
    if len(groups[0]) == 4 and first > 1900:
        return date(first, second, third)
    return date(third, second, first)


def validate_fields(
    fields: ExtractedFields,
    max_contract_days: int = 3650,
    amount_tolerance: float = 0.15,
) -> list[str]:
    """Cross-field consistency checks. Returns warnings, never raises."""
    warnings: list[str] = []

    start = fields.first("start_dates")
    end = fields.first("end_dates")
    if start and end:
        if end.value <= start.value:
            warnings.append("End date is on or before start date")
        elif (end.value - start.value).days > max_contract_days:
            warnings.append(f"Contract spans more than {max_contract_days} days")

    duration = fields.first("contract_duration")
    if duration and duration.value > max_contract_days:
        warnings.append(f"Contract duration exceeds {max_contract_days} days")

    monthly = fields.first("monthly_amount")
    annual = fields.first("annual_amount")
    if monthly and annual and monthly.value > 0:
        expected = monthly.value * 12
        if abs(annual.value - expected) > expected * amount_tolerance:
            warnings.append(
                f"Annual amount {annual.value:g} inconsistent with monthly "
                f"amount {monthly.value:g} x 12"
            )

    notice = fields.notice_period_days
    if notice is not None and not 1 <= notice <= 365:
        warnings.append(f"Notice period of {notice} days is outside 1-365")

    return warnings


def data_completeness(fields: ExtractedFields) -> float:
    score = 0.0
    if fields.has("start_dates"):
        score += DATA_WEIGHTS["start_dates"]
    if fields.has("end_dates"):
        score += DATA_WEIGHTS["end_dates"]
    if fields.has("monthly_amount") or fields.has("annual_amount"):
        score += DATA_WEIGHTS["amount"]
    if fields.notice_period_days is not None:
        score += DATA_WEIGHTS["notice_period"]
    if fields.has("contract_duration"):
        score += DATA_WEIGHTS["contract_duration"]
    return score


def overall_confidence(
    detected: bool,
    matches: Sequence[ClauseMatch],
    fields: ExtractedFields,
    warning_count: int,
) -> float:
    """0.4 renewal evidence + 0.4 data completeness + 0.2 consistency."""
    renewal = min(1.0, sum(m.confidence for m in matches) * 0.3) if detected else 0.0
    consistency = max(0.0, 1.0 - 0.1 * warning_count)
    score = 0.4 * renewal + 0.4 * data_completeness(fields) + 0.2 * consistency
    return round(clamp(score, 0.0, 1.0), 3)


class PatternAnalyzer:
    """Deterministic analyzer over the rule tables."""

    def __init__(
        self,
        detection_ratio: float = 0.3,
        explicit_min_matches: int = 2,
        corroborated_explicit: bool = True,
        max_contract_days: int = 3650,
        amount_tolerance: float = 0.15,
        rules: Sequence[Rule] = RENEWAL_RULES,
        field_rules: Sequence[FieldRule] = FIELD_RULES,
    ) -> None:
        self.detection_ratio = detection_ratio
        self.explicit_min_matches = explicit_min_matches
        self.corroborated_explicit = corroborated_explicit
        self.max_contract_days = max_contract_days
        self.amount_tolerance = amount_tolerance
        self.rules = tuple(rules)
        self.field_rules = tuple(field_rules)

    def analyze(self, text: str) -> AnalysisResult:
        normalized = normalize_text(text)
        matches, score, notice_days = self._match_rules(normalized)
        max_score = sum(rule.weight for rule in self.rules)

        explicit_count = sum(1 for m in matches if m.category is ClauseCategory.EXPLICIT)
        supporting = len(matches) - explicit_count
        ratio = score / max_score if max_score else 0.0
        detected = (
            explicit_count >= self.explicit_min_matches
            or ratio >= self.detection_ratio
            or (self.corroborated_explicit and explicit_count >= 1 and supporting >= 1)
        )

        fields, warnings = self._extract_fields(normalized)
        if notice_days is None:
            notice_field = fields.first("notice_period")
            if notice_field is not None:
                notice_days = int(notice_field.value)
        fields.notice_period_days = notice_days

        warnings.extend(
            validate_fields(fields, self.max_contract_days, self.amount_tolerance)
        )
        confidence = overall_confidence(detected, matches, fields, len(warnings))

        logger.debug(
            f"Pattern analysis: score {score}/{max_score}, "
            f"{explicit_count} explicit, detected={detected}"
        )

        return AnalysisResult(
            tacit_renewal_detected=detected,
            confidence_score=confidence,
            analysis_method=AnalysisMethod.PATTERN,
            extracted_fields=fields,
            clause_matches=matches,
            validation_warnings=warnings,
            metadata={"pattern_score": score, "max_score": max_score},
        )

    def _match_rules(self, text: str) -> tuple[list[ClauseMatch], int, int | None]:
        matches: list[ClauseMatch] = []
        score = 0
        notice_days: int | None = None

        # One match per rule: repeating a phrase adds no evidence.
        for rule in self.rules:
            m = rule.pattern.search(text)
            if m is None:
                continue
            score += rule.weight
            matches.append(
                ClauseMatch(
                    category=rule.category,
                    pattern_id=rule.rule_id,
                    matched_text=m.group(0),
                    confidence=rule.base_confidence,
                )
            )
            if (
                notice_days is None
                and rule.category is ClauseCategory.TERMINATION_CONDITION
                and m.groups()
                and m.group(1)
            ):
                unit = m.group(2) if m.lastindex and m.lastindex >= 2 else "jours"
                notice_days = to_days(int(m.group(1)), unit or "jours")

        return matches, score, notice_days

    def _extract_fields(self, text: str) -> tuple[ExtractedFields, list[str]]:
        fields = ExtractedFields()
        warnings: list[str] = []
        seen: set[tuple[str, Any]] = set()

        for rule in self.field_rules:
            for m in rule.pattern.finditer(text):
                try:
                    value = self._convert(rule.field_type, m.groups())
                except ValueError:
                    warnings.append(f"Invalid date skipped: {m.group(0)}")
                    continue
                if value is None or (rule.name, value) in seen:
                    continue
                seen.add((rule.name, value))
                fields.add(
                    ExtractedField(
                        name=rule.name,
                        field_type=rule.field_type,
                        value=value,
                        confidence=rule.confidence,
                        source_text=m.group(0),
                    )
                )

        return fields, warnings

    @staticmethod
    def _convert(field_type: FieldType, groups: Sequence[str]) -> date | float | int | None:
        if field_type is FieldType.DATE:
            return _parse_date(groups)
        if field_type is FieldType.AMOUNT:
            return _parse_number(groups[0])
        days = to_days(int(groups[0]), groups[1])
        return days or None


def summarize(result: AnalysisResult) -> dict[str, Any]:
    """Key findings for display."""
    fields = result.extracted_fields
    findings: dict[str, Any] = {
        "tacit_renewal": result.tacit_renewal_detected,
        "confidence": result.confidence_score,
        "method": result.analysis_method.value,
    }
    for label, name in (("start_date", "start_dates"), ("end_date", "end_dates")):
        item = fields.first(name)
        if item is not None:
            findings[label] = item.value.isoformat()
    if fields.notice_period_days is not None:
        findings["notice_period_days"] = fields.notice_period_days
    for name in ("monthly_amount", "annual_amount"):
        item = fields.first(name)
        if item is not None:
            findings[name] = item.value
    if result.validation_warnings:
        findings["warnings"] = len(result.validation_warnings)
    return findings
