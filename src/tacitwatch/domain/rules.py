"""Rule tables for tacit renewal detection and field extraction.

Patterns run against text that went through ``normalize_text``: accents are
folded to ASCII, quotes and dashes are plain, whitespace is single spaces.
All language-specific phrasing lives here.
"""

import re
from dataclasses import dataclass

from .models import ClauseCategory, FieldType

FLAGS = re.IGNORECASE

CATEGORY_WEIGHTS = {
    ClauseCategory.EXPLICIT: 3,
    ClauseCategory.IMPLICIT: 2,
    ClauseCategory.TERMINATION_CONDITION: 1,
}

CATEGORY_CONFIDENCE = {
    ClauseCategory.EXPLICIT: 0.9,
    ClauseCategory.IMPLICIT: 0.7,
    ClauseCategory.TERMINATION_CONDITION: 0.6,
}

UNIT_DAYS = {
    "jour": 1, "jours": 1, "day": 1, "days": 1,
    "semaine": 7, "semaines": 7, "week": 7, "weeks": 7,
    "mois": 30, "month": 30, "months": 30,
    "an": 365, "ans": 365, "annee": 365, "annees": 365, "year": 365, "years": 365,
}


@dataclass(frozen=True)
class Rule:
    """A weighted renewal indicator.

    Termination rules may capture (number, unit) for the notice period.
    """

    rule_id: str
    category: ClauseCategory
    weight: int
    pattern: re.Pattern
    base_confidence: float


@dataclass(frozen=True)
class FieldRule:
    name: str
    field_type: FieldType
    pattern: re.Pattern
    confidence: float


def _rule(rule_id: str, category: ClauseCategory, pattern: str) -> Rule:
    return Rule(
        rule_id=rule_id,
        category=category,
        weight=CATEGORY_WEIGHTS[category],
        pattern=re.compile(pattern, FLAGS),
        base_confidence=CATEGORY_CONFIDENCE[category],
    )


def _field(name: str, field_type: FieldType, pattern: str, confidence: float) -> FieldRule:
    return FieldRule(name, field_type, re.compile(pattern, FLAGS), confidence)


EXPLICIT = ClauseCategory.EXPLICIT
IMPLICIT = ClauseCategory.IMPLICIT
TERMINATION = ClauseCategory.TERMINATION_CONDITION

RENEWAL_RULES: tuple[Rule, ...] = (
    _rule("tacite_reconduction", EXPLICIT, r"\btacite?s?\s+reconduction\b"),
    _rule("reconduction_tacite", EXPLICIT, r"\breconduction\s+tacite\b"),
    _rule("renouvellement_automatique", EXPLICIT, r"\brenouvellement\s+automatique\b"),
    _rule("automatiquement_renouvele", EXPLICIT, r"\bautomatiquement\s+renouvel\w*"),
    _rule("renouvele_automatiquement", EXPLICIT, r"\brenouvel\w*\s+automatiquement\b"),
    _rule("prorogation_automatique", EXPLICIT, r"\bprorog\w*\s+automatique\w*"),
    _rule("structured_renewal_type", EXPLICIT, r"renewal\s+type:\s*tacite\s+reconduction"),
    _rule("automatic_renewal", EXPLICIT, r"\b(?:automatic(?:ally)?\s+renew\w*|tacit\s+renewal)\b"),
    _rule(
        "sauf_denonciation",
        IMPLICIT,
        r"(?:sauf\s+)?denonciation\s+(?:expresse?\s+)?(?:par\s+)?(?:l'une\s+des\s+)?parties?\b",
    ),
    _rule("sauf_resiliation", IMPLICIT, r"\bsauf\s+resiliation\b"),
    _rule("a_defaut_de_denonciation", IMPLICIT, r"(?:a\s+)?defaut\s+de\s+(?:denonciation|resiliation)\b"),
    _rule("renouvelable_par_periodes", IMPLICIT, r"\brenouvelables?\s+(?:par\s+)?periodes?\b"),
    _rule("prorogation_periode", IMPLICIT, r"\bprorogation\s+d'une?\s+(?:annee|periode)\b"),
    _rule("preavis_de", TERMINATION, r"\bpreavis\s+de\s+(\d+)\s+(jours?|mois|semaines?)\b"),
    _rule(
        "lettre_recommandee",
        TERMINATION,
        r"\blettre\s+recommandee?\s+avec\s+(?:demande\s+d')?(?:avis\s+d'|accuse\s+de\s+)reception\b",
    ),
    _rule("avant_echeance", TERMINATION, r"\b(\d+)\s+(mois|jours?)\s+avant\s+(?:l')?echeance\b"),
    _rule("delai_de_preavis", TERMINATION, r"\bdelai\s+de\s+preavis\s+de\s+(\d+)\b"),
    _rule("structured_notice_days", TERMINATION, r"cancellation\s+notice\s+days:\s*(\d+)"),
)

# (d)d/(m)m/yyyy with / - or . separators
_DMY = r"(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{4})"
# Structured yyyy-mm-dd
_YMD = r"(\d{4})[/\-](\d{1,2})[/\-](\d{1,2})"
_AMOUNT = r"(\d+(?:[.,]\d{1,2})?)"
_CURRENCY = r"(?:€|eur(?:os?)?\b)"
_DURATION_UNITS = r"(jours?|semaines?|mois|ans?|annees?|days?|weeks?|months?|years?)"

DATE_RULES: tuple[FieldRule, ...] = (
    _field(
        "start_dates", FieldType.DATE,
        r"(?:prend\s+effet|commence|debute|entre\s+en\s+vigueur)\s+(?:le\s+|a\s+compter\s+du\s+)?" + _DMY,
        0.8,
    ),
    _field("start_dates", FieldType.DATE, r"\b(?:a\s+)?compter\s+du\s+" + _DMY, 0.8),
    _field("start_dates", FieldType.DATE, r"start\s+date:\s*" + _YMD, 0.8),
    _field(
        "end_dates", FieldType.DATE,
        r"(?:jusqu'au|jusqu'a|se\s+termine\s+le|prend\s+fin\s+le)\s+" + _DMY,
        0.8,
    ),
    _field("end_dates", FieldType.DATE, r"\becheance\s+(?:du\s+|le\s+)?" + _DMY, 0.8),
    _field("end_dates", FieldType.DATE, r"end\s+date:\s*" + _YMD, 0.8),
    _field("renewal_dates", FieldType.DATE, r"\brenouvelable?\s+(?:le\s+)?" + _DMY, 0.8),
    _field("renewal_dates", FieldType.DATE, r"\bprochaine\s+echeance\s+(?:le\s+)?" + _DMY, 0.8),
)

AMOUNT_RULES: tuple[FieldRule, ...] = (
    _field("monthly_amount", FieldType.AMOUNT, _AMOUNT + r"\s*" + _CURRENCY + r"\s*(?:/|par)\s*mois\b", 0.75),
    _field("monthly_amount", FieldType.AMOUNT, r"\bmensuel(?:le)?\s*:?\s*(?:de\s+)?" + _AMOUNT, 0.75),
    _field("monthly_amount", FieldType.AMOUNT, r"\bmonthly\s+(?:amount|fee)\s*:?\s*" + _AMOUNT, 0.75),
    _field("annual_amount", FieldType.AMOUNT, _AMOUNT + r"\s*" + _CURRENCY + r"\s*(?:/|par)\s*an\b", 0.75),
    _field("annual_amount", FieldType.AMOUNT, r"\bannuel(?:le)?\s*:?\s*(?:de\s+)?" + _AMOUNT, 0.75),
    _field("annual_amount", FieldType.AMOUNT, r"\bannual\s+(?:amount|fee)\s*:?\s*" + _AMOUNT, 0.75),
    _field("total_amount", FieldType.AMOUNT, r"\b(?:montant\s+)?total\s*:?\s*(?:de\s+)?" + _AMOUNT, 0.75),
    _field("total_amount", FieldType.AMOUNT, r"\bcout\s+(?:total\s+)?:?\s*" + _AMOUNT, 0.75),
)

DURATION_RULES: tuple[FieldRule, ...] = (
    _field(
        "contract_duration", FieldType.DURATION,
        r"\bduree\s+(?:du\s+contrat\s+)?(?:initiale\s+)?:?\s*(?:de\s+)?(\d+)\s+" + _DURATION_UNITS + r"\b",
        0.8,
    ),
    _field(
        "contract_duration", FieldType.DURATION,
        r"\bperiode\s+(?:initiale\s+)?:?\s*(?:de\s+)?(\d+)\s+(ans?|mois|annees?)\b",
        0.8,
    ),
    _field("contract_duration", FieldType.DURATION, r"\b(?:duration|term)\s*:?\s*(\d+)\s+" + _DURATION_UNITS + r"\b", 0.8),
    _field("notice_period", FieldType.DURATION, r"\bpreavis\s+de\s+(\d+)\s+(jours?|mois|semaines?)\b", 0.8),
    _field("notice_period", FieldType.DURATION, r"\bdelai\s+de\s+preavis\s*:?\s*(\d+)\s+(jours?|mois)\b", 0.8),
    _field("notice_period", FieldType.DURATION, r"\b(\d+)\s+(days?)'?\s+(?:prior\s+)?(?:written\s+)?notice\b", 0.8),
    _field(
        "renewal_period", FieldType.DURATION,
        r"\brenouvelables?\s+(?:par\s+)?periodes?\s+(?:successives\s+)?de\s+(\d+)\s+(ans?|mois|annees?)\b",
        0.8,
    ),
    _field("renewal_period", FieldType.DURATION, r"\breconduction\s+pour\s+(\d+)\s+(ans?|mois|annees?)\b", 0.8),
)

FIELD_RULES: tuple[FieldRule, ...] = DATE_RULES + AMOUNT_RULES + DURATION_RULES

# Phrases that count as a renewal signal in free-form AI output
DEGRADED_RENEWAL_PHRASES = re.compile(
    r"reconduction\s+tacite|tacite\s+reconduction|tacit\s+renewal|renouvellement\s+automatique"
    r"|automatic(?:ally)?\s+renew",
    FLAGS,
)


def to_days(value: int, unit: str) -> int:
    """Convert a duration to days (month = 30, year = 365). Unknown units give 0."""
    return value * UNIT_DAYS.get(unit.strip().lower(), 0)
