"""Heuristic text quality scoring for extracted text."""

import re
from collections.abc import Iterable

READABLE_CHARS = re.compile(r"[a-zA-Z0-9À-ÿ]")
ALPHA_CHARS = re.compile(r"[a-zA-ZÀ-ÿ]")
SPECIAL_CHARS = re.compile(r"[^a-zA-ZÀ-ÿ0-9\s.,;:!?()\-]")
PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
TERMINAL_PUNCTUATION = re.compile(r"[.!?]")
WORD = re.compile(r"\w+")

COMMON_WORDS = (
    "le", "la", "de", "et", "à", "un", "que", "est", "pour", "du",
    "contrat", "article", "clause",
)

BASE_SCORE = 50.0
LENGTH_BONUSES = ((100, 10.0), (500, 10.0), (1000, 5.0))
ALPHA_RATIO_WEIGHT = 20.0
COMMON_WORDS_WEIGHT = 15.0
SPECIAL_CHAR_LIMIT = 0.3
SPECIAL_CHAR_PENALTY = 20.0
SHORT_WORD_LIMIT = 0.4
SHORT_WORD_PENALTY = 15.0
STRUCTURE_BONUS = 5.0


def alphanumeric_ratio(text: str) -> float:
    if not text:
        return 0.0
    return len(READABLE_CHARS.findall(text)) / len(text)


def is_readable(text: str, min_length: int = 50, min_ratio: float = 0.3) -> bool:
    """Whether a native text layer is good enough to skip OCR."""
    text = text.strip()
    return len(text) > min_length and alphanumeric_ratio(text) > min_ratio


def score_confidence(text: str, common_words: Iterable[str] = COMMON_WORDS) -> float:
    """Estimate extraction reliability on a 0-100 scale."""
    if not text:
        return 0.0

    length = len(text)
    score = BASE_SCORE

    for threshold, bonus in LENGTH_BONUSES:
        if length > threshold:
            score += bonus

    score += len(ALPHA_CHARS.findall(text)) / length * ALPHA_RATIO_WEIGHT

    words = [w.lower() for w in common_words]
    if words:
        tokens = set(WORD.findall(text.lower()))
        found = sum(1 for w in words if w in tokens)
        score += found / len(words) * COMMON_WORDS_WEIGHT

    if len(SPECIAL_CHARS.findall(text)) / length > SPECIAL_CHAR_LIMIT:
        score -= SPECIAL_CHAR_PENALTY

    # OCR noise shows up as lots of one- and two-letter fragments
    fragments = text.split()
    if fragments:
        short = sum(1 for w in fragments if len(w) <= 2)
        if short / len(fragments) > SHORT_WORD_LIMIT:
            score -= SHORT_WORD_PENALTY

    if PARAGRAPH_BREAK.search(text):
        score += STRUCTURE_BONUS
    if TERMINAL_PUNCTUATION.search(text):
        score += STRUCTURE_BONUS

    return max(0.0, min(100.0, score))


def clean_text(text: str | None) -> str:
    """Normalize OCR output while keeping paragraph structure."""
    if not text:
        return ""

    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n\s*\n\s*\n+", "\n\n", text)
    # Keep letters, digits, whitespace and common punctuation
    text = re.sub(r"[^\w\s\-.,;:!?()\[\]€$%°'\"/@]", "", text)
    text = text.replace("_", "")
    text = re.sub(r"\s+([,;:!?])", r"\1", text)
    text = re.sub(r"([.!?])\s*([A-ZÀ-Ý])", r"\1 \2", text)
    return text.strip()
