"""Prompt wrapping and response field validation for prompt injection mitigation."""

import re

# Unique delimiters for document text boundaries
DOC_BEGIN = "<<<CONTRACT_TEXT_BEGIN>>>"
DOC_END = "<<<CONTRACT_TEXT_END>>>"

TRUNCATION_MARK = "\n\n[Truncated...]"

# Pattern for suspicious content: path traversal, code-like, control chars
_SUSPICIOUS_PATTERN = re.compile(r"\.\./|[{}<>`]|[\x00-\x08\x0b\x0c\x0e-\x1f]")


def wrap_document(text: str, max_chars: int) -> str:
    """Truncate text to max_chars and enclose it in document delimiters.

    Delimiter strings inside the text are removed so the document cannot
    close its own block.
    """
    text = text.replace(DOC_BEGIN, "").replace(DOC_END, "")
    if len(text) > max_chars:
        text = text[:max_chars] + TRUNCATION_MARK
    return f"{DOC_BEGIN}\n{text}\n{DOC_END}"


def looks_suspicious(text: str) -> bool:
    """Check if text looks like injection attempt."""
    if not text:
        return False
    return bool(_SUSPICIOUS_PATTERN.search(text))


def sanitize_field(text: object, fallback: str | None) -> str | None:
    """Return text if it is a safe string, otherwise fallback."""
    if not isinstance(text, str) or not text.strip():
        return fallback
    if looks_suspicious(text):
        return fallback
    return text.strip()
