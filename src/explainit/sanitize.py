# src/explainit/sanitize.py
"""Helpers that keep selected text and API keys out of log records."""
import hashlib
from typing import Any


def hash_text(text: Any) -> str:
    """Short SHA-256 fingerprint so log lines can be correlated without content."""
    if not text or not isinstance(text, str):
        return "invalid"
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:16]


def mask_text(text: Any, visible_chars: int = 10) -> str:
    """Show only the first and last few characters of user text."""
    if not text or not isinstance(text, str):
        return "[empty]"

    length = len(text)
    if length <= visible_chars * 2:
        return f"[{length} chars]"

    masked_length = length - visible_chars * 2
    return f"{text[:visible_chars]}...[{masked_length} chars]...{text[-visible_chars:]}"


def mask_credential(value: Any) -> str:
    """Render an API key as its first and last four characters at most."""
    if not value or not isinstance(value, str):
        return ""
    if len(value) <= 8:
        return "*" * len(value)
    return f"{value[:4]}...{value[-4:]}"
