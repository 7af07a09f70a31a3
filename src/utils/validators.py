"""Lightweight validation helpers shared by request models and form parsing."""

import re
from typing import Any

_NON_PHONE_CHARS = re.compile(r"[^\d+]")


def ensure_present(value: Any, field: str) -> None:
    """Raise ValueError if value is falsy."""
    if value in (None, "", []):
        raise ValueError(f"{field} is required")


def clean_reference(value: str) -> str:
    """Normalize a bank reference suffix used as the deduplication key."""
    cleaned = "".join(str(value or "").split())
    ensure_present(cleaned, "reference")
    return cleaned


def clean_phone(value: str) -> str:
    """Drop spaces, dashes and brackets from a phone number."""
    cleaned = _NON_PHONE_CHARS.sub("", str(value or ""))
    ensure_present(cleaned, "phone")
    return cleaned
