"""
Contact field normalization shared by writes and public lookups.
"""
import re
from typing import Optional

_PHONE_NOISE = re.compile(r"[\s\-()]")
_PHONE_SHAPE = re.compile(r"^\+?\d+$")


def normalize_phone(value: Optional[str]) -> Optional[str]:
    """Strip spaces, dashes and brackets; keep a leading '+'."""
    if value is None:
        return None
    cleaned = _PHONE_NOISE.sub("", value.strip())
    return cleaned or None


def phone_digits(value: str) -> str:
    return "".join(ch for ch in value if ch.isdigit())


def looks_like_phone(value: str, min_digits: int = 10) -> bool:
    """All digits once '+', '-' and spaces are removed, and at least ``min_digits`` long."""
    stripped = value.replace("+", "").replace("-", "").replace(" ", "")
    return stripped.isdigit() and len(stripped) >= min_digits


def is_valid_phone(value: str) -> bool:
    cleaned = normalize_phone(value) or ""
    return bool(_PHONE_SHAPE.match(cleaned)) and len(phone_digits(cleaned)) >= 10


def normalize_email(value: str) -> str:
    return value.strip().lower()
