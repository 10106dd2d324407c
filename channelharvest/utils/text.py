"""String sanitizing helpers shared by parsers and sinks."""

from typing import Any

# Column limits used by parsers and the database sink
NAME_MAX = 512
URL_MAX = 2048
WEB_URL_MAX = 1024
LABEL_MAX = 255
PLACE_MAX = 128
SHORT_MAX = 64


def sanitize(value: Any, max_length: int, default: str = "") -> str:
    """Coerce to a stripped single-line string no longer than ``max_length``."""
    if value is None:
        return default
    text = str(value).replace("\r", " ").replace("\n", " ").replace("\x00", "").strip()
    if not text:
        return default
    return text[:max_length]


def first_segment(value: Any, separator: str = ",") -> str:
    """First non-empty element of a list or separated string."""
    if isinstance(value, (list, tuple)):
        for item in value:
            text = str(item).strip() if item is not None else ""
            if text:
                return text
        return ""
    if value is None:
        return ""
    for part in str(value).split(separator):
        part = part.strip()
        if part:
            return part
    return ""


def initials(name: str, limit: int = 2) -> str:
    """Uppercase initials of up to ``limit`` words, '?' for an empty name."""
    words = [w for w in (name or "").split() if w and w[0].isalnum()]
    letters = "".join(w[0] for w in words[:limit]).upper()
    return letters or "?"


def split_values(value: Any, separators: str = ",;") -> list[str]:
    """Non-empty stripped elements of a list or a string split on any of ``separators``."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        parts = [str(item) for item in value if item is not None]
    else:
        parts = [str(value)]
    for separator in separators:
        parts = [piece for part in parts for piece in part.split(separator)]
    return [part.strip() for part in parts if part.strip()]
