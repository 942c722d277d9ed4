from __future__ import annotations

import re

_DISALLOWED = re.compile(r"[^a-z0-9]")
MASK_CHAR = "%"


def sanitize_input(value: str | int | None) -> str:
    """Normalize a ckey: lowercase, everything but a-z/0-9 dropped.

    Discord mentions collapse to the bare numeric id (`<@!123>` -> `123`).
    """
    if value is None:
        return ""
    return _DISALLOWED.sub("", str(value).strip().lower())


def mask_word(word: str) -> str:
    """`badword` -> `b%%%%%d`; words of two characters or fewer are fully masked."""
    if len(word) <= 2:
        return MASK_CHAR * len(word)
    return word[0] + MASK_CHAR * (len(word) - 2) + word[-1]


def format_score(score: float) -> str:
    # 3.0 -> "3", 2.75 -> "2.75"
    text = f"{score:.2f}".rstrip("0").rstrip(".")
    return text or "0"
