"""Text normalization for deterministic command parsing."""

from __future__ import annotations

import re

_THOUSANDS_SEP_RE = re.compile(r"(?<=\d),(?=\d{3}(?!\d))")
_MULTISPACE_RE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Normalize a spoken/typed command for the fallback parser.

    Normalization keeps everything the price and quantity patterns rely on (currency symbols,
    decimal points, `rs.`):
        - Lowercase.
        - Unicode dashes -> ASCII hyphen.
        - Drop thousands separators ("1,200" -> "1200").
        - Collapse whitespace.
    """

    value = (text or "").strip().lower()
    value = value.replace("—", "-").replace("–", "-")
    value = _THOUSANDS_SEP_RE.sub("", value)
    return _MULTISPACE_RE.sub(" ", value).strip()
