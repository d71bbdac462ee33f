"""Timestamp parsing and token-based formatting.

Capture times travel through the system as ``YYYY-MM-DD HH:mm:ss`` strings.
Parsing here is best-effort and never raises; callers get `None` back when a
value cannot be understood.
"""

from __future__ import annotations

from datetime import datetime
import re

NORMALIZED_DT_FMT = "%Y-%m-%d %H:%M:%S"

_PARSE_FORMATS = (
    NORMALIZED_DT_FMT,
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%Y:%m:%d %H:%M:%S",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d",
)

# Alternation order is longest-first so `MM` is never consumed as two `M`s.
_TOKEN_RE = re.compile(r"YYYY|YY|MM|M|DD|D|HH|H|mm|m|ss|s")


def parse_datetime(value: str | None) -> datetime | None:
    """Parse a capture-time or birthday string; return None on failure."""
    if not value:
        return None
    text = str(value).strip()
    for fmt in _PARSE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def normalize_exif_datetime(raw: str) -> str:
    """Rewrite the colon-delimited EXIF date prefix (``2024:01:15``) with hyphens."""
    return re.sub(r"^(\d{4}):(\d{2}):(\d{2})", r"\1-\2-\3", raw.strip().strip("\x00"))


def format_datetime(value: str | None, fmt: str) -> str:
    """Format `value` using ``YYYY YY MM M DD D HH H mm m ss s`` tokens.

    Unparseable input is returned unchanged; empty input gives an empty string.
    """
    if not value:
        return ""
    dt = parse_datetime(value)
    if dt is None:
        return value

    replacements = {
        "YYYY": f"{dt.year:04d}",
        "YY": f"{dt.year:04d}"[-2:],
        "MM": f"{dt.month:02d}",
        "M": str(dt.month),
        "DD": f"{dt.day:02d}",
        "D": str(dt.day),
        "HH": f"{dt.hour:02d}",
        "H": str(dt.hour),
        "mm": f"{dt.minute:02d}",
        "m": str(dt.minute),
        "ss": f"{dt.second:02d}",
        "s": str(dt.second),
    }
    return _TOKEN_RE.sub(lambda m: replacements[m.group(0)], fmt)
