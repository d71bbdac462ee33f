"""Subject age computation with calendar-field borrowing."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta

from core.services.datetime_format import parse_datetime

_ZH_UNITS = {"years": "岁", "months": "个月", "days": "天"}
_ZERO_DAYS = {"zh": "0天", "en": "0 days"}


@dataclass(frozen=True)
class AgeParts:
    """Elapsed calendar years, months and days."""

    years: int
    months: int
    days: int


def _days_in_previous_month(ref: date) -> int:
    return (ref.replace(day=1) - timedelta(days=1)).day


def age_parts(birth: date, ref: date) -> AgeParts | None:
    """Decompose the span from `birth` to `ref`; None when `ref` precedes `birth`.

    A negative day difference borrows the length of the month before `ref`'s
    month, with the birth day clamped to that month's length; a negative month
    difference borrows a year.
    """
    if ref < birth:
        return None
    years = ref.year - birth.year
    months = ref.month - birth.month
    days = ref.day - birth.day
    if days < 0:
        months -= 1
        prev_len = _days_in_previous_month(ref)
        days = ref.day + prev_len - min(birth.day, prev_len)
    if months < 0:
        years -= 1
        months += 12
    return AgeParts(years, months, days)


def _en_unit(n: int, unit: str) -> str:
    return f"{n} {unit}" if n == 1 else f"{n} {unit}s"


def _format_en(parts: AgeParts, fmt: str) -> str:
    y, m, d = parts.years, parts.months, parts.days
    if fmt == "years":
        return _en_unit(y, "year")
    if fmt == "years-months":
        if y == 0:
            return _en_unit(m, "month")
        if m == 0:
            return _en_unit(y, "year")
        return f"{_en_unit(y, 'year')} {_en_unit(m, 'month')}"
    if fmt == "years-months-days":
        out = []
        if y > 0:
            out.append(_en_unit(y, "year"))
        if m > 0:
            out.append(_en_unit(m, "month"))
        if d > 0:
            out.append(_en_unit(d, "day"))
        return " ".join(out) if out else _ZERO_DAYS["en"]
    return f"{_en_unit(y, 'year')} {_en_unit(m, 'month')}"


def _format_zh(parts: AgeParts, fmt: str) -> str:
    y, m, d = parts.years, parts.months, parts.days
    yu, mu, du = _ZH_UNITS["years"], _ZH_UNITS["months"], _ZH_UNITS["days"]
    if fmt == "years":
        return f"{y}{yu}"
    if fmt == "years-months":
        if y == 0:
            return f"{m}{mu}"
        if m == 0:
            return f"{y}{yu}"
        return f"{y}{yu}{m}{mu}"
    if fmt == "years-months-days":
        out = []
        if y > 0:
            out.append(f"{y}{yu}")
        if m > 0:
            out.append(f"{m}{mu}")
        if d > 0:
            out.append(f"{d}{du}")
        return "".join(out) if out else _ZERO_DAYS["zh"]
    return f"{y}{yu}{m}{mu}"


def calc_age(birthday: str, photo_date: str, fmt: str = "years-months", lang: str = "zh") -> str:
    """Return the localized age at `photo_date` for someone born on `birthday`.

    Args:
        birthday: ``YYYY-MM-DD`` (a time part is accepted and ignored).
        photo_date: Normalized capture time, ``YYYY-MM-DD HH:mm:ss``.
        fmt: ``years``, ``years-months`` or ``years-months-days``.
        lang: ``zh`` or ``en``; anything else renders Chinese.

    Returns:
        The formatted age, or an empty string when either date is unparseable
        or the photo predates the birthday.
    """
    birth = parse_datetime(birthday)
    photo = parse_datetime(photo_date)
    if birth is None or photo is None or photo < birth:
        return ""
    parts = age_parts(birth.date(), photo.date())
    if parts is None:
        return ""
    if lang == "en":
        return _format_en(parts, fmt)
    return _format_zh(parts, fmt)
