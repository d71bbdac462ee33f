"""Granularity-aware formatting of `AddressComponents`.

Two styles exist. Domestic (Chinese) addresses concatenate components with no
separator and collapse province/city for direct-administered municipalities,
detected here by plain equality of the two names. International addresses
join components with ``", "``.
"""

from __future__ import annotations

import re

from core.models import AddressComponents, Granularity

_CJK_RE = re.compile(r"[\u4e00-\u9fff]")


def has_cjk(text: str) -> bool:
    """True if `text` contains a CJK unified ideograph."""
    return bool(_CJK_RE.search(text or ""))


def components_have_cjk(c: AddressComponents) -> bool:
    return has_cjk("".join((c.province, c.city, c.district, c.street, c.street_number)))


def trim_address_by_level(
    c: AddressComponents, level: Granularity | str, hide_province: bool = False
) -> str:
    """Concatenate domestic address parts down to `level`."""
    level = Granularity(getattr(level, "value", level))
    skip_province = hide_province or c.province == c.city
    head = c.city if skip_province else f"{c.province}{c.city}"

    if level is Granularity.CITY:
        return head
    if level is Granularity.DISTRICT:
        return f"{head}{c.district}"
    return f"{head}{c.district}{c.street or ''}{c.street_number or ''}"


def format_international_address(
    c: AddressComponents, level: Granularity | str, hide_province: bool = False
) -> str:
    """Comma-join international address parts down to `level`."""
    level = Granularity(getattr(level, "value", level))

    if level is Granularity.CITY:
        if hide_province:
            return c.city or c.province
        return ", ".join(p for p in (c.city, c.province) if p)

    if level is Granularity.DISTRICT:
        parts = [c.district, c.city]
    else:
        street = f"{c.street_number} {c.street}" if c.street_number else c.street
        parts = [street, c.district, c.city]
    if not hide_province:
        parts.append(c.province)
    return ", ".join(p for p in parts if p)
