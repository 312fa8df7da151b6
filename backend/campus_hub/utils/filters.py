"""Search and filter helpers for the listing pages.

Listings are fetched in full and narrowed here, mirroring the search
boxes and drop-downs of the accommodation and marketplace pages. The
value `all` (any case) or an empty value disables a filter.
"""

from typing import Iterable, List, Optional

ACCOMMODATION_PRICE_BANDS = ("budget", "mid", "premium")
MARKETPLACE_PRICE_BANDS = ("under50", "50to100", "over100")


def _is_unset(value: Optional[str]) -> bool:
    return value is None or not value.strip() or value.strip().lower() == "all"


def matches_text(term: Optional[str], *fields: Optional[str]) -> bool:
    """Case-insensitive substring match of `term` against any field."""
    if term is None or not term.strip():
        return True
    needle = term.strip().lower()
    return any(needle in (f or "").lower() for f in fields)


def in_accommodation_band(price: float, band: Optional[str]) -> bool:
    if _is_unset(band):
        return True
    band = band.strip().lower()
    if band == "budget":
        return price <= 350
    if band == "mid":
        return 350 < price <= 500
    if band == "premium":
        return price > 500
    raise ValueError(f"unknown price_range: {band}")


def in_marketplace_band(price: float, band: Optional[str]) -> bool:
    if _is_unset(band):
        return True
    band = band.strip().lower()
    if band == "under50":
        return price < 50
    if band == "50to100":
        return 50 <= price <= 100
    if band == "over100":
        return price > 100
    raise ValueError(f"unknown price_range: {band}")


def filter_accommodations(
    rows: Iterable,
    search: Optional[str] = None,
    price_range: Optional[str] = None,
    room_type: Optional[str] = None,
    location: Optional[str] = None,
    available_only: bool = False,
) -> List:
    """Filter accommodation rows the way the listing page does.

    Search matches name or location; room type is compared
    case-insensitively; location must match exactly.
    """
    out = []
    for row in rows:
        if not matches_text(search, row.name, row.location):
            continue
        if not in_accommodation_band(row.price, price_range):
            continue
        if not _is_unset(room_type) and row.room_type.lower() != room_type.strip().lower():
            continue
        if not _is_unset(location) and row.location != location:
            continue
        if available_only and not row.available:
            continue
        out.append(row)
    return out


def filter_marketplace_items(
    rows: Iterable,
    search: Optional[str] = None,
    category: Optional[str] = None,
    price_range: Optional[str] = None,
    condition: Optional[str] = None,
) -> List:
    """Filter marketplace rows by text, category, price band and condition."""
    out = []
    for row in rows:
        if not matches_text(search, row.title, row.description):
            continue
        if not _is_unset(category) and row.category != category:
            continue
        if not in_marketplace_band(row.price, price_range):
            continue
        if not _is_unset(condition) and row.condition != condition:
            continue
        out.append(row)
    return out
