"""Human-readable employee IDs (CISS/{client}/{financial year}/{NNN}) and search tokens."""

from __future__ import annotations

import random
import re
from collections.abc import Iterable
from datetime import date

ID_PREFIX = "CISS"

_KNOWN_ABBREVIATIONS: dict[str, str] = {
    "TATA CONSULTANCY SERVICES": "TCS",
    "WIPRO": "WIPRO",
}


def abbreviate_client_name(client_name: str) -> str:
    if not client_name or not client_name.strip():
        return "CLIENT"
    upper_name = client_name.strip().upper()

    if upper_name in _KNOWN_ABBREVIATIONS:
        return _KNOWN_ABBREVIATIONS[upper_name]

    words = [w for w in re.split(r"[\s-]+", upper_name) if w]
    if len(words) > 1:
        return "".join(word[0] for word in words)

    return upper_name[:4]


def get_current_financial_year(today: date | None = None) -> str:
    """Indian financial year (April to March) containing ``today``, e.g. ``2024-25``."""
    today = today or date.today()
    if today.month >= 4:
        return f"{today.year}-{str(today.year + 1)[-2:]}"
    return f"{today.year - 1}-{str(today.year)[-2:]}"


def generate_employee_id(client_name: str, today: date | None = None) -> str:
    # Random suffix, not a reserved counter: two enrollments can collide.
    sequence = random.randint(1, 999)
    return f"{ID_PREFIX}/{abbreviate_client_name(client_name)}/{get_current_financial_year(today)}/{sequence:03d}"


def build_searchable_fields(
    full_name: str | None,
    employee_id: str | None,
    phone_number: str | None,
    extra_names: Iterable[str | None] = (),
) -> list[str]:
    """Whole uppercase tokens matched by the directory's ARRAY_CONTAINS search."""
    tokens: list[str] = [part for part in (full_name or "").upper().split() if part]
    tokens.extend((name or "").strip().upper() for name in extra_names)
    tokens.append((employee_id or "").strip().upper())
    tokens.append((phone_number or "").strip())
    return list(dict.fromkeys(t for t in tokens if t))


def normalize_search_term(term: str | None) -> str:
    return (term or "").strip().upper()
