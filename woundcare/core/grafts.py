"""Skin graft product catalog and wound size parsing."""
from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional


@dataclass(frozen=True)
class GraftOption:
    manufacturer: str
    name: str
    # CMS Q-code as shown to users, including the -Q# quarter suffix
    q_code: str
    # Billable rate per square centimetre for the quarter
    asp: Decimal
    year: int
    quarter: str
    is_active: bool = True


def _graft(manufacturer: str, name: str, asp: str, q_code: str, active: bool = True) -> GraftOption:
    return GraftOption(
        manufacturer=manufacturer,
        name=name,
        q_code=q_code,
        asp=Decimal(asp),
        year=2025,
        quarter="Q4",
        is_active=active,
    )


# Q4 2025 CMS pricing. Replace the list wholesale each quarter.
GRAFT_OPTIONS: List[GraftOption] = [
    _graft("Biolab", "Membrane Wrap", "1237.28", "Q4205-Q4"),
    _graft("Biolab", "Membrane Hydro", "1867.01", "Q4290-Q4"),
    _graft("Biolab", "Membrane Tri Layer", "3574.39", "Q4344-Q4"),
    _graft("Dermabind", "Dermabind Q2", "3337.23", "Q4313-Q2", active=False),
    _graft("Dermabind", "Dermabind", "3312.52", "Q4313-Q4"),
    _graft("Revogen", "Revoshield", "1523.05", "Q4289-Q4"),
    _graft("Revogen", "Vitograft", "4770.00", "Q4317-Q4"),
    _graft("Evolution", "Esano", "2707.30", "Q4275-Q4"),
    _graft("Evolution", "Simplimax", "3524.11", "Q4341-Q4"),
    _graft("AmchoPlast", "AmchoPlast", "4227.97", "Q4316-Q4"),
    _graft("Encoll", "Helicoll", "1640.93", "Q4164-Q4"),
    _graft("Arsenal", "Aminoamp", "2979.56", "Q4250-Q4"),
    _graft("Generic", "2026 Rate Drop", "800.00", "Q4000-Q4"),
]


def active_grafts(options: Optional[List[GraftOption]] = None) -> List[GraftOption]:
    return [g for g in (options if options is not None else GRAFT_OPTIONS) if g.is_active]


def find_graft(name: str | None, options: Optional[List[GraftOption]] = None) -> GraftOption | None:
    """Look up a graft by product name, case-insensitively."""
    if not name:
        return None
    wanted = name.strip().lower()
    for graft in options if options is not None else GRAFT_OPTIONS:
        if graft.name.lower() == wanted:
            return graft
    return None


def validate_graft_data(options: Optional[List[GraftOption]] = None) -> list[str]:
    """Return problems with the catalog: duplicate entries or non-positive ASP."""
    errors: list[str] = []
    seen: set[tuple[str, str, str]] = set()
    for graft in options if options is not None else GRAFT_OPTIONS:
        key = (graft.manufacturer, graft.name, graft.q_code)
        if key in seen:
            errors.append(f"Duplicate graft: {graft.manufacturer} {graft.name} ({graft.q_code})")
        seen.add(key)
        if graft.asp <= 0:
            errors.append(f"Invalid ASP for {graft.manufacturer} {graft.name}: {graft.asp}")
    return errors


_DIMENSIONS_RE = re.compile(r"([\d.]+)\s*(?:cm)?\s*[x×]\s*([\d.]+)", re.IGNORECASE)
_NUMBER_RE = re.compile(r"([\d.]+)")


def _to_float(text: str) -> float:
    try:
        return float(text)
    except ValueError:
        return 0.0


def parse_wound_size(raw: str | None) -> float:
    """Read a free-text wound size as an area.

    "3x2" and "2.5cm x 1.5cm" multiply the two sides; otherwise the first
    number is used ("160.00" gives 160). Blank or unreadable input gives 0.
    """
    if raw is None:
        return 0.0
    text = str(raw).strip().lower()
    if not text:
        return 0.0

    match = _DIMENSIONS_RE.search(text)
    if match:
        return _to_float(match.group(1)) * _to_float(match.group(2))

    match = _NUMBER_RE.search(text)
    if not match:
        return 0.0
    return _to_float(match.group(1))
