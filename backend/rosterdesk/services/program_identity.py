# backend/rosterdesk/services/program_identity.py
"""
Product identity: raw WooCommerce line-item names -> canonical programs.

The inventory plugin appends status decorations to product names
("Beginner Hockey 2.0 - 3 SPOTS LEFT", "Power Skating 1.0 - 60% FULL").
Every place that turns a product name into a program name goes through
normalize_program_name(), and every place that asks "is this a program or
merchandise?" goes through classify_program(). Keyword rules live only here.
"""
from __future__ import annotations

import enum
import re
from typing import Iterable, Mapping


# "3 SPOTS LEFT", "1 spot left" anywhere in the name
_SPOTS_LEFT_RE = re.compile(r"\s*-?\s*\d+\s*SPOTS?\s*LEFT\b", re.IGNORECASE)
# "60% FULL" anywhere in the name
_PERCENT_FULL_RE = re.compile(r"\s*-?\s*\d+\s*%\s*FULL\b", re.IGNORECASE)
# bare "FULL" at the end
_TRAILING_FULL_RE = re.compile(r"\s*-?\s*\bFULL\s*$", re.IGNORECASE)
# separator left dangling once a marker is gone ("Goalie Camp -")
_TRAILING_DASH_RE = re.compile(r"\s*-\s*$")
_WHITESPACE_RE = re.compile(r"\s+")


class ProgramCategory(str, enum.Enum):
    BEGINNER_HOCKEY = "Beginner Hockey"
    SKILLS_DEVELOPMENT = "Skills Development"
    MERCHANDISE = "Merchandise"


# Checked in order; first match wins ("Beginner Hockey Goalie" is Beginner Hockey).
CATEGORY_KEYWORDS: tuple[tuple[ProgramCategory, tuple[str, ...]], ...] = (
    (ProgramCategory.BEGINNER_HOCKEY, ("beginner hockey", "pre-beginner")),
    (
        ProgramCategory.SKILLS_DEVELOPMENT,
        ("powerskating", "power skating", "shooting", "puck handling", "goalie"),
    ),
)

DEFAULT_CAPACITY = 20

PUBLISHED_PRODUCT_STATUS = "publish"


def _strip_once(name: str) -> str:
    name = _SPOTS_LEFT_RE.sub("", name)
    name = _PERCENT_FULL_RE.sub("", name)
    name = _TRAILING_FULL_RE.sub("", name)
    name = _WHITESPACE_RE.sub(" ", name).strip()
    return _TRAILING_DASH_RE.sub("", name)


def normalize_program_name(raw: str | None) -> str:
    """
    Strip inventory decorations from a product name.

    Rules are applied until nothing changes, so the result is a fixed point:
    normalize_program_name(normalize_program_name(x)) == normalize_program_name(x).
    """
    if not raw:
        return ""
    current = _WHITESPACE_RE.sub(" ", str(raw)).strip()
    while True:
        stripped = _strip_once(current)
        if stripped == current:
            return stripped
        current = stripped


def classify_program(name: str | None) -> ProgramCategory:
    """Case-insensitive keyword classification of a normalized name."""
    lowered = (name or "").lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return category
    return ProgramCategory.MERCHANDISE


def is_actual_program(name: str | None) -> bool:
    """Whitelist test: only real programs may become registrations."""
    return classify_program(name) != ProgramCategory.MERCHANDISE


def program_capacity(name: str) -> int:
    lowered = name.lower()
    if "beginner hockey" in lowered and "player" in lowered:
        return 30
    if "beginner hockey" in lowered and "goalie" in lowered:
        return 4
    if "power skating" in lowered or "powerskating" in lowered:
        return 16
    if "shooting" in lowered:
        return 16
    return DEFAULT_CAPACITY


def published_program_names(products: Iterable) -> set[str]:
    """
    Normalized names of every published product.

    Accepts Product rows or feed dicts (anything with name/status).
    """
    names = set()
    for product in products:
        if isinstance(product, Mapping):
            name, status = product.get("name"), product.get("status")
        else:
            name, status = product.name, product.status
        if status == PUBLISHED_PRODUCT_STATUS:
            normalized = normalize_program_name(name)
            if normalized:
                names.add(normalized)
    return names


def is_program_active(program_name: str, products: Iterable) -> bool:
    """A program is active iff a product normalizing to its name is published."""
    return normalize_program_name(program_name) in published_program_names(products)
