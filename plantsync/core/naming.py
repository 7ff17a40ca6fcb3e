"""Plant name canonicalization.

Vendor portals and the local registry spell the same plant in many ways:
"UFV Fazenda Solar III", "Fazenda Solar 3 (Lote 12)", "FAZENDA-SOLAR 3".
``canonicalize`` reduces a raw name to a matching key that is identical for
all of them. It is a pure function of the raw string, and applying it to its
own output returns the same key.

``similarity`` is for diagnostics only. Automatic matching is always an exact
comparison of canonical keys.
"""

from __future__ import annotations

import re
import unicodedata
from typing import List, Optional

from rapidfuzz.distance import Levenshtein

# Facility-type words only dropped while they lead the name
DROP_PREFIXES = frozenset({"ufv", "sfv", "fot", "usina", "planta", "solar", "pv"})

# Dropped anywhere; gd/gdg/gsm are distributed-generation class codes
NOISE_WORDS = frozenset(
    {
        "comercial",
        "residencial",
        "gsm",
        "gd",
        "gdg",
        "grupo",
        "energia",
        "ambiental",
        "otimizacao",
    }
)

INNER_PARENS_RE = re.compile(r"\([^()]*\)")
SEPARATORS_RE = re.compile(r"[_\-.,;/]+")
POSTAL_CODE_RE = re.compile(r"\bcep[:\s]*\d{2}\s?\d{3}\s?\d{3}\b")
LOT_BLOCK_RE = re.compile(r"\b(?:lote|quadra|qdr)(?:\s+(?:lote|quadra|qdr))*(?=[\s\d])\s*[a-z0-9]+\b")
STREET_NUMBER_RE = re.compile(r"\b(?:n|no|nr|num|numero)\s*°?\s*\d+\b|[#°]\s*\d+\b")
NON_ALNUM_RE = re.compile(r"[^a-z0-9 ]+")
ROMAN_TOKEN_RE = re.compile(r"\b[ivxlcdm]{1,6}\b")
VALID_ROMAN_RE = re.compile(r"m{0,3}(?:cm|cd|d?c{0,3})(?:xc|xl|l?x{0,3})(?:ix|iv|v?i{0,3})")

ROMAN_VALUES = {"i": 1, "v": 5, "x": 10, "l": 50, "c": 100, "d": 500, "m": 1000}


def roman_to_int(token: str) -> Optional[int]:
    """Value of ``token`` if it is exactly a well-formed Roman numeral, else None."""
    token = token.lower()
    if not token or not VALID_ROMAN_RE.fullmatch(token):
        return None
    total = 0
    for i, ch in enumerate(token):
        value = ROMAN_VALUES[ch]
        if i + 1 < len(token) and ROMAN_VALUES[token[i + 1]] > value:
            total -= value
        else:
            total += value
    return total


def _replace_roman(match: re.Match) -> str:
    value = roman_to_int(match.group(0))
    return str(value) if value else match.group(0)


def _strip_parens(text: str) -> str:
    # Innermost groups first so nested annotations disappear entirely
    while True:
        stripped = INNER_PARENS_RE.sub(" ", text)
        if stripped == text:
            return stripped
        text = stripped


def _strip_annotations(text: str) -> str:
    while True:
        stripped = POSTAL_CODE_RE.sub(" ", text)
        stripped = LOT_BLOCK_RE.sub(" ", stripped)
        stripped = STREET_NUMBER_RE.sub(" ", stripped)
        if stripped == text:
            return stripped
        text = stripped


def _fold(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).lower()


def _drop_tokens(tokens: List[str]) -> List[str]:
    # Removing a noise word can expose a new leading prefix, so repeat until stable
    while True:
        before = len(tokens)
        start = 0
        while start < len(tokens) and tokens[start] in DROP_PREFIXES:
            start += 1
        tokens = [t for t in tokens[start:] if t not in NOISE_WORDS]
        if len(tokens) == before:
            return tokens


def _reduce(text: str) -> str:
    text = SEPARATORS_RE.sub(" ", text)
    text = _strip_annotations(text)
    text = NON_ALNUM_RE.sub(" ", text)
    text = ROMAN_TOKEN_RE.sub(_replace_roman, text)
    return " ".join(_drop_tokens(text.split()))


def canonicalize(raw: Optional[str]) -> str:
    """Reduce a raw plant name to its matching key. May return ``""``."""
    if not raw:
        return ""

    text = _fold(_strip_parens(raw))
    # Cleanup can expose a new annotation ("lote: 12", "n ii" -> "n 2").
    # A pass that changes anything removes letters, so this settles.
    while True:
        reduced = _reduce(text)
        if reduced == text:
            return reduced
        text = reduced


def similarity(a: Optional[str], b: Optional[str]) -> float:
    """Normalized edit-distance similarity of the canonical forms, in [0, 1]."""
    ca, cb = canonicalize(a), canonicalize(b)
    if not ca and not cb:
        return 1.0
    if not ca or not cb:
        return 0.0
    return Levenshtein.normalized_similarity(ca, cb)
