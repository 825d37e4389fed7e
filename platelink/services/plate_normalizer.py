# platelink/services/plate_normalizer.py
"""
Plate normalization and classification.

Accepted families, tried in this order:
  Standard       MH12AB1234   2 letters + 2 digits + 1-2 letters + 4 digits
  BharatSeries   26BH1234AA   2 digits + BH + 4 digits + 1-2 letters
  DelhiSpecial   DL01CAA1234  DL + 1-2 digits + category letter + 1-2 letters + 4 digits

Standard wins over DelhiSpecial for inputs such as DL01CA1234 that fit both.
Pure functions only: no I/O, no state.
"""

import re
from dataclasses import dataclass
from typing import Optional

from platelink.domain import PlateFamily
from platelink.errors import ValidationError

MIN_LENGTH = 8
MAX_LENGTH = 12

_NON_ALNUM = re.compile(r"[^A-Z0-9]")

_PATTERNS = (
    (PlateFamily.STANDARD, re.compile(r"^[A-Z]{2}[0-9]{2}[A-Z]{1,2}[0-9]{4}$")),
    (PlateFamily.BHARAT_SERIES, re.compile(r"^[0-9]{2}BH[0-9]{4}[A-Z]{1,2}$")),
    (PlateFamily.DELHI_SPECIAL, re.compile(r"^DL[0-9]{1,2}[A-Z][A-Z]{1,2}[0-9]{4}$")),
)


@dataclass(frozen=True)
class Plate:
    value: str
    family: PlateFamily

    def __str__(self):
        return self.value


class PlateRejected(ValidationError):
    default_reason = "UnrecognizedFormat"


def canonicalize(raw: str) -> str:
    """Uppercase and keep only A-Z / 0-9."""
    return _NON_ALNUM.sub("", (raw or "").upper())


def _match_family(candidate: str) -> Optional[PlateFamily]:
    for family, pattern in _PATTERNS:
        if pattern.match(candidate):
            return family
    return None


def normalize(raw: str) -> Plate:
    """Return the canonical Plate for `raw`, or raise PlateRejected."""
    candidate = canonicalize(raw)
    if not candidate:
        raise PlateRejected("Empty", "Plate number is required")
    if len(candidate) < MIN_LENGTH or len(candidate) > MAX_LENGTH:
        raise PlateRejected(
            "InvalidLength",
            f"Plate number must be {MIN_LENGTH}-{MAX_LENGTH} characters, got {len(candidate)}",
        )
    family = _match_family(candidate)
    if family is None:
        raise PlateRejected("UnrecognizedFormat", f"'{candidate}' matches no supported plate format")
    return Plate(value=candidate, family=family)


def classify(raw: str) -> Optional[PlateFamily]:
    try:
        return normalize(raw).family
    except PlateRejected:
        return None


def is_valid(raw: str) -> bool:
    return classify(raw) is not None
