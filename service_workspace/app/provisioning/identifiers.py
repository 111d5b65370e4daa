"""
Order identifier parsing and folder path derivation.

Identifiers look like ``ORD-2024-03-15-007``: a prefix, the order date and a
sequence number. The folder path of an order is
``[category/]<year>/Q<quarter>/<identifier>_<client label>``.
"""

import re
from dataclasses import dataclass
from datetime import date
from typing import List, Optional
import sys
import os

# Add shared directory to path
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..', '..'))

from shared.errors import ValidationError

IDENTIFIER_FORMAT = "ORD-YYYY-MM-DD-NNN"
_UNSAFE_CHARACTERS = re.compile(r'[<>:"/\\|?*\x00-\x1f\x7f]')
_FOLDER_ID_IN_URL = re.compile(r"(?:folders/|[?&]id=)([a-zA-Z0-9_-]+)")


@dataclass(frozen=True)
class OrderIdentifier:
    raw: str
    prefix: str
    year: int
    month: int
    day: int
    sequence: str

    @property
    def quarter(self) -> str:
        return f"Q{(self.month + 2) // 3}"


def parse_identifier(identifier: str) -> OrderIdentifier:
    """Parse ``ORD-YYYY-MM-DD-NNN``; raises ValidationError when malformed."""
    raw = (identifier or "").strip()
    parts = raw.split("-")
    details = {"identifier": identifier, "expected": IDENTIFIER_FORMAT}
    if len(parts) != 5:
        raise ValidationError(f"Invalid order identifier: {identifier!r}", details)

    prefix, year, month, day, sequence = parts
    if not prefix or not sequence:
        raise ValidationError(f"Invalid order identifier: {identifier!r}", details)
    if not (len(year) == 4 and year.isdigit()):
        raise ValidationError(f"Invalid year in order identifier: {identifier!r}", details)
    if not (month.isdigit() and 1 <= int(month) <= 12):
        raise ValidationError(f"Invalid month in order identifier: {identifier!r}", details)
    if not (day.isdigit() and 1 <= int(day) <= 31):
        raise ValidationError(f"Invalid day in order identifier: {identifier!r}", details)
    try:
        date(int(year), int(month), int(day))
    except ValueError:
        raise ValidationError(f"Invalid date in order identifier: {identifier!r}", details)

    return OrderIdentifier(
        raw=raw,
        prefix=prefix,
        year=int(year),
        month=int(month),
        day=int(day),
        sequence=sequence
    )


def sanitize_name(name: str, max_length: int = 50) -> str:
    """Make ``name`` safe as a folder name."""
    cleaned = _UNSAFE_CHARACTERS.sub("_", str(name or "")).strip()
    return cleaned[:max_length].rstrip()


def derive_segments(
    identifier: str,
    client_label: str,
    category: Optional[str] = None,
    max_length: int = 50
) -> List[str]:
    """Folder path segments for an order, top-down."""
    order = parse_identifier(identifier)
    label = sanitize_name(client_label, max_length)
    if not label:
        raise ValidationError("Client label is blank", {"identifier": identifier})

    segments = [str(order.year), order.quarter, sanitize_name(f"{order.raw}_{label}", max_length)]
    if category:
        category_name = sanitize_name(category, max_length)
        if not category_name:
            raise ValidationError("Category is blank", {"identifier": identifier})
        segments.insert(0, category_name)
    return segments


def extract_folder_id(url: str) -> Optional[str]:
    """Folder id from a ``.../folders/<id>`` or ``...?id=<id>`` link."""
    match = _FOLDER_ID_IN_URL.search(url or "")
    return match.group(1) if match else None


def is_valid_email(value: Optional[str]) -> bool:
    return bool(value) and "@" in value.strip().strip("@")
