# cashbook/entries.py
from __future__ import annotations

import time
import uuid
from datetime import date
from typing import List, Optional

import yaml

from cashbook.core.models import (
    Category,
    Entry,
    Kind,
    parse_amount,
    parse_date,
    utcnow,
    validate_entry,
)
from cashbook.errors import ValidationError

MAX_REPEAT = 100


def new_entry_id(index: int = 0) -> str:
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}-{index}"


def build_entries(
    kind,
    amount,
    year: int,
    month: int,
    description: Optional[str] = None,
    category=None,
    repeat: int = 1,
    max_repeat: int = MAX_REPEAT,
) -> List[Entry]:
    """Create ``repeat`` identical entries dated the 1st of ``year``-``month``.

    Categories only apply to outflows and are dropped for inflows; an
    outflow without an explicit category is stored as OTHER.
    """
    try:
        repeat = int(repeat)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid repeat count {repeat!r}") from exc
    if repeat < 1 or repeat > max_repeat:
        raise ValidationError(f"Repeat count must be between 1 and {max_repeat}")

    kind = Kind.parse(kind)
    amount = parse_amount(amount)
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero")
    try:
        entry_date = date(int(year), int(month), 1)
    except ValueError as exc:
        raise ValidationError(f"Invalid period {year}-{month}: {exc}") from exc

    if kind is Kind.OUTFLOW:
        category = Category.parse(category) if category else Category.OTHER
    else:
        category = None
    description = description.strip() if description else None

    created_at = utcnow()
    entries = []
    for i in range(repeat):
        entry = Entry(
            id=new_entry_id(i),
            kind=kind,
            amount=amount,
            date=entry_date,
            description=description or None,
            category=category,
            created_at=created_at,
        )
        validate_entry(entry)
        entries.append(entry)
    return entries


def load_entries_file(path) -> List[Entry]:
    """Load entries to add from a YAML list.

    Each item takes ``kind``, ``amount`` and ``date`` plus optional
    ``description``, ``category`` and ``repeat``.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or []
    if not isinstance(data, list):
        raise ValidationError(f"Expected a list of entries in {path}")

    entries: List[Entry] = []
    for item in data:
        if not isinstance(item, dict):
            raise ValidationError(f"Invalid entry in {path}: {item!r}")
        date_value = item.get("date")
        if not date_value:
            raise ValidationError(f"Missing 'date' in entry: {item}")
        entry_date = parse_date(date_value)
        entries.extend(
            build_entries(
                kind=item.get("kind"),
                amount=item.get("amount"),
                year=entry_date.year,
                month=entry_date.month,
                description=item.get("description"),
                category=item.get("category"),
                repeat=item.get("repeat", 1),
            )
        )
    return entries
