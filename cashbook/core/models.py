# cashbook/core/models.py
"""Ledger data model and its JSON wire form.

Amounts are kept as :class:`~decimal.Decimal` end to end. Snapshots are
read and written with simplejson's ``use_decimal`` so no binary rounding
enters the ledger; ``entry_to_dict`` leaves amounts as Decimal.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Dict, List, Mapping, Optional

from cashbook.errors import ValidationError

MONTH_KEY_RX = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


class Kind(str, Enum):
    INFLOW = "inflow"
    OUTFLOW = "outflow"

    @property
    def label(self) -> str:
        return KIND_LABELS[self]

    @classmethod
    def parse(cls, value) -> "Kind":
        if isinstance(value, Kind):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise ValidationError(f"Invalid kind {value!r}: expected 'inflow' or 'outflow'")


class Category(str, Enum):
    TAX = "tax"
    PAYROLL = "payroll"
    OTHER = "other"

    @property
    def label(self) -> str:
        return CATEGORY_LABELS[self]

    @classmethod
    def parse(cls, value) -> "Category":
        if isinstance(value, Category):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        choices = ", ".join(repr(c.value) for c in cls)
        raise ValidationError(f"Invalid category {value!r}: expected one of {choices}")


KIND_LABELS: Dict[Kind, str] = {
    Kind.INFLOW: "Inflow",
    Kind.OUTFLOW: "Outflow",
}

CATEGORY_LABELS: Dict[Category, str] = {
    Category.TAX: "Tax",
    Category.PAYROLL: "Payroll",
    Category.OTHER: "Other",
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Entry:
    id: str
    kind: Kind
    amount: Decimal
    date: date
    description: Optional[str] = None
    category: Optional[Category] = None
    created_at: Optional[datetime] = field(default=None, compare=False)

    @property
    def month_key(self) -> str:
        return self.date.strftime("%Y-%m")

    @property
    def year_key(self) -> str:
        return f"{self.date.year:04d}"

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.kind is Kind.INFLOW else -self.amount

    @property
    def effective_category(self) -> Optional[Category]:
        """Category used by aggregation: uncategorised outflows count as OTHER."""
        if self.kind is Kind.INFLOW:
            return None
        return self.category or Category.OTHER

    def with_changes(self, **changes) -> "Entry":
        return replace(self, **changes)


Ledger = Dict[str, List[Entry]]


def month_key(year: int, month: int) -> str:
    return f"{int(year):04d}-{int(month):02d}"


def validate_entry(entry: Entry) -> None:
    """Raise ValidationError unless ``entry`` satisfies the ledger invariants."""
    if not isinstance(entry.id, str) or not entry.id.strip():
        raise ValidationError("Entry id must be a non-empty string")
    if not isinstance(entry.kind, Kind):
        raise ValidationError(f"Invalid kind {entry.kind!r} for entry {entry.id}")
    if not isinstance(entry.amount, Decimal) or not entry.amount.is_finite():
        raise ValidationError(f"Amount of entry {entry.id} must be a finite decimal")
    if entry.amount <= 0:
        raise ValidationError(f"Amount of entry {entry.id} must be greater than zero")
    if not isinstance(entry.date, date):
        raise ValidationError(f"Entry {entry.id} has no valid date")
    if entry.category is not None:
        if not isinstance(entry.category, Category):
            raise ValidationError(f"Invalid category {entry.category!r} for entry {entry.id}")
        if entry.kind is not Kind.OUTFLOW:
            raise ValidationError(f"Entry {entry.id}: only outflows can carry a category")


# ---------------------------------------------------------------------------
# Parsing


def is_number(value) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def parse_amount(value) -> Decimal:
    """Convert a decoded JSON number (or numeric string from the CLI) to Decimal."""
    if isinstance(value, bool):
        raise ValidationError(f"Invalid amount {value!r}")
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValidationError(f"Invalid amount {value!r}")
        return Decimal(repr(value))
    if isinstance(value, (int, Decimal)):
        amount = Decimal(value)
    elif isinstance(value, str):
        try:
            amount = Decimal(value.strip())
        except InvalidOperation as exc:
            raise ValidationError(f"Invalid amount {value!r}") from exc
    else:
        raise ValidationError(f"Invalid amount {value!r}")
    if not amount.is_finite():
        raise ValidationError(f"Invalid amount {value!r}")
    return amount


def parse_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError as exc:
            raise ValidationError(f"Invalid date {value!r}: expected YYYY-MM-DD") from exc
    raise ValidationError(f"Invalid date {value!r}: expected YYYY-MM-DD")


def parse_timestamp(value) -> datetime:
    if isinstance(value, datetime):
        ts = value
    elif isinstance(value, str):
        text = value.strip()
        # JavaScript style "Z" suffix
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            ts = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ValidationError(f"Invalid timestamp {value!r}") from exc
    else:
        raise ValidationError(f"Invalid timestamp {value!r}")
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def entry_from_dict(raw, where: str = "ledger") -> Entry:
    """Strictly decode one entry; never returns a partially populated Entry."""
    if not isinstance(raw, Mapping):
        raise ValidationError(f"Entry in {where} is not an object")

    entry_id = raw.get("id")
    if not isinstance(entry_id, str) or not entry_id.strip():
        raise ValidationError(f"Entry without id found in {where}")

    try:
        kind = Kind.parse(raw.get("kind"))
        if not is_number(raw.get("amount")):
            raise ValidationError(f"Amount {raw.get('amount')!r} is not numeric")
        amount = parse_amount(raw["amount"])
        if amount <= 0:
            raise ValidationError(f"Amount {amount} must be greater than zero")
        entry_date = parse_date(raw.get("date"))

        category = raw.get("category")
        if category is not None:
            category = Category.parse(category)
            if kind is Kind.INFLOW:
                raise ValidationError("only outflows can carry a category")

        description = raw.get("description")
        if description is not None and not isinstance(description, str):
            raise ValidationError(f"Description {description!r} is not text")

        created_at = raw.get("createdAt")
        if created_at is not None:
            created_at = parse_timestamp(created_at)
    except ValidationError as exc:
        raise ValidationError(f"Entry {entry_id} in {where}: {exc}") from exc

    return Entry(
        id=entry_id,
        kind=kind,
        amount=amount,
        date=entry_date,
        description=description or None,
        category=category,
        created_at=created_at,
    )


def ledger_from_dict(raw_entries) -> Ledger:
    """Decode the ``entries`` mapping of a snapshot into a Ledger.

    Raises ValidationError on the first structural problem found.
    """
    if not isinstance(raw_entries, Mapping):
        raise ValidationError("Invalid data format: 'entries' must be an object keyed by month")

    ledger: Ledger = {}
    for key, bucket in raw_entries.items():
        if not isinstance(key, str) or not MONTH_KEY_RX.match(key):
            raise ValidationError(f"Invalid month key {key!r}: expected YYYY-MM")
        if not isinstance(bucket, list):
            raise ValidationError(f"Invalid data format for month {key}: expected a list of entries")
        ledger[key] = [entry_from_dict(item, where=key) for item in bucket]
    return ledger


def ledger_from_snapshot(payload) -> Ledger:
    if not isinstance(payload, Mapping):
        raise ValidationError("Invalid data format: snapshot must be a JSON object")
    if "entries" not in payload:
        raise ValidationError("Invalid data format: 'entries' not found")
    return ledger_from_dict(payload["entries"])


# ---------------------------------------------------------------------------
# Serialisation


def entry_to_dict(entry: Entry) -> dict:
    data = {
        "id": entry.id,
        "kind": entry.kind.value,
        "amount": entry.amount,
    }
    if entry.description:
        data["description"] = entry.description
    if entry.category is not None:
        data["category"] = entry.category.value
    data["date"] = entry.date.isoformat()
    if entry.created_at is not None:
        data["createdAt"] = format_timestamp(entry.created_at)
    return data


def ledger_to_dict(ledger: Ledger) -> dict:
    return {key: [entry_to_dict(e) for e in bucket] for key, bucket in ledger.items()}
