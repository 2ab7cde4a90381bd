from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from cashbook.core.models import (
    Category,
    Kind,
    entry_from_dict,
    entry_to_dict,
    ledger_from_snapshot,
    parse_amount,
    parse_timestamp,
)
from cashbook.errors import ValidationError


def test_entry_from_dict_decodes_all_fields():
    entry = entry_from_dict({
        "id": "abc",
        "kind": "outflow",
        "amount": Decimal("12.34"),
        "description": "Quarterly tax",
        "category": "tax",
        "date": "2024-03-01",
        "createdAt": "2024-03-02T10:15:00.000Z",
    })

    assert entry.kind is Kind.OUTFLOW
    assert entry.amount == Decimal("12.34")
    assert entry.category is Category.TAX
    assert entry.date == date(2024, 3, 1)
    assert entry.created_at == datetime(2024, 3, 2, 10, 15, tzinfo=timezone.utc)
    assert entry.month_key == "2024-03"
    assert entry.signed_amount == Decimal("-12.34")


def test_float_amounts_keep_their_decimal_digits():
    assert parse_amount(0.1) == Decimal("0.1")
    assert parse_amount(12) == Decimal("12")


@pytest.mark.parametrize("raw", [
    {"kind": "inflow", "amount": 1, "date": "2024-01-01"},
    {"id": "", "kind": "inflow", "amount": 1, "date": "2024-01-01"},
    {"id": "a", "kind": "transfer", "amount": 1, "date": "2024-01-01"},
    {"id": "a", "kind": "inflow", "amount": "1", "date": "2024-01-01"},
    {"id": "a", "kind": "inflow", "amount": True, "date": "2024-01-01"},
    {"id": "a", "kind": "inflow", "amount": 1, "date": "March"},
    {"id": "a", "kind": "outflow", "amount": 1, "date": "2024-01-01", "category": "rent"},
    {"id": "a", "kind": "inflow", "amount": 1, "date": "2024-01-01", "category": "tax"},
])
def test_entry_from_dict_rejects_malformed_entries(raw):
    with pytest.raises(ValidationError):
        entry_from_dict(raw)


def test_uncategorised_outflow_counts_as_other():
    entry = entry_from_dict({"id": "a", "kind": "outflow", "amount": 5, "date": "2024-01-01"})
    assert entry.category is None
    assert entry.effective_category is Category.OTHER


def test_entry_to_dict_keeps_decimal_amounts():
    entry = entry_from_dict({
        "id": "a", "kind": "inflow", "amount": Decimal("7.50"), "date": "2024-01-01",
    })
    data = entry_to_dict(entry)

    assert data == {"id": "a", "kind": "inflow", "amount": Decimal("7.50"), "date": "2024-01-01"}
    assert isinstance(data["amount"], Decimal)


@pytest.mark.parametrize("amount", [0, -5, Decimal("-0.01")])
def test_entry_from_dict_rejects_non_positive_amounts(amount):
    with pytest.raises(ValidationError, match="greater than zero"):
        entry_from_dict({"id": "a", "kind": "outflow", "amount": amount, "date": "2024-01-01"})


def test_ledger_from_snapshot_requires_entries():
    with pytest.raises(ValidationError, match="'entries' not found"):
        ledger_from_snapshot({"lastUpdated": "2024-01-01T00:00:00Z"})


def test_ledger_from_snapshot_requires_list_buckets():
    with pytest.raises(ValidationError, match="2024-01"):
        ledger_from_snapshot({"entries": {"2024-01": {"id": "a"}}})


def test_naive_timestamps_are_treated_as_utc():
    assert parse_timestamp("2024-01-01T08:00:00").tzinfo == timezone.utc
