import json
from datetime import date
from decimal import Decimal

import pytest

from cashbook.backends import BACKUP_KEY, PRIMARY_KEY
from cashbook.backends.memory import MemoryBackend
from cashbook.core.models import Category, Kind
from cashbook.errors import PersistenceError, ValidationError
from cashbook.store import LedgerStore
from tests.conftest import FIXED_NOW


def test_empty_store_reads_as_empty_ledger(store):
    assert store.get_all_entries() == []
    assert store.get_month_entries(2024, 3) == []
    assert store.overall_summary().count == 0


def test_add_entry_buckets_by_month(store, backend, make_entry):
    store.add_entry(make_entry("a", day="2024-03-01"))
    store.add_entry(make_entry("b", day="2024-04-01"))

    saved = json.loads(backend.slots[PRIMARY_KEY])
    assert list(saved["entries"]) == ["2024-03", "2024-04"]
    assert saved["lastUpdated"] == "2024-05-01T12:00:00.000Z"
    assert [e.id for e in store.get_month_entries("2024", "3")] == ["a"]


def test_month_entries_keep_insertion_order_year_entries_sort_by_date(store, make_entry):
    store.add_entries([
        make_entry("late", day="2024-03-20"),
        make_entry("early", day="2024-03-02"),
        make_entry("jan", day="2024-01-01"),
        make_entry("next-year", day="2025-01-01"),
    ])

    assert [e.id for e in store.get_month_entries(2024, 3)] == ["late", "early"]
    assert [e.id for e in store.get_year_entries(2024)] == ["jan", "early", "late"]
    assert [e.id for e in store.get_all_entries()] == ["jan", "early", "late", "next-year"]


def test_add_entry_rejects_invalid_entries(store, make_entry):
    with pytest.raises(ValidationError):
        store.add_entry(make_entry("a", amount="0"))
    with pytest.raises(ValidationError):
        store.add_entry(make_entry("b", kind="inflow", category="tax"))
    assert store.get_all_entries() == []


def test_add_entry_rejects_duplicate_ids(store, make_entry):
    store.add_entry(make_entry("a"))
    with pytest.raises(ValidationError, match="Duplicate"):
        store.add_entry(make_entry("a", day="2024-04-01"))


def test_amounts_survive_persistence_exactly(store, make_entry):
    store.add_entry(make_entry("a", amount="1234.56"))
    assert store.get_entry("a").amount == Decimal("1234.56")


def test_long_and_tiny_amounts_round_trip_exactly(store, backend, make_entry):
    store.add_entries([
        make_entry("big", amount="12345678901234567.89"),
        make_entry("tiny", amount="1E-400"),
    ])
    assert '"amount": 12345678901234567.89' in backend.slots[PRIMARY_KEY]

    other = LedgerStore(MemoryBackend())
    assert other.import_snapshot(store.export_json()) == 2

    assert other.get_entry("big").amount == Decimal("12345678901234567.89")
    assert other.get_entry("tiny").amount == Decimal("1E-400")
    assert other.validate_integrity().valid is True


def test_every_write_keeps_the_previous_snapshot_as_backup(store, backend, make_entry):
    store.add_entry(make_entry("a"))
    first = backend.slots[PRIMARY_KEY]
    assert BACKUP_KEY not in backend.slots

    store.add_entry(make_entry("b"))
    assert backend.slots[BACKUP_KEY] == first
    assert [e.id for e in store.get_backup()["2024-03"]] == ["a"]


def test_update_entry_merges_patch(store, make_entry):
    store.add_entry(make_entry("a", kind="outflow", amount="40", category="tax"))

    assert store.update_entry("a", amount="45.50", description="Revised") is True
    entry = store.get_entry("a")
    assert entry.amount == Decimal("45.50")
    assert entry.description == "Revised"
    assert entry.category is Category.TAX


def test_update_entry_unknown_id_returns_false(store, backend, make_entry):
    store.add_entry(make_entry("a"))
    before = backend.slots[PRIMARY_KEY]

    assert store.update_entry("missing", amount="5") is False
    assert backend.slots[PRIMARY_KEY] == before


def test_update_entry_rejects_invalid_patch(store, make_entry):
    store.add_entry(make_entry("a", amount="10"))

    with pytest.raises(ValidationError):
        store.update_entry("a", amount="-3")
    with pytest.raises(ValidationError):
        store.update_entry("a", id="b")
    assert store.get_entry("a").amount == Decimal("10")


def test_switching_to_inflow_clears_category(store, make_entry):
    store.add_entry(make_entry("a", kind="outflow", category="payroll"))

    store.update_entry("a", kind="inflow")
    entry = store.get_entry("a")
    assert entry.kind is Kind.INFLOW
    assert entry.category is None

    with pytest.raises(ValidationError):
        store.update_entry("a", category="tax")


def test_date_change_across_months_moves_the_entry(store, make_entry):
    store.add_entries([make_entry("a", day="2024-03-01"), make_entry("b", day="2024-04-01")])

    assert store.update_entry("a", date="2024-04-01") is True

    assert store.get_month_entries(2024, 3) == []
    assert "2024-03" not in store.get_ledger()
    assert [e.id for e in store.get_month_entries(2024, 4)] == ["b", "a"]


def test_delete_entry(store, make_entry):
    store.add_entries([make_entry("a"), make_entry("b")])

    assert store.delete_entry("a") is True
    assert [e.id for e in store.get_all_entries()] == ["b"]


def test_delete_unknown_id_leaves_persisted_ledger_untouched(backend, make_entry):
    ticks = iter(range(1, 100))
    store = LedgerStore(backend, clock=lambda: FIXED_NOW.replace(second=next(ticks)))
    store.add_entries([make_entry("a")])
    store.add_entries([make_entry("b")])
    primary, backup = backend.slots[PRIMARY_KEY], backend.slots[BACKUP_KEY]

    assert store.delete_entry("nope") is False

    assert backend.slots[PRIMARY_KEY] == primary
    assert backend.slots[BACKUP_KEY] == backup


def test_export_import_round_trip(store, make_entry):
    store.add_entries([
        make_entry("a", "inflow", "100.25", day="2023-12-01", description="Grant"),
        make_entry("b", "outflow", "40", category="tax"),
        make_entry("c", "outflow", "0.1"),
    ])
    snapshot = store.export_snapshot()
    assert snapshot["version"] == "1.0"
    assert snapshot["source"] == "cashbook"
    assert snapshot["exportedAt"] == "2024-05-01T12:00:00.000Z"

    other = LedgerStore(MemoryBackend())
    assert other.import_snapshot(store.export_json()) == 3

    def key(entries):
        return [(e.id, e.kind, e.amount, e.date, e.category) for e in entries]

    assert key(other.get_all_entries()) == key(store.get_all_entries())

    third = LedgerStore(MemoryBackend())
    third.import_snapshot(snapshot)
    assert key(third.get_all_entries()) == key(store.get_all_entries())


def test_import_without_entries_leaves_ledger_untouched(store, backend, make_entry):
    store.add_entry(make_entry("a"))
    before = dict(backend.slots)

    with pytest.raises(ValidationError):
        store.import_snapshot('{"lastUpdated": "2024-01-01T00:00:00Z"}')

    assert backend.slots == before


@pytest.mark.parametrize("payload", [
    "not json",
    "[]",
    '{"entries": []}',
    '{"entries": {"2024-01": {}}}',
    '{"entries": {"2024-01": [{"id": "", "kind": "inflow", "amount": 1, "date": "2024-01-01"}]}}',
    '{"entries": {"2024-01": [{"id": "x", "kind": "gift", "amount": 1, "date": "2024-01-01"}]}}',
    '{"entries": {"2024-01": [{"id": "x", "kind": "inflow", "amount": "1", "date": "2024-01-01"}]}}',
    '{"entries": {"2024-01": [{"id": "x", "kind": "inflow", "amount": -5, "date": "2024-01-01"}]}}',
    '{"entries": {"2024-01": [{"id": "x", "kind": "outflow", "amount": 0, "date": "2024-01-01"}]}}',
    '{"entries": {"2024-01": [{"id": "x", "kind": "inflow", "amount": 1, "date": "2024-01-01"}],'
    ' "2024-02": [{"id": "x", "kind": "inflow", "amount": 2, "date": "2024-02-01"}]}}',
])
def test_import_is_all_or_nothing(store, backend, make_entry, payload):
    store.add_entry(make_entry("keep"))
    before = dict(backend.slots)

    with pytest.raises(ValidationError):
        store.import_snapshot(payload)

    assert backend.slots == before
    assert [e.id for e in store.get_all_entries()] == ["keep"]


def test_import_backs_up_the_replaced_ledger(store, make_entry):
    store.add_entry(make_entry("old"))
    store.import_snapshot({
        "entries": {"2024-06": [{"id": "new", "kind": "inflow", "amount": 5, "date": "2024-06-01"}]},
    })

    assert [e.id for e in store.get_all_entries()] == ["new"]
    assert [e.id for e in store.get_backup()["2024-03"]] == ["old"]


def test_validate_integrity_collects_every_problem(store, backend):
    backend.slots[PRIMARY_KEY] = json.dumps({
        "entries": {
            "2024-03": [
                {"kind": "bogus", "amount": -5, "date": "2024-03-01"},
                {"id": "b", "kind": "inflow", "amount": "x", "date": "2024-03-01"},
                {"id": "c", "kind": "outflow", "amount": 3, "date": "2024-03-01"},
                {"id": "d", "kind": ["inflow"], "amount": 3, "date": "2024-03-01"},
            ],
            "2024-04": "oops",
        },
        "lastUpdated": "2024-05-01T12:00:00.000Z",
    })

    report = store.validate_integrity()

    assert report.valid is False
    assert report.errors == [
        "Entry without id found in month 2024-03",
        "Invalid kind in entry #1 of 2024-03",
        "Invalid amount in entry #1 of 2024-03",
        "Invalid amount in entry b",
        "Invalid kind in entry d",
        "Data for month 2024-04 is corrupted",
    ]
    assert store.validate_integrity() == report


def test_validate_integrity_reports_what_reads_reject(store, backend, make_entry):
    store.add_entry(make_entry("a"))
    store.add_entry(make_entry("z"))
    backend.slots[PRIMARY_KEY] = json.dumps({
        "entries": {
            "2024-03": [
                {"id": "a", "kind": "inflow", "amount": 100, "date": "2024-03-01"},
                {"id": "b", "kind": "outflow", "amount": 5, "date": "2024-03-01",
                 "category": "rent"},
                {"id": "c", "kind": "inflow", "amount": 5, "date": "2024-03-01",
                 "category": "tax"},
                {"id": "d", "kind": "inflow", "amount": 5},
                {"id": "e", "kind": "inflow", "amount": 5, "date": "2024-03-01",
                 "description": 42, "createdAt": "yesterday"},
            ],
            "March": [],
        },
    })

    report = store.validate_integrity()

    assert report.errors == [
        "Invalid category in entry b",
        "Inflow entry c carries a category",
        "Invalid date in entry d",
        "Invalid description in entry e",
        "Invalid creation time in entry e",
        "Invalid month key 'March'",
    ]
    # the same snapshot is rejected on read, which falls back to the backup
    assert [e.id for e in store.get_all_entries()] == ["a"]


def test_validate_integrity_on_clean_ledger(store, make_entry):
    store.add_entries([make_entry("a"), make_entry("b", kind="outflow")])
    assert store.validate_integrity().valid is True
    assert store.validate_integrity().errors == []


def test_corrupted_ledger_falls_back_to_backup(store, backend, make_entry):
    store.add_entry(make_entry("a"))
    store.add_entry(make_entry("b"))
    backend.slots[PRIMARY_KEY] = "{truncated"

    assert [e.id for e in store.get_all_entries()] == ["a"]

    # a write on top of the recovered state must not overwrite the good backup
    store.add_entry(make_entry("c"))
    assert [e.id for e in store.get_all_entries()] == ["a", "c"]
    assert [e.id for e in store.get_backup()["2024-03"]] == ["a"]


class BrokenBackend(MemoryBackend):
    def load(self, key):
        raise PersistenceError("storage unavailable")

    def save(self, key, text):
        raise PersistenceError("storage unavailable")


def test_unreadable_backend_reads_empty_and_writes_fail_loudly(make_entry):
    store = LedgerStore(BrokenBackend())

    assert store.get_all_entries() == []
    with pytest.raises(PersistenceError):
        store.add_entry(make_entry("a"))


def test_system_stats(store, make_entry):
    store.add_entries([
        make_entry("a", day="2024-01-01"),
        make_entry("b", kind="outflow", day="2024-03-01"),
        make_entry("c", kind="outflow", day="2023-07-01"),
    ])
    stats = store.system_stats()

    assert stats["total_months"] == 3
    assert stats["total_entries"] == 3
    assert stats["inflow_count"] == 1
    assert stats["outflow_count"] == 2
    assert stats["oldest_entry"] == date(2023, 7, 1)
    assert stats["newest_entry"] == date(2024, 3, 1)
    assert stats["last_updated"] == "2024-05-01T12:00:00.000Z"
    assert stats["data_size"] > 0


def test_clear_removes_ledger_and_backup(store, backend, make_entry):
    store.add_entry(make_entry("a"))
    store.add_entry(make_entry("b"))

    store.clear()

    assert backend.slots == {}
    assert store.get_all_entries() == []


def test_summaries(store, scenario_entries):
    store.add_entries(scenario_entries)

    month = store.month_summary(2024, 3)
    assert (month.total_inflows, month.total_outflows, month.balance, month.count) == (
        Decimal("100"), Decimal("50"), Decimal("50"), 3,
    )
    assert store.year_summary(2024) == month
    assert store.overall_summary() == month


def test_invalid_month_is_rejected(store):
    with pytest.raises(ValidationError):
        store.get_month_entries(2024, 13)
