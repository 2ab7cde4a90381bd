from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from cashbook.backends.memory import MemoryBackend
from cashbook.core.models import Category, Entry, Kind
from cashbook.reports.builder import ReportBuilder
from cashbook.store import LedgerStore

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def build_entry(entry_id, kind="inflow", amount="100", day="2024-03-01",
                category=None, description=None):
    return Entry(
        id=entry_id,
        kind=Kind(kind),
        amount=Decimal(amount),
        date=date.fromisoformat(day),
        description=description,
        category=Category(category) if category else None,
        created_at=FIXED_NOW,
    )


@pytest.fixture
def make_entry():
    return build_entry


@pytest.fixture
def backend():
    return MemoryBackend()


@pytest.fixture
def store(backend):
    return LedgerStore(backend, clock=lambda: FIXED_NOW)


@pytest.fixture
def scenario_entries():
    """Inflow 100, Outflow 40 (tax) and Outflow 10 (other) in March 2024."""
    return [
        build_entry("in-1", "inflow", "100", description="Donation"),
        build_entry("out-1", "outflow", "40", category="tax"),
        build_entry("out-2", "outflow", "10", category="other"),
    ]


@pytest.fixture
def builder(store):
    return ReportBuilder(store, organization="Example Org", clock=lambda: FIXED_NOW)
