# cashbook/core/aggregation.py
"""Pure aggregation over ledger entries.

Nothing here touches storage or mutates its input. Money stays in
:class:`~decimal.Decimal`; rounding for display is the renderer's business.
Every division goes through :func:`safe_divide`, which defines ``x / 0`` as 0.
"""

from __future__ import annotations

from calendar import monthrange
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from cashbook.core.models import Category, Entry, Kind

ZERO = Decimal("0")
HUNDRED = Decimal("100")


class TrendDirection(str, Enum):
    GROWTH = "Growth"
    DECLINE = "Decline"
    STABLE = "Stable"


class BalanceStatus(str, Enum):
    POSITIVE = "Positive"
    NEGATIVE = "Negative"
    NEUTRAL = "Neutral"


@dataclass(frozen=True)
class PeriodSummary:
    total_inflows: Decimal
    total_outflows: Decimal
    balance: Decimal
    count: int
    inflow_count: int
    outflow_count: int

    @property
    def average_inflow(self) -> Decimal:
        return safe_divide(self.total_inflows, self.inflow_count)

    @property
    def average_outflow(self) -> Decimal:
        return safe_divide(self.total_outflows, self.outflow_count)

    @property
    def status(self) -> BalanceStatus:
        return balance_status(self.balance)


@dataclass(frozen=True)
class CategoryStats:
    category: Category
    total: Decimal
    count: int
    average: Decimal
    max: Decimal
    min: Decimal
    percentage: Decimal


@dataclass(frozen=True)
class Trend:
    direction: TrendDirection
    percentage: Decimal
    first_half_net: Decimal
    second_half_net: Decimal


def safe_divide(numerator, denominator) -> Decimal:
    if not denominator:
        return ZERO
    return Decimal(numerator) / Decimal(denominator)


def summarize(entries: Iterable[Entry]) -> PeriodSummary:
    total_in = ZERO
    total_out = ZERO
    n_in = 0
    n_out = 0
    for entry in entries:
        if entry.kind is Kind.INFLOW:
            total_in += entry.amount
            n_in += 1
        elif entry.kind is Kind.OUTFLOW:
            total_out += entry.amount
            n_out += 1
        else:  # pragma: no cover - Kind is closed
            raise ValueError(f"Unhandled kind {entry.kind!r}")
    return PeriodSummary(
        total_inflows=total_in,
        total_outflows=total_out,
        balance=total_in - total_out,
        count=n_in + n_out,
        inflow_count=n_in,
        outflow_count=n_out,
    )


def sort_by_date(entries: Iterable[Entry]) -> List[Entry]:
    # sorted() is stable, so entries sharing a date keep their insertion order
    return sorted(entries, key=lambda e: e.date)


def _group(entries: Iterable[Entry], key) -> Dict[str, List[Entry]]:
    groups: Dict[str, List[Entry]] = {}
    for entry in entries:
        groups.setdefault(key(entry), []).append(entry)
    return {k: groups[k] for k in sorted(groups)}


def group_by_year(entries: Iterable[Entry]) -> Dict[str, List[Entry]]:
    return _group(entries, lambda e: e.year_key)


def group_by_month(entries: Iterable[Entry]) -> Dict[str, List[Entry]]:
    return _group(entries, lambda e: e.month_key)


def group_by_category(entries: Iterable[Entry]) -> Dict[Category, List[Entry]]:
    """Group outflows by category; inflows are ignored."""
    groups: Dict[Category, List[Entry]] = {}
    for entry in entries:
        category = entry.effective_category
        if category is None:
            continue
        groups.setdefault(category, []).append(entry)
    return {c: groups[c] for c in sorted(groups, key=lambda c: c.value)}


def category_percentage(total: Decimal, scope_total: Decimal) -> Decimal:
    return safe_divide(total, scope_total) * HUNDRED


def category_breakdown(
    entries: Iterable[Entry],
    scope_total: Optional[Decimal] = None,
) -> List[CategoryStats]:
    """Per-category statistics over the outflows in ``entries``.

    ``scope_total`` is the outflow total percentages are relative to; it
    defaults to the outflow total of ``entries`` themselves.
    """
    entries = list(entries)
    groups = group_by_category(entries)
    if scope_total is None:
        scope_total = sum((e.amount for g in groups.values() for e in g), ZERO)

    breakdown = []
    for category, group in groups.items():
        amounts = [e.amount for e in group]
        total = sum(amounts, ZERO)
        breakdown.append(
            CategoryStats(
                category=category,
                total=total,
                count=len(amounts),
                average=safe_divide(total, len(amounts)),
                max=max(amounts),
                min=min(amounts),
                percentage=category_percentage(total, scope_total),
            )
        )
    return breakdown


def sort_by_total(breakdown: Iterable[CategoryStats]) -> List[CategoryStats]:
    return sorted(breakdown, key=lambda s: (-s.total, s.category.value))


def net_total(entries: Iterable[Entry]) -> Decimal:
    return sum((e.signed_amount for e in entries), ZERO)


def calculate_trend(entries: Iterable[Entry]) -> Trend:
    """Compare the net of the later half of ``entries`` against the earlier half.

    With an odd count the extra entry lands in the second half. A zero
    baseline yields a percentage of 0.
    """
    ordered = sort_by_date(entries)
    middle = len(ordered) // 2
    first = net_total(ordered[:middle])
    second = net_total(ordered[middle:])

    if second > first:
        direction = TrendDirection.GROWTH
    elif second < first:
        direction = TrendDirection.DECLINE
    else:
        direction = TrendDirection.STABLE

    return Trend(
        direction=direction,
        percentage=safe_divide(second - first, abs(first)) * HUNDRED,
        first_half_net=first,
        second_half_net=second,
    )


def balance_status(balance: Decimal) -> BalanceStatus:
    if balance > 0:
        return BalanceStatus.POSITIVE
    if balance < 0:
        return BalanceStatus.NEGATIVE
    return BalanceStatus.NEUTRAL


def days_in_month(year: int, month: int) -> int:
    return monthrange(int(year), int(month))[1]


def daily_average(balance: Decimal, year: int, month: int) -> Decimal:
    return safe_divide(balance, days_in_month(year, month))


def monthly_summaries(
    entries: Iterable[Entry], year: int
) -> List[Tuple[int, PeriodSummary]]:
    """Summaries for all twelve months of ``year``, empty months included."""
    year_key = f"{int(year):04d}"
    by_month = group_by_month(e for e in entries if e.year_key == year_key)
    return [
        (month, summarize(by_month.get(f"{year_key}-{month:02d}", [])))
        for month in range(1, 13)
    ]


def yearly_summaries(entries: Sequence[Entry]) -> Dict[str, PeriodSummary]:
    return {year: summarize(group) for year, group in group_by_year(entries).items()}
