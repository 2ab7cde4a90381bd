# cashbook/reports/builder.py
"""Lay out aggregation results as multi-sheet reports.

Three report kinds exist: all-time, annual and monthly. Each sheet starts
with title and metadata rows, followed by section headers, detail rows and
summary rows. Amounts are left as Decimal; the outputs format them.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, List

from cashbook.core import aggregation
from cashbook.core.aggregation import PeriodSummary, Trend
from cashbook.core.models import Entry, utcnow
from cashbook.errors import EmptyScopeError, ValidationError
from cashbook.reports.layout import Number, Percent, Report, Sheet
from cashbook.store import LedgerStore

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]

ENTRY_HEADERS = ["Date", "Kind", "Amount", "Description", "Category"]


def _text(value) -> str:
    return value if value and value.strip() else "-"


def _entry_row(entry: Entry) -> list:
    category = entry.effective_category
    return [
        entry.date,
        entry.kind.label,
        entry.amount,
        _text(entry.description),
        category.label if category else "-",
    ]


def _subtotal_row(label: str, summary: PeriodSummary) -> list:
    return [
        label,
        summary.balance,
        "Inflows:",
        summary.total_inflows,
        "Outflows:",
        summary.total_outflows,
    ]


def _balance_block(heading: str, label: str, summary: PeriodSummary) -> List[list]:
    return [
        [f"=== {heading} ==="],
        [label, summary.balance],
        ["Total inflows:", summary.total_inflows],
        ["Total outflows:", summary.total_outflows],
        ["Status:", summary.status.value.upper()],
        [""],
    ]


def _trend_rows(trend: Trend) -> List[list]:
    return [
        ["Trend", trend.direction.value],
        ["Trend %", Percent(trend.percentage)],
    ]


class ReportBuilder:
    """Build reports from the entries held by ``store``."""

    def __init__(
        self,
        store: LedgerStore,
        organization: str = "",
        prefix: str = "Cashbook",
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.organization = organization
        self.prefix = prefix
        self.clock = clock

    def _title(self, text: str) -> str:
        return f"{text} - {self.organization}" if self.organization else text

    def _preamble(self, title: str) -> List[list]:
        generated = self.clock().strftime("%Y-%m-%d %H:%M:%S %Z").strip()
        return [[self._title(title)], ["Generated at:", generated], [""]]

    def _filename(self, *parts) -> str:
        stamp = self.clock().date().isoformat()
        return "-".join([self.prefix, *[str(p) for p in parts], stamp])

    # ------------------------------------------------------------------
    # All-time

    def build_all_time_report(self) -> Report:
        entries = self.store.get_all_entries()
        if not entries:
            raise EmptyScopeError("No data found to generate the report")

        overall = aggregation.summarize(entries)
        by_year = aggregation.group_by_year(entries)
        year_summaries = {year: aggregation.summarize(group) for year, group in by_year.items()}
        n_years = len(by_year)

        rows = self._preamble("GENERAL REPORT - ALL ENTRIES")
        rows += _balance_block("OVERALL BALANCE", "Overall balance:", overall)
        rows += [["=== ENTRIES BY YEAR ==="], list(ENTRY_HEADERS)]
        for year, group in by_year.items():
            rows.append([f"=== YEAR {year} ==="])
            rows += [_entry_row(e) for e in aggregation.sort_by_date(group)]
            rows.append(_subtotal_row(f"YEAR {year} BALANCE:", year_summaries[year]))
            rows.append([""])
        entries_sheet = Sheet("All Entries", rows)

        rows = [
            ["TOTALS BY YEAR"],
            [""],
            ["Year", "Total Inflows", "Total Outflows", "Balance", "Entries",
             "Average Inflow", "Average Outflow"],
        ]
        for year, summary in year_summaries.items():
            rows.append([
                year,
                summary.total_inflows,
                summary.total_outflows,
                summary.balance,
                summary.count,
                summary.average_inflow,
                summary.average_outflow,
            ])
        years_sheet = Sheet("Yearly Totals", rows)

        rows = [
            ["OVERALL SUMMARY OF ALL YEARS"],
            [""],
            ["=== OVERALL BALANCE ==="],
            ["Overall balance of all years", overall.balance],
            [""],
            ["=== DETAILS ==="],
            ["Metric", "Value"],
            ["Years with data", n_years],
            ["Total entries", overall.count],
            ["Total inflows", overall.total_inflows],
            ["Total outflows", overall.total_outflows],
            ["Average inflows per year", aggregation.safe_divide(overall.total_inflows, n_years)],
            ["Average outflows per year", aggregation.safe_divide(overall.total_outflows, n_years)],
            ["Average entries per year", Number(aggregation.safe_divide(overall.count, n_years))],
        ]
        rows += _trend_rows(aggregation.calculate_trend(entries))
        rows.append(["Overall status", overall.status.value.upper()])
        summary_sheet = Sheet("Overall Summary", rows)

        rows = [
            ["CATEGORIES ACROSS ALL YEARS"],
            [""],
            ["Category", "Total Spent", "% of Total Outflows", "Average per Year"],
        ]
        breakdown = aggregation.category_breakdown(entries, overall.total_outflows)
        for stats in aggregation.sort_by_total(breakdown):
            rows.append([
                stats.category.label,
                stats.total,
                Percent(stats.percentage),
                aggregation.safe_divide(stats.total, n_years),
            ])
        categories_sheet = Sheet("Categories", rows)

        return Report(
            kind="all",
            title=self._title("General report"),
            filename=self._filename("All-Time-Report"),
            sheets=[entries_sheet, years_sheet, summary_sheet, categories_sheet],
        )

    # ------------------------------------------------------------------
    # Annual

    def build_annual_report(self, year) -> Report:
        try:
            year = int(year)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"Invalid year {year!r}") from exc
        entries = self.store.get_year_entries(year)
        if not entries:
            raise EmptyScopeError(f"No data found for year {year}")

        totals = aggregation.summarize(entries)
        by_month = aggregation.group_by_month(entries)
        months = aggregation.monthly_summaries(entries, year)

        rows = self._preamble(f"ALL ENTRIES OF {year}")
        rows += _balance_block(f"ANNUAL BALANCE {year}", "Annual balance:", totals)
        rows += [["=== ENTRIES BY MONTH ==="], list(ENTRY_HEADERS)]
        for month, summary in months:
            group = by_month.get(f"{year:04d}-{month:02d}")
            if not group:
                continue
            name = MONTH_NAMES[month - 1].upper()
            rows.append([f"=== {name} {year} ==="])
            rows += [_entry_row(e) for e in aggregation.sort_by_date(group)]
            rows.append(_subtotal_row(f"{name} BALANCE:", summary))
            rows.append([""])
        entries_sheet = Sheet("Entries by Month", rows)

        rows = [
            [f"MONTHLY TOTALS - {year}"],
            [""],
            ["Month", "Total Inflows", "Total Outflows", "Balance", "Entries", "Daily Average"],
        ]
        for month, summary in months:
            daily = (
                aggregation.daily_average(summary.balance, year, month)
                if summary.count
                else aggregation.ZERO
            )
            rows.append([
                MONTH_NAMES[month - 1],
                summary.total_inflows,
                summary.total_outflows,
                summary.balance,
                summary.count,
                daily,
            ])
        months_sheet = Sheet("Monthly Totals", rows)

        rows = [
            [f"TOTALS FOR {year}"],
            [""],
            [f"=== ANNUAL BALANCE {year} ==="],
            ["Annual balance:", totals.balance],
            [""],
            ["=== DETAILS ==="],
            ["Metric", "Value"],
            ["Total entries", totals.count],
            ["Total inflows", totals.total_inflows],
            ["Total outflows", totals.total_outflows],
            ["Monthly average inflows", aggregation.safe_divide(totals.total_inflows, 12)],
            ["Monthly average outflows", aggregation.safe_divide(totals.total_outflows, 12)],
            ["Average entries per month", Number(aggregation.safe_divide(totals.count, 12))],
        ]
        rows += _trend_rows(aggregation.calculate_trend(entries))
        rows.append(["Year status", totals.status.value.upper()])
        summary_sheet = Sheet("Year Summary", rows)

        rows = [
            [f"CATEGORIES - {year}"],
            [""],
            ["Category", "Total Spent", "% of Total", "Entries", "Average Value"],
        ]
        breakdown = aggregation.category_breakdown(entries, totals.total_outflows)
        for stats in aggregation.sort_by_total(breakdown):
            rows.append([
                stats.category.label,
                stats.total,
                Percent(stats.percentage),
                stats.count,
                stats.average,
            ])
        categories_sheet = Sheet("Categories", rows)

        return Report(
            kind="year",
            title=self._title(f"Annual report {year}"),
            filename=self._filename("Annual-Report", year),
            sheets=[entries_sheet, months_sheet, summary_sheet, categories_sheet],
        )

    # ------------------------------------------------------------------
    # Monthly

    def build_monthly_report(self, year, month) -> Report:
        entries = self.store.get_month_entries(year, month)
        year, month = int(year), int(month)
        if not entries:
            raise EmptyScopeError(f"No data found for {month:02d}/{year}")

        name = MONTH_NAMES[month - 1]
        totals = aggregation.summarize(entries)

        rows = self._preamble(f"ALL ENTRIES - {name.upper()} {year}")
        rows += _balance_block(f"BALANCE FOR {name.upper()}", "Monthly balance:", totals)
        rows += [["=== ENTRIES OF THE MONTH ==="], list(ENTRY_HEADERS)]
        rows += [_entry_row(e) for e in aggregation.sort_by_date(entries)]
        entries_sheet = Sheet("Entries", rows)

        rows = [
            [f"CATEGORIES - {name.upper()} {year}"],
            [""],
            ["Category", "Total Spent", "Entries", "Average Value", "Largest Value",
             "Smallest Value", "% of Total"],
        ]
        breakdown = aggregation.category_breakdown(entries, totals.total_outflows)
        for stats in aggregation.sort_by_total(breakdown):
            rows.append([
                stats.category.label,
                stats.total,
                stats.count,
                stats.average,
                stats.max,
                stats.min,
                Percent(stats.percentage),
            ])
        categories_sheet = Sheet("Categories", rows)

        rows = [
            [f"TOTALS FOR {name.upper()} {year}"],
            [""],
            [f"=== BALANCE FOR {name.upper()} ==="],
            ["Monthly balance:", totals.balance],
            [""],
            ["=== DETAILS ==="],
            ["Metric", "Value"],
            ["Total entries", totals.count],
            ["Inflow count", totals.inflow_count],
            ["Outflow count", totals.outflow_count],
            ["Total inflows", totals.total_inflows],
            ["Total outflows", totals.total_outflows],
            ["Average per inflow", totals.average_inflow],
            ["Average per outflow", totals.average_outflow],
            ["Daily average", aggregation.daily_average(totals.balance, year, month)],
        ]
        rows += _trend_rows(aggregation.calculate_trend(entries))
        rows.append(["Month status", totals.status.value.upper()])
        summary_sheet = Sheet("Month Summary", rows)

        return Report(
            kind="month",
            title=self._title(f"Monthly report {name} {year}"),
            filename=self._filename("Monthly-Report", name, year),
            sheets=[entries_sheet, categories_sheet, summary_sheet],
        )

    def build(self, kind: str, year=None, month=None) -> Report:
        if kind == "all":
            return self.build_all_time_report()
        if kind == "year":
            if year is None:
                raise ValidationError("A year is required for the annual report")
            return self.build_annual_report(year)
        if kind == "month":
            if year is None or month is None:
                raise ValidationError("Year and month are required for the monthly report")
            return self.build_monthly_report(year, month)
        raise ValidationError(f"Unknown report kind '{kind}'")
