import functools
import logging
import os
from datetime import date

import click
from dotenv import load_dotenv

from cashbook.backends import get_backend
from cashbook.config import DEFAULT_CONFIG, load_config, save_config
from cashbook.core import aggregation
from cashbook.core.models import Category, Kind
from cashbook.entries import build_entries, load_entries_file
from cashbook.errors import LedgerError
from cashbook.outputs import export_report
from cashbook.outputs.base import display_value
from cashbook.reports.builder import ReportBuilder
from cashbook.store import LedgerStore

KIND_CHOICES = click.Choice([k.value for k in Kind], case_sensitive=False)
CATEGORY_CHOICES = click.Choice([c.value for c in Category], case_sensitive=False)


def handle_errors(func):
    """Report ledger errors as a one-line message and a non-zero exit."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except LedgerError as e:
            raise click.ClickException(str(e)) from e
    return wrapper


def make_store(cfg):
    return LedgerStore(get_backend(cfg), source=cfg.get('source', 'cashbook'))


def make_builder(cfg, store):
    return ReportBuilder(
        store,
        organization=cfg.get('organization', ''),
        prefix=cfg.get('report_prefix', 'Cashbook'),
    )


def _echo_summary(title, summary):
    click.echo(title)
    click.echo(f"  Inflows:   {display_value(summary.total_inflows)} ({summary.inflow_count})")
    click.echo(f"  Outflows:  {display_value(summary.total_outflows)} ({summary.outflow_count})")
    click.echo(f"  Balance:   {display_value(summary.balance)} [{summary.status.value}]")
    click.echo(f"  Entries:   {summary.count}")


@click.group()
@click.option(
    '--config', 'config_path',
    default=None,
    type=click.Path(dir_okay=False),
    help='Path to config.yaml (defaults to $CASHBOOK_CONFIG or ./config.yaml)'
)
@click.option(
    '--env-file', 'env_file',
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help='Optional .env file with CASHBOOK_* settings'
)
@click.pass_context
def main(ctx, config_path, env_file):
    """
    Record monthly inflows and outflows and export multi-sheet reports
    for a single organisation.
    """
    if env_file:
        load_dotenv(env_file)
    logging.basicConfig(level=os.getenv("CASHBOOK_LOG_LEVEL", "WARNING").upper())

    try:
        ctx.obj = load_config(config_path)
    except (OSError, ValueError) as e:
        raise click.ClickException(str(e)) from e


@main.command()
@click.option('--kind', required=True, type=KIND_CHOICES, help='inflow or outflow')
@click.option('--amount', required=True, help='Positive amount, e.g. 125.50')
@click.option('--year', type=int, default=lambda: date.today().year, show_default='current year')
@click.option('--month', type=click.IntRange(1, 12), default=lambda: date.today().month,
              show_default='current month')
@click.option('--description', default=None)
@click.option('--category', type=CATEGORY_CHOICES, default=None,
              help='Outflow category (ignored for inflows, defaults to other)')
@click.option('--repeat', type=click.IntRange(1, None), default=1,
              help='Number of identical entries to record')
@click.pass_obj
@handle_errors
def add(cfg, kind, amount, year, month, description, category, repeat):
    """Record an entry for YEAR-MONTH, optionally repeated."""
    max_repeat = int(cfg.get('max_repeat', DEFAULT_CONFIG['max_repeat']))
    repeat = min(repeat, max_repeat)
    entries = build_entries(
        kind, amount, year, month,
        description=description,
        category=category,
        repeat=repeat,
        max_repeat=max_repeat,
    )
    make_store(cfg).add_entries(entries)
    click.echo(f"Added {len(entries)} entry(ies) to {year:04d}-{month:02d}.")


@main.command('add-batch')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.pass_obj
@handle_errors
def add_batch(cfg, path):
    """Record every entry listed in a YAML file."""
    entries = load_entries_file(path)
    count = make_store(cfg).add_entries(entries)
    click.echo(f"Added {count} entry(ies) from {path}.")


@main.command('list')
@click.option('--year', type=int, default=None)
@click.option('--month', type=click.IntRange(1, 12), default=None)
@click.pass_obj
@handle_errors
def list_entries(cfg, year, month):
    """List entries of a month, a year or the whole ledger."""
    store = make_store(cfg)
    if month is not None and year is None:
        raise click.UsageError('--month requires --year')
    if month is not None:
        entries = store.get_month_entries(year, month)
    elif year is not None:
        entries = store.get_year_entries(year)
    else:
        entries = store.get_all_entries()

    if not entries:
        click.echo("No entries found.")
        return
    for e in entries:
        category = e.effective_category
        click.echo("\t".join([
            e.id,
            e.date.isoformat(),
            e.kind.label,
            display_value(e.amount),
            category.label if category else '-',
            e.description or '-',
        ]))


@main.command()
@click.argument('entry_id')
@click.option('--kind', type=KIND_CHOICES, default=None)
@click.option('--amount', default=None)
@click.option('--description', default=None)
@click.option('--category', type=CATEGORY_CHOICES, default=None)
@click.option('--date', 'entry_date', default=None, help='New date (YYYY-MM-DD)')
@click.pass_obj
@handle_errors
def update(cfg, entry_id, kind, amount, description, category, entry_date):
    """Edit an existing entry."""
    patch = {
        name: value
        for name, value in (
            ('kind', kind),
            ('amount', amount),
            ('description', description),
            ('category', category),
            ('date', entry_date),
        )
        if value is not None
    }
    if not patch:
        raise click.UsageError('Nothing to update')
    if not make_store(cfg).update_entry(entry_id, **patch):
        raise click.ClickException(f"No entry with id {entry_id}")
    click.echo(f"Updated entry {entry_id}.")


@main.command()
@click.argument('entry_id')
@click.pass_obj
@handle_errors
def delete(cfg, entry_id):
    """Delete an entry by id."""
    if not make_store(cfg).delete_entry(entry_id):
        raise click.ClickException(f"No entry with id {entry_id}")
    click.echo(f"Deleted entry {entry_id}.")


@main.command()
@click.option('--year', type=int, default=None)
@click.option('--month', type=click.IntRange(1, 12), default=None)
@click.pass_obj
@handle_errors
def summary(cfg, year, month):
    """Print totals, category breakdown and trend for a period."""
    store = make_store(cfg)
    if month is not None and year is None:
        raise click.UsageError('--month requires --year')
    if month is not None:
        entries, title = store.get_month_entries(year, month), f"{year:04d}-{month:02d}"
    elif year is not None:
        entries, title = store.get_year_entries(year), f"{year:04d}"
    else:
        entries, title = store.get_all_entries(), "All time"

    totals = aggregation.summarize(entries)
    _echo_summary(title, totals)
    if month is not None:
        daily = aggregation.daily_average(totals.balance, year, month)
        click.echo(f"  Daily avg: {display_value(daily)}")

    breakdown = aggregation.sort_by_total(aggregation.category_breakdown(entries))
    if breakdown:
        click.echo("Categories")
        for stats in breakdown:
            click.echo(
                f"  {stats.category.label:<8} {display_value(stats.total):>14}"
                f"  {stats.percentage:6.2f}%  ({stats.count})"
            )
    if entries:
        trend = aggregation.calculate_trend(entries)
        click.echo(f"Trend: {trend.direction.value} ({trend.percentage:.2f}%)")


@main.command()
@click.argument('kind', type=click.Choice(['all', 'year', 'month']))
@click.option('--year', type=int, default=None)
@click.option('--month', type=click.IntRange(1, 12), default=None)
@click.option(
    '--format', 'output_format',
    default='excel',
    type=click.Choice(['excel', 'html', 'text']),
    help='Output target: excel, html or text'
)
@click.pass_obj
@handle_errors
def report(cfg, kind, year, month, output_format):
    """Generate the all-time, annual or monthly report."""
    store = make_store(cfg)
    built = make_builder(cfg, store).build(kind, year=year, month=month)
    out_path = export_report(built, cfg, output_format)
    click.echo(f"Report written to {out_path}")


@main.command()
@click.option('--out', 'out_path', default=None, type=click.Path(dir_okay=False),
              help='Write the snapshot to a file instead of stdout')
@click.pass_obj
@handle_errors
def export(cfg, out_path):
    """Export the full ledger as JSON."""
    text = make_store(cfg).export_json()
    if out_path:
        with open(out_path, 'w', encoding='utf-8') as f:
            f.write(text)
        click.echo(f"Ledger exported to {out_path}")
    else:
        click.echo(text)


@main.command('import')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.pass_obj
@handle_errors
def import_(cfg, path):
    """Replace the ledger with a previously exported snapshot."""
    with open(path, 'rb') as f:
        raw = f.read()
    count = make_store(cfg).import_snapshot(raw)
    click.echo(f"Imported {count} entry(ies). The previous ledger was kept as backup.")


@main.command()
@click.pass_obj
@handle_errors
def validate(cfg):
    """Check the stored ledger for malformed entries."""
    result = make_store(cfg).validate_integrity()
    if result.valid:
        click.echo("All data is consistent.")
        return
    for error in result.errors:
        click.echo(f"- {error}", err=True)
    raise click.ClickException(f"{len(result.errors)} problem(s) found")


@main.command()
@click.pass_obj
@handle_errors
def stats(cfg):
    """Show ledger statistics."""
    for key, value in make_store(cfg).system_stats().items():
        click.echo(f"{key}: {value if value is not None else '-'}")


@main.command()
@click.confirmation_option(prompt='This removes every entry and the backup. Continue?')
@click.pass_obj
@handle_errors
def reset(cfg):
    """Delete all entries and the backup."""
    make_store(cfg).clear()
    click.echo("Ledger cleared.")


@main.command('init-config')
@click.argument('path', type=click.Path(dir_okay=False), default='config.yaml')
def init_config(path):
    """Write a config file with the default settings."""
    if os.path.exists(path):
        raise click.ClickException(f"{path} already exists")
    save_config(DEFAULT_CONFIG, path)
    click.echo(f"Wrote default config to {path}")
