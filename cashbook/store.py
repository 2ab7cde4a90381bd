# cashbook/store.py
"""Month-bucketed ledger persistence on top of a pluggable backend.

The store keeps no state between calls: every operation loads the current
snapshot from the backend, works on it and, for mutations, writes it back.
Each write first copies the previous snapshot into the single backup slot.

Only one session is expected to use a ledger at a time. There is no locking
around ``update_entry``, ``delete_entry`` or ``import_snapshot``; sharing a
backend between concurrent writers would need optimistic concurrency checks
on ``lastUpdated`` or a transactional backend.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional

import simplejson as json

from cashbook.backends import BACKUP_KEY, PRIMARY_KEY
from cashbook.backends.base import BaseBackend
from cashbook.core import aggregation
from cashbook.core.models import (
    Category,
    Entry,
    Kind,
    MONTH_KEY_RX,
    Ledger,
    format_timestamp,
    is_number,
    ledger_from_snapshot,
    ledger_to_dict,
    month_key,
    parse_amount,
    parse_date,
    parse_timestamp,
    utcnow,
    validate_entry,
)
from cashbook.errors import PersistenceError, ValidationError

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = "1.0"
DEFAULT_SOURCE = "cashbook"
EDITABLE_FIELDS = ("kind", "amount", "description", "category", "date")


@dataclass
class LoadedLedger:
    ledger: Ledger
    last_updated: Optional[str] = None
    size: int = 0


@dataclass
class IntegrityReport:
    valid: bool
    errors: List[str] = field(default_factory=list)


def _scope_key(year, month) -> str:
    try:
        year, month = int(year), int(month)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid period {year}-{month}") from exc
    if not 1 <= month <= 12:
        raise ValidationError(f"Invalid month {month}: expected 1-12")
    return month_key(year, month)


def _year_key(year) -> str:
    try:
        return f"{int(year):04d}"
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid year {year!r}") from exc


def _entry_problems(entry: dict, key: str, position: int) -> List[str]:
    problems: List[str] = []
    entry_id = entry.get("id")
    if not isinstance(entry_id, str) or not entry_id.strip():
        problems.append(f"Entry without id found in month {key}")
        entry_id = f"#{position} of {key}"

    kind = None
    try:
        kind = Kind.parse(entry.get("kind"))
    except ValidationError:
        problems.append(f"Invalid kind in entry {entry_id}")

    amount = entry.get("amount")
    if not is_number(amount) or not Decimal(amount).is_finite() or amount <= 0:
        problems.append(f"Invalid amount in entry {entry_id}")

    try:
        parse_date(entry.get("date"))
    except ValidationError:
        problems.append(f"Invalid date in entry {entry_id}")

    category = entry.get("category")
    if category is not None:
        try:
            Category.parse(category)
        except ValidationError:
            problems.append(f"Invalid category in entry {entry_id}")
        else:
            if kind is Kind.INFLOW:
                problems.append(f"Inflow entry {entry_id} carries a category")

    description = entry.get("description")
    if description is not None and not isinstance(description, str):
        problems.append(f"Invalid description in entry {entry_id}")

    created_at = entry.get("createdAt")
    if created_at is not None:
        try:
            parse_timestamp(created_at)
        except ValidationError:
            problems.append(f"Invalid creation time in entry {entry_id}")
    return problems


class LedgerStore:
    def __init__(
        self,
        backend: BaseBackend,
        clock: Callable[[], datetime] = utcnow,
        source: str = DEFAULT_SOURCE,
    ):
        self.backend = backend
        self.clock = clock
        self.source = source

    # ------------------------------------------------------------------
    # Loading and saving

    @staticmethod
    def _decode(key: str, text: str) -> dict:
        try:
            document = json.loads(text, use_decimal=True)
        except ValueError as exc:
            raise PersistenceError(f"Snapshot in slot '{key}' is corrupted: {exc}") from exc
        if not isinstance(document, dict):
            raise PersistenceError(f"Snapshot in slot '{key}' is not a JSON object")
        return document

    def _read_document(self, key: str) -> Optional[dict]:
        text = self.backend.load(key)
        if text is None:
            return None
        return self._decode(key, text)

    def _read_slot(self, key: str) -> Optional[LoadedLedger]:
        text = self.backend.load(key)
        if text is None:
            return None
        document = self._decode(key, text)
        try:
            ledger = ledger_from_snapshot(document)
        except ValidationError as exc:
            raise PersistenceError(f"Snapshot in slot '{key}' is corrupted: {exc}") from exc
        return LoadedLedger(ledger, document.get("lastUpdated"), len(text))

    def _load(self) -> LoadedLedger:
        try:
            loaded = self._read_slot(PRIMARY_KEY)
        except PersistenceError as exc:
            logger.error("Could not load ledger, falling back to backup: %s", exc)
            return self._load_backup()
        return loaded or LoadedLedger({})

    def _load_backup(self) -> LoadedLedger:
        try:
            loaded = self._read_slot(BACKUP_KEY)
        except PersistenceError as exc:
            logger.error("Could not load backup, starting from an empty ledger: %s", exc)
            return LoadedLedger({})
        return loaded or LoadedLedger({})

    def _save(self, ledger: Ledger) -> None:
        document = {
            "entries": ledger_to_dict(ledger),
            "lastUpdated": format_timestamp(self.clock()),
        }
        text = json.dumps(document, use_decimal=True, ensure_ascii=False)

        current = self.backend.load(PRIMARY_KEY)
        if current is not None:
            if self._is_readable(PRIMARY_KEY, current):
                self.backend.save(BACKUP_KEY, current)
            else:
                logger.warning("Current ledger is unreadable; keeping the previous backup")
        self.backend.save(PRIMARY_KEY, text)
        logger.debug("Saved ledger with %d month(s)", len(ledger))

    def _is_readable(self, key: str, text: str) -> bool:
        try:
            ledger_from_snapshot(self._decode(key, text))
        except (PersistenceError, ValidationError):
            return False
        return True

    # ------------------------------------------------------------------
    # Entries

    def _check_new(self, ledger: Ledger, entries: List[Entry]) -> None:
        known = {e.id for bucket in ledger.values() for e in bucket}
        for entry in entries:
            validate_entry(entry)
            if entry.id in known:
                raise ValidationError(f"Duplicate entry id {entry.id}")
            known.add(entry.id)

    def add_entry(self, entry: Entry) -> None:
        self.add_entries([entry])

    def add_entries(self, entries: Iterable[Entry]) -> int:
        """Append ``entries`` to their month buckets with a single write."""
        entries = list(entries)
        if not entries:
            return 0
        ledger = self._load().ledger
        self._check_new(ledger, entries)
        for entry in entries:
            ledger.setdefault(entry.month_key, []).append(entry)
        self._save(ledger)
        return len(entries)

    def get_entry(self, entry_id: str) -> Optional[Entry]:
        for bucket in self._load().ledger.values():
            for entry in bucket:
                if entry.id == entry_id:
                    return entry
        return None

    def get_month_entries(self, year, month) -> List[Entry]:
        return list(self._load().ledger.get(_scope_key(year, month), []))

    def get_year_entries(self, year) -> List[Entry]:
        year_key = _year_key(year)
        ledger = self._load().ledger
        entries: List[Entry] = []
        for month in range(1, 13):
            entries.extend(ledger.get(f"{year_key}-{month:02d}", []))
        return aggregation.sort_by_date(entries)

    def get_all_entries(self) -> List[Entry]:
        ledger = self._load().ledger
        return aggregation.sort_by_date(e for bucket in ledger.values() for e in bucket)

    def get_ledger(self) -> Ledger:
        return self._load().ledger

    def get_backup(self) -> Ledger:
        return self._load_backup().ledger

    def update_entry(self, entry_id: str, **patch) -> bool:
        """Merge ``patch`` into the entry with ``entry_id``.

        Returns False when no such entry exists. A patch moving ``date`` into
        another month moves the entry to that month's bucket.
        """
        unknown = set(patch) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot edit field(s): {', '.join(sorted(unknown))}")

        changes = {}
        if "kind" in patch:
            changes["kind"] = Kind.parse(patch["kind"])
        if "amount" in patch:
            changes["amount"] = parse_amount(patch["amount"])
        if "description" in patch:
            description = patch["description"]
            changes["description"] = (description.strip() or None) if description else None
        if "category" in patch:
            category = patch["category"]
            changes["category"] = Category.parse(category) if category else None
        if "date" in patch:
            changes["date"] = parse_date(patch["date"])

        ledger = self._load().ledger
        for key, bucket in ledger.items():
            for index, entry in enumerate(bucket):
                if entry.id != entry_id:
                    continue
                updated = entry.with_changes(**changes)
                if updated.kind is Kind.INFLOW and "category" not in changes:
                    updated = updated.with_changes(category=None)
                validate_entry(updated)

                if updated.month_key == key:
                    bucket[index] = updated
                else:
                    del bucket[index]
                    if not bucket:
                        del ledger[key]
                    ledger.setdefault(updated.month_key, []).append(updated)
                self._save(ledger)
                return True
        return False

    def delete_entry(self, entry_id: str) -> bool:
        ledger = self._load().ledger
        for key, bucket in ledger.items():
            remaining = [e for e in bucket if e.id != entry_id]
            if len(remaining) < len(bucket):
                if remaining:
                    ledger[key] = remaining
                else:
                    del ledger[key]
                self._save(ledger)
                return True
        return False

    # ------------------------------------------------------------------
    # Snapshots

    def export_snapshot(self) -> dict:
        loaded = self._load()
        now = format_timestamp(self.clock())
        return {
            "entries": ledger_to_dict(loaded.ledger),
            "lastUpdated": loaded.last_updated or now,
            "exportedAt": now,
            "version": SNAPSHOT_VERSION,
            "source": self.source,
        }

    def export_json(self) -> str:
        return json.dumps(self.export_snapshot(), use_decimal=True, indent=2, ensure_ascii=False)

    def import_snapshot(self, raw) -> int:
        """Replace the whole ledger with the snapshot in ``raw``.

        ``raw`` may be JSON text, bytes or an already decoded mapping. The
        payload is validated in full before anything is written; on any
        problem ValidationError is raised and the current ledger is kept.
        Returns the number of imported entries.
        """
        if isinstance(raw, (bytes, bytearray)):
            try:
                raw = raw.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise ValidationError("Invalid or corrupted JSON file") from exc
        if isinstance(raw, str):
            try:
                payload = json.loads(raw, use_decimal=True)
            except ValueError as exc:
                raise ValidationError(f"Invalid or corrupted JSON file: {exc}") from exc
        else:
            payload = raw

        ledger = ledger_from_snapshot(payload)
        seen = set()
        for bucket in ledger.values():
            for entry in bucket:
                if entry.id in seen:
                    raise ValidationError(f"Duplicate entry id {entry.id} in import")
                seen.add(entry.id)

        self._save(ledger)
        logger.info("Imported %d entries across %d month(s)", len(seen), len(ledger))
        return len(seen)

    def validate_integrity(self) -> IntegrityReport:
        """Walk the persisted ledger and report every problem found.

        Anything that would stop the ledger from loading is reported, so a
        valid report means reads will not fall back to the backup.
        """
        errors: List[str] = []
        try:
            document = self._read_document(PRIMARY_KEY)
        except PersistenceError as exc:
            return IntegrityReport(False, [str(exc)])
        if document is None:
            return IntegrityReport(True, [])

        buckets = document.get("entries")
        if not isinstance(buckets, dict):
            return IntegrityReport(False, ["Invalid data structure: 'entries' not found"])

        for key, bucket in buckets.items():
            if not isinstance(key, str) or not MONTH_KEY_RX.match(key):
                errors.append(f"Invalid month key {key!r}")
            if not isinstance(bucket, list):
                errors.append(f"Data for month {key} is corrupted")
                continue
            for position, entry in enumerate(bucket, start=1):
                if not isinstance(entry, dict):
                    errors.append(f"Entry #{position} in month {key} is not an object")
                    continue
                errors.extend(_entry_problems(entry, key, position))

        if not errors:
            try:
                ledger_from_snapshot(document)
            except ValidationError as exc:
                errors.append(str(exc))

        return IntegrityReport(not errors, errors)

    def system_stats(self) -> Dict[str, object]:
        loaded = self._load()
        entries = aggregation.sort_by_date(
            e for bucket in loaded.ledger.values() for e in bucket
        )
        summary = aggregation.summarize(entries)
        return {
            "total_months": len(loaded.ledger),
            "total_entries": summary.count,
            "inflow_count": summary.inflow_count,
            "outflow_count": summary.outflow_count,
            "oldest_entry": entries[0].date if entries else None,
            "newest_entry": entries[-1].date if entries else None,
            "last_updated": loaded.last_updated,
            "data_size": loaded.size,
        }

    def clear(self) -> None:
        """Remove the ledger and its backup."""
        self.backend.remove(PRIMARY_KEY)
        self.backend.remove(BACKUP_KEY)
        logger.info("Ledger cleared")

    # ------------------------------------------------------------------
    # Summaries

    def month_summary(self, year, month) -> aggregation.PeriodSummary:
        return aggregation.summarize(self.get_month_entries(year, month))

    def year_summary(self, year) -> aggregation.PeriodSummary:
        return aggregation.summarize(self.get_year_entries(year))

    def overall_summary(self) -> aggregation.PeriodSummary:
        return aggregation.summarize(self.get_all_entries())
