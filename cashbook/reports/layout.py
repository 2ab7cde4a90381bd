# cashbook/reports/layout.py
"""Sheet and report containers handed from the builder to the outputs.

A cell is one of ``str``, ``int``, :class:`datetime.date`,
:class:`~decimal.Decimal` (a money amount), :class:`Percent` or
:class:`Number`. Outputs decide how each is formatted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional


class Percent(Decimal):
    """A percentage on the 0-100 scale."""

    __slots__ = ()


class Number(Decimal):
    """A decimal quantity that is not money, e.g. entries per month."""

    __slots__ = ()


@dataclass
class Sheet:
    name: str
    rows: List[list] = field(default_factory=list)

    def __post_init__(self):
        # Pad ragged rows so every sheet is a rectangular grid
        width = self.width
        self.rows = [list(row) + [""] * (width - len(row)) for row in self.rows]

    @property
    def width(self) -> int:
        return max((len(row) for row in self.rows), default=0)

    def find_row(self, label: str) -> Optional[list]:
        """First row whose leading cell equals ``label``."""
        for row in self.rows:
            if row and row[0] == label:
                return row
        return None


@dataclass
class Report:
    kind: str
    title: str
    filename: str
    sheets: List[Sheet] = field(default_factory=list)

    @property
    def sheet_names(self) -> List[str]:
        return [s.name for s in self.sheets]

    def sheet(self, name: str) -> Sheet:
        for sheet in self.sheets:
            if sheet.name == name:
                return sheet
        raise KeyError(name)
