# cashbook/outputs/base.py
import os
from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from pathlib import Path

from cashbook.reports.layout import Number, Percent


def display_value(cell):
    """Plain-text rendering of a report cell, rounded for display."""
    if isinstance(cell, Percent):
        return f"{cell:.2f}%"
    if isinstance(cell, Number):
        return f"{cell:.2f}"
    if isinstance(cell, Decimal):
        return f"{cell:,.2f}"
    if isinstance(cell, date):
        return cell.isoformat()
    if cell is None:
        return ""
    return str(cell)


class BaseOutput(ABC):
    extension = ""

    def __init__(self, config):
        self.config = config
        self.output_dir = config.get('output_dir', 'reports')
        os.makedirs(self.output_dir, exist_ok=True)

    def path_for(self, report) -> Path:
        return Path(self.output_dir) / f"{report.filename}{self.extension}"

    @abstractmethod
    def write(self, report) -> Path:
        """Serialise every sheet of ``report`` and return the written file."""
        pass
