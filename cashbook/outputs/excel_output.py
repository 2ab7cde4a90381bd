# cashbook/outputs/excel_output.py

"""Excel output module backed by XlsxWriter.

Every sheet of a report becomes one worksheet. Money cells are written as
numbers with the configured currency format, percentages with a percent
format and dates as real Excel dates, so the workbook stays usable for
further calculation. Column widths follow the longest displayed value,
clamped between 10 and 50 characters.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import xlsxwriter

from cashbook.outputs.base import BaseOutput, display_value
from cashbook.reports.layout import Number, Percent

MIN_WIDTH = 10
MAX_WIDTH = 50
# Excel rejects sheet names longer than 31 characters
MAX_SHEET_NAME = 31


def column_widths(rows):
    """Width per column from the displayed length of its longest value."""
    width = max((len(row) for row in rows), default=0)
    widths = []
    for col in range(width):
        longest = max(
            (len(display_value(row[col])) for row in rows if col < len(row)),
            default=0,
        )
        widths.append(min(max(longest + 2, MIN_WIDTH), MAX_WIDTH))
    return widths


class ExcelOutput(BaseOutput):
    """Write a report to a local ``.xlsx`` workbook."""

    extension = ".xlsx"
    CURRENCY_FMT = "#,##0.00"

    def write(self, report):
        out_path = self.path_for(report)
        workbook = xlsxwriter.Workbook(str(out_path))
        formats = {
            "amount": workbook.add_format(
                {"num_format": self.config.get("currency_format", self.CURRENCY_FMT)}
            ),
            "percent": workbook.add_format({"num_format": "0.00%"}),
            "number": workbook.add_format({"num_format": "0.00"}),
            "date": workbook.add_format({"num_format": "yyyy-mm-dd"}),
            "title": workbook.add_format({"bold": True, "font_size": 13}),
        }

        try:
            for sheet in report.sheets:
                ws = workbook.add_worksheet(sheet.name[:MAX_SHEET_NAME])
                for row_idx, row in enumerate(sheet.rows):
                    for col_idx, cell in enumerate(row):
                        self._write_cell(ws, row_idx, col_idx, cell, formats)
                if sheet.rows and sheet.rows[0]:
                    ws.write(0, 0, display_value(sheet.rows[0][0]), formats["title"])
                for col_idx, width in enumerate(column_widths(sheet.rows)):
                    ws.set_column(col_idx, col_idx, width)
        finally:
            workbook.close()

        print(f"Written Excel workbook {out_path}")
        return out_path

    @staticmethod
    def _write_cell(ws, row, col, cell, formats):
        if isinstance(cell, Percent):
            ws.write_number(row, col, float(cell) / 100, formats["percent"])
        elif isinstance(cell, Number):
            ws.write_number(row, col, float(cell), formats["number"])
        elif isinstance(cell, Decimal):
            ws.write_number(row, col, float(cell), formats["amount"])
        elif isinstance(cell, bool):
            ws.write_boolean(row, col, cell)
        elif isinstance(cell, int):
            ws.write_number(row, col, cell)
        elif isinstance(cell, date):
            value = cell if isinstance(cell, datetime) else datetime(cell.year, cell.month, cell.day)
            ws.write_datetime(row, col, value, formats["date"])
        elif cell in (None, ""):
            return
        else:
            ws.write_string(row, col, str(cell))
