# cashbook/outputs/html_output.py

from decimal import Decimal
from html import escape

from cashbook.outputs.base import BaseOutput, display_value


class HTMLOutput(BaseOutput):
    """Generate a static HTML page with one table per report sheet."""

    extension = ".html"

    def write(self, report):
        html_parts = [
            "<html><head><meta charset='UTF-8'>",
            f"<title>{escape(report.title)}</title>",
            "<style>body{font-family:sans-serif;}table{border-collapse:collapse;margin-bottom:20px;}th,td{border:1px solid #ccc;padding:4px 8px;}th{background:#eee;}td.num{text-align:right;}</style>",
            "</head><body>",
            f"<h1>{escape(report.title)}</h1>",
        ]

        for sheet in report.sheets:
            html_parts.append(f"<h2>{escape(sheet.name)}</h2>")
            html_parts.append("<table>")
            for row in sheet.rows:
                cells = []
                for cell in row:
                    css = " class='num'" if isinstance(cell, (int, float, Decimal)) else ""
                    cells.append(f"<td{css}>{escape(display_value(cell))}</td>")
                html_parts.append("<tr>" + "".join(cells) + "</tr>")
            html_parts.append("</table>")

        html_parts.append("</body></html>")

        out_path = self.path_for(report)
        with open(out_path, 'w', encoding='utf-8') as f:
            f.write("\n".join(html_parts))

        print(f"Written {len(report.sheets)} sheet(s) to {out_path}")
        return out_path
