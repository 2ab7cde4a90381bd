# cashbook/outputs/text_output.py

import csv

from cashbook.outputs.base import BaseOutput, display_value


class TextOutput(BaseOutput):
    """
    Tab-delimited plain text: one "=== <sheet> ===" section per sheet,
    separated by a blank line. Also serves as the fallback when another
    output fails.
    """
    extension = ".txt"

    def write(self, report):
        out_path = self.path_for(report)
        with open(out_path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f, delimiter='\t', lineterminator='\n')
            for index, sheet in enumerate(report.sheets):
                if index:
                    f.write('\n')
                f.write(f"=== {sheet.name} ===\n")
                for row in sheet.rows:
                    writer.writerow([display_value(cell) for cell in row])

        print(f"Written {len(report.sheets)} sheet(s) to {out_path}")
        return out_path
