"""
Excel export of a report.

A "Summary" worksheet holds the header, the people and the signatures,
then every stored wizard step gets its own worksheet.
"""

import logging
from io import BytesIO
from typing import Any, Dict, List

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from ..wizard.steps import WIZARD_STEPS

log = logging.getLogger(__name__)

# Excel limits worksheet titles to 31 characters
MAX_SHEET_TITLE = 31

FORMULA_PREFIXES = ("=", "+", "-", "@")


def _display(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, (int, float, bool)):
        return value
    value = ILLEGAL_CHARACTERS_RE.sub("", str(value))
    # text is never evaluated as a formula
    if value.startswith(FORMULA_PREFIXES):
        return "'" + value
    return value


def _user_label(user) -> str:
    return f"{user.full_name} ({user.email})" if user is not None else ""


class ExcelExporter:
    """Excel format exporter, one worksheet per stored wizard step"""

    header_font = Font(bold=True)
    title_font = Font(bold=True, size=14)

    def export(self, report) -> bytes:
        workbook = Workbook()
        summary = workbook.active
        summary.title = "Summary"
        self._write_summary(summary, report)
        for step in report.steps:
            wizard_step = WIZARD_STEPS.get(step.step_name)
            title = wizard_step.title if wizard_step else step.step_name
            worksheet = workbook.create_sheet(self._sheet_title(title))
            self._write_step(worksheet, title, step.data or {})
        output = BytesIO()
        workbook.save(output)
        log.debug("Exported report %s to xlsx", report.id)
        return output.getvalue()

    @staticmethod
    def _sheet_title(title: str) -> str:
        for char in "[]:*?/\\":
            title = title.replace(char, "-")
        return title[:MAX_SHEET_TITLE]

    def _write_summary(self, worksheet, report) -> None:
        worksheet.append([_display(f"SAT Report: {report.title}")])
        worksheet["A1"].font = self.title_font
        worksheet.append([])
        rows = [
            ("Project Reference", report.project_ref),
            ("Document Reference", report.document_ref),
            ("Revision", report.revision),
            ("Status", str(report.status)),
            ("Created By", _user_label(report.creator)),
            ("Technical Manager", _user_label(report.technical_manager)),
            ("Project Manager", _user_label(report.project_manager)),
            ("Storage Location", report.storage_location),
            ("Submitted At", report.submitted_at),
            ("Completed At", report.completed_at),
        ]
        for label, value in rows:
            worksheet.append([label, _display(value)])
            worksheet.cell(row=worksheet.max_row, column=1).font = self.header_font
        if report.signatures:
            worksheet.append([])
            self._write_table(
                worksheet,
                ["Role", "Signed By", "Signed At"],
                [
                    [
                        str(sig.role),
                        _display(_user_label(sig.user)),
                        _display(sig.signed_at),
                    ]
                    for sig in report.signatures
                ],
            )
        self._autosize(worksheet)

    def _write_step(self, worksheet, title: str, data: Dict[str, Any]) -> None:
        worksheet.append([title])
        worksheet["A1"].font = self.title_font
        tables = []
        for key, value in data.items():
            if isinstance(value, list):
                tables.append((key, value))
            elif isinstance(value, dict):
                for sub_key, sub_value in value.items():
                    worksheet.append([f"{key}.{sub_key}", _display(sub_value)])
            else:
                worksheet.append([key, _display(value)])
        for key, rows in tables:
            worksheet.append([])
            worksheet.append([key])
            worksheet.cell(row=worksheet.max_row, column=1).font = self.header_font
            dict_rows = [row for row in rows if isinstance(row, dict)]
            columns: List[str] = []
            for row in dict_rows:
                for column in row:
                    if column not in columns:
                        columns.append(column)
            self._write_table(
                worksheet,
                columns,
                [[_display(row.get(column)) for column in columns] for row in dict_rows],
            )
        self._autosize(worksheet)

    def _write_table(self, worksheet, headers: List[str], rows: List[List[Any]]) -> None:
        worksheet.append(headers)
        for cell in worksheet[worksheet.max_row]:
            cell.font = self.header_font
        for row in rows:
            worksheet.append(row)

    @staticmethod
    def _autosize(worksheet) -> None:
        for index, column in enumerate(worksheet.columns, start=1):
            width = max((len(str(cell.value)) for cell in column if cell.value), default=8)
            worksheet.column_dimensions[get_column_letter(index)].width = min(
                max(width + 2, 10), 50
            )
