"""
Report export in Excel and JSON formats.
"""

import json
from enum import Enum
from typing import NamedTuple

from .excel_exporter import ExcelExporter
from ..api.schemas import report_detail_schema


class ExportFormat(Enum):
    """Supported export formats."""
    EXCEL = "xlsx"
    JSON = "json"


MIMETYPES = {
    ExportFormat.EXCEL: (
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    ),
    ExportFormat.JSON: "application/json",
}


class ExportResult(NamedTuple):
    content: bytes
    mimetype: str
    filename: str


def export_report(report, export_format: str = "xlsx") -> ExportResult:
    """
    Export a report, the file is named ``<documentRef>_Rev<revision>.<ext>``

    :param report: the Report to export
    :param export_format: ``xlsx`` or ``json``
    """
    export_format = ExportFormat(export_format)
    if export_format == ExportFormat.EXCEL:
        content = ExcelExporter().export(report)
    else:
        content = json.dumps(
            report_detail_schema.dump(report), indent=2, default=str
        ).encode("utf-8")
    return ExportResult(
        content,
        MIMETYPES[export_format],
        f"{report.filename_stem}.{export_format.value}",
    )
