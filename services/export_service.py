"""
Export service: candidate spreadsheets.

Generates the candidate export and the blank upload template. Both are
built in memory with openpyxl.
"""

from io import BytesIO
from typing import Optional

from openpyxl import Workbook
from openpyxl.styles import Font, Border, Side, PatternFill
from openpyxl.utils import get_column_letter
import structlog

from models.candidate import (
    TARGET_FIELD_CATALOG,
    CandidateRecord,
    field_ids,
    mappable_fields,
)

logger = structlog.get_logger(__name__)

EXPORT_SHEET_TITLE = "Candidates"
TEMPLATE_SHEET_TITLE = "Template"

_HEADER_FILL = PatternFill(start_color="D9E1F2", end_color="D9E1F2", fill_type="solid")
_MIN_WIDTH = 12
_MAX_WIDTH = 50


def template_headers() -> list[str]:
    """Human labels of the fields a spreadsheet column can be mapped to."""
    return [f.label for f in mappable_fields()]


class ExportService:
    """Service for generating candidate export files."""

    def _write_header(self, ws, headers: list[str]) -> None:
        bold_font = Font(bold=True)
        thin_border = Border(bottom=Side(style="thin", color="000000"))

        for col, header in enumerate(headers, start=1):
            cell = ws.cell(row=1, column=col, value=header)
            cell.font = bold_font
            cell.border = thin_border
            cell.fill = _HEADER_FILL
            width = min(max(len(header) + 2, _MIN_WIDTH), _MAX_WIDTH)
            ws.column_dimensions[get_column_letter(col)].width = width

        ws.freeze_panes = "A2"

    def _save(self, wb: Workbook) -> BytesIO:
        output = BytesIO()
        wb.save(output)
        output.seek(0)
        return output

    def generate_candidates_excel(self, records: list[CandidateRecord]) -> BytesIO:
        """
        Generate Excel file with one row per candidate.

        Args:
            records: Candidate records (catalog id -> value)

        Returns:
            BytesIO containing the Excel file
        """
        headers = field_ids()

        logger.info("generating_candidates_export", records=len(records))

        wb = Workbook()
        ws = wb.active
        ws.title = EXPORT_SHEET_TITLE

        self._write_header(ws, headers)

        for row, record in enumerate(records, start=2):
            for col, field_id in enumerate(headers, start=1):
                ws.cell(row=row, column=col, value=record.get(field_id) or "")

        logger.info(
            "candidates_export_generated",
            records=len(records),
            columns=len(TARGET_FIELD_CATALOG),
        )

        return self._save(wb)

    def generate_template_excel(self) -> BytesIO:
        """Generate the blank upload template (header row only)."""
        headers = template_headers()

        wb = Workbook()
        ws = wb.active
        ws.title = TEMPLATE_SHEET_TITLE

        self._write_header(ws, headers)

        logger.info("upload_template_generated", columns=len(headers))

        return self._save(wb)


# Singleton instance
_export_service: Optional[ExportService] = None


def get_export_service() -> ExportService:
    """Get or create ExportService instance."""
    global _export_service
    if _export_service is None:
        _export_service = ExportService()
    return _export_service
