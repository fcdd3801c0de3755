"""
Tests for export_service: candidate export and upload template.
"""

from openpyxl import load_workbook

from models.candidate import field_ids
from services.export_service import (
    EXPORT_SHEET_TITLE,
    TEMPLATE_SHEET_TITLE,
    ExportService,
    get_export_service,
    template_headers,
)
from tests.factories import make_record


def header_row(ws) -> list:
    return [cell.value for cell in ws[1]]


class TestTemplateHeaders:
    """Tests for template_headers()"""

    def test_labels_of_mappable_fields(self):
        headers = template_headers()

        assert "Full Name" in headers
        assert "Data Source" not in headers
        assert len(headers) == 8


class TestCandidatesExcel:
    """Tests for generate_candidates_excel()"""

    def test_header_and_rows(self):
        records = [
            make_record(Name="Jane Doe", Email="jane@x.com"),
            make_record(Name="John Roe", Tech="Go"),
        ]

        output = ExportService().generate_candidates_excel(records)

        ws = load_workbook(output).active
        assert ws.title == EXPORT_SHEET_TITLE
        assert header_row(ws) == field_ids()
        assert ws.max_row == 3
        assert ws.cell(row=2, column=1).value == "Jane Doe"
        tech_col = field_ids().index("Tech") + 1
        assert ws.cell(row=3, column=tech_col).value == "Go"

    def test_empty_export_has_header_only(self):
        ws = load_workbook(ExportService().generate_candidates_excel([])).active

        assert ws.max_row == 1
        assert ws.freeze_panes == "A2"

    def test_header_is_bold(self):
        ws = load_workbook(ExportService().generate_candidates_excel([])).active

        assert ws.cell(row=1, column=1).font.bold is True


class TestTemplateExcel:
    """Tests for generate_template_excel()"""

    def test_template_has_header_only(self):
        ws = load_workbook(ExportService().generate_template_excel()).active

        assert ws.title == TEMPLATE_SHEET_TITLE
        assert header_row(ws) == template_headers()
        assert ws.max_row == 1


def test_get_export_service_is_singleton():
    assert get_export_service() is get_export_service()
