"""Tests for the RTM output formats."""

import csv
import io
import json

import pytest
from conftest import make_link
from openpyxl import load_workbook

from tracelink.core.models import RTMEntry, TraceabilityEntity, TraceabilityMatrix
from tracelink.matrix.formats.csv import SUMMARY_HEADER, render_rtm_csv, render_summary_csv
from tracelink.matrix.formats.html import render_rtm_html
from tracelink.matrix.formats.json import render_rtm_json, render_summary_json
from tracelink.matrix.formats.markdown import render_rtm_markdown
from tracelink.matrix.formats.text import render_rtm_text
from tracelink.matrix.formats.xlsx import render_rtm_xlsx
from tracelink.matrix.generator import RTMConfig
from tracelink.matrix.utils import rtm_columns, rtm_row

GENERATED_AT = "2024-05-01T12:00:00+00:00"


@pytest.fixture
def entries():
    return [
        RTMEntry(
            requirement_id="REQ-001",
            title="User login",
            description="Users can log in",
            category="Functional",
            priority="High",
            status="Verified",
            linked_test_cases=["TC-001", "TC-002"],
            linked_risks=["RISK-001"],
            verification_status="Verified",
            verification_method="Test",
            coverage_percentage=100.0,
        ),
        RTMEntry(
            requirement_id="REQ-002",
            title="Reset | password",
            category="Functional",
            priority="Medium",
            status="Draft",
        ),
    ]


class TestColumns:
    """Tests for rtm_columns and rtm_row."""

    def test_default_columns(self):
        """Test the default column set and order."""
        assert rtm_columns(RTMConfig()) == [
            "Requirement ID",
            "Title",
            "Category",
            "Priority",
            "Status",
            "Test Cases",
            "Design Elements",
            "Risks",
            "Documents",
            "Verification Status",
            "Verification Method",
            "Coverage %",
        ]

    def test_optional_columns(self):
        """Test that Description follows Title and details close the row."""
        config = RTMConfig(show_descriptions=True, show_verification_details=True, show_coverage_metrics=False)
        columns = rtm_columns(config)

        assert columns[2] == "Description"
        assert "Coverage %" not in columns
        assert columns[-2:] == ["Last Verified", "Notes"]

    def test_row_matches_columns(self, entries):
        """Test that every row has one value per column."""
        config = RTMConfig(show_descriptions=True, show_verification_details=True)
        row = rtm_row(entries[0], config, list_sep=", ", coverage_suffix="%")

        assert len(row) == len(rtm_columns(config))
        assert row[6] == "TC-001, TC-002"
        assert row[12] == "100.0%"


class TestCsvFormat:
    """Tests for CSV output."""

    def test_rtm_csv(self, entries):
        """Test the header and a data row of the CSV RTM."""
        rows = list(csv.reader(io.StringIO(render_rtm_csv(entries, RTMConfig()))))

        assert rows[0] == rtm_columns(RTMConfig())
        assert rows[1][0] == "REQ-001"
        assert rows[1][5] == "TC-001; TC-002"
        assert rows[1][-1] == "100.0"
        assert len(rows) == 3

    def test_summary_csv(self):
        """Test the summary CSV layout."""
        matrix = TraceabilityMatrix(
            entities=[TraceabilityEntity("REQ-001", "Requirement", "User login", "Active", ["TC-001", "TC-002"])]
        )

        rows = list(csv.reader(io.StringIO(render_summary_csv(matrix))))

        assert rows[0] == SUMMARY_HEADER
        assert rows[1] == ["REQ-001", "Requirement", "User login", "Active", "TC-001; TC-002"]


class TestJsonFormat:
    """Tests for JSON output."""

    def test_rtm_json(self, entries):
        """Test the JSON RTM envelope and field names."""
        data = json.loads(render_rtm_json(entries, RTMConfig(), GENERATED_AT))

        assert data["version"] == "1.0"
        assert data["generated_at"] == GENERATED_AT
        assert data["total_entries"] == 2
        first = data["entries"][0]
        assert first["requirement_title"] == "User login"
        assert first["linked_test_cases"] == ["TC-001", "TC-002"]
        assert first["coverage_percentage"] == 100.0
        assert first["last_verified_at"] is None

    def test_summary_json(self):
        """Test that the summary JSON includes entities and raw links."""
        link = make_link("REQ-001", "TC-001")
        matrix = TraceabilityMatrix(
            entities=[TraceabilityEntity("REQ-001", "Requirement", "User login", "Active", ["TC-001"])],
            links=[link],
            generated_by="alice",
        )

        data = json.loads(render_summary_json(matrix))

        assert data["generated_by"] == "alice"
        assert data["entities"][0]["linked_entities"] == ["TC-001"]
        assert data["links"][0]["id"] == link.id


class TestMarkdownFormat:
    """Tests for Markdown output."""

    def test_markdown_table(self, entries):
        """Test the title, header and escaped cells."""
        output = render_rtm_markdown(entries, RTMConfig(), GENERATED_AT)

        assert output.startswith("# Requirements Traceability Matrix\n")
        assert f"**Generated:** {GENERATED_AT}" in output
        assert "**Total Requirements:** 2" in output
        assert "| Requirement ID | Title |" in output
        assert "Reset \\| password" in output
        assert "| TC-001, TC-002 |" in output
        assert "| 100.0% |" in output


class TestHtmlFormat:
    """Tests for HTML output."""

    def test_html_document(self, entries):
        """Test the page title, headers, status classes and escaping."""
        output = render_rtm_html(entries, RTMConfig(), GENERATED_AT)

        assert "<title>Requirements Traceability Matrix</title>" in output
        assert "<th>Requirement ID</th>" in output
        assert '<td class="verified">Verified</td>' in output
        assert '<td class="not-verified">Not Verified</td>' in output
        assert "<strong>With Tests:</strong> 1" in output

    def test_html_escapes_content(self):
        """Test that HTML special characters are escaped."""
        entry = RTMEntry("REQ-001", "<script>alert(1)</script>")

        output = render_rtm_html([entry], RTMConfig())

        assert "<script>" not in output
        assert "&lt;script&gt;" in output


class TestTextFormat:
    """Tests for the fixed-width text output."""

    def test_text_report(self, entries):
        """Test entry blocks and the summary block."""
        output = render_rtm_text(entries, RTMConfig(show_descriptions=True), GENERATED_AT)

        assert "REQUIREMENTS TRACEABILITY MATRIX" in output
        assert "Entry 1: REQ-001" in output
        assert "Description: Users can log in" in output
        assert "  - TC-001" in output
        assert "Coverage: 100.0%" in output
        assert "Requirements with Tests: 1 (50.0%)" in output
        assert all(len(line) <= 80 for line in output.splitlines())

    def test_text_empty(self):
        """Test that an empty matrix renders a zero summary."""
        output = render_rtm_text([], RTMConfig())

        assert "Total Requirements: 0" in output
        assert "Requirements with Tests: 0 (0.0%)" in output


class TestXlsxFormat:
    """Tests for XLSX output."""

    def test_workbook_layout(self, entries):
        """Test the title, header row and data rows of the workbook."""
        data = render_rtm_xlsx(entries, RTMConfig(), GENERATED_AT)
        ws = load_workbook(io.BytesIO(data)).active

        assert ws.title == "RTM"
        assert ws["A1"].value == "Requirements Traceability Matrix"
        assert ws["B4"].value == 2
        header = [cell.value for cell in ws[8]]
        assert header == rtm_columns(RTMConfig())
        assert ws["A9"].value == "REQ-001"
        assert ws["F9"].value == "TC-001\nTC-002"
        assert ws["A10"].value == "REQ-002"
