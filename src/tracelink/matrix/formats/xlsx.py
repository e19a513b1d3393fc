"""Excel (XLSX) traceability matrix output."""

import io

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from tracelink.core.models import RTMEntry, utc_now
from tracelink.matrix.generator import RTMConfig
from tracelink.matrix.utils import rtm_columns, rtm_row

# Color definitions
HEADER_FILL = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
HEADER_FONT = Font(bold=True, color="FFFFFF")
VERIFIED_FILL = PatternFill(start_color="C6EFCE", end_color="C6EFCE", fill_type="solid")
UNTESTED_FILL = PatternFill(start_color="FFC7CE", end_color="FFC7CE", fill_type="solid")
TESTED_FILL = PatternFill(start_color="FFEB9C", end_color="FFEB9C", fill_type="solid")


def render_rtm_xlsx(entries: list[RTMEntry], config: RTMConfig, generated_at: str | None = None) -> bytes:
    """Render RTM rows as an Excel workbook.

    Args:
        entries: RTM rows in output order.
        config: Column selection flags.
        generated_at: Generation timestamp shown in the header block.

    Returns:
        Bytes containing an XLSX workbook with a summary block, a styled
        header, and the verification status cell colored green (verified),
        yellow (tested but not verified) or red (no linked test).
    """
    wb = Workbook()
    ws: Worksheet = wb.active  # type: ignore[assignment]
    ws.title = "RTM"

    columns = rtm_columns(config)
    status_col = columns.index("Verification Status") + 1

    ws["A1"] = "Requirements Traceability Matrix"
    ws["A1"].font = Font(bold=True, size=14)
    ws.merge_cells(start_row=1, start_column=1, end_row=1, end_column=len(columns))

    total = len(entries)
    tested = sum(1 for e in entries if e.linked_test_cases)
    summary = [
        ("Generated:", generated_at or utc_now()),
        ("Total Requirements:", total),
        ("With Tests:", f"{tested} ({100 * tested / total if total else 0:.1f}%)"),
        ("Verified:", sum(1 for e in entries if e.is_verified)),
    ]
    current_row = 3
    for label, value in summary:
        ws.cell(row=current_row, column=1, value=label)
        ws.cell(row=current_row, column=2, value=value)
        current_row += 1
    current_row += 1  # Empty row before header

    header_row = current_row
    for col, header in enumerate(columns, start=1):
        cell = ws.cell(row=header_row, column=col, value=header)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.alignment = Alignment(horizontal="center")

    row = header_row + 1
    for entry in entries:
        for col, value in enumerate(rtm_row(entry, config, list_sep="\n"), start=1):
            cell = ws.cell(row=row, column=col, value=value)
            cell.alignment = Alignment(wrap_text=True, vertical="top")
        if entry.is_verified:
            fill = VERIFIED_FILL
        elif entry.linked_test_cases:
            fill = TESTED_FILL
        else:
            fill = UNTESTED_FILL
        ws.cell(row=row, column=status_col).fill = fill
        row += 1

    for col, header in enumerate(columns, start=1):
        width = 40 if header in ("Title", "Description", "Notes") else 18
        ws.column_dimensions[get_column_letter(col)].width = width
    ws.freeze_panes = ws.cell(row=header_row + 1, column=1)

    output = io.BytesIO()
    wb.save(output)
    return output.getvalue()
