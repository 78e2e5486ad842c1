"""
exporter.py — Class mark sheet exports (Excel and CSV).

The sheet is always the output of build_class_results, so the exported
grades, divisions and positions match what the screens and report cards
show.
"""

import io
from typing import Any, Dict, Optional

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils.dataframe import dataframe_to_rows

from core.grading import Division


DIVISION_FILLS = {
    Division.I.value: "d5f5e3",
    Division.II.value: "d6eaf8",
    Division.III.value: "fef9e7",
    Division.U.value: "fadbd8",
    Division.X.value: "eaecee",
}

EXPORT_COLUMNS_DROPPED = ["class_teacher_comment", "head_teacher_comment"]


def _sheet_frame(results: pd.DataFrame, include_comments: bool) -> pd.DataFrame:
    frame = results.copy()
    if not include_comments:
        frame = frame.drop(columns=[c for c in EXPORT_COLUMNS_DROPPED if c in frame.columns])
    # position is carried by position_label on printed sheets
    frame = frame.drop(columns=[c for c in ["position"] if c in frame.columns])
    return frame.astype(object).where(frame.notna(), None)


def class_sheet_csv(results: pd.DataFrame, include_comments: bool = False) -> str:
    """Return the class sheet as CSV text; absent marks are blank cells."""
    buf = io.StringIO()
    _sheet_frame(results, include_comments).to_csv(buf, index=False)
    return buf.getvalue()


def generate_class_sheet_excel(
    output_path: str,
    results: pd.DataFrame,
    school_name: str,
    title: str,
    division_counts: Optional[Dict[str, Any]] = None,
    include_comments: bool = False,
):
    """Write a styled class sheet workbook with a division summary sheet."""
    frame = _sheet_frame(results, include_comments)

    header_font = Font(bold=True, color="FFFFFF", size=11)
    header_fill = PatternFill(start_color="0033cc", end_color="0033cc", fill_type="solid")
    title_font = Font(bold=True, size=13)
    thin_border = Border(
        left=Side(style="thin"), right=Side(style="thin"),
        top=Side(style="thin"), bottom=Side(style="thin"),
    )

    wb = Workbook()

    # ── Sheet 1: Class Sheet ────────────────────────────────────────
    ws = wb.active
    ws.title = "Class Sheet"
    ws.sheet_properties.tabColor = "0033cc"
    ws.append([school_name])
    ws.append([title])
    ws["A1"].font = title_font
    ws["A2"].font = Font(italic=True)

    header_row = 3
    for row in dataframe_to_rows(frame, index=False, header=True):
        ws.append(row)

    for cell in ws[header_row]:
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal="center")
        cell.border = thin_border

    div_idx = list(frame.columns).index("division") + 1 if "division" in frame.columns else None
    for row in ws.iter_rows(min_row=header_row + 1, max_row=ws.max_row):
        for cell in row:
            cell.border = thin_border
            cell.alignment = Alignment(horizontal="center", wrap_text=True)
        if div_idx:
            colour = DIVISION_FILLS.get(str(row[div_idx - 1].value))
            if colour:
                row[div_idx - 1].fill = PatternFill(start_color=colour, end_color=colour, fill_type="solid")

    ws.freeze_panes = ws.cell(row=header_row + 1, column=1)
    for col_cells in ws.iter_cols(min_row=header_row, max_row=ws.max_row):
        max_len = max(len(str(cell.value or "")) for cell in col_cells)
        ws.column_dimensions[col_cells[0].column_letter].width = min(max_len + 4, 40)

    # ── Sheet 2: Divisions ──────────────────────────────────────────
    counts = (division_counts or {}).get("counts")
    if counts is None:
        counts = {d.value: 0 for d in Division}
        if "division" in frame.columns:
            for value in frame["division"]:
                if value in counts:
                    counts[value] += 1

    ws_div = wb.create_sheet(title="Divisions")
    ws_div.sheet_properties.tabColor = "e94560"
    ws_div.append(["Division", "Pupils"])
    for cell in ws_div[1]:
        cell.font = header_font
        cell.fill = header_fill
        cell.border = thin_border
    for division, count in counts.items():
        ws_div.append([division, int(count)])
        colour = DIVISION_FILLS.get(division)
        if colour:
            ws_div.cell(row=ws_div.max_row, column=1).fill = PatternFill(
                start_color=colour, end_color=colour, fill_type="solid"
            )
    ws_div.append(["Total", int(sum(counts.values()))])
    ws_div.cell(row=ws_div.max_row, column=1).font = Font(bold=True)

    wb.save(output_path)
