#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
templates.py

Builds the default report templates the engine fills:

- EOD template (single sheet "EOD")
  rows 1-21   header block with ship/port/date placeholders
  rows 23-38  tour section (name, departure, counts, notes, checklist)
  row  39     separator
  rows 41-44  daily totals block ({{total_*}} on row 44)

- PAX workbook (one tab per month of the routing table)
  rows 1-4    title, ship/cruise line, column headings
  row  5      ledger row template
  row  8      totals row

Placeholder positions come from the ReportLayout token_cells so the builder,
the substitution engine and the append path agree on where tokens live.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Sequence, Union

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from .config import DEFAULT_CONFIG, EngineConfig, ReportLayout, TokenVocabulary
from .sections import apply_boundary_border


# =============================================================================
# Styles
# =============================================================================
@dataclass(frozen=True)
class Styles:
    font_title: Font
    font_header: Font
    font_label: Font
    font_normal: Font

    fill_title: PatternFill
    fill_section: PatternFill
    fill_counts: PatternFill
    fill_totals: PatternFill

    border_thin: Border

    align_center: Alignment
    align_left: Alignment
    align_notes: Alignment


def build_styles() -> Styles:
    thin = Side(style="thin", color="C0C0C0")
    border = Border(left=thin, right=thin, top=thin, bottom=thin)

    return Styles(
        font_title=Font(name="Calibri", size=14, bold=True, color="FFFFFF"),
        font_header=Font(name="Calibri", size=11, bold=True, color="FFFFFF"),
        font_label=Font(name="Calibri", size=11, bold=True, color="000000"),
        font_normal=Font(name="Calibri", size=11, bold=False, color="000000"),
        fill_title=PatternFill("solid", fgColor="1F4E78"),
        fill_section=PatternFill("solid", fgColor="D9E1F2"),
        fill_counts=PatternFill("solid", fgColor="F2F2F2"),
        fill_totals=PatternFill("solid", fgColor="FFF2CC"),
        border_thin=border,
        align_center=Alignment(horizontal="center", vertical="center", wrap_text=True),
        align_left=Alignment(horizontal="left", vertical="center", wrap_text=True),
        align_notes=Alignment(horizontal="left", vertical="top", wrap_text=True),
    )


# =============================================================================
# Utilities
# =============================================================================
def set_col_widths(ws, widths: Dict[str, float]) -> None:
    for col, w in widths.items():
        ws.column_dimensions[col].width = float(w)


def make_header_row(
    ws, row_idx: int, headers: Sequence[str], styles: Styles, start_col: int = 1
) -> None:
    for i, h in enumerate(headers, start=start_col):
        c = ws.cell(row=row_idx, column=i, value=h)
        c.font = styles.font_header
        c.fill = styles.fill_title
        c.alignment = styles.align_center
        c.border = styles.border_thin


def apply_row_style(
    ws,
    row_idx: int,
    col_from: int,
    col_to: int,
    styles: Styles,
    fill: Optional[PatternFill] = None,
    align: Optional[Alignment] = None,
    font: Optional[Font] = None,
) -> None:
    for col in range(col_from, col_to + 1):
        cell = ws.cell(row=row_idx, column=col)
        cell.border = styles.border_thin
        if fill is not None:
            cell.fill = fill
        if align is not None:
            cell.alignment = align
        if font is not None:
            cell.font = font


def write_title(ws, row_idx: int, text: str, styles: Styles, last_col: int = 8) -> None:
    ws.merge_cells(start_row=row_idx, start_column=1, end_row=row_idx, end_column=last_col)
    c = ws.cell(row=row_idx, column=1, value=text)
    c.font = styles.font_title
    c.fill = styles.fill_title
    c.alignment = styles.align_center


def place_tokens(ws, layout: ReportLayout, start_row: int, styles: Styles) -> None:
    for token, (row_offset, col) in layout.token_cells.items():
        c = ws.cell(row=start_row + row_offset, column=col, value=token)
        c.border = styles.border_thin


def sum_formula(layout: ReportLayout, row: int) -> str:
    first = get_column_letter(layout.count_columns[0])
    last = get_column_letter(layout.count_columns[-1])
    return f"=SUM({first}{row}:{last}{row})"


# =============================================================================
# EOD
# =============================================================================
EOD_HEADER_FIELDS = [
    ("Country", "{{country}}"),
    ("Cruise Line", "{{cruise_line}}"),
    ("Ship", "{{ship_name}}"),
    ("Port", "{{port}}"),
    ("Date", "{{report_date}}"),
    ("Tour Operator", "{{tour_operator}}"),
    ("Shorex Manager", "{{shorex_manager}}"),
    ("Assistant Manager", "{{assistant_manager}}"),
]

EOD_CHECKLIST = [
    "Guide",
    "Transport",
    "Timing",
    "Tickets / Entry",
    "Incidents",
    "Guest Feedback",
    "Follow-up",
]


def build_eod_sheet(
    ws, layout: ReportLayout, styles: Styles, tokens: TokenVocabulary = DEFAULT_CONFIG.tokens
) -> None:
    write_title(ws, 1, "END OF DAY REPORT", styles)

    for i, (label, token) in enumerate(EOD_HEADER_FIELDS):
        r = 3 + i
        c = ws.cell(row=r, column=1, value=f"{label}:")
        c.font = styles.font_label
        ws.merge_cells(start_row=r, start_column=2, end_row=r, end_column=4)
        v = ws.cell(row=r, column=2, value=token)
        v.alignment = styles.align_left

    write_title(ws, layout.header_rows[1], "TOUR DETAILS", styles)

    # ---- Tour section -------------------------------------------------------
    s = layout.section_start
    count_row = s + layout.count_row_offset
    ws.cell(row=s, column=1, value="Tour:").font = styles.font_label
    apply_row_style(ws, s, 1, 8, styles, fill=styles.fill_section)
    ws.merge_cells(start_row=s, start_column=2, end_row=s, end_column=8)

    ws.cell(row=s + 1, column=1, value="Departure:").font = styles.font_label
    for col, label in zip((3, 4, 5, 6), ("Adults", "Children", "Comp", "Total")):
        c = ws.cell(row=s + 1, column=col, value=label)
        c.font = styles.font_label
        c.alignment = styles.align_center

    ws.cell(row=count_row, column=1, value="Guests").font = styles.font_label
    apply_row_style(ws, count_row, 3, 6, styles, fill=styles.fill_counts, align=styles.align_center)

    ws.cell(row=s + 3, column=1, value="Notes:").font = styles.font_label
    notes_row, notes_col = layout.token_cells.get("{{notes}}", (4, 1))
    ws.merge_cells(
        start_row=s + notes_row, start_column=notes_col, end_row=s + notes_row + 4, end_column=8
    )

    for i, label in enumerate(EOD_CHECKLIST):
        r = s + 9 + i
        if r > layout.section_end:
            break
        ws.cell(row=r, column=1, value=label).font = styles.font_normal
        ws.merge_cells(start_row=r, start_column=2, end_row=r, end_column=8)
        apply_row_style(ws, r, 1, 8, styles)

    place_tokens(ws, layout, s, styles)
    ws.cell(row=count_row, column=layout.sum_column, value=sum_formula(layout, count_row))
    notes_anchor = ws.cell(row=s + notes_row, column=notes_col)
    notes_anchor.alignment = styles.align_notes
    ws.cell(row=s, column=2).alignment = styles.align_center
    if layout.boundary_column:
        apply_boundary_border(ws, s, layout.section_end, layout.boundary_column)
    ws.row_dimensions[layout.section_end + 1].height = layout.separator_height

    # ---- Totals block -------------------------------------------------------
    t = layout.totals_row
    write_title(ws, t - 3, "DAILY TOTALS", styles)
    for col, label in zip((3, 4, 5, 6), ("Adults", "Children", "Comp", "Total")):
        c = ws.cell(row=t - 1, column=col, value=label)
        c.font = styles.font_label
        c.alignment = styles.align_center
    ws.cell(row=t, column=1, value="TOTAL").font = styles.font_label
    apply_row_style(ws, t, 1, 6, styles, fill=styles.fill_totals, align=styles.align_center)
    for col, token in zip(layout.count_columns, tokens.total_tokens):
        ws.cell(row=t, column=col, value=token)
    ws.cell(row=t, column=layout.sum_column, value=sum_formula(layout, t))

    set_col_widths(ws, {"A": 20, "B": 16, "C": 12, "D": 12, "E": 12, "F": 12, "G": 14, "H": 18})


def build_eod_template(
    output: Union[str, Path], config: EngineConfig = DEFAULT_CONFIG
) -> Path:
    wb = Workbook()
    ws = wb.active
    ws.title = config.eod.sheet_name or "EOD"
    build_eod_sheet(ws, config.eod, build_styles(), config.tokens)

    output = Path(output)
    output.parent.mkdir(parents=True, exist_ok=True)
    wb.save(output)
    return output


# =============================================================================
# PAX
# =============================================================================
PAX_HEADINGS = [
    "Date",
    "Tour",
    "Adults",
    "Children",
    "Comp",
    "Total",
    "Departure",
    "Notes",
    "Allotment",
    "Sold",
    "On Board",
    "On Tour",
]


def build_pax_sheet(
    ws, layout: ReportLayout, styles: Styles, tokens: TokenVocabulary = DEFAULT_CONFIG.tokens
) -> None:
    write_title(ws, 1, "PASSENGER REPORT", styles)
    ws.cell(row=2, column=1, value="Ship:").font = styles.font_label
    ws.cell(row=2, column=2, value="{{ship_name}}")
    ws.cell(row=2, column=4, value="Cruise Line:").font = styles.font_label
    ws.cell(row=2, column=5, value="{{cruise_line}}")
    ws.cell(row=3, column=1, value="Month:").font = styles.font_label
    ws.cell(row=3, column=2, value=ws.title)

    make_header_row(ws, layout.section_start - 1, PAX_HEADINGS, styles)

    s = layout.section_start
    apply_row_style(ws, s, 1, len(PAX_HEADINGS), styles)
    place_tokens(ws, layout, s, styles)
    ws.cell(row=s, column=layout.sum_column, value=sum_formula(layout, s))
    ws.row_dimensions[layout.section_end + 1].height = layout.separator_height

    t = layout.totals_row
    ws.cell(row=t, column=1, value="TOTAL").font = styles.font_label
    apply_row_style(ws, t, 1, 6, styles, fill=styles.fill_totals, align=styles.align_center)
    for col, token in zip(layout.count_columns, tokens.total_tokens):
        ws.cell(row=t, column=col, value=token)
    ws.cell(row=t, column=layout.sum_column, value=sum_formula(layout, t))

    set_col_widths(
        ws,
        {
            "A": 12, "B": 28, "C": 10, "D": 10, "E": 10, "F": 10,
            "G": 12, "H": 40, "I": 11, "J": 10, "K": 10, "L": 10,
        },
    )


def build_pax_template(
    output: Union[str, Path], config: EngineConfig = DEFAULT_CONFIG
) -> Path:
    styles = build_styles()
    wb = Workbook()
    wb.remove(wb.active)

    tab_names = list(dict.fromkeys([config.default_tab] + [config.tabs[k] for k in sorted(config.tabs)]))
    for name in tab_names:
        ws = wb.create_sheet(title=name)
        build_pax_sheet(ws, config.pax, styles, config.tokens)

    output = Path(output)
    output.parent.mkdir(parents=True, exist_ok=True)
    wb.save(output)
    return output
