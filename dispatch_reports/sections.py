#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Template section capture and replication.

A TemplateSection is a snapshot of a row range (values, full cell styles,
formulas, row heights and the merges fully inside the range). The replicator
stamps N copies of it into a worksheet, each followed by one blank separator
row, keeping merges, borders and heights intact.

openpyxl's insert_rows only moves cells, so insert_rows_preserving() also
shifts merged ranges, row heights and engine markers below the insertion
point.
"""

from __future__ import annotations

import logging
import re
from copy import copy
from typing import Iterable, List, Optional, Tuple

from openpyxl.cell.cell import MergedCell
from openpyxl.formula.translate import Translator
from openpyxl.styles import Border, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.merge import MergedCellRange

from . import markers
from .errors import ReplicationError
from .models import CapturedCell, MergeRegion, TemplateSection

logger = logging.getLogger(__name__)

TOKEN_RE = re.compile(r"\{\{[A-Za-z_]+\}\}")

THICK = Side(style="thick", color="000000")


# =============================================================================
# Styles
# =============================================================================
def capture_style(cell) -> dict:
    font = copy(cell.font)
    if font.strike:
        font.strike = False
    return {
        "font": font,
        "fill": copy(cell.fill),
        "border": copy(cell.border),
        "alignment": copy(cell.alignment),
        "number_format": cell.number_format,
        "protection": copy(cell.protection),
    }


def apply_style(cell, style: dict) -> None:
    cell.font = copy(style["font"])
    cell.fill = copy(style["fill"])
    cell.border = copy(style["border"])
    cell.alignment = copy(style["alignment"])
    cell.number_format = style["number_format"]
    cell.protection = copy(style["protection"])


def find_tokens(value) -> Tuple[str, ...]:
    if not isinstance(value, str):
        return ()
    return tuple(TOKEN_RE.findall(value))


# =============================================================================
# Merges
# =============================================================================
def merge_regions(ws) -> List[MergeRegion]:
    return [
        MergeRegion(rng.min_row, rng.min_col, rng.max_row, rng.max_col)
        for rng in ws.merged_cells.ranges
    ]


def region_at(ws, row: int, column: int) -> Optional[MergeRegion]:
    for region in merge_regions(ws):
        if region.contains(row, column):
            return region
    return None


def safe_merge(ws, region: MergeRegion) -> bool:
    """
    Merge a region unless it (or anything overlapping it) is already merged.
    Returns True when a new merge was created.
    """
    if region.top_row == region.bottom_row and region.left_col == region.right_col:
        return False
    for existing in merge_regions(ws):
        if existing == region:
            return False
        if existing.overlaps(region):
            logger.debug(f"[MERGE] Skip {region.coord}: overlaps {existing.coord}")
            return False
    ws.merge_cells(region.coord)
    return True


def apply_boundary_border(ws, first_row: int, last_row: int, column: int) -> None:
    """Thick right border on ``column`` for every row in the range."""
    for r in range(first_row, last_row + 1):
        cell = ws.cell(row=r, column=column)
        b = cell.border
        cell.border = Border(
            left=copy(b.left), right=THICK, top=copy(b.top), bottom=copy(b.bottom)
        )


# =============================================================================
# Row insertion
# =============================================================================
def insert_rows_preserving(ws, idx: int, amount: int) -> None:
    """
    Insert ``amount`` blank rows before ``idx`` and move merges, row heights
    and engine markers along with the cells.
    """
    if amount <= 0:
        return

    moved: List[Tuple[MergeRegion, bool]] = []
    for rng in list(ws.merged_cells.ranges):
        if rng.max_row < idx:
            continue
        region = MergeRegion(rng.min_row, rng.min_col, rng.max_row, rng.max_col)
        ws.merged_cells.remove(rng)
        straddles = rng.min_row < idx
        moved.append((region, straddles))

    heights = {
        r: dim.height
        for r, dim in list(ws.row_dimensions.items())
        if r >= idx and dim.height is not None
    }

    ws.insert_rows(idx, amount)

    for r in heights:
        ws.row_dimensions[r].height = None
    for r, h in heights.items():
        ws.row_dimensions[r + amount].height = h

    for region, straddles in moved:
        if straddles:
            grown = MergeRegion(
                region.top_row, region.left_col, region.bottom_row + amount, region.right_col
            )
            ws.merge_cells(grown.coord)
        else:
            ws.merged_cells.add(MergedCellRange(ws, region.offset(amount).coord))

    markers.shift_markers(ws, idx, amount)


# =============================================================================
# Capture / replicate
# =============================================================================
class TemplateSectionStore:
    """Captures row ranges into TemplateSection snapshots."""

    def __init__(self, max_column: int = 9):
        self.max_column = max_column

    def capture(
        self, ws, row_range: Tuple[int, int], max_column: Optional[int] = None
    ) -> TemplateSection:
        start, end = row_range
        if ws is None:
            raise ReplicationError("Cannot capture from a missing worksheet")
        if end < start:
            raise ReplicationError(f"Zero-height section {start}..{end}")
        max_col = max_column or self.max_column

        section = TemplateSection(start_row=start, end_row=end, max_column=max_col)
        for r in range(start, end + 1):
            section.row_heights[r - start] = ws.row_dimensions[r].height
            for c in range(1, max_col + 1):
                cell = ws.cell(row=r, column=c)
                value = None if isinstance(cell, MergedCell) else cell.value
                is_formula = isinstance(value, str) and value.startswith("=")
                section.cells.append(
                    CapturedCell(
                        row_offset=r - start,
                        column=c,
                        value=value,
                        style=capture_style(cell),
                        is_formula=is_formula,
                        tokens=find_tokens(value),
                    )
                )

        for region in merge_regions(ws):
            if region.top_row >= start and region.bottom_row <= end:
                section.merges.append(region.offset(-start))

        logger.info(
            f"[SECTION] Captured rows {start}-{end} "
            f"({len(section.merges)} merge(s), {len(section.token_positions())} token(s))"
        )
        return section

    def retokenize(
        self,
        section: TemplateSection,
        positions: dict,
        texts: Optional[dict] = None,
    ) -> TemplateSection:
        """
        Put placeholders back into a captured section that was already filled.
        positions: token -> (row_offset, column)
        texts: token -> full template text of the cell; the bare token otherwise
        """
        texts = texts or {}
        for token, (row_offset, column) in positions.items():
            cell = section.cell_at(row_offset, column)
            if cell is None:
                logger.warning(f"[SECTION] Token {token} outside captured span")
                continue
            value = texts.get(token, token)
            if token not in value:
                logger.warning(f"[SECTION] Template text for {token} lost its token, using bare token")
                value = token
            cell.value = value
            cell.is_formula = False
            cell.tokens = find_tokens(value)
        return section


class SectionReplicator:
    """Stamps copies of a TemplateSection into a worksheet."""

    def __init__(
        self,
        boundary_column: Optional[int] = None,
        separator_height: Optional[float] = None,
    ):
        self.boundary_column = boundary_column
        self.separator_height = separator_height

    def write_instance(self, section: TemplateSection, ws, start_row: int) -> None:
        """Write one copy of the section at start_row (rows must already exist)."""
        for region in section.merges:
            safe_merge(ws, region.offset(start_row))

        for rel, height in section.row_heights.items():
            if height is not None:
                ws.row_dimensions[start_row + rel].height = height

        for captured in section.cells:
            src_row = section.start_row + captured.row_offset
            dst_row = start_row + captured.row_offset
            target = ws.cell(row=dst_row, column=captured.column)
            apply_style(target, captured.style)
            if isinstance(target, MergedCell):
                continue
            value = captured.value
            if captured.is_formula and dst_row != src_row:
                col = get_column_letter(captured.column)
                value = Translator(value, origin=f"{col}{src_row}").translate_formula(
                    f"{col}{dst_row}"
                )
            target.value = value

        if self.boundary_column:
            apply_boundary_border(
                ws, start_row, start_row + section.height - 1, self.boundary_column
            )

    def replicate(
        self, section: TemplateSection, ws, count: int, insertion_row: int
    ) -> List[Tuple[int, int]]:
        if ws is None:
            raise ReplicationError("Target worksheet missing")
        if section.height <= 0:
            raise ReplicationError("Zero-height section")
        if count <= 0:
            return []

        placed: List[Tuple[int, int]] = []
        stride = section.height + 1
        for i in range(count):
            start = insertion_row + i * stride
            insert_rows_preserving(ws, start, stride)
            self.write_instance(section, ws, start)
            separator = start + section.height
            if self.separator_height is not None:
                ws.row_dimensions[separator].height = self.separator_height
            placed.append((start, separator - 1))

        logger.info(
            f"[SECTION] Replicated {count} section(s) of {section.height} row(s) "
            f"at row {insertion_row} on '{ws.title}'"
        )
        return placed


def section_starts(first_start: int, stride: int, stop_row: int) -> Iterable[int]:
    """Section start rows from first_start while the section fits before stop_row."""
    r = first_start
    while r < stop_row:
        yield r
        r += stride
