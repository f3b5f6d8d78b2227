#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Placeholder substitution.

Replaces {{...}} tokens inside a row range with a TourRecord's fields and
the ReportHeader. Numeric tokens only replace a cell whose whole value is the
token (the cell becomes an int); text tokens replace the token text in place.
Inside a merge region only the anchor cell is written.
"""

from __future__ import annotations

import logging
from copy import copy
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from openpyxl.cell.cell import MergedCell
from openpyxl.styles import Alignment

from .config import DEFAULT_CONFIG, TOKEN_NOTES, TOKEN_TOUR_NAME, EngineConfig
from .errors import WarningLog
from .models import MergeRegion, ReportHeader, TourRecord
from .sections import find_tokens, merge_regions, safe_merge

logger = logging.getLogger(__name__)

ALIGN_NAME = Alignment(horizontal="center", vertical="center", wrap_text=True)
ALIGN_NOTES = Alignment(horizontal="left", vertical="top", wrap_text=True)


@dataclass
class SubstitutionReport:
    row_range: Tuple[int, int]
    replaced_tokens: List[str] = field(default_factory=list)
    skipped_tokens: List[str] = field(default_factory=list)
    cleared_cells: List[str] = field(default_factory=list)

    def found(self, token: str) -> bool:
        return token in self.replaced_tokens


class PlaceholderSubstitutionEngine:
    def __init__(self, config: EngineConfig = DEFAULT_CONFIG, warnings: Optional[WarningLog] = None):
        self.config = config
        self.tokens = config.tokens
        self.warnings = warnings if warnings is not None else WarningLog()

    def _value_for(self, token: str, record: Optional[TourRecord], header: Optional[ReportHeader]):
        if record is not None and token in self.tokens.numeric_tokens:
            return getattr(record, self.tokens.numeric_tokens[token])
        if record is not None and token in self.tokens.text_tokens:
            return getattr(record, self.tokens.text_tokens[token])
        if header is not None and token in self.tokens.header_tokens:
            return getattr(header, self.tokens.header_tokens[token])
        return None

    def _region_for(self, regions: List[MergeRegion], row: int, col: int) -> Optional[MergeRegion]:
        for region in regions:
            if region.contains(row, col):
                return region
        return None

    def substitute_cell(
        self,
        cell,
        record: Optional[TourRecord],
        header: Optional[ReportHeader],
        report: SubstitutionReport,
    ) -> None:
        value = cell.value
        tokens = find_tokens(value)
        if not tokens:
            return

        stripped = value.strip()
        if stripped in self.tokens.numeric_tokens and record is not None:
            cell.value = self._value_for(stripped, record, header)
            report.replaced_tokens.append(stripped)
            return

        new_value = value
        for token in tokens:
            if token in self.tokens.numeric_tokens:
                if record is not None:
                    report.skipped_tokens.append(token)
                    self.warnings.parse(
                        f"{cell.coordinate}: numeric token {token} embedded in text left in place"
                    )
                continue
            replacement = self._value_for(token, record, header)
            if replacement is None:
                continue
            new_value = new_value.replace(token, str(replacement))
            report.replaced_tokens.append(token)

        if new_value == value:
            return
        cell.value = new_value if new_value.strip() else None
        if TOKEN_TOUR_NAME in tokens:
            cell.alignment = copy(ALIGN_NAME)
        elif TOKEN_NOTES in tokens:
            cell.alignment = copy(ALIGN_NOTES)

    def substitute(
        self,
        ws,
        row_range: Tuple[int, int],
        record: Optional[TourRecord] = None,
        header: Optional[ReportHeader] = None,
        regions: Optional[List[MergeRegion]] = None,
        max_column: Optional[int] = None,
    ) -> SubstitutionReport:
        """Substitute tokens in rows row_range[0]..row_range[1] (inclusive)."""
        start, end = row_range
        max_col = max_column or self.config.eod.max_column
        if regions is None:
            regions = merge_regions(ws)
        report = SubstitutionReport(row_range=row_range)

        for r in range(start, end + 1):
            for c in range(1, max_col + 1):
                cell = ws.cell(row=r, column=c)
                if isinstance(cell, MergedCell):
                    continue
                region = self._region_for(regions, r, c)
                if region is not None and not region.is_anchor(r, c):
                    if find_tokens(cell.value):
                        report.cleared_cells.append(cell.coordinate)
                        cell.value = None
                    continue
                self.substitute_cell(cell, record, header, report)

        if record is not None:
            for token in self.tokens.required_tokens:
                if not report.found(token):
                    self.warnings.parse(
                        f"Token {token} not found in rows {start}-{end} for '{record.name}'"
                    )
        return report

    def substitute_header(self, ws, row_range: Tuple[int, int], header: ReportHeader,
                          max_column: Optional[int] = None) -> SubstitutionReport:
        return self.substitute(ws, row_range, record=None, header=header, max_column=max_column)

    def substitute_global_notes(
        self, ws, notes: str, notes_span: Tuple[int, int] = (1, 8)
    ) -> int:
        """
        Fallback pass over the whole sheet for {{notes}} tokens left outside
        any substituted section. Each hit row is merged across notes_span.
        """
        targets = [
            cell
            for row in ws.iter_rows()
            for cell in row
            if not isinstance(cell, MergedCell) and TOKEN_NOTES in find_tokens(cell.value)
        ]
        left, right = notes_span
        for cell in targets:
            replaced = cell.value.replace(TOKEN_NOTES, notes or "")
            cell.value = replaced if replaced.strip() else None
            cell.alignment = copy(ALIGN_NOTES)
            if cell.column == left:
                safe_merge(ws, MergeRegion(cell.row, left, cell.row, right))
        if targets:
            logger.info(f"[SUBST] Global notes pass replaced {len(targets)} cell(s)")
        return len(targets)
