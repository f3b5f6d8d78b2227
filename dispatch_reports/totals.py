#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Totals aggregation, location and rendering.

Fresh totals are the sum over all records. Appended totals are the totals
already rendered in the document plus the sums of the new records only.
Rendering writes the three counters into the count columns of the totals row
and repoints the aggregate SUM formula at that row.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Tuple

from openpyxl.utils import get_column_letter

from . import markers
from .cell_values import coerce_int, is_blank, is_numeric
from .config import DEFAULT_CONFIG, EngineConfig, ReportLayout
from .errors import WarningLog
from .models import TotalsAccumulator, TourRecord
from .sections import section_starts

logger = logging.getLogger(__name__)

LOCATED_BY_MARKER = "marker"
LOCATED_BY_TOKEN = "token"
LOCATED_BY_HEURISTIC = "heuristic"
LOCATED_BY_DEFAULT = "default"


class TotalsAggregator:
    def __init__(self, layout: ReportLayout, config: EngineConfig = DEFAULT_CONFIG):
        self.layout = layout
        self.config = config

    # -------------------------------------------------------------------------
    # Arithmetic
    # -------------------------------------------------------------------------
    @staticmethod
    def compute_fresh_totals(records: Iterable[TourRecord]) -> TotalsAccumulator:
        totals = TotalsAccumulator()
        for record in records:
            totals.add(record)
        return totals

    @staticmethod
    def compute_appended_totals(
        existing: TotalsAccumulator, new_records: Iterable[TourRecord]
    ) -> TotalsAccumulator:
        totals = TotalsAccumulator(
            adults=existing.adults,
            children=existing.children,
            comp=existing.comp,
            row=existing.row,
            formula_cell=existing.formula_cell,
        )
        for record in new_records:
            totals.add(record)
        return totals

    # -------------------------------------------------------------------------
    # Document IO
    # -------------------------------------------------------------------------
    def read_totals(self, ws, row: int) -> TotalsAccumulator:
        """Existing totals at ``row``; non-numeric cells count as 0."""
        adult_col, child_col, comp_col = self.layout.count_columns
        return TotalsAccumulator(
            adults=coerce_int(ws.cell(row=row, column=adult_col).value),
            children=coerce_int(ws.cell(row=row, column=child_col).value),
            comp=coerce_int(ws.cell(row=row, column=comp_col).value),
            row=row,
        )

    def render(self, ws, totals: TotalsAccumulator, row: int) -> TotalsAccumulator:
        cols = self.layout.count_columns
        for col, value in zip(cols, totals.counts()):
            ws.cell(row=row, column=col).value = value

        first = get_column_letter(cols[0])
        last = get_column_letter(cols[-1])
        sum_cell = ws.cell(row=row, column=self.layout.sum_column)
        sum_cell.value = f"=SUM({first}{row}:{last}{row})"

        totals.row = row
        totals.formula_cell = sum_cell.coordinate
        markers.set_totals_row(ws, row)
        logger.info(
            f"[TOTALS] Row {row}: adults={totals.adults}, "
            f"children={totals.children}, comp={totals.comp}"
        )
        return totals

    # -------------------------------------------------------------------------
    # Location
    # -------------------------------------------------------------------------
    def find_total_token_row(self, ws) -> Optional[int]:
        total_tokens = set(self.config.tokens.total_tokens)
        for row in ws.iter_rows(min_row=1, max_col=self.layout.max_column):
            for cell in row:
                if isinstance(cell.value, str) and cell.value.strip() in total_tokens:
                    return cell.row
        return None

    def find_by_heuristic(self, ws, lookahead: int = 2) -> Optional[int]:
        """Last row past the first section with numeric counts and blank rows after."""
        cols = self.layout.count_columns
        found = None
        for r in range(self.layout.min_totals_row, ws.max_row + 1):
            if not all(is_numeric(ws.cell(row=r, column=c).value) for c in cols):
                continue
            trailing_blank = all(
                is_blank(ws.cell(row=r + k, column=c).value)
                for k in range(1, lookahead + 1)
                for c in cols
            )
            if trailing_blank:
                found = r
        return found

    def locate(self, ws, warnings: Optional[WarningLog] = None) -> Tuple[int, str]:
        """(totals row, how it was found)"""
        warnings = warnings if warnings is not None else WarningLog()

        row = markers.get_totals_row(ws)
        if row is not None:
            return row, LOCATED_BY_MARKER

        row = self.find_total_token_row(ws)
        if row is not None:
            return row, LOCATED_BY_TOKEN

        row = self.find_by_heuristic(ws)
        if row is not None:
            warnings.totals_location(
                f"'{ws.title}': totals row {row} located by structural heuristic"
            )
            return row, LOCATED_BY_HEURISTIC

        row = self.layout.totals_row
        warnings.totals_location(
            f"'{ws.title}': totals row not found, using default row {row}"
        )
        return row, LOCATED_BY_DEFAULT

    # -------------------------------------------------------------------------
    # Verification
    # -------------------------------------------------------------------------
    def sum_sections(self, ws, totals_row: int) -> TotalsAccumulator:
        """Sum the count cells of every section present above the totals block."""
        lay = self.layout
        stop = totals_row - lay.totals_lead
        acc = TotalsAccumulator()
        for start in section_starts(lay.section_start, lay.stride, stop):
            count_row = start + lay.count_row_offset
            adult_col, child_col, comp_col = lay.count_columns
            acc.adults += coerce_int(ws.cell(row=count_row, column=adult_col).value)
            acc.children += coerce_int(ws.cell(row=count_row, column=child_col).value)
            acc.comp += coerce_int(ws.cell(row=count_row, column=comp_col).value)
        return acc

    def verify(self, ws, totals_row: Optional[int] = None) -> bool:
        if totals_row is None:
            totals_row, _ = self.locate(ws)
        rendered = self.read_totals(ws, totals_row)
        computed = self.sum_sections(ws, totals_row)
        ok = rendered.counts() == computed.counts()
        if not ok:
            logger.warning(
                f"[TOTALS] Mismatch on '{ws.title}': rendered={rendered.counts()} "
                f"sections={computed.counts()}"
            )
        return ok
