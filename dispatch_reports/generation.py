#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Fresh population of a pristine template sheet.

The template's own section serves the first record; copies for the remaining
records are stamped below it, the totals block is pushed down and rendered,
and markers are recorded for later appends.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

from openpyxl import Workbook

from . import markers
from .config import EngineConfig, ReportLayout
from .errors import DocumentStructureError, NoRecordsError, WarningLog
from .models import ReportHeader, TemplateSection, TotalsAccumulator, TourRecord
from .sections import SectionReplicator, TemplateSectionStore
from .substitution import PlaceholderSubstitutionEngine
from .totals import TotalsAggregator

logger = logging.getLogger(__name__)

Sections = List[Tuple[int, int]]


def resolve_sheet(wb: Workbook, layout: ReportLayout, label: str = ""):
    """Layout sheet by name (case-insensitive), else the first worksheet."""
    if layout.sheet_name:
        if layout.sheet_name in wb.sheetnames:
            return wb[layout.sheet_name]
        for title in wb.sheetnames:
            if title.lower() == layout.sheet_name.lower():
                return wb[title]
    if not wb.worksheets:
        raise DocumentStructureError("Workbook has no worksheet", label)
    return wb.worksheets[0]


def is_pristine(ws, layout: ReportLayout, config: EngineConfig) -> bool:
    """True while the first section still carries its placeholders."""
    for token, (row_offset, col) in layout.token_cells.items():
        if token not in config.tokens.text_tokens and token not in config.tokens.numeric_tokens:
            continue
        value = ws.cell(row=layout.section_start + row_offset, column=col).value
        if isinstance(value, str) and token in value:
            return True
    return False


def record_section_markers(ws, section: TemplateSection, config: EngineConfig) -> None:
    absolute = {}
    texts = {}
    for token, (row_offset, col) in section.token_positions().items():
        if token in config.tokens.total_tokens:
            continue
        absolute[token] = (section.start_row + row_offset, col)
        cell = section.cell_at(row_offset, col)
        if cell is not None and isinstance(cell.value, str):
            texts[token] = cell.value
    markers.record_token_map(ws, config.tokens, absolute, texts)


def substitute_sections(
    engine: PlaceholderSubstitutionEngine,
    ws,
    layout: ReportLayout,
    sections: Sections,
    records: Sequence[TourRecord],
    header: Optional[ReportHeader],
) -> None:
    for (start, end), record in zip(sections, records):
        engine.substitute(ws, (start, end), record, header, max_column=layout.max_column)


def populate_fresh(
    ws,
    layout: ReportLayout,
    records: Sequence[TourRecord],
    header: Optional[ReportHeader],
    config: EngineConfig,
    warnings: WarningLog,
) -> Tuple[Sections, TotalsAccumulator]:
    if not records:
        raise NoRecordsError(f"No tour records to generate '{ws.title}'")

    store = TemplateSectionStore(max_column=layout.max_column)
    replicator = SectionReplicator(
        boundary_column=layout.boundary_column, separator_height=layout.separator_height
    )
    engine = PlaceholderSubstitutionEngine(config, warnings)
    aggregator = TotalsAggregator(layout, config)

    section = store.capture(ws, (layout.section_start, layout.section_end))
    record_section_markers(ws, section, config)

    totals_row, how = aggregator.locate(ws, warnings)
    logger.info(f"[FRESH] '{ws.title}': template totals row {totals_row} ({how})")
    insertion = totals_row - layout.totals_lead

    placed = replicator.replicate(section, ws, len(records) - 1, insertion)
    sections: Sections = [(layout.section_start, layout.section_end)] + placed

    if header is not None:
        engine.substitute_header(ws, layout.header_rows, header, max_column=layout.max_column)
    substitute_sections(engine, ws, layout, sections, records, header)
    engine.substitute_global_notes(ws, records[0].notes, layout.notes_span)

    totals = aggregator.compute_fresh_totals(records)
    aggregator.render(ws, totals, totals_row + len(placed) * (section.height + 1))
    return sections, totals
