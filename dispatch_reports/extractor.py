#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Dispatch sheet extraction.

Reads tour rows (name, departure, adult/child/comp counts, notes) and the
ship/port/date header from the first worksheet of an uploaded dispatch
workbook. Counts go through coerce_int; dates are normalised to DD/MM/YYYY.
"""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import BinaryIO, List, Optional, Union

import pandas as pd
from openpyxl import Workbook, load_workbook

from .cell_values import coerce_int, display_text, format_display_date, is_blank
from .config import DEFAULT_CONFIG, EngineConfig
from .errors import DocumentStructureError, WarningLog
from .models import ExtractionResult, ReportHeader, TourRecord

logger = logging.getLogger(__name__)

SourceLike = Union[str, Path, bytes, bytearray, BinaryIO, Workbook]

RECORD_COLUMNS = [
    "name",
    "departure_time",
    "adult_count",
    "child_count",
    "comp_count",
    "notes",
    "allotment",
    "sold",
    "pax_on_board",
    "pax_on_tour",
]


def open_source(source: SourceLike, data_only: bool = True) -> Workbook:
    """Load a workbook from a path, raw bytes, a binary stream or pass one through."""
    if isinstance(source, Workbook):
        return source
    label = str(source) if isinstance(source, (str, Path)) else type(source).__name__
    try:
        if isinstance(source, (bytes, bytearray)):
            return load_workbook(io.BytesIO(bytes(source)), data_only=data_only)
        if isinstance(source, (str, Path)):
            path = Path(source)
            if not path.exists():
                raise DocumentStructureError("Source workbook not found", str(path))
            return load_workbook(path, data_only=data_only)
        return load_workbook(source, data_only=data_only)
    except DocumentStructureError:
        raise
    except (OSError, KeyError, ValueError) as e:
        raise DocumentStructureError(f"Unreadable workbook: {e}", label) from e


class RecordExtractor:
    """Pull TourRecords and the ReportHeader out of a dispatch workbook."""

    def __init__(self, config: EngineConfig = DEFAULT_CONFIG):
        self.config = config
        self.layout = config.source

    def _worksheet(self, wb: Workbook, label: str):
        if self.layout.sheet_name:
            if self.layout.sheet_name not in wb.sheetnames:
                raise DocumentStructureError(
                    f"Worksheet '{self.layout.sheet_name}' not found", label
                )
            return wb[self.layout.sheet_name]
        if not wb.worksheets:
            raise DocumentStructureError("Dispatch workbook has no worksheet", label)
        return wb.worksheets[0]

    def _is_header_label(self, name: str) -> bool:
        labels = {lbl.upper() for lbl in self.layout.header_labels}
        return name.upper() in labels

    def extract_header(self, ws, warnings: Optional[WarningLog] = None) -> ReportHeader:
        values = {}
        for field_name, address in self.layout.header_cells.items():
            raw = ws[address].value
            if field_name == "report_date":
                values[field_name] = format_display_date(raw)
            else:
                values[field_name] = display_text(raw)
            if warnings is not None and is_blank(raw):
                warnings.parse(f"Header field '{field_name}' empty at {address}")
        return ReportHeader(**values)

    def extract_records(self, ws, warnings: Optional[WarningLog] = None) -> List[TourRecord]:
        lay = self.layout
        col = lay.name_column
        records: List[TourRecord] = []
        last_row = min(lay.last_row, max(ws.max_row, lay.first_row))

        for r in range(lay.first_row, last_row + 1):
            raw_name = ws.cell(row=r, column=col).value
            if not isinstance(raw_name, str):
                continue
            name = raw_name.strip()
            if not name or self._is_header_label(name):
                continue

            counts = {}
            for field_name, offset in (
                ("adult_count", lay.adult_offset),
                ("child_count", lay.child_offset),
                ("comp_count", lay.comp_offset),
                ("allotment", lay.allotment_offset),
                ("sold", lay.sold_offset),
                ("pax_on_board", lay.pax_on_board_offset),
                ("pax_on_tour", lay.pax_on_tour_offset),
            ):
                raw = ws.cell(row=r, column=col + offset).value
                counts[field_name] = coerce_int(raw)
                if warnings is not None and not is_blank(raw) and counts[field_name] == 0:
                    if coerce_int(raw, default=-1) == -1:
                        warnings.parse(
                            f"Row {r}: non-numeric {field_name} {raw!r} defaulted to 0"
                        )

            records.append(
                TourRecord(
                    name=name,
                    departure_time=ws.cell(row=r, column=col + lay.departure_offset).value,
                    notes=ws.cell(row=r, column=col + lay.notes_offset).value,
                    **counts,
                )
            )
        return records

    def extract(self, source: SourceLike) -> ExtractionResult:
        label = str(source) if isinstance(source, (str, Path)) else "<stream>"
        wb = open_source(source, data_only=True)
        ws = self._worksheet(wb, label)

        warnings = WarningLog()
        header = self.extract_header(ws, warnings)
        records = self.extract_records(ws, warnings)
        logger.info(
            f"[EXTRACT] {len(records)} tour(s) from '{ws.title}' "
            f"(ship={header.ship_name or '-'}, date={header.report_date or '-'})"
        )
        return ExtractionResult(
            records=records,
            header=header,
            sheet_name=ws.title,
            rows_scanned=self.layout.last_row - self.layout.first_row + 1,
            warnings=warnings.messages(),
        )


def records_frame(records: List[TourRecord]) -> pd.DataFrame:
    """Tabular view of records (one row per record, positional order kept)."""
    if not records:
        return pd.DataFrame(columns=RECORD_COLUMNS)
    return pd.DataFrame([r.model_dump() for r in records], columns=RECORD_COLUMNS)


def merge_by_name(records: List[TourRecord]) -> List[TourRecord]:
    """
    Collapse records sharing a name: counts summed, notes joined with "; ",
    first non-empty departure kept. First-seen order is preserved.
    """
    if not records:
        return []
    df = records_frame(records)

    def _first_non_empty(series: pd.Series) -> str:
        for v in series:
            if v:
                return v
        return ""

    def _join_notes(series: pd.Series) -> str:
        seen: List[str] = []
        for v in series:
            if v and v not in seen:
                seen.append(v)
        return "; ".join(seen)

    grouped = df.groupby("name", sort=False).agg(
        departure_time=("departure_time", _first_non_empty),
        adult_count=("adult_count", "sum"),
        child_count=("child_count", "sum"),
        comp_count=("comp_count", "sum"),
        allotment=("allotment", "sum"),
        sold=("sold", "sum"),
        pax_on_board=("pax_on_board", "sum"),
        pax_on_tour=("pax_on_tour", "sum"),
        notes=("notes", _join_notes),
    )
    merged = [
        TourRecord(
            name=name,
            departure_time=row.departure_time,
            notes=row.notes,
            adult_count=int(row.adult_count),
            child_count=int(row.child_count),
            comp_count=int(row.comp_count),
            allotment=int(row.allotment),
            sold=int(row.sold),
            pax_on_board=int(row.pax_on_board),
            pax_on_tour=int(row.pax_on_tour),
        )
        for name, row in grouped.iterrows()
    ]
    if len(merged) != len(records):
        logger.info(f"[EXTRACT] Merged {len(records)} rows into {len(merged)} tour(s)")
    return merged
