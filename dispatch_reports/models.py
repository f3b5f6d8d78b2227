#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Report Models - Pydantic records for extracted dispatch data plus the
structural types shared by the replication, substitution and totals stages.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from openpyxl.utils import get_column_letter
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .cell_values import coerce_int, display_text


class TourRecord(BaseModel):
    """One tour row from the dispatch sheet."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1, description="Tour name")
    departure_time: str = Field(default="", description="Display departure time")
    notes: str = Field(default="", description="Free-text notes")
    adult_count: int = Field(default=0, ge=0)
    child_count: int = Field(default=0, ge=0)
    comp_count: int = Field(default=0, ge=0)
    # PAX ledger figures
    allotment: int = Field(default=0, ge=0)
    sold: int = Field(default=0, ge=0)
    pax_on_board: int = Field(default=0, ge=0)
    pax_on_tour: int = Field(default=0, ge=0)

    @field_validator("name", mode="before")
    @classmethod
    def normalize_name(cls, v):
        return display_text(v)

    @field_validator("departure_time", "notes", mode="before")
    @classmethod
    def normalize_text(cls, v):
        return display_text(v)

    @field_validator(
        "adult_count",
        "child_count",
        "comp_count",
        "allotment",
        "sold",
        "pax_on_board",
        "pax_on_tour",
        mode="before",
    )
    @classmethod
    def coerce_counts(cls, v):
        """Unparseable or negative counts become 0"""
        return coerce_int(v)

    @property
    def total(self) -> int:
        return self.adult_count + self.child_count + self.comp_count


class ReportHeader(BaseModel):
    """Ship/port/date header shared by every section of a report."""

    model_config = ConfigDict(frozen=True)

    country: str = ""
    cruise_line: str = ""
    ship_name: str = ""
    port: str = ""
    report_date: str = ""
    tour_operator: str = ""
    shorex_manager: str = ""
    assistant_manager: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def normalize_fields(cls, v):
        return display_text(v)


@dataclass(frozen=True)
class MergeRegion:
    """Rectangular merge (1-based, inclusive)."""

    top_row: int
    left_col: int
    bottom_row: int
    right_col: int

    def offset(self, delta: int) -> "MergeRegion":
        return MergeRegion(
            self.top_row + delta, self.left_col, self.bottom_row + delta, self.right_col
        )

    def contains(self, row: int, col: int) -> bool:
        return (
            self.top_row <= row <= self.bottom_row
            and self.left_col <= col <= self.right_col
        )

    def is_anchor(self, row: int, col: int) -> bool:
        return row == self.top_row and col == self.left_col

    def overlaps(self, other: "MergeRegion") -> bool:
        return not (
            other.bottom_row < self.top_row
            or other.top_row > self.bottom_row
            or other.right_col < self.left_col
            or other.left_col > self.right_col
        )

    @property
    def coord(self) -> str:
        return (
            f"{get_column_letter(self.left_col)}{self.top_row}:"
            f"{get_column_letter(self.right_col)}{self.bottom_row}"
        )


@dataclass
class CapturedCell:
    row_offset: int
    column: int
    value: Any
    style: Dict[str, Any]
    is_formula: bool = False
    tokens: Tuple[str, ...] = ()


@dataclass
class TemplateSection:
    """Snapshot of a row range: values, styles, heights and merges."""

    start_row: int
    end_row: int
    max_column: int
    cells: List[CapturedCell] = field(default_factory=list)
    row_heights: Dict[int, Optional[float]] = field(default_factory=dict)
    merges: List[MergeRegion] = field(default_factory=list)

    @property
    def height(self) -> int:
        return self.end_row - self.start_row + 1

    def cell_at(self, row_offset: int, column: int) -> Optional[CapturedCell]:
        for cell in self.cells:
            if cell.row_offset == row_offset and cell.column == column:
                return cell
        return None

    def token_positions(self) -> Dict[str, Tuple[int, int]]:
        """token -> (row_offset, column) of its first occurrence"""
        positions: Dict[str, Tuple[int, int]] = {}
        for cell in self.cells:
            for token in cell.tokens:
                positions.setdefault(token, (cell.row_offset, cell.column))
        return positions


@dataclass
class TotalsAccumulator:
    adults: int = 0
    children: int = 0
    comp: int = 0
    row: Optional[int] = None
    formula_cell: Optional[str] = None

    def add(self, record: TourRecord) -> None:
        self.adults += record.adult_count
        self.children += record.child_count
        self.comp += record.comp_count

    @property
    def grand_total(self) -> int:
        return self.adults + self.children + self.comp

    def counts(self) -> Tuple[int, int, int]:
        return (self.adults, self.children, self.comp)

    def to_dict(self) -> Dict[str, int]:
        return {"adults": self.adults, "children": self.children, "comp": self.comp}


@dataclass
class ExtractionResult:
    records: List[TourRecord]
    header: ReportHeader
    sheet_name: str = ""
    rows_scanned: int = 0
    warnings: List[str] = field(default_factory=list)


@dataclass
class GenerationResult:
    """Outcome of a fresh generation or an append."""

    output_path: str
    record_count: int
    totals: TotalsAccumulator
    tab_name: Optional[str] = None
    sections: List[Tuple[int, int]] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    mode: str = "fresh"
    # append state machine, one entry per transition
    history: List[str] = field(default_factory=list)

    @property
    def records_added(self) -> int:
        return self.record_count

    @property
    def totals_after(self) -> TotalsAccumulator:
        return self.totals

    def to_dict(self) -> Dict[str, Any]:
        summary: Dict[str, Any] = {
            "record_count": self.record_count,
            "totals": self.totals.to_dict(),
            "warnings": list(self.warnings),
            "mode": self.mode,
            "output_path": self.output_path,
        }
        if self.tab_name is not None:
            summary["tab_name"] = self.tab_name
        if self.history:
            summary["history"] = list(self.history)
        return summary
