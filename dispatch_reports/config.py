#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Engine configuration.

One immutable EngineConfig is built per process (DEFAULT_CONFIG or a JSON
profile via load_config) and handed to every component: the token
vocabulary, the dispatch sheet layout, the EOD and PAX report layouts and the
month -> tab table.

JSON profile shape (every block optional):

    {
      "meta": {"version": "1.0"},
      "source": {"first_row": 8, "last_row": 200, "header_cells": {...}},
      "eod": {"totals_row": 44, ...},
      "pax": {...},
      "tabs": {"2025-10": "Oct 25", ...},
      "default_tab": "Oct 25",
      "lock_timeout": 30
    }
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

logger = logging.getLogger(__name__)

# =============================================================================
# Token vocabulary
# =============================================================================
TOKEN_TOUR_NAME = "{{tour_name}}"
TOKEN_DEPARTURE = "{{departure_time}}"
TOKEN_NOTES = "{{notes}}"
TOKEN_ADULT = "{{num_adult}}"
TOKEN_CHILD = "{{num_chd}}"
TOKEN_COMP = "{{num_comp}}"
TOKEN_ALLOTMENT = "{{cat_allot}}"
TOKEN_SOLD = "{{cat_sold}}"
TOKEN_PAX_ON_BOARD = "{{pax_on_board}}"
TOKEN_PAX_ON_TOUR = "{{pax_on_tour}}"
TOKEN_TOTAL_ADULT = "{{total_adult}}"
TOKEN_TOTAL_CHILD = "{{total_chd}}"
TOKEN_TOTAL_COMP = "{{total_comp}}"


@dataclass(frozen=True)
class TokenVocabulary:
    # token -> TourRecord attribute
    text_tokens: Dict[str, str] = field(
        default_factory=lambda: {
            TOKEN_TOUR_NAME: "name",
            TOKEN_DEPARTURE: "departure_time",
            TOKEN_NOTES: "notes",
        }
    )
    numeric_tokens: Dict[str, str] = field(
        default_factory=lambda: {
            TOKEN_ADULT: "adult_count",
            TOKEN_CHILD: "child_count",
            TOKEN_COMP: "comp_count",
            TOKEN_ALLOTMENT: "allotment",
            TOKEN_SOLD: "sold",
            TOKEN_PAX_ON_BOARD: "pax_on_board",
            TOKEN_PAX_ON_TOUR: "pax_on_tour",
        }
    )
    total_tokens: Tuple[str, str, str] = (
        TOKEN_TOTAL_ADULT,
        TOKEN_TOTAL_CHILD,
        TOKEN_TOTAL_COMP,
    )
    # token -> ReportHeader attribute
    header_tokens: Dict[str, str] = field(
        default_factory=lambda: {
            "{{country}}": "country",
            "{{cruise_line}}": "cruise_line",
            "{{ship_name}}": "ship_name",
            "{{port}}": "port",
            "{{report_date}}": "report_date",
            "{{date}}": "report_date",
            "{{tour_operator}}": "tour_operator",
            "{{shorex_manager}}": "shorex_manager",
            "{{assistant_manager}}": "assistant_manager",
        }
    )
    # tokens whose absence from a section is reported
    required_tokens: Tuple[str, ...] = (TOKEN_TOUR_NAME, TOKEN_NOTES)

    def all_tokens(self) -> Tuple[str, ...]:
        return (
            tuple(self.text_tokens)
            + tuple(self.numeric_tokens)
            + tuple(self.total_tokens)
            + tuple(self.header_tokens)
        )

    def marker_name(self, token: str) -> str:
        """{{num_adult}} -> NUM_ADULT"""
        return token.strip("{}").upper()

    def token_for_marker(self, marker: str) -> Optional[str]:
        for token in self.all_tokens():
            if self.marker_name(token) == marker:
                return token
        return None


# =============================================================================
# Dispatch sheet layout
# =============================================================================
@dataclass(frozen=True)
class SourceLayout:
    first_row: int = 8
    last_row: int = 200
    name_column: int = 1  # A
    departure_offset: int = 1  # B
    allotment_offset: int = 7  # H
    sold_offset: int = 9  # J
    adult_offset: int = 11  # L
    child_offset: int = 12  # M
    comp_offset: int = 13  # N
    notes_offset: int = 14  # O
    pax_on_board_offset: int = 16  # Q
    pax_on_tour_offset: int = 17  # R
    header_cells: Dict[str, str] = field(
        default_factory=lambda: {
            "country": "B1",
            "cruise_line": "B2",
            "ship_name": "B3",
            "port": "E3",
            "report_date": "B5",
            "tour_operator": "E4",
            "shorex_manager": "E5",
            "assistant_manager": "E6",
        }
    )
    header_labels: Tuple[str, ...] = ("TOUR", "TOUR NAME", "TOURS", "NAME")
    sheet_name: Optional[str] = None  # None = first worksheet


# =============================================================================
# Report layouts
# =============================================================================
@dataclass(frozen=True)
class ReportLayout:
    """Row/column geometry of one report family."""

    name: str
    header_rows: Tuple[int, int]
    section_start: int
    section_end: int
    totals_row: int
    # rows between the next insertion point and the totals row
    totals_lead: int
    # (row_offset, column) of each token inside the first section
    token_cells: Dict[str, Tuple[int, int]]
    count_row_offset: int = 0
    count_columns: Tuple[int, int, int] = (3, 4, 5)  # C, D, E
    sum_column: int = 6  # F
    max_column: int = 9  # substitution/capture span A..I
    notes_span: Tuple[int, int] = (1, 8)  # A..H
    boundary_column: Optional[int] = None
    separator_height: float = 20.0
    sheet_name: Optional[str] = None

    @property
    def section_height(self) -> int:
        return self.section_end - self.section_start + 1

    @property
    def stride(self) -> int:
        return self.section_height + 1

    @property
    def first_insertion_row(self) -> int:
        return self.section_end + 2

    @property
    def min_totals_row(self) -> int:
        return self.section_end + 1


def default_eod_layout() -> ReportLayout:
    return ReportLayout(
        name="eod",
        header_rows=(1, 21),
        section_start=23,
        section_end=38,
        totals_row=44,
        totals_lead=4,
        count_row_offset=2,
        boundary_column=8,
        sheet_name="EOD",
        token_cells={
            TOKEN_TOUR_NAME: (0, 2),
            TOKEN_DEPARTURE: (1, 2),
            TOKEN_ADULT: (2, 3),
            TOKEN_CHILD: (2, 4),
            TOKEN_COMP: (2, 5),
            TOKEN_NOTES: (4, 1),
        },
    )


def default_pax_layout() -> ReportLayout:
    return ReportLayout(
        name="pax",
        header_rows=(1, 3),
        section_start=5,
        section_end=5,
        totals_row=8,
        totals_lead=1,
        count_row_offset=0,
        boundary_column=None,
        separator_height=6.0,
        max_column=12,
        token_cells={
            "{{report_date}}": (0, 1),
            TOKEN_TOUR_NAME: (0, 2),
            TOKEN_ADULT: (0, 3),
            TOKEN_CHILD: (0, 4),
            TOKEN_COMP: (0, 5),
            TOKEN_DEPARTURE: (0, 7),
            TOKEN_NOTES: (0, 8),
            TOKEN_ALLOTMENT: (0, 9),
            TOKEN_SOLD: (0, 10),
            TOKEN_PAX_ON_BOARD: (0, 11),
            TOKEN_PAX_ON_TOUR: (0, 12),
        },
    )


# =============================================================================
# Month -> tab table
# =============================================================================
DEFAULT_TAB = "Oct 25"

DEFAULT_TABS: Dict[Tuple[int, int], str] = {
    (2025, 10): "Oct 25",
    (2025, 11): "Nov 25",
    (2025, 12): "Dec 25",
    (2026, 1): "Jan 26",
    (2026, 2): "Feb 26",
    (2026, 3): "Mar 26",
    (2026, 4): "Apr 26",
    (2026, 5): "May 26",
    (2026, 6): "Jun 26",
    (2026, 7): "July 26",
    (2026, 8): "Aug 26",
    (2026, 9): "Sept 26",
}


@dataclass(frozen=True)
class EngineConfig:
    tokens: TokenVocabulary = field(default_factory=TokenVocabulary)
    source: SourceLayout = field(default_factory=SourceLayout)
    eod: ReportLayout = field(default_factory=default_eod_layout)
    pax: ReportLayout = field(default_factory=default_pax_layout)
    tabs: Dict[Tuple[int, int], str] = field(default_factory=lambda: dict(DEFAULT_TABS))
    default_tab: str = DEFAULT_TAB
    lock_timeout: Optional[float] = 30.0
    keep_backups: int = 5

    def layout(self, report_type: str) -> ReportLayout:
        key = report_type.lower()
        if key == "eod":
            return self.eod
        if key == "pax":
            return self.pax
        raise ValueError(f"Unknown report type: {report_type}")


DEFAULT_CONFIG = EngineConfig()


# =============================================================================
# JSON profile loading
# =============================================================================
def _tupled(value: Any) -> Any:
    if isinstance(value, list):
        return tuple(_tupled(v) for v in value)
    return value


def _override(base, data: Dict[str, Any], label: str):
    known = {f.name for f in fields(base)}
    changes = {}
    for key, value in data.items():
        if key not in known:
            logger.warning(f"[CONFIG] Unknown {label} key ignored: {key}")
            continue
        if key == "token_cells":
            value = {tok: tuple(pos) for tok, pos in value.items()}
        elif isinstance(value, dict):
            merged = dict(getattr(base, key) or {})
            merged.update(value)
            value = merged
        else:
            value = _tupled(value)
        changes[key] = value
    return replace(base, **changes)


def _parse_tab_key(key: str) -> Tuple[int, int]:
    year, month = key.split("-", 1)
    return int(year), int(month)


def load_config(path: Optional[Union[str, Path]] = None) -> EngineConfig:
    """Load a JSON profile on top of DEFAULT_CONFIG; None returns the defaults."""
    if path is None:
        return DEFAULT_CONFIG

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config profile not found: {path}")

    data = json.loads(path.read_text(encoding="utf-8"))
    meta = data.get("meta", {})
    logger.info(f"[CONFIG] Loaded {path.name} (version={meta.get('version', 'n/a')})")

    config = DEFAULT_CONFIG
    if "source" in data:
        config = replace(config, source=_override(config.source, data["source"], "source"))
    if "eod" in data:
        config = replace(config, eod=_override(config.eod, data["eod"], "eod"))
    if "pax" in data:
        config = replace(config, pax=_override(config.pax, data["pax"], "pax"))
    if "tabs" in data:
        tabs = {_parse_tab_key(k): str(v) for k, v in data["tabs"].items()}
        config = replace(config, tabs=tabs)
    for key in ("default_tab", "lock_timeout", "keep_backups"):
        if key in data:
            config = replace(config, **{key: data[key]})
    return config
