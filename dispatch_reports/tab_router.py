#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Date -> monthly tab routing for the PAX workbook.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, List, Optional

import pandas as pd
from openpyxl import Workbook

from .cell_values import serial_to_date
from .config import DEFAULT_CONFIG, EngineConfig
from .errors import DocumentStructureError, WarningLog

logger = logging.getLogger(__name__)

DATE_FORMATS = (
    "%d/%m/%Y",
    "%m/%d/%Y",
    "%Y-%m-%d",
    "%d-%b-%Y",
    "%d/%b/%Y",
    "%d %b %Y",
    "%d-%B-%Y",
)


@dataclass
class TabRouteResult:
    tab_name: str
    worksheet: Any
    parsed_date: Optional[date]
    fallback: bool = False


def parse_report_date(raw: Any) -> Optional[date]:
    """
    Native date/datetime, Excel serial, or a string tried against DATE_FORMATS
    (as given, upper-cased and title-cased). Empty -> today. Unparseable -> None.
    """
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return date.today()
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return serial_to_date(raw)

    text = str(raw).strip()
    for variant in dict.fromkeys((text, text.upper(), text.title(), text.lower())):
        for fmt in DATE_FORMATS:
            parsed = pd.to_datetime(variant, format=fmt, errors="coerce")
            if not pd.isna(parsed):
                return parsed.date()
    return None


def find_worksheet(wb: Workbook, name: str):
    """Exact title first, then case-insensitive; None when absent."""
    if name in wb.sheetnames:
        return wb[name]
    lowered = name.strip().lower()
    for title in wb.sheetnames:
        if title.strip().lower() == lowered:
            return wb[title]
    return None


class DateTabRouter:
    def __init__(self, config: EngineConfig = DEFAULT_CONFIG, warnings: Optional[WarningLog] = None):
        self.config = config
        self.warnings = warnings if warnings is not None else WarningLog()

    def tab_for(self, parsed: Optional[date]) -> str:
        if parsed is None:
            return self.config.default_tab
        return self.config.tabs.get((parsed.year, parsed.month), self.config.default_tab)

    def route(self, wb: Workbook, raw_date: Any) -> TabRouteResult:
        parsed = parse_report_date(raw_date)
        fallback = False
        if parsed is None:
            self.warnings.parse(
                f"Unparseable report date {raw_date!r}, using tab '{self.config.default_tab}'"
            )
            fallback = True
        elif (parsed.year, parsed.month) not in self.config.tabs:
            self.warnings.parse(
                f"No tab mapped for {parsed:%Y-%m}, using tab '{self.config.default_tab}'"
            )
            fallback = True

        tab_name = self.tab_for(parsed)
        ws = find_worksheet(wb, tab_name)
        if ws is None and tab_name != self.config.default_tab:
            self.warnings.parse(
                f"Tab '{tab_name}' missing from workbook, using '{self.config.default_tab}'"
            )
            tab_name = self.config.default_tab
            ws = find_worksheet(wb, tab_name)
            fallback = True
        if ws is None:
            raise DocumentStructureError(f"PAX workbook has no '{tab_name}' tab")

        logger.info(f"[ROUTE] {raw_date!r} -> '{ws.title}'")
        return TabRouteResult(tab_name=ws.title, worksheet=ws, parsed_date=parsed, fallback=fallback)

    def validate_template(self, wb: Workbook) -> List[str]:
        """Tabs of the routing table missing from the workbook (advisory)."""
        expected = list(dict.fromkeys(list(self.config.tabs.values()) + [self.config.default_tab]))
        missing = [name for name in expected if find_worksheet(wb, name) is None]
        if missing:
            logger.warning(f"[ROUTE] PAX template missing tabs: {', '.join(missing)}")
        return missing
