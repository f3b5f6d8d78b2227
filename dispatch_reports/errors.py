#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Error taxonomy for the report engine.

Fatal conditions are exceptions rooted at ReportEngineError. Non-fatal
conditions (numeric defaults, missing tokens, totals found by heuristic) are
collected as ReportWarning records and surface in the generation summary.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

logger = logging.getLogger(__name__)

PARSE_WARNING = "ParseWarning"
TOTALS_LOCATION_WARNING = "TotalsLocationWarning"


class ReportEngineError(Exception):
    """Base class for all engine failures."""


class DocumentStructureError(ReportEngineError):
    """Expected worksheet or cell region absent from a document."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        if path:
            message = f"{message} ({path})"
        super().__init__(message)


class ReplicationError(ReportEngineError):
    """Section capture or replication cannot proceed."""


class ReportBusyError(ReportEngineError):
    """Another request holds the lock for the same ship/report key."""

    def __init__(self, key, timeout: Optional[float]):
        self.key = key
        self.timeout = timeout
        super().__init__(f"Report {key} is busy (waited {timeout}s)")


class NoRecordsError(ReportEngineError):
    """Fresh generation requested with zero tour records."""


@dataclass
class ReportWarning:
    """Single non-fatal issue raised during a request."""

    category: str  # ParseWarning, TotalsLocationWarning
    message: str

    def __str__(self) -> str:
        return f"{self.category}: {self.message}"


@dataclass
class WarningLog:
    """Accumulates warnings for one request and logs each as it arrives."""

    items: List[ReportWarning] = field(default_factory=list)

    def add(self, category: str, message: str) -> ReportWarning:
        warning = ReportWarning(category=category, message=message)
        self.items.append(warning)
        logger.warning(f"[{category}] {message}")
        return warning

    def parse(self, message: str) -> ReportWarning:
        return self.add(PARSE_WARNING, message)

    def totals_location(self, message: str) -> ReportWarning:
        return self.add(TOTALS_LOCATION_WARNING, message)

    def extend(self, other: "WarningLog") -> None:
        self.items.extend(other.items)

    def of(self, category: str) -> List[ReportWarning]:
        return [w for w in self.items if w.category == category]

    def messages(self) -> List[str]:
        return [str(w) for w in self.items]

    def __len__(self) -> int:
        return len(self.items)
