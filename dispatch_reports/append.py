#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Successive append: add new tour sections to a previously generated report.

The whole request runs on an in-memory copy under the (ship_id, report_type)
lock and is persisted once at the end, so a failure at any step leaves the
file on disk as it was.

    IDLE -> DOCUMENT_LOADED -> SECTIONS_INSERTED -> PLACEHOLDERS_SUBSTITUTED
         -> TOTALS_RECALCULATED -> PERSISTED
    (any step) -> FAILED
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from openpyxl import Workbook, load_workbook

from . import markers
from .config import DEFAULT_CONFIG, EngineConfig, ReportLayout
from .errors import DocumentStructureError, WarningLog
from .generation import (
    Sections,
    is_pristine,
    populate_fresh,
    resolve_sheet,
    substitute_sections,
)
from .locking import KeyedLockRegistry, default_registry
from .models import GenerationResult, ReportHeader, TemplateSection, TotalsAccumulator, TourRecord
from .sections import SectionReplicator, TemplateSectionStore
from .storage import create_backup_file, save_atomic
from .substitution import PlaceholderSubstitutionEngine
from .tab_router import DateTabRouter
from .totals import TotalsAggregator

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
Loader = Callable[[PathLike], Workbook]
LockKey = Tuple[str, str]


class AppendState(str, Enum):
    IDLE = "Idle"
    DOCUMENT_LOADED = "DocumentLoaded"
    SECTIONS_INSERTED = "SectionsInserted"
    PLACEHOLDERS_SUBSTITUTED = "PlaceholdersSubstituted"
    TOTALS_RECALCULATED = "TotalsRecalculated"
    PERSISTED = "Persisted"
    FAILED = "Failed"


@dataclass
class AppendRun:
    """State machine of a single append request."""

    key: LockKey
    state: AppendState = AppendState.IDLE
    history: List[AppendState] = field(default_factory=lambda: [AppendState.IDLE])

    def advance(self, state: AppendState) -> None:
        self.state = state
        self.history.append(state)
        logger.debug(f"[APPEND] {self.key} -> {state.value}")


def default_loader(path: PathLike) -> Workbook:
    path = Path(path)
    if not path.exists():
        raise DocumentStructureError("Report workbook not found", str(path))
    return load_workbook(path)


class SuccessiveAppendController:
    """
    Appends records to an existing EOD report, or to the routed monthly tab
    of a PAX workbook (a tab still carrying its placeholders is generated
    fresh instead).
    """

    def __init__(
        self,
        config: EngineConfig = DEFAULT_CONFIG,
        report_type: str = "eod",
        locks: Optional[KeyedLockRegistry] = None,
        loader: Optional[Loader] = None,
        backup: bool = False,
    ):
        self.config = config
        self.report_type = report_type.lower()
        self.layout: ReportLayout = config.layout(self.report_type)
        self.locks = locks or default_registry()
        self.loader = loader or default_loader
        self.backup = backup
        # last run per key; only written while that key's lock is held
        self.last_runs: Dict[LockKey, AppendRun] = {}

    def last_run(self, key: LockKey) -> Optional[AppendRun]:
        return self.last_runs.get(key)

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------
    def capture_first_section(self, ws) -> TemplateSection:
        """Capture the first existing section and put its placeholders back."""
        lay = self.layout
        store = TemplateSectionStore(max_column=lay.max_column)
        section = store.capture(ws, (lay.section_start, lay.section_end))

        recorded = markers.read_token_map(ws, self.config.tokens)
        texts = markers.read_token_texts(ws, self.config.tokens)
        positions: Dict[str, Tuple[int, int]] = {
            token: (row - lay.section_start, col)
            for token, (row, col) in recorded.items()
            if lay.section_start <= row <= lay.section_end
        }
        if not positions:
            logger.info(f"[APPEND] '{ws.title}': no token markers, using layout positions")
            positions = dict(lay.token_cells)
        return store.retokenize(section, positions, texts)

    def insert_sections(
        self, ws, section: TemplateSection, count: int, totals_row: int
    ) -> Sections:
        replicator = SectionReplicator(
            boundary_column=self.layout.boundary_column,
            separator_height=self.layout.separator_height,
        )
        return replicator.replicate(section, ws, count, totals_row - self.layout.totals_lead)

    def append_to_sheet(
        self,
        ws,
        records: Sequence[TourRecord],
        header: Optional[ReportHeader],
        warnings: WarningLog,
        run: Optional[AppendRun] = None,
    ) -> Tuple[Sections, TotalsAccumulator]:
        run = run or AppendRun(key=("", self.report_type))
        aggregator = TotalsAggregator(self.layout, self.config)
        totals_row, how = aggregator.locate(ws, warnings)
        existing = aggregator.read_totals(ws, totals_row)
        logger.info(
            f"[APPEND] '{ws.title}': totals row {totals_row} ({how}), "
            f"existing={existing.counts()}"
        )

        section = self.capture_first_section(ws)
        placed = self.insert_sections(ws, section, len(records), totals_row)
        run.advance(AppendState.SECTIONS_INSERTED)

        engine = PlaceholderSubstitutionEngine(self.config, warnings)
        substitute_sections(engine, ws, self.layout, placed, records, header)
        run.advance(AppendState.PLACEHOLDERS_SUBSTITUTED)

        totals = aggregator.compute_appended_totals(existing, records)
        new_row = totals_row + len(placed) * (section.height + 1)
        aggregator.render(ws, totals, new_row)
        run.advance(AppendState.TOTALS_RECALCULATED)
        return placed, totals

    def _target_sheet(self, wb: Workbook, header: Optional[ReportHeader], warnings: WarningLog, label: str):
        if self.report_type == "pax":
            router = DateTabRouter(self.config, warnings)
            route = router.route(wb, header.report_date if header else None)
            return route.worksheet, route.tab_name
        return resolve_sheet(wb, self.layout, label), None

    # -------------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------------
    def append(
        self,
        existing_path: PathLike,
        new_records: Sequence[TourRecord],
        output_path: Optional[PathLike] = None,
        header: Optional[ReportHeader] = None,
        ship_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> GenerationResult:
        output_path = Path(output_path or existing_path)
        ship = ship_id or (header.ship_name if header and header.ship_name else str(output_path))
        key = (ship, self.report_type)
        wait = self.config.lock_timeout if timeout is None else timeout

        with self.locks.hold(key, wait):
            run = AppendRun(key=key)
            self.last_runs[key] = run
            try:
                return self._run(run, Path(existing_path), list(new_records), output_path, header)
            except Exception:
                run.advance(AppendState.FAILED)
                logger.exception(f"[APPEND] Failed for {key}; {output_path} left untouched")
                raise

    def _run(
        self,
        run: AppendRun,
        existing_path: Path,
        records: List[TourRecord],
        output_path: Path,
        header: Optional[ReportHeader],
    ) -> GenerationResult:
        warnings = WarningLog()
        wb = self.loader(existing_path)
        run.advance(AppendState.DOCUMENT_LOADED)
        ws, tab_name = self._target_sheet(wb, header, warnings, str(existing_path))

        mode = "append"
        if not records:
            warnings.parse(f"No new records for '{ws.title}'; document unchanged")
            aggregator = TotalsAggregator(self.layout, self.config)
            totals = aggregator.read_totals(ws, aggregator.locate(ws, warnings)[0])
            sections: Sections = []
            mode = "noop"
        elif is_pristine(ws, self.layout, self.config):
            logger.info(f"[APPEND] '{ws.title}' still pristine, generating fresh")
            sections, totals = populate_fresh(ws, self.layout, records, header, self.config, warnings)
            for state in (
                AppendState.SECTIONS_INSERTED,
                AppendState.PLACEHOLDERS_SUBSTITUTED,
                AppendState.TOTALS_RECALCULATED,
            ):
                run.advance(state)
            mode = "fresh"
        else:
            sections, totals = self.append_to_sheet(ws, records, header, warnings, run)

        if mode != "noop" or output_path.resolve() != existing_path.resolve():
            if self.backup and output_path.exists():
                create_backup_file(output_path, keep=self.config.keep_backups)
            save_atomic(wb, output_path)
        run.advance(AppendState.PERSISTED)

        logger.info(
            f"[APPEND] {len(records)} record(s) -> '{ws.title}' ({mode}); "
            f"totals={totals.counts()}"
        )
        return GenerationResult(
            output_path=str(output_path),
            record_count=len(records),
            totals=totals,
            tab_name=tab_name,
            sections=sections,
            warnings=warnings.messages(),
            mode=mode,
            history=[state.value for state in run.history],
        )
