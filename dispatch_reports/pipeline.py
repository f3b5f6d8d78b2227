#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Report pipelines: dispatch source -> EOD report / PAX workbook.

    extract -> capture section -> replicate -> substitute -> totals -> save

ReportGenerator is the entry point used by the CLI; every request runs under
the (ship_id, report_type) lock and writes its output atomically.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Sequence, Union

from .append import SuccessiveAppendController, default_loader
from .config import DEFAULT_CONFIG, EngineConfig
from .errors import WarningLog
from .extractor import RecordExtractor, SourceLike, merge_by_name
from .generation import populate_fresh, resolve_sheet
from .locking import KeyedLockRegistry, default_registry
from .models import ExtractionResult, GenerationResult, ReportHeader, TourRecord
from .storage import create_backup_file, save_atomic

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class ReportGenerator:
    def __init__(
        self,
        config: EngineConfig = DEFAULT_CONFIG,
        locks: Optional[KeyedLockRegistry] = None,
        loader=None,
        backup: bool = False,
        merge_duplicates: bool = False,
    ):
        self.config = config
        self.locks = locks or default_registry()
        self.loader = loader or default_loader
        self.backup = backup
        self.merge_duplicates = merge_duplicates

    def _prepare(self, records: Sequence[TourRecord]):
        records = list(records)
        return merge_by_name(records) if self.merge_duplicates else records

    def _key(self, report_type: str, ship_id: Optional[str], header: Optional[ReportHeader], output: Path):
        ship = ship_id or (header.ship_name if header and header.ship_name else str(output))
        return (ship, report_type)

    def extract(self, source: SourceLike) -> ExtractionResult:
        return RecordExtractor(self.config).extract(source)

    # -------------------------------------------------------------------------
    # EOD
    # -------------------------------------------------------------------------
    def generate_eod(
        self,
        template_path: PathLike,
        records: Sequence[TourRecord],
        output_path: PathLike,
        header: Optional[ReportHeader] = None,
        ship_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> GenerationResult:
        """Fresh EOD report from a pristine template."""
        output_path = Path(output_path)
        records = self._prepare(records)
        key = self._key("eod", ship_id, header, output_path)
        wait = self.config.lock_timeout if timeout is None else timeout

        with self.locks.hold(key, wait):
            warnings = WarningLog()
            wb = self.loader(template_path)
            ws = resolve_sheet(wb, self.config.eod, str(template_path))
            sections, totals = populate_fresh(
                ws, self.config.eod, records, header, self.config, warnings
            )
            if self.backup and output_path.exists():
                create_backup_file(output_path, keep=self.config.keep_backups)
            save_atomic(wb, output_path)

        logger.info(f"[EOD] {len(records)} tour(s) -> {output_path}")
        return GenerationResult(
            output_path=str(output_path),
            record_count=len(records),
            totals=totals,
            sections=sections,
            warnings=warnings.messages(),
        )

    def append_eod(
        self,
        existing_path: PathLike,
        records: Sequence[TourRecord],
        output_path: Optional[PathLike] = None,
        header: Optional[ReportHeader] = None,
        ship_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> GenerationResult:
        controller = SuccessiveAppendController(
            self.config, "eod", self.locks, self.loader, self.backup
        )
        return controller.append(
            existing_path, self._prepare(records), output_path, header, ship_id, timeout
        )

    # -------------------------------------------------------------------------
    # PAX
    # -------------------------------------------------------------------------
    def generate_pax(
        self,
        pax_path: PathLike,
        records: Sequence[TourRecord],
        output_path: Optional[PathLike] = None,
        header: Optional[ReportHeader] = None,
        ship_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> GenerationResult:
        """Write records into the month tab routed from header.report_date."""
        controller = SuccessiveAppendController(
            self.config, "pax", self.locks, self.loader, self.backup
        )
        return controller.append(
            pax_path, self._prepare(records), output_path, header, ship_id, timeout
        )

    # -------------------------------------------------------------------------
    # Source -> report
    # -------------------------------------------------------------------------
    def eod_from_source(
        self,
        source: SourceLike,
        template_path: PathLike,
        output_path: PathLike,
        append: bool = False,
        ship_id: Optional[str] = None,
    ) -> GenerationResult:
        extraction = self.extract(source)
        if append:
            result = self.append_eod(
                template_path, extraction.records, output_path, extraction.header, ship_id
            )
        else:
            result = self.generate_eod(
                template_path, extraction.records, output_path, extraction.header, ship_id
            )
        result.warnings = extraction.warnings + result.warnings
        return result

    def pax_from_source(
        self,
        source: SourceLike,
        pax_path: PathLike,
        output_path: Optional[PathLike] = None,
        ship_id: Optional[str] = None,
    ) -> GenerationResult:
        extraction = self.extract(source)
        result = self.generate_pax(
            pax_path, extraction.records, output_path, extraction.header, ship_id
        )
        result.warnings = extraction.warnings + result.warnings
        return result
