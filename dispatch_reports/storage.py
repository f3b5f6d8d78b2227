#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Workbook persistence: atomic save, timestamped backups, latest-output lookup.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from openpyxl import Workbook

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def save_atomic(wb: Workbook, output_path: PathLike) -> Path:
    """
    Save to a temp file in the target directory, then os.replace it over the
    output. A failed save leaves any existing output untouched.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{output_path.stem}_", suffix=".xlsx", dir=str(output_path.parent)
    )
    os.close(fd)
    try:
        wb.save(tmp_name)
        os.replace(tmp_name, output_path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.remove(tmp_name)
        raise
    logger.info(f"[SAVE] {output_path}")
    return output_path


def create_backup_file(original_path: PathLike, keep: int = 5) -> Optional[Path]:
    """Copy an existing output into backups/ with a timestamp prefix."""
    original_path = Path(original_path)
    if not original_path.exists():
        return None

    backup_dir = original_path.parent / "backups"
    backup_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    backup_path = backup_dir / f"{timestamp}_{original_path.name}"
    shutil.copy2(original_path, backup_path)
    logger.info(f"[BACKUP] Created: {backup_path}")
    cleanup_old_backups(backup_dir, keep=keep)
    return backup_path


def cleanup_old_backups(backup_dir: PathLike, keep: int = 5) -> int:
    """Keep the ``keep`` newest .xlsx backups; return how many were removed."""
    backups = sorted(
        Path(backup_dir).glob("*.xlsx"), key=lambda p: (p.stat().st_mtime, p.name), reverse=True
    )
    removed = 0
    for old in backups[keep:]:
        try:
            old.unlink()
            removed += 1
            logger.info(f"[BACKUP] Removed old backup: {old.name}")
        except OSError as e:
            logger.warning(f"[BACKUP] Cleanup failed for {old.name}: {e}")
    return removed


def find_latest_output(directory: PathLike, prefix: str = "") -> Optional[Path]:
    """Newest ``prefix*.xlsx`` in directory by mtime, skipping temp files."""
    directory = Path(directory)
    if not directory.is_dir():
        return None
    candidates = [
        p for p in directory.glob(f"{prefix}*.xlsx") if not p.name.startswith((".", "~$"))
    ]
    if not candidates:
        return None
    return max(candidates, key=lambda p: p.stat().st_mtime)
