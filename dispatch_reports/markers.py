#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Engine markers stored as sheet-scoped defined names.

RPT_TOTALS_ROW      -> 'Sheet'!$A$<totals row>
RPT_TOKEN_<TOKEN>   -> 'Sheet'!$<col>$<row> of the token inside the first section
RPT_TEXT_<TOKEN>    -> "template text" of that cell when the token is embedded in text

They survive save/load, so an append can find the totals block and rebuild
the first section's placeholders without guessing.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, Optional, Tuple

from openpyxl.utils import get_column_letter, quote_sheetname
from openpyxl.utils.cell import column_index_from_string
from openpyxl.workbook.defined_name import DefinedName

logger = logging.getLogger(__name__)

TOTALS_MARKER = "RPT_TOTALS_ROW"
TOKEN_MARKER_PREFIX = "RPT_TOKEN_"
TEXT_MARKER_PREFIX = "RPT_TEXT_"

_REF_RE = re.compile(r"!\$?([A-Z]{1,3})\$?(\d+)$")


def _names(ws):
    return ws.defined_names


def set_marker(ws, name: str, row: int, column: int = 1) -> None:
    ref = f"{quote_sheetname(ws.title)}!${get_column_letter(column)}${row}"
    names = _names(ws)
    if name in names:
        del names[name]
    names[name] = DefinedName(name, attr_text=ref)


def get_marker(ws, name: str) -> Optional[Tuple[int, int]]:
    """(row, column) of a marker, or None when absent/unparseable."""
    names = _names(ws)
    if name not in names:
        return None
    match = _REF_RE.search(names[name].attr_text or "")
    if not match:
        logger.warning(f"[MARKER] Unparseable marker {name}: {names[name].attr_text}")
        return None
    return int(match.group(2)), column_index_from_string(match.group(1))


def remove_marker(ws, name: str) -> None:
    names = _names(ws)
    if name in names:
        del names[name]


def set_text_marker(ws, name: str, text: str) -> None:
    """Store a string constant ("..." with doubled inner quotes) under name."""
    names = _names(ws)
    if name in names:
        del names[name]
    escaped = text.replace('"', '""')
    names[name] = DefinedName(name, attr_text=f'"{escaped}"')


def get_text_marker(ws, name: str) -> Optional[str]:
    names = _names(ws)
    if name not in names:
        return None
    raw = names[name].attr_text or ""
    if len(raw) < 2 or not (raw.startswith('"') and raw.endswith('"')):
        logger.warning(f"[MARKER] {name} is not a string constant: {raw}")
        return None
    return raw[1:-1].replace('""', '"')


def set_totals_row(ws, row: int) -> None:
    set_marker(ws, TOTALS_MARKER, row)


def get_totals_row(ws) -> Optional[int]:
    pos = get_marker(ws, TOTALS_MARKER)
    return pos[0] if pos else None


def record_token_map(
    ws,
    vocabulary,
    positions: Dict[str, Tuple[int, int]],
    texts: Optional[Dict[str, str]] = None,
) -> None:
    """
    positions: token -> absolute (row, column)
    texts: token -> full template text of its cell, kept only when the cell
    holds more than the bare token
    """
    for token, (row, col) in positions.items():
        marker = vocabulary.marker_name(token)
        set_marker(ws, TOKEN_MARKER_PREFIX + marker, row, col)
        text = (texts or {}).get(token)
        if text is not None and text != token:
            set_text_marker(ws, TEXT_MARKER_PREFIX + marker, text)


def read_token_map(ws, vocabulary) -> Dict[str, Tuple[int, int]]:
    """token -> absolute (row, column) recorded at generation time"""
    positions: Dict[str, Tuple[int, int]] = {}
    for name in list(_names(ws).keys()):
        if not name.startswith(TOKEN_MARKER_PREFIX):
            continue
        token = vocabulary.token_for_marker(name[len(TOKEN_MARKER_PREFIX):])
        pos = get_marker(ws, name)
        if token and pos:
            positions[token] = pos
    return positions


def read_token_texts(ws, vocabulary) -> Dict[str, str]:
    """token -> template text of its cell, for tokens embedded in text"""
    texts: Dict[str, str] = {}
    for name in list(_names(ws).keys()):
        if not name.startswith(TEXT_MARKER_PREFIX):
            continue
        token = vocabulary.token_for_marker(name[len(TEXT_MARKER_PREFIX):])
        text = get_text_marker(ws, name)
        if token and text is not None:
            texts[token] = text
    return texts


def shift_markers(ws, from_row: int, amount: int) -> None:
    """Move every position marker at or below from_row down by amount rows."""
    for name in list(_names(ws).keys()):
        if not name.startswith("RPT_") or name.startswith(TEXT_MARKER_PREFIX):
            continue
        pos = get_marker(ws, name)
        if pos and pos[0] >= from_row:
            set_marker(ws, name, pos[0] + amount, pos[1])
