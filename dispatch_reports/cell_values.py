#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Cell value classification and coercion.

Every numeric read in the engine (dispatch counts, existing totals, section
counts) goes through coerce_int so that the precedence is the same everywhere:
direct number -> formula result object -> numeric string -> 0.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Optional, Union

EXCEL_EPOCH = date(1900, 1, 1)
MAX_SERIAL = 100000


@dataclass(frozen=True)
class Empty:
    pass


@dataclass(frozen=True)
class Text:
    text: str


@dataclass(frozen=True)
class Number:
    number: float


@dataclass(frozen=True)
class FormulaResult:
    formula: Optional[str]
    result: Any


CellValue = Union[Empty, Text, Number, FormulaResult]


def _result_of(value: Any) -> Any:
    if isinstance(value, dict):
        for key in ("result", "value"):
            if key in value:
                return value[key]
        return None
    for attr in ("result", "value"):
        if hasattr(value, attr):
            return getattr(value, attr)
    return None


def classify(value: Any) -> CellValue:
    """Tag a raw cell value."""
    if value is None:
        return Empty()
    if isinstance(value, bool):
        return Number(float(value))
    if isinstance(value, (int, float)):
        return Number(float(value))
    if isinstance(value, str):
        if value.startswith("="):
            return FormulaResult(formula=value, result=None)
        if value.strip() == "":
            return Empty()
        return Text(value)
    if isinstance(value, (datetime, date)):
        return Text(value.isoformat())
    result = _result_of(value)
    formula = getattr(value, "text", None) or (
        value.get("formula") if isinstance(value, dict) else None
    )
    return FormulaResult(formula=formula, result=result)


def _numeric_string(text: str) -> Optional[float]:
    cleaned = text.strip().replace(",", "")
    if not cleaned:
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None


def coerce_int(value: Any, default: int = 0) -> int:
    """Convert any cell payload to a non-negative int, or ``default``."""
    tagged = value if isinstance(value, (Empty, Text, Number, FormulaResult)) else classify(value)

    number: Optional[float] = None
    if isinstance(tagged, Number):
        number = tagged.number
    elif isinstance(tagged, FormulaResult):
        inner = tagged.result
        if isinstance(inner, (int, float)) and not isinstance(inner, bool):
            number = float(inner)
        elif isinstance(inner, str):
            number = _numeric_string(inner)
    elif isinstance(tagged, Text):
        number = _numeric_string(tagged.text)

    if number is None or number != number:  # NaN
        return default
    result = int(round(number))
    return result if result >= 0 else default


def is_numeric(value: Any) -> bool:
    """True for cells holding a real number (or a numeric formula result)."""
    tagged = classify(value)
    if isinstance(tagged, Number):
        return True
    if isinstance(tagged, FormulaResult):
        return isinstance(tagged.result, (int, float))
    return False


def is_blank(value: Any) -> bool:
    return isinstance(classify(value), Empty)


def serial_to_date(serial: Union[int, float]) -> Optional[date]:
    """Excel serial day count to a date (1 Jan 1900 is serial 1)."""
    if serial is None or not (1 <= serial < MAX_SERIAL):
        return None
    return EXCEL_EPOCH + timedelta(days=int(serial) - 1)


def format_display_date(value: Any) -> str:
    """Normalise a header date cell to DD/MM/YYYY; strings pass through."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.strftime("%d/%m/%Y")
    if isinstance(value, date):
        return value.strftime("%d/%m/%Y")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        parsed = serial_to_date(value)
        return parsed.strftime("%d/%m/%Y") if parsed else str(value)
    return str(value).strip()


def display_text(value: Any) -> str:
    """Cell payload as the string used for text placeholders."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        if value.hour or value.minute:
            return value.strftime("%H:%M")
        return value.strftime("%d/%m/%Y")
    if isinstance(value, time):
        return value.strftime("%H:%M")
    if isinstance(value, date):
        return value.strftime("%d/%m/%Y")
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()
