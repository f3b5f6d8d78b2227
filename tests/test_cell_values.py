from datetime import date, datetime, time

from dispatch_reports.cell_values import (
    Empty,
    FormulaResult,
    Number,
    Text,
    classify,
    coerce_int,
    display_text,
    format_display_date,
    is_numeric,
    serial_to_date,
)


class _Result:
    def __init__(self, result):
        self.result = result


def test_classify_tags_values():
    assert classify(None) == Empty()
    assert classify("  ") == Empty()
    assert classify(3) == Number(3.0)
    assert classify("abc") == Text("abc")
    assert isinstance(classify("=SUM(A1:B1)"), FormulaResult)
    assert classify({"result": 4}).result == 4


def test_coerce_int_precedence():
    assert coerce_int(5) == 5
    assert coerce_int(2.6) == 3
    assert coerce_int(_Result(7)) == 7
    assert coerce_int({"value": "8"}) == 8
    assert coerce_int(" 12 ") == 12
    assert coerce_int("1,250") == 1250


def test_coerce_int_defaults():
    assert coerce_int(None) == 0
    assert coerce_int("n/a") == 0
    assert coerce_int("=SUM(C1:E1)") == 0
    assert coerce_int(-3) == 0
    assert coerce_int(float("nan")) == 0
    assert coerce_int("x", default=-1) == -1


def test_is_numeric():
    assert is_numeric(0)
    assert is_numeric(_Result(1.5))
    assert not is_numeric("4")
    assert not is_numeric(None)


def test_serial_epoch():
    assert serial_to_date(1) == date(1900, 1, 1)
    assert serial_to_date(46005) == date(2025, 12, 15)
    assert serial_to_date(0) is None
    assert serial_to_date(100000) is None


def test_format_display_date():
    assert format_display_date(datetime(2025, 10, 3, 8, 0)) == "03/10/2025"
    assert format_display_date(date(2026, 1, 9)) == "09/01/2026"
    assert format_display_date(46005) == "15/12/2025"
    assert format_display_date(" 22/12/2025 ") == "22/12/2025"
    assert format_display_date(None) == ""


def test_display_text():
    assert display_text(time(9, 30)) == "09:30"
    assert display_text(4.0) == "4"
    assert display_text(None) == ""
