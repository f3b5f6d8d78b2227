from datetime import date, datetime

import pytest
from openpyxl import Workbook, load_workbook

from dispatch_reports.config import DEFAULT_CONFIG
from dispatch_reports.errors import DocumentStructureError, WarningLog
from dispatch_reports.tab_router import DateTabRouter, find_worksheet, parse_report_date


@pytest.fixture
def pax_wb(pax_template):
    return load_workbook(pax_template)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("22/12/2025", "Dec 25"),
        ("10/oct/2025", "Oct 25"),
        ("10/OCT/2025", "Oct 25"),
        ("2026-03-14", "Mar 26"),
        ("05-Nov-2025", "Nov 25"),
        ("5 Jan 2026", "Jan 26"),
        ("12/31/2025", "Dec 25"),
        (46005, "Dec 25"),
        (46005.0, "Dec 25"),
        (datetime(2026, 7, 4, 9, 0), "July 26"),
        (date(2026, 9, 1), "Sept 26"),
    ],
)
def test_route_known_dates(pax_wb, raw, expected):
    result = DateTabRouter().route(pax_wb, raw)
    assert result.tab_name == expected
    assert result.worksheet.title == expected
    assert not result.fallback


@pytest.mark.parametrize("raw", ["not a date", "31/02/2025", 1, "15/06/2027"])
def test_unparseable_or_unmapped_dates_use_default_tab(pax_wb, raw):
    warnings = WarningLog()
    result = DateTabRouter(warnings=warnings).route(pax_wb, raw)
    assert result.tab_name == DEFAULT_CONFIG.default_tab
    assert result.fallback
    assert len(warnings) == 1


def test_routing_is_deterministic(pax_wb):
    router = DateTabRouter()
    assert {router.route(pax_wb, "22/12/2025").tab_name for _ in range(5)} == {"Dec 25"}


def test_empty_date_means_today():
    assert parse_report_date("") == date.today()
    assert parse_report_date(None) == date.today()


def test_serial_one_is_first_of_january_1900():
    assert parse_report_date(1) == date(1900, 1, 1)


def test_case_insensitive_tab_lookup():
    wb = Workbook()
    wb.active.title = "dec 25"
    wb.create_sheet("Oct 25")
    assert find_worksheet(wb, "Dec 25").title == "dec 25"
    assert DateTabRouter().route(wb, "22/12/2025").tab_name == "dec 25"


def test_missing_mapped_tab_falls_back_to_default():
    wb = Workbook()
    wb.active.title = "Oct 25"
    result = DateTabRouter().route(wb, "22/12/2025")
    assert result.tab_name == "Oct 25"
    assert result.fallback


def test_missing_default_tab_raises():
    wb = Workbook()
    wb.active.title = "Scratch"
    with pytest.raises(DocumentStructureError):
        DateTabRouter().route(wb, "not a date")


def test_validate_template_lists_missing_tabs(pax_wb):
    router = DateTabRouter()
    assert router.validate_template(pax_wb) == []

    del pax_wb["July 26"]
    del pax_wb["Sept 26"]
    assert router.validate_template(pax_wb) == ["July 26", "Sept 26"]


def test_day_first_pattern_wins_and_plain_date_returned():
    parsed = parse_report_date("01/02/2026")
    assert parsed == date(2026, 2, 1)
    assert type(parsed) is date
    assert parse_report_date("10/oct/2025") == date(2025, 10, 10)
    assert parse_report_date("2025/13/45") is None
