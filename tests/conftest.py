"""Pytest configuration and fixtures"""
from datetime import datetime
from pathlib import Path

import pytest
from openpyxl import Workbook

from dispatch_reports.config import DEFAULT_CONFIG
from dispatch_reports.models import ReportHeader, TourRecord
from dispatch_reports.templates import build_eod_template, build_pax_template

# (name, departure, adults, children, comp, notes)
DISPATCH_ROWS = [
    ("Old Town Walk", "09:00", 2, 1, 0, "Meet at pier gate"),
    ("Harbour Cruise", "10:30", 3, 0, 1, "Late bus"),
    ("Wine Tasting", "13:15", 2, 0, 0, ""),
]

PAX_FIELDS = ("allotment", "sold", "pax_on_board", "pax_on_tour")

# name -> (allotment, sold, pax on board, pax on tour) in columns H, J, Q, R
PAX_FIGURES = {
    "Old Town Walk": (20, 3, 2400, 3),
    "Harbour Cruise": (40, 4, 2400, 4),
    "Wine Tasting": (12, 2, 2400, 2),
}


def write_dispatch(path, rows=DISPATCH_ROWS, report_date=datetime(2025, 12, 22)):
    wb = Workbook()
    ws = wb.active
    ws.title = "Dispatch"
    ws["A1"], ws["B1"] = "Country", "Spain"
    ws["A2"], ws["B2"] = "Cruise Line", "Blue Seas"
    ws["A3"], ws["B3"] = "Ship", "MS Aurora"
    ws["D3"], ws["E3"] = "Port", "Barcelona"
    ws["D4"], ws["E4"] = "Operator", "Costa Tours"
    ws["D5"], ws["E5"] = "Shorex", "J. Smith"
    ws["D6"], ws["E6"] = "Assistant", "R. Lee"
    ws["A5"], ws["B5"] = "Date", report_date

    ws["A7"] = "TOUR"
    for i, (name, dep, adult, child, comp, notes) in enumerate(rows):
        r = 8 + i
        ws.cell(row=r, column=1, value=name)
        ws.cell(row=r, column=2, value=dep)
        ws.cell(row=r, column=12, value=adult)
        ws.cell(row=r, column=13, value=child)
        ws.cell(row=r, column=14, value=comp)
        ws.cell(row=r, column=15, value=notes or None)
        if name in PAX_FIGURES:
            for col, value in zip((8, 10, 17, 18), PAX_FIGURES[name]):
                ws.cell(row=r, column=col, value=value)
    wb.save(path)
    return Path(path)


def make_records(rows=DISPATCH_ROWS):
    return [
        TourRecord(
            name=name,
            departure_time=dep,
            adult_count=adult,
            child_count=child,
            comp_count=comp,
            notes=notes,
            **dict(zip(PAX_FIELDS, PAX_FIGURES.get(name, ()))),
        )
        for name, dep, adult, child, comp, notes in rows
    ]


@pytest.fixture
def project_root():
    return Path(__file__).parent.parent


@pytest.fixture
def config():
    return DEFAULT_CONFIG


@pytest.fixture
def records():
    return make_records()


@pytest.fixture
def header():
    return ReportHeader(
        country="Spain",
        cruise_line="Blue Seas",
        ship_name="MS Aurora",
        port="Barcelona",
        report_date="22/12/2025",
    )


@pytest.fixture
def dispatch_path(tmp_path):
    return write_dispatch(tmp_path / "dispatch.xlsx")


@pytest.fixture
def eod_template(tmp_path):
    return build_eod_template(tmp_path / "templates" / "EOD_Template.xlsx")


@pytest.fixture
def pax_template(tmp_path):
    return build_pax_template(tmp_path / "templates" / "PAX_Template.xlsx")
