import pytest
from openpyxl import load_workbook

from dispatch_reports import markers
from dispatch_reports.config import DEFAULT_CONFIG
from dispatch_reports.errors import NoRecordsError
from dispatch_reports.pipeline import ReportGenerator
from dispatch_reports.sections import merge_regions
from dispatch_reports.totals import TotalsAggregator

EOD = DEFAULT_CONFIG.eod


def _leftover_tokens(ws):
    return [
        c.coordinate
        for row in ws.iter_rows()
        for c in row
        if isinstance(c.value, str) and "{{" in c.value
    ]


def test_three_records_round_trip(tmp_path, eod_template, records, header):
    out = tmp_path / "out" / "EOD_report.xlsx"
    result = ReportGenerator().generate_eod(eod_template, records, out, header)

    assert result.record_count == 3
    assert result.totals.counts() == (7, 1, 1)
    assert result.sections == [(23, 38), (40, 55), (57, 72)]

    ws = load_workbook(out)["EOD"]
    assert [ws["B23"].value, ws["B40"].value, ws["B57"].value] == [
        "Old Town Walk",
        "Harbour Cruise",
        "Wine Tasting",
    ]
    assert ws["B24"].value == "09:00"
    assert (ws["C25"].value, ws["D25"].value, ws["E25"].value) == (2, 1, 0)
    assert (ws["C42"].value, ws["D42"].value, ws["E42"].value) == (3, 0, 1)
    assert ws["F42"].value == "=SUM(C42:E42)"
    assert ws["A27"].value == "Meet at pier gate"
    assert ws["A44"].value == "Late bus"
    assert ws["A61"].value is None

    # totals block pushed down by two sections
    assert (ws["C78"].value, ws["D78"].value, ws["E78"].value) == (7, 1, 1)
    assert ws["F78"].value == "=SUM(C78:E78)"
    assert markers.get_totals_row(ws) == 78

    assert _leftover_tokens(ws) == []


def test_header_block_is_filled(tmp_path, eod_template, records, header):
    out = tmp_path / "EOD_report.xlsx"
    ReportGenerator().generate_eod(eod_template, records, out, header)
    ws = load_workbook(out)["EOD"]
    assert ws["B3"].value == "Spain"
    assert ws["B5"].value == "MS Aurora"
    assert ws["B6"].value == "Barcelona"
    assert ws["B7"].value == "22/12/2025"


def test_merges_are_not_duplicated(tmp_path, eod_template, records):
    template_merges = len(merge_regions(load_workbook(eod_template)["EOD"]))
    out = tmp_path / "EOD_report.xlsx"
    ReportGenerator().generate_eod(eod_template, records, out)

    coords = [r.coord for r in merge_regions(load_workbook(out)["EOD"])]
    assert len(coords) == len(set(coords))
    section_merges = 9
    assert len(coords) == template_merges + 2 * section_merges
    assert "A61:H65" in coords


def test_boundary_border_survives_save(tmp_path, eod_template, records):
    out = tmp_path / "EOD_report.xlsx"
    ReportGenerator().generate_eod(eod_template, records, out)
    ws = load_workbook(out)["EOD"]
    for start, _ in [(23, 38), (40, 55), (57, 72)]:
        assert ws.cell(row=start + 1, column=8).border.right.style == "thick"
        assert ws.cell(row=start + 2, column=8).border.right.style == "thick"


def test_totals_invariant_holds_after_fresh(tmp_path, eod_template, records):
    out = tmp_path / "EOD_report.xlsx"
    ReportGenerator().generate_eod(eod_template, records, out)
    ws = load_workbook(out)["EOD"]
    assert TotalsAggregator(EOD).verify(ws)


def test_single_record_uses_template_section_in_place(tmp_path, eod_template, records):
    out = tmp_path / "EOD_report.xlsx"
    result = ReportGenerator().generate_eod(eod_template, records[:1], out)
    assert result.sections == [(23, 38)]
    ws = load_workbook(out)["EOD"]
    assert ws["C44"].value == 2
    assert ws["F44"].value == "=SUM(C44:E44)"


def test_zero_records_raise_and_write_nothing(tmp_path, eod_template):
    out = tmp_path / "EOD_report.xlsx"
    with pytest.raises(NoRecordsError):
        ReportGenerator().generate_eod(eod_template, [], out)
    assert not out.exists()


def test_duplicate_names_merged_on_request(tmp_path, eod_template, records):
    out = tmp_path / "EOD_report.xlsx"
    result = ReportGenerator(merge_duplicates=True).generate_eod(
        eod_template, records + records[:1], out
    )
    assert result.record_count == 3
    assert result.totals.counts() == (9, 2, 1)


def test_eod_from_source(tmp_path, dispatch_path, eod_template):
    out = tmp_path / "EOD_report.xlsx"
    result = ReportGenerator().eod_from_source(dispatch_path, eod_template, out)
    assert result.to_dict()["totals"] == {"adults": 7, "children": 1, "comp": 1}
    ws = load_workbook(out)["EOD"]
    assert ws["B5"].value == "MS Aurora"
    assert ws["B7"].value == "22/12/2025"


def test_backup_created_when_overwriting(tmp_path, eod_template, records):
    out = tmp_path / "EOD_report.xlsx"
    generator = ReportGenerator(backup=True)
    generator.generate_eod(eod_template, records, out)
    generator.generate_eod(eod_template, records[:2], out)
    backups = list((tmp_path / "backups").glob("*.xlsx"))
    assert len(backups) == 1
