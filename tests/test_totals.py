from openpyxl import Workbook, load_workbook

from dispatch_reports import markers
from dispatch_reports.config import DEFAULT_CONFIG
from dispatch_reports.errors import TOTALS_LOCATION_WARNING, WarningLog
from dispatch_reports.models import TotalsAccumulator, TourRecord
from dispatch_reports.totals import (
    LOCATED_BY_DEFAULT,
    LOCATED_BY_HEURISTIC,
    LOCATED_BY_MARKER,
    LOCATED_BY_TOKEN,
    TotalsAggregator,
)


def _agg():
    return TotalsAggregator(DEFAULT_CONFIG.eod)


def test_fresh_totals_sum_all_records(records):
    totals = TotalsAggregator.compute_fresh_totals(records)
    assert totals.counts() == (7, 1, 1)
    assert totals.grand_total == 9


def test_appended_totals_add_only_new_records():
    existing = TotalsAccumulator(adults=7, children=1, comp=1, row=78)
    new = [TourRecord(name="Kayak", adult_count=4, child_count=2)]
    totals = TotalsAggregator.compute_appended_totals(existing, new)
    assert totals.counts() == (11, 3, 1)
    assert existing.counts() == (7, 1, 1)


def test_read_totals_treats_text_as_zero():
    ws = Workbook().active
    ws["C10"] = 5
    ws["D10"] = "{{total_chd}}"
    ws["E10"] = "3"
    assert _agg().read_totals(ws, 10).counts() == (5, 0, 3)


def test_render_writes_counts_formula_and_marker():
    ws = Workbook().active
    totals = _agg().render(ws, TotalsAccumulator(adults=7, children=1, comp=1), 78)

    assert (ws["C78"].value, ws["D78"].value, ws["E78"].value) == (7, 1, 1)
    assert ws["F78"].value == "=SUM(C78:E78)"
    assert totals.row == 78
    assert totals.formula_cell == "F78"
    assert markers.get_totals_row(ws) == 78


def test_locate_prefers_marker_then_token(eod_template):
    ws = load_workbook(eod_template)["EOD"]
    assert _agg().locate(ws) == (44, LOCATED_BY_TOKEN)

    markers.set_totals_row(ws, 50)
    assert _agg().locate(ws) == (50, LOCATED_BY_MARKER)


def test_locate_by_heuristic_warns():
    ws = Workbook().active
    # a section count row, then the totals row
    for col, value in zip((3, 4, 5), (2, 1, 0)):
        ws.cell(row=42, column=col, value=value)
        ws.cell(row=61, column=col, value=value + 3)
    ws["A43"] = "Notes:"
    warnings = WarningLog()

    row, how = _agg().locate(ws, warnings)
    assert (row, how) == (61, LOCATED_BY_HEURISTIC)
    assert len(warnings.of(TOTALS_LOCATION_WARNING)) == 1


def test_locate_falls_back_to_default_row():
    ws = Workbook().active
    warnings = WarningLog()
    row, how = _agg().locate(ws, warnings)
    assert (row, how) == (DEFAULT_CONFIG.eod.totals_row, LOCATED_BY_DEFAULT)
    assert warnings.of(TOTALS_LOCATION_WARNING)


def test_verify_matches_section_sums():
    ws = Workbook().active
    lay = DEFAULT_CONFIG.eod
    counts = [(2, 1, 0), (3, 0, 1)]
    for i, row_counts in enumerate(counts):
        count_row = lay.section_start + i * lay.stride + lay.count_row_offset
        for col, value in zip(lay.count_columns, row_counts):
            ws.cell(row=count_row, column=col, value=value)
    totals_row = lay.totals_row + lay.stride
    agg = TotalsAggregator(lay)
    agg.render(ws, TotalsAccumulator(adults=5, children=1, comp=1), totals_row)
    assert agg.verify(ws, totals_row)

    ws.cell(row=totals_row, column=3, value=99)
    assert not agg.verify(ws, totals_row)
