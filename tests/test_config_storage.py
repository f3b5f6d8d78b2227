import json
import os
import time

import pytest
from openpyxl import Workbook, load_workbook

from dispatch_reports.config import DEFAULT_CONFIG, load_config
from dispatch_reports.storage import (
    cleanup_old_backups,
    create_backup_file,
    find_latest_output,
    save_atomic,
)


def test_load_config_none_returns_defaults():
    assert load_config(None) is DEFAULT_CONFIG


def test_load_config_overrides(tmp_path):
    profile = tmp_path / "profile.json"
    profile.write_text(
        json.dumps(
            {
                "meta": {"version": "2.0"},
                "source": {"last_row": 120, "header_cells": {"port": "F3"}},
                "eod": {"totals_row": 46, "header_rows": [1, 20]},
                "tabs": {"2026-10": "Oct 26"},
                "default_tab": "Oct 26",
                "lock_timeout": 5,
                "bogus": 1,
            }
        ),
        encoding="utf-8",
    )
    config = load_config(profile)

    assert config.source.last_row == 120
    assert config.source.header_cells["port"] == "F3"
    assert config.source.header_cells["ship_name"] == "B3"
    assert config.eod.totals_row == 46
    assert config.eod.header_rows == (1, 20)
    assert config.eod.section_start == DEFAULT_CONFIG.eod.section_start
    assert config.tabs == {(2026, 10): "Oct 26"}
    assert config.default_tab == "Oct 26"
    assert config.lock_timeout == 5
    assert DEFAULT_CONFIG.eod.totals_row == 44


def test_load_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.json")


def test_layout_lookup():
    assert DEFAULT_CONFIG.layout("EOD") is DEFAULT_CONFIG.eod
    assert DEFAULT_CONFIG.eod.stride == 17
    assert DEFAULT_CONFIG.pax.stride == 2
    with pytest.raises(ValueError):
        DEFAULT_CONFIG.layout("weekly")


def test_marker_names_round_trip():
    tokens = DEFAULT_CONFIG.tokens
    assert tokens.marker_name("{{num_adult}}") == "NUM_ADULT"
    assert tokens.token_for_marker("NUM_ADULT") == "{{num_adult}}"
    assert tokens.token_for_marker("REPORT_DATE") == "{{report_date}}"


def test_save_atomic_replaces_output(tmp_path):
    wb = Workbook()
    wb.active["A1"] = "first"
    out = save_atomic(wb, tmp_path / "nested" / "report.xlsx")
    wb.active["A1"] = "second"
    save_atomic(wb, out)

    assert load_workbook(out).active["A1"].value == "second"
    assert [p.name for p in out.parent.iterdir()] == ["report.xlsx"]


def test_backups_keep_newest(tmp_path):
    out = tmp_path / "report.xlsx"
    Workbook().save(out)
    for _ in range(4):
        create_backup_file(out, keep=2)
    backups = list((tmp_path / "backups").glob("*.xlsx"))
    assert len(backups) == 2
    assert cleanup_old_backups(tmp_path / "backups", keep=1) == 1
    assert create_backup_file(tmp_path / "absent.xlsx") is None


def test_find_latest_output(tmp_path):
    older = tmp_path / "EOD_1.xlsx"
    newer = tmp_path / "EOD_2.xlsx"
    Workbook().save(older)
    Workbook().save(newer)
    Workbook().save(tmp_path / "PAX.xlsx")
    past = time.time() - 60
    os.utime(older, (past, past))

    assert find_latest_output(tmp_path, "EOD_") == newer
    assert find_latest_output(tmp_path, "Weekly_") is None
    assert find_latest_output(tmp_path / "missing") is None
