import threading
import time

import pytest
from openpyxl import load_workbook

from dispatch_reports.append import SuccessiveAppendController
from dispatch_reports.errors import ReportBusyError
from dispatch_reports.locking import KeyedLockRegistry
from dispatch_reports.models import TourRecord
from dispatch_reports.pipeline import ReportGenerator


def _slow_loader(delay=0.2):
    def load(path):
        time.sleep(delay)
        return load_workbook(path)

    return load


def test_concurrent_appends_on_same_key_both_land(tmp_path, eod_template, records):
    out = tmp_path / "EOD_report.xlsx"
    ReportGenerator().generate_eod(eod_template, records[:1], out)

    registry = KeyedLockRegistry()
    batches = [
        [TourRecord(name="Kayak Trip", adult_count=4, child_count=2)],
        [TourRecord(name="Bike Tour", adult_count=1, comp_count=3)],
    ]
    errors = []

    def worker(batch):
        controller = SuccessiveAppendController(locks=registry, loader=_slow_loader())
        try:
            controller.append(out, batch, ship_id="S1", timeout=10)
        except Exception as e:  # surfaced below
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(b,)) for b in batches]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    ws = load_workbook(out)["EOD"]
    names = {ws["B23"].value, ws["B40"].value, ws["B57"].value}
    assert names == {"Old Town Walk", "Kayak Trip", "Bike Tour"}
    assert (ws["C78"].value, ws["D78"].value, ws["E78"].value) == (7, 3, 3)


def test_busy_key_times_out(tmp_path, eod_template, records):
    out = tmp_path / "EOD_report.xlsx"
    ReportGenerator().generate_eod(eod_template, records[:1], out)
    registry = KeyedLockRegistry()
    controller = SuccessiveAppendController(locks=registry)

    with registry.hold(("S1", "eod")):
        with pytest.raises(ReportBusyError):
            controller.append(out, records[1:], ship_id="S1", timeout=0.05)
    assert not registry.is_locked(("S1", "eod"))


def test_different_keys_do_not_block(tmp_path, eod_template, records):
    out = tmp_path / "EOD_report.xlsx"
    ReportGenerator().generate_eod(eod_template, records[:1], out)
    registry = KeyedLockRegistry()
    controller = SuccessiveAppendController(locks=registry)

    with registry.hold(("S1", "eod")):
        result = controller.append(out, records[1:], ship_id="S2", timeout=0.05)
    assert result.records_added == 2


def test_lock_released_after_failure(tmp_path):
    registry = KeyedLockRegistry()
    controller = SuccessiveAppendController(locks=registry)
    with pytest.raises(Exception):
        controller.append(tmp_path / "missing.xlsx", [], ship_id="S1")
    assert not registry.is_locked(("S1", "eod"))


def test_lock_reusable_across_sequential_holds():
    registry = KeyedLockRegistry()
    for _ in range(3):
        with registry.hold("k", timeout=0.1):
            assert registry.is_locked("k")
    assert not registry.is_locked("k")


def test_idle_keys_are_evicted():
    registry = KeyedLockRegistry()
    for ship in ("S1", "S2", "S3"):
        with registry.hold((ship, "eod"), timeout=0.1):
            assert len(registry) == 1
    assert len(registry) == 0

    with registry.hold(("S1", "eod")):
        with pytest.raises(ReportBusyError):
            with registry.hold(("S1", "eod"), timeout=0.01):
                pass
        assert len(registry) == 1
    assert len(registry) == 0


def test_waiting_caller_keeps_the_lock_alive():
    registry = KeyedLockRegistry()
    key = ("S1", "eod")
    entered = threading.Event()
    order = []

    def waiter():
        entered.set()
        with registry.hold(key, timeout=5):
            order.append("waiter")

    with registry.hold(key):
        t = threading.Thread(target=waiter)
        t.start()
        entered.wait()
        time.sleep(0.05)
        order.append("holder")
    t.join()

    assert order == ["holder", "waiter"]
    assert len(registry) == 0
