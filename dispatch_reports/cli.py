#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
dispatch-reports command line.

Usage:
  dispatch-reports init-templates --out-dir templates/
  dispatch-reports eod --source dispatch.xlsx --template templates/EOD_Template.xlsx --out EOD_report.xlsx
  dispatch-reports eod --source dispatch.xlsx --append-to EOD_report.xlsx
  dispatch-reports eod --source dispatch.xlsx --append-latest reports/ --prefix EOD_
  dispatch-reports pax --source dispatch.xlsx --workbook PAX.xlsx
  dispatch-reports validate-pax --workbook PAX.xlsx [--strict]
  dispatch-reports extract --source dispatch.xlsx --csv tours.csv
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from openpyxl import load_workbook

from .config import load_config
from .errors import ReportBusyError, ReportEngineError
from .extractor import RecordExtractor, records_frame
from .pipeline import ReportGenerator
from .storage import find_latest_output
from .tab_router import DateTabRouter
from .templates import build_eod_template, build_pax_template


def setup_logging(output_file, verbose: bool = False) -> str:
    """logs/ next to the output with a timestamped log file plus console output."""
    log_dir = os.path.join(os.path.dirname(os.path.abspath(output_file)), "logs")
    os.makedirs(log_dir, exist_ok=True)

    log_file = os.path.join(
        log_dir, f"dispatch_reports_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
    )

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[
            logging.FileHandler(log_file, encoding="utf-8"),
            logging.StreamHandler(),
        ],
        force=True,
    )

    logging.info("=" * 60)
    logging.info("Dispatch report generation")
    logging.info(f"Output: {output_file}")
    logging.info(f"Log: {log_file}")
    logging.info("=" * 60)
    return log_file


def _print_summary(result) -> None:
    print(json.dumps(result.to_dict(), indent=2))


def cmd_init_templates(args, config) -> int:
    out_dir = Path(args.out_dir)
    eod = build_eod_template(out_dir / "EOD_Template.xlsx", config)
    pax = build_pax_template(out_dir / "PAX_Template.xlsx", config)
    print(f"[OK] {eod}")
    print(f"[OK] {pax}")
    return 0


def cmd_eod(args, config) -> int:
    generator = ReportGenerator(config, backup=args.backup, merge_duplicates=args.merge)
    if args.append_latest:
        latest = find_latest_output(args.append_latest, args.prefix)
        if latest is None:
            print(f"[ERROR] No {args.prefix}*.xlsx found in {args.append_latest}")
            return 1
        result = generator.eod_from_source(args.source, latest, args.out or latest, append=True, ship_id=args.ship)
    elif args.append_to:
        result = generator.eod_from_source(
            args.source, args.append_to, args.out or args.append_to, append=True, ship_id=args.ship
        )
    else:
        if not args.template or not args.out:
            print("[ERROR] --template and --out are required for a fresh report")
            return 1
        result = generator.eod_from_source(args.source, args.template, args.out, ship_id=args.ship)
    print(f"[OK] EOD report: {result.output_path}")
    _print_summary(result)
    return 0


def cmd_pax(args, config) -> int:
    generator = ReportGenerator(config, backup=args.backup, merge_duplicates=args.merge)
    result = generator.pax_from_source(
        args.source, args.workbook, args.out or args.workbook, ship_id=args.ship
    )
    print(f"[OK] PAX tab '{result.tab_name}': {result.output_path}")
    _print_summary(result)
    return 0


def cmd_validate_pax(args, config) -> int:
    wb = load_workbook(args.workbook, read_only=True)
    missing = DateTabRouter(config).validate_template(wb)
    if missing:
        print(f"[WARN] Missing tabs: {', '.join(missing)}")
        return 1 if args.strict else 0
    print("[OK] All routed tabs present")
    return 0


def cmd_extract(args, config) -> int:
    result = RecordExtractor(config).extract(args.source)
    df = records_frame(result.records)
    if args.csv:
        df.to_csv(args.csv, index=False, encoding="utf-8-sig")
        print(f"[OK] {len(df)} tour(s) -> {args.csv}")
    else:
        print(df.to_string(index=False))
    print(json.dumps(result.header.model_dump(), indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="dispatch-reports",
        description="Generate EOD and PAX spreadsheet reports from a dispatch sheet",
    )
    ap.add_argument("--config", default=None, help="JSON profile overriding layouts/tabs")
    ap.add_argument("--verbose", action="store_true")
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init-templates", help="Write default EOD and PAX templates")
    p.add_argument("--out-dir", default="templates")
    p.set_defaults(func=cmd_init_templates)

    for name, func in (("eod", cmd_eod), ("pax", cmd_pax)):
        p = sub.add_parser(name, help=f"Generate or append a {name.upper()} report")
        p.add_argument("--source", required=True, help="Dispatch workbook (.xlsx)")
        p.add_argument("--out", default=None, help="Output workbook path")
        p.add_argument("--ship", default=None, help="Ship id used as lock key")
        p.add_argument("--backup", action="store_true", help="Back up an existing output first")
        p.add_argument("--merge", action="store_true", help="Merge tours sharing a name")
        if name == "eod":
            p.add_argument("--template", default=None)
            p.add_argument("--append-to", default=None, help="Existing EOD report to append to")
            p.add_argument("--append-latest", default=None, help="Directory of EOD reports")
            p.add_argument("--prefix", default="EOD_")
        else:
            p.add_argument("--workbook", required=True, help="PAX workbook with monthly tabs")
        p.set_defaults(func=func)

    p = sub.add_parser("validate-pax", help="List routed tabs missing from a PAX workbook")
    p.add_argument("--workbook", required=True)
    p.add_argument("--strict", action="store_true", help="Exit 1 when any routed tab is missing")
    p.set_defaults(func=cmd_validate_pax)

    p = sub.add_parser("extract", help="Show or export the tours of a dispatch sheet")
    p.add_argument("--source", required=True)
    p.add_argument("--csv", default=None)
    p.set_defaults(func=cmd_extract)
    return ap


def _log_target(args) -> str:
    for attr in ("out", "append_to", "workbook", "csv", "source"):
        value = getattr(args, attr, None)
        if value:
            return str(value)
    return os.path.join(getattr(args, "out_dir", "."), "templates.xlsx")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(_log_target(args), verbose=args.verbose)
    try:
        config = load_config(args.config)
        return args.func(args, config)
    except ReportBusyError as e:
        print(f"[BUSY] {e}")
        return 2
    except (ReportEngineError, FileNotFoundError) as e:
        logging.error(f"[ERROR] {e}")
        print(f"[ERROR] {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
