from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv

from water_report.config.loader import DEFAULT_CONFIG_PATH, load_config
from water_report.db.document_store import DocumentStore, MemoryDocumentStore
from water_report.errors import ConfigError, ReportBusyError, ReportError
from water_report.excel.reader import (
    MissingColumnsError,
    SheetHeaderError,
    apply_report_draft,
    read_report_workbook,
)
from water_report.excel.writer import write_report_workbook
from water_report.logging.init import log_summary, set_debug, setup_logging
from water_report.models.config_models import ReportConfig
from water_report.models.operation_result import OperationResult
from water_report.services.form_controller import FormController
from water_report.services.layout import render_section
from water_report.services.summary import render_summary_line

"""CLI entrypoint for the weekly water treatment report.

Commands:
- show       load the report and print every section (grid or --narrow)
- export     write the loaded report to an .xlsx workbook
- submit     apply a filled-in workbook and bulk save ("Submit report")
- sign       capture a row signature (written through immediately)
- sign-technician  capture a technician / notes signature
- clear      delete every report document (requires --yes)
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_OPERATION_FAILED = 2


@contextmanager
def _open_store(cfg: ReportConfig, mock: bool) -> Iterator[DocumentStore]:
    """Yield the PostgreSQL store, or an in-memory one in mock mode.

    Connection parameters: DATABASE_URL / PGDSN, then PG* variables, then the
    database section of the config (.env is loaded first and overrides).
    """
    if mock:
        yield MemoryDocumentStore()
        return
    # psycopg2 は実接続時のみ import (mock モードでは不要)
    from water_report.db.postgres_store import connect

    with connect(cfg.database) as store:
        yield store


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv; values override the existing environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="water-report", description="Weekly water treatment report")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Report config (YAML)")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--mock", action="store_true", help="Use an in-memory store (no database)")
    p.add_argument("--week", help="Week to report (any date in it, DD/MM/YYYY)")
    sub = p.add_subparsers(dest="command", required=True)

    show = sub.add_parser("show", help="Print every section")
    show.add_argument("--narrow", action="store_true", help="Stacked label/value layout")

    export = sub.add_parser("export", help="Write the report to a workbook")
    export.add_argument("--output", type=Path, required=True)

    submit = sub.add_parser("submit", help="Apply a workbook and save the whole report")
    submit.add_argument("--workbook", type=Path, required=True)
    submit.add_argument("--exit", dest="and_exit", action="store_true", help="Save and Exit")

    sign = sub.add_parser("sign", help="Sign one section row")
    sign.add_argument("--section", required=True, help="Section collection name")
    sign.add_argument("--row", required=True, help="Row label or 1-based row number")
    sign.add_argument("--column", default="Signature")
    sign.add_argument("--image", type=Path, required=True, help="Signature image (PNG)")

    sign_tech = sub.add_parser("sign-technician", help="Sign as a section technician")
    sign_tech.add_argument("--section", required=True, help="Section (or notes) collection name")
    sign_tech.add_argument("--image", type=Path, required=True, help="Signature image (PNG)")

    clear = sub.add_parser("clear", help="Delete every report document")
    clear.add_argument("--yes", action="store_true", help="Confirm deletion")
    return p.parse_args(argv)


def _row_index(controller: FormController, collection: str, row: str) -> int:
    labels = controller.state.section(collection).row_labels
    if row in labels:
        return labels.index(row)
    if row.isdigit() and int(row) >= 1:
        return int(row) - 1
    raise ReportError(f"unknown row {row!r} for section {collection}")


def _finish(result: OperationResult) -> int:
    log_summary(render_summary_line(result)[len("SUMMARY "):])
    return EXIT_SUCCESS if result.ok else EXIT_OPERATION_FAILED


def _run(args: argparse.Namespace, controller: FormController) -> int:
    logger = setup_logging()
    if args.week:
        try:
            week = datetime.strptime(args.week, "%d/%m/%Y").date()
        except ValueError:
            logger.error(f"invalid --week: {args.week}")
            return EXIT_FATAL
        controller.select_week(week)

    load_result = controller.load()
    if not load_result.ok:
        logger.warning(f"initial load incomplete: {load_result.error}")
    controller.mount()
    logger.info(controller.state.week_label)

    if args.command == "show":
        for collection in controller.state.sections:
            print(render_section(controller.binding(collection), narrow=args.narrow))
        if controller.state.notes:
            print("== Notes")
            for note in controller.state.notes:
                print(f"  - {note}")
        return EXIT_SUCCESS

    if args.command == "export":
        path = write_report_workbook(args.output, controller.state, controller.bindings)
        logger.info(f"exported {path}")
        return EXIT_SUCCESS

    if args.command == "submit":
        if not args.workbook.exists():
            logger.error(f"workbook not found: {args.workbook}")
            return EXIT_FATAL
        try:
            draft = read_report_workbook(args.workbook, controller.state)
        except (SheetHeaderError, MissingColumnsError) as e:
            logger.error(f"workbook: {e}")
            return EXIT_FATAL
        edited = apply_report_draft(controller, draft)
        logger.info(f"applied {edited} cells from {args.workbook.name}")
        result = controller.save_all(and_exit=args.and_exit)
        if result.confirmation_shown and result.ok:
            print("Your data has been successfully saved.")
        return _finish(result)

    if args.command == "sign":
        index = _row_index(controller, args.section, args.row)
        ok = controller.sign_row(args.section, index, args.column, args.image)
        if ok:
            logger.info(f"signed {args.section} row {index + 1}")
        return EXIT_SUCCESS if ok else EXIT_OPERATION_FAILED

    if args.command == "sign-technician":
        ok = controller.sign_technician(args.section, args.image)
        return EXIT_SUCCESS if ok else EXIT_OPERATION_FAILED

    if args.command == "clear":
        if not args.yes:
            logger.error("clear deletes every report document; pass --yes to confirm")
            return EXIT_FATAL
        return _finish(controller.clear_all())

    return EXIT_FATAL  # pragma: no cover - argparse rejects unknown commands


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # NOTE: None のときのみシステム引数を読む (テストで main([...]) を呼ぶため)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    # .env を最優先で読み込む (DB 接続パラメータ優先順位保証)
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        set_debug(True)
        logger.debug("debug mode enabled")

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    # テスト等で DB 接続を完全に無効化したい場合 DISABLE_DB_CONNECT=1
    mock = args.mock or os.getenv("DISABLE_DB_CONNECT") == "1"
    try:
        with _open_store(cfg, mock) as store:
            logger.debug(f"store={type(store).__name__} plant={cfg.plant_name}")
            controller = FormController(cfg, store)
            try:
                return _run(args, controller)
            except ReportBusyError as e:
                logger.error(f"busy: {e}")
                return EXIT_OPERATION_FAILED
            except (KeyError, ReportError) as e:
                logger.error(f"{args.command}: {e}")
                return EXIT_OPERATION_FAILED
    except ReportError as e:
        logger.error(f"store: {e}")
        return EXIT_FATAL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
