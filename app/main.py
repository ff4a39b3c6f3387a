from __future__ import annotations

import argparse
import datetime
import logging
import sys
from pathlib import Path
from typing import List, Optional

APP_DIR = Path(__file__).resolve().parent
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from backup import (  # noqa: E402
    auto_backup,
    backup_database,
    cleanup_old_auto_backups,
    format_size,
    list_backups,
)
from compliance import get_seven_day_summary, translate_status  # noqa: E402
from config import DATABASE_PATH, setup_logging  # noqa: E402
from database import ComplianceDatabase  # noqa: E402
from errors import ComplianceError  # noqa: E402
from exporter import (  # noqa: E402
    export_seven_day_csv,
    export_shifts_csv,
    minutes_to_hours,
    seven_day_export_filename,
    shifts_export_filename,
)


logger = logging.getLogger(__name__)


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("api:app", host=args.host, port=args.port, app_dir=str(APP_DIR))
    return 0


def _cmd_report(args: argparse.Namespace) -> int:
    db = ComplianceDatabase.initialize(args.database)
    try:
        reference = args.date or datetime.date.today().isoformat()
        print(f"[report] Seven-day window ending {reference}")
        for item in get_seven_day_summary(db, reference):
            print(
                f"[report] {item.employee_name}: {minutes_to_hours(item.total_minutes)}h "
                f"({translate_status(item.status)})"
            )
    finally:
        db.dispose()
    return 0


def _cmd_export(args: argparse.Namespace) -> int:
    if args.dataset == "shifts" and (args.year is None or args.month is None):
        raise SystemExit("--year and --month are required for the shifts export.")
    db = ComplianceDatabase.initialize(args.database)
    try:
        if args.dataset == "shifts":
            body = export_shifts_csv(db, args.year, args.month)
            default_name = shifts_export_filename(args.year, args.month)
        else:
            reference = args.date or datetime.date.today().isoformat()
            body = export_seven_day_csv(db, reference)
            default_name = seven_day_export_filename(reference)
    finally:
        db.dispose()
    target = Path(args.output) if args.output else Path.cwd() / default_name
    target.write_text(body, encoding="utf-8")
    print(f"[export] Wrote {target}")
    return 0


def _cmd_backup(args: argparse.Namespace) -> int:
    if args.list:
        for entry in list_backups():
            print(f"[backup] {entry['name']}  {entry['created']:%Y-%m-%d %H:%M}  {format_size(entry['size'])}")
        return 0
    db = ComplianceDatabase.initialize(args.database)
    try:
        if args.output:
            written = backup_database(db, Path(args.output))
        else:
            written = auto_backup(db)
            cleanup_old_auto_backups(keep_count=args.keep)
    finally:
        db.dispose()
    print(f"[backup] Wrote {written}")
    return 0


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seven-day work-time compliance checker.")
    parser.add_argument("--database", default=str(DATABASE_PATH), help="Path to the database file.")
    parser.add_argument("--verbose", action="store_true", help="Log at DEBUG level.")
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Run the HTTP API.")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.set_defaults(handler=_cmd_serve)

    report = commands.add_parser("report", help="Print seven-day totals for every employee.")
    report.add_argument("--date", help="Reference date (YYYY-MM-DD). Defaults to today.")
    report.set_defaults(handler=_cmd_report)

    export = commands.add_parser("export", help="Write a CSV export.")
    export.add_argument("dataset", choices=["shifts", "seven-day"])
    export.add_argument("--year", type=int)
    export.add_argument("--month", type=int)
    export.add_argument("--date", help="Reference date for the seven-day export.")
    export.add_argument("--output", help="Target file. Defaults to the suggested name in the current folder.")
    export.set_defaults(handler=_cmd_export)

    backup = commands.add_parser("backup", help="Copy the database file.")
    backup.add_argument("--output", help="Target file. Defaults to an automatic backup.")
    backup.add_argument("--keep", type=int, default=5, help="Automatic backups to keep.")
    backup.add_argument("--list", action="store_true", help="List existing backups instead of writing one.")
    backup.set_defaults(handler=_cmd_backup)
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)
    try:
        return args.handler(args)
    except ComplianceError as exc:
        logger.error("%s failed: %s", args.command, exc.message)
        print(f"[{args.command}] {exc.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
