from __future__ import annotations

import argparse
import datetime
import sys
import tempfile
from pathlib import Path
from typing import List, Tuple

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from backup import backup_database  # noqa: E402
from compliance import get_seven_day_detail, get_seven_day_summary, translate_status  # noqa: E402
from database import ComplianceDatabase, accept_terms, get_settings  # noqa: E402
from employees import create_employee, delete_employee, list_employees  # noqa: E402
from exporter import export_seven_day_csv, export_shifts_csv, minutes_to_hours  # noqa: E402
from shifts import create_shift, list_shifts_by_month  # noqa: E402


# (name, daily start, daily end, days worked)
ROSTER: List[Tuple[str, str, str, int]] = [
    ("佐藤 花子", "09:00", "13:00", 5),
    ("Taro, Jr.", "18:00", "23:00", 6),
    ("鈴木 一郎", "22:00", "04:00", 5),
]


def _seed(db: ComplianceDatabase, reference: datetime.date) -> int:
    created = 0
    for name, start, end, days in ROSTER:
        employee = create_employee(db, name, "smoke")
        for offset in range(days):
            work_date = reference - datetime.timedelta(days=offset)
            create_shift(
                db,
                {
                    "employee_id": employee.id,
                    "work_date": work_date.isoformat(),
                    "start_time": start,
                    "end_time": end,
                },
            )
            created += 1
    return created


def run_workflow(db: ComplianceDatabase, reference: datetime.date, output_dir: Path) -> None:
    if not get_settings(db).terms_accepted:
        accept_terms(db)
        print("[workflow] Terms accepted.")

    created = _seed(db, reference)
    print(f"[workflow] Seeded {len(ROSTER)} employees and {created} shifts ending {reference.isoformat()}.")

    reference_text = reference.isoformat()
    for item in get_seven_day_summary(db, reference_text):
        print(
            f"[workflow] {item.employee_name}: {minutes_to_hours(item.total_minutes)}h "
            f"-> {translate_status(item.status)}"
        )

    first = list_employees(db)[0]
    detail = get_seven_day_detail(db, first.id, reference_text)
    print(f"[workflow] Detail for {detail.employee_name}: " + " ".join(str(day.total_minutes) for day in detail.days))

    shifts_csv = output_dir / "shifts.csv"
    shifts_csv.write_text(export_shifts_csv(db, reference.year, reference.month), encoding="utf-8")
    seven_day_csv = output_dir / "seven_day.csv"
    seven_day_csv.write_text(export_seven_day_csv(db, reference_text), encoding="utf-8")
    print(f"[workflow] Exported -> {shifts_csv}")
    print(f"[workflow] Exported -> {seven_day_csv}")

    backup_path = backup_database(db, output_dir / "backup.sqlite")
    print(f"[workflow] Backup -> {backup_path}")

    removed = delete_employee(db, first.id)
    remaining = len(list_shifts_by_month(db, reference.year, reference.month))
    print(f"[workflow] Deleted {first.name} with {removed} shifts; {remaining} shifts left this month.")

    reloaded = ComplianceDatabase.initialize(db.get_database_file_path())
    try:
        if len(list_employees(reloaded)) != len(ROSTER) - 1:
            raise SystemExit("Reloaded database does not match the in-memory state.")
    finally:
        reloaded.dispose()
    print("[workflow] Reload check passed.")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Run an end-to-end smoke test that seeds employees and shifts, prints "
            "seven-day totals, exports CSV files, backs up and reloads the database."
        )
    )
    parser.add_argument("--date", help="Reference date (YYYY-MM-DD). Defaults to today.")
    parser.add_argument("--output-dir", help="Folder for the database and exports. Defaults to a temp folder.")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    if args.date:
        try:
            reference = datetime.date.fromisoformat(args.date)
        except ValueError as exc:
            raise SystemExit(f"Invalid --date value: {exc}") from exc
    else:
        reference = datetime.date.today()

    if args.output_dir:
        output_dir = Path(args.output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        (output_dir / "smoke.sqlite").unlink(missing_ok=True)
        db = ComplianceDatabase.initialize(output_dir / "smoke.sqlite")
        try:
            run_workflow(db, reference, output_dir)
        finally:
            db.dispose()
        return

    with tempfile.TemporaryDirectory() as tmp_dir:
        output_dir = Path(tmp_dir)
        db = ComplianceDatabase.initialize(output_dir / "smoke.sqlite")
        try:
            run_workflow(db, reference, output_dir)
        finally:
            db.dispose()


if __name__ == "__main__":
    main()
