from __future__ import annotations

from typing import Iterable

from compliance import get_seven_day_summary, translate_status
from database import ComplianceDatabase
from shifts import list_shifts_by_month


SHIFTS_HEADER = "従業員名,日付,開始,終了,勤務時間(時間)"
SEVEN_DAY_HEADER = "従業員名,合計時間(時間),判定"


def escape_csv(value: str) -> str:
    """Quote a field only when it holds a comma, quote, or newline."""
    if "," in value or '"' in value or "\n" in value:
        escaped = value.replace('"', '""')
        return f'"{escaped}"'
    return value


def minutes_to_hours(minutes: int) -> str:
    return f"{minutes / 60:.2f}"


def _join(header: str, rows: Iterable[Iterable[str]]) -> str:
    return "\n".join([header, *(",".join(row) for row in rows)])


def export_shifts_csv(db: ComplianceDatabase, year: int, month: int) -> str:
    shifts = list_shifts_by_month(db, year, month)
    return _join(
        SHIFTS_HEADER,
        (
            (
                escape_csv(shift.employee_name),
                shift.work_date,
                shift.start_time,
                shift.end_time,
                minutes_to_hours(shift.duration_minutes),
            )
            for shift in shifts
        ),
    )


def export_seven_day_csv(db: ComplianceDatabase, reference_date: str) -> str:
    summary = get_seven_day_summary(db, reference_date)
    return _join(
        SEVEN_DAY_HEADER,
        (
            (
                escape_csv(item.employee_name),
                minutes_to_hours(item.total_minutes),
                translate_status(item.status),
            )
            for item in summary
        ),
    )


def shifts_export_filename(year: int, month: int) -> str:
    return f"シフト_{year:04d}-{month:02d}.csv"


def seven_day_export_filename(reference_date: str) -> str:
    return f"週次チェック_{reference_date}.csv"
