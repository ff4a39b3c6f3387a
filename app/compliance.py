"""Rolling seven-day work-time checks.

Every total covers the inclusive window ``[reference - 6 days, reference]``
and is classified against two fixed thresholds: 25 hours starts a warning,
28 hours is a breach.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Dict, List, Tuple

from sqlalchemy import and_, func, select

from database import ComplianceDatabase, Employee, Shift
from errors import NotFoundError, ValidationError
from shifts import DATE_PATTERN


WINDOW_DAYS = 7
WARNING_THRESHOLD_MINUTES = 25 * 60
NG_THRESHOLD_MINUTES = 28 * 60

STATUS_OK = "ok"
STATUS_WARNING = "warning"
STATUS_NG = "ng"
STATUS_LABELS = {
    STATUS_OK: "OK",
    STATUS_WARNING: "注意",
    STATUS_NG: "NG",
}


@dataclass(frozen=True)
class SevenDaySummary:
    employee_id: int
    employee_name: str
    total_minutes: int
    status: str


@dataclass(frozen=True)
class SevenDayDetailDay:
    date: str
    total_minutes: int


@dataclass(frozen=True)
class SevenDayDetail:
    employee_id: int
    employee_name: str
    days: List[SevenDayDetailDay]
    total_minutes: int
    status: str


def resolve_status(total_minutes: int) -> str:
    if total_minutes >= NG_THRESHOLD_MINUTES:
        return STATUS_NG
    if total_minutes >= WARNING_THRESHOLD_MINUTES:
        return STATUS_WARNING
    return STATUS_OK


def translate_status(status: str) -> str:
    return STATUS_LABELS.get(status, STATUS_LABELS[STATUS_OK])


def parse_date(value: str) -> datetime.date:
    if not isinstance(value, str) or not DATE_PATTERN.fullmatch(value):
        raise ValidationError("基準日の形式が正しくありません。")
    try:
        return datetime.date.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError("基準日の形式が正しくありません。") from exc


def add_days(value: str, amount: int) -> str:
    """Shift a YYYY-MM-DD string by whole calendar days."""
    try:
        return (parse_date(value) + datetime.timedelta(days=amount)).isoformat()
    except OverflowError as exc:
        raise ValidationError("基準日の形式が正しくありません。") from exc


def window_bounds(reference_date: str) -> Tuple[str, str]:
    """First and last date of the seven-day window ending on ``reference_date``."""
    end = parse_date(reference_date)
    return add_days(end.isoformat(), -(WINDOW_DAYS - 1)), end.isoformat()


def window_dates(reference_date: str) -> List[str]:
    start, _ = window_bounds(reference_date)
    return [add_days(start, offset) for offset in range(WINDOW_DAYS)]


def get_seven_day_summary(db: ComplianceDatabase, reference_date: str) -> List[SevenDaySummary]:
    """Seven-day totals for every employee, including those with no shifts."""
    start, end = window_bounds(reference_date)
    total = func.coalesce(func.sum(Shift.duration_minutes), 0)
    stmt = (
        select(Employee.id, Employee.name, total)
        .outerjoin(
            Shift,
            and_(Shift.employee_id == Employee.id, Shift.work_date.between(start, end)),
        )
        .group_by(Employee.id, Employee.name)
        .order_by(Employee.name.collate("NOCASE").asc(), Employee.id.asc())
    )
    with db.session() as session:
        rows = session.execute(stmt).all()
    return [
        SevenDaySummary(
            employee_id=employee_id,
            employee_name=name,
            total_minutes=int(minutes),
            status=resolve_status(int(minutes)),
        )
        for employee_id, name, minutes in rows
    ]


def get_seven_day_detail(db: ComplianceDatabase, employee_id: int, reference_date: str) -> SevenDayDetail:
    """Per-day breakdown for one employee; days without shifts show zero."""
    start, end = window_bounds(reference_date)
    with db.session() as session:
        employee = session.execute(
            select(Employee.id, Employee.name).where(Employee.id == employee_id)
        ).first()
        if employee is None:
            raise NotFoundError("従業員が見つかりませんでした。")
        rows = session.execute(
            select(Shift.work_date, func.sum(Shift.duration_minutes))
            .where(Shift.employee_id == employee_id, Shift.work_date.between(start, end))
            .group_by(Shift.work_date)
            .order_by(Shift.work_date)
        ).all()

    minutes_by_day: Dict[str, int] = {work_date: int(minutes or 0) for work_date, minutes in rows}
    days = [
        SevenDayDetailDay(date=day, total_minutes=minutes_by_day.get(day, 0))
        for day in window_dates(reference_date)
    ]
    total_minutes = sum(day.total_minutes for day in days)
    return SevenDayDetail(
        employee_id=employee.id,
        employee_name=employee.name,
        days=days,
        total_minutes=total_minutes,
        status=resolve_status(total_minutes),
    )
