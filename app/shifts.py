from __future__ import annotations

import datetime
import logging
import re
from dataclasses import dataclass
from typing import Any, List, Mapping

from sqlalchemy import delete, func, select

from database import ComplianceDatabase, Employee, Shift, ShiftRecord, shift_columns, shift_from_row
from errors import NotFoundError, ValidationError


logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60
DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}")
TIME_PATTERN = re.compile(r"\d{2}:\d{2}")


@dataclass(frozen=True)
class ShiftInput:
    employee_id: int
    work_date: str
    start_time: str
    end_time: str


def _field(data: Mapping[str, Any] | ShiftInput, snake: str, camel: str) -> Any:
    if isinstance(data, ShiftInput):
        return getattr(data, snake)
    if snake in data:
        return data[snake]
    return data.get(camel)


def validate_shift_input(data: Mapping[str, Any] | ShiftInput) -> ShiftInput:
    """Check the form payload and return it as a ShiftInput.

    Accepts either snake_case or the camelCase keys used by the form layer.
    """
    employee_id = _field(data, "employee_id", "employeeId")
    work_date = _field(data, "work_date", "workDate")
    start_time = _field(data, "start_time", "startTime")
    end_time = _field(data, "end_time", "endTime")

    if isinstance(employee_id, bool) or not isinstance(employee_id, int) or employee_id <= 0:
        raise ValidationError("従業員を選択してください。")
    if not isinstance(work_date, str) or not DATE_PATTERN.fullmatch(work_date):
        raise ValidationError("日付の形式が正しくありません。")
    try:
        datetime.date.fromisoformat(work_date)
    except ValueError as exc:
        raise ValidationError("日付の形式が正しくありません。") from exc
    for value in (start_time, end_time):
        if not isinstance(value, str) or not TIME_PATTERN.fullmatch(value):
            raise ValidationError("開始・終了時刻の形式が正しくありません。")
    return ShiftInput(
        employee_id=employee_id,
        work_date=work_date,
        start_time=start_time,
        end_time=end_time,
    )


def _minutes_since_midnight(value: str) -> int:
    hours, minutes = (int(part) for part in value.split(":"))
    if hours > 23 or minutes > 59:
        raise ValidationError("時刻の形式が正しくありません。")
    return hours * 60 + minutes


def calculate_duration_minutes(start_time: str, end_time: str) -> int:
    """Minutes worked between two HH:mm times.

    An end at or before the start is read as the next day, so the result is
    always within (0, 1440].
    """
    if not TIME_PATTERN.fullmatch(start_time or "") or not TIME_PATTERN.fullmatch(end_time or ""):
        raise ValidationError("時刻の形式が正しくありません。")
    duration = _minutes_since_midnight(end_time) - _minutes_since_midnight(start_time)
    if duration <= 0:
        duration += MINUTES_PER_DAY
    if duration <= 0:
        raise ValidationError("勤務時間の計算に失敗しました。")
    if duration > MINUTES_PER_DAY:
        raise ValidationError("24時間を超えるシフトは登録できません。")
    return duration


def get_shift(db: ComplianceDatabase, shift_id: int) -> ShiftRecord:
    stmt = select(*shift_columns()).join(Employee, Employee.id == Shift.employee_id).where(Shift.id == shift_id)
    with db.session() as session:
        row = session.execute(stmt).first()
    if row is None:
        raise NotFoundError("シフトが見つかりませんでした。")
    return shift_from_row(row)


def _require_employee(session, employee_id: int) -> None:
    if session.get(Employee, employee_id) is None:
        raise NotFoundError("従業員が見つかりませんでした。")


def create_shift(db: ComplianceDatabase, data: Mapping[str, Any] | ShiftInput) -> ShiftRecord:
    shift_input = validate_shift_input(data)
    duration = calculate_duration_minutes(shift_input.start_time, shift_input.end_time)
    with db.mutation() as session:
        _require_employee(session, shift_input.employee_id)
        shift = Shift(
            employee_id=shift_input.employee_id,
            work_date=shift_input.work_date,
            start_time=shift_input.start_time,
            end_time=shift_input.end_time,
            duration_minutes=duration,
        )
        session.add(shift)
        session.flush()
        shift_id = shift.id
    logger.info("Created shift %s for employee %s", shift_id, shift_input.employee_id)
    return get_shift(db, shift_id)


def update_shift(db: ComplianceDatabase, shift_id: int, data: Mapping[str, Any] | ShiftInput) -> ShiftRecord:
    shift_input = validate_shift_input(data)
    duration = calculate_duration_minutes(shift_input.start_time, shift_input.end_time)
    with db.mutation() as session:
        shift = session.get(Shift, shift_id)
        if shift is None:
            raise NotFoundError("シフトが見つかりませんでした。")
        _require_employee(session, shift_input.employee_id)
        shift.employee_id = shift_input.employee_id
        shift.work_date = shift_input.work_date
        shift.start_time = shift_input.start_time
        shift.end_time = shift_input.end_time
        shift.duration_minutes = duration
    logger.info("Updated shift %s", shift_id)
    return get_shift(db, shift_id)


def delete_shift(db: ComplianceDatabase, shift_id: int) -> None:
    with db.mutation() as session:
        session.execute(delete(Shift).where(Shift.id == shift_id))
    logger.info("Deleted shift %s", shift_id)


def _month_key(year: int, month: int) -> str:
    if isinstance(year, bool) or isinstance(month, bool) or not isinstance(year, int) or not isinstance(month, int):
        raise ValidationError("年月の指定が正しくありません。")
    if not 1 <= month <= 12 or not 0 < year <= 9999:
        raise ValidationError("年月の指定が正しくありません。")
    return f"{year:04d}-{month:02d}"


def list_shifts_by_month(db: ComplianceDatabase, year: int, month: int) -> List[ShiftRecord]:
    """Shifts in the given month, by date then start time, with current employee names."""
    month_key = _month_key(year, month)
    stmt = (
        select(*shift_columns())
        .join(Employee, Employee.id == Shift.employee_id)
        .where(func.substr(Shift.work_date, 1, 7) == month_key)
        .order_by(Shift.work_date.asc(), Shift.start_time.asc(), Shift.id.asc())
    )
    with db.session() as session:
        return [shift_from_row(row) for row in session.execute(stmt)]
