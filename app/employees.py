from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import delete, func, select, update

from database import ComplianceDatabase, Employee, EmployeeRecord, Shift, employee_from_row
from errors import ConflictError, NotFoundError, ValidationError


logger = logging.getLogger(__name__)


def _clean_name(name: Optional[str]) -> str:
    if not isinstance(name, str):
        raise ValidationError("氏名は必須です。")
    trimmed = name.strip()
    if not trimmed:
        raise ValidationError("氏名は必須です。")
    return trimmed


def _clean_notes(notes: Optional[str]) -> str:
    if notes is None:
        return ""
    if not isinstance(notes, str):
        raise ValidationError("備考の形式が正しくありません。")
    return notes.strip()


def _name_taken(session, name: str, *, exclude_id: Optional[int] = None) -> bool:
    stmt = select(Employee.id).where(func.lower(Employee.name) == func.lower(name))
    if exclude_id is not None:
        stmt = stmt.where(Employee.id != exclude_id)
    return session.scalars(stmt).first() is not None


def list_employees(db: ComplianceDatabase) -> List[EmployeeRecord]:
    """Return every employee ordered by name, ignoring case."""
    stmt = select(Employee.id, Employee.name, Employee.notes).order_by(
        Employee.name.collate("NOCASE").asc(), Employee.id.asc()
    )
    with db.session() as session:
        return [employee_from_row(row) for row in session.execute(stmt)]


def get_employee(db: ComplianceDatabase, employee_id: int) -> EmployeeRecord:
    stmt = select(Employee.id, Employee.name, Employee.notes).where(Employee.id == employee_id)
    with db.session() as session:
        row = session.execute(stmt).first()
    if row is None:
        raise NotFoundError("従業員が見つかりませんでした。")
    return employee_from_row(row)


def employee_shift_count(db: ComplianceDatabase, employee_id: int) -> int:
    with db.session() as session:
        return _count_shifts(session, employee_id)


def _count_shifts(session, employee_id: int) -> int:
    count = session.scalar(select(func.count(Shift.id)).where(Shift.employee_id == employee_id))
    return int(count or 0)


def create_employee(db: ComplianceDatabase, name: Optional[str], notes: Optional[str] = "") -> EmployeeRecord:
    trimmed = _clean_name(name)
    cleaned_notes = _clean_notes(notes)
    with db.mutation() as session:
        if _name_taken(session, trimmed):
            raise ConflictError("同じ氏名の従業員が既に登録されています。")
        employee = Employee(name=trimmed, notes=cleaned_notes)
        session.add(employee)
        session.flush()
        employee_id = employee.id
    logger.info("Created employee %s", employee_id)
    return EmployeeRecord(id=employee_id, name=trimmed, notes=cleaned_notes)


def update_employee(
    db: ComplianceDatabase, employee_id: int, name: Optional[str], notes: Optional[str] = ""
) -> EmployeeRecord:
    trimmed = _clean_name(name)
    cleaned_notes = _clean_notes(notes)
    with db.mutation() as session:
        if session.get(Employee, employee_id) is None:
            raise NotFoundError("従業員が見つかりませんでした。")
        if _name_taken(session, trimmed, exclude_id=employee_id):
            raise ConflictError("同じ氏名の従業員が既に存在します。")
        session.execute(
            update(Employee)
            .where(Employee.id == employee_id)
            .values(name=trimmed, notes=cleaned_notes)
        )
    logger.info("Updated employee %s", employee_id)
    return EmployeeRecord(id=employee_id, name=trimmed, notes=cleaned_notes)


def delete_employee(db: ComplianceDatabase, employee_id: int) -> int:
    """Delete an employee; the database cascades the delete to their shifts.

    Returns the number of shifts removed along with the employee.
    """
    with db.mutation() as session:
        deleted_shifts = _count_shifts(session, employee_id)
        session.execute(delete(Employee).where(Employee.id == employee_id))
    logger.info("Deleted employee %s (%s shifts)", employee_id, deleted_shifts)
    return deleted_shifts
