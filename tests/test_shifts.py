from __future__ import annotations

import sys
from pathlib import Path

import pytest

APP_DIR = Path(__file__).resolve().parents[1] / "app"
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from database import ComplianceDatabase  # noqa: E402
from employees import create_employee, update_employee  # noqa: E402
from errors import NotFoundError, ValidationError  # noqa: E402
from shifts import (  # noqa: E402
    ShiftInput,
    create_shift,
    delete_shift,
    get_shift,
    list_shifts_by_month,
    update_shift,
)


@pytest.fixture()
def db(tmp_path):
    database = ComplianceDatabase.initialize(tmp_path / "maneawa.sqlite")
    try:
        yield database
    finally:
        database.dispose()


@pytest.fixture()
def employee(db):
    return create_employee(db, "Hanako", "")


def test_create_then_read_back_by_month(db, employee):
    payload = {
        "employee_id": employee.id,
        "work_date": "2024-04-10",
        "start_time": "22:00",
        "end_time": "06:00",
        "duration_minutes": 5,
    }
    created = create_shift(db, payload)
    assert created.duration_minutes == 480
    assert created.employee_name == "Hanako"

    [listed] = list_shifts_by_month(db, 2024, 4)
    assert listed == created
    assert listed.work_date == "2024-04-10"
    assert listed.start_time == "22:00"
    assert listed.end_time == "06:00"
    assert listed.duration_minutes == 480


def test_list_by_month_orders_by_date_then_start(db, employee):
    other = create_employee(db, "Aki", "")
    for employee_id, work_date, start in [
        (employee.id, "2024-04-12", "09:00"),
        (other.id, "2024-04-03", "13:00"),
        (employee.id, "2024-04-03", "08:00"),
        (other.id, "2024-05-01", "08:00"),
        (other.id, "2024-03-31", "08:00"),
    ]:
        create_shift(
            db,
            ShiftInput(employee_id=employee_id, work_date=work_date, start_time=start, end_time="18:00"),
        )

    listed = list_shifts_by_month(db, 2024, 4)
    assert [(shift.work_date, shift.start_time) for shift in listed] == [
        ("2024-04-03", "08:00"),
        ("2024-04-03", "13:00"),
        ("2024-04-12", "09:00"),
    ]


def test_listing_reflects_current_employee_name(db, employee):
    create_shift(db, ShiftInput(employee.id, "2024-04-01", "09:00", "10:00"))
    update_employee(db, employee.id, "Hanako S.", "")
    assert list_shifts_by_month(db, 2024, 4)[0].employee_name == "Hanako S."


@pytest.mark.parametrize("year,month", [(2024, 0), (2024, 13), (0, 1)])
def test_list_by_month_rejects_bad_month(db, year, month):
    with pytest.raises(ValidationError):
        list_shifts_by_month(db, year, month)


def test_update_recomputes_duration(db, employee):
    shift = create_shift(db, ShiftInput(employee.id, "2024-04-01", "09:00", "10:00"))
    updated = update_shift(db, shift.id, ShiftInput(employee.id, "2024-04-02", "09:00", "18:30"))
    assert updated.id == shift.id
    assert updated.work_date == "2024-04-02"
    assert updated.duration_minutes == 570
    assert get_shift(db, shift.id) == updated


def test_update_missing_shift_raises_not_found(db, employee):
    with pytest.raises(NotFoundError):
        update_shift(db, 77, ShiftInput(employee.id, "2024-04-02", "09:00", "18:30"))


def test_create_for_unknown_employee_raises_not_found(db):
    with pytest.raises(NotFoundError):
        create_shift(db, ShiftInput(12, "2024-04-02", "09:00", "18:30"))
    assert list_shifts_by_month(db, 2024, 4) == []


def test_invalid_input_never_reaches_storage(db, employee):
    with pytest.raises(ValidationError):
        create_shift(db, {"employee_id": employee.id, "work_date": "04/02/2024", "start_time": "09:00", "end_time": "10:00"})
    assert list_shifts_by_month(db, 2024, 4) == []


def test_delete_is_idempotent(db, employee):
    shift = create_shift(db, ShiftInput(employee.id, "2024-04-01", "09:00", "10:00"))
    delete_shift(db, shift.id)
    delete_shift(db, shift.id)
    delete_shift(db, 123456)
    assert list_shifts_by_month(db, 2024, 4) == []
    with pytest.raises(NotFoundError):
        get_shift(db, shift.id)
