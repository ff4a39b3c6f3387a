from __future__ import annotations

import sys
from pathlib import Path

import pytest

APP_DIR = Path(__file__).resolve().parents[1] / "app"
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from database import ComplianceDatabase  # noqa: E402
from employees import create_employee  # noqa: E402
from exporter import (  # noqa: E402
    SEVEN_DAY_HEADER,
    SHIFTS_HEADER,
    escape_csv,
    export_seven_day_csv,
    export_shifts_csv,
    minutes_to_hours,
    seven_day_export_filename,
    shifts_export_filename,
)
from shifts import ShiftInput, create_shift  # noqa: E402


@pytest.fixture()
def db(tmp_path):
    database = ComplianceDatabase.initialize(tmp_path / "maneawa.sqlite")
    try:
        yield database
    finally:
        database.dispose()


@pytest.mark.parametrize(
    "value,expected",
    [
        ("Taro", "Taro"),
        ("山田 太郎", "山田 太郎"),
        ("Smith, John", '"Smith, John"'),
        ('The "Boss"', '"The ""Boss"""'),
        ("line\nbreak", '"line\nbreak"'),
    ],
)
def test_escape_csv(value, expected):
    assert escape_csv(value) == expected


def test_minutes_to_hours_uses_two_decimals():
    assert minutes_to_hours(540) == "9.00"
    assert minutes_to_hours(50) == "0.83"
    assert minutes_to_hours(1440) == "24.00"


def test_shifts_csv_rows_follow_month_listing(db):
    plain = create_employee(db, "Taro", "")
    comma = create_employee(db, "Smith, John", "")
    create_shift(db, ShiftInput(comma.id, "2024-09-02", "22:00", "06:00"))
    create_shift(db, ShiftInput(plain.id, "2024-09-01", "09:00", "17:45"))
    create_shift(db, ShiftInput(plain.id, "2024-10-01", "09:00", "17:45"))

    body = export_shifts_csv(db, 2024, 9)
    assert body.split("\n") == [
        SHIFTS_HEADER,
        "Taro,2024-09-01,09:00,17:45,8.75",
        '"Smith, John",2024-09-02,22:00,06:00,8.00',
    ]
    assert not body.endswith("\n")


def test_shifts_csv_for_empty_month_is_header_only(db):
    assert export_shifts_csv(db, 2024, 2) == SHIFTS_HEADER


def test_seven_day_csv_translates_status(db):
    ok = create_employee(db, "Ok", "")
    warn = create_employee(db, "Warn", "")
    ng = create_employee(db, "Ng", "")
    create_shift(db, ShiftInput(ok.id, "2024-03-01", "09:00", "17:00"))
    for day in ("2024-02-26", "2024-02-27", "2024-02-28"):
        create_shift(db, ShiftInput(warn.id, day, "09:00", "17:30"))
    for day in ("2024-02-26", "2024-02-27", "2024-02-28", "2024-02-29"):
        create_shift(db, ShiftInput(ng.id, day, "08:00", "15:00"))

    lines = export_seven_day_csv(db, "2024-03-02").split("\n")
    assert lines == [
        SEVEN_DAY_HEADER,
        "Ng,28.00,NG",
        "Ok,8.00,OK",
        "Warn,25.50,注意",
    ]


def test_suggested_filenames():
    assert shifts_export_filename(2024, 3) == "シフト_2024-03.csv"
    assert seven_day_export_filename("2024-03-02") == "週次チェック_2024-03-02.csv"
