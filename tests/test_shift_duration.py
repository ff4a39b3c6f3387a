from __future__ import annotations

import sys
from pathlib import Path

import pytest

APP_DIR = Path(__file__).resolve().parents[1] / "app"
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from errors import ValidationError  # noqa: E402
from shifts import calculate_duration_minutes, validate_shift_input  # noqa: E402


def _minutes(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


@pytest.mark.parametrize(
    "start,end,expected",
    [
        ("09:00", "18:00", 540),
        ("22:00", "06:00", 480),
        ("00:00", "23:59", 1439),
        ("23:59", "00:00", 1),
        ("08:30", "08:30", 1440),
        ("12:15", "12:14", 1439),
    ],
)
def test_duration_examples(start, end, expected):
    assert calculate_duration_minutes(start, end) == expected


def test_duration_matches_forward_rule_for_sampled_pairs():
    times = [f"{h:02d}:{m:02d}" for h in range(0, 24, 5) for m in (0, 17, 59)]
    for start in times:
        for end in times:
            raw = _minutes(end) - _minutes(start)
            expected = raw if raw > 0 else raw + 1440
            duration = calculate_duration_minutes(start, end)
            assert duration == expected
            assert 0 < duration <= 1440


@pytest.mark.parametrize("start,end", [("9:00", "18:00"), ("09:00", "1800"), ("24:00", "06:00"), ("09:60", "10:00")])
def test_duration_rejects_malformed_times(start, end):
    with pytest.raises(ValidationError):
        calculate_duration_minutes(start, end)


def test_validate_accepts_camel_case_form_payload():
    shift_input = validate_shift_input(
        {"employeeId": 3, "workDate": "2024-03-01", "startTime": "09:00", "endTime": "17:00"}
    )
    assert shift_input.employee_id == 3
    assert shift_input.work_date == "2024-03-01"


@pytest.mark.parametrize(
    "payload",
    [
        {"employee_id": 0, "work_date": "2024-03-01", "start_time": "09:00", "end_time": "17:00"},
        {"employee_id": None, "work_date": "2024-03-01", "start_time": "09:00", "end_time": "17:00"},
        {"employee_id": -2, "work_date": "2024-03-01", "start_time": "09:00", "end_time": "17:00"},
        {"employee_id": 1, "work_date": "2024/03/01", "start_time": "09:00", "end_time": "17:00"},
        {"employee_id": 1, "work_date": "2024-02-30", "start_time": "09:00", "end_time": "17:00"},
        {"employee_id": 1, "work_date": "2024-03-01", "start_time": "9:00", "end_time": "17:00"},
        {"employee_id": 1, "work_date": "2024-03-01", "start_time": "09:00", "end_time": "17:00:00"},
        {"employee_id": 1, "work_date": "2024-03-01", "start_time": "09:00"},
    ],
)
def test_validate_rejects_bad_payloads(payload):
    with pytest.raises(ValidationError):
        validate_shift_input(payload)


def test_validation_error_is_a_value_error():
    with pytest.raises(ValueError):
        validate_shift_input({"employee_id": 1, "work_date": "bad", "start_time": "09:00", "end_time": "10:00"})
