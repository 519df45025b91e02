from datetime import date, datetime

import pytest

from growth_tracker.age import (age_in_months, parse_date, validate_birth_date,
                                validate_measurement_date)
from growth_tracker.errors import InvalidDateError, ValidationError


def test_age_in_months_whole_months():
    assert age_in_months("2023-06-15", "2024-06-15") == 12
    assert age_in_months(date(2023, 6, 15), date(2023, 6, 15)) == 0


def test_age_ignores_day_of_month():
    # month buckets only: the 30th to the 1st of the next month is one month
    assert age_in_months("2024-01-30", "2024-02-01") == 1
    assert age_in_months("2024-01-01", "2024-01-31") == 0


def test_age_accepts_datetimes_and_iso_timestamps():
    assert age_in_months("2023-06-15T00:00:00.000Z", datetime(2024, 7, 1, 10, 30)) == 13


def test_age_rejects_measurement_before_birth():
    with pytest.raises(InvalidDateError):
        age_in_months("2024-06-15", "2024-06-14")


@pytest.mark.parametrize("bad", ["not-a-date", "", None, "2024-13-45"])
def test_age_rejects_unparsable_dates(bad):
    with pytest.raises(InvalidDateError):
        age_in_months(bad, "2024-06-15")


def test_invalid_date_is_a_validation_error():
    assert issubclass(InvalidDateError, ValidationError)


def test_age_is_monotonic_in_as_of():
    dob = date(2022, 3, 31)
    days = [date.fromordinal(dob.toordinal() + n) for n in range(0, 900, 7)]
    results = [age_in_months(dob, d) for d in days]
    assert all(a <= b for a, b in zip(results, results[1:]))


def test_parse_date_keeps_written_calendar_date():
    assert parse_date("2024-02-29T23:59:59+07:00") == date(2024, 2, 29)


def test_measurement_in_future_rejected():
    with pytest.raises(InvalidDateError):
        validate_measurement_date("2023-01-01", "2025-01-02", today=date(2025, 1, 1))


def test_measurement_more_than_hundred_years_after_birth_rejected():
    with pytest.raises(InvalidDateError):
        validate_measurement_date("1900-01-01", "2000-01-02", today=date(2025, 1, 1))
    born, measured = validate_measurement_date("1925-01-01", "2025-01-01", today=date(2025, 1, 1))
    assert (born, measured) == (date(1925, 1, 1), date(2025, 1, 1))


def test_birth_date_checks():
    today = date(2025, 1, 1)
    assert validate_birth_date("2024-02-29", today=today) == date(2024, 2, 29)
    with pytest.raises(InvalidDateError):
        validate_birth_date("2025-01-02", today=today)
    with pytest.raises(InvalidDateError):
        validate_birth_date("1900-01-01", today=today)


@pytest.mark.parametrize("bad", [20230615, 1686787200.0, "now", "today", "15/06/2023"])
def test_parse_date_accepts_only_iso_strings(bad):
    with pytest.raises(InvalidDateError):
        parse_date(bad)
