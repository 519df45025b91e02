from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional, Tuple

import pandas as pd

from . import config
from .errors import InvalidDateError


def parse_date(value: Any, field: str = "tanggal") -> date:
    """Parse a date, datetime, Timestamp or ISO 8601 string into a calendar date.

    Numbers and free-form strings such as ``"now"`` are rejected.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise InvalidDateError(f"Format {field} tidak valid: {value!r}")
    try:
        ts = pd.to_datetime(value.strip(), format="ISO8601")
    except (ValueError, TypeError, OverflowError) as e:
        raise InvalidDateError(f"Format {field} tidak valid: {value!r}") from e
    if pd.isna(ts):
        raise InvalidDateError(f"Format {field} tidak valid: {value!r}")
    return ts.date()


def age_in_months(dob: Any, as_of: Any) -> int:
    """Whole calendar months between birth and measurement, ignoring the day of month."""
    born = parse_date(dob, "tanggal lahir")
    measured = parse_date(as_of, "tanggal pengukuran")
    if measured < born:
        raise InvalidDateError("Tanggal pengukuran tidak boleh sebelum tanggal lahir")
    return (measured.year - born.year) * 12 + (measured.month - born.month)


def _years_after(d: date, years: int) -> date:
    try:
        return d.replace(year=d.year + years)
    except ValueError:
        # 29 February in a non-leap target year
        return date(d.year + years, 3, 1)


def validate_birth_date(dob: Any, today: Optional[date] = None) -> date:
    today = today or date.today()
    born = parse_date(dob, "tanggal lahir")
    if born > today:
        raise InvalidDateError("Tanggal lahir tidak boleh di masa depan")
    if today > _years_after(born, config.MAX_AGE_YEARS):
        raise InvalidDateError(f"Tanggal lahir lebih dari {config.MAX_AGE_YEARS} tahun yang lalu")
    return born


def validate_measurement_date(dob: Any, measured_on: Any,
                              today: Optional[date] = None) -> Tuple[date, date]:
    """Ingestion checks shared by the local and server write paths."""
    today = today or date.today()
    born = parse_date(dob, "tanggal lahir")
    measured = parse_date(measured_on, "tanggal pengukuran")
    if measured > today:
        raise InvalidDateError("Tanggal pengukuran tidak boleh di masa depan")
    if measured < born:
        raise InvalidDateError("Tanggal pengukuran tidak boleh sebelum tanggal lahir")
    if measured > _years_after(born, config.MAX_AGE_YEARS):
        raise InvalidDateError(
            f"Tanggal pengukuran lebih dari {config.MAX_AGE_YEARS} tahun setelah tanggal lahir"
        )
    return born, measured
