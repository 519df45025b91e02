from __future__ import annotations

import bisect
import math
from datetime import date
from typing import Iterable, List, Optional

from .age import age_in_months, parse_date, validate_measurement_date
from .errors import ValidationError
from .models import Child, GrowthRecord, Metric
from .who_reference import WHOReference
from .zscore import z_score


def _positive(value, label: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{label} harus berupa angka") from e
    if not math.isfinite(number) or number <= 0:
        raise ValidationError(f"{label} harus lebih dari 0")
    return number


def validate_measurement(height, weight, head_circumference=None):
    """Return (height, weight, head_circumference) as floats or raise ValidationError."""
    height = _positive(height, "Tinggi badan")
    weight = _positive(weight, "Berat badan")
    if head_circumference is not None and head_circumference != "":
        head_circumference = _positive(head_circumference, "Lingkar kepala")
    else:
        head_circumference = None
    return height, weight, head_circumference


def build_growth_record(child: Child, measured_on, height, weight, head_circumference=None,
                        input_by=None, reference: Optional[WHOReference] = None,
                        today: Optional[date] = None) -> GrowthRecord:
    """Validate raw input and annotate it with age and height-for-age Z-score.

    Age is always derived from the child's date of birth; it is never taken
    from the caller. Both the server and the offline path go through here.
    """
    height, weight, head_circumference = validate_measurement(height, weight, head_circumference)
    _, measured = validate_measurement_date(child.dob, measured_on, today=today)
    age = age_in_months(child.dob, measured)
    return GrowthRecord(
        child_id=child.id,
        date=measured.isoformat(),
        height=height,
        weight=weight,
        head_circumference=head_circumference,
        age_in_months_at_record=age,
        height_z_score=z_score(Metric.HEIGHT, child.gender, age, height, reference=reference),
        input_by=input_by,
    )


def _date_key(record: GrowthRecord) -> date:
    return parse_date(record.date)


class GrowthRecordStore:
    """A child's measurement history, ascending by measurement date.

    Records with the same date keep insertion order.
    """

    def __init__(self, child: Child, records: Iterable[GrowthRecord] = (),
                 reference: Optional[WHOReference] = None):
        self.child = child
        self.reference = reference
        self._records: List[GrowthRecord] = []
        self._keys: List[date] = []
        for record in records:
            self.insert(record)

    def insert(self, record: GrowthRecord) -> GrowthRecord:
        key = _date_key(record)
        pos = bisect.bisect_right(self._keys, key)
        self._keys.insert(pos, key)
        self._records.insert(pos, record)
        return record

    def add(self, measured_on, height, weight, head_circumference=None, input_by=None,
            today: Optional[date] = None) -> GrowthRecord:
        record = build_growth_record(self.child, measured_on, height, weight,
                                     head_circumference=head_circumference, input_by=input_by,
                                     reference=self.reference, today=today)
        return self.insert(record)

    @property
    def records(self) -> tuple:
        return tuple(self._records)

    def latest(self) -> Optional[GrowthRecord]:
        return self._records[-1] if self._records else None

    def __len__(self):
        return len(self._records)

    def __iter__(self):
        return iter(self._records)

    def to_dicts(self) -> List[dict]:
        return [r.to_dict() for r in self._records]
