"""Nutritional status from a Z-score, per WHO convention.

Height-for-age and weight-for-age use separate threshold tables. Each band is
``(lower, upper, lower_inclusive, upper_inclusive, category)``; the boundary
value always belongs to the band closer to normal.
"""
from __future__ import annotations

import math
from enum import Enum
from typing import Optional

from .models import Metric
from .zscore import format_z_score, round_z_score

INF = math.inf


class StatusCategory(str, Enum):
    SEVERELY_LOW = "SeverelyLow"
    LOW = "Low"
    NORMAL = "Normal"
    HIGH = "High"
    SEVERELY_HIGH = "SeverelyHigh"
    UNKNOWN = "Unknown"


HEIGHT_FOR_AGE_BANDS = (
    (-INF, -3.0, True, False, StatusCategory.SEVERELY_LOW),
    (-3.0, -2.0, True, False, StatusCategory.LOW),
    (-2.0, 2.0, True, True, StatusCategory.NORMAL),
    (2.0, 3.0, False, True, StatusCategory.HIGH),
    (3.0, INF, False, True, StatusCategory.SEVERELY_HIGH),
)

WEIGHT_FOR_AGE_BANDS = (
    (-INF, -3.0, True, False, StatusCategory.SEVERELY_LOW),
    (-3.0, -2.0, True, False, StatusCategory.LOW),
    (-2.0, 1.0, True, True, StatusCategory.NORMAL),
    (1.0, INF, False, True, StatusCategory.HIGH),
)

HEIGHT_FOR_AGE_LABELS = {
    StatusCategory.SEVERELY_LOW: "Sangat Pendek",
    StatusCategory.LOW: "Pendek",
    StatusCategory.NORMAL: "Normal",
    StatusCategory.HIGH: "Tinggi",
    StatusCategory.SEVERELY_HIGH: "Sangat Tinggi",
    StatusCategory.UNKNOWN: "Data Tidak Tersedia",
}

WEIGHT_FOR_AGE_LABELS = {
    StatusCategory.SEVERELY_LOW: "Berat Badan Sangat Kurang",
    StatusCategory.LOW: "Berat Badan Kurang",
    StatusCategory.NORMAL: "Normal",
    StatusCategory.HIGH: "Risiko Berat Lebih",
    StatusCategory.UNKNOWN: "Data Tidak Tersedia",
}

_BANDS = {Metric.HEIGHT: HEIGHT_FOR_AGE_BANDS, Metric.WEIGHT: WEIGHT_FOR_AGE_BANDS}
_LABELS = {Metric.HEIGHT: HEIGHT_FOR_AGE_LABELS, Metric.WEIGHT: WEIGHT_FOR_AGE_LABELS}


def _in_band(z: float, lower: float, upper: float, lower_inc: bool, upper_inc: bool) -> bool:
    above = z >= lower if lower_inc else z > lower
    below = z <= upper if upper_inc else z < upper
    return above and below


def classify(metric, z: Optional[float]) -> StatusCategory:
    if z is None or math.isnan(z):
        return StatusCategory.UNKNOWN
    for lower, upper, lower_inc, upper_inc, category in _BANDS[Metric.parse(metric)]:
        if _in_band(z, lower, upper, lower_inc, upper_inc):
            return category
    raise ValueError(f"threshold table does not cover z={z}")


def status_label(metric, category: StatusCategory) -> str:
    return _LABELS[Metric.parse(metric)][category]


def interpret(metric, z: Optional[float]) -> dict:
    """Category, display label and rounded Z-score for presentation."""
    category = classify(metric, z)
    return {
        "category": category.value,
        "label": status_label(metric, category),
        "zScore": round_z_score(z),
        "display": format_z_score(z),
    }
