"""Z-scores against the WHO SD curves.

The deviation is scaled by the distance between the median and the adjacent
SD curve on the side of the observation (SD1 above the median, SD1neg below),
since the WHO curves are not symmetric around the median.
"""
from __future__ import annotations

import math
from typing import Optional

import numpy as np

from .models import Gender, Metric
from .who_reference import WHOReference, get_who_reference


def _value_at(ages: np.ndarray, values: np.ndarray, age: float) -> float:
    hi = int(np.searchsorted(ages, age, side="left"))
    if ages[hi] == age:
        return float(values[hi])
    lo = hi - 1
    frac = (age - ages[lo]) / (ages[hi] - ages[lo])
    return float(values[lo] + frac * (values[hi] - values[lo]))


def z_score(metric, gender, age_in_months, observed,
            reference: Optional[WHOReference] = None) -> Optional[float]:
    """Z-score of ``observed`` for the given age, or None when it cannot be computed.

    No extrapolation: ages outside the table's covered range give None, as do
    a missing curve set and non-positive or non-finite observations.
    """
    if observed is None or age_in_months is None:
        return None
    observed = float(observed)
    age = float(age_in_months)
    if not (math.isfinite(observed) and observed > 0 and math.isfinite(age)):
        return None

    reference = reference or get_who_reference()
    df = reference.curve_set(Metric.parse(metric), Gender.parse(gender))
    if df is None or df.empty:
        return None

    ages = df["Month"].to_numpy(dtype=float)
    if age < ages[0] or age > ages[-1]:
        return None

    median = _value_at(ages, df["SD0"].to_numpy(dtype=float), age)
    band_column = "SD1" if observed >= median else "SD1neg"
    band = _value_at(ages, df[band_column].to_numpy(dtype=float), age)

    sd = abs(band - median)
    if sd == 0:
        return None
    return (observed - median) / sd


def round_z_score(z: Optional[float]) -> Optional[float]:
    return None if z is None else round(z, 2)


def format_z_score(z: Optional[float]) -> str:
    if z is None or (isinstance(z, float) and math.isnan(z)):
        return "N/A"
    return f"{z:.2f}"
