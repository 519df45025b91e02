import math

import pytest

from growth_tracker import classify as classify_module
from growth_tracker.classify import (HEIGHT_FOR_AGE_BANDS, WEIGHT_FOR_AGE_BANDS,
                                     StatusCategory, classify, interpret, status_label)
from growth_tracker.models import Metric

S = StatusCategory


@pytest.mark.parametrize("z, expected", [
    (-4.0, S.SEVERELY_LOW),
    (-3.0, S.LOW),
    (-2.5, S.LOW),
    (-2.0, S.NORMAL),
    (-1.0, S.NORMAL),
    (0.0, S.NORMAL),
    (1.0, S.NORMAL),
    (2.0, S.NORMAL),
    (2.5, S.HIGH),
    (3.0, S.HIGH),
    (3.01, S.SEVERELY_HIGH),
])
def test_height_for_age_thresholds(z, expected):
    assert classify(Metric.HEIGHT, z) is expected


@pytest.mark.parametrize("z, expected", [
    (-3.5, S.SEVERELY_LOW),
    (-3.0, S.LOW),
    (-2.0, S.NORMAL),
    (-1.0, S.NORMAL),
    (1.0, S.NORMAL),
    (1.01, S.HIGH),
    (2.0, S.HIGH),
    (3.0, S.HIGH),
    (9.0, S.HIGH),
])
def test_weight_for_age_thresholds(z, expected):
    assert classify(Metric.WEIGHT, z) is expected


@pytest.mark.parametrize("metric", [Metric.HEIGHT, Metric.WEIGHT])
def test_null_and_nan_are_unknown(metric):
    assert classify(metric, None) is S.UNKNOWN
    assert classify(metric, math.nan) is S.UNKNOWN


@pytest.mark.parametrize("bands", [HEIGHT_FOR_AGE_BANDS, WEIGHT_FOR_AGE_BANDS])
def test_bands_partition_the_real_line(bands):
    def matches(z):
        hits = 0
        for lower, upper, lower_inc, upper_inc, _ in bands:
            above = z >= lower if lower_inc else z > lower
            below = z <= upper if upper_inc else z < upper
            hits += above and below
        return hits

    probes = [-math.inf, math.inf] + [x / 100 for x in range(-500, 501)]
    assert all(matches(z) == 1 for z in probes)


def test_tables_are_distinct():
    assert classify(Metric.HEIGHT, 1.5) is S.NORMAL
    assert classify(Metric.WEIGHT, 1.5) is S.HIGH


def test_labels():
    assert status_label(Metric.HEIGHT, S.SEVERELY_LOW) == "Sangat Pendek"
    assert status_label(Metric.HEIGHT, S.LOW) == "Pendek"
    assert status_label(Metric.HEIGHT, S.HIGH) == "Tinggi"
    assert status_label(Metric.HEIGHT, S.SEVERELY_HIGH) == "Sangat Tinggi"
    assert status_label(Metric.WEIGHT, S.HIGH) == "Risiko Berat Lebih"


def test_interpret():
    assert interpret(Metric.HEIGHT, -0.2413793) == {
        "category": "Normal", "label": "Normal", "zScore": -0.24, "display": "-0.24",
    }
    assert interpret(Metric.HEIGHT, None)["display"] == "N/A"
    assert interpret(Metric.HEIGHT, None)["category"] == "Unknown"


def test_gap_in_threshold_table_raises_value_error(monkeypatch):
    monkeypatch.setitem(classify_module._BANDS, Metric.HEIGHT, HEIGHT_FOR_AGE_BANDS[1:])
    with pytest.raises(ValueError):
        classify(Metric.HEIGHT, -5.0)
