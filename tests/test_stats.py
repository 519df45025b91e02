import itertools

import pytest

from growth_tracker.models import GrowthRecord, GrowthStats
from growth_tracker.stats import aggregate


def record(day, height, weight, z):
    return GrowthRecord(child_id=1, date=f"2024-{day}", height=height, weight=weight,
                        age_in_months_at_record=12, height_z_score=z)


RECORDS = [
    record("03-01", 70.1, 8.3, -0.1),
    record("01-15", 68.2, 7.9, None),
    record("06-30", 74.3, 9.2, 0.2),
    record("05-01", 72.7, 8.8, 0.3),
]


def test_empty_records_give_zero_sentinel():
    stats = aggregate([])
    assert stats.count == 0
    assert stats.to_dict() == {
        "_count": {"_all": 0},
        "_avg": {"height": 0.0, "weight": 0.0, "heightZScore": 0.0},
        "_min": {"date": "", "height": 0.0, "weight": 0.0, "heightZScore": 0.0},
        "_max": {"date": "", "height": 0.0, "weight": 0.0, "heightZScore": 0.0},
    }


def test_aggregate_values():
    stats = aggregate(RECORDS)
    assert stats.count == 4
    assert stats.average.height == pytest.approx((70.1 + 68.2 + 74.3 + 72.7) / 4)
    assert stats.average.weight == pytest.approx((8.3 + 7.9 + 9.2 + 8.8) / 4)
    assert stats.minimum.date == "2024-01-15"
    assert stats.maximum.date == "2024-06-30"
    assert stats.minimum.height == 68.2
    assert stats.maximum.weight == 9.2


def test_z_score_statistics_skip_null_records():
    stats = aggregate(RECORDS)
    assert stats.average.height_z_score == pytest.approx(0.4 / 3)
    assert stats.minimum.height_z_score == -0.1
    assert stats.maximum.height_z_score == 0.3


def test_all_null_z_scores_fall_back_to_zero():
    stats = aggregate([record("01-01", 70.0, 8.0, None)])
    assert stats.to_dict()["_avg"] == {"height": 70.0, "weight": 8.0, "heightZScore": 0.0}
    assert stats.minimum.height_z_score == 0.0
    assert stats.maximum.height_z_score == 0.0
    assert stats.average.height == 70.0


def test_order_independent():
    expected = aggregate(RECORDS).to_dict()
    for perm in itertools.permutations(RECORDS):
        assert aggregate(perm).to_dict() == expected


def test_accepts_json_records():
    stats = aggregate([r.to_dict() for r in RECORDS])
    assert stats == aggregate(RECORDS)


def test_stats_round_trip_through_json():
    stats = aggregate(RECORDS)
    assert GrowthStats.from_dict(stats.to_dict()) == stats
