"""Per-child aggregate statistics over the growth record history.

The reduction is order independent: sums are correctly rounded
(``math.fsum``) and date extrema use a total order, so any permutation of the
same records gives the same result.
"""
from __future__ import annotations

import math
from typing import Iterable, Union

from .age import parse_date
from .models import GrowthRecord, GrowthStats, StatsBlock

EMPTY_STATS = GrowthStats()


def _as_record(item: Union[GrowthRecord, dict]) -> GrowthRecord:
    return item if isinstance(item, GrowthRecord) else GrowthRecord.from_dict(item)


def _mean(values):
    return math.fsum(values) / len(values)


def aggregate(records: Iterable[Union[GrowthRecord, dict]]) -> GrowthStats:
    records = [_as_record(r) for r in records]
    if not records:
        return EMPTY_STATS

    heights = [r.height for r in records]
    weights = [r.weight for r in records]
    z_scores = [r.height_z_score for r in records if r.height_z_score is not None]
    dates = sorted((parse_date(r.date), r.date) for r in records)

    has_z = bool(z_scores)
    return GrowthStats(
        count=len(records),
        average=StatsBlock(
            height=_mean(heights),
            weight=_mean(weights),
            height_z_score=_mean(z_scores) if has_z else 0.0,
        ),
        minimum=StatsBlock(
            date=dates[0][1],
            height=min(heights),
            weight=min(weights),
            height_z_score=min(z_scores) if has_z else 0.0,
        ),
        maximum=StatsBlock(
            date=dates[-1][1],
            height=max(heights),
            weight=max(weights),
            height_z_score=max(z_scores) if has_z else 0.0,
        ),
    )
