"""WHO child growth standard SD tables.

Tables follow the layout of the published WHO "z-scores" sheets: an age
column (``Month``) followed by ``SD3neg .. SD3``. They are read once per
process and shared read-only by every computation.
"""
from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Dict, List, Optional, Tuple

import pandas as pd

from . import config
from .models import Gender, Metric, WHOCurve, WHOCurvePoint

logger = logging.getLogger(__name__)

SD_COLUMNS = {
    -3: "SD3neg",
    -2: "SD2neg",
    -1: "SD1neg",
    0: "SD0",
    1: "SD1",
    2: "SD2",
    3: "SD3",
}
AGE_COLUMNS = ["Month", "Months"]
AGE_RANGE = "0-to-5-years"


def table_path(base_path: str, metric: Metric, gender: Gender, suffix: str) -> str:
    filename = f"{metric.value}_{gender.file_code}_{AGE_RANGE}_zscores{suffix}"
    return os.path.join(base_path, metric.value, filename)


def load_table(path: str) -> pd.DataFrame:
    """Read one SD table (.xlsx or .csv) into a frame indexed by the ``Month`` column."""
    if path.endswith(".xlsx"):
        df = pd.read_excel(path, engine="openpyxl")
    else:
        df = pd.read_csv(path)
    df.columns = [str(c).strip() for c in df.columns]

    age_col = next((name for name in AGE_COLUMNS if name in df.columns), None)
    if age_col is None:
        raise ValueError(f"{os.path.basename(path)} has no age column (expected one of {AGE_COLUMNS})")
    missing = set(SD_COLUMNS.values()) - set(df.columns)
    if missing:
        raise ValueError(f"{os.path.basename(path)} missing columns: {sorted(missing)}")

    df = df.rename(columns={age_col: "Month"})[["Month", *SD_COLUMNS.values()]]
    df = df.dropna().astype(float)
    return df.sort_values("Month").drop_duplicates("Month").reset_index(drop=True)


class WHOReference:
    """Curve sets keyed by (metric, gender)."""

    def __init__(self, tables: Dict[Tuple[Metric, Gender], pd.DataFrame]):
        self._tables = dict(tables)

    @classmethod
    def from_directory(cls, base_path: str) -> "WHOReference":
        tables = {}
        for metric in Metric:
            for gender in Gender:
                for suffix in (".xlsx", ".csv"):
                    path = table_path(base_path, metric, gender, suffix)
                    if os.path.exists(path):
                        tables[(metric, gender)] = load_table(path)
                        break
                else:
                    logger.warning("WHO table not found for %s/%s in %s", metric.value,
                                   gender.file_code, base_path)
        return cls(tables)

    @classmethod
    def from_rows(cls, rows: Dict[Tuple[Metric, Gender], List[dict]]) -> "WHOReference":
        """Build a reference from in-memory rows (``Month`` plus SD columns)."""
        tables = {}
        for key, records in rows.items():
            df = pd.DataFrame(records)
            tables[key] = df.astype(float).sort_values("Month").reset_index(drop=True)
        return cls(tables)

    def curve_set(self, metric: Metric, gender: Gender) -> Optional[pd.DataFrame]:
        return self._tables.get((metric, gender))

    def age_range(self, metric: Metric, gender: Gender) -> Optional[Tuple[float, float]]:
        df = self.curve_set(metric, gender)
        if df is None or df.empty:
            return None
        return float(df["Month"].min()), float(df["Month"].max())

    def curves(self, metric: Metric, gender: Gender) -> List[WHOCurve]:
        """All seven SD curves as chart-ready point lists (empty if the set is absent)."""
        df = self.curve_set(metric, gender)
        if df is None:
            return []
        result = []
        for z, column in SD_COLUMNS.items():
            points = tuple(
                WHOCurvePoint(age_in_months=float(age), value=float(value))
                for age, value in zip(df["Month"], df[column])
            )
            result.append(WHOCurve(z=z, points=points))
        return result

    def records(self, metric: Metric, gender: Gender) -> List[dict]:
        df = self.curve_set(metric, gender)
        return [] if df is None else df.to_dict("records")


@lru_cache(maxsize=None)
def get_who_reference(base_path: Optional[str] = None) -> WHOReference:
    """Process-wide reference, loaded on first use."""
    base_path = base_path or config.BASE_PATH
    logger.info("Loading WHO growth standards from %s", base_path)
    return WHOReference.from_directory(base_path)
