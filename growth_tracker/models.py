from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional


class Gender(str, Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"

    @classmethod
    def parse(cls, value: Any) -> "Gender":
        """Accept MALE/FEMALE plus the L/P, M/F and Boys/Girls spellings."""
        if isinstance(value, cls):
            return value
        key = str(value or "").strip().upper()
        aliases = {
            "MALE": cls.MALE, "M": cls.MALE, "L": cls.MALE, "BOYS": cls.MALE, "BOY": cls.MALE,
            "FEMALE": cls.FEMALE, "F": cls.FEMALE, "P": cls.FEMALE, "GIRLS": cls.FEMALE,
            "GIRL": cls.FEMALE,
        }
        if key not in aliases:
            raise ValueError(f"Unknown gender: {value!r}")
        return aliases[key]

    @property
    def file_code(self) -> str:
        return "boys" if self is Gender.MALE else "girls"


class Metric(str, Enum):
    HEIGHT = "lhfa"
    WEIGHT = "wfa"

    @classmethod
    def parse(cls, value: Any) -> "Metric":
        if isinstance(value, cls):
            return value
        key = str(value or "").strip().lower()
        aliases = {"lhfa": cls.HEIGHT, "height": cls.HEIGHT, "wfa": cls.WEIGHT, "weight": cls.WEIGHT}
        if key not in aliases:
            raise ValueError(f"Unknown metric: {value!r}")
        return aliases[key]


def _float_or_none(value: Any) -> Optional[float]:
    if value is None:
        return None
    return float(value)


@dataclass(frozen=True)
class Child:
    id: int
    name: str
    dob: str
    gender: Gender
    nik: str = ""
    user_id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "dob": self.dob,
            "nik": self.nik,
            "gender": self.gender.value,
            "userId": self.user_id,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Child":
        return cls(
            id=int(data["id"]),
            name=data.get("name", ""),
            dob=str(data.get("dob") or data.get("birthDate") or ""),
            gender=Gender.parse(data.get("gender")),
            nik=str(data.get("nik") or ""),
            user_id=data.get("userId"),
            created_at=data.get("createdAt", ""),
            updated_at=data.get("updatedAt", ""),
        )


@dataclass(frozen=True)
class Parent:
    id: int
    name: str
    email: str

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "email": self.email}

    @classmethod
    def from_dict(cls, data: dict) -> "Parent":
        return cls(id=int(data["id"]), name=data.get("name", ""), email=data.get("email", ""))


@dataclass(frozen=True)
class GrowthRecord:
    """One measurement of a child, annotated with age and height-for-age Z-score."""

    child_id: int
    date: str
    height: float
    weight: float
    age_in_months_at_record: int
    height_z_score: Optional[float] = None
    head_circumference: Optional[float] = None
    id: Optional[int] = None
    input_by: Optional[int] = None
    created_at: str = ""

    def with_identity(self, record_id: int, created_at: str) -> "GrowthRecord":
        return replace(self, id=record_id, created_at=created_at)

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "childId": self.child_id,
            "date": self.date,
            "height": self.height,
            "weight": self.weight,
            "ageInMonthsAtRecord": self.age_in_months_at_record,
            "heightZScore": self.height_z_score,
            "inputBy": self.input_by,
            "createdAt": self.created_at,
        }
        if self.head_circumference is not None:
            data["headCircumference"] = self.head_circumference
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "GrowthRecord":
        return cls(
            id=data.get("id"),
            child_id=int(data["childId"]),
            date=str(data["date"]),
            height=float(data["height"]),
            weight=float(data["weight"]),
            age_in_months_at_record=int(data["ageInMonthsAtRecord"]),
            height_z_score=_float_or_none(data.get("heightZScore")),
            head_circumference=_float_or_none(data.get("headCircumference")),
            input_by=data.get("inputBy"),
            created_at=data.get("createdAt", ""),
        )


@dataclass(frozen=True)
class StatsBlock:
    date: str = ""
    height: float = 0.0
    weight: float = 0.0
    height_z_score: float = 0.0

    def to_dict(self, include_date: bool = True) -> dict:
        data = {"height": self.height, "weight": self.weight, "heightZScore": self.height_z_score}
        if include_date:
            data = {"date": self.date, **data}
        return data

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "StatsBlock":
        data = data or {}
        return cls(
            date=data.get("date") or "",
            height=float(data.get("height") or 0.0),
            weight=float(data.get("weight") or 0.0),
            height_z_score=float(data.get("heightZScore") or 0.0),
        )


@dataclass(frozen=True)
class GrowthStats:
    count: int = 0
    average: StatsBlock = field(default_factory=StatsBlock)
    minimum: StatsBlock = field(default_factory=StatsBlock)
    maximum: StatsBlock = field(default_factory=StatsBlock)

    def to_dict(self) -> dict:
        return {
            "_count": {"_all": self.count},
            "_avg": self.average.to_dict(include_date=False),
            "_min": self.minimum.to_dict(),
            "_max": self.maximum.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "GrowthStats":
        return cls(
            count=int((data.get("_count") or {}).get("_all") or 0),
            average=StatsBlock.from_dict(data.get("_avg")),
            minimum=StatsBlock.from_dict(data.get("_min")),
            maximum=StatsBlock.from_dict(data.get("_max")),
        )


@dataclass(frozen=True)
class WHOCurvePoint:
    age_in_months: float
    value: float

    def to_dict(self) -> dict:
        return {"ageInMonths": self.age_in_months, "value": self.value}


@dataclass(frozen=True)
class WHOCurve:
    z: int
    points: tuple

    def to_dict(self) -> dict:
        return {"z": self.z, "points": [p.to_dict() for p in self.points]}


def curve_from_dict(data: dict) -> WHOCurve:
    points = tuple(
        WHOCurvePoint(age_in_months=float(p["ageInMonths"]), value=float(p["value"]))
        for p in data.get("points", [])
    )
    return WHOCurve(z=int(data["z"]), points=points)


@dataclass(frozen=True)
class GrowthChart:
    records: tuple
    who_curves: tuple

    def to_dict(self) -> dict:
        return {
            "records": [r.to_dict() for r in self.records],
            "whoCurves": [c.to_dict() for c in self.who_curves],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "GrowthChart":
        return cls(
            records=tuple(GrowthRecord.from_dict(r) for r in data.get("records", [])),
            who_curves=tuple(curve_from_dict(c) for c in data.get("whoCurves", [])),
        )
