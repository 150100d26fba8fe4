"""
Data structures exchanged with the growth standards engine.
All of them are plain data so REST handlers and chart code can consume them.
"""
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, Optional

from growth_engine.models.lms_table import Indicator, Sex


@dataclass(frozen=True)
class Measurement:
    indicator: Indicator
    sex: Sex
    x: float      # age in months, or length in cm for weight-for-length
    value: float


@dataclass(frozen=True)
class ClassificationResult:
    indicator: Indicator
    sex: Sex
    x: float
    value: float
    z_score: float
    percentile: float
    status: Enum
    implausible: bool = False

    def to_dict(self) -> dict:
        return {
            'indicator': self.indicator.value,
            'sex': self.sex.value,
            'x': self.x,
            'value': self.value,
            'z_score': round(self.z_score, 3),
            'percentile': round(self.percentile, 1),
            'status': self.status.value,
            'implausible': self.implausible,
        }


@dataclass(frozen=True)
class ReferenceCurvePoint:
    x: float
    sd3neg: float
    sd2neg: float
    sd1neg: float
    median: float
    sd1pos: float
    sd2pos: float
    sd3pos: float

    def to_dict(self) -> dict:
        return {
            'x': self.x,
            'sd3neg': self.sd3neg, 'sd2neg': self.sd2neg, 'sd1neg': self.sd1neg,
            'median': self.median,
            'sd1pos': self.sd1pos, 'sd2pos': self.sd2pos, 'sd3pos': self.sd3pos,
        }


@dataclass(frozen=True)
class VisitRecord:
    """One posyandu visit as recorded by the dashboard (pengukuran)."""
    sex: Sex
    birth_date: date
    measurement_date: date
    weight_kg: Optional[float] = None
    length_cm: Optional[float] = None
    head_circumference_cm: Optional[float] = None
    position: Optional[str] = None  # 'recumbent' / 'standing'; None = as standard


@dataclass
class VisitAssessment:
    age_months: float
    adjusted_length_cm: Optional[float] = None
    results: Dict[Indicator, ClassificationResult] = field(default_factory=dict)
    errors: Dict[Indicator, dict] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            'age_months': round(self.age_months, 2),
            'adjusted_length_cm': self.adjusted_length_cm,
            'results': {
                ind.value: r.to_dict() for ind, r in self.results.items()
            },
            'errors': {ind.value: e for ind, e in self.errors.items()},
        }
