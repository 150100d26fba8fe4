"""
Visit assessment: turns one posyandu measurement visit into the four
indicator results the dashboard stores (BB/U, TB/U, BB/TB, LK/U).

- Age at measurement is derived from the two dates (WHO: days / 30.4375)
- Length/height is corrected for measuring position (±0.7 cm)
- Per-indicator failures are reported, never dropped or defaulted to normal
"""
import logging
from datetime import date
from typing import Optional

from config.settings import (
    AGE_DAYS_PER_MONTH, LENGTH_HEIGHT_SWITCH_MONTHS, POSITION_ADJUSTMENT_CM,
)
from growth_engine.models.data_structures import VisitAssessment, VisitRecord
from growth_engine.models.errors import GrowthStandardsError, InvalidMeasurement
from growth_engine.models.lms_table import Indicator, parse_sex
from growth_engine.models.who_engine import WHOZScoreEngine, default_engine

logger = logging.getLogger(__name__)

RECUMBENT = 'recumbent'
STANDING = 'standing'

_POSITION_ALIASES = {
    'recumbent': RECUMBENT, 'lying': RECUMBENT, 'length': RECUMBENT,
    'terlentang': RECUMBENT,
    'standing': STANDING, 'height': STANDING, 'berdiri': STANDING,
}


def parse_position(position: Optional[str]) -> Optional[str]:
    if position is None or position == '':
        return None
    key = str(position).strip().lower()
    if key not in _POSITION_ALIASES:
        raise InvalidMeasurement(f"Unknown measuring position {position!r}")
    return _POSITION_ALIASES[key]


def age_in_months(birth_date: date, measurement_date: date) -> float:
    days = (measurement_date - birth_date).days
    if days < 0:
        raise InvalidMeasurement(
            f"Measurement date {measurement_date} is before birth date {birth_date}"
        )
    return days / AGE_DAYS_PER_MONTH


def _standard_position(age_months: float) -> str:
    return RECUMBENT if age_months < LENGTH_HEIGHT_SWITCH_MONTHS else STANDING


def adjust_length_for_position(length_cm: float, age_months: float,
                               position: Optional[str]) -> float:
    """Convert to the position the length/height-for-age table expects at this age."""
    position = parse_position(position)
    expected = _standard_position(age_months)
    if position is None or position == expected:
        return length_cm
    if expected == RECUMBENT:
        return length_cm + POSITION_ADJUSTMENT_CM
    return length_cm - POSITION_ADJUSTMENT_CM


def recumbent_length(length_cm: float, age_months: float,
                     position: Optional[str]) -> float:
    """Recumbent-length equivalent, the x-axis of the weight-for-length table."""
    position = parse_position(position) or _standard_position(age_months)
    if position == STANDING:
        return length_cm + POSITION_ADJUSTMENT_CM
    return length_cm


class VisitAssessor:
    """Computes every indicator whose inputs are present on a visit."""

    def __init__(self, who_engine: WHOZScoreEngine = None):
        self.who_engine = who_engine or default_engine()

    def _try(self, assessment: VisitAssessment, indicator: Indicator,
             sex, x: float, value: float):
        try:
            assessment.results[indicator] = self.who_engine.classify_measurement(
                indicator, sex, x, value
            )
        except GrowthStandardsError as e:
            logger.debug("Visit indicator %s failed: %s", indicator.value, e)
            assessment.errors[indicator] = e.to_dict()

    def assess(self, visit: VisitRecord) -> VisitAssessment:
        sex = parse_sex(visit.sex)
        age = age_in_months(visit.birth_date, visit.measurement_date)
        position = parse_position(visit.position)
        assessment = VisitAssessment(age_months=age)

        if visit.length_cm is not None:
            assessment.adjusted_length_cm = round(
                adjust_length_for_position(visit.length_cm, age, position), 2
            )

        if visit.weight_kg is not None:
            self._try(assessment, Indicator.WEIGHT_FOR_AGE, sex, age, visit.weight_kg)

        if visit.length_cm is not None:
            self._try(assessment, Indicator.LENGTH_HEIGHT_FOR_AGE, sex, age,
                      assessment.adjusted_length_cm)

        if visit.weight_kg is not None and visit.length_cm is not None:
            self._try(assessment, Indicator.WEIGHT_FOR_LENGTH, sex,
                      recumbent_length(visit.length_cm, age, position),
                      visit.weight_kg)

        if visit.head_circumference_cm is not None:
            self._try(assessment, Indicator.HEAD_CIRCUMFERENCE_FOR_AGE, sex, age,
                      visit.head_circumference_cm)

        return assessment
