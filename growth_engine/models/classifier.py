"""
Nutritional-status classification from WHO z-scores.

Cut points follow the WHO Child Growth Standards as adopted for posyandu
reporting (Permenkes RI No. 2/2020). Each indicator owns an ordered list of
buckets that partitions the real line; adding an indicator is a table
change only.
"""
import bisect
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Tuple

from growth_engine.models.errors import InvalidMeasurement
from growth_engine.models.lms_table import Indicator, parse_indicator

logger = logging.getLogger(__name__)

INF = math.inf


class WeightForAgeStatus(str, Enum):
    SEVERELY_UNDERWEIGHT = "severely-underweight"
    UNDERWEIGHT = "underweight"
    NORMAL = "normal"
    OVERWEIGHT = "overweight"


class LengthForAgeStatus(str, Enum):
    SEVERELY_STUNTED = "severely-stunted"
    STUNTED = "stunted"
    NORMAL = "normal"
    TALL = "tall"


class WeightForLengthStatus(str, Enum):
    SEVERELY_WASTED = "severely-wasted"
    WASTED = "wasted"
    NORMAL = "normal"
    POSSIBLE_RISK_OF_OVERWEIGHT = "possible-risk-of-overweight"
    OVERWEIGHT = "overweight"
    OBESE = "obese"


class HeadCircumferenceStatus(str, Enum):
    SEVERE_MICROCEPHALY = "severe-microcephaly"
    MICROCEPHALY = "microcephaly"
    NORMAL = "normal"
    MACROCEPHALY = "macrocephaly"
    SEVERE_MACROCEPHALY = "severe-macrocephaly"


@dataclass(frozen=True)
class Bucket:
    lower: float
    upper: float
    label: Enum
    lower_inclusive: bool = True
    upper_inclusive: bool = False

    def contains(self, z: float) -> bool:
        above = z >= self.lower if self.lower_inclusive else z > self.lower
        below = z <= self.upper if self.upper_inclusive else z < self.upper
        return above and below


def _below_median(lower, upper, label):
    return Bucket(lower, upper, label, lower_inclusive=True, upper_inclusive=False)


def _above_median(lower, upper, label):
    return Bucket(lower, upper, label, lower_inclusive=False, upper_inclusive=True)


# Below the normal band the lower bound is closed (-3 <= z < -2); the normal
# band is closed on both ends; above it the upper bound is closed (+1 < z <= +2).
CUT_POINTS: Mapping[Indicator, Tuple[Bucket, ...]] = {
    Indicator.WEIGHT_FOR_AGE: (
        _below_median(-INF, -3, WeightForAgeStatus.SEVERELY_UNDERWEIGHT),
        _below_median(-3, -2, WeightForAgeStatus.UNDERWEIGHT),
        Bucket(-2, 1, WeightForAgeStatus.NORMAL, True, True),
        _above_median(1, INF, WeightForAgeStatus.OVERWEIGHT),
    ),
    Indicator.LENGTH_HEIGHT_FOR_AGE: (
        _below_median(-INF, -3, LengthForAgeStatus.SEVERELY_STUNTED),
        _below_median(-3, -2, LengthForAgeStatus.STUNTED),
        Bucket(-2, 3, LengthForAgeStatus.NORMAL, True, True),
        _above_median(3, INF, LengthForAgeStatus.TALL),
    ),
    Indicator.WEIGHT_FOR_LENGTH: (
        _below_median(-INF, -3, WeightForLengthStatus.SEVERELY_WASTED),
        _below_median(-3, -2, WeightForLengthStatus.WASTED),
        Bucket(-2, 1, WeightForLengthStatus.NORMAL, True, True),
        _above_median(1, 2, WeightForLengthStatus.POSSIBLE_RISK_OF_OVERWEIGHT),
        _above_median(2, 3, WeightForLengthStatus.OVERWEIGHT),
        _above_median(3, INF, WeightForLengthStatus.OBESE),
    ),
    Indicator.HEAD_CIRCUMFERENCE_FOR_AGE: (
        _below_median(-INF, -3, HeadCircumferenceStatus.SEVERE_MICROCEPHALY),
        _below_median(-3, -2, HeadCircumferenceStatus.MICROCEPHALY),
        Bucket(-2, 2, HeadCircumferenceStatus.NORMAL, True, True),
        _above_median(2, 3, HeadCircumferenceStatus.MACROCEPHALY),
        _above_median(3, INF, HeadCircumferenceStatus.SEVERE_MACROCEPHALY),
    ),
}

# WHO Anthro flagging limits; beyond these the value is most likely a data
# entry error. Flagging annotates, it never suppresses the label.
IMPLAUSIBLE_LIMITS: Mapping[Indicator, Tuple[float, float]] = {
    Indicator.WEIGHT_FOR_AGE: (-6.0, 5.0),
    Indicator.LENGTH_HEIGHT_FOR_AGE: (-6.0, 6.0),
    Indicator.WEIGHT_FOR_LENGTH: (-5.0, 5.0),
    Indicator.HEAD_CIRCUMFERENCE_FOR_AGE: (-5.0, 5.0),
}


def _check_z(z: float) -> float:
    z = float(z)
    if not math.isfinite(z):
        raise InvalidMeasurement(f"z-score must be finite, got {z}")
    return z


def classify(indicator, z: float) -> Enum:
    """Map a z-score to the indicator's status label (binary search over buckets)."""
    indicator = parse_indicator(indicator)
    z = _check_z(z)
    buckets = CUT_POINTS[indicator]
    uppers = [b.upper for b in buckets]
    i = bisect.bisect_left(uppers, z)
    # z equal to a bound belongs to whichever neighbour closes over it
    if i < len(buckets) - 1 and z == uppers[i] and not buckets[i].upper_inclusive:
        i += 1
    return buckets[i].label


def is_implausible(indicator, z: float) -> bool:
    indicator = parse_indicator(indicator)
    z = _check_z(z)
    lo, hi = IMPLAUSIBLE_LIMITS[indicator]
    return z < lo or z > hi


def status_labels(indicator) -> list:
    """All labels of an indicator, ordered from the lowest z band upwards."""
    return [b.label for b in CUT_POINTS[parse_indicator(indicator)]]
