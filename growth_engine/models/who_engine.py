"""
WHO Child Growth Standards — LMS z-score computation engine.
Source: WHO Multicentre Growth Reference Study (MGRS, 2006)

The engine is a pure function layer over an immutable LMSReference: it holds
no mutable state, so a single instance is shared by every request/thread.
"""
import logging
import math
from functools import lru_cache
from typing import Iterator, List, Tuple

import numpy as np
from scipy import stats

from growth_engine.models.classifier import classify, is_implausible
from growth_engine.models.data_structures import (
    ClassificationResult, Measurement, ReferenceCurvePoint
)
from growth_engine.models.errors import (
    InvalidCurveRequest, InvalidMeasurement, OutOfDomain
)
from growth_engine.models.lms_table import (
    INDICATOR_SPECS, Indicator, LMSReference, LMSSeries, Sex,
    default_reference, parse_indicator, parse_sex,
)

logger = logging.getLogger(__name__)

CURVE_Z_SCORES = (-3, -2, -1, 0, 1, 2, 3)


# =============================================================================
# LMS transform
# =============================================================================

def lms_zscore(value: float, l: float, m: float, s: float) -> float:
    """
    WHO LMS z-score formula:
      If L != 0: Z = ((value/M)^L - 1) / (L*S)
      If L == 0: Z = ln(value/M) / S
    """
    if not math.isfinite(value) or value <= 0:
        raise InvalidMeasurement(f"Measurement must be a positive number, got {value}")
    if l == 0:
        return math.log(value / m) / s
    return ((value / m) ** l - 1) / (l * s)


def lms_value(z: float, l: float, m: float, s: float) -> float:
    """Inverse of lms_zscore: the measurement lying exactly z SDs from the median."""
    if l == 0:
        return m * math.exp(s * z)
    inner = 1 + l * s * z
    if inner <= 0:
        raise InvalidMeasurement(
            f"z={z} is outside the support of the LMS transform (L={l}, S={s})"
        )
    return m * inner ** (1.0 / l)


# =============================================================================
# Engine
# =============================================================================

class WHOZScoreEngine:
    """WHO Child Growth Standards z-score computation engine using LMS method."""

    def __init__(self, reference: LMSReference = None):
        self.reference = reference or default_reference()

    @staticmethod
    def _check_x(indicator: Indicator, x: float) -> float:
        try:
            x = float(x)
        except (TypeError, ValueError):
            raise InvalidMeasurement(f"{indicator.value}: x must be a number, got {x!r}") from None
        if not math.isfinite(x):
            raise InvalidMeasurement(f"{indicator.value}: x must be finite, got {x}")
        lo, hi = INDICATOR_SPECS[indicator].domain
        if x < lo or x > hi:
            raise OutOfDomain(indicator.value, x, (lo, hi))
        return x

    @staticmethod
    def _check_value(indicator: Indicator, value: float) -> float:
        spec = INDICATOR_SPECS[indicator]
        try:
            value = float(value)
        except (TypeError, ValueError):
            raise InvalidMeasurement(
                f"{spec.value_name} must be a number, got {value!r}"
            ) from None
        if not math.isfinite(value) or value <= 0:
            raise InvalidMeasurement(f"{spec.value_name} must be positive, got {value}")
        lo, hi = spec.sanity_range
        if value < lo or value > hi:
            raise InvalidMeasurement(
                f"{spec.value_name}={value:g} outside plausible range [{lo:g}, {hi:g}]"
            )
        return value

    @staticmethod
    def _interpolate_series(series: LMSSeries, x: float) -> Tuple[float, float, float]:
        i = int(np.searchsorted(series.x, x, side='left'))
        if i < len(series) and series.x[i] == x:
            # table node: literal row, no interpolation drift
            return float(series.l[i]), float(series.m[i]), float(series.s[i])
        x_lo, x_hi = float(series.x[i - 1]), float(series.x[i])
        lower = (float(series.l[i - 1]), float(series.m[i - 1]), float(series.s[i - 1]))
        # upper bracket approached from below: the length row at the length/height switch
        upper = series.left_limit(i)
        out = [v_lo + (v_hi - v_lo) * (x - x_lo) / (x_hi - x_lo)
               for v_lo, v_hi in zip(lower, upper)]
        return out[0], out[1], out[2]

    def interpolate(self, indicator, sex, x: float) -> Tuple[float, float, float]:
        """Linearly interpolated (L, M, S) at x; exact rows are returned unchanged."""
        indicator = parse_indicator(indicator)
        sex = parse_sex(sex)
        x = self._check_x(indicator, x)
        return self._interpolate_series(self.reference.get(indicator, sex), x)

    def compute_zscore(self, indicator, sex, x: float, value: float) -> float:
        indicator = parse_indicator(indicator)
        value = self._check_value(indicator, value)
        l, m, s = self.interpolate(indicator, sex, x)
        return lms_zscore(value, l, m, s)

    def zscore_to_value(self, indicator, sex, x: float, z: float) -> float:
        l, m, s = self.interpolate(indicator, sex, x)
        return lms_value(z, l, m, s)

    @staticmethod
    def zscore_to_percentile(z: float) -> float:
        return float(stats.norm.cdf(z) * 100)

    def get_median(self, indicator, sex, x: float) -> float:
        _, m, _ = self.interpolate(indicator, sex, x)
        return m

    def classify_measurement(self, indicator, sex, x: float,
                             value: float) -> ClassificationResult:
        indicator = parse_indicator(indicator)
        sex = parse_sex(sex)
        x = self._check_x(indicator, x)
        value = self._check_value(indicator, value)

        l, m, s = self._interpolate_series(self.reference.get(indicator, sex), x)
        z = lms_zscore(value, l, m, s)
        flagged = is_implausible(indicator, z)
        if flagged:
            logger.warning(
                "Implausible %s z-score %.2f (sex=%s, x=%g, value=%g)",
                indicator.value, z, sex.value, x, value,
            )
        return ClassificationResult(
            indicator=indicator, sex=sex, x=x, value=value,
            z_score=z, percentile=self.zscore_to_percentile(z),
            status=classify(indicator, z), implausible=flagged,
        )

    def classify(self, measurement: Measurement) -> ClassificationResult:
        return self.classify_measurement(
            measurement.indicator, measurement.sex, measurement.x, measurement.value
        )

    def generate_curve(self, indicator, sex, start: float, end: float,
                       step_count: int) -> "ReferenceCurve":
        return ReferenceCurve(self, indicator, sex, start, end, step_count)

    @property
    def available_indicators(self) -> list:
        return self.reference.indicators


class ReferenceCurve:
    """
    The seven SD curves (-3SD..+3SD) sampled at step_count + 1 evenly spaced
    points across [start, end].

    Validation happens on construction, so iteration never fails halfway.
    Iteration is lazy and restartable: each pass recomputes from the
    immutable table. Equal requests compare and hash equal, so callers can
    memoize on the curve object itself.
    """

    def __init__(self, engine: WHOZScoreEngine, indicator, sex,
                 start: float, end: float, step_count: int):
        indicator = parse_indicator(indicator)
        sex = parse_sex(sex)
        if isinstance(step_count, bool) or not isinstance(step_count, (int, np.integer)) \
                or step_count < 1:
            raise InvalidCurveRequest(f"step_count must be an integer >= 1, got {step_count!r}")
        try:
            start, end = float(start), float(end)
        except (TypeError, ValueError):
            raise InvalidCurveRequest(
                f"Curve bounds must be numbers, got {start!r}, {end!r}"
            ) from None
        if not (math.isfinite(start) and math.isfinite(end)) or start >= end:
            raise InvalidCurveRequest(f"Curve range must satisfy start < end, got [{start}, {end}]")
        lo, hi = INDICATOR_SPECS[indicator].domain
        if start < lo or end > hi:
            raise OutOfDomain(indicator.value, (start, end), (lo, hi))

        self._engine = engine
        self._series = engine.reference.get(indicator, sex)
        self.indicator = indicator
        self.sex = sex
        self.start = start
        self.end = end
        self.step_count = int(step_count)

    @property
    def key(self) -> tuple:
        return (self.indicator, self.sex, self.start, self.end, self.step_count)

    def __len__(self) -> int:
        return self.step_count + 1

    def __iter__(self) -> Iterator[ReferenceCurvePoint]:
        xs = np.clip(np.linspace(self.start, self.end, self.step_count + 1),
                     self.start, self.end)
        for x in xs:
            x = float(x)
            l, m, s = WHOZScoreEngine._interpolate_series(self._series, x)
            values = [lms_value(z, l, m, s) for z in CURVE_Z_SCORES]
            yield ReferenceCurvePoint(x, *values)

    def __eq__(self, other):
        if not isinstance(other, ReferenceCurve):
            return NotImplemented
        return self.key == other.key and self._series is other._series

    def __hash__(self):
        return hash(self.key)

    def __repr__(self):
        return (f"ReferenceCurve({self.indicator.value}, {self.sex.value}, "
                f"[{self.start:g}, {self.end:g}], steps={self.step_count})")


# =============================================================================
# External interface
# =============================================================================

@lru_cache(maxsize=None)
def default_engine() -> WHOZScoreEngine:
    return WHOZScoreEngine(default_reference())


def classify_measurement(indicator, sex, x: float, value: float) -> ClassificationResult:
    return default_engine().classify_measurement(indicator, sex, x, value)


def get_reference_curve(indicator, sex, start: float, end: float,
                        step_count: int) -> List[ReferenceCurvePoint]:
    return list(default_engine().generate_curve(indicator, sex, start, end, step_count))
