"""
Tests for the nutritional-status classifier.
Run: pytest tests/test_classifier.py -v
"""
import math

import numpy as np
import pytest

from growth_engine.models.classifier import (
    CUT_POINTS, HeadCircumferenceStatus, LengthForAgeStatus, WeightForAgeStatus,
    WeightForLengthStatus, classify, is_implausible, status_labels,
)
from growth_engine.models.errors import InvalidMeasurement, UnknownIndicatorOrSex
from growth_engine.models.lms_table import Indicator


class TestPartition:

    @pytest.mark.parametrize("indicator", list(Indicator))
    def test_buckets_are_contiguous(self, indicator):
        buckets = CUT_POINTS[indicator]
        assert buckets[0].lower == -math.inf
        assert buckets[-1].upper == math.inf
        for a, b in zip(buckets, buckets[1:]):
            assert a.upper == b.lower
            # exactly one side owns the shared bound
            assert a.upper_inclusive != b.lower_inclusive

    @pytest.mark.parametrize("indicator", list(Indicator))
    def test_every_z_has_exactly_one_label(self, indicator):
        grid = list(np.arange(-8, 8, 0.05)) + [-3, -2, 1, 2, 3, -1e9, 1e9]
        for z in grid:
            owners = [b.label for b in CUT_POINTS[indicator] if b.contains(z)]
            assert len(owners) == 1
            assert classify(indicator, z) is owners[0]

    def test_labels_are_ordered(self):
        assert status_labels("wfl") == list(WeightForLengthStatus)
        assert status_labels("hcfa") == list(HeadCircumferenceStatus)


class TestCutPoints:

    @pytest.mark.parametrize("z,expected", [
        (-3.01, WeightForAgeStatus.SEVERELY_UNDERWEIGHT),
        (-3.0, WeightForAgeStatus.UNDERWEIGHT),
        (-2.0, WeightForAgeStatus.NORMAL),
        (1.0, WeightForAgeStatus.NORMAL),
        (1.01, WeightForAgeStatus.OVERWEIGHT),
    ])
    def test_weight_for_age(self, z, expected):
        assert classify(Indicator.WEIGHT_FOR_AGE, z) is expected

    @pytest.mark.parametrize("z,expected", [
        (-4.0, LengthForAgeStatus.SEVERELY_STUNTED),
        (-2.5, LengthForAgeStatus.STUNTED),
        (3.0, LengthForAgeStatus.NORMAL),
        (3.2, LengthForAgeStatus.TALL),
    ])
    def test_length_for_age(self, z, expected):
        assert classify("lhfa", z) is expected

    @pytest.mark.parametrize("z,expected", [
        (-3.5, WeightForLengthStatus.SEVERELY_WASTED),
        (-2.1, WeightForLengthStatus.WASTED),
        (0.0, WeightForLengthStatus.NORMAL),
        (2.0, WeightForLengthStatus.POSSIBLE_RISK_OF_OVERWEIGHT),
        (2.5, WeightForLengthStatus.OVERWEIGHT),
        (3.0, WeightForLengthStatus.OVERWEIGHT),
        (3.01, WeightForLengthStatus.OBESE),
    ])
    def test_weight_for_length(self, z, expected):
        assert classify("wfl", z) is expected

    @pytest.mark.parametrize("z,expected", [
        (-3.1, HeadCircumferenceStatus.SEVERE_MICROCEPHALY),
        (-3.0, HeadCircumferenceStatus.MICROCEPHALY),
        (2.0, HeadCircumferenceStatus.NORMAL),
        (2.7, HeadCircumferenceStatus.MACROCEPHALY),
        (4.0, HeadCircumferenceStatus.SEVERE_MACROCEPHALY),
    ])
    def test_head_circumference(self, z, expected):
        assert classify("hcfa", z) is expected

    def test_non_finite_z(self):
        with pytest.raises(InvalidMeasurement):
            classify("wfa", math.nan)

    def test_unknown_indicator(self):
        with pytest.raises(UnknownIndicatorOrSex):
            classify("bmi", 0.0)


class TestImplausible:

    @pytest.mark.parametrize("indicator,z,flagged", [
        ("wfa", -6.1, True), ("wfa", -5.9, False), ("wfa", 5.1, True),
        ("lhfa", 5.5, False), ("lhfa", 6.5, True),
        ("wfl", -5.2, True), ("wfl", 4.9, False),
        ("hcfa", 5.0, False), ("hcfa", -5.01, True),
    ])
    def test_limits(self, indicator, z, flagged):
        assert is_implausible(indicator, z) is flagged
