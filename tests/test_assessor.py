"""
Tests for visit assessment (age, measuring position, per-indicator results).
Run: pytest tests/test_assessor.py -v
"""
from datetime import date

import pytest

from growth_engine.models.assessor import (
    VisitAssessor, adjust_length_for_position, age_in_months, recumbent_length,
)
from growth_engine.models.classifier import WeightForAgeStatus
from growth_engine.models.data_structures import VisitRecord
from growth_engine.models.errors import InvalidMeasurement
from growth_engine.models.lms_table import Indicator, Sex


@pytest.fixture(scope="module")
def assessor():
    return VisitAssessor()


class TestAge:

    def test_two_years(self):
        assert age_in_months(date(2024, 1, 1), date(2026, 1, 1)) == pytest.approx(731 / 30.4375)

    def test_same_day(self):
        assert age_in_months(date(2025, 3, 1), date(2025, 3, 1)) == 0.0

    def test_measurement_before_birth(self):
        with pytest.raises(InvalidMeasurement):
            age_in_months(date(2025, 3, 1), date(2025, 2, 1))


class TestPosition:

    def test_standing_infant_gets_length_correction(self):
        assert adjust_length_for_position(75.0, 12, "standing") == pytest.approx(75.7)

    def test_recumbent_toddler_gets_height_correction(self):
        assert adjust_length_for_position(90.0, 30, "terlentang") == pytest.approx(89.3)

    @pytest.mark.parametrize("age,position", [
        (12, "recumbent"), (30, "berdiri"), (12, None), (30, None),
    ])
    def test_standard_position_unchanged(self, age, position):
        assert adjust_length_for_position(80.0, age, position) == 80.0

    def test_unknown_position(self):
        with pytest.raises(InvalidMeasurement):
            adjust_length_for_position(80.0, 12, "sitting")

    def test_recumbent_length_for_weight_for_length(self):
        assert recumbent_length(86.0, 30, None) == pytest.approx(86.7)
        assert recumbent_length(86.0, 30, "recumbent") == 86.0
        assert recumbent_length(70.0, 10, None) == 70.0
        assert recumbent_length(70.0, 10, "standing") == pytest.approx(70.7)


class TestVisitAssessment:

    def test_full_visit(self, assessor):
        visit = VisitRecord(
            sex=Sex.FEMALE, birth_date=date(2024, 1, 1),
            measurement_date=date(2026, 1, 1),
            weight_kg=11.5, length_cm=86.0, head_circumference_cm=47.2,
            position="standing",
        )
        a = assessor.assess(visit)
        assert set(a.results) == set(Indicator)
        assert a.errors == {}
        assert a.results[Indicator.WEIGHT_FOR_AGE].status is WeightForAgeStatus.NORMAL
        assert a.results[Indicator.WEIGHT_FOR_LENGTH].x == pytest.approx(86.7)
        assert a.adjusted_length_cm == 86.0

    def test_partial_visit(self, assessor):
        visit = VisitRecord(
            sex=Sex.MALE, birth_date=date(2025, 1, 1),
            measurement_date=date(2025, 7, 1), weight_kg=7.9,
        )
        a = assessor.assess(visit)
        assert list(a.results) == [Indicator.WEIGHT_FOR_AGE]
        assert a.errors == {}

    def test_over_five_years_reports_out_of_domain(self, assessor):
        visit = VisitRecord(
            sex=Sex.MALE, birth_date=date(2020, 1, 1),
            measurement_date=date(2025, 11, 1),
            weight_kg=17.0, length_cm=105.0, head_circumference_cm=51.0,
        )
        a = assessor.assess(visit)
        for ind in (Indicator.WEIGHT_FOR_AGE, Indicator.LENGTH_HEIGHT_FOR_AGE,
                    Indicator.HEAD_CIRCUMFERENCE_FOR_AGE):
            assert a.errors[ind]["error"] == "out_of_domain"
            assert ind not in a.results
        assert Indicator.WEIGHT_FOR_LENGTH in a.results

    def test_invalid_weight_is_never_defaulted(self, assessor):
        visit = VisitRecord(
            sex=Sex.FEMALE, birth_date=date(2025, 1, 1),
            measurement_date=date(2025, 10, 1),
            weight_kg=0.0, length_cm=70.0,
        )
        a = assessor.assess(visit)
        assert a.errors[Indicator.WEIGHT_FOR_AGE]["error"] == "invalid_measurement"
        assert a.errors[Indicator.WEIGHT_FOR_LENGTH]["error"] == "invalid_measurement"
        assert Indicator.WEIGHT_FOR_AGE not in a.results
        assert Indicator.LENGTH_HEIGHT_FOR_AGE in a.results

    def test_to_dict(self, assessor):
        visit = VisitRecord(
            sex=Sex.FEMALE, birth_date=date(2024, 1, 1),
            measurement_date=date(2026, 1, 1), weight_kg=7.0,
        )
        d = assessor.assess(visit).to_dict()
        assert d["results"]["wfa"]["status"] == "severely-underweight"
        assert d["errors"] == {}
