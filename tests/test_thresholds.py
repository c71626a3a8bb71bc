"""Tests for the clinical threshold evaluator."""

import math

import pytest

from health_ingest.pipeline.thresholds import (
    HEART_RATE_MIN,
    SPO2_MIN,
    ThresholdEvaluator,
    evaluate,
)


class TestEvaluate:

    @pytest.mark.parametrize(
        "spo2, heart_rate, breach",
        [
            (97, 72, False),
            (85, 72, True),
            (97, 50, True),
            (85, 50, True),
            (90, 60, False),
            (89.9, 60, True),
            (90, 59.9, True),
        ],
    )
    def test_strict_lower_bounds(self, spo2, heart_rate, breach):
        assert evaluate(spo2, heart_rate) is breach

    def test_defaults(self):
        assert SPO2_MIN == 90
        assert HEART_RATE_MIN == 60

    def test_nan_never_breaches(self):
        assert evaluate(math.nan, math.nan) is False

    def test_negative_values_breach(self):
        assert evaluate(-1, 72) is True

    def test_lowering_a_value_never_clears_a_breach(self):
        for spo2 in range(80, 100):
            if evaluate(spo2, 72):
                assert evaluate(spo2 - 1, 72)
            if evaluate(97, spo2 - 30):
                assert evaluate(97, spo2 - 31)


class TestThresholdEvaluator:

    def test_matches_module_function_by_default(self):
        evaluator = ThresholdEvaluator()
        assert evaluator.evaluate(89, 72) is evaluate(89, 72)
        assert evaluator.evaluate(90, 60) is evaluate(90, 60)

    def test_custom_thresholds(self):
        evaluator = ThresholdEvaluator(spo2_min=95, heart_rate_min=50)
        assert evaluator.evaluate(94, 72) is True
        assert evaluator.evaluate(95, 55) is False
