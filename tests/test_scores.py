"""Tests for utils.scores — clamping and judge-number coercion."""

from __future__ import annotations

import math

from deep_research_judge.utils.scores import clamp_unit, coerce_scores, coerce_unit


class TestClampUnit:
    def test_in_range_unchanged(self):
        assert clamp_unit(0.42) == 0.42

    def test_clamps_both_ends(self):
        assert clamp_unit(1.4) == 1.0
        assert clamp_unit(-0.2) == 0.0

    def test_nan_maps_to_zero(self):
        assert clamp_unit(math.nan) == 0.0


class TestCoerceUnit:
    def test_int_and_float(self):
        assert coerce_unit(1) == 1.0
        assert coerce_unit(0.5) == 0.5

    def test_rejects_non_numbers(self):
        assert coerce_unit("0.8") is None
        assert coerce_unit(None) is None
        assert coerce_unit(True) is None
        assert coerce_unit(math.nan) is None


class TestCoerceScores:
    def test_filters_and_clamps(self):
        raw = {"a": 1.4, "b": -0.2, "c": "high", "d": 0.6}
        assert coerce_scores(raw) == {"a": 1.0, "b": 0.0, "d": 0.6}

    def test_non_mapping(self):
        assert coerce_scores([0.5]) == {}
        assert coerce_scores(None) == {}
