"""Property-based tests for regime confidence and regime multiplier.

Tests validate:
- Property 1: Confidence is bounded in [0, 1]
- Property 2: Below the confidence floor the regime has no effect
- Property 3: At full confidence the multiplier equals the regime target
- Property 4: The multiplier interpolates between 1.0 and the target
"""

from dataclasses import replace

import pytest
from hypothesis import given, strategies as st, settings

from adaptive_sizing.config import Configuration
from adaptive_sizing.models import RegimeLabel, RegimeSignal
from adaptive_sizing.sizing.regime import (
    DEVIATION_SATURATION,
    RegimeMultiplier,
    regime_confidence,
)


class TestRegimeConfidence:
    """Tests for Property 1: Confidence is bounded in [0, 1]."""

    @given(deviation=st.floats(allow_nan=True, allow_infinity=True))
    @settings(max_examples=200)
    def test_confidence_always_in_unit_interval(self, deviation):
        """Any deviation, including NaN and infinity, maps into [0, 1]."""
        confidence = regime_confidence(deviation)
        assert 0.0 <= confidence <= 1.0

    def test_zero_deviation_has_zero_confidence(self):
        assert regime_confidence(0.0) == 0.0

    @pytest.mark.parametrize("deviation", [0.01, -0.01, 0.012, -0.5, 3.0])
    def test_one_percent_deviation_saturates(self, deviation):
        """A 1% absolute deviation (0.01) or more gives full confidence."""
        assert regime_confidence(deviation) == 1.0

    def test_half_percent_deviation_is_half_confidence(self):
        assert regime_confidence(0.005) == pytest.approx(0.5)
        assert regime_confidence(-0.005) == pytest.approx(0.5)

    @given(deviation=st.floats(min_value=-DEVIATION_SATURATION, max_value=DEVIATION_SATURATION))
    @settings(max_examples=100)
    def test_confidence_is_symmetric(self, deviation):
        assert regime_confidence(deviation) == regime_confidence(-deviation)

    def test_non_finite_deviation_has_zero_confidence(self):
        assert regime_confidence(float("nan")) == 0.0
        assert regime_confidence(None) == 0.0


class TestConfidenceFloor:
    """Tests for Property 2: Below the floor the regime has no effect."""

    @given(
        label=st.sampled_from(list(RegimeLabel)),
        confidence=st.floats(min_value=0.0, max_value=0.3, exclude_max=True),
    )
    @settings(max_examples=200)
    def test_below_floor_is_exactly_neutral(self, label, confidence):
        regime = RegimeMultiplier(Configuration())
        assert regime.calculate(label, confidence) == 1.0

    @given(confidence=st.floats(min_value=0.0, max_value=1.0))
    @settings(max_examples=100)
    def test_missing_label_is_neutral(self, confidence):
        regime = RegimeMultiplier(Configuration())
        assert regime.calculate(None, confidence) == 1.0

    def test_disabled_regime_scaling_is_neutral(self):
        config = replace(Configuration(), enable_regime_scaling=False)
        regime = RegimeMultiplier(config)
        assert regime.calculate(RegimeLabel.BULL, 1.0) == 1.0
        assert regime.from_signal(RegimeSignal(RegimeLabel.BULL, 0.02)) == (1.0, 0.0)


class TestConfidenceSaturation:
    """Tests for Property 3: Full confidence gives exactly the target."""

    @given(
        label=st.sampled_from(list(RegimeLabel)),
        target=st.floats(min_value=0.1, max_value=3.0),
    )
    @settings(max_examples=200)
    def test_full_confidence_returns_target_exactly(self, label, target):
        multipliers = {l.value: 1.0 for l in RegimeLabel}
        multipliers[label.value] = target
        config = replace(Configuration(), regime_multipliers=multipliers)

        assert RegimeMultiplier(config).calculate(label, 1.0) == target

    def test_bull_signal_at_one_percent_deviation(self):
        """deviation=0.01, BULL target 1.2, floor 0.3 gives exactly 1.2."""
        regime = RegimeMultiplier(Configuration())
        multiplier, confidence = regime.from_signal(RegimeSignal(RegimeLabel.BULL, 0.01))

        assert confidence == 1.0
        assert multiplier == 1.2

    def test_unconfigured_label_falls_back_to_neutral(self):
        config = replace(Configuration(), regime_multipliers={"BULL": 1.2})
        assert RegimeMultiplier(config).calculate(RegimeLabel.CHOP, 1.0) == 1.0


class TestProgressiveInterpolation:
    """Tests for Property 4: Linear interpolation from floor to target."""

    @given(
        label=st.sampled_from(list(RegimeLabel)),
        confidence=st.floats(min_value=0.3, max_value=1.0),
    )
    @settings(max_examples=200)
    def test_multiplier_lies_between_neutral_and_target(self, label, confidence):
        config = Configuration()
        target = config.regime_multipliers[label.value]
        multiplier = RegimeMultiplier(config).calculate(label, confidence)

        low, high = min(1.0, target), max(1.0, target)
        assert low - 1e-12 <= multiplier <= high + 1e-12

    def test_midpoint_confidence(self):
        """Halfway between floor and 1.0 gives half the target effect."""
        regime = RegimeMultiplier(Configuration())
        assert regime.calculate(RegimeLabel.BULL, 0.65) == pytest.approx(1.1)
        assert regime.calculate(RegimeLabel.CHOP, 0.65) == pytest.approx(0.9)

    def test_at_floor_has_no_effect(self):
        """Interpolation starts at exactly 1.0 so there is no jump at the floor."""
        regime = RegimeMultiplier(Configuration())
        assert regime.calculate(RegimeLabel.BULL, 0.3) == pytest.approx(1.0)

    @given(
        a=st.floats(min_value=0.3, max_value=1.0),
        b=st.floats(min_value=0.3, max_value=1.0),
    )
    @settings(max_examples=100)
    def test_bull_multiplier_monotonic_in_confidence(self, a, b):
        regime = RegimeMultiplier(Configuration())
        low, high = sorted((a, b))
        assert regime.calculate(RegimeLabel.BULL, low) <= regime.calculate(RegimeLabel.BULL, high)


class TestRegimeDescription:
    """Tests for regime reason text."""

    def test_no_description_below_floor(self):
        regime = RegimeMultiplier(Configuration())
        assert regime.describe(RegimeSignal(RegimeLabel.BULL, 0.001)) is None
        assert regime.describe(None) is None

    def test_boost_and_reduction_text(self):
        regime = RegimeMultiplier(Configuration())
        assert regime.describe(RegimeSignal(RegimeLabel.BULL, 0.01)) == "BULL regime boost (100% confidence)"
        assert regime.describe(RegimeSignal(RegimeLabel.CHOP, -0.01)) == "CHOP regime reduction (100% confidence)"

    def test_neutral_target_has_no_description(self):
        regime = RegimeMultiplier(Configuration())
        assert regime.describe(RegimeSignal(RegimeLabel.BEAR, -0.02)) is None
