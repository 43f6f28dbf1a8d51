"""
Nightly rate calculation: multiplier order, clamping, degraded signals
and manual overrides.
"""

from dataclasses import replace
from datetime import date

import pytest

from bernard_pricing.data.entities import (
    DayType,
    MonthlyTarget,
    MonthRule,
    OverrideType,
    PricingOverride,
    TierTemplate,
)
from bernard_pricing.errors import InvalidInput
from bernard_pricing.pricing.rate_calculator import (
    apply_multipliers,
    calculate_rate,
    clamp,
    pace_multiplier,
    target_multiplier,
    tier_multiplier,
)
from bernard_pricing.signals.provider import OccupancySignals


class TestClamp:
    """Bounds are base x min_mult and base x max_mult."""

    @pytest.mark.parametrize("value", [-500.0, 0.0, 650.0, 1000.0, 1499.99, 1500.0, 9000.0])
    @pytest.mark.parametrize("bounds", [(0.8, 1.5), (0.7, 2.0), (1.0, 1.0)])
    def test_clamp_is_idempotent(self, value, bounds):
        """Clamping an already clamped value changes nothing."""
        min_mult, max_mult = bounds
        once = clamp(value, 1000.0, min_mult, max_mult)
        assert clamp(once, 1000.0, min_mult, max_mult) == once

    def test_clamp_floor_and_ceiling(self):
        assert clamp(500.0, 1000.0, 0.8, 1.5) == pytest.approx(800.0)
        assert clamp(2000.0, 1000.0, 0.8, 1.5) == pytest.approx(1500.0)
        assert clamp(1200.0, 1000.0, 0.8, 1.5) == 1200.0


class TestMultiplierOrder:
    """Each step is clamped before the next multiplier is applied."""

    def test_overshoot_is_cut_before_pace(self):
        """
        base=1000, bounds 0.8-1.5, tier 1.6 then pace 0.9:
        1600 clamps to 1500, then 1500 x 0.9 = 1350 (not 1440).
        """
        steps = apply_multipliers(1000.0, 1.6, 0.9, 1.0, 0.8, 1.5)

        assert steps.after_tier == pytest.approx(1500.0)
        assert steps.after_pace == pytest.approx(1350.0)
        assert steps.after_pace != pytest.approx(1440.0)
        assert steps.tier_clamped
        assert not steps.pace_clamped

    def test_end_to_end_steps(self):
        """base=2000, 1.2 / 1.05 / 0.95 within 0.7-2.0 gives 2400, 2520, 2394."""
        steps = apply_multipliers(2000.0, 1.2, 1.05, 0.95, 0.7, 2.0)

        assert steps.after_tier == pytest.approx(2400.0)
        assert steps.after_pace == pytest.approx(2520.0)
        assert steps.after_target == pytest.approx(2394.0)

    def test_floor_applies_at_the_last_step(self):
        steps = apply_multipliers(1000.0, 0.9, 0.9, 0.9, 0.8, 1.5)

        assert steps.after_pace == pytest.approx(810.0)
        assert steps.after_target == pytest.approx(800.0)
        assert steps.target_clamped


class TestMultipliers:
    """Tier, pace and target multiplier formulas."""

    def test_highest_priority_tier_wins(self, pricing_model):
        """At 0.7 both Mid and High match; High has the higher priority."""
        mult, tier = tier_multiplier(pricing_model, 0.7)

        assert tier.tier_name == 'High'
        assert mult == pytest.approx(1.2)

    def test_tier_strength_scales_effect(self, pricing_model):
        mult, _ = tier_multiplier(pricing_model, 0.8, tier_strength=0.5)
        assert mult == pytest.approx(1.1)

    def test_no_matching_tier_is_neutral(self, pricing_model):
        model = replace(pricing_model, tiers=(
            TierTemplate(tier_name='Only', min_hist_occupancy=0.9,
                         max_hist_occupancy=1.0, multiplier=1.5),
        ))
        assert tier_multiplier(model, 0.2) == (1.0, None)
        assert tier_multiplier(model, None) == (1.0, None)

    def test_inactive_tier_is_ignored(self, pricing_model):
        model = replace(pricing_model, tiers=(
            TierTemplate(tier_name='Off', min_hist_occupancy=0.0, max_hist_occupancy=1.0,
                         multiplier=1.5, is_active=False),
        ))
        assert tier_multiplier(model, 0.5) == (1.0, None)

    def test_pace_ahead_and_behind(self):
        """Ahead of pace uses the up sensitivity, behind uses down."""
        assert pace_multiplier(0.75, 0.5, 0.1, 0.4) == pytest.approx(1.05)
        assert pace_multiplier(0.25, 0.5, 0.1, 0.4) == pytest.approx(0.8)

    def test_pace_missing_inputs(self):
        assert pace_multiplier(None, 0.5, 0.25, 0.25) is None
        assert pace_multiplier(0.5, None, 0.25, 0.25) is None
        assert pace_multiplier(0.5, 0.0, 0.25, 0.25) is None

    def test_target_combines_occupancy_and_revpan_gaps(self):
        """
        occ gap 0.8 - 0.6 = 0.2, revpan gap (1100 - 1000)/1000 = 0.1,
        combined 0.3 x 0.5 -> 1.15.
        """
        target = MonthlyTarget(month=7, target_occupancy=0.6, target_revpan=1000.0,
                               sensitivity_up=0.5, sensitivity_down=0.25)
        assert target_multiplier(0.8, 1100.0, target) == pytest.approx(1.15)

    def test_target_without_row_or_signal(self):
        target = MonthlyTarget(month=7, target_occupancy=0.6)
        assert target_multiplier(0.5, None, None) is None
        assert target_multiplier(None, None, target) is None
        assert target_multiplier(None, 500.0, target) is None


class TestCalculateRate:
    """Full nightly rate with meta."""

    def test_end_to_end_rate(self, cabin, pricing_model, july_signals, wednesday):
        """base 2000 with tier 1.2, pace 1.05, target 0.95 prices at 2394.00."""
        result = calculate_rate(cabin, wednesday, pricing_model, july_signals)

        assert result.base == 2000.0
        assert result.rate == pytest.approx(2394.00)
        assert result.meta.tier_mult == pytest.approx(1.2)
        assert result.meta.pace_mult == pytest.approx(1.05)
        assert result.meta.target_mult == pytest.approx(0.95)
        assert result.meta.tier_name == 'High'
        assert result.meta.expected_otb == pytest.approx(0.5)
        assert result.meta.month_min_mult == 0.7
        assert result.meta.month_max_mult == 2.0
        assert result.meta.override_applied is False

    def test_weekend_night_uses_weekend_base(self, cabin, pricing_model):
        friday = date(2025, 7, 4)
        result = calculate_rate(cabin, friday, pricing_model, OccupancySignals())
        assert result.base == 2400.0
        assert result.rate == pytest.approx(2400.0)

    def test_missing_signals_are_neutral_and_absent(self, cabin, pricing_model, wednesday):
        """No signals: every multiplier is 1 and the signal meta fields are None."""
        signals = OccupancySignals(lead_days=10, lead_window='walk_in')
        result = calculate_rate(cabin, wednesday, pricing_model, signals)

        assert result.rate == pytest.approx(2000.0)
        assert result.meta.tier_mult == 1.0
        assert result.meta.pace_mult == 1.0
        assert result.meta.target_mult == 1.0
        assert result.meta.tier_name is None
        assert result.meta.otb_occ is None
        assert result.meta.expected_otb is None
        assert result.meta.mtd_occ is None

    def test_no_month_rule_uses_default_bounds(self, cabin, pricing_model, wednesday):
        model = replace(pricing_model, month_rules=(), tiers=(
            TierTemplate(tier_name='Peak', min_hist_occupancy=0.0,
                         max_hist_occupancy=1.0, multiplier=3.0),
        ))
        result = calculate_rate(cabin, wednesday, model, OccupancySignals(hist_occ=0.5))

        assert result.meta.month_max_mult == 2.0
        assert result.rate == pytest.approx(4000.0)

    def test_room_specific_month_rule_wins(self, cabin, pricing_model, wednesday):
        model = replace(pricing_model, month_rules=(
            MonthRule(month=7, min_multiplier=0.7, max_multiplier=2.0),
            MonthRule(month=7, min_multiplier=0.9, max_multiplier=1.1, room_type_id='room-a'),
        ))
        result = calculate_rate(cabin, wednesday, model, OccupancySignals(hist_occ=0.8))

        assert result.meta.month_max_mult == 1.1
        assert result.rate == pytest.approx(2200.0)

    def test_fixed_price_override_bypasses_clamp(self, cabin, pricing_model, july_signals, wednesday):
        override = PricingOverride(
            start_date=date(2025, 7, 1), end_date=date(2025, 7, 3),
            override_type=OverrideType.FIXED_PRICE, fixed_price=9999.0,
        )
        model = replace(pricing_model, overrides=(override,))
        result = calculate_rate(cabin, wednesday, model, july_signals)

        assert result.rate == pytest.approx(9999.0)
        assert result.meta.override_applied is True
        assert result.meta.after_target == pytest.approx(2394.0)

    def test_multiplier_override_scales_base(self, cabin, pricing_model, july_signals, wednesday):
        override = PricingOverride(
            start_date=date(2025, 7, 1), end_date=date(2025, 7, 31),
            override_type=OverrideType.MULTIPLIER, multiplier=0.5,
        )
        model = replace(pricing_model, overrides=(override,))
        result = calculate_rate(cabin, wednesday, model, july_signals)

        assert result.rate == pytest.approx(1000.0)
        assert result.meta.override_applied is True

    def test_weekend_override_skips_weekdays(self, cabin, pricing_model, july_signals, wednesday):
        override = PricingOverride(
            start_date=date(2025, 7, 1), end_date=date(2025, 7, 31),
            override_type=OverrideType.FIXED_PRICE, fixed_price=5000.0,
            day_type=DayType.WEEKEND,
        )
        model = replace(pricing_model, overrides=(override,))

        assert not calculate_rate(cabin, wednesday, model, july_signals).meta.override_applied
        assert calculate_rate(cabin, date(2025, 7, 5), model, july_signals).rate == 5000.0

    def test_highest_priority_override_wins(self, cabin, pricing_model, july_signals, wednesday):
        low = PricingOverride(start_date=wednesday, end_date=wednesday,
                              override_type=OverrideType.FIXED_PRICE, fixed_price=100.0, priority=1)
        high = PricingOverride(start_date=wednesday, end_date=wednesday,
                               override_type=OverrideType.FIXED_PRICE, fixed_price=200.0, priority=5)
        model = replace(pricing_model, overrides=(low, high))

        assert calculate_rate(cabin, wednesday, model, july_signals).rate == 200.0

    def test_missing_model_is_invalid_input(self, cabin, july_signals, wednesday):
        with pytest.raises(InvalidInput) as exc:
            calculate_rate(cabin, wednesday, None, july_signals)
        assert exc.value.entity == 'pricing_model'

    def test_missing_room_is_invalid_input(self, pricing_model, july_signals, wednesday):
        with pytest.raises(InvalidInput):
            calculate_rate(None, wednesday, pricing_model, july_signals)
