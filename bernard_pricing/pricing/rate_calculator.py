"""
Nightly rate calculation.

A night's rate starts from the room's base price and goes through three
multipliers in a fixed order:

    base -> x tier (historical occupancy) -> x pace (on-the-books vs curve)
         -> x target (month-to-date vs monthly goal)

The result is clamped to [base x min_mult, base x max_mult] after EVERY
step, so an early overshoot is cut before a later multiplier is applied.
A manual override replaces the final rate and skips the clamp.
"""

import logging
from dataclasses import asdict, dataclass
from datetime import date
from typing import Optional

from ..config import DEFAULT_SENSITIVITY
from ..data.entities import MonthlyTarget, PricingModel, RoomType
from ..errors import InvalidInput
from ..signals.provider import OccupancySignals
from ..utils import round_money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateSteps:
    """Intermediate prices of the multiplier chain."""
    after_tier: float
    after_pace: float
    after_target: float
    tier_clamped: bool = False
    pace_clamped: bool = False
    target_clamped: bool = False


@dataclass(frozen=True)
class RateMeta:
    """How a nightly rate was reached. None means the signal was not available."""
    tier_mult: float
    pace_mult: float
    target_mult: float
    month_min_mult: float
    month_max_mult: float
    lead_days: int
    lead_window: Optional[str]
    history_mode: str
    month: int
    hist_occ: Optional[float] = None
    mtd_occ: Optional[float] = None
    mtd_revpan: Optional[float] = None
    otb_occ: Optional[float] = None
    expected_otb: Optional[float] = None
    tier_name: Optional[str] = None
    after_tier: Optional[float] = None
    after_pace: Optional[float] = None
    after_target: Optional[float] = None
    override_applied: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class NightlyRateResult:
    """Rate for one night of one room."""
    date: date
    base: float
    rate: float
    meta: RateMeta

    def to_dict(self) -> dict:
        return {
            'date': self.date.isoformat(),
            'base': self.base,
            'rate': self.rate,
            'meta': self.meta.to_dict(),
        }


# =============================================================================
# MULTIPLIERS
# =============================================================================

def clamp(value: float, base: float, min_mult: float, max_mult: float) -> float:
    """Bound `value` to [base x min_mult, base x max_mult]."""
    return max(base * min_mult, min(base * max_mult, value))


def tier_multiplier(
    model: PricingModel,
    hist_occ: Optional[float],
    tier_strength: float = 1.0,
):
    """
    Tier multiplier for a historical occupancy.

    The highest-priority active tier whose [min, max] range holds `hist_occ`
    wins; its effect is scaled by the month's tier strength.

    Returns:
        Tuple of (effective multiplier, tier or None)
    """
    if hist_occ is None:
        return 1.0, None

    matches = [t for t in model.tiers if t.is_active and t.matches(hist_occ)]
    if not matches:
        return 1.0, None

    tier = max(matches, key=lambda t: t.priority)
    return 1.0 + (tier.multiplier - 1.0) * tier_strength, tier


def pace_multiplier(
    otb_occ: Optional[float],
    expected_otb: Optional[float],
    sensitivity_up: float,
    sensitivity_down: float,
) -> Optional[float]:
    """
    Pace multiplier from on-the-books vs expected occupancy.

    Ahead of pace prices up, behind pace prices down. None when either side
    is missing or the expectation is not positive.
    """
    if otb_occ is None or expected_otb is None or expected_otb <= 0:
        return None
    gap = (otb_occ - expected_otb) / expected_otb
    sensitivity = sensitivity_up if gap > 0 else sensitivity_down
    return 1.0 + gap * sensitivity


def target_multiplier(
    mtd_occ: Optional[float],
    mtd_revpan: Optional[float],
    target: Optional[MonthlyTarget],
) -> Optional[float]:
    """
    Target multiplier from month-to-date performance.

    Combined gap = occupancy gap (points) + relative RevPAN gap, each used
    only when both the signal and the goal exist.
    """
    if target is None:
        return None

    gap = 0.0
    used = False
    if mtd_occ is not None and target.target_occupancy is not None:
        gap += mtd_occ - target.target_occupancy
        used = True
    if mtd_revpan is not None and target.target_revpan:
        gap += (mtd_revpan - target.target_revpan) / target.target_revpan
        used = True
    if not used:
        return None

    sensitivity = target.sensitivity_up if gap > 0 else target.sensitivity_down
    return 1.0 + gap * sensitivity


def apply_multipliers(
    base: float,
    tier_mult: float,
    pace_mult: float,
    target_mult: float,
    min_mult: float,
    max_mult: float,
) -> RateSteps:
    """Apply tier, pace and target in order, clamping after each step."""
    raw_tier = base * tier_mult
    after_tier = clamp(raw_tier, base, min_mult, max_mult)

    raw_pace = after_tier * pace_mult
    after_pace = clamp(raw_pace, base, min_mult, max_mult)

    raw_target = after_pace * target_mult
    after_target = clamp(raw_target, base, min_mult, max_mult)

    return RateSteps(
        after_tier=after_tier,
        after_pace=after_pace,
        after_target=after_target,
        tier_clamped=after_tier != raw_tier,
        pace_clamped=after_pace != raw_pace,
        target_clamped=after_target != raw_target,
    )


# =============================================================================
# NIGHTLY RATE
# =============================================================================

def calculate_rate(
    room: RoomType,
    stay_date: date,
    model: PricingModel,
    signals: OccupancySignals,
) -> NightlyRateResult:
    """
    Compute the rate for one night.

    Args:
        room: Room being priced
        stay_date: Night being priced
        model: Pricing model snapshot
        signals: Occupancy signals for the night (ratios may be None)

    Returns:
        NightlyRateResult with the rate rounded to cents
    """
    if room is None:
        raise InvalidInput("Room type is required", entity='room_type')
    if model is None:
        raise InvalidInput("No active pricing model", entity='pricing_model')

    base = room.base_price_for(stay_date)
    month = stay_date.month
    rule = model.month_rule_for(room.id, month)

    tier_mult, tier = tier_multiplier(model, signals.hist_occ, rule.tier_strength)

    # Expected OTB from the provider, else from the model's pace curve
    curve = model.pace_curve_for(room.id, month, signals.lead_window)
    expected_otb = signals.expected_otb
    if expected_otb is None and curve is not None:
        expected_otb = curve.expected_otb_occ
    pace = pace_multiplier(
        signals.otb_occ,
        expected_otb,
        curve.pace_sensitivity_up if curve else DEFAULT_SENSITIVITY,
        curve.pace_sensitivity_down if curve else DEFAULT_SENSITIVITY,
    )

    target = target_multiplier(
        signals.mtd_occ, signals.mtd_revpan, model.target_for(room.id, month)
    )

    steps = apply_multipliers(
        base,
        tier_mult,
        1.0 if pace is None else pace,
        1.0 if target is None else target,
        rule.min_multiplier,
        rule.max_multiplier,
    )
    if steps.tier_clamped or steps.pace_clamped or steps.target_clamped:
        logger.debug(f"Clamp hit for {room.code} on {stay_date}: {steps}")

    rate = steps.after_target
    override = model.override_for(room.id, stay_date)
    if override is not None:
        rate = override.price_for(base)

    meta = RateMeta(
        tier_mult=tier_mult,
        pace_mult=1.0 if pace is None else pace,
        target_mult=1.0 if target is None else target,
        month_min_mult=rule.min_multiplier,
        month_max_mult=rule.max_multiplier,
        lead_days=signals.lead_days,
        lead_window=signals.lead_window,
        history_mode=model.history_mode.value,
        month=month,
        hist_occ=signals.hist_occ,
        mtd_occ=signals.mtd_occ if target is not None else None,
        mtd_revpan=signals.mtd_revpan if target is not None else None,
        otb_occ=signals.otb_occ if pace is not None else None,
        expected_otb=expected_otb if pace is not None else None,
        tier_name=tier.tier_name if tier else None,
        after_tier=steps.after_tier,
        after_pace=steps.after_pace,
        after_target=steps.after_target,
        override_applied=override is not None,
    )
    return NightlyRateResult(date=stay_date, base=base, rate=round_money(rate), meta=meta)
