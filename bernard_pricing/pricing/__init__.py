"""Nightly rate calculation and stay simulation."""
from .rate_calculator import (
    NightlyRateResult,
    RateMeta,
    RateSteps,
    apply_multipliers,
    calculate_rate,
    clamp,
    pace_multiplier,
    target_multiplier,
    tier_multiplier,
)
from .simulator import (
    SimulationResult,
    estimate_current_avg_price,
    simulate_rooms,
    simulate_stay,
    simulate_stay_for_model,
)
