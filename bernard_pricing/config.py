"""
Configuration for the dynamic pricing and revenue engine.

Contains clamp defaults, sensitivities, lead-time windows and the
constants shared by the revenue target, breakdown and sensitivity views.
"""

import os
from dataclasses import dataclass
from datetime import date
from typing import Dict, Optional, Tuple


# =============================================================================
# RATE CALCULATION DEFAULTS
# =============================================================================

# Clamp bounds when a month has no rule (multiples of the base price)
DEFAULT_MIN_MULTIPLIER = 0.7
DEFAULT_MAX_MULTIPLIER = 2.0

# Pace and monthly-target sensitivity when a curve/target leaves it unset
DEFAULT_SENSITIVITY = 0.25

# Month rule scaling of the tier effect (1.0 = tier multiplier as configured)
DEFAULT_TIER_STRENGTH = 1.0

# Friday and Saturday nights are priced at the weekend base price
WEEKEND_DAYS = (4, 5)

DEFAULT_CURRENCY = 'GHS'


# =============================================================================
# LEAD TIME WINDOWS
# =============================================================================

# Lead window buckets with their day ranges (inclusive)
LEAD_WINDOWS: Dict[str, Tuple[int, Optional[int]]] = {
    'last_minute': (0, 6),
    'walk_in': (7, 13),
    'short_term': (14, 29),
    'medium_term': (30, 89),
    'long_term': (90, None),
}

LEAD_WINDOW_LABELS = {
    'last_minute': 'Last Minute (< 7 days)',
    'walk_in': 'Walk-in (7-14 days)',
    'short_term': 'Short Term (14-30 days)',
    'medium_term': 'Medium Term (30-90 days)',
    'long_term': 'Long Term (90+ days)',
}


# =============================================================================
# REVENUE MODEL
# =============================================================================

# Hypothetical occupancy sweep for the sensitivity analysis (%)
SENSITIVITY_LEVELS = (100, 90, 80, 70, 60, 50, 40, 30)

# +/- variance % separating "strong" from "slight" bands
VARIANCE_BAND_THRESHOLD = 10.0

# The residual bucket absorbing 100 - sum(other rate types)
RESIDUAL_RATE_TYPE = 'Rate card'

# Allowed float error when checking that a breakdown sums to 100
PCT_TOLERANCE = 1e-6

# Seed rows for a room that has no breakdown yet: (rate_type, pct_business)
DEFAULT_RATE_TYPES = (
    ('Packages', 30.0),
    ('Coupon Promotions', 20.0),
    ('Group Bookings', 10.0),
)

# Reservation statuses counted as sold nights
BOOKED_STATUSES = ('confirmed', 'checked_in', 'checked_out')

# Current price fallback when a room has no weekday base price
FALLBACK_NIGHTLY_PRICE = 250.0


# =============================================================================
# RUNTIME CONFIGURATION
# =============================================================================

@dataclass
class EngineConfig:
    """Runtime settings for simulations and stores."""
    db_path: str = ':memory:'
    signal_timeout_seconds: float = 5.0  # Deadline per signal lookup
    max_workers: int = 4  # Thread pool size for multi-room simulations
    currency: str = DEFAULT_CURRENCY
    today: Optional[date] = None  # Pin "today" for reproducible lead times

    def resolve_today(self) -> date:
        """Today's date, unless pinned."""
        return self.today or date.today()

    @classmethod
    def from_env(cls) -> 'EngineConfig':
        """
        Build a config from BERNARD_* environment variables.

        Environment Variables:
        - BERNARD_DB_PATH: DuckDB database file (default in-memory)
        - BERNARD_SIGNAL_TIMEOUT: Seconds allowed per signal lookup
        - BERNARD_MAX_WORKERS: Parallel simulations
        - BERNARD_CURRENCY: Currency code used in reports
        - BERNARD_TODAY: ISO date used as "today"
        """
        today = os.getenv('BERNARD_TODAY')
        return cls(
            db_path=os.getenv('BERNARD_DB_PATH', ':memory:'),
            signal_timeout_seconds=float(os.getenv('BERNARD_SIGNAL_TIMEOUT', '5.0')),
            max_workers=int(os.getenv('BERNARD_MAX_WORKERS', '4')),
            currency=os.getenv('BERNARD_CURRENCY', DEFAULT_CURRENCY),
            today=date.fromisoformat(today) if today else None,
        )


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def get_lead_window(lead_days: int) -> str:
    """
    Convert lead time in days to a lead window name.

    Args:
        lead_days: Days between today and the stay date

    Returns:
        Window name (e.g., 'last_minute', 'medium_term')
    """
    if lead_days < 0:
        lead_days = 0

    for window, (min_days, max_days) in LEAD_WINDOWS.items():
        if lead_days >= min_days and (max_days is None or lead_days <= max_days):
            return window

    return 'long_term'
