"""
Domain records for rooms, pricing models, revenue targets and reservations.

All records are frozen dataclasses: a PricingModel loaded for a simulation
is a consistent snapshot and cannot change while nights are being priced.
"""

from dataclasses import asdict, dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional, Tuple

from ..config import (
    DEFAULT_CURRENCY,
    DEFAULT_MAX_MULTIPLIER,
    DEFAULT_MIN_MULTIPLIER,
    DEFAULT_SENSITIVITY,
    DEFAULT_TIER_STRENGTH,
    WEEKEND_DAYS,
)
from ..errors import InvalidInput


class HistoryMode(Enum):
    """Source of the historical occupancy used for tier lookup."""
    BASE_PRICES = "base_prices"
    BASE_ONLY = "base_only"
    LAST_YEAR_SAME_MONTH = "last_year_same_month"
    TRAILING_3YR_AVG = "trailing_3yr_avg"


class OverrideType(Enum):
    """How a manual override sets the nightly rate."""
    FIXED_PRICE = "fixed_price"
    MULTIPLIER = "multiplier"


class DayType(Enum):
    """Nights an override applies to."""
    ALL = "all"
    WEEKDAY = "weekday"
    WEEKEND = "weekend"


def is_weekend(day: date) -> bool:
    """Friday and Saturday nights are weekend nights."""
    return day.weekday() in WEEKEND_DAYS


# =============================================================================
# CATALOG
# =============================================================================

@dataclass(frozen=True)
class RoomType:
    """A bookable room type (cabin) with its base nightly prices."""
    id: str
    code: str
    base_price_weekday: float
    base_price_weekend: float
    name: str = ''
    currency: str = DEFAULT_CURRENCY
    max_occupancy: int = 2
    units: int = 1  # Physical rooms of this type
    is_active: bool = True

    def base_price_for(self, day: date) -> float:
        """Base price for the night of `day` (weekday or weekend class)."""
        if is_weekend(day):
            return float(self.base_price_weekend)
        return float(self.base_price_weekday)

    def to_dict(self) -> dict:
        return asdict(self)


# =============================================================================
# PRICING MODEL
# =============================================================================

@dataclass(frozen=True)
class TierTemplate:
    """Multiplier for a bucket of historical occupancy (0-1)."""
    tier_name: str
    min_hist_occupancy: float
    max_hist_occupancy: float
    multiplier: float
    priority: int = 0
    is_active: bool = True
    id: Optional[str] = None

    def matches(self, hist_occ: float) -> bool:
        return self.min_hist_occupancy <= hist_occ <= self.max_hist_occupancy


@dataclass(frozen=True)
class MonthRule:
    """Clamp bounds and tier strength for a calendar month."""
    month: int
    min_multiplier: float = DEFAULT_MIN_MULTIPLIER
    max_multiplier: float = DEFAULT_MAX_MULTIPLIER
    tier_strength: float = DEFAULT_TIER_STRENGTH
    room_type_id: Optional[str] = None  # None = every room


@dataclass(frozen=True)
class MonthlyTarget:
    """Month-to-date occupancy (0-1) and RevPAN goals driving the target multiplier."""
    month: int
    target_occupancy: Optional[float] = None
    target_revpan: Optional[float] = None
    sensitivity_up: float = DEFAULT_SENSITIVITY
    sensitivity_down: float = DEFAULT_SENSITIVITY
    room_type_id: Optional[str] = None
    is_active: bool = True


@dataclass(frozen=True)
class PaceCurve:
    """Expected on-the-books occupancy for a month and lead window."""
    month: int
    lead_window: str
    expected_otb_occ: float
    pace_sensitivity_up: float = DEFAULT_SENSITIVITY
    pace_sensitivity_down: float = DEFAULT_SENSITIVITY
    room_type_id: Optional[str] = None
    is_active: bool = True


@dataclass(frozen=True)
class PricingOverride:
    """Manual price for a date range, replacing the dynamic rate."""
    start_date: date
    end_date: date
    override_type: OverrideType
    fixed_price: Optional[float] = None
    multiplier: Optional[float] = None
    day_type: DayType = DayType.ALL
    priority: int = 0
    reason: Optional[str] = None
    room_type_id: Optional[str] = None
    is_active: bool = True
    id: Optional[str] = None

    def applies_to(self, room_type_id: str, day: date) -> bool:
        if not self.is_active:
            return False
        if self.room_type_id is not None and self.room_type_id != room_type_id:
            return False
        if not (self.start_date <= day <= self.end_date):
            return False
        if self.day_type == DayType.WEEKEND:
            return is_weekend(day)
        if self.day_type == DayType.WEEKDAY:
            return not is_weekend(day)
        return True

    def price_for(self, base: float) -> float:
        if self.override_type == OverrideType.FIXED_PRICE:
            return float(self.fixed_price)
        return base * float(self.multiplier)


def _room_specific_first(rows, room_type_id: str):
    """Room-specific rows take precedence over model-wide (room_type_id=None) rows."""
    specific = [r for r in rows if r.room_type_id == room_type_id]
    if specific:
        return specific
    return [r for r in rows if r.room_type_id is None]


@dataclass(frozen=True)
class PricingModel:
    """
    A complete pricing configuration.

    Passed explicitly to every calculation; at most one model is flagged
    active in the store at a time.
    """
    id: str
    name: str
    is_active: bool = False
    history_mode: HistoryMode = HistoryMode.LAST_YEAR_SAME_MONTH
    tiers: Tuple[TierTemplate, ...] = ()
    month_rules: Tuple[MonthRule, ...] = ()
    targets: Tuple[MonthlyTarget, ...] = ()
    pace_curves: Tuple[PaceCurve, ...] = ()
    overrides: Tuple[PricingOverride, ...] = ()

    def month_rule_for(self, room_type_id: str, month: int) -> MonthRule:
        """Month rule for a room, falling back to default bounds."""
        rules = _room_specific_first(
            [r for r in self.month_rules if r.month == month], room_type_id
        )
        if rules:
            return rules[0]
        return MonthRule(month=month)

    def target_for(self, room_type_id: str, month: int) -> Optional[MonthlyTarget]:
        targets = _room_specific_first(
            [t for t in self.targets if t.month == month and t.is_active], room_type_id
        )
        return targets[0] if targets else None

    def pace_curve_for(
        self, room_type_id: str, month: int, lead_window: str
    ) -> Optional[PaceCurve]:
        curves = _room_specific_first(
            [
                c for c in self.pace_curves
                if c.month == month and c.lead_window == lead_window and c.is_active
            ],
            room_type_id,
        )
        return curves[0] if curves else None

    def override_for(self, room_type_id: str, day: date) -> Optional[PricingOverride]:
        """Highest-priority active override covering the night."""
        candidates = [o for o in self.overrides if o.applies_to(room_type_id, day)]
        if not candidates:
            return None
        # Room-specific beats model-wide at equal priority
        return max(
            candidates,
            key=lambda o: (o.priority, o.room_type_id is not None),
        )


# =============================================================================
# REVENUE MODEL
# =============================================================================

@dataclass(frozen=True)
class RevenueTarget:
    """Occupancy (0-100) and revenue target for one room over one period."""
    room_type_id: str
    period_start: date
    period_end: date
    target_occupancy: float
    target_revenue: float
    period_name: str = ''
    id: Optional[str] = None

    def __post_init__(self):
        if not (0 <= self.target_occupancy <= 100):
            raise InvalidInput(
                f"target_occupancy must be within 0-100, got {self.target_occupancy}",
                entity='revenue_target',
            )
        if self.target_revenue < 0:
            raise InvalidInput(
                f"target_revenue must be >= 0, got {self.target_revenue}",
                entity='revenue_target',
            )
        if self.period_end < self.period_start:
            raise InvalidInput(
                f"Period ends ({self.period_end}) before it starts ({self.period_start})",
                entity='revenue_target',
            )

    @property
    def period_key(self) -> Tuple[date, date]:
        return (self.period_start, self.period_end)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class RevenueRateBreakdown:
    """A persisted rate-type share of a revenue target."""
    revenue_target_id: str
    rate_type: str
    pct_business: float
    type_detail: str = ''
    discount: float = 0.0
    sort_order: int = 0
    id: Optional[str] = None


@dataclass(frozen=True)
class BlockedDate:
    """A night a room cannot be sold."""
    room_type_id: str
    blocked_date: date


@dataclass(frozen=True)
class Reservation:
    """A stay, used for occupancy signals and actual rate-type mix."""
    id: str
    room_type_id: str
    check_in: date
    check_out: date
    status: str = 'confirmed'
    total: float = 0.0
    created_at: Optional[datetime] = None
    package_code: Optional[str] = None
    coupon_code: Optional[str] = None
    group_reservation_code: Optional[str] = None

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days
