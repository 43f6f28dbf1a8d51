"""
Revenue sensitivity to occupancy.

Projects, for a sweep of hypothetical occupancy levels, the revenue the
current price would bring against the revenue the target requires:

    nights           = round(available_nights x occ / 100)
    revenue_required = round(target_revenue x occ / target_occupancy)
    revenue_current  = current_avg_price x nights
    variance_pct     = (current - required) / required x 100

Required revenue scales linearly from the stored target rather than from
required price x nights; the two differ slightly once rounding applies.
"""

import logging
import math
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Iterable, List, Sequence

import pandas as pd

from ..config import SENSITIVITY_LEVELS, VARIANCE_BAND_THRESHOLD
from ..data.entities import RevenueTarget
from ..utils import round_half_up
from .allocator import PeriodAllocation

logger = logging.getLogger(__name__)


class VarianceBand(Enum):
    """Presentation band of a variance %."""
    STRONG_POSITIVE = "strong_positive"
    SLIGHT_POSITIVE = "slight_positive"
    SLIGHT_NEGATIVE = "slight_negative"
    STRONG_NEGATIVE = "strong_negative"


def classify_variance(variance_pct: float) -> VarianceBand:
    """
    Band boundaries:
    | variance %      | band            |
    |-----------------|-----------------|
    | >= +10          | strong positive |
    | [0, +10)        | slight positive |
    | (-10, 0)        | slight negative |
    | <= -10          | strong negative |
    """
    if variance_pct >= VARIANCE_BAND_THRESHOLD:
        return VarianceBand.STRONG_POSITIVE
    if variance_pct >= 0:
        return VarianceBand.SLIGHT_POSITIVE
    if variance_pct > -VARIANCE_BAND_THRESHOLD:
        return VarianceBand.SLIGHT_NEGATIVE
    return VarianceBand.STRONG_NEGATIVE


@dataclass(frozen=True)
class VarianceRow:
    """Projected revenue at one occupancy level."""
    occ: float
    nights: int
    revenue_required: int
    revenue_current: float
    variance: float
    variance_pct: float
    is_target: bool = False
    current_price: float = 0.0
    required_price: float = 0.0  # Period's required average price

    @property
    def band(self) -> VarianceBand:
        return classify_variance(self.variance_pct)

    def to_dict(self) -> dict:
        result = asdict(self)
        result['band'] = self.band.value
        return result


def _sweep_levels(
    occupancy_levels: Iterable[float], target_occupancy: float, include_anchor: bool
) -> List[float]:
    levels = [float(o) for o in occupancy_levels]
    if include_anchor and not any(math.isclose(o, target_occupancy) for o in levels):
        levels.append(float(target_occupancy))
        levels.sort(reverse=True)
    return levels


def analyze(
    target: RevenueTarget,
    available_nights: int,
    current_avg_price: float,
    required_avg_price: float,
    occupancy_levels: Sequence[float] = SENSITIVITY_LEVELS,
    include_anchor: bool = False,
) -> List[VarianceRow]:
    """
    Variance of current vs required revenue across occupancy levels.

    Args:
        target: Revenue target (occupancy 0-100 and revenue)
        available_nights: Nights the room can be sold in the period
        current_avg_price: Average nightly price the room sells at now
        required_avg_price: Price the target needs at its own occupancy
        occupancy_levels: Hypothetical occupancy levels (%)
        include_anchor: Add the target occupancy to the sweep when missing

    Returns:
        One VarianceRow per level; the row at the target occupancy is
        flagged is_target
    """
    target_occ = float(target.target_occupancy)
    rows = []
    for occ in _sweep_levels(occupancy_levels, target_occ, include_anchor):
        nights = round_half_up(available_nights * occ / 100)
        if target_occ > 0:
            required = round_half_up(target.target_revenue * occ / target_occ)
        else:
            required = 0
        current = current_avg_price * nights
        variance = current - required
        rows.append(VarianceRow(
            occ=occ,
            nights=nights,
            revenue_required=required,
            revenue_current=current,
            variance=variance,
            variance_pct=variance / required * 100 if required > 0 else 0.0,
            is_target=math.isclose(occ, target_occ),
            current_price=float(current_avg_price),
            required_price=float(required_avg_price),
        ))
    return rows


def analyze_period(
    allocation: PeriodAllocation,
    occupancy_levels: Sequence[float] = SENSITIVITY_LEVELS,
    include_anchor: bool = False,
) -> List[VarianceRow]:
    """
    All-rooms sweep for a period.

    Uses total available nights and total target revenue, anchored on the
    available-night weighted target occupancy (rounded), with the blended
    current and required prices.
    """
    if not allocation.rooms:
        return []
    anchor = round_half_up(allocation.weighted_target_occupancy)
    combined = RevenueTarget(
        room_type_id='all',
        period_start=allocation.period_start,
        period_end=allocation.period_end,
        period_name=allocation.period_name,
        target_occupancy=anchor,
        target_revenue=allocation.total_target_revenue,
    )
    logger.debug(
        f"All-rooms sweep: {allocation.total_available_nights} nights, anchor {anchor}%"
    )
    return analyze(
        combined,
        allocation.total_available_nights,
        allocation.blended_current_price,
        allocation.blended_required_price,
        occupancy_levels=occupancy_levels,
        include_anchor=include_anchor,
    )


def to_frame(rows: Sequence[VarianceRow]) -> pd.DataFrame:
    return pd.DataFrame([r.to_dict() for r in rows])
