"""
Revenue target allocation.

Turns a room's target occupancy (%) and target revenue for a period into
the number of nights to sell and the average price those nights need:

    target_nights      = round(available_nights x occupancy / 100)
    required_avg_price = round(target_revenue / target_nights)

The price is always derived from the already-rounded night count, so a
breakdown of the same target reconciles without drift.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional

import pandas as pd

from ..config import FALLBACK_NIGHTLY_PRICE
from ..data.entities import PricingModel, RevenueTarget, RoomType
from ..data.store import PricingStore
from ..errors import InvalidInput
from ..pricing.simulator import estimate_current_avg_price
from ..signals.provider import SignalProvider
from ..utils import round_half_up
from .aggregation import weighted_average

logger = logging.getLogger(__name__)


def days_in_period(start: date, end: date) -> int:
    """Days in the inclusive period [start, end]."""
    if end < start:
        raise InvalidInput(f"Period ends ({end}) before it starts ({start})", entity='period')
    return (end - start).days + 1


def available_nights(days: int, blocked: int) -> int:
    return max(0, days - blocked)


@dataclass(frozen=True)
class Allocation:
    target_nights: int
    required_avg_price: int


def allocate(target: RevenueTarget, available: int) -> Allocation:
    """Target nights and required average price for one room target."""
    target_nights = round_half_up(available * target.target_occupancy / 100)
    if target_nights > 0:
        required = round_half_up(target.target_revenue / target_nights)
    else:
        required = 0
    return Allocation(target_nights=target_nights, required_avg_price=required)


@dataclass(frozen=True)
class RoomAllocation:
    """Allocation of one room's target plus the inputs it came from."""
    room: RoomType
    target: RevenueTarget
    days: int
    blocked_nights: int
    available_nights: int
    allocation: Allocation
    current_price: float  # Average nightly price the room is selling at now

    @property
    def target_nights(self) -> int:
        return self.allocation.target_nights

    @property
    def required_avg_price(self) -> int:
        return self.allocation.required_avg_price


@dataclass
class PeriodAllocation:
    """
    Allocation for every room with a target in one period.

    Totals are sums; the blended figures are weighted averages: occupancy
    by available nights, prices by target nights.
    """
    period_start: date
    period_end: date
    period_name: str
    rooms: List[RoomAllocation] = field(default_factory=list)

    @property
    def days(self) -> int:
        return days_in_period(self.period_start, self.period_end)

    @property
    def total_available_nights(self) -> int:
        return sum(r.available_nights for r in self.rooms)

    @property
    def total_target_nights(self) -> int:
        return sum(r.target_nights for r in self.rooms)

    @property
    def total_target_revenue(self) -> float:
        return float(sum(r.target.target_revenue for r in self.rooms))

    @property
    def weighted_target_occupancy(self) -> float:
        return weighted_average(
            [r.target.target_occupancy for r in self.rooms],
            [r.available_nights for r in self.rooms],
        )

    @property
    def blended_required_price(self) -> float:
        return weighted_average(
            [r.required_avg_price for r in self.rooms],
            [r.target_nights for r in self.rooms],
        )

    @property
    def blended_current_price(self) -> float:
        return weighted_average(
            [r.current_price for r in self.rooms],
            [r.target_nights for r in self.rooms],
        )

    def room(self, room_type_id: str) -> Optional[RoomAllocation]:
        for r in self.rooms:
            if r.room.id == room_type_id:
                return r
        return None

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([
            {
                'room_type_id': r.room.id,
                'room_code': r.room.code,
                'days': r.days,
                'blocked_nights': r.blocked_nights,
                'available_nights': r.available_nights,
                'target_occupancy': r.target.target_occupancy,
                'target_nights': r.target_nights,
                'target_revenue': r.target.target_revenue,
                'required_avg_price': r.required_avg_price,
                'current_price': r.current_price,
            }
            for r in self.rooms
        ])


def allocate_period(
    targets: Iterable[RevenueTarget],
    rooms: Mapping[str, RoomType],
    blocked_by_room: Optional[Mapping[str, int]] = None,
    current_prices: Optional[Mapping[str, float]] = None,
) -> PeriodAllocation:
    """
    Allocate every room target of one period.

    Args:
        targets: Revenue targets sharing the same (start, end)
        rooms: {room_type_id: RoomType}
        blocked_by_room: {room_type_id: blocked nights inside the period}
        current_prices: {room_type_id: current average nightly price};
            rooms without one use their weekday base price
    """
    targets = list(targets)
    if not targets:
        raise InvalidInput("No revenue targets for the period", entity='revenue_target')
    periods = {t.period_key for t in targets}
    if len(periods) > 1:
        raise InvalidInput(f"Targets span {len(periods)} periods", entity='revenue_target')

    blocked_by_room = blocked_by_room or {}
    current_prices = current_prices or {}
    start, end = targets[0].period_key
    days = days_in_period(start, end)

    allocations = []
    for target in targets:
        room = rooms.get(target.room_type_id)
        if room is None:
            raise InvalidInput(f"Unknown room type: {target.room_type_id}", entity='room_type')
        blocked = int(blocked_by_room.get(room.id, 0))
        available = available_nights(days, blocked)
        current = current_prices.get(room.id)
        if current is None:
            current = float(room.base_price_weekday or FALLBACK_NIGHTLY_PRICE)
        allocations.append(RoomAllocation(
            room=room,
            target=target,
            days=days,
            blocked_nights=blocked,
            available_nights=available,
            allocation=allocate(target, available),
            current_price=float(current),
        ))

    return PeriodAllocation(
        period_start=start,
        period_end=end,
        period_name=targets[0].period_name,
        rooms=allocations,
    )


def load_period_allocation(
    store: PricingStore,
    start: date,
    end: date,
    provider: Optional[SignalProvider] = None,
    model: Optional[PricingModel] = None,
    today: Optional[date] = None,
) -> PeriodAllocation:
    """
    Allocation for a stored period.

    Current prices come from simulating the period with `model` through
    `provider`; without them the weekday base price is used.
    """
    targets = store.list_revenue_targets(start, end)
    if not targets:
        raise InvalidInput(f"No revenue targets for {start} -> {end}", entity='revenue_target')

    rooms: Dict[str, RoomType] = {}
    for target in targets:
        room = store.get_room_type(target.room_type_id)
        if room is None:
            raise InvalidInput(f"Unknown room type: {target.room_type_id}", entity='room_type')
        rooms[room.id] = room

    current_prices = {}
    if provider is not None:
        for room in rooms.values():
            current_prices[room.id] = estimate_current_avg_price(
                room, model, start, end, provider, today=today
            )

    allocation = allocate_period(
        targets, rooms, store.count_blocked_nights(start, end), current_prices
    )
    logger.info(
        f"Allocated {len(allocation.rooms)} rooms for {start} -> {end}: "
        f"{allocation.total_target_nights} target nights"
    )
    return allocation
