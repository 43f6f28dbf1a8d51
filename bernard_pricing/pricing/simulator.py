"""
Stay simulation: price every night of a stay and sum the rates.

Nights are [check_in, check_out); a stay 4th -> 7th has three nights.
The pricing model is resolved once per call and passed down as a frozen
snapshot, so every night of a stay is priced against the same rules.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from ..config import FALLBACK_NIGHTLY_PRICE, EngineConfig
from ..data.entities import PricingModel, RoomType
from ..data.store import PricingStore
from ..errors import InvalidInput
from ..signals.provider import SignalProvider, fetch_signals
from ..utils import date_range, round_money
from .rate_calculator import NightlyRateResult, calculate_rate

logger = logging.getLogger(__name__)


@dataclass
class SimulationResult:
    """
    Priced stay for one room.

    Mirrors the shape the admin dashboard receives: totals up front and one
    entry per night with the rate breakdown.
    """
    room_type_id: str
    room_code: str
    currency: str
    check_in: date
    check_out: date
    nights: int
    total: float
    pricing_model_id: str
    nightly_rates: List[NightlyRateResult] = field(default_factory=list)

    @property
    def average_rate(self) -> float:
        if not self.nightly_rates:
            return 0.0
        return round_money(self.total / self.nights)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'room_type_id': self.room_type_id,
            'room_code': self.room_code,
            'currency': self.currency,
            'check_in': self.check_in.isoformat(),
            'check_out': self.check_out.isoformat(),
            'nights': self.nights,
            'total': self.total,
            'average_rate': self.average_rate,
            'pricing_model_id': self.pricing_model_id,
            'nightly_rates': [n.to_dict() for n in self.nightly_rates],
        }

    def to_frame(self) -> pd.DataFrame:
        """One row per night: date, base, rate and the multiplier chain."""
        rows = []
        for night in self.nightly_rates:
            meta = night.meta
            rows.append({
                'date': night.date,
                'base': night.base,
                'tier_mult': meta.tier_mult,
                'pace_mult': meta.pace_mult,
                'target_mult': meta.target_mult,
                'tier_name': meta.tier_name,
                'lead_window': meta.lead_window,
                'override_applied': meta.override_applied,
                'rate': night.rate,
            })
        return pd.DataFrame(rows)


def _validate_range(check_in: date, check_out: date) -> int:
    if check_in is None or check_out is None:
        raise InvalidInput("Check-in and check-out dates are required", entity='date_range')
    nights = (check_out - check_in).days
    if nights <= 0:
        raise InvalidInput(
            f"Check-out ({check_out}) must be after check-in ({check_in})",
            entity='date_range',
        )
    return nights


def simulate_stay_for_model(
    room: RoomType,
    model: PricingModel,
    check_in: date,
    check_out: date,
    provider: SignalProvider,
    today: Optional[date] = None,
    signal_timeout: Optional[float] = None,
) -> SimulationResult:
    """
    Price a stay against an explicit room and model.

    Args:
        room: Room to price
        model: Pricing model snapshot
        check_in: First night
        check_out: Departure (exclusive)
        provider: Occupancy signal source
        today: Reference date for lead times (default: date.today())
        signal_timeout: Seconds allowed per signal lookup (None = unbounded)
    """
    if room is None:
        raise InvalidInput("Unknown room type", entity='room_type')
    if model is None:
        raise InvalidInput("No active pricing model", entity='pricing_model')
    nights = _validate_range(check_in, check_out)
    today = today or date.today()

    # One lookup thread per simulation; a cancelled lookup frees it for the next night
    executor = None
    if signal_timeout is not None:
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='signals')

    nightly = []
    try:
        for stay_date in date_range(check_in, check_out):
            lead_days = (stay_date - today).days
            signals = fetch_signals(
                provider, room, stay_date, lead_days, model.history_mode,
                timeout=signal_timeout, executor=executor,
            )
            nightly.append(calculate_rate(room, stay_date, model, signals))
    finally:
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)

    total = round_money(sum(n.rate for n in nightly))
    logger.info(
        f"Simulated {room.code} {check_in} -> {check_out}: "
        f"{nights} nights, total {total:,.2f} {room.currency}"
    )
    return SimulationResult(
        room_type_id=room.id,
        room_code=room.code,
        currency=room.currency,
        check_in=check_in,
        check_out=check_out,
        nights=nights,
        total=total,
        pricing_model_id=model.id,
        nightly_rates=nightly,
    )


def resolve_model(store: PricingStore, model_id: Optional[str] = None) -> PricingModel:
    """Requested model, or the active one."""
    if model_id is not None:
        model = store.get_pricing_model(model_id)
        if model is None:
            raise InvalidInput(f"Unknown pricing model: {model_id}", entity='pricing_model')
        return model
    model = store.get_active_pricing_model()
    if model is None:
        raise InvalidInput("No active pricing model", entity='pricing_model')
    return model


def resolve_room(store: PricingStore, room_type_id: str) -> RoomType:
    room = store.get_room_type(room_type_id)
    if room is None:
        raise InvalidInput(f"Unknown room type: {room_type_id}", entity='room_type')
    return room


def simulate_stay(
    room_type_id: str,
    check_in: date,
    check_out: date,
    store: PricingStore,
    provider: SignalProvider,
    model: Optional[PricingModel] = None,
    config: Optional[EngineConfig] = None,
    today: Optional[date] = None,
) -> SimulationResult:
    """
    Price a stay for a stored room.

    Room and model are resolved before any night is priced; a missing room,
    a missing model or an inverted range fails the whole call.
    """
    config = config or EngineConfig()
    room = resolve_room(store, room_type_id)
    if model is None:
        model = resolve_model(store)
    _validate_range(check_in, check_out)

    return simulate_stay_for_model(
        room,
        model,
        check_in,
        check_out,
        provider,
        today=today or config.resolve_today(),
        signal_timeout=config.signal_timeout_seconds,
    )


def simulate_rooms(
    room_type_ids: Sequence[str],
    check_in: date,
    check_out: date,
    store: PricingStore,
    provider: SignalProvider,
    model: Optional[PricingModel] = None,
    config: Optional[EngineConfig] = None,
    today: Optional[date] = None,
) -> Dict[str, SimulationResult]:
    """
    Simulate the same stay for several rooms in parallel.

    The model is loaded once and shared read-only; each worker reads rooms
    through its own cursor.

    Returns:
        {room_type_id: SimulationResult}
    """
    config = config or EngineConfig()
    if model is None:
        model = resolve_model(store)
    _validate_range(check_in, check_out)

    def run(room_type_id: str) -> SimulationResult:
        with store.cursor() as worker_store:
            return simulate_stay(
                room_type_id, check_in, check_out, worker_store, provider,
                model=model, config=config, today=today,
            )

    with ThreadPoolExecutor(max_workers=config.max_workers) as executor:
        results = list(executor.map(run, room_type_ids))

    return dict(zip(room_type_ids, results))


def estimate_current_avg_price(
    room: RoomType,
    model: Optional[PricingModel],
    start: date,
    end: date,
    provider: SignalProvider,
    today: Optional[date] = None,
    signal_timeout: Optional[float] = None,
) -> float:
    """
    Mean simulated nightly rate over the inclusive period [start, end].

    Falls back to the weekday base price when no model is active.
    """
    if model is None:
        return float(room.base_price_weekday or FALLBACK_NIGHTLY_PRICE)

    result = simulate_stay_for_model(
        room,
        model,
        start,
        end + timedelta(days=1),
        provider,
        today=today,
        signal_timeout=signal_timeout,
    )
    return float(np.mean([n.rate for n in result.nightly_rates]))
