"""
Occupancy and pace signals consumed by the rate calculator.

A provider answers, for one room and one stay night, the historical,
month-to-date and on-the-books occupancy ratios (0-1) plus the expected
on-the-books ratio for the night's lead window. Any ratio may be missing;
the calculator treats a missing ratio as a neutral multiplier.
"""

import logging
from abc import ABC, abstractmethod
from concurrent.futures import Executor, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from dataclasses import asdict, dataclass, replace
from datetime import date
from typing import Dict, Optional, Tuple

from ..config import get_lead_window
from ..data.entities import HistoryMode, RoomType
from ..errors import SignalUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OccupancySignals:
    """Signals for one room-night. None means "not available", not zero."""
    hist_occ: Optional[float] = None  # Historical occupancy for the tier lookup
    mtd_occ: Optional[float] = None  # Month-to-date occupancy
    mtd_revpan: Optional[float] = None  # Month-to-date revenue per available night
    otb_occ: Optional[float] = None  # On-the-books occupancy for the night
    expected_otb: Optional[float] = None  # Expected OTB at this lead time
    lead_days: int = 0
    lead_window: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


def lead_window_for(lead_days: int) -> str:
    """Lead window label for a lead time; negative lead days count as last minute."""
    return get_lead_window(lead_days)


def neutral_signals(lead_days: int) -> OccupancySignals:
    """Signals carrying only the lead time (every multiplier degrades to 1)."""
    return OccupancySignals(lead_days=lead_days, lead_window=lead_window_for(lead_days))


class SignalProvider(ABC):
    """Source of occupancy signals for (room, stay night)."""

    @abstractmethod
    def get_signals(
        self,
        room: RoomType,
        stay_date: date,
        lead_days: int,
        history_mode: HistoryMode,
    ) -> OccupancySignals:
        """
        Signals for one night.

        Raises:
            SignalUnavailable: when nothing can be produced for the night
        """

    def cancel(self, room: RoomType, stay_date: date) -> None:
        """
        Ask an in-flight lookup for (room, stay_date) to stop.

        Called from another thread once the lookup has missed its deadline.
        Providers that cannot interrupt their work keep the default no-op.
        """


class StaticSignalProvider(SignalProvider):
    """
    Dictionary-backed provider for tests and what-if runs.

    Usage:
        provider = StaticSignalProvider(
            {('room-1', date(2025, 7, 4)): OccupancySignals(hist_occ=0.8)},
            default=OccupancySignals(),
        )
    """

    def __init__(
        self,
        signals: Optional[Dict[Tuple[str, date], OccupancySignals]] = None,
        default: Optional[OccupancySignals] = None,
    ):
        self._signals = dict(signals or {})
        self._default = default

    def set(self, room_type_id: str, stay_date: date, signals: OccupancySignals) -> None:
        self._signals[(room_type_id, stay_date)] = signals

    def get_signals(
        self,
        room: RoomType,
        stay_date: date,
        lead_days: int,
        history_mode: HistoryMode,
    ) -> OccupancySignals:
        signals = self._signals.get((room.id, stay_date), self._default)
        if signals is None:
            raise SignalUnavailable(f"No signals for room {room.code} on {stay_date}")
        return replace(signals, lead_days=lead_days, lead_window=lead_window_for(lead_days))


def fetch_signals(
    provider: SignalProvider,
    room: RoomType,
    stay_date: date,
    lead_days: int,
    history_mode: HistoryMode,
    timeout: Optional[float] = None,
    executor: Optional[Executor] = None,
) -> OccupancySignals:
    """
    Bounded signal lookup.

    A provider that raises SignalUnavailable or misses the deadline yields
    neutral signals so the night is still priced. Any other error propagates.
    On a missed deadline the lookup is cancelled through `provider.cancel`.

    Args:
        timeout: Seconds allowed for the lookup (None = run inline, unbounded)
        executor: Pool running the lookup; a single-use pool is created when None
    """
    if timeout is None:
        try:
            return provider.get_signals(room, stay_date, lead_days, history_mode)
        except SignalUnavailable as e:
            logger.warning(f"Signals unavailable for {room.code} on {stay_date}: {e}")
            return neutral_signals(lead_days)

    owned = executor is None
    if owned:
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='signals')
    future = executor.submit(provider.get_signals, room, stay_date, lead_days, history_mode)
    try:
        return future.result(timeout=timeout)
    except FuturesTimeout:
        if not future.cancel():
            provider.cancel(room, stay_date)
        logger.warning(
            f"Signal lookup for {room.code} on {stay_date} exceeded {timeout}s, using neutral signals"
        )
        return neutral_signals(lead_days)
    except SignalUnavailable as e:
        logger.warning(f"Signals unavailable for {room.code} on {stay_date}: {e}")
        return neutral_signals(lead_days)
    finally:
        if owned:
            executor.shutdown(wait=False, cancel_futures=True)
