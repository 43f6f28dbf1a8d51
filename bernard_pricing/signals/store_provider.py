"""
Occupancy signals computed from booked reservations in the store.

Key constraint: signals for a night priced on `as_of` only see reservations
created on or before `as_of`, so a simulation never peeks into the future.
"""

import logging
import threading
from datetime import date, timedelta
from typing import Dict, Optional, Set, Tuple

import duckdb
import numpy as np
import pandas as pd

from ..config import BOOKED_STATUSES
from ..data.entities import HistoryMode, RoomType
from ..data.store import PricingStore
from ..errors import SignalUnavailable
from ..utils import month_bounds, shift_years
from .provider import OccupancySignals, SignalProvider, lead_window_for

logger = logging.getLogger(__name__)

# Years looked back for each history mode
HISTORY_YEARS = {
    HistoryMode.LAST_YEAR_SAME_MONTH: (1,),
    HistoryMode.TRAILING_3YR_AVG: (1, 2, 3),
}


def overlap_nights(bookings: pd.DataFrame, start: date, end: date) -> pd.Series:
    """
    Nights of each booking falling inside the inclusive window [start, end].

    Check-out is exclusive, so a stay 1st -> 3rd occupies the nights of the
    1st and 2nd.
    """
    if bookings.empty:
        return pd.Series(dtype='int64')
    window_in = pd.Timestamp(start)
    window_out = pd.Timestamp(end + timedelta(days=1))
    clipped_in = bookings['check_in'].clip(lower=window_in)
    clipped_out = bookings['check_out'].clip(upper=window_out)
    return (clipped_out - clipped_in).dt.days.clip(lower=0)


def prorated_revenue(bookings: pd.DataFrame, overlap: pd.Series) -> pd.Series:
    """Booking totals spread evenly over their nights, kept for overlapping nights."""
    if bookings.empty:
        return pd.Series(dtype='float64')
    nights = (bookings['check_out'] - bookings['check_in']).dt.days
    totals = bookings['total'].fillna(0.0).astype(float)
    return totals / nights * overlap


class StoreSignalProvider(SignalProvider):
    """
    Signals derived from the reservations table.

    Usage:
        provider = StoreSignalProvider(store, as_of=date(2025, 6, 1))
        signals = provider.get_signals(room, date(2025, 7, 4), 33, model.history_mode)
    """

    def __init__(
        self,
        store: PricingStore,
        as_of: Optional[date] = None,
        statuses: Tuple[str, ...] = BOOKED_STATUSES,
    ):
        self._store = store
        self._as_of = as_of or date.today()
        self._statuses = statuses
        # (room id, stay date) -> cursor of the lookup running for that night
        self._lock = threading.Lock()
        self._in_flight: Dict[Tuple[str, date], PricingStore] = {}
        self._cancelled: Set[Tuple[str, date]] = set()

    @property
    def as_of(self) -> date:
        return self._as_of

    def get_signals(
        self,
        room: RoomType,
        stay_date: date,
        lead_days: int,
        history_mode: HistoryMode,
    ) -> OccupancySignals:
        key = (room.id, stay_date)
        # Each lookup may run on a worker thread, so it gets its own cursor
        with self._store.cursor() as store:
            with self._lock:
                self._in_flight[key] = store
            try:
                hist_occ = self._historical_occupancy(store, room, stay_date, history_mode)
                self._raise_if_cancelled(room, stay_date)
                mtd_occ, mtd_revpan = self._month_to_date(store, room, stay_date)
                self._raise_if_cancelled(room, stay_date)
                otb_occ = self._on_the_books(store, room, stay_date)
            except duckdb.Error:
                # An interrupted query surfaces as a duckdb error
                self._raise_if_cancelled(room, stay_date)
                raise
            finally:
                with self._lock:
                    self._in_flight.pop(key, None)
                    self._cancelled.discard(key)

        logger.debug(
            f"Signals for {room.code} on {stay_date}: hist={hist_occ} mtd={mtd_occ} otb={otb_occ}"
        )

        return OccupancySignals(
            hist_occ=hist_occ,
            mtd_occ=mtd_occ,
            mtd_revpan=mtd_revpan,
            otb_occ=otb_occ,
            expected_otb=None,
            lead_days=lead_days,
            lead_window=lead_window_for(lead_days),
        )

    def cancel(self, room: RoomType, stay_date: date) -> None:
        """Interrupt the running query of a lookup and stop it before its next step."""
        key = (room.id, stay_date)
        with self._lock:
            store = self._in_flight.get(key)
            if store is None:
                return
            self._cancelled.add(key)
            store.interrupt()
        logger.info(f"Cancelled signal lookup for {room.code} on {stay_date}")

    def _raise_if_cancelled(self, room: RoomType, stay_date: date) -> None:
        with self._lock:
            cancelled = (room.id, stay_date) in self._cancelled
        if cancelled:
            raise SignalUnavailable(f"Lookup for {room.code} on {stay_date} was cancelled")

    # =========================================================================
    # SIGNAL COMPONENTS
    # =========================================================================

    def _window(
        self,
        store: PricingStore,
        room: RoomType,
        start: date,
        end: date,
        as_of=None,
    ) -> pd.DataFrame:
        return store.room_reservations_window(
            room.id, start, end, as_of=as_of, statuses=self._statuses
        )

    def _month_occupancy(
        self, store: PricingStore, room: RoomType, day: date
    ) -> float:
        """Sold room-nights / capacity over the calendar month holding `day`."""
        first, last = month_bounds(day)
        bookings = self._window(store, room, first, last)
        capacity = ((last - first).days + 1) * max(room.units, 1)
        return float(overlap_nights(bookings, first, last).sum()) / capacity

    def _historical_occupancy(
        self,
        store: PricingStore,
        room: RoomType,
        stay_date: date,
        history_mode: HistoryMode,
    ) -> Optional[float]:
        years = HISTORY_YEARS.get(history_mode)
        if years is None:
            return None
        values = [
            self._month_occupancy(store, room, shift_years(stay_date, -y)) for y in years
        ]
        return float(np.mean(values))

    def _month_to_date(
        self, store: PricingStore, room: RoomType, stay_date: date
    ) -> Tuple[Optional[float], Optional[float]]:
        first, last = month_bounds(stay_date)
        if self._as_of < first:
            return None, None

        end = min(self._as_of, last)
        bookings = self._window(store, room, first, end, as_of=self._as_of)
        available = ((end - first).days + 1) * max(room.units, 1)

        overlap = overlap_nights(bookings, first, end)
        sold = float(overlap.sum())
        revenue = float(prorated_revenue(bookings, overlap).sum())
        return sold / available, revenue / available

    def _on_the_books(
        self, store: PricingStore, room: RoomType, stay_date: date
    ) -> float:
        bookings = self._window(store, room, stay_date, stay_date, as_of=self._as_of)
        return len(bookings) / max(room.units, 1)
