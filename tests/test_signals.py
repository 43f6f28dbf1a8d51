"""
Occupancy signals: lead windows, store-derived occupancy ratios with an
as-of cut-off, and bounded, cancellable signal lookups.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import date

import pytest

from bernard_pricing.data.entities import HistoryMode, RoomType
from bernard_pricing.errors import SignalUnavailable
from bernard_pricing.signals.provider import (
    OccupancySignals,
    SignalProvider,
    StaticSignalProvider,
    fetch_signals,
    lead_window_for,
)
from bernard_pricing.signals.store_provider import StoreSignalProvider


class TestLeadWindows:

    @pytest.mark.parametrize("lead_days, window", [
        (-3, 'last_minute'),
        (0, 'last_minute'),
        (6, 'last_minute'),
        (7, 'walk_in'),
        (13, 'walk_in'),
        (14, 'short_term'),
        (29, 'short_term'),
        (30, 'medium_term'),
        (89, 'medium_term'),
        (90, 'long_term'),
        (400, 'long_term'),
    ])
    def test_window_boundaries(self, lead_days, window):
        assert lead_window_for(lead_days) == window


class TestStaticProvider:

    def test_lead_fields_are_filled_in(self, cabin, wednesday):
        provider = StaticSignalProvider()
        provider.set('room-a', wednesday, OccupancySignals(hist_occ=0.6))

        signals = provider.get_signals(cabin, wednesday, 35, HistoryMode.LAST_YEAR_SAME_MONTH)

        assert signals.hist_occ == 0.6
        assert signals.lead_days == 35
        assert signals.lead_window == 'medium_term'

    def test_missing_night_raises(self, cabin, wednesday):
        with pytest.raises(SignalUnavailable):
            StaticSignalProvider().get_signals(cabin, wednesday, 1, HistoryMode.LAST_YEAR_SAME_MONTH)


class TestStoreSignals:
    """Signals computed from the sample reservations."""

    @pytest.mark.integration
    def test_last_year_same_month(self, store_with_reservations, cabin, as_of, wednesday):
        """Last July: 15 of 31 nights sold."""
        provider = StoreSignalProvider(store_with_reservations, as_of=as_of)
        signals = provider.get_signals(cabin, wednesday, 17, HistoryMode.LAST_YEAR_SAME_MONTH)

        assert signals.hist_occ == pytest.approx(15 / 31)
        assert signals.lead_window == 'short_term'
        assert signals.expected_otb is None

    @pytest.mark.integration
    def test_trailing_three_year_average(self, store_with_reservations, cabin, as_of, wednesday):
        """Years without bookings count as zero occupancy."""
        provider = StoreSignalProvider(store_with_reservations, as_of=as_of)
        signals = provider.get_signals(cabin, wednesday, 17, HistoryMode.TRAILING_3YR_AVG)

        assert signals.hist_occ == pytest.approx(15 / 31 / 3)

    @pytest.mark.integration
    def test_month_to_date_absent_before_month_starts(self, store_with_reservations, cabin, as_of, wednesday):
        provider = StoreSignalProvider(store_with_reservations, as_of=as_of)
        signals = provider.get_signals(cabin, wednesday, 17, HistoryMode.LAST_YEAR_SAME_MONTH)

        assert signals.mtd_occ is None
        assert signals.mtd_revpan is None

    @pytest.mark.integration
    def test_month_to_date_within_month(self, store_with_reservations, cabin):
        """
        As of 07-05: r1 fills 07-01..07-03, so 3 of 5 nights;
        6000 over 3 nights prorated gives revenue 6000 / 5 available nights.
        """
        provider = StoreSignalProvider(store_with_reservations, as_of=date(2025, 7, 5))
        signals = provider.get_signals(cabin, date(2025, 7, 20), 15, HistoryMode.LAST_YEAR_SAME_MONTH)

        assert signals.mtd_occ == pytest.approx(0.6)
        assert signals.mtd_revpan == pytest.approx(1200.0)

    @pytest.mark.integration
    def test_on_the_books_respects_as_of(self, store_with_reservations, cabin, as_of):
        """r2 was booked on 06-20, so a 06-15 view does not see it."""
        night = date(2025, 7, 10)
        before = StoreSignalProvider(store_with_reservations, as_of=as_of)
        after = StoreSignalProvider(store_with_reservations, as_of=date(2025, 6, 25))

        mode = HistoryMode.LAST_YEAR_SAME_MONTH
        assert before.get_signals(cabin, night, 25, mode).otb_occ == 0.0
        assert after.get_signals(cabin, night, 15, mode).otb_occ == 1.0

    @pytest.mark.integration
    def test_on_the_books_divides_by_units(self, store_with_reservations, as_of):
        forest = store_with_reservations.get_room_type('room-b')
        provider = StoreSignalProvider(store_with_reservations, as_of=as_of)

        signals = provider.get_signals(forest, date(2025, 7, 1), 16, HistoryMode.LAST_YEAR_SAME_MONTH)

        assert signals.otb_occ == pytest.approx(0.5)

    @pytest.mark.integration
    def test_cancelled_stays_are_ignored(self, store_with_reservations, as_of):
        forest = store_with_reservations.get_room_type('room-b')
        provider = StoreSignalProvider(store_with_reservations, as_of=as_of)

        signals = provider.get_signals(forest, date(2025, 7, 5), 20, HistoryMode.LAST_YEAR_SAME_MONTH)

        assert signals.otb_occ == 0.0

    def test_no_reservations(self, store, as_of):
        room = RoomType(id='room-a', code='CABIN-A', base_price_weekday=2000.0,
                        base_price_weekend=2400.0)
        signals = StoreSignalProvider(store, as_of=as_of).get_signals(
            room, date(2025, 7, 2), 17, HistoryMode.LAST_YEAR_SAME_MONTH
        )
        assert signals.hist_occ == 0.0
        assert signals.otb_occ == 0.0


class BrokenProvider(SignalProvider):

    def __init__(self, error: Exception, delay: float = 0.0):
        self.error = error
        self.delay = delay

    def get_signals(self, room, stay_date, lead_days, history_mode):
        time.sleep(self.delay)
        raise self.error


class HangingProvider(SignalProvider):
    """Blocks on a night until that night's lookup is cancelled."""

    def __init__(self, answer_immediately: bool = False):
        self.answer_immediately = answer_immediately
        self.cancelled = []
        self.done = threading.Event()
        self._lock = threading.Lock()
        self._release = {}

    def _event(self, room, stay_date):
        with self._lock:
            return self._release.setdefault((room.id, stay_date), threading.Event())

    def get_signals(self, room, stay_date, lead_days, history_mode):
        try:
            if not self.answer_immediately and self._event(room, stay_date).wait(5.0):
                raise SignalUnavailable("cancelled")
            return OccupancySignals(hist_occ=0.8, lead_days=lead_days)
        finally:
            self.done.set()

    def cancel(self, room, stay_date):
        self.cancelled.append((room.id, stay_date))
        self._event(room, stay_date).set()


class TestFetchSignals:
    """Lookups that fail or run late degrade to neutral signals."""

    def test_unavailable_degrades(self, cabin, wednesday, caplog):
        provider = BrokenProvider(SignalUnavailable("feed down"))
        with caplog.at_level('WARNING'):
            signals = fetch_signals(provider, cabin, wednesday, 8, HistoryMode.LAST_YEAR_SAME_MONTH)

        assert signals == OccupancySignals(lead_days=8, lead_window='walk_in')
        assert "feed down" in caplog.text

    def test_unavailable_with_timeout_degrades(self, cabin, wednesday):
        provider = BrokenProvider(SignalUnavailable("feed down"))
        signals = fetch_signals(provider, cabin, wednesday, 8,
                                HistoryMode.LAST_YEAR_SAME_MONTH, timeout=1.0)
        assert signals.hist_occ is None

    def test_timeout_degrades(self, cabin, wednesday, caplog):
        provider = BrokenProvider(SignalUnavailable("late"), delay=1.0)
        with caplog.at_level('WARNING'):
            signals = fetch_signals(provider, cabin, wednesday, 2,
                                    HistoryMode.LAST_YEAR_SAME_MONTH, timeout=0.05)

        assert signals.lead_window == 'last_minute'
        assert "exceeded" in caplog.text

    def test_other_errors_propagate(self, cabin, wednesday):
        provider = BrokenProvider(RuntimeError("bug"))
        with pytest.raises(RuntimeError):
            fetch_signals(provider, cabin, wednesday, 2, HistoryMode.LAST_YEAR_SAME_MONTH)

    def test_missed_deadline_cancels_lookup(self, cabin, wednesday):
        """The hung lookup is told to stop and its thread finishes."""
        provider = HangingProvider()
        signals = fetch_signals(provider, cabin, wednesday, 8,
                                HistoryMode.LAST_YEAR_SAME_MONTH, timeout=0.05)

        assert signals == OccupancySignals(lead_days=8, lead_window='walk_in')
        assert provider.cancelled == [('room-a', wednesday)]
        assert provider.done.wait(1.0)

    def test_caller_executor_stays_usable(self, cabin, wednesday):
        provider = HangingProvider()
        with ThreadPoolExecutor(max_workers=1) as executor:
            fetch_signals(provider, cabin, wednesday, 8, HistoryMode.LAST_YEAR_SAME_MONTH,
                          timeout=0.05, executor=executor)
            assert executor.submit(lambda: 'free').result(timeout=1.0) == 'free'

    def test_fast_lookup_is_not_cancelled(self, cabin, wednesday):
        provider = HangingProvider(answer_immediately=True)
        signals = fetch_signals(provider, cabin, wednesday, 8,
                                HistoryMode.LAST_YEAR_SAME_MONTH, timeout=1.0)

        assert signals.hist_occ == 0.8
        assert provider.cancelled == []


class BlockingStoreProvider(StoreSignalProvider):
    """Store provider whose historical lookup stalls until cancelled."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.release = threading.Event()
        self.done = threading.Event()
        self.outcome = None

    def get_signals(self, room, stay_date, lead_days, history_mode):
        try:
            self.outcome = super().get_signals(room, stay_date, lead_days, history_mode)
            return self.outcome
        except SignalUnavailable as e:
            self.outcome = e
            raise
        finally:
            self.done.set()

    def _historical_occupancy(self, store, room, stay_date, history_mode):
        self.release.wait(5.0)
        return super()._historical_occupancy(store, room, stay_date, history_mode)

    def cancel(self, room, stay_date):
        super().cancel(room, stay_date)
        self.release.set()


@pytest.mark.integration
class TestStoreLookupCancellation:
    """A store lookup past its deadline is interrupted instead of left running."""

    def test_cancelled_lookup_stops(self, store_with_reservations, cabin, as_of, wednesday):
        provider = BlockingStoreProvider(store_with_reservations, as_of=as_of)

        signals = fetch_signals(provider, cabin, wednesday, 17,
                                HistoryMode.LAST_YEAR_SAME_MONTH, timeout=0.2)

        assert signals.hist_occ is None
        assert provider.done.wait(2.0)
        assert isinstance(provider.outcome, SignalUnavailable)
        assert provider._in_flight == {}
        assert provider._cancelled == set()

    def test_cancel_without_lookup_is_ignored(self, store_with_reservations, cabin, as_of, wednesday):
        provider = StoreSignalProvider(store_with_reservations, as_of=as_of)
        provider.cancel(cabin, wednesday)

        signals = provider.get_signals(cabin, wednesday, 17, HistoryMode.LAST_YEAR_SAME_MONTH)
        assert signals.hist_occ == pytest.approx(15 / 31)

    def test_store_stays_usable_after_cancel(self, store_with_reservations, cabin, as_of, wednesday):
        provider = BlockingStoreProvider(store_with_reservations, as_of=as_of)
        fetch_signals(provider, cabin, wednesday, 17,
                      HistoryMode.LAST_YEAR_SAME_MONTH, timeout=0.2)
        provider.done.wait(2.0)

        signals = StoreSignalProvider(store_with_reservations, as_of=as_of).get_signals(
            cabin, wednesday, 17, HistoryMode.LAST_YEAR_SAME_MONTH
        )
        assert signals.hist_occ == pytest.approx(15 / 31)
