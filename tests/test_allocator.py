"""
Revenue target allocation: target nights, required price and the
all-rooms blend.
"""

from datetime import date

import pytest

from bernard_pricing.data.entities import BlockedDate, RevenueTarget, RoomType
from bernard_pricing.errors import InvalidInput
from bernard_pricing.revenue.allocator import (
    allocate,
    allocate_period,
    available_nights,
    days_in_period,
    load_period_allocation,
)


def make_target(room_id='room-a', occ=70.0, revenue=105000.0,
                start=date(2025, 7, 1), end=date(2025, 8, 29)):
    return RevenueTarget(
        id=f"t-{room_id}",
        room_type_id=room_id,
        period_start=start,
        period_end=end,
        period_name='Summer',
        target_occupancy=occ,
        target_revenue=revenue,
    )


class TestAllocate:
    """Single-room allocation."""

    def test_target_nights_and_price(self):
        """60 nights at 70% = 42 nights; 105000 / 42 = 2500."""
        allocation = allocate(make_target(), 60)

        assert allocation.target_nights == 42
        assert allocation.required_avg_price == 2500

    def test_price_derives_from_rounded_nights(self):
        """45 x 50% = 22.5 rounds up to 23; 50000 / 23 = 2173.9 -> 2174."""
        allocation = allocate(make_target(occ=50.0, revenue=50000.0), 45)

        assert allocation.target_nights == 23
        assert allocation.required_avg_price == 2174

    def test_zero_nights_means_zero_price(self):
        allocation = allocate(make_target(occ=0.0), 60)
        assert allocation == allocate(make_target(occ=10.0), 0)
        assert allocation.target_nights == 0
        assert allocation.required_avg_price == 0


class TestPeriodArithmetic:
    """Inclusive periods and blocked nights."""

    def test_days_in_period_is_inclusive(self):
        assert days_in_period(date(2025, 7, 1), date(2025, 7, 31)) == 31
        assert days_in_period(date(2025, 7, 1), date(2025, 7, 1)) == 1

    def test_inverted_period_rejected(self):
        with pytest.raises(InvalidInput):
            days_in_period(date(2025, 7, 31), date(2025, 7, 1))

    def test_available_nights_never_negative(self):
        assert available_nights(31, 3) == 28
        assert available_nights(3, 5) == 0

    def test_target_validation(self):
        with pytest.raises(InvalidInput):
            make_target(occ=120.0)
        with pytest.raises(InvalidInput):
            make_target(revenue=-1.0)


class TestAllocatePeriod:
    """All-rooms view."""

    @pytest.fixture
    def rooms(self):
        return {
            'room-a': RoomType(id='room-a', code='CABIN-A', base_price_weekday=2000.0,
                               base_price_weekend=2400.0),
            'room-b': RoomType(id='room-b', code='CABIN-B', base_price_weekday=1500.0,
                               base_price_weekend=1800.0),
        }

    def test_blended_figures(self, rooms):
        """
        A: 60 nights, 70% -> 42 nights @ 2500
        B: 50 nights (10 blocked), 40% -> 20 nights @ 3000
        Blended price = (2500 x 42 + 3000 x 20) / 62.
        """
        targets = [make_target('room-a'), make_target('room-b', occ=40.0, revenue=60000.0)]
        allocation = allocate_period(
            targets, rooms, blocked_by_room={'room-b': 10},
            current_prices={'room-a': 2400.0, 'room-b': 2800.0},
        )

        assert allocation.days == 60
        assert allocation.total_available_nights == 110
        assert allocation.total_target_nights == 62
        assert allocation.total_target_revenue == pytest.approx(165000.0)
        assert allocation.blended_required_price == pytest.approx((2500 * 42 + 3000 * 20) / 62)
        assert allocation.blended_current_price == pytest.approx((2400 * 42 + 2800 * 20) / 62)
        assert allocation.weighted_target_occupancy == pytest.approx((70 * 60 + 40 * 50) / 110)

    def test_missing_current_price_uses_base(self, rooms):
        allocation = allocate_period([make_target('room-b')], rooms)
        assert allocation.room('room-b').current_price == 1500.0

    def test_frame_has_one_row_per_room(self, rooms):
        targets = [make_target('room-a'), make_target('room-b')]
        frame = allocate_period(targets, rooms).to_frame()
        assert list(frame['room_code']) == ['CABIN-A', 'CABIN-B']

    def test_mixed_periods_rejected(self, rooms):
        targets = [make_target('room-a'), make_target('room-b', end=date(2025, 8, 30))]
        with pytest.raises(InvalidInput):
            allocate_period(targets, rooms)

    def test_unknown_room_rejected(self, rooms):
        with pytest.raises(InvalidInput):
            allocate_period([make_target('room-z')], rooms)


@pytest.mark.integration
class TestLoadPeriodAllocation:
    """Allocation read from the store."""

    def test_blocked_dates_reduce_available_nights(self, store):
        store.create_period('July', date(2025, 7, 1), date(2025, 7, 31),
                            {'room-a': (50.0, 31000.0)})
        store.add_blocked_dates([
            BlockedDate('room-a', date(2025, 7, 10)),
            BlockedDate('room-a', date(2025, 7, 11)),
            BlockedDate('room-a', date(2025, 8, 1)),
        ])

        allocation = load_period_allocation(store, date(2025, 7, 1), date(2025, 7, 31))
        room = allocation.room('room-a')

        assert room.blocked_nights == 2
        assert room.available_nights == 29
        assert room.target_nights == 15
        assert room.required_avg_price == 2067
