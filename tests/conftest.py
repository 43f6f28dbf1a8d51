"""
Shared pytest fixtures: an in-memory DuckDB store loaded from pandas
DataFrames, plus a pricing model and signals used across the test modules.
"""

from datetime import date

import pandas as pd
import pytest

from bernard_pricing.data.entities import (
    HistoryMode,
    MonthlyTarget,
    MonthRule,
    PaceCurve,
    PricingModel,
    RoomType,
    TierTemplate,
)
from bernard_pricing.data.store import PricingStore
from bernard_pricing.signals.provider import OccupancySignals


@pytest.fixture
def sample_room_types():
    """Two cabins: A is a single unit, B has two units."""
    return pd.DataFrame({
        'id': ['room-a', 'room-b'],
        'code': ['CABIN-A', 'CABIN-B'],
        'name': ['Lake Cabin', 'Forest Cabin'],
        'base_price_per_night_weekday': [2000.0, 1500.0],
        'base_price_per_night_weekend': [2400.0, 1800.0],
        'currency': ['GHS', 'GHS'],
        'max_occupancy': [2, 4],
        'units': [1, 2],
        'is_active': [True, True],
    })


@pytest.fixture
def sample_reservations():
    """
    Booked and cancelled stays around July 2025 (and July 2024 for history).

    - r1: CABIN-A, 2025-07-01 -> 07-04, booked 2025-05-01
    - r2: CABIN-A, 2025-07-10 -> 07-12, booked 2025-06-20 (after a 06-15 cut-off)
    - r3: CABIN-B, 2025-07-01 -> 07-03, package
    - r4: CABIN-B, 2025-07-05 -> 07-06, cancelled
    - r5: CABIN-A, 2024-07-01 -> 07-16, last year's July
    """
    return pd.DataFrame({
        'id': ['r1', 'r2', 'r3', 'r4', 'r5'],
        'room_type_id': ['room-a', 'room-a', 'room-b', 'room-b', 'room-a'],
        'check_in': pd.to_datetime(['2025-07-01', '2025-07-10', '2025-07-01', '2025-07-05', '2024-07-01']),
        'check_out': pd.to_datetime(['2025-07-04', '2025-07-12', '2025-07-03', '2025-07-06', '2024-07-16']),
        'status': ['confirmed', 'confirmed', 'checked_out', 'cancelled', 'checked_out'],
        'total': [6000.0, 4000.0, 3000.0, 1500.0, 30000.0],
        'created_at': pd.to_datetime(['2025-05-01', '2025-06-20', '2025-04-01', '2025-04-02', '2024-03-01']),
        'package_code': [None, None, 'HONEYMOON', None, None],
        'coupon_code': [None, 'SUMMER10', None, None, None],
        'group_reservation_code': [None, None, None, None, None],
    })


@pytest.fixture
def store(sample_room_types):
    """In-memory store with the sample room types loaded."""
    store = PricingStore.connect(":memory:")
    store.load_frame('room_types', sample_room_types)
    yield store
    store.close()


@pytest.fixture
def store_with_reservations(store, sample_reservations):
    store.load_frame('reservations', sample_reservations)
    return store


@pytest.fixture
def cabin():
    return RoomType(
        id='room-a',
        code='CABIN-A',
        name='Lake Cabin',
        base_price_weekday=2000.0,
        base_price_weekend=2400.0,
    )


@pytest.fixture
def pricing_model():
    """
    Model for July 2025 built so a Wednesday night with
    hist_occ=0.8, otb_occ=0.75 (walk-in) and mtd_occ=0.5 gives
    tier 1.2, pace 1.05 and target 0.95.
    """
    return PricingModel(
        id='model-1',
        name='Summer 2025',
        is_active=True,
        history_mode=HistoryMode.LAST_YEAR_SAME_MONTH,
        tiers=(
            TierTemplate(tier_name='Low', min_hist_occupancy=0.0, max_hist_occupancy=0.4,
                         multiplier=0.9, priority=1),
            TierTemplate(tier_name='Mid', min_hist_occupancy=0.4, max_hist_occupancy=0.7,
                         multiplier=1.0, priority=1),
            TierTemplate(tier_name='High', min_hist_occupancy=0.7, max_hist_occupancy=1.0,
                         multiplier=1.2, priority=2),
        ),
        month_rules=(MonthRule(month=7, min_multiplier=0.7, max_multiplier=2.0),),
        targets=(
            MonthlyTarget(month=7, target_occupancy=0.7, sensitivity_up=0.25, sensitivity_down=0.25),
        ),
        pace_curves=(
            PaceCurve(month=7, lead_window='walk_in', expected_otb_occ=0.5,
                      pace_sensitivity_up=0.1, pace_sensitivity_down=0.1),
        ),
    )


@pytest.fixture
def july_signals():
    """Signals giving tier 1.2, pace 1.05 and target 0.95 under `pricing_model`."""
    return OccupancySignals(
        hist_occ=0.8,
        mtd_occ=0.5,
        otb_occ=0.75,
        lead_days=10,
        lead_window='walk_in',
    )


@pytest.fixture
def as_of():
    return date(2025, 6, 15)


@pytest.fixture
def wednesday():
    return date(2025, 7, 2)
