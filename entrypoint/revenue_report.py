#!/usr/bin/env python
"""
Revenue target report for a period: allocation, rate-type breakdown and
occupancy sensitivity.

Usage:
    python entrypoint/revenue_report.py --db bernard.duckdb \
        --period-start 2025-07-01 --period-end 2025-07-31
    python entrypoint/revenue_report.py --db bernard.duckdb \
        --period-start 2025-07-01 --period-end 2025-07-31 --room CABIN-A
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import argparse
import logging
from datetime import date

from bernard_pricing.config import EngineConfig
from bernard_pricing.data.store import PricingStore
from bernard_pricing.errors import PricingError
from bernard_pricing.revenue.allocator import load_period_allocation
from bernard_pricing.revenue.breakdown import (
    aggregate_breakdowns,
    load_breakdown,
    load_period_breakdowns,
    pct_by_rate_type,
    rate_type_variance,
    reconcile,
)
from bernard_pricing.revenue.sensitivity import analyze, analyze_period
from bernard_pricing.reporting import (
    render_allocation,
    render_breakdown,
    render_rate_type_variance,
    render_sensitivity,
)
from bernard_pricing.signals.store_provider import StoreSignalProvider


def main():
    logging.basicConfig(level=logging.INFO, format='%(message)s')

    parser = argparse.ArgumentParser(description='Revenue target report for a period')
    parser.add_argument('--db', type=str, help='DuckDB database file (default: BERNARD_DB_PATH)')
    parser.add_argument('--period-start', type=date.fromisoformat, required=True)
    parser.add_argument('--period-end', type=date.fromisoformat, required=True)
    parser.add_argument('--room', type=str, help='Room type code (default: all rooms)')
    parser.add_argument('--today', type=date.fromisoformat, help='Reference date for current prices')
    parser.add_argument('--include-anchor', action='store_true',
                        help='Add the target occupancy to the sensitivity sweep')
    args = parser.parse_args()

    config = EngineConfig.from_env()
    if args.db:
        config.db_path = args.db
    if args.today:
        config.today = args.today
    currency = config.currency

    with PricingStore.connect(config.db_path) as store:
        try:
            today = config.resolve_today()
            provider = StoreSignalProvider(store, as_of=today)
            allocation = load_period_allocation(
                store, args.period_start, args.period_end,
                provider=provider, model=store.get_active_pricing_model(), today=today,
            )
            print(render_allocation(allocation, currency))

            if args.room:
                room = store.get_room_type_by_code(args.room)
                room_alloc = allocation.room(room.id) if room else None
                if room_alloc is None:
                    print(f"Error: no target for room type '{args.room}' in this period")
                    return 1
                rows = load_breakdown(store, room_alloc.target.id)
                title = room_alloc.room.code
                sweep = analyze(
                    room_alloc.target,
                    room_alloc.available_nights,
                    room_alloc.current_price,
                    room_alloc.required_avg_price,
                    include_anchor=args.include_anchor,
                )
                reservations = store.reservations_frame(
                    args.period_start, args.period_end, room_type_id=room.id
                )
                target_revenue = room_alloc.target.target_revenue
            else:
                per_target = load_period_breakdowns(store, args.period_start, args.period_end)
                rows = reconcile(
                    aggregate_breakdowns(per_target),
                    allocation.total_target_nights,
                    allocation.total_target_revenue,
                )
                title = "All rooms"
                sweep = analyze_period(allocation, include_anchor=args.include_anchor)
                reservations = store.reservations_frame(args.period_start, args.period_end)
                target_revenue = allocation.total_target_revenue

            print(render_breakdown(rows, title, currency))
            print(render_rate_type_variance(
                rate_type_variance(pct_by_rate_type(rows), target_revenue, reservations),
                currency,
            ))
            print(render_sensitivity(sweep, title, currency))
        except PricingError as e:
            print(f"Error: {e}")
            return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
