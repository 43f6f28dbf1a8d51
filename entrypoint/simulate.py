#!/usr/bin/env python
"""
Simulate the nightly rates of a stay.

Usage:
    python entrypoint/simulate.py --db bernard.duckdb --room CABIN-A \
        --check-in 2025-07-04 --check-out 2025-07-07
    python entrypoint/simulate.py --db bernard.duckdb --room CABIN-A \
        --check-in 2025-07-04 --check-out 2025-07-07 --model <model-id> --today 2025-06-01
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
from bernard_pricing.pricing.simulator import resolve_model, simulate_stay
from bernard_pricing.reporting import render_simulation
from bernard_pricing.signals.store_provider import StoreSignalProvider


def main():
    logging.basicConfig(level=logging.INFO, format='%(message)s')

    parser = argparse.ArgumentParser(description='Simulate nightly rates for a stay')
    parser.add_argument('--db', type=str, help='DuckDB database file (default: BERNARD_DB_PATH)')
    parser.add_argument('--room', type=str, required=True, help='Room type code')
    parser.add_argument('--check-in', type=date.fromisoformat, required=True, help='First night')
    parser.add_argument('--check-out', type=date.fromisoformat, required=True, help='Departure date')
    parser.add_argument('--model', type=str, help='Pricing model ID (default: active model)')
    parser.add_argument('--today', type=date.fromisoformat, help='Reference date for lead times')
    args = parser.parse_args()

    config = EngineConfig.from_env()
    if args.db:
        config.db_path = args.db
    if args.today:
        config.today = args.today

    with PricingStore.connect(config.db_path) as store:
        try:
            room = store.get_room_type_by_code(args.room)
            if room is None:
                print(f"Error: unknown room type '{args.room}'")
                return 1
            model = resolve_model(store, args.model)
            provider = StoreSignalProvider(store, as_of=config.resolve_today())
            result = simulate_stay(
                room.id, args.check_in, args.check_out, store, provider,
                model=model, config=config,
            )
        except PricingError as e:
            print(f"Error: {e}")
            return 1

    print(render_simulation(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
