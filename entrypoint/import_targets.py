#!/usr/bin/env python
"""
Write the monthly targets CSV template, or load a filled one into a model.

Usage:
    python entrypoint/import_targets.py --template targets.csv
    python entrypoint/import_targets.py --db bernard.duckdb --model <model-id> --csv targets.csv
    python entrypoint/import_targets.py --db bernard.duckdb --model <model-id> \
        --copy-from <other-model-id> --sections tiers pace_curves
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import argparse
import logging

from bernard_pricing.config import EngineConfig
from bernard_pricing.data.store import MODEL_SECTIONS, PricingStore
from bernard_pricing.data.targets_csv import import_monthly_targets, write_targets_template
from bernard_pricing.errors import PricingError


def main():
    logging.basicConfig(level=logging.INFO, format='%(message)s')

    parser = argparse.ArgumentParser(description='Monthly targets template, import and model copy')
    parser.add_argument('--db', type=str, help='DuckDB database file (default: BERNARD_DB_PATH)')
    parser.add_argument('--model', type=str, help='Pricing model ID to write to')
    parser.add_argument('--csv', type=Path, help='Filled monthly targets sheet to import')
    parser.add_argument('--template', type=Path, help='Write an example sheet to this path and exit')
    parser.add_argument('--copy-from', type=str, help='Pricing model ID to copy sections from')
    parser.add_argument('--sections', nargs='+', choices=sorted(MODEL_SECTIONS),
                        default=sorted(MODEL_SECTIONS), help='Sections to copy (default: all)')
    args = parser.parse_args()

    config = EngineConfig.from_env()
    if args.db:
        config.db_path = args.db

    if args.template:
        with PricingStore.connect(config.db_path) as store:
            codes = [r.code for r in store.list_room_types()]
        write_targets_template(args.template, codes)
        print(f"Template written to {args.template}")
        return 0

    if not args.model or not (args.csv or args.copy_from):
        parser.error('--model and one of --csv / --copy-from are required')

    with PricingStore.connect(config.db_path) as store:
        try:
            if args.copy_from:
                copied = store.copy_model_sections(args.copy_from, args.model, args.sections)
                for section, count in copied.items():
                    note = f"{count} rows" if count else "skipped (empty in source)"
                    print(f"  {section}: {note}")
            if args.csv:
                count = import_monthly_targets(store, args.model, args.csv)
                print(f"Imported {count} monthly targets into {args.model}")
        except PricingError as e:
            print(f"Error: {e}")
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
