"""
Monthly targets as a CSV sheet: a fill-in template and a validated import.

Columns:
    room_code         blank for every room, otherwise a room type code
    month             1-12
    target_occupancy  0-1 (0.75 = 75%)
    target_revpan     optional revenue per available night
    sensitivity_up    optional, default 0.25
    sensitivity_down  optional, default 0.25

An import is all-or-nothing: any bad row rejects the whole file and the
model's stored targets are left untouched.
"""

import logging
from pathlib import Path
from typing import IO, Dict, List, Optional, Sequence, Union

import pandas as pd

from ..config import DEFAULT_SENSITIVITY
from ..errors import InvalidInput
from .entities import MonthlyTarget, RoomType
from .store import PricingStore

logger = logging.getLogger(__name__)

TEMPLATE_COLUMNS = [
    'room_code', 'month', 'target_occupancy', 'target_revpan',
    'sensitivity_up', 'sensitivity_down',
]

CsvSource = Union[str, Path, IO[str]]


def targets_template(room_codes: Sequence[str] = ()) -> pd.DataFrame:
    """Example rows: all-rooms targets for January and July, plus one per room for July."""
    rows = [
        ['', 1, 0.60, 2500.0, 0.25, 0.25],
        ['', 7, 0.85, 3200.0, 0.35, 0.30],
    ]
    rows.extend([code, 7, 0.90, 3500.0, 0.40, 0.35] for code in room_codes)
    return pd.DataFrame(rows, columns=TEMPLATE_COLUMNS)


def write_targets_template(path: Union[str, Path], room_codes: Sequence[str] = ()) -> Path:
    path = Path(path)
    targets_template(room_codes).to_csv(path, index=False)
    logger.info(f"Wrote monthly targets template to {path}")
    return path


def _number(value) -> Optional[float]:
    """A sheet cell as a float; blank or non-numeric cells give None."""
    if pd.isna(value) or not str(value).strip():
        return None
    number = pd.to_numeric(str(value).strip(), errors='coerce')
    return None if pd.isna(number) else float(number)


def _parse_row(row: pd.Series, rooms: Dict[str, RoomType]) -> MonthlyTarget:
    """One sheet row as a target; ValueError names the offending column."""
    month = _number(row['month'])
    if month is None or not month.is_integer() or not 1 <= month <= 12:
        raise ValueError(f"month '{row['month']}' must be 1-12")

    occupancy = _number(row['target_occupancy'])
    if occupancy is None or not 0.0 <= occupancy <= 1.0:
        raise ValueError(f"target_occupancy '{row['target_occupancy']}' must be 0-1")

    room_type_id = None
    code = row['room_code']
    if not pd.isna(code) and str(code).strip():
        room = rooms.get(str(code).strip().upper())
        if room is None:
            raise ValueError(f"unknown room code '{code}'")
        room_type_id = room.id

    up = _number(row['sensitivity_up'])
    down = _number(row['sensitivity_down'])
    return MonthlyTarget(
        month=int(month),
        target_occupancy=occupancy,
        target_revpan=_number(row['target_revpan']),
        sensitivity_up=DEFAULT_SENSITIVITY if up is None else up,
        sensitivity_down=DEFAULT_SENSITIVITY if down is None else down,
        room_type_id=room_type_id,
    )


def read_monthly_targets(source: CsvSource, rooms: Sequence[RoomType]) -> List[MonthlyTarget]:
    """
    Parse and validate a monthly targets sheet.

    Rows without a month are skipped. Row numbers in errors count the header
    as row 1, as a spreadsheet shows them.

    Raises:
        InvalidInput: missing columns, or one or more bad rows (all listed)
    """
    df = pd.read_csv(source, dtype=str, skipinitialspace=True)
    df.columns = [str(c).strip().lower() for c in df.columns]

    missing = [c for c in ('month', 'target_occupancy') if c not in df.columns]
    if missing:
        raise InvalidInput(
            f"Monthly targets sheet is missing columns: {', '.join(missing)}",
            entity='monthly_target',
        )
    for col in TEMPLATE_COLUMNS:
        if col not in df.columns:
            df[col] = None

    by_code = {r.code.upper(): r for r in rooms}
    targets = []
    errors = []
    for idx, row in df.iterrows():
        if pd.isna(row['month']) or not str(row['month']).strip():
            continue
        try:
            targets.append(_parse_row(row, by_code))
        except ValueError as e:
            errors.append(f"row {idx + 2}: {e}")

    if errors:
        logger.warning(f"Rejected monthly targets sheet: {len(errors)} bad rows")
        raise InvalidInput(
            "Invalid monthly targets:\n" + "\n".join(errors), entity='monthly_target'
        )
    return targets


def import_monthly_targets(store: PricingStore, model_id: str, source: CsvSource) -> int:
    """
    Replace a model's monthly targets with the rows of a sheet.

    Returns:
        Number of targets stored
    """
    targets = read_monthly_targets(source, store.list_room_types(active_only=False))
    if not targets:
        raise InvalidInput("Monthly targets sheet has no rows", entity='monthly_target')
    return store.replace_monthly_targets(model_id, targets)
