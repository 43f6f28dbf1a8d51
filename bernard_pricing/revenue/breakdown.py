"""
Rate-type breakdown of a revenue target.

A target's business is split across rate types (Packages, Coupon
Promotions, Group Bookings, ...) plus one residual "Rate card" row:

    residual.pct = max(0, 100 - sum(other pct))

The residual is never edited directly. Each row's nights, revenue and
price come from the target's totals:

    days    = round(total_nights x pct / 100)
    revenue = round(total_revenue x pct / 100)
    price   = round(revenue / days)            (0 when days == 0)

Discounts are relative to the residual row's price, recomputed on every
read; the residual's own discount is 0.
"""

import logging
import math
from dataclasses import dataclass, replace
from datetime import date
from typing import Dict, Hashable, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from ..config import DEFAULT_RATE_TYPES, PCT_TOLERANCE, RESIDUAL_RATE_TYPE
from ..data.entities import Reservation, RevenueRateBreakdown, RevenueTarget
from ..data.store import PricingStore, new_id
from ..errors import InvalidInput, ReconciliationInconsistency
from ..utils import round_half_up
from .aggregation import revenue_weighted_pct
from .allocator import allocate, available_nights, days_in_period

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BreakdownRow:
    id: str
    rate_type: str
    type_detail: str = ''
    pct: float = 0.0
    is_residual: bool = False
    sort_order: int = 0

    @property
    def key(self) -> Tuple[str, str]:
        return (self.rate_type, self.type_detail)


@dataclass(frozen=True)
class ReconciledRow(BreakdownRow):
    """A breakdown row with its derived nights, revenue, price and discount."""
    days: int = 0
    revenue: int = 0
    price: int = 0
    discount: int = 0


def is_residual_type(rate_type: str) -> bool:
    return (rate_type or '').strip().lower() == RESIDUAL_RATE_TYPE.lower()


def _non_residual_total(rows: Iterable[BreakdownRow]) -> float:
    return sum(r.pct for r in rows if not r.is_residual)


# =============================================================================
# RESIDUAL INVARIANT
# =============================================================================

def ensure_residual(rows: Sequence[BreakdownRow]) -> List[BreakdownRow]:
    """
    Normalise a row set so it has exactly one residual row, listed first.

    Extra rows named "Rate card" are folded into the residual, and the
    residual's pct is recomputed from the other rows.
    """
    residual = None
    others = []
    for row in rows:
        if row.is_residual or is_residual_type(row.rate_type):
            if residual is None:
                residual = row
            continue
        others.append(row)

    if residual is None:
        residual = BreakdownRow(id=new_id(), rate_type=RESIDUAL_RATE_TYPE)

    residual_pct = max(0.0, 100.0 - _non_residual_total(others))
    result = [replace(
        residual,
        rate_type=RESIDUAL_RATE_TYPE,
        pct=residual_pct,
        is_residual=True,
        sort_order=0,
    )]
    for i, row in enumerate(others, start=1):
        result.append(replace(row, sort_order=i))
    return result


def reconcile(
    rows: Sequence[BreakdownRow],
    total_nights: int,
    total_revenue: float,
) -> List[ReconciledRow]:
    """
    Derive nights, revenue, price and discount for every row.

    Pure and idempotent: reconciling the output again gives the same rows.

    Raises:
        ReconciliationInconsistency: the non-residual rows take more than 100%
    """
    rows = ensure_residual(rows)
    overflow = _non_residual_total(rows)
    if overflow > 100.0 + PCT_TOLERANCE:
        raise ReconciliationInconsistency(
            f"Rate types other than '{RESIDUAL_RATE_TYPE}' take {overflow:.4f}%"
        )

    derived = []
    for row in rows:
        days = round_half_up(total_nights * row.pct / 100)
        revenue = round_half_up(total_revenue * row.pct / 100)
        price = round_half_up(revenue / days) if days > 0 else 0
        derived.append((row, days, revenue, price))

    benchmark = derived[0][3]
    result = []
    for row, days, revenue, price in derived:
        if row.is_residual or benchmark <= 0:
            discount = 0
        else:
            discount = round_half_up((benchmark - price) / benchmark * 100)
        result.append(ReconciledRow(
            id=row.id,
            rate_type=row.rate_type,
            type_detail=row.type_detail,
            pct=row.pct,
            is_residual=row.is_residual,
            sort_order=row.sort_order,
            days=days,
            revenue=revenue,
            price=price,
            discount=discount,
        ))
    return result


# =============================================================================
# EDITING
# =============================================================================

def _parse_pct(value) -> float:
    try:
        pct = float(value)
    except (TypeError, ValueError):
        raise InvalidInput(
            f"Percentage must be a number, got {value!r}", entity='pct_business'
        ) from None
    if math.isnan(pct):
        raise InvalidInput("Percentage must be a number, got NaN", entity='pct_business')
    return pct


def _find(rows: Sequence[BreakdownRow], row_id: str) -> BreakdownRow:
    for row in rows:
        if row.id == row_id:
            return row
    raise InvalidInput(f"Unknown breakdown row: {row_id}", entity='rate_breakdown')


def _headroom(rows: Sequence[BreakdownRow], exclude_id: Optional[str] = None) -> float:
    """Share still free for one non-residual row."""
    others = [r for r in rows if r.id != exclude_id]
    return max(0.0, 100.0 - _non_residual_total(others))


def apply_edit(rows: Sequence[BreakdownRow], row_id: str, new_pct) -> List[BreakdownRow]:
    """
    Set a non-residual row's pct and rebalance the residual.

    The new pct is capped at the share the other non-residual rows leave
    free (and floored at 0), so the set keeps summing to 100.
    """
    rows = ensure_residual(rows)
    target = _find(rows, row_id)
    if target.is_residual:
        raise InvalidInput(
            f"'{RESIDUAL_RATE_TYPE}' is computed from the other rows and cannot be edited",
            entity='rate_breakdown',
        )

    pct = _parse_pct(new_pct)
    headroom = _headroom(rows, exclude_id=row_id)
    capped = min(max(pct, 0.0), headroom)
    if capped != pct:
        logger.debug(f"Capped {target.rate_type} at {capped:.2f}% (requested {pct:.2f}%)")

    return ensure_residual([
        replace(r, pct=capped) if r.id == row_id else r for r in rows
    ])


def add_row(
    rows: Sequence[BreakdownRow],
    rate_type: str,
    type_detail: str = '',
    pct=0.0,
) -> List[BreakdownRow]:
    """Append a rate type, taking its pct from the residual's share."""
    if not rate_type or not rate_type.strip():
        raise InvalidInput("Rate type is required", entity='rate_type')
    if is_residual_type(rate_type):
        raise InvalidInput(
            f"'{RESIDUAL_RATE_TYPE}' already exists as the residual row", entity='rate_type'
        )
    rows = ensure_residual(rows)
    capped = min(max(_parse_pct(pct), 0.0), _headroom(rows))
    new_row = BreakdownRow(
        id=new_id(),
        rate_type=rate_type.strip(),
        type_detail=type_detail or '',
        pct=capped,
        sort_order=len(rows),
    )
    return ensure_residual(list(rows) + [new_row])


def delete_row(rows: Sequence[BreakdownRow], row_id: str) -> List[BreakdownRow]:
    """Remove a non-residual row; its share returns to the residual."""
    rows = ensure_residual(rows)
    if _find(rows, row_id).is_residual:
        raise InvalidInput(
            f"'{RESIDUAL_RATE_TYPE}' cannot be deleted", entity='rate_breakdown'
        )
    return ensure_residual([r for r in rows if r.id != row_id])


def default_breakdown() -> List[BreakdownRow]:
    """Seed rows for a target without a saved breakdown."""
    return ensure_residual([
        BreakdownRow(id=new_id(), rate_type=rate_type, pct=pct)
        for rate_type, pct in DEFAULT_RATE_TYPES
    ])


def validate_total(rows: Sequence[BreakdownRow]) -> None:
    """
    Check a row set can be persisted.

    Raises:
        ReconciliationInconsistency: negative shares, more than one residual,
            or a total other than 100
    """
    residuals = [r for r in rows if r.is_residual]
    if len(residuals) != 1:
        raise ReconciliationInconsistency(
            f"Expected exactly one residual row, found {len(residuals)}"
        )
    negative = [r.rate_type for r in rows if r.pct < 0]
    if negative:
        raise ReconciliationInconsistency(f"Negative share for: {', '.join(negative)}")
    total = sum(r.pct for r in rows)
    if abs(total - 100.0) > PCT_TOLERANCE:
        raise ReconciliationInconsistency(
            f"Breakdown sums to {total:.4f}%, other rate types take "
            f"{_non_residual_total(rows):.4f}%"
        )


# =============================================================================
# PERSISTENCE
# =============================================================================

def rows_from_records(
    records: Sequence[RevenueRateBreakdown],
    seed_default: bool = True,
) -> List[BreakdownRow]:
    """
    Rows for a stored breakdown.

    Args:
        records: Stored rows of one target
        seed_default: Use the default seed when nothing is stored
            (otherwise the target is 100% rate card)
    """
    if not records and seed_default:
        return default_breakdown()
    ordered = sorted(records, key=lambda r: r.sort_order)
    return ensure_residual([
        BreakdownRow(
            id=r.id or new_id(),
            rate_type=r.rate_type,
            type_detail=r.type_detail or '',
            pct=float(r.pct_business),
            is_residual=is_residual_type(r.rate_type),
            sort_order=r.sort_order,
        )
        for r in ordered
    ])


def rows_to_records(
    target_id: str, rows: Sequence[BreakdownRow]
) -> List[RevenueRateBreakdown]:
    """Records to persist; reconciled rows carry their discount along."""
    return [
        RevenueRateBreakdown(
            id=row.id,
            revenue_target_id=target_id,
            rate_type=row.rate_type,
            type_detail=row.type_detail,
            pct_business=row.pct,
            discount=float(getattr(row, 'discount', 0)),
            sort_order=row.sort_order,
        )
        for row in rows
    ]


def target_allocation(store: PricingStore, target: RevenueTarget):
    """Allocation of a stored target, net of the room's blocked nights."""
    blocked = store.count_blocked_nights(target.period_start, target.period_end)
    days = days_in_period(target.period_start, target.period_end)
    return allocate(target, available_nights(days, blocked.get(target.room_type_id, 0)))


def load_breakdown(store: PricingStore, target_id: str) -> List[ReconciledRow]:
    """A stored target's breakdown, reconciled against its allocation."""
    target = store.get_revenue_target(target_id)
    if target is None:
        raise InvalidInput(f"Unknown revenue target: {target_id}", entity='revenue_target')
    rows = rows_from_records(store.get_breakdowns(target_id))
    allocation = target_allocation(store, target)
    return reconcile(rows, allocation.target_nights, target.target_revenue)


def save_breakdown(
    store: PricingStore,
    target_id: str,
    rows: Sequence[BreakdownRow],
) -> List[ReconciledRow]:
    """
    Persist a target's breakdown, replacing every stored row.

    The residual is recomputed before validation; a set that still does not
    sum to 100 is rejected and nothing is written.
    """
    target = store.get_revenue_target(target_id)
    if target is None:
        raise InvalidInput(f"Unknown revenue target: {target_id}", entity='revenue_target')

    fixed = ensure_residual(rows)
    incoming = [r for r in rows if r.is_residual or is_residual_type(r.rate_type)]
    if incoming and abs(incoming[0].pct - fixed[0].pct) > PCT_TOLERANCE:
        logger.warning(
            f"Corrected '{RESIDUAL_RATE_TYPE}' for target {target_id}: "
            f"{incoming[0].pct:.2f}% -> {fixed[0].pct:.2f}%"
        )
    validate_total(fixed)

    allocation = target_allocation(store, target)
    reconciled = reconcile(fixed, allocation.target_nights, target.target_revenue)
    store.replace_breakdowns(target_id, rows_to_records(target_id, reconciled))
    return reconciled


# =============================================================================
# ALL ROOMS
# =============================================================================

def aggregate_breakdowns(
    per_target: Iterable[Tuple[RevenueTarget, Sequence[BreakdownRow]]],
) -> List[BreakdownRow]:
    """
    Target-revenue weighted breakdown across rooms.

    Each (rate_type, type_detail) share is weighted by the room's target
    revenue; a room without that type contributes 0. The residual is
    recomputed from the aggregated shares.
    """
    entries = []
    for target, rows in per_target:
        normalised = ensure_residual(rows)
        pcts: Dict[Hashable, float] = {}
        for row in normalised:
            if not row.is_residual:
                pcts[row.key] = pcts.get(row.key, 0.0) + row.pct
        entries.append((target.target_revenue, pcts))

    weighted = revenue_weighted_pct(entries)
    rows = [
        BreakdownRow(
            id=f"all-rooms:{rate_type}:{type_detail}",
            rate_type=rate_type,
            type_detail=type_detail,
            pct=pct,
        )
        for (rate_type, type_detail), pct in weighted.items()
    ]
    residual = BreakdownRow(
        id=f"all-rooms:{RESIDUAL_RATE_TYPE}", rate_type=RESIDUAL_RATE_TYPE, is_residual=True
    )
    return ensure_residual([residual] + rows)


def load_period_breakdowns(
    store: PricingStore, start: date, end: date
) -> List[Tuple[RevenueTarget, List[BreakdownRow]]]:
    """(target, rows) for every room target of a period; unsaved targets are 100% rate card."""
    targets = store.list_revenue_targets(start, end)
    records = store.get_breakdowns_for_targets([t.id for t in targets])
    return [
        (t, rows_from_records(records.get(t.id, []), seed_default=False))
        for t in targets
    ]


# =============================================================================
# ACTUAL VS TARGET
# =============================================================================

def _text(value) -> str:
    if isinstance(value, str):
        return value.strip()
    return ''


def classify_reservation(reservation: Union[Reservation, Mapping]) -> str:
    """Rate type a reservation was sold under."""
    if isinstance(reservation, Mapping):
        get = reservation.get
    else:
        def get(name):
            return getattr(reservation, name, None)

    if _text(get('package_code')):
        return 'Packages'
    if _text(get('coupon_code')):
        return 'Coupon Promotions'
    if _text(get('group_reservation_code')):
        return 'Group Bookings'
    return RESIDUAL_RATE_TYPE


def pct_by_rate_type(rows: Iterable[BreakdownRow]) -> Dict[str, float]:
    """Shares summed per rate type (type details merged)."""
    result: Dict[str, float] = {}
    for row in rows:
        result[row.rate_type] = result.get(row.rate_type, 0.0) + row.pct
    return result


@dataclass(frozen=True)
class RateTypeVariance:
    rate_type: str
    target_pct: float
    target_revenue: int
    actual_revenue: float
    actual_pct: float
    reservations: int
    variance: float
    variance_pct: float


def rate_type_variance(
    target_pcts: Mapping[str, float],
    period_target_revenue: float,
    reservations: Union[pd.DataFrame, Iterable[Reservation]],
) -> List[RateTypeVariance]:
    """
    Actual revenue per rate type against its target share.

    Args:
        target_pcts: {rate_type: target pct}
        period_target_revenue: Target revenue the shares apply to
        reservations: Booked reservations of the period

    Returns:
        One row per rate type, sorted by target pct descending
    """
    if isinstance(reservations, pd.DataFrame):
        reservations = reservations.to_dict('records')

    actual: Dict[str, float] = {}
    counts: Dict[str, int] = {}
    for res in reservations:
        total = res['total'] if isinstance(res, Mapping) else res.total
        total = 0.0 if total is None or pd.isna(total) else float(total)
        rate_type = classify_reservation(res)
        actual[rate_type] = actual.get(rate_type, 0.0) + total
        counts[rate_type] = counts.get(rate_type, 0) + 1

    total_actual = sum(actual.values())
    rate_types = list(target_pcts) + [t for t in actual if t not in target_pcts]

    rows = []
    for rate_type in rate_types:
        target_pct = float(target_pcts.get(rate_type, 0.0))
        target_revenue = round_half_up(period_target_revenue * target_pct / 100)
        actual_revenue = actual.get(rate_type, 0.0)
        variance = actual_revenue - target_revenue
        rows.append(RateTypeVariance(
            rate_type=rate_type,
            target_pct=target_pct,
            target_revenue=target_revenue,
            actual_revenue=actual_revenue,
            actual_pct=actual_revenue / total_actual * 100 if total_actual > 0 else 0.0,
            reservations=counts.get(rate_type, 0),
            variance=variance,
            variance_pct=variance / target_revenue * 100 if target_revenue > 0 else 0.0,
        ))

    return sorted(rows, key=lambda r: r.target_pct, reverse=True)
