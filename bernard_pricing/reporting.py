"""
Text reports for simulations, period allocations, breakdowns and
sensitivity sweeps. Presentation only: nothing here feeds back into a
calculation.
"""

from typing import List, Optional, Sequence

from .config import DEFAULT_CURRENCY, LEAD_WINDOW_LABELS
from .pricing.simulator import SimulationResult
from .revenue.allocator import PeriodAllocation
from .revenue.breakdown import RateTypeVariance, ReconciledRow
from .revenue.sensitivity import VarianceBand, VarianceRow

RULE = "=" * 70
THIN_RULE = "─" * 50

BAND_MARKERS = {
    VarianceBand.STRONG_POSITIVE: "++",
    VarianceBand.SLIGHT_POSITIVE: "+",
    VarianceBand.SLIGHT_NEGATIVE: "-",
    VarianceBand.STRONG_NEGATIVE: "--",
}


def format_money(amount: float, currency: str = DEFAULT_CURRENCY) -> str:
    """format_money(2394) -> 'GHS 2,394.00'"""
    return f"{currency} {amount:,.2f}"


def format_pct(value: float, decimals: int = 1, signed: bool = False) -> str:
    """Format a 0-100 percentage."""
    sign = '+' if signed else ''
    return f"{value:{sign}.{decimals}f}%"


def lead_window_label(window: Optional[str]) -> str:
    """lead_window_label('walk_in') -> 'Walk-in (7-14 days)'"""
    if window is None:
        return '-'
    return LEAD_WINDOW_LABELS.get(window, window)


def _header(title: str) -> List[str]:
    return ["", RULE, title, RULE]


def render_simulation(result: SimulationResult) -> str:
    lines = _header(f"SIMULATION: {result.room_code} {result.check_in} -> {result.check_out}")
    lines.append(f"\nNights: {result.nights}")
    lines.append(f"Pricing model: {result.pricing_model_id}")
    lines.append("")
    lines.append(
        f"{'Date':<12}{'Base':>14}{'Tier':>7}{'Pace':>7}{'Target':>8}{'Rate':>16}  Lead window"
    )
    for night in result.nightly_rates:
        meta = night.meta
        flag = " (override)" if meta.override_applied else ""
        lines.append(
            f"{night.date.isoformat():<12}"
            f"{format_money(night.base, result.currency):>14}"
            f"{meta.tier_mult:>7.2f}{meta.pace_mult:>7.2f}{meta.target_mult:>8.2f}"
            f"{format_money(night.rate, result.currency):>16}  "
            f"{lead_window_label(meta.lead_window)}{flag}"
        )
    lines.append(THIN_RULE)
    lines.append(f"Total: {format_money(result.total, result.currency)}")
    lines.append(f"Average nightly rate: {format_money(result.average_rate, result.currency)}")
    return "\n".join(lines)


def render_allocation(allocation: PeriodAllocation, currency: str = DEFAULT_CURRENCY) -> str:
    lines = _header(
        f"REVENUE TARGETS: {allocation.period_name} "
        f"({allocation.period_start} -> {allocation.period_end}, {allocation.days} days)"
    )
    for r in allocation.rooms:
        lines.append(f"\n{r.room.code}")
        lines.append(
            f"  Available nights: {r.available_nights} ({r.blocked_nights} blocked)"
        )
        lines.append(
            f"  Target: {format_pct(r.target.target_occupancy)} occupancy -> "
            f"{r.target_nights} nights, {format_money(r.target.target_revenue, currency)}"
        )
        lines.append(
            f"  Required avg price: {format_money(r.required_avg_price, currency)} | "
            f"Current: {format_money(r.current_price, currency)}"
        )
    lines.append(f"\n{THIN_RULE}")
    lines.append("All rooms")
    lines.append(
        f"  Target revenue: {format_money(allocation.total_target_revenue, currency)} "
        f"over {allocation.total_target_nights} of {allocation.total_available_nights} nights"
    )
    lines.append(
        f"  Weighted target occupancy: {format_pct(allocation.weighted_target_occupancy)}"
    )
    lines.append(
        f"  Blended required price: {format_money(allocation.blended_required_price, currency)} | "
        f"Blended current: {format_money(allocation.blended_current_price, currency)}"
    )
    return "\n".join(lines)


def render_breakdown(
    rows: Sequence[ReconciledRow], title: str, currency: str = DEFAULT_CURRENCY
) -> str:
    lines = _header(f"RATE-TYPE BREAKDOWN: {title}")
    lines.append(
        f"{'Rate type':<28}{'Share':>8}{'Nights':>8}{'Revenue':>18}{'Price':>16}{'Discount':>10}"
    )
    for row in rows:
        label = row.rate_type + (f" ({row.type_detail})" if row.type_detail else "")
        lines.append(
            f"{label:<28}{format_pct(row.pct):>8}{row.days:>8}"
            f"{format_money(row.revenue, currency):>18}{format_money(row.price, currency):>16}"
            f"{format_pct(row.discount, 0):>10}"
        )
    return "\n".join(lines)


def render_sensitivity(
    rows: Sequence[VarianceRow], title: str, currency: str = DEFAULT_CURRENCY
) -> str:
    lines = _header(f"SENSITIVITY: {title}")
    lines.append(
        f"{'Occ':>6}{'Nights':>8}{'Required':>18}{'At current price':>20}{'Variance':>10}"
    )
    for row in rows:
        marker = " <- target" if row.is_target else ""
        lines.append(
            f"{format_pct(row.occ, 0):>6}{row.nights:>8}"
            f"{format_money(row.revenue_required, currency):>18}"
            f"{format_money(row.revenue_current, currency):>20}"
            f"{format_pct(row.variance_pct, 1, signed=True):>10} {BAND_MARKERS[row.band]}{marker}"
        )
    return "\n".join(lines)


def render_rate_type_variance(
    rows: Sequence[RateTypeVariance], currency: str = DEFAULT_CURRENCY
) -> str:
    lines = _header("ACTUAL VS TARGET BY RATE TYPE")
    for row in rows:
        lines.append(
            f"{row.rate_type:<20} target {format_pct(row.target_pct)} "
            f"{format_money(row.target_revenue, currency)} | actual "
            f"{format_money(row.actual_revenue, currency)} ({row.reservations} bookings, "
            f"{format_pct(row.actual_pct)} of actual) | "
            f"{format_pct(row.variance_pct, 1, signed=True)}"
        )
    return "\n".join(lines)
