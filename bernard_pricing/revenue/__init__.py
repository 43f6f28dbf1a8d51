"""Revenue targets, rate-type breakdowns and sensitivity analysis."""
from .aggregation import revenue_weighted_pct, weighted_average
from .allocator import (
    Allocation,
    PeriodAllocation,
    RoomAllocation,
    allocate,
    allocate_period,
    available_nights,
    days_in_period,
    load_period_allocation,
)
from .breakdown import (
    BreakdownRow,
    RateTypeVariance,
    ReconciledRow,
    add_row,
    aggregate_breakdowns,
    apply_edit,
    classify_reservation,
    default_breakdown,
    delete_row,
    ensure_residual,
    load_breakdown,
    load_period_breakdowns,
    rate_type_variance,
    reconcile,
    rows_from_records,
    rows_to_records,
    save_breakdown,
    validate_total,
)
from .sensitivity import VarianceBand, VarianceRow, analyze, analyze_period, classify_variance
