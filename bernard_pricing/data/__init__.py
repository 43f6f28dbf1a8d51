"""Domain records and the DuckDB-backed store."""
from .entities import (
    BlockedDate,
    DayType,
    HistoryMode,
    MonthlyTarget,
    MonthRule,
    OverrideType,
    PaceCurve,
    PricingModel,
    PricingOverride,
    Reservation,
    RevenueRateBreakdown,
    RevenueTarget,
    RoomType,
    TierTemplate,
)
from .store import PricingStore, new_id
from .targets_csv import import_monthly_targets, read_monthly_targets, write_targets_template
