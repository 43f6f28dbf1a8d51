"""
DuckDB-backed store for rooms, pricing models, revenue targets and bookings.

The engine only needs point lookups and range scans by room, date range and
period key; every multi-statement write (period edits, breakdown saves,
activating a model) runs in a single transaction so a failure never leaves
a target with partial rows.
"""

import logging
import uuid
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import duckdb
import pandas as pd

from ..config import BOOKED_STATUSES, PCT_TOLERANCE, RESIDUAL_RATE_TYPE
from ..errors import InvalidInput, PersistenceFailure, ReconciliationInconsistency
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
from .sql_loader import load_sql_file

logger = logging.getLogger(__name__)

TABLES = (
    'room_types',
    'pricing_models',
    'pricing_tier_templates',
    'pricing_model_month_rules',
    'pricing_targets',
    'pricing_pace_curves',
    'pricing_overrides',
    'revenue_targets',
    'revenue_rate_breakdowns',
    'blocked_dates',
    'reservations',
)

MODEL_CHILD_TABLES = (
    'pricing_tier_templates',
    'pricing_model_month_rules',
    'pricing_targets',
    'pricing_pace_curves',
    'pricing_overrides',
)

# Configuration sections that can be copied between models
MODEL_SECTIONS = {
    'tiers': 'pricing_tier_templates',
    'month_rules': 'pricing_model_month_rules',
    'targets': 'pricing_targets',
    'pace_curves': 'pricing_pace_curves',
}


def new_id() -> str:
    return str(uuid.uuid4())


def _to_date(value) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _or_default(value, default):
    return default if value is None else value


class PricingStore:
    """
    Persistence layer over a DuckDB connection.

    Usage:
        store = PricingStore.connect()          # in-memory, schema created
        store.add_room_type(RoomType(...))
        model = store.get_active_pricing_model()
    """

    def __init__(self, con: duckdb.DuckDBPyConnection):
        self._con = con

    @classmethod
    def connect(cls, db_path: str = ":memory:", init_schema: bool = True) -> 'PricingStore':
        """Open (or create) a database and make sure every table exists."""
        con = duckdb.connect(database=db_path, read_only=False)
        store = cls(con)
        if init_schema:
            store.init_schema()
        return store

    @property
    def con(self) -> duckdb.DuckDBPyConnection:
        return self._con

    def init_schema(self) -> None:
        self._con.execute(load_sql_file('schema.sql'))

    def cursor(self) -> 'PricingStore':
        """A store on a separate cursor, for use from another thread."""
        return PricingStore(self._con.cursor())

    def close(self) -> None:
        self._con.close()

    def __enter__(self) -> 'PricingStore':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # =========================================================================
    # LOW-LEVEL HELPERS
    # =========================================================================

    @contextmanager
    def transaction(self, action: str):
        """
        Run a block atomically.

        Store errors roll back and surface as PersistenceFailure; any other
        exception rolls back and propagates unchanged.
        """
        self._con.execute("BEGIN TRANSACTION")
        try:
            yield
        except duckdb.Error as e:
            self._con.execute("ROLLBACK")
            logger.error(f"Rolled back '{action}': {e}")
            raise PersistenceFailure(f"Failed to {action}: {e}") from e
        except BaseException:
            self._con.execute("ROLLBACK")
            raise
        else:
            self._con.execute("COMMIT")

    def _records(self, query: str, params: Sequence = ()) -> List[dict]:
        cur = self._con.execute(query, list(params))
        columns = [d[0] for d in cur.description]
        return [dict(zip(columns, row)) for row in cur.fetchall()]

    def load_frame(self, table: str, df: pd.DataFrame) -> int:
        """
        Bulk-insert a DataFrame into a table (columns matched by name).

        Returns:
            Number of rows inserted
        """
        if table not in TABLES:
            raise InvalidInput(f"Unknown table: {table}", entity=table)
        if df.empty:
            return 0

        columns = ", ".join(df.columns)
        self._con.register('_incoming_frame', df)
        try:
            self._con.execute(
                f"INSERT INTO {table} ({columns}) SELECT {columns} FROM _incoming_frame"
            )
        finally:
            self._con.unregister('_incoming_frame')
        return len(df)

    def interrupt(self) -> None:
        """Abort the query running on this connection (or cursor), if any."""
        self._con.interrupt()

    # =========================================================================
    # ROOM TYPES
    # =========================================================================

    def add_room_type(self, room: RoomType) -> RoomType:
        self._con.execute(
            """
            INSERT INTO room_types (
                id, code, name, base_price_per_night_weekday, base_price_per_night_weekend,
                currency, max_occupancy, units, is_active
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                room.id, room.code, room.name, room.base_price_weekday,
                room.base_price_weekend, room.currency, room.max_occupancy,
                room.units, room.is_active,
            ],
        )
        return room

    @staticmethod
    def _room_from_record(rec: dict) -> RoomType:
        return RoomType(
            id=rec['id'],
            code=rec['code'],
            name=rec['name'] or '',
            base_price_weekday=float(rec['base_price_per_night_weekday']),
            base_price_weekend=float(rec['base_price_per_night_weekend']),
            currency=rec['currency'] or 'GHS',
            max_occupancy=int(_or_default(rec['max_occupancy'], 2)),
            units=int(_or_default(rec['units'], 1)),
            is_active=bool(_or_default(rec['is_active'], True)),
        )

    def get_room_type(self, room_type_id: str) -> Optional[RoomType]:
        rows = self._records("SELECT * FROM room_types WHERE id = ?", [room_type_id])
        return self._room_from_record(rows[0]) if rows else None

    def get_room_type_by_code(self, code: str) -> Optional[RoomType]:
        rows = self._records(
            "SELECT * FROM room_types WHERE upper(code) = upper(?)", [code]
        )
        return self._room_from_record(rows[0]) if rows else None

    def list_room_types(self, active_only: bool = True) -> List[RoomType]:
        query = "SELECT * FROM room_types"
        if active_only:
            query += " WHERE is_active"
        query += " ORDER BY code"
        return [self._room_from_record(r) for r in self._records(query)]

    # =========================================================================
    # PRICING MODELS
    # =========================================================================

    def save_pricing_model(self, model: PricingModel) -> PricingModel:
        """Write a model header and all of its rules, replacing any previous version."""
        with self.transaction(f"save pricing model {model.id}"):
            for table in MODEL_CHILD_TABLES:
                self._con.execute(
                    f"DELETE FROM {table} WHERE pricing_model_id = ?", [model.id]
                )
            self._con.execute("DELETE FROM pricing_models WHERE id = ?", [model.id])
            if model.is_active:
                self._con.execute("UPDATE pricing_models SET is_active = FALSE")
            self._insert_pricing_model(model)
        return model

    def _insert_pricing_model(self, model: PricingModel) -> None:
        self._con.execute(
            "INSERT INTO pricing_models (id, name, is_active, history_mode) VALUES (?, ?, ?, ?)",
            [model.id, model.name, model.is_active, model.history_mode.value],
        )
        if model.tiers:
            self._con.executemany(
                """
                INSERT INTO pricing_tier_templates (
                    id, pricing_model_id, tier_name, min_hist_occupancy,
                    max_hist_occupancy, multiplier, priority, is_active
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    [t.id or new_id(), model.id, t.tier_name, t.min_hist_occupancy,
                     t.max_hist_occupancy, t.multiplier, t.priority, t.is_active]
                    for t in model.tiers
                ],
            )
        if model.month_rules:
            self._con.executemany(
                """
                INSERT INTO pricing_model_month_rules (
                    pricing_model_id, room_type_id, month, tier_strength,
                    min_multiplier, max_multiplier
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                [
                    [model.id, r.room_type_id, r.month, r.tier_strength,
                     r.min_multiplier, r.max_multiplier]
                    for r in model.month_rules
                ],
            )
        self._insert_monthly_targets(model.id, model.targets)
        if model.pace_curves:
            self._con.executemany(
                """
                INSERT INTO pricing_pace_curves (
                    pricing_model_id, room_type_id, month, lead_window, expected_otb_occ,
                    pace_sensitivity_up, pace_sensitivity_down, is_active
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    [model.id, c.room_type_id, c.month, c.lead_window, c.expected_otb_occ,
                     c.pace_sensitivity_up, c.pace_sensitivity_down, c.is_active]
                    for c in model.pace_curves
                ],
            )
        if model.overrides:
            self._con.executemany(
                """
                INSERT INTO pricing_overrides (
                    id, pricing_model_id, room_type_id, start_date, end_date, day_type,
                    override_type, fixed_price, multiplier, reason, priority, is_active
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    [o.id or new_id(), model.id, o.room_type_id, o.start_date, o.end_date,
                     o.day_type.value, o.override_type.value, o.fixed_price, o.multiplier,
                     o.reason, o.priority, o.is_active]
                    for o in model.overrides
                ],
            )

    def get_pricing_model(self, model_id: str) -> Optional[PricingModel]:
        """Load a model and all of its rules as one snapshot."""
        with self.transaction(f"load pricing model {model_id}"):
            headers = self._records("SELECT * FROM pricing_models WHERE id = ?", [model_id])
            if not headers:
                return None
            header = headers[0]
            params = [model_id]
            tiers = self._records(
                "SELECT * FROM pricing_tier_templates WHERE pricing_model_id = ? "
                "ORDER BY priority DESC, min_hist_occupancy",
                params,
            )
            rules = self._records(
                "SELECT * FROM pricing_model_month_rules WHERE pricing_model_id = ? ORDER BY month",
                params,
            )
            targets = self._records(
                "SELECT * FROM pricing_targets WHERE pricing_model_id = ? ORDER BY month",
                params,
            )
            curves = self._records(
                "SELECT * FROM pricing_pace_curves WHERE pricing_model_id = ? ORDER BY month",
                params,
            )
            overrides = self._records(
                "SELECT * FROM pricing_overrides WHERE pricing_model_id = ? "
                "ORDER BY priority DESC, start_date",
                params,
            )

        return PricingModel(
            id=header['id'],
            name=header['name'],
            is_active=bool(header['is_active']),
            history_mode=HistoryMode(header['history_mode'] or 'last_year_same_month'),
            tiers=tuple(
                TierTemplate(
                    id=t['id'],
                    tier_name=t['tier_name'],
                    min_hist_occupancy=float(t['min_hist_occupancy']),
                    max_hist_occupancy=float(t['max_hist_occupancy']),
                    multiplier=float(t['multiplier']),
                    priority=int(_or_default(t['priority'], 0)),
                    is_active=bool(_or_default(t['is_active'], True)),
                )
                for t in tiers
            ),
            month_rules=tuple(
                MonthRule(
                    month=int(r['month']),
                    min_multiplier=float(_or_default(r['min_multiplier'], MonthRule.min_multiplier)),
                    max_multiplier=float(_or_default(r['max_multiplier'], MonthRule.max_multiplier)),
                    tier_strength=float(_or_default(r['tier_strength'], MonthRule.tier_strength)),
                    room_type_id=r['room_type_id'],
                )
                for r in rules
            ),
            targets=tuple(
                MonthlyTarget(
                    month=int(t['month']),
                    target_occupancy=t['target_occupancy'],
                    target_revpan=t['target_revpan'],
                    sensitivity_up=float(_or_default(t['sensitivity_up'], MonthlyTarget.sensitivity_up)),
                    sensitivity_down=float(_or_default(t['sensitivity_down'], MonthlyTarget.sensitivity_down)),
                    room_type_id=t['room_type_id'],
                    is_active=bool(_or_default(t['is_active'], True)),
                )
                for t in targets
            ),
            pace_curves=tuple(
                PaceCurve(
                    month=int(c['month']),
                    lead_window=c['lead_window'],
                    expected_otb_occ=float(c['expected_otb_occ']),
                    pace_sensitivity_up=float(_or_default(c['pace_sensitivity_up'], PaceCurve.pace_sensitivity_up)),
                    pace_sensitivity_down=float(_or_default(c['pace_sensitivity_down'], PaceCurve.pace_sensitivity_down)),
                    room_type_id=c['room_type_id'],
                    is_active=bool(_or_default(c['is_active'], True)),
                )
                for c in curves
            ),
            overrides=tuple(
                PricingOverride(
                    id=o['id'],
                    start_date=_to_date(o['start_date']),
                    end_date=_to_date(o['end_date']),
                    override_type=OverrideType(o['override_type']),
                    fixed_price=o['fixed_price'],
                    multiplier=o['multiplier'],
                    day_type=DayType(o['day_type'] or 'all'),
                    priority=int(_or_default(o['priority'], 0)),
                    reason=o['reason'],
                    room_type_id=o['room_type_id'],
                    is_active=bool(_or_default(o['is_active'], True)),
                )
                for o in overrides
            ),
        )

    def get_active_pricing_model(self) -> Optional[PricingModel]:
        rows = self._records("SELECT id FROM pricing_models WHERE is_active")
        if not rows:
            return None
        if len(rows) > 1:
            logger.warning(f"{len(rows)} pricing models flagged active; using {rows[0]['id']}")
        return self.get_pricing_model(rows[0]['id'])

    def set_active_pricing_model(self, model_id: str) -> None:
        """Activate one model and deactivate every other one."""
        self._require_model(model_id)
        with self.transaction(f"activate pricing model {model_id}"):
            self._con.execute("UPDATE pricing_models SET is_active = FALSE WHERE is_active")
            self._con.execute("UPDATE pricing_models SET is_active = TRUE WHERE id = ?", [model_id])

    def list_pricing_models(self) -> pd.DataFrame:
        return self._con.execute(
            "SELECT id, name, is_active, history_mode FROM pricing_models ORDER BY name"
        ).fetchdf()

    def _require_model(self, model_id: str) -> None:
        if not self._records("SELECT id FROM pricing_models WHERE id = ?", [model_id]):
            raise InvalidInput(f"Unknown pricing model: {model_id}", entity='pricing_model')

    def _insert_monthly_targets(
        self, model_id: str, targets: Sequence[MonthlyTarget]
    ) -> None:
        if not targets:
            return
        self._con.executemany(
            """
            INSERT INTO pricing_targets (
                pricing_model_id, room_type_id, month, target_occupancy,
                target_revpan, sensitivity_up, sensitivity_down, is_active
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                [model_id, t.room_type_id, t.month, t.target_occupancy,
                 t.target_revpan, t.sensitivity_up, t.sensitivity_down, t.is_active]
                for t in targets
            ],
        )

    def replace_monthly_targets(
        self, model_id: str, targets: Sequence[MonthlyTarget]
    ) -> int:
        """Swap every monthly target of a model for `targets`, atomically."""
        self._require_model(model_id)
        with self.transaction(f"replace monthly targets of {model_id}"):
            self._con.execute(
                "DELETE FROM pricing_targets WHERE pricing_model_id = ?", [model_id]
            )
            self._insert_monthly_targets(model_id, targets)
        logger.info(f"Replaced monthly targets of {model_id}: {len(targets)} rows")
        return len(targets)

    def copy_model_sections(
        self,
        source_id: str,
        target_id: str,
        sections: Sequence[str] = tuple(MODEL_SECTIONS),
    ) -> Dict[str, int]:
        """
        Copy configuration sections from one model to another.

        Each selected section of the target model is deleted and re-inserted
        from the source; a section the source leaves empty is skipped and the
        target keeps its own rows. Runs in one transaction.

        Args:
            source_id: Model to copy from
            target_id: Model to copy to
            sections: Any of 'tiers', 'month_rules', 'targets', 'pace_curves'

        Returns:
            {section: rows copied}
        """
        if source_id == target_id:
            raise InvalidInput("Source and target model are the same", entity='pricing_model')
        sections = list(sections)
        if not sections:
            raise InvalidInput("Select at least one section to copy", entity='section')
        unknown = [s for s in sections if s not in MODEL_SECTIONS]
        if unknown:
            raise InvalidInput(f"Unknown sections: {', '.join(unknown)}", entity='section')
        self._require_model(source_id)
        self._require_model(target_id)

        copied = {}
        with self.transaction(f"copy {', '.join(sections)} from {source_id} to {target_id}"):
            for section in sections:
                table = MODEL_SECTIONS[section]
                count = self._con.execute(
                    f"SELECT COUNT(*) FROM {table} WHERE pricing_model_id = ?", [source_id]
                ).fetchone()[0]
                if count == 0:
                    copied[section] = 0
                    continue
                replaced = "?::VARCHAR AS pricing_model_id"
                if section == 'tiers':
                    replaced = "gen_random_uuid()::VARCHAR AS id, " + replaced
                self._con.execute(
                    f"DELETE FROM {table} WHERE pricing_model_id = ?", [target_id]
                )
                self._con.execute(
                    f"INSERT INTO {table} SELECT * REPLACE ({replaced}) "
                    f"FROM {table} WHERE pricing_model_id = ?",
                    [target_id, source_id],
                )
                copied[section] = int(count)
        logger.info(f"Copied model sections {source_id} -> {target_id}: {copied}")
        return copied

    # =========================================================================
    # REVENUE TARGETS
    # =========================================================================

    @staticmethod
    def _target_from_record(rec: dict) -> RevenueTarget:
        return RevenueTarget(
            id=rec['id'],
            room_type_id=rec['room_type_id'],
            period_start=_to_date(rec['period_start']),
            period_end=_to_date(rec['period_end']),
            period_name=rec['period_name'] or '',
            target_occupancy=float(rec['target_occupancy']),
            target_revenue=float(rec['target_revenue']),
        )

    def _build_period_targets(
        self,
        name: str,
        start: date,
        end: date,
        targets_by_room: Dict[str, Tuple[float, float]],
    ) -> List[RevenueTarget]:
        if not name or not name.strip():
            raise InvalidInput("Period name is required", entity='period_name')
        if not targets_by_room:
            raise InvalidInput("A period needs at least one room target", entity='revenue_target')
        return [
            RevenueTarget(
                id=new_id(),
                room_type_id=room_id,
                period_start=start,
                period_end=end,
                period_name=name.strip(),
                target_occupancy=float(occ),
                target_revenue=float(revenue),
            )
            for room_id, (occ, revenue) in targets_by_room.items()
        ]

    def _insert_targets(self, targets: Iterable[RevenueTarget]) -> None:
        self._con.executemany(
            """
            INSERT INTO revenue_targets (
                id, room_type_id, period_start, period_end, period_name,
                target_occupancy, target_revenue
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            [
                [t.id, t.room_type_id, t.period_start, t.period_end, t.period_name,
                 t.target_occupancy, t.target_revenue]
                for t in targets
            ],
        )

    def _delete_period_rows(self, start: date, end: date) -> None:
        self._con.execute(
            """
            DELETE FROM revenue_rate_breakdowns
            WHERE revenue_target_id IN (
                SELECT id FROM revenue_targets WHERE period_start = ? AND period_end = ?
            )
            """,
            [start, end],
        )
        self._con.execute(
            "DELETE FROM revenue_targets WHERE period_start = ? AND period_end = ?",
            [start, end],
        )

    def create_period(
        self,
        name: str,
        start: date,
        end: date,
        targets_by_room: Dict[str, Tuple[float, float]],
    ) -> List[RevenueTarget]:
        """
        Create one revenue target per room for a new period.

        Args:
            targets_by_room: {room_type_id: (target_occupancy 0-100, target_revenue)}
        """
        targets = self._build_period_targets(name, start, end, targets_by_room)
        with self.transaction(f"create period {name}"):
            self._insert_targets(targets)
        return targets

    def replace_period(
        self,
        name: str,
        start: date,
        end: date,
        targets_by_room: Dict[str, Tuple[float, float]],
    ) -> List[RevenueTarget]:
        """Replace every room target (and its breakdown) of an existing period."""
        targets = self._build_period_targets(name, start, end, targets_by_room)
        with self.transaction(f"replace period {start}..{end}"):
            self._delete_period_rows(start, end)
            self._insert_targets(targets)
        return targets

    def delete_period(self, start: date, end: date) -> None:
        with self.transaction(f"delete period {start}..{end}"):
            self._delete_period_rows(start, end)

    def list_periods(self) -> pd.DataFrame:
        """Distinct periods, most recent first."""
        return self._con.execute(
            """
            SELECT period_start, period_end, any_value(period_name) AS period_name,
                   COUNT(*) AS n_rooms, SUM(target_revenue) AS total_target_revenue
            FROM revenue_targets
            GROUP BY period_start, period_end
            ORDER BY period_start DESC
            """
        ).fetchdf()

    def list_revenue_targets(
        self, start: Optional[date] = None, end: Optional[date] = None
    ) -> List[RevenueTarget]:
        query = "SELECT * FROM revenue_targets"
        params: list = []
        if start is not None and end is not None:
            query += " WHERE period_start = ? AND period_end = ?"
            params = [start, end]
        query += " ORDER BY period_start DESC, room_type_id"
        return [self._target_from_record(r) for r in self._records(query, params)]

    def get_revenue_target(self, target_id: str) -> Optional[RevenueTarget]:
        rows = self._records("SELECT * FROM revenue_targets WHERE id = ?", [target_id])
        return self._target_from_record(rows[0]) if rows else None

    # =========================================================================
    # RATE BREAKDOWNS
    # =========================================================================

    @staticmethod
    def _breakdown_from_record(rec: dict) -> RevenueRateBreakdown:
        return RevenueRateBreakdown(
            id=rec['id'],
            revenue_target_id=rec['revenue_target_id'],
            rate_type=rec['rate_type'],
            type_detail=rec['type_detail'] or '',
            pct_business=float(rec['pct_business']),
            discount=float(_or_default(rec['discount'], 0.0)),
            sort_order=int(_or_default(rec['sort_order'], 0)),
        )

    def get_breakdowns(self, target_id: str) -> List[RevenueRateBreakdown]:
        rows = self._records(
            "SELECT * FROM revenue_rate_breakdowns WHERE revenue_target_id = ? ORDER BY sort_order",
            [target_id],
        )
        return [self._breakdown_from_record(r) for r in rows]

    def get_breakdowns_for_targets(
        self, target_ids: Sequence[str]
    ) -> Dict[str, List[RevenueRateBreakdown]]:
        result: Dict[str, List[RevenueRateBreakdown]] = {tid: [] for tid in target_ids}
        if not target_ids:
            return result
        rows = self._records(
            "SELECT * FROM revenue_rate_breakdowns WHERE list_contains(?, revenue_target_id) "
            "ORDER BY revenue_target_id, sort_order",
            [list(target_ids)],
        )
        for rec in rows:
            result[rec['revenue_target_id']].append(self._breakdown_from_record(rec))
        return result

    @staticmethod
    def _check_breakdown_total(target_id: str, rows: Sequence[RevenueRateBreakdown]) -> None:
        residuals = [
            r for r in rows
            if (r.rate_type or '').strip().lower() == RESIDUAL_RATE_TYPE.lower()
        ]
        total = sum(r.pct_business for r in rows)
        if len(residuals) != 1:
            problem = f"{len(residuals)} '{RESIDUAL_RATE_TYPE}' rows"
        elif any(r.pct_business < 0 for r in rows):
            problem = "a negative share"
        elif abs(total - 100.0) > PCT_TOLERANCE:
            problem = f"a total of {total:.4f}%"
        else:
            return
        logger.error(f"Refused breakdown for target {target_id}: {problem}")
        raise ReconciliationInconsistency(
            f"Breakdown for target {target_id} has {problem}; expected one "
            f"'{RESIDUAL_RATE_TYPE}' row and shares summing to 100"
        )

    def replace_breakdowns(
        self, target_id: str, rows: Sequence[RevenueRateBreakdown]
    ) -> None:
        """
        Delete every breakdown row of a target and insert `rows`, atomically.

        A non-empty set must hold exactly one "Rate card" row, no negative
        share and sum to 100; an empty set clears the breakdown.

        Raises:
            ReconciliationInconsistency: the set fails those checks (nothing is written)
        """
        if self.get_revenue_target(target_id) is None:
            raise InvalidInput(f"Unknown revenue target: {target_id}", entity='revenue_target')
        if rows:
            self._check_breakdown_total(target_id, rows)
        with self.transaction(f"save breakdown for target {target_id}"):
            self._con.execute(
                "DELETE FROM revenue_rate_breakdowns WHERE revenue_target_id = ?", [target_id]
            )
            if rows:
                self._con.executemany(
                    """
                    INSERT INTO revenue_rate_breakdowns (
                        id, revenue_target_id, rate_type, type_detail,
                        pct_business, discount, sort_order
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    [
                        [r.id or new_id(), target_id, r.rate_type, r.type_detail,
                         r.pct_business, r.discount, r.sort_order]
                        for r in rows
                    ],
                )
        logger.info(f"Saved {len(rows)} breakdown rows for target {target_id}")

    # =========================================================================
    # BLOCKED DATES
    # =========================================================================

    def add_blocked_dates(self, blocked: Iterable[BlockedDate]) -> None:
        rows = [[b.room_type_id, b.blocked_date] for b in blocked]
        if rows:
            self._con.executemany(
                "INSERT INTO blocked_dates (room_type_id, blocked_date) VALUES (?, ?)", rows
            )

    def count_blocked_nights(self, start: date, end: date) -> Dict[str, int]:
        """Blocked nights per room inside the inclusive period."""
        rows = self._records(
            """
            SELECT room_type_id, COUNT(DISTINCT blocked_date) AS blocked
            FROM blocked_dates
            WHERE blocked_date >= ? AND blocked_date <= ?
            GROUP BY room_type_id
            """,
            [start, end],
        )
        return {r['room_type_id']: int(r['blocked']) for r in rows}

    # =========================================================================
    # RESERVATIONS
    # =========================================================================

    def add_reservations(self, reservations: Iterable[Reservation]) -> None:
        rows = [
            [r.id, r.room_type_id, r.check_in, r.check_out, r.status, r.total,
             r.created_at, r.package_code, r.coupon_code, r.group_reservation_code]
            for r in reservations
        ]
        if rows:
            self._con.executemany(
                """
                INSERT INTO reservations (
                    id, room_type_id, check_in, check_out, status, total, created_at,
                    package_code, coupon_code, group_reservation_code
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                rows,
            )

    def reservations_frame(
        self,
        start: date,
        end: date,
        statuses: Sequence[str] = BOOKED_STATUSES,
        room_type_id: Optional[str] = None,
    ) -> pd.DataFrame:
        """Reservations fully inside [start, end] (check-in on/after start, check-out on/before end)."""
        query = """
            SELECT * FROM reservations
            WHERE check_in >= ? AND check_out <= ? AND list_contains(?, status)
        """
        params: list = [start, end, list(statuses)]
        if room_type_id is not None:
            query += " AND room_type_id = ?"
            params.append(room_type_id)
        return self._con.execute(query + " ORDER BY check_in", params).fetchdf()

    def room_reservations_window(
        self,
        room_type_id: str,
        window_start: date,
        window_end: date,
        as_of: Optional[datetime] = None,
        statuses: Sequence[str] = BOOKED_STATUSES,
    ) -> pd.DataFrame:
        """
        Reservations of one room overlapping the inclusive window.

        Only bookings created on or before `as_of` are visible, so on-the-books
        figures never see the future.
        """
        if as_of is None:
            as_of = datetime.max.replace(microsecond=0)
        elif not isinstance(as_of, datetime):
            as_of = datetime.combine(as_of, datetime.max.time()).replace(microsecond=0)
        query = load_sql_file('reservations_window.sql')
        frame = self._con.execute(
            query,
            [room_type_id, window_end, window_start, list(statuses), as_of],
        ).fetchdf()
        for col in ('check_in', 'check_out'):
            frame[col] = pd.to_datetime(frame[col])
        return frame
