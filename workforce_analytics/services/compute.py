# Core computation service: technician efficiency report pipeline.
# normalize dates -> resolve tenant scope -> build the batched aggregate query
# -> execute -> planned-shift fallback -> per-technician KPIs -> roll-ups.
# Each request is a sequential, read-only pass; a failing query fails the whole report.
# Also serves the worked-hours trend (per week/month) over the same scope rules.

from __future__ import annotations
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import structlog

from workforce_analytics.config import settings
from workforce_analytics.errors import AuthorizationFailed, NotFound, ValidationError
from workforce_analytics.services.dialects import Dialect
from workforce_analytics.services.kpi import technician_row
from workforce_analytics.services.metrics import QueryExecutor, fetch_technician_metrics, run, technician_exists
from workforce_analytics.services.planned_shifts import PlannedShiftResolver
from workforce_analytics.services.query_builder import ReportQueryBuilder
from workforce_analytics.services.rollup import summarize, summarize_by_business_unit
from workforce_analytics.services.schema import SchemaCapabilities
from workforce_analytics.services.scope import Caller, Scope, resolve_scope
from workforce_analytics.utils.dates import Clock, DateRange, SystemClock, normalize_range

logger = structlog.get_logger(__name__)

TREND_PERIODS = ("week", "month")


@dataclass(frozen=True)
class _Prepared:
    date_range: DateRange
    scope: Scope
    builder: ReportQueryBuilder


def _check_technician_id(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    try:
        return str(uuid.UUID(str(value)))
    except ValueError:
        raise ValidationError("technician_id", "must be a UUID", value) from None


async def _prepare(
    executor: QueryExecutor,
    dialect: Dialect,
    capabilities: SchemaCapabilities,
    caller: Caller,
    business_unit_id: Optional[int],
    technician_id: Optional[str],
    start_date: Optional[str],
    end_date: Optional[str],
    clock: Clock,
) -> _Prepared:
    """Shared request preamble; a no-visibility scope comes back only when nothing explicit was asked for."""
    date_range = normalize_range(start_date, end_date, clock)
    scope = resolve_scope(caller, business_unit_id, capabilities)
    builder = ReportQueryBuilder(
        dialect, capabilities, scope, date_range, clock.now(), settings.REPEAT_JOB_WINDOW_DAYS
    )
    if scope.no_visibility:
        if technician_id is not None or business_unit_id is not None:
            raise AuthorizationFailed("No business unit visibility for this caller")
        return _Prepared(date_range, scope, builder)
    if technician_id is not None and not await technician_exists(executor, builder, technician_id):
        raise NotFound(f"Technician {technician_id} not found")
    return _Prepared(date_range, scope, builder)


def _meta(date_range: DateRange, scope: Scope) -> Dict[str, Any]:
    return {
        "start_date": date_range.start_day.isoformat(),
        "end_date": date_range.end_day.isoformat(),
        "scope": scope.kind,
        "ambiguous_dates": list(date_range.ambiguous_inputs),
    }


async def compute_technician_efficiency(
    executor: QueryExecutor,
    dialect: Dialect,
    capabilities: SchemaCapabilities,
    caller: Caller,
    business_unit_id: Optional[int] = None,
    technician_id: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    clock: Optional[Clock] = None,
) -> Dict[str, Any]:
    clock = clock or SystemClock()
    technician_id = _check_technician_id(technician_id)
    prepared = await _prepare(
        executor, dialect, capabilities, caller, business_unit_id, technician_id, start_date, end_date, clock
    )
    if prepared.scope.no_visibility:
        return {
            "data": [],
            "summary": summarize([]),
            "business_units": [],
            "meta": _meta(prepared.date_range, prepared.scope),
        }

    builder = prepared.builder
    metrics = await fetch_technician_metrics(executor, builder, technician_id)
    if technician_id is not None and not metrics:
        # exists, but outside the caller's business unit
        raise AuthorizationFailed(f"Technician {technician_id} is outside the caller's scope")

    # planned hours are reported for everyone; they only drive the effective figure where nobody clocked in
    technician_ids = [m.technician_id for m in metrics]
    resolver = PlannedShiftResolver(
        prepared.date_range,
        await run(executor, builder.schedules(technician_ids)),
        await run(executor, builder.schedule_exceptions(technician_ids)),
    )

    rows = [technician_row(m, resolver.resolve(m.technician_id, m.measured_shift_hours)) for m in metrics]
    rows.sort(key=lambda r: (-r["job_efficiency_percent"], -r["utilization_percent"], r["technician_name"] or ""))

    logger.info(
        "technician_efficiency_report",
        caller_id=caller.id,
        scope=prepared.scope.kind,
        start_date=prepared.date_range.start_day.isoformat(),
        end_date=prepared.date_range.end_day.isoformat(),
        rows=len(rows),
        capabilities=capabilities.fingerprint,
    )
    return {
        "data": rows,
        "summary": summarize(rows),
        "business_units": summarize_by_business_unit(rows),
        "meta": _meta(prepared.date_range, prepared.scope),
    }


async def compute_worked_trend(
    executor: QueryExecutor,
    dialect: Dialect,
    capabilities: SchemaCapabilities,
    caller: Caller,
    period: str = "week",
    business_unit_id: Optional[int] = None,
    technician_id: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    clock: Optional[Clock] = None,
) -> Dict[str, Any]:
    clock = clock or SystemClock()
    if period not in TREND_PERIODS:
        raise ValidationError("period", "must be 'week' or 'month'", period)
    technician_id = _check_technician_id(technician_id)
    prepared = await _prepare(
        executor, dialect, capabilities, caller, business_unit_id, technician_id, start_date, end_date, clock
    )
    if prepared.scope.no_visibility:
        return {"period": period, "data": []}

    rows = await run(executor, prepared.builder.worked_hours_trend(period, technician_id))
    points: List[Dict[str, Any]] = [
        {
            "technician_id": str(r["technician_id"]),
            # date object on PostgreSQL/MySQL, text on SQLite
            "period_start": str(r["period_start"])[:10],
            "worked_hours": round(float(r["worked_hours"] or 0), 4),
            "finished_logs": int(r["finished_logs"] or 0),
        }
        for r in rows
    ]
    logger.info("worked_trend_report", caller_id=caller.id, period=period, points=len(points))
    return {"period": period, "data": points}
