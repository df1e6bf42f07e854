# workforce_analytics/api/report.py

# Report API endpoints for technician efficiency.
# /reports/technician-efficiency → per-technician KPIs, org summary and BU roll-up (JSON, or CSV with format=csv).
# /reports/technician-efficiency/trend → worked hours per technician per week/month.
# Thin adapter: parameters go straight into the compute service, errors are rendered by the shared handlers.

from __future__ import annotations
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession

from workforce_analytics.api.deps import get_caller, get_capabilities, get_clock
from workforce_analytics.db import get_session
from workforce_analytics.schemas import TechnicianEfficiencyReport, WorkedTrendReport
from workforce_analytics.services.compute import compute_technician_efficiency, compute_worked_trend
from workforce_analytics.services.metrics import SqlAlchemyExecutor
from workforce_analytics.services.rollup import report_to_csv
from workforce_analytics.services.schema import SchemaCapabilities
from workforce_analytics.services.scope import Caller
from workforce_analytics.utils.dates import Clock

router = APIRouter(prefix="/reports")


@router.get("/technician-efficiency", response_model=TechnicianEfficiencyReport)
async def technician_efficiency(
    business_unit_id: Optional[int] = None,
    technician_id: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    format: Literal["json", "csv"] = "json",
    session: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_caller),
    capabilities: SchemaCapabilities = Depends(get_capabilities),
    clock: Clock = Depends(get_clock),
):
    executor = SqlAlchemyExecutor(session)
    report = await compute_technician_efficiency(
        executor,
        executor.dialect,
        capabilities,
        caller,
        business_unit_id=business_unit_id,
        technician_id=technician_id,
        start_date=start_date,
        end_date=end_date,
        clock=clock,
    )
    if format == "csv":
        return PlainTextResponse(
            report_to_csv(report["data"]),
            media_type="text/csv",
            headers={"Content-Disposition": 'attachment; filename="technician_efficiency.csv"'},
        )
    return report


@router.get("/technician-efficiency/trend", response_model=WorkedTrendReport)
async def technician_efficiency_trend(
    period: Literal["week", "month"] = Query("week"),
    business_unit_id: Optional[int] = None,
    technician_id: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    session: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_caller),
    capabilities: SchemaCapabilities = Depends(get_capabilities),
    clock: Clock = Depends(get_clock),
):
    executor = SqlAlchemyExecutor(session)
    return await compute_worked_trend(
        executor,
        executor.dialect,
        capabilities,
        caller,
        period=period,
        business_unit_id=business_unit_id,
        technician_id=technician_id,
        start_date=start_date,
        end_date=end_date,
        clock=clock,
    )
