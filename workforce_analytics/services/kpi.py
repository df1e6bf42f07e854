# KPI math over one technician's raw aggregates.
# B = billed (estimated) hours, W = worked hours, S = effective shift hours,
# C = completed jobs. Every ratio is 0 when its denominator is 0.

from __future__ import annotations
from typing import Any, Dict

from workforce_analytics.services.metrics import TechnicianMetrics
from workforce_analytics.services.planned_shifts import ShiftHours

PERCENT_DIGITS = 2
HOURS_DIGITS = 4


def ratio_percent(numerator: float, denominator: float) -> float:
    if denominator <= 0:
        return 0.0
    return round(numerator / denominator * 100.0, PERCENT_DIGITS)


def compute_kpis(billed: float, worked: float, shift: float, completed: int) -> Dict[str, Any]:
    return {
        "job_efficiency_percent": ratio_percent(billed, worked),
        "utilization_percent": ratio_percent(worked, shift),
        "revenue_efficiency_percent": ratio_percent(billed, shift),
        "missing_estimate": billed == 0 and completed > 0,
        "avg_hours_per_job": round(worked / completed, PERCENT_DIGITS) if completed > 0 else 0.0,
    }


def technician_row(metrics: TechnicianMetrics, shift: ShiftHours) -> Dict[str, Any]:
    billed = round(metrics.total_billed_hours, HOURS_DIGITS)
    worked = round(metrics.total_worked_hours, HOURS_DIGITS)
    row = {
        "technician_id": metrics.technician_id,
        "technician_name": metrics.technician_name,
        "employee_code": metrics.employee_code,
        "business_unit_id": metrics.business_unit_id,
        "business_unit_name": metrics.business_unit_name,
        "total_jobs": metrics.total_jobs,
        "completed_jobs": metrics.completed_jobs,
        "active_jobs": metrics.active_jobs,
        "total_billed_hours": billed,
        "total_worked_hours": worked,
        "total_shift_hours": round(shift.effective, HOURS_DIGITS),
        "total_shift_hours_actual": round(shift.actual, HOURS_DIGITS),
        "total_shift_hours_planned": round(shift.planned, HOURS_DIGITS),
        "total_shift_hours_source": shift.source,
    }
    row.update(compute_kpis(billed, worked, shift.effective, metrics.completed_jobs))
    row.update(
        comeback_jobs=metrics.comeback_jobs,
        rework_jobs=metrics.rework_jobs,
        repeat_jobs=metrics.repeat_jobs,
    )
    return row
