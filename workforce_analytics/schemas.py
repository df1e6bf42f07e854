# workforce_analytics/schemas.py

# Pydantic schemas for API request/response models.
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class TechnicianEfficiencyRow(BaseModel):
    technician_id: str
    technician_name: Optional[str] = None
    employee_code: Optional[str] = None
    business_unit_id: Optional[int] = None
    business_unit_name: Optional[str] = None
    total_jobs: int
    completed_jobs: int
    active_jobs: int
    total_billed_hours: float
    total_worked_hours: float
    total_shift_hours: float
    total_shift_hours_actual: float
    total_shift_hours_planned: float
    total_shift_hours_source: str
    job_efficiency_percent: float
    utilization_percent: float
    revenue_efficiency_percent: float
    missing_estimate: bool
    avg_hours_per_job: float
    comeback_jobs: int
    rework_jobs: int
    repeat_jobs: int
    model_config = ConfigDict(from_attributes=True)


class ReportSummary(BaseModel):
    total_technicians: int
    total_completed_jobs: int
    total_billed_hours: float
    total_worked_hours: float
    avg_job_efficiency: float
    avg_utilization: float
    avg_revenue_efficiency: float
    missing_estimate_technicians: int
    comeback_jobs: int
    rework_jobs: int
    repeat_jobs: int
    best_efficiency: float
    worst_efficiency: float


class BusinessUnitSummary(ReportSummary):
    business_unit_id: Optional[int] = None
    business_unit_name: Optional[str] = None


class ReportMeta(BaseModel):
    start_date: str
    end_date: str
    scope: str
    ambiguous_dates: List[str] = []


class TechnicianEfficiencyReport(BaseModel):
    data: List[TechnicianEfficiencyRow]
    summary: ReportSummary
    business_units: List[BusinessUnitSummary]
    meta: ReportMeta


class TrendPoint(BaseModel):
    technician_id: str
    period_start: str
    worked_hours: float
    finished_logs: int


class WorkedTrendReport(BaseModel):
    period: str
    data: List[TrendPoint]
