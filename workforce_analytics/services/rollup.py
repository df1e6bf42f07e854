# Summary roll-ups over technician rows, organization-wide and per business unit.
# Rows go through a pandas DataFrame; averages are plain (unweighted) means of
# the per-technician percentages. An empty row list yields all-zero summaries.
# report_to_csv() flattens the technician rows for the CSV export.

from __future__ import annotations
import io
from typing import Any, Dict, List

import pandas as pd

ROW_COLUMNS = [
    "technician_id", "technician_name", "employee_code",
    "business_unit_id", "business_unit_name",
    "total_jobs", "completed_jobs", "active_jobs",
    "total_billed_hours", "total_worked_hours",
    "total_shift_hours", "total_shift_hours_actual", "total_shift_hours_planned", "total_shift_hours_source",
    "job_efficiency_percent", "utilization_percent", "revenue_efficiency_percent",
    "missing_estimate", "avg_hours_per_job",
    "comeback_jobs", "rework_jobs", "repeat_jobs",
]

NO_BUSINESS_UNIT = -1


def _empty_summary() -> Dict[str, Any]:
    return {
        "total_technicians": 0,
        "total_completed_jobs": 0,
        "total_billed_hours": 0.0,
        "total_worked_hours": 0.0,
        "avg_job_efficiency": 0.0,
        "avg_utilization": 0.0,
        "avg_revenue_efficiency": 0.0,
        "missing_estimate_technicians": 0,
        "comeback_jobs": 0,
        "rework_jobs": 0,
        "repeat_jobs": 0,
        "best_efficiency": 0.0,
        "worst_efficiency": 0.0,
    }


def _summarize_frame(df: pd.DataFrame) -> Dict[str, Any]:
    if df.empty:
        return _empty_summary()
    return {
        "total_technicians": int(len(df)),
        "total_completed_jobs": int(df["completed_jobs"].sum()),
        "total_billed_hours": round(float(df["total_billed_hours"].sum()), 4),
        "total_worked_hours": round(float(df["total_worked_hours"].sum()), 4),
        "avg_job_efficiency": round(float(df["job_efficiency_percent"].mean()), 2),
        "avg_utilization": round(float(df["utilization_percent"].mean()), 2),
        "avg_revenue_efficiency": round(float(df["revenue_efficiency_percent"].mean()), 2),
        "missing_estimate_technicians": int(df["missing_estimate"].astype(bool).sum()),
        "comeback_jobs": int(df["comeback_jobs"].sum()),
        "rework_jobs": int(df["rework_jobs"].sum()),
        "repeat_jobs": int(df["repeat_jobs"].sum()),
        "best_efficiency": round(float(df["job_efficiency_percent"].max()), 2),
        "worst_efficiency": round(float(df["job_efficiency_percent"].min()), 2),
    }


def _frame(rows: List[Dict[str, Any]]) -> pd.DataFrame:
    return pd.DataFrame(rows, columns=ROW_COLUMNS)


def summarize(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    return _summarize_frame(_frame(rows))


def summarize_by_business_unit(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    df = _frame(rows)
    if df.empty:
        return []
    df["bu_key"] = df["business_unit_id"].fillna(NO_BUSINESS_UNIT).astype(int)
    out = []
    for key, group in df.groupby("bu_key", sort=True):
        names = group["business_unit_name"].dropna()
        entry = {
            "business_unit_id": None if key == NO_BUSINESS_UNIT else int(key),
            "business_unit_name": names.iloc[0] if not names.empty else None,
        }
        entry.update(_summarize_frame(group))
        out.append(entry)
    return out


def report_to_csv(rows: List[Dict[str, Any]]) -> str:
    df = _frame(rows)
    df["business_unit_id"] = df["business_unit_id"].astype("Int64")
    buf = io.StringIO()
    df.to_csv(buf, index=False)
    return buf.getvalue()
