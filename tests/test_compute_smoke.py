# End-to-end smoke tests for the technician efficiency pipeline on SQLite.
# Builds the schema from the ORM mirror, seeds the reference week and runs
# compute_technician_efficiency through the real SQLAlchemy executor.
# Covers the reference KPI scenario, zero-activity and planned-shift technicians,
# shift clipping and open shifts, tenant scoping (null-permissive, fail-closed, creator linkage) and quality KPIs.

from datetime import time

import pytest

from conftest import (
    ALICE, BOB, CAROL, DAN, MANAGER_NORTH, MANAGER_SOUTH, NORTH, SOUTH, CLOCK, WEEK,
    SUPER_ADMIN, NORTH_MANAGER, SOUTH_MANAGER, HOMELESS_MANAGER,
    create_schema, dt, insert_rows, probe, run_db,
)
from workforce_analytics.errors import AuthorizationFailed, NotFound, SchemaUnavailable, ValidationError
from workforce_analytics.models import Assignment, JobCard, TechSchedule, Technician, TechnicianShift, TimeLog, User
from workforce_analytics.services.compute import compute_technician_efficiency, compute_worked_trend
from workforce_analytics.services.metrics import SqlAlchemyExecutor


def report(url, caller, caps=None, **kwargs):
    caps = caps or probe(url)
    params = dict(WEEK)
    params.update(kwargs)

    async def _go(session):
        executor = SqlAlchemyExecutor(session)
        return await compute_technician_efficiency(executor, executor.dialect, caps, caller, clock=CLOCK, **params)
    return run_db(url, _go)


def trend(url, caller, period="week", **kwargs):
    caps = probe(url)
    params = dict(WEEK)
    params.update(kwargs)

    async def _go(session):
        executor = SqlAlchemyExecutor(session)
        return await compute_worked_trend(executor, executor.dialect, caps, caller, period=period, clock=CLOCK, **params)
    return run_db(url, _go)


def by_id(result):
    return {r["technician_id"]: r for r in result["data"]}


def test_reference_scenario_kpis(workshop):
    rows = by_id(report(workshop, SUPER_ADMIN))
    alice = rows[ALICE]
    assert alice["total_billed_hours"] == 4
    assert alice["total_worked_hours"] == 3.5
    assert alice["total_shift_hours"] == 8
    assert alice["total_shift_hours_actual"] == 8
    assert alice["total_shift_hours_source"] == "actual"
    assert alice["job_efficiency_percent"] == 114.29
    assert alice["utilization_percent"] == 43.75
    assert alice["revenue_efficiency_percent"] == 50.0
    assert alice["missing_estimate"] is False
    assert alice["avg_hours_per_job"] == 3.5
    assert alice["business_unit_name"] == "North"


def test_open_and_cancelled_work(workshop):
    alice = by_id(report(workshop, SUPER_ADMIN))[ALICE]
    # JC-1 finished in range, JC-4 still open and created in range; JC-5 was cancelled
    assert alice["total_jobs"] == 2
    assert alice["completed_jobs"] == 1
    assert alice["active_jobs"] == 1
    # the hour logged against the cancelled assignment is not worked time
    assert alice["total_worked_hours"] == 3.5


def test_zero_activity_technician_still_listed(workshop):
    bob = by_id(report(workshop, SUPER_ADMIN))[BOB]
    for key in ("total_jobs", "completed_jobs", "active_jobs", "total_billed_hours", "total_worked_hours",
                "total_shift_hours", "job_efficiency_percent", "utilization_percent", "avg_hours_per_job"):
        assert bob[key] == 0
    assert bob["total_shift_hours_source"] == "none"
    assert bob["missing_estimate"] is False


def test_planned_shift_fallback(workshop):
    dan = by_id(report(workshop, SUPER_ADMIN))[DAN]
    assert dan["total_shift_hours_actual"] == 0
    assert dan["total_shift_hours_planned"] == 40
    assert dan["total_shift_hours"] == 40
    assert dan["total_shift_hours_source"] == "planned"


def test_clocked_technician_still_reports_planned_hours(workshop):
    insert_rows(workshop, [
        (TechSchedule, {"id": 10 + weekday, "technician_id": ALICE, "weekday": weekday,
                        "start_time": time(8, 0), "end_time": time(16, 0), "is_active": True})
        for weekday in range(1, 6)
    ])
    alice = by_id(report(workshop, SUPER_ADMIN))[ALICE]
    assert alice["total_shift_hours_actual"] == 8
    assert alice["total_shift_hours_planned"] == 40
    assert alice["total_shift_hours"] == 8
    assert alice["total_shift_hours_source"] == "actual"
    # utilization stays on the measured figure
    assert alice["utilization_percent"] == 43.75


def test_summary_and_business_unit_rollup(workshop):
    result = report(workshop, SUPER_ADMIN)
    summary = result["summary"]
    assert summary["total_technicians"] == 4
    assert summary["total_completed_jobs"] == 3
    assert summary["total_billed_hours"] == 11
    assert summary["total_worked_hours"] == 9.5
    assert summary["best_efficiency"] == 116.67
    assert summary["worst_efficiency"] == 0
    units = {u["business_unit_id"]: u for u in result["business_units"]}
    assert units[NORTH]["total_technicians"] == 3
    assert units[SOUTH]["total_technicians"] == 1
    assert units[SOUTH]["business_unit_name"] == "South"
    assert result["meta"]["scope"] == "unrestricted"


def test_rows_sorted_by_efficiency(workshop):
    result = report(workshop, SUPER_ADMIN)
    assert [r["technician_id"] for r in result["data"]][:2] == [CAROL, ALICE]


def test_null_business_unit_job_card_is_visible_to_scoped_caller(workshop):
    rows = by_id(report(workshop, NORTH_MANAGER))
    # Carol is South, but worked a legacy job card with no BU, which every scope includes
    assert set(rows) == {ALICE, BOB, CAROL, DAN}
    carol = rows[CAROL]
    assert carol["total_jobs"] == 1
    assert carol["total_billed_hours"] == 2
    assert carol["total_worked_hours"] == 2


def test_scoped_caller_cannot_redirect_scope(workshop):
    result = report(workshop, NORTH_MANAGER, business_unit_id=SOUTH)
    assert result["meta"]["scope"] == "business_unit:job_card"
    assert ALICE in by_id(result)


def test_super_admin_business_unit_filter(workshop):
    rows = by_id(report(workshop, SUPER_ADMIN, business_unit_id=SOUTH))
    assert set(rows) == {CAROL}
    assert rows[CAROL]["total_jobs"] == 2
    assert rows[CAROL]["total_billed_hours"] == 7


def test_super_admin_explicit_technician_outside_filter(workshop):
    result = report(workshop, SUPER_ADMIN, business_unit_id=SOUTH, technician_id=ALICE)
    assert len(result["data"]) == 1
    assert result["data"][0]["total_jobs"] == 0


def test_fail_closed_without_home_business_unit(workshop):
    result = report(workshop, HOMELESS_MANAGER)
    assert result["data"] == []
    assert result["summary"]["total_technicians"] == 0
    assert result["meta"]["scope"] == "none"


def test_fail_closed_with_explicit_target_is_rejected(workshop):
    with pytest.raises(AuthorizationFailed):
        report(workshop, HOMELESS_MANAGER, technician_id=ALICE)
    with pytest.raises(AuthorizationFailed):
        report(workshop, HOMELESS_MANAGER, business_unit_id=NORTH)


def test_technician_outside_scope_is_rejected(workshop):
    with pytest.raises(AuthorizationFailed):
        report(workshop, SOUTH_MANAGER, technician_id=ALICE)


def test_unknown_technician_is_not_found(workshop):
    with pytest.raises(NotFound):
        report(workshop, SUPER_ADMIN, technician_id="99999999-9999-9999-9999-999999999999")


def test_malformed_inputs_are_rejected(workshop):
    with pytest.raises(ValidationError):
        report(workshop, SUPER_ADMIN, technician_id="not-a-uuid")
    with pytest.raises(ValidationError):
        report(workshop, SUPER_ADMIN, start_date="2024-03-10", end_date="2024-03-04")


def test_slash_dates_default_to_month_first(workshop):
    result = report(workshop, SUPER_ADMIN, start_date="03/04/2024", end_date="10/03/2024")
    assert result["meta"]["start_date"] == "2024-03-04"
    # both readings are possible for both inputs, so both are flagged
    assert result["meta"]["ambiguous_dates"] == ["03/04/2024", "10/03/2024"]
    assert result["meta"]["end_date"] == "2024-10-03"


def test_missing_required_table(tmp_path):
    url = f"sqlite+aiosqlite:///{tmp_path / 'partial.sqlite'}"
    create_schema(url, tables=["users", "technicians", "job_cards", "assignments"])
    with pytest.raises(SchemaUnavailable):
        report(url, SUPER_ADMIN)


def test_minimal_schema_degrades(tmp_path):
    url = f"sqlite+aiosqlite:///{tmp_path / 'minimal.sqlite'}"
    create_schema(
        url,
        tables=["users", "technicians", "job_cards", "assignments", "time_logs"],
        drop_columns=[("time_logs", "duration_seconds"), ("job_cards", "metadata"), ("job_cards", "vehicle_info")],
    )
    insert_rows(url, [
        (User, {"id": ALICE, "display_name": "Alice", "business_unit_id": NORTH}),
        (Technician, {"user_id": ALICE}),
        (JobCard, {"id": 1, "job_number": "JC-1", "status": "completed", "estimated_hours": 2,
                   "business_unit_id": NORTH, "created_at": dt(2024, 3, 4, 8)}),
        (Assignment, {"id": 1, "job_card_id": 1, "technician_id": ALICE, "status": "completed"}),
        (TimeLog, {"id": 1, "technician_id": ALICE, "assignment_id": 1, "job_card_id": 1,
                   "start_ts": dt(2024, 3, 5, 9), "end_ts": dt(2024, 3, 5, 10, 30), "status": "finished"}),
    ])
    alice = by_id(report(url, NORTH_MANAGER))[ALICE]
    # duration comes from the timestamps alone
    assert alice["total_worked_hours"] == 1.5
    assert alice["job_efficiency_percent"] == 133.33
    assert alice["business_unit_name"] is None
    assert alice["total_shift_hours_source"] == "none"
    assert alice["comeback_jobs"] == 0 and alice["repeat_jobs"] == 0


def test_creator_linkage_when_job_cards_have_no_business_unit(tmp_path):
    url = f"sqlite+aiosqlite:///{tmp_path / 'legacy.sqlite'}"
    create_schema(url, drop_columns=[("job_cards", "business_unit_id")])
    rows = [
        (User, {"id": ALICE, "display_name": "Alice", "business_unit_id": NORTH}),
        (User, {"id": CAROL, "display_name": "Carol", "business_unit_id": SOUTH}),
        (User, {"id": MANAGER_NORTH, "display_name": "North Desk", "business_unit_id": NORTH}),
        (User, {"id": MANAGER_SOUTH, "display_name": "South Desk", "business_unit_id": SOUTH}),
        (Technician, {"user_id": ALICE}),
        (Technician, {"user_id": CAROL}),
    ]
    # JC-1 created by North, JC-2 with no creator, JC-3 created by South; all worked by Carol
    for jc_id, creator in ((1, MANAGER_NORTH), (2, None), (3, MANAGER_SOUTH)):
        rows += [
            (JobCard, {"id": jc_id, "job_number": f"JC-{jc_id}", "status": "completed", "estimated_hours": 1,
                       "created_by": creator, "created_at": dt(2024, 3, 4, 8)}),
            (Assignment, {"id": jc_id, "job_card_id": jc_id, "technician_id": CAROL, "status": "completed"}),
            (TimeLog, {"id": jc_id, "technician_id": CAROL, "assignment_id": jc_id, "job_card_id": jc_id,
                       "start_ts": dt(2024, 3, 5, 8), "end_ts": dt(2024, 3, 5, 9), "status": "finished",
                       "duration_seconds": 3600}),
        ]
    insert_rows(url, rows)

    result = report(url, NORTH_MANAGER)
    assert result["meta"]["scope"] == "business_unit:creator"
    found = by_id(result)
    assert set(found) == {ALICE, CAROL}
    assert found[CAROL]["total_jobs"] == 2
    assert found[CAROL]["total_worked_hours"] == 2


def test_quality_kpis(db_url):
    insert_rows(db_url, [
        (User, {"id": ALICE, "display_name": "Alice", "business_unit_id": NORTH}),
        (Technician, {"user_id": ALICE}),
        # earlier visit for the same vehicle, outside the report range
        (JobCard, {"id": 10, "job_number": "JC-10", "status": "completed", "estimated_hours": 1,
                   "business_unit_id": NORTH, "created_at": dt(2024, 2, 20, 8),
                   "vehicle_info": {"license_plate": "ka01 ab1234"}}),
        (Assignment, {"id": 10, "job_card_id": 10, "technician_id": ALICE, "status": "completed",
                      "completed_at": dt(2024, 2, 20, 12)}),
        # customer came back with a complaint, same plate 14 days later
        (JobCard, {"id": 11, "job_number": "JC-11", "status": "completed", "estimated_hours": 2,
                   "business_unit_id": NORTH, "created_at": dt(2024, 3, 5, 8),
                   "vehicle_info": {"license_plate": "KA01AB1234"},
                   "metadata": {"work_order_details": {"previous_job_number": "JC-10", "job_category": "Complaint"}}}),
        (Assignment, {"id": 11, "job_card_id": 11, "technician_id": ALICE, "status": "completed",
                      "completed_at": dt(2024, 3, 5, 15)}),
        # linked to an earlier job, but routine and for another vehicle
        (JobCard, {"id": 12, "job_number": "JC-12", "status": "completed", "estimated_hours": 2,
                   "business_unit_id": NORTH, "created_at": dt(2024, 3, 6, 8),
                   "vehicle_info": {"license_plate": "MH12ZZ0001"},
                   "metadata": {"work_order_details": {"previous_job_card_id": 7, "job_category": "service"}}}),
        (Assignment, {"id": 12, "job_card_id": 12, "technician_id": ALICE, "status": "completed",
                      "completed_at": dt(2024, 3, 6, 15)}),
    ])
    alice = by_id(report(db_url, NORTH_MANAGER))[ALICE]
    assert alice["completed_jobs"] == 2
    assert alice["comeback_jobs"] == 2
    assert alice["rework_jobs"] == 1
    assert alice["repeat_jobs"] == 1
    # completed work without any logged time
    assert alice["total_worked_hours"] == 0
    assert alice["job_efficiency_percent"] == 0


def test_missing_estimate_flag(db_url):
    insert_rows(db_url, [
        (User, {"id": ALICE, "display_name": "Alice", "business_unit_id": NORTH}),
        (Technician, {"user_id": ALICE}),
        (JobCard, {"id": 1, "job_number": "JC-1", "status": "completed", "business_unit_id": NORTH,
                   "created_at": dt(2024, 3, 4, 8)}),
        (Assignment, {"id": 1, "job_card_id": 1, "technician_id": ALICE, "status": "completed",
                      "completed_at": dt(2024, 3, 4, 12)}),
    ])
    result = report(db_url, NORTH_MANAGER)
    assert result["data"][0]["missing_estimate"] is True
    assert result["summary"]["missing_estimate_technicians"] == 1


def test_worked_trend_by_week(workshop):
    result = trend(workshop, SUPER_ADMIN, start_date="2024-03-01", end_date="2024-03-10")
    points = {(p["technician_id"], p["period_start"]): p for p in result["data"]}
    assert points[(ALICE, "2024-03-04")]["worked_hours"] == 3.5
    assert points[(ALICE, "2024-03-04")]["finished_logs"] == 1
    assert points[(CAROL, "2024-03-04")]["worked_hours"] == 6


def test_worked_trend_by_month_scoped(workshop):
    result = trend(workshop, NORTH_MANAGER, period="month")
    points = {(p["technician_id"], p["period_start"]): p for p in result["data"]}
    assert points[(CAROL, "2024-03-01")]["worked_hours"] == 2
    assert (ALICE, "2024-03-01") in points


def test_worked_trend_rejects_unknown_period(workshop):
    with pytest.raises(ValidationError):
        trend(workshop, SUPER_ADMIN, period="year")


def test_shifts_are_clipped_to_the_range(workshop):
    insert_rows(workshop, [
        # starts the Sunday before: only Monday 00:00-04:00 counts
        (TechnicianShift, {"id": 20, "technician_id": BOB, "clock_in_time": dt(2024, 3, 3, 20),
                           "clock_out_time": dt(2024, 3, 4, 4), "break_seconds": 0}),
        # runs past the last day: counts up to 23:59:59
        (TechnicianShift, {"id": 21, "technician_id": BOB, "clock_in_time": dt(2024, 3, 10, 22),
                           "clock_out_time": dt(2024, 3, 11, 6)}),
        # entirely after the range
        (TechnicianShift, {"id": 22, "technician_id": BOB, "clock_in_time": dt(2024, 3, 12, 8),
                           "clock_out_time": dt(2024, 3, 12, 16)}),
    ])
    bob = by_id(report(workshop, SUPER_ADMIN))[BOB]
    assert bob["total_shift_hours_actual"] == round((4 * 3600 + 7199) / 3600, 4)
    assert bob["total_shift_hours_source"] == "actual"


def test_break_longer_than_clipped_overlap_counts_as_zero(workshop):
    insert_rows(workshop, [
        # one hour inside the range, two hours of break
        (TechnicianShift, {"id": 30, "technician_id": CAROL, "clock_in_time": dt(2024, 3, 3, 23),
                           "clock_out_time": dt(2024, 3, 4, 1), "break_seconds": 7200}),
    ])
    carol = by_id(report(workshop, SUPER_ADMIN))[CAROL]
    assert carol["total_shift_hours_actual"] == 0
    assert carol["total_shift_hours"] == 0
    assert carol["total_shift_hours_source"] == "none"
    assert carol["utilization_percent"] == 0


def test_open_shift_ends_at_the_clock(workshop):
    insert_rows(workshop, [
        (TechnicianShift, {"id": 40, "technician_id": DAN, "clock_in_time": dt(2024, 3, 11, 6),
                           "break_seconds": 900}),
    ])
    # the clock reads Monday 2024-03-11 09:00
    dan = by_id(report(workshop, SUPER_ADMIN, start_date="2024-03-11", end_date="2024-03-11"))[DAN]
    assert dan["total_shift_hours_actual"] == 2.75
    assert dan["total_shift_hours_planned"] == 8
    assert dan["total_shift_hours"] == 2.75
    assert dan["total_shift_hours_source"] == "actual"
