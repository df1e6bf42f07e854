# Shared fixtures: a throwaway SQLite (aiosqlite) workshop database built from the ORM mirror.
# Each asyncio.run() gets its own engine so no pooled connection outlives its event loop.
# seed_workshop() loads the reference week (Mon 2024-03-04 .. Sun 2024-03-10) used by the end-to-end tests.

import asyncio
from datetime import date, datetime, time

import pytest
from sqlalchemy import insert, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from workforce_analytics.db import Base
from workforce_analytics.models import (
    Assignment, BusinessUnit, JobCard, ScheduleException, TechSchedule, Technician, TechnicianShift, TimeLog, User,
)
from workforce_analytics.services.schema import SchemaProbe, probe_capabilities
from workforce_analytics.services.scope import Caller
from workforce_analytics.utils.dates import FixedClock

ALICE = "11111111-1111-1111-1111-111111111111"
BOB = "22222222-2222-2222-2222-222222222222"
CAROL = "33333333-3333-3333-3333-333333333333"
DAN = "44444444-4444-4444-4444-444444444444"
MANAGER_NORTH = "aaaaaaaa-aaaa-aaaa-aaaa-aaaaaaaaaaaa"
MANAGER_SOUTH = "bbbbbbbb-bbbb-bbbb-bbbb-bbbbbbbbbbbb"

NORTH = 1
SOUTH = 2

CLOCK = FixedClock(datetime(2024, 3, 11, 9, 0, 0))
WEEK = {"start_date": "2024-03-04", "end_date": "2024-03-10"}

SUPER_ADMIN = Caller(id=MANAGER_NORTH, role="Super Admin", business_unit_id=None)
NORTH_MANAGER = Caller(id=MANAGER_NORTH, role="Manager", business_unit_id=NORTH)
SOUTH_MANAGER = Caller(id=MANAGER_SOUTH, role="Manager", business_unit_id=SOUTH)
HOMELESS_MANAGER = Caller(id=MANAGER_NORTH, role="Manager", business_unit_id=None)


def dt(y, m, d, hh=0, mm=0, ss=0):
    return datetime(y, m, d, hh, mm, ss)


def run_db(url, fn):
    """Run `fn(session)` against a fresh engine on `url` and return its result."""
    async def _go():
        engine = create_async_engine(url)
        try:
            async with async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)() as session:
                return await fn(session)
        finally:
            await engine.dispose()
    return asyncio.run(_go())


def create_schema(url, tables=None, drop_columns=()):
    async def _go():
        engine = create_async_engine(url)
        try:
            async with engine.begin() as conn:
                selected = None if tables is None else [Base.metadata.tables[t] for t in tables]
                await conn.run_sync(lambda c: Base.metadata.create_all(c, tables=selected))
                for table, column in drop_columns:
                    await conn.execute(text(f"ALTER TABLE {table} DROP COLUMN {column}"))
        finally:
            await engine.dispose()
    asyncio.run(_go())


def probe(url):
    async def _go():
        engine = create_async_engine(url)
        try:
            async with engine.connect() as conn:
                return await probe_capabilities(SchemaProbe(conn))
        finally:
            await engine.dispose()
    return asyncio.run(_go())


def insert_rows(url, rows):
    """rows: iterable of (Model, {column: value}); Core inserts so dropped columns are never referenced."""
    async def _go(session):
        for model, values in rows:
            await session.execute(insert(model.__table__).values(**values))
        await session.commit()
    run_db(url, _go)


def seed_workshop(url):
    rows = [
        (BusinessUnit, {"id": NORTH, "name": "North"}),
        (BusinessUnit, {"id": SOUTH, "name": "South"}),
        (User, {"id": ALICE, "display_name": "Alice", "business_unit_id": NORTH}),
        (User, {"id": BOB, "display_name": "Bob", "business_unit_id": NORTH}),
        (User, {"id": CAROL, "display_name": "Carol", "business_unit_id": SOUTH}),
        (User, {"id": DAN, "display_name": "Dan", "business_unit_id": NORTH}),
        (Technician, {"user_id": ALICE, "employee_code": "T-001"}),
        (Technician, {"user_id": BOB, "employee_code": "T-002"}),
        (Technician, {"user_id": CAROL, "employee_code": "T-003"}),
        (Technician, {"user_id": DAN, "employee_code": "T-004"}),
        # Alice: one completed job, 4h estimate, 3.5h logged, 8h shift
        (JobCard, {"id": 1, "job_number": "JC-1", "status": "completed", "estimated_hours": 4,
                   "business_unit_id": NORTH, "created_at": dt(2024, 3, 4, 8),
                   "vehicle_info": {"license_plate": "KA01AB1234"}}),
        (Assignment, {"id": 1, "job_card_id": 1, "technician_id": ALICE, "status": "completed",
                      "completed_at": dt(2024, 3, 5, 12)}),
        (TimeLog, {"id": 1, "technician_id": ALICE, "assignment_id": 1, "job_card_id": 1,
                   "start_ts": dt(2024, 3, 5, 8), "end_ts": dt(2024, 3, 5, 11, 30),
                   "status": "finished", "duration_seconds": 12600}),
        (TechnicianShift, {"id": 1, "technician_id": ALICE, "clock_in_time": dt(2024, 3, 5, 8),
                           "clock_out_time": dt(2024, 3, 5, 16, 30), "break_seconds": 1800}),
        # Alice: open job created in range
        (JobCard, {"id": 4, "job_number": "JC-4", "status": "in_progress", "estimated_hours": 3,
                   "business_unit_id": NORTH, "created_at": dt(2024, 3, 8, 9)}),
        (Assignment, {"id": 4, "job_card_id": 4, "technician_id": ALICE, "status": "in_progress"}),
        # Alice: cancelled assignment whose hour of logging must not count
        (JobCard, {"id": 5, "job_number": "JC-5", "status": "open", "estimated_hours": 1,
                   "business_unit_id": NORTH, "created_at": dt(2024, 3, 5, 7)}),
        (Assignment, {"id": 5, "job_card_id": 5, "technician_id": ALICE, "status": "cancelled"}),
        (TimeLog, {"id": 5, "technician_id": ALICE, "assignment_id": 5, "job_card_id": 5,
                   "start_ts": dt(2024, 3, 5, 13), "end_ts": dt(2024, 3, 5, 14),
                   "status": "finished", "duration_seconds": 3600}),
        # Carol (South): one legacy job card without a BU, one South job card
        (JobCard, {"id": 2, "job_number": "JC-2", "status": "completed", "estimated_hours": 2,
                   "business_unit_id": None, "created_at": dt(2024, 3, 5, 9)}),
        (Assignment, {"id": 2, "job_card_id": 2, "technician_id": CAROL, "status": "completed",
                      "completed_at": dt(2024, 3, 6, 12)}),
        (TimeLog, {"id": 2, "technician_id": CAROL, "assignment_id": 2, "job_card_id": 2,
                   "start_ts": dt(2024, 3, 6, 10), "end_ts": dt(2024, 3, 6, 12),
                   "status": "finished", "duration_seconds": 7200}),
        (JobCard, {"id": 3, "job_number": "JC-3", "status": "completed", "estimated_hours": 5,
                   "business_unit_id": SOUTH, "created_at": dt(2024, 3, 6, 8)}),
        (Assignment, {"id": 3, "job_card_id": 3, "technician_id": CAROL, "status": "completed",
                      "completed_at": dt(2024, 3, 7, 13)}),
        (TimeLog, {"id": 3, "technician_id": CAROL, "assignment_id": 3, "job_card_id": 3,
                   "start_ts": dt(2024, 3, 7, 9), "end_ts": dt(2024, 3, 7, 13),
                   "status": "finished", "duration_seconds": 14400}),
    ]
    # Dan: never clocks in, planned 08:00-16:00 Monday..Friday
    for i, weekday in enumerate(range(1, 6), start=1):
        rows.append((TechSchedule, {"id": i, "technician_id": DAN, "weekday": weekday,
                                    "start_time": time(8, 0), "end_time": time(16, 0), "is_active": True}))
    # outside the reference week, must be ignored
    rows.append((ScheduleException, {"id": 1, "technician_id": DAN, "exception_date": date(2024, 3, 12),
                                     "is_working_day": False}))
    insert_rows(url, rows)


@pytest.fixture
def db_url(tmp_path):
    url = f"sqlite+aiosqlite:///{tmp_path / 'workshop.sqlite'}"
    create_schema(url)
    return url


@pytest.fixture
def workshop(db_url):
    seed_workshop(db_url)
    return db_url
