# workforce_analytics/models.py

# SQLAlchemy ORM mirror of the operational tables the reporting engine reads.
# The CRUD side owns these tables; the mirror is only used to bootstrap a dev
# database (AUTO_CREATE_SCHEMA) and to build test fixtures.
# Optional columns carry no foreign keys, indexes or Python-side defaults so
# older schemas can be reproduced by dropping them.


from __future__ import annotations
from datetime import date, datetime, time
from decimal import Decimal

from sqlalchemy import String, Integer, BigInteger, Boolean, Date, DateTime, Time, Numeric, JSON, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from workforce_analytics.db import Base


class BusinessUnit(Base):
    __tablename__ = "business_units"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    code: Mapped[str | None] = mapped_column(String(50), nullable=True)


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    business_unit_id: Mapped[int | None] = mapped_column(Integer, nullable=True)


class Technician(Base):
    __tablename__ = "technicians"

    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), primary_key=True)
    employee_code: Mapped[str | None] = mapped_column(String(50), nullable=True)


class JobCard(Base):
    __tablename__ = "job_cards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_number: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(50), default="open", nullable=False)
    estimated_hours: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    vehicle_info: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    business_unit_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class Assignment(Base):
    __tablename__ = "assignments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_card_id: Mapped[int] = mapped_column(Integer, ForeignKey("job_cards.id"), index=True, nullable=False)
    technician_id: Mapped[str] = mapped_column(String(36), ForeignKey("technicians.user_id"), index=True, nullable=False)
    status: Mapped[str] = mapped_column(String(50), default="assigned", nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class TimeLog(Base):
    __tablename__ = "time_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    technician_id: Mapped[str] = mapped_column(String(36), ForeignKey("technicians.user_id"), nullable=False)
    assignment_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("assignments.id"), nullable=True)
    job_card_id: Mapped[int] = mapped_column(Integer, ForeignKey("job_cards.id"), nullable=False)
    start_ts: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_ts: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    status: Mapped[str] = mapped_column(String(30), default="in_progress", nullable=False)
    duration_seconds: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    __table_args__ = (
        Index("idx_time_logs_tech_end", "technician_id", "end_ts"),
    )


class TechnicianShift(Base):
    __tablename__ = "technician_shifts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    technician_id: Mapped[str] = mapped_column(String(36), ForeignKey("technicians.user_id"), index=True, nullable=False)
    clock_in_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    clock_out_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    break_seconds: Mapped[int | None] = mapped_column(BigInteger, nullable=True)


class TechSchedule(Base):
    __tablename__ = "tech_schedules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    technician_id: Mapped[str] = mapped_column(String(36), ForeignKey("technicians.user_id"), nullable=False)
    weekday: Mapped[int] = mapped_column(Integer, nullable=False)  # 0=Sun..6=Sat
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        Index("idx_tech_schedules_technician", "technician_id", "weekday"),
    )


class ScheduleException(Base):
    __tablename__ = "schedule_exceptions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    technician_id: Mapped[str] = mapped_column(String(36), ForeignKey("technicians.user_id"), nullable=False)
    exception_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    end_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    is_working_day: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
