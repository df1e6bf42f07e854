# Schema probing: which of the optional tables/columns exist in this deployment.
# SchemaProbe answers single questions against the live database through
# SQLAlchemy's runtime inspector, so the same code works on every backend.
# probe_capabilities() runs the probe once (at startup) and freezes the answers
# into a SchemaCapabilities descriptor that is passed down to every report.

from __future__ import annotations
import hashlib
from dataclasses import dataclass
from typing import FrozenSet, Tuple

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncConnection

REQUIRED_TABLES = ("technicians", "users", "assignments", "job_cards", "time_logs")
OPTIONAL_TABLES = ("business_units", "technician_shifts", "tech_schedules", "schedule_exceptions")

OPTIONAL_COLUMNS = {
    "users": ("business_unit_id", "is_active"),
    "job_cards": ("business_unit_id", "created_by", "estimated_hours", "metadata", "vehicle_info"),
    "assignments": ("completed_at",),
    "time_logs": ("duration_seconds",),
    "technician_shifts": ("break_seconds",),
}


class SchemaProbe:
    def __init__(self, conn: AsyncConnection):
        self.conn = conn

    async def table_exists(self, name: str) -> bool:
        return await self.conn.run_sync(lambda sync_conn: inspect(sync_conn).has_table(name))

    async def column_exists(self, table: str, column: str) -> bool:
        def _check(sync_conn) -> bool:
            insp = inspect(sync_conn)
            if not insp.has_table(table):
                return False
            return any(c["name"] == column for c in insp.get_columns(table))
        return await self.conn.run_sync(_check)


@dataclass(frozen=True)
class SchemaCapabilities:
    tables: FrozenSet[str]
    columns: FrozenSet[Tuple[str, str]]

    VERSION = 1

    def has_table(self, name: str) -> bool:
        return name in self.tables

    def has_column(self, table: str, column: str) -> bool:
        return (table, column) in self.columns

    def missing_required(self) -> list[str]:
        return [t for t in REQUIRED_TABLES if t not in self.tables]

    # ---- named capabilities the query builder routes on ----

    @property
    def users_business_unit(self) -> bool:
        return self.has_column("users", "business_unit_id")

    @property
    def job_cards_business_unit(self) -> bool:
        return self.has_column("job_cards", "business_unit_id")

    @property
    def creator_linkage(self) -> bool:
        return self.users_business_unit and self.has_column("job_cards", "created_by")

    @property
    def business_unit_names(self) -> bool:
        return self.users_business_unit and self.has_table("business_units")

    @property
    def shifts(self) -> bool:
        return self.has_table("technician_shifts")

    @property
    def schedules(self) -> bool:
        return self.has_table("tech_schedules")

    @property
    def fingerprint(self) -> str:
        items = sorted(self.tables) + sorted(f"{t}.{c}" for t, c in self.columns)
        digest = hashlib.sha1("|".join(items).encode("utf-8")).hexdigest()[:12]
        return f"v{self.VERSION}-{digest}"

    def describe(self) -> dict:
        return {
            "version": self.VERSION,
            "fingerprint": self.fingerprint,
            "tables": sorted(self.tables),
            "columns": sorted(f"{t}.{c}" for t, c in self.columns),
            "missing_required_tables": self.missing_required(),
        }


async def probe_capabilities(probe: SchemaProbe) -> SchemaCapabilities:
    tables = set()
    for name in REQUIRED_TABLES + OPTIONAL_TABLES:
        if await probe.table_exists(name):
            tables.add(name)
    columns = set()
    for table, names in OPTIONAL_COLUMNS.items():
        if table not in tables:
            continue
        for column in names:
            if await probe.column_exists(table, column):
                columns.add((table, column))
    return SchemaCapabilities(frozenset(tables), frozenset(columns))
