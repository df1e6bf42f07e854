# Query execution and raw per-technician aggregates.
# QueryExecutor is the seam between the engine and the database: anything with
# `async execute(sql, params) -> list[dict]` will do. SqlAlchemyExecutor runs
# the builder's driver-level SQL on an AsyncSession's connection and turns
# driver errors into QueryExecutionError.
# fetch_technician_metrics() runs the one batched aggregate statement and maps
# rows into TechnicianMetrics.

from __future__ import annotations
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional, Protocol, Sequence

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from workforce_analytics.errors import QueryExecutionError
from workforce_analytics.services.dialects import Dialect, dialect_for
from workforce_analytics.services.query_builder import Query, ReportQueryBuilder

logger = structlog.get_logger(__name__)


class QueryExecutor(Protocol):
    async def execute(self, sql: str, params: Sequence[Any]) -> List[Dict[str, Any]]: ...


def _plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    return value


class SqlAlchemyExecutor:
    def __init__(self, session: AsyncSession):
        self.session = session

    @property
    def dialect(self) -> Dialect:
        return dialect_for(self.session.bind.dialect.name)

    async def execute(self, sql: str, params: Sequence[Any]) -> List[Dict[str, Any]]:
        try:
            conn = await self.session.connection()
            result = await conn.exec_driver_sql(sql, tuple(params) if params else None)
            rows = result.mappings().all()
        except SQLAlchemyError as exc:
            # statement only; bound values never reach the logs
            logger.error("report_query_failed", statement=sql, param_count=len(params), error=type(exc).__name__)
            raise QueryExecutionError("Report query failed") from exc
        return [{k: _plain(v) for k, v in row.items()} for row in rows]


async def run(executor: QueryExecutor, query: Optional[Query]) -> List[Dict[str, Any]]:
    if query is None:
        return []
    return await executor.execute(query.sql, query.params)


@dataclass
class TechnicianMetrics:
    technician_id: str
    technician_name: Optional[str]
    employee_code: Optional[str]
    business_unit_id: Optional[int]
    business_unit_name: Optional[str]
    total_jobs: int = 0
    completed_jobs: int = 0
    active_jobs: int = 0
    total_billed_hours: float = 0.0
    total_worked_hours: float = 0.0
    measured_shift_hours: float = 0.0
    comeback_jobs: int = 0
    rework_jobs: int = 0
    repeat_jobs: int = 0

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "TechnicianMetrics":
        bu = row.get("business_unit_id")
        return cls(
            technician_id=str(row["technician_id"]),
            technician_name=row.get("technician_name"),
            employee_code=row.get("employee_code"),
            business_unit_id=int(bu) if bu is not None else None,
            business_unit_name=row.get("business_unit_name"),
            total_jobs=int(row.get("total_jobs") or 0),
            completed_jobs=int(row.get("completed_jobs") or 0),
            active_jobs=int(row.get("active_jobs") or 0),
            total_billed_hours=float(row.get("total_billed_hours") or 0),
            total_worked_hours=float(row.get("total_worked_hours") or 0),
            measured_shift_hours=float(row.get("measured_shift_hours") or 0),
            comeback_jobs=int(row.get("comeback_jobs") or 0),
            rework_jobs=int(row.get("rework_jobs") or 0),
            repeat_jobs=int(row.get("repeat_jobs") or 0),
        )


async def technician_exists(executor: QueryExecutor, builder: ReportQueryBuilder, technician_id: str) -> bool:
    return bool(await run(executor, builder.technician_lookup(technician_id)))


async def fetch_technician_metrics(
    executor: QueryExecutor,
    builder: ReportQueryBuilder,
    technician_id: Optional[str] = None,
) -> List[TechnicianMetrics]:
    rows = await run(executor, builder.technician_metrics(technician_id))
    return [TechnicianMetrics.from_row(r) for r in rows]
