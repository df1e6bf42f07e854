# SQL dialect adapters for the report queries.
# Each backend implements the handful of things that actually differ:
# placeholder rendering, seconds between two timestamps, GREATEST/LEAST,
# JSON text extraction, "N days before", week/month truncation, boolean tests
# and how date/timestamp parameters are passed to the driver.
# PostgreSQL and MySQL are the production backends; SQLite backs local dev and tests.

from __future__ import annotations
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any


class Dialect(ABC):
    name = "generic"

    @abstractmethod
    def placeholder(self, position: int) -> str:
        """Driver placeholder for the 1-based parameter `position`."""
        raise NotImplementedError

    @abstractmethod
    def seconds_between(self, start: str, end: str) -> str:
        raise NotImplementedError

    def greatest(self, *exprs: str) -> str:
        return f"GREATEST({', '.join(exprs)})"

    def least(self, *exprs: str) -> str:
        return f"LEAST({', '.join(exprs)})"

    @abstractmethod
    def json_text(self, column: str, *path: str) -> str:
        raise NotImplementedError

    @abstractmethod
    def days_before(self, day_expr: str, days: int) -> str:
        raise NotImplementedError

    @abstractmethod
    def truncate(self, unit: str, day_expr: str) -> str:
        raise NotImplementedError

    def is_true(self, expr: str) -> str:
        return f"{expr} <> 0"

    def date_param(self, value: date) -> Any:
        return value.isoformat()

    def timestamp_param(self, value: datetime) -> Any:
        return value.strftime("%Y-%m-%d %H:%M:%S")


class PostgresDialect(Dialect):
    name = "postgresql"

    def placeholder(self, position: int) -> str:
        return f"${position}"

    def seconds_between(self, start: str, end: str) -> str:
        return f"EXTRACT(EPOCH FROM ({end} - {start}))"

    def json_text(self, column: str, *path: str) -> str:
        hops = "".join(f"->'{p}'" for p in path[:-1])
        return f"({column}{hops}->>'{path[-1]}')"

    def days_before(self, day_expr: str, days: int) -> str:
        return f"({day_expr} - INTERVAL '{int(days)} days')"

    def truncate(self, unit: str, day_expr: str) -> str:
        return f"CAST(DATE_TRUNC('{_unit(unit)}', {day_expr}) AS DATE)"

    def is_true(self, expr: str) -> str:
        return f"{expr} = TRUE"

    # asyncpg binds typed values, not strings
    def date_param(self, value: date) -> Any:
        return value

    def timestamp_param(self, value: datetime) -> Any:
        return value


class MySQLDialect(Dialect):
    name = "mysql"

    # aiomysql/asyncmy use the DB-API "format" paramstyle
    def placeholder(self, position: int) -> str:
        return "%s"

    def seconds_between(self, start: str, end: str) -> str:
        return f"TIMESTAMPDIFF(SECOND, {start}, {end})"

    def json_text(self, column: str, *path: str) -> str:
        return f"JSON_UNQUOTE(JSON_EXTRACT({column}, '$.{'.'.join(path)}'))"

    def days_before(self, day_expr: str, days: int) -> str:
        return f"DATE_SUB({day_expr}, INTERVAL {int(days)} DAY)"

    def truncate(self, unit: str, day_expr: str) -> str:
        # no DATE_FORMAT here: '%' would clash with the format paramstyle
        if _unit(unit) == "month":
            return f"DATE_SUB(DATE({day_expr}), INTERVAL DAYOFMONTH({day_expr}) - 1 DAY)"
        return f"DATE_SUB(DATE({day_expr}), INTERVAL WEEKDAY({day_expr}) DAY)"


class SQLiteDialect(Dialect):
    name = "sqlite"

    def placeholder(self, position: int) -> str:
        return "?"

    def seconds_between(self, start: str, end: str) -> str:
        return f"(CAST(strftime('%s', {end}) AS INTEGER) - CAST(strftime('%s', {start}) AS INTEGER))"

    def greatest(self, *exprs: str) -> str:
        return f"MAX({', '.join(exprs)})"

    def least(self, *exprs: str) -> str:
        return f"MIN({', '.join(exprs)})"

    def json_text(self, column: str, *path: str) -> str:
        return f"json_extract({column}, '$.{'.'.join(path)}')"

    def days_before(self, day_expr: str, days: int) -> str:
        return f"DATE({day_expr}, '-{int(days)} days')"

    def truncate(self, unit: str, day_expr: str) -> str:
        if _unit(unit) == "month":
            return f"DATE({day_expr}, 'start of month')"
        # 'weekday 0' moves forward to Sunday; six days back is that week's Monday
        return f"DATE({day_expr}, 'weekday 0', '-6 days')"


def _unit(unit: str) -> str:
    if unit not in ("week", "month"):
        raise ValueError(f"unsupported truncation unit: {unit}")
    return unit


DIALECTS = {
    "postgresql": PostgresDialect,
    "mysql": MySQLDialect,
    "mariadb": MySQLDialect,
    "sqlite": SQLiteDialect,
}


def dialect_for(name: str) -> Dialect:
    try:
        return DIALECTS[name]()
    except KeyError:
        raise ValueError(f"unsupported database backend: {name}") from None
