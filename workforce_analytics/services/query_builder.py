# Dual-dialect query assembly for the technician efficiency report.
# Fragments bind values through QueryParams, which hands out opaque tokens;
# render() swaps the tokens for the dialect's placeholders in textual order, so
# the parameter tuple always lines up with positional ("?", "%s") and numbered
# ("$n") styles alike, however a dialect orders its function arguments.
# Every optional table/column is routed through SchemaCapabilities: missing
# pieces degrade to 0/NULL or an omitted join, missing required tables fail fast.

from __future__ import annotations
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Optional, Sequence, Tuple

from workforce_analytics.errors import SchemaUnavailable
from workforce_analytics.services.dialects import Dialect
from workforce_analytics.services.schema import SchemaCapabilities
from workforce_analytics.services.scope import Scope, LINK_JOB_CARD, LINK_CREATOR
from workforce_analytics.utils.dates import DateRange

DEFAULT_REPEAT_WINDOW_DAYS = 30


@dataclass(frozen=True)
class Query:
    sql: str
    params: Tuple[Any, ...]


class QueryParams:
    _TOKEN = re.compile(r":__p(\d+)__")

    def __init__(self):
        self._values: List[Any] = []

    def bind(self, value: Any) -> str:
        self._values.append(value)
        return f":__p{len(self._values) - 1}__"

    def render(self, sql: str, dialect: Dialect) -> Query:
        params: List[Any] = []

        def _swap(match: re.Match) -> str:
            params.append(self._values[int(match.group(1))])
            return dialect.placeholder(len(params))

        text = self._TOKEN.sub(_swap, sql)
        return Query(" ".join(text.split()), tuple(params))


class ReportQueryBuilder:
    def __init__(
        self,
        dialect: Dialect,
        capabilities: SchemaCapabilities,
        scope: Scope,
        date_range: DateRange,
        now: datetime,
        repeat_window_days: int = DEFAULT_REPEAT_WINDOW_DAYS,
    ):
        missing = capabilities.missing_required()
        if missing:
            raise SchemaUnavailable(
                "Technician efficiency reporting is not available on this database",
                details={"missing_tables": missing},
            )
        self.dialect = dialect
        self.caps = capabilities
        self.scope = scope
        self.range = date_range
        self.now = now
        self.repeat_window_days = repeat_window_days

    # ---------- scope fragments ----------

    def _job_card_scope(self, q: QueryParams, jc: str, creator: str) -> Tuple[str, str]:
        """(extra join, AND-predicate) restricting job card alias `jc` to the scoped BU."""
        if not self.scope.filters_business_unit:
            return "", ""
        bu = q.bind(self.scope.business_unit_id)
        if self.scope.linkage == LINK_JOB_CARD:
            # legacy rows without a BU stay visible
            return "", f" AND ({jc}.business_unit_id = {bu} OR {jc}.business_unit_id IS NULL)"
        if self.scope.linkage == LINK_CREATOR:
            return (
                f" LEFT JOIN users {creator} ON {jc}.created_by = {creator}.id",
                f" AND ({creator}.business_unit_id = {bu} OR {creator}.business_unit_id IS NULL"
                f" OR {jc}.created_by IS NULL)",
            )
        return "", " AND 1 = 0"

    def _membership(self, q: QueryParams) -> str:
        join, predicate = self._job_card_scope(q, "jx", "ucx")
        via_assignment = (
            f"EXISTS (SELECT 1 FROM assignments ax JOIN job_cards jx ON ax.job_card_id = jx.id{join}"
            f" WHERE ax.technician_id = t.user_id AND ax.status <> 'cancelled'{predicate})"
        )
        if self.caps.users_business_unit:
            return f"(u.business_unit_id = {q.bind(self.scope.business_unit_id)} OR {via_assignment})"
        return via_assignment

    def _technician_filter(self, q: QueryParams, technician_id: Optional[str]) -> str:
        clauses = []
        if technician_id is not None:
            clauses.append(f"t.user_id = {q.bind(technician_id)}")
        elif self.caps.has_column("users", "is_active"):
            clauses.append(self.dialect.is_true("u.is_active"))
        # a super admin asking for one technician by id is not fenced by the BU filter
        fence_explicit = not self.scope.unrestricted
        fenced = technician_id is None or fence_explicit
        if self.scope.filters_business_unit and fenced:
            clauses.append(self._membership(q))
        return (" WHERE " + " AND ".join(clauses)) if clauses else ""

    # ---------- expression helpers ----------

    def _log_seconds(self, alias: str) -> str:
        d = self.dialect
        measured = d.greatest("0", d.seconds_between(f"{alias}.start_ts", f"{alias}.end_ts"))
        if self.caps.has_column("time_logs", "duration_seconds"):
            return d.greatest(f"COALESCE({alias}.duration_seconds, 0)", measured)
        return measured

    def _day_in_range(self, q: QueryParams, expr: str) -> str:
        start = q.bind(self.dialect.date_param(self.range.start_day))
        end = q.bind(self.dialect.date_param(self.range.end_day))
        return f"DATE({expr}) >= {start} AND DATE({expr}) <= {end}"

    def _metadata_text(self, *path: str) -> str:
        raw = self.dialect.json_text("jc.metadata", "work_order_details", *path)
        return f"NULLIF(TRIM({raw}), '')"

    def _comeback_expr(self) -> Optional[str]:
        if not self.caps.has_column("job_cards", "metadata"):
            return None
        return (
            f"({self._metadata_text('previous_job_number')} IS NOT NULL"
            f" OR {self._metadata_text('previous_job_card_id')} IS NOT NULL)"
        )

    def _plate(self, alias: str) -> str:
        raw = self.dialect.json_text(f"{alias}.vehicle_info", "license_plate")
        return f"NULLIF(UPPER(REPLACE(TRIM({raw}), ' ', '')), '')"

    def _repeat_expr(self, q: QueryParams) -> Optional[str]:
        if not self.caps.has_column("job_cards", "vehicle_info"):
            return None
        join, predicate = self._job_card_scope(q, "jp", "ucp")
        earliest = self.dialect.days_before("DATE(jc.created_at)", self.repeat_window_days)
        return (
            f"EXISTS (SELECT 1 FROM job_cards jp{join}"
            f" WHERE jp.id <> jc.id AND jp.status = 'completed'"
            f" AND DATE(jp.created_at) < DATE(jc.created_at)"
            f" AND DATE(jp.created_at) >= {earliest}"
            f" AND {self._plate('jp')} = {self._plate('jc')}{predicate})"
        )

    # ---------- aggregate subqueries ----------

    def _jobs_subquery(self, q: QueryParams) -> str:
        completed = "a.status = 'completed'"
        billed = "COALESCE(jc.estimated_hours, 0)" if self.caps.has_column("job_cards", "estimated_hours") else "0"

        comeback = self._comeback_expr()
        if comeback is None:
            comeback_flag = rework_flag = "0"
        else:
            category = f"LOWER(COALESCE({self._metadata_text('job_category')}, ''))"
            comeback_flag = f"CASE WHEN {completed} AND {comeback} THEN 1 ELSE 0 END"
            rework_flag = f"CASE WHEN {completed} AND {comeback} AND {category} = 'complaint' THEN 1 ELSE 0 END"
        repeat = self._repeat_expr(q)
        repeat_flag = "0" if repeat is None else f"CASE WHEN {completed} AND {repeat} THEN 1 ELSE 0 END"

        # completed work is anchored on when it finished, open work on job card creation
        finished = (
            "EXISTS (SELECT 1 FROM time_logs tf"
            " WHERE (tf.assignment_id = a.id OR (tf.assignment_id IS NULL"
            " AND tf.job_card_id = a.job_card_id AND tf.technician_id = a.technician_id))"
            f" AND tf.status = 'finished' AND tf.end_ts IS NOT NULL AND {self._day_in_range(q, 'tf.end_ts')})"
        )
        if self.caps.has_column("assignments", "completed_at"):
            finished = (
                f"({finished} OR ({completed} AND a.completed_at IS NOT NULL"
                f" AND {self._day_in_range(q, 'a.completed_at')}))"
            )
        opened = f"(a.status IN ('assigned', 'in_progress') AND {self._day_in_range(q, 'jc.created_at')})"
        join, predicate = self._job_card_scope(q, "jc", "uc")

        return f"""
            LEFT JOIN (
                SELECT pj.technician_id,
                       COUNT(*) AS total_jobs,
                       SUM(pj.is_completed) AS completed_jobs,
                       SUM(CASE WHEN pj.is_completed = 1 THEN pj.estimated_hours ELSE 0 END) AS total_billed_hours,
                       SUM(pj.is_comeback) AS comeback_jobs,
                       SUM(pj.is_rework) AS rework_jobs,
                       SUM(pj.is_repeat) AS repeat_jobs
                FROM (
                    SELECT a.technician_id, jc.id AS job_card_id,
                           MAX(CASE WHEN {completed} THEN 1 ELSE 0 END) AS is_completed,
                           MAX({billed}) AS estimated_hours,
                           MAX({comeback_flag}) AS is_comeback,
                           MAX({rework_flag}) AS is_rework,
                           MAX({repeat_flag}) AS is_repeat
                    FROM assignments a
                    JOIN job_cards jc ON a.job_card_id = jc.id{join}
                    WHERE a.status <> 'cancelled'{predicate}
                      AND ({finished} OR {opened})
                    GROUP BY a.technician_id, jc.id
                ) pj
                GROUP BY pj.technician_id
            ) j ON j.technician_id = t.user_id"""

    def _active_subquery(self, q: QueryParams) -> str:
        join, predicate = self._job_card_scope(q, "jc", "uc")
        return f"""
            LEFT JOIN (
                SELECT a.technician_id, COUNT(DISTINCT a.job_card_id) AS active_jobs
                FROM assignments a
                JOIN job_cards jc ON a.job_card_id = jc.id{join}
                WHERE a.status IN ('assigned', 'in_progress'){predicate}
                GROUP BY a.technician_id
            ) act ON act.technician_id = t.user_id"""

    def _finished_logs(self, q: QueryParams) -> str:
        """FROM/WHERE over finished, in-range, non-cancelled time logs aliased `tl`."""
        join, predicate = self._job_card_scope(q, "jc", "uc")
        jc_join = f" JOIN job_cards jc ON tl.job_card_id = jc.id{join}" if self.scope.filters_business_unit else ""
        return (
            f"FROM time_logs tl{jc_join}"
            " WHERE tl.status = 'finished' AND tl.end_ts IS NOT NULL"
            f" AND {self._day_in_range(q, 'tl.end_ts')}"
            " AND NOT EXISTS (SELECT 1 FROM assignments ac WHERE ac.id = tl.assignment_id AND ac.status = 'cancelled')"
            f"{predicate}"
        )

    def _worked_subquery(self, q: QueryParams) -> str:
        return f"""
            LEFT JOIN (
                SELECT tl.technician_id, COALESCE(SUM({self._log_seconds('tl')}), 0) / 3600.0 AS total_worked_hours
                {self._finished_logs(q)}
                GROUP BY tl.technician_id
            ) tw ON tw.technician_id = t.user_id"""

    def _shifts_subquery(self, q: QueryParams) -> str:
        d = self.dialect
        start = q.bind(d.timestamp_param(self.range.start_ts))
        end = q.bind(d.timestamp_param(self.range.end_ts))
        now = q.bind(d.timestamp_param(self.now))
        clock_out = f"COALESCE(ts.clock_out_time, {now})"
        overlap = d.seconds_between(d.greatest("ts.clock_in_time", start), d.least(clock_out, end))
        breaks = "COALESCE(ts.break_seconds, 0)" if self.caps.has_column("technician_shifts", "break_seconds") else "0"
        return f"""
            LEFT JOIN (
                SELECT ts.technician_id,
                       COALESCE(SUM({d.greatest('0', f'{overlap} - {breaks}')}), 0) / 3600.0 AS measured_shift_hours
                FROM technician_shifts ts
                WHERE ts.clock_in_time <= {end} AND {clock_out} >= {start}
                GROUP BY ts.technician_id
            ) sh ON sh.technician_id = t.user_id"""

    # ---------- public queries ----------

    def _technician_from(self) -> str:
        sql = "FROM technicians t JOIN users u ON t.user_id = u.id"
        if self.caps.business_unit_names:
            sql += " LEFT JOIN business_units bu ON u.business_unit_id = bu.id"
        return sql

    def technician_metrics(self, technician_id: Optional[str] = None) -> Query:
        """One batched statement: identity plus every raw aggregate, one row per technician in scope."""
        q = QueryParams()
        bu_id = "u.business_unit_id" if self.caps.users_business_unit else "NULL"
        bu_name = "bu.name" if self.caps.business_unit_names else "NULL"
        shift_col = "COALESCE(sh.measured_shift_hours, 0)" if self.caps.shifts else "0"
        sql = f"""
            SELECT t.user_id AS technician_id,
                   u.display_name AS technician_name,
                   t.employee_code AS employee_code,
                   {bu_id} AS business_unit_id,
                   {bu_name} AS business_unit_name,
                   COALESCE(j.total_jobs, 0) AS total_jobs,
                   COALESCE(j.completed_jobs, 0) AS completed_jobs,
                   COALESCE(act.active_jobs, 0) AS active_jobs,
                   COALESCE(j.total_billed_hours, 0) AS total_billed_hours,
                   COALESCE(tw.total_worked_hours, 0) AS total_worked_hours,
                   {shift_col} AS measured_shift_hours,
                   COALESCE(j.comeback_jobs, 0) AS comeback_jobs,
                   COALESCE(j.rework_jobs, 0) AS rework_jobs,
                   COALESCE(j.repeat_jobs, 0) AS repeat_jobs
            {self._technician_from()}
            {self._jobs_subquery(q)}
            {self._active_subquery(q)}
            {self._worked_subquery(q)}
            {self._shifts_subquery(q) if self.caps.shifts else ''}
            {self._technician_filter(q, technician_id)}
            ORDER BY u.display_name, t.user_id"""
        return q.render(sql, self.dialect)

    def technician_lookup(self, technician_id: str) -> Query:
        q = QueryParams()
        sql = f"SELECT t.user_id AS technician_id FROM technicians t WHERE t.user_id = {q.bind(technician_id)}"
        return q.render(sql, self.dialect)

    def schedules(self, technician_ids: Sequence[str]) -> Optional[Query]:
        if not self.caps.schedules or not technician_ids:
            return None
        q = QueryParams()
        ids = ", ".join(q.bind(tid) for tid in technician_ids)
        sql = (
            "SELECT technician_id, weekday, start_time, end_time FROM tech_schedules"
            f" WHERE technician_id IN ({ids}) AND {self.dialect.is_true('is_active')}"
        )
        return q.render(sql, self.dialect)

    def schedule_exceptions(self, technician_ids: Sequence[str]) -> Optional[Query]:
        if not self.caps.has_table("schedule_exceptions") or not technician_ids:
            return None
        q = QueryParams()
        ids = ", ".join(q.bind(tid) for tid in technician_ids)
        start = q.bind(self.dialect.date_param(self.range.start_day))
        end = q.bind(self.dialect.date_param(self.range.end_day))
        sql = (
            "SELECT technician_id, exception_date, start_time, end_time, is_working_day FROM schedule_exceptions"
            f" WHERE technician_id IN ({ids}) AND exception_date >= {start} AND exception_date <= {end}"
        )
        return q.render(sql, self.dialect)

    def worked_hours_trend(self, period: str, technician_id: Optional[str] = None) -> Query:
        """Worked hours per technician per week/month bucket of the log's finish time."""
        q = QueryParams()
        bucket = self.dialect.truncate(period, "tl.end_ts")
        sql = f"""
            SELECT tl.technician_id AS technician_id,
                   {bucket} AS period_start,
                   COUNT(*) AS finished_logs,
                   COALESCE(SUM({self._log_seconds('tl')}), 0) / 3600.0 AS worked_hours
            {self._finished_logs(q)}
              AND tl.technician_id IN (
                  SELECT t.user_id FROM technicians t JOIN users u ON t.user_id = u.id
                  {self._technician_filter(q, technician_id)}
              )
            GROUP BY tl.technician_id, {bucket}
            ORDER BY tl.technician_id, period_start"""
        return q.render(sql, self.dialect)
