# farmrecords/services/reports/report_service.py
from __future__ import annotations

import asyncio
import calendar
import logging
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timedelta
from functools import partial
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pymongo.database import Database
from pymongo.errors import PyMongoError

from farmrecords.app_config import get_settings
from farmrecords.errors import DateRangeError
from farmrecords.mongo import day_bounds, serialize_doc, to_datetime
from farmrecords.services.records.collections import spec_by_name
from farmrecords.services.reports.analytics_service import AnalyticsService

logger = logging.getLogger(__name__)

Record = Dict[str, Any]

PERIOD_MONTHS = {"6months": 6, "1year": 12, "2years": 24}
DEFAULT_PERIOD = "1year"
RECENT_LIMIT = 5

_executor: Optional[ThreadPoolExecutor] = None


def get_executor() -> ThreadPoolExecutor:
    """Process-wide bounded pool for blocking store reads issued from async code."""
    global _executor
    if _executor is None:
        _executor = ThreadPoolExecutor(
            max_workers=get_settings().report_workers,
            thread_name_prefix="report-fetch",
        )
    return _executor


def _as_date(value: Any) -> date:
    return value.date() if isinstance(value, datetime) else value


def subtract_months(d: date, months: int) -> date:
    y, m = divmod(d.year * 12 + (d.month - 1) - months, 12)
    m += 1
    return date(y, m, min(d.day, calendar.monthrange(y, m)[1]))


def period_range(period: Optional[str], today: Optional[date] = None) -> Tuple[date, date]:
    """
    6months | 1year | 2years back from today. Unknown periods fall back to
    one year.
    """
    end = _as_date(today or date.today())
    months = PERIOD_MONTHS.get(period or DEFAULT_PERIOD, PERIOD_MONTHS[DEFAULT_PERIOD])
    return subtract_months(end, months), end


def month_span(start: date, end: date) -> Tuple[date, date]:
    """First day of start's month to the last day of end's month."""
    start, end = _as_date(start), _as_date(end)
    last_day = calendar.monthrange(end.year, end.month)[1]
    return start.replace(day=1), end.replace(day=last_day)


def within(rows: Sequence[Record], date_field: str, lo: datetime, hi: datetime) -> List[Record]:
    """Rows whose `date_field` falls in [lo, hi]; undated rows are dropped."""
    out = []
    for r in rows:
        dt = to_datetime(r.get(date_field))
        if dt is not None and lo <= dt <= hi:
            out.append(r)
    return out


def _distinct(rows: Sequence[Record], key: str) -> int:
    return len({r.get(key) for r in rows if r.get(key)})


class ReportService:
    def __init__(self, db: Database, user_id: str):
        self.db = db
        self.user_id = user_id

    # -------------------------
    # Record fetcher
    # -------------------------
    def fetch_range(self, collection: str, date_field: str, start: date, end: date) -> List[Record]:
        """
        Owner's records with `date_field` in [start 00:00:00, end 23:59:59],
        newest first. Store failures are logged and re-raised.
        """
        start, end = _as_date(start), _as_date(end)
        if start > end:
            raise DateRangeError(f"start {start} is after end {end}")

        lo, hi = day_bounds(start, end)
        try:
            date_fields = tuple(spec_by_name(collection).model.DATE_FIELDS)
        except KeyError:
            date_fields = (date_field,)

        q = {"userId": self.user_id, date_field: {"$gte": lo, "$lte": hi}}
        try:
            cur = self.db[collection].find(q).sort([(date_field, -1), ("_id", -1)])
            return [serialize_doc(d, date_fields + ("createdAt", "updatedAt")) for d in cur]
        except PyMongoError:
            logger.error(
                "Failed to fetch records",
                extra={"context": {"operation": "fetch_range", "collection": collection,
                                   "userId": self.user_id}},
                exc_info=True,
            )
            raise

    # -------------------------
    # Usage reports
    # -------------------------
    def get_pesticide_usage_report(self, start: date, end: date) -> List[Record]:
        return [
            {
                "id": d["id"],
                "date": d.get("date"),
                "fieldName": d.get("fieldName"),
                "pesticideName": d.get("pesticideName"),
                "targetPest": d.get("targetPest"),
                "dilutionRate": d.get("dilutionRate"),
                "applicationMethod": d.get("method"),
                "weather": d.get("weather"),
                "temperature": d.get("temperature"),
                "windSpeed": d.get("windSpeed"),
                "applicator": d.get("appliedByName") or "",
                "notes": d.get("notes"),
            }
            for d in self.fetch_range("pesticideUses", "date", start, end)
        ]

    def get_fertilizer_usage_report(self, start: date, end: date) -> List[Record]:
        return [
            {
                "id": d["id"],
                "date": d.get("date"),
                "fieldName": d.get("fieldName"),
                "fertilizerName": d.get("fertilizerName"),
                "amount": d.get("amount"),
                "unit": d.get("unit"),
                "method": d.get("method"),
                "nitrogen": d.get("nitrogen") or 0,
                "phosphorus": d.get("phosphorus") or 0,
                "potassium": d.get("potassium") or 0,
                "applicator": d.get("appliedByName") or "",
                "notes": d.get("notes"),
            }
            for d in self.fetch_range("fertilizerUses", "date", start, end)
        ]

    def get_training_report(self, start: date, end: date) -> List[Record]:
        return [
            {
                "id": d["id"],
                "date": d.get("trainingDate"),
                "title": d.get("title"),
                "category": d.get("category"),
                "description": d.get("description"),
                "instructor": d.get("instructor"),
                "participants": d.get("participantNames") or d.get("participants") or [],
                "duration": d.get("duration"),
                "materials": d.get("materials"),
                "status": d.get("status"),
                "notes": d.get("notes"),
            }
            for d in self.fetch_range("trainings", "trainingDate", start, end)
        ]

    def get_visitor_report(self, start: date, end: date) -> List[Record]:
        return [
            {
                "id": d["id"],
                "date": d.get("visitDate"),
                "name": d.get("visitorName") or d.get("name"),
                "organization": d.get("organization"),
                "purpose": d.get("purpose"),
                "notes": d.get("notes"),
            }
            for d in self.fetch_range("visitors", "visitDate", start, end)
        ]

    # -------------------------
    # Report summaries
    # -------------------------
    @staticmethod
    def summarize_pesticide_usage(rows: Sequence[Record]) -> Dict[str, int]:
        return {
            "applications": len(rows),
            "pesticides": _distinct(rows, "pesticideName"),
            "fields": _distinct(rows, "fieldName"),
            "targetPests": _distinct(rows, "targetPest"),
        }

    @staticmethod
    def summarize_fertilizer_usage(rows: Sequence[Record]) -> Dict[str, Any]:
        total = 0.0
        for r in rows:
            try:
                total += float(r.get("amount") or 0)
            except (TypeError, ValueError):
                continue
        return {
            "applications": len(rows),
            "fertilizers": _distinct(rows, "fertilizerName"),
            "fields": _distinct(rows, "fieldName"),
            "totalAmount": round(total, 1),
        }

    @staticmethod
    def summarize_trainings(rows: Sequence[Record]) -> Dict[str, Any]:
        completed = sum(1 for r in rows if r.get("status") == "完了")
        in_progress = sum(1 for r in rows if r.get("status") == "進行中")
        return {
            "total": len(rows),
            "completed": completed,
            "inProgress": in_progress,
            "completionRate": round(completed / len(rows) * 100) if rows else 0,
            "byCategory": dict(Counter(r.get("category") or "その他" for r in rows)),
        }

    @staticmethod
    def summarize_visitors(rows: Sequence[Record]) -> Dict[str, int]:
        return {
            "total": len(rows),
            "organizations": _distinct(rows, "organization"),
        }

    # -------------------------
    # Traceability
    # -------------------------
    def get_traceability_data(self, start: date, end: date) -> Dict[str, List[Record]]:
        """
        Harvests and shipments in range; field history from
        start - TRACE_LOOKBACK_DAYS so earlier applications are still linked.
        """
        history_start = _as_date(start) - timedelta(days=get_settings().trace_lookback_days)
        return {
            "harvests": self.fetch_range("harvests", "harvestDate", start, end),
            "shipments": self.fetch_range("shipments", "shipmentDate", start, end),
            "pesticides": self.fetch_range("pesticideUses", "date", history_start, end),
            "fertilizers": self.fetch_range("fertilizerUses", "date", history_start, end),
            "workLogs": self.fetch_range("workLogs", "date", history_start, end),
        }

    # -------------------------
    # Business analytics
    # -------------------------
    async def _fetch_harvests_and_work_logs(self, start: date, end: date) -> Tuple[List[Record], List[Record]]:
        loop = asyncio.get_running_loop()
        pool = get_executor()
        harvests, work_logs = await asyncio.gather(
            loop.run_in_executor(pool, partial(self.fetch_range, "harvests", "harvestDate", start, end)),
            loop.run_in_executor(pool, partial(self.fetch_range, "workLogs", "date", start, end)),
        )
        return harvests, work_logs

    async def get_business_analytics(self, start: date, end: date) -> Dict[str, Any]:
        harvests, work_logs = await self._fetch_harvests_and_work_logs(start, end)
        return AnalyticsService.build_report(harvests, work_logs)

    async def get_monthly_analytics(self, start: date, end: date) -> List[Record]:
        """One batched fetch covering every calendar month touched by [start, end]."""
        first, last = month_span(start, end)
        harvests, work_logs = await self._fetch_harvests_and_work_logs(first, last)
        return AnalyticsService.build_monthly_series(harvests, work_logs, first, last)

    async def get_business_overview(self, start: date, end: date) -> Dict[str, Any]:
        """
        Period analytics on [start, end] plus the whole-month series, growth
        rates and improvement suggestions, all from a single fetch.
        """
        first, last = month_span(start, end)
        harvests, work_logs = await self._fetch_harvests_and_work_logs(first, last)
        lo, hi = day_bounds(start, end)
        report = AnalyticsService.build_report(
            within(harvests, "harvestDate", lo, hi),
            within(work_logs, "date", lo, hi),
        )
        monthly = AnalyticsService.build_monthly_series(harvests, work_logs, first, last)
        growth = AnalyticsService.calculate_growth_rates(monthly)
        return {
            **report,
            "monthly": monthly,
            "growth": growth,
            "insights": AnalyticsService.improvement_suggestions(report["productivity"], growth, monthly),
        }

    # -------------------------
    # Dashboard
    # -------------------------
    def get_recent_activity(self, limit: int = RECENT_LIMIT) -> Dict[str, List[Record]]:
        """Latest work logs, harvests and shipments for the dashboard, newest first."""
        return {
            "workLogs": self._latest("workLogs", "date", limit),
            "harvests": self._latest("harvests", "harvestDate", limit),
            "shipments": self._latest("shipments", "shipmentDate", limit),
        }

    def _latest(self, collection: str, date_field: str, limit: int) -> List[Record]:
        date_fields = tuple(spec_by_name(collection).model.DATE_FIELDS) + ("createdAt", "updatedAt")
        try:
            cur = (self.db[collection].find({"userId": self.user_id})
                   .sort([(date_field, -1), ("_id", -1)]).limit(limit))
            return [serialize_doc(d, date_fields) for d in cur]
        except PyMongoError:
            logger.error(
                "Failed to fetch recent records",
                extra={"context": {"operation": "recent", "collection": collection, "userId": self.user_id}},
                exc_info=True,
            )
            raise
