# farmrecords/services/reports/analytics_service.py
# Pure aggregation over fetched harvests and work logs. No I/O here.

from collections import OrderedDict
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

from farmrecords.mongo import to_datetime

Record = Dict[str, Any]

UNKNOWN_KEY = "未設定"

# thresholds for improvement suggestions
LOW_HARVEST_PER_HOUR = 5
LOW_MONTHLY_EFFICIENCY = 3


def _num(x: Any) -> float:
    try:
        return float(x or 0)
    except (TypeError, ValueError):
        return 0.0


def _key(x: Any) -> str:
    s = str(x or "").strip()
    return s or UNKNOWN_KEY


def month_key(value: Any) -> Optional[str]:
    """yyyy-MM of a date value, None when the value is not a date."""
    dt = to_datetime(value)
    return dt.strftime("%Y-%m") if dt else None


def months_between(start: date, end: date) -> List[str]:
    """Every yyyy-MM from start's month to end's month inclusive."""
    if isinstance(start, datetime):
        start = start.date()
    if isinstance(end, datetime):
        end = end.date()
    out: List[str] = []
    y, m = start.year, start.month
    while (y, m) <= (end.year, end.month):
        out.append(f"{y:04d}-{m:02d}")
        m += 1
        if m > 12:
            y, m = y + 1, 1
    return out


def efficiency(harvest: float, hours: float) -> float:
    """Harvest per work hour; 0 when no hours were logged."""
    return harvest / hours if hours > 0 else 0.0


def growth_rate(latest: float, previous: float) -> float:
    """Percent change from previous to latest; 0 when previous is 0."""
    if not previous:
        return 0.0
    return (latest - previous) / previous * 100.0


def moving_average(values: Sequence[float], window: int = 3) -> float:
    """Sum of the last `window` values divided by `window`; a shorter series
    counts the missing months as 0."""
    tail = list(values)[-window:]
    return sum(tail) / window if window > 0 else 0.0


def _accumulate(groups: Dict[str, Dict[str, float]], key: str, metric: str, amount: float) -> None:
    bucket = groups.setdefault(key, {metric: 0.0, "records": 0})
    bucket[metric] += amount
    bucket["records"] += 1


class AnalyticsService:

    @staticmethod
    def calculate_harvest_analytics(harvests: Iterable[Record]) -> Dict[str, Dict[str, Any]]:
        by_crop: Dict[str, Dict[str, float]] = {}
        by_field: Dict[str, Dict[str, float]] = {}
        by_month: Dict[str, Dict[str, float]] = {}

        for h in harvests:
            qty = _num(h.get("quantity"))
            _accumulate(by_crop, _key(h.get("cropName")), "quantity", qty)
            _accumulate(by_field, _key(h.get("fieldName")), "quantity", qty)
            month = month_key(h.get("harvestDate"))
            if month:
                _accumulate(by_month, month, "quantity", qty)

        return {"byCrop": by_crop, "byField": by_field, "byMonth": by_month}

    @staticmethod
    def calculate_work_efficiency_analytics(work_logs: Iterable[Record]) -> Dict[str, Dict[str, Any]]:
        by_work_type: Dict[str, Dict[str, float]] = {}
        by_field: Dict[str, Dict[str, float]] = {}
        by_month: Dict[str, Dict[str, float]] = {}

        for w in work_logs:
            hours = _num(w.get("workHours"))
            _accumulate(by_work_type, _key(w.get("workType")), "hours", hours)
            _accumulate(by_field, _key(w.get("fieldName")), "hours", hours)
            month = month_key(w.get("date"))
            if month:
                _accumulate(by_month, month, "hours", hours)

        return {"byWorkType": by_work_type, "byField": by_field, "byMonth": by_month}

    @staticmethod
    def calculate_field_performance(
        harvests: Iterable[Record], work_logs: Iterable[Record]
    ) -> Dict[str, Dict[str, float]]:
        fields: Dict[str, Dict[str, float]] = {}

        for h in harvests:
            row = fields.setdefault(_key(h.get("fieldName")), {"harvest": 0.0, "workHours": 0.0, "efficiency": 0.0})
            row["harvest"] += _num(h.get("quantity"))

        for w in work_logs:
            row = fields.setdefault(_key(w.get("fieldName")), {"harvest": 0.0, "workHours": 0.0, "efficiency": 0.0})
            row["workHours"] += _num(w.get("workHours"))

        for row in fields.values():
            row["efficiency"] = efficiency(row["harvest"], row["workHours"])

        return fields

    @staticmethod
    def summarize(harvests: Sequence[Record], work_logs: Sequence[Record]) -> Dict[str, Any]:
        return {
            "totalHarvest": sum(_num(h.get("quantity")) for h in harvests),
            "totalWorkHours": sum(_num(w.get("workHours")) for w in work_logs),
            "activeFields": len({_key(h.get("fieldName")) for h in harvests}),
            "harvestRecords": len(harvests),
            "workRecords": len(work_logs),
        }

    @staticmethod
    def productivity_metrics(summary: Dict[str, Any]) -> Dict[str, float]:
        total_harvest = _num(summary.get("totalHarvest"))
        total_hours = _num(summary.get("totalWorkHours"))
        fields = int(summary.get("activeFields") or 0)
        return {
            "harvestPerHour": efficiency(total_harvest, total_hours),
            "harvestPerField": total_harvest / fields if fields else 0.0,
            "workHoursPerField": total_hours / fields if fields else 0.0,
            "recordsPerField": int(summary.get("harvestRecords") or 0) / fields if fields else 0.0,
        }

    @staticmethod
    def build_report(harvests: Sequence[Record], work_logs: Sequence[Record]) -> Dict[str, Any]:
        """Everything the business analytics view needs for one period."""
        summary = AnalyticsService.summarize(harvests, work_logs)
        return {
            "harvestAnalytics": AnalyticsService.calculate_harvest_analytics(harvests),
            "workEfficiencyAnalytics": AnalyticsService.calculate_work_efficiency_analytics(work_logs),
            "fieldPerformance": AnalyticsService.calculate_field_performance(harvests, work_logs),
            "summary": summary,
            "productivity": AnalyticsService.productivity_metrics(summary),
        }

    # -------------------------
    # Monthly series
    # -------------------------
    @staticmethod
    def build_monthly_series(
        harvests: Iterable[Record],
        work_logs: Iterable[Record],
        start: date,
        end: date,
    ) -> List[Dict[str, Any]]:
        """
        One row per calendar month in [start, end], empty months included,
        built from a single batch of records.
        """
        months: "OrderedDict[str, Dict[str, Any]]" = OrderedDict(
            (m, {"month": m, "monthName": f"{m[5:]}月", "totalHarvest": 0.0, "totalWorkHours": 0.0,
                 "efficiency": 0.0, "fields": set(), "harvestRecords": 0, "workRecords": 0})
            for m in months_between(start, end)
        )

        for h in harvests:
            row = months.get(month_key(h.get("harvestDate")) or "")
            if row is None:
                continue
            row["totalHarvest"] += _num(h.get("quantity"))
            row["harvestRecords"] += 1
            row["fields"].add(_key(h.get("fieldName")))

        for w in work_logs:
            row = months.get(month_key(w.get("date")) or "")
            if row is None:
                continue
            row["totalWorkHours"] += _num(w.get("workHours"))
            row["workRecords"] += 1

        series = []
        for row in months.values():
            row["efficiency"] = efficiency(row["totalHarvest"], row["totalWorkHours"])
            row["activeFields"] = len(row.pop("fields"))
            series.append(row)
        return series

    @staticmethod
    def calculate_growth_rates(monthly: Sequence[Dict[str, Any]]) -> Dict[str, float]:
        """
        Month-over-month growth of the last two months and the 3-month
        moving average of efficiency. Empty with fewer than two months.
        """
        if len(monthly) < 2:
            return {}
        latest, previous = monthly[-1], monthly[-2]
        return {
            "harvestGrowth": growth_rate(_num(latest.get("totalHarvest")), _num(previous.get("totalHarvest"))),
            "efficiencyGrowth": growth_rate(_num(latest.get("efficiency")), _num(previous.get("efficiency"))),
            "productivityTrend": moving_average([_num(m.get("efficiency")) for m in monthly], 3),
        }

    # -------------------------
    # Improvement suggestions
    # -------------------------
    @staticmethod
    def improvement_suggestions(
        productivity: Dict[str, float],
        growth: Dict[str, float],
        monthly: Sequence[Dict[str, Any]],
    ) -> List[str]:
        insights: List[str] = []
        if _num(productivity.get("harvestPerHour")) < LOW_HARVEST_PER_HOUR:
            insights.append("作業効率が低下しています。作業手順の見直しや設備投資を検討してください。")
        if "harvestGrowth" in growth and _num(growth["harvestGrowth"]) < 0:
            insights.append("収穫量が減少傾向にあります。栽培技術の見直しや土壌改良を検討してください。")
        if len(monthly) > 3 and all(_num(m.get("efficiency")) < LOW_MONTHLY_EFFICIENCY for m in monthly[-3:]):
            insights.append("継続的に効率性が低下しています。作業プロセスの抜本的な見直しが必要です。")
        insights.append("定期的なデータ分析により、さらなる改善機会を発見できます。")
        return insights
