import math
from datetime import date, datetime

import pytest

from farmrecords.services.reports.analytics_service import (
    AnalyticsService,
    efficiency,
    growth_rate,
    month_key,
    months_between,
    moving_average,
)


def H(day, qty, field="A", crop="トマト"):
    return {"harvestDate": day, "quantity": qty, "fieldName": field, "cropName": crop}


def W(day, hours, field="A", work_type="収穫"):
    return {"date": day, "workHours": hours, "fieldName": field, "workType": work_type}


class TestHelpers:
    def test_efficiency_zero_hours(self):
        assert efficiency(100, 0) == 0.0

    def test_growth_rate_zero_previous(self):
        assert growth_rate(50, 0) == 0.0
        assert growth_rate(90, 150) == pytest.approx(-40.0)

    def test_moving_average_short_series(self):
        assert moving_average([4.0]) == pytest.approx(4 / 3)
        assert moving_average([6.0, 3.0]) == 3.0
        assert moving_average([]) == 0.0
        assert moving_average([1, 2, 3, 6]) == pytest.approx(11 / 3)

    def test_month_key(self):
        assert month_key(datetime(2024, 3, 31, 23, 59)) == "2024-03"
        assert month_key("garbage") is None

    def test_months_between_crosses_year(self):
        assert months_between(date(2024, 11, 15), date(2025, 2, 1)) == [
            "2024-11", "2024-12", "2025-01", "2025-02",
        ]


class TestGrouping:
    def test_harvest_by_crop_field_month(self):
        result = AnalyticsService.calculate_harvest_analytics([
            H(datetime(2024, 6, 1), 100),
            H(datetime(2024, 6, 20), 50, crop="キュウリ"),
            H(datetime(2024, 7, 1), 30, field="B"),
        ])
        assert result["byCrop"]["トマト"] == {"quantity": 130, "records": 2}
        assert result["byField"]["A"]["quantity"] == 150
        assert result["byMonth"]["2024-06"]["records"] == 2

    def test_work_by_type(self):
        result = AnalyticsService.calculate_work_efficiency_analytics([
            W(datetime(2024, 6, 1), 3, work_type="除草"),
            W(datetime(2024, 6, 2), 2, work_type="除草"),
        ])
        assert result["byWorkType"]["除草"] == {"hours": 5, "records": 2}

    def test_missing_keys_grouped_as_unset(self):
        result = AnalyticsService.calculate_harvest_analytics([{"quantity": 5, "harvestDate": datetime(2024, 1, 1)}])
        assert "未設定" in result["byCrop"]


class TestFieldPerformance:
    def test_efficiency_never_infinite(self):
        perf = AnalyticsService.calculate_field_performance(
            [H(datetime(2024, 6, 1), 100, field="A"), H(datetime(2024, 6, 1), 40, field="B")],
            [W(datetime(2024, 6, 1), 10, field="A")],
        )
        assert perf["A"]["efficiency"] == 10.0
        assert perf["B"]["efficiency"] == 0.0
        for row in perf.values():
            assert math.isfinite(row["efficiency"])


class TestSummary:
    def test_summary_and_productivity(self):
        harvests = [H(datetime(2024, 6, 1), 100, field="A"), H(datetime(2024, 6, 2), 50, field="B")]
        work_logs = [W(datetime(2024, 6, 1), 10)]
        report = AnalyticsService.build_report(harvests, work_logs)
        assert report["summary"] == {
            "totalHarvest": 150, "totalWorkHours": 10, "activeFields": 2,
            "harvestRecords": 2, "workRecords": 1,
        }
        assert report["productivity"]["harvestPerHour"] == 15.0
        assert report["productivity"]["harvestPerField"] == 75.0

    def test_productivity_empty(self):
        metrics = AnalyticsService.productivity_metrics(AnalyticsService.summarize([], []))
        assert all(v == 0.0 for v in metrics.values())


class TestMonthlySeries:
    def test_three_month_scenario(self):
        harvests = [H(datetime(2024, 4, 10), 100), H(datetime(2024, 5, 10), 150), H(datetime(2024, 6, 10), 90)]
        work_logs = [W(datetime(2024, 4, 10), 10), W(datetime(2024, 5, 10), 10), W(datetime(2024, 6, 10), 9)]
        monthly = AnalyticsService.build_monthly_series(harvests, work_logs, date(2024, 4, 1), date(2024, 6, 30))

        assert [m["month"] for m in monthly] == ["2024-04", "2024-05", "2024-06"]
        assert [m["efficiency"] for m in monthly] == [10.0, 15.0, 10.0]

        growth = AnalyticsService.calculate_growth_rates(monthly)
        assert growth["harvestGrowth"] == pytest.approx(-40.0)
        assert growth["productivityTrend"] == pytest.approx((10 + 15 + 10) / 3)

    def test_empty_months_present(self):
        monthly = AnalyticsService.build_monthly_series([H(datetime(2024, 1, 5), 10)], [], date(2024, 1, 1), date(2024, 3, 31))
        assert [m["totalHarvest"] for m in monthly] == [10.0, 0.0, 0.0]
        assert monthly[1]["monthName"] == "02月"
        assert monthly[0]["activeFields"] == 1

    def test_growth_needs_two_months(self):
        assert AnalyticsService.calculate_growth_rates([{"totalHarvest": 1, "efficiency": 1}]) == {}

    def test_productivity_trend_divides_by_three(self):
        monthly = [{"totalHarvest": 100, "efficiency": 10.0}, {"totalHarvest": 150, "efficiency": 15.0}]
        assert AnalyticsService.calculate_growth_rates(monthly)["productivityTrend"] == pytest.approx(25 / 3)


class TestImprovementSuggestions:
    def _monthly(self, *effs):
        return [{"efficiency": e} for e in effs]

    def test_healthy_farm_gets_only_the_standing_note(self):
        insights = AnalyticsService.improvement_suggestions(
            {"harvestPerHour": 12.0}, {"harvestGrowth": 5.0}, self._monthly(10, 12, 11, 13))
        assert insights == ["定期的なデータ分析により、さらなる改善機会を発見できます。"]

    def test_low_efficiency_and_decline(self):
        insights = AnalyticsService.improvement_suggestions(
            {"harvestPerHour": 2.0}, {"harvestGrowth": -40.0}, self._monthly(4, 2, 1, 2.5))
        assert len(insights) == 4
        assert insights[0].startswith("作業効率が低下")
        assert insights[1].startswith("収穫量が減少")
        assert insights[2].startswith("継続的に効率性")

    def test_sustained_low_efficiency_needs_more_than_three_months(self):
        insights = AnalyticsService.improvement_suggestions(
            {"harvestPerHour": 6.0}, {}, self._monthly(1, 1, 1))
        assert not any(i.startswith("継続的に") for i in insights)
