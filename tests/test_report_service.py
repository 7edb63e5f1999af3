import asyncio
from datetime import date, datetime
from unittest.mock import MagicMock

import pytest
from pymongo.errors import PyMongoError

from farmrecords.errors import DateRangeError
from farmrecords.services.reports.report_service import ReportService, month_span, period_range, subtract_months

USER = "USRTEST0001"


def seed(db, collection, **doc):
    doc.setdefault("userId", USER)
    db[collection].insert_one(doc)


class TestFetchRange:
    def test_inclusive_day_bounds_and_descending(self, db):
        seed(db, "harvests", cropName="A", harvestDate=datetime(2024, 6, 1, 0, 0, 0))
        seed(db, "harvests", cropName="B", harvestDate=datetime(2024, 6, 30, 23, 59, 59))
        seed(db, "harvests", cropName="C", harvestDate=datetime(2024, 7, 1, 0, 0, 0))
        seed(db, "harvests", cropName="D", harvestDate=datetime(2024, 6, 15), userId="someone-else")

        rows = ReportService(db, USER).fetch_range("harvests", "harvestDate", date(2024, 6, 1), date(2024, 6, 30))
        assert [r["cropName"] for r in rows] == ["B", "A"]
        assert isinstance(rows[0]["harvestDate"], datetime)
        assert "id" in rows[0] and "_id" not in rows[0]

    def test_start_after_end_rejected(self, db):
        with pytest.raises(DateRangeError):
            ReportService(db, USER).fetch_range("harvests", "harvestDate", date(2024, 7, 1), date(2024, 6, 1))

    def test_store_failure_propagates(self):
        broken = MagicMock()
        broken.__getitem__.return_value.find.side_effect = PyMongoError("unreachable")
        with pytest.raises(PyMongoError):
            ReportService(broken, USER).fetch_range("harvests", "harvestDate", date(2024, 6, 1), date(2024, 6, 30))


class TestUsageReports:
    def test_pesticide_rows_renamed(self, db):
        seed(db, "pesticideUses", date=datetime(2024, 6, 3), fieldName="A", pesticideName="X乳剤",
             method="散布", appliedByName="山田", targetPest="アブラムシ")
        rows = ReportService(db, USER).get_pesticide_usage_report(date(2024, 6, 1), date(2024, 6, 30))
        assert rows[0]["applicationMethod"] == "散布"
        assert rows[0]["applicator"] == "山田"

    def test_pesticide_summary(self):
        rows = [
            {"pesticideName": "X", "fieldName": "A", "targetPest": "アブラムシ"},
            {"pesticideName": "X", "fieldName": "B", "targetPest": None},
        ]
        assert ReportService.summarize_pesticide_usage(rows) == {
            "applications": 2, "pesticides": 1, "fields": 2, "targetPests": 1,
        }

    def test_fertilizer_defaults_and_total(self, db):
        seed(db, "fertilizerUses", date=datetime(2024, 6, 3), fertilizerName="化成", amount=12.5)
        seed(db, "fertilizerUses", date=datetime(2024, 6, 4), fertilizerName="堆肥", amount="7.5")
        rows = ReportService(db, USER).get_fertilizer_usage_report(date(2024, 6, 1), date(2024, 6, 30))
        assert rows[0]["nitrogen"] == 0
        assert rows[0]["applicator"] == ""
        assert ReportService.summarize_fertilizer_usage(rows)["totalAmount"] == 20.0

    def test_training_summary(self):
        rows = [{"status": "完了", "category": "衛生"}, {"status": "進行中"}, {"status": "予定"}, {"status": "完了"}]
        summary = ReportService.summarize_trainings(rows)
        assert summary["completed"] == 2
        assert summary["inProgress"] == 1
        assert summary["completionRate"] == 50
        assert summary["byCategory"] == {"衛生": 1, "その他": 3}

    def test_visitor_rows(self, db):
        seed(db, "visitors", visitDate=datetime(2024, 6, 3), visitorName="佐藤", organization="JA")
        rows = ReportService(db, USER).get_visitor_report(date(2024, 6, 1), date(2024, 6, 30))
        assert rows[0]["name"] == "佐藤"


class TestTraceabilityData:
    def test_field_history_uses_lookback(self, db):
        seed(db, "harvests", cropName="A", fieldName="F", harvestDate=datetime(2024, 6, 10))
        seed(db, "pesticideUses", fieldName="F", date=datetime(2024, 3, 1))
        seed(db, "shipments", cropName="A", fieldName="F", shipmentDate=datetime(2024, 5, 1))

        data = ReportService(db, USER).get_traceability_data(date(2024, 6, 1), date(2024, 6, 30))
        assert len(data["harvests"]) == 1
        assert len(data["pesticides"]) == 1
        assert data["shipments"] == []


class TestAnalytics:
    def _seed_three_months(self, db):
        for day, qty, hours in ((datetime(2024, 4, 10), 100, 10),
                                (datetime(2024, 5, 10), 150, 10),
                                (datetime(2024, 6, 10), 90, 9)):
            seed(db, "harvests", cropName="トマト", fieldName="A", harvestDate=day, quantity=qty)
            seed(db, "workLogs", workType="収穫", fieldName="A", date=day, workHours=hours)

    def test_monthly_series_from_one_fetch(self, db):
        self._seed_three_months(db)
        monthly = asyncio.run(ReportService(db, USER).get_monthly_analytics(date(2024, 4, 1), date(2024, 6, 30)))
        assert [m["efficiency"] for m in monthly] == [10.0, 15.0, 10.0]

    def test_business_overview(self, db):
        self._seed_three_months(db)
        overview = asyncio.run(ReportService(db, USER).get_business_overview(date(2024, 4, 1), date(2024, 6, 30)))
        assert overview["summary"]["totalHarvest"] == 340
        assert overview["growth"]["harvestGrowth"] == pytest.approx(-40.0)
        assert len(overview["monthly"]) == 3

    def test_first_month_counted_whole(self, db):
        seed(db, "harvests", cropName="トマト", fieldName="A", harvestDate=datetime(2023, 12, 5), quantity=100)
        start, end = period_range("6months", date(2024, 6, 15))
        assert start == date(2023, 12, 15)

        overview = asyncio.run(ReportService(db, USER).get_business_overview(start, end))
        assert overview["monthly"][0]["month"] == "2023-12"
        assert overview["monthly"][0]["totalHarvest"] == 100
        # period totals stay on [start, end]
        assert overview["summary"]["harvestRecords"] == 0

        monthly = asyncio.run(ReportService(db, USER).get_monthly_analytics(start, end))
        assert monthly[0]["totalHarvest"] == 100

    def test_overview_insights(self, db):
        self._seed_three_months(db)
        overview = asyncio.run(ReportService(db, USER).get_business_overview(date(2024, 4, 1), date(2024, 6, 30)))
        assert overview["insights"][0].startswith("収穫量が減少")
        assert overview["insights"][-1].startswith("定期的なデータ分析")

    def test_business_analytics(self, db):
        self._seed_three_months(db)
        report = asyncio.run(ReportService(db, USER).get_business_analytics(date(2024, 4, 1), date(2024, 6, 30)))
        assert report["fieldPerformance"]["A"]["efficiency"] == pytest.approx(340 / 29)


class TestPeriods:
    @pytest.mark.parametrize("period,expected_start", [
        ("6months", date(2023, 12, 30)),
        ("1year", date(2023, 6, 30)),
        ("2years", date(2022, 6, 30)),
        ("bogus", date(2023, 6, 30)),
    ])
    def test_period_range(self, period, expected_start):
        assert period_range(period, date(2024, 6, 30)) == (expected_start, date(2024, 6, 30))

    def test_subtract_months_clamps_day(self):
        assert subtract_months(date(2024, 3, 31), 1) == date(2024, 2, 29)

    def test_month_span(self):
        assert month_span(date(2023, 12, 15), date(2024, 2, 10)) == (date(2023, 12, 1), date(2024, 2, 29))


class TestRecentActivity:
    def test_latest_five_per_collection(self, db):
        for day in range(1, 8):
            seed(db, "workLogs", workType="除草", date=datetime(2024, 6, day))
        seed(db, "harvests", cropName="トマト", harvestDate=datetime(2024, 6, 1))
        seed(db, "harvests", cropName="トマト", harvestDate=datetime(2024, 6, 9), userId="someone-else")

        recent = ReportService(db, USER).get_recent_activity()
        assert [w["date"].day for w in recent["workLogs"]] == [7, 6, 5, 4, 3]
        assert len(recent["harvests"]) == 1
        assert recent["shipments"] == []
