# farmrecords/fastapi/reports_api.py
from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pymongo.database import Database

from farmrecords.auth import current_user_id
from farmrecords.fastapi.responses import dated_filename, xlsx_response
from farmrecords.mongo import get_db
from farmrecords.services.io.excel_service import (
    REPORT_SHEETS,
    build_report_workbook,
    build_traceability_workbook,
)
from farmrecords.services.reports.report_service import ReportService, period_range

router = APIRouter(prefix="/api/v1/reports", tags=["reports"])

Period = Literal["6months", "1year", "2years"]


def report_service(user_id: str = Depends(current_user_id), db: Database = Depends(get_db)) -> ReportService:
    return ReportService(db, user_id)


@router.get("/pesticide-usage")
def pesticide_usage(start: date = Query(...), end: date = Query(...), svc: ReportService = Depends(report_service)):
    rows = svc.get_pesticide_usage_report(start, end)
    return {"ok": True, "items": rows, "summary": ReportService.summarize_pesticide_usage(rows)}


@router.get("/fertilizer-usage")
def fertilizer_usage(start: date = Query(...), end: date = Query(...), svc: ReportService = Depends(report_service)):
    rows = svc.get_fertilizer_usage_report(start, end)
    return {"ok": True, "items": rows, "summary": ReportService.summarize_fertilizer_usage(rows)}


@router.get("/trainings")
def trainings(start: date = Query(...), end: date = Query(...), svc: ReportService = Depends(report_service)):
    rows = svc.get_training_report(start, end)
    return {"ok": True, "items": rows, "summary": ReportService.summarize_trainings(rows)}


@router.get("/visitors")
def visitors(start: date = Query(...), end: date = Query(...), svc: ReportService = Depends(report_service)):
    rows = svc.get_visitor_report(start, end)
    return {"ok": True, "items": rows, "summary": ReportService.summarize_visitors(rows)}


@router.get("/business-analytics")
async def business_analytics(
    period: Period = Query("1year"),
    today: Optional[date] = Query(None),
    svc: ReportService = Depends(report_service),
):
    start, end = period_range(period, today)
    overview = await svc.get_business_overview(start, end)
    return {
        "ok": True,
        "period": period,
        "start": start,
        "end": end,
        **overview,
    }


@router.get("/dashboard")
def dashboard(limit: int = Query(5, ge=1, le=50), svc: ReportService = Depends(report_service)):
    return {"ok": True, **svc.get_recent_activity(limit)}


@router.get("/{report}/excel")
def report_excel(
    report: str,
    start: date = Query(...),
    end: date = Query(...),
    svc: ReportService = Depends(report_service),
):
    if report == "traceability":
        data = svc.get_traceability_data(start, end)
        return xlsx_response(build_traceability_workbook(data), dated_filename("トレーサビリティ", "xlsx"))

    fetchers = {
        "pesticide-usage": svc.get_pesticide_usage_report,
        "fertilizer-usage": svc.get_fertilizer_usage_report,
        "trainings": svc.get_training_report,
    }
    if report not in fetchers:
        raise HTTPException(status_code=404, detail=f"未対応のレポートタイプです: {report}")
    rows = fetchers[report](start, end)
    title = REPORT_SHEETS[report][0]
    return xlsx_response(build_report_workbook(report, rows), dated_filename(title, "xlsx"))
