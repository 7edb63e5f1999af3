# farmrecords/fastapi/traceability_api.py
# Lot chains built from harvests, shipments and field history.

import asyncio
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from pymongo.database import Database

from farmrecords.auth import current_user_id
from farmrecords.fastapi.responses import csv_response, dated_filename
from farmrecords.models.traceability.traceability_models import LotChain
from farmrecords.mongo import get_db
from farmrecords.services.io.csv_service import TRACEABILITY_EXPORT_COLUMNS, export_csv
from farmrecords.services.reports.report_service import ReportService, get_executor
from farmrecords.services.traceability.traceability_services import TraceabilityService

router = APIRouter(prefix="/api/v1/traceability", tags=["traceability"])


async def _build_chains(
    db: Database, user_id: str, start: date, end: date,
    lot: Optional[str], destination: Optional[str],
) -> Dict[str, LotChain]:
    svc = ReportService(db, user_id)
    loop = asyncio.get_running_loop()
    data = await loop.run_in_executor(get_executor(), svc.get_traceability_data, start, end)
    return TraceabilityService.build_report(data, lot=lot, destination=destination)


@router.get("/lots")
async def list_lots(
    start: date = Query(...),
    end: date = Query(...),
    lot: Optional[str] = Query(None, description="lot number contains (case-insensitive)"),
    destination: Optional[str] = Query(None, description="reverse lookup by shipment destination"),
    user_id: str = Depends(current_user_id),
    db: Database = Depends(get_db),
):
    chains = await _build_chains(db, user_id, start, end, lot, destination)
    lots: Dict[str, Any] = {key: chain.to_dict() for key, chain in chains.items()}
    return {"ok": True, "lots": lots, "summary": TraceabilityService.summarize(chains)}


@router.get("/lots/export")
async def export_lots(
    start: date = Query(...),
    end: date = Query(...),
    lot: Optional[str] = Query(None),
    destination: Optional[str] = Query(None),
    user_id: str = Depends(current_user_id),
    db: Database = Depends(get_db),
):
    chains = await _build_chains(db, user_id, start, end, lot, destination)
    text = export_csv(TRACEABILITY_EXPORT_COLUMNS, TraceabilityService.export_rows(chains))
    return csv_response(text, dated_filename("トレーサビリティレポート", "csv"))


@router.get("/_health")
def trace_health():
    return {"ok": True, "source": "traceability_api", "ts": int(datetime.now(timezone.utc).timestamp())}
