# farmrecords/fastapi/records_api.py
# Generic CRUD + CSV endpoints for every record collection.

import logging
from datetime import date
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request
from pymongo.database import Database

from farmrecords.auth import auth_identity, current_user_id
from farmrecords.errors import CsvImportError
from farmrecords.fastapi.responses import csv_response, dated_filename
from farmrecords.mongo import get_db
from farmrecords.services.io.csv_service import SAMPLES, TEMPLATES, export_csv, parse_csv, template_csv
from farmrecords.services.records.collections import CollectionSpec, get_collection_spec
from farmrecords.services.records.record_service import RecordService
from farmrecords.services.records.work_log_service import WorkLogService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/records", tags=["records"])


# ------------ dependencies ------------
def collection_spec(slug: str) -> CollectionSpec:
    try:
        return get_collection_spec(slug)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown collection '{slug}'")


def record_service(
    spec: CollectionSpec = Depends(collection_spec),
    user_id: str = Depends(current_user_id),
    identity: Dict[str, Any] = Depends(auth_identity),
    db: Database = Depends(get_db),
) -> RecordService:
    if spec.name == "workLogs":
        return WorkLogService(db, spec, user_id, actor_name=identity.get("name") or identity.get("email"))
    return RecordService(db, spec, user_id)


# ------------ list / create ------------
@router.get("/{slug}")
def list_records(
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    svc: RecordService = Depends(record_service),
):
    items = svc.list(start, end)
    return {"ok": True, "items": items, "count": len(items)}


@router.post("/{slug}", status_code=201)
def create_record(payload: Dict[str, Any] = Body(...), svc: RecordService = Depends(record_service)):
    return {"ok": True, "record": svc.create(payload)}


# ------------ CSV ------------
@router.get("/{slug}/export")
def export_records(
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    svc: RecordService = Depends(record_service),
):
    columns = TEMPLATES[svc.spec.slug]
    text = export_csv(columns, svc.list(start, end))
    return csv_response(text, dated_filename(svc.spec.label, "csv"))


@router.get("/{slug}/template")
def download_template(spec: CollectionSpec = Depends(collection_spec)):
    text = template_csv(TEMPLATES[spec.slug], SAMPLES.get(spec.slug, []))
    return csv_response(text, f"{spec.label}_テンプレート.csv")


@router.post("/{slug}/import")
async def import_records(request: Request, svc: RecordService = Depends(record_service)):
    raw = await request.body()
    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise CsvImportError("CSVファイルはUTF-8で保存してください")

    parsed = parse_csv(text, TEMPLATES[svc.spec.slug])
    result = svc.import_rows(parsed.numbered())
    errors = parsed.errors + result["errors"]
    if errors:
        logger.info("CSV import for %s finished with %d error(s)", svc.spec.slug, len(errors))
    return {"ok": True, "imported": result["imported"], "errors": errors}


# ------------ single record ------------
@router.get("/{slug}/{record_id}")
def get_record(record_id: str, svc: RecordService = Depends(record_service)):
    return {"ok": True, "record": svc.get(record_id)}


@router.put("/{slug}/{record_id}")
def update_record(record_id: str, payload: Dict[str, Any] = Body(...), svc: RecordService = Depends(record_service)):
    return {"ok": True, "record": svc.update(record_id, payload)}


@router.delete("/{slug}/{record_id}")
def delete_record(record_id: str, svc: RecordService = Depends(record_service)):
    svc.delete(record_id)
    return {"ok": True, "id": record_id}
