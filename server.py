# server.py
# GAP farm records API: uvicorn server:app
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from pymongo.errors import PyMongoError

from farmrecords.app_config import get_settings
from farmrecords.auth import auth_identity
from farmrecords.errors import CsvImportError, DateRangeError, RecordNotFoundError
from farmrecords.log_utils import configure_logging
from farmrecords.services.records.record_service import format_validation_error

settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger("farmrecords.server")

app = FastAPI(title="GAP Farm Records API", version="1.0.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- error handlers ---
@app.exception_handler(RecordNotFoundError)
async def _not_found(request: Request, exc: RecordNotFoundError):
    return JSONResponse(
        status_code=404,
        content={"ok": False, "err": "記録が見つかりません", "redirect": exc.redirect},
    )


@app.exception_handler(PyMongoError)
async def _store_error(request: Request, exc: PyMongoError):
    logger.error("Store error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=502, content={"ok": False, "err": "データの取得中にエラーが発生しました"})


@app.exception_handler(CsvImportError)
@app.exception_handler(DateRangeError)
async def _bad_request(request: Request, exc: Exception):
    return JSONResponse(status_code=400, content={"ok": False, "err": str(exc)})


@app.exception_handler(ValidationError)
async def _invalid_record(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=422,
        content={"ok": False, "err": "入力値が不正です", "detail": format_validation_error(exc)},
    )


# --- include routers ---
from farmrecords.fastapi.auth_api import router as auth_router
from farmrecords.fastapi.records_api import router as records_router
from farmrecords.fastapi.reports_api import router as reports_router
from farmrecords.fastapi.traceability_api import router as traceability_router

app.include_router(auth_router)
app.include_router(records_router)
app.include_router(reports_router)
app.include_router(traceability_router)


# --- diagnostics ---
@app.get("/_health")
def _health():
    return {"ok": True, "service": "gap-farm-records", "ts": int(datetime.now(timezone.utc).timestamp())}


@app.get("/_whoami")
def _whoami(identity: Dict[str, Any] = Depends(auth_identity)):
    return {"ok": True, "identity": identity}
