# farmrecords/fastapi/responses.py
# File download responses shared by the record, report and traceability routers.

from datetime import date
from urllib.parse import quote

from fastapi.responses import Response

from farmrecords.services.io.excel_service import XLSX_MEDIA_TYPE


def _disposition(filename: str) -> str:
    return f"attachment; filename*=UTF-8''{quote(filename)}"


def dated_filename(label: str, ext: str) -> str:
    return f"{label}_{date.today().strftime('%Y-%m-%d')}.{ext}"


def csv_response(text: str, filename: str) -> Response:
    return Response(
        content=text.encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": _disposition(filename)},
    )


def xlsx_response(data: bytes, filename: str) -> Response:
    return Response(
        content=data,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": _disposition(filename)},
    )
