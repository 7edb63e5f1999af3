# farmrecords/services/io/excel_service.py
import logging
from io import BytesIO
from typing import Any, Dict, Iterable, Sequence

from openpyxl import Workbook
from openpyxl.styles import Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from farmrecords.services.io.csv_service import (
    FERTILIZER_REPORT_COLUMNS,
    HARVEST_SHEET_COLUMNS,
    PESTICIDE_REPORT_COLUMNS,
    SHIPMENT_SHEET_COLUMNS,
    TRAINING_REPORT_COLUMNS,
    CsvColumn,
    format_value,
)

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

HEADER_FILL = PatternFill(start_color="FFE6F3FF", end_color="FFE6F3FF", fill_type="solid")
HEADER_FONT = Font(bold=True)
_thin = Side(style="thin")
THIN_BORDER = Border(top=_thin, left=_thin, bottom=_thin, right=_thin)

# report type -> (sheet title, columns)
REPORT_SHEETS = {
    "pesticide-usage": ("農薬使用記録", PESTICIDE_REPORT_COLUMNS),
    "fertilizer-usage": ("肥料使用記録", FERTILIZER_REPORT_COLUMNS),
    "trainings": ("教育・訓練記録", TRAINING_REPORT_COLUMNS),
}


def _cell_value(column: CsvColumn, value: Any) -> Any:
    if column.type == "date" or isinstance(value, (list, tuple, bool)) or value is None:
        return format_value(value)
    return value


def fill_sheet(ws: Worksheet, columns: Sequence[CsvColumn], rows: Iterable[Dict[str, Any]]) -> None:
    ws.append([c.label for c in columns])
    for row in rows:
        ws.append([_cell_value(c, row.get(c.key)) for c in columns])

    for idx, c in enumerate(columns, start=1):
        ws.column_dimensions[get_column_letter(idx)].width = c.width
    style_sheet(ws)


def style_sheet(ws: Worksheet) -> None:
    """Bold, shaded header row; thin borders on every cell."""
    for cell in ws[1]:
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.border = THIN_BORDER
    for row in ws.iter_rows(min_row=2):
        for cell in row:
            cell.border = THIN_BORDER


def _to_bytes(wb: Workbook) -> bytes:
    output = BytesIO()
    wb.save(output)
    return output.getvalue()


def build_report_workbook(report: str, rows: Sequence[Dict[str, Any]]) -> bytes:
    try:
        title, columns = REPORT_SHEETS[report]
    except KeyError:
        raise ValueError(f"未対応のレポートタイプです: {report}")

    wb = Workbook()
    ws = wb.active
    ws.title = title
    fill_sheet(ws, columns, rows)
    logger.info("Built %s workbook with %d row(s)", report, len(rows))
    return _to_bytes(wb)


def build_traceability_workbook(data: Dict[str, Sequence[Dict[str, Any]]]) -> bytes:
    """Two sheets: 収穫記録 and 出荷記録."""
    wb = Workbook()
    harvest_ws = wb.active
    harvest_ws.title = "収穫記録"
    fill_sheet(harvest_ws, HARVEST_SHEET_COLUMNS, data.get("harvests", []))

    shipment_ws = wb.create_sheet("出荷記録")
    fill_sheet(shipment_ws, SHIPMENT_SHEET_COLUMNS, data.get("shipments", []))
    return _to_bytes(wb)
