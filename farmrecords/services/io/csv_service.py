# farmrecords/services/io/csv_service.py
# CSV dialect shared by every list export/import: UTF-8 with BOM, comma
# delimited, minimal quoting with doubled quotes.

import csv
import io
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Sequence, Tuple

from farmrecords.errors import CsvImportError

BOM = "\ufeff"
TRUE_VALUES = ("true", "はい", "○", "1", "適合")

_DATE_IN_TEXT = re.compile(r"(\d{4})[-/](\d{1,2})[-/](\d{1,2})")


@dataclass(frozen=True)
class CsvColumn:
    key: str
    label: str
    required: bool = False
    type: str = "text"        # text | number | date | boolean
    default: str = ""
    width: int = 15           # spreadsheet column width


@dataclass
class ImportResult:
    rows: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    line_numbers: List[int] = field(default_factory=list)

    def numbered(self) -> List[Tuple[int, Dict[str, Any]]]:
        return list(zip(self.line_numbers, self.rows))


def _c(key, label, **kw) -> CsvColumn:
    return CsvColumn(key, label, **kw)


# -----------------------------
# Import / export templates per collection
# -----------------------------
TEMPLATES: Dict[str, List[CsvColumn]] = {
    "fields": [
        _c("name", "圃場名", required=True),
        _c("location", "所在地"),
        _c("area", "面積", type="number"),
        _c("soilType", "土壌タイプ"),
        _c("description", "説明"),
    ],
    "field-inspections": [
        _c("date", "点検日", required=True, type="date"),
        _c("fieldName", "圃場名"),
        _c("soilPH", "土壌pH", type="number"),
        _c("waterQuality", "水質"),
        _c("facilityCondition", "施設状態"),
        _c("pest", "害虫"),
        _c("disease", "病気"),
        _c("weed", "雑草"),
        _c("notes", "備考"),
    ],
    "seeds": [
        _c("name", "品名", required=True),
        _c("variety", "品種"),
        _c("supplier", "購入先"),
        _c("lotNumber", "ロット番号"),
        _c("purchaseDate", "購入日", type="date"),
        _c("disinfectionMethod", "消毒方法"),
        _c("notes", "備考"),
    ],
    "seed-uses": [
        _c("date", "日付", required=True, type="date"),
        _c("seedName", "種子・苗名"),
        _c("fieldName", "圃場名"),
        _c("amount", "量", type="number"),
        _c("method", "方法"),
        _c("plantedByName", "作業者"),
        _c("notes", "備考"),
    ],
    "fertilizers": [
        _c("name", "肥料名", required=True),
        _c("manufacturer", "メーカー"),
        _c("type", "種類"),
        _c("nitrogenContent", "窒素(N)", type="number"),
        _c("phosphorusContent", "リン(P)", type="number"),
        _c("potassiumContent", "カリ(K)", type="number"),
        _c("lotNumber", "ロット番号"),
        _c("purchaseDate", "購入日", type="date"),
        _c("supplier", "購入先"),
        _c("notes", "備考"),
    ],
    "fertilizer-uses": [
        _c("date", "日付", required=True, type="date"),
        _c("fieldName", "圃場名"),
        _c("fertilizerName", "肥料名"),
        _c("amount", "量", type="number"),
        _c("unit", "単位", default="kg"),
        _c("method", "施用方法"),
        _c("nitrogen", "窒素(N)", type="number"),
        _c("phosphorus", "リン(P)", type="number"),
        _c("potassium", "カリ(K)", type="number"),
        _c("appliedByName", "施用者"),
        _c("notes", "備考"),
    ],
    "pesticides": [
        _c("name", "農薬名", required=True),
        _c("manufacturer", "メーカー"),
        _c("type", "種類"),
        _c("activeIngredient", "有効成分"),
        _c("registrationNumber", "登録番号"),
        _c("lotNumber", "ロット番号"),
        _c("purchaseDate", "購入日", type="date"),
        _c("expiryDate", "有効期限", type="date"),
        _c("supplier", "購入先"),
        _c("notes", "備考"),
    ],
    "pesticide-uses": [
        _c("date", "日付", required=True, type="date"),
        _c("fieldName", "圃場名"),
        _c("pesticideName", "農薬名"),
        _c("targetPest", "対象害虫・病気"),
        _c("dilutionRate", "希釈倍率", type="number"),
        _c("amount", "使用量", type="number"),
        _c("unit", "単位", default="L"),
        _c("method", "散布方法"),
        _c("weather", "天候"),
        _c("temperature", "気温", type="number"),
        _c("windSpeed", "風速", type="number"),
        _c("appliedByName", "散布者"),
        _c("notes", "備考"),
    ],
    "harvests": [
        _c("harvestDate", "収穫日", required=True, type="date"),
        _c("fieldName", "圃場名"),
        _c("cropName", "作物名", required=True),
        _c("quantity", "収穫量", required=True, type="number"),
        _c("unit", "単位", default="kg"),
        _c("quality", "品質", default="良"),
        _c("qualityGrade", "品質等級"),
        _c("disposalAmount", "廃棄量", type="number"),
        _c("disposalReason", "廃棄理由"),
        _c("lotNumber", "ロット番号"),
        _c("notes", "備考"),
    ],
    "shipments": [
        _c("shipmentDate", "出荷日", required=True, type="date"),
        _c("destination", "出荷先", required=True),
        _c("cropName", "作物名", required=True),
        _c("quantity", "出荷量", required=True, type="number"),
        _c("unit", "単位", default="kg"),
        _c("shippingMethod", "配送方法"),
        _c("status", "出荷状態", default="準備中"),
        _c("lotNumber", "ロット番号"),
        _c("harvestId", "収穫ID"),
        _c("fieldName", "圃場名"),
        _c("notes", "備考"),
    ],
    "work-logs": [
        _c("date", "日付", required=True, type="date"),
        _c("fieldName", "圃場名"),
        _c("workType", "作業種別", required=True),
        _c("workHours", "作業時間", type="number"),
        _c("harvestAmount", "収穫量", type="number"),
        _c("wasteAmount", "廃棄量", type="number"),
        _c("workerNames", "作業者"),
        _c("details", "作業内容"),
    ],
    "trainings": [
        _c("trainingDate", "実施日", required=True, type="date"),
        _c("title", "タイトル", required=True),
        _c("category", "カテゴリ"),
        _c("instructor", "講師"),
        _c("participantNames", "参加者"),
        _c("duration", "時間", type="number"),
        _c("location", "場所"),
        _c("description", "内容"),
        _c("materials", "教材"),
        _c("status", "状態", default="予定"),
        _c("certificateIssued", "修了証発行", type="boolean"),
        _c("notes", "備考"),
    ],
    "visitors": [
        _c("visitDate", "訪問日", required=True, type="date"),
        _c("visitorName", "訪問者名", required=True),
        _c("organization", "所属"),
        _c("position", "役職"),
        _c("contactInfo", "連絡先"),
        _c("purpose", "訪問目的"),
        _c("visitAreas", "訪問エリア"),
        _c("accompaniedBy", "同行者"),
        _c("entryTime", "入場時刻"),
        _c("exitTime", "退場時刻"),
        _c("hygieneCompliance", "衛生基準適合", type="boolean"),
        _c("safetyBriefing", "安全説明", type="boolean"),
        _c("notes", "備考"),
    ],
    "workers": [
        _c("name", "名前", required=True),
        _c("role", "役職", required=True),
        _c("email", "メールアドレス"),
        _c("phone", "電話番号"),
        _c("department", "部署・担当"),
        _c("hireDate", "入社日", type="date"),
        _c("status", "在籍状態", default="在籍"),
        _c("certifications", "保有資格"),
        _c("skills", "スキル"),
        _c("notes", "備考"),
    ],
    "groups": [
        _c("name", "グループ名", required=True),
        _c("description", "説明"),
        _c("members", "メンバー"),
    ],
}

SAMPLES: Dict[str, List[Dict[str, Any]]] = {
    "workers": [
        {"name": "山田太郎", "role": "正社員", "email": "yamada@example.com", "phone": "090-1234-5678",
         "department": "生産部門", "hireDate": "2024-04-01", "status": "在籍",
         "certifications": "農薬管理指導士", "skills": "トラクター操作、剪定", "notes": ""},
        {"name": "鈴木花子", "role": "研修生", "email": "suzuki@example.com", "phone": "080-9876-5432",
         "department": "", "hireDate": "2025-04-01", "status": "在籍",
         "certifications": "", "skills": "", "notes": "1年目"},
    ],
    "visitors": [
        {"visitDate": "2025-06-01", "visitorName": "佐藤一郎", "organization": "JA○○",
         "purpose": "GAP監査", "hygieneCompliance": "はい", "safetyBriefing": "はい"},
    ],
    "harvests": [
        {"harvestDate": "2025-06-10", "fieldName": "第1圃場", "cropName": "トマト", "quantity": "120",
         "unit": "kg", "quality": "良", "qualityGrade": "A", "disposalAmount": "5"},
    ],
}


# -----------------------------
# Report export columns (CSV and Excel)
# -----------------------------
PESTICIDE_REPORT_COLUMNS = [
    _c("date", "日付", type="date", width=12),
    _c("fieldName", "圃場名"),
    _c("pesticideName", "農薬名", width=20),
    _c("targetPest", "対象害虫・病気"),
    _c("dilutionRate", "希釈倍率", width=12),
    _c("applicationMethod", "散布方法"),
    _c("weather", "天候", width=10),
    _c("temperature", "気温", width=10),
    _c("windSpeed", "風速", width=10),
    _c("applicator", "散布者"),
    _c("notes", "備考", width=30),
]

FERTILIZER_REPORT_COLUMNS = [
    _c("date", "日付", type="date", width=12),
    _c("fieldName", "圃場名"),
    _c("fertilizerName", "肥料名", width=20),
    _c("amount", "量", width=10),
    _c("unit", "単位", width=10),
    _c("method", "施用方法"),
    _c("nitrogen", "窒素(N)", width=10),
    _c("phosphorus", "リン(P)", width=10),
    _c("potassium", "カリ(K)", width=10),
    _c("applicator", "施用者"),
    _c("notes", "備考", width=30),
]

TRAINING_REPORT_COLUMNS = [
    _c("date", "日付", type="date", width=12),
    _c("title", "タイトル", width=25),
    _c("description", "内容", width=30),
    _c("instructor", "講師"),
    _c("participants", "参加者", width=20),
    _c("duration", "時間", width=10),
    _c("materials", "教材", width=20),
    _c("notes", "備考", width=30),
]

VISITOR_REPORT_COLUMNS = [
    _c("date", "訪問日", type="date", width=12),
    _c("name", "訪問者名"),
    _c("organization", "所属", width=20),
    _c("purpose", "訪問目的", width=20),
    _c("notes", "備考", width=30),
]

HARVEST_SHEET_COLUMNS = [
    _c("harvestDate", "日付", type="date", width=12),
    _c("fieldName", "圃場名"),
    _c("cropName", "作物名"),
    _c("quantity", "数量", width=10),
    _c("unit", "単位", width=10),
    _c("qualityGrade", "品質等級", width=12),
    _c("notes", "備考", width=30),
]

SHIPMENT_SHEET_COLUMNS = [
    _c("shipmentDate", "日付", type="date", width=12),
    _c("destination", "出荷先", width=20),
    _c("cropName", "作物名"),
    _c("quantity", "数量", width=10),
    _c("unit", "単位", width=10),
    _c("lotNumber", "ロット番号"),
    _c("harvestId", "収穫ID"),
    _c("status", "ステータス", width=12),
    _c("notes", "備考", width=30),
]

TRACEABILITY_EXPORT_COLUMNS = [
    _c("lotNumber", "ロット番号"),
    _c("harvestDate", "収穫日", type="date"),
    _c("fieldName", "圃場名"),
    _c("cropName", "作物名"),
    _c("quantity", "収穫量"),
    _c("unit", "単位"),
    _c("qualityGrade", "品質等級"),
    _c("shipmentDate", "出荷日", type="date"),
    _c("destination", "出荷先"),
    _c("shipmentQuantity", "出荷量"),
    _c("shipmentStatus", "出荷状態"),
]


# -----------------------------
# Export
# -----------------------------
def format_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "はい" if value else "いいえ"
    if isinstance(value, (datetime, date)):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, (list, tuple)):
        return ", ".join(format_value(v) for v in value)
    return str(value)


def _write(columns: Sequence[CsvColumn], rows: Iterable[Dict[str, Any]]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow([c.label for c in columns])
    for row in rows:
        writer.writerow([format_value(row.get(c.key)) for c in columns])
    return BOM + buf.getvalue()


def export_csv(columns: Sequence[CsvColumn], rows: Iterable[Dict[str, Any]]) -> str:
    """Header row of labels plus one line per record."""
    return _write(columns, rows)


def template_csv(columns: Sequence[CsvColumn], samples: Iterable[Dict[str, Any]] = ()) -> str:
    return _write(columns, samples)


# -----------------------------
# Import
# -----------------------------
def _convert(column: CsvColumn, raw: str) -> Any:
    if column.type == "boolean":
        return raw in TRUE_VALUES
    if column.type == "date" and raw:
        m = _DATE_IN_TEXT.search(raw)
        if m:
            return f"{m.group(1)}-{int(m.group(2)):02d}-{int(m.group(3)):02d}"
    return raw


def parse_csv(text: str, columns: Sequence[CsvColumn]) -> ImportResult:
    """
    Parse an uploaded file against a template.

    Raises CsvImportError when there is no data row or a required column is
    missing from the header. Rows with an empty required value are reported
    as `行N: ...` and skipped; N counts the header as line 1.
    """
    if text.startswith(BOM):
        text = text[len(BOM):]

    records = [r for r in csv.reader(io.StringIO(text)) if any(cell.strip() for cell in r)]
    if len(records) < 2:
        raise CsvImportError("データが見つかりません。ヘッダー行とデータ行が必要です。")

    headers = [h.strip() for h in records[0]]
    mapping: Dict[str, int] = {}
    missing = []
    for col in columns:
        idx = next((i for i, h in enumerate(headers) if h in (col.label, col.key)), None)
        if idx is not None:
            mapping[col.key] = idx
        elif col.required:
            missing.append(col.label)
    if missing:
        raise CsvImportError(f"必須列が見つかりません: {', '.join(missing)}")

    result = ImportResult()
    for i, values in enumerate(records[1:], start=2):
        row: Dict[str, Any] = {}
        empty_required = []
        for col in columns:
            idx = mapping.get(col.key)
            if idx is not None and idx < len(values):
                raw = values[idx].strip()
                row[col.key] = _convert(col, raw)
            else:
                raw = col.default
                row[col.key] = _convert(col, raw) if raw else raw
            if col.required and not raw:
                empty_required.append(col.label)

        if empty_required:
            result.errors.append(f"行{i}: 必須項目が空です ({', '.join(empty_required)})")
            continue
        result.rows.append(row)
        result.line_numbers.append(i)

    return result
