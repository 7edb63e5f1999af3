# farmrecords/models/farm/harvest_models.py
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, ClassVar, Dict, Optional, Tuple

from pydantic import Field

from farmrecords.models.farm.record_base import RecordModel


def round1(value: float) -> float:
    """Half-up rounding to one decimal place."""
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def calculate_total_amount(quantity: float, disposal_amount: float) -> float:
    return float(quantity or 0) + float(disposal_amount or 0)


def calculate_disposal_rate(quantity: float, disposal_amount: float) -> float:
    """disposal / (shipped quantity + disposal) * 100, 0 when nothing was harvested."""
    total = calculate_total_amount(quantity, disposal_amount)
    if total <= 0:
        return 0.0
    return round1(float(disposal_amount or 0) / total * 100.0)


class HarvestModel(RecordModel):
    DATE_FIELDS: ClassVar[Tuple[str, ...]] = ("harvestDate",)

    fieldId: Optional[str] = None
    fieldName: str = ""
    cropName: str = Field(..., min_length=1)
    harvestDate: datetime
    quantity: float = Field(..., ge=0)
    unit: str = "kg"
    quality: str = "良"
    qualityGrade: Optional[str] = None
    disposalAmount: float = Field(0, ge=0)
    disposalReason: Optional[str] = None
    lotNumber: Optional[str] = None
    notes: Optional[str] = None

    @property
    def disposalRate(self) -> float:
        return calculate_disposal_rate(self.quantity, self.disposalAmount)

    @property
    def totalAmount(self) -> float:
        return calculate_total_amount(self.quantity, self.disposalAmount)

    def to_document(self) -> Dict[str, Any]:
        doc = self.model_dump()
        doc["disposalRate"] = self.disposalRate
        doc["totalAmount"] = self.totalAmount
        return doc
