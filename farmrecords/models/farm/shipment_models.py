# farmrecords/models/farm/shipment_models.py
from datetime import datetime
from typing import ClassVar, Literal, Optional, Tuple

from pydantic import Field

from farmrecords.models.farm.record_base import RecordModel

SHIPMENT_STATUSES = ("準備中", "発送中", "完了", "キャンセル")

ShipmentStatus = Literal["準備中", "発送中", "完了", "キャンセル"]


class ShipmentModel(RecordModel):
    DATE_FIELDS: ClassVar[Tuple[str, ...]] = ("shipmentDate",)

    destination: str = Field(..., min_length=1)
    shipmentDate: datetime
    harvestId: Optional[str] = None
    cropName: str = Field(..., min_length=1)
    fieldId: Optional[str] = None
    fieldName: Optional[str] = None
    quantity: float = Field(..., gt=0)
    unit: str = "kg"
    shippingMethod: Optional[str] = None
    status: ShipmentStatus = "準備中"
    lotNumber: Optional[str] = None
    notes: Optional[str] = None
