# farmrecords/models/farm/application_models.py
# Field activity records: anything done on a field on a given date.

from datetime import datetime
from typing import Any, ClassVar, Dict, List, Optional, Tuple

from pydantic import Field

from farmrecords.models.farm.record_base import RecordModel

FERTILIZING = "施肥"
SEEDING = "播種"
SPRAYING = "防除"

# work type -> work log fields that only apply to it
MATERIAL_FIELDS = {
    FERTILIZING: ("fertilizerId", "fertilizerAmount", "fertilizerUnit", "fertilizerMethod"),
    SEEDING: ("seedId", "seedAmount", "seedMethod"),
    SPRAYING: ("pesticideId", "targetPest", "dilutionRate", "pesticideAmount", "pesticideUnit",
               "pesticideMethod", "weather", "temperature", "windSpeed"),
}


class PesticideUseModel(RecordModel):
    DATE_FIELDS: ClassVar[Tuple[str, ...]] = ("date",)

    date: datetime
    pesticideId: Optional[str] = None
    pesticideName: str = ""
    fieldId: Optional[str] = None
    fieldName: str = ""
    targetPest: Optional[str] = None
    dilutionRate: Optional[float] = None
    amount: Optional[float] = Field(None, ge=0)
    unit: str = "L"
    method: Optional[str] = None
    weather: Optional[str] = None
    temperature: Optional[float] = None
    windSpeed: Optional[float] = None
    appliedBy: Optional[str] = None
    appliedByName: Optional[str] = None
    notes: Optional[str] = None
    workLogId: Optional[str] = None


class FertilizerUseModel(RecordModel):
    DATE_FIELDS: ClassVar[Tuple[str, ...]] = ("date",)

    date: datetime
    fertilizerId: Optional[str] = None
    fertilizerName: str = ""
    fieldId: Optional[str] = None
    fieldName: str = ""
    amount: Optional[float] = Field(None, ge=0)
    unit: str = "kg"
    method: Optional[str] = None
    nitrogen: float = 0
    phosphorus: float = 0
    potassium: float = 0
    appliedBy: Optional[str] = None
    appliedByName: Optional[str] = None
    notes: Optional[str] = None
    workLogId: Optional[str] = None


class SeedUseModel(RecordModel):
    DATE_FIELDS: ClassVar[Tuple[str, ...]] = ("date",)

    date: datetime
    seedId: Optional[str] = None
    seedName: str = ""
    fieldId: Optional[str] = None
    fieldName: str = ""
    amount: Optional[float] = Field(None, ge=0)
    method: Optional[str] = None
    plantedBy: Optional[str] = None
    plantedByName: Optional[str] = None
    notes: Optional[str] = None
    workLogId: Optional[str] = None


class WorkLogModel(RecordModel):
    DATE_FIELDS: ClassVar[Tuple[str, ...]] = ("date",)
    LIST_FIELDS: ClassVar[Tuple[str, ...]] = ("workers", "workerNames")

    date: datetime
    fieldId: Optional[str] = None
    fieldName: str = ""
    workType: str = Field(..., min_length=1)
    workHours: float = Field(0, ge=0)
    harvestAmount: float = Field(0, ge=0)
    wasteAmount: float = Field(0, ge=0)
    workers: List[str] = Field(default_factory=list)
    workerNames: List[str] = Field(default_factory=list)
    details: Optional[str] = None
    # 施肥
    fertilizerId: Optional[str] = None
    fertilizerAmount: Optional[float] = Field(None, ge=0)
    fertilizerUnit: Optional[str] = None
    fertilizerMethod: Optional[str] = None
    # 播種
    seedId: Optional[str] = None
    seedAmount: Optional[float] = Field(None, ge=0)
    seedMethod: Optional[str] = None
    # 防除
    pesticideId: Optional[str] = None
    targetPest: Optional[str] = None
    dilutionRate: Optional[float] = None
    pesticideAmount: Optional[float] = Field(None, ge=0)
    pesticideUnit: Optional[str] = None
    pesticideMethod: Optional[str] = None
    weather: Optional[str] = None
    temperature: Optional[float] = None
    windSpeed: Optional[float] = None

    def to_document(self) -> Dict[str, Any]:
        """Material fields are kept only for the work type they belong to."""
        doc = self.model_dump()
        for work_type, fields in MATERIAL_FIELDS.items():
            if self.workType != work_type:
                doc.update(dict.fromkeys(fields))
        return doc


class FieldInspectionModel(RecordModel):
    DATE_FIELDS: ClassVar[Tuple[str, ...]] = ("date",)

    date: datetime
    fieldId: Optional[str] = None
    fieldName: str = ""
    soilPH: Optional[float] = Field(None, ge=0, le=14)
    waterQuality: Optional[str] = None
    facilityCondition: Optional[str] = None
    pest: Optional[str] = None
    disease: Optional[str] = None
    weed: Optional[str] = None
    notes: Optional[str] = None
