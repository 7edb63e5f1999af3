# farmrecords/models/farm/master_models.py
# Reference data: fields, inputs, people. No behaviour beyond validation.

from datetime import datetime
from typing import ClassVar, List, Literal, Optional, Tuple

from pydantic import Field

from farmrecords.models.farm.record_base import RecordModel


# -----------------------------
# Fields
# -----------------------------
class FieldModel(RecordModel):
    name: str = Field(..., min_length=1)
    location: Optional[str] = None
    area: Optional[float] = Field(None, ge=0)
    soilType: Optional[str] = None
    description: Optional[str] = None


# -----------------------------
# Inputs (seeds, fertilizers, pesticides)
# -----------------------------
class SeedModel(RecordModel):
    DATE_FIELDS: ClassVar[Tuple[str, ...]] = ("purchaseDate",)

    name: str = Field(..., min_length=1)
    variety: Optional[str] = None
    supplier: Optional[str] = None
    lotNumber: Optional[str] = None
    purchaseDate: Optional[datetime] = None
    disinfectionMethod: Optional[str] = None
    notes: Optional[str] = None


class FertilizerModel(RecordModel):
    DATE_FIELDS: ClassVar[Tuple[str, ...]] = ("purchaseDate",)

    name: str = Field(..., min_length=1)
    manufacturer: Optional[str] = None
    type: Optional[str] = None
    nitrogenContent: Optional[float] = Field(None, ge=0)
    phosphorusContent: Optional[float] = Field(None, ge=0)
    potassiumContent: Optional[float] = Field(None, ge=0)
    lotNumber: Optional[str] = None
    purchaseDate: Optional[datetime] = None
    supplier: Optional[str] = None
    notes: Optional[str] = None


class PesticideModel(RecordModel):
    DATE_FIELDS: ClassVar[Tuple[str, ...]] = ("purchaseDate", "expiryDate")

    name: str = Field(..., min_length=1)
    manufacturer: Optional[str] = None
    type: Optional[str] = None
    activeIngredient: Optional[str] = None
    concentration: Optional[float] = Field(None, ge=0)
    formulation: Optional[str] = None
    registrationNumber: Optional[str] = None
    lotNumber: Optional[str] = None
    purchaseDate: Optional[datetime] = None
    expiryDate: Optional[datetime] = None
    supplier: Optional[str] = None
    notes: Optional[str] = None


# -----------------------------
# People (owned by organizationId)
# -----------------------------
class WorkerModel(RecordModel):
    DATE_FIELDS: ClassVar[Tuple[str, ...]] = ("hireDate",)

    name: str = Field(..., min_length=1)
    role: str = Field(..., min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    department: Optional[str] = None
    hireDate: Optional[datetime] = None
    status: str = "在籍"
    emergencyContact: Optional[str] = None
    emergencyPhone: Optional[str] = None
    certifications: Optional[str] = None
    skills: Optional[str] = None
    notes: Optional[str] = None


class GroupModel(RecordModel):
    LIST_FIELDS: ClassVar[Tuple[str, ...]] = ("members",)

    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    members: List[str] = Field(default_factory=list)

    def to_document(self):
        doc = self.model_dump()
        doc["memberCount"] = len(self.members)
        return doc


# -----------------------------
# GAP compliance records
# -----------------------------
class TrainingModel(RecordModel):
    DATE_FIELDS: ClassVar[Tuple[str, ...]] = ("trainingDate", "followUpDate")
    LIST_FIELDS: ClassVar[Tuple[str, ...]] = ("participants", "participantNames")

    trainingDate: datetime
    title: str = Field(..., min_length=1)
    category: Optional[str] = None
    instructor: Optional[str] = None
    instructorType: Literal["internal", "external"] = "internal"
    participants: List[str] = Field(default_factory=list)
    participantNames: List[str] = Field(default_factory=list)
    duration: Optional[float] = Field(None, ge=0)
    location: Optional[str] = None
    description: Optional[str] = None
    objectives: Optional[str] = None
    materials: Optional[str] = None
    evaluationMethod: Optional[str] = None
    status: str = "予定"
    certificateIssued: bool = False
    followUpRequired: bool = False
    followUpDate: Optional[datetime] = None
    cost: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None

    def to_document(self):
        doc = self.model_dump()
        doc["participantCount"] = len(self.participants) or len(self.participantNames)
        return doc


class VisitorModel(RecordModel):
    DATE_FIELDS: ClassVar[Tuple[str, ...]] = ("visitDate",)

    visitDate: datetime
    visitorName: str = Field(..., min_length=1)
    organization: Optional[str] = None
    position: Optional[str] = None
    contactInfo: Optional[str] = None
    purpose: Optional[str] = None
    visitAreas: Optional[str] = None
    accompaniedBy: Optional[str] = None
    entryTime: Optional[str] = None
    exitTime: Optional[str] = None
    hygieneCompliance: bool = False
    safetyBriefing: bool = False
    notes: Optional[str] = None
