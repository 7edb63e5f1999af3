# farmrecords/services/records/collections.py
from dataclasses import dataclass
from typing import Dict, Optional, Type

from farmrecords.models.farm.application_models import (
    FertilizerUseModel,
    FieldInspectionModel,
    PesticideUseModel,
    SeedUseModel,
    WorkLogModel,
)
from farmrecords.models.farm.harvest_models import HarvestModel
from farmrecords.models.farm.master_models import (
    FertilizerModel,
    FieldModel,
    GroupModel,
    PesticideModel,
    SeedModel,
    TrainingModel,
    VisitorModel,
    WorkerModel,
)
from farmrecords.models.farm.record_base import RecordModel
from farmrecords.models.farm.shipment_models import ShipmentModel


@dataclass(frozen=True)
class CollectionSpec:
    slug: str                     # API path segment, also the list view path
    name: str                     # Mongo collection
    model: Type[RecordModel]
    label: str                    # human readable, used in file names
    date_field: Optional[str] = None
    owner_field: str = "userId"

    @property
    def list_path(self) -> str:
        return f"/{self.slug}"


COLLECTIONS: Dict[str, CollectionSpec] = {
    c.slug: c
    for c in (
        CollectionSpec("fields", "fields", FieldModel, "圃場"),
        CollectionSpec("field-inspections", "fieldInspections", FieldInspectionModel, "圃場点検", "date"),
        CollectionSpec("seeds", "seeds", SeedModel, "種子・苗", "purchaseDate"),
        CollectionSpec("seed-uses", "seedUses", SeedUseModel, "播種・定植記録", "date"),
        CollectionSpec("fertilizers", "fertilizers", FertilizerModel, "肥料", "purchaseDate"),
        CollectionSpec("fertilizer-uses", "fertilizerUses", FertilizerUseModel, "肥料使用記録", "date"),
        CollectionSpec("pesticides", "pesticides", PesticideModel, "農薬", "purchaseDate"),
        CollectionSpec("pesticide-uses", "pesticideUses", PesticideUseModel, "農薬使用記録", "date"),
        CollectionSpec("harvests", "harvests", HarvestModel, "収穫記録", "harvestDate"),
        CollectionSpec("shipments", "shipments", ShipmentModel, "出荷記録", "shipmentDate"),
        CollectionSpec("work-logs", "workLogs", WorkLogModel, "作業記録", "date"),
        CollectionSpec("trainings", "trainings", TrainingModel, "教育・訓練記録", "trainingDate"),
        CollectionSpec("visitors", "visitors", VisitorModel, "訪問者記録", "visitDate"),
        CollectionSpec("workers", "workers", WorkerModel, "作業者", "hireDate", owner_field="organizationId"),
        CollectionSpec("groups", "groups", GroupModel, "グループ", owner_field="organizationId"),
    )
}


def get_collection_spec(slug: str) -> CollectionSpec:
    try:
        return COLLECTIONS[slug]
    except KeyError:
        raise KeyError(f"Unknown collection '{slug}'")


def spec_by_name(name: str) -> CollectionSpec:
    for spec in COLLECTIONS.values():
        if spec.name == name:
            return spec
    raise KeyError(f"Unknown collection '{name}'")
