# farmrecords/services/records/work_log_service.py
# Work logs of type 施肥 / 播種 / 防除 carry a linked fertilizer, seed or
# pesticide use record (workLogId -> work log id) that is replaced on every save.

import logging
from typing import Any, Dict, Optional, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from pymongo.database import Database
from pymongo.errors import PyMongoError

from farmrecords.models.farm.application_models import (
    FERTILIZING,
    SEEDING,
    SPRAYING,
    FertilizerUseModel,
    PesticideUseModel,
    SeedUseModel,
)
from farmrecords.services.records.collections import CollectionSpec
from farmrecords.services.records.record_service import RecordService, local_now

logger = logging.getLogger(__name__)

Record = Dict[str, Any]

LINKED_COLLECTIONS = ("fertilizerUses", "seedUses", "pesticideUses")


class WorkLogService(RecordService):

    def __init__(self, db: Database, spec: CollectionSpec, user_id: str, actor_name: Optional[str] = None):
        super().__init__(db, spec, user_id)
        self.actor_name = actor_name or ""

    # ---------------------------------------------------------
    # lifecycle
    # ---------------------------------------------------------
    def create(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        work_log = super().create(payload)
        self._insert_linked(work_log)
        return work_log

    def update(self, record_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        work_log = super().update(record_id, payload)
        self._delete_linked(record_id)
        self._insert_linked(work_log)
        return work_log

    def delete(self, record_id: str) -> None:
        super().delete(record_id)
        self._delete_linked(record_id)

    # ---------------------------------------------------------
    # master lookups
    # ---------------------------------------------------------
    def _master(self, collection: str, record_id: Optional[str]) -> Record:
        if not record_id:
            return {}
        try:
            oid = ObjectId(record_id)
        except (InvalidId, TypeError):
            return {}
        return self.db[collection].find_one({"_id": oid, "userId": self.user_id}) or {}

    def _field_name(self, work_log: Record) -> str:
        return work_log.get("fieldName") or self._master("fields", work_log.get("fieldId")).get("name", "")

    # ---------------------------------------------------------
    # linked records
    # ---------------------------------------------------------
    def linked_record(self, work_log: Record) -> Optional[Tuple[str, Record]]:
        """(collection, document) for the work log's material use, or None."""
        work_type = work_log.get("workType")
        wid = work_log["id"]
        common = {
            "date": work_log.get("date"),
            "fieldId": work_log.get("fieldId"),
            "fieldName": self._field_name(work_log),
            "notes": f"作業日誌より自動作成 (作業ID: {wid})",
            "workLogId": wid,
        }

        if work_type == FERTILIZING and work_log.get("fertilizerId"):
            fertilizer = self._master("fertilizers", work_log["fertilizerId"])
            values = {
                **common,
                "fertilizerId": work_log["fertilizerId"],
                "fertilizerName": fertilizer.get("name", ""),
                "amount": work_log.get("fertilizerAmount"),
                "unit": work_log.get("fertilizerUnit"),
                "method": work_log.get("fertilizerMethod"),
                "nitrogen": fertilizer.get("nitrogenContent") or 0,
                "phosphorus": fertilizer.get("phosphorusContent") or 0,
                "potassium": fertilizer.get("potassiumContent") or 0,
                "appliedBy": self.user_id,
                "appliedByName": self.actor_name,
            }
            return "fertilizerUses", self._document(FertilizerUseModel, values)

        if work_type == SEEDING and work_log.get("seedId"):
            seed = self._master("seeds", work_log["seedId"])
            seed_name = seed.get("name", "")
            if seed_name and seed.get("variety"):
                seed_name = f"{seed_name} ({seed['variety']})"
            values = {
                **common,
                "seedId": work_log["seedId"],
                "seedName": seed_name,
                "amount": work_log.get("seedAmount"),
                "method": work_log.get("seedMethod"),
                "plantedBy": self.user_id,
                "plantedByName": self.actor_name,
            }
            return "seedUses", self._document(SeedUseModel, values)

        if work_type == SPRAYING and work_log.get("pesticideId"):
            pesticide = self._master("pesticides", work_log["pesticideId"])
            values = {
                **common,
                "pesticideId": work_log["pesticideId"],
                "pesticideName": pesticide.get("name", ""),
                "targetPest": work_log.get("targetPest"),
                "dilutionRate": work_log.get("dilutionRate"),
                "amount": work_log.get("pesticideAmount"),
                "unit": work_log.get("pesticideUnit"),
                "method": work_log.get("pesticideMethod"),
                "weather": work_log.get("weather"),
                "temperature": work_log.get("temperature"),
                "windSpeed": work_log.get("windSpeed"),
                "appliedBy": self.user_id,
                "appliedByName": self.actor_name,
            }
            return "pesticideUses", self._document(PesticideUseModel, values)

        return None

    def _document(self, model, values: Record) -> Record:
        now = local_now()
        doc = model(**{k: v for k, v in values.items() if v is not None}).to_document()
        return {**doc, "userId": self.user_id, "createdAt": now, "updatedAt": now}

    def _insert_linked(self, work_log: Record) -> None:
        linked = self.linked_record(work_log)
        if linked is None:
            return
        collection, doc = linked
        try:
            self.db[collection].insert_one(doc)
        except PyMongoError:
            logger.error("Failed to create linked record",
                         extra=self._context("link", linkedCollection=collection, workLogId=work_log["id"]),
                         exc_info=True)
            raise
        logger.info("Linked %s record to work log %s", collection, work_log["id"])

    def _delete_linked(self, record_id: str) -> int:
        removed = 0
        try:
            for collection in LINKED_COLLECTIONS:
                res = self.db[collection].delete_many({"workLogId": record_id, "userId": self.user_id})
                removed += res.deleted_count
        except PyMongoError:
            logger.error("Failed to delete linked records",
                         extra=self._context("unlink", workLogId=record_id), exc_info=True)
            raise
        return removed

