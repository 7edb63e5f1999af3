# farmrecords/services/records/record_service.py
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import ValidationError
from pymongo.database import Database
from pymongo.errors import PyMongoError

from farmrecords.errors import DateRangeError, RecordNotFoundError
from farmrecords.mongo import day_bounds, local_tz, serialize_doc
from farmrecords.services.records.collections import CollectionSpec

logger = logging.getLogger(__name__)

TIMESTAMP_FIELDS = ("createdAt", "updatedAt")


def local_now() -> datetime:
    return datetime.now(local_tz()).replace(tzinfo=None, microsecond=0)


def format_validation_error(e: ValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(x) for x in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts)


class RecordService:
    """
    Owner-scoped CRUD over one collection. Every read and write is filtered
    by the collection's owner field; writes are single-document and
    last-write-wins.
    """

    def __init__(self, db: Database, spec: CollectionSpec, user_id: str):
        self.db = db
        self.spec = spec
        self.user_id = user_id

    # ---------------------------------------------------------
    # helpers
    # ---------------------------------------------------------
    @property
    def col(self):
        return self.db[self.spec.name]

    @property
    def date_fields(self) -> Tuple[str, ...]:
        return tuple(self.spec.model.DATE_FIELDS) + TIMESTAMP_FIELDS

    def _scope(self, **extra) -> Dict[str, Any]:
        return {self.spec.owner_field: self.user_id, **extra}

    def _oid(self, record_id: str) -> ObjectId:
        try:
            return ObjectId(record_id)
        except (InvalidId, TypeError):
            raise RecordNotFoundError(self.spec.slug, record_id, self.spec.list_path)

    def _context(self, operation: str, **extra) -> Dict[str, Any]:
        return {"context": {"operation": operation, "collection": self.spec.name,
                            "userId": self.user_id, **extra}}

    # ---------------------------------------------------------
    # reads
    # ---------------------------------------------------------
    def list(self, start: Optional[date] = None, end: Optional[date] = None) -> List[Dict[str, Any]]:
        q = self._scope()
        date_field = self.spec.date_field
        if date_field and (start or end):
            if start and end and start > end:
                raise DateRangeError(f"start {start} is after end {end}")
            lo, hi = day_bounds(start or end, end or start)
            rng: Dict[str, Any] = {}
            if start:
                rng["$gte"] = lo
            if end:
                rng["$lte"] = hi
            q[date_field] = rng

        sort_field = date_field or "createdAt"
        try:
            cur = self.col.find(q).sort([(sort_field, -1), ("_id", -1)])
            return [serialize_doc(d, self.date_fields) for d in cur]
        except PyMongoError:
            logger.error("Failed to list records", extra=self._context("list"), exc_info=True)
            raise

    def get(self, record_id: str) -> Dict[str, Any]:
        doc = self.col.find_one(self._scope(_id=self._oid(record_id)))
        if not doc:
            raise RecordNotFoundError(self.spec.slug, record_id, self.spec.list_path)
        return serialize_doc(doc, self.date_fields)

    # ---------------------------------------------------------
    # writes
    # ---------------------------------------------------------
    def create(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        model = self.spec.model(**(payload or {}))
        now = local_now()
        doc = {
            **model.to_document(),
            self.spec.owner_field: self.user_id,
            "createdAt": now,
            "updatedAt": now,
        }
        try:
            res = self.col.insert_one(doc)
        except PyMongoError:
            logger.error("Failed to create record", extra=self._context("create"), exc_info=True)
            raise
        logger.info("Created %s/%s", self.spec.name, res.inserted_id)
        doc["_id"] = res.inserted_id
        return serialize_doc(doc, self.date_fields)

    def update(self, record_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Full overwrite of the mutable fields; owner and createdAt are kept."""
        oid = self._oid(record_id)
        model = self.spec.model(**(payload or {}))
        changes = {**model.to_document(), "updatedAt": local_now()}
        try:
            res = self.col.update_one(self._scope(_id=oid), {"$set": changes})
        except PyMongoError:
            logger.error("Failed to update record", extra=self._context("update", id=record_id), exc_info=True)
            raise
        if res.matched_count == 0:
            raise RecordNotFoundError(self.spec.slug, record_id, self.spec.list_path)
        return self.get(record_id)

    def delete(self, record_id: str) -> None:
        oid = self._oid(record_id)
        try:
            res = self.col.delete_one(self._scope(_id=oid))
        except PyMongoError:
            logger.error("Failed to delete record", extra=self._context("delete", id=record_id), exc_info=True)
            raise
        if res.deleted_count == 0:
            raise RecordNotFoundError(self.spec.slug, record_id, self.spec.list_path)
        logger.info("Deleted %s/%s", self.spec.name, record_id)

    def import_rows(self, rows: Iterable[Tuple[int, Dict[str, Any]]]) -> Dict[str, Any]:
        """
        Validate (line number, values) pairs with the collection model.
        Invalid rows are reported per line; valid rows are still inserted.
        """
        docs: List[Dict[str, Any]] = []
        errors: List[str] = []
        now = local_now()
        for line, values in rows:
            # empty cells fall back to the model defaults
            values = {k: v for k, v in values.items() if v != ""}
            try:
                model = self.spec.model(**values)
            except ValidationError as e:
                errors.append(f"行{line}: 入力値が不正です ({format_validation_error(e)})")
                continue
            docs.append({
                **model.to_document(),
                self.spec.owner_field: self.user_id,
                "createdAt": now,
                "updatedAt": now,
            })

        if docs:
            try:
                self.col.insert_many(docs)
            except PyMongoError:
                logger.error("CSV import failed", extra=self._context("import", rows=len(docs)), exc_info=True)
                raise
        logger.info("Imported %d %s row(s), %d error(s)", len(docs), self.spec.name, len(errors))
        return {"imported": len(docs), "errors": errors}
