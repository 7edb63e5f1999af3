# farmrecords/models/farm/record_base.py
import re
from typing import Any, ClassVar, Dict, Tuple

from pydantic import BaseModel, ConfigDict, model_validator

from farmrecords.mongo import to_datetime

_LIST_SPLIT = re.compile(r"[,、]")


class RecordModel(BaseModel):
    """
    Base for every form payload. DATE_FIELDS are stored as naive local
    datetimes; LIST_FIELDS also accept a comma separated string (CSV import).
    """

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    DATE_FIELDS: ClassVar[Tuple[str, ...]] = ()
    LIST_FIELDS: ClassVar[Tuple[str, ...]] = ()

    @model_validator(mode="before")
    @classmethod
    def _coerce_inputs(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for f in cls.DATE_FIELDS:
            raw = data.get(f)
            if raw in (None, ""):
                data[f] = None
                continue
            dt = to_datetime(raw)
            if dt is None:
                raise ValueError(f"{f}: invalid date '{raw}'")
            data[f] = dt
        for f in cls.LIST_FIELDS:
            raw = data.get(f)
            if raw is None or raw == "":
                data[f] = []
            elif isinstance(raw, str):
                data[f] = [p.strip() for p in _LIST_SPLIT.split(raw) if p.strip()]
        return data

    def to_document(self) -> Dict[str, Any]:
        """Mutable fields as stored; owner and timestamps are added by the service."""
        return self.model_dump()
