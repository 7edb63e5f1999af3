# farmrecords/models/traceability/traceability_models.py
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

EventType = Literal["pesticide", "fertilizer", "workLog", "harvest", "shipment"]

# same-date ordering: field work first, then the harvest, then what left the farm
EVENT_PRIORITY: Dict[str, int] = {
    "pesticide": 0,
    "fertilizer": 1,
    "workLog": 2,
    "harvest": 3,
    "shipment": 4,
}


@dataclass
class TimelineEvent:
    type: str
    date: Optional[datetime]
    record: Dict[str, Any] = field(default_factory=dict)


@dataclass
class LotChain:
    lotNumber: str
    harvest: Dict[str, Any]
    shipments: List[Dict[str, Any]] = field(default_factory=list)
    pesticides: List[Dict[str, Any]] = field(default_factory=list)
    fertilizers: List[Dict[str, Any]] = field(default_factory=list)
    workLogs: List[Dict[str, Any]] = field(default_factory=list)
    timeline: List[TimelineEvent] = field(default_factory=list)

    @property
    def shipped(self) -> bool:
        return bool(self.shipments)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["shipped"] = self.shipped
        return d
