# farmrecords/services/traceability/traceability_services.py
import logging
from collections import defaultdict
from datetime import date, time
from typing import Any, Dict, Iterable, List, Optional, Sequence

from farmrecords.models.traceability.traceability_models import (
    EVENT_PRIORITY,
    LotChain,
    TimelineEvent,
)
from farmrecords.mongo import to_datetime

logger = logging.getLogger(__name__)

Record = Dict[str, Any]

EVENT_DATE_FIELDS = {
    "pesticide": "date",
    "fertilizer": "date",
    "workLog": "date",
    "harvest": "harvestDate",
    "shipment": "shipmentDate",
}


# -----------------------------
# Small helpers
# -----------------------------
def _text(x: Any) -> str:
    return str(x or "").strip()


def _day(value: Any) -> Optional[date]:
    dt = to_datetime(value)
    return dt.date() if dt else None


def lot_identifier(harvest: Record) -> str:
    """Stored lot number, else LOT- + first 8 characters of the record id."""
    lot = _text(harvest.get("lotNumber"))
    if lot:
        return lot
    return f"LOT-{_text(harvest.get('id'))[:8]}"


def match_field(a: Record, b: Record) -> Optional[str]:
    """
    Two-tier field lookup.
      - both records carry the same fieldId -> "id"
      - else both carry the same fieldName  -> "name"
    Differing ids still match by name. Returns None when the records cannot
    be placed on the same field.
    """
    a_id, b_id = _text(a.get("fieldId")), _text(b.get("fieldId"))
    if a_id and a_id == b_id:
        return "id"

    a_name, b_name = _text(a.get("fieldName")), _text(b.get("fieldName"))
    if a_name and b_name and a_name == b_name:
        return "name"
    return None


def is_related_shipment(harvest: Record, lot: str, shipment: Record) -> bool:
    harvest_id = _text(harvest.get("id"))
    if harvest_id and _text(shipment.get("harvestId")) == harvest_id:
        return True

    ship_lot = _text(shipment.get("lotNumber"))
    if ship_lot and ship_lot == lot:
        return True

    crop = _text(harvest.get("cropName"))
    return (
        bool(crop)
        and _text(shipment.get("cropName")) == crop
        and match_field(harvest, shipment) is not None
    )


def occurred_by(record_date: Any, harvest_date: Any) -> bool:
    """True when the record's calendar day is on or before the harvest day.
    Missing or unparseable dates never qualify."""
    r, h = _day(record_date), _day(harvest_date)
    if r is None or h is None:
        return False
    return r <= h


def field_history(harvest: Record, records: Iterable[Record], date_field: str = "date") -> List[Record]:
    """Records on the harvest's field dated up to and including the harvest day."""
    harvest_date = harvest.get("harvestDate")
    return [
        r for r in records
        if match_field(harvest, r) is not None and occurred_by(r.get(date_field), harvest_date)
    ]


def _event_sort_key(ev: TimelineEvent):
    priority = EVENT_PRIORITY.get(ev.type, len(EVENT_PRIORITY))
    if ev.date is None:
        return (1, date.min, priority, time.min)
    return (0, ev.date.date(), priority, ev.date.time())


def build_timeline(chain: LotChain) -> List[TimelineEvent]:
    """
    Every related record plus the harvest, ascending by calendar day.
    Same-day events follow EVENT_PRIORITY, then time of day, then the order
    they were collected in. Undated events go last.
    """
    groups = (
        ("pesticide", chain.pesticides),
        ("fertilizer", chain.fertilizers),
        ("workLog", chain.workLogs),
        ("harvest", [chain.harvest]),
        ("shipment", chain.shipments),
    )
    events: List[TimelineEvent] = []
    for etype, records in groups:
        date_field = EVENT_DATE_FIELDS[etype]
        for r in records:
            events.append(TimelineEvent(type=etype, date=to_datetime(r.get(date_field)), record=r))
    return sorted(events, key=_event_sort_key)


class TraceabilityService:
    """
    Build lot chains from already fetched records:
      harvest -> shipments (harvestId | lotNumber | crop + field)
      harvest <- pesticide / fertilizer / work-log history on the same field
    """

    # -------------------------
    # Chain construction
    # -------------------------
    @staticmethod
    def build_chains(
        harvests: Sequence[Record],
        shipments: Sequence[Record],
        pesticides: Sequence[Record] = (),
        fertilizers: Sequence[Record] = (),
        work_logs: Sequence[Record] = (),
    ) -> Dict[str, LotChain]:
        chains: Dict[str, LotChain] = {}

        for harvest in harvests:
            lot = lot_identifier(harvest)
            chain = LotChain(
                lotNumber=lot,
                harvest=harvest,
                shipments=[s for s in shipments if is_related_shipment(harvest, lot, s)],
                pesticides=field_history(harvest, pesticides),
                fertilizers=field_history(harvest, fertilizers),
                workLogs=field_history(harvest, work_logs),
            )
            chain.timeline = build_timeline(chain)

            key = lot
            n = 2
            while key in chains:
                key = f"{lot}-{n}"
                n += 1
            if key != lot:
                logger.warning("Lot %s is shared by several harvests; keyed as %s", lot, key)
            chains[key] = chain

        return chains

    # -------------------------
    # Filters
    # -------------------------
    @staticmethod
    def filter_by_lot(chains: Dict[str, LotChain], text: Optional[str]) -> Dict[str, LotChain]:
        needle = _text(text).casefold()
        if not needle:
            return chains
        return {k: c for k, c in chains.items() if needle in k.casefold()}

    @staticmethod
    def reverse_lookup(chains: Dict[str, LotChain], destination: Optional[str]) -> Dict[str, LotChain]:
        """Lots that reached a destination containing `destination` (case-insensitive)."""
        needle = _text(destination).casefold()
        if not needle:
            return chains
        return {
            k: c for k, c in chains.items()
            if any(needle in _text(s.get("destination")).casefold() for s in c.shipments)
        }

    # -------------------------
    # Summary / export
    # -------------------------
    @staticmethod
    def shared_shipment_ids(chains: Dict[str, LotChain]) -> List[str]:
        lots_by_shipment: Dict[str, set] = defaultdict(set)
        for key, chain in chains.items():
            for s in chain.shipments:
                sid = _text(s.get("id"))
                if sid:
                    lots_by_shipment[sid].add(key)
        return sorted(sid for sid, lots in lots_by_shipment.items() if len(lots) > 1)

    @staticmethod
    def summarize(chains: Dict[str, LotChain]) -> Dict[str, Any]:
        lot_count = len(chains)
        shipped = sum(1 for c in chains.values() if c.shipped)
        shipment_ids = {_text(s.get("id")) or str(id(s)) for c in chains.values() for s in c.shipments}
        shared = TraceabilityService.shared_shipment_ids(chains)
        if shared:
            logger.info("%d shipment(s) attached to more than one lot", len(shared))
        return {
            "lotCount": lot_count,
            "shippedLots": shipped,
            "unshippedLots": lot_count - shipped,
            "shipmentCount": len(shipment_ids),
            "shipmentRate": round(shipped / lot_count * 100) if lot_count else 0,
            "sharedShipmentIds": shared,
        }

    @staticmethod
    def export_rows(chains: Dict[str, LotChain]) -> List[Record]:
        """One row per (lot, shipment); lots without shipments get a single 未出荷 row."""
        rows: List[Record] = []
        for key, chain in chains.items():
            h = chain.harvest
            base = {
                "lotNumber": key,
                "harvestDate": h.get("harvestDate"),
                "fieldName": h.get("fieldName"),
                "cropName": h.get("cropName"),
                "quantity": h.get("quantity"),
                "unit": h.get("unit"),
                "qualityGrade": h.get("qualityGrade") or "",
            }
            if not chain.shipments:
                rows.append({**base, "shipmentDate": None, "destination": "未出荷",
                             "shipmentQuantity": "", "shipmentStatus": ""})
                continue
            for s in chain.shipments:
                rows.append({
                    **base,
                    "shipmentDate": s.get("shipmentDate"),
                    "destination": s.get("destination"),
                    "shipmentQuantity": s.get("quantity"),
                    "shipmentStatus": s.get("status"),
                })
        return rows

    @staticmethod
    def build_report(
        data: Dict[str, Sequence[Record]],
        lot: Optional[str] = None,
        destination: Optional[str] = None,
    ) -> Dict[str, LotChain]:
        """Full chain build followed by the optional lot and destination filters."""
        chains = TraceabilityService.build_chains(
            data.get("harvests", []),
            data.get("shipments", []),
            data.get("pesticides", []),
            data.get("fertilizers", []),
            data.get("workLogs", []),
        )
        chains = TraceabilityService.reverse_lookup(chains, destination)
        return TraceabilityService.filter_by_lot(chains, lot)
