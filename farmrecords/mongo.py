# farmrecords/mongo.py
from __future__ import annotations

import logging
import re
from datetime import date, datetime, time
from functools import lru_cache
from typing import Any, Dict, Iterable, Optional, Tuple
from zoneinfo import ZoneInfo

from pymongo import MongoClient
from pymongo.database import Database

from farmrecords.app_config import get_settings

logger = logging.getLogger(__name__)

_DATE_RE = re.compile(r"^(\d{4})[-/](\d{1,2})[-/](\d{1,2})$")


@lru_cache(maxsize=1)
def get_client() -> MongoClient:
    """
    Single MongoClient per process. The server selection timeout is the
    only timeout applied to store calls.
    """
    settings = get_settings()
    logger.info("Connecting to Mongo (timeout %sms)", settings.mongo_timeout_ms)
    return MongoClient(
        settings.mongo_uri,
        serverSelectionTimeoutMS=settings.mongo_timeout_ms,
        tz_aware=False,
    )


def get_db() -> Database:
    """FastAPI dependency: the default database named in MONGO_URI."""
    return get_client().get_database()


# -----------------------------
# Date helpers
# -----------------------------
def local_tz() -> ZoneInfo:
    return ZoneInfo(get_settings().timezone)


def to_datetime(value: Any) -> Optional[datetime]:
    """
    Convert a stored date value to a naive local datetime.
    Accepts datetime, date, ISO / YYYY/MM/DD strings, epoch numbers and
    exported timestamp mappings ({"seconds": ...}). Anything else is None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(local_tz()).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        seconds = value / 1000.0 if value > 1e11 else float(value)
        try:
            return datetime.fromtimestamp(seconds, tz=local_tz()).replace(tzinfo=None)
        except (ValueError, OverflowError, OSError):
            # NaN, inf and epochs outside the platform range
            return None
    if isinstance(value, dict) and "seconds" in value:
        return to_datetime(value.get("seconds"))
    if isinstance(value, str):
        s = value.strip()
        m = _DATE_RE.match(s)
        if m:
            try:
                return datetime(int(m.group(1)), int(m.group(2)), int(m.group(3)))
            except ValueError:
                return None
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        try:
            return to_datetime(datetime.fromisoformat(s))
        except ValueError:
            return None
    return None


def day_bounds(start: date, end: date) -> Tuple[datetime, datetime]:
    """Inclusive [start 00:00:00, end 23:59:59] for a calendar date range."""
    if isinstance(start, datetime):
        start = start.date()
    if isinstance(end, datetime):
        end = end.date()
    return (
        datetime.combine(start, time(0, 0, 0)),
        datetime.combine(end, time(23, 59, 59)),
    )


# -----------------------------
# Document helpers
# -----------------------------
def serialize_doc(doc: Dict[str, Any], date_fields: Iterable[str] = ()) -> Dict[str, Any]:
    """
    Stored document -> plain dict: `_id` becomes a string `id` and the
    listed date fields are converted to datetimes.
    """
    out = {k: v for k, v in doc.items() if k != "_id"}
    if "_id" in doc:
        out["id"] = str(doc["_id"])
    for f in date_fields:
        if f in out:
            out[f] = to_datetime(out[f])
    return out
