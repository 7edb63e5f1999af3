# farmrecords/app_config.py

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import List


@dataclass(frozen=True)
class Settings:
    mongo_uri: str
    mongo_timeout_ms: int
    jwt_secret_key: str
    access_expires_h: int
    refresh_expires_d: int
    timezone: str
    log_level: str
    report_workers: int
    trace_lookback_days: int
    cors_origins: List[str]


def load_config() -> Settings:
    """
    Load all configuration from the environment in one place.
    """
    # ------------------------------
    # Mongo
    # ------------------------------
    mongo_uri = os.getenv("MONGO_URI", "mongodb://localhost:27017/gap_farm_records")
    mongo_timeout_ms = int(os.getenv("MONGO_TIMEOUT_MS", "5000"))

    # ------------------------------
    # Security Keys
    # ------------------------------
    jwt_secret_key = os.getenv("JWT_SECRET_KEY", "change-me-super-secret")
    access_expires_h = int(os.getenv("JWT_ACCESS_TOKEN_EXPIRES_H", "6"))
    refresh_expires_d = int(os.getenv("JWT_REFRESH_TOKEN_EXPIRES_D", "14"))

    # ------------------------------
    # Reports
    # ------------------------------
    report_workers = max(1, int(os.getenv("REPORT_WORKERS", "4")))
    trace_lookback_days = max(0, int(os.getenv("TRACE_LOOKBACK_DAYS", "365")))

    origins = os.getenv("CORS_ORIGINS", "*")

    return Settings(
        mongo_uri=mongo_uri,
        mongo_timeout_ms=mongo_timeout_ms,
        jwt_secret_key=jwt_secret_key,
        access_expires_h=access_expires_h,
        refresh_expires_d=refresh_expires_d,
        timezone=os.getenv("APP_TIMEZONE", "Asia/Tokyo"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        report_workers=report_workers,
        trace_lookback_days=trace_lookback_days,
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_config()
