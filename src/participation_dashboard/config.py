"""
Runtime configuration for the participation dashboard.

Values come from environment variables (a local ``.env`` file is read first)
and fall back to the defaults declared on the models.
"""

from __future__ import annotations

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel


class DashboardSettings(BaseModel):
    source_url: Optional[str] = None
    """HTTP endpoint returning the ``{"tables": ...}`` document"""

    database_url: Optional[str] = None
    """SQLAlchemy URL of the exporting database; used when no source URL is set"""

    request_timeout_seconds: int = 30
    """Timeout of the single snapshot request"""

    timezone: str = "UTC"
    """Zone used for calendar days and hours of the time-bucketed series"""

    view_cache_size: int = 64
    """How many filtered views to memoize per process"""


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_str(name: str, default: Optional[str]) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


def load_settings(dotenv: bool = True) -> DashboardSettings:
    if dotenv:
        load_dotenv()
    defaults = DashboardSettings()
    return DashboardSettings(
        source_url=_env_str("DASHBOARD_SOURCE_URL", defaults.source_url),
        database_url=_env_str("DASHBOARD_DATABASE_URL", defaults.database_url),
        request_timeout_seconds=_env_int("DASHBOARD_REQUEST_TIMEOUT", defaults.request_timeout_seconds),
        timezone=_env_str("DASHBOARD_TIMEZONE", defaults.timezone) or defaults.timezone,
        view_cache_size=_env_int("DASHBOARD_VIEW_CACHE_SIZE", defaults.view_cache_size),
    )
