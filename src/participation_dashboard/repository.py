from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Dict, List, Optional

import requests
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .config import DashboardSettings, load_settings
from .schema import ALL_TABLES
from .snapshot import Snapshot

logger = logging.getLogger(__name__)


class SnapshotLoadError(RuntimeError):
    """The single snapshot load failed; nothing downstream can be computed."""


class SnapshotRepository:
    """
    Interface for loading the participation snapshot.

    Implementations return one document shaped as
    ``{"tables": {<name>: {"data": [<row>, ...]}}}`` and raise
    :class:`SnapshotLoadError` on any failure. Loads are never retried here.
    """

    def load(self) -> Dict[str, Any]:
        raise NotImplementedError


class HttpSnapshotRepository(SnapshotRepository):
    """Fetch the whole export from one HTTP endpoint."""

    def __init__(self, url: str, timeout: float = 30, session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def load(self) -> Dict[str, Any]:
        try:
            response = self.session.get(self.url, timeout=self.timeout)
            response.raise_for_status()
            document = response.json()
        except requests.RequestException as exc:
            raise SnapshotLoadError(f"Snapshot request to {self.url} failed: {exc}") from exc
        except ValueError as exc:
            raise SnapshotLoadError(f"Snapshot response from {self.url} is not valid JSON: {exc}") from exc
        return _validate_document(document, self.url)


class SQLSnapshotRepository(SnapshotRepository):
    """
    Read every known table straight from the exporting database.

    Tables missing from the database load as empty, matching a document
    that omits them.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    def load(self) -> Dict[str, Any]:
        tables: Dict[str, Dict[str, List[Dict[str, Any]]]] = {}
        try:
            with self.engine.connect() as connection:
                existing = set(inspect(connection).get_table_names())
                for name in ALL_TABLES:
                    if name not in existing:
                        continue
                    rows = connection.execute(text(f'SELECT * FROM "{name}"')).fetchall()
                    tables[name] = {"data": [dict(row._mapping) for row in rows]}
        except SQLAlchemyError as exc:
            raise SnapshotLoadError(f"Snapshot query failed: {exc}") from exc
        return {"tables": tables}


def _validate_document(document: Any, origin: str) -> Dict[str, Any]:
    if not isinstance(document, Mapping):
        raise SnapshotLoadError(f"Snapshot from {origin} is not a JSON object")
    tables = document.get("tables")
    if tables is not None and not isinstance(tables, Mapping):
        raise SnapshotLoadError(f"Snapshot from {origin} has a non-object 'tables' member")
    return dict(document)


def build_repository(settings: Optional[DashboardSettings] = None) -> Optional[SnapshotRepository]:
    cfg = settings or load_settings()
    if cfg.source_url:
        return HttpSnapshotRepository(cfg.source_url, timeout=cfg.request_timeout_seconds)
    if cfg.database_url:
        return SQLSnapshotRepository(create_engine(cfg.database_url))
    return None


def load_snapshot(repository: SnapshotRepository, timezone: str = "UTC") -> Snapshot:
    """Run the one load and index the result."""

    logger.info("Loading participation snapshot via %s", type(repository).__name__)
    try:
        document = repository.load()
    except SnapshotLoadError:
        logger.exception("Snapshot load failed")
        raise
    snapshot = Snapshot.from_document(document, timezone=timezone)
    logger.info("Snapshot loaded: %s", snapshot.table_sizes())
    return snapshot
