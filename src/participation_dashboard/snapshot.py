from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterator, List, Mapping, Optional, Sequence, Tuple, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .schema import CREATED_AT, LINKS, PUBLISHED_AT, Entity, LinkSpec

logger = logging.getLogger(__name__)

TableKey = Union[Entity, LinkSpec, str]


def coerce_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, falling back to UTC", name)
        return ZoneInfo("UTC")


def normalize_datetime(dt: datetime, tz: ZoneInfo) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz)
    return dt.astimezone(tz)


def parse_timestamp(value: Any, tz: ZoneInfo) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp into ``tz``.

    Naive values are interpreted in ``tz``. Anything unparseable yields
    ``None`` so callers can treat it as an absent attribute.
    """

    if isinstance(value, datetime):
        return normalize_datetime(value, tz)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=tz)
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return normalize_datetime(parsed, tz)


def parse_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or len(value.strip()) < 10:
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def coerce_id(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def is_present(value: Any) -> bool:
    return value is not None and value != ""


def _table_name(key: TableKey) -> str:
    if isinstance(key, LinkSpec):
        return key.table
    if isinstance(key, Entity):
        return key.value
    return key


@dataclass(frozen=True)
class Record:
    """
    One immutable row of a snapshot table.

    ``attributes`` is a read-only copy of the loaded row, ``id`` included.
    """

    id: Optional[int]
    attributes: Mapping[str, Any] = field(default_factory=dict)

    def get(self, name: str, default: Any = None) -> Any:
        return self.attributes.get(name, default)

    @property
    def published_at(self) -> Any:
        return self.attributes.get(PUBLISHED_AT)

    @property
    def is_published(self) -> bool:
        return is_present(self.published_at)

    def as_dict(self) -> Dict[str, Any]:
        return dict(self.attributes)

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "Record":
        return cls(id=coerce_id(raw.get("id")), attributes=MappingProxyType(dict(raw)))


class Table:
    """Ordered records of one kind plus an id -> position index."""

    def __init__(self, name: str, records: Sequence[Record]) -> None:
        self.name = name
        self.records: Tuple[Record, ...] = tuple(records)
        positions: Dict[int, int] = {}
        for position, record in enumerate(self.records):
            if record.id is not None:
                positions.setdefault(record.id, position)
        self.positions_by_id: Mapping[int, int] = MappingProxyType(positions)

    def __len__(self) -> int:
        return len(self.records)


class LinkTable(Table):
    """
    Link rows with both foreign keys resolved and indexed in each direction.

    ``pairs[position]`` is ``(left_id, right_id)`` or ``None`` for a row whose
    keys are missing or not integers.
    """

    def __init__(self, spec: LinkSpec, records: Sequence[Record]) -> None:
        super().__init__(spec.table, records)
        self.spec = spec
        pairs: List[Optional[Tuple[int, int]]] = []
        by_left: Dict[int, List[int]] = {}
        by_right: Dict[int, List[int]] = {}
        malformed = 0
        for position, record in enumerate(self.records):
            left_id = coerce_id(record.get(spec.left_key))
            right_id = coerce_id(record.get(spec.right_key))
            if left_id is None or right_id is None:
                pairs.append(None)
                malformed += 1
                continue
            pairs.append((left_id, right_id))
            by_left.setdefault(left_id, []).append(position)
            by_right.setdefault(right_id, []).append(position)
        if malformed:
            logger.warning("Ignoring %s malformed rows in link table %s", malformed, spec.table)
        self.pairs: Tuple[Optional[Tuple[int, int]], ...] = tuple(pairs)
        self.by_left: Mapping[int, Tuple[int, ...]] = MappingProxyType(
            {key: tuple(value) for key, value in by_left.items()}
        )
        self.by_right: Mapping[int, Tuple[int, ...]] = MappingProxyType(
            {key: tuple(value) for key, value in by_right.items()}
        )

    def positions_for(self, side: Entity, record_id: int) -> Tuple[int, ...]:
        index = self.by_left if side is self.spec.left else self.by_right
        return index.get(record_id, ())


class TableSource:
    """
    Read interface shared by :class:`Snapshot` and filtered views.

    Subclasses decide which row positions of a table are visible through
    :meth:`positions`; every lookup below honours that restriction.
    """

    @property
    def snapshot(self) -> "Snapshot":
        raise NotImplementedError

    def positions(self, key: TableKey) -> Optional[FrozenSet[int]]:
        """Visible row positions of a table, or ``None`` when every row is visible."""

        raise NotImplementedError

    @property
    def tz(self) -> ZoneInfo:
        return self.snapshot.tz

    def _visible(self, key: TableKey, position: int) -> bool:
        allowed = self.positions(key)
        return allowed is None or position in allowed

    def records(self, key: TableKey) -> Tuple[Record, ...]:
        table = self.snapshot.table(key)
        allowed = self.positions(key)
        if allowed is None:
            return table.records
        return tuple(record for position, record in enumerate(table.records) if position in allowed)

    def count(self, key: TableKey) -> int:
        allowed = self.positions(key)
        if allowed is None:
            return len(self.snapshot.table(key))
        return len(allowed)

    def get(self, entity: Entity, record_id: Optional[int]) -> Optional[Record]:
        if record_id is None:
            return None
        table = self.snapshot.table(entity)
        position = table.positions_by_id.get(record_id)
        if position is None or not self._visible(entity, position):
            return None
        return table.records[position]

    def ids(self, entity: Entity) -> FrozenSet[int]:
        return frozenset(record.id for record in self.records(entity) if record.id is not None)

    def link_pairs(self, link: LinkSpec) -> Iterator[Tuple[int, int]]:
        table = self.snapshot.link(link)
        allowed = self.positions(link)
        for position, pair in enumerate(table.pairs):
            if pair is None:
                continue
            if allowed is not None and position not in allowed:
                continue
            yield pair

    def follow(self, link: LinkSpec, source: Entity, source_id: int) -> Tuple[int, ...]:
        """
        Ids on the far side of ``link`` for one ``source`` record.

        Ids come back distinct, in link-table order.
        """

        table = self.snapshot.link(link)
        allowed = self.positions(link)
        far_index = 1 if source is link.left else 0
        seen: Dict[int, None] = {}
        for position in table.positions_for(source, source_id):
            if allowed is not None and position not in allowed:
                continue
            pair = table.pairs[position]
            if pair is not None:
                seen.setdefault(pair[far_index], None)
        return tuple(seen)

    def local_time(self, record: Record, attribute: str = CREATED_AT) -> Optional[datetime]:
        return parse_timestamp(record.get(attribute), self.tz)

    def local_day(self, record: Record, attribute: str = CREATED_AT) -> Optional[date]:
        moment = self.local_time(record, attribute)
        return moment.date() if moment is not None else None


class Snapshot(TableSource):
    """
    One immutable, fully indexed copy of every entity and link table.

    Built once per process by :meth:`from_document`; tables missing from the
    document are empty.
    """

    def __init__(self, tables: Mapping[str, Table], timezone: str = "UTC") -> None:
        self._tables: Mapping[str, Table] = MappingProxyType(dict(tables))
        self.timezone = timezone
        self._tz = coerce_timezone(timezone)

    @property
    def snapshot(self) -> "Snapshot":
        return self

    @property
    def tz(self) -> ZoneInfo:
        return self._tz

    def positions(self, key: TableKey) -> Optional[FrozenSet[int]]:
        return None

    def table(self, key: TableKey) -> Table:
        name = _table_name(key)
        table = self._tables.get(name)
        if table is None:
            raise KeyError(f"Unknown table {name}")
        return table

    def link(self, spec: LinkSpec) -> LinkTable:
        table = self.table(spec)
        if not isinstance(table, LinkTable):
            raise KeyError(f"{spec.table} is not a link table")
        return table

    def table_sizes(self) -> Dict[str, int]:
        return {name: len(table) for name, table in self._tables.items()}

    @classmethod
    def from_document(cls, document: Mapping[str, Any], timezone: str = "UTC") -> "Snapshot":
        raw_tables = document.get("tables") or {}
        tables: Dict[str, Table] = {}
        for entity in Entity:
            tables[entity.value] = Table(entity.value, _records(raw_tables, entity.value))
        for spec in LINKS:
            tables[spec.table] = LinkTable(spec, _records(raw_tables, spec.table))
        return cls(tables, timezone=timezone)


def _records(raw_tables: Mapping[str, Any], name: str) -> List[Record]:
    payload = raw_tables.get(name) or {}
    rows = payload.get("data") if isinstance(payload, Mapping) else None
    records: List[Record] = []
    skipped = 0
    for row in rows or []:
        if not isinstance(row, Mapping):
            skipped += 1
            continue
        records.append(Record.from_raw(row))
    if skipped:
        logger.warning("Skipped %s non-object rows in table %s", skipped, name)
    return records
