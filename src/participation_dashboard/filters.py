"""
Filter engine: turns a snapshot plus a ``FilterState`` into a ``FilteredView``.

Predicates on the user dimension (account flag, age band) and the selected
activation are cascaded through the link tables so that every surviving link
only names surviving rows. Views reference the snapshot's records by position
and never copy them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Set, Union

from zoneinfo import ZoneInfo

from .schema import (
    BIRTH_DATE,
    CHECKIN_ACTIVATION,
    CHECKIN_USER,
    HAS_ACCOUNT,
    PASS_THROUGH_USER_LINKS,
    REDEMPTION_PRIZE,
    REDEMPTION_USER,
    Entity,
    LinkSpec,
)
from .snapshot import Snapshot, TableKey, TableSource, _table_name, coerce_id, normalize_datetime, parse_date

logger = logging.getLogger(__name__)

AsOf = Union[date, datetime]

_TRUE_STRINGS = {"true", "1", "yes", "y", "sim", "on"}
_FALSE_STRINGS = {"false", "0", "no", "n", "nao", "não", "off"}


class InvalidFilterError(ValueError):
    """Raised when a filter payload cannot be normalized into a FilterState."""


class AgeBand(str, Enum):
    UNDER_18 = "under18"
    FROM_18_TO_24 = "18to24"
    FROM_25_TO_40 = "25to40"
    FROM_41_TO_59 = "41to59"
    SIXTY_PLUS = "60plus"
    UNKNOWN = "unknown"


class CascadeOrder(str, Enum):
    ACTIVATION_FIRST = "activation_first"
    USER_FIRST = "user_first"


def age_on(birth_date: date, as_of: date) -> int:
    """Whole years between ``birth_date`` and ``as_of``."""

    age = as_of.year - birth_date.year
    if (as_of.month, as_of.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age


def classify_age(birth_value: Any, as_of: date) -> AgeBand:
    birth_date = parse_date(birth_value)
    if birth_date is None:
        return AgeBand.UNKNOWN
    age = age_on(birth_date, as_of)
    if age < 18:
        return AgeBand.UNDER_18
    if age <= 24:
        return AgeBand.FROM_18_TO_24
    if age <= 40:
        return AgeBand.FROM_25_TO_40
    if age <= 59:
        return AgeBand.FROM_41_TO_59
    return AgeBand.SIXTY_PLUS


def _parse_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    return None


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


@dataclass(frozen=True)
class FilterState:
    """
    Immutable set of active predicates.

    ``None`` means the predicate is inactive. Construct from untyped input
    with :meth:`from_mapping`, which normalizes string booleans once so the
    engine only ever sees ``bool``.
    """

    has_account: Optional[bool] = None
    age_band: Optional[AgeBand] = None
    activation_id: Optional[int] = None

    def __post_init__(self) -> None:
        if self.has_account is not None and not isinstance(self.has_account, bool):
            raise InvalidFilterError(f"hasAccount must be a boolean, got {self.has_account!r}")
        if self.age_band is not None and not isinstance(self.age_band, AgeBand):
            try:
                object.__setattr__(self, "age_band", AgeBand(self.age_band))
            except ValueError as exc:
                raise InvalidFilterError(f"Unknown age band {self.age_band!r}") from exc
        if self.activation_id is not None and (
            isinstance(self.activation_id, bool) or not isinstance(self.activation_id, int)
        ):
            raise InvalidFilterError(f"selectedActivationId must be an integer, got {self.activation_id!r}")

    @classmethod
    def from_mapping(cls, mapping: Optional[Mapping[str, Any]]) -> "FilterState":
        values: Dict[str, Any] = {}
        for key, raw in (mapping or {}).items():
            field_name = _FIELD_ALIASES.get(key)
            if field_name is None:
                raise InvalidFilterError(f"Unknown filter key {key!r}")
            if _is_blank(raw):
                continue
            values[field_name] = raw

        has_account = values.get("has_account")
        if has_account is not None:
            parsed = _parse_bool(has_account)
            if parsed is None:
                raise InvalidFilterError(f"hasAccount must be a boolean, got {has_account!r}")
            values["has_account"] = parsed

        activation_id = values.get("activation_id")
        if activation_id is not None:
            parsed_id = coerce_id(activation_id)
            if parsed_id is None:
                raise InvalidFilterError(f"selectedActivationId must be an integer, got {activation_id!r}")
            values["activation_id"] = parsed_id

        return cls(**values)

    @property
    def has_user_predicate(self) -> bool:
        return self.has_account is not None or self.age_band is not None

    @property
    def is_active(self) -> bool:
        return self.has_user_predicate or self.activation_id is not None

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if self.has_account is not None:
            payload["hasAccount"] = self.has_account
        if self.age_band is not None:
            payload["ageBand"] = self.age_band.value
        if self.activation_id is not None:
            payload["selectedActivationId"] = self.activation_id
        return payload


_FIELD_ALIASES = {
    "hasAccount": "has_account",
    "has_account": "has_account",
    "ageBand": "age_band",
    "age_band": "age_band",
    "selectedActivationId": "activation_id",
    "activation_id": "activation_id",
}


class FilteredView(TableSource):
    """
    Rows of a snapshot that survive one ``FilterState``.

    ``restrictions`` maps table names to surviving row positions; tables
    without an entry pass through whole. Two views are equal when they come
    from the same snapshot object with the same state and restrictions.
    """

    def __init__(
        self,
        snapshot: Snapshot,
        state: FilterState,
        restrictions: Mapping[str, FrozenSet[int]],
    ) -> None:
        self._snapshot = snapshot
        self.state = state
        self.restrictions: Mapping[str, FrozenSet[int]] = dict(restrictions)

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    def positions(self, key: TableKey) -> Optional[FrozenSet[int]]:
        return self.restrictions.get(_table_name(key))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FilteredView):
            return NotImplemented
        return (
            self._snapshot is other._snapshot
            and self.state == other.state
            and self.restrictions == other.restrictions
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        sizes = {name: len(rows) for name, rows in self.restrictions.items()}
        return f"FilteredView(state={self.state!r}, restricted={sizes!r})"


class _Selection:
    """Mutable working set of surviving row positions used while cascading."""

    def __init__(self, snapshot: Snapshot) -> None:
        self.snapshot = snapshot
        self.positions: Dict[str, Set[int]] = {}

    def _current(self, key: TableKey) -> Set[int]:
        name = _table_name(key)
        if name not in self.positions:
            self.positions[name] = set(range(len(self.snapshot.table(key))))
        return self.positions[name]

    def keep_links(self, link: LinkSpec, side: Entity, ids: Iterable[int]) -> None:
        wanted = set(ids)
        pairs = self.snapshot.link(link).pairs
        index = 0 if side is link.left else 1
        self.positions[link.table] = {
            position
            for position in self._current(link)
            if pairs[position] is not None and pairs[position][index] in wanted
        }

    def link_ids(self, link: LinkSpec, side: Entity) -> Set[int]:
        pairs = self.snapshot.link(link).pairs
        index = 0 if side is link.left else 1
        return {pairs[position][index] for position in self._current(link) if pairs[position] is not None}

    def keep_entities(self, entity: Entity, ids: Iterable[int]) -> None:
        wanted = set(ids)
        records = self.snapshot.table(entity).records
        self.positions[entity.value] = {
            position for position in self._current(entity) if records[position].id in wanted
        }

    def freeze(self) -> Dict[str, FrozenSet[int]]:
        return {name: frozenset(rows) for name, rows in self.positions.items()}


def _reference_day(as_of: AsOf, tz: ZoneInfo) -> date:
    if isinstance(as_of, datetime):
        return normalize_datetime(as_of, tz).date()
    return as_of


def select_users(snapshot: Snapshot, state: FilterState, as_of: AsOf) -> Optional[FrozenSet[int]]:
    """
    Ids of users matching the user-dimension predicates, or ``None`` when none is active.

    Account flag and age band combine with AND semantics.
    """

    if not state.has_user_predicate:
        return None

    reference_day = _reference_day(as_of, snapshot.tz)
    selected: Set[int] = set()
    for user in snapshot.records(Entity.USERS):
        if user.id is None:
            continue
        if state.has_account is not None and _parse_bool(user.get(HAS_ACCOUNT)) is not state.has_account:
            continue
        if state.age_band is not None and classify_age(user.get(BIRTH_DATE), reference_day) is not state.age_band:
            continue
        selected.add(user.id)
    return frozenset(selected)


def _cascade_activation(selection: _Selection, activation_id: int) -> None:
    selection.keep_links(CHECKIN_ACTIVATION, Entity.ACTIVATIONS, {activation_id})
    checkin_ids = selection.link_ids(CHECKIN_ACTIVATION, Entity.CHECKINS)
    selection.keep_entities(Entity.CHECKINS, checkin_ids)

    selection.keep_links(CHECKIN_USER, Entity.CHECKINS, checkin_ids)
    participant_ids = selection.link_ids(CHECKIN_USER, Entity.USERS)

    selection.keep_links(REDEMPTION_USER, Entity.USERS, participant_ids)
    redemption_ids = selection.link_ids(REDEMPTION_USER, Entity.REDEMPTIONS)
    selection.keep_entities(Entity.REDEMPTIONS, redemption_ids)
    selection.keep_links(REDEMPTION_PRIZE, Entity.REDEMPTIONS, redemption_ids)


def _cascade_users(selection: _Selection, user_ids: FrozenSet[int]) -> None:
    selection.keep_entities(Entity.USERS, user_ids)

    selection.keep_links(CHECKIN_USER, Entity.USERS, user_ids)
    checkin_ids = selection.link_ids(CHECKIN_USER, Entity.CHECKINS)
    selection.keep_entities(Entity.CHECKINS, checkin_ids)
    selection.keep_links(CHECKIN_ACTIVATION, Entity.CHECKINS, checkin_ids)

    selection.keep_links(REDEMPTION_USER, Entity.USERS, user_ids)
    redemption_ids = selection.link_ids(REDEMPTION_USER, Entity.REDEMPTIONS)
    selection.keep_entities(Entity.REDEMPTIONS, redemption_ids)
    selection.keep_links(REDEMPTION_PRIZE, Entity.REDEMPTIONS, redemption_ids)

    for link in PASS_THROUGH_USER_LINKS:
        selection.keep_links(link, Entity.USERS, user_ids)


def filter_view(
    snapshot: Snapshot,
    state: FilterState,
    as_of: AsOf,
    order: CascadeOrder = CascadeOrder.ACTIVATION_FIRST,
) -> FilteredView:
    """
    Derive the view of ``snapshot`` that satisfies ``state``.

    ``as_of`` is the instant ages are computed at. The activation cascade runs
    before the user cascade unless ``order`` says otherwise; both orders give
    the same result (see :func:`cascades_commute`).
    """

    user_ids = select_users(snapshot, state, as_of)
    selection = _Selection(snapshot)

    steps: List[Callable[[], None]] = []
    if state.activation_id is not None:
        activation_id = state.activation_id
        steps.append(lambda: _cascade_activation(selection, activation_id))
    if user_ids is not None:
        steps.append(lambda: _cascade_users(selection, user_ids))
    if order is CascadeOrder.USER_FIRST:
        steps.reverse()
    for step in steps:
        step()

    view = FilteredView(snapshot, state, selection.freeze())
    logger.debug("Filtered view for %s: %s", state.as_dict(), view)
    return view


def cascades_commute(snapshot: Snapshot, state: FilterState, as_of: AsOf) -> bool:
    """Check that running the user cascade first yields the same view."""

    return filter_view(snapshot, state, as_of, CascadeOrder.ACTIVATION_FIRST) == filter_view(
        snapshot, state, as_of, CascadeOrder.USER_FIRST
    )
