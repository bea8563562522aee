"""
Multi-hop lookups over the link graph.

Every function takes a ``TableSource`` (a full snapshot or a filtered view)
and ignores the active filters beyond what that source exposes. Targets of a
gated kind without a publication timestamp are never returned.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Optional, Tuple

from .models import ActivationStats, EventStats, RedemptionDetail, UserProfile
from .numeric import as_number, mean, round_scaled
from .schema import (
    ACTIVATION_EVENT,
    CHECKIN_ACTIVATION,
    CHECKIN_USER,
    COIN_GUESS_USER,
    EVALUATION_ACTIVATION,
    EVALUATION_USER,
    EVENT_CLIENT,
    GATED,
    LUCKY_NUMBER_USER,
    RATING,
    REDEMPTION_PRIZE,
    REDEMPTION_USER,
    SURVEY_USER,
    Entity,
    LinkSpec,
)
from .snapshot import Record, TableKey, TableSource, is_present


def passes_gate(entity: Entity, record: Record) -> bool:
    return entity not in GATED or record.is_published


def _records_with_ids(source: TableSource, entity: Entity, ids: Iterable[int]) -> Tuple[Record, ...]:
    wanted = set(ids)
    if not wanted:
        return ()
    return tuple(
        record
        for record in source.records(entity)
        if record.id in wanted and passes_gate(entity, record)
    )


def _related(source: TableSource, link: LinkSpec, origin: Entity, origin_id: int) -> Tuple[Record, ...]:
    return _records_with_ids(source, link.other(origin), source.follow(link, origin, origin_id))


def _single(source: TableSource, link: LinkSpec, origin: Entity, origin_id: int) -> Optional[Record]:
    # One-to-one edges: only the first link counts, even if its target is unpublished.
    target_ids = source.follow(link, origin, origin_id)
    if not target_ids:
        return None
    target = link.other(origin)
    record = source.get(target, target_ids[0])
    if record is None or not passes_gate(target, record):
        return None
    return record


def checkins_of_user(source: TableSource, user_id: int) -> Tuple[Record, ...]:
    return _related(source, CHECKIN_USER, Entity.USERS, user_id)


def activations_of_checkin(source: TableSource, checkin_id: int) -> Tuple[Record, ...]:
    return _related(source, CHECKIN_ACTIVATION, Entity.CHECKINS, checkin_id)


def users_of_activation(source: TableSource, activation_id: int) -> Tuple[Record, ...]:
    user_ids: List[int] = []
    for checkin_id in source.follow(CHECKIN_ACTIVATION, Entity.ACTIVATIONS, activation_id):
        user_ids.extend(source.follow(CHECKIN_USER, Entity.CHECKINS, checkin_id))
    return _records_with_ids(source, Entity.USERS, user_ids)


def activations_of_event(source: TableSource, event_id: int) -> Tuple[Record, ...]:
    return _related(source, ACTIVATION_EVENT, Entity.EVENTS, event_id)


def event_of_activation(source: TableSource, activation_id: int) -> Optional[Record]:
    return _single(source, ACTIVATION_EVENT, Entity.ACTIVATIONS, activation_id)


def client_of_event(source: TableSource, event_id: int) -> Optional[Record]:
    return _single(source, EVENT_CLIENT, Entity.EVENTS, event_id)


def redemptions_of_user(source: TableSource, user_id: int) -> Tuple[RedemptionDetail, ...]:
    """Redemptions of a user, each with its published prizes."""

    return tuple(
        RedemptionDetail(
            redemption=redemption,
            prizes=_related(source, REDEMPTION_PRIZE, Entity.REDEMPTIONS, redemption.id),
        )
        for redemption in _related(source, REDEMPTION_USER, Entity.USERS, user_id)
    )


def users_of_prize(source: TableSource, prize_id: int) -> Tuple[Record, ...]:
    user_ids: List[int] = []
    for redemption_id in source.follow(REDEMPTION_PRIZE, Entity.PRIZES, prize_id):
        user_ids.extend(source.follow(REDEMPTION_USER, Entity.REDEMPTIONS, redemption_id))
    return _records_with_ids(source, Entity.USERS, user_ids)


def evaluations_of_activation(source: TableSource, activation_id: int) -> Tuple[Record, ...]:
    return _related(source, EVALUATION_ACTIVATION, Entity.ACTIVATIONS, activation_id)


def evaluations_of_user(source: TableSource, user_id: int) -> Tuple[Record, ...]:
    return _related(source, EVALUATION_USER, Entity.USERS, user_id)


def lucky_numbers_of_user(source: TableSource, user_id: int) -> Tuple[Record, ...]:
    return _related(source, LUCKY_NUMBER_USER, Entity.USERS, user_id)


def coin_guess_of_user(source: TableSource, user_id: int) -> Optional[Record]:
    return _single(source, COIN_GUESS_USER, Entity.USERS, user_id)


def survey_of_user(source: TableSource, user_id: int) -> Optional[Record]:
    return _single(source, SURVEY_USER, Entity.USERS, user_id)


def user_profile(source: TableSource, user_id: int) -> Optional[UserProfile]:
    user = source.get(Entity.USERS, user_id)
    if user is None:
        return None
    return UserProfile(
        user=user,
        checkins=checkins_of_user(source, user_id),
        redemptions=redemptions_of_user(source, user_id),
        lucky_numbers=lucky_numbers_of_user(source, user_id),
        evaluations=evaluations_of_user(source, user_id),
        coin_guess=coin_guess_of_user(source, user_id),
        survey=survey_of_user(source, user_id),
    )


def activation_stats(source: TableSource, activation_id: int) -> Optional[ActivationStats]:
    """
    Participation summary of one activation.

    Participants are distinct users reached through its check-ins; the mean
    rating covers numeric ratings of its published evaluations, 1 decimal.
    """

    activation = source.get(Entity.ACTIVATIONS, activation_id)
    if activation is None:
        return None
    users = users_of_activation(source, activation_id)
    evaluations = evaluations_of_activation(source, activation_id)
    ratings = [
        rating
        for rating in (as_number(evaluation.get(RATING)) for evaluation in evaluations)
        if rating is not None
    ]
    return ActivationStats(
        activation=activation,
        total_users=len(users),
        total_evaluations=len(evaluations),
        mean_rating=mean(ratings, 1, rounder=round_scaled),
        event=event_of_activation(source, activation_id),
        users=users,
        evaluations=evaluations,
    )


def event_stats(source: TableSource, event_id: int) -> Optional[EventStats]:
    event = source.get(Entity.EVENTS, event_id)
    if event is None:
        return None
    activations = activations_of_event(source, event_id)
    activation_ids = {activation.id for activation in activations}
    total_checkins = sum(
        1 for _, activation_id in source.link_pairs(CHECKIN_ACTIVATION) if activation_id in activation_ids
    )
    unique_users = set()
    for activation in activations:
        unique_users.update(user.id for user in users_of_activation(source, activation.id))
    return EventStats(
        event=event,
        client=client_of_event(source, event_id),
        total_activations=len(activations),
        total_checkins=total_checkins,
        total_unique_users=len(unique_users),
        activations=activations,
    )


def unique_values(source: TableSource, table: TableKey, attribute: str) -> Tuple[Any, ...]:
    """Sorted distinct non-empty values of ``attribute`` across ``table``."""

    values = set()
    for record in source.records(table):
        value = record.get(attribute)
        if is_present(value) and not isinstance(value, (dict, list)):
            values.add(value)
    return tuple(sorted(values, key=lambda value: (type(value).__name__, value)))
