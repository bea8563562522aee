from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Callable, Dict, Generic, Iterable, List, Optional, Set, TypeVar, Union

from .filters import FilteredView
from .models import (
    ActivationCheckins,
    DailyCheckins,
    DayOption,
    FilterStats,
    FunnelStage,
    HourBucket,
    HourlyPeaks,
    MetricsSummary,
    PrizeRedemptions,
)
from .numeric import as_number, mean, percentage, round_half_up
from .schema import (
    ACTIVATION_KIND,
    ACTIVATION_LOCATION,
    ACTIVATION_NAME,
    ACTIVATION_SCORE,
    CHECKIN_ACTIVATION,
    CHECKIN_USER,
    EVALUATION_ACTIVATION,
    EVALUATION_USER,
    PRIZE_POINTS,
    PRIZE_STOCK,
    PRIZE_TITLE,
    RATING,
    REDEMPTION_PRIZE,
    Entity,
)
from .snapshot import parse_date

K = TypeVar("K")
T = TypeVar("T")

DAY_LABEL_FORMAT = "%d/%m/%Y"
HOURS_PER_DAY = 24
FUNNEL_STAGES = (
    ("Registered users", "#0d6efd"),
    ("Check-ins", "#198754"),
)


@dataclass
class GroupStat(Generic[K]):
    """Running count plus the sum of the numeric values seen for one key."""

    key: K
    count: int = 0
    rated: int = 0
    total: float = 0.0

    def add(self, value: Optional[float] = None) -> None:
        self.count += 1
        if value is not None:
            self.rated += 1
            self.total += value

    def mean(self, places: int = 2) -> float:
        if not self.rated:
            return 0.0
        return round_half_up(self.total / self.rated, places)


def group_stats(
    items: Iterable[T],
    key: Callable[[T], K],
    value: Optional[Callable[[T], Optional[float]]] = None,
) -> Dict[K, GroupStat[K]]:
    """
    Group ``items`` by ``key`` counting each item and averaging ``value``.

    Groups keep first-encountered order; ``value`` returning ``None`` counts
    the item without contributing to the mean.
    """

    groups: Dict[K, GroupStat[K]] = {}
    for item in items:
        group_key = key(item)
        stat = groups.get(group_key)
        if stat is None:
            stat = groups[group_key] = GroupStat(group_key)
        stat.add(value(item) if value is not None else None)
    return groups


def rank_by_count(rows: Iterable[T], count: Callable[[T], int]) -> List[T]:
    # sorted() is stable, so ties keep their incoming order.
    return sorted(rows, key=count, reverse=True)


def _published_ratings(view: FilteredView) -> Dict[int, float]:
    ratings: Dict[int, float] = {}
    for evaluation in view.records(Entity.EVALUATIONS):
        if evaluation.id is None or not evaluation.is_published:
            continue
        rating = as_number(evaluation.get(RATING))
        if rating is not None:
            ratings[evaluation.id] = rating
    return ratings


def metrics(view: FilteredView) -> MetricsSummary:
    users_with_checkins = {user_id for _, user_id in view.link_pairs(CHECKIN_USER)}
    published_activations = sum(1 for activation in view.records(Entity.ACTIVATIONS) if activation.is_published)
    return MetricsSummary(
        users_with_checkins=len(users_with_checkins),
        total_checkins=view.count(Entity.CHECKINS),
        total_redemptions=view.count(Entity.REDEMPTIONS),
        published_activations=published_activations,
        mean_rating=mean(_published_ratings(view).values(), 2),
    )


def checkins_by_activation(view: FilteredView) -> List[ActivationCheckins]:
    """
    Check-in counts per published activation, busiest first.

    Activations without any check-in link are absent rather than zero.
    """

    published = {
        activation.id: activation
        for activation in view.records(Entity.ACTIVATIONS)
        if activation.id is not None and activation.is_published
    }
    counts = group_stats(
        (pair for pair in view.link_pairs(CHECKIN_ACTIVATION) if pair[1] in published),
        key=lambda pair: pair[1],
    )
    ratings = _published_ratings(view)
    rating_groups = group_stats(
        (
            pair
            for pair in view.link_pairs(EVALUATION_ACTIVATION)
            if pair[1] in published and pair[0] in ratings
        ),
        key=lambda pair: pair[1],
        value=lambda pair: ratings[pair[0]],
    )

    rows = []
    for activation_id, stat in counts.items():
        activation = published[activation_id]
        rating_group = rating_groups.get(activation_id)
        rows.append(
            ActivationCheckins(
                activation_id=activation_id,
                name=activation.get(ACTIVATION_NAME) or f"Activation {activation_id}",
                checkins=stat.count,
                mean_rating=rating_group.mean(2) if rating_group else 0.0,
                kind=activation.get(ACTIVATION_KIND),
                location=activation.get(ACTIVATION_LOCATION),
                score=activation.get(ACTIVATION_SCORE) or 0,
            )
        )
    return rank_by_count(rows, count=lambda row: row.checkins)


def checkins_by_day(view: FilteredView) -> List[DailyCheckins]:
    """
    Check-ins per local calendar day with that day's mean rating.

    The rating averages evaluations written on the same day by the users who
    checked in that day. Check-ins without a creation time are skipped.
    """

    dated = [
        (checkin, day)
        for checkin, day in ((checkin, view.local_day(checkin)) for checkin in view.records(Entity.CHECKINS))
        if day is not None
    ]
    counts = group_stats(dated, key=lambda item: item[1])

    users_by_day: Dict[date, Set[int]] = {}
    for checkin, day in dated:
        users = users_by_day.setdefault(day, set())
        if checkin.id is not None:
            users.update(view.follow(CHECKIN_USER, Entity.CHECKINS, checkin.id))

    rows = []
    for day, stat in counts.items():
        same_day_ratings: Dict[int, float] = {}
        for user_id in users_by_day[day]:
            for evaluation_id in view.follow(EVALUATION_USER, Entity.USERS, user_id):
                evaluation = view.get(Entity.EVALUATIONS, evaluation_id)
                if evaluation is None or view.local_day(evaluation) != day:
                    continue
                rating = as_number(evaluation.get(RATING))
                if rating is not None:
                    same_day_ratings[evaluation_id] = rating
        rows.append(
            DailyCheckins(
                day=day,
                label=day.strftime(DAY_LABEL_FORMAT),
                checkins=stat.count,
                mean_rating=mean(same_day_ratings.values(), 2),
            )
        )
    return sorted(rows, key=lambda row: row.day)


def hourly_peaks(view: FilteredView, day: Optional[Union[date, str]] = None) -> HourlyPeaks:
    """
    Check-ins per local hour of day, optionally restricted to one ``day``.

    All 24 buckets are always returned. ``days`` lists every day present in
    the view regardless of ``day``.
    """

    selected_day = parse_date(day) if day is not None else None
    if day is not None and selected_day is None:
        raise ValueError(f"Invalid day {day!r}, expected YYYY-MM-DD")

    moments = [
        moment
        for moment in (view.local_time(checkin) for checkin in view.records(Entity.CHECKINS))
        if moment is not None
    ]
    counts = group_stats(
        (moment for moment in moments if selected_day is None or moment.date() == selected_day),
        key=lambda moment: moment.hour,
    )
    buckets = [
        HourBucket(hour=hour, label=f"{hour:02d}:00", checkins=counts[hour].count if hour in counts else 0)
        for hour in range(HOURS_PER_DAY)
    ]
    days = [
        DayOption(value=available, label=available.strftime(DAY_LABEL_FORMAT))
        for available in sorted({moment.date() for moment in moments})
    ]
    return HourlyPeaks(buckets=buckets, days=days)


def redemptions_by_prize(view: FilteredView) -> List[PrizeRedemptions]:
    counts = group_stats(view.link_pairs(REDEMPTION_PRIZE), key=lambda pair: pair[1])
    rows = []
    for prize_id, stat in counts.items():
        prize = view.get(Entity.PRIZES, prize_id)
        if prize is not None and prize.is_published:
            rows.append(
                PrizeRedemptions(
                    prize_id=prize_id,
                    title=prize.get(PRIZE_TITLE) or f"Prize {prize_id}",
                    redemptions=stat.count,
                    points=prize.get(PRIZE_POINTS) or 0,
                    stock=prize.get(PRIZE_STOCK) or 0,
                )
            )
        else:
            rows.append(PrizeRedemptions(prize_id=prize_id, title=f"Prize {prize_id}", redemptions=stat.count))
    return rank_by_count(rows, count=lambda row: row.redemptions)


def funnel(view: FilteredView) -> List[FunnelStage]:
    counts = (view.count(Entity.USERS), view.count(Entity.CHECKINS))
    largest = max(counts)
    return [
        FunnelStage(label=label, count=count, percentage=percentage(count, largest), color=color)
        for (label, color), count in zip(FUNNEL_STAGES, counts)
    ]


def filter_stats(view: FilteredView) -> FilterStats:
    total = view.snapshot.count(Entity.CHECKINS)
    filtered = view.count(Entity.CHECKINS)
    return FilterStats(
        total=total,
        filtered=filtered,
        percentage=percentage(filtered, total),
        has_active_filters=view.state.is_active,
    )
