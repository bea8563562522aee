from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence

from .snapshot import Record


@dataclass(frozen=True)
class MetricsSummary:
    """
    Headline cards of the dashboard.

    ``mean_rating`` only considers published evaluations with a rating.
    """

    users_with_checkins: int
    total_checkins: int
    total_redemptions: int
    published_activations: int
    mean_rating: float


@dataclass(frozen=True)
class ActivationCheckins:
    activation_id: int
    name: str
    checkins: int
    mean_rating: float
    kind: Optional[str] = None
    location: Optional[str] = None
    score: Any = 0


@dataclass(frozen=True)
class DailyCheckins:
    day: date
    label: str
    checkins: int
    mean_rating: float


@dataclass(frozen=True)
class HourBucket:
    hour: int
    label: str
    checkins: int


@dataclass(frozen=True)
class DayOption:
    value: date
    label: str


@dataclass(frozen=True)
class HourlyPeaks:
    """
    Check-ins per local hour (always 24 buckets) plus every day present.

    ``days`` ignores the day restriction so it can populate a selector.
    """

    buckets: Sequence[HourBucket]
    days: Sequence[DayOption]


@dataclass(frozen=True)
class PrizeRedemptions:
    prize_id: int
    title: str
    redemptions: int
    points: Any = 0
    stock: Any = 0


@dataclass(frozen=True)
class FunnelStage:
    label: str
    count: int
    percentage: int
    color: str


@dataclass(frozen=True)
class FilterStats:
    total: int
    filtered: int
    percentage: int
    has_active_filters: bool


@dataclass(frozen=True)
class RedemptionDetail:
    redemption: Record
    prizes: Sequence[Record] = field(default_factory=tuple)


@dataclass(frozen=True)
class UserProfile:
    user: Record
    checkins: Sequence[Record]
    redemptions: Sequence[RedemptionDetail]
    lucky_numbers: Sequence[Record]
    evaluations: Sequence[Record]
    coin_guess: Optional[Record]
    survey: Optional[Record]

    def as_dict(self) -> Dict[str, Any]:
        return _serialize(self)


@dataclass(frozen=True)
class ActivationStats:
    activation: Record
    total_users: int
    total_evaluations: int
    mean_rating: float
    event: Optional[Record]
    users: Sequence[Record]
    evaluations: Sequence[Record]

    def as_dict(self) -> Dict[str, Any]:
        return _serialize(self)


@dataclass(frozen=True)
class EventStats:
    event: Record
    client: Optional[Record]
    total_activations: int
    total_checkins: int
    total_unique_users: int
    activations: Sequence[Record]

    def as_dict(self) -> Dict[str, Any]:
        return _serialize(self)


@dataclass(frozen=True)
class DashboardResult:
    filters: Mapping[str, Any]
    metrics: MetricsSummary
    checkins_by_activation: Sequence[ActivationCheckins]
    checkins_by_day: Sequence[DailyCheckins]
    hourly_peaks: HourlyPeaks
    redemptions_by_prize: Sequence[PrizeRedemptions]
    funnel: Sequence[FunnelStage]
    filter_stats: FilterStats

    def as_dict(self) -> Dict[str, Any]:
        """
        Convert the nested dataclasses into a JSON-serialisable structure.

        HTTP callers reuse this to ship the aggregates to the UI without
        depending on the dataclasses.
        """

        return _serialize(self)


def serialize(obj: Any) -> Any:
    """Public entry point for list-shaped results (series, funnel)."""

    return _serialize(obj)


def _serialize(obj: Any) -> Any:
    if isinstance(obj, DashboardResult):
        return {
            "filters": dict(obj.filters),
            "metrics": _serialize(obj.metrics),
            "checkinsByActivation": _serialize(obj.checkins_by_activation),
            "checkinsByDay": _serialize(obj.checkins_by_day),
            "hourlyPeaks": _serialize(obj.hourly_peaks),
            "redemptionsByPrize": _serialize(obj.redemptions_by_prize),
            "funnel": _serialize(obj.funnel),
            "filterStats": _serialize(obj.filter_stats),
        }
    if isinstance(obj, MetricsSummary):
        return {
            "usersWithCheckins": obj.users_with_checkins,
            "totalCheckins": obj.total_checkins,
            "totalRedemptions": obj.total_redemptions,
            "publishedActivations": obj.published_activations,
            "meanRating": obj.mean_rating,
        }
    if isinstance(obj, ActivationCheckins):
        return {
            "id": obj.activation_id,
            "name": obj.name,
            "checkins": obj.checkins,
            "meanRating": obj.mean_rating,
            "kind": obj.kind,
            "location": obj.location,
            "score": obj.score,
        }
    if isinstance(obj, DailyCheckins):
        return {
            "day": obj.day.isoformat(),
            "label": obj.label,
            "checkins": obj.checkins,
            "meanRating": obj.mean_rating,
        }
    if isinstance(obj, HourlyPeaks):
        return {
            "buckets": [_serialize(bucket) for bucket in obj.buckets],
            "days": [_serialize(day) for day in obj.days],
        }
    if isinstance(obj, HourBucket):
        return {"hour": obj.hour, "label": obj.label, "checkins": obj.checkins}
    if isinstance(obj, DayOption):
        return {"value": obj.value.isoformat(), "label": obj.label}
    if isinstance(obj, PrizeRedemptions):
        return {
            "id": obj.prize_id,
            "title": obj.title,
            "redemptions": obj.redemptions,
            "points": obj.points,
            "stock": obj.stock,
        }
    if isinstance(obj, FunnelStage):
        return {
            "label": obj.label,
            "count": obj.count,
            "percentage": obj.percentage,
            "color": obj.color,
        }
    if isinstance(obj, FilterStats):
        return {
            "total": obj.total,
            "filtered": obj.filtered,
            "percentage": obj.percentage,
            "hasActiveFilters": obj.has_active_filters,
        }
    if isinstance(obj, RedemptionDetail):
        payload = obj.redemption.as_dict()
        payload["prizes"] = [prize.as_dict() for prize in obj.prizes]
        return payload
    if isinstance(obj, UserProfile):
        payload = obj.user.as_dict()
        payload.update(
            {
                "checkins": _serialize(obj.checkins),
                "redemptions": _serialize(obj.redemptions),
                "luckyNumbers": _serialize(obj.lucky_numbers),
                "evaluations": _serialize(obj.evaluations),
                "coinGuess": _serialize(obj.coin_guess),
                "survey": _serialize(obj.survey),
            }
        )
        return payload
    if isinstance(obj, ActivationStats):
        payload = obj.activation.as_dict()
        payload.update(
            {
                "totalUsers": obj.total_users,
                "totalEvaluations": obj.total_evaluations,
                "meanRating": obj.mean_rating,
                "event": _serialize(obj.event),
                "users": _serialize(obj.users),
                "evaluations": _serialize(obj.evaluations),
            }
        )
        return payload
    if isinstance(obj, EventStats):
        payload = obj.event.as_dict()
        payload.update(
            {
                "client": _serialize(obj.client),
                "totalActivations": obj.total_activations,
                "totalCheckins": obj.total_checkins,
                "totalUniqueUsers": obj.total_unique_users,
                "activations": _serialize(obj.activations),
            }
        )
        return payload
    if isinstance(obj, Record):
        return obj.as_dict()
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, Iterable) and not isinstance(obj, (str, bytes, Mapping)):
        return [_serialize(item) for item in obj]
    return obj
