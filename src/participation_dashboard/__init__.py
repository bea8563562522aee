"""
Participation dashboard engine.

Loads one immutable snapshot of the event program's tables (users, check-ins,
activations, redemptions, evaluations, ...), narrows it with user-selected
filters and derives the series the dashboard charts need.
"""

from .aggregations import (  # noqa: F401
    checkins_by_activation,
    checkins_by_day,
    filter_stats,
    funnel,
    group_stats,
    hourly_peaks,
    metrics,
    rank_by_count,
    redemptions_by_prize,
)
from .filters import (  # noqa: F401
    AgeBand,
    CascadeOrder,
    FilteredView,
    FilterState,
    InvalidFilterError,
    cascades_commute,
    classify_age,
    filter_view,
)
from .models import (  # noqa: F401
    ActivationCheckins,
    ActivationStats,
    DailyCheckins,
    DashboardResult,
    DayOption,
    EventStats,
    FilterStats,
    FunnelStage,
    HourBucket,
    HourlyPeaks,
    MetricsSummary,
    PrizeRedemptions,
    RedemptionDetail,
    UserProfile,
)
from .repository import (  # noqa: F401
    HttpSnapshotRepository,
    SnapshotLoadError,
    SnapshotRepository,
    SQLSnapshotRepository,
    build_repository,
    load_snapshot,
)
from .service import DashboardService  # noqa: F401
from .snapshot import Record, Snapshot  # noqa: F401
