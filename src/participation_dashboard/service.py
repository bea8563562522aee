from __future__ import annotations

from datetime import date, datetime
from functools import lru_cache
from typing import Any, Callable, Dict, Optional, Union

from . import aggregations
from .filters import AgeBand, FilteredView, FilterState, filter_view
from .models import DashboardResult, serialize
from .relations import unique_values
from .schema import ACTIVATION_KIND, ACTIVATION_NAME, Entity
from .snapshot import Snapshot, normalize_datetime


class DashboardService:
    """
    Aggregates participation analytics for one loaded snapshot.

    The clock is injected so the instant ages are computed at can be pinned.
    Views are memoized per (FilterState, evaluation day); the snapshot never
    changes, so cached views never go stale.
    """

    def __init__(
        self,
        snapshot: Snapshot,
        clock: Optional[Callable[[], datetime]] = None,
        cache_size: int = 64,
    ) -> None:
        self.snapshot = snapshot
        self.clock = clock or (lambda: datetime.now(snapshot.tz))
        self._cached_view = lru_cache(maxsize=max(1, cache_size))(self._build_view)

    def today(self) -> date:
        return normalize_datetime(self.clock(), self.snapshot.tz).date()

    def view(self, state: FilterState, as_of: Optional[date] = None) -> FilteredView:
        return self._cached_view(state, as_of or self.today())

    def _build_view(self, state: FilterState, as_of: date) -> FilteredView:
        return filter_view(self.snapshot, state, as_of)

    def build(self, state: FilterState, day: Optional[Union[date, str]] = None) -> DashboardResult:
        view = self.view(state)
        return DashboardResult(
            filters=state.as_dict(),
            metrics=aggregations.metrics(view),
            checkins_by_activation=aggregations.checkins_by_activation(view),
            checkins_by_day=aggregations.checkins_by_day(view),
            hourly_peaks=aggregations.hourly_peaks(view, day),
            redemptions_by_prize=aggregations.redemptions_by_prize(view),
            funnel=aggregations.funnel(view),
            filter_stats=aggregations.filter_stats(view),
        )

    def filter_options(self) -> Dict[str, Any]:
        """Choices for the filter controls, taken from the unfiltered snapshot."""

        activations = [
            {"id": activation.id, "name": activation.get(ACTIVATION_NAME) or f"Activation {activation.id}"}
            for activation in self.snapshot.records(Entity.ACTIVATIONS)
            if activation.id is not None and activation.is_published
        ]
        unfiltered = self.view(FilterState())
        return {
            "hasAccount": [True, False],
            "ageBand": [band.value for band in AgeBand],
            "activations": activations,
            "activationKinds": list(unique_values(self.snapshot, Entity.ACTIVATIONS, ACTIVATION_KIND)),
            "days": serialize(aggregations.hourly_peaks(unfiltered).days),
        }
