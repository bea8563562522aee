from __future__ import annotations

import logging
import threading
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from . import aggregations, relations
from .config import DashboardSettings, load_settings
from .filters import FilterState, InvalidFilterError
from .models import serialize
from .repository import SnapshotLoadError, SnapshotRepository, build_repository, load_snapshot
from .service import DashboardService

logger = logging.getLogger(__name__)

router = APIRouter()


class SnapshotState:
    """
    Lazily performs the one snapshot load of the process.

    A failed load is terminal: the error is kept and every later request
    gets it again without another attempt.
    """

    def __init__(
        self,
        repository: Optional[SnapshotRepository],
        settings: DashboardSettings,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.repository = repository
        self.settings = settings
        self.clock = clock
        self._service: Optional[DashboardService] = None
        self._error: Optional[SnapshotLoadError] = None
        self._lock = threading.Lock()

    def service(self) -> DashboardService:
        with self._lock:
            if self._service is not None:
                return self._service
            if self._error is not None:
                raise HTTPException(status_code=503, detail=f"Snapshot unavailable: {self._error}")
            if self.repository is None:
                raise HTTPException(
                    status_code=503,
                    detail=(
                        "No snapshot source configured; "
                        "set DASHBOARD_SOURCE_URL or DASHBOARD_DATABASE_URL."
                    ),
                )
            try:
                snapshot = load_snapshot(self.repository, timezone=self.settings.timezone)
            except SnapshotLoadError as exc:
                self._error = exc
                raise HTTPException(status_code=503, detail=f"Snapshot unavailable: {exc}") from exc
            self._service = DashboardService(
                snapshot,
                clock=self.clock,
                cache_size=self.settings.view_cache_size,
            )
            return self._service


class DashboardResponse(BaseModel):
    data: Dict[str, Any]
    filters: Dict[str, Any]


def get_service(request: Request) -> DashboardService:
    return request.app.state.snapshot_state.service()


def get_filter_state(
    hasAccount: Optional[str] = Query(None),
    ageBand: Optional[str] = Query(None),
    selectedActivationId: Optional[str] = Query(None),
) -> FilterState:
    try:
        return FilterState.from_mapping(
            {
                "hasAccount": hasAccount,
                "ageBand": ageBand,
                "selectedActivationId": selectedActivationId,
            }
        )
    except InvalidFilterError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.get("/health")
async def health() -> Dict[str, str]:
    return {"status": "ok"}


@router.get("/dashboard", response_model=DashboardResponse)
async def dashboard_endpoint(
    day: Optional[date] = Query(None),
    state: FilterState = Depends(get_filter_state),
    service: DashboardService = Depends(get_service),
) -> DashboardResponse:
    result = service.build(state, day)
    return DashboardResponse(data=result.as_dict(), filters=state.as_dict())


@router.get("/metrics")
async def metrics_endpoint(
    state: FilterState = Depends(get_filter_state),
    service: DashboardService = Depends(get_service),
) -> Dict[str, Any]:
    return serialize(aggregations.metrics(service.view(state)))


@router.get("/checkins/by-activation")
async def checkins_by_activation_endpoint(
    state: FilterState = Depends(get_filter_state),
    service: DashboardService = Depends(get_service),
) -> List[Dict[str, Any]]:
    return serialize(aggregations.checkins_by_activation(service.view(state)))


@router.get("/checkins/by-day")
async def checkins_by_day_endpoint(
    state: FilterState = Depends(get_filter_state),
    service: DashboardService = Depends(get_service),
) -> List[Dict[str, Any]]:
    return serialize(aggregations.checkins_by_day(service.view(state)))


@router.get("/checkins/hourly")
async def hourly_peaks_endpoint(
    day: Optional[date] = Query(None),
    state: FilterState = Depends(get_filter_state),
    service: DashboardService = Depends(get_service),
) -> Dict[str, Any]:
    return serialize(aggregations.hourly_peaks(service.view(state), day))


@router.get("/redemptions/by-prize")
async def redemptions_by_prize_endpoint(
    state: FilterState = Depends(get_filter_state),
    service: DashboardService = Depends(get_service),
) -> List[Dict[str, Any]]:
    return serialize(aggregations.redemptions_by_prize(service.view(state)))


@router.get("/funnel")
async def funnel_endpoint(
    state: FilterState = Depends(get_filter_state),
    service: DashboardService = Depends(get_service),
) -> List[Dict[str, Any]]:
    return serialize(aggregations.funnel(service.view(state)))


@router.get("/filter-stats")
async def filter_stats_endpoint(
    state: FilterState = Depends(get_filter_state),
    service: DashboardService = Depends(get_service),
) -> Dict[str, Any]:
    return serialize(aggregations.filter_stats(service.view(state)))


@router.get("/filter-options")
async def filter_options_endpoint(service: DashboardService = Depends(get_service)) -> Dict[str, Any]:
    return service.filter_options()


@router.get("/users/{user_id}")
async def user_profile_endpoint(user_id: int, service: DashboardService = Depends(get_service)) -> Dict[str, Any]:
    profile = relations.user_profile(service.snapshot, user_id)
    if profile is None:
        raise HTTPException(status_code=404, detail=f"User {user_id} not found")
    return profile.as_dict()


@router.get("/activations/{activation_id}")
async def activation_stats_endpoint(
    activation_id: int, service: DashboardService = Depends(get_service)
) -> Dict[str, Any]:
    stats = relations.activation_stats(service.snapshot, activation_id)
    if stats is None:
        raise HTTPException(status_code=404, detail=f"Activation {activation_id} not found")
    return stats.as_dict()


@router.get("/events/{event_id}")
async def event_stats_endpoint(event_id: int, service: DashboardService = Depends(get_service)) -> Dict[str, Any]:
    stats = relations.event_stats(service.snapshot, event_id)
    if stats is None:
        raise HTTPException(status_code=404, detail=f"Event {event_id} not found")
    return stats.as_dict()


def create_app(
    repository: Optional[SnapshotRepository] = None,
    settings: Optional[DashboardSettings] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> FastAPI:
    cfg = settings or load_settings()
    source = repository if repository is not None else build_repository(cfg)
    if source is None:
        logger.warning("No snapshot source configured; dashboard endpoints will answer 503")

    app = FastAPI(title="Participation Dashboard API", version="0.1.0")
    app.state.snapshot_state = SnapshotState(source, cfg, clock=clock)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


app = create_app()
