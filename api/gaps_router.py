"""
Gaps API Router - REST endpoints for the free-time inventory.

Endpoints:
- GET  /api/gaps                      list gaps (optional ?date=YYYY-MM-DD)
- GET  /api/gaps/window               gaps inside the rolling window
- GET  /api/gaps/tasks                scheduled tasks (optional ?date=)
- GET  /api/gaps/validate             invariant check over stored gaps
- POST /api/gaps/initialize           generate one day (preferences required)
- POST /api/gaps/create               add a gap by hand
- POST /api/gaps/schedule             schedule a task into a gap
- POST /api/gaps/rolling-window       fill missing window days
- POST /api/gaps/preload              fill the days after the window
- POST /api/gaps/cleanup              delete gaps by id
- POST /api/gaps/prune                delete gaps older than the window
- POST /api/gaps/update-working-time  reconcile a preference change

The caller's identity arrives in the X-User-Id header; authentication happens
upstream.
"""

import logging
from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from pydantic import Field

from api.response_models import (
    CleanupResponse,
    GapListResponse,
    GapRecord,
    ReconcileResponse,
    ScheduleResponse,
    TaskListResponse,
    ValidationResponse,
    WireModel,
)
from freetime.gap_truth import (
    GapManager,
    InvalidPreferencesError,
    WorkPreferences,
    load_default_preferences,
    to_minutes,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/gaps", tags=["gaps"])


# ==== Dependencies ====


def get_gap_manager() -> GapManager:
    """GapManager over the shared store. Tests override this dependency."""
    return GapManager()


def current_user(x_user_id: str | None = Header(None, alias="X-User-Id")) -> str:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="X-User-Id header required")
    return x_user_id.strip()


def _prefs(raw: dict | None) -> WorkPreferences:
    """Preferences from a request body, or the configured defaults."""
    if raw is None:
        return load_default_preferences()
    return WorkPreferences.from_raw(raw)


def _minutes(value: int | str) -> int:
    return to_minutes(value) if isinstance(value, str) else value


def _gap_list(gaps) -> dict:
    return {"items": [g.to_record() for g in gaps], "total": len(gaps)}


# ==== Request models ====


class InitializeDayRequest(WireModel):
    date: date
    preferences: dict[str, Any] | None = None


class CreateGapRequest(WireModel):
    date: date
    start_time: int | str = Field(..., description="Minutes since midnight or HH:MM")
    end_time: int | str = Field(..., description="Minutes since midnight or HH:MM")


class ScheduleRequest(WireModel):
    gap_id: str
    task_start: int | str = Field(..., description="Minutes since midnight or HH:MM")
    task_end: int | str = Field(..., description="Minutes since midnight or HH:MM")
    task: dict[str, Any] = Field(default_factory=dict, description="Task fields (title, ...)")


class WindowRequest(WireModel):
    today: date | None = None
    preferences: dict[str, Any] | None = None
    include_preload: bool = False


class CleanupRequest(WireModel):
    gap_ids: list[str] = Field(default_factory=list)


class PruneRequest(WireModel):
    today: date | None = None


class UpdateWorkingTimeRequest(WireModel):
    old_preferences: dict[str, Any]
    new_preferences: dict[str, Any]
    today: date | None = None


# ==== Reads ====


@router.get("", response_model=GapListResponse)
async def list_gaps(
    day: date | None = Query(None, alias="date", description="Only this date"),
    user_id: str = Depends(current_user),
    manager: GapManager = Depends(get_gap_manager),
):
    return _gap_list(manager.list_gaps(user_id, day))


@router.get("/window", response_model=GapListResponse)
async def list_window(
    today: date | None = Query(None),
    include_preload: bool = Query(False, alias="includePreload"),
    user_id: str = Depends(current_user),
    manager: GapManager = Depends(get_gap_manager),
):
    return _gap_list(manager.list_gaps_in_window(user_id, today or date.today(), include_preload))


@router.get("/tasks", response_model=TaskListResponse)
async def list_tasks(
    day: date | None = Query(None, alias="date"),
    user_id: str = Depends(current_user),
    manager: GapManager = Depends(get_gap_manager),
):
    tasks = manager.list_tasks(user_id, day)
    return {"items": [t.to_record() for t in tasks], "total": len(tasks)}


@router.get("/validate", response_model=ValidationResponse)
async def validate_gaps(
    day: date | None = Query(None, alias="date"),
    user_id: str = Depends(current_user),
    manager: GapManager = Depends(get_gap_manager),
):
    violations = manager.validate_day(user_id, day)
    return {"valid": not violations, "violations": [v.describe() for v in violations]}


# ==== Writes ====


@router.post("/initialize", response_model=GapListResponse)
async def initialize_day(
    request: InitializeDayRequest,
    user_id: str = Depends(current_user),
    manager: GapManager = Depends(get_gap_manager),
):
    if request.preferences is None:
        raise InvalidPreferencesError("preferences are required", {"missing": ["preferences"]})
    gaps = manager.initialize_day(user_id, request.date, WorkPreferences.from_raw(request.preferences))
    return _gap_list(gaps)


@router.post("/create", response_model=GapRecord, status_code=201)
async def create_gap(
    request: CreateGapRequest,
    user_id: str = Depends(current_user),
    manager: GapManager = Depends(get_gap_manager),
):
    gap = manager.create_gap(user_id, request.date, _minutes(request.start_time), _minutes(request.end_time))
    return gap.to_record()


@router.post("/schedule", response_model=ScheduleResponse)
async def schedule_task(
    request: ScheduleRequest,
    user_id: str = Depends(current_user),
    manager: GapManager = Depends(get_gap_manager),
):
    result = manager.schedule_task(
        user_id,
        request.gap_id,
        _minutes(request.task_start),
        _minutes(request.task_end),
        request.task,
    )
    return result.to_dict()


@router.post("/rolling-window", response_model=GapListResponse)
async def rolling_window(
    request: WindowRequest,
    user_id: str = Depends(current_user),
    manager: GapManager = Depends(get_gap_manager),
):
    gaps = manager.ensure_window(
        user_id,
        _prefs(request.preferences),
        request.today or date.today(),
        include_preload=request.include_preload,
    )
    return _gap_list(gaps)


@router.post("/preload", response_model=GapListResponse)
async def preload(
    request: WindowRequest,
    user_id: str = Depends(current_user),
    manager: GapManager = Depends(get_gap_manager),
):
    gaps = manager.preload(user_id, _prefs(request.preferences), request.today or date.today())
    return _gap_list(gaps)


@router.post("/cleanup", response_model=CleanupResponse)
async def cleanup(
    request: CleanupRequest,
    user_id: str = Depends(current_user),
    manager: GapManager = Depends(get_gap_manager),
):
    return {"deleted": manager.cleanup_gaps(user_id, request.gap_ids)}


@router.post("/prune", response_model=CleanupResponse)
async def prune(
    request: PruneRequest,
    user_id: str = Depends(current_user),
    manager: GapManager = Depends(get_gap_manager),
):
    return manager.prune_window(user_id, request.today or date.today())


@router.post("/update-working-time", response_model=ReconcileResponse)
async def update_working_time(
    request: UpdateWorkingTimeRequest,
    user_id: str = Depends(current_user),
    manager: GapManager = Depends(get_gap_manager),
):
    old_prefs = WorkPreferences.from_raw(request.old_preferences)
    new_prefs = WorkPreferences.from_raw(request.new_preferences)
    return manager.reconcile_preference_change(
        user_id, old_prefs, new_prefs, today=request.today or date.today()
    )
