"""
Shared Pydantic response models for the gaps API.

Field names are snake_case in Python and camelCase on the wire, matching the
record shape other collaborators already read (userId, startTime, ...).

Usage:
    from api.response_models import GapListResponse

    @router.get("", response_model=GapListResponse)
    async def list_gaps(): ...
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """camelCase on the wire, snake_case accepted on input too."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ==== Gap / Task records ====


class GapRecord(WireModel):
    id: str
    user_id: str
    date: str = Field(description="YYYY-MM-DD")
    start_time: int = Field(description="Minutes since midnight, inclusive")
    end_time: int = Field(description="Minutes since midnight, exclusive")
    duration_minutes: int
    parent_gap_id: str | None = None
    original_gap_id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    modified_by: str = "system"


class TaskRecord(WireModel):
    id: str
    user_id: str
    title: str
    payload: dict[str, Any] = Field(default_factory=dict)
    scheduled_gap_id: str | None = None
    due_date: str
    due_time: str = Field(description="HH:MM")
    end_time: int | None = None
    status: str = "scheduled"
    created_at: str | None = None
    updated_at: str | None = None


# ==== List Envelope ====
# Shape: {items, total}


class GapListResponse(WireModel):
    items: list[GapRecord] = Field(default_factory=list)
    total: int = Field(description="Total count")


class TaskListResponse(WireModel):
    items: list[TaskRecord] = Field(default_factory=list)
    total: int = Field(description="Total count")


# ==== Mutation Results ====


class ScheduleResponse(WireModel):
    """Task created from a gap, plus what is left of the gap."""

    task: TaskRecord
    consumed_gap_id: str
    remainder_gaps: list[GapRecord] = Field(default_factory=list)


class ReconcileResponse(WireModel):
    """Counts of a preference-change reconciliation."""

    created: int = 0
    deleted: int = 0
    updated: int = 0


class CleanupResponse(WireModel):
    deleted: int = 0
    dates: list[str] = Field(default_factory=list, description="Pruned dates, oldest first")


class ValidationResponse(WireModel):
    valid: bool
    violations: list[str] = Field(default_factory=list)


# ==== Errors / Health ====


class ErrorResponse(BaseModel):
    """Body of every 4xx/5xx raised by the gap core."""

    error: str = Field(description="Machine-readable error code")
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    status: str = Field(description="healthy or error")
    schema_version: int | None = None
    timestamp: str = Field(description="ISO timestamp")
