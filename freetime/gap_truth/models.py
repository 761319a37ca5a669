"""
Gap and Task records.

A Gap is a half-open [start_time, end_time) interval, in minutes since
midnight, owned by one user on one naive calendar date.
"""

import json
import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime

from .time_math import format_span, to_minutes, to_time_string

MODIFIED_BY_SYSTEM = "system"
MODIFIED_BY_USER = "user"


def new_gap_id() -> str:
    return f"gap_{uuid.uuid4().hex[:16]}"


def new_task_id() -> str:
    return f"task_{uuid.uuid4().hex[:16]}"


def _now_iso(now: datetime | None = None) -> str:
    return (now or datetime.now()).isoformat()


@dataclass
class Gap:
    id: str
    user_id: str
    date: date
    start_time: int
    end_time: int
    parent_gap_id: str | None = None
    original_gap_id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    modified_by: str = MODIFIED_BY_SYSTEM
    duration_minutes: int = field(init=False)

    def __post_init__(self):
        self.duration_minutes = self.end_time - self.start_time

    @classmethod
    def create(
        cls,
        user_id: str,
        day: date,
        start_time: int,
        end_time: int,
        now: datetime | None = None,
        id_factory=new_gap_id,
        **lineage,
    ) -> "Gap":
        """Build a fresh gap with a new id and matching created/updated stamps."""
        stamp = _now_iso(now)
        return cls(
            id=id_factory(),
            user_id=user_id,
            date=day,
            start_time=start_time,
            end_time=end_time,
            created_at=stamp,
            updated_at=stamp,
            **lineage,
        )

    @property
    def label(self) -> str:
        return f"{self.date.isoformat()} {format_span(self.start_time, self.end_time)}"

    def overlaps(self, start: int, end: int) -> bool:
        return self.start_time < end and start < self.end_time

    def contains(self, start: int, end: int) -> bool:
        return self.start_time <= start and end <= self.end_time

    def with_bounds(self, start_time: int, end_time: int, now: datetime | None = None) -> "Gap":
        """Copy with new boundaries, recomputed duration and a system stamp."""
        return replace(
            self,
            start_time=start_time,
            end_time=end_time,
            updated_at=_now_iso(now),
            modified_by=MODIFIED_BY_SYSTEM,
        )

    def to_row(self) -> dict:
        """Row for the gaps table."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "date": self.date.isoformat(),
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration_minutes": self.duration_minutes,
            "parent_gap_id": self.parent_gap_id,
            "original_gap_id": self.original_gap_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "modified_by": self.modified_by,
        }

    def to_record(self) -> dict:
        """Wire shape shared with other collaborators (camelCase field names)."""
        return {
            "id": self.id,
            "userId": self.user_id,
            "date": self.date.isoformat(),
            "startTime": self.start_time,
            "endTime": self.end_time,
            "durationMinutes": self.duration_minutes,
            "parentGapId": self.parent_gap_id,
            "originalGapId": self.original_gap_id,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "modifiedBy": self.modified_by,
        }

    @classmethod
    def from_row(cls, row: dict) -> "Gap":
        gap = cls(
            id=row["id"],
            user_id=row["user_id"],
            date=date.fromisoformat(row["date"]),
            start_time=int(row["start_time"]),
            end_time=int(row["end_time"]),
            parent_gap_id=row.get("parent_gap_id"),
            original_gap_id=row.get("original_gap_id"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
            modified_by=row.get("modified_by") or MODIFIED_BY_SYSTEM,
        )
        # Keep the stored value so the invariant checker can see a mismatch
        if row.get("duration_minutes") is not None:
            gap.duration_minutes = int(row["duration_minutes"])
        return gap


@dataclass
class Task:
    id: str
    user_id: str
    title: str
    scheduled_gap_id: str | None
    due_date: date
    due_time: int
    end_time: int | None
    payload: dict = field(default_factory=dict)
    status: str = "scheduled"
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_payload(
        cls,
        user_id: str,
        gap: Gap,
        task_start: int,
        task_end: int,
        payload: dict | None,
        now: datetime | None = None,
    ) -> "Task":
        payload = dict(payload or {})
        stamp = _now_iso(now)
        return cls(
            id=payload.pop("id", None) or new_task_id(),
            user_id=user_id,
            title=str(payload.pop("title", "") or "Untitled task")[:200],
            scheduled_gap_id=gap.id,
            due_date=gap.date,
            due_time=task_start,
            end_time=task_end,
            payload=payload,
            created_at=stamp,
            updated_at=stamp,
        )

    @classmethod
    def from_row(cls, row: dict) -> "Task":
        payload = row.get("payload")
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            scheduled_gap_id=row.get("scheduled_gap_id"),
            due_date=date.fromisoformat(row["due_date"]),
            due_time=to_minutes(row["due_time"]),
            end_time=int(row["end_time"]) if row.get("end_time") is not None else None,
            payload=json.loads(payload) if payload else {},
            status=row.get("status") or "scheduled",
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "payload": json.dumps(self.payload),
            "scheduled_gap_id": self.scheduled_gap_id,
            "due_date": self.due_date.isoformat(),
            "due_time": to_time_string(self.due_time),
            "end_time": self.end_time,
            "status": self.status,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "title": self.title,
            "payload": self.payload,
            "scheduledGapId": self.scheduled_gap_id,
            "dueDate": self.due_date.isoformat(),
            "dueTime": to_time_string(self.due_time),
            "endTime": self.end_time,
            "status": self.status,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
