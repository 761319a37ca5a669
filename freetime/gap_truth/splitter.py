"""
Gap Splitter - carve a task interval out of a gap.

Produces zero, one or two remainder gaps. The caller deletes the original,
inserts the remainders and creates the task, in that order.
"""

from dataclasses import dataclass
from datetime import datetime

from .errors import OutOfBoundsError
from .models import MODIFIED_BY_USER, Gap, new_gap_id
from .time_math import format_span


@dataclass
class SplitResult:
    consumed: Gap
    before: Gap | None = None
    after: Gap | None = None

    @property
    def remainders(self) -> list[Gap]:
        return [g for g in (self.before, self.after) if g is not None]


def split_gap_for_task(
    gap: Gap,
    task_start: int,
    task_end: int,
    now: datetime | None = None,
    id_factory=new_gap_id,
) -> SplitResult:
    """
    Split gap around [task_start, task_end).

    Remainders point at the consumed gap as parent and at the root of the
    split chain as original.

    Raises:
        OutOfBoundsError: the task interval is empty or leaves the gap
    """
    if not (task_start < task_end and gap.contains(task_start, task_end)):
        raise OutOfBoundsError(
            f"Task {task_start}-{task_end} does not fit in gap {gap.id} ({gap.label})",
            {
                "gap_id": gap.id,
                "gap": format_span(gap.start_time, gap.end_time),
                "task_start": task_start,
                "task_end": task_end,
            },
        )

    lineage = {
        "parent_gap_id": gap.id,
        "original_gap_id": gap.original_gap_id or gap.id,
        "modified_by": MODIFIED_BY_USER,
    }
    result = SplitResult(consumed=gap)

    if task_start > gap.start_time:
        result.before = Gap.create(
            gap.user_id, gap.date, gap.start_time, task_start, now=now, id_factory=id_factory, **lineage
        )
    if task_end < gap.end_time:
        result.after = Gap.create(
            gap.user_id, gap.date, task_end, gap.end_time, now=now, id_factory=id_factory, **lineage
        )

    return result
