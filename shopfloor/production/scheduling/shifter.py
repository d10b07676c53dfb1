"""
Task shifting: move a batch of planned tasks onto the plant calendar.

Pure functions over value objects. No database, no clock reads: the caller
supplies the tasks, the committed occupancy and the target instant.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional

from shopfloor.production.scheduling.calendar import DEFAULT_CALENDAR, WorkCalendar

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Task:
    """One unit of planned production work on a machine."""
    id: Any
    machine: Optional[str]
    planned_start: datetime
    planned_end: datetime
    order_id: Optional[str] = None

    @property
    def duration_minutes(self) -> int:
        # Truncated toward zero; a malformed span gives a non-positive value
        return int((self.planned_end - self.planned_start).total_seconds() / 60)


@dataclass(frozen=True)
class OccupancySpan:
    """Read-only view of committed work, used only for collision checks."""
    machine: Optional[str]
    start: datetime
    end: datetime
    order_id: Optional[str] = None

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.start < end and self.end > start


SpanMatcher = Callable[[OccupancySpan, Task], bool]


def same_machine(span: OccupancySpan, task: Task) -> bool:
    return span.machine == task.machine


def same_machine_or_order(span: OccupancySpan, task: Task) -> bool:
    """A piece can't run on two machines at once, so its own order blocks too."""
    if span.machine == task.machine:
        return True
    return task.order_id is not None and span.order_id == task.order_id


def find_collision(
    task: Task,
    start: datetime,
    end: datetime,
    occupancy: List[OccupancySpan],
    matches: SpanMatcher = same_machine,
) -> Optional[OccupancySpan]:
    """
    First span in iteration order that blocks [start, end) for this task.

    Spans are not sorted by start time; the caller's order decides which
    collision wins when several overlap.
    """
    for span in occupancy:
        if matches(span, task) and span.overlaps(start, end):
            return span
    return None


def _place_task(
    task: Task,
    offset: timedelta,
    occupancy: List[OccupancySpan],
    calendar: WorkCalendar,
    matches: SpanMatcher,
) -> Task:
    duration = task.duration_minutes

    start = calendar.next_valid_work_time(task.planned_start + offset)
    end = calendar.advance_working_minutes(start, duration)

    # Only one retry: a span hit after jumping past the first one is not re-checked
    collision = find_collision(task, start, end, occupancy, matches)
    if collision is not None:
        logger.debug(
            "Task %s on %s collides with %s-%s; moving after it",
            task.id, task.machine, collision.start, collision.end,
        )
        start = calendar.next_valid_work_time(collision.end)
        end = calendar.advance_working_minutes(start, duration)

    return replace(task, planned_start=start, planned_end=end)


def shift_batch(
    tasks: Iterable[Task],
    target_instant: datetime,
    occupancy: Iterable[OccupancySpan],
    calendar: Optional[WorkCalendar] = None,
) -> List[Task]:
    """
    Re-anchor a batch so its earliest task starts at the first working instant
    at or after target_instant.

    Every task moves by the same offset, is snapped into working time, has its
    duration walked through the calendar and, if it lands on a busy machine,
    is moved once past the first conflicting span.

    Args:
        tasks: Tasks to move. Must not appear in `occupancy`.
        target_instant: Where the batch should start (normally "now").
        occupancy: Committed work on the plant's machines.
        calendar: Work calendar (defaults to Mon-Sat 06:00-22:00)

    Returns:
        list: New Task values, same order as the input
    """
    calendar = calendar or DEFAULT_CALENDAR
    tasks = list(tasks)
    if not tasks:
        return []

    occupancy = list(occupancy)

    earliest_original = min(task.planned_start for task in tasks)
    new_global_start = calendar.next_valid_work_time(target_instant)
    offset = new_global_start - earliest_original

    logger.debug(
        "Shifting %d tasks: earliest %s -> %s (offset %s)",
        len(tasks), earliest_original, new_global_start, offset,
    )

    return [
        _place_task(task, offset, occupancy, calendar, same_machine)
        for task in tasks
    ]


def shift_by_work_days(
    tasks: Iterable[Task],
    offset_days: int,
    occupancy: Iterable[OccupancySpan],
    calendar: Optional[WorkCalendar] = None,
) -> List[Task]:
    """
    Move a scenario forward (positive) or backward (negative) by working days.

    The earliest task lands at the opening of the day `offset_days` working
    days away; the rest keep their distance to it. Collisions count both the
    machine and the task's own order.
    """
    calendar = calendar or DEFAULT_CALENDAR
    tasks = list(tasks)
    if offset_days == 0 or not tasks:
        return tasks

    occupancy = list(occupancy)

    earliest_start = min(task.planned_start for task in tasks)
    target = calendar.add_working_days(earliest_start, offset_days)
    target = calendar.next_valid_work_time(
        target.replace(hour=calendar.start_hour, minute=0, second=0, microsecond=0)
    )
    offset = target - earliest_start

    return [
        _place_task(task, offset, occupancy, calendar, same_machine_or_order)
        for task in tasks
    ]


def select_fixed_occupancy(records: Iterable[Dict[str, Any]], reference: datetime) -> List[OccupancySpan]:
    """
    Pick the committed records that cannot move and turn them into obstacles.

    A record is fixed when it is locked, has been checked in (work started) or
    starts before `reference`. Future, unlocked, unstarted records are left out
    so they can be re-planned.

    Args:
        records: Dicts with machine, order_id, planned_date, planned_end, locked, check_in
        reference: Usually the snapped "now"
    """
    spans = []
    for record in records:
        is_future = record['planned_date'] >= reference
        is_fixed = bool(record.get('locked')) or record.get('check_in') is not None or not is_future
        if not is_fixed:
            continue
        spans.append(OccupancySpan(
            machine=record.get('machine'),
            start=record['planned_date'],
            end=record['planned_end'],
            order_id=record.get('order_id'),
        ))
    return spans
