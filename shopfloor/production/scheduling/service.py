"""
Scheduling service for moving PlanningTask records with the task shifter.

Loads the batch and the committed occupancy from the database, runs the pure
shifting logic and writes the new planned_date / planned_end back. Also feeds
the committed schedule to the automated planner.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from flask import current_app
from sqlalchemy import or_

from shopfloor.datetime_utils import parse_planning_timestamp, plant_now
from shopfloor.models import PlanningTask, db
from shopfloor.logging_config import get_logger, PlanningOperationContext
from shopfloor.production.scheduling.calendar import WorkCalendar
from shopfloor.production.scheduling.config import calendar_from_config
from shopfloor.production.scheduling.metrics import summarize_schedule
from shopfloor.production.scheduling.planner import (
    Order,
    PlanningResult,
    SchedulingStrategy,
    StrategyConfig,
    generate_automated_planning,
)
from shopfloor.production.scheduling.shifter import (
    OccupancySpan,
    Task,
    select_fixed_occupancy,
    shift_batch,
    shift_by_work_days,
)

logger = get_logger(__name__)


class PlanningTaskNotFound(LookupError):
    """Raised when some requested planning task ids do not exist."""

    def __init__(self, missing_ids):
        self.missing_ids = list(missing_ids)
        super().__init__(f"Planning tasks not found: {self.missing_ids}")


def get_work_calendar() -> WorkCalendar:
    """Work calendar for the current app config."""
    return calendar_from_config(current_app.config)


def _snap_minutes() -> int:
    return int(current_app.config.get('SHIFT_SNAP_MINUTES', 15))


def resolve_shift_target(raw_target=None, snap: bool = True, calendar: Optional[WorkCalendar] = None) -> datetime:
    """
    Target instant for a shift, as the HTTP API and the preview CLI both take it.

    raw_target is an ISO timestamp (or datetime); empty means plant-local now.
    Unless snap is False the result is rounded up to SHIFT_SNAP_MINUTES.

    Raises:
        ValueError: if raw_target is not a timestamp
    """
    tz_name = current_app.config['PLANT_TIMEZONE']
    if raw_target:
        target = parse_planning_timestamp(raw_target, tz_name)
    else:
        target = plant_now(tz_name)

    if snap:
        calendar = calendar or get_work_calendar()
        target = calendar.snap_to_next_quarter_hour(target, _snap_minutes())
    return target


def planning_start(calendar: WorkCalendar, now: Optional[datetime] = None) -> datetime:
    """First working instant at or after now, snapped. Records before it count as past."""
    if now is None:
        now = plant_now(current_app.config['PLANT_TIMEZONE'])
    return calendar.next_valid_work_time(calendar.snap_to_next_quarter_hour(now, _snap_minutes()))


def task_from_record(record: PlanningTask) -> Task:
    return Task(
        id=record.id,
        machine=record.machine,
        planned_start=record.planned_date,
        planned_end=record.planned_end,
        order_id=record.order_id,
    )


def _record_values(record: PlanningTask) -> Dict[str, Any]:
    return {
        'machine': record.machine,
        'order_id': record.order_id,
        'planned_date': record.planned_date,
        'planned_end': record.planned_end,
        'locked': record.locked,
        'check_in': record.check_in,
    }


def fetch_planning_tasks(task_ids: Iterable[int]) -> List[PlanningTask]:
    """
    Load planning tasks by id, ordered by planned start.

    Raises:
        PlanningTaskNotFound: if any id is missing
    """
    ids = list(dict.fromkeys(task_ids))
    if not ids:
        return []

    records = (
        PlanningTask.query
        .filter(PlanningTask.id.in_(ids))
        .order_by(PlanningTask.planned_date.asc(), PlanningTask.id.asc())
        .all()
    )

    found = {record.id for record in records}
    missing = [task_id for task_id in ids if task_id not in found]
    if missing:
        raise PlanningTaskNotFound(missing)

    return records


def build_occupancy(
    machines: Iterable[Optional[str]],
    exclude_ids: Iterable[int],
    fixed_only: bool = False,
    reference: Optional[datetime] = None,
    order_ids: Iterable[str] = (),
) -> List[OccupancySpan]:
    """
    Committed work that a shifted batch must not overlap.

    Args:
        machines: Machines used by the batch
        exclude_ids: The batch itself (never its own obstacle)
        fixed_only: Keep only locked, started or past records (see select_fixed_occupancy)
        reference: Cut-off for "past" when fixed_only is set
        order_ids: Also include records of these orders (scenario shifts)

    Returns:
        list: OccupancySpan values in insertion (id) order
    """
    machines = set(machines)
    order_ids = {order_id for order_id in order_ids if order_id is not None}

    conditions = []
    named_machines = [m for m in machines if m is not None]
    if named_machines:
        conditions.append(PlanningTask.machine.in_(named_machines))
    if None in machines:
        conditions.append(PlanningTask.machine.is_(None))
    if order_ids:
        conditions.append(PlanningTask.order_id.in_(order_ids))
    if not conditions:
        return []

    query = PlanningTask.query.filter(or_(*conditions))
    exclude_ids = list(exclude_ids)
    if exclude_ids:
        query = query.filter(~PlanningTask.id.in_(exclude_ids))
    records = query.order_by(PlanningTask.id.asc()).all()

    if fixed_only:
        if reference is None:
            raise ValueError("reference is required when fixed_only is set")
        return select_fixed_occupancy([_record_values(r) for r in records], reference)

    return [
        OccupancySpan(
            machine=record.machine,
            start=record.planned_date,
            end=record.planned_end,
            order_id=record.order_id,
        )
        for record in records
    ]


def compute_shift(
    task_ids: Iterable[int],
    target: datetime,
    fixed_only: bool = False,
    calendar: Optional[WorkCalendar] = None,
    now: Optional[datetime] = None,
) -> Tuple[List[PlanningTask], List[Task]]:
    """
    Proposed placement for moving the batch to `target`. Writes nothing.

    With fixed_only, "past" means before planning_start(now), not before the
    target: a future record stays re-plannable even when the target is later.
    """
    calendar = calendar or get_work_calendar()

    records = fetch_planning_tasks(task_ids)
    tasks = [task_from_record(record) for record in records]
    occupancy = build_occupancy(
        {task.machine for task in tasks},
        [record.id for record in records],
        fixed_only=fixed_only,
        reference=planning_start(calendar, now) if fixed_only else None,
    )

    return records, shift_batch(tasks, target, occupancy, calendar)


def compute_shift_by_days(
    task_ids: Iterable[int],
    offset_days: int,
    calendar: Optional[WorkCalendar] = None,
) -> Tuple[List[PlanningTask], List[Task]]:
    """Proposed placement for moving the batch by working days. Writes nothing."""
    calendar = calendar or get_work_calendar()

    records = fetch_planning_tasks(task_ids)
    tasks = [task_from_record(record) for record in records]
    occupancy = build_occupancy(
        {task.machine for task in tasks},
        [record.id for record in records],
        order_ids={task.order_id for task in tasks},
    )

    return records, shift_by_work_days(tasks, offset_days, occupancy, calendar)


def apply_shifted_tasks(records: List[PlanningTask], shifted: List[Task]) -> int:
    """
    Copy shifted start/end onto their records.

    Returns:
        int: Number of records whose dates changed
    """
    records_by_id = {record.id: record for record in records}
    updated_count = 0

    for task in shifted:
        record = records_by_id[task.id]
        old_start = record.planned_date
        old_end = record.planned_end

        if old_start == task.planned_start and old_end == task.planned_end:
            continue

        record.planned_date = task.planned_start
        record.planned_end = task.planned_end
        record.last_updated_at = datetime.utcnow()
        updated_count += 1

        logger.info(
            "Planning task moved",
            task_id=record.id,
            machine=record.machine,
            planned_date=f"{old_start}→{task.planned_start}",
            planned_end=f"{old_end}→{task.planned_end}",
        )

    return updated_count


def _commit_shift(records, shifted, calendar, commit) -> Dict[str, Any]:
    updated_count = apply_shifted_tasks(records, shifted)

    if commit:
        try:
            db.session.commit()
        except Exception as exc:
            logger.error("Error committing shifted planning tasks", error=str(exc), exc_info=True)
            db.session.rollback()
            raise

    metrics = summarize_schedule(shifted, calendar=calendar)

    return {
        'tasks': [record.to_dict() for record in records],
        'updated': updated_count,
        'metrics': metrics.to_dict(),
    }


def shift_planning_tasks(
    task_ids: Iterable[int],
    target: datetime,
    fixed_only: bool = False,
    commit: bool = True,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Move a batch of planning tasks so it starts at the first working time at or after `target`.

    Args:
        task_ids: Ids of the PlanningTask rows to move
        target: Naive plant-local instant (normally "now")
        fixed_only: Only locked/started/past tasks count as obstacles
        commit: Whether to commit the database transaction (default: True)
        now: Plant-local "now" for the past cut-off (defaults to the wall clock)

    Returns:
        dict: tasks (updated records), updated (count), metrics
    """
    task_ids = list(task_ids)
    calendar = get_work_calendar()

    with PlanningOperationContext("shift_to_target", task_count=len(task_ids), target=str(target)) as operation:
        records, shifted = compute_shift(
            task_ids, target, fixed_only=fixed_only, calendar=calendar, now=now
        )
        result = _commit_shift(records, shifted, calendar, commit)
        operation.record(updated=result['updated'])
        return result


def shift_planning_tasks_by_days(
    task_ids: Iterable[int],
    offset_days: int,
    commit: bool = True,
) -> Dict[str, Any]:
    """
    Move a batch of planning tasks by `offset_days` working days.

    Returns:
        dict: tasks (updated records), updated (count), metrics
    """
    task_ids = list(task_ids)
    calendar = get_work_calendar()

    with PlanningOperationContext("shift_by_days", task_count=len(task_ids), offset_days=offset_days) as operation:
        records, shifted = compute_shift_by_days(task_ids, offset_days, calendar=calendar)
        result = _commit_shift(records, shifted, calendar, commit)
        operation.record(updated=result['updated'])
        return result


def known_machines() -> List[str]:
    """Machines that appear on at least one planning task, sorted."""
    rows = (
        db.session.query(PlanningTask.machine)
        .filter(PlanningTask.machine.isnot(None))
        .distinct()
        .all()
    )
    return sorted(row[0] for row in rows)


def generate_auto_plan(
    orders: Iterable[Order],
    machines: Optional[Iterable[str]] = None,
    config: Optional[StrategyConfig] = None,
    now: Optional[datetime] = None,
) -> PlanningResult:
    """
    Draft plan for `orders` on top of every committed planning task.

    Nothing is written: the drafts are returned for review.

    Args:
        orders: Orders to plan
        machines: Known machines (defaults to the machines in the planning table)
        config: Filters and ranking strategy
        now: Plant-local "now" (defaults to the wall clock)
    """
    orders = list(orders)
    calendar = get_work_calendar()
    if now is None:
        now = plant_now(current_app.config['PLANT_TIMEZONE'])
    machines = list(machines) if machines is not None else known_machines()
    config = config or StrategyConfig()

    with PlanningOperationContext(
        "auto_plan",
        order_count=len(orders),
        strategy=SchedulingStrategy(config.main_strategy).value,
        now=str(now),
    ) as operation:
        existing = [_record_values(record) for record in PlanningTask.query.order_by(PlanningTask.id.asc()).all()]
        result = generate_automated_planning(
            orders,
            existing,
            machines,
            config=config,
            now=now,
            calendar=calendar,
            snap_minutes=_snap_minutes(),
        )
        operation.record(draft_tasks=len(result.tasks), skipped_orders=len(result.skipped))
        return result
