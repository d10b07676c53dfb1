"""
Automated planning: turn production orders into draft machine tasks.

Each order carries an evaluation, the ordered list of (machine, hours) steps
needed to make the piece. Orders are filtered and ranked by a strategy, then
every step is placed after the previous step of the same order, split at the
end of each work shift, and kept clear of both busy machines and the piece's
own work elsewhere.

Pure functions: the caller supplies the orders, the committed records and
"now". Nothing here reads the clock or the database.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from shopfloor.production.scheduling.calendar import DEFAULT_CALENDAR, WorkCalendar
from shopfloor.production.scheduling.config import WorkCalendarConfig
from shopfloor.production.scheduling.metrics import ScheduleMetrics, summarize_scenario
from shopfloor.production.scheduling.shifter import (
    OccupancySpan,
    Task,
    find_collision,
    same_machine_or_order,
    select_fixed_occupancy,
)

logger = logging.getLogger(__name__)

# Shorter leftovers at the end of a shift are not worth a segment
MIN_SEGMENT = timedelta(minutes=15)

MATERIAL_AVAILABLE_STATUS = 'A8-MATERIAL DISPONIBLE'

# Lower number = scheduled first
STATUS_PRIORITY = {
    'A8-MATERIAL DISPONIBLE': 2,
    'A7-ESPERANDO MATERIAL': 3,
    'A5-VERIFICAR MATERIAL': 4,
    'A0-ESPERANDO MATERIAL': 5,
    'A0-NUEVO PROYECTO': 5,
}
DEFAULT_STATUS_PRIORITY = 99

NO_TREATMENT_VALUES = ('', 'N/A')


class SchedulingStrategy(str, Enum):
    DELIVERY_DATE = 'DELIVERY_DATE'
    FAB_TIME = 'FAB_TIME'
    FAST_TRACK = 'FAST_TRACK'
    TREATMENTS = 'TREATMENTS'
    CRITICAL_PATH = 'CRITICAL_PATH'
    PROJECT_GROUP = 'PROJECT_GROUP'
    MATERIAL_OPTIMIZATION = 'MATERIAL_OPTIMIZATION'


class PriorityLevel(str, Enum):
    CRITICAL = 'CRITICAL'   # overdue
    SOON = 'SOON'           # due within 3 days
    NORMAL = 'NORMAL'       # 4-10 days, or no delivery date
    PLENTY = 'PLENTY'       # more than 10 days


@dataclass(frozen=True)
class StrategyConfig:
    main_strategy: SchedulingStrategy = SchedulingStrategy.DELIVERY_DATE
    only_with_cad: bool = False
    only_with_blueprint: bool = False
    only_with_material: bool = False
    require_treatment: bool = False


@dataclass(frozen=True)
class EvaluationStep:
    machine: str
    hours: float


@dataclass(frozen=True)
class Order:
    """A production order (one piece) and the steps needed to make it."""
    id: str
    evaluation: List[EvaluationStep] = field(default_factory=list)
    status: Optional[str] = None
    delivery_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    treatment: Optional[str] = None
    material: Optional[str] = None
    drive_file_id: Optional[str] = None
    project_id: Optional[str] = None
    project_delivery_date: Optional[datetime] = None
    project_drive_folder_id: Optional[str] = None

    @property
    def deadline(self) -> Optional[datetime]:
        """Own delivery date, else the project's."""
        return self.delivery_date or self.project_delivery_date

    @property
    def total_hours(self) -> float:
        return sum(step.hours or 0 for step in self.evaluation)

    @property
    def has_treatment(self) -> bool:
        return bool(self.treatment) and self.treatment not in NO_TREATMENT_VALUES


@dataclass(frozen=True)
class DraftTask:
    """One proposed segment of an evaluation step on a machine."""
    id: str
    order_id: str
    machine: str
    register: str
    planned_start: datetime
    planned_end: datetime
    status: str = 'pending'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'order_id': self.order_id,
            'machine': self.machine,
            'register': self.register,
            'planned_date': self.planned_start.strftime('%Y-%m-%dT%H:%M:%S'),
            'planned_end': self.planned_end.strftime('%Y-%m-%dT%H:%M:%S'),
            'status': self.status,
            'is_draft': True,
        }


@dataclass(frozen=True)
class SkippedOrder:
    order: Order
    reason: str


@dataclass
class PlanningResult:
    tasks: List[DraftTask]
    skipped: List[SkippedOrder]
    metrics: ScheduleMetrics


# ------------------------------------------------------------------
# Ranking
# ------------------------------------------------------------------

def get_priority_level(delivery_date: Optional[datetime], today: date) -> PriorityLevel:
    """Urgency bucket of a delivery date, counted in calendar days from today."""
    if delivery_date is None:
        return PriorityLevel.NORMAL

    if isinstance(delivery_date, datetime):
        delivery_date = delivery_date.date()
    days_left = (delivery_date - today).days

    if days_left < 0:
        return PriorityLevel.CRITICAL
    if days_left <= 3:
        return PriorityLevel.SOON
    if days_left <= 10:
        return PriorityLevel.NORMAL
    return PriorityLevel.PLENTY


def get_status_priority(status: Optional[str]) -> int:
    return STATUS_PRIORITY.get(status, DEFAULT_STATUS_PRIORITY)


def order_priority_key(order: Order):
    """Status priority first, then earliest deadline (orders without one go last)."""
    return (get_status_priority(order.status), order.deadline or datetime.max)


def _strategy_key(strategy: SchedulingStrategy):
    if strategy == SchedulingStrategy.FAB_TIME:
        return lambda order: -order.total_hours
    if strategy == SchedulingStrategy.FAST_TRACK:
        return lambda order: order.total_hours
    if strategy == SchedulingStrategy.CRITICAL_PATH:
        return lambda order: (0 if order.has_treatment else 1,) + order_priority_key(order)
    if strategy == SchedulingStrategy.PROJECT_GROUP:
        return lambda order: (order.project_id or '',) + order_priority_key(order)
    if strategy == SchedulingStrategy.MATERIAL_OPTIMIZATION:
        return lambda order: (order.material or '',) + order_priority_key(order)
    if strategy == SchedulingStrategy.TREATMENTS:
        return lambda order: order.treatment or ''
    return order_priority_key


def _is_eligible(order: Order, config: StrategyConfig) -> bool:
    if not order.evaluation:
        return False
    if config.only_with_cad and not (order.drive_file_id or order.project_drive_folder_id):
        return False
    if config.only_with_blueprint and not order.drive_file_id:
        return False
    if config.only_with_material and order.status != MATERIAL_AVAILABLE_STATUS:
        return False
    if config.require_treatment and not order.has_treatment:
        return False
    return True


def prepare_orders_for_scheduling(orders: Iterable[Order], config: StrategyConfig) -> List[Order]:
    """
    Drop orders that can't be planned under `config` and rank the rest.

    Orders without an evaluation are always dropped. Ties keep input order.
    """
    eligible = [order for order in orders if _is_eligible(order, config)]
    return sorted(eligible, key=_strategy_key(SchedulingStrategy(config.main_strategy)))


# ------------------------------------------------------------------
# Placement
# ------------------------------------------------------------------

def _plan_step(
    order: Order,
    step: EvaluationStep,
    register: str,
    ready_at: datetime,
    obstacles: List[OccupancySpan],
    calendar: WorkCalendar,
    drafts: List[DraftTask],
) -> datetime:
    """Place one step from `ready_at`; returns when the step is done."""
    remaining = timedelta(hours=step.hours or 0)
    cursor = calendar.next_valid_work_time(ready_at)
    segment_number = 0

    while remaining > timedelta(0):
        cursor = calendar.next_valid_work_time(cursor)
        available = calendar.close_of_day(cursor) - cursor

        if available < MIN_SEGMENT:
            cursor = calendar.opening_of_next_day(cursor)
            continue

        end = cursor + min(remaining, available)
        segment = Task(id=None, machine=step.machine, planned_start=cursor, planned_end=end, order_id=order.id)

        # Machine busy, or the piece is on another machine
        collision = find_collision(segment, cursor, end, obstacles, same_machine_or_order)
        if collision is not None:
            cursor = collision.end
            continue

        segment_number += 1
        drafts.append(DraftTask(
            id=f"draft-{order.id}-{step.machine}-{register}-{segment_number}",
            order_id=order.id,
            machine=step.machine,
            register=register,
            planned_start=cursor,
            planned_end=end,
        ))
        obstacles.append(OccupancySpan(machine=step.machine, start=cursor, end=end, order_id=order.id))
        remaining -= end - cursor
        cursor = end

    return cursor


def _plan_order(
    order: Order,
    global_start: datetime,
    fixed: List[OccupancySpan],
    obstacles: List[OccupancySpan],
    calendar: WorkCalendar,
) -> List[DraftTask]:
    # Fixed work already done or locked for this piece, in time order
    own_fixed = sorted((span for span in fixed if span.order_id == order.id), key=lambda span: span.start)
    fixed_index = 0

    drafts: List[DraftTask] = []
    ready_at = global_start

    for number, step in enumerate(order.evaluation, start=1):
        # Steps are matched to fixed tasks strictly in sequence; a fixed task on
        # another machine is passed over for good.
        matched = None
        while fixed_index < len(own_fixed):
            candidate = own_fixed[fixed_index]
            fixed_index += 1
            if candidate.machine == step.machine:
                matched = candidate
                break

        if matched is not None:
            ready_at = max(ready_at, matched.end)
            continue

        ready_at = _plan_step(order, step, str(number), ready_at, obstacles, calendar, drafts)

    return drafts


def generate_automated_planning(
    orders: Iterable[Order],
    existing: Iterable[Dict[str, Any]],
    machines: Iterable[str],
    config: Optional[StrategyConfig] = None,
    now: Optional[datetime] = None,
    calendar: Optional[WorkCalendar] = None,
    snap_minutes: int = WorkCalendarConfig.SNAP_MINUTES,
) -> PlanningResult:
    """
    Build a draft plan for `orders` on top of the committed schedule.

    Planning starts at `now` rounded up to the next quarter hour and moved into
    working time. Committed records that are locked, started or in the past
    stay put and block; the rest are treated as re-plannable and ignored.

    Args:
        orders: Orders to plan
        existing: Committed records (dicts, see select_fixed_occupancy)
        machines: Known machines. An order using any other machine is skipped.
        config: Filters and ranking strategy (defaults to DELIVERY_DATE, no filters)
        now: Naive plant-local "now" (required)
        calendar: Work calendar (defaults to Mon-Sat 06:00-22:00)

    Returns:
        PlanningResult: draft tasks, skipped orders with a reason, scenario metrics
    """
    if now is None:
        raise ValueError("now is required")

    calendar = calendar or DEFAULT_CALENDAR
    config = config or StrategyConfig()
    machines = list(machines)
    known_machines = set(machines)

    prepared = prepare_orders_for_scheduling(orders, config)
    global_start = calendar.next_valid_work_time(calendar.snap_to_next_quarter_hour(now, snap_minutes))

    fixed = select_fixed_occupancy(existing, global_start)
    obstacles = list(fixed)

    logger.debug(
        "Auto-planning %d orders (strategy %s) from %s with %d fixed tasks",
        len(prepared), config.main_strategy, global_start, len(fixed),
    )

    tasks: List[DraftTask] = []
    skipped: List[SkippedOrder] = []

    for order in prepared:
        unknown = next((step.machine for step in order.evaluation if step.machine not in known_machines), None)
        if unknown is not None:
            skipped.append(SkippedOrder(order=order, reason=f"Unknown machine: {unknown}"))
            continue

        tasks.extend(_plan_order(order, global_start, fixed, obstacles, calendar))

    metrics = summarize_scenario(prepared, tasks, now, machines=machines, calendar=calendar)
    return PlanningResult(tasks=tasks, skipped=skipped, metrics=metrics)
