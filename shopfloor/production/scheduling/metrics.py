"""
Schedule metrics for planning scenarios.

Totals per scenario and shift utilization per machine, computed from Task
values so they work the same for committed and proposed schedules. Planning
scenarios also get order-level numbers: late orders and average lead time.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from shopfloor.production.scheduling.calendar import DEFAULT_CALENDAR, WorkCalendar
from shopfloor.production.scheduling.shifter import Task

UNASSIGNED_MACHINE = 'Unassigned'


@dataclass
class ScheduleMetrics:
    """Summary numbers for a set of planned tasks."""
    total_tasks: int = 0
    total_hours: float = 0.0
    working_hours: float = 0.0
    machine_hours: Dict[str, float] = field(default_factory=dict)
    total_orders: int = 0
    late_orders: int = 0
    avg_lead_time_days: float = 0.0

    def to_dict(self) -> Dict:
        return {
            'total_tasks': self.total_tasks,
            'total_hours': round(self.total_hours, 2),
            'working_hours': round(self.working_hours, 2),
            'machine_hours': {m: round(h, 2) for m, h in self.machine_hours.items()},
            'total_orders': self.total_orders,
            'late_orders': self.late_orders,
            'avg_lead_time_days': round(self.avg_lead_time_days, 2),
        }


def _machine_name(machine: Optional[str]) -> str:
    return machine if machine else UNASSIGNED_MACHINE


def summarize_schedule(
    tasks: Iterable[Task],
    machines: Optional[List[str]] = None,
    calendar: Optional[WorkCalendar] = None,
) -> ScheduleMetrics:
    """
    Calculate scenario metrics.

    total_hours and machine_hours are wall-clock (end - start); working_hours
    only counts time inside the calendar's working windows.

    Args:
        tasks: Planned tasks
        machines: If given, machine_hours lists exactly these machines (0.0 when idle)
        calendar: Work calendar for working_hours (defaults to Mon-Sat 06:00-22:00)

    Returns:
        ScheduleMetrics
    """
    calendar = calendar or DEFAULT_CALENDAR
    tasks = list(tasks)

    if not tasks:
        return ScheduleMetrics(machine_hours={m: 0.0 for m in machines or []})

    df = pd.DataFrame([
        {
            'machine': _machine_name(task.machine),
            'start': task.planned_start,
            'end': task.planned_end,
            'working_minutes': calendar.working_minutes_between(task.planned_start, task.planned_end),
        }
        for task in tasks
    ])
    df['hours'] = (df['end'] - df['start']).dt.total_seconds() / 3600.0

    hours_by_machine = df.groupby('machine')['hours'].sum()
    if machines is not None:
        machine_hours = {m: float(hours_by_machine.get(m, 0.0)) for m in machines}
    else:
        machine_hours = {m: float(h) for m, h in hours_by_machine.items()}

    return ScheduleMetrics(
        total_tasks=len(df),
        total_hours=float(df['hours'].sum()),
        working_hours=float(df['working_minutes'].sum()) / 60.0,
        machine_hours=machine_hours,
    )


def machine_utilization(
    tasks: Iterable[Task],
    window_start: date,
    window_end: date,
    machines: Optional[List[str]] = None,
    calendar: Optional[WorkCalendar] = None,
) -> Dict[str, int]:
    """
    Percent of available shift time each machine is busy over a date window.

    Both window ends are inclusive. Only working days contribute shift hours.
    Per day, tasks are walked in start order and a task that starts before the
    previously counted one ended is skipped, so overlapping bookings are not
    counted twice. Results are whole percents capped at 100.
    """
    calendar = calendar or DEFAULT_CALENDAR
    tasks = list(tasks)

    by_machine: Dict[str, List[Task]] = {}
    for task in tasks:
        by_machine.setdefault(_machine_name(task.machine), []).append(task)

    if machines is None:
        machines = sorted(by_machine)

    working_days = [
        ts.date()
        for ts in pd.date_range(window_start, window_end, freq='D')
        if calendar.is_working_day(ts.date())
    ]
    available_hours = len(working_days) * calendar.shift_hours

    utilization = {}
    for machine in machines:
        machine_tasks = by_machine.get(machine, [])
        if not machine_tasks or available_hours == 0:
            utilization[machine] = 0
            continue

        occupied_hours = 0.0
        for day in working_days:
            shift_start = datetime(day.year, day.month, day.day, calendar.start_hour)
            shift_end = datetime(day.year, day.month, day.day, calendar.end_hour)

            daily_tasks = sorted(
                (t for t in machine_tasks if t.planned_start < shift_end and t.planned_end > shift_start),
                key=lambda t: t.planned_start,
            )

            lane_end = None
            for task in daily_tasks:
                if lane_end is not None and task.planned_start < lane_end:
                    continue
                overlap = min(task.planned_end, shift_end) - max(task.planned_start, shift_start)
                occupied_hours += overlap.total_seconds() / 3600.0
                lane_end = task.planned_end

        percent = int(occupied_hours / available_hours * 100 + 0.5)
        utilization[machine] = min(100, percent)

    return utilization


def summarize_scenario(
    orders: Iterable[Any],
    tasks: Iterable[Any],
    now: datetime,
    machines: Optional[List[str]] = None,
    calendar: Optional[WorkCalendar] = None,
) -> ScheduleMetrics:
    """
    Metrics for an automated planning scenario.

    Task totals come from summarize_schedule. On top of that, per order:

    - late: its last planned segment ends after its deadline
    - lead time: last planned end minus created_at (now when unknown)

    avg_lead_time_days divides by every order in the scenario, including
    orders that got no tasks.

    Args:
        orders: Planned orders (need id, deadline, created_at)
        tasks: Draft tasks (need order_id, machine, planned_start, planned_end)
        now: Naive plant-local time standing in for a missing created_at
        machines: Passed on to summarize_schedule
        calendar: Passed on to summarize_schedule
    """
    orders = list(orders)
    tasks = list(tasks)

    metrics = summarize_schedule(tasks, machines=machines, calendar=calendar)
    metrics.total_orders = len(orders)

    if not tasks or not orders:
        return metrics

    df = pd.DataFrame([{'order_id': task.order_id, 'end': task.planned_end} for task in tasks])
    last_end = df.groupby('order_id')['end'].max()

    late_orders = 0
    lead_seconds = 0.0
    for order in orders:
        if order.id not in last_end.index:
            continue
        finished = last_end[order.id].to_pydatetime()

        deadline = order.deadline
        if deadline is not None and finished > deadline:
            late_orders += 1

        lead_seconds += (finished - (order.created_at or now)).total_seconds()

    metrics.late_orders = late_orders
    metrics.avg_lead_time_days = lead_seconds / len(orders) / 86400.0
    return metrics
