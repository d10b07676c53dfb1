"""
Production scheduling module.

Places planned production tasks on the plant work calendar (Mon-Sat,
06:00-22:00 by default) and moves batches of tasks to a new start while
keeping each machine free of double bookings. The planner turns production
orders into draft tasks on top of the committed schedule.
"""

from shopfloor.production.scheduling.config import WorkCalendarConfig, calendar_from_config
from shopfloor.production.scheduling.calendar import (
    DEFAULT_CALENDAR,
    WorkCalendar,
    close_of_day,
    next_valid_work_time,
)
from shopfloor.production.scheduling.shifter import (
    OccupancySpan,
    Task,
    find_collision,
    select_fixed_occupancy,
    shift_batch,
    shift_by_work_days,
)
from shopfloor.production.scheduling.metrics import (
    ScheduleMetrics,
    machine_utilization,
    summarize_scenario,
    summarize_schedule,
)
from shopfloor.production.scheduling.planner import (
    DraftTask,
    EvaluationStep,
    Order,
    PlanningResult,
    PriorityLevel,
    SchedulingStrategy,
    SkippedOrder,
    StrategyConfig,
    generate_automated_planning,
    get_priority_level,
    get_status_priority,
    prepare_orders_for_scheduling,
)

__all__ = [
    'WorkCalendarConfig',
    'calendar_from_config',
    'DEFAULT_CALENDAR',
    'WorkCalendar',
    'close_of_day',
    'next_valid_work_time',
    'OccupancySpan',
    'Task',
    'find_collision',
    'select_fixed_occupancy',
    'shift_batch',
    'shift_by_work_days',
    'ScheduleMetrics',
    'machine_utilization',
    'summarize_scenario',
    'summarize_schedule',
    'DraftTask',
    'EvaluationStep',
    'Order',
    'PlanningResult',
    'PriorityLevel',
    'SchedulingStrategy',
    'SkippedOrder',
    'StrategyConfig',
    'generate_automated_planning',
    'get_priority_level',
    'get_status_priority',
    'prepare_orders_for_scheduling',
]
