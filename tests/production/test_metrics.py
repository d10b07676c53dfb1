"""
Tests for schedule metrics (scenario totals and machine utilization).
"""
from datetime import date, datetime

from shopfloor.production.scheduling.calendar import WorkCalendar
from shopfloor.production.scheduling.metrics import (
    UNASSIGNED_MACHINE,
    ScheduleMetrics,
    machine_utilization,
    summarize_scenario,
    summarize_schedule,
)
from shopfloor.production.scheduling.planner import DraftTask, Order
from shopfloor.production.scheduling.shifter import Task


def task(task_id, machine, start, end):
    return Task(id=task_id, machine=machine, planned_start=start, planned_end=end)


# ==============================================================================
# summarize_schedule
# ==============================================================================

class TestSummarizeSchedule:

    def test_empty_schedule(self):
        metrics = summarize_schedule([], machines=["CNC-1", "Lathe"])

        assert metrics.total_tasks == 0
        assert metrics.total_hours == 0.0
        assert metrics.machine_hours == {"CNC-1": 0.0, "Lathe": 0.0}

    def test_totals_and_machine_hours(self):
        tasks = [
            task(1, "CNC-1", datetime(2026, 2, 11, 9, 0), datetime(2026, 2, 11, 11, 0)),
            task(2, "CNC-1", datetime(2026, 2, 11, 12, 0), datetime(2026, 2, 11, 12, 30)),
            task(3, "Lathe", datetime(2026, 2, 11, 9, 0), datetime(2026, 2, 11, 10, 0)),
        ]

        metrics = summarize_schedule(tasks)

        assert metrics.total_tasks == 3
        assert metrics.total_hours == 3.5
        assert metrics.working_hours == 3.5
        assert metrics.machine_hours == {"CNC-1": 2.5, "Lathe": 1.0}

    def test_working_hours_skip_closed_time(self):
        """21:00 -> 07:00 next day is 10h wall clock but only 2h of shift time."""
        tasks = [task(1, "CNC-1", datetime(2026, 2, 11, 21, 0), datetime(2026, 2, 12, 7, 0))]

        metrics = summarize_schedule(tasks)

        assert metrics.total_hours == 10.0
        assert metrics.working_hours == 2.0

    def test_unassigned_machine_and_requested_machines(self):
        tasks = [task(1, None, datetime(2026, 2, 11, 9, 0), datetime(2026, 2, 11, 10, 0))]

        assert summarize_schedule(tasks).machine_hours == {UNASSIGNED_MACHINE: 1.0}
        assert summarize_schedule(tasks, machines=["CNC-1"]).machine_hours == {"CNC-1": 0.0}

    def test_to_dict_rounds(self):
        metrics = ScheduleMetrics(total_tasks=1, total_hours=1 / 3, working_hours=2 / 3, machine_hours={"CNC-1": 1 / 3})

        assert metrics.to_dict() == {
            'total_tasks': 1,
            'total_hours': 0.33,
            'working_hours': 0.67,
            'machine_hours': {"CNC-1": 0.33},
            'total_orders': 0,
            'late_orders': 0,
            'avg_lead_time_days': 0.0,
        }


# ==============================================================================
# machine_utilization
# ==============================================================================

class TestMachineUtilization:

    def test_half_day(self):
        """8h booked of a 16h shift."""
        tasks = [task(1, "CNC-1", datetime(2026, 2, 11, 6, 0), datetime(2026, 2, 11, 14, 0))]

        result = machine_utilization(tasks, date(2026, 2, 11), date(2026, 2, 11))

        assert result == {"CNC-1": 50}

    def test_idle_machine_is_zero(self):
        tasks = [task(1, "CNC-1", datetime(2026, 2, 11, 6, 0), datetime(2026, 2, 11, 14, 0))]

        result = machine_utilization(tasks, date(2026, 2, 11), date(2026, 2, 11), machines=["CNC-1", "Lathe"])

        assert result == {"CNC-1": 50, "Lathe": 0}

    def test_overlapping_bookings_are_not_double_counted(self):
        tasks = [
            task(1, "CNC-1", datetime(2026, 2, 11, 6, 0), datetime(2026, 2, 11, 14, 0)),
            task(2, "CNC-1", datetime(2026, 2, 11, 10, 0), datetime(2026, 2, 11, 12, 0)),
        ]

        result = machine_utilization(tasks, date(2026, 2, 11), date(2026, 2, 11))

        assert result == {"CNC-1": 50}

    def test_sunday_adds_no_capacity(self):
        """Sat 14 + Sun 15 window: only Saturday's 16h count."""
        tasks = [task(1, "CNC-1", datetime(2026, 2, 14, 6, 0), datetime(2026, 2, 14, 14, 0))]

        result = machine_utilization(tasks, date(2026, 2, 14), date(2026, 2, 15))

        assert result == {"CNC-1": 50}

    def test_only_shift_hours_count(self):
        """A task running past close only counts up to 22:00."""
        tasks = [task(1, "CNC-1", datetime(2026, 2, 11, 18, 0), datetime(2026, 2, 12, 2, 0))]

        result = machine_utilization(tasks, date(2026, 2, 11), date(2026, 2, 11))

        assert result == {"CNC-1": 25}

    def test_rounds_half_up(self):
        """1h of 16h is 6.25% -> 6; 3h is 18.75% -> 19."""
        one_hour = [task(1, "CNC-1", datetime(2026, 2, 11, 6, 0), datetime(2026, 2, 11, 7, 0))]
        three_hours = [task(1, "CNC-1", datetime(2026, 2, 11, 6, 0), datetime(2026, 2, 11, 9, 0))]

        assert machine_utilization(one_hour, date(2026, 2, 11), date(2026, 2, 11)) == {"CNC-1": 6}
        assert machine_utilization(three_hours, date(2026, 2, 11), date(2026, 2, 11)) == {"CNC-1": 19}

    def test_window_with_no_working_days(self):
        tasks = [task(1, "CNC-1", datetime(2026, 2, 15, 6, 0), datetime(2026, 2, 15, 14, 0))]

        result = machine_utilization(tasks, date(2026, 2, 15), date(2026, 2, 15))

        assert result == {"CNC-1": 0}

    def test_custom_calendar(self):
        calendar = WorkCalendar(start_hour=8, end_hour=16)
        tasks = [task(1, "CNC-1", datetime(2026, 2, 11, 8, 0), datetime(2026, 2, 11, 16, 0))]

        result = machine_utilization(tasks, date(2026, 2, 11), date(2026, 2, 11), calendar=calendar)

        assert result == {"CNC-1": 100}


# ==============================================================================
# summarize_scenario
# ==============================================================================

def draft(order_id, machine, start, end):
    return DraftTask(
        id=f"draft-{order_id}-{start:%d%H%M}",
        order_id=order_id,
        machine=machine,
        register="1",
        planned_start=start,
        planned_end=end,
    )


class TestSummarizeScenario:

    NOW = datetime(2026, 2, 11, 9, 0)

    def test_late_when_last_segment_ends_after_deadline(self):
        orders = [
            Order(id="OP-1", delivery_date=datetime(2026, 2, 11, 13, 0)),
            Order(id="OP-2", delivery_date=datetime(2026, 2, 12, 0, 0)),
        ]
        tasks = [
            draft("OP-1", "CNC-1", datetime(2026, 2, 11, 9, 0), datetime(2026, 2, 11, 12, 0)),
            draft("OP-1", "Lathe", datetime(2026, 2, 11, 12, 0), datetime(2026, 2, 11, 14, 0)),
            draft("OP-2", "CNC-1", datetime(2026, 2, 11, 12, 0), datetime(2026, 2, 11, 14, 0)),
        ]

        metrics = summarize_scenario(orders, tasks, self.NOW)

        assert metrics.total_orders == 2
        assert metrics.late_orders == 1
        assert metrics.total_tasks == 3

    def test_project_deadline_is_the_fallback(self):
        orders = [Order(id="OP-1", project_delivery_date=datetime(2026, 2, 11, 10, 0))]
        tasks = [draft("OP-1", "CNC-1", datetime(2026, 2, 11, 9, 0), datetime(2026, 2, 11, 11, 0))]

        assert summarize_scenario(orders, tasks, self.NOW).late_orders == 1

    def test_no_deadline_is_never_late(self):
        orders = [Order(id="OP-1")]
        tasks = [draft("OP-1", "CNC-1", datetime(2026, 2, 11, 9, 0), datetime(2026, 2, 11, 11, 0))]

        assert summarize_scenario(orders, tasks, self.NOW).late_orders == 0

    def test_lead_time_averages_over_all_orders(self):
        orders = [
            Order(id="OP-1", created_at=datetime(2026, 2, 10, 9, 0)),
            Order(id="OP-2", created_at=datetime(2026, 2, 10, 9, 0)),  # got no tasks
        ]
        tasks = [draft("OP-1", "CNC-1", datetime(2026, 2, 11, 6, 0), datetime(2026, 2, 11, 9, 0))]

        metrics = summarize_scenario(orders, tasks, self.NOW)

        assert metrics.avg_lead_time_days == 0.5

    def test_missing_created_at_counts_from_now(self):
        orders = [Order(id="OP-1")]
        tasks = [draft("OP-1", "CNC-1", datetime(2026, 2, 11, 9, 0), datetime(2026, 2, 11, 21, 0))]

        assert summarize_scenario(orders, tasks, self.NOW).avg_lead_time_days == 0.5

    def test_no_tasks(self):
        metrics = summarize_scenario([Order(id="OP-1")], [], self.NOW, machines=["CNC-1"])

        assert metrics.total_orders == 1
        assert metrics.late_orders == 0
        assert metrics.avg_lead_time_days == 0.0
        assert metrics.machine_hours == {"CNC-1": 0.0}
