"""
Plant work calendar.

Answers "is this instant working time?" and "what is the next instant work can
happen?". All instants are naive datetimes in plant-local time; callers
normalize before calling (see shopfloor.datetime_utils).
"""

from datetime import date, datetime, timedelta
from typing import FrozenSet, Iterable, Optional

from shopfloor.production.scheduling.config import WorkCalendarConfig


def _whole_minutes(delta: timedelta) -> int:
    """Minutes in delta, truncated toward zero."""
    return int(delta.total_seconds() / 60)


class WorkCalendar:
    """
    Recurring working window: [start_hour, end_hour) on working days.

    A working day is a weekday in working_weekdays that is not a holiday.
    Instances are immutable and hold no state between calls.
    """

    def __init__(
        self,
        start_hour: int = WorkCalendarConfig.WORK_DAY_START_HOUR,
        end_hour: int = WorkCalendarConfig.WORK_DAY_END_HOUR,
        working_weekdays: Iterable[int] = WorkCalendarConfig.WORKING_WEEKDAYS,
        holidays: Iterable[date] = (),
    ):
        if not (0 <= start_hour <= 23 and 0 <= end_hour <= 23):
            raise ValueError(
                f"Working hours must be between 0 and 23. Got: start={start_hour}, end={end_hour}"
            )
        if start_hour >= end_hour:
            raise ValueError(
                f"Work day must start before it ends. Got: start={start_hour}, end={end_hour}"
            )

        weekdays = frozenset(working_weekdays)
        if not weekdays:
            raise ValueError("At least one working weekday is required")
        if any(day < 0 or day > 6 for day in weekdays):
            raise ValueError(f"Weekdays must be between 0 and 6. Got: {sorted(weekdays)}")

        self._start_hour = start_hour
        self._end_hour = end_hour
        self._weekdays: FrozenSet[int] = weekdays
        self._holidays: FrozenSet[date] = frozenset(holidays)

    @property
    def start_hour(self) -> int:
        return self._start_hour

    @property
    def end_hour(self) -> int:
        return self._end_hour

    @property
    def shift_hours(self) -> int:
        """Length of one working window in hours."""
        return self._end_hour - self._start_hour

    @property
    def working_weekdays(self) -> FrozenSet[int]:
        return self._weekdays

    @property
    def holidays(self) -> FrozenSet[date]:
        return self._holidays

    def __repr__(self):
        return (
            f"WorkCalendar(start_hour={self._start_hour}, end_hour={self._end_hour}, "
            f"working_weekdays={sorted(self._weekdays)}, holidays={len(self._holidays)})"
        )

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def is_working_day(self, day) -> bool:
        """True when the date (or the date of a datetime) is a working day."""
        if isinstance(day, datetime):
            day = day.date()
        return day.weekday() in self._weekdays and day not in self._holidays

    def is_working_time(self, instant: datetime) -> bool:
        return self.next_valid_work_time(instant) == instant

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def opening_of_next_day(self, instant: datetime) -> datetime:
        """The following calendar day at the opening hour."""
        next_day = instant.replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(days=1)
        return next_day.replace(hour=self._start_hour)

    def close_of_day(self, instant: datetime) -> datetime:
        """Same calendar day at the closing hour (22:00 by default)."""
        return instant.replace(hour=self._end_hour, minute=0, second=0, microsecond=0)

    def next_valid_work_time(self, instant: datetime) -> datetime:
        """
        Earliest working instant at or after `instant`.

        Rules, applied until none fires:
          - non-working day -> next day at opening
          - before opening  -> opening, same day
          - at/after close  -> next day at opening

        Every rule moves the instant strictly forward, so the loop ends on the
        first working day it reaches.
        """
        current = instant
        while True:
            if not self.is_working_day(current):
                current = self.opening_of_next_day(current)
                continue

            if current.hour < self._start_hour:
                current = current.replace(hour=self._start_hour, minute=0, second=0, microsecond=0)
                continue

            if current.hour >= self._end_hour:
                current = self.opening_of_next_day(current)
                continue

            return current

    def snap_to_next_quarter_hour(self, instant: datetime, step_minutes: int = WorkCalendarConfig.SNAP_MINUTES) -> datetime:
        """
        Round up to the next step mark (15 minutes by default).

        14:04 -> 14:15, 14:15:00 -> 14:15, 14:15:30 -> 14:30.
        """
        if instant.minute % step_minutes == 0 and instant.second == 0 and instant.microsecond == 0:
            return instant

        remainder = step_minutes - (instant.minute % step_minutes)
        return (instant + timedelta(minutes=remainder)).replace(second=0, microsecond=0)

    def add_working_days(self, instant: datetime, days: int) -> datetime:
        """
        Move `instant` by whole working days, keeping its time of day.

        Negative values move backward. Non-working days are stepped over
        without being counted.
        """
        direction = 1 if days > 0 else -1
        remaining = abs(days)
        current = instant

        while remaining > 0:
            current = current + timedelta(days=direction)
            if self.is_working_day(current):
                remaining -= 1

        return current

    # ------------------------------------------------------------------
    # Durations
    # ------------------------------------------------------------------

    def advance_working_minutes(self, start: datetime, minutes: int) -> datetime:
        """
        Consume `minutes` of working time starting at `start`; return the end.

        Work stops at each day's close and resumes at the next opening, so the
        wall-clock span may include closed gaps. Non-positive minutes return
        `start` unchanged.
        """
        remaining = minutes
        cursor = start

        while remaining > 0:
            cursor = self.next_valid_work_time(cursor)
            close = self.close_of_day(cursor)
            available = _whole_minutes(close - cursor)

            if available <= 0:
                cursor = self.opening_of_next_day(cursor)
                continue

            segment = min(remaining, available)
            remaining -= segment

            if remaining > 0:
                cursor = close
            else:
                cursor = cursor + timedelta(minutes=segment)

        return cursor

    def working_minutes_between(self, start: datetime, end: datetime) -> int:
        """Minutes of [start, end) that fall inside working windows."""
        if end <= start:
            return 0

        total = timedelta()
        day = start.date()
        while day <= end.date():
            if self.is_working_day(day):
                opening = datetime(day.year, day.month, day.day, self._start_hour)
                close = datetime(day.year, day.month, day.day, self._end_hour)
                overlap_start = max(start, opening)
                overlap_end = min(end, close)
                if overlap_end > overlap_start:
                    total += overlap_end - overlap_start
            day += timedelta(days=1)

        return _whole_minutes(total)


DEFAULT_CALENDAR = WorkCalendar()


def next_valid_work_time(instant: datetime, calendar: Optional[WorkCalendar] = None) -> datetime:
    """Module-level shortcut for WorkCalendar.next_valid_work_time (default calendar)."""
    return (calendar or DEFAULT_CALENDAR).next_valid_work_time(instant)


def close_of_day(instant: datetime, calendar: Optional[WorkCalendar] = None) -> datetime:
    """Module-level shortcut for WorkCalendar.close_of_day (default calendar)."""
    return (calendar or DEFAULT_CALENDAR).close_of_day(instant)
