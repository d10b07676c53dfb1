"""
Scheduling configuration module.

Defaults for the plant work calendar, plus the glue that turns the
application config (environment driven) into a WorkCalendar.
"""

from datetime import date
from typing import FrozenSet, Iterable, Mapping, Any


class WorkCalendarConfig:
    """
    Default working window for the plant.

    Monday through Saturday, 06:00 to 22:00. Sunday closed.
    """

    WORK_DAY_START_HOUR: int = 6
    WORK_DAY_END_HOUR: int = 22

    # datetime.weekday(): Monday=0 ... Sunday=6
    WORKING_WEEKDAYS: FrozenSet[int] = frozenset({0, 1, 2, 3, 4, 5})

    SNAP_MINUTES: int = 15

    @staticmethod
    def parse_weekdays(raw) -> FrozenSet[int]:
        """
        Parse a weekday set from config.

        Accepts an iterable of ints or a comma-separated string ("0,1,2").
        Raises ValueError for anything outside 0..6.
        """
        if raw is None or raw == '':
            return WorkCalendarConfig.WORKING_WEEKDAYS
        if isinstance(raw, str):
            items: Iterable = [part.strip() for part in raw.split(',') if part.strip()]
        else:
            items = raw

        weekdays = set()
        for item in items:
            day = int(item)
            if day < 0 or day > 6:
                raise ValueError(f"Weekday must be between 0 (Monday) and 6 (Sunday). Got: {item}")
            weekdays.add(day)
        return frozenset(weekdays)

    @staticmethod
    def parse_holidays(raw) -> FrozenSet[date]:
        """Parse holidays from an iterable of dates or a comma-separated YYYY-MM-DD string."""
        if not raw:
            return frozenset()
        if isinstance(raw, str):
            items: Iterable = [part.strip() for part in raw.split(',') if part.strip()]
        else:
            items = raw

        holidays = set()
        for item in items:
            if isinstance(item, date):
                holidays.add(item)
            else:
                holidays.add(date.fromisoformat(item))
        return frozenset(holidays)


def calendar_from_config(config: Mapping[str, Any]):
    """
    Build a WorkCalendar from a Flask config (or any mapping).

    Missing keys fall back to WorkCalendarConfig defaults.
    """
    from shopfloor.production.scheduling.calendar import WorkCalendar

    return WorkCalendar(
        start_hour=int(config.get('WORK_DAY_START_HOUR', WorkCalendarConfig.WORK_DAY_START_HOUR)),
        end_hour=int(config.get('WORK_DAY_END_HOUR', WorkCalendarConfig.WORK_DAY_END_HOUR)),
        working_weekdays=WorkCalendarConfig.parse_weekdays(config.get('WORKING_WEEKDAYS')),
        holidays=WorkCalendarConfig.parse_holidays(config.get('PLANT_HOLIDAYS')),
    )
