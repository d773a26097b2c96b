from datetime import date, timedelta
from typing import List

from renoplan.models.entities import WorkingDayRule
from renoplan.models.errors import ValidationError

ONE_DAY = timedelta(days=1)


def check_rule(rule: WorkingDayRule) -> None:
    if not rule.working_weekdays:
        raise ValidationError("Working-day rule has no working weekdays")
    if any(d not in range(7) for d in rule.working_weekdays):
        raise ValidationError(f"Weekdays must be in 0..6, got {sorted(rule.working_weekdays)}")


def is_working_day(day: date, rule: WorkingDayRule) -> bool:
    return day.weekday() in rule.working_weekdays and day not in rule.blackout_dates


def next_working_day(day: date, rule: WorkingDayRule) -> date:
    """First working day on or after `day`."""
    check_rule(rule)
    while not is_working_day(day, rule):
        day += ONE_DAY
    return day


def working_dates(start: date, count: int, rule: WorkingDayRule) -> List[date]:
    """The first `count` working days on or after `start`, in order.

    Index i is the calendar date of working-day offset i.
    """
    days: List[date] = []
    if count <= 0:
        return days
    current = next_working_day(start, rule)
    while True:
        days.append(current)
        if len(days) == count:
            return days
        current = next_working_day(current + ONE_DAY, rule)


def add_working_days(day: date, n: int, rule: WorkingDayRule) -> date:
    """Advance `n` working days forward from the working day on or after `day`."""
    return working_dates(day, n + 1, rule)[-1]

