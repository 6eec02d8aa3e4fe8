"""
Recurrence rules for medication reminders

Everything here is pure: it works on any object exposing ``reminder_enabled``,
``times``, ``frequency``, ``start_date`` and ``end_date`` and never reads the
clock, so it can be tested without the database or timers.
"""
from datetime import datetime, timedelta
from enum import Enum

from healthmonitor.errors import ValidationError


class Frequency(str, Enum):
    DAILY = 'daily'
    ALTERNATE = 'alternate'
    WEEKLY = 'weekly'

    @property
    def step_days(self):
        return _STEP_DAYS[self]

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        key = (value or '').strip().lower().replace('_', '-')
        key = _ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            raise ValidationError(
                f'Unknown frequency "{value}"',
                details='Use one of: daily, alternate, weekly'
            )


_STEP_DAYS = {
    Frequency.DAILY: 1,
    Frequency.ALTERNATE: 2,
    Frequency.WEEKLY: 7,
}

_ALIASES = {
    'alternate-day': 'alternate',
    'every-other-day': 'alternate',
}


def parse_time_of_day(value):
    """Parse an "HH:MM" string into a time"""
    try:
        return datetime.strptime(value.strip(), '%H:%M').time()
    except (AttributeError, ValueError):
        raise ValidationError(f'Invalid time of day "{value}"', details='Expected HH:MM (24-hour)')


def normalize_times(values):
    """Validate, de-duplicate and sort a list of "HH:MM" strings"""
    parsed = {parse_time_of_day(v) for v in values or []}
    return [t.strftime('%H:%M') for t in sorted(parsed)]


def is_valid_day(medication, day):
    """True if the frequency rule schedules doses on this calendar day"""
    start = medication.start_date
    if day < start:
        return False
    if medication.end_date and day > medication.end_date:
        return False
    step = Frequency.parse(medication.frequency).step_days
    return (day - start).days % step == 0


def compute_next_fire_time(medication, now):
    """
    Earliest occurrence strictly after ``now``, or None when the medication
    produces no further reminders (disabled, no times, or past its end date).

    The end date is inclusive: doses listed on the end date still fire.
    """
    if not medication.reminder_enabled:
        return None

    times = [parse_time_of_day(t) for t in medication.times]
    if not times:
        return None
    times.sort()

    end_date = medication.end_date
    today = now.date()
    if end_date and today > end_date:
        return None

    step = Frequency.parse(medication.frequency).step_days
    start = medication.start_date

    if today < start:
        day = start
    else:
        offset = (today - start).days % step
        day = today if offset == 0 else today + timedelta(days=step - offset)

    if day == today:
        for t in times:
            candidate = datetime.combine(day, t)
            if candidate > now:
                return candidate
        day += timedelta(days=step)

    if end_date and day > end_date:
        return None
    return datetime.combine(day, times[0])


def occurrences_between(medication, start, end, limit=None):
    """Occurrences in the half-open interval (start, end], oldest first"""
    found = []
    current = compute_next_fire_time(medication, start)
    while current is not None and current <= end:
        found.append(current)
        if limit is not None and len(found) >= limit:
            break
        current = compute_next_fire_time(medication, current)
    return found
