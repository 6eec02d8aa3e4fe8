"""
Appointment countdowns and staged appointment reminders
"""
import logging
from datetime import datetime, timedelta

from healthmonitor.errors import ValidationError
from healthmonitor.scheduling.notifications import NotificationDispatcher, appointment_message

logger = logging.getLogger(__name__)

COUNTDOWN_WINDOW = timedelta(hours=24)

# (minutes before start, flag attribute, wording), largest first
REMINDER_THRESHOLDS = (
    (60, 'one_hour_sent', '1 hour'),
    (10, 'ten_minutes_sent', '10 minutes'),
)


def time_remaining(appointment, now):
    return appointment.starts_at - now


def format_time_remaining(remaining):
    """Format as "{h}h {m}m", or "{m}m" when under an hour"""
    total_minutes = int(remaining.total_seconds() // 60)
    hours, minutes = divmod(total_minutes, 60)
    if hours > 0:
        return f'{hours}h {minutes}m'
    return f'{minutes}m'


def urgency(remaining):
    """Presentation hint only: high within 1 hour, medium within 3, otherwise low"""
    if remaining <= timedelta(hours=1):
        return 'high'
    if remaining <= timedelta(hours=3):
        return 'medium'
    return 'low'


def upcoming_countdowns(appointments, now, dismissed=()):
    """Appointments starting in (now, now + 24h] that were not dismissed, soonest first"""
    dismissed = set(dismissed)
    upcoming = []
    for appointment in appointments:
        if appointment.id in dismissed:
            continue
        remaining = time_remaining(appointment, now)
        if timedelta(0) < remaining <= COUNTDOWN_WINDOW:
            upcoming.append((remaining, appointment))

    upcoming.sort(key=lambda item: item[0])
    return [
        {
            'appointment': appointment.to_dict(),
            'seconds_remaining': int(remaining.total_seconds()),
            'time_remaining': format_time_remaining(remaining),
            'urgency': urgency(remaining)
        }
        for remaining, appointment in upcoming
    ]


def validate_new_appointment(data, now):
    """Check a submitted appointment form and return (doctor, hospital, date, time)"""
    doctor_name = (data.get('doctor_name') or '').strip()
    hospital = (data.get('hospital') or '').strip()
    date_str = (data.get('date') or '').strip()
    time_str = (data.get('time') or '').strip()

    if not doctor_name or not hospital or not date_str or not time_str:
        raise ValidationError('Missing information', details='Please fill in all fields')

    try:
        date = datetime.strptime(date_str, '%Y-%m-%d').date()
        time = datetime.strptime(time_str, '%H:%M').time()
    except ValueError:
        raise ValidationError('Invalid date or time', details='Use YYYY-MM-DD and HH:MM')

    if datetime.combine(date, time) <= now:
        raise ValidationError('Appointment must be in the future')

    return doctor_name, hospital, date, time


class AppointmentReminderChecker:
    """Fires the 1-hour and 10-minute reminders, once each per appointment"""

    def __init__(self, sink=None):
        self.sink = sink or NotificationDispatcher()

    def check(self, appointments, now):
        fired = []
        for appointment in appointments:
            remaining = time_remaining(appointment, now)
            if remaining <= timedelta(0):
                continue

            for index, (minutes, flag, timeframe) in enumerate(REMINDER_THRESHOLDS):
                if getattr(appointment, flag) or remaining > timedelta(minutes=minutes):
                    continue

                setattr(appointment, flag, True)
                # Already inside a smaller threshold: that one will speak instead
                smaller = REMINDER_THRESHOLDS[index + 1:]
                if smaller and remaining <= timedelta(minutes=smaller[0][0]):
                    continue

                # A late first check reports the real time left, not the stage name
                if remaining > timedelta(minutes=minutes - 1):
                    time_left = timeframe
                else:
                    time_left = format_time_remaining(remaining)
                title, body, tag = appointment_message(appointment, timeframe, time_left)
                self.sink.notify(appointment.user, title, body, tag=tag, kind='appointment')
                logger.info('Appointment %s reminder sent (%s)', appointment.id, timeframe)
                fired.append((appointment, timeframe))
        return fired
