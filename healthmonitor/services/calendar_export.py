"""
Calendar export for appointments
iCalendar payload with two alarms, plus links that open the event in
Google Calendar or Outlook on the web.
"""
import re
from datetime import timedelta
from urllib.parse import urlencode

from healthmonitor.utils.timezone import now as tz_now, to_utc

APPOINTMENT_DURATION = timedelta(hours=1)
PRODID = '-//HealthMonitor//Appointment//EN'
UID_DOMAIN = 'healthmonitor'


def _ics_timestamp(dt):
    return to_utc(dt).strftime('%Y%m%dT%H%M%SZ')


def _ics_escape(text):
    return (text or '').replace('\\', '\\\\').replace(';', '\\;').replace(',', '\\,').replace('\n', '\\n')


def _summary(appointment):
    return f'Medical Appointment - Dr. {appointment.doctor_name}'


def _description(appointment):
    return f'Medical appointment with Dr. {appointment.doctor_name} at {appointment.hospital}'


def build_ics(appointment):
    start = appointment.starts_at
    end = start + APPOINTMENT_DURATION

    lines = [
        'BEGIN:VCALENDAR',
        'VERSION:2.0',
        f'PRODID:{PRODID}',
        'BEGIN:VEVENT',
        f'UID:{appointment.id}@{UID_DOMAIN}',
        f'DTSTAMP:{_ics_timestamp(tz_now())}',
        f'DTSTART:{_ics_timestamp(start)}',
        f'DTEND:{_ics_timestamp(end)}',
        f'SUMMARY:{_ics_escape(_summary(appointment))}',
        f'DESCRIPTION:{_ics_escape(_description(appointment))}',
        f'LOCATION:{_ics_escape(appointment.hospital)}',
        'STATUS:CONFIRMED',
        'BEGIN:VALARM',
        'TRIGGER:-PT1H',
        'ACTION:DISPLAY',
        'DESCRIPTION:Appointment reminder - 1 hour',
        'END:VALARM',
        'BEGIN:VALARM',
        'TRIGGER:-PT10M',
        'ACTION:DISPLAY',
        'DESCRIPTION:Appointment reminder - 10 minutes',
        'END:VALARM',
        'END:VEVENT',
        'END:VCALENDAR',
    ]
    return '\r\n'.join(lines) + '\r\n'


def ics_filename(appointment):
    doctor = re.sub(r'\s+', '-', appointment.doctor_name.strip())
    return f'appointment-{doctor}-{appointment.date.isoformat()}.ics'


def google_calendar_url(appointment):
    start = appointment.starts_at
    end = start + APPOINTMENT_DURATION
    params = {
        'action': 'TEMPLATE',
        'text': _summary(appointment),
        'dates': f'{_ics_timestamp(start)}/{_ics_timestamp(end)}',
        'details': _description(appointment),
        'location': appointment.hospital,
    }
    return 'https://calendar.google.com/calendar/render?' + urlencode(params)


def outlook_calendar_url(appointment):
    start = appointment.starts_at
    end = start + APPOINTMENT_DURATION
    params = {
        'subject': _summary(appointment),
        'startdt': to_utc(start).isoformat(),
        'enddt': to_utc(end).isoformat(),
        'body': _description(appointment),
        'location': appointment.hospital,
    }
    return 'https://outlook.live.com/calendar/0/deeplink/compose?' + urlencode(params)
