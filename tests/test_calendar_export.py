from datetime import date, time
from urllib.parse import parse_qs, urlparse

import pytest

from healthmonitor.models.appointment import Appointment
from healthmonitor.services.calendar_export import (
    build_ics, google_calendar_url, ics_filename, outlook_calendar_url
)

pytestmark = pytest.mark.usefixtures('app_ctx')


@pytest.fixture
def appointment():
    return Appointment(id=42, doctor_name='Jane Doe', hospital='General Hospital',
                       date=date(2024, 6, 11), time=time(14, 30))


def test_ics_event_with_two_alarms(appointment):
    ics = build_ics(appointment)
    lines = ics.split('\r\n')

    assert lines[0] == 'BEGIN:VCALENDAR'
    assert 'UID:42@healthmonitor' in lines
    assert 'DTSTART:20240611T143000Z' in lines
    assert 'DTEND:20240611T153000Z' in lines
    assert 'SUMMARY:Medical Appointment - Dr. Jane Doe' in lines
    assert 'LOCATION:General Hospital' in lines
    assert ics.count('BEGIN:VALARM') == 2
    assert 'TRIGGER:-PT1H' in lines
    assert 'TRIGGER:-PT10M' in lines
    assert ics.endswith('END:VCALENDAR\r\n')


def test_ics_escapes_text(appointment):
    appointment.hospital = 'St. Mary, North Wing; Floor 2'
    assert 'LOCATION:St. Mary\\, North Wing\\; Floor 2' in build_ics(appointment)


def test_ics_filename(appointment):
    assert ics_filename(appointment) == 'appointment-Jane-Doe-2024-06-11.ics'


def test_google_calendar_link(appointment):
    query = parse_qs(urlparse(google_calendar_url(appointment)).query)
    assert query['action'] == ['TEMPLATE']
    assert query['dates'] == ['20240611T143000Z/20240611T153000Z']
    assert query['location'] == ['General Hospital']


def test_outlook_link(appointment):
    url = outlook_calendar_url(appointment)
    assert url.startswith('https://outlook.live.com/calendar/0/deeplink/compose?')
    query = parse_qs(urlparse(url).query)
    assert query['subject'] == ['Medical Appointment - Dr. Jane Doe']
    assert query['startdt'] == ['2024-06-11T14:30:00+00:00']
