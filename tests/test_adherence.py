from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from healthmonitor.errors import ValidationError
from healthmonitor.scheduling.adherence import adherence_rate, adherence_summary

NOW = datetime(2024, 6, 20, 12, 0)


def log(medication_id, status, days_ago=0):
    return SimpleNamespace(medication_id=medication_id, status=status,
                           scheduled_time=NOW - timedelta(days=days_ago))


def test_no_logs_is_fully_adherent():
    assert adherence_rate([]) == 100
    assert adherence_rate([log(2, 'missed')], medication_id=1) == 100


def test_rate_is_rounded_percentage_of_taken():
    logs = [log(1, 'taken'), log(1, 'taken'), log(1, 'missed')]
    assert adherence_rate(logs) == 67


def test_snoozed_counts_against_adherence():
    logs = [log(1, 'taken'), log(1, 'snoozed')]
    assert adherence_rate(logs) == 50


def test_filters_by_medication():
    logs = [log(1, 'taken'), log(2, 'missed'), log(2, 'missed')]
    assert adherence_rate(logs, medication_id=1) == 100
    assert adherence_rate(logs, medication_id=2) == 0
    assert adherence_rate(logs) == 33


def test_trailing_window_uses_scheduled_time():
    logs = [log(1, 'missed', days_ago=10), log(1, 'taken', days_ago=1)]
    assert adherence_rate(logs, days=7, now=NOW) == 100
    assert adherence_rate(logs, days=30, now=NOW) == 50


def test_rate_stays_within_bounds():
    for taken in range(0, 8):
        logs = [log(1, 'taken')] * taken + [log(1, 'missed')] * (7 - taken)
        assert 0 <= adherence_rate(logs) <= 100


def test_window_must_be_positive():
    with pytest.raises(ValidationError):
        adherence_rate([log(1, 'taken')], days=0, now=NOW)


def test_summary_counts_each_status():
    logs = [log(1, 'taken'), log(1, 'missed'), log(1, 'snoozed'), log(1, 'taken')]
    summary = adherence_summary(logs, medication_id=1)
    assert summary['total'] == 4
    assert summary['taken'] == 2
    assert summary['missed'] == 1
    assert summary['snoozed'] == 1
    assert summary['adherence_rate'] == 50
