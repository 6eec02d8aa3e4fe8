from datetime import date, datetime, timedelta

import pytest

from healthmonitor.errors import ValidationError
from healthmonitor.models import db
from healthmonitor.models.medication import Medication
from healthmonitor.models.notification import Notification
from healthmonitor.models.reminder import ActiveReminder, ReminderLog, ReminderSchedule
from healthmonitor.scheduling.notifications import NotificationDispatcher, PushNotificationSink
from healthmonitor.scheduling.scheduler import ReminderScheduler

DAY1_0900 = datetime(2024, 6, 10, 9, 0)


def test_refresh_schedule_persists_next_fire_time(make_medication):
    medication = make_medication()
    assert medication.schedule.next_fire_time == DAY1_0900


def test_run_due_fires_notification_reminder_and_missed_log(make_medication, scheduler, sink):
    medication = make_medication()

    fired = scheduler.run_due(DAY1_0900)

    assert len(fired) == 1
    reminder = fired[0]
    assert reminder.is_active
    assert reminder.scheduled_time == DAY1_0900

    logs = ReminderLog.query.all()
    assert [(log.scheduled_time, log.status) for log in logs] == [(DAY1_0900, 'missed')]

    assert sink.sent[0]['title'] == 'Time for Aspirin'
    assert sink.sent[0]['body'] == 'Take 100mg now'
    assert sink.sent[0]['tag'] == f'med-{medication.id}-09:00'

    assert medication.schedule.next_fire_time == datetime(2024, 6, 11, 9, 0)
    assert medication.schedule.last_fired_time == DAY1_0900


def test_run_due_before_fire_time_does_nothing(make_medication, scheduler, sink):
    make_medication()
    assert scheduler.run_due(datetime(2024, 6, 10, 8, 59)) == []
    assert ReminderLog.query.count() == 0
    assert sink.sent == []


def test_mark_taken_upgrades_only_the_matching_log(make_medication, scheduler):
    make_medication()
    first = scheduler.run_due(DAY1_0900)[0]
    second = scheduler.run_due(datetime(2024, 6, 11, 9, 0))[0]

    taken_at = datetime(2024, 6, 11, 9, 5)
    log = scheduler.mark_taken(second, taken_at, notes='with breakfast')

    assert log.status == 'taken'
    assert log.actual_time == taken_at
    assert log.notes == 'with breakfast'
    assert not second.is_active

    earlier = ReminderLog.query.filter_by(scheduled_time=first.scheduled_time).one()
    assert earlier.status == 'missed'
    assert earlier.actual_time is None


def test_mark_taken_twice_is_rejected(make_medication, scheduler):
    make_medication()
    reminder = scheduler.run_due(DAY1_0900)[0]
    scheduler.mark_taken(reminder, DAY1_0900 + timedelta(minutes=1))
    with pytest.raises(ValidationError):
        scheduler.mark_taken(reminder, DAY1_0900 + timedelta(minutes=2))


def test_snooze_queues_new_reminder_without_second_log(make_medication, scheduler, sink):
    make_medication()
    reminder = scheduler.run_due(DAY1_0900)[0]
    snoozed_at = DAY1_0900 + timedelta(minutes=2)

    snoozed = scheduler.snooze(reminder, snoozed_at, minutes=30)

    assert snoozed.fire_time == snoozed_at + timedelta(minutes=30)
    assert snoozed.scheduled_time == DAY1_0900
    assert snoozed.snooze_count == 1
    assert snoozed.is_pending
    assert not reminder.is_active
    assert ReminderLog.query.one().status == 'snoozed'

    # not yet due
    assert scheduler.run_due(snoozed_at + timedelta(minutes=29)) == []

    rearmed = scheduler.run_due(snoozed_at + timedelta(minutes=30))
    assert rearmed == [snoozed]
    assert snoozed.is_active
    assert len(sink.sent) == 2
    assert ReminderLog.query.count() == 1
    assert ActiveReminder.query.filter_by(is_active=True).count() == 1


def test_taken_after_snooze_resolves_the_original_occurrence(make_medication, scheduler):
    make_medication()
    reminder = scheduler.run_due(DAY1_0900)[0]
    snoozed = scheduler.snooze(reminder, DAY1_0900, minutes=10)
    scheduler.run_due(DAY1_0900 + timedelta(minutes=10))

    log = scheduler.mark_taken(snoozed, DAY1_0900 + timedelta(minutes=12))
    assert log.scheduled_time == DAY1_0900
    assert log.status == 'taken'
    assert ReminderLog.query.count() == 1


@pytest.mark.parametrize('minutes', [0, -5, 'soon'])
def test_snooze_rejects_bad_intervals(make_medication, scheduler, minutes):
    make_medication()
    reminder = scheduler.run_due(DAY1_0900)[0]
    with pytest.raises(ValidationError):
        scheduler.snooze(reminder, DAY1_0900, minutes=minutes)


def test_occurrences_reached_while_down_are_logged_as_missed(make_medication, scheduler, sink):
    make_medication()

    fired = scheduler.run_due(datetime(2024, 6, 12, 10, 0))

    logs = ReminderLog.query.order_by(ReminderLog.scheduled_time).all()
    assert [log.scheduled_time.day for log in logs] == [10, 11, 12]
    assert all(log.status == 'missed' for log in logs)
    # only the latest occurrence is raised as an alert
    assert len(fired) == 1
    assert fired[0].scheduled_time == datetime(2024, 6, 12, 9, 0)
    assert len(sink.sent) == 1


def test_reconcile_creates_missing_schedules(user, scheduler):
    medication = Medication(user_id=user.id, name='Metformin', dosage='500mg',
                            frequency='daily', start_date=date(2024, 6, 10))
    medication.times = ['07:00']
    db.session.add(medication)
    db.session.commit()
    assert ReminderSchedule.query.count() == 0

    scheduler.reconcile(datetime(2024, 6, 10, 6, 0))

    assert medication.schedule.next_fire_time == datetime(2024, 6, 10, 7, 0)


def test_new_occurrence_supersedes_unanswered_alert(make_medication, scheduler):
    make_medication()
    first = scheduler.run_due(DAY1_0900)[0]
    second = scheduler.run_due(datetime(2024, 6, 11, 9, 0))[0]

    assert not first.is_active
    assert second.is_active
    assert ActiveReminder.query.filter_by(is_active=True).all() == [second]


def test_new_occurrence_supersedes_waiting_snooze(make_medication, scheduler, sink):
    make_medication(times=['09:00', '09:30'])
    first = scheduler.run_due(DAY1_0900)[0]
    scheduler.snooze(first, DAY1_0900 + timedelta(minutes=5), minutes=60)

    second = scheduler.run_due(datetime(2024, 6, 10, 9, 30))[0]

    # the 09:05 snooze would have re-armed at 10:05
    assert scheduler.run_due(datetime(2024, 6, 10, 10, 5)) == []
    assert ActiveReminder.query.filter_by(is_active=True).all() == [second]
    assert ActiveReminder.query.filter(ActiveReminder.resolved_at.is_(None)).count() == 1
    statuses = {log.scheduled_time.strftime('%H:%M'): log.status for log in ReminderLog.query.all()}
    assert statuses == {'09:00': 'missed', '09:30': 'missed'}
    assert len(sink.sent) == 2


def test_catch_up_fires_dose_due_before_an_edit(make_medication, scheduler, sink):
    medication = make_medication()
    edited_at = DAY1_0900 + timedelta(minutes=2)

    reminder = scheduler.catch_up(medication, edited_at)
    medication.times = ['10:00']
    scheduler.refresh_schedule(medication, edited_at)
    db.session.commit()

    assert reminder.scheduled_time == DAY1_0900
    assert ReminderLog.query.one().scheduled_time == DAY1_0900
    assert medication.schedule.next_fire_time == datetime(2024, 6, 10, 10, 0)
    assert len(sink.sent) == 1


def test_catch_up_before_fire_time_does_nothing(make_medication, scheduler):
    medication = make_medication()
    assert scheduler.catch_up(medication, datetime(2024, 6, 10, 8, 30)) is None
    assert ReminderLog.query.count() == 0


def test_disabled_medication_stops_firing(make_medication, scheduler):
    medication = make_medication()
    medication.reminder_enabled = False
    scheduler.refresh_schedule(medication, datetime(2024, 6, 10, 8, 30))
    db.session.commit()

    assert medication.schedule.next_fire_time is None
    assert scheduler.run_due(datetime(2024, 6, 15, 9, 0)) == []


def test_remove_medication_keeps_history(make_medication, scheduler):
    medication = make_medication()
    scheduler.run_due(DAY1_0900)

    scheduler.remove_medication(medication)

    assert ActiveReminder.query.count() == 0
    assert ReminderSchedule.query.count() == 0
    log = ReminderLog.query.one()
    assert log.medication_id is None
    assert log.medication_name == 'Aspirin'


def test_in_app_alert_is_the_fallback_without_permission(make_medication, user, monkeypatch):
    def fail_post(*args, **kwargs):
        raise AssertionError('push must not be attempted')

    monkeypatch.setattr('healthmonitor.scheduling.notifications.requests.post', fail_post)
    user.push_endpoint = 'https://push.example.com/u/1'
    db.session.commit()
    make_medication()

    ReminderScheduler(sink=NotificationDispatcher()).run_due(DAY1_0900)

    notification = Notification.query.one()
    assert notification.title == 'Time for Aspirin'
    assert notification.kind == 'medication'
    assert ReminderLog.query.count() == 1


def test_push_is_sent_when_permission_granted(make_medication, user, monkeypatch):
    calls = []

    class FakeResponse:
        status_code = 201

    def fake_post(url, json=None, timeout=None):
        calls.append((url, json, timeout))
        return FakeResponse()

    monkeypatch.setattr('healthmonitor.scheduling.notifications.requests.post', fake_post)
    user.notifications_enabled = True
    user.push_endpoint = 'https://push.example.com/u/1'
    db.session.commit()
    make_medication()

    dispatcher = NotificationDispatcher(push=PushNotificationSink(timeout=3))
    ReminderScheduler(sink=dispatcher).run_due(DAY1_0900)

    assert len(calls) == 1
    url, payload, timeout = calls[0]
    assert url == 'https://push.example.com/u/1'
    assert payload['title'] == 'Time for Aspirin'
    assert payload['require_interaction'] is True
    assert timeout == 3
    assert Notification.query.count() == 1
