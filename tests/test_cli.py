from datetime import datetime

from healthmonitor.models.reminder import ActiveReminder, ReminderLog


def test_check_fires_due_reminders(app, make_medication, monkeypatch):
    make_medication()
    monkeypatch.setattr('healthmonitor.cli.tz_now', lambda: datetime(2024, 6, 10, 9, 0))

    result = app.test_cli_runner().invoke(args=['reminders', 'check'])

    assert result.exit_code == 0
    assert 'Fired 1 medication reminders, 0 appointment reminders' in result.output
    assert ActiveReminder.query.filter_by(is_active=True).count() == 1


def test_reconcile_logs_occurrences_missed_while_down(app, make_medication, monkeypatch):
    medication = make_medication()
    monkeypatch.setattr('healthmonitor.tz_now', lambda: datetime(2024, 6, 12, 9, 30))

    result = app.test_cli_runner().invoke(args=['reminders', 'reconcile'])

    assert result.exit_code == 0
    assert 'fired 1 reminders' in result.output
    logs = ReminderLog.query.filter_by(medication_id=medication.id).order_by(ReminderLog.scheduled_time).all()
    assert [log.scheduled_time.day for log in logs] == [10, 11, 12]
    assert {log.status for log in logs} == {'missed'}
