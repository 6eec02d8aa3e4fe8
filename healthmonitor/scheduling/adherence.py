"""
Adherence statistics over reminder logs
"""
from datetime import timedelta

from healthmonitor.errors import ValidationError


def filter_logs(logs, medication_id=None, days=None, now=None):
    """Logs for one medication (or all) whose scheduled time is inside the trailing window"""
    selected = list(logs)
    if medication_id is not None:
        selected = [log for log in selected if log.medication_id == medication_id]
    if days is not None:
        if days <= 0:
            raise ValidationError('days must be a positive number')
        if now is None:
            raise ValueError('now is required when filtering by days')
        cutoff = now - timedelta(days=days)
        selected = [log for log in selected if log.scheduled_time >= cutoff]
    return selected


def adherence_rate(logs, medication_id=None, days=None, now=None):
    """Percentage of logged occurrences marked taken; 100 when nothing was logged"""
    selected = filter_logs(logs, medication_id=medication_id, days=days, now=now)
    if not selected:
        return 100
    taken = sum(1 for log in selected if log.status == 'taken')
    return round(100 * taken / len(selected))


def adherence_summary(logs, medication_id=None, days=None, now=None):
    selected = filter_logs(logs, medication_id=medication_id, days=days, now=now)
    counts = {status: 0 for status in ('taken', 'missed', 'snoozed')}
    for log in selected:
        counts[log.status] = counts.get(log.status, 0) + 1

    return {
        'medication_id': medication_id,
        'days': days,
        'total': len(selected),
        'taken': counts['taken'],
        'missed': counts['missed'],
        'snoozed': counts['snoozed'],
        'adherence_rate': adherence_rate(selected)
    }
