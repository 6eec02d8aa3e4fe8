"""
Medication reminder scheduler

Lifecycle of one occurrence:
    scheduled -> active -> taken
                        -> snoozed -> active (after the snooze interval)
                        -> missed (never answered)

Every occurrence that fires gets a ReminderLog row keyed by
(medication_id, scheduled_time) with status "missed"; a later answer from
the user upgrades that exact row. Next fire times are persisted in
ReminderSchedule, so occurrences reached while the service was down are
logged on the next pass instead of being lost.
"""
import logging
from datetime import timedelta

from healthmonitor.errors import ValidationError
from healthmonitor.models import db
from healthmonitor.models.medication import Medication
from healthmonitor.models.reminder import ActiveReminder, ReminderLog, ReminderSchedule
from healthmonitor.scheduling.notifications import NotificationDispatcher, medication_message
from healthmonitor.scheduling.recurrence import compute_next_fire_time, occurrences_between

logger = logging.getLogger(__name__)

DEFAULT_SNOOZE_MINUTES = 10


class ReminderScheduler:
    """Fires due medication reminders and records the user's answers"""

    def __init__(self, sink=None):
        self.sink = sink or NotificationDispatcher()

    # ------------------------------------------------------------------ schedule

    def refresh_schedule(self, medication, now):
        """Recompute the persisted next fire time after a create, edit or toggle"""
        schedule = medication.schedule
        if schedule is None:
            schedule = ReminderSchedule(medication=medication)
            db.session.add(schedule)
        schedule.next_fire_time = compute_next_fire_time(medication, now)
        return schedule

    def reconcile(self, now):
        """
        Bring every schedule up to date, e.g. on start-up.
        Medications without a schedule row get one; everything already due
        is fired (older occurrences are logged as missed).
        """
        for medication in Medication.query.filter(~Medication.schedule.has()).all():
            self.refresh_schedule(medication, now)
        db.session.flush()
        return self.run_due(now)

    # ------------------------------------------------------------------ firing

    def run_due(self, now):
        """Fire every occurrence due at ``now`` and re-arm elapsed snoozes"""
        fired = []

        due = ReminderSchedule.query.filter(
            ReminderSchedule.next_fire_time.isnot(None),
            ReminderSchedule.next_fire_time <= now
        ).all()

        for schedule in due:
            fired.append(self._fire_due(schedule, now))

        fired.extend(self._rearm_snoozed(now))

        db.session.commit()
        return fired

    def catch_up(self, medication, now):
        """
        Fire this medication's occurrences already due at ``now``.
        Called before an edit or toggle recomputes the schedule, so a dose
        that came due since the last poll is still alerted and logged.
        Does not commit.
        """
        schedule = medication.schedule
        if schedule is None or schedule.next_fire_time is None or schedule.next_fire_time > now:
            return None
        return self._fire_due(schedule, now)

    def _fire_due(self, schedule, now):
        medication = schedule.medication
        occurrences = [schedule.next_fire_time]
        occurrences += occurrences_between(medication, schedule.next_fire_time, now)

        # Only the latest occurrence becomes an alert; older ones were
        # reached while nobody was polling and are just logged.
        for scheduled_time in occurrences[:-1]:
            self._append_log(medication, scheduled_time)
            logger.info('Reconciled missed occurrence of %s at %s', medication.name, scheduled_time)

        reminder = self._fire(medication, occurrences[-1], now)

        schedule.last_fired_time = occurrences[-1]
        schedule.next_fire_time = compute_next_fire_time(medication, now)
        return reminder

    def _fire(self, medication, scheduled_time, now):
        # A newer occurrence supersedes every unresolved alert for this
        # medication, including snoozes still waiting to re-arm
        unresolved = ActiveReminder.query.filter(
            ActiveReminder.medication_id == medication.id,
            ActiveReminder.resolved_at.is_(None)
        ).all()
        for stale in unresolved:
            stale.is_active = False
            stale.resolved_at = now
            log = self._find_log(stale.medication_id, stale.scheduled_time)
            if log is not None and log.status == 'snoozed':
                log.status = 'missed'

        reminder = ActiveReminder(
            medication_id=medication.id,
            user_id=medication.user_id,
            scheduled_time=scheduled_time,
            fire_time=scheduled_time,
            is_active=True
        )
        db.session.add(reminder)
        self._append_log(medication, scheduled_time)

        title, body, tag = medication_message(medication, scheduled_time)
        self.sink.notify(medication.user, title, body, tag=tag, kind='medication')
        logger.info('Fired reminder for %s (medication %s) scheduled at %s',
                    medication.name, medication.id, scheduled_time)
        return reminder

    def _rearm_snoozed(self, now):
        rearmed = []
        pending = ActiveReminder.query.filter(
            ActiveReminder.is_active == False,
            ActiveReminder.resolved_at.is_(None),
            ActiveReminder.fire_time <= now
        ).all()

        for reminder in pending:
            reminder.is_active = True
            log = self._find_log(reminder.medication_id, reminder.scheduled_time)
            if log is not None and log.status == 'snoozed':
                log.status = 'missed'

            medication = reminder.medication
            title, body, tag = medication_message(medication, reminder.scheduled_time)
            self.sink.notify(medication.user, title, body, tag=tag, kind='medication')
            logger.info('Snoozed reminder %s for %s is due again', reminder.id, medication.name)
            rearmed.append(reminder)
        return rearmed

    # ------------------------------------------------------------------ answers

    def mark_taken(self, reminder, now, notes=None):
        """Resolve a reminder as taken and upgrade exactly its own log row"""
        if reminder.resolved_at is not None:
            raise ValidationError('Reminder has already been answered')

        reminder.is_active = False
        reminder.resolved_at = now

        log = self._find_log(reminder.medication_id, reminder.scheduled_time)
        if log is None:
            log = self._append_log(reminder.medication, reminder.scheduled_time)
        log.status = 'taken'
        log.actual_time = now
        if notes:
            log.notes = notes

        db.session.commit()
        return log

    def snooze(self, reminder, now, minutes=DEFAULT_SNOOZE_MINUTES):
        """Resolve the current alert and queue a new one ``minutes`` from now"""
        try:
            minutes = int(minutes)
        except (TypeError, ValueError):
            raise ValidationError('Snooze minutes must be a whole number')
        if minutes <= 0:
            raise ValidationError('Snooze minutes must be positive')
        if not reminder.is_active:
            raise ValidationError('Only an active reminder can be snoozed')

        reminder.is_active = False
        reminder.resolved_at = now

        log = self._find_log(reminder.medication_id, reminder.scheduled_time)
        if log is not None:
            log.status = 'snoozed'

        snoozed = ActiveReminder(
            medication_id=reminder.medication_id,
            user_id=reminder.user_id,
            scheduled_time=reminder.scheduled_time,
            fire_time=now + timedelta(minutes=minutes),
            is_active=False,
            snooze_count=(reminder.snooze_count or 0) + 1
        )
        db.session.add(snoozed)
        db.session.commit()
        logger.info('Reminder %s snoozed for %s minutes', reminder.id, minutes)
        return snoozed

    # ------------------------------------------------------------------ medications

    def remove_medication(self, medication):
        """Delete a medication with its schedule and alerts; its history stays"""
        ReminderLog.query.filter_by(medication_id=medication.id).update(
            {ReminderLog.medication_id: None}, synchronize_session=False
        )
        db.session.delete(medication)
        db.session.commit()

    # ------------------------------------------------------------------ logs

    @staticmethod
    def _find_log(medication_id, scheduled_time):
        return ReminderLog.query.filter_by(
            medication_id=medication_id,
            scheduled_time=scheduled_time
        ).first()

    def _append_log(self, medication, scheduled_time):
        log = self._find_log(medication.id, scheduled_time)
        if log is None:
            log = ReminderLog(
                medication_id=medication.id,
                medication_name=medication.name,
                user_id=medication.user_id,
                scheduled_time=scheduled_time,
                status='missed'
            )
            db.session.add(log)
        return log
