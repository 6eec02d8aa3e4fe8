"""
One polling pass over every user's reminders
"""
from healthmonitor.models import db
from healthmonitor.models.appointment import Appointment
from healthmonitor.scheduling.appointments import AppointmentReminderChecker
from healthmonitor.scheduling.scheduler import ReminderScheduler


def run_reminder_pass(now, sink):
    """Fire due medication reminders, then staged appointment reminders"""
    fired = ReminderScheduler(sink=sink).run_due(now)

    upcoming = Appointment.query.filter(Appointment.date >= now.date()).all()
    sent = AppointmentReminderChecker(sink=sink).check(upcoming, now)
    db.session.commit()
    return fired, sent
