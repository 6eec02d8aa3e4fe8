from healthmonitor.models import db
from healthmonitor.utils.timezone import now as tz_now


class ReminderSchedule(db.Model):
    """Durable next fire time for one medication, recomputed on every scheduler pass"""
    __tablename__ = 'reminder_schedules'

    id = db.Column(db.Integer, primary_key=True)
    medication_id = db.Column(db.Integer, db.ForeignKey('medications.id'), unique=True, nullable=False)
    next_fire_time = db.Column(db.DateTime, nullable=True)  # None once the medication has ended
    last_fired_time = db.Column(db.DateTime, nullable=True)
    updated_at = db.Column(db.DateTime, default=tz_now, onupdate=tz_now)

    def __repr__(self):
        return f'<ReminderSchedule medication={self.medication_id} next={self.next_fire_time}>'

    def to_dict(self):
        return {
            'medication_id': self.medication_id,
            'next_fire_time': self.next_fire_time.isoformat() if self.next_fire_time else None,
            'last_fired_time': self.last_fired_time.isoformat() if self.last_fired_time else None
        }


class ActiveReminder(db.Model):
    __tablename__ = 'active_reminders'

    id = db.Column(db.Integer, primary_key=True)
    medication_id = db.Column(db.Integer, db.ForeignKey('medications.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    scheduled_time = db.Column(db.DateTime, nullable=False)  # the occurrence this reminder belongs to
    fire_time = db.Column(db.DateTime, nullable=False)  # later than scheduled_time after a snooze
    is_active = db.Column(db.Boolean, default=False)
    snooze_count = db.Column(db.Integer, default=0)
    resolved_at = db.Column(db.DateTime, nullable=True)  # set when taken or snoozed
    created_at = db.Column(db.DateTime, default=tz_now)

    @property
    def is_pending(self):
        """Snoozed reminder still waiting for its fire time"""
        return not self.is_active and self.resolved_at is None

    def __repr__(self):
        return f'<ActiveReminder {self.id} - Medication {self.medication_id} at {self.fire_time}>'

    def to_dict(self):
        return {
            'id': self.id,
            'medication_id': self.medication_id,
            'medication_name': self.medication.name if self.medication else None,
            'dosage': self.medication.dosage if self.medication else None,
            'scheduled_time': self.scheduled_time.isoformat() if self.scheduled_time else None,
            'fire_time': self.fire_time.isoformat() if self.fire_time else None,
            'is_active': self.is_active,
            'is_pending': self.is_pending,
            'snooze_count': self.snooze_count
        }


class ReminderLog(db.Model):
    __tablename__ = 'reminder_logs'
    __table_args__ = (
        db.UniqueConstraint('medication_id', 'scheduled_time', name='uq_reminder_log_occurrence'),
    )

    STATUSES = ('taken', 'missed', 'snoozed')

    id = db.Column(db.Integer, primary_key=True)
    # Nulled when the medication is deleted; history is kept
    medication_id = db.Column(db.Integer, db.ForeignKey('medications.id', ondelete='SET NULL'), nullable=True)
    medication_name = db.Column(db.String(200), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    scheduled_time = db.Column(db.DateTime, nullable=False)
    actual_time = db.Column(db.DateTime, nullable=True)
    status = db.Column(db.String(20), nullable=False, default='missed')
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=tz_now)

    def __repr__(self):
        return f'<ReminderLog {self.medication_name} {self.scheduled_time} {self.status}>'

    def to_dict(self):
        return {
            'id': self.id,
            'medication_id': self.medication_id,
            'medication_name': self.medication_name,
            'scheduled_time': self.scheduled_time.isoformat() if self.scheduled_time else None,
            'actual_time': self.actual_time.isoformat() if self.actual_time else None,
            'status': self.status,
            'notes': self.notes
        }
