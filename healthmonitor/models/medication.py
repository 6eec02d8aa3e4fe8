import json
from healthmonitor.models import db
from healthmonitor.utils.timezone import now as tz_now


class Medication(db.Model):
    __tablename__ = 'medications'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    dosage = db.Column(db.String(100), nullable=False)  # e.g., "500mg", "2 tablets"
    times_json = db.Column(db.Text, nullable=False, default='[]')  # JSON list of "HH:MM"
    frequency = db.Column(db.String(20), nullable=False, default='daily')  # daily, alternate, weekly
    reminder_enabled = db.Column(db.Boolean, default=True)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=True)
    created_at = db.Column(db.DateTime, default=tz_now)

    # Relationships
    schedule = db.relationship('ReminderSchedule', backref='medication', uselist=False,
                               cascade='all, delete-orphan')
    active_reminders = db.relationship('ActiveReminder', backref='medication', lazy=True,
                                       cascade='all, delete-orphan')

    @property
    def times(self):
        return json.loads(self.times_json or '[]')

    @times.setter
    def times(self, values):
        # Sorted and de-duplicated so the first entry is always the earliest time of day
        self.times_json = json.dumps(sorted(set(values)))

    def __repr__(self):
        return f'<Medication {self.name} - {self.dosage}>'

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'name': self.name,
            'dosage': self.dosage,
            'times': self.times,
            'frequency': self.frequency,
            'reminder_enabled': self.reminder_enabled,
            'start_date': self.start_date.isoformat() if self.start_date else None,
            'end_date': self.end_date.isoformat() if self.end_date else None,
            'next_fire_time': self.schedule.next_fire_time.isoformat()
                if self.schedule and self.schedule.next_fire_time else None
        }
