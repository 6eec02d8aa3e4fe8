from datetime import datetime
from healthmonitor.models import db
from healthmonitor.utils.timezone import now as tz_now


class Appointment(db.Model):
    __tablename__ = 'appointments'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    doctor_name = db.Column(db.String(120), nullable=False)
    hospital = db.Column(db.String(200), nullable=False)
    date = db.Column(db.Date, nullable=False)
    time = db.Column(db.Time, nullable=False)
    notes = db.Column(db.Text, nullable=True)
    # Staged reminder flags; each threshold fires once
    one_hour_sent = db.Column(db.Boolean, default=False)
    ten_minutes_sent = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=tz_now)

    @property
    def starts_at(self):
        return datetime.combine(self.date, self.time)

    def __repr__(self):
        return f'<Appointment Dr. {self.doctor_name} at {self.hospital} on {self.date} {self.time}>'

    def to_dict(self):
        return {
            'id': self.id,
            'doctor_name': self.doctor_name,
            'hospital': self.hospital,
            'date': self.date.isoformat(),
            'time': self.time.strftime('%H:%M'),
            'starts_at': self.starts_at.isoformat(),
            'notes': self.notes,
            'one_hour_sent': self.one_hour_sent,
            'ten_minutes_sent': self.ten_minutes_sent
        }
