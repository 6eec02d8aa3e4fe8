from healthmonitor.models import db
from healthmonitor.utils.timezone import now as tz_now


class HealthProfile(db.Model):
    __tablename__ = 'health_profiles'

    GENDERS = ('male', 'female', 'other')
    ACTIVITY_LEVELS = ('sedentary', 'lightly_active', 'moderately_active', 'very_active', 'super_active')

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), unique=True, nullable=False)
    height = db.Column(db.Float, nullable=True)  # cm
    weight = db.Column(db.Float, nullable=True)  # kg
    age = db.Column(db.Integer, nullable=True)
    gender = db.Column(db.String(10), nullable=True)
    activity_level = db.Column(db.String(20), nullable=True)
    blood_group = db.Column(db.String(5), nullable=True)
    allergies = db.Column(db.Text, nullable=True)
    medications = db.Column(db.Text, nullable=True)  # free text, separate from tracked medications
    medical_conditions = db.Column(db.Text, nullable=True)
    emergency_contact = db.Column(db.String(200), nullable=True)
    smoking = db.Column(db.Boolean, default=False)
    alcohol = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=tz_now)
    updated_at = db.Column(db.DateTime, default=tz_now, onupdate=tz_now)

    EDITABLE_FIELDS = (
        'height', 'weight', 'age', 'gender', 'activity_level', 'blood_group', 'allergies',
        'medications', 'medical_conditions', 'emergency_contact', 'smoking', 'alcohol'
    )

    def __repr__(self):
        return f'<HealthProfile user={self.user_id}>'

    def to_dict(self):
        data = {field: getattr(self, field) for field in self.EDITABLE_FIELDS}
        data.update({
            'id': self.id,
            'user_id': self.user_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None
        })
        return data


class WeightRecord(db.Model):
    __tablename__ = 'weight_history'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    weight = db.Column(db.Float, nullable=False)
    recorded_at = db.Column(db.DateTime, default=tz_now)

    def to_dict(self):
        return {
            'id': self.id,
            'weight': self.weight,
            'recorded_at': self.recorded_at.isoformat() if self.recorded_at else None
        }


class HealthMetric(db.Model):
    __tablename__ = 'health_metrics'

    FIELDS = (
        'blood_pressure_systolic', 'blood_pressure_diastolic', 'heart_rate',
        'blood_sugar', 'oxygen_level', 'temperature'
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    blood_pressure_systolic = db.Column(db.Integer, nullable=True)
    blood_pressure_diastolic = db.Column(db.Integer, nullable=True)
    heart_rate = db.Column(db.Integer, nullable=True)
    blood_sugar = db.Column(db.Float, nullable=True)
    oxygen_level = db.Column(db.Float, nullable=True)
    temperature = db.Column(db.Float, nullable=True)
    recorded_at = db.Column(db.DateTime, default=tz_now)

    def to_dict(self):
        data = {field: getattr(self, field) for field in self.FIELDS}
        data['id'] = self.id
        data['recorded_at'] = self.recorded_at.isoformat() if self.recorded_at else None
        return data
