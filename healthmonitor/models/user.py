from werkzeug.security import generate_password_hash, check_password_hash
from healthmonitor.models import db
from healthmonitor.utils.timezone import now as tz_now


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=True)
    full_name = db.Column(db.String(120), nullable=True)
    password_hash = db.Column(db.String(255), nullable=False)
    notifications_enabled = db.Column(db.Boolean, default=False)  # OS-level notification permission
    push_endpoint = db.Column(db.String(500), nullable=True)  # push backend URL for OS notifications
    created_at = db.Column(db.DateTime, default=tz_now)
    is_active = db.Column(db.Boolean, default=True)

    # Relationships
    medications = db.relationship('Medication', backref='user', lazy=True, cascade='all, delete-orphan')
    appointments = db.relationship('Appointment', backref='user', lazy=True, cascade='all, delete-orphan')
    profile = db.relationship('HealthProfile', backref='user', uselist=False, cascade='all, delete-orphan')

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def __repr__(self):
        return f'<User {self.username}>'

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'full_name': self.full_name,
            'notifications_enabled': self.notifications_enabled,
            'push_endpoint': self.push_endpoint,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'is_active': self.is_active
        }
