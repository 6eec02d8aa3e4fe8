from healthmonitor.models import db
from healthmonitor.utils.timezone import now as tz_now


class Notification(db.Model):
    """In-app alert feed; always written, whether or not OS notifications are permitted"""
    __tablename__ = 'notifications'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    kind = db.Column(db.String(20), nullable=False)  # medication, appointment
    title = db.Column(db.String(200), nullable=False)
    body = db.Column(db.String(500), nullable=False)
    tag = db.Column(db.String(120), nullable=True)
    is_read = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=tz_now)

    def __repr__(self):
        return f'<Notification {self.tag}>'

    def to_dict(self):
        return {
            'id': self.id,
            'kind': self.kind,
            'title': self.title,
            'body': self.body,
            'tag': self.tag,
            'is_read': self.is_read,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }
