from datetime import date, datetime

import pytest

from healthmonitor import create_app
from healthmonitor.config import TestConfig
from healthmonitor.models import db
from healthmonitor.models.medication import Medication
from healthmonitor.models.user import User
from healthmonitor.scheduling.notifications import NotificationSink
from healthmonitor.scheduling.scheduler import ReminderScheduler

# Monday 10 June 2024, 08:00 in the application timezone (UTC under TestConfig)
NOW = datetime(2024, 6, 10, 8, 0)


class RecordingSink(NotificationSink):
    """Collects notifications instead of delivering them"""

    def __init__(self):
        self.sent = []

    def notify(self, user, title, body, tag=None, kind='medication'):
        self.sent.append({'user_id': user.id, 'title': title, 'body': body, 'tag': tag, 'kind': kind})
        return True


@pytest.fixture
def app():
    app = create_app(TestConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def app_ctx(app):
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def clock(monkeypatch):
    """Freeze the time seen by the API routes; call clock.set(dt) to move it"""

    class Clock:
        def __init__(self):
            self.current = NOW

        def set(self, value):
            self.current = value

        def __call__(self):
            return self.current

    frozen = Clock()
    monkeypatch.setattr('healthmonitor.api.routes.tz_now', frozen)
    return frozen


@pytest.fixture
def auth_client(client):
    response = client.post('/auth/register', json={'username': 'alice', 'password': 'secret123'})
    assert response.status_code == 201
    return client


@pytest.fixture
def user(app_ctx):
    user = User(username='bob')
    user.set_password('secret123')
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def scheduler(sink):
    return ReminderScheduler(sink=sink)


@pytest.fixture
def make_medication(user, scheduler):
    def _make(now=NOW, **overrides):
        fields = {
            'name': 'Aspirin',
            'dosage': '100mg',
            'frequency': 'daily',
            'reminder_enabled': True,
            'start_date': date(2024, 6, 10),
        }
        times = overrides.pop('times', ['09:00'])
        fields.update(overrides)
        medication = Medication(user_id=user.id, **fields)
        medication.times = times
        db.session.add(medication)
        scheduler.refresh_schedule(medication, now)
        db.session.commit()
        return medication
    return _make
