"""
Notification delivery
The in-app feed is always written; OS-level push is only attempted when the
user has granted notification permission and registered a push endpoint.
"""
import logging
from abc import ABC, abstractmethod

import requests

from healthmonitor.models import db
from healthmonitor.models.notification import Notification

logger = logging.getLogger(__name__)


class NotificationSink(ABC):
    """Somewhere a user-facing alert can be delivered"""

    @abstractmethod
    def notify(self, user, title, body, tag=None, kind='medication'):
        """Deliver one alert; return True if it was delivered"""


class InAppNotificationSink(NotificationSink):
    """Stores the alert in the user's notification feed"""

    def notify(self, user, title, body, tag=None, kind='medication'):
        db.session.add(Notification(user_id=user.id, kind=kind, title=title, body=body, tag=tag))
        return True


class PushNotificationSink(NotificationSink):
    """POSTs the alert to the user's push-notification backend"""

    def __init__(self, timeout=5):
        self.timeout = timeout

    def notify(self, user, title, body, tag=None, kind='medication'):
        if not user.push_endpoint:
            return False

        payload = {
            'title': title,
            'body': body,
            'tag': tag,
            'kind': kind,
            'require_interaction': kind == 'medication'
        }
        try:
            response = requests.post(user.push_endpoint, json=payload, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.warning('Push notification to user %s failed: %s', user.id, e)
            return False

        if response.status_code >= 400:
            logger.warning('Push backend rejected notification for user %s: HTTP %s',
                           user.id, response.status_code)
            return False
        return True


class NotificationDispatcher(NotificationSink):
    """In-app alert always, OS notification only when the user allowed it"""

    def __init__(self, in_app=None, push=None):
        self.in_app = in_app or InAppNotificationSink()
        self.push = push or PushNotificationSink()

    def notify(self, user, title, body, tag=None, kind='medication'):
        self.in_app.notify(user, title, body, tag=tag, kind=kind)
        if not user.notifications_enabled:
            return False
        return self.push.notify(user, title, body, tag=tag, kind=kind)


def medication_message(medication, scheduled_time):
    """Title, body and tag for a medication reminder"""
    return (
        f'Time for {medication.name}',
        f'Take {medication.dosage} now',
        f'med-{medication.id}-{scheduled_time.strftime("%H:%M")}'
    )


def appointment_message(appointment, timeframe, time_left=None):
    """Title, body and tag for a staged appointment reminder; the tag names the stage"""
    return (
        f'Appointment in {time_left or timeframe}',
        f'Dr. {appointment.doctor_name} at {appointment.hospital}',
        f'appointment-{appointment.id}-{timeframe}'
    )
