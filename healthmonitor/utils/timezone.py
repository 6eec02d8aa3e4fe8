"""
Timezone utilities for HealthMonitor
The database stores naive timestamps expressed in the application timezone
(APP_TIMEZONE, set by create_app). All wall-clock logic goes through here.
"""
from datetime import datetime
import pytz

DEFAULT_TZ_NAME = 'UTC'

_app_tz = pytz.timezone(DEFAULT_TZ_NAME)


def set_timezone(name):
    """Switch the application timezone (called once from create_app)"""
    global _app_tz
    _app_tz = pytz.timezone(name or DEFAULT_TZ_NAME)
    return _app_tz


def now():
    """Get current datetime in the application timezone as naive datetime for database compatibility"""
    return datetime.now(_app_tz).replace(tzinfo=None)


def to_local_aware(dt):
    """Convert a naive datetime to timezone-aware datetime in the application timezone"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        # Assume naive datetime is already in local time
        return _app_tz.localize(dt)
    return dt.astimezone(_app_tz)


def to_utc(dt):
    """Convert a naive local datetime to an aware UTC datetime"""
    if dt is None:
        return None
    return to_local_aware(dt).astimezone(pytz.utc)
