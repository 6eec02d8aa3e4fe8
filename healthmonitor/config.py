import os
from pathlib import Path


def _env_bool(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    # Base directory
    BASE_DIR = Path(__file__).parent.parent

    # Secret key for session management
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'

    # Database configuration
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        f'sqlite:///{BASE_DIR / "instance" / "healthmonitor.db"}'
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Wall-clock timezone used for medication times and appointments
    APP_TIMEZONE = os.environ.get('APP_TIMEZONE', 'UTC')

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()

    # Google Maps / Places configuration
    GOOGLE_MAPS_API_KEY = os.environ.get('GOOGLE_MAPS_API_KEY')
    HOSPITAL_SEARCH_RADIUS = int(os.environ.get('HOSPITAL_SEARCH_RADIUS', 15000))  # metres
    HOSPITAL_RESULT_LIMIT = int(os.environ.get('HOSPITAL_RESULT_LIMIT', 20))
    HTTP_TIMEOUT = float(os.environ.get('HTTP_TIMEOUT', 10))

    # Reminder configuration
    REMINDER_POLL_SECONDS = int(os.environ.get('REMINDER_POLL_SECONDS', 30))
    SNOOZE_OPTIONS = (10, 30, 60)  # minutes offered to the user
    RECONCILE_ON_START = _env_bool('RECONCILE_ON_START', True)


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    GOOGLE_MAPS_API_KEY = 'test-maps-key'
    RECONCILE_ON_START = False
