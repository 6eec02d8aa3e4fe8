import logging

from flask import Flask, jsonify
from flask_migrate import Migrate
from sqlalchemy.exc import SQLAlchemyError

from healthmonitor.config import Config
from healthmonitor.errors import HealthMonitorError
from healthmonitor.models import db
from healthmonitor.utils.timezone import set_timezone, now as tz_now

migrate = Migrate()
logger = logging.getLogger(__name__)


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    logging.basicConfig(
        level=getattr(logging, app.config['LOG_LEVEL'], logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    set_timezone(app.config['APP_TIMEZONE'])

    # Initialize database
    db.init_app(app)

    # Initialize Flask-Migrate
    migrate.init_app(app, db)

    # Register blueprints
    from healthmonitor.routes.auth import auth_bp
    from healthmonitor.api.routes import api_bp
    app.register_blueprint(auth_bp)
    app.register_blueprint(api_bp)

    @app.errorhandler(HealthMonitorError)
    def handle_app_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.route('/health')
    def health():
        return jsonify({'ok': True})

    from healthmonitor.cli import reminders_cli
    app.cli.add_command(reminders_cli)

    # Import models to register them with SQLAlchemy
    with app.app_context():
        from healthmonitor.models.user import User
        from healthmonitor.models.medication import Medication
        from healthmonitor.models.reminder import ReminderSchedule, ActiveReminder, ReminderLog
        from healthmonitor.models.appointment import Appointment
        from healthmonitor.models.notification import Notification
        from healthmonitor.models.health_profile import HealthProfile, WeightRecord, HealthMetric
        db.create_all()

        if app.config['RECONCILE_ON_START']:
            reconcile_reminders(app)

    return app


def reconcile_reminders(app):
    """Log occurrences that came due while the service was down"""
    from healthmonitor.scheduling.notifications import NotificationDispatcher, PushNotificationSink
    from healthmonitor.scheduling.scheduler import ReminderScheduler

    scheduler = ReminderScheduler(
        sink=NotificationDispatcher(push=PushNotificationSink(timeout=app.config['HTTP_TIMEOUT']))
    )
    try:
        fired = scheduler.reconcile(tz_now())
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error('Reminder reconciliation failed: %s', e)
        return []
    logger.info('Reminder reconciliation fired %d reminders', len(fired))
    return fired
