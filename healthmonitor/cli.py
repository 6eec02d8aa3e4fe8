"""
Flask CLI commands for the reminder poller

    flask --app "healthmonitor:create_app()" reminders run
    flask --app "healthmonitor:create_app()" reminders check
"""
import logging
import time

import click
from flask import current_app
from flask.cli import AppGroup

from healthmonitor.models import db
from healthmonitor.scheduling.notifications import NotificationDispatcher, PushNotificationSink
from healthmonitor.scheduling.poller import run_reminder_pass
from healthmonitor.utils.timezone import now as tz_now

logger = logging.getLogger(__name__)

reminders_cli = AppGroup('reminders', help='Medication and appointment reminders.')


def _dispatcher():
    return NotificationDispatcher(push=PushNotificationSink(timeout=current_app.config['HTTP_TIMEOUT']))


@reminders_cli.command('check')
def check_command():
    """Run a single reminder pass."""
    fired, sent = run_reminder_pass(tz_now(), _dispatcher())
    click.echo(f'Fired {len(fired)} medication reminders, {len(sent)} appointment reminders')


@reminders_cli.command('reconcile')
def reconcile_command():
    """Recompute schedules and log occurrences missed while the service was down."""
    from healthmonitor import reconcile_reminders
    fired = reconcile_reminders(current_app)
    click.echo(f'Reconciled schedules, fired {len(fired)} reminders')


@reminders_cli.command('run')
@click.option('--interval', type=int, default=None, help='Seconds between passes.')
def run_command(interval):
    """Poll for due reminders until interrupted."""
    interval = interval or current_app.config['REMINDER_POLL_SECONDS']
    click.echo(f'Polling reminders every {interval}s (Ctrl+C to stop)')
    try:
        while True:
            try:
                fired, sent = run_reminder_pass(tz_now(), _dispatcher())
                if fired or sent:
                    logger.info('Pass fired %d medication and %d appointment reminders', len(fired), len(sent))
            except Exception as e:
                db.session.rollback()
                logger.error('Reminder pass failed: %s', e, exc_info=True)
            time.sleep(interval)
    except KeyboardInterrupt:
        click.echo('Reminder poller stopped')
