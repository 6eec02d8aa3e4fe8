"""
API Routes for the health tracker
Profile, medications and reminders, appointments, notifications and
hospital search. All routes answer JSON and require a signed-in session.
"""
import logging
from datetime import datetime

from flask import Blueprint, Response, current_app, request, jsonify, session
from sqlalchemy.exc import SQLAlchemyError

from healthmonitor.errors import HealthMonitorError, NotFoundError, ValidationError
from healthmonitor.models import db
from healthmonitor.models.appointment import Appointment
from healthmonitor.models.health_profile import HealthMetric, HealthProfile, WeightRecord
from healthmonitor.models.medication import Medication
from healthmonitor.models.notification import Notification
from healthmonitor.models.reminder import ActiveReminder, ReminderLog
from healthmonitor.routes.auth import login_required_api
from healthmonitor.scheduling.adherence import adherence_rate, adherence_summary
from healthmonitor.scheduling.appointments import upcoming_countdowns, validate_new_appointment
from healthmonitor.scheduling.notifications import NotificationDispatcher, PushNotificationSink
from healthmonitor.scheduling.poller import run_reminder_pass
from healthmonitor.scheduling.recurrence import Frequency, normalize_times
from healthmonitor.scheduling.scheduler import ReminderScheduler
from healthmonitor.services.calendar_export import (
    build_ics, google_calendar_url, ics_filename, outlook_calendar_url
)
from healthmonitor.services.health_metrics import profile_insights
from healthmonitor.services.location import Geocoder, GeocodingLocationProvider, ManualLocationProvider
from healthmonitor.services.places import PlacesClient, PlacesError, describe_search_error
from healthmonitor.utils.timezone import now as tz_now

logger = logging.getLogger(__name__)

api_bp = Blueprint('api', __name__, url_prefix='/api')

DISMISSED_SESSION_KEY = 'dismissed_countdowns'


@api_bp.errorhandler(HealthMonitorError)
def handle_app_error(error):
    db.session.rollback()
    return jsonify(error.to_dict()), error.status_code


@api_bp.errorhandler(SQLAlchemyError)
def handle_database_error(error):
    db.session.rollback()
    logger.error('Database error: %s', error)
    return jsonify({'error': 'Database error', 'message': 'Could not save your changes. Please try again.'}), 500


def notification_dispatcher():
    return NotificationDispatcher(push=PushNotificationSink(timeout=current_app.config['HTTP_TIMEOUT']))


def reminder_scheduler():
    return ReminderScheduler(sink=notification_dispatcher())


def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        raise ValidationError('Request body must be JSON')
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def _get_owned(model, object_id, label):
    """Row of ``model`` owned by the signed-in user, or 404"""
    obj = model.query.filter_by(id=object_id, user_id=session['user_id']).first()
    if not obj:
        raise NotFoundError(f'{label} not found')
    return obj


def _parse_date(value, field):
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except (TypeError, ValueError):
        raise ValidationError(f'Invalid {field}', details='Use YYYY-MM-DD')


def _optional_number(data, field, cast=float, minimum=None, maximum=None):
    value = data.get(field)
    if value in (None, ''):
        return None
    try:
        value = cast(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be a number')
    if (minimum is not None and value < minimum) or (maximum is not None and value > maximum):
        raise ValidationError(f'{field} is out of range')
    return value


# ==================== HEALTH PROFILE ====================

PROFILE_NUMBERS = {
    'height': (float, 30, 300),
    'weight': (float, 2, 500),
    'age': (int, 0, 130),
}
PROFILE_TEXT = ('blood_group', 'allergies', 'medications', 'medical_conditions', 'emergency_contact')


def apply_profile_fields(profile, data):
    """Copy validated fields from ``data`` onto the profile"""
    for field, (cast, low, high) in PROFILE_NUMBERS.items():
        if field in data:
            setattr(profile, field, _optional_number(data, field, cast, low, high))

    if 'gender' in data:
        gender = data.get('gender') or None
        if gender is not None and gender not in HealthProfile.GENDERS:
            raise ValidationError('Invalid gender', details=', '.join(HealthProfile.GENDERS))
        profile.gender = gender

    if 'activity_level' in data:
        level = data.get('activity_level') or None
        if level is not None and level not in HealthProfile.ACTIVITY_LEVELS:
            raise ValidationError('Invalid activity level', details=', '.join(HealthProfile.ACTIVITY_LEVELS))
        profile.activity_level = level

    for field in PROFILE_TEXT:
        if field in data:
            setattr(profile, field, (data.get(field) or '').strip() or None)

    for field in ('smoking', 'alcohol'):
        if field in data:
            setattr(profile, field, bool(data.get(field)))


def _weight_history(user_id):
    return WeightRecord.query.filter_by(user_id=user_id).order_by(WeightRecord.recorded_at, WeightRecord.id).all()


@api_bp.route('/profile', methods=['GET'])
@login_required_api
def get_profile():
    profile = HealthProfile.query.filter_by(user_id=session['user_id']).first()
    if not profile:
        return jsonify({
            'has_profile': False,
            'message': 'No health profile yet. Create one to see your insights.'
        }), 404
    return jsonify({'has_profile': True, 'profile': profile.to_dict()}), 200


@api_bp.route('/profile', methods=['POST'])
@login_required_api
def create_profile():
    user_id = session['user_id']
    if HealthProfile.query.filter_by(user_id=user_id).first():
        return jsonify({'error': 'Conflict', 'message': 'Health profile already exists'}), 409

    profile = HealthProfile(user_id=user_id)
    apply_profile_fields(profile, _json_body())
    db.session.add(profile)

    if profile.weight:
        db.session.add(WeightRecord(user_id=user_id, weight=profile.weight))

    db.session.commit()
    logger.info('Created health profile for user %s', user_id)
    return jsonify({'success': True, 'profile': profile.to_dict()}), 201


@api_bp.route('/profile', methods=['PUT'])
@login_required_api
def update_profile():
    user_id = session['user_id']
    profile = HealthProfile.query.filter_by(user_id=user_id).first()
    if not profile:
        raise NotFoundError('Health profile not found', details='Create a profile first')

    previous_weight = profile.weight
    apply_profile_fields(profile, _json_body())

    if profile.weight and profile.weight != previous_weight:
        db.session.add(WeightRecord(user_id=user_id, weight=profile.weight))

    db.session.commit()
    return jsonify({'success': True, 'profile': profile.to_dict()}), 200


@api_bp.route('/profile/weight-history', methods=['GET'])
@login_required_api
def weight_history():
    records = _weight_history(session['user_id'])
    return jsonify({'weight_history': [r.to_dict() for r in records]}), 200


@api_bp.route('/profile/insights', methods=['GET'])
@login_required_api
def insights():
    user_id = session['user_id']
    profile = HealthProfile.query.filter_by(user_id=user_id).first()
    if not profile:
        raise NotFoundError('Health profile not found', details='Create a profile first')
    return jsonify(profile_insights(profile, _weight_history(user_id))), 200


@api_bp.route('/metrics', methods=['GET'])
@login_required_api
def list_metrics():
    metrics = HealthMetric.query.filter_by(user_id=session['user_id']) \
        .order_by(HealthMetric.recorded_at.desc()).all()
    return jsonify({'metrics': [m.to_dict() for m in metrics]}), 200


@api_bp.route('/metrics', methods=['POST'])
@login_required_api
def record_metric():
    data = _json_body()
    metric = HealthMetric(
        user_id=session['user_id'],
        blood_pressure_systolic=_optional_number(data, 'blood_pressure_systolic', int, 40, 300),
        blood_pressure_diastolic=_optional_number(data, 'blood_pressure_diastolic', int, 20, 200),
        heart_rate=_optional_number(data, 'heart_rate', int, 20, 250),
        blood_sugar=_optional_number(data, 'blood_sugar', float, 0, 1000),
        oxygen_level=_optional_number(data, 'oxygen_level', float, 0, 100),
        temperature=_optional_number(data, 'temperature', float, 25, 45),
    )
    if all(getattr(metric, field) is None for field in HealthMetric.FIELDS):
        raise ValidationError('At least one measurement is required')

    db.session.add(metric)
    db.session.commit()
    return jsonify({'success': True, 'metric': metric.to_dict()}), 201


# ==================== MEDICATIONS ====================

def apply_medication_fields(medication, data, partial=False):
    """Validate medication form data onto ``medication``"""
    for field in ('name', 'dosage'):
        if field in data or not partial:
            value = (data.get(field) or '').strip()
            if not value:
                raise ValidationError(f'{field.capitalize()} is required')
            setattr(medication, field, value)

    if 'times' in data or not partial:
        times = data.get('times') or []
        if isinstance(times, str):
            times = [t for t in times.split(',') if t.strip()]
        medication.times = normalize_times(times)

    if 'frequency' in data or not partial:
        medication.frequency = Frequency.parse(data.get('frequency') or 'daily').value

    if 'reminder_enabled' in data or not partial:
        medication.reminder_enabled = bool(data.get('reminder_enabled', True))

    if 'start_date' in data or not partial:
        start = data.get('start_date')
        medication.start_date = _parse_date(start, 'start_date') if start else tz_now().date()

    if 'end_date' in data:
        end = data.get('end_date')
        medication.end_date = _parse_date(end, 'end_date') if end else None

    if medication.end_date and medication.end_date < medication.start_date:
        raise ValidationError('End date must not be before start date')

    if medication.reminder_enabled and not medication.times:
        raise ValidationError('At least one time of day is required when reminders are enabled')


def _medication_payload(medication, logs=None):
    data = medication.to_dict()
    if logs is None:
        logs = ReminderLog.query.filter_by(medication_id=medication.id).all()
    data['adherence_rate'] = adherence_rate(logs, medication_id=medication.id)
    return data


@api_bp.route('/medications', methods=['GET'])
@login_required_api
def list_medications():
    user_id = session['user_id']
    medications = Medication.query.filter_by(user_id=user_id).order_by(Medication.created_at).all()
    logs = ReminderLog.query.filter_by(user_id=user_id).all()
    return jsonify({'medications': [_medication_payload(m, logs) for m in medications]}), 200


@api_bp.route('/medications', methods=['POST'])
@login_required_api
def create_medication():
    medication = Medication(user_id=session['user_id'])
    apply_medication_fields(medication, _json_body())
    db.session.add(medication)

    reminder_scheduler().refresh_schedule(medication, tz_now())
    db.session.commit()

    logger.info('Added medication %s for user %s', medication.name, medication.user_id)
    return jsonify({'success': True, 'medication': _medication_payload(medication)}), 201


@api_bp.route('/medications/<int:medication_id>', methods=['GET'])
@login_required_api
def get_medication(medication_id):
    medication = _get_owned(Medication, medication_id, 'Medication')
    return jsonify({'medication': _medication_payload(medication)}), 200


@api_bp.route('/medications/<int:medication_id>', methods=['PUT'])
@login_required_api
def update_medication(medication_id):
    medication = _get_owned(Medication, medication_id, 'Medication')
    data = _json_body()
    scheduler = reminder_scheduler()
    now = tz_now()
    # Doses due under the old rules are fired before they are replaced
    scheduler.catch_up(medication, now)

    apply_medication_fields(medication, data, partial=True)
    scheduler.refresh_schedule(medication, now)
    db.session.commit()
    return jsonify({'success': True, 'medication': _medication_payload(medication)}), 200


@api_bp.route('/medications/<int:medication_id>/toggle', methods=['POST'])
@login_required_api
def toggle_medication(medication_id):
    """Enable or disable reminders for a medication"""
    medication = _get_owned(Medication, medication_id, 'Medication')
    enabling = not medication.reminder_enabled
    if enabling and not medication.times:
        raise ValidationError('At least one time of day is required when reminders are enabled')

    scheduler = reminder_scheduler()
    now = tz_now()
    scheduler.catch_up(medication, now)

    medication.reminder_enabled = enabling
    scheduler.refresh_schedule(medication, now)
    db.session.commit()
    return jsonify({'success': True, 'medication': _medication_payload(medication)}), 200


@api_bp.route('/medications/<int:medication_id>', methods=['DELETE'])
@login_required_api
def delete_medication(medication_id):
    medication = _get_owned(Medication, medication_id, 'Medication')
    reminder_scheduler().remove_medication(medication)
    return jsonify({'success': True, 'message': 'Medication deleted successfully'}), 200


@api_bp.route('/medications/<int:medication_id>/next-reminder', methods=['GET'])
@login_required_api
def next_reminder(medication_id):
    medication = _get_owned(Medication, medication_id, 'Medication')
    schedule = medication.schedule
    next_time = schedule.next_fire_time if schedule else None
    return jsonify({
        'medication_id': medication.id,
        'next_fire_time': next_time.isoformat() if next_time else None
    }), 200


# ==================== REMINDERS ====================

@api_bp.route('/reminders/active', methods=['GET'])
@login_required_api
def active_reminders():
    reminders = ActiveReminder.query.filter_by(user_id=session['user_id'], is_active=True) \
        .order_by(ActiveReminder.fire_time).all()
    return jsonify({'reminders': [r.to_dict() for r in reminders]}), 200


@api_bp.route('/reminders/<int:reminder_id>/taken', methods=['POST'])
@login_required_api
def mark_taken(reminder_id):
    """Mark a reminder's dose as taken"""
    reminder = _get_owned(ActiveReminder, reminder_id, 'Reminder')
    data = request.get_json(silent=True) or {}
    log = reminder_scheduler().mark_taken(reminder, tz_now(), notes=(data.get('notes') or '').strip() or None)
    return jsonify({'success': True, 'log': log.to_dict()}), 200


@api_bp.route('/reminders/<int:reminder_id>/snooze', methods=['POST'])
@login_required_api
def snooze_reminder(reminder_id):
    reminder = _get_owned(ActiveReminder, reminder_id, 'Reminder')
    data = request.get_json(silent=True) or {}
    minutes = data.get('minutes', current_app.config['SNOOZE_OPTIONS'][0])

    snoozed = reminder_scheduler().snooze(reminder, tz_now(), minutes=minutes)
    return jsonify({
        'success': True,
        'reminder': snoozed.to_dict(),
        'message': f'You\'ll be reminded again in {int(minutes)} minutes.'
    }), 200


@api_bp.route('/reminders/snooze-options', methods=['GET'])
@login_required_api
def snooze_options():
    return jsonify({'minutes': list(current_app.config['SNOOZE_OPTIONS'])}), 200


@api_bp.route('/reminders/check', methods=['POST'])
@login_required_api
def check_reminders():
    """Run a scheduler pass now (the same pass the background poller runs)"""
    fired, sent = run_reminder_pass(tz_now(), notification_dispatcher())

    user_id = session['user_id']
    return jsonify({
        'fired': [r.to_dict() for r in fired if r.user_id == user_id],
        'appointment_reminders': [
            {'appointment_id': appointment.id, 'timeframe': timeframe}
            for appointment, timeframe in sent if appointment.user_id == user_id
        ]
    }), 200


@api_bp.route('/reminders/logs', methods=['GET'])
@login_required_api
def reminder_logs():
    query = ReminderLog.query.filter_by(user_id=session['user_id'])
    medication_id = request.args.get('medication_id', type=int)
    if medication_id is not None:
        query = query.filter_by(medication_id=medication_id)
    logs = query.order_by(ReminderLog.scheduled_time.desc()).all()
    return jsonify({'logs': [log.to_dict() for log in logs]}), 200


@api_bp.route('/adherence', methods=['GET'])
@login_required_api
def adherence():
    medication_id = request.args.get('medication_id', type=int)
    days = request.args.get('days', type=int)
    if medication_id is not None:
        _get_owned(Medication, medication_id, 'Medication')

    logs = ReminderLog.query.filter_by(user_id=session['user_id']).all()
    return jsonify(adherence_summary(logs, medication_id=medication_id, days=days, now=tz_now())), 200


# ==================== APPOINTMENTS ====================

@api_bp.route('/appointments', methods=['GET'])
@login_required_api
def list_appointments():
    appointments = Appointment.query.filter_by(user_id=session['user_id']) \
        .order_by(Appointment.date, Appointment.time).all()
    return jsonify({'appointments': [a.to_dict() for a in appointments]}), 200


@api_bp.route('/appointments', methods=['POST'])
@login_required_api
def create_appointment():
    data = _json_body()
    doctor_name, hospital, date, time = validate_new_appointment(data, tz_now())

    appointment = Appointment(
        user_id=session['user_id'],
        doctor_name=doctor_name,
        hospital=hospital,
        date=date,
        time=time,
        notes=(data.get('notes') or '').strip() or None
    )
    db.session.add(appointment)
    db.session.commit()
    return jsonify({
        'success': True,
        'appointment': appointment.to_dict(),
        'message': 'Your appointment has been scheduled successfully'
    }), 201


@api_bp.route('/appointments/<int:appointment_id>', methods=['DELETE'])
@login_required_api
def cancel_appointment(appointment_id):
    appointment = _get_owned(Appointment, appointment_id, 'Appointment')
    db.session.delete(appointment)
    db.session.commit()
    return jsonify({'success': True, 'message': 'The appointment has been removed from your schedule'}), 200


@api_bp.route('/appointments/countdown', methods=['GET'])
@login_required_api
def appointment_countdown():
    """Appointments in the next 24 hours, soonest first, minus dismissed ones"""
    appointments = Appointment.query.filter_by(user_id=session['user_id']).all()
    dismissed = session.get(DISMISSED_SESSION_KEY, [])
    return jsonify({'countdowns': upcoming_countdowns(appointments, tz_now(), dismissed=dismissed)}), 200


@api_bp.route('/appointments/<int:appointment_id>/dismiss', methods=['POST'])
@login_required_api
def dismiss_countdown(appointment_id):
    """Hide an appointment's countdown for the rest of this session"""
    _get_owned(Appointment, appointment_id, 'Appointment')
    dismissed = set(session.get(DISMISSED_SESSION_KEY, []))
    dismissed.add(appointment_id)
    session[DISMISSED_SESSION_KEY] = sorted(dismissed)
    return jsonify({'success': True, 'dismissed': session[DISMISSED_SESSION_KEY]}), 200


@api_bp.route('/appointments/<int:appointment_id>/calendar', methods=['GET'])
@login_required_api
def appointment_calendar_links(appointment_id):
    appointment = _get_owned(Appointment, appointment_id, 'Appointment')
    return jsonify({
        'google': google_calendar_url(appointment),
        'outlook': outlook_calendar_url(appointment),
        'ics': f'/api/appointments/{appointment.id}/calendar.ics',
        'filename': ics_filename(appointment)
    }), 200


@api_bp.route('/appointments/<int:appointment_id>/calendar.ics', methods=['GET'])
@login_required_api
def appointment_ics(appointment_id):
    appointment = _get_owned(Appointment, appointment_id, 'Appointment')
    return Response(
        build_ics(appointment),
        mimetype='text/calendar',
        headers={'Content-Disposition': f'attachment; filename="{ics_filename(appointment)}"'}
    )


# ==================== NOTIFICATIONS ====================

@api_bp.route('/notifications', methods=['GET'])
@login_required_api
def list_notifications():
    query = Notification.query.filter_by(user_id=session['user_id'])
    if request.args.get('unread') in ('1', 'true'):
        query = query.filter_by(is_read=False)
    notifications = query.order_by(Notification.created_at.desc(), Notification.id.desc()).all()
    return jsonify({'notifications': [n.to_dict() for n in notifications]}), 200


@api_bp.route('/notifications/<int:notification_id>/read', methods=['POST'])
@login_required_api
def read_notification(notification_id):
    notification = _get_owned(Notification, notification_id, 'Notification')
    notification.is_read = True
    db.session.commit()
    return jsonify({'success': True, 'notification': notification.to_dict()}), 200


# ==================== HOSPITAL SEARCH ====================

@api_bp.route('/hospitals/search', methods=['POST'])
@login_required_api
def search_hospitals():
    """
    Find hospitals near a point
    Body: {lat, lng} or {address}, optional radius (metres) and keyword
    """
    data = _json_body()
    config = current_app.config
    api_key = config['GOOGLE_MAPS_API_KEY']
    timeout = config['HTTP_TIMEOUT']

    if data.get('address'):
        provider = GeocodingLocationProvider(data['address'], Geocoder(api_key, timeout=timeout))
    elif data.get('lat') is not None and data.get('lng') is not None:
        provider = ManualLocationProvider(data['lat'], data['lng'])
    else:
        raise ValidationError('Location is required', details='Send lat and lng, or an address')

    lat, lng = provider.locate()
    radius = _optional_number(data, 'radius', float, 100, 50000) or config['HOSPITAL_SEARCH_RADIUS']
    keyword = (data.get('keyword') or '').strip() or 'hospital'

    client = PlacesClient(api_key, timeout=timeout)
    try:
        hospitals = client.search_hospitals(lat, lng, radius=radius, keyword=keyword,
                                            limit=config['HOSPITAL_RESULT_LIMIT'])
    except PlacesError as e:
        logger.error('Hospital search failed: %s', e.message)
        payload = e.to_dict()
        payload['message'] = describe_search_error(e)
        payload['retry'] = True
        return jsonify(payload), e.status_code

    response = {
        'location': {'lat': lat, 'lng': lng},
        'hospitals': hospitals,
        'count': len(hospitals)
    }
    if getattr(provider, 'formatted_address', None):
        response['formatted_address'] = provider.formatted_address
    if not hospitals:
        response['message'] = ('No hospitals found in your area. Try expanding your search radius '
                               'or adjusting your search terms.')
    return jsonify(response), 200
