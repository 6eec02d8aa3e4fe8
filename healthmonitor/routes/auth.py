"""
Authentication Routes
Session-cookie sign-up, sign-in and the signed-in identity
"""
from functools import wraps

from flask import Blueprint, request, jsonify, session

from healthmonitor.models import db
from healthmonitor.models.user import User

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')

MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6


def login_required_api(f):
    """Decorator for API routes requiring authentication"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if 'user_id' not in session:
            return jsonify({'error': 'Authentication required'}), 401
        return f(*args, **kwargs)
    return decorated_function


def get_current_user():
    """Helper to get current logged-in user"""
    if 'user_id' in session:
        return db.session.get(User, session['user_id'])
    return None


def _login(user):
    session.clear()
    session['user_id'] = user.id
    session['username'] = user.username


@auth_bp.route('/register', methods=['POST'])
def register():
    """Create an account and sign in"""
    data = request.get_json(silent=True) or {}
    username = (data.get('username') or '').strip()
    password = data.get('password') or ''
    email = (data.get('email') or '').strip() or None

    if not username:
        return jsonify({'error': 'Validation failed', 'message': 'Username is required.'}), 400

    if len(username) < MIN_USERNAME_LENGTH:
        return jsonify({
            'error': 'Validation failed',
            'message': f'Username must be at least {MIN_USERNAME_LENGTH} characters.'
        }), 400

    if len(password) < MIN_PASSWORD_LENGTH:
        return jsonify({
            'error': 'Validation failed',
            'message': f'Password must be at least {MIN_PASSWORD_LENGTH} characters.'
        }), 400

    if User.query.filter_by(username=username).first():
        return jsonify({'error': 'Conflict', 'message': 'Username already exists. Please choose another.'}), 409

    if email and User.query.filter_by(email=email).first():
        return jsonify({'error': 'Conflict', 'message': 'Email is already registered.'}), 409

    user = User(username=username, email=email, full_name=(data.get('full_name') or '').strip() or None)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()

    _login(user)
    return jsonify({'success': True, 'user': user.to_dict()}), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    """Sign in with username and password"""
    data = request.get_json(silent=True) or {}
    username = (data.get('username') or '').strip()
    password = data.get('password') or ''

    if not username or not password:
        return jsonify({'error': 'Validation failed', 'message': 'Username and password are required.'}), 400

    user = User.query.filter_by(username=username).first()
    if not user or not user.is_active or not user.check_password(password):
        return jsonify({'error': 'Invalid credentials', 'message': 'Username or password is incorrect.'}), 401

    _login(user)
    return jsonify({'success': True, 'user': user.to_dict()}), 200


@auth_bp.route('/logout', methods=['POST'])
def logout():
    session.clear()
    return jsonify({'success': True}), 200


@auth_bp.route('/me', methods=['GET'])
@login_required_api
def me():
    """The signed-in identity"""
    user = get_current_user()
    if not user:
        session.clear()
        return jsonify({'error': 'Authentication required'}), 401
    return jsonify({'user': user.to_dict()}), 200


@auth_bp.route('/notifications', methods=['PUT'])
@login_required_api
def update_notification_permission():
    """Grant or revoke OS-level notifications and set the push endpoint"""
    user = get_current_user()
    data = request.get_json(silent=True) or {}

    if 'enabled' in data:
        user.notifications_enabled = bool(data['enabled'])
    if 'push_endpoint' in data:
        endpoint = (data.get('push_endpoint') or '').strip() or None
        if endpoint and not endpoint.startswith(('http://', 'https://')):
            return jsonify({'error': 'Validation failed', 'message': 'Push endpoint must be an http(s) URL.'}), 400
        user.push_endpoint = endpoint

    db.session.commit()
    return jsonify({'success': True, 'user': user.to_dict()}), 200
