from functools import wraps
from flask import request, redirect, url_for, flash, g, session, current_app, jsonify
from firebase_admin import auth as firebase_auth
from firebase_admin import exceptions as firebase_exceptions
from app.firebase_init import get_auth
from app import lms_api as api
from app.logging_setup import get_logger

logger = get_logger(__name__)

ROLES = ('student', 'teacher', 'admin')


def _verify_session():
    """Verify the Firebase session cookie and load the user's LMS profile."""
    session_cookie = session.get('firebase_session')
    if not session_cookie or not current_app.config.get('FIREBASE_ENABLED', True):
        return None

    auth = get_auth()
    try:
        decoded = auth.verify_session_cookie(session_cookie, check_revoked=True)
    except (firebase_auth.InvalidSessionCookieError, firebase_auth.RevokedSessionCookieError,
            firebase_auth.UserDisabledError, ValueError):
        session.pop('firebase_session', None)
        return None
    except firebase_exceptions.FirebaseError as exc:
        logger.warning("session cookie verification failed code=%s error=%s", exc.code, exc)
        return None

    uid = decoded['uid']
    try:
        user_data = api.get_user(uid)
    except api.ApiError as exc:
        logger.warning("profile lookup failed uid=%s status=%s", uid, exc.status_code)
        return None
    if not user_data:
        return None

    user_data['uid'] = uid
    user_data['id'] = uid
    user_data.setdefault('email', decoded.get('email'))
    return user_data


class CurrentUser:
    """Proxy object providing attribute access to the current user dict."""

    def __init__(self, data=None):
        self._data = data or {}

    def __getattr__(self, name):
        if name.startswith('_'):
            raise AttributeError(name)
        return self._data.get(name)

    def __getitem__(self, key):
        return self._data[key]

    def __contains__(self, key):
        return key in self._data

    def get(self, key, default=None):
        return self._data.get(key, default)

    @property
    def is_authenticated(self):
        return bool(self._data)

    @property
    def uid(self):
        return self._data.get('uid', '')

    @property
    def id(self):
        return self._data.get('uid', '')

    @property
    def role(self):
        role = self._data.get('role', 'student')
        return role if role in ROLES else 'student'

    @property
    def display_name(self):
        for key in ('displayName', 'fullName', 'firstName', 'username'):
            if self._data.get(key):
                return self._data[key]
        return self._data.get('email') or ''

    @property
    def initial(self):
        name = self.display_name
        return name[0].upper() if name else '?'

    def is_student(self):
        return self.role == 'student'

    def is_teacher(self):
        return self.role == 'teacher'

    def is_admin(self):
        return self.role == 'admin'


def load_current_user():
    """Load current user into g before each request."""
    if hasattr(g, '_current_user'):
        return
    user_data = _verify_session()
    g._current_user = CurrentUser(user_data)


def get_current_user():
    if not hasattr(g, '_current_user'):
        load_current_user()
    return g._current_user


def wants_json():
    return request.is_json or request.accept_mimetypes.best == 'application/json'


def auth_required(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        user = get_current_user()
        if not user.is_authenticated:
            if wants_json():
                return jsonify({'success': False, 'message': 'Please sign in first.'}), 401
            flash('Please sign in first.', 'info')
            return redirect(url_for('auth.login', next=request.url))
        g.current_user = user
        return f(*args, **kwargs)
    return decorated


def role_required(*roles):
    def decorator(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            user = get_current_user()
            if not user.is_authenticated:
                if wants_json():
                    return jsonify({'success': False, 'message': 'Please sign in first.'}), 401
                flash('Please sign in first.', 'info')
                return redirect(url_for('auth.login', next=request.url))
            if user.role not in roles:
                if wants_json():
                    return jsonify({'success': False, 'message': 'Access denied.'}), 403
                flash('You do not have access to that page.', 'danger')
                return redirect(url_for('main.dashboard'))
            g.current_user = user
            return f(*args, **kwargs)
        return decorated
    return decorator
