from flask import (Blueprint, render_template, redirect, url_for, flash,
                   request, make_response, session, current_app)
from urllib.parse import urljoin, urlparse
from datetime import timedelta
import requests as http_requests
from firebase_admin import auth as firebase_auth
from firebase_admin import exceptions as firebase_exceptions

from app.decorators import auth_required, get_current_user
from app.firebase_init import get_auth
from app import lms_api as api
from app.forms import RegistrationForm, LoginForm
from app.logging_setup import get_logger

logger = get_logger(__name__)

bp = Blueprint('auth', __name__, url_prefix='/auth')

FIREBASE_SIGN_IN_URL = (
    'https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword'
)
SESSION_LIFETIME = timedelta(days=5)


def firebase_sign_in(email, password):
    """Verify email/password via Firebase Auth REST API.

    Returns the ID token on success, or None on failure.
    """
    api_key = current_app.config.get('FIREBASE_WEB_API_KEY')
    if not api_key:
        return None

    try:
        resp = http_requests.post(
            f'{FIREBASE_SIGN_IN_URL}?key={api_key}',
            json={
                'email': email,
                'password': password,
                'returnSecureToken': True,
            },
            timeout=10,
        )
    except http_requests.RequestException as exc:
        logger.error("firebase sign-in unreachable error=%s", exc)
        return None
    if resp.status_code == 200:
        return resp.json().get('idToken')
    return None


def is_safe_url(target):
    if not target:
        return False
    ref_url = urlparse(request.host_url)
    test_url = urlparse(urljoin(request.host_url, target))
    return test_url.scheme in ('http', 'https') and ref_url.netloc == test_url.netloc


def redirect_back(endpoint, **values):
    """Redirect to the posted ``next`` URL when it is local, else to ``endpoint``."""
    target = request.form.get('next') or request.args.get('next')
    if target and is_safe_url(target):
        return redirect(target)
    return redirect(url_for(endpoint, **values))


@bp.route('/register', methods=['GET', 'POST'])
def register():
    current_user = get_current_user()
    if current_user.is_authenticated:
        return redirect(url_for('main.dashboard'))

    form = RegistrationForm()
    if form.validate_on_submit():
        auth = get_auth()
        try:
            firebase_user = auth.create_user(
                email=form.email.data,
                password=form.password.data,
                display_name=form.full_name.data,
            )
        except firebase_auth.EmailAlreadyExistsError:
            flash('An account with this email already exists.', 'danger')
            return render_template('auth/register.html', form=form)
        except (firebase_exceptions.FirebaseError, ValueError) as exc:
            logger.warning("firebase create_user failed email=%s error=%s", form.email.data, exc)
            flash('Could not create your account. Please try again.', 'danger')
            return render_template('auth/register.html', form=form)

        uid = firebase_user.uid
        try:
            api.create_user(uid, {
                'email': form.email.data,
                'fullName': form.full_name.data,
                'role': form.role.data,
            })
        except api.ApiError as exc:
            # Without an LMS profile the account is unusable; drop it.
            auth.delete_user(uid)
            logger.error("profile creation failed uid=%s status=%s", uid, exc.status_code)
            flash(exc.message, 'danger')
            return render_template('auth/register.html', form=form)

        logger.info("user registered uid=%s role=%s", uid, form.role.data)
        flash('Your account has been created. Please sign in.', 'success')
        return redirect(url_for('auth.login'))

    return render_template('auth/register.html', form=form)


@bp.route('/login', methods=['GET', 'POST'])
def login():
    current_user = get_current_user()
    if current_user.is_authenticated:
        return redirect(url_for('main.dashboard'))

    form = LoginForm()

    saved_email = request.cookies.get('saved_email', '')
    if request.method == 'GET' and saved_email:
        form.email.data = saved_email
        form.remember_id.data = True

    if form.validate_on_submit():
        id_token = firebase_sign_in(form.email.data, form.password.data)
        if id_token:
            auth = get_auth()
            try:
                session_cookie = auth.create_session_cookie(
                    id_token, expires_in=SESSION_LIFETIME
                )
            except firebase_exceptions.FirebaseError as exc:
                logger.error("session cookie creation failed error=%s", exc)
                flash('Sign-in failed. Please try again.', 'danger')
                return render_template('auth/login.html', form=form)

            session['firebase_session'] = session_cookie
            flash('Signed in.', 'success')

            next_page = request.args.get('next')
            if next_page and is_safe_url(next_page):
                response = make_response(redirect(next_page))
            else:
                response = make_response(redirect(url_for('main.dashboard')))

            if form.remember_id.data:
                response.set_cookie(
                    'saved_email', str(form.email.data),
                    max_age=60 * 60 * 24 * 365,
                )
            else:
                response.delete_cookie('saved_email')
            return response

        flash('Incorrect email or password.', 'danger')

    return render_template('auth/login.html', form=form)


@bp.route('/logout')
@auth_required
def logout():
    session.pop('firebase_session', None)
    session.pop('dismissed_recommendations', None)
    flash('You have been signed out.', 'success')
    return redirect(url_for('main.index'))
