from flask import Blueprint, render_template, redirect, url_for, flash, request
from firebase_admin import exceptions as firebase_exceptions

from app.decorators import auth_required, get_current_user
from app.firebase_init import get_auth
from app import lms_api as api
from app.errors import flash_api_error
from app.forms import ProfileForm, PasswordChangeForm, PrivacySettingsForm, PreferencesForm
from app.logging_setup import get_logger
from app.routes.auth import firebase_sign_in
from app.services.storage import upload_avatar

logger = get_logger(__name__)

bp = Blueprint('profile', __name__, url_prefix='/profile')

# form field -> (settings section, API key)
PRIVACY_FIELDS = {
    'profile_visibility': ('privacy', 'profileVisibility'),
    'show_progress': ('privacy', 'showProgress'),
    'show_achievements': ('privacy', 'showAchievements'),
    'allow_messages': ('privacy', 'allowMessages'),
    'show_online_status': ('privacy', 'showOnlineStatus'),
}
PREFERENCE_FIELDS = {
    'theme': ('appearance', 'theme'),
    'language': ('appearance', 'language'),
    'timezone': ('appearance', 'timezone'),
    'playback_speed': ('learning', 'playbackSpeed'),
    'captions': ('learning', 'captions'),
    'auto_advance': ('learning', 'autoAdvance'),
    'study_session_length': ('learning', 'studySessionLength'),
}
SETTINGS_FORMS = {
    'privacy': (PrivacySettingsForm, PRIVACY_FIELDS),
    'preferences': (PreferencesForm, PREFERENCE_FIELDS),
}


def settings_to_form_data(settings, fields):
    data = {}
    for name, (section, key) in fields.items():
        value = (settings.get(section) or {}).get(key)
        if value is not None:
            data[name] = str(value) if name == 'playback_speed' else value
    return data


def form_to_settings(form, fields):
    """Group the form's values into ``{section: {apiKey: value}}``."""
    grouped = {}
    for name, (section, key) in fields.items():
        value = getattr(form, name).data
        if name == 'playback_speed':
            value = float(value)
        grouped.setdefault(section, {})[key] = value
    return grouped


@bp.route('/', methods=['GET', 'POST'])
@auth_required
def edit():
    user = get_current_user()
    if request.method == 'GET':
        form = ProfileForm(data={
            'first_name': user.firstName,
            'last_name': user.lastName,
            'display_name': user.displayName,
            'phone': user.phone,
            'bio': user.bio,
            'website': user.website,
        })
    else:
        form = ProfileForm()

    if form.validate_on_submit():
        try:
            api.update_profile(user.uid, form.to_payload())
            if form.avatar.data and form.avatar.data.filename:
                path = upload_avatar(user.uid, form.avatar.data)
                api.update_avatar(user.uid, path)
        except api.ApiError as exc:
            flash_api_error(exc, 'Could not save your profile.')
        except RuntimeError as exc:
            logger.error("avatar upload failed uid=%s error=%s", user.uid, exc)
            flash('Profile saved, but the avatar could not be uploaded.', 'warning')
            return redirect(url_for('profile.edit'))
        else:
            flash('Profile saved.', 'success')
            return redirect(url_for('profile.edit'))

    return render_template('profile/edit.html', form=form)


@bp.route('/password', methods=['GET', 'POST'])
@auth_required
def change_password():
    user = get_current_user()
    form = PasswordChangeForm()
    if form.validate_on_submit():
        if not firebase_sign_in(user.email, form.current_password.data):
            form.current_password.errors.append('Your current password is incorrect.')
        else:
            try:
                get_auth().update_user(user.uid, password=form.new_password.data)
            except (firebase_exceptions.FirebaseError, ValueError) as exc:
                logger.error("password change failed uid=%s error=%s", user.uid, exc)
                flash('Could not change your password. Please try again.', 'danger')
            else:
                logger.info("password changed uid=%s", user.uid)
                flash('Password changed.', 'success')
                return redirect(url_for('profile.edit'))

    return render_template('profile/password.html', form=form)


@bp.route('/settings/<section>', methods=['GET', 'POST'])
@auth_required
def settings(section):
    if section not in SETTINGS_FORMS:
        return redirect(url_for('profile.settings', section='privacy'))
    form_class, fields = SETTINGS_FORMS[section]
    user = get_current_user()

    if request.method == 'GET':
        try:
            current = api.get_user_settings(user.uid)
        except api.ApiError as exc:
            flash_api_error(exc, 'Could not load your settings.')
            current = {}
        form = form_class(data=settings_to_form_data(current, fields))
    else:
        form = form_class()

    if form.validate_on_submit():
        try:
            for api_section, values in form_to_settings(form, fields).items():
                api.update_user_settings(user.uid, api_section, values)
        except api.ApiError as exc:
            flash_api_error(exc, 'Could not save your settings.')
        else:
            flash('Settings saved.', 'success')
            return redirect(url_for('profile.settings', section=section))

    return render_template('profile/settings.html', form=form, section=section, sections=list(SETTINGS_FORMS))
