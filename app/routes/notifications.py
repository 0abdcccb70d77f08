from flask import Blueprint, render_template, flash, request, jsonify, current_app

from app.decorators import auth_required, wants_json
from app import lms_api as api
from app.errors import flash_api_error, json_error
from app.forms import NotificationSettingsForm
from app.listing import (ListQuery, MAX_PAGE_SIZE, NOTIFICATION_TABS, NOTIFICATION_SORTS,
                         notification_view, notification_tab_counts)
from app.models import NotificationSettings
from app.routes.auth import redirect_back

bp = Blueprint('notifications', __name__, url_prefix='/notifications')

BULK_ACTIONS = {
    'mark_read': 'Marked {n} notifications as read.',
    'mark_unread': 'Marked {n} notifications as unread.',
    'favorite': 'Added {n} notifications to favourites.',
    'delete': 'Deleted {n} notifications.',
}


def _done(message, payload=None):
    if wants_json():
        return jsonify({'success': True, 'message': message, **(payload or {})})
    flash(message, 'success')
    return redirect_back('notifications.index')


def _failed(exc, fallback):
    if wants_json():
        return json_error(exc)
    flash_api_error(exc, fallback)
    return redirect_back('notifications.index')


@bp.route('/')
@auth_required
def index():
    query = ListQuery.from_args(request.args, default_sort='newest',
                                per_page=current_app.config.get('NOTIFICATIONS_PAGE_SIZE', 20))
    try:
        result = api.get_notifications(limit=MAX_PAGE_SIZE)
    except api.ApiError as exc:
        flash_api_error(exc, 'Could not load notifications.')
        result = {'notifications': [], 'unread_count': 0}

    notifications = result['notifications']
    return render_template('notifications/index.html',
        page=notification_view(notifications, query),
        query=query,
        tabs=NOTIFICATION_TABS,
        sorts=list(NOTIFICATION_SORTS),
        tab_counts=notification_tab_counts(notifications),
        unread_count=result.get('unread_count', 0),
    )


@bp.route('/<notification_id>/read', methods=['POST'])
@auth_required
def mark_read(notification_id):
    try:
        api.mark_notifications([notification_id], is_read=True)
    except api.ApiError as exc:
        return _failed(exc, 'Could not update the notification.')
    return _done('Marked as read.')


@bp.route('/<notification_id>/unread', methods=['POST'])
@auth_required
def mark_unread(notification_id):
    try:
        api.mark_notifications([notification_id], is_read=False)
    except api.ApiError as exc:
        return _failed(exc, 'Could not update the notification.')
    return _done('Marked as unread.')


@bp.route('/mark-all-read', methods=['POST'])
@auth_required
def mark_all_read():
    try:
        api.mark_all_notifications_read()
    except api.ApiError as exc:
        return _failed(exc, 'Could not mark notifications as read.')
    return _done('All notifications marked as read.')


@bp.route('/<notification_id>/favorite', methods=['POST'])
@auth_required
def toggle_favorite(notification_id):
    is_favorite = request.form.get('favorite', '1') == '1'
    try:
        api.set_notification_favorite(notification_id, is_favorite)
    except api.ApiError as exc:
        return _failed(exc, 'Could not update favourites.')
    return _done('Added to favourites.' if is_favorite else 'Removed from favourites.',
                 {'is_favorite': is_favorite})


@bp.route('/<notification_id>/delete', methods=['POST'])
@auth_required
def delete(notification_id):
    try:
        api.delete_notifications([notification_id])
    except api.ApiError as exc:
        return _failed(exc, 'Could not delete the notification.')
    return _done('Notification deleted.')


@bp.route('/bulk', methods=['POST'])
@auth_required
def bulk_action():
    action = request.form.get('action', '')
    ids = [i for i in request.form.getlist('ids') if i]
    if action not in BULK_ACTIONS:
        flash('Choose an action.', 'danger')
        return redirect_back('notifications.index')
    if not ids:
        flash('Select at least one notification.', 'danger')
        return redirect_back('notifications.index')

    try:
        if action == 'delete':
            api.delete_notifications(ids)
        elif action in ('mark_read', 'mark_unread'):
            api.mark_notifications(ids, is_read=(action == 'mark_read'))
        else:
            api.bulk_notification_action(action, ids)
    except api.ApiError as exc:
        flash_api_error(exc, 'The bulk action failed.')
        return redirect_back('notifications.index')

    flash(BULK_ACTIONS[action].format(n=len(ids)), 'success')
    return redirect_back('notifications.index')


@bp.route('/settings', methods=['GET', 'POST'])
@auth_required
def settings():
    form = NotificationSettingsForm()
    if form.validate_on_submit():
        updated = NotificationSettings()
        form.populate_obj(updated)
        try:
            api.update_notification_settings(updated)
        except api.ApiError as exc:
            flash_api_error(exc, 'Could not save notification settings.')
        else:
            flash('Notification settings saved.', 'success')
            return redirect_back('notifications.settings')
    elif request.method == 'GET':
        try:
            current = api.get_notification_settings()
        except api.ApiError as exc:
            flash_api_error(exc, 'Could not load notification settings.')
            current = NotificationSettings()
        form.process(obj=current)

    return render_template('notifications/settings.html', form=form)


@bp.route('/unread-count')
@auth_required
def unread_count():
    try:
        count = api.get_unread_notification_count()
    except api.ApiError as exc:
        return json_error(exc)
    return jsonify({'count': count})
