from flask import Blueprint, render_template, redirect, url_for, jsonify, request, current_app, session
from app.decorators import auth_required, get_current_user
from app import lms_api as api
from app.listing import (ListQuery, recommendation_view, filter_assignments, assignment_view,
                         is_overdue, announcement_status_counts, announcement_view, model_overview,
                         filter_subscriptions, subscription_stats)
from app.logging_setup import get_logger

logger = get_logger(__name__)

bp = Blueprint('main', __name__)

UPCOMING_ASSIGNMENTS = 5


@bp.route('/health')
def health():
    return jsonify({'status': 'ok'}), 200


@bp.route('/')
def index():
    if request.args.get('health') == '1':
        return 'OK', 200
    user = get_current_user()
    if user.is_authenticated:
        return redirect(url_for('main.dashboard'))
    return render_template('index.html')


def _safe(fetch, default, what):
    """Run one dashboard query; a failure leaves its panel empty."""
    try:
        return fetch()
    except api.ApiError as exc:
        logger.warning("dashboard panel failed panel=%s status=%s", what, exc.status_code)
        return default


@bp.route('/dashboard')
@auth_required
def dashboard():
    user = get_current_user()
    unread_notifications = _safe(api.get_unread_notification_count, 0, 'notifications')
    unread_messages = _safe(api.get_unread_message_count, 0, 'messages')

    if user.is_admin():
        models = _safe(api.get_models, [], 'models')
        return render_template('dashboard/admin.html',
            overview=model_overview(models),
            failing=[m for m in models if m.status == 'failed'],
            unread_notifications=unread_notifications,
            unread_messages=unread_messages,
        )

    if user.is_teacher():
        announcements = _safe(api.get_announcements, [], 'announcements')
        stats = _safe(api.get_announcement_statistics, {}, 'announcement_stats')
        recent = announcement_view(announcements, ListQuery(sort='newest', per_page=5)).items
        return render_template('dashboard/teacher.html',
            status_counts=announcement_status_counts(announcements),
            recent_announcements=recent,
            statistics=stats,
            unread_notifications=unread_notifications,
            unread_messages=unread_messages,
        )

    # Student
    recommendations = _safe(api.get_recommendations, [], 'recommendations')
    shown, total = recommendation_view(
        recommendations, ListQuery(),
        max_items=current_app.config.get('RECOMMENDATIONS_MAX_ITEMS', 6),
        dismissed_ids=session.get('dismissed_recommendations', []),
    )
    assignments = _safe(lambda: api.get_student_assignments()['assignments'], [], 'assignments')
    upcoming = assignment_view(
        filter_assignments(assignments, ListQuery(tab='pending')),
        ListQuery(sort='due_date', per_page=UPCOMING_ASSIGNMENTS),
    ).items
    overdue_count = sum(1 for a in assignments if is_overdue(a))
    subscriptions = _safe(api.get_subscriptions, [], 'subscriptions')

    return render_template('dashboard/student.html',
        recommendations=shown,
        recommendation_total=total,
        upcoming_assignments=upcoming,
        overdue_count=overdue_count,
        active_subscriptions=filter_subscriptions(subscriptions, 'active'),
        subscription_stats=subscription_stats(subscriptions),
        unread_notifications=unread_notifications,
        unread_messages=unread_messages,
    )
