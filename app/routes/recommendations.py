from flask import Blueprint, render_template, redirect, flash, request, jsonify, current_app, session

from app.decorators import role_required, wants_json
from app import lms_api as api
from app.errors import flash_api_error, json_error
from app.listing import (ListQuery, RECOMMENDATION_GROUPS, PRIORITY_RANK, recommendation_view,
                         recommendation_tab_counts, confidence_level)
from app.logging_setup import get_logger
from app.routes.auth import redirect_back, is_safe_url

logger = get_logger(__name__)

bp = Blueprint('recommendations', __name__, url_prefix='/recommendations')

INTERACTIONS = ('view', 'click', 'complete')
FEEDBACK = ('helpful', 'not_helpful')
DISMISSED_KEY = 'dismissed_recommendations'


def _dismissed():
    return session.get(DISMISSED_KEY, [])


def _remember_dismissed(recommendation_id):
    dismissed = _dismissed()
    if recommendation_id not in dismissed:
        # Only the 50 most recent ids are kept in the cookie.
        session[DISMISSED_KEY] = (dismissed + [recommendation_id])[-50:]


@bp.route('/')
@role_required('student')
def index():
    query = ListQuery.from_args(request.args)
    max_items = request.args.get('limit', type=int) or current_app.config.get('RECOMMENDATIONS_MAX_ITEMS', 6)
    try:
        recommendations = api.get_recommendations()
    except api.ApiError as exc:
        if wants_json():
            return json_error(exc)
        flash_api_error(exc, 'Could not load recommendations.')
        recommendations = []

    shown, total = recommendation_view(recommendations, query, max_items=max_items, dismissed_ids=_dismissed())

    if wants_json():
        return jsonify({
            'success': True,
            'total': total,
            'recommendations': [{
                'id': r.id,
                'title': r.title,
                'description': r.description,
                'type': r.recommendation_type,
                'priority': r.priority,
                'confidence': r.confidence,
                'confidence_level': confidence_level(r.confidence),
                'target_url': r.target_url,
            } for r in shown],
        })

    return render_template('recommendations/index.html',
        recommendations=shown,
        total=total,
        query=query,
        groups=list(RECOMMENDATION_GROUPS),
        priorities=list(PRIORITY_RANK),
        tab_counts=recommendation_tab_counts(recommendations, _dismissed()),
    )


@bp.route('/refresh', methods=['POST'])
@role_required('student')
def refresh():
    try:
        fresh = api.generate_recommendations(request.form.get('type') or None)
    except api.ApiError as exc:
        flash_api_error(exc, 'Could not refresh recommendations.')
    else:
        flash(f'{len(fresh)} recommendations generated.', 'success')
    return redirect_back('recommendations.index')


@bp.route('/<recommendation_id>/interact', methods=['POST'])
@role_required('student')
def interact(recommendation_id):
    action = request.form.get('action', 'click')
    if action not in INTERACTIONS:
        flash('Unknown action.', 'danger')
        return redirect_back('recommendations.index')

    try:
        api.interact_with_recommendation(recommendation_id, action, {'source': 'widget'})
    except api.ApiError as exc:
        # Tracking failures must not block navigation.
        logger.warning("recommendation interaction not recorded id=%s status=%s",
                       recommendation_id, exc.status_code)

    target = request.form.get('target_url')
    if action == 'click' and target and is_safe_url(target):
        return redirect(target)
    if action == 'complete':
        flash('Nice work! Marked as done.', 'success')
    return redirect_back('recommendations.index')


@bp.route('/<recommendation_id>/dismiss', methods=['POST'])
@role_required('student')
def dismiss(recommendation_id):
    try:
        api.interact_with_recommendation(recommendation_id, 'dismiss')
    except api.ApiError as exc:
        if wants_json():
            return json_error(exc)
        flash_api_error(exc, 'Could not dismiss the recommendation.')
        return redirect_back('recommendations.index')

    _remember_dismissed(recommendation_id)
    if wants_json():
        return jsonify({'success': True})
    flash('Recommendation dismissed.', 'info')
    return redirect_back('recommendations.index')


@bp.route('/<recommendation_id>/feedback', methods=['POST'])
@role_required('student')
def feedback(recommendation_id):
    value = request.form.get('feedback', '')
    if value not in FEEDBACK:
        flash('Choose helpful or not helpful.', 'danger')
        return redirect_back('recommendations.index')
    try:
        api.recommendation_feedback(recommendation_id, value, request.form.get('comment') or None)
    except api.ApiError as exc:
        flash_api_error(exc, 'Could not send feedback.')
    else:
        flash('Thanks for the feedback.', 'success')
    return redirect_back('recommendations.index')
