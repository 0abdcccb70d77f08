from flask import Blueprint, render_template, redirect, url_for, flash, request, jsonify, abort

from app.decorators import auth_required, get_current_user, wants_json
from app import lms_api as api
from app.errors import flash_api_error, json_error
from app.logging_setup import get_logger

logger = get_logger(__name__)

bp = Blueprint('courses', __name__, url_prefix='/courses')


def _course_or_404(slug):
    try:
        course = api.get_course_detail(slug)
    except api.ApiError as exc:
        if exc.is_not_found:
            abort(404)
        raise
    if not course.id:
        abort(404)
    return course


@bp.route('/<slug>')
def detail(slug):
    course = _course_or_404(slug)
    user = get_current_user()

    in_wishlist = False
    if user.is_authenticated:
        try:
            in_wishlist = api.is_in_wishlist(course.id)
        except api.ApiError as exc:
            logger.warning("wishlist check failed course=%s status=%s", course.id, exc.status_code)
    try:
        related = api.get_course_recommendations(course.id)
    except api.ApiError:
        related = []

    return render_template('courses/detail.html',
        course=course,
        in_wishlist=in_wishlist,
        related=[c for c in related if c.id != course.id],
        discount=_discount_percent(course),
    )


def _discount_percent(course):
    if course.is_free or not course.original_price or course.original_price <= course.price:
        return 0
    return round((course.original_price - course.price) / course.original_price * 100)


@bp.route('/<slug>/enroll', methods=['POST'])
@auth_required
def enroll(slug):
    course = _course_or_404(slug)
    if course.is_enrolled:
        flash('You are already enrolled in this course.', 'info')
        return redirect(url_for('courses.detail', slug=slug))
    if not course.is_free and course.price > 0:
        flash('This course requires a subscription.', 'info')
        return redirect(url_for('subscriptions.index'))

    try:
        api.enroll_in_course(course.id)
    except api.ApiError as exc:
        flash_api_error(exc, 'Could not enrol you in this course.')
    else:
        flash(f'You are now enrolled in "{course.title}".', 'success')
    return redirect(url_for('courses.detail', slug=slug))


@bp.route('/<slug>/wishlist', methods=['POST'])
@auth_required
def toggle_wishlist(slug):
    course = _course_or_404(slug)
    add = request.form.get('add', '1') == '1'
    try:
        if add:
            api.add_to_wishlist(course.id)
        else:
            api.remove_from_wishlist(course.id)
    except api.ApiError as exc:
        if wants_json():
            return json_error(exc)
        flash_api_error(exc, 'Could not update your wishlist.')
        return redirect(url_for('courses.detail', slug=slug))

    if wants_json():
        return jsonify({'success': True, 'in_wishlist': add})
    flash('Added to your wishlist.' if add else 'Removed from your wishlist.', 'success')
    return redirect(url_for('courses.detail', slug=slug))
