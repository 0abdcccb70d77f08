from flask import Blueprint, render_template, redirect, url_for, flash, request, current_app, abort

from app.decorators import auth_required, role_required, get_current_user
from app import lms_api as api
from app.errors import flash_api_error
from app.events import announce
from app.forms import AnnouncementForm
from app.listing import (ListQuery, MAX_PAGE_SIZE, ANNOUNCEMENT_SORTS, PRIORITY_RANK,
                         announcement_view, announcement_status_counts)
from app.logging_setup import get_logger
from app.routes.auth import redirect_back
from app.services.storage import upload_many, upload_announcement_attachment

logger = get_logger(__name__)

bp = Blueprint('announcements', __name__, url_prefix='/announcements')

BULK_ACTIONS = ('publish', 'archive', 'delete')


def _course_choices():
    try:
        courses = api.get_teacher_courses()
    except api.ApiError as exc:
        logger.warning("teacher course list failed status=%s", exc.status_code)
        courses = []
    return [('', 'All my students')] + [(str(c.get('id')), c.get('title') or c.get('name') or '') for c in courses]


def _upload_attachments(form):
    """Upload any attached files; returns storage paths or None on failure."""
    files = [f for f in form.attachments.data or [] if f and f.filename]
    if not files:
        return []
    user = get_current_user()
    try:
        return upload_many(files, upload_announcement_attachment, user.uid)
    except ValueError as exc:
        form.attachments.errors.append(str(exc))
    except RuntimeError as exc:
        logger.error("attachment upload failed error=%s", exc)
        form.attachments.errors.append('File storage is not available.')
    return None


def _audience(target_audience, course_id=None, student_ids=()):
    """Student ids an announcement is pushed to, resolved from its target audience."""
    if target_audience == 'specific_students':
        return list(student_ids)
    if target_audience != 'specific_course':
        course_id = None
    try:
        return api.get_teacher_students(course_id=course_id)
    except api.ApiError as exc:
        logger.warning("announcement audience lookup failed audience=%s course=%s status=%s",
                       target_audience, course_id, exc.status_code)
        return []


def _get_or_404(announcement_id):
    try:
        return api.get_announcement(announcement_id)
    except api.ApiError as exc:
        if exc.is_not_found:
            abort(404)
        raise


@bp.route('/')
@role_required('teacher', 'admin')
def index():
    query = ListQuery.from_args(request.args, default_sort='newest',
                                per_page=current_app.config.get('ANNOUNCEMENTS_PAGE_SIZE', 10))
    try:
        announcements = api.get_announcements(limit=MAX_PAGE_SIZE)
    except api.ApiError as exc:
        flash_api_error(exc, 'Could not load announcements.')
        announcements = []
    try:
        statistics = api.get_announcement_statistics()
    except api.ApiError:
        statistics = {}

    return render_template('announcements/index.html',
        page=announcement_view(announcements, query),
        query=query,
        sorts=list(ANNOUNCEMENT_SORTS),
        priorities=list(PRIORITY_RANK),
        status_counts=announcement_status_counts(announcements),
        statistics=statistics,
    )


@bp.route('/new', methods=['GET', 'POST'])
@role_required('teacher', 'admin')
def create():
    form = AnnouncementForm()
    form.course_id.choices = _course_choices()
    if form.validate_on_submit():
        paths = _upload_attachments(form)
        if paths is not None:
            payload = form.to_payload()
            payload['attachments'] = paths
            payload['status'] = 'published' if request.form.get('publish') else 'draft'
            try:
                announcement = api.create_announcement(payload)
            except api.ApiError as exc:
                flash_api_error(exc, 'Could not create the announcement.')
            else:
                if announcement.status == 'published':
                    audience = _audience(payload['targetAudience'], payload['courseId'], payload['specificStudentIds'])
                    announce(announcement, audience)
                    flash('Announcement published.', 'success')
                else:
                    flash('Draft saved.', 'success')
                return redirect(url_for('announcements.index'))

    return render_template('announcements/form.html', form=form, announcement=None)


@bp.route('/<announcement_id>')
@role_required('teacher', 'admin')
def detail(announcement_id):
    announcement = _get_or_404(announcement_id)
    return render_template('announcements/detail.html', announcement=announcement)


@bp.route('/<announcement_id>/edit', methods=['GET', 'POST'])
@role_required('teacher', 'admin')
def edit(announcement_id):
    announcement = _get_or_404(announcement_id)
    if request.method == 'GET':
        form = AnnouncementForm(data={
            'title': announcement.title,
            'content': announcement.content,
            'course_id': announcement.course_id or '',
            'target_audience': announcement.target_audience,
            'priority': announcement.priority,
            'scheduled_at': announcement.scheduled_at,
            'expires_at': announcement.expires_at,
            'tags': ', '.join(announcement.tags),
            'allow_comments': announcement.allow_comments,
            'send_email': announcement.send_email,
            'send_push': announcement.send_push,
        })
    else:
        form = AnnouncementForm()
    form.course_id.choices = _course_choices()

    if form.validate_on_submit():
        paths = _upload_attachments(form)
        if paths is not None:
            payload = form.to_payload()
            payload['attachments'] = announcement.attachments + paths
            try:
                api.update_announcement(announcement_id, payload)
            except api.ApiError as exc:
                flash_api_error(exc, 'Could not update the announcement.')
            else:
                flash('Announcement updated.', 'success')
                return redirect(url_for('announcements.detail', announcement_id=announcement_id))

    return render_template('announcements/form.html', form=form, announcement=announcement)


@bp.route('/<announcement_id>/publish', methods=['POST'])
@role_required('teacher', 'admin')
def publish(announcement_id):
    try:
        announcement = api.publish_announcement(announcement_id)
    except api.ApiError as exc:
        flash_api_error(exc, 'Could not publish the announcement.')
    else:
        announce(announcement, _audience(announcement.target_audience, announcement.course_id,
                                         announcement.specific_student_ids))
        flash('Announcement published.', 'success')
    return redirect_back('announcements.index')


@bp.route('/<announcement_id>/archive', methods=['POST'])
@role_required('teacher', 'admin')
def archive(announcement_id):
    try:
        api.archive_announcement(announcement_id)
    except api.ApiError as exc:
        flash_api_error(exc, 'Could not archive the announcement.')
    else:
        flash('Announcement archived.', 'success')
    return redirect_back('announcements.index')


@bp.route('/<announcement_id>/duplicate', methods=['POST'])
@role_required('teacher', 'admin')
def duplicate(announcement_id):
    try:
        copy = api.duplicate_announcement(announcement_id, request.form.get('title') or None)
    except api.ApiError as exc:
        flash_api_error(exc, 'Could not duplicate the announcement.')
        return redirect_back('announcements.index')
    flash('Announcement duplicated as a draft.', 'success')
    if copy.id:
        return redirect(url_for('announcements.edit', announcement_id=copy.id))
    return redirect(url_for('announcements.index'))


@bp.route('/<announcement_id>/delete', methods=['POST'])
@role_required('teacher', 'admin')
def delete(announcement_id):
    try:
        api.delete_announcement(announcement_id)
    except api.ApiError as exc:
        flash_api_error(exc, 'Could not delete the announcement.')
        return redirect_back('announcements.index')
    flash('Announcement deleted.', 'success')
    return redirect(url_for('announcements.index'))


@bp.route('/bulk', methods=['POST'])
@role_required('teacher', 'admin')
def bulk_action():
    action = request.form.get('action', '')
    ids = [i for i in request.form.getlist('ids') if i]
    if action not in BULK_ACTIONS:
        flash('Choose an action.', 'danger')
        return redirect_back('announcements.index')
    if not ids:
        flash('Select at least one announcement.', 'danger')
        return redirect_back('announcements.index')

    try:
        api.bulk_announcement_action(action, ids)
    except api.ApiError as exc:
        flash_api_error(exc, 'The bulk action failed.')
    else:
        flash(f'{action.capitalize()} applied to {len(ids)} announcements.', 'success')
    return redirect_back('announcements.index')


@bp.route('/course/<course_id>')
@auth_required
def course_feed(course_id):
    """Published announcements of one course, as students see them."""
    try:
        announcements = api.get_course_announcements(course_id)
    except api.ApiError as exc:
        flash_api_error(exc, 'Could not load announcements.')
        announcements = []
    visible = [a for a in announcements if a.status == 'published' and not a.is_expired]
    page = announcement_view(visible, ListQuery.from_args(request.args, default_sort='priority'))
    return render_template('announcements/course_feed.html', page=page, course_id=course_id)


@bp.route('/<announcement_id>/read', methods=['POST'])
@auth_required
def mark_read(announcement_id):
    try:
        api.mark_announcement_read(announcement_id)
    except api.ApiError as exc:
        flash_api_error(exc, 'Could not update the announcement.')
    return redirect_back('main.dashboard')
