from flask import Blueprint, render_template, redirect, url_for, flash, request, current_app, abort

from app.decorators import role_required, get_current_user
from app import lms_api as api
from app.errors import flash_api_error
from app.forms import SubmissionForm
from app.listing import (ListQuery, MAX_PAGE_SIZE, ASSIGNMENT_SORTS, assignment_view, assignment_tab_counts,
                         course_choices, is_overdue)
from app.logging_setup import get_logger
from app.services.storage import upload_many, upload_submission_file

logger = get_logger(__name__)

bp = Blueprint('assignments', __name__, url_prefix='/assignments')

ASSIGNMENT_TABS = ('all', 'pending', 'submitted', 'graded', 'late', 'missing')


@bp.route('/')
@role_required('student')
def index():
    query = ListQuery.from_args(request.args, default_sort='due_date',
                                per_page=current_app.config.get('ASSIGNMENTS_PAGE_SIZE', 20))
    try:
        result = api.get_student_assignments(limit=MAX_PAGE_SIZE)
    except api.ApiError as exc:
        flash_api_error(exc, 'Could not load assignments.')
        result = {'assignments': [], 'stats': {}}

    assignments = result['assignments']
    return render_template('assignments/index.html',
        page=assignment_view(assignments, query),
        query=query,
        tabs=ASSIGNMENT_TABS,
        sorts=list(ASSIGNMENT_SORTS),
        tab_counts=assignment_tab_counts(assignments),
        courses=course_choices(assignments),
        stats=result.get('stats', {}),
    )


@bp.route('/<assignment_id>', methods=['GET', 'POST'])
@role_required('student')
def detail(assignment_id):
    try:
        assignment = api.get_assignment(assignment_id)
    except api.ApiError as exc:
        if exc.is_not_found:
            abort(404)
        raise

    submission = assignment.submission or api.get_submission(assignment_id)
    form = SubmissionForm()

    if form.validate_on_submit():
        if submission is not None and submission.status == 'graded':
            flash('This assignment has already been graded.', 'warning')
            return redirect(url_for('assignments.detail', assignment_id=assignment_id))

        user = get_current_user()
        try:
            paths = upload_many(form.files.data, upload_submission_file, assignment_id, user.uid)
        except ValueError as exc:
            form.files.errors.append(str(exc))
        except RuntimeError as exc:
            logger.error("submission upload failed assignment=%s error=%s", assignment_id, exc)
            form.files.errors.append('File storage is not available.')
        else:
            text = (form.text_submission.data or '').strip() or None
            try:
                if submission is not None and submission.status != 'not_submitted':
                    api.update_submission(assignment_id, text, paths)
                else:
                    api.submit_assignment(assignment_id, text, paths)
            except api.ApiError as exc:
                flash_api_error(exc, 'Your submission was not saved.')
            else:
                if is_overdue(assignment):
                    flash('Submitted after the due date. It will be marked late.', 'warning')
                else:
                    flash('Assignment submitted.', 'success')
                return redirect(url_for('assignments.detail', assignment_id=assignment_id))
    elif request.method == 'GET' and submission is not None:
        form.text_submission.data = submission.text_submission

    try:
        history = api.get_submission_history(assignment_id)
    except api.ApiError:
        history = []

    return render_template('assignments/detail.html',
        assignment=assignment,
        submission=submission,
        history=history,
        form=form,
    )
