from flask import Blueprint, render_template, redirect, url_for, flash, request, jsonify, abort

from app.decorators import role_required, wants_json
from app import lms_api as api
from app.errors import flash_api_error, json_error
from app.forms import TutoringSessionForm, TutorQuestionForm, HintForm, EndSessionForm

bp = Blueprint('ai_tutor', __name__, url_prefix='/tutor')


def _get_or_404(session_id):
    try:
        return api.get_tutoring_session(session_id)
    except api.ApiError as exc:
        if exc.is_not_found:
            abort(404)
        raise


@bp.route('/')
@role_required('student')
def index():
    try:
        sessions = api.get_tutoring_sessions(limit=20)
    except api.ApiError as exc:
        flash_api_error(exc, 'Could not load your tutoring sessions.')
        sessions = []
    try:
        profile = api.get_learning_style_profile()
    except api.ApiError:
        profile = {}

    return render_template('ai_tutor/index.html',
        active_sessions=[s for s in sessions if s.status == 'active'],
        past_sessions=[s for s in sessions if s.status != 'active'],
        learning_style=profile,
        form=TutoringSessionForm(),
    )


@bp.route('/sessions', methods=['POST'])
@role_required('student')
def start_session():
    form = TutoringSessionForm()
    if not form.validate_on_submit():
        for errors in form.errors.values():
            for error in errors:
                flash(error, 'danger')
        return redirect(url_for('ai_tutor.index'))

    context = {'difficultyLevel': form.difficulty.data or 2}
    if form.course_id.data:
        context['currentCourse'] = form.course_id.data
    try:
        tutoring = api.create_tutoring_session(form.mode.data, form.topic.data.strip(), context)
    except api.ApiError as exc:
        flash_api_error(exc, 'Could not start a tutoring session.')
        return redirect(url_for('ai_tutor.index'))
    return redirect(url_for('ai_tutor.session_view', session_id=tutoring.id))


@bp.route('/sessions/<session_id>')
@role_required('student')
def session_view(session_id):
    tutoring = _get_or_404(session_id)
    try:
        messages = api.get_tutoring_messages(session_id)
    except api.ApiError as exc:
        flash_api_error(exc, 'Could not load the conversation.')
        messages = []

    analytics = {}
    if tutoring.status != 'active':
        try:
            analytics = api.get_session_analytics(session_id)
        except api.ApiError:
            analytics = {}

    return render_template('ai_tutor/session.html',
        tutoring=tutoring,
        messages=messages,
        analytics=analytics,
        question_form=TutorQuestionForm(),
        hint_form=HintForm(),
        end_form=EndSessionForm(),
    )


@bp.route('/ask', methods=['POST'])
@role_required('student')
def ask():
    """Ask the tutor. Accepts a JSON body or the question form."""
    if request.is_json:
        body = request.get_json(silent=True) or {}
        question = (body.get('question') or '').strip()
        session_id = body.get('session_id')
    else:
        form = TutorQuestionForm()
        question = (form.question.data or '').strip() if form.validate_on_submit() else ''
        session_id = request.form.get('session_id')

    if not question:
        if wants_json():
            return jsonify({'success': False, 'message': 'Type a question.'}), 400
        flash('Type a question.', 'danger')
        return _back_to_session(session_id)

    try:
        answer = api.ask_tutor(question, session_id=session_id)
    except api.ApiError as exc:
        if wants_json():
            return json_error(exc)
        flash_api_error(exc, 'The tutor could not answer right now.')
        return _back_to_session(session_id)

    if wants_json():
        return jsonify({
            'success': True,
            'answer': answer.get('answer', ''),
            'confidence': answer.get('confidence'),
            'sources': answer.get('sources', []),
        })
    return _back_to_session(session_id)


def _back_to_session(session_id):
    if session_id:
        return redirect(url_for('ai_tutor.session_view', session_id=session_id))
    return redirect(url_for('ai_tutor.index'))


@bp.route('/sessions/<session_id>/hint', methods=['POST'])
@role_required('student')
def hint(session_id):
    tutoring = _get_or_404(session_id)
    form = HintForm()
    if not form.validate_on_submit():
        flash('Describe the problem you are stuck on.', 'danger')
        return _back_to_session(session_id)

    attempts = [form.previous_attempt.data.strip()] if form.previous_attempt.data else []
    try:
        result = api.request_hint(
            {'sessionId': session_id, 'topic': tutoring.topic},
            current_problem=form.current_problem.data.strip(),
            previous_attempts=attempts,
        )
    except api.ApiError as exc:
        flash_api_error(exc, 'Could not get a hint.')
    else:
        flash(result.get('hint') or 'No hint available for this problem.', 'info')
    return _back_to_session(session_id)


@bp.route('/sessions/<session_id>/end', methods=['POST'])
@role_required('student')
def end_session(session_id):
    form = EndSessionForm()
    feedback = None
    if form.validate_on_submit():
        feedback = {'rating': form.rating.data, 'comment': form.comment.data or None}
    try:
        api.end_tutoring_session(session_id, feedback)
    except api.ApiError as exc:
        flash_api_error(exc, 'Could not end the session.')
        return _back_to_session(session_id)
    flash('Session ended. Thanks for learning with the tutor!', 'success')
    return _back_to_session(session_id)
