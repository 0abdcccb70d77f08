from flask import Blueprint, render_template, redirect, url_for, flash, request, jsonify, abort

from app.decorators import auth_required, role_required, get_current_user
from app import lms_api as api
from app.errors import flash_api_error, json_error
from app.events import broadcast_message, notify_user
from app.forms import NewConversationForm, MessageForm, BulkMessageForm
from app.listing import ListQuery, filter_conversations, paginate
from app.logging_setup import get_logger
from app.routes.auth import redirect_back
from app.services.storage import upload_many, upload_message_attachment

logger = get_logger(__name__)

bp = Blueprint('messages', __name__, url_prefix='/messages')


def _load_conversation(conversation_id):
    """Fetch a conversation the current user takes part in, or abort."""
    try:
        conversation = api.get_conversation(conversation_id)
    except api.ApiError as exc:
        if exc.is_not_found:
            abort(404)
        raise
    if not conversation.has_participant(get_current_user().uid):
        abort(403)
    return conversation


def _contact_choices():
    try:
        contacts = api.get_contacts()
    except api.ApiError as exc:
        flash_api_error(exc, 'Could not load your contacts.')
        contacts = []
    return [(str(c.get('id')), f"{c.get('name') or c.get('email')} ({c.get('role', 'user')})") for c in contacts]


@bp.route('/')
@auth_required
def index():
    query = ListQuery.from_args(request.args)
    archived = request.args.get('archived') == '1'
    try:
        conversations = api.get_conversations(archived=archived, limit=100)
    except api.ApiError as exc:
        flash_api_error(exc, 'Could not load conversations.')
        conversations = []

    filtered = filter_conversations(conversations, query)
    return render_template('messages/index.html',
        page=paginate(filtered, query.page, query.per_page),
        query=query,
        archived=archived,
        unread_total=sum(c.unread_count for c in conversations),
    )


@bp.route('/<conversation_id>')
@auth_required
def conversation(conversation_id):
    convo = _load_conversation(conversation_id)
    try:
        messages = api.get_messages(conversation_id, before=request.args.get('before'))
    except api.ApiError as exc:
        flash_api_error(exc, 'Could not load messages.')
        messages = []

    if convo.unread_count:
        try:
            api.mark_conversation_read(conversation_id)
        except api.ApiError as exc:
            logger.warning("mark read failed conversation=%s status=%s", conversation_id, exc.status_code)

    messages.sort(key=lambda m: m.sent_at.timestamp() if m.sent_at else 0)
    return render_template('messages/conversation.html',
        conversation=convo,
        messages=messages,
        form=MessageForm(),
    )


@bp.route('/<conversation_id>/send', methods=['POST'])
@auth_required
def send(conversation_id):
    convo = _load_conversation(conversation_id)
    user = get_current_user()
    form = MessageForm()
    if not form.validate_on_submit():
        for errors in form.errors.values():
            for error in errors:
                flash(error, 'danger')
        return redirect(url_for('messages.conversation', conversation_id=conversation_id))

    try:
        paths = upload_many(form.attachments.data, upload_message_attachment, conversation_id)
    except (ValueError, RuntimeError) as exc:
        flash(str(exc), 'danger')
        return redirect(url_for('messages.conversation', conversation_id=conversation_id))

    try:
        message = api.send_message(
            conversation_id,
            (form.content.data or '').strip(),
            attachments=paths,
            reply_to_id=form.reply_to_id.data or None,
        )
    except api.ApiError as exc:
        flash_api_error(exc, 'Your message was not sent.')
        return redirect(url_for('messages.conversation', conversation_id=conversation_id))

    if not message.sender_id:
        message.sender_id = user.uid
        message.sender_name = user.display_name
    message.conversation_id = message.conversation_id or conversation_id
    broadcast_message(message)
    for participant in convo.participants:
        if participant.id != user.uid:
            notify_user(participant.id, 'message_notification', {
                'conversation_id': conversation_id,
                'sender_name': message.sender_name,
                'preview': message.content[:100],
            })
    return redirect(url_for('messages.conversation', conversation_id=conversation_id))


@bp.route('/new', methods=['GET', 'POST'])
@auth_required
def new_conversation():
    form = NewConversationForm()
    form.recipient_id.choices = _contact_choices()
    if request.method == 'GET' and request.args.get('to'):
        form.recipient_id.data = request.args['to']

    if form.validate_on_submit():
        try:
            convo = api.create_conversation(
                [form.recipient_id.data],
                form.content.data.strip(),
                subject=form.subject.data or None,
                course_id=request.args.get('course') or None,
            )
        except api.ApiError as exc:
            flash_api_error(exc, 'Could not start the conversation.')
        else:
            notify_user(form.recipient_id.data, 'message_notification', {
                'conversation_id': convo.id,
                'sender_name': get_current_user().display_name,
                'preview': form.content.data.strip()[:100],
            })
            flash('Message sent.', 'success')
            return redirect(url_for('messages.conversation', conversation_id=convo.id))

    return render_template('messages/new.html', form=form)


@bp.route('/<conversation_id>/archive', methods=['POST'])
@auth_required
def archive(conversation_id):
    try:
        api.archive_conversation(conversation_id)
    except api.ApiError as exc:
        flash_api_error(exc, 'Could not archive the conversation.')
        return redirect_back('messages.index')
    flash('Conversation archived.', 'success')
    return redirect(url_for('messages.index'))


@bp.route('/bulk', methods=['GET', 'POST'])
@role_required('teacher', 'admin')
def bulk():
    form = BulkMessageForm()
    if form.validate_on_submit():
        recipients = form.recipients()
        if not recipients:
            form.recipient_ids.errors.append('Add at least one recipient.')
        else:
            try:
                api.send_bulk_message(recipients, form.subject.data.strip(), form.content.data.strip(),
                                      course_id=form.course_id.data or None)
            except api.ApiError as exc:
                flash_api_error(exc, 'The bulk message was not sent.')
            else:
                for recipient in recipients:
                    notify_user(recipient, 'message_notification', {
                        'sender_name': get_current_user().display_name,
                        'preview': form.subject.data.strip()[:100],
                    })
                flash(f'Message sent to {len(recipients)} recipients.', 'success')
                return redirect(url_for('messages.index'))

    return render_template('messages/bulk.html', form=form)


@bp.route('/search')
@auth_required
def search():
    q = (request.args.get('q') or '').strip()
    results = []
    if q:
        try:
            results = api.search_messages(q, conversation_id=request.args.get('conversation') or None)
        except api.ApiError as exc:
            flash_api_error(exc, 'Search failed.')
    return render_template('messages/search.html', q=q, results=results)


@bp.route('/unread-count')
@auth_required
def unread_count():
    try:
        count = api.get_unread_message_count()
    except api.ApiError as exc:
        return json_error(exc)
    return jsonify({'count': count})
