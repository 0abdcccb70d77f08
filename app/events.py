from flask_socketio import emit, join_room, leave_room
from app import socketio
from app.decorators import get_current_user
from app import lms_api as api
from app.logging_setup import get_logger

logger = get_logger(__name__)


def user_room(user_id):
    return f'user_{user_id}'


def conversation_room(conversation_id):
    return f'conversation_{conversation_id}'


def _get_socket_user():
    """Get current user from the Flask session context in Socket.IO events."""
    user = get_current_user()
    if user and user.is_authenticated:
        return user
    return None


def _conversation_for(user, conversation_id):
    """Fetch a conversation the user takes part in, or None."""
    if not conversation_id:
        return None
    try:
        conversation = api.get_conversation(conversation_id)
    except api.ApiError as exc:
        logger.warning("socket conversation lookup failed conversation=%s status=%s",
                       conversation_id, exc.status_code)
        return None
    if not conversation.has_participant(user.uid):
        return None
    return conversation


# ---------------------------------------------------------------------------
# Server-side pushes, called from route handlers
# ---------------------------------------------------------------------------

def notify_user(user_id, event, payload):
    socketio.emit(event, payload, to=user_room(user_id))


def broadcast_message(message):
    socketio.emit('new_message', message.to_event(), to=conversation_room(message.conversation_id))


def announce(announcement, student_ids):
    """Push a freshly published announcement to each student's own room."""
    payload = {
        'id': announcement.id,
        'title': announcement.title,
        'priority': announcement.priority,
        'course_id': announcement.course_id,
        'course_name': announcement.course_name,
    }
    for student_id in dict.fromkeys(student_ids):
        notify_user(student_id, 'announcement_published', payload)


# ---------------------------------------------------------------------------
# Client events
# ---------------------------------------------------------------------------

@socketio.on('connect')
def handle_connect():
    user = _get_socket_user()
    if not user:
        return False
    join_room(user_room(user.uid))
    emit('connected', {'user_id': user.uid, 'username': user.display_name})


@socketio.on('disconnect')
def handle_disconnect():
    user = _get_socket_user()
    if user:
        logger.info("socket disconnected uid=%s", user.uid)


@socketio.on('join_conversation')
def handle_join_conversation(data):
    user = _get_socket_user()
    if not user:
        return

    conversation_id = (data or {}).get('conversation_id')
    if not _conversation_for(user, conversation_id):
        emit('error', {'message': 'Access denied to this conversation'})
        return

    room = conversation_room(conversation_id)
    join_room(room)
    emit('joined_conversation', {'conversation_id': conversation_id})
    emit('user_joined', {
        'user_id': user.uid,
        'username': user.display_name
    }, to=room, include_self=False)


@socketio.on('leave_conversation')
def handle_leave_conversation(data):
    user = _get_socket_user()
    if not user:
        return
    conversation_id = (data or {}).get('conversation_id')
    if not conversation_id:
        emit('error', {'message': 'Conversation ID required'})
        return
    leave_room(conversation_room(conversation_id))


@socketio.on('send_message')
def handle_send_message(data):
    user = _get_socket_user()
    if not user:
        return

    data = data or {}
    conversation_id = data.get('conversation_id')
    content = (data.get('content') or '').strip()
    if not conversation_id or not content:
        return

    conversation = _conversation_for(user, conversation_id)
    if not conversation:
        emit('error', {'message': 'Access denied to this conversation'})
        return

    try:
        message = api.send_message(conversation_id, content, reply_to_id=data.get('reply_to_id'))
    except api.ApiError as exc:
        emit('error', {'message': exc.message})
        return

    message.conversation_id = message.conversation_id or conversation_id
    if not message.sender_id:
        message.sender_id = user.uid
        message.sender_name = user.display_name
    broadcast_message(message)

    for participant in conversation.participants:
        if participant.id != user.uid:
            notify_user(participant.id, 'message_notification', {
                'conversation_id': conversation_id,
                'sender_name': message.sender_name,
                'preview': content[:100],
            })


@socketio.on('typing')
def handle_typing(data):
    user = _get_socket_user()
    if not user:
        return
    conversation_id = (data or {}).get('conversation_id')
    if not conversation_id:
        return
    if not _conversation_for(user, conversation_id):
        emit('error', {'message': 'Access denied to this conversation'})
        return
    emit('user_typing', {
        'user_id': user.uid,
        'username': user.display_name,
        'is_typing': bool((data or {}).get('is_typing', True))
    }, to=conversation_room(conversation_id), include_self=False)


@socketio.on('mark_read')
def handle_mark_read(data):
    user = _get_socket_user()
    if not user:
        return
    conversation_id = (data or {}).get('conversation_id')
    if not conversation_id:
        return
    if not _conversation_for(user, conversation_id):
        emit('error', {'message': 'Access denied to this conversation'})
        return
    try:
        api.mark_conversation_read(conversation_id)
    except api.ApiError as exc:
        emit('error', {'message': exc.message})
        return
    emit('conversation_read', {
        'conversation_id': conversation_id,
        'user_id': user.uid
    }, to=conversation_room(conversation_id))
