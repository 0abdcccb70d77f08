"""
LMS API access layer.

All persistence and business logic live behind the remote LMS API.
Route files call the functions in this module instead of issuing HTTP
requests themselves. Each function is one remote query or mutation:
queries return model objects from `app.models`, mutations return the
API's result payload. Every failure surfaces as `ApiError`.

Responses come either wrapped as ``{"success": ..., "data": ..., "message": ...}``
or as bare JSON. Bare JSON is treated as the data.
"""

import time

import requests
from flask import current_app, g, has_app_context
from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential

from app.logging_setup import get_logger, get_request_id
from app.models import (
    AIModel, Announcement, Assignment, Conversation, CourseDetail, Message,
    Notification, NotificationSettings, Recommendation, Submission,
    Subscription, TutoringSession,
)

logger = get_logger(__name__)

SLOW_REQUEST_MS = 3000

ERROR_MESSAGES = {
    0: 'Network error. Please check your connection.',
    400: 'Please check your input and try again.',
    401: 'You are not authorized to perform this action.',
    403: 'Access denied.',
    404: 'Resource not found.',
    409: 'This change conflicts with the current state. Refresh and try again.',
    413: 'File size exceeds the maximum allowed limit.',
    422: 'Please check your input and try again.',
    429: 'Too many requests. Please slow down.',
    500: 'Internal server error. Please try again later.',
}


class ApiError(Exception):
    """A failed LMS API call.

    ``status_code`` is the HTTP status, or 0 when the API was unreachable.
    """

    def __init__(self, status_code, message=None, payload=None):
        self.status_code = status_code
        self.message = message or default_message(status_code)
        self.payload = payload
        super().__init__(self.message)

    @property
    def is_not_found(self):
        return self.status_code == 404


def default_message(status_code):
    if status_code in ERROR_MESSAGES:
        return ERROR_MESSAGES[status_code]
    if status_code >= 500:
        return ERROR_MESSAGES[500]
    return ERROR_MESSAGES[400]


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

_session = None


def get_session():
    global _session
    if _session is None:
        _session = requests.Session()
        _session.headers.update({
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        })
    return _session


def _config(key, default=None):
    if has_app_context():
        return current_app.config.get(key, default)
    return default


def _url(path):
    base = _config('LMS_API_BASE_URL', 'http://localhost:4000/api').rstrip('/')
    version = _config('LMS_API_VERSION', 'v1')
    return f"{base}/{version}/{path.lstrip('/')}"


def _acting_user_id():
    if not has_app_context():
        return None
    user = getattr(g, '_current_user', None)
    if user is not None and user.is_authenticated:
        return user.uid
    return None


def _headers(user_id=None):
    headers = {
        'X-Request-ID': get_request_id(),
        'X-Client-Platform': 'web',
        'X-Client-Version': _config('APP_VERSION', '1.0.0'),
    }
    api_key = _config('LMS_API_KEY')
    if api_key:
        headers['Authorization'] = f'Bearer {api_key}'
    uid = user_id or _acting_user_id()
    if uid:
        headers['X-User-Id'] = uid
    return headers


def _clean_params(params):
    if not params:
        return None
    cleaned = {}
    for key, value in params.items():
        if value is None or value == '':
            continue
        if isinstance(value, bool):
            value = 'true' if value else 'false'
        cleaned[key] = value
    return cleaned


def _unwrap(body, status_code):
    if isinstance(body, dict) and 'success' in body:
        if not body['success']:
            raise ApiError(status_code if status_code >= 400 else 400, body.get('message'), body)
        return body.get('data')
    return body


def _send(method, path, params=None, json=None, user_id=None):
    start = time.monotonic()
    try:
        resp = get_session().request(
            method,
            _url(path),
            params=_clean_params(params),
            json=json,
            headers=_headers(user_id),
            timeout=_config('LMS_API_TIMEOUT', 30),
        )
    except requests.RequestException as exc:
        logger.error("api unreachable method=%s path=%s error=%s", method, path, exc)
        raise ApiError(0) from exc

    duration_ms = int((time.monotonic() - start) * 1000)
    logger.info("api %s %s status=%s duration_ms=%s", method, path, resp.status_code, duration_ms)
    if duration_ms > SLOW_REQUEST_MS:
        logger.warning("slow api request method=%s path=%s duration_ms=%s", method, path, duration_ms)

    body = None
    if resp.status_code != 204 and resp.content:
        try:
            body = resp.json()
        except ValueError:
            body = None

    if resp.status_code >= 400:
        message = body.get('message') if isinstance(body, dict) else None
        if resp.status_code >= 500:
            logger.error("api error method=%s path=%s status=%s message=%s", method, path, resp.status_code, message)
        else:
            logger.warning("api error method=%s path=%s status=%s message=%s", method, path, resp.status_code, message)
        raise ApiError(resp.status_code, message, body)

    return _unwrap(body, resp.status_code)


def is_rate_limited(exception: BaseException) -> bool:
    return isinstance(exception, ApiError) and exception.status_code == 429


def request(method, path, params=None, json=None, user_id=None):
    """Issue one API call, retrying only when the API rate-limits us (429)."""
    retrying = Retrying(
        stop=stop_after_attempt(max(1, _config('LMS_API_MAX_RETRIES', 3))),
        wait=wait_exponential(multiplier=_config('LMS_API_RETRY_WAIT', 0.5), max=8),
        retry=retry_if_exception(is_rate_limited),
        reraise=True,
    )
    result = None
    for attempt in retrying:
        with attempt:
            result = _send(method, path, params=params, json=json, user_id=user_id)
    return result


def _get(path, params=None, **kwargs):
    return request('GET', path, params=params, **kwargs)


def _post(path, json=None, **kwargs):
    return request('POST', path, json=json if json is not None else {}, **kwargs)


def _put(path, json=None, **kwargs):
    return request('PUT', path, json=json if json is not None else {}, **kwargs)


def _delete(path, json=None, **kwargs):
    return request('DELETE', path, json=json, **kwargs)


def _items(data, key):
    """Pull a list out of either ``{key: [...]}`` or a bare list."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        return data.get(key) or []
    return []


# ========================================================================
# Users, profile and settings
# ========================================================================

def get_user(uid):
    """Get a user profile by UID. Returns dict or None."""
    try:
        return _get(f'/users/{uid}', user_id=uid)
    except ApiError as exc:
        if exc.is_not_found:
            return None
        raise


def create_user(uid, data):
    """Register the profile for a freshly created auth account."""
    return _post('/users', json={'id': uid, **data}, user_id=uid)


def update_profile(uid, data):
    return _put(f'/users/{uid}/profile', json=data, user_id=uid)


def update_avatar(uid, storage_path):
    return _put(f'/users/{uid}/avatar', json={'avatarPath': storage_path}, user_id=uid)


def get_user_settings(uid):
    """Settings grouped by section: privacy, appearance, learning."""
    return _get(f'/users/{uid}/settings', user_id=uid) or {}


def update_user_settings(uid, section, data):
    return _put(f'/users/{uid}/settings/{section}', json=data, user_id=uid)


# ========================================================================
# Notifications
# ========================================================================

def get_notifications(page=1, limit=50, category=None, type=None, is_read=None,
                      is_important=None, is_favorite=None, search=None, sort_by=None):
    data = _get('/notifications', params={
        'page': page,
        'limit': limit,
        'category': category,
        'type': type,
        'isRead': is_read,
        'isImportant': is_important,
        'isFavorite': is_favorite,
        'search': search,
        'sortBy': sort_by,
    }) or {}
    return {
        'notifications': [Notification.from_dict(n) for n in _items(data, 'notifications')],
        'total': data.get('total', 0) if isinstance(data, dict) else 0,
        'unread_count': data.get('unreadCount', 0) if isinstance(data, dict) else 0,
        'has_more': data.get('hasMore', False) if isinstance(data, dict) else False,
    }


def mark_notifications(notification_ids, is_read=True):
    return _put('/notifications/mark', json={'notificationIds': list(notification_ids), 'isRead': is_read})


def mark_all_notifications_read():
    return _put('/notifications/mark-all-read')


def delete_notifications(notification_ids):
    return _delete('/notifications/delete', json={'notificationIds': list(notification_ids)})


def set_notification_favorite(notification_id, is_favorite):
    return _put(f'/notifications/{notification_id}/favorite', json={'isFavorite': is_favorite})


def bulk_notification_action(action, notification_ids):
    return _put('/notifications/bulk-action', json={'action': action, 'notificationIds': list(notification_ids)})


def get_notification_settings():
    return NotificationSettings.from_dict(_get('/notifications/settings'))


def update_notification_settings(settings):
    return _put('/notifications/settings', json=settings.to_dict())


def get_unread_notification_count():
    data = _get('/notifications/unread-count') or {}
    if isinstance(data, dict):
        return int(data.get('count', data.get('unreadCount', 0)) or 0)
    return int(data or 0)


# ========================================================================
# Teacher announcements
# ========================================================================

def get_announcements(status=None, course_id=None, limit=50, offset=0):
    data = _get('/teacher/announcements', params={
        'status': status, 'courseId': course_id, 'limit': limit, 'offset': offset,
    })
    return [Announcement.from_dict(a) for a in _items(data, 'announcements')]


def get_announcement(announcement_id):
    return Announcement.from_dict(_get(f'/teacher/announcements/{announcement_id}') or {})


def create_announcement(data):
    return Announcement.from_dict(_post('/teacher/announcements', json=data) or {})


def update_announcement(announcement_id, data):
    return Announcement.from_dict(_put(f'/teacher/announcements/{announcement_id}', json=data) or {})


def delete_announcement(announcement_id):
    return _delete(f'/teacher/announcements/{announcement_id}')


def publish_announcement(announcement_id):
    return Announcement.from_dict(_post(f'/teacher/announcements/{announcement_id}/publish') or {})


def archive_announcement(announcement_id):
    return Announcement.from_dict(_post(f'/teacher/announcements/{announcement_id}/archive') or {})


def duplicate_announcement(announcement_id, title=None):
    return Announcement.from_dict(
        _post(f'/teacher/announcements/{announcement_id}/duplicate', json={'title': title} if title else {}) or {}
    )


def bulk_announcement_action(action, announcement_ids):
    return _post('/teacher/announcements/bulk-actions', json={
        'announcementIds': list(announcement_ids), 'action': action,
    })


def get_announcement_statistics(date_range='30d'):
    return _get('/teacher/announcements/statistics/overview', params={'dateRange': date_range}) or {}


def get_course_announcements(course_id, limit=20):
    """Published announcements visible to a student of the course."""
    data = _get(f'/courses/{course_id}/announcements', params={'limit': limit})
    return [Announcement.from_dict(a) for a in _items(data, 'announcements')]


def mark_announcement_read(announcement_id):
    return _post(f'/announcements/{announcement_id}/read')


def get_teacher_courses():
    """Courses the current teacher owns, as ``[{'id': ..., 'title': ...}]``."""
    return _items(_get('/teacher/courses'), 'courses')


def get_teacher_students(course_id=None, limit=500):
    """Ids of students enrolled in the current teacher's courses, or in one of them."""
    data = _get('/teacher/dashboard/students', params={'courseId': course_id, 'limit': limit})
    ids = (s.get('id') or s.get('studentId') for s in _items(data, 'students'))
    return list(dict.fromkeys(str(i) for i in ids if i))


# ========================================================================
# AI recommendations
# ========================================================================

def get_recommendations(type=None, priority=None, limit=None):
    data = _get('/ai/recommendations/comprehensive', params={
        'type': type, 'priority': priority, 'limit': limit,
    })
    return [Recommendation.from_dict(r) for r in _items(data, 'recommendations')]


def generate_recommendations(type=None):
    data = _get('/ai/recommendations/all', params={'type': type})
    return [Recommendation.from_dict(r) for r in _items(data, 'recommendations')]


def interact_with_recommendation(recommendation_id, action, metadata=None):
    return _put(f'/ai/recommendations/{recommendation_id}/interact', json={
        'action': action, 'metadata': metadata or {},
    })


def recommendation_feedback(recommendation_id, feedback, comment=None):
    return _put(f'/ai/recommendations/{recommendation_id}/feedback', json={
        'feedback': feedback, 'comment': comment,
    })


# ========================================================================
# Messaging
# ========================================================================

def get_conversations(archived=False, limit=20, offset=0):
    data = _get('/messages/conversations', params={'archived': archived, 'limit': limit, 'offset': offset})
    return [Conversation.from_dict(c) for c in _items(data, 'conversations')]


def get_conversation(conversation_id):
    return Conversation.from_dict(_get(f'/messages/conversations/{conversation_id}') or {})


def get_messages(conversation_id, limit=50, before=None):
    data = _get(f'/messages/conversations/{conversation_id}/messages', params={'limit': limit, 'before': before})
    return [Message.from_dict(m) for m in _items(data, 'messages')]


def create_conversation(participant_ids, initial_message, subject=None, course_id=None):
    return Conversation.from_dict(_post('/messages/conversations', json={
        'participantIds': list(participant_ids),
        'initialMessage': initial_message,
        'subject': subject,
        'courseId': course_id,
    }) or {})


def send_message(conversation_id, content, attachments=None, reply_to_id=None):
    message_type = 'file' if attachments and not content else 'text'
    return Message.from_dict(_post(f'/messages/conversations/{conversation_id}/messages', json={
        'content': content,
        'attachments': list(attachments or []),
        'messageType': message_type,
        'replyToId': reply_to_id,
    }) or {})


def mark_conversation_read(conversation_id):
    return _put(f'/messages/conversations/{conversation_id}/read')


def archive_conversation(conversation_id):
    return _put(f'/messages/conversations/{conversation_id}/archive')


def send_bulk_message(recipient_ids, subject, content, course_id=None):
    return _post('/messages/bulk-message', json={
        'recipientIds': list(recipient_ids),
        'subject': subject,
        'content': content,
        'courseId': course_id,
    })


def search_messages(query, conversation_id=None, limit=20):
    data = _get('/messages/search', params={'query': query, 'conversationId': conversation_id, 'limit': limit})
    return [Message.from_dict(m) for m in _items(data, 'messages')]


def get_unread_message_count():
    data = _get('/messages/unread-count') or {}
    if isinstance(data, dict):
        return int(data.get('count', data.get('unreadCount', 0)) or 0)
    return int(data or 0)


def get_contacts(course_id=None):
    """People the current user may start a conversation with."""
    return _items(_get('/messages/contacts', params={'courseId': course_id}), 'contacts')


# ========================================================================
# Student assignments
# ========================================================================

def get_student_assignments(course_id=None, status=None, search=None, page=1, limit=50):
    data = _get('/assignments/student', params={
        'courseId': course_id, 'status': status, 'search': search, 'page': page, 'limit': limit,
    }) or {}
    return {
        'assignments': [Assignment.from_dict(a) for a in _items(data, 'assignments')],
        'total': data.get('total', 0) if isinstance(data, dict) else 0,
        'stats': (data.get('stats') if isinstance(data, dict) else None) or {},
    }


def get_assignment(assignment_id):
    return Assignment.from_dict(_get(f'/assignments/{assignment_id}/student') or {})


def get_submission(assignment_id):
    try:
        return Submission.from_dict(_get(f'/assignments/{assignment_id}/submission'))
    except ApiError as exc:
        if exc.is_not_found:
            return None
        raise


def submit_assignment(assignment_id, text_submission=None, file_paths=None):
    return Submission.from_dict(_post(f'/assignments/{assignment_id}/submit', json={
        'textSubmission': text_submission,
        'files': list(file_paths or []),
    }))


def update_submission(assignment_id, text_submission=None, file_paths=None):
    return Submission.from_dict(_put(f'/assignments/{assignment_id}/submission', json={
        'textSubmission': text_submission,
        'files': list(file_paths or []),
    }))


def get_submission_history(assignment_id):
    data = _get(f'/assignments/{assignment_id}/submission/history')
    return [Submission.from_dict(s) for s in _items(data, 'submissions')]


# ========================================================================
# AI model management (admin)
# ========================================================================

MODEL_ACTIONS = ('deploy', 'stop', 'train')


def get_models():
    return [AIModel.from_dict(m) for m in _items(_get('/models'), 'models')]


def get_model(model_id):
    return AIModel.from_dict(_get(f'/models/{model_id}') or {})


def create_model(data):
    return AIModel.from_dict(_post('/models', json=data) or {})


def update_model(model_id, data):
    return AIModel.from_dict(_put(f'/models/{model_id}', json=data) or {})


def delete_model(model_id):
    return _delete(f'/models/{model_id}')


def model_action(model_id, action):
    if action not in MODEL_ACTIONS:
        raise ApiError(400, f'Unknown model action: {action}')
    return AIModel.from_dict(_post(f'/models/{model_id}/{action}') or {})


def get_model_metrics(model_id):
    return _get(f'/models/{model_id}/metrics') or {}


def get_model_versions(model_id):
    return _items(_get(f'/models/{model_id}/versions'), 'versions')


def deploy_model_version(version_id):
    return _post(f'/models/versions/{version_id}/deploy')


# ========================================================================
# AI tutoring
# ========================================================================

def get_tutoring_sessions(status=None, limit=10):
    data = _get('/tutoring/sessions', params={'status': status, 'limit': limit})
    return [TutoringSession.from_dict(s) for s in _items(data, 'sessions')]


def get_tutoring_session(session_id):
    return TutoringSession.from_dict(_get(f'/tutoring/sessions/{session_id}') or {})


def create_tutoring_session(mode, topic, context=None):
    return TutoringSession.from_dict(_post('/tutoring/sessions', json={
        'mode': mode, 'topic': topic, 'context': context or {},
    }) or {})


def end_tutoring_session(session_id, feedback=None):
    return _post(f'/tutoring/sessions/{session_id}/end', json={'feedback': feedback})


def get_tutoring_messages(session_id):
    return _items(_get(f'/tutoring/sessions/{session_id}/messages'), 'messages')


def ask_tutor(question, session_id=None, context=None):
    """Returns ``{'answer': ..., 'confidence': ..., 'sources': [...]}``."""
    return _post('/tutoring/questions/ask', json={
        'question': question, 'sessionId': session_id, 'context': context or {},
    }) or {}


def request_hint(context, current_problem=None, previous_attempts=None):
    return _post('/tutoring/hints/request', json={
        'context': context,
        'currentProblem': current_problem,
        'previousAttempts': list(previous_attempts or []),
    }) or {}


def get_learning_style_profile():
    try:
        return _get('/tutoring/learning-style/profile') or {}
    except ApiError as exc:
        if exc.is_not_found:
            return {}
        raise


def get_session_analytics(session_id):
    return _get(f'/tutoring/sessions/{session_id}/analytics') or {}


# ========================================================================
# Course catalog
# ========================================================================

def get_course_detail(slug):
    return CourseDetail.from_dict(_get(f'/courses/slug/{slug}') or {})


def enroll_in_course(course_id):
    return _post(f'/courses/{course_id}/enroll')


def is_in_wishlist(course_id):
    data = _get(f'/wishlist/check/{course_id}') or {}
    return bool(data.get('isInWishlist')) if isinstance(data, dict) else bool(data)


def add_to_wishlist(course_id):
    return _post('/wishlist', json={'courseId': course_id})


def remove_from_wishlist(course_id):
    return _delete(f'/wishlist/{course_id}')


def get_course_recommendations(course_id, limit=4):
    data = _get(f'/courses/{course_id}/related', params={'limit': limit})
    return [CourseDetail.from_dict(c) for c in _items(data, 'courses')]


# ========================================================================
# Subscriptions
# ========================================================================

SUBSCRIPTION_PLANS = ('monthly', 'yearly')


def get_subscriptions(status=None, limit=50):
    data = _get('/subscriptions', params={'status': status, 'limit': limit})
    return [Subscription.from_dict(s) for s in _items(data, 'subscriptions')]


def get_subscription(subscription_id):
    return Subscription.from_dict(_get(f'/subscriptions/{subscription_id}') or {})


def pause_subscription(subscription_id):
    return _post(f'/subscriptions/{subscription_id}/pause')


def resume_subscription(subscription_id):
    return _post(f'/subscriptions/{subscription_id}/resume')


def cancel_subscription(subscription_id, cancel_at_period_end=True):
    return _post(f'/subscriptions/{subscription_id}/cancel', json={'cancelAtPeriodEnd': cancel_at_period_end})


def change_subscription_plan(subscription_id, plan):
    if plan not in SUBSCRIPTION_PLANS:
        raise ApiError(400, f'Unknown plan: {plan}')
    return _post(f'/subscriptions/{subscription_id}/change-plan', json={'plan': plan})
