from datetime import datetime, timezone

from app.models import (
    Announcement, Assignment, Conversation, CourseDetail, Message, NotificationSettings,
    Recommendation, Subscription, _parse_datetime,
)


class TestParseDatetime:
    def test_iso_with_z(self):
        assert _parse_datetime('2026-01-02T03:04:05Z') == datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    def test_naive_string_becomes_utc(self):
        assert _parse_datetime('2026-01-02T03:04:05').tzinfo == timezone.utc

    def test_epoch_millis(self):
        assert _parse_datetime(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_garbage(self):
        assert _parse_datetime('soon') is None
        assert _parse_datetime('') is None


def test_announcement_from_dict():
    a = Announcement.from_dict({
        'id': 7, 'title': 'Lab moved', 'priority': 'high', 'status': 'published',
        'tags': ['lab'], 'viewCount': '12', 'expiresAt': '2000-01-01T00:00:00Z',
    })
    assert a.id == '7'
    assert a.view_count == 12
    assert a.is_expired
    assert a.target_audience == 'all_students'


def test_recommendation_reads_metadata():
    r = Recommendation.from_dict({'id': 'r1', 'type': 'practice_quiz', 'confidence': '0.7',
                                  'metadata': {'targetUrl': '/quiz/1', 'estimatedTime': 15}})
    assert r.recommendation_type == 'practice_quiz'
    assert r.confidence == 0.7
    assert r.target_url == '/quiz/1'
    assert r.estimated_minutes == 15


def test_assignment_with_submission():
    a = Assignment.from_dict({'id': 'a1', 'maxPoints': 100, 'dueDate': '2026-05-01T10:00:00Z',
                              'submission': {'status': 'graded', 'score': 88, 'files': [{'name': 'x.pdf'}]}})
    assert a.max_points == 100
    assert a.submission.status == 'graded'
    assert a.submission.score == 88
    assert a.submission.files[0].name == 'x.pdf'
    assert Assignment.from_dict({'id': 'a2'}).submission is None


def test_conversation_participants():
    c = Conversation.from_dict({
        'id': 'c1', 'unreadCount': 3,
        'participants': [{'id': 'u1', 'name': 'An'}, {'id': 2, 'name': 'Binh'}],
        'lastMessage': {'content': 'hi', 'senderId': 'u1'},
    })
    assert c.participant_names == ['An', 'Binh']
    assert c.has_participant('2')
    assert not c.has_participant('u9')
    assert c.last_message.content == 'hi'


def test_message_event_payload():
    m = Message.from_dict({'id': 'm1', 'conversationId': 'c1', 'content': 'hello',
                           'senderId': 'u1', 'senderName': 'An', 'sentAt': '2026-01-01T00:00:00Z'})
    assert m.to_event() == {
        'id': 'm1', 'conversation_id': 'c1', 'content': 'hello',
        'sender_id': 'u1', 'sender_name': 'An', 'sent_at': '2026-01-01T00:00:00+00:00',
    }


class TestNotificationSettings:
    def test_defaults_when_missing(self):
        settings = NotificationSettings.from_dict(None)
        assert settings.email_notifications
        assert not settings.marketing_notifications
        assert settings.frequency == 'instant'

    def test_round_trip_keys(self):
        settings = NotificationSettings.from_dict({
            'emailNotifications': False,
            'quietHours': {'enabled': False, 'startTime': '23:00', 'endTime': '06:30'},
            'frequency': 'daily',
        })
        payload = settings.to_dict()
        assert payload['emailNotifications'] is False
        assert payload['quietHours'] == {'enabled': False, 'startTime': '23:00', 'endTime': '06:30'}
        assert payload['frequency'] == 'daily'


def test_subscription_flags():
    sub = Subscription.from_dict({'id': 's1', 'status': 'active', 'usageStats': {'lessonsCompleted': 3, 'totalLessons': 12}})
    assert sub.progress_percent == 25
    assert sub.can_pause and sub.can_cancel and not sub.can_resume
    paused = Subscription.from_dict({'id': 's2', 'status': 'paused', 'cancelAtPeriodEnd': True})
    assert paused.can_resume
    assert not paused.can_cancel


def test_course_detail_totals():
    course = CourseDetail.from_dict({
        'id': 'c1', 'slug': 'python', 'teacher': {'name': 'Lan'}, 'price': 0, 'isFree': True,
        'sections': [
            {'title': 'Basics', 'lessons': [{'duration': 10}, {'duration': 15}]},
            {'title': 'More', 'lessons': [{'duration': 30}]},
        ],
    })
    assert course.teacher_name == 'Lan'
    assert course.total_sections == 2
    assert course.total_lessons == 3
    assert course.total_duration == 55
