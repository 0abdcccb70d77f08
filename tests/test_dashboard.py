from datetime import datetime, timedelta, timezone

from app import lms_api as api
from app.models import AIModel, Announcement, Assignment, Recommendation, Subscription


def _stub_counters(fake_api, notifications=3, messages=1):
    fake_api.stub('get_unread_notification_count', notifications)
    fake_api.stub('get_unread_message_count', messages)


def test_anonymous_home_page(client):
    response = client.get('/')
    assert response.status_code == 200


def test_signed_in_home_redirects_to_dashboard(client, login):
    login('student')
    response = client.get('/')
    assert response.headers['Location'].endswith('/dashboard')


def test_student_dashboard(client, login, fake_api):
    login('student')
    _stub_counters(fake_api)
    soon = datetime.now(timezone.utc) + timedelta(days=2)
    fake_api.stub('get_recommendations', [
        Recommendation(id='r1', title='Review loops', priority='high', confidence=0.9),
        Recommendation(id='r2', title='Hidden one', priority='low'),
    ])
    fake_api.stub('get_student_assignments', {'assignments': [
        Assignment(id='a1', title='Essay draft', due_date=soon),
        Assignment(id='a2', title='Old lab', due_date=datetime.now(timezone.utc) - timedelta(days=1)),
    ], 'stats': {}})
    fake_api.stub('get_subscriptions', [Subscription(id='s1', course_name='Python 101', status='active', price=9.99)])
    with client.session_transaction() as sess:
        sess['dismissed_recommendations'] = ['r2']

    response = client.get('/dashboard')
    body = response.get_data(as_text=True)
    assert response.status_code == 200
    assert 'Review loops' in body
    assert 'Hidden one' not in body
    assert 'Essay draft' in body
    assert '1 overdue' in body
    assert 'Python 101' in body


def test_student_dashboard_survives_api_outage(client, login, fake_api):
    login('student')
    _stub_counters(fake_api)
    for name in ('get_recommendations', 'get_student_assignments', 'get_subscriptions'):
        fake_api.stub(name, error=api.ApiError(0))
    response = client.get('/dashboard')
    assert response.status_code == 200
    assert 'No recommendations right now.' in response.get_data(as_text=True)


def test_teacher_dashboard(client, login, fake_api):
    login('teacher')
    _stub_counters(fake_api)
    fake_api.stub('get_announcements', [Announcement(id='n1', title='Quiz Friday', status='published')])
    fake_api.stub('get_announcement_statistics', {'totalViews': 42})
    response = client.get('/dashboard')
    body = response.get_data(as_text=True)
    assert response.status_code == 200
    assert 'Quiz Friday' in body
    assert '42' in body


def test_admin_dashboard_lists_failing_models(client, login, fake_api):
    login('admin')
    _stub_counters(fake_api)
    fake_api.stub('get_models', [AIModel(id='m1', name='Grader', status='failed'), AIModel(id='m2', name='Tutor', status='active')])
    response = client.get('/dashboard')
    assert response.status_code == 200
    assert 'Grader' in response.get_data(as_text=True)
