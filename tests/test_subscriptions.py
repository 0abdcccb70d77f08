from datetime import datetime, timezone

from app import lms_api as api
from app.models import Subscription


def _subs():
    return [
        Subscription(id='s1', course_name='Intro to Python', plan='monthly', price=20, status='active',
                     next_payment_date=datetime(2030, 5, 1, tzinfo=timezone.utc)),
        Subscription(id='s2', course_name='Statistics', plan='yearly', price=120, status='active'),
        Subscription(id='s3', course_name='Old Course', status='cancelled'),
    ]


def test_index_shows_stats(client, login, fake_api):
    login('student')
    fake_api.stub('get_subscriptions', _subs())
    body = client.get('/subscriptions/').get_data(as_text=True)
    assert '$30.00' in body
    assert '2030-05-01' in body
    assert 'Old Course' in body


def test_index_filters_by_status(client, login, fake_api):
    login('student')
    fake_api.stub('get_subscriptions', _subs())
    body = client.get('/subscriptions/?status=cancelled').get_data(as_text=True)
    assert 'Old Course' in body
    assert 'Statistics' not in body


def test_detail_offers_the_other_plan(client, login, fake_api):
    login('student')
    fake_api.stub('get_subscription', Subscription(id='s1', course_name='Intro to Python', plan='monthly'))
    body = client.get('/subscriptions/s1').get_data(as_text=True)
    assert '<option selected value="yearly">' in body
    assert '/subscriptions/s1/pause' in body


def test_detail_404(client, login, fake_api):
    login('student')
    fake_api.stub('get_subscription', error=api.ApiError(404))
    assert client.get('/subscriptions/zzz').status_code == 404


def test_pause_and_resume(client, login, fake_api, flashes):
    login('student')
    fake_api.stub('pause_subscription', {})
    fake_api.stub('resume_subscription', {})
    response = client.post('/subscriptions/s1/pause')
    assert response.headers['Location'].endswith('/subscriptions/s1')
    client.post('/subscriptions/s1/resume')
    assert fake_api.called('pause_subscription') == [(('s1',), {})]
    assert fake_api.called('resume_subscription') == [(('s1',), {})]
    assert ('success', 'Subscription resumed.') in flashes()


def test_pause_failure(client, login, fake_api, flashes):
    login('student')
    fake_api.stub('pause_subscription', error=api.ApiError(409, 'Subscription is not active'))
    client.post('/subscriptions/s1/pause')
    assert ('danger', 'Subscription is not active') in flashes()


def test_cancel_at_period_end(client, login, fake_api, flashes):
    login('student')
    fake_api.stub('cancel_subscription', {})
    client.post('/subscriptions/s1/cancel', data={'cancel_at_period_end': 'y'})
    assert fake_api.called('cancel_subscription') == [(('s1',), {'cancel_at_period_end': True})]
    assert ('success', 'Your subscription will end at the close of the current period.') in flashes()


def test_cancel_immediately(client, login, fake_api, flashes):
    login('student')
    fake_api.stub('cancel_subscription', {})
    client.post('/subscriptions/s1/cancel', data={'submit': 'Cancel subscription'})
    assert fake_api.called('cancel_subscription') == [(('s1',), {'cancel_at_period_end': False})]
    assert ('success', 'Subscription cancelled.') in flashes()


def test_change_plan(client, login, fake_api, flashes):
    login('student')
    fake_api.stub('change_subscription_plan', {})
    client.post('/subscriptions/s1/change-plan', data={'plan': 'yearly'})
    assert fake_api.called('change_subscription_plan') == [(('s1', 'yearly'), {})]
    assert ('success', 'Plan changed to yearly.') in flashes()


def test_change_plan_rejects_unknown(client, login, fake_api, flashes):
    login('student')
    fake_api.stub('change_subscription_plan', {})
    client.post('/subscriptions/s1/change-plan', data={'plan': 'lifetime'})
    assert fake_api.called('change_subscription_plan') == []
    assert ('danger', 'Choose a plan.') in flashes()
