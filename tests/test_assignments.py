from datetime import datetime, timedelta, timezone
from io import BytesIO

from app import lms_api as api
from app.models import Assignment, Submission
from app.routes import assignments as assignment_routes

NOW = datetime.now(timezone.utc)


def _assignment(**kw):
    data = dict(id='a1', title='Lab report', course_id='c1', course_name='Biology',
                max_points=100, due_date=NOW + timedelta(days=2))
    data.update(kw)
    return Assignment(**data)


def test_index_tabs(client, login, fake_api):
    login('student')
    fake_api.stub('get_student_assignments', {'assignments': [
        _assignment(),
        _assignment(id='a2', title='Old essay', due_date=NOW - timedelta(days=3)),
    ], 'stats': {}})
    body = client.get('/assignments/?tab=missing').get_data(as_text=True)
    assert 'Old essay' in body
    assert 'Lab report' not in body


def test_detail_prefills_previous_answer(client, login, fake_api):
    login('student')
    fake_api.stub('get_assignment', _assignment(submission=Submission(status='submitted', text_submission='My draft')))
    fake_api.stub('get_submission_history', [])
    body = client.get('/assignments/a1').get_data(as_text=True)
    assert 'My draft' in body
    assert 'Resubmit' in body


def test_detail_fetches_submission_when_not_embedded(client, login, fake_api):
    login('student')
    fake_api.stub('get_assignment', _assignment())
    fake_api.stub('get_submission', None)
    fake_api.stub('get_submission_history', [])
    assert client.get('/assignments/a1').status_code == 200
    assert fake_api.called('get_submission') == [(('a1',), {})]


def test_unknown_assignment_is_404(client, login, fake_api):
    login('student')
    fake_api.stub('get_assignment', error=api.ApiError(404))
    assert client.get('/assignments/zzz').status_code == 404


def test_first_submission(client, login, fake_api, flashes):
    login('student')
    fake_api.stub('get_assignment', _assignment())
    fake_api.stub('get_submission', None)
    fake_api.stub('submit_assignment', Submission(status='submitted'))
    response = client.post('/assignments/a1', data={'text_submission': ' My answer '})
    assert response.headers['Location'].endswith('/assignments/a1')
    assert fake_api.called('submit_assignment') == [(('a1', 'My answer', []), {})]
    assert ('success', 'Assignment submitted.') in flashes()


def test_resubmission_updates(client, login, fake_api):
    login('student')
    fake_api.stub('get_assignment', _assignment(submission=Submission(status='submitted')))
    fake_api.stub('update_submission', Submission(status='submitted'))
    fake_api.stub('submit_assignment', Submission(status='submitted'))
    client.post('/assignments/a1', data={'text_submission': 'Second try'})
    assert fake_api.called('update_submission') == [(('a1', 'Second try', []), {})]
    assert fake_api.called('submit_assignment') == []


def test_graded_work_cannot_be_resubmitted(client, login, fake_api, flashes):
    login('student')
    fake_api.stub('get_assignment', _assignment(submission=Submission(status='graded', score=95)))
    fake_api.stub('update_submission', Submission())
    client.post('/assignments/a1', data={'text_submission': 'Sneaky edit'})
    assert fake_api.called('update_submission') == []
    assert ('warning', 'This assignment has already been graded.') in flashes()


def test_late_submission_warns(client, login, fake_api, flashes):
    login('student')
    fake_api.stub('get_assignment', _assignment(due_date=NOW - timedelta(hours=1)))
    fake_api.stub('get_submission', None)
    fake_api.stub('submit_assignment', Submission(status='late'))
    client.post('/assignments/a1', data={'text_submission': 'Sorry'})
    assert ('warning', 'Submitted after the due date. It will be marked late.') in flashes()


def test_empty_submission_is_rejected(client, login, fake_api):
    login('student')
    fake_api.stub('get_assignment', _assignment())
    fake_api.stub('get_submission', None)
    fake_api.stub('get_submission_history', [])
    fake_api.stub('submit_assignment', Submission())
    response = client.post('/assignments/a1', data={'text_submission': ''})
    assert response.status_code == 200
    assert 'Write an answer or attach at least one file.' in response.get_data(as_text=True)
    assert fake_api.called('submit_assignment') == []


def test_file_submission_uploads_first(client, login, fake_api, monkeypatch):
    login('student')
    fake_api.stub('get_assignment', _assignment())
    fake_api.stub('get_submission', None)
    fake_api.stub('submit_assignment', Submission(status='submitted'))
    monkeypatch.setattr(assignment_routes, 'upload_submission_file',
                        lambda assignment_id, user_id, fs: f'assignments/{assignment_id}/submissions/{user_id}/{fs.filename}')
    client.post('/assignments/a1', data={'files': (BytesIO(b'data'), 'report.pdf')}, content_type='multipart/form-data')
    assert fake_api.called('submit_assignment') == [(('a1', None, ['assignments/a1/submissions/stu-1/report.pdf']), {})]
