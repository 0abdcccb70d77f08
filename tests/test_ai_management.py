from app import lms_api as api
from app.models import AIModel

MODEL_FORM = {
    'name': 'Dropout predictor',
    'description': 'Flags students at risk',
    'type': 'prediction',
    'version': '1.2.0',
    'environment': 'staging',
    'confidence_threshold': '0.8',
    'tags': 'risk, retention',
}


def _models():
    return [
        AIModel(id='m1', name='Course recommender', type='recommendation', status='deployed', accuracy=90),
        AIModel(id='m2', name='Essay grader', type='nlp', status='training', training_progress=40),
        AIModel(id='m3', name='Churn model', type='prediction', status='failed'),
    ]


def test_admin_only(client, login):
    login('teacher')
    response = client.get('/admin/ai-models/')
    assert response.status_code == 302
    assert response.headers['Location'].endswith('/dashboard')


def test_index_filters_by_status(client, login, fake_api):
    login('admin')
    fake_api.stub('get_models', _models())
    body = client.get('/admin/ai-models/?status=training').get_data(as_text=True)
    assert 'Essay grader' in body
    assert 'Course recommender' not in body
    assert '(40%)' in body


def test_index_searches(client, login, fake_api):
    login('admin')
    fake_api.stub('get_models', _models())
    body = client.get('/admin/ai-models/?q=churn').get_data(as_text=True)
    assert 'Churn model' in body
    assert 'Essay grader' not in body


def test_index_survives_api_failure(client, login, fake_api, flashes):
    login('admin')
    fake_api.stub('get_models', error=api.ApiError(503, 'down'))
    response = client.get('/admin/ai-models/')
    assert response.status_code == 200
    assert 'No models match.' in response.get_data(as_text=True)


def test_detail_tolerates_missing_metrics(client, login, fake_api):
    login('admin')
    fake_api.stub('get_model', AIModel(id='m1', name='Course recommender', version='2.0'))
    fake_api.stub('get_model_metrics', error=api.ApiError(500))
    fake_api.stub('get_model_versions', [{'id': 'v1', 'version': '1.0', 'status': 'archived'}])
    body = client.get('/admin/ai-models/m1').get_data(as_text=True)
    assert 'Course recommender' in body
    assert '/admin/ai-models/m1/versions/v1/deploy' in body


def test_detail_404(client, login, fake_api):
    login('admin')
    fake_api.stub('get_model', error=api.ApiError(404))
    assert client.get('/admin/ai-models/nope').status_code == 404


def test_create_sends_payload(client, login, fake_api, flashes):
    login('admin')
    fake_api.stub('create_model', AIModel(id='m9', name='Dropout predictor'))
    response = client.post('/admin/ai-models/new', data=MODEL_FORM)
    assert response.headers['Location'].endswith('/admin/ai-models/m9')
    (payload,), _ = fake_api.called('create_model')[0]
    assert payload['deploymentInfo'] == {'environment': 'staging'}
    assert payload['configuration'] == {'confidenceThreshold': 0.8, 'autoRetrain': False}
    assert payload['tags'] == ['risk', 'retention']
    assert ('success', 'Model "Dropout predictor" created.') in flashes()


def test_create_rejects_bad_version(client, login, fake_api):
    login('admin')
    fake_api.stub('create_model', AIModel())
    response = client.post('/admin/ai-models/new', data=dict(MODEL_FORM, version='latest'))
    assert response.status_code == 200
    assert 'Use a version like 1.2.0' in response.get_data(as_text=True)
    assert fake_api.called('create_model') == []


def test_edit_prefills(client, login, fake_api):
    login('admin')
    fake_api.stub('get_model', AIModel(id='m1', name='Course recommender', version='2.0', tags=['a', 'b']))
    body = client.get('/admin/ai-models/m1/edit').get_data(as_text=True)
    assert 'value="Course recommender"' in body
    assert 'value="a, b"' in body


def test_edit_saves(client, login, fake_api):
    login('admin')
    fake_api.stub('get_model', AIModel(id='m1', name='Course recommender'))
    fake_api.stub('update_model', {})
    response = client.post('/admin/ai-models/m1/edit', data=MODEL_FORM)
    assert response.headers['Location'].endswith('/admin/ai-models/m1')
    assert fake_api.called('update_model')[0][0][0] == 'm1'


def test_run_action(client, login, fake_api, flashes):
    login('admin')
    fake_api.stub('model_action', AIModel(id='m1', status='training'))
    response = client.post('/admin/ai-models/m1/action/train')
    assert response.headers['Location'].endswith('/admin/ai-models/m1')
    assert fake_api.called('model_action') == [(('m1', 'train'), {})]
    assert ('success', 'Training started.') in flashes()


def test_unknown_action_is_404(client, login, fake_api):
    login('admin')
    fake_api.stub('model_action', AIModel())
    assert client.post('/admin/ai-models/m1/action/explode').status_code == 404
    assert fake_api.called('model_action') == []


def test_action_failure_flashes_api_message(client, login, fake_api, flashes):
    login('admin')
    fake_api.stub('model_action', error=api.ApiError(409, 'Model is already training'))
    client.post('/admin/ai-models/m1/action/train')
    assert ('danger', 'Model is already training') in flashes()


def test_delete(client, login, fake_api):
    login('admin')
    fake_api.stub('delete_model', {})
    response = client.post('/admin/ai-models/m1/delete')
    assert response.headers['Location'].endswith('/admin/ai-models/')


def test_deploy_version(client, login, fake_api, flashes):
    login('admin')
    fake_api.stub('deploy_model_version', {})
    client.post('/admin/ai-models/m1/versions/v1/deploy')
    assert fake_api.called('deploy_model_version') == [(('v1',), {})]
    assert ('success', 'Version deployment started.') in flashes()
