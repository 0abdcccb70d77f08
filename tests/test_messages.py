from io import BytesIO

from app import lms_api as api
from app.models import Conversation, Message, Participant
from app.routes import messages as message_routes


def _conversation(unread=0, **kw):
    return Conversation(id='c1', subject='Lab report', unread_count=unread, participants=[
        Participant(id='stu-1', name='Sam Student'), Participant(id='tea-1', name='Tara Teacher'),
    ], **kw)


def test_index_lists_conversations(client, login, fake_api):
    login('student')
    fake_api.stub('get_conversations', [_conversation(unread=2), Conversation(id='c2', subject='Trip')])
    body = client.get('/messages/?tab=unread').get_data(as_text=True)
    assert 'Lab report' in body
    assert 'Trip' not in body
    (_, kwargs), = fake_api.called('get_conversations')
    assert kwargs['archived'] is False


def test_archived_view(client, login, fake_api):
    login('student')
    fake_api.stub('get_conversations', [])
    client.get('/messages/?archived=1')
    (_, kwargs), = fake_api.called('get_conversations')
    assert kwargs['archived'] is True


def test_conversation_marks_read(client, login, fake_api):
    login('student')
    fake_api.stub('get_conversation', _conversation(unread=1))
    fake_api.stub('get_messages', [Message(id='m1', content='See you at 3', sender_id='tea-1', sender_name='Tara Teacher')])
    fake_api.stub('mark_conversation_read', {})
    response = client.get('/messages/c1')
    assert response.status_code == 200
    assert 'See you at 3' in response.get_data(as_text=True)
    assert fake_api.called('mark_conversation_read') == [(('c1',), {})]


def test_read_conversation_is_not_marked_again(client, login, fake_api):
    login('student')
    fake_api.stub('get_conversation', _conversation(unread=0))
    fake_api.stub('get_messages', [])
    fake_api.stub('mark_conversation_read', {})
    client.get('/messages/c1')
    assert fake_api.called('mark_conversation_read') == []


def test_outsiders_are_forbidden(client, login, fake_api):
    login('student', uid='stranger')
    fake_api.stub('get_conversation', _conversation())
    assert client.get('/messages/c1').status_code == 403


def test_send_broadcasts_and_notifies(client, login, fake_api, emitted):
    login('student')
    fake_api.stub('get_conversation', _conversation())
    fake_api.stub('send_message', Message(id='m2', content='Thanks!'))
    response = client.post('/messages/c1/send', data={'content': ' Thanks! '})
    assert response.headers['Location'].endswith('/messages/c1')
    (conversation_id, content), kwargs = fake_api.called('send_message')[0]
    assert (conversation_id, content) == ('c1', 'Thanks!')
    assert kwargs['attachments'] == []

    new_message, notification = emitted
    assert new_message[0] == 'new_message'
    assert new_message[2]['to'] == 'conversation_c1'
    assert new_message[1]['sender_id'] == 'stu-1'
    assert notification[0] == 'message_notification'
    assert notification[2]['to'] == 'user_tea-1'


def test_send_requires_text_or_file(client, login, fake_api, flashes):
    login('student')
    fake_api.stub('get_conversation', _conversation())
    fake_api.stub('send_message', Message(id='m2'))
    client.post('/messages/c1/send', data={'content': '   '})
    assert fake_api.called('send_message') == []
    assert ('danger', 'Write a message or attach a file.') in flashes()


def test_send_with_attachment(client, login, fake_api, monkeypatch, emitted):
    login('student')
    fake_api.stub('get_conversation', _conversation())
    fake_api.stub('send_message', Message(id='m2'))
    monkeypatch.setattr(message_routes, 'upload_message_attachment',
                        lambda conversation_id, fs: f'conversations/{conversation_id}/{fs.filename}')
    client.post('/messages/c1/send', data={'content': '', 'attachments': (BytesIO(b'%PDF'), 'notes.pdf')},
                content_type='multipart/form-data')
    _, kwargs = fake_api.called('send_message')[0]
    assert kwargs['attachments'] == ['conversations/c1/notes.pdf']


def test_send_rejects_unsupported_file(client, login, fake_api, flashes):
    login('student')
    fake_api.stub('get_conversation', _conversation())
    fake_api.stub('send_message', Message(id='m2'))
    client.post('/messages/c1/send', data={'content': 'hi', 'attachments': (BytesIO(b'MZ'), 'virus.exe')},
                content_type='multipart/form-data')
    assert fake_api.called('send_message') == []
    assert ('danger', 'virus.exe has an unsupported file type.') in flashes()


def test_new_conversation(client, login, fake_api, emitted):
    login('student')
    fake_api.stub('get_contacts', [{'id': 'tea-1', 'name': 'Tara Teacher', 'role': 'teacher'}])
    fake_api.stub('create_conversation', Conversation(id='c9'))
    response = client.post('/messages/new', data={'recipient_id': 'tea-1', 'subject': 'Question', 'content': 'Hello'})
    assert response.headers['Location'].endswith('/messages/c9')
    args, kwargs = fake_api.called('create_conversation')[0]
    assert args == (['tea-1'], 'Hello')
    assert kwargs['subject'] == 'Question'
    assert emitted[0][2]['to'] == 'user_tea-1'


def test_new_conversation_preselects_recipient(client, login, fake_api):
    login('student')
    fake_api.stub('get_contacts', [{'id': 'tea-1', 'name': 'Tara Teacher', 'role': 'teacher'}])
    body = client.get('/messages/new?to=tea-1').get_data(as_text=True)
    assert '<option selected value="tea-1">' in body


def test_bulk_message_for_teachers(client, login, fake_api, emitted, flashes):
    login('teacher')
    fake_api.stub('send_bulk_message', {'sent': 2})
    client.post('/messages/bulk', data={'recipient_ids': 's1, s2', 'subject': 'Reminder', 'content': 'Bring goggles'})
    args, kwargs = fake_api.called('send_bulk_message')[0]
    assert args == (['s1', 's2'], 'Reminder', 'Bring goggles')
    assert ('success', 'Message sent to 2 recipients.') in flashes()
    assert len(emitted) == 2


def test_bulk_message_forbidden_for_students(client, login):
    login('student')
    assert client.get('/messages/bulk').status_code == 302


def test_archive(client, login, fake_api):
    login('student')
    fake_api.stub('archive_conversation', {})
    response = client.post('/messages/c1/archive')
    assert response.headers['Location'].endswith('/messages/')


def test_search(client, login, fake_api):
    login('student')
    fake_api.stub('search_messages', [Message(id='m1', conversation_id='c1', content='goggles needed')])
    body = client.get('/messages/search?q=goggles').get_data(as_text=True)
    assert 'goggles needed' in body
    assert fake_api.called('search_messages') == [(('goggles',), {'conversation_id': None})]


def test_unread_count_failure_is_json(client, login, fake_api):
    login('student')
    fake_api.stub('get_unread_message_count', error=api.ApiError(0))
    response = client.get('/messages/unread-count')
    assert response.status_code == 502
    assert response.get_json()['success'] is False
