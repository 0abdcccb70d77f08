import re
from pathlib import Path

import pytest

from app import socketio
from app.models import Conversation, Message, Participant


def _conversation():
    return Conversation(id='c1', participants=[
        Participant(id='stu-1', name='Sam Student'),
        Participant(id='tea-1', name='Tara Teacher', role='teacher'),
    ])


def _events(client, name):
    return [e['args'][0] for e in client.get_received() if e['name'] == name]


@pytest.fixture
def socket_client(app, client):
    def _connect():
        return socketio.test_client(app, flask_test_client=client)
    return _connect


def test_anonymous_connection_is_refused(socket_client):
    sc = socket_client()
    assert not sc.is_connected()


def test_connect_greets_user(socket_client, login):
    login('student')
    sc = socket_client()
    assert sc.is_connected()
    assert _events(sc, 'connected') == [{'user_id': 'stu-1', 'username': 'Sam Student'}]


def test_join_own_conversation(socket_client, login, fake_api):
    login('student')
    fake_api.stub('get_conversation', _conversation())
    sc = socket_client()
    sc.get_received()
    sc.emit('join_conversation', {'conversation_id': 'c1'})
    assert _events(sc, 'joined_conversation') == [{'conversation_id': 'c1'}]


def test_join_foreign_conversation_is_denied(socket_client, login, fake_api):
    login('student', uid='outsider')
    fake_api.stub('get_conversation', _conversation())
    sc = socket_client()
    sc.get_received()
    sc.emit('join_conversation', {'conversation_id': 'c1'})
    assert _events(sc, 'error') == [{'message': 'Access denied to this conversation'}]


def test_send_message_reaches_the_room(socket_client, login, fake_api):
    login('student')
    fake_api.stub('get_conversation', _conversation())
    fake_api.stub('send_message', Message(id='m1', content='See you in class'))
    sc = socket_client()
    sc.emit('join_conversation', {'conversation_id': 'c1'})
    sc.get_received()
    sc.emit('send_message', {'conversation_id': 'c1', 'content': ' See you in class '})
    (event,) = _events(sc, 'new_message')
    assert event['conversation_id'] == 'c1'
    assert event['sender_id'] == 'stu-1'
    assert fake_api.called('send_message') == [(('c1', 'See you in class'), {'reply_to_id': None})]


def test_blank_socket_message_is_ignored(socket_client, login, fake_api):
    login('student')
    fake_api.stub('send_message', Message())
    sc = socket_client()
    sc.emit('send_message', {'conversation_id': 'c1', 'content': '   '})
    assert fake_api.called('send_message') == []


def test_typing_goes_to_the_other_participant(app, login, fake_api):
    fake_api.stub('get_conversation', _conversation())
    login('teacher')
    teacher = socketio.test_client(app, flask_test_client=app.test_client())
    teacher.emit('join_conversation', {'conversation_id': 'c1'})
    login('student')
    student = socketio.test_client(app, flask_test_client=app.test_client())
    student.emit('join_conversation', {'conversation_id': 'c1'})
    teacher.get_received()
    student.get_received()

    student.emit('typing', {'conversation_id': 'c1', 'is_typing': True})
    assert _events(teacher, 'user_typing') == [{'user_id': 'stu-1', 'username': 'Sam Student', 'is_typing': True}]
    assert _events(student, 'user_typing') == []


def test_mark_read(socket_client, login, fake_api):
    login('student')
    fake_api.stub('get_conversation', _conversation())
    fake_api.stub('mark_conversation_read', {})
    sc = socket_client()
    sc.get_received()
    sc.emit('mark_read', {'conversation_id': 'c1'})
    assert fake_api.called('mark_conversation_read') == [(('c1',), {})]
    assert _events(sc, 'conversation_read') == [{'conversation_id': 'c1', 'user_id': 'stu-1'}]


def test_outsider_cannot_type_or_mark_read(app, login, fake_api):
    fake_api.stub('get_conversation', _conversation())
    fake_api.stub('mark_conversation_read', {})
    login('teacher')
    member = socketio.test_client(app, flask_test_client=app.test_client())
    member.emit('join_conversation', {'conversation_id': 'c1'})
    login('student', uid='outsider', displayName='Eve')
    outsider = socketio.test_client(app, flask_test_client=app.test_client())
    member.get_received()
    outsider.get_received()

    outsider.emit('typing', {'conversation_id': 'c1', 'is_typing': True})
    outsider.emit('mark_read', {'conversation_id': 'c1'})

    assert member.get_received() == []
    assert _events(outsider, 'error') == [{'message': 'Access denied to this conversation'}] * 2
    assert fake_api.called('mark_conversation_read') == []


def test_browser_listens_only_for_events_the_server_emits():
    app_dir = Path(__file__).resolve().parent.parent / 'app'
    script = (app_dir / 'static' / 'js' / 'realtime.js').read_text()
    server = '\n'.join(p.read_text() for p in [app_dir / 'events.py', *sorted((app_dir / 'routes').glob('*.py'))])
    listened = set(re.findall(r"socket\.on\('([a-z_]+)'", script)) - {'connect', 'disconnect'}
    assert listened
    for name in listened:
        assert f"'{name}'" in server, name
