from io import BytesIO

import pytest
from werkzeug.datastructures import FileStorage

from app.services import storage


class FakeBlob:
    def __init__(self, path):
        self.path = path
        self.content_type = None
        self.uploaded = None

    def upload_from_file(self, stream, content_type=None):
        self.uploaded = stream.read()
        self.content_type = content_type

    def upload_from_string(self, data, content_type=None):
        self.uploaded = data
        self.content_type = content_type


class FakeBucket:
    def __init__(self):
        self.blobs = {}

    def blob(self, path):
        return self.blobs.setdefault(path, FakeBlob(path))


@pytest.fixture
def bucket(monkeypatch):
    fake = FakeBucket()
    monkeypatch.setattr(storage, 'get_bucket', lambda: fake)
    return fake


def _file(name, data=b'content', mimetype='application/pdf'):
    return FileStorage(stream=BytesIO(data), filename=name, content_type=mimetype)


def test_is_allowed():
    assert storage.is_allowed('Report.PDF')
    assert not storage.is_allowed('run.exe')
    assert not storage.is_allowed('README')
    assert not storage.is_allowed('notes.pdf', storage.ALLOWED_IMAGE_EXTENSIONS)


def test_upload_avatar_uses_fixed_path(bucket):
    path = storage.upload_avatar('stu-1', _file('me.JPG', mimetype='image/jpeg'))
    assert path == 'users/stu-1/avatar.jpg'
    assert bucket.blobs[path].content_type == 'image/jpeg'


def test_submission_paths_are_unique_and_sanitised(bucket):
    first = storage.upload_submission_file('a1', 'stu-1', _file('../my report.pdf'))
    second = storage.upload_submission_file('a1', 'stu-1', _file('../my report.pdf'))
    assert first != second
    assert first.startswith('assignments/a1/submissions/stu-1/')
    assert first.endswith('_my_report.pdf')
    assert bucket.blobs[first].uploaded == b'content'


def test_upload_many_skips_empty_inputs(bucket):
    empty = FileStorage(stream=BytesIO(b''), filename='')
    paths = storage.upload_many([_file('a.pdf'), empty, None], storage.upload_message_attachment, 'c1')
    assert len(paths) == 1
    assert paths[0].startswith('conversations/c1/')


def test_upload_many_rejects_before_uploading(bucket):
    with pytest.raises(ValueError, match='evil.exe has an unsupported file type.'):
        storage.upload_many([_file('ok.pdf'), _file('evil.exe')], storage.upload_message_attachment, 'c1')
    assert bucket.blobs == {}
