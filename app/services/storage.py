import os
import uuid

from werkzeug.utils import secure_filename

from app.firebase_init import get_bucket

ALLOWED_IMAGE_EXTENSIONS = {'png', 'jpg', 'jpeg', 'gif', 'webp'}
ALLOWED_DOCUMENT_EXTENSIONS = {
    'pdf', 'doc', 'docx', 'ppt', 'pptx', 'xls', 'xlsx', 'txt', 'md', 'zip',
    'png', 'jpg', 'jpeg', 'gif', 'webp', 'py', 'ipynb',
}


def file_extension(filename):
    return filename.rsplit('.', 1)[-1].lower() if filename and '.' in filename else ''


def is_allowed(filename, allowed=ALLOWED_DOCUMENT_EXTENSIONS):
    return file_extension(filename) in allowed


def _unique_name(filename):
    """Prefix a sanitised filename with a short random id."""
    safe = secure_filename(filename or '') or 'file'
    return f'{uuid.uuid4().hex[:8]}_{safe}'


def upload_file(file_data, destination_path, content_type=None):
    """Upload file bytes to Firebase Storage.

    Args:
        file_data: bytes or file-like object
        destination_path: path in the bucket (e.g. 'users/uid/avatar.png')
        content_type: MIME type

    Returns:
        The storage path (same as destination_path)
    """
    bucket = get_bucket()
    blob = bucket.blob(destination_path)
    if content_type:
        blob.content_type = content_type
    if isinstance(file_data, bytes):
        blob.upload_from_string(file_data, content_type=content_type)
    else:
        blob.upload_from_file(file_data, content_type=content_type)
    return destination_path


def upload_avatar(uid, file_storage):
    ext = file_extension(file_storage.filename)
    path = f'users/{uid}/avatar.{ext}'
    content_type = 'image/jpeg' if ext == 'jpg' else f'image/{ext}'
    return upload_file(file_storage.stream, path, content_type)


def upload_announcement_attachment(teacher_id, file_storage):
    path = f'announcements/{teacher_id}/{_unique_name(file_storage.filename)}'
    return upload_file(file_storage.stream, path, file_storage.mimetype)


def upload_message_attachment(conversation_id, file_storage):
    path = f'conversations/{conversation_id}/{_unique_name(file_storage.filename)}'
    return upload_file(file_storage.stream, path, file_storage.mimetype)


def upload_submission_file(assignment_id, user_id, file_storage):
    path = f'assignments/{assignment_id}/submissions/{user_id}/{_unique_name(file_storage.filename)}'
    return upload_file(file_storage.stream, path, file_storage.mimetype)


def upload_many(files, uploader, *args):
    """Upload every non-empty FileStorage in ``files``; returns storage paths.

    Raises ValueError naming the first file with a disallowed extension.
    """
    files = [f for f in files or [] if f and f.filename]
    for f in files:
        if not is_allowed(f.filename):
            raise ValueError(f'{os.path.basename(f.filename)} has an unsupported file type.')
    return [uploader(*args, f) for f in files]
