import os
import firebase_admin
from firebase_admin import credentials, storage, auth

from app.logging_setup import get_logger

logger = get_logger(__name__)

DEFAULT_CREDENTIALS_PATH = './firebase-service-account.json'

_app = None
_bucket = None


def _load_credentials():
    """Service-account file when one is on disk, else application default credentials."""
    path = os.environ.get('GOOGLE_APPLICATION_CREDENTIALS', DEFAULT_CREDENTIALS_PATH)
    if os.path.exists(path):
        return credentials.Certificate(path)
    logger.info("firebase credentials file not found path=%s, using application default", path)
    return credentials.ApplicationDefault()


def _storage_bucket_name(app_config):
    name = (app_config or {}).get('FIREBASE_STORAGE_BUCKET', '')
    return name or os.environ.get('FIREBASE_STORAGE_BUCKET', '')


def init_firebase(app_config=None):
    """Initialise the Firebase Admin SDK for session auth and uploads.

    Course data lives behind the LMS API, so only Authentication and
    Storage are wired up here.
    """
    global _app, _bucket

    if _app is not None:
        return

    bucket_name = _storage_bucket_name(app_config)
    options = {'storageBucket': bucket_name} if bucket_name else None
    _app = firebase_admin.initialize_app(_load_credentials(), options=options)
    logger.info("firebase initialised storage_bucket=%s", bucket_name or '-')

    if bucket_name:
        _bucket = storage.bucket()


def get_bucket():
    """The upload bucket. Raises RuntimeError when Storage is not configured."""
    global _bucket
    if _bucket is None:
        init_firebase()
        if _bucket is None:
            raise RuntimeError('FIREBASE_STORAGE_BUCKET is not configured')
    return _bucket


def get_auth():
    return auth
