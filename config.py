import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name, default):
    return os.environ.get(name, str(default)).lower() in ('true', '1', 'yes')


class Config:
    SECRET_KEY = os.environ.get('SESSION_SECRET') or os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'
    WTF_CSRF_ENABLED = True
    WTF_CSRF_TIME_LIMIT = None

    # Remote LMS API
    LMS_API_BASE_URL = os.environ.get('LMS_API_BASE_URL', 'http://localhost:4000/api')
    LMS_API_VERSION = os.environ.get('LMS_API_VERSION', 'v1')
    LMS_API_TIMEOUT = float(os.environ.get('LMS_API_TIMEOUT', 30))
    LMS_API_KEY = os.environ.get('LMS_API_KEY', '')
    LMS_API_MAX_RETRIES = int(os.environ.get('LMS_API_MAX_RETRIES', 3))
    LMS_API_RETRY_WAIT = float(os.environ.get('LMS_API_RETRY_WAIT', 0.5))
    APP_VERSION = os.environ.get('APP_VERSION', '1.0.0')

    # Firebase (auth + storage)
    FIREBASE_ENABLED = _env_bool('FIREBASE_ENABLED', True)
    FIREBASE_WEB_API_KEY = os.environ.get('FIREBASE_WEB_API_KEY', '')
    FIREBASE_STORAGE_BUCKET = os.environ.get('FIREBASE_STORAGE_BUCKET', '')

    CORS_ALLOWED_ORIGINS = os.environ.get('CORS_ALLOWED_ORIGINS', '')
    SOCKETIO_ASYNC_MODE = os.environ.get('SOCKETIO_ASYNC_MODE', 'eventlet')

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_DIR = os.environ.get('LOG_DIR', 'logs')

    NOTIFICATIONS_PAGE_SIZE = 20
    ANNOUNCEMENTS_PAGE_SIZE = 10
    ASSIGNMENTS_PAGE_SIZE = 20
    RECOMMENDATIONS_MAX_ITEMS = 6
    MAX_UPLOAD_MB = 25


class TestingConfig(Config):
    TESTING = True
    WTF_CSRF_ENABLED = False
    FIREBASE_ENABLED = False
    SOCKETIO_ASYNC_MODE = 'threading'
    LMS_API_BASE_URL = 'http://lms-api.test/api'
    LMS_API_KEY = 'test-key'
    LMS_API_MAX_RETRIES = 2
    LMS_API_RETRY_WAIT = 0
    LOG_DIR = os.environ.get('TEST_LOG_DIR', os.path.join('logs', 'test'))
