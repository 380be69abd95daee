import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    SECRET_KEY = os.environ.get('SESSION_SECRET') or os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'
    WTF_CSRF_ENABLED = True
    WTF_CSRF_TIME_LIMIT = None

    FIREBASE_ENABLED = True
    FIREBASE_WEB_API_KEY = os.environ.get('FIREBASE_WEB_API_KEY', '')
    FIREBASE_STORAGE_BUCKET = os.environ.get('FIREBASE_STORAGE_BUCKET', '')
    FIREBASE_PROJECT_ID = os.environ.get('FIREBASE_PROJECT_ID', '')
    GOOGLE_APPLICATION_CREDENTIALS = os.environ.get('GOOGLE_APPLICATION_CREDENTIALS', '')
    SOCKETIO_ASYNC_MODE = os.environ.get('SOCKETIO_ASYNC_MODE', 'eventlet')
    CORS_ALLOWED_ORIGINS = os.environ.get('CORS_ALLOWED_ORIGINS', '')

    # Handles are bridged onto the email/password backend with this suffix
    LOGIN_DOMAIN_SUFFIX = os.environ.get('LOGIN_DOMAIN_SUFFIX', '@manasa.com')
    SESSION_COOKIE_DAYS = int(os.environ.get('SESSION_COOKIE_DAYS', '5'))

    PLANNER_STORAGE_DIR = os.environ.get('PLANNER_STORAGE_DIR', os.path.join('instance', 'planner'))

    SCHEDULER_ENABLED = True
    REMINDER_MINUTES_BEFORE = int(os.environ.get('REMINDER_MINUTES_BEFORE', '30'))
    REMINDER_INTERVAL_SECONDS = int(os.environ.get('REMINDER_INTERVAL_SECONDS', '60'))

    LOG_FORMAT = os.environ.get('LOG_FORMAT', 'text')  # "json" or "text"
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret-key'
    WTF_CSRF_ENABLED = False
    FIREBASE_ENABLED = False
    SCHEDULER_ENABLED = False
    FIREBASE_WEB_API_KEY = 'test-api-key'
    SOCKETIO_ASYNC_MODE = 'threading'
    LOG_LEVEL = 'WARNING'
