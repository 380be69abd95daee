import logging
import os

import firebase_admin
from firebase_admin import credentials, firestore, storage, auth

logger = logging.getLogger(__name__)

_app = None
_db = None
_bucket = None


def _config_value(app_config, key, default=''):
    value = app_config.get(key, '') if app_config else ''
    return value or os.environ.get(key, default)


def init_firebase(app_config=None):
    """Initialize the Admin SDK once per process.

    Credentials come from the service-account file when present, otherwise
    from Application Default Credentials (Cloud Run, the emulator, gcloud).
    """
    global _app, _db, _bucket

    if _app is not None:
        return

    cred_path = _config_value(app_config, 'GOOGLE_APPLICATION_CREDENTIALS',
                              './firebase-service-account.json')
    if os.path.exists(cred_path):
        cred = credentials.Certificate(cred_path)
        logger.info('Firebase credentials loaded from %s', cred_path)
    else:
        cred = credentials.ApplicationDefault()
        logger.info('Firebase using application default credentials')

    options = {}
    bucket_name = _config_value(app_config, 'FIREBASE_STORAGE_BUCKET')
    if bucket_name:
        options['storageBucket'] = bucket_name
    project_id = _config_value(app_config, 'FIREBASE_PROJECT_ID')
    if project_id:
        options['projectId'] = project_id

    _app = firebase_admin.initialize_app(cred, options=options or None)
    _db = firestore.client()

    if bucket_name:
        _bucket = storage.bucket()


def get_db():
    if _db is None:
        init_firebase()
    return _db


def get_bucket():
    if _bucket is None:
        init_firebase()
    return _bucket


def get_auth():
    return auth
