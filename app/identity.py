"""
Bridge to Firebase Authentication.

Users sign in with a handle, but the credential backend is email based, so
every handle is mapped to a synthetic login identifier
(``handle + LOGIN_DOMAIN_SUFFIX``).  The mapping lives only here; nothing
else in the app treats the suffix as meaningful.
"""

import logging
from datetime import timedelta

import requests as http_requests
from firebase_admin import auth as firebase_auth
from firebase_admin.exceptions import FirebaseError
from flask import current_app
from google.api_core.exceptions import GoogleAPIError

from app import firestore_dao as dao
from app.errors import AuthError, BackendError
from app.firebase_init import get_auth
from app.firestore_models import Account, ROLES
from app.validators import require_text, validate_handle

logger = logging.getLogger(__name__)

FIREBASE_SIGN_IN_URL = (
    'https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword'
)

MSG_INVALID_API_KEY = 'فشل التحقق من مفتاح API. تأكد من تفعيل Identity Toolkit API في مشروعك.'
MSG_INVALID_CREDENTIAL = 'بيانات الدخول غير صحيحة، تأكد من اليوزر نيم والباسورد.'
MSG_HANDLE_TAKEN = 'اسم المستخدم هذا مسجل مسبقاً، جرب الدخول.'
MSG_UNEXPECTED = 'حدث خطأ غير متوقع، يرجى المحاولة ثانية'

_CREDENTIAL_CODES = {
    'INVALID_LOGIN_CREDENTIALS', 'INVALID_PASSWORD', 'EMAIL_NOT_FOUND',
    'USER_DISABLED', 'INVALID_EMAIL',
}

MIN_PASSWORD_LENGTH = 6


def _suffix():
    return current_app.config.get('LOGIN_DOMAIN_SUFFIX', '@manasa.com')


def login_id_for(handle, suffix=None):
    """Synthetic login identifier for a handle."""
    return handle.strip().lower() + (suffix if suffix is not None else _suffix())


def handle_from_login_id(login_id, suffix=None):
    suffix = suffix if suffix is not None else _suffix()
    if login_id and login_id.endswith(suffix):
        return login_id[:-len(suffix)]
    return None


def map_sign_in_error(code):
    """User-facing message for a Firebase Auth REST error code."""
    code = (code or '').upper()
    if code.startswith('API KEY NOT VALID') or code == 'API_KEY_INVALID':
        return MSG_INVALID_API_KEY
    if code.split(' ')[0] in _CREDENTIAL_CODES:
        return MSG_INVALID_CREDENTIAL
    if code == 'EMAIL_EXISTS':
        return MSG_HANDLE_TAKEN
    return MSG_UNEXPECTED


def _firebase_sign_in(login_id, password):
    """Verify login id/password via the Firebase Auth REST API.

    Returns ``(id_token, uid)`` on success, raises AuthError otherwise.
    """
    api_key = current_app.config.get('FIREBASE_WEB_API_KEY')
    if not api_key:
        raise AuthError(MSG_INVALID_API_KEY, status_code=503)

    try:
        resp = http_requests.post(
            f'{FIREBASE_SIGN_IN_URL}?key={api_key}',
            json={
                'email': login_id,
                'password': password,
                'returnSecureToken': True,
            },
            timeout=10,
        )
    except http_requests.RequestException:
        logger.exception('Auth REST call failed')
        raise BackendError()

    if resp.status_code == 200:
        body = resp.json()
        return body.get('idToken'), body.get('localId')

    try:
        code = resp.json().get('error', {}).get('message', '')
    except ValueError:
        code = ''
    message = map_sign_in_error(code)
    if message == MSG_UNEXPECTED:
        logger.error('Sign-in rejected with unmapped code %r (HTTP %s)', code, resp.status_code)
    raise AuthError(message)


def sign_in(handle, password):
    """Check credentials; returns ``(id_token, uid)``."""
    handle = validate_handle(handle)
    if not password:
        raise AuthError('يرجى كتابة اسم المستخدم وكلمة المرور', status_code=400)
    return _firebase_sign_in(login_id_for(handle), password)


def create_session_cookie(id_token):
    auth = get_auth()
    days = current_app.config.get('SESSION_COOKIE_DAYS', 5)
    try:
        return auth.create_session_cookie(id_token, expires_in=timedelta(days=days))
    except (firebase_auth.InvalidIdTokenError, ValueError):
        raise AuthError()
    except FirebaseError:
        logger.exception('Session cookie creation failed')
        raise BackendError()


def verify_session_cookie(session_cookie):
    """UID behind a session cookie, or None when it is missing or invalid."""
    if not session_cookie:
        return None
    auth = get_auth()
    try:
        decoded = auth.verify_session_cookie(session_cookie, check_revoked=True)
    except (firebase_auth.InvalidSessionCookieError, firebase_auth.RevokedSessionCookieError,
            firebase_auth.ExpiredSessionCookieError, firebase_auth.UserDisabledError, ValueError):
        return None
    return decoded['uid']


def sign_up(name, handle, password, role):
    """Provision identity and account record; returns (Account, id_token)."""
    name = require_text(name, 'يرجى كتابة الاسم الكامل')
    handle = validate_handle(handle, check_length=True)
    if role not in ROLES:
        raise AuthError('يرجى اختيار نوع الحساب', status_code=400)
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise AuthError(f'كلمة المرور يجب ألا تقل عن {MIN_PASSWORD_LENGTH} أحرف', status_code=400)

    auth = get_auth()
    login_id = login_id_for(handle)
    try:
        firebase_user = auth.create_user(email=login_id, password=password, display_name=name)
    except firebase_auth.EmailAlreadyExistsError:
        raise AuthError(MSG_HANDLE_TAKEN, status_code=409)
    except FirebaseError:
        logger.exception('Identity creation for %s failed', handle)
        raise BackendError()

    account = Account(
        uid=firebase_user.uid,
        name=name,
        username=handle,
        role=role,
        onboarded=True,
    )
    try:
        dao.create_account(firebase_user.uid, account)
    except GoogleAPIError:
        logger.exception('Account record for %s failed, removing identity', handle)
        auth.delete_user(firebase_user.uid)
        raise BackendError()

    logger.info('Account %s created with role %s', handle, role)
    id_token, _ = _firebase_sign_in(login_id, password)
    return account, id_token
