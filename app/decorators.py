from functools import wraps
from flask import g, jsonify, session

from app import firestore_dao as dao
from app.errors import PermissionDeniedError
from app.identity import verify_session_cookie
from app.session_state import ClientSession

SESSION_COOKIE_KEY = 'firebase_session'
CLIENT_STATE_KEY = 'client_state'


def _verify_session():
    """Resolve the Firebase session cookie to an Account.

    Returns ``(uid, account)``; either may be None.  A verified uid without
    an account record means the profile was never provisioned or was
    removed.
    """
    uid = verify_session_cookie(session.get(SESSION_COOKIE_KEY))
    if not uid:
        return None, None
    return uid, dao.get_account(uid)


def load_client_session():
    """Build the request's ClientSession into g before each request."""
    if hasattr(g, 'client_session'):
        return g.client_session
    uid, account = _verify_session()
    client_session = ClientSession.from_dict(session.get(CLIENT_STATE_KEY), account)
    if uid and account is None:
        session.pop(SESSION_COOKIE_KEY, None)
        client_session.force_role_selection()
    g.client_session = client_session
    return client_session


def save_client_session(response):
    client_session = getattr(g, 'client_session', None)
    if client_session is not None:
        session[CLIENT_STATE_KEY] = client_session.to_dict()
    return response


def get_client_session():
    if not hasattr(g, 'client_session'):
        load_client_session()
    return g.client_session


def get_current_account():
    return get_client_session().account


def _unauthenticated():
    return jsonify({'success': False, 'error': 'يرجى تسجيل الدخول أولاً',
                    'state': get_client_session().state}), 401


def auth_required(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        if not get_client_session().is_authenticated:
            return _unauthenticated()
        return f(*args, **kwargs)
    return decorated


def role_required(*roles):
    def decorator(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            client_session = get_client_session()
            if not client_session.is_authenticated:
                return _unauthenticated()
            if client_session.role not in roles:
                err = PermissionDeniedError()
                return jsonify(err.to_dict()), err.status_code
            return f(*args, **kwargs)
        return decorated
    return decorator
