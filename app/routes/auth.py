import logging

from flask import Blueprint, jsonify, request, session
from flask_wtf.csrf import generate_csrf

from app import firestore_dao as dao
from app import identity
from app.decorators import SESSION_COOKIE_KEY, auth_required, get_client_session
from app.errors import AuthError, InvalidTransitionError
from app.forms import LoginForm, ProfileForm, SignUpForm, validate_or_raise
from app.services.storage import avatar_extension, delete_avatar, upload_avatar
from app.session_state import CREDENTIAL_ENTRY, MODE_SIGNUP

logger = logging.getLogger(__name__)

bp = Blueprint('auth', __name__, url_prefix='/auth')


def _state_response(message=None, status=200):
    payload = {'success': True, 'state': get_client_session().describe()}
    if message:
        payload['message'] = message
    return jsonify(payload), status


def _json():
    return request.get_json(silent=True) or {}


@bp.route('/state')
def state():
    return _state_response()


@bp.route('/csrf')
def csrf_token():
    return jsonify({'csrf_token': generate_csrf()})


@bp.route('/start', methods=['POST'])
def start():
    get_client_session().start()
    return _state_response()


@bp.route('/role', methods=['POST'])
def select_role():
    get_client_session().select_role(_json().get('role'))
    return _state_response()


@bp.route('/mode', methods=['POST'])
def switch_mode():
    get_client_session().switch_mode(_json().get('mode'))
    return _state_response()


@bp.route('/back', methods=['POST'])
def back():
    get_client_session().back()
    return _state_response()


@bp.route('/signup', methods=['POST'])
def signup():
    client_session = get_client_session()
    if client_session.is_authenticated:
        raise InvalidTransitionError()

    form = validate_or_raise(SignUpForm())
    role = form.role.data or client_session.pending_role
    if client_session.state != CREDENTIAL_ENTRY or client_session.pending_role != role:
        client_session.select_role(role)
    client_session.switch_mode(MODE_SIGNUP)

    account, id_token = identity.sign_up(
        form.name.data, form.username.data, form.password.data, role,
    )
    session[SESSION_COOKIE_KEY] = identity.create_session_cookie(id_token)
    client_session.authenticate(account)
    return _state_response('تم إنشاء حسابك بنجاح!', 201)


@bp.route('/login', methods=['POST'])
def login():
    client_session = get_client_session()
    if client_session.is_authenticated:
        raise InvalidTransitionError()

    form = validate_or_raise(LoginForm())
    id_token, uid = identity.sign_in(form.username.data, form.password.data)

    account = dao.get_account(uid)
    if account is None:
        logger.warning('Identity %s signed in without an account record', uid)
        session.pop(SESSION_COOKIE_KEY, None)
        client_session.force_role_selection()
        raise AuthError('لم يتم العثور على بيانات الحساب، يرجى التسجيل من جديد', status_code=404)

    session[SESSION_COOKIE_KEY] = identity.create_session_cookie(id_token)
    client_session.authenticate(account)
    return _state_response('تم تسجيل الدخول بنجاح')


@bp.route('/logout', methods=['POST'])
def logout():
    session.pop(SESSION_COOKIE_KEY, None)
    get_client_session().sign_out()
    return _state_response('تم تسجيل الخروج')


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

@bp.route('/settings/profile', methods=['POST'])
@auth_required
def update_profile():
    account = get_client_session().account
    form = validate_or_raise(ProfileForm())
    dao.update_account(account.uid, {'name': form.name.data})
    account.name = form.name.data
    return _state_response('تم حفظ الملف الشخصي')


@bp.route('/settings/theme', methods=['POST'])
@auth_required
def toggle_theme():
    account = get_client_session().account
    dark_mode = not account.dark_mode
    dao.update_account(account.uid, {'darkMode': dark_mode})
    account.dark_mode = dark_mode
    return _state_response()


@bp.route('/settings/avatar', methods=['POST'])
@auth_required
def upload_profile_image():
    account = get_client_session().account
    file = request.files.get('profile_image')
    if file is None or not file.filename:
        return jsonify({'success': False, 'error': 'يرجى اختيار صورة'}), 400

    ext = avatar_extension(file.filename)
    path, url = upload_avatar(account.uid, file.read(), ext)
    if account.profile_image_path and account.profile_image_path != path:
        delete_avatar(account.profile_image_path)

    dao.update_account(account.uid, {'profileImage': url, 'profileImagePath': path})
    account.profile_image = url
    account.profile_image_path = path
    return _state_response('تم تحديث الصورة الشخصية')
