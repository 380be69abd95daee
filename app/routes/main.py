from flask import Blueprint, jsonify, request

from app import firestore_dao as dao
from app import projections
from app.decorators import auth_required, get_client_session

bp = Blueprint('main', __name__)


def snapshot_payload(client_session):
    """What the signed-in account sees right now: its groups, plus results for students."""
    account = client_session.account
    payload = {
        'groups': [g.to_public_dict() for g in client_session.groups],
    }
    if account.is_student():
        payload['results'] = projections.my_results(account.username, client_session.groups)
    return payload


@bp.route('/health')
def health():
    return jsonify({'status': 'ok'}), 200


@bp.route('/')
def index():
    if request.args.get('health') == '1':
        return 'OK', 200
    return jsonify({'name': 'منصة الأستاذ', 'state': get_client_session().describe()})


@bp.route('/api/state')
@auth_required
def state():
    client_session = get_client_session()
    client_session.apply_snapshot(dao.get_groups_for_account(client_session.account))
    return jsonify({
        'success': True,
        'state': client_session.describe(),
        **snapshot_payload(client_session),
    })


@bp.route('/api/nav', methods=['POST'])
@auth_required
def navigate():
    data = request.get_json(silent=True) or {}
    client_session = get_client_session()
    client_session.navigate(data.get('view'), data.get('groupId'), data.get('examId'))
    return jsonify({'success': True, 'state': client_session.describe()})
