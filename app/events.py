import logging
import threading

from flask import current_app, request
from flask_socketio import emit

from app import socketio
from app import firestore_dao as dao
from app import projections
from app.decorators import get_client_session
from app.errors import PlatformError
from app.session_state import ClientSession

logger = logging.getLogger(__name__)

# Socket.IO sid -> {'session': ClientSession, 'lock': Lock, 'watch': watch handle or None}
# The per-connection lock guards the session against the Firestore watch thread
connections = {}
_connections_lock = threading.Lock()


def _snapshot_event(client_session):
    account = client_session.account
    payload = {
        'groups': [g.to_public_dict() for g in client_session.groups],
        'state': client_session.describe(),
    }
    if account.is_student():
        payload['results'] = projections.my_results(account.username, client_session.groups)
    return payload


def _reminder_worker():
    return current_app.extensions.get('reminder_worker')


def _stop_watch(sid):
    with _connections_lock:
        entry = connections.get(sid)
        watch = entry.pop('watch', None) if entry else None
    if watch is not None:
        watch.unsubscribe()
        logger.info('Group feed for %s stopped', sid)


def _connection(sid):
    with _connections_lock:
        return connections.get(sid)


@socketio.on('connect')
def handle_connect():
    http_session = get_client_session()
    client_session = ClientSession.from_dict(http_session.to_dict(), http_session.account)
    with _connections_lock:
        connections[request.sid] = {
            'session': client_session, 'lock': threading.Lock(), 'watch': None,
        }
    emit('connected', {'state': client_session.describe()})


@socketio.on('disconnect')
def handle_disconnect(*args):
    sid = request.sid
    _stop_watch(sid)
    with _connections_lock:
        connections.pop(sid, None)
    worker = _reminder_worker()
    if worker is not None:
        worker.unregister(sid)


@socketio.on('subscribe_groups')
def handle_subscribe_groups(data=None):
    sid = request.sid
    entry = _connection(sid)
    if entry is None or not entry['session'].is_authenticated:
        emit('error', {'message': 'يرجى تسجيل الدخول أولاً'})
        return
    client_session, session_lock = entry['session'], entry['lock']

    _stop_watch(sid)

    def on_groups(groups):
        # Every snapshot replaces the previous copy wholesale
        with session_lock:
            client_session.apply_snapshot(groups)
            payload = _snapshot_event(client_session)
        socketio.emit('groups_snapshot', payload, to=sid)

    watch = dao.watch_groups_for_account(client_session.account, on_groups)
    with _connections_lock:
        if sid in connections:
            connections[sid]['watch'] = watch
        else:
            watch.unsubscribe()
            return
    logger.info('Group feed for %s started (%s)', sid, client_session.role)


@socketio.on('unsubscribe_groups')
def handle_unsubscribe_groups(data=None):
    _stop_watch(request.sid)


@socketio.on('navigate')
def handle_navigate(data):
    entry = _connection(request.sid)
    if entry is None:
        return
    data = data or {}
    client_session = entry['session']
    with entry['lock']:
        try:
            client_session.navigate(data.get('view'), data.get('groupId'), data.get('examId'))
        except PlatformError as e:
            emit('error', {'message': e.message})
            return
        state = client_session.describe()
    emit('state', state)


@socketio.on('schedule_notifications')
def handle_schedule_notifications(data):
    worker = _reminder_worker()
    if worker is None:
        return
    if not worker.handle_message(request.sid, data):
        emit('error', {'message': 'رسالة تنبيه غير صالحة'})
