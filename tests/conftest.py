"""
Test fixtures for the tutoring platform.

Firestore is replaced by an in-memory store patched over the
``app.firestore_dao`` functions, so mutations, projections and routes run
against real Group/Account models without any network access.  Firebase
Auth is never initialized (``TestConfig.FIREBASE_ENABLED`` is off).
"""

from __future__ import annotations

import copy
import itertools

import pytest

from app.errors import GroupConflictError, GroupNotFoundError
from app.firestore_models import Account, Group, ROLE_STUDENT, ROLE_TEACHER


class FakeWatch:
    def __init__(self, store, account, callback):
        self.store = store
        self.account = account
        self.callback = callback
        self.active = True

    def unsubscribe(self):
        self.active = False
        self.store.watches.remove(self)


class InMemoryStore:
    """Dict-backed stand-in for the two Firestore collections."""

    def __init__(self):
        self.users = {}
        self.groups = {}
        self.watches = []
        self._ids = itertools.count(1)
        # Called inside transact_group after the read, before the revision check
        self.before_commit = None

    # -- users --

    def get_account(self, uid):
        data = self.users.get(uid)
        return Account.from_dict(copy.deepcopy(data), uid) if data is not None else None

    def find_student_account(self, username):
        for uid, data in self.users.items():
            if data.get('username') == username and data.get('role') == ROLE_STUDENT:
                return Account.from_dict(copy.deepcopy(data), uid)
        return None

    def create_account(self, uid, account):
        self.users[uid] = account.to_dict()

    def update_account(self, uid, data):
        self.users[uid].update(data)

    # -- groups --

    def get_group(self, group_id):
        data = self.groups.get(group_id)
        return Group.from_dict(copy.deepcopy(data), group_id) if data is not None else None

    def create_group(self, group):
        group_id = f'g{next(self._ids)}'
        self.groups[group_id] = group.to_dict()
        self._notify()
        return group_id

    def delete_group(self, group_id):
        self.groups.pop(group_id, None)
        self._notify()

    def get_groups_by_teacher(self, teacher_uid):
        return [self.get_group(gid) for gid, d in self.groups.items() if d['teacherUid'] == teacher_uid]

    def get_groups_for_student(self, username):
        return [self.get_group(gid) for gid, d in self.groups.items()
                if username in d.get('studentUsernames', [])]

    def get_groups_for_account(self, account):
        if account.role == ROLE_TEACHER:
            return self.get_groups_by_teacher(account.uid)
        return self.get_groups_for_student(account.username)

    def watch_groups_for_account(self, account, callback):
        watch = FakeWatch(self, account, callback)
        self.watches.append(watch)
        callback(self.get_groups_for_account(account))
        return watch

    def transact_group(self, group_id, change, expected_revision=None):
        group = self.get_group(group_id)
        if group is None:
            raise GroupNotFoundError()
        if self.before_commit is not None:
            hook, self.before_commit = self.before_commit, None
            hook()
            group = self.get_group(group_id)
        if expected_revision is not None and group.revision != expected_revision:
            raise GroupConflictError(group_id, expected_revision, group.revision)
        change(group)
        group.revision += 1
        self.groups[group_id] = group.to_dict()
        self._notify()
        return group

    def _notify(self):
        for watch in list(self.watches):
            watch.callback(self.get_groups_for_account(watch.account))

    # -- helpers for tests --

    def add_user(self, uid, username, role, name=None):
        account = Account(uid=uid, name=name or username, username=username, role=role, onboarded=True)
        self.create_account(uid, account)
        return account


DAO_FUNCTIONS = (
    'get_account', 'find_student_account',
    'create_account', 'update_account', 'get_group', 'create_group',
    'delete_group', 'get_groups_by_teacher', 'get_groups_for_student',
    'get_groups_for_account', 'watch_groups_for_account', 'transact_group',
)


@pytest.fixture
def store(monkeypatch):
    from app import firestore_dao

    fake = InMemoryStore()
    for name in DAO_FUNCTIONS:
        monkeypatch.setattr(firestore_dao, name, getattr(fake, name))
    return fake


@pytest.fixture
def teacher(store):
    return store.add_user('t1', 'ustadh', ROLE_TEACHER, 'أ. محمد')


@pytest.fixture
def students(store):
    return [
        store.add_user('s1', 'ahmed', ROLE_STUDENT, 'أحمد'),
        store.add_user('s2', 'mariam', ROLE_STUDENT, 'مريم'),
    ]


@pytest.fixture
def app(store, tmp_path):
    from app import create_app
    from config import TestConfig

    class _Config(TestConfig):
        PLANNER_STORAGE_DIR = str(tmp_path / 'planner')

    return create_app(_Config)


@pytest.fixture
def client(app):
    return app.test_client()


def _login_as(app, monkeypatch, account):
    """Test client whose session cookie verifies as ``account``."""
    from app import decorators
    from app.decorators import CLIENT_STATE_KEY, SESSION_COOKIE_KEY

    monkeypatch.setattr(decorators, 'verify_session_cookie',
                        lambda cookie: cookie[len('cookie-'):] if cookie else None)
    client = app.test_client()
    with client.session_transaction() as sess:
        sess[SESSION_COOKIE_KEY] = f'cookie-{account.uid}'
        sess[CLIENT_STATE_KEY] = {'state': 'authenticated'}
    return client


@pytest.fixture
def teacher_client(app, monkeypatch, teacher):
    return _login_as(app, monkeypatch, teacher)


@pytest.fixture
def student_client(app, monkeypatch, students):
    return _login_as(app, monkeypatch, students[0])


@pytest.fixture
def login_as(app, monkeypatch):
    return lambda account: _login_as(app, monkeypatch, account)
