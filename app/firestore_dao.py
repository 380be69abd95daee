"""
Firestore Data Access Object (DAO) layer.

The only module that talks to the record store.  Everything above it
(mutations, projections, routes, socket events) works with the dataclass
models from ``app.firestore_models``.

Collections:
  users   keyed by Firebase Auth UID, documents = Account
  groups  keyed by generated ID, documents = Group (roster, schedule and
          exams embedded)

Group writes go through ``transact_group`` so that each change is applied
to the current server copy, the ``studentUsernames`` index is recomputed
from the roster and the ``revision`` counter is bumped atomically.
"""

from datetime import datetime, timezone

from firebase_admin import firestore
from google.cloud.firestore_v1 import FieldFilter

from app.errors import GroupConflictError, GroupNotFoundError
from app.firebase_init import get_db
from app.firestore_models import Account, Group, ROLE_STUDENT


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _doc_to_dict(doc_snapshot):
    """Convert a Firestore DocumentSnapshot to a dict with 'id' field."""
    if not doc_snapshot.exists:
        return None
    d = doc_snapshot.to_dict()
    d['id'] = doc_snapshot.id
    return d


def _snapshot_to_group(doc_snapshot):
    if not doc_snapshot.exists:
        return None
    return Group.from_dict(doc_snapshot.to_dict(), doc_snapshot.id)


def _now():
    return datetime.now(timezone.utc)


# ========================================================================
# Accounts  (collection: users)
# ========================================================================

def get_account(uid):
    """Get an account by UID. Returns Account or None."""
    doc = get_db().collection('users').document(uid).get()
    data = _doc_to_dict(doc)
    if data is None:
        return None
    return Account.from_dict(data, uid)


def find_student_account(username):
    """Existence check run before a handle is attached to a roster."""
    docs = (
        get_db().collection('users')
        .where(filter=FieldFilter('username', '==', username))
        .where(filter=FieldFilter('role', '==', ROLE_STUDENT))
        .limit(1)
        .stream()
    )
    for doc in docs:
        return Account.from_dict(doc.to_dict(), doc.id)
    return None


def create_account(uid, account):
    """Create the account document with the Auth UID as document ID."""
    get_db().collection('users').document(uid).set(account.to_dict())


def update_account(uid, data):
    """Update fields on an existing account document."""
    data.setdefault('updatedAt', _now())
    get_db().collection('users').document(uid).update(data)


# ========================================================================
# Groups  (collection: groups)
# ========================================================================

def get_group(group_id):
    """Get a group by ID. Returns Group or None."""
    doc = get_db().collection('groups').document(group_id).get()
    return _snapshot_to_group(doc)


def create_group(group):
    """Create a new group. Returns the generated doc ID."""
    _, doc_ref = get_db().collection('groups').add(group.to_dict())
    return doc_ref.id


def delete_group(group_id):
    get_db().collection('groups').document(group_id).delete()


def _teacher_groups_query(teacher_uid):
    return (
        get_db().collection('groups')
        .where(filter=FieldFilter('teacherUid', '==', teacher_uid))
    )


def _student_groups_query(username):
    return (
        get_db().collection('groups')
        .where(filter=FieldFilter('studentUsernames', 'array_contains', username.lower()))
    )


def _groups_query_for(account):
    if account.is_teacher():
        return _teacher_groups_query(account.uid)
    return _student_groups_query(account.username)


def get_groups_by_teacher(teacher_uid):
    return [_snapshot_to_group(doc) for doc in _teacher_groups_query(teacher_uid).stream()]


def get_groups_for_student(username):
    return [_snapshot_to_group(doc) for doc in _student_groups_query(username).stream()]


def get_groups_for_account(account):
    """The group set visible to an account: owned for teachers, enrolled for students."""
    return [_snapshot_to_group(doc) for doc in _groups_query_for(account).stream()]


def watch_groups_for_account(account, callback):
    """Push subscription over the account's visible groups.

    ``callback(groups)`` receives the complete list on every change; each
    call replaces the previous one.  Returns the watch handle, whose
    ``unsubscribe()`` stops the feed.
    """
    def _on_snapshot(docs, changes, read_time):
        callback([_snapshot_to_group(doc) for doc in docs])

    return _groups_query_for(account).on_snapshot(_on_snapshot)


def transact_group(group_id, change, expected_revision=None):
    """Apply ``change(group)`` to the current copy of a group in a transaction.

    ``change`` mutates the Group model in place and may be called more than
    once if Firestore retries the transaction, so it must not have side
    effects outside the group.  When ``expected_revision`` is given and the
    stored revision differs, GroupConflictError is raised and nothing is
    written.  Returns the written Group.
    """
    db = get_db()
    ref = db.collection('groups').document(group_id)
    transaction = db.transaction()

    @firestore.transactional
    def _apply(transaction):
        snapshot = ref.get(transaction=transaction)
        group = _snapshot_to_group(snapshot)
        if group is None:
            raise GroupNotFoundError()
        if expected_revision is not None and group.revision != expected_revision:
            raise GroupConflictError(group_id, expected_revision, group.revision)
        change(group)
        group.revision += 1
        group.updated_at = _now()
        fields = group.to_dict()
        fields.pop('createdAt', None)
        transaction.update(ref, fields)
        return group

    return _apply(transaction)
