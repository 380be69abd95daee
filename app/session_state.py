"""
Explicit session context for one client.

A ClientSession walks the onboarding states

    unauthenticated -> role_selection -> credential_entry(login|signup)
        -> authenticated(teacher|student)

and, once authenticated, tracks which view is active.  It also holds the
latest group snapshot for the account; every snapshot replaces the
previous one wholesale.  HTTP requests rebuild it from the Flask session
(``from_dict``/``to_dict`` carry everything except the group snapshot);
Socket.IO connections keep one per connection fed by the push
subscription.
"""

from app.errors import InvalidTransitionError
from app.firestore_models import ROLES, ROLE_TEACHER

UNAUTHENTICATED = 'unauthenticated'
ROLE_SELECTION = 'role_selection'
CREDENTIAL_ENTRY = 'credential_entry'
AUTHENTICATED = 'authenticated'

MODE_LOGIN = 'login'
MODE_SIGNUP = 'signup'

VIEW_ROSTER_LIST = 'roster_list'
VIEW_ROSTER_DETAIL = 'roster_detail'
VIEW_EXAM_GRADING = 'exam_grading'
VIEW_SCHEDULE = 'schedule'
VIEW_RESULTS = 'results'
VIEW_PLANNER = 'planner'
VIEW_SETTINGS = 'settings'

TEACHER_VIEWS = (VIEW_ROSTER_LIST, VIEW_ROSTER_DETAIL, VIEW_EXAM_GRADING,
                 VIEW_SCHEDULE, VIEW_SETTINGS)
STUDENT_VIEWS = (VIEW_RESULTS, VIEW_SCHEDULE, VIEW_PLANNER, VIEW_ROSTER_DETAIL,
                 VIEW_SETTINGS)

# Views that are scoped to one group
GROUP_VIEWS = (VIEW_ROSTER_DETAIL, VIEW_EXAM_GRADING)


class ClientSession:

    def __init__(self):
        self._reset()

    def _reset(self):
        self.state = UNAUTHENTICATED
        self.auth_mode = None
        self.pending_role = None
        self.account = None
        self.view = None
        self.active_group_id = None
        self.active_exam_id = None
        self.groups = []

    # -- Onboarding ----------------------------------------------------------

    def start(self):
        """Show the role picker; a no-op once past it."""
        if self.state == UNAUTHENTICATED:
            self.state = ROLE_SELECTION

    def select_role(self, role):
        self.start()
        if self.state not in (ROLE_SELECTION, CREDENTIAL_ENTRY):
            raise InvalidTransitionError()
        if role not in ROLES:
            raise InvalidTransitionError('نوع حساب غير صالح')
        self.pending_role = role
        self.auth_mode = MODE_LOGIN
        self.state = CREDENTIAL_ENTRY

    def switch_mode(self, mode=None):
        if self.state != CREDENTIAL_ENTRY:
            raise InvalidTransitionError()
        if mode is None:
            mode = MODE_SIGNUP if self.auth_mode == MODE_LOGIN else MODE_LOGIN
        if mode not in (MODE_LOGIN, MODE_SIGNUP):
            raise InvalidTransitionError()
        self.auth_mode = mode

    def back(self):
        if self.state != CREDENTIAL_ENTRY:
            raise InvalidTransitionError()
        self.state = ROLE_SELECTION
        self.auth_mode = None

    def authenticate(self, account):
        """Enter the authenticated state with the loaded account record."""
        self.state = AUTHENTICATED
        self.account = account
        self.auth_mode = None
        self.pending_role = None
        self.view = self.default_view()
        self.active_group_id = None
        self.active_exam_id = None
        self.groups = []

    def sign_out(self):
        """Discard everything held for the account."""
        self._reset()

    def force_role_selection(self):
        """Identity verified but no account record: back to the role picker."""
        self.sign_out()
        self.state = ROLE_SELECTION

    # -- Authenticated -------------------------------------------------------

    @property
    def is_authenticated(self):
        return self.state == AUTHENTICATED and self.account is not None

    @property
    def role(self):
        return self.account.role if self.account else None

    def default_view(self):
        if self.account is None:
            return None
        return VIEW_ROSTER_LIST if self.account.role == ROLE_TEACHER else VIEW_RESULTS

    def allowed_views(self):
        if self.account is None:
            return ()
        return TEACHER_VIEWS if self.account.role == ROLE_TEACHER else STUDENT_VIEWS

    def navigate(self, view, group_id=None, exam_id=None):
        if not self.is_authenticated:
            raise InvalidTransitionError()
        if view not in self.allowed_views():
            raise InvalidTransitionError('هذه الصفحة غير متاحة لهذا الحساب')
        if view in GROUP_VIEWS:
            if not group_id:
                raise InvalidTransitionError('يرجى اختيار مجموعة')
            if view == VIEW_EXAM_GRADING and not exam_id:
                raise InvalidTransitionError('يرجى اختيار امتحان')
            self.active_group_id = group_id
            self.active_exam_id = exam_id if view == VIEW_EXAM_GRADING else None
        else:
            self.active_group_id = None
            self.active_exam_id = None
        self.view = view

    def apply_snapshot(self, groups):
        """Replace the local group copy with a complete snapshot."""
        self.groups = list(groups or [])
        if self.active_group_id and self.active_group() is None:
            # The group vanished (deleted, or the student was removed)
            self.view = self.default_view()
            self.active_group_id = None
            self.active_exam_id = None

    def active_group(self):
        for group in self.groups:
            if group.id == self.active_group_id:
                return group
        return None

    def group(self, group_id):
        for group in self.groups:
            if group.id == group_id:
                return group
        return None

    # -- Persistence ---------------------------------------------------------

    def to_dict(self):
        return {
            'state': self.state,
            'auth_mode': self.auth_mode,
            'pending_role': self.pending_role,
            'view': self.view,
            'active_group_id': self.active_group_id,
            'active_exam_id': self.active_exam_id,
        }

    @classmethod
    def from_dict(cls, data, account=None):
        """Rebuild from stored fields; ``account`` is the freshly loaded record."""
        session = cls()
        data = data or {}
        state = data.get('state', UNAUTHENTICATED)
        if state == AUTHENTICATED:
            if account is None:
                return session
            session.authenticate(account)
            view = data.get('view')
            if view in session.allowed_views():
                session.view = view
                session.active_group_id = data.get('active_group_id')
                session.active_exam_id = data.get('active_exam_id')
            return session
        if account is not None:
            session.authenticate(account)
            return session
        session.state = state if state in (ROLE_SELECTION, CREDENTIAL_ENTRY) else UNAUTHENTICATED
        if session.state == CREDENTIAL_ENTRY:
            session.auth_mode = data.get('auth_mode') or MODE_LOGIN
            session.pending_role = data.get('pending_role')
        return session

    def describe(self):
        d = self.to_dict()
        d['account'] = self.account.to_public_dict() if self.account else None
        return d
