"""End-to-end tests of the JSON API against the in-memory store."""

from __future__ import annotations

import io

import pytest

from app import decorators, identity
from app.errors import AuthError
from app.firestore_models import Account


def _json(resp):
    return resp.get_json()


@pytest.fixture
def verified_cookies(monkeypatch):
    monkeypatch.setattr(decorators, 'verify_session_cookie',
                        lambda cookie: cookie[len('cookie-'):] if cookie else None)
    monkeypatch.setattr(identity, 'create_session_cookie', lambda token: f'cookie-{token}')


@pytest.fixture
def group_id(teacher_client, students):
    resp = teacher_client.post('/groups', json={'name': 'فيزياء', 'location': 'سنتر النور'})
    return _json(resp)['group']['id']


def _add_student(client, gid, username='ahmed', name='أحمد سامي', **extra):
    return client.post(f'/groups/{gid}/students', json={'name': name, 'username': username, **extra})


# ── Onboarding and auth ─────────────────────────────


class TestOnboarding:
    def test_fresh_client_is_unauthenticated(self, client):
        state = _json(client.get('/auth/state'))['state']
        assert state['state'] == 'unauthenticated'
        assert state['account'] is None

    def test_role_mode_back(self, client):
        client.post('/auth/start')
        state = _json(client.post('/auth/role', json={'role': 'student'}))['state']
        assert (state['state'], state['auth_mode']) == ('credential_entry', 'login')
        state = _json(client.post('/auth/mode'))['state']
        assert state['auth_mode'] == 'signup'
        state = _json(client.post('/auth/back'))['state']
        assert state['state'] == 'role_selection'

    def test_back_from_role_selection_is_refused(self, client):
        client.post('/auth/start')
        resp = client.post('/auth/back')
        assert resp.status_code == 409

    def test_login(self, client, store, students, verified_cookies, monkeypatch):
        monkeypatch.setattr(identity, 'sign_in', lambda handle, password: ('s1', 's1'))
        resp = client.post('/auth/login', json={'username': 'Ahmed', 'password': 'secret1'})
        assert resp.status_code == 200
        body = _json(resp)
        assert body['message'] == 'تم تسجيل الدخول بنجاح'
        assert body['state']['view'] == 'results'

        # The cookie set at login authenticates the next request
        assert _json(client.get('/auth/state'))['state']['state'] == 'authenticated'

    def test_login_without_account_record(self, client, store, verified_cookies, monkeypatch):
        monkeypatch.setattr(identity, 'sign_in', lambda handle, password: ('ghost', 'ghost'))
        resp = client.post('/auth/login', json={'username': 'ghost', 'password': 'secret1'})
        assert resp.status_code == 404
        assert _json(client.get('/auth/state'))['state']['state'] == 'role_selection'

    def test_login_bad_credentials(self, client, store, monkeypatch):
        def reject(handle, password):
            raise AuthError(identity.MSG_INVALID_CREDENTIAL)

        monkeypatch.setattr(identity, 'sign_in', reject)
        resp = client.post('/auth/login', json={'username': 'ahmed', 'password': 'nope'})
        assert resp.status_code == 401
        assert _json(resp)['error'] == identity.MSG_INVALID_CREDENTIAL

    def test_login_requires_fields(self, client, store):
        resp = client.post('/auth/login', json={'username': '', 'password': ''})
        assert resp.status_code == 400
        assert _json(resp)['success'] is False

    def test_signup_teacher(self, client, store, verified_cookies, monkeypatch):
        def sign_up(name, handle, password, role):
            account = Account(uid='t9', name=name, username=handle, role=role, onboarded=True)
            store.create_account('t9', account)
            return account, 't9'

        monkeypatch.setattr(identity, 'sign_up', sign_up)
        resp = client.post('/auth/signup', json={
            'name': 'أ. سامي', 'username': 'Sami_T', 'password': 'secret1', 'role': 'teacher',
        })
        assert resp.status_code == 201
        state = _json(resp)['state']
        assert state['view'] == 'roster_list'
        assert state['account']['username'] == 'sami_t'

    def test_signup_handle_too_short(self, client, store):
        resp = client.post('/auth/signup', json={
            'name': 'س', 'username': 'abc', 'password': 'secret1', 'role': 'student',
        })
        assert resp.status_code == 400

    def test_logout(self, teacher_client):
        state = _json(teacher_client.post('/auth/logout'))['state']
        assert state['state'] == 'unauthenticated'
        assert teacher_client.get('/groups').status_code == 401

    def test_theme_toggle(self, teacher_client, store):
        teacher_client.post('/auth/settings/theme')
        assert store.users['t1']['darkMode'] is True

    def test_profile_name(self, teacher_client, store):
        resp = teacher_client.post('/auth/settings/profile', json={'name': 'أ. محمد علي'})
        assert _json(resp)['state']['account']['name'] == 'أ. محمد علي'
        assert store.users['t1']['name'] == 'أ. محمد علي'

    def test_initial_is_display_only(self, teacher_client, store):
        account = _json(teacher_client.get('/auth/state'))['state']['account']
        assert account['initial'] == 'أ'
        assert 'initial' not in store.users['t1']

    def test_avatar_extension_checked(self, teacher_client):
        resp = teacher_client.post('/auth/settings/avatar', data={
            'profile_image': (io.BytesIO(b'GIF89a'), 'me.gif'),
        }, content_type='multipart/form-data')
        assert resp.status_code == 400


# ── Teacher: groups and roster ──────────────────────


class TestGroupRoutes:
    def test_create_and_list(self, teacher_client, group_id):
        groups = _json(teacher_client.get('/groups'))['groups']
        assert [g['id'] for g in groups] == [group_id]
        assert groups[0]['studentUsernames'] == []

    def test_create_requires_name(self, teacher_client):
        resp = teacher_client.post('/groups', json={'name': ''})
        assert resp.status_code == 400

    def test_student_cannot_manage_groups(self, student_client):
        assert student_client.get('/groups').status_code == 403

    def test_other_teachers_group_is_forbidden(self, teacher_client, group_id, store, login_as):
        other_client = login_as(store.add_user('t2', 'other', 'teacher'))
        assert other_client.get(f'/groups/{group_id}').status_code == 403

    def test_add_student(self, teacher_client, group_id):
        resp = _add_student(teacher_client, group_id)
        assert resp.status_code == 201
        body = _json(resp)
        assert body['message'] == 'تم ربط الطالب بالمجموعة'
        assert body['group']['studentUsernames'] == ['ahmed']

    def test_add_unknown_student(self, teacher_client, group_id):
        resp = _add_student(teacher_client, group_id, username='nobody')
        assert resp.status_code == 404

    def test_add_duplicate_student(self, teacher_client, group_id):
        _add_student(teacher_client, group_id)
        resp = _add_student(teacher_client, group_id, name='أحمد آخر')
        assert resp.status_code == 409
        assert _json(resp)['retryable'] is False

    def test_stale_revision_conflict(self, teacher_client, group_id):
        rev = _json(_add_student(teacher_client, group_id))['group']['revision']
        _add_student(teacher_client, group_id, username='mariam', name='مريم', revision=rev)
        resp = _add_student(teacher_client, group_id, username='mariam', name='مريم', revision=rev)
        assert resp.status_code == 409
        body = _json(resp)
        assert body['retryable'] is True
        assert body['revision'] == rev + 1

    def test_toggle_paid_and_search(self, teacher_client, group_id):
        group = _json(_add_student(teacher_client, group_id))['group']
        sid = group['students'][0]['id']
        resp = teacher_client.post(f'/groups/{group_id}/students/{sid}/paid')
        assert _json(resp)['group']['students'][0]['paid'] is True

        found = _json(teacher_client.get(f'/groups/{group_id}/students?q=أحمد'))['students']
        assert [s['id'] for s in found] == [sid]
        assert _json(teacher_client.get(f'/groups/{group_id}/students?q=مريم'))['students'] == []

    def test_remove_student(self, teacher_client, group_id):
        group = _json(_add_student(teacher_client, group_id))['group']
        sid = group['students'][0]['id']
        resp = teacher_client.delete(f'/groups/{group_id}/students/{sid}')
        assert _json(resp)['group']['studentUsernames'] == []

    def test_schedule_entry(self, teacher_client, group_id):
        resp = teacher_client.post(f'/groups/{group_id}/schedule', json={'day': 'الأحد', 'time': '16:00'})
        assert resp.status_code == 201
        assert _json(resp)['group']['schedule'][0]['time'] == '16:00'
        bad = teacher_client.post(f'/groups/{group_id}/schedule', json={'day': 'الأحد', 'time': '4pm'})
        assert bad.status_code == 400

    def test_remove_unknown_schedule_entry(self, teacher_client, group_id):
        resp = teacher_client.delete(f'/groups/{group_id}/schedule/nope')
        assert resp.status_code == 404
        assert _json(teacher_client.get(f'/groups/{group_id}'))['group']['revision'] == 0

    def test_delete_group(self, teacher_client, group_id):
        assert teacher_client.delete(f'/groups/{group_id}').status_code == 200
        assert teacher_client.get(f'/groups/{group_id}').status_code == 404


# ── Teacher: exams and grading ──────────────────────


class TestExamRoutes:
    @pytest.fixture
    def graded(self, teacher_client, group_id):
        group = _json(_add_student(teacher_client, group_id))['group']
        sid = group['students'][0]['id']
        resp = teacher_client.post(f'/groups/{group_id}/exams', json={
            'title': 'امتحان الفصل', 'date': '2024-10-05', 'max_grade': 20,
        })
        exam_id = _json(resp)['group']['exams'][0]['id']
        return sid, exam_id

    def test_record_grade_is_clamped(self, teacher_client, group_id, graded):
        sid, exam_id = graded
        resp = teacher_client.post(f'/groups/{group_id}/exams/{exam_id}/grades/{sid}',
                                   json={'status': 'present', 'grade': 25})
        result = _json(resp)['group']['exams'][0]['results'][sid]
        assert result['grade'] == 20

    def test_absent_forces_zero(self, teacher_client, group_id, graded):
        sid, exam_id = graded
        resp = teacher_client.post(f'/groups/{group_id}/exams/{exam_id}/grades/{sid}',
                                   json={'status': 'absent', 'grade': 15})
        result = _json(resp)['group']['exams'][0]['results'][sid]
        assert (result['status'], result['grade']) == ('absent', 0)

    def test_grading_sheet(self, teacher_client, group_id, graded):
        sid, exam_id = graded
        sheet = _json(teacher_client.get(f'/groups/{group_id}/exams/{exam_id}'))
        assert sheet['rows'][0]['studentId'] == sid
        assert sheet['rows'][0]['result'] is None

    def test_student_history(self, teacher_client, group_id, graded):
        sid, exam_id = graded
        teacher_client.post(f'/groups/{group_id}/exams/{exam_id}/grades/{sid}',
                            json={'status': 'excused'})
        detail = _json(teacher_client.get(f'/groups/{group_id}/students/{sid}'))
        assert detail['stats'] == {'present': 0, 'absent': 0, 'excused': 1}
        assert detail['history'][0]['title'] == 'امتحان الفصل'

    def test_exam_requires_max_grade(self, teacher_client, group_id):
        resp = teacher_client.post(f'/groups/{group_id}/exams', json={'title': 'x', 'date': '2024-10-05'})
        assert resp.status_code == 400

    def test_infinite_grade_is_rejected(self, teacher_client, group_id, graded):
        sid, exam_id = graded
        resp = teacher_client.post(f'/groups/{group_id}/exams/{exam_id}/grades/{sid}',
                                   data='{"status": "present", "grade": 1e400}',
                                   content_type='application/json')
        assert resp.status_code == 400
        assert _json(resp)['success'] is False

    def test_infinite_max_grade_is_rejected(self, teacher_client, group_id):
        resp = teacher_client.post(f'/groups/{group_id}/exams',
                                   data='{"title": "x", "date": "2024-10-05", "max_grade": -1e400}',
                                   content_type='application/json')
        assert resp.status_code == 400

    def test_delete_exam(self, teacher_client, group_id, graded):
        _, exam_id = graded
        resp = teacher_client.delete(f'/groups/{group_id}/exams/{exam_id}')
        assert _json(resp)['group']['exams'] == []


# ── Student views ───────────────────────────────────


class TestStudentRoutes:
    def test_results_and_schedule(self, teacher_client, student_client, group_id):
        group = _json(_add_student(teacher_client, group_id))['group']
        sid = group['students'][0]['id']
        teacher_client.post(f'/groups/{group_id}/schedule', json={'day': 'الأحد', 'time': '16:00'})
        exam = _json(teacher_client.post(f'/groups/{group_id}/exams', json={
            'title': 'الأول', 'date': '2024-10-05', 'max_grade': 20,
        }))['group']['exams'][0]
        teacher_client.post(f'/groups/{group_id}/exams/{exam["id"]}/grades/{sid}',
                            json={'status': 'present', 'grade': 17})

        results = _json(student_client.get('/me/results'))['results']
        assert results == [{
            'groupName': 'فيزياء', 'examTitle': 'الأول', 'grade': 17,
            'maxGrade': 20, 'date': '2024-10-05', 'status': 'present',
        }]

        student_client.post('/planner/lectures', json={
            'subject': 'رياضيات', 'day': 'الأحد', 'time': '12:00', 'type': 'online',
        })
        week = _json(student_client.get('/me/schedule'))['week']
        assert [e['kind'] for e in week['الأحد']] == ['lecture', 'group']

        history = _json(student_client.get(f'/me/groups/{group_id}'))
        assert history['stats']['present'] == 1

    def test_not_enrolled_group_hidden(self, teacher_client, student_client, group_id):
        assert student_client.get(f'/me/groups/{group_id}').status_code == 404

    def test_teacher_cannot_open_planner(self, teacher_client):
        assert teacher_client.get('/planner').status_code == 403

    def test_homework(self, student_client):
        resp = student_client.post('/planner/homework', json={'subject': 'فيزياء', 'task': 'مسائل'})
        item = _json(resp)['homework']
        student_client.post(f'/planner/homework/{item["id"]}/toggle')
        planner = _json(student_client.get('/planner'))
        assert planner['homework'][0]['completed'] is True


# ── Session state endpoints ─────────────────────────


class TestStateRoutes:
    def test_health(self, client):
        assert _json(client.get('/health')) == {'status': 'ok'}

    def test_state_includes_groups(self, teacher_client, group_id):
        body = _json(teacher_client.get('/api/state'))
        assert [g['id'] for g in body['groups']] == [group_id]
        assert 'results' not in body

    def test_navigate(self, teacher_client, group_id):
        resp = teacher_client.post('/api/nav', json={'view': 'roster_detail', 'groupId': group_id})
        assert _json(resp)['state']['active_group_id'] == group_id
        resp = teacher_client.post('/api/nav', json={'view': 'planner'})
        assert resp.status_code == 409

    def test_deleted_group_resets_view(self, teacher_client, group_id):
        teacher_client.post('/api/nav', json={'view': 'roster_detail', 'groupId': group_id})
        teacher_client.delete(f'/groups/{group_id}')
        state = _json(teacher_client.get('/api/state'))['state']
        assert state['view'] == 'roster_list'
