from flask import Blueprint, jsonify

from app import firestore_dao as dao
from app import projections
from app.decorators import get_current_account, role_required
from app.errors import GroupNotFoundError
from app.firestore_models import ROLE_STUDENT
from app.planner import get_planner

bp = Blueprint('student', __name__, url_prefix='/me')


def _my_groups():
    return dao.get_groups_for_student(get_current_account().username)


@bp.route('/results')
@role_required(ROLE_STUDENT)
def results():
    account = get_current_account()
    return jsonify({'success': True, 'results': projections.my_results(account.username, _my_groups())})


@bp.route('/groups')
@role_required(ROLE_STUDENT)
def groups():
    account = get_current_account()
    items = []
    for group in _my_groups():
        student = projections.find_student(group, account.username)
        items.append({
            'id': group.id,
            'name': group.name,
            'location': group.location,
            'phone': group.phone,
            'schedule': [e.to_dict() for e in group.schedule],
            'paid': student.paid if student else False,
        })
    return jsonify({'success': True, 'groups': items})


@bp.route('/groups/<group_id>')
@role_required(ROLE_STUDENT)
def group_history(group_id):
    """The student's own exam history and attendance in one enrolled group."""
    account = get_current_account()
    group = dao.get_group(group_id)
    student = projections.find_student(group, account.username) if group else None
    if student is None:
        raise GroupNotFoundError()
    return jsonify({
        'success': True,
        'group': {'id': group.id, 'name': group.name},
        'history': projections.student_exam_history(group, student.id),
        'stats': projections.attendance_stats(group, student.id),
    })


@bp.route('/schedule')
@role_required(ROLE_STUDENT)
def schedule():
    account = get_current_account()
    groups = _my_groups()
    planner = get_planner(account.username)
    return jsonify({
        'success': True,
        'week': projections.weekly_schedule(groups, planner.lectures),
        'reminders': projections.group_schedule_reminders(groups),
    })
