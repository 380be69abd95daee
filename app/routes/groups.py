from flask import Blueprint, jsonify, request

from app import firestore_dao as dao
from app import mutations
from app import projections
from app.decorators import get_current_account, role_required
from app.errors import GroupNotFoundError, PermissionDeniedError, StudentNotFoundError, ValidationError
from app.firestore_models import ROLE_TEACHER
from app.forms import GroupForm, ScheduleEntryForm, StudentEditForm, StudentForm, validate_or_raise

bp = Blueprint('groups', __name__, url_prefix='/groups')


def expected_revision():
    """Revision of the snapshot the client acted on, if it sent one.

    Read from the JSON body ``revision`` field, the ``revision`` query
    argument or an ``If-Match`` header, in that order.
    """
    body = request.get_json(silent=True) or {}
    raw = body.get('revision')
    if raw is None:
        raw = request.args.get('revision')
    if raw is None:
        raw = request.headers.get('If-Match', '').strip('"') or None
    if raw is None or raw == '':
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError('رقم النسخة غير صالح')


def owned_group(group_id):
    """Load a group and make sure the signed-in teacher owns it."""
    group = dao.get_group(group_id)
    if group is None:
        raise GroupNotFoundError()
    if group.teacher_uid != get_current_account().uid:
        raise PermissionDeniedError()
    return group


def group_response(group, message=None, status=200):
    payload = {'success': True, 'group': group.to_public_dict()}
    if message:
        payload['message'] = message
    return jsonify(payload), status


@bp.route('', methods=['GET'])
@role_required(ROLE_TEACHER)
def list_groups():
    groups = dao.get_groups_by_teacher(get_current_account().uid)
    return jsonify({'success': True, 'groups': [g.to_public_dict() for g in groups]})


@bp.route('', methods=['POST'])
@role_required(ROLE_TEACHER)
def create_group():
    form = validate_or_raise(GroupForm())
    group = mutations.create_group(
        get_current_account().uid, form.name.data, form.location.data, form.phone.data,
    )
    return group_response(group, 'تمت إضافة المجموعة بنجاح', 201)


@bp.route('/<group_id>', methods=['GET'])
@role_required(ROLE_TEACHER)
def get_group(group_id):
    return group_response(owned_group(group_id))


@bp.route('/<group_id>', methods=['PATCH'])
@role_required(ROLE_TEACHER)
def update_group(group_id):
    owned_group(group_id)
    form = validate_or_raise(GroupForm())
    group = mutations.update_group(
        group_id, name=form.name.data, location=form.location.data,
        phone=form.phone.data, expected_revision=expected_revision(),
    )
    return group_response(group, 'تم حفظ التعديلات')


@bp.route('/<group_id>', methods=['DELETE'])
@role_required(ROLE_TEACHER)
def delete_group(group_id):
    owned_group(group_id)
    mutations.delete_group(group_id)
    return jsonify({'success': True, 'message': 'تم حذف المجموعة'})


# ---------------------------------------------------------------------------
# Roster
# ---------------------------------------------------------------------------

@bp.route('/<group_id>/students', methods=['GET'])
@role_required(ROLE_TEACHER)
def list_students(group_id):
    group = owned_group(group_id)
    students = projections.search_students(group, request.args.get('q'))
    return jsonify({'success': True, 'students': [s.to_dict() for s in students],
                    'revision': group.revision})


@bp.route('/<group_id>/students', methods=['POST'])
@role_required(ROLE_TEACHER)
def add_student(group_id):
    owned_group(group_id)
    form = validate_or_raise(StudentForm())
    group = mutations.add_student(
        group_id, form.name.data, form.username.data, expected_revision=expected_revision(),
    )
    return group_response(group, 'تم ربط الطالب بالمجموعة', 201)


@bp.route('/<group_id>/students/<student_id>', methods=['GET'])
@role_required(ROLE_TEACHER)
def student_detail(group_id, student_id):
    group = owned_group(group_id)
    student = group.get_student(student_id)
    if student is None:
        raise StudentNotFoundError('الطالب غير موجود في هذه المجموعة')
    return jsonify({
        'success': True,
        'student': student.to_dict(),
        'history': projections.student_exam_history(group, student_id),
        'stats': projections.attendance_stats(group, student_id),
    })


@bp.route('/<group_id>/students/<student_id>', methods=['PATCH'])
@role_required(ROLE_TEACHER)
def update_student(group_id, student_id):
    owned_group(group_id)
    form = validate_or_raise(StudentEditForm())
    group = mutations.update_student(
        group_id, student_id, name=form.name.data or None,
        notes=form.notes.data, phone=form.phone.data,
        expected_revision=expected_revision(),
    )
    return group_response(group, 'تم حفظ بيانات الطالب')


@bp.route('/<group_id>/students/<student_id>', methods=['DELETE'])
@role_required(ROLE_TEACHER)
def remove_student(group_id, student_id):
    owned_group(group_id)
    group = mutations.remove_student(group_id, student_id, expected_revision=expected_revision())
    return group_response(group, 'تم حذف الطالب من المجموعة')


@bp.route('/<group_id>/students/<student_id>/paid', methods=['POST'])
@role_required(ROLE_TEACHER)
def toggle_paid(group_id, student_id):
    owned_group(group_id)
    group = mutations.toggle_paid(group_id, student_id, expected_revision=expected_revision())
    return group_response(group)


@bp.route('/<group_id>/students/<student_id>/star', methods=['POST'])
@role_required(ROLE_TEACHER)
def toggle_starred(group_id, student_id):
    owned_group(group_id)
    group = mutations.toggle_starred(group_id, student_id, expected_revision=expected_revision())
    return group_response(group)


# ---------------------------------------------------------------------------
# Schedule
# ---------------------------------------------------------------------------

@bp.route('/<group_id>/schedule', methods=['POST'])
@role_required(ROLE_TEACHER)
def add_schedule_entry(group_id):
    owned_group(group_id)
    form = validate_or_raise(ScheduleEntryForm())
    group = mutations.add_schedule_entry(
        group_id, form.day.data, form.time.data, expected_revision=expected_revision(),
    )
    return group_response(group, 'تمت إضافة الموعد', 201)


@bp.route('/<group_id>/schedule/<entry_id>', methods=['DELETE'])
@role_required(ROLE_TEACHER)
def remove_schedule_entry(group_id, entry_id):
    owned_group(group_id)
    group = mutations.remove_schedule_entry(group_id, entry_id, expected_revision=expected_revision())
    return group_response(group)
