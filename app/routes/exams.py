from flask import Blueprint, jsonify

from app import mutations
from app.decorators import role_required
from app.errors import ExamNotFoundError
from app.firestore_models import ROLE_TEACHER
from app.forms import ExamForm, GradeForm, validate_or_raise
from app.routes.groups import expected_revision, group_response, owned_group

bp = Blueprint('exams', __name__, url_prefix='/groups/<group_id>/exams')


def _grading_sheet(group, exam):
    """One row per rostered student; ungraded students carry ``result: None``."""
    rows = []
    for student in group.students:
        result = exam.results.get(student.id)
        rows.append({
            'studentId': student.id,
            'name': student.name,
            'username': student.username,
            'result': result.to_dict() if result else None,
        })
    return rows


@bp.route('', methods=['GET'])
@role_required(ROLE_TEACHER)
def list_exams(group_id):
    group = owned_group(group_id)
    return jsonify({'success': True, 'exams': [e.to_dict() for e in group.exams],
                    'revision': group.revision})


@bp.route('', methods=['POST'])
@role_required(ROLE_TEACHER)
def add_exam(group_id):
    owned_group(group_id)
    form = validate_or_raise(ExamForm())
    group = mutations.add_exam(
        group_id, form.title.data, form.date.data, form.max_grade.data,
        exam_type=form.type.data or 'daily', expected_revision=expected_revision(),
    )
    return group_response(group, 'تمت إضافة الامتحان', 201)


@bp.route('/<exam_id>', methods=['GET'])
@role_required(ROLE_TEACHER)
def grading_sheet(group_id, exam_id):
    group = owned_group(group_id)
    exam = group.get_exam(exam_id)
    if exam is None:
        raise ExamNotFoundError()
    return jsonify({
        'success': True,
        'exam': exam.to_dict(),
        'rows': _grading_sheet(group, exam),
        'revision': group.revision,
    })


@bp.route('/<exam_id>', methods=['PATCH'])
@role_required(ROLE_TEACHER)
def update_exam(group_id, exam_id):
    owned_group(group_id)
    form = validate_or_raise(ExamForm())
    group = mutations.update_exam(
        group_id, exam_id, title=form.title.data, date=form.date.data,
        max_grade=form.max_grade.data, exam_type=form.type.data or None,
        expected_revision=expected_revision(),
    )
    return group_response(group, 'تم حفظ الامتحان')


@bp.route('/<exam_id>', methods=['DELETE'])
@role_required(ROLE_TEACHER)
def delete_exam(group_id, exam_id):
    owned_group(group_id)
    group = mutations.delete_exam(group_id, exam_id, expected_revision=expected_revision())
    return group_response(group, 'تم حذف الامتحان')


@bp.route('/<exam_id>/grades/<student_id>', methods=['POST'])
@role_required(ROLE_TEACHER)
def record_grade(group_id, exam_id, student_id):
    owned_group(group_id)
    form = validate_or_raise(GradeForm())
    group = mutations.record_grade(
        group_id, exam_id, student_id, form.status.data, grade=form.grade.data,
        expected_revision=expected_revision(),
    )
    return group_response(group)
