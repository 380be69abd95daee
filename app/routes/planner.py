from flask import Blueprint, jsonify

from app.decorators import get_current_account, role_required
from app.firestore_models import ROLE_STUDENT, SUBJECTS
from app.forms import HomeworkForm, LectureForm, validate_or_raise
from app.planner import get_planner

bp = Blueprint('planner', __name__, url_prefix='/planner')


def _planner():
    return get_planner(get_current_account().username)


@bp.route('')
@role_required(ROLE_STUDENT)
def index():
    return jsonify({'success': True, 'subjects': list(SUBJECTS), **_planner().to_dict()})


# ---------------------------------------------------------------------------
# Lectures
# ---------------------------------------------------------------------------

@bp.route('/lectures', methods=['POST'])
@role_required(ROLE_STUDENT)
def add_lecture():
    form = validate_or_raise(LectureForm())
    lecture = _planner().add_lecture(
        form.subject.data, form.day.data, form.time.data,
        lecture_type=form.type.data or 'physical', location=form.location.data,
    )
    return jsonify({'success': True, 'lecture': lecture.to_dict()}), 201


@bp.route('/lectures/<lecture_id>', methods=['PATCH'])
@role_required(ROLE_STUDENT)
def update_lecture(lecture_id):
    form = validate_or_raise(LectureForm())
    lecture = _planner().update_lecture(
        lecture_id, subject=form.subject.data, day=form.day.data, time=form.time.data,
        lecture_type=form.type.data or None, location=form.location.data,
    )
    return jsonify({'success': True, 'lecture': lecture.to_dict()})


@bp.route('/lectures/<lecture_id>/postpone', methods=['POST'])
@role_required(ROLE_STUDENT)
def toggle_postponed(lecture_id):
    lecture = _planner().toggle_postponed(lecture_id)
    return jsonify({'success': True, 'lecture': lecture.to_dict()})


@bp.route('/lectures/<lecture_id>', methods=['DELETE'])
@role_required(ROLE_STUDENT)
def delete_lecture(lecture_id):
    _planner().delete_lecture(lecture_id)
    return jsonify({'success': True})


# ---------------------------------------------------------------------------
# Homework
# ---------------------------------------------------------------------------

@bp.route('/homework', methods=['POST'])
@role_required(ROLE_STUDENT)
def add_homework():
    form = validate_or_raise(HomeworkForm())
    item = _planner().add_homework(form.subject.data, form.task.data)
    return jsonify({'success': True, 'homework': item.to_dict()}), 201


@bp.route('/homework/<homework_id>/toggle', methods=['POST'])
@role_required(ROLE_STUDENT)
def toggle_homework(homework_id):
    item = _planner().toggle_homework(homework_id)
    return jsonify({'success': True, 'homework': item.to_dict()})


@bp.route('/homework/<homework_id>', methods=['DELETE'])
@role_required(ROLE_STUDENT)
def delete_homework(homework_id):
    _planner().delete_homework(homework_id)
    return jsonify({'success': True})
