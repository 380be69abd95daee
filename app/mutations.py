"""
Mutation coordinator for group documents.

Each public function turns one teacher intent (add student, record grade,
toggle a flag ...) into a single coordinated write:

1. validate the input locally, before any network call;
2. run the cross-entity existence query where one is needed;
3. apply a change function to the current server copy of the group inside
   a Firestore transaction (``firestore_dao.transact_group``), which also
   recomputes ``studentUsernames`` and bumps ``revision``.

Callers that acted on a local snapshot pass its revision as
``expected_revision``; if the group moved on in the meantime the write is
refused with GroupConflictError instead of silently overwriting the other
change.  Writes to one group from this process are also serialized behind
a per-group lock.
"""

import logging
import threading
from collections import defaultdict

from google.api_core.exceptions import GoogleAPIError

from app import firestore_dao as dao
from app.errors import (
    BackendError, DuplicateStudentError, ExamNotFoundError, GroupConflictError,
    GroupNotFoundError, ScheduleEntryNotFoundError, StudentNotFoundError,
)
from app.firestore_models import (
    Exam, ExamResult, Group, ScheduleEntry, Student, MAX_GRADE_CEILING, STATUS_PRESENT,
)
from app.validators import (
    clamp_grade, clamp_max_grade, require_text, validate_date, validate_day,
    validate_exam_type, validate_handle, validate_status, validate_time,
)

logger = logging.getLogger(__name__)

_group_locks = defaultdict(threading.Lock)
_locks_guard = threading.Lock()


def _group_lock(group_id):
    with _locks_guard:
        return _group_locks[group_id]


def _apply(group_id, change, expected_revision=None, action='update'):
    with _group_lock(group_id):
        try:
            group = dao.transact_group(group_id, change, expected_revision)
        except GroupConflictError as e:
            logger.warning('%s on group %s refused: revision %s, expected %s',
                           action, group_id, e.actual_revision, e.expected_revision)
            raise
        except GoogleAPIError:
            logger.exception('%s on group %s failed', action, group_id)
            raise BackendError()
    logger.info('%s on group %s -> revision %d', action, group_id, group.revision)
    return group


def _require_student(group, student_id):
    student = group.get_student(student_id)
    if student is None:
        raise StudentNotFoundError('الطالب غير موجود في هذه المجموعة')
    return student


def _require_exam(group, exam_id):
    exam = group.get_exam(exam_id)
    if exam is None:
        raise ExamNotFoundError()
    return exam


def resolve_grade(status, raw_grade, max_grade, previous=None):
    """Grade stored for a result.

    Absent and excused force 0.  Present clamps the input to
    [0, max_grade]; with no input the previously stored grade is kept,
    which is 0 whenever the student was last absent or excused.
    """
    if status != STATUS_PRESENT:
        return 0
    if raw_grade is None or raw_grade == '':
        raw_grade = previous.grade if previous is not None else 0
    return clamp_grade(raw_grade, max_grade)


# ========================================================================
# Groups
# ========================================================================

def create_group(teacher_uid, name, location, phone=None):
    group = Group(
        name=require_text(name, 'يرجى كتابة اسم المجموعة'),
        location=(location or '').strip(),
        teacher_uid=teacher_uid,
        phone=(phone or '').strip() or None,
    )
    try:
        group.id = dao.create_group(group)
    except GoogleAPIError:
        logger.exception('Creating group for teacher %s failed', teacher_uid)
        raise BackendError()
    logger.info('Group %s created by teacher %s', group.id, teacher_uid)
    return group


def update_group(group_id, name=None, location=None, phone=None, expected_revision=None):
    if name is not None:
        name = require_text(name, 'يرجى كتابة اسم المجموعة')

    def change(group):
        if name is not None:
            group.name = name
        if location is not None:
            group.location = location.strip()
        if phone is not None:
            group.phone = phone.strip() or None

    return _apply(group_id, change, expected_revision, 'update_group')


def delete_group(group_id):
    """Delete the group document; its roster and exams go with it."""
    try:
        with _group_lock(group_id):
            try:
                if dao.get_group(group_id) is None:
                    raise GroupNotFoundError()
                dao.delete_group(group_id)
            except GoogleAPIError:
                logger.exception('Deleting group %s failed', group_id)
                raise BackendError()
    finally:
        with _locks_guard:
            _group_locks.pop(group_id, None)
    logger.info('Group %s deleted', group_id)


# ========================================================================
# Roster
# ========================================================================

def add_student(group_id, name, username, expected_revision=None):
    """Attach a registered student account to the roster."""
    name = require_text(name, 'يرجى كتابة اسم الطالب')
    handle = validate_handle(username)

    try:
        account = dao.find_student_account(handle)
    except GoogleAPIError:
        logger.exception('Student lookup for %s failed', handle)
        raise BackendError()
    if account is None:
        logger.warning('Enrollment of unknown student handle %s into group %s', handle, group_id)
        raise StudentNotFoundError()

    def change(group):
        if handle in group.student_usernames:
            raise DuplicateStudentError()
        group.students.append(Student(name=name, username=handle))

    return _apply(group_id, change, expected_revision, 'add_student')


def remove_student(group_id, student_id, expected_revision=None):
    """Drop a student from the roster along with all of their exam results."""
    def change(group):
        _require_student(group, student_id)
        group.students = [s for s in group.students if s.id != student_id]
        for exam in group.exams:
            exam.results.pop(student_id, None)

    return _apply(group_id, change, expected_revision, 'remove_student')


def update_student(group_id, student_id, name=None, notes=None, phone=None,
                   expected_revision=None):
    if name is not None:
        name = require_text(name, 'يرجى كتابة اسم الطالب')

    def change(group):
        student = _require_student(group, student_id)
        if name is not None:
            student.name = name
        if notes is not None:
            student.notes = notes.strip()
        if phone is not None:
            student.phone = phone.strip() or None

    return _apply(group_id, change, expected_revision, 'update_student')


def toggle_paid(group_id, student_id, expected_revision=None):
    def change(group):
        student = _require_student(group, student_id)
        student.paid = not student.paid

    return _apply(group_id, change, expected_revision, 'toggle_paid')


def toggle_starred(group_id, student_id, expected_revision=None):
    def change(group):
        student = _require_student(group, student_id)
        student.starred = not student.starred

    return _apply(group_id, change, expected_revision, 'toggle_starred')


# ========================================================================
# Schedule
# ========================================================================

def add_schedule_entry(group_id, day, time, expected_revision=None):
    entry = ScheduleEntry(day=validate_day(day), time=validate_time(time))

    def change(group):
        group.schedule.append(ScheduleEntry(id=entry.id, day=entry.day, time=entry.time))

    return _apply(group_id, change, expected_revision, 'add_schedule_entry')


def remove_schedule_entry(group_id, entry_id, expected_revision=None):
    def change(group):
        if not any(e.id == entry_id for e in group.schedule):
            raise ScheduleEntryNotFoundError()
        group.schedule = [e for e in group.schedule if e.id != entry_id]

    return _apply(group_id, change, expected_revision, 'remove_schedule_entry')


# ========================================================================
# Exams and grading
# ========================================================================

def add_exam(group_id, title, date, max_grade, exam_type='daily', expected_revision=None):
    exam = Exam(
        title=require_text(title, 'يرجى كتابة عنوان الامتحان'),
        date=validate_date(date),
        max_grade=clamp_max_grade(max_grade),
        type=validate_exam_type(exam_type),
    )

    def change(group):
        group.exams.append(Exam.from_dict(exam.to_dict()))

    return _apply(group_id, change, expected_revision, 'add_exam')


def update_exam(group_id, exam_id, title=None, date=None, max_grade=None,
                exam_type=None, expected_revision=None):
    if title is not None:
        title = require_text(title, 'يرجى كتابة عنوان الامتحان')
    if date is not None:
        date = validate_date(date)
    if max_grade is not None:
        max_grade = clamp_max_grade(max_grade)
    if exam_type is not None:
        exam_type = validate_exam_type(exam_type)

    def change(group):
        exam = _require_exam(group, exam_id)
        if title is not None:
            exam.title = title
        if date is not None:
            exam.date = date
        if exam_type is not None:
            exam.type = exam_type
        if max_grade is not None:
            exam.max_grade = max_grade
            # A lowered ceiling must not leave grades above it
            for result in exam.results.values():
                if result.grade > max_grade:
                    result.grade = max_grade
                    result.notified = False

    return _apply(group_id, change, expected_revision, 'update_exam')


def delete_exam(group_id, exam_id, expected_revision=None):
    def change(group):
        _require_exam(group, exam_id)
        group.exams = [e for e in group.exams if e.id != exam_id]

    return _apply(group_id, change, expected_revision, 'delete_exam')


def record_grade(group_id, exam_id, student_id, status, grade=None, expected_revision=None):
    """Set the attendance status and grade of one student on one exam."""
    status = validate_status(status)
    if grade is not None and grade != '':
        # Reject non-numeric input before touching the store
        clamp_grade(grade, MAX_GRADE_CEILING)

    def change(group):
        _require_student(group, student_id)
        exam = _require_exam(group, exam_id)
        previous = exam.results.get(student_id)
        exam.results[student_id] = ExamResult(
            student_id=student_id,
            grade=resolve_grade(status, grade, exam.max_grade, previous),
            status=status,
        )

    return _apply(group_id, change, expected_revision, 'record_grade')
