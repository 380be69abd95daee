"""
Read-only views derived from the group snapshot of the signed-in account.

Every function here is pure: it takes the latest list of Group models (and,
for the weekly schedule, the student's device-local lectures), never
mutates them, and returns an empty result when nothing has loaded yet.
"""

from app.firestore_models import (
    DAYS, STATUS_PRESENT, STATUS_ABSENT, STATUS_EXCUSED,
)


def find_student(group, handle):
    """The roster entry of ``handle`` in ``group``, matched case-insensitively."""
    if not handle:
        return None
    handle = handle.lower()
    for student in group.students:
        if student.username.lower() == handle:
            return student
    return None


def my_results(handle, groups):
    """One entry per (group, exam) where the student holds a recorded result.

    Groups and exams keep their stored order; exams the student has not
    been graded on produce nothing.
    """
    results = []
    for group in groups or []:
        student = find_student(group, handle)
        if student is None:
            continue
        for exam in group.exams:
            result = exam.results.get(student.id)
            if result is None:
                continue
            results.append({
                'groupName': group.name,
                'examTitle': exam.title,
                'grade': result.grade,
                'maxGrade': exam.max_grade,
                'date': exam.date,
                'status': result.status,
            })
    return results


def student_exam_history(group, student_id):
    """Graded exams of one student in one group; ungraded exams are omitted."""
    if group is None:
        return []
    history = []
    for exam in group.exams:
        result = exam.results.get(student_id)
        if result is None:
            continue
        history.append({
            'title': exam.title,
            'date': exam.date,
            'maxGrade': exam.max_grade,
            'result': result.to_dict(),
        })
    return history


def attendance_stats(group, student_id):
    stats = {STATUS_PRESENT: 0, STATUS_ABSENT: 0, STATUS_EXCUSED: 0}
    if group is None:
        return stats
    for exam in group.exams:
        result = exam.results.get(student_id)
        if result is not None and result.status in stats:
            stats[result.status] += 1
    return stats


def weekly_schedule(groups, personal_lectures=None):
    """Merge group sessions and personal lectures into a per-day timetable.

    Every day of the week is present in the result.  Entries are ordered by
    their ``HH:MM`` string, which sorts correctly because times are stored
    zero-padded on a 24-hour clock.
    """
    week = {day: [] for day in DAYS}

    for group in groups or []:
        for entry in group.schedule:
            if entry.day not in week:
                continue
            week[entry.day].append({
                'id': entry.id,
                'kind': 'group',
                'groupId': group.id,
                'subject': group.name,
                'time': entry.time,
                'displayTime': format_time_12h(entry.time),
                'location': group.location,
                'type': 'physical',
                'postponed': False,
            })

    for lecture in personal_lectures or []:
        if lecture.day not in week:
            continue
        week[lecture.day].append({
            'id': lecture.id,
            'kind': 'lecture',
            'groupId': None,
            'subject': lecture.subject,
            'time': lecture.time,
            'displayTime': format_time_12h(lecture.time),
            'location': lecture.location,
            'type': lecture.type,
            'postponed': lecture.postponed,
        })

    for entries in week.values():
        entries.sort(key=lambda e: e['time'])
    return week


def search_students(group, query):
    """Roster entries whose display name contains ``query``."""
    if group is None:
        return []
    query = (query or '').strip()
    if not query:
        return list(group.students)
    return [s for s in group.students if query in s.name]


def format_time_12h(time_str):
    """Render ``HH:MM`` as a 12-hour clock with the Arabic ص/م suffix."""
    if not time_str:
        return ''
    hours, minutes = time_str.split(':')
    h = int(hours)
    suffix = 'م' if h >= 12 else 'ص'
    h = h % 12 or 12
    return f'{h}:{minutes} {suffix}'


def group_schedule_reminders(groups):
    """Schedule items in the shape the reminder worker consumes."""
    items = []
    for group in groups or []:
        for entry in group.schedule:
            items.append({'day': entry.day, 'time': entry.time, 'groupName': group.name})
    return items
