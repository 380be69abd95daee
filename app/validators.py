import re

from app.errors import ValidationError
from app.firestore_models import (
    DAYS, ATTENDANCE_STATUSES, EXAM_TYPES, LECTURE_TYPES, MAX_GRADE_CEILING,
)

HANDLE_RE = re.compile(r'^[a-z0-9_]+$')
TIME_RE = re.compile(r'^([01]\d|2[0-3]):[0-5]\d$')
DATE_RE = re.compile(r'^\d{4}-\d{2}-\d{2}$')

HANDLE_MIN_LENGTH = 4
HANDLE_MAX_LENGTH = 12


def normalize_handle(raw):
    return (raw or '').strip().lower()


def validate_handle(raw, check_length=False):
    """Return the normalized handle or raise ValidationError.

    Length bounds only apply when a new account is provisioned; existing
    handles are accepted at any length.
    """
    handle = normalize_handle(raw)
    if not handle:
        raise ValidationError('يرجى كتابة اسم المستخدم')
    if not HANDLE_RE.match(handle):
        raise ValidationError('اسم المستخدم يقبل الأحرف الإنجليزية الصغيرة والأرقام و _ فقط')
    if check_length and not HANDLE_MIN_LENGTH <= len(handle) <= HANDLE_MAX_LENGTH:
        raise ValidationError(
            f'اسم المستخدم يجب أن يكون بين {HANDLE_MIN_LENGTH} و {HANDLE_MAX_LENGTH} حرفاً'
        )
    return handle


def require_text(value, message):
    text = (value or '').strip()
    if not text:
        raise ValidationError(message)
    return text


def _to_int(value, message):
    if isinstance(value, bool):
        raise ValidationError(message)
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(message)


def clamp_max_grade(value):
    n = _to_int(value, 'الدرجة العظمى يجب أن تكون رقماً')
    return min(max(n, 0), MAX_GRADE_CEILING)


def clamp_grade(value, max_grade):
    n = _to_int(value, 'الدرجة يجب أن تكون رقماً')
    return min(max(n, 0), max_grade)


def validate_day(day):
    if day not in DAYS:
        raise ValidationError('يوم غير صالح')
    return day


def validate_time(value):
    time = (value or '').strip()
    if not TIME_RE.match(time):
        raise ValidationError('الوقت يجب أن يكون بصيغة HH:MM')
    return time


def validate_date(value):
    date = (value or '').strip()
    if not DATE_RE.match(date):
        raise ValidationError('التاريخ يجب أن يكون بصيغة YYYY-MM-DD')
    return date


def validate_status(status):
    if status not in ATTENDANCE_STATUSES:
        raise ValidationError('حالة حضور غير صالحة')
    return status


def validate_exam_type(exam_type):
    if exam_type not in EXAM_TYPES:
        raise ValidationError('نوع امتحان غير صالح')
    return exam_type


def validate_lecture_type(lecture_type):
    if lecture_type not in LECTURE_TYPES:
        raise ValidationError('نوع محاضرة غير صالح')
    return lecture_type
