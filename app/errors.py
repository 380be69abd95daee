"""
Error taxonomy shared by the mutation, identity and session layers.

Every error carries a user-facing (Arabic) message and the HTTP status the
JSON API answers with.  Routes are the final catchers: they turn these into
``{'success': False, 'error': ...}`` payloads.
"""


class PlatformError(Exception):
    status_code = 400
    message = 'حدث خطأ غير متوقع، يرجى المحاولة ثانية'
    retryable = False

    def __init__(self, message=None):
        super().__init__(message or self.message)
        if message:
            self.message = message

    def to_dict(self):
        return {
            'success': False,
            'error': self.message,
            'retryable': self.retryable,
        }


class ValidationError(PlatformError):
    status_code = 400
    message = 'يرجى التحقق من البيانات المدخلة'


class StudentNotFoundError(PlatformError):
    status_code = 404
    message = 'هذا الطالب غير مسجل في المنصة'


class DuplicateStudentError(PlatformError):
    status_code = 409
    message = 'هذا الطالب مضاف مسبقاً إلى المجموعة'


class GroupNotFoundError(PlatformError):
    status_code = 404
    message = 'المجموعة غير موجودة'


class ExamNotFoundError(PlatformError):
    status_code = 404
    message = 'الامتحان غير موجود'


class ScheduleEntryNotFoundError(PlatformError):
    status_code = 404
    message = 'الموعد غير موجود'


class GroupConflictError(PlatformError):
    """The group changed since the snapshot the caller acted on."""

    status_code = 409
    message = 'تم تعديل المجموعة من جهاز آخر، يرجى إعادة المحاولة'
    retryable = True

    def __init__(self, group_id, expected_revision, actual_revision):
        super().__init__()
        self.group_id = group_id
        self.expected_revision = expected_revision
        self.actual_revision = actual_revision

    def to_dict(self):
        d = super().to_dict()
        d['revision'] = self.actual_revision
        return d


class AuthError(PlatformError):
    status_code = 401
    message = 'بيانات الدخول غير صحيحة، تأكد من اليوزر نيم والباسورد.'

    def __init__(self, message=None, status_code=None):
        super().__init__(message)
        if status_code:
            self.status_code = status_code


class PermissionDeniedError(PlatformError):
    status_code = 403
    message = 'ليس لديك صلاحية الوصول'


class InvalidTransitionError(PlatformError):
    status_code = 409
    message = 'لا يمكن تنفيذ هذا الإجراء في الحالة الحالية'


class BackendError(PlatformError):
    status_code = 503
    message = 'خطأ في الاتصال بقاعدة البيانات'
