from flask_wtf import FlaskForm
from wtforms import StringField, PasswordField, TextAreaField, SelectField, IntegerField
from wtforms.validators import DataRequired, InputRequired, Length, Optional, Regexp
from wtforms.validators import ValidationError as WTFormsValidationError

from app.errors import ValidationError
from app.firestore_models import (
    ATTENDANCE_STATUSES, DAYS, EXAM_TYPES, LECTURE_TYPES, ROLES,
)
from app.validators import HANDLE_MAX_LENGTH, HANDLE_MIN_LENGTH, TIME_RE, DATE_RE


def _handle_filter(value):
    return value.strip().lower() if isinstance(value, str) else value


def _strip_filter(value):
    return value.strip() if isinstance(value, str) else value


HANDLE_CHARSET = Regexp(r'^[a-z0-9_]+$', message='اسم المستخدم يقبل الأحرف الإنجليزية الصغيرة والأرقام و _ فقط')
TIME_FORMAT = Regexp(TIME_RE, message='الوقت يجب أن يكون بصيغة HH:MM')
DATE_FORMAT = Regexp(DATE_RE, message='التاريخ يجب أن يكون بصيغة YYYY-MM-DD')


class WholeNumberField(IntegerField):
    """IntegerField that rejects infinite JSON numbers instead of overflowing."""

    def process_formdata(self, valuelist):
        try:
            super().process_formdata(valuelist)
        except OverflowError as exc:
            self.data = None
            raise WTFormsValidationError('يرجى إدخال رقم صحيح') from exc


def validate_or_raise(form):
    """Validate a submitted form, raising ValidationError with the first message."""
    if form.validate_on_submit():
        return form
    for errors in form.errors.values():
        if errors:
            raise ValidationError(errors[0])
    raise ValidationError()


class SignUpForm(FlaskForm):
    name = StringField('الاسم الكامل', filters=[_strip_filter], validators=[DataRequired(message='يرجى كتابة الاسم الكامل'), Length(max=120)])
    username = StringField('اسم المستخدم', filters=[_handle_filter], validators=[
        DataRequired(message='يرجى كتابة اسم المستخدم'),
        Length(min=HANDLE_MIN_LENGTH, max=HANDLE_MAX_LENGTH,
               message=f'اسم المستخدم يجب أن يكون بين {HANDLE_MIN_LENGTH} و {HANDLE_MAX_LENGTH} حرفاً'),
        HANDLE_CHARSET,
    ])
    password = PasswordField('كلمة المرور', validators=[DataRequired(message='يرجى كتابة كلمة المرور'), Length(min=6, message='كلمة المرور يجب ألا تقل عن 6 أحرف')])
    role = SelectField('نوع الحساب', choices=[(r, r) for r in ROLES], validators=[Optional()], validate_choice=False)


class LoginForm(FlaskForm):
    username = StringField('اسم المستخدم', filters=[_handle_filter], validators=[DataRequired(message='يرجى كتابة اسم المستخدم وكلمة المرور'), HANDLE_CHARSET])
    password = PasswordField('كلمة المرور', validators=[DataRequired(message='يرجى كتابة اسم المستخدم وكلمة المرور')])


class GroupForm(FlaskForm):
    name = StringField('اسم المجموعة', filters=[_strip_filter], validators=[DataRequired(message='يرجى كتابة اسم المجموعة'), Length(max=120)])
    location = StringField('الموقع', filters=[_strip_filter], validators=[Optional(), Length(max=200)])
    phone = StringField('رقم الهاتف', filters=[_strip_filter], validators=[Optional(), Length(max=20)])


class StudentForm(FlaskForm):
    name = StringField('الاسم الكامل', filters=[_strip_filter], validators=[DataRequired(message='يرجى كتابة اسم الطالب'), Length(max=120)])
    username = StringField('يوزر الطالب', filters=[_handle_filter], validators=[DataRequired(message='يرجى كتابة يوزر الطالب'), HANDLE_CHARSET])


class StudentEditForm(FlaskForm):
    name = StringField('الاسم', filters=[_strip_filter], validators=[Optional(), Length(max=120)])
    notes = TextAreaField('ملاحظات', validators=[Optional(), Length(max=1000)])
    phone = StringField('رقم الهاتف', filters=[_strip_filter], validators=[Optional(), Length(max=20)])


class ScheduleEntryForm(FlaskForm):
    day = SelectField('اليوم', choices=[(d, d) for d in DAYS], validators=[DataRequired(message='يرجى اختيار اليوم')])
    time = StringField('الوقت', filters=[_strip_filter], validators=[DataRequired(message='يرجى اختيار الوقت'), TIME_FORMAT])


class ExamForm(FlaskForm):
    title = StringField('عنوان الامتحان', filters=[_strip_filter], validators=[DataRequired(message='يرجى كتابة عنوان الامتحان'), Length(max=200)])
    date = StringField('التاريخ', filters=[_strip_filter], validators=[DataRequired(message='يرجى اختيار التاريخ'), DATE_FORMAT])
    max_grade = WholeNumberField('الدرجة العظمى', validators=[InputRequired(message='يرجى كتابة الدرجة العظمى')])
    type = SelectField('النوع', choices=[(t, t) for t in EXAM_TYPES], default='daily', validators=[Optional()])


class GradeForm(FlaskForm):
    status = SelectField('الحضور', choices=[(s, s) for s in ATTENDANCE_STATUSES], validators=[DataRequired(message='يرجى اختيار حالة الحضور')])
    grade = WholeNumberField('الدرجة', validators=[Optional()])


class LectureForm(FlaskForm):
    subject = StringField('المادة', filters=[_strip_filter], validators=[DataRequired(message='يرجى اختيار المادة'), Length(max=100)])
    day = SelectField('اليوم', choices=[(d, d) for d in DAYS], validators=[DataRequired(message='يرجى اختيار اليوم')])
    time = StringField('الوقت', filters=[_strip_filter], validators=[DataRequired(message='يرجى اختيار الوقت'), TIME_FORMAT])
    type = SelectField('النوع', choices=[(t, t) for t in LECTURE_TYPES], default='physical', validators=[Optional()])
    location = StringField('المكان', filters=[_strip_filter], validators=[Optional(), Length(max=200)])


class HomeworkForm(FlaskForm):
    subject = StringField('المادة', filters=[_strip_filter], validators=[DataRequired(message='يرجى اختيار المادة'), Length(max=100)])
    task = TextAreaField('الواجب', filters=[_strip_filter], validators=[DataRequired(message='يرجى كتابة الواجب'), Length(max=500)])


class ProfileForm(FlaskForm):
    name = StringField('الاسم', filters=[_strip_filter], validators=[DataRequired(message='يرجى كتابة الاسم'), Length(max=120)])
