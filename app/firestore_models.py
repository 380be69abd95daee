"""
Firestore document models using Python dataclasses.

Two top-level collections are modelled: ``users`` (one Account per
Firebase Auth UID) and ``groups`` (a teaching cohort with its roster,
schedule and exams embedded as arrays).  Each model includes:
  - A ``to_dict()`` instance method for serialization
  - A ``from_dict(data, ...)`` classmethod for deserialization
  - Sensible defaults for all fields

Stored field names keep the camelCase layout the group queries rely on
(``teacherUid``, ``studentUsernames``, ``maxGrade`` ...); attributes are
snake_case.

StudentLecture and StudentHomework are planner items that never reach
Firestore; they only serialize to the device-local planner store.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

ROLE_TEACHER = "teacher"
ROLE_STUDENT = "student"
ROLES = (ROLE_TEACHER, ROLE_STUDENT)

# Sunday first, matching the index used by the reminder worker
DAYS = ("الأحد", "الاثنين", "الثلاثاء", "الأربعاء", "الخميس", "الجمعة", "السبت")

SUBJECTS = (
    "كيمياء", "فيزياء", "أحياء", "اللغة العربية",
    "اللغة الانكليزية", "رياضيات", "التربية الاسلامية",
)

STATUS_PRESENT = "present"
STATUS_ABSENT = "absent"
STATUS_EXCUSED = "excused"
ATTENDANCE_STATUSES = (STATUS_PRESENT, STATUS_ABSENT, STATUS_EXCUSED)

EXAM_TYPES = ("daily", "semester")
LECTURE_TYPES = ("online", "physical")

MAX_GRADE_CEILING = 100


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _parse_datetime(value) -> Optional[datetime]:
    """Convert a value to datetime. Accepts datetime objects, ISO-format
    strings, and Firestore DatetimeWithNanoseconds objects."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        value = value.replace("Z", "+00:00")
        try:
            return datetime.fromisoformat(value)
        except (ValueError, TypeError):
            return None
    return None


def _now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex[:12]


# ===========================================================================
# 1. Account
# ===========================================================================

@dataclass
class Account:
    uid: Optional[str] = None          # Firebase Auth UID, also the document ID
    name: str = ""
    username: str = ""
    role: Optional[str] = None
    profile_image: Optional[str] = None
    profile_image_path: Optional[str] = None
    dark_mode: bool = False
    onboarded: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def is_teacher(self) -> bool:
        return self.role == ROLE_TEACHER

    def is_student(self) -> bool:
        return self.role == ROLE_STUDENT

    @property
    def initial(self) -> str:
        return self.name[0] if self.name else "?"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "username": self.username,
            "role": self.role,
            "profileImage": self.profile_image,
            "profileImagePath": self.profile_image_path,
            "darkMode": self.dark_mode,
            "onboarded": self.onboarded,
            "createdAt": self.created_at or _now(),
            "updatedAt": self.updated_at or _now(),
        }

    def to_public_dict(self) -> Dict[str, Any]:
        return {
            "uid": self.uid,
            "name": self.name,
            "username": self.username,
            "role": self.role,
            "profileImage": self.profile_image,
            "initial": self.initial,
            "darkMode": self.dark_mode,
            "onboarded": self.onboarded,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], uid: Optional[str] = None) -> Account:
        return cls(
            uid=uid or data.get("uid"),
            name=data.get("name", ""),
            username=data.get("username", ""),
            role=data.get("role"),
            profile_image=data.get("profileImage"),
            profile_image_path=data.get("profileImagePath"),
            dark_mode=data.get("darkMode", False),
            onboarded=data.get("onboarded", False),
            created_at=_parse_datetime(data.get("createdAt")),
            updated_at=_parse_datetime(data.get("updatedAt")),
        )


# ===========================================================================
# 2. Embedded group records
# ===========================================================================

@dataclass
class Student:
    id: str = field(default_factory=new_id)
    name: str = ""
    username: str = ""
    paid: bool = False
    starred: bool = False
    notes: str = ""
    phone: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "id": self.id,
            "name": self.name,
            "username": self.username,
            "paid": self.paid,
            "starred": self.starred,
            "notes": self.notes,
        }
        if self.phone:
            d["phone"] = self.phone
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Student:
        return cls(
            id=data.get("id") or new_id(),
            name=data.get("name", ""),
            username=data.get("username", ""),
            paid=data.get("paid", False),
            starred=data.get("starred", False),
            notes=data.get("notes") or "",
            phone=data.get("phone"),
        )


@dataclass
class ScheduleEntry:
    id: str = field(default_factory=new_id)
    day: str = DAYS[0]
    time: str = "00:00"

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "day": self.day, "time": self.time}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ScheduleEntry:
        return cls(
            id=data.get("id") or new_id(),
            day=data.get("day", DAYS[0]),
            time=data.get("time", "00:00"),
        )


@dataclass
class ExamResult:
    student_id: str = ""
    grade: int = 0
    status: str = STATUS_PRESENT
    notified: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "studentId": self.student_id,
            "grade": self.grade,
            "status": self.status,
            "notified": self.notified,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ExamResult:
        return cls(
            student_id=data.get("studentId", ""),
            grade=int(data.get("grade", 0) or 0),
            status=data.get("status", STATUS_PRESENT),
            notified=data.get("notified", False),
        )


@dataclass
class Exam:
    id: str = field(default_factory=new_id)
    title: str = ""
    date: str = ""
    max_grade: int = MAX_GRADE_CEILING
    type: str = "daily"
    results: Dict[str, ExamResult] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "date": self.date,
            "maxGrade": self.max_grade,
            "type": self.type,
            "results": {sid: r.to_dict() for sid, r in self.results.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Exam:
        results = {}
        for sid, raw in (data.get("results") or {}).items():
            result = ExamResult.from_dict(raw)
            if not result.student_id:
                result.student_id = sid
            results[sid] = result
        return cls(
            id=data.get("id") or new_id(),
            title=data.get("title", ""),
            date=data.get("date", ""),
            max_grade=int(data.get("maxGrade", MAX_GRADE_CEILING)),
            type=data.get("type", "daily"),
            results=results,
        )


# ===========================================================================
# 3. Group
# ===========================================================================

@dataclass
class Group:
    id: Optional[str] = None
    name: str = ""
    location: str = ""
    teacher_uid: Optional[str] = None
    phone: Optional[str] = None
    schedule: List[ScheduleEntry] = field(default_factory=list)
    students: List[Student] = field(default_factory=list)
    exams: List[Exam] = field(default_factory=list)
    revision: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def student_usernames(self) -> List[str]:
        """Membership index derived from the roster, first occurrence order."""
        seen = []
        for s in self.students:
            handle = s.username.lower()
            if handle and handle not in seen:
                seen.append(handle)
        return seen

    def get_student(self, student_id: str) -> Optional[Student]:
        for s in self.students:
            if s.id == student_id:
                return s
        return None

    def get_exam(self, exam_id: str) -> Optional[Exam]:
        for e in self.exams:
            if e.id == exam_id:
                return e
        return None

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "name": self.name,
            "location": self.location,
            "teacherUid": self.teacher_uid,
            "schedule": [e.to_dict() for e in self.schedule],
            "students": [s.to_dict() for s in self.students],
            "exams": [e.to_dict() for e in self.exams],
            "studentUsernames": self.student_usernames,
            "revision": self.revision,
            "createdAt": self.created_at or _now(),
            "updatedAt": self.updated_at or _now(),
        }
        if self.phone:
            d["phone"] = self.phone
        return d

    def to_public_dict(self) -> Dict[str, Any]:
        d = self.to_dict()
        d["id"] = self.id
        d.pop("createdAt")
        d.pop("updatedAt")
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> Group:
        return cls(
            id=doc_id or data.get("id"),
            name=data.get("name", ""),
            location=data.get("location", ""),
            teacher_uid=data.get("teacherUid"),
            phone=data.get("phone"),
            schedule=[ScheduleEntry.from_dict(e) for e in data.get("schedule") or []],
            students=[Student.from_dict(s) for s in data.get("students") or []],
            exams=[Exam.from_dict(e) for e in data.get("exams") or []],
            revision=int(data.get("revision", 0) or 0),
            created_at=_parse_datetime(data.get("createdAt")),
            updated_at=_parse_datetime(data.get("updatedAt")),
        )


# ===========================================================================
# 4. Device-local planner items
# ===========================================================================

@dataclass
class StudentLecture:
    id: str = field(default_factory=new_id)
    subject: str = ""
    day: str = DAYS[0]
    time: str = "00:00"
    type: str = "physical"
    location: Optional[str] = None
    postponed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "subject": self.subject,
            "day": self.day,
            "time": self.time,
            "type": self.type,
            "location": self.location,
            "postponed": self.postponed,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> StudentLecture:
        return cls(
            id=data.get("id") or new_id(),
            subject=data.get("subject", ""),
            day=data.get("day", DAYS[0]),
            time=data.get("time", "00:00"),
            type=data.get("type", "physical"),
            location=data.get("location"),
            postponed=data.get("postponed", False),
        )


@dataclass
class StudentHomework:
    id: str = field(default_factory=new_id)
    subject: str = ""
    task: str = ""
    completed: bool = False
    created_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "subject": self.subject,
            "task": self.task,
            "completed": self.completed,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> StudentHomework:
        return cls(
            id=data.get("id") or new_id(),
            subject=data.get("subject", ""),
            task=data.get("task", ""),
            completed=data.get("completed", False),
            created_at=data.get("createdAt", ""),
        )
