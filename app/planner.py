"""
Personal planner: a student's own lectures and homework.

Planner items belong to one device and are never written to Firestore.
They live in a small key/value store of JSON files under
``PLANNER_STORAGE_DIR``, two keys per handle (``<handle>:lectures`` and
``<handle>:homework``), read when the session starts and rewritten on
every change.
"""

import json
import logging
import os
import tempfile
from datetime import date
from pathlib import Path

from flask import current_app

from app.errors import ValidationError
from app.firestore_models import StudentHomework, StudentLecture
from app.validators import (
    require_text, validate_day, validate_lecture_type, validate_time,
)

logger = logging.getLogger(__name__)


class LocalStore:
    """JSON-file key/value store scoped to this installation."""

    def __init__(self, directory):
        self.directory = Path(directory)

    def _path(self, key):
        safe = key.replace(':', '__').replace(os.sep, '_')
        return self.directory / f'{safe}.json'

    def read(self, key):
        path = self._path(key)
        if not path.exists():
            return []
        try:
            return json.loads(path.read_text(encoding='utf-8'))
        except (OSError, ValueError):
            logger.exception('Planner key %s unreadable, starting empty', key)
            return []

    def write(self, key, items):
        self.directory.mkdir(parents=True, exist_ok=True)
        # A failed dump leaves the existing file untouched
        fd, tmp_path = tempfile.mkstemp(dir=self.directory, suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(items, f, ensure_ascii=False)
            os.replace(tmp_path, self._path(key))
        except Exception:
            os.unlink(tmp_path)
            raise


class Planner:
    """Lectures and homework of one student handle."""

    def __init__(self, store, handle):
        self.store = store
        self.handle = handle.lower()
        self.lectures = [StudentLecture.from_dict(d) for d in store.read(self._key('lectures'))]
        self.homework = [StudentHomework.from_dict(d) for d in store.read(self._key('homework'))]

    def _key(self, kind):
        return f'{self.handle}:{kind}'

    def _save_lectures(self):
        self.store.write(self._key('lectures'), [lec.to_dict() for lec in self.lectures])

    def _save_homework(self):
        self.store.write(self._key('homework'), [h.to_dict() for h in self.homework])

    def _lecture(self, lecture_id):
        for lecture in self.lectures:
            if lecture.id == lecture_id:
                return lecture
        raise ValidationError('المحاضرة غير موجودة')

    def _homework_item(self, homework_id):
        for item in self.homework:
            if item.id == homework_id:
                return item
        raise ValidationError('الواجب غير موجود')

    # -- Lectures ------------------------------------------------------------

    def add_lecture(self, subject, day, time, lecture_type='physical', location=None):
        lecture = StudentLecture(
            subject=require_text(subject, 'يرجى اختيار المادة'),
            day=validate_day(day),
            time=validate_time(time),
            type=validate_lecture_type(lecture_type),
            location=(location or '').strip() or None,
        )
        if lecture.type == 'online':
            lecture.location = None
        self.lectures.append(lecture)
        self._save_lectures()
        return lecture

    def update_lecture(self, lecture_id, subject=None, day=None, time=None,
                       lecture_type=None, location=None):
        lecture = self._lecture(lecture_id)
        if subject is not None:
            lecture.subject = require_text(subject, 'يرجى اختيار المادة')
        if day is not None:
            lecture.day = validate_day(day)
        if time is not None:
            lecture.time = validate_time(time)
        if lecture_type is not None:
            lecture.type = validate_lecture_type(lecture_type)
        if location is not None:
            lecture.location = location.strip() or None
        if lecture.type == 'online':
            lecture.location = None
        self._save_lectures()
        return lecture

    def toggle_postponed(self, lecture_id):
        lecture = self._lecture(lecture_id)
        lecture.postponed = not lecture.postponed
        self._save_lectures()
        return lecture

    def delete_lecture(self, lecture_id):
        self._lecture(lecture_id)
        self.lectures = [lec for lec in self.lectures if lec.id != lecture_id]
        self._save_lectures()

    # -- Homework ------------------------------------------------------------

    def add_homework(self, subject, task):
        item = StudentHomework(
            subject=require_text(subject, 'يرجى اختيار المادة'),
            task=require_text(task, 'يرجى كتابة الواجب'),
            created_at=date.today().isoformat(),
        )
        self.homework.append(item)
        self._save_homework()
        return item

    def toggle_homework(self, homework_id):
        item = self._homework_item(homework_id)
        item.completed = not item.completed
        self._save_homework()
        return item

    def delete_homework(self, homework_id):
        self._homework_item(homework_id)
        self.homework = [h for h in self.homework if h.id != homework_id]
        self._save_homework()

    def to_dict(self):
        return {
            'lectures': [lec.to_dict() for lec in self.lectures],
            'homework': [h.to_dict() for h in self.homework],
        }


def get_planner(handle):
    """Planner of ``handle`` backed by the configured storage directory."""
    store = LocalStore(current_app.config['PLANNER_STORAGE_DIR'])
    return Planner(store, handle)
