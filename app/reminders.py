"""
Background delivery of lecture reminders.

Clients post ``{type: SCHEDULE_NOTIFICATIONS, schedules, minutesBefore}``
over Socket.IO.  An APScheduler interval job (every
``REMINDER_INTERVAL_SECONDS``, 60 by default) computes each schedule's next
occurrence and raises a reminder when the start time falls inside the
one-minute window that ends ``minutesBefore`` minutes from now.
"""

import logging
import threading
from datetime import datetime, timedelta

from apscheduler.schedulers.background import BackgroundScheduler

from app.firestore_models import DAYS

logger = logging.getLogger(__name__)

SCHEDULE_NOTIFICATIONS = 'SCHEDULE_NOTIFICATIONS'
REMINDER_TITLE = 'تذكير بموعد المحاضرة'
WINDOW_SECONDS = 60


def next_occurrence(day, time, now):
    """The next datetime at or after ``now`` falling on ``day`` at ``time``."""
    day_index = DAYS.index(day)
    hours, minutes = (int(p) for p in time.split(':'))
    target = now.replace(hour=hours, minute=minutes, second=0, microsecond=0)
    # DAYS starts on Sunday; datetime.weekday() starts on Monday
    current_index = (now.weekday() + 1) % 7
    day_diff = day_index - current_index
    if day_diff < 0 or (day_diff == 0 and target < now):
        day_diff += 7
    return target + timedelta(days=day_diff)


def due_reminders(schedules, minutes_before, now):
    """Reminders whose lecture starts within the alert window."""
    alert_seconds = minutes_before * 60
    due = []
    for schedule in schedules or []:
        day = schedule.get('day')
        time = schedule.get('time')
        if day not in DAYS or not time:
            continue
        try:
            start = next_occurrence(day, time, now)
        except ValueError:
            continue
        diff = (start - now).total_seconds()
        if alert_seconds - WINDOW_SECONDS < diff <= alert_seconds:
            name = schedule.get('groupName') or schedule.get('subject') or ''
            due.append({
                'title': REMINDER_TITLE,
                'body': f'تبدأ محاضرة {name} خلال {minutes_before} دقيقة',
                'groupName': name,
                'day': day,
                'time': time,
            })
    return due


class ReminderWorker:
    """Keeps the latest schedule list per client and checks it periodically.

    ``deliver(client_id, reminder)`` is called for every due reminder; a
    client that has gone away simply never receives it.
    """

    def __init__(self, deliver, interval_seconds=60, default_minutes_before=30):
        self.deliver = deliver
        self.interval_seconds = interval_seconds
        self.default_minutes_before = default_minutes_before
        self._registrations = {}
        self._lock = threading.Lock()
        self._scheduler = None

    def handle_message(self, client_id, message, now=None):
        if not message or message.get('type') != SCHEDULE_NOTIFICATIONS:
            return False
        try:
            minutes_before = int(message.get('minutesBefore', self.default_minutes_before))
        except (TypeError, ValueError):
            return False
        schedules = list(message.get('schedules') or [])
        with self._lock:
            self._registrations[client_id] = (schedules, minutes_before)
        logger.info('Client %s registered %d schedules (%d min before)',
                    client_id, len(schedules), minutes_before)
        self._check(client_id, schedules, minutes_before, now or datetime.now())
        return True

    def unregister(self, client_id):
        with self._lock:
            self._registrations.pop(client_id, None)

    def registered(self, client_id):
        with self._lock:
            return client_id in self._registrations

    def _check(self, client_id, schedules, minutes_before, now):
        for reminder in due_reminders(schedules, minutes_before, now):
            self.deliver(client_id, reminder)

    def tick(self, now=None):
        now = now or datetime.now()
        with self._lock:
            registrations = list(self._registrations.items())
        for client_id, (schedules, minutes_before) in registrations:
            try:
                self._check(client_id, schedules, minutes_before, now)
            except Exception:
                logger.exception('Reminder check for client %s failed', client_id)

    def start(self):
        if self._scheduler is not None:
            return self._scheduler
        self._scheduler = BackgroundScheduler(daemon=True)
        self._scheduler.add_job(
            func=self.tick,
            trigger='interval',
            seconds=self.interval_seconds,
            id='lecture_reminders',
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info('Reminder worker started (every %ds)', self.interval_seconds)
        return self._scheduler

    def shutdown(self):
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
