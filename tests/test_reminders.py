"""Tests for lecture reminder scheduling."""

from __future__ import annotations

from datetime import datetime

from app.reminders import (
    REMINDER_TITLE, SCHEDULE_NOTIFICATIONS, ReminderWorker, due_reminders, next_occurrence,
)

# 2024-10-06 is a Sunday
SUNDAY_1530 = datetime(2024, 10, 6, 15, 30)
PHYSICS = {'day': 'الأحد', 'time': '16:00', 'groupName': 'فيزياء'}


class TestNextOccurrence:
    def test_later_today(self):
        assert next_occurrence('الأحد', '16:00', SUNDAY_1530) == datetime(2024, 10, 6, 16, 0)

    def test_earlier_today_rolls_to_next_week(self):
        assert next_occurrence('الأحد', '09:00', SUNDAY_1530) == datetime(2024, 10, 13, 9, 0)

    def test_later_in_week(self):
        assert next_occurrence('الثلاثاء', '10:00', SUNDAY_1530) == datetime(2024, 10, 8, 10, 0)

    def test_saturday_before_sunday(self):
        saturday = datetime(2024, 10, 5, 23, 0)
        assert next_occurrence('الأحد', '08:00', saturday) == datetime(2024, 10, 6, 8, 0)


class TestDueReminders:
    def test_fires_inside_window(self):
        due = due_reminders([PHYSICS], 30, SUNDAY_1530)
        assert len(due) == 1
        assert due[0]['title'] == REMINDER_TITLE
        assert due[0]['body'] == 'تبدأ محاضرة فيزياء خلال 30 دقيقة'

    def test_window_is_one_minute(self):
        assert due_reminders([PHYSICS], 30, datetime(2024, 10, 6, 15, 29)) == []
        assert due_reminders([PHYSICS], 30, datetime(2024, 10, 6, 15, 30, 30)) != []
        assert due_reminders([PHYSICS], 30, datetime(2024, 10, 6, 15, 31)) == []

    def test_bad_items_skipped(self):
        schedules = [{'day': 'Sunday', 'time': '16:00'}, {'day': 'الأحد', 'time': ''}, PHYSICS]
        assert len(due_reminders(schedules, 30, SUNDAY_1530)) == 1


class TestReminderWorker:
    def test_registration_checks_immediately(self):
        delivered = []
        worker = ReminderWorker(lambda cid, r: delivered.append((cid, r)))
        message = {'type': SCHEDULE_NOTIFICATIONS, 'schedules': [PHYSICS], 'minutesBefore': 30}
        assert worker.handle_message('sid-1', message, now=SUNDAY_1530) is True
        assert worker.registered('sid-1')
        assert delivered[0][0] == 'sid-1'

    def test_other_messages_ignored(self):
        worker = ReminderWorker(lambda cid, r: None)
        assert worker.handle_message('sid-1', {'type': 'PING'}) is False
        assert worker.handle_message('sid-1', None) is False
        assert not worker.registered('sid-1')

    def test_tick_uses_latest_registration(self):
        delivered = []
        worker = ReminderWorker(lambda cid, r: delivered.append(r))
        worker.handle_message('sid-1', {'type': SCHEDULE_NOTIFICATIONS, 'schedules': [],
                                        'minutesBefore': 30}, now=SUNDAY_1530)
        worker.handle_message('sid-1', {'type': SCHEDULE_NOTIFICATIONS, 'schedules': [PHYSICS],
                                        'minutesBefore': 15}, now=datetime(2024, 10, 6, 10, 0))
        worker.tick(now=datetime(2024, 10, 6, 15, 45))
        assert [r['body'] for r in delivered] == ['تبدأ محاضرة فيزياء خلال 15 دقيقة']

    def test_unregister_stops_delivery(self):
        delivered = []
        worker = ReminderWorker(lambda cid, r: delivered.append(r))
        worker.handle_message('sid-1', {'type': SCHEDULE_NOTIFICATIONS, 'schedules': [PHYSICS],
                                        'minutesBefore': 30}, now=datetime(2024, 10, 6, 10, 0))
        worker.unregister('sid-1')
        worker.tick(now=SUNDAY_1530)
        assert delivered == []

    def test_delivery_failure_does_not_stop_other_clients(self):
        delivered = []

        def deliver(cid, reminder):
            if cid == 'broken':
                raise RuntimeError('socket gone')
            delivered.append(cid)

        worker = ReminderWorker(deliver)
        message = {'type': SCHEDULE_NOTIFICATIONS, 'schedules': [PHYSICS], 'minutesBefore': 30}
        early = datetime(2024, 10, 6, 10, 0)
        worker.handle_message('broken', message, now=early)
        worker.handle_message('ok', message, now=early)
        worker.tick(now=SUNDAY_1530)
        assert delivered == ['ok']

    def test_start_and_shutdown(self):
        worker = ReminderWorker(lambda cid, r: None, interval_seconds=60)
        scheduler = worker.start()
        try:
            assert scheduler.get_job('lecture_reminders') is not None
            assert worker.start() is scheduler
        finally:
            worker.shutdown()
