from datetime import date

import pytest

from msu_backend.schemas.notifications import ExamEvent
from msu_backend.services.exam_reminder_service import (
    REMINDER_TITLE,
    format_exam_reminder,
    select_exams_to_remind,
    send_exam_reminders,
)

from tests.factories import FakeNotifier

TODAY = date(2025, 6, 10)


def exam(exam_date, subject="Алгебра", faculty="pmi", course=2):
    return ExamEvent(
        id=f"{faculty}_{course}_{exam_date}_2", group="ПМИ, 2 курс", subject=subject, type="Экзамен",
        date=exam_date, time="11:10", room="205", faculty=faculty, course=course,
    )


class TestSelectExams:
    def test_only_tomorrow_and_day_after(self):
        exams = [exam("2025-06-10"), exam("2025-06-11"), exam("2025-06-12"), exam("2025-06-13")]

        selected = select_exams_to_remind(exams, TODAY)

        assert [(e.date, days) for e, days in selected] == [("2025-06-11", 1), ("2025-06-12", 2)]

    def test_malformed_date_is_skipped(self):
        assert select_exams_to_remind([exam("soon")], TODAY) == []

    def test_message_text(self):
        text = format_exam_reminder(exam("2025-06-11"), 1)

        assert text == 'Завтра состоится "Экзамен" по предмету "Алгебра". Начало в 11:10. Аудитория 205.'
        assert format_exam_reminder(exam("2025-06-12"), 2).startswith("Послезавтра")


class TestSendExamReminders:
    @pytest.mark.asyncio
    async def test_reminders_go_to_group_with_history(self, fake_store, fake_notifier):
        fake_store.exams = [exam("2025-06-11"), exam("2025-06-12", subject="История", faculty="geo", course=1)]

        sent = await send_exam_reminders(fake_store, fake_notifier, TODAY)

        assert sent == 2
        assert [call[:3] for call in fake_notifier.group_calls] == [
            ("pmi", 2, REMINDER_TITLE),
            ("geo", 1, REMINDER_TITLE),
        ]

    @pytest.mark.asyncio
    async def test_delivery_failure_does_not_stop_the_job(self, fake_store):
        fake_store.exams = [exam("2025-06-11")]

        sent = await send_exam_reminders(fake_store, FakeNotifier(fail=True), TODAY)

        assert sent == 1
