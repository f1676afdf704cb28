# msu_backend/services/exam_reminder_service.py

import logging
from datetime import date, timedelta
from typing import Iterable, List, Tuple

from msu_backend.schemas.notifications import ExamEvent

logger = logging.getLogger(__name__)

REMINDER_TITLE = "Напоминание об экзамене"
# За сколько дней напоминаем и как это называть
REMINDER_DAYS = {1: "Завтра", 2: "Послезавтра"}


def select_exams_to_remind(exams: Iterable[ExamEvent], today: date) -> List[Tuple[ExamEvent, int]]:
    """Экзамены, до которых остался 1 или 2 дня, вместе с числом оставшихся дней."""
    selected = []
    for exam in exams:
        try:
            exam_date = date.fromisoformat(exam.date)
        except ValueError:
            logger.warning(f"Exam {exam.id} has malformed date '{exam.date}'. Skipping.")
            continue
        days_until = (exam_date - today).days
        if days_until in REMINDER_DAYS:
            selected.append((exam, days_until))
    return selected


def format_exam_reminder(exam: ExamEvent, days_until: int) -> str:
    when = REMINDER_DAYS.get(days_until, f"Через {days_until} дн.")
    return (
        f"{when} состоится \"{exam.type}\" по предмету \"{exam.subject}\". "
        f"Начало в {exam.time}. Аудитория {exam.room}."
    )


async def send_exam_reminders(store, notifier, today: date) -> int:
    """Рассылает напоминания по экзаменам на завтра и послезавтра. Возвращает число напоминаний."""
    exams = await store.get_exams_between(today + timedelta(days=1), today + timedelta(days=2))
    logger.info(f"Found {len(exams)} scheduled exams in the reminder window.")

    reminders = select_exams_to_remind(exams, today)
    for exam, days_until in reminders:
        logger.info(f"Sending exam reminder for group '{exam.group}' ({days_until} days before): {exam.subject}")
        try:
            await notifier.notify_group_with_history(
                exam.faculty, exam.course, REMINDER_TITLE, format_exam_reminder(exam, days_until)
            )
        except Exception as e:
            logger.error(f"Failed to send exam reminder {exam.id}: {e}", exc_info=True)
    return len(reminders)
