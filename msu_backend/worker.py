# msu_backend/worker.py

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from msu_backend.core.config import settings
from msu_backend.core.source_api import api_client
from msu_backend.crud.crud_schedule import ScheduleStore
from msu_backend.db.session import AsyncSessionLocal
from msu_backend.services.exam_reminder_service import send_exam_reminders
from msu_backend.services.notification_service import NotificationService
from msu_backend.services.sync_service import SyncService, today_in_timezone

logger = logging.getLogger(__name__)

# --- Сборка сервисов ---

schedule_store = ScheduleStore(AsyncSessionLocal)
notification_service = NotificationService(AsyncSessionLocal)
sync_service = SyncService(fetcher=api_client, store=schedule_store, notifier=notification_service)

# Планировщик в часовом поясе университета
scheduler = AsyncIOScheduler(timezone=settings.TIMEZONE)


# --- Определения задач (Jobs) ---

async def run_schedule_sync():
    """Проверяет файлы расписания и, если они изменились, запускает полный цикл обновления."""
    logger.debug("--- [JOB START] Schedule Sync ---")
    try:
        started = await sync_service.run_cycle()
        if started:
            logger.debug("--- [JOB SUCCESS] Schedule Sync ---")
    except Exception as e:
        logger.error(f"--- [JOB FAILED] Schedule Sync: {e} ---", exc_info=True)


async def run_exam_reminders():
    """Напоминания об экзаменах на завтра и послезавтра."""
    logger.info("--- [JOB START] Exam Reminders ---")
    try:
        sent = await send_exam_reminders(schedule_store, notification_service, today_in_timezone())
        logger.info(f"--- [JOB SUCCESS] Exam Reminders: {sent} sent ---")
    except Exception as e:
        logger.error(f"--- [JOB FAILED] Exam Reminders: {e} ---", exc_info=True)


# --- Добавление задач в планировщик ---

# 1. Днем файлы меняются часто - проверяем каждые несколько секунд
scheduler.add_job(
    run_schedule_sync, 'cron', second=f"*/{settings.ACTIVE_POLL_SECONDS}", hour=settings.ACTIVE_HOURS,
    id='active_schedule_sync', name='Проверка расписания (активные часы)',
    max_instances=1, coalesce=True
)
# 2. Ночью - раз в несколько минут
scheduler.add_job(
    run_schedule_sync, 'cron', minute=f"*/{settings.PASSIVE_POLL_MINUTES}", hour=settings.PASSIVE_HOURS,
    id='passive_schedule_sync', name='Проверка расписания (пассивные часы)',
    max_instances=1, coalesce=True
)
# 3. Напоминания об экзаменах (ежедневно утром)
scheduler.add_job(
    run_exam_reminders, 'cron', hour=settings.EXAM_REMINDER_HOUR, minute=0, id='exam_reminders_cron',
    name='Напоминания об экзаменах'
)

logger.info("Scheduler configured (active/passive schedule sync, exam reminders).")
