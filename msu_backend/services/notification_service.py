# msu_backend/services/notification_service.py

import asyncio
import logging
from typing import Coroutine, Set

from msu_backend.core.queue import push_notification_to_queue
from msu_backend.crud.crud_user import get_user_uids_by_group, save_history_for_users
from msu_backend.schemas.notifications import PushNotification

logger = logging.getLogger(__name__)

# Хранилище ссылок на фоновые задачи, чтобы их не собрал сборщик мусора
_background_tasks: Set[asyncio.Task] = set()


async def _guarded(coro: Coroutine, description: str) -> None:
    try:
        await coro
    except Exception as e:
        logger.error(f"Background task '{description}' failed: {e}", exc_info=True)


def spawn_background(coro: Coroutine, description: str) -> asyncio.Task:
    """
    Запускает корутину отдельной задачей и не ждет ее.
    Ошибка задачи только логируется и не влияет на вызывающий код.
    """
    task = asyncio.create_task(_guarded(coro, description), name=description)
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


class NotificationService:
    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def notify_topic(self, topic: str, title: str, body: str) -> None:
        """Ставит push-уведомление в очередь доставки. Используется, когда история не нужна."""
        await push_notification_to_queue(PushNotification(topic=topic, title=title, body=body))
        logger.info(f"Queued notification to topic '{topic}': {title}")

    async def notify_group_with_history(self, faculty_code: str, course: int, title: str, body: str) -> None:
        """Push в топик группы + запись в историю каждого студента группы (в фоне)."""
        await self.notify_topic(f"{faculty_code}_{course}", title, body)
        spawn_background(
            self._save_history_to_group(faculty_code, course, title, body),
            f"history:{faculty_code}_{course}",
        )

    async def _save_history_to_group(self, faculty_code: str, course: int, title: str, body: str) -> None:
        async with self.session_factory() as session:
            uids = await get_user_uids_by_group(session, faculty_code=faculty_code, course=course)
            if not uids:
                logger.warning(f"No users found for group {faculty_code}_{course} to save history.")
                return
            await save_history_for_users(session, uids=uids, title=title, body=body)
        logger.info(f"Saved notification history for {len(uids)} users in {faculty_code}_{course}")
