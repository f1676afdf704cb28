# msu_backend/core/queue.py
import redis.asyncio as redis
import json
from msu_backend.schemas.notifications import PushNotification
from msu_backend.core.config import settings

redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)

PUSH_NOTIFICATIONS_QUEUE = "push_notifications_queue"
CONTROL_QUEUE = "control_queue"

async def push_notification_to_queue(notification: PushNotification):
    """Сериализует push-уведомление и добавляет его в очередь Redis для сервиса доставки."""
    await redis_client.rpush(PUSH_NOTIFICATIONS_QUEUE, notification.model_dump_json())


async def push_control_command(command: str):
    """Добавляет управляющую команду для процесса воркера."""
    task = {"type": "control", "command": command}
    await redis_client.rpush(CONTROL_QUEUE, json.dumps(task))
