# worker_main.py

import asyncio
import json
import logging
import signal

import redis.asyncio as redis

# Импортируем компоненты нашей системы
from msu_backend.core.config import settings
from msu_backend.core.queue import CONTROL_QUEUE
from msu_backend.core.source_api import api_client
from msu_backend.worker import scheduler, sync_service, run_schedule_sync, run_exam_reminders

# Настраиваем логирование
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger("WorkerProcess")

# --- Глобальные переменные для управления graceful shutdown ---
shutdown_event = asyncio.Event()

def _handle_shutdown_signal(*args):
    """Обработчик сигналов SIGINT/SIGTERM для корректного завершения."""
    logger.info("Shutdown signal received. Stopping tasks...")
    shutdown_event.set()

async def listen_control_queue():
    """Слушает очередь управляющих команд из Redis и запускает соответствующие задачи."""
    redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    logger.info(f"Listening for control commands on '{CONTROL_QUEUE}'...")

    while not shutdown_event.is_set():
        try:
            # Ждем команду с таймаутом, чтобы цикл мог проверить shutdown_event
            result = await redis_client.blpop([CONTROL_QUEUE], timeout=1)
            if not result:
                continue

            _, command_json = result
            command_data = json.loads(command_json)
            command = command_data.get("command")
            logger.info(f"Received control command: '{command}'")

            # Ручной запуск проходит через тот же замок: если цикл уже идет, команда отбрасывается
            if command == "run_schedule_sync":
                scheduler.add_job(run_schedule_sync, id='manual_schedule_sync', replace_existing=True)
            elif command == "run_exam_reminders":
                scheduler.add_job(run_exam_reminders, id='manual_exam_reminders', replace_existing=True)
            else:
                logger.warning(f"Unknown control command received: {command}")

        except asyncio.CancelledError:
            logger.info("Control queue listener task cancelled.")
            break
        except (redis.RedisError, ConnectionRefusedError) as e:
            logger.error(f"Redis connection error in control listener: {e}. Reconnecting in 10s...")
            await asyncio.sleep(10)
        except Exception as e:
            logger.error(f"Error in control queue listener: {e}", exc_info=True)
            await asyncio.sleep(1)

    await redis_client.aclose()
    logger.info("Control queue listener stopped.")


async def main():
    """Главная функция для запуска всех фоновых задач воркера."""
    logger.info("Worker process starting...")

    # 1. Восстанавливаем состояние прошлого запуска из БД
    try:
        await sync_service.load_state()
    except Exception as e:
        logger.error(f"Could not load retained state, starting from scratch: {e}", exc_info=True)

    # 2. Запускаем APScheduler и сразу делаем первую проверку
    scheduler.start()
    scheduler.add_job(run_schedule_sync, id='initial_schedule_sync')
    logger.info("APScheduler has been started.")

    control_task = asyncio.create_task(listen_control_queue(), name="ControlTask")

    # Ожидаем сигнала на завершение
    await shutdown_event.wait()

    logger.info("Shutting down worker process...")
    scheduler.shutdown(wait=False)
    control_task.cancel()
    await asyncio.gather(control_task, return_exceptions=True)

    await api_client.close()
    logger.info("Worker process shut down gracefully.")


if __name__ == "__main__":
    # Устанавливаем обработчики сигналов для корректного завершения
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    loop.add_signal_handler(signal.SIGINT, _handle_shutdown_signal)
    loop.add_signal_handler(signal.SIGTERM, _handle_shutdown_signal)

    try:
        loop.run_until_complete(main())
    except KeyboardInterrupt:
        logger.info("Worker process stopped by user (KeyboardInterrupt).")
    finally:
        loop.close()
