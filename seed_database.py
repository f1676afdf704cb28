# seed_database.py

import asyncio
import logging

from msu_backend.db.base import Base
from msu_backend.db.session import engine
from msu_backend.core.queue import push_control_command, redis_client
# Модели нужно импортировать, чтобы они зарегистрировались в Base.metadata
from msu_backend.models import schedule, user  # noqa: F401

# Настраиваем логирование
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger("DatabaseSeeder")

async def seed_data():
    """
    Создает таблицы и просит воркер выполнить первую синхронизацию расписания.
    """
    logger.info("--- Starting Database Seeding Process ---")

    # --- Шаг 1: Создание таблиц ---
    logger.info("Step 1: Creating tables...")
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Step 1: Tables are ready.")
    except Exception as e:
        logger.error(f"Step 1 FAILED: Could not create tables. Error: {e}", exc_info=True)
        # Без таблиц синхронизацию запускать бессмысленно
        return
    finally:
        await engine.dispose()

    # --- Шаг 2: Первая синхронизация (выполняет воркер) ---
    logger.info("Step 2: Asking worker to run schedule sync...")
    try:
        await push_control_command("run_schedule_sync")
        logger.info("Step 2: Command queued.")
    except Exception as e:
        logger.error(f"Step 2 FAILED: Could not queue control command. Error: {e}", exc_info=True)
    finally:
        await redis_client.aclose()

    logger.info("--- Database Seeding Process Finished ---")


if __name__ == "__main__":
    asyncio.run(seed_data())
