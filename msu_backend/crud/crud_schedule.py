# msu_backend/crud/crud_schedule.py
import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select, delete
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from msu_backend.core.config import settings
from msu_backend.models.schedule import ScheduleDocument, ScheduledExam, ScheduleArchive
from msu_backend.schemas.notifications import ExamEvent, ScheduleUpdate
from msu_backend.schemas.schedule import GroupSchedule, TIMESTAMP_FORMAT

logger = logging.getLogger(__name__)

SCHEDULES_KEY = "schedules"
FREE_ROOMS_KEY = "free_rooms"
TEACHERS_KEY = "teachers"
NEXT_SUFFIX = "_next"
LAST_UPDATE_KEY = "last_global_update"
APP_INFO_KEY = "app_info"
LAST_CHANGES_KEY = "last_changes"
UPCOMING_FLAG_KEY = "upcoming_published"

EXAMS_BATCH_SIZE = 450


def academic_year_for(moment: datetime) -> str:
    """Учебный год начинается в сентябре: 2024-10-01 -> '2024-2025', 2025-03-01 -> '2024-2025'."""
    if moment.month >= 9:
        return f"{moment.year}-{moment.year + 1}"
    return f"{moment.year - 1}-{moment.year}"


# --- Документы ---

async def get_document(db: AsyncSession, *, key: str) -> Optional[Any]:
    result = await db.execute(select(ScheduleDocument.payload).where(ScheduleDocument.key == key))
    return result.scalar_one_or_none()


async def set_documents(db: AsyncSession, documents: Dict[str, Any]) -> None:
    """Upsert нескольких документов одной командой. Коммит - на вызывающей стороне."""
    if not documents:
        return
    stmt = insert(ScheduleDocument).values([{"key": k, "payload": v} for k, v in documents.items()])
    stmt = stmt.on_conflict_do_update(index_elements=['key'], set_={'payload': stmt.excluded.payload})
    await db.execute(stmt)


async def delete_documents(db: AsyncSession, keys: Iterable[str]) -> None:
    await db.execute(delete(ScheduleDocument).where(ScheduleDocument.key.in_(list(keys))))


# --- Экзамены ---

async def upsert_exams(db: AsyncSession, exams: List[ExamEvent]) -> None:
    for start in range(0, len(exams), EXAMS_BATCH_SIZE):
        chunk = [exam.model_dump() for exam in exams[start:start + EXAMS_BATCH_SIZE]]
        stmt = insert(ScheduledExam).values(chunk)
        update_dict = {c.name: getattr(stmt.excluded, c.name) for c in ScheduledExam.__table__.columns if not c.primary_key}
        stmt = stmt.on_conflict_do_update(index_elements=['id'], set_=update_dict)
        await db.execute(stmt)


async def get_exams_between(db: AsyncSession, *, start_date: date, end_date: date) -> List[ScheduledExam]:
    """Экзамены с датой в интервале [start_date, end_date]. Даты хранятся как 'YYYY-MM-DD', поэтому строки сравнимы."""
    stmt = (
        select(ScheduledExam)
        .where(ScheduledExam.date >= start_date.isoformat(), ScheduledExam.date <= end_date.isoformat())
        .order_by(ScheduledExam.date, ScheduledExam.time)
    )
    result = await db.execute(stmt)
    return result.scalars().all()


# --- Архив ---

async def archive_weekly_schedule(
    db: AsyncSession, *, groups: Dict[str, Any], week_number: int, now: datetime
) -> None:
    stmt = insert(ScheduleArchive).values(
        academic_year=academic_year_for(now), academic_week=week_number, data=groups
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=['academic_year', 'academic_week'],
        set_={'data': stmt.excluded.data, 'created_at': now}
    )
    await db.execute(stmt)


class ScheduleStore:
    """Хранилище результатов синхронизации поверх PostgreSQL."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def load_last_known_schedules(self) -> Dict[str, GroupSchedule]:
        async with self.session_factory() as session:
            payload = await get_document(session, key=SCHEDULES_KEY)
        if not payload:
            return {}
        return {group_id: GroupSchedule.model_validate(data) for group_id, data in payload.items()}

    async def load_upcoming_published(self) -> bool:
        async with self.session_factory() as session:
            return bool(await get_document(session, key=UPCOMING_FLAG_KEY))

    async def save_full_update(self, update: ScheduleUpdate) -> None:
        suffix = NEXT_SUFFIX if update.is_upcoming else ""
        now = datetime.now()
        groups_payload = {gid: group.model_dump(by_alias=True) for gid, group in update.groups.items()}

        logger.info(f"Syncing data to target: '{SCHEDULES_KEY}{suffix}'")
        documents = {
            f"{SCHEDULES_KEY}{suffix}": groups_payload,
            f"{FREE_ROOMS_KEY}{suffix}": update.free_rooms.model_dump(),
            f"{TEACHERS_KEY}{suffix}": {name: t.model_dump(by_alias=True) for name, t in update.teachers.items()},
            LAST_UPDATE_KEY: now.strftime(TIMESTAMP_FORMAT),
            APP_INFO_KEY: {
                "latest_version": settings.APP_VERSION,
                "force_update": False,
                "academic_week": update.academic_week,
            },
            LAST_CHANGES_KEY: {
                "groups": sorted(update.changed_group_ids),
                "dates": sorted(set(update.dates)),
                "upcoming_published": update.upcoming_published,
            },
            UPCOMING_FLAG_KEY: update.is_upcoming,
        }

        async with self.session_factory() as session:
            await set_documents(session, documents)
            if update.clear_upcoming:
                await delete_documents(session, [f"{key}{NEXT_SUFFIX}" for key in (SCHEDULES_KEY, FREE_ROOMS_KEY, TEACHERS_KEY)])
                logger.info("Cleared '_next' documents as the current week is active again")
            if update.academic_week is not None:
                await archive_weekly_schedule(session, groups=groups_payload, week_number=update.academic_week, now=now)
                logger.info(f"Archived schedule: year={academic_year_for(now)}, week={update.academic_week}")
            else:
                logger.warning("Skipping archiving: no academic week detected.")
            await session.commit()
        logger.info("Groups, free rooms, teachers and app info saved.")

    async def save_exams(self, exams: List[ExamEvent]) -> None:
        if not exams:
            return
        async with self.session_factory() as session:
            await upsert_exams(session, exams)
            await session.commit()
        logger.info(f"Saved {len(exams)} exams.")

    async def get_exams_between(self, start_date: date, end_date: date) -> List[ExamEvent]:
        async with self.session_factory() as session:
            rows = await get_exams_between(session, start_date=start_date, end_date=end_date)
        return [
            ExamEvent(
                id=r.id, group=r.group, subject=r.subject, type=r.type, date=r.date,
                time=r.time, room=r.room, faculty=r.faculty, course=r.course,
            )
            for r in rows
        ]
