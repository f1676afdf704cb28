# msu_backend/crud/crud_user.py
from typing import List
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from msu_backend.models.user import User, UserNotification

HISTORY_BATCH_SIZE = 450


async def get_user_uids_by_group(db: AsyncSession, *, faculty_code: str, course: int) -> List[str]:
    """
    UID всех пользователей указанного факультета и курса.
    """
    stmt = select(User.uid).where(User.faculty_code == faculty_code, User.course == course)
    result = await db.execute(stmt)
    return result.scalars().all()


async def save_history_for_users(db: AsyncSession, *, uids: List[str], title: str, body: str) -> None:
    """Записывает уведомление в историю каждого пользователя, пачками."""
    for start in range(0, len(uids), HISTORY_BATCH_SIZE):
        db.add_all([
            UserNotification(user_uid=uid, title=title, body=body)
            for uid in uids[start:start + HISTORY_BATCH_SIZE]
        ])
        await db.commit()
