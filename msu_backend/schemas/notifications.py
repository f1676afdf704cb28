# msu_backend/schemas/notifications.py
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Set

from msu_backend.schemas.schedule import GroupSchedule, TeacherSchedule, FreeRoomsData

class ExamEvent(BaseModel):
    """Экзамен или зачет, найденный в расписании. id служит ключом для upsert."""
    id: str
    group: str
    subject: str
    type: str
    date: str
    time: str
    room: str
    faculty: str
    course: int

class PushNotification(BaseModel):
    """Задача на отправку push-уведомления в топик."""
    topic: str
    title: str
    body: str

class ScheduleUpdate(BaseModel):
    """Всё, что цикл синхронизации передает в хранилище."""
    groups: Dict[str, GroupSchedule]
    free_rooms: FreeRoomsData
    teachers: Dict[str, TeacherSchedule]
    academic_week: Optional[int] = None
    dates: List[str] = Field(default_factory=list)
    changed_group_ids: Set[str] = Field(default_factory=set)
    is_upcoming: bool = False
    upcoming_published: bool = False  # переход "следующей недели" false -> true в этом цикле
    clear_upcoming: bool = False  # нужно удалить ранее сохраненную "следующую неделю"
