# msu_backend/schemas/schedule.py
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict

DAY_NAMES = [
    "Понедельник", "Вторник", "Среда", "Четверг", "Пятница", "Суббота", "Воскресенье"
]
PAIRS_PER_DAY = 5
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def now_timestamp() -> str:
    return datetime.now().strftime(TIMESTAMP_FORMAT)


# Одно занятие группы в сетке расписания
class Lesson(BaseModel):
    subject: str = ""
    type: str = ""
    teacher: List[str] = Field(default_factory=list)
    rooms: List[str] = Field(default_factory=list)

class DaySchedule(BaseModel):
    day: str = ""
    date: Optional[str] = None
    lessons: List[Optional[Lesson]] = Field(default_factory=lambda: [None] * PAIRS_PER_DAY)

class GroupSchedule(BaseModel):
    id: str
    title: str
    updated_at: str = Field(default_factory=now_timestamp)
    days: List[DaySchedule] = Field(default_factory=list)

    @classmethod
    def empty(cls, group_id: str, title: str) -> "GroupSchedule":
        """Пустая сетка 7 дней x 5 пар."""
        return cls(id=group_id, title=title, days=[DaySchedule(day=name) for name in DAY_NAMES])


# --- Расписание преподавателя ---
# Та же форма, что и у группы, но в слоте хранится список групп, у которых
# преподаватель ведет занятие. В хранилище поле по-прежнему называется "teacher".

class TeacherLesson(BaseModel):
    subject: str = ""
    type: str = ""
    groups: List[str] = Field(default_factory=list, alias="teacher")
    rooms: List[str] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

class TeacherDaySchedule(BaseModel):
    day: str = ""
    date: Optional[str] = None
    lessons: List[Optional[TeacherLesson]] = Field(default_factory=lambda: [None] * PAIRS_PER_DAY)

class TeacherSchedule(BaseModel):
    name: str
    updated_at: str = Field(default_factory=now_timestamp)
    days: List[TeacherDaySchedule] = Field(default_factory=list)

    @classmethod
    def empty(cls, name: str, updated_at: str) -> "TeacherSchedule":
        return cls(name=name, updated_at=updated_at, days=[TeacherDaySchedule(day=d) for d in DAY_NAMES])


class FreeRoomsData(BaseModel):
    # день ("1".."7") -> пара ("1".."5") -> свободные аудитории
    schedule: Dict[str, Dict[str, List[str]]] = Field(default_factory=dict)
    last_update: str = ""
