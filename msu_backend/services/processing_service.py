# msu_backend/services/processing_service.py

import logging
import re
from datetime import date
from typing import Dict, Iterable, List, Optional, Set

from msu_backend.schemas.notifications import ExamEvent
from msu_backend.schemas.schedule import (
    PAIRS_PER_DAY,
    FreeRoomsData,
    GroupSchedule,
    Lesson,
    TeacherLesson,
    TeacherSchedule,
    now_timestamp,
)

# Настраиваем логгер
logger = logging.getLogger(__name__)

# "Фамилия И.О." (между инициалами допускается пробел, в т.ч. неразрывный)
TEACHER_NAME_REGEX = re.compile(r"([А-ЯЁ][а-яё]+[\s\xa0]+[А-ЯЁ]\.[\s\xa0]*[А-ЯЁ]\.?)")

ALL_ROOMS = [
    "100", "101", "102", "103", "104", "105", "106", "107", "108",
    "208",
    "301", "302",
    "401", "402", "403", "404",
    "601", "602", "603",
    "701", "702", "703", "704",
    "801", "802",
    "лабГЕО", "лабФИЗ", "лабХИМ", "стд",
]

DAY_KEYS = ["1", "2", "3", "4", "5", "6", "7"]
PAIR_KEYS = ["1", "2", "3", "4", "5"]

# Слова, которые попадают в скобки вместе с фамилией и должны быть вырезаны
JUNK_WORDS = [
    "английский", "немецкий", "китайский", "французский",
    "язык", "группа", "подгруппа", "физ", "пр.", "лк.", "[пз]", "(", ")",
]
PLACEHOLDER_NAME = "Иностранный"
MIN_NAME_LENGTH = 3
FORBIDDEN_KEY_CHARS = set(".$#[]/")

PAIR_START_TIMES = ["08:00", "09:35", "11:10", "12:45", "14:20"]
UNKNOWN_TIME = "--:--"
EXAM_MARKERS = ("экзамен", "зачет")


# --- Имена преподавателей ---

def sanitize_name(name: str) -> str:
    """Приводит имя к виду, пригодному для ключа хранилища."""
    result = name.replace("\x00", "").strip()
    if result.find("(") != -1:
        # TODO: решить, нужно ли отрезать пояснения в скобках после фамилии
        pass
    result = (
        result.replace(".", "_")
        .replace("/", "-")
        .replace("#", "")
        .replace("$", "")
        .replace("[", "(")
        .replace("]", ")")
        .replace("\n", "")
        .replace("\r", "")
        .replace("\t", "")
    )
    return result.strip(": ,")


def strip_junk(raw_name: str) -> str:
    cleaned = raw_name
    for junk in JUNK_WORDS:
        cleaned = re.sub(re.escape(junk), "", cleaned, flags=re.IGNORECASE)
    return cleaned


def canonical_teacher_names(raw_name: str) -> List[str]:
    """
    Ключи преподавателей, которые можно извлечь из одной записи в скобках.
    Сначала ищем все вхождения "Фамилия И.О."; если их нет, чистим строку от
    мусорных слов и принимаем остаток целиком.
    """
    if not raw_name.strip():
        return []

    matches = TEACHER_NAME_REGEX.findall(raw_name)
    if matches:
        return [safe for safe in (sanitize_name(m) for m in matches) if safe.strip()]

    safe = sanitize_name(strip_junk(raw_name))
    if safe.strip() != PLACEHOLDER_NAME and len(safe) >= MIN_NAME_LENGTH:
        return [safe]
    return []


def is_valid_key(name: str) -> bool:
    if not name.strip():
        return False
    return not any(ch in FORBIDDEN_KEY_CHARS or ord(ch) < 32 for ch in name)


# --- Экзамены ---

def is_exam_type(lesson_type: str) -> bool:
    lower = lesson_type.lower()
    return any(marker in lower for marker in EXAM_MARKERS)


def pair_start_time(pair_index: int) -> str:
    if 0 <= pair_index < len(PAIR_START_TIMES):
        return PAIR_START_TIMES[pair_index]
    return UNKNOWN_TIME


def split_group_id(group_id: str) -> tuple[str, int]:
    """'pmi_2' -> ('pmi', 2). Курс 0, если id не по формату."""
    faculty, _, course = group_id.rpartition("_")
    if not faculty:
        return group_id, 0
    try:
        return faculty, int(course)
    except ValueError:
        return faculty, 0


# --- Недели ---

def iso_week(day: date) -> int:
    return day.isocalendar()[1]


def is_later_week(file_week: int, current_week: int) -> bool:
    # Переход через Новый год: файл на 1-4 неделе, а сейчас конец декабря
    return file_week > current_week or (file_week < 5 and current_week > 50)


class ProcessingService:
    """Вычисления поверх разобранных групп. Все результаты пересчитываются с нуля."""

    def calculate_free_rooms(
        self, groups: Dict[str, GroupSchedule], last_update: Optional[str] = None
    ) -> FreeRoomsData:
        schedule_map: Dict[str, Dict[str, List[str]]] = {}

        for i, day_key in enumerate(DAY_KEYS):
            pairs_map: Dict[str, List[str]] = {}
            for j, pair_key in enumerate(PAIR_KEYS):
                occupied: Set[str] = set()
                for group in groups.values():
                    if i >= len(group.days):
                        continue
                    lessons = group.days[i].lessons
                    if j < len(lessons) and lessons[j] is not None:
                        occupied.update(lessons[j].rooms)
                pairs_map[pair_key] = [room for room in ALL_ROOMS if room not in occupied]
            schedule_map[day_key] = pairs_map

        return FreeRoomsData(schedule=schedule_map, last_update=last_update or now_timestamp())

    def extract_teachers(
        self, groups: Dict[str, GroupSchedule], updated_at: Optional[str] = None
    ) -> Dict[str, TeacherSchedule]:
        updated_at = updated_at or now_timestamp()
        teachers: Dict[str, TeacherSchedule] = {}

        for group in groups.values():
            for day_idx, day in enumerate(group.days):
                for pair_idx, lesson in enumerate(day.lessons):
                    if lesson is None:
                        continue
                    for raw_name in lesson.teacher:
                        for name in canonical_teacher_names(raw_name):
                            self._add_lesson_to_teacher(teachers, name, updated_at, group, lesson, day_idx, pair_idx)

        return {name: schedule for name, schedule in teachers.items() if is_valid_key(name)}

    def _add_lesson_to_teacher(
        self,
        teachers: Dict[str, TeacherSchedule],
        name: str,
        updated_at: str,
        group: GroupSchedule,
        lesson: Lesson,
        day_idx: int,
        pair_idx: int,
    ) -> None:
        schedule = teachers.get(name)
        if schedule is None:
            schedule = TeacherSchedule.empty(name, updated_at)
            teachers[name] = schedule

        if day_idx >= len(schedule.days):
            return
        lessons = schedule.days[day_idx].lessons
        while len(lessons) <= pair_idx:
            lessons.append(None)

        existing = lessons[pair_idx]
        if existing is not None:
            if group.title not in existing.groups:
                existing.groups.append(group.title)
        else:
            lessons[pair_idx] = TeacherLesson(
                subject=lesson.subject,
                type=lesson.type,
                rooms=list(lesson.rooms),
                groups=[group.title],
            )

    def extract_exams(self, groups: Dict[str, GroupSchedule]) -> List[ExamEvent]:
        exams: List[ExamEvent] = []
        for group_id, group in groups.items():
            faculty, course = split_group_id(group_id)
            for day in group.days:
                if not day.date:
                    continue
                for pair_idx, lesson in enumerate(day.lessons):
                    if lesson is None or not is_exam_type(lesson.type):
                        continue
                    exams.append(ExamEvent(
                        id=f"{group_id}_{day.date}_{pair_idx}",
                        group=group.title,
                        subject=lesson.subject,
                        type=lesson.type,
                        date=day.date,
                        time=pair_start_time(pair_idx),
                        room=", ".join(lesson.rooms),
                        faculty=faculty,
                        course=course,
                    ))
        return exams

    def is_upcoming_week(self, dates: Iterable[str], today: date) -> bool:
        """Относится ли файл к следующей неделе (по самой ранней дате в нем)."""
        parsed = []
        for value in dates:
            try:
                parsed.append(date.fromisoformat(value))
            except ValueError:
                logger.warning(f"Skipping malformed date '{value}' during week check")
        if not parsed:
            return False

        min_date = min(parsed)
        file_week, current_week = iso_week(min_date), iso_week(today)
        upcoming = is_later_week(file_week, current_week)
        logger.info(
            f"Date check: file min={min_date}, file week={file_week}, "
            f"current week={current_week}, upcoming={upcoming}"
        )
        return upcoming


processing_service = ProcessingService()
