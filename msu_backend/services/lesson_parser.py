# msu_backend/services/lesson_parser.py

import re
from typing import List

from msu_backend.schemas.schedule import Lesson

ROOM_REGEX = re.compile(r"\b\d{3}\b")
TYPE_REGEX = re.compile(r"\[(.*?)\]")
TEACHER_REGEX = re.compile(r"\((.*?)\)")
SPACES_REGEX = re.compile(r"\s+")

# Порядок проверки важен: первое совпадение выигрывает
LESSON_TYPES = [
    ("ЛК", "Лекция"),
    ("ПЗ", "Практика"),
    ("СЕМИНАР", "Семинар"),
    ("ЗАЧЕТ", "Зачет"),
    ("ЭКЗАМЕН", "Экзамен"),
]

# Лаборатории не имеют номера, их узнаем по ключевому слову
LAB_ROOMS = [
    ("физ", "лабФИЗ"),
    ("хим", "лабХИМ"),
    ("гео", "лабГЕО"),
    ("стд", "стд"),
]


def unique(items: List[str]) -> List[str]:
    """Убирает дубликаты, сохраняя порядок первого появления."""
    return list(dict.fromkeys(items))


def clean_type(raw_type: str) -> str:
    up = raw_type.upper()
    for marker, name in LESSON_TYPES:
        if marker in up:
            return name
    return up.strip()


def clean_subject(text: str) -> str:
    return SPACES_REGEX.sub(" ", text).strip()


def parse_rooms(text: str) -> List[str]:
    rooms = ROOM_REGEX.findall(text)
    lower = text.lower()
    for keyword, code in LAB_ROOMS:
        if keyword in lower:
            rooms.append(code)
    return unique([room.removesuffix(".0") for room in rooms])


def _cut(text: str, fragment: str) -> str:
    return re.sub(re.escape(fragment), "", text, flags=re.IGNORECASE)


def parse_lesson(subject_raw: str, room_raw: str = "") -> Lesson:
    """
    Разбирает пару ячеек (предмет, аудитория).
    Пример: "Математика [ЛК] (Иванов И.И.)", "101" ->
    предмет "Математика", тип "Лекция", преподаватель "Иванов И.И.", аудитория "101".
    """
    text = subject_raw
    lesson_type = ""
    teachers: List[str] = []

    type_match = TYPE_REGEX.search(text)
    if type_match:
        lesson_type = clean_type(type_match.group(1))
        text = _cut(text, type_match.group(0))

    teacher_match = TEACHER_REGEX.search(text)
    if teacher_match:
        teachers = [name.strip() for name in teacher_match.group(1).split(",")]
        text = _cut(text, teacher_match.group(0))

    return Lesson(
        subject=clean_subject(text),
        type=lesson_type,
        teacher=unique([name for name in teachers if name]),
        rooms=parse_rooms(room_raw),
    )
