# msu_backend/services/xls_parser.py

import logging
import re
from typing import Dict, List, Optional

from msu_backend.schemas.schedule import GroupSchedule
from msu_backend.services.cell_reader import SheetRows, cell_text, read_workbook
from msu_backend.services.lesson_parser import ROOM_REGEX, parse_lesson

# Настраиваем логгер
logger = logging.getLogger(__name__)

COURSE_REGEX = re.compile(r"(\d+)\s*КУРС", re.IGNORECASE)
DATE_REGEX = re.compile(r"(\d{1,2})\s+([а-яА-Я]+)\s+(\d{4})")
WEEK_REGEX = re.compile(r"(\d{1,2})\s*-?\s*я\s+неделя", re.IGNORECASE)

COURSE_MARKER = "КУРС"
# Строка вида "... ПРАКТИЧЕСКИЙ КУРС ..." не является заголовком группы
HEADER_STOP_WORD = "ПРАКТИЧЕСКИЙ"
WEEK_SEARCH_ROWS = 6
MAX_PAIRS = 10

# Список, а не словарь: ищем по порядку, первое совпадение выигрывает
FACULTIES = [
    ("ПРИКЛАДНАЯ", "pmi"),
    ("ХИМИЯ", "hfmm"),
    ("ГЕОЛОГИЯ", "geo"),
    ("МЕЖДУНАРОДНЫЕ", "mo"),
    ("ЛИНГВИСТИКА", "ling"),
    ("ГОСУДАРСТВЕННОЕ", "gmu"),
]

FACULTY_TITLES = {
    "pmi": "ПМИ",
    "hfmm": "ХФММ",
    "geo": "Геология",
    "mo": "МО",
    "ling": "Лингвистика",
    "gmu": "ГМУ",
}

PAIR_NUMBERS = {
    "I": 1, "II": 2, "III": 3, "IV": 4, "V": 5, "VI": 6,
    "1": 1, "2": 2, "3": 3, "4": 4, "5": 5, "6": 6,
}

# Названия дней в нижнем регистре, индекс = номер дня недели с понедельника
DAY_KEYWORDS = [
    "понедельник", "вторник", "среда", "четверг", "пятница", "суббота", "воскресенье"
]

MONTHS = {
    "января": "01", "февраля": "02", "марта": "03", "апреля": "04",
    "мая": "05", "июня": "06", "июля": "07", "августа": "08",
    "сентября": "09", "октября": "10", "ноября": "11", "декабря": "12",
}


class ScheduleRepository:
    """
    Расписания групп, собираемые за один цикл из одного или нескольких файлов.
    Если группа встречается повторно (в другом листе или файле), ее сетка
    дополняется, а не создается заново.
    """

    def __init__(self):
        self.groups: Dict[str, GroupSchedule] = {}
        self.week_number: Optional[int] = None
        self.dates: List[str] = []

    def get_or_create(self, group_id: str, title: str) -> GroupSchedule:
        group = self.groups.get(group_id)
        if group is None:
            group = GroupSchedule.empty(group_id, title)
            self.groups[group_id] = group
        return group

    def __len__(self) -> int:
        return len(self.groups)


# --- Функции-помощники ---

def get_day_index(text: str) -> int:
    lower = text.lower()
    for idx, keyword in enumerate(DAY_KEYWORDS):
        if keyword in lower:
            return idx
    return -1


def parse_russian_date(text: str) -> Optional[str]:
    """'5 февраля 2025' -> '2025-02-05'. Неизвестный месяц -> None."""
    match = DATE_REGEX.search(text)
    if not match:
        return None
    month = MONTHS.get(match.group(2).lower())
    if month is None:
        return None
    return f"{match.group(3)}-{month}-{match.group(1).zfill(2)}"


def parse_pair_number(text: str) -> Optional[int]:
    return PAIR_NUMBERS.get(text.strip().strip(". "))


def find_faculty_code(row_text: str) -> Optional[str]:
    for keyword, code in FACULTIES:
        if keyword in row_text:
            return code
    return None


def format_title(code: str, course: str) -> str:
    return f"{FACULTY_TITLES.get(code, code)}, {course} курс"


def row_text(row: List[str]) -> str:
    return " ".join(row).strip().upper()


class XlsParserService:
    """Разбор листов расписания: заголовок группы -> строка дней -> строка дат -> пары."""

    def parse_xls(self, file_bytes: bytes, result: ScheduleRepository) -> None:
        """Разбирает все листы книги, дописывая группы в result. Ошибки чтения книги пробрасываются."""
        for sheet_name, rows in read_workbook(file_bytes):
            logger.debug(f"Parsing sheet '{sheet_name}' ({len(rows)} rows)")
            self.parse_sheet(rows, result)

    def detect_week_number(self, rows: SheetRows) -> Optional[int]:
        for row in rows[:WEEK_SEARCH_ROWS]:
            match = WEEK_REGEX.search(" ".join(row))
            if match:
                return int(match.group(1))
        return None

    def parse_sheet(self, rows: SheetRows, result: ScheduleRepository) -> None:
        if result.week_number is None:
            result.week_number = self.detect_week_number(rows)

        current_group: Optional[GroupSchedule] = None
        col_to_day: Dict[int, int] = {}

        r = 0
        while r < len(rows):
            row = rows[r]
            full_text = row_text(row)

            group = None
            if COURSE_MARKER in full_text and HEADER_STOP_WORD not in full_text:
                group = self._parse_header(rows, r, full_text, result, col_to_day)

            if group is not None:
                current_group = group
                r += 2
            elif current_group is not None:
                # "Курсовая работа", "Спецкурс" тоже содержат КУРС, но это обычная строка пары
                self._parse_pair_row(row, current_group, col_to_day)
            r += 1

    def _parse_header(
        self,
        rows: SheetRows,
        r: int,
        full_text: str,
        result: ScheduleRepository,
        col_to_day: Dict[int, int],
    ) -> Optional[GroupSchedule]:
        code = find_faculty_code(full_text)
        course_match = COURSE_REGEX.search(full_text)
        if code is None or course_match is None:
            logger.debug(f"Row {r} looks like a header but has no known faculty/course: '{full_text[:80]}'")
            return None

        course = course_match.group(1)
        group = result.get_or_create(f"{code}_{course}", format_title(code, course))

        # Каждый день занимает два столбца (предмет, аудитория),
        # а подписан бывает только первый из них
        col_to_day.clear()
        if r + 1 < len(rows):
            for c, text in enumerate(rows[r + 1]):
                day_idx = get_day_index(text)
                if day_idx != -1:
                    col_to_day[c] = day_idx
                    col_to_day[c + 1] = day_idx

        if r + 2 < len(rows):
            for c, text in enumerate(rows[r + 2]):
                parsed_date = parse_russian_date(text)
                if parsed_date is None:
                    continue
                result.dates.append(parsed_date)

                day_idx = col_to_day.get(c)
                # Объединенные ячейки: дата может оказаться правее подписи дня
                if day_idx is None and c > 0:
                    day_idx = col_to_day.get(c - 1)
                if day_idx is not None and day_idx < len(group.days):
                    group.days[day_idx].date = parsed_date

        return group

    def _parse_pair_row(self, row: List[str], group: GroupSchedule, col_to_day: Dict[int, int]) -> None:
        pair_num = parse_pair_number(cell_text(row, 0))
        if pair_num is None:
            return
        pair_index = pair_num - 1

        room_column = -1
        for c in range(len(row)):
            day_idx = col_to_day.get(c)
            if day_idx is None or c == room_column:
                continue
            text = row[c].strip()
            if not text:
                continue
            if ROOM_REGEX.fullmatch(text):
                continue

            next_text = cell_text(row, c + 1).strip()
            room_text = ""
            if ROOM_REGEX.search(next_text) or "лаб" in next_text.lower():
                room_text = next_text
                room_column = c + 1

            lesson = parse_lesson(text, room_text)
            if day_idx >= len(group.days) or pair_index >= MAX_PAIRS:
                continue
            lessons = group.days[day_idx].lessons
            while len(lessons) <= pair_index:
                lessons.append(None)
            lessons[pair_index] = lesson


xls_parser_service = XlsParserService()
