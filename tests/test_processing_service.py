from datetime import date

from msu_backend.schemas.schedule import GroupSchedule, Lesson
from msu_backend.services.processing_service import (
    ALL_ROOMS,
    ProcessingService,
    canonical_teacher_names,
    is_later_week,
    is_valid_key,
    sanitize_name,
    split_group_id,
)

STAMP = "2025-02-01 10:00:00"


def make_group(group_id, title, slots):
    """slots: {(day_idx, pair_idx): Lesson}"""
    group = GroupSchedule.empty(group_id, title)
    for (day_idx, pair_idx), lesson in slots.items():
        group.days[day_idx].lessons[pair_idx] = lesson
    return group


class TestFreeRooms:
    """Test cases for free room calculation"""

    def setup_method(self):
        self.service = ProcessingService()

    def test_occupied_rooms_are_excluded(self):
        groups = {
            "pmi_1": make_group("pmi_1", "ПМИ, 1 курс", {(0, 0): Lesson(subject="A", rooms=["101", "лабФИЗ"])}),
            "geo_1": make_group("geo_1", "Геология, 1 курс", {(0, 0): Lesson(subject="B", rooms=["302"])}),
        }

        free = self.service.calculate_free_rooms(groups, last_update=STAMP)

        assert free.last_update == STAMP
        assert sorted(free.schedule) == ["1", "2", "3", "4", "5", "6", "7"]
        assert all(sorted(pairs) == ["1", "2", "3", "4", "5"] for pairs in free.schedule.values())
        monday_first = free.schedule["1"]["1"]
        assert "101" not in monday_first and "лабФИЗ" not in monday_first and "302" not in monday_first
        assert len(monday_first) == len(ALL_ROOMS) - 3
        assert free.schedule["1"]["2"] == ALL_ROOMS

    def test_free_and_occupied_never_overlap(self):
        group = make_group("pmi_2", "ПМИ, 2 курс", {
            (day, pair): Lesson(subject="X", rooms=[ALL_ROOMS[(day * 5 + pair) % len(ALL_ROOMS)]])
            for day in range(7) for pair in range(5)
        })

        free = self.service.calculate_free_rooms({"pmi_2": group}, last_update=STAMP)

        for day in range(7):
            for pair in range(5):
                occupied = set(group.days[day].lessons[pair].rooms)
                free_rooms = free.schedule[str(day + 1)][str(pair + 1)]
                assert occupied.isdisjoint(free_rooms)
                assert occupied | set(free_rooms) == set(ALL_ROOMS)

    def test_result_follows_catalog_order(self):
        free = self.service.calculate_free_rooms({}, last_update=STAMP)

        assert free.schedule["7"]["5"] == ALL_ROOMS


class TestTeacherNames:
    """Test cases for teacher name canonicalization"""

    def test_sanitize_replaces_forbidden_characters(self):
        assert sanitize_name("Иванов. И.И./") == "Иванов_ И_И_-"
        assert sanitize_name("\x00 [Петров]#$ ") == "(Петров)"
        assert sanitize_name(": Сидоров\n, ") == "Сидоров"

    def test_regex_names_are_extracted(self):
        assert canonical_teacher_names("Иванов И.И., Петров П. П.") == ["Иванов И_И_", "Петров П_ П_"]

    def test_fallback_strips_junk_words(self):
        assert canonical_teacher_names("Английский язык Смит") == ["Смит"]
        assert canonical_teacher_names("подгруппа Браун") == ["под Браун"]

    def test_fallback_rejects_placeholder_and_short_names(self):
        assert canonical_teacher_names("Иностранный") == []
        assert canonical_teacher_names("Иностранный язык") == []
        assert canonical_teacher_names("Ли") == []
        assert canonical_teacher_names("   ") == []

    def test_key_validation(self):
        assert is_valid_key("Иванов И_И_")
        assert not is_valid_key("a.b")
        assert not is_valid_key("bad\x01key")
        assert not is_valid_key("   ")


class TestExtractTeachers:
    """Test cases for teacher schedule aggregation"""

    def setup_method(self):
        self.service = ProcessingService()
        self.groups = {
            "pmi_1": make_group("pmi_1", "ПМИ, 1 курс", {
                (0, 0): Lesson(subject="Математика", type="Лекция", teacher=["Иванов И.И."], rooms=["101"]),
                (2, 1): Lesson(subject="Алгебра", type="Практика", teacher=["Иванов И.И.", "Смит"], rooms=["102"]),
            }),
            "pmi_2": make_group("pmi_2", "ПМИ, 2 курс", {
                (0, 0): Lesson(subject="Математика", type="Лекция", teacher=["Иванов И.И."], rooms=["101"]),
            }),
        }

    def test_groups_are_aggregated_per_slot(self):
        teachers = self.service.extract_teachers(self.groups, updated_at=STAMP)

        assert set(teachers) == {"Иванов И_И_", "Смит"}
        ivanov = teachers["Иванов И_И_"]
        assert ivanov.updated_at == STAMP
        assert len(ivanov.days) == 7
        monday = ivanov.days[0].lessons[0]
        assert monday.subject == "Математика"
        assert monday.rooms == ["101"]
        assert monday.groups == ["ПМИ, 1 курс", "ПМИ, 2 курс"]
        assert ivanov.days[2].lessons[1].groups == ["ПМИ, 1 курс"]
        assert teachers["Смит"].days[0].lessons[0] is None

    def test_serialized_under_teacher_field(self):
        teachers = self.service.extract_teachers(self.groups, updated_at=STAMP)

        dumped = teachers["Смит"].model_dump(by_alias=True)
        assert dumped["days"][2]["lessons"][1]["teacher"] == ["ПМИ, 1 курс"]

    def test_extraction_is_idempotent(self):
        first = self.service.extract_teachers(self.groups, updated_at=STAMP)
        second = self.service.extract_teachers(self.groups, updated_at=STAMP)

        assert first == second
        # Source lessons are not touched
        assert self.groups["pmi_1"].days[0].lessons[0].teacher == ["Иванов И.И."]

    def test_empty_input(self):
        assert self.service.extract_teachers({}, updated_at=STAMP) == {}


class TestExtractExams:
    def setup_method(self):
        self.service = ProcessingService()

    def test_exam_event_fields(self):
        group = make_group("pmi_2", "ПМИ, 2 курс", {
            (1, 2): Lesson(subject="Алгебра", type="Экзамен", rooms=["205", "206"]),
            (1, 0): Lesson(subject="Физика", type="Лекция"),
            (3, 1): Lesson(subject="История", type="Зачет"),
        })
        group.days[1].date = "2025-02-04"

        exams = self.service.extract_exams({"pmi_2": group})

        assert len(exams) == 1
        exam = exams[0]
        assert exam.id == "pmi_2_2025-02-04_2"
        assert exam.time == "11:10"
        assert exam.room == "205, 206"
        assert exam.group == "ПМИ, 2 курс"
        assert (exam.faculty, exam.course) == ("pmi", 2)

    def test_out_of_range_pair_gets_placeholder_time(self):
        group = make_group("geo_1", "Геология, 1 курс", {})
        group.days[0].date = "2025-02-03"
        group.days[0].lessons.append(Lesson(subject="Минералогия", type="Зачет"))

        exams = self.service.extract_exams({"geo_1": group})

        assert exams[0].id == "geo_1_2025-02-03_5"
        assert exams[0].time == "--:--"

    def test_split_group_id(self):
        assert split_group_id("ling_4") == ("ling", 4)
        assert split_group_id("odd") == ("odd", 0)


class TestWeekClassification:
    """Test cases for current/upcoming week detection"""

    def setup_method(self):
        self.service = ProcessingService()
        self.today = date(2025, 1, 1)  # ISO week 1 of 2025

    def test_same_week_is_current(self):
        assert not self.service.is_upcoming_week(["2025-01-02"], self.today)

    def test_next_week_is_upcoming(self):
        assert self.service.is_upcoming_week(["2025-01-09"], self.today)

    def test_earliest_date_decides(self):
        assert not self.service.is_upcoming_week(["2025-01-09", "2025-01-02"], self.today)

    def test_year_wraparound(self):
        assert is_later_week(1, 52)
        assert self.service.is_upcoming_week(["2024-12-30"], date(2024, 12, 23))

    def test_previous_week_is_not_upcoming(self):
        assert not self.service.is_upcoming_week(["2025-01-20"], date(2025, 2, 3))

    def test_empty_and_malformed_dates(self):
        assert not self.service.is_upcoming_week([], self.today)
        assert not self.service.is_upcoming_week(["not-a-date"], self.today)
