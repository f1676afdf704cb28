# msu_backend/services/diff_service.py

from typing import Dict, List, Optional, Set

from msu_backend.schemas.schedule import GroupSchedule, Lesson


def lesson_grid(group: GroupSchedule) -> List[List[Optional[Lesson]]]:
    """Упорядоченная сетка день -> слоты пар, включая пустые слоты. Даты не учитываются."""
    return [list(day.lessons) for day in group.days]


def find_changed_groups(
    previous: Dict[str, GroupSchedule], current: Dict[str, GroupSchedule]
) -> Set[str]:
    """
    Возвращает id групп, у которых изменилась сетка занятий.
    Новые группы (которых не было в предыдущем состоянии) не считаются изменившимися:
    подписчиков у них еще нет.
    """
    changed: Set[str] = set()
    for group_id, group in current.items():
        old = previous.get(group_id)
        if old is None:
            continue
        if lesson_grid(old) != lesson_grid(group):
            changed.add(group_id)
    return changed
