# msu_backend/services/sync_service.py

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from msu_backend.core.config import settings
from msu_backend.schemas.notifications import ScheduleUpdate
from msu_backend.schemas.schedule import GroupSchedule, now_timestamp
from msu_backend.services.diff_service import find_changed_groups
from msu_backend.services.notification_service import spawn_background
from msu_backend.services.processing_service import ProcessingService, processing_service
from msu_backend.services.xls_parser import ScheduleRepository, XlsParserService, xls_parser_service

# Настраиваем логгер
logger = logging.getLogger(__name__)

GLOBAL_TOPIC = "global"
NEW_SCHEDULE_TITLE = "Новое расписание"
NEW_SCHEDULE_BODY = "Опубликовано расписание на следующую неделю."
GROUP_CHANGED_TITLE = "Изменения в расписании"


@dataclass(frozen=True)
class RetainedState:
    """Состояние между циклами. Заменяется целиком после каждого успешного цикла."""
    last_known_schedules: Dict[str, GroupSchedule] = field(default_factory=dict)
    is_upcoming_published: bool = False


def today_in_timezone() -> date:
    return datetime.now(ZoneInfo(settings.TIMEZONE)).date()


class SyncService:
    """
    Один цикл: проверка файлов -> загрузка и разбор -> вычисления -> решение,
    что сохранять и кого уведомлять. Одновременно выполняется не больше одного цикла.
    """

    def __init__(
        self,
        fetcher,
        store,
        notifier,
        source_urls: Optional[List[str]] = None,
        parser: XlsParserService = xls_parser_service,
        processing: ProcessingService = processing_service,
        today: Callable[[], date] = today_in_timezone,
    ):
        self.fetcher = fetcher
        self.store = store
        self.notifier = notifier
        self.source_urls = list(source_urls if source_urls is not None else settings.SOURCE_URLS)
        self.parser = parser
        self.processing = processing
        self.today = today

        self.state = RetainedState()
        self.last_modified: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def load_state(self) -> None:
        """Восстанавливает состояние из хранилища при старте процесса."""
        schedules = await self.store.load_last_known_schedules()
        upcoming = await self.store.load_upcoming_published()
        self.state = RetainedState(last_known_schedules=schedules, is_upcoming_published=upcoming)
        logger.info(f"Retained state loaded: {len(schedules)} groups, upcoming published={upcoming}")

    async def run_cycle(self) -> bool:
        """
        Запускает цикл, если другой цикл сейчас не выполняется.
        Возвращает False, если запуск отброшен.
        """
        if self._lock.locked():
            logger.info("Sync cycle is already running. Trigger dropped.")
            return False
        async with self._lock:
            await self._process_sources()
        return True

    async def _check_sources(self) -> Dict[str, str]:
        """Новые отметки Last-Modified для изменившихся файлов."""
        changed: Dict[str, str] = {}
        for url in self.source_urls:
            result = await self.fetcher.check_file_header(url, self.last_modified.get(url))
            if result.is_changed:
                changed[url] = result.last_modified or ""
        return changed

    def _parse_payload(self, url: str, payload: bytes, repository: ScheduleRepository) -> None:
        groups_before = len(repository)
        self.parser.parse_xls(payload, repository)
        logger.info(f"Parsed {url}: {len(repository) - groups_before} new groups, {len(repository)} total")

    async def _download_and_parse(self) -> Tuple[Optional[ScheduleRepository], List[str]]:
        """Загружает и разбирает все источники. Возвращает хранилище и URL, обработанные без ошибок."""
        repository = ScheduleRepository()
        succeeded: List[str] = []
        # Строго по порядку: если группа есть в нескольких файлах, порядок слияния важен
        for url in self.source_urls:
            try:
                payload = await self.fetcher.download_file(url)
                self._parse_payload(url, payload, repository)
                succeeded.append(url)
            except Exception as e:
                logger.error(f"Error processing {url}: {e}", exc_info=True)

        if not succeeded or not repository.groups:
            logger.warning("No valid data received, skipping update.")
            return None, succeeded
        return repository, succeeded

    async def _process_sources(self) -> None:
        changed_markers = await self._check_sources()
        if not changed_markers:
            logger.debug("No source changes detected.")
            return

        logger.info(f"Changes detected in {len(changed_markers)} source(s). Starting update process...")
        repository, succeeded = await self._download_and_parse()
        if repository is None:
            return

        await self.apply_parse_result(repository)
        # Отметки фиксируем только для источников, обработанных в успешном цикле.
        # Упавший источник будет загружен снова в следующем цикле
        for url in succeeded:
            if url in changed_markers:
                self.last_modified[url] = changed_markers[url]
        failed = [url for url in changed_markers if url not in succeeded]
        if failed:
            logger.warning(f"Sources will be retried in the next cycle: {failed}")

    async def apply_parse_result(self, repository: ScheduleRepository) -> ScheduleUpdate:
        """Вычисления, классификация недели, сравнение, сохранение и уведомления."""
        groups = repository.groups
        timestamp = now_timestamp()
        free_rooms = self.processing.calculate_free_rooms(groups, last_update=timestamp)
        teachers = self.processing.extract_teachers(groups, updated_at=timestamp)
        logger.info(f"Extracted {len(teachers)} teacher schedules for {len(groups)} groups")

        is_upcoming = self.processing.is_upcoming_week(repository.dates, self.today())
        state = self.state
        update = ScheduleUpdate(
            groups=groups,
            free_rooms=free_rooms,
            teachers=teachers,
            academic_week=repository.week_number,
            dates=repository.dates,
            is_upcoming=is_upcoming,
        )

        if is_upcoming:
            # Текущая неделя не трогается: сравнивать с ней следующую неделю бессмысленно
            update.upcoming_published = not state.is_upcoming_published
            new_state = RetainedState(
                last_known_schedules=state.last_known_schedules, is_upcoming_published=True
            )
        else:
            update.clear_upcoming = state.is_upcoming_published
            update.changed_group_ids = find_changed_groups(state.last_known_schedules, groups)
            new_state = RetainedState(
                last_known_schedules={gid: g.model_copy(deep=True) for gid, g in groups.items()},
                is_upcoming_published=False,
            )

        await self.store.save_full_update(update)

        if update.upcoming_published:
            logger.info("Upcoming week schedule published. Sending global notification.")
            spawn_background(
                self.notifier.notify_topic(GLOBAL_TOPIC, NEW_SCHEDULE_TITLE, NEW_SCHEDULE_BODY),
                "notify:global",
            )
        for group_id in sorted(update.changed_group_ids):
            title = groups[group_id].title
            logger.info(f"Schedule changed for group {group_id}. Sending notification.")
            spawn_background(
                self.notifier.notify_topic(group_id, GROUP_CHANGED_TITLE, f"В расписании {title} произошли изменения."),
                f"notify:{group_id}",
            )

        if repository.dates:
            exams = self.processing.extract_exams(groups)
            logger.info(f"Found {len(exams)} exams/tests in the parsed schedule")
            await self.store.save_exams(exams)

        self.state = new_state
        return update
