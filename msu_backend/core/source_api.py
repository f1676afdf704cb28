# msu_backend/core/source_api.py
import logging
import time
from dataclasses import dataclass
from typing import Optional

import httpx

from msu_backend.core.config import settings

logger = logging.getLogger(__name__)


class SourceDownloadError(Exception):
    """Файл расписания не удалось получить."""


@dataclass
class CheckResult:
    url: str
    last_modified: Optional[str]
    is_changed: bool


class SourceApi:
    """Асинхронный клиент для файлов расписания на сайте университета."""
    def __init__(self, timeout: float = settings.FETCH_TIMEOUT):
        self.client = httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    async def check_file_header(self, url: str, old_last_modified: Optional[str]) -> CheckResult:
        """
        HEAD-запрос: изменился ли файл с момента old_last_modified.
        Любая ошибка сети считается "без изменений" - повторим в следующем цикле.
        """
        start = time.monotonic()
        try:
            response = await self.client.head(url)
        except httpx.RequestError as e:
            logger.error(f"[HEAD] Request error for {url}: {e}")
            return CheckResult(url, old_last_modified, False)

        duration = int((time.monotonic() - start) * 1000)
        if response.status_code != 200:
            logger.warning(f"[HEAD] {url} | Status: {response.status_code} | Time: {duration}ms")
            return CheckResult(url, old_last_modified, False)

        new_last_modified = response.headers.get("Last-Modified")
        if old_last_modified is None and new_last_modified is not None:
            logger.info(f"[HEAD] {url} | Time: {duration}ms | Initial fetch -> update required ({new_last_modified})")
            return CheckResult(url, new_last_modified, True)

        if new_last_modified is not None and new_last_modified != old_last_modified:
            logger.info(f"[HEAD] {url} | Time: {duration}ms | Update detected: {old_last_modified} -> {new_last_modified}")
            return CheckResult(url, new_last_modified, True)

        return CheckResult(url, old_last_modified, False)

    async def download_file(self, url: str) -> bytes:
        logger.info(f"Downloading file from {url}")
        try:
            response = await self.client.get(url)
            response.raise_for_status()
        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            raise SourceDownloadError(f"Failed to download {url}: {e}") from e
        if not response.content:
            raise SourceDownloadError(f"Empty body received from {url}")
        return response.content

    async def close(self):
        await self.client.aclose()

api_client = SourceApi()
