"""
Sync orchestrator: pulls provider pages into the catalog.

Fetch -> normalize -> duplicate guard -> insert or update -> log -> delay,
one page at a time in increasing page order. Every invocation owns a
SyncRun; nothing is kept at module level.
"""

import time
import logging
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from . import constants as c
from .anilist_api import AniListClient
from .config import get_config
from .jikan_api import JikanClient
from .logging import AniSyncError, ValidationError
from .models import CatalogPage, SyncResult
from .normalizer import normalize
from .store import CatalogStore

logger = logging.getLogger(__name__)

PAGED_PROVIDERS = (c.PROVIDER_ANILIST, c.PROVIDER_JIKAN)

PageCallback = Callable[[int, SyncResult], None]


def make_client(provider: str, config=None):
    """Catalog client for a paged provider, configured from settings."""
    config = config or get_config()
    if provider == c.PROVIDER_ANILIST:
        return AniListClient.from_config(config.anilist)
    if provider == c.PROVIDER_JIKAN:
        return JikanClient.from_config(config.jikan)
    raise ValidationError(f"Provider '{provider}' does not support paged sync")


def page_delay_for(provider: str, config=None) -> float:
    config = config or get_config()
    if provider == c.PROVIDER_JIKAN:
        return config.jikan.rate_limit_delay
    return config.anilist.page_delay


class SyncRun:
    """State and steps of a single sync invocation."""

    def __init__(self, store: CatalogStore, client, content_type: str,
                 provider: str = c.PROVIDER_ANILIST,
                 operation: str = c.OPERATION_BULK_IMPORT,
                 page_delay: float = c.ANILIST_PAGE_DELAY,
                 page_error_pause: float = c.PAGE_ERROR_PAUSE,
                 dry_run: bool = False,
                 sleep: Callable[[float], None] = time.sleep,
                 on_page: Optional[PageCallback] = None):
        if content_type not in c.CONTENT_TYPES:
            raise ValidationError(f"Unknown content type: {content_type}")
        self.store = store
        self.client = client
        self.content_type = content_type
        self.provider = provider
        self.operation = operation
        self.page_delay = page_delay
        self.page_error_pause = page_error_pause
        self.dry_run = dry_run
        self.sleep = sleep
        self.on_page = on_page
        self.result = SyncResult(content_type=content_type, provider=provider)

    @property
    def complete(self) -> bool:
        return self.operation == c.OPERATION_COMPLETE_SYNC

    def process_record(self, raw: dict, page: CatalogPage) -> None:
        """Normalizes and persists one record; failures are counted, never raised."""
        try:
            record = normalize(raw, self.provider, self.content_type, page.included)
            if self.dry_run:
                self.result.processed += 1
                return

            title_id = self.store.find_existing_for(record)
            if title_id is not None:
                counts = self.store.update_title(title_id, record)
                self.result.updated += 1
            else:
                title_id, counts = self.store.create_title(record)
                self.result.inserted += 1
            self.result.relations.add(counts)
            self.result.processed += 1
        except (AniSyncError, SQLAlchemyError) as e:
            ident = raw.get("id") or raw.get("mal_id") or "?"
            message = f"Error processing {self.provider} {self.content_type} {ident}: {e}"
            logger.warning(message)
            self.result.record_error(message)

    def process_page(self, page_num: int) -> Optional[CatalogPage]:
        """
        Fetches and processes one page.

        Returns None when the fetch failed; the failure is logged and counted.
        """
        try:
            page = self.client.fetch_page(self.content_type, page_num)
        except AniSyncError as e:
            message = f"Page {page_num} fetch failed: {e}"
            logger.error(message)
            self.result.record_error(message)
            self._log_page(page_num, 0, c.STATUS_FAILED, message)
            return None

        before = self.result.processed
        for raw in page.items:
            self.process_record(raw, page)

        if not page.is_empty:
            self.result.pages += 1
            processed = self.result.processed - before
            self._log_page(page_num, processed, c.STATUS_COMPLETED)
            logger.info(
                f"{self.provider} {self.content_type} page {page_num}: "
                f"{processed}/{len(page.items)} records, {self.result.errors} errors so far"
            )
        return page

    def _log_page(self, page_num: int, processed: int, status: str, message: Optional[str] = None) -> None:
        if self.dry_run or self.result.run_id is None:
            return
        self.store.log_page(
            self.result.run_id, self.content_type, self.operation, page_num,
            processed, status, message, total_processed=self.result.processed,
        )

    def run(self, max_pages: int = c.DEFAULT_MAX_PAGES, start_page: int = c.DEFAULT_START_PAGE) -> SyncResult:
        if max_pages < 1:
            raise ValidationError("max_pages must be at least 1")
        if start_page < 1:
            raise ValidationError("start_page must be at least 1")

        if not self.dry_run:
            self.result.run_id = self.store.start_run(self.content_type, self.operation)

        logger.info(
            f"Starting {self.operation} of {self.content_type} from {self.provider}: "
            f"pages {start_page}..{start_page + max_pages - 1}"
        )
        try:
            for page_num in range(start_page, start_page + max_pages):
                page = self.process_page(page_num)
                is_last = page_num == start_page + max_pages - 1

                if page is None:
                    if not is_last:
                        self.sleep(self.page_error_pause)
                    continue
                if page.is_empty:
                    logger.info(f"Page {page_num} is empty, stopping")
                    break
                if self.on_page:
                    self.on_page(page_num, self.result)
                if self.complete and not page.has_next_page:
                    logger.info(f"{self.provider} reports no pages after {page_num}, stopping")
                    break
                if not is_last:
                    self.sleep(self.page_delay)
        except Exception as e:
            if self.result.run_id:
                self.store.finish_run(self.result.run_id, c.STATUS_FAILED, self.result.processed, str(e))
            raise

        if self.result.run_id:
            self.store.finish_run(self.result.run_id, c.STATUS_COMPLETED, self.result.processed)
        logger.info(
            f"Finished {self.operation} of {self.content_type}: processed={self.result.processed} "
            f"inserted={self.result.inserted} updated={self.result.updated} "
            f"errors={self.result.errors} pages={self.result.pages}"
        )
        return self.result


def run_sync(content_type: str, max_pages: Optional[int] = None, start_page: int = c.DEFAULT_START_PAGE,
             provider: str = c.PROVIDER_ANILIST, complete: bool = False, resume: bool = False,
             store: Optional[CatalogStore] = None, client=None,
             sleep: Callable[[float], None] = time.sleep,
             on_page: Optional[PageCallback] = None) -> SyncResult:
    """
    Runs one sync invocation and returns its counters.

    With `resume`, paging starts after the last page this operation
    completed for the content type. The store is pinged first so an
    unreachable database aborts before any fetch.
    """
    config = get_config()
    if provider not in PAGED_PROVIDERS:
        raise ValidationError(f"Provider '{provider}' does not support paged sync")

    store = store or CatalogStore.from_url(config.database.url, echo=config.database.echo)
    store.ping()
    client = client or make_client(provider, config)
    operation = c.OPERATION_COMPLETE_SYNC if complete else c.OPERATION_BULK_IMPORT

    if resume:
        last = store.last_completed_page(content_type, operation)
        if last:
            start_page = last + 1
            logger.info(f"Resuming {operation} of {content_type} at page {start_page}")

    sync_run = SyncRun(
        store=store,
        client=client,
        content_type=content_type,
        provider=provider,
        operation=operation,
        page_delay=page_delay_for(provider, config),
        page_error_pause=config.sync.page_error_pause,
        dry_run=config.dry_run,
        sleep=sleep,
        on_page=on_page,
    )
    return sync_run.run(max_pages=max_pages or config.sync.max_pages, start_page=start_page)
