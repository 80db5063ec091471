"""
Kitsu JSON:API client.

Kitsu caps `page[limit]` at 20, so larger requests walk `page[offset]`.
Genres come side-loaded through `include=genres` and are returned in
`CatalogPage.included` for the normalizer to resolve.
"""

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import requests

from . import constants as c
from .http_session import create_retry_session, parse_json
from .logging import APIError, ValidationError, log_api_call
from .models import CatalogPage

logger = logging.getLogger(__name__)


def updated_since(days_back: int, now: Optional[datetime] = None) -> str:
    """ISO timestamp `days_back` days before now (UTC)."""
    now = now or datetime.now(timezone.utc)
    return (now - timedelta(days=days_back)).isoformat()


class KitsuClient:
    def __init__(self, base_url: str = c.KITSU_API_BASE, page_delay: float = c.KITSU_PAGE_DELAY,
                 timeout: int = c.HTTP_TIMEOUT_SECONDS, max_retries: int = c.HTTP_RETRY_COUNT,
                 session: Optional[requests.Session] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.base_url = base_url.rstrip("/")
        self.page_delay = page_delay
        self.timeout = timeout
        self.session = session or create_retry_session(retries=max_retries)
        self.session.headers.update({"Accept": c.KITSU_JSONAPI_MEDIA_TYPE})
        self.sleep = sleep

    @classmethod
    def from_config(cls, config) -> "KitsuClient":
        return cls(
            base_url=config.base_url,
            page_delay=config.page_delay,
            timeout=config.timeout,
            max_retries=config.max_retries,
        )

    def _get(self, url: str, params: dict) -> dict:
        log_api_call(url, "GET", params)
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise APIError(f"Kitsu request failed: {e}") from e
        return parse_json(resp, "Kitsu")

    def fetch_recent(self, content_type: str, limit: int = c.DEFAULT_RECONCILE_LIMIT,
                     days_back: int = c.DEFAULT_RECONCILE_DAYS_BACK) -> CatalogPage:
        """
        Records updated in the last `days_back` days, newest first, up to `limit`.

        All offset pages are merged into a single CatalogPage.
        """
        if content_type not in c.CONTENT_TYPES:
            raise ValidationError(f"Unknown content type: {content_type}")

        url = f"{self.base_url}/{content_type}"
        since = updated_since(days_back)
        items, included = [], []
        seen_included = set()
        offset = 0

        while offset < limit:
            page_limit = min(c.KITSU_MAX_PAGE_LIMIT, limit - offset)
            params = {
                "page[limit]": page_limit,
                "page[offset]": offset,
                "sort": "-updatedAt",
                "filter[updatedAt]": since,
                "include": "genres",
            }
            data = self._get(url, params)
            batch = data.get("data") or []
            items.extend(batch)
            for inc in data.get("included") or []:
                key = (inc.get("type"), inc.get("id"))
                if key not in seen_included:
                    seen_included.add(key)
                    included.append(inc)

            offset += len(batch)
            has_more = bool((data.get("links") or {}).get("next"))
            if len(batch) < page_limit or not has_more or offset >= limit:
                break
            self.sleep(self.page_delay)

        logger.info(f"Kitsu returned {len(items)} {content_type} records updated since {since}")
        return CatalogPage(items=items, current_page=1, has_next_page=False, included=included)
