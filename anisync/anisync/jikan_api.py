import logging
from typing import Optional

import requests

from . import constants as c
from .http_session import create_retry_session, parse_json
from .logging import APIError, ValidationError, log_api_call
from .models import CatalogPage

logger = logging.getLogger(__name__)


class JikanClient:
    """Jikan v4 (MyAnimeList) catalog pages ordered by popularity."""

    def __init__(self, base_url: str = c.JIKAN_BASE_URL, per_page: int = c.JIKAN_PER_PAGE,
                 timeout: int = 10, max_retries: int = c.HTTP_RETRY_COUNT,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.per_page = per_page
        self.timeout = timeout
        self.session = session or create_retry_session(retries=max_retries)

    @classmethod
    def from_config(cls, config) -> "JikanClient":
        return cls(
            base_url=config.base_url,
            per_page=config.per_page,
            timeout=config.timeout,
            max_retries=config.max_retries,
        )

    def fetch_page(self, content_type: str, page: int) -> CatalogPage:
        if content_type not in c.CONTENT_TYPES:
            raise ValidationError(f"Unknown content type: {content_type}")

        url = f"{self.base_url}/{content_type}"
        params = {"page": page, "limit": self.per_page, "order_by": "popularity"}
        log_api_call(url, "GET", params)
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise APIError(f"Jikan request failed: {e}") from e

        data = parse_json(resp, "Jikan")
        pagination = data.get("pagination") or {}
        items = data.get("data") or []
        logger.debug(f"Jikan {content_type} page {page}: {len(items)} items")

        return CatalogPage(
            items=items,
            current_page=pagination.get("current_page") or page,
            has_next_page=bool(pagination.get("has_next_page")),
            last_page=pagination.get("last_visible_page"),
        )
