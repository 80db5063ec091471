"""
AniList GraphQL client.

One POST per page; the query pulls everything the normalizer needs,
including ranking, main studios and the staff edges authors come from.
"""

import logging
from typing import Any, Dict, Optional

import requests

from . import constants as c
from .http_session import create_retry_session, parse_json
from .logging import APIError, ValidationError, log_api_call
from .models import CatalogPage

logger = logging.getLogger(__name__)

_MEDIA_FIELDS = """
      id
      idMal
      title { romaji english native }
      description(asHtml: false)
      coverImage { extraLarge large medium color }
      averageScore
      popularity
      favourites
      rankings { rank type allTime }
      season
      seasonYear
      startDate { year month day }
      endDate { year month day }
      status
      format
      genres
"""

ANIME_QUERY = """
query ($page: Int, $perPage: Int, $sort: [MediaSort]) {
  Page(page: $page, perPage: $perPage) {
    pageInfo { currentPage hasNextPage lastPage }
    media(type: ANIME, sort: $sort) {%s
      episodes
      trailer { id site }
      nextAiringEpisode { airingAt episode }
      studios { edges { isMain node { name } } }
    }
  }
}
""" % _MEDIA_FIELDS

MANGA_QUERY = """
query ($page: Int, $perPage: Int, $sort: [MediaSort]) {
  Page(page: $page, perPage: $perPage) {
    pageInfo { currentPage hasNextPage lastPage }
    media(type: MANGA, sort: $sort) {%s
      chapters
      volumes
      staff { edges { role node { name { full } } } }
    }
  }
}
""" % _MEDIA_FIELDS


class AniListClient:
    def __init__(self, api_url: str = c.ANILIST_API_URL, per_page: int = c.ANILIST_PER_PAGE,
                 timeout: int = c.HTTP_TIMEOUT_SECONDS, max_retries: int = c.HTTP_RETRY_COUNT,
                 session: Optional[requests.Session] = None):
        self.api_url = api_url
        self.per_page = per_page
        self.timeout = timeout
        self.session = session or create_retry_session(retries=max_retries)

    @classmethod
    def from_config(cls, config) -> "AniListClient":
        return cls(
            api_url=config.api_url,
            per_page=config.per_page,
            timeout=config.timeout,
            max_retries=config.max_retries,
        )

    def query(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        """POSTs a GraphQL query. Raises APIError on HTTP errors or a GraphQL `errors` array."""
        log_api_call(self.api_url, "POST", variables)
        try:
            resp = self.session.post(
                self.api_url,
                json={"query": query, "variables": variables},
                headers={"Content-Type": "application/json", "Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise APIError(f"AniList request failed: {e}") from e

        data = parse_json(resp, "AniList")
        if data.get("errors"):
            messages = "; ".join(err.get("message", str(err)) for err in data["errors"])
            raise APIError(f"AniList GraphQL error: {messages}", status_code=resp.status_code)
        return data.get("data") or {}

    def fetch_page(self, content_type: str, page: int) -> CatalogPage:
        """One page of media sorted by popularity."""
        if content_type == "anime":
            query = ANIME_QUERY
        elif content_type == "manga":
            query = MANGA_QUERY
        else:
            raise ValidationError(f"Unknown content type: {content_type}")

        data = self.query(query, {"page": page, "perPage": self.per_page, "sort": [c.ANILIST_SORT]})
        page_data = data.get("Page") or {}
        info = page_data.get("pageInfo") or {}
        media = page_data.get("media") or []
        logger.debug(f"AniList {content_type} page {page}: {len(media)} items")

        return CatalogPage(
            items=media,
            current_page=info.get("currentPage") or page,
            has_next_page=bool(info.get("hasNextPage")),
            last_page=info.get("lastPage"),
        )
