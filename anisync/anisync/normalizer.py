"""
Field normalization: provider records -> CanonicalRecord.

All helpers are pure. Bad dates and unknown statuses degrade to a safe value
(None / passthrough) instead of raising; only a record without an id is
rejected.
"""

import re
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from . import constants as c
from .models import CanonicalRecord
from .logging import ValidationError

logger = logging.getLogger(__name__)

HTML_TAG_RE = re.compile(r'<[^>]*>')
ISO_DATE_RE = re.compile(r'^(\d{4})-(\d{1,2})-(\d{1,2})')


def format_date(parts: Optional[Dict[str, Any]]) -> Optional[str]:
    """
    Formats a partial {year, month, day} struct as YYYY-MM-DD.

    Month and day default to 1. Out-of-range components, days beyond the fixed
    month table and impossible calendar dates (Feb 29 outside leap years)
    yield None.
    """
    if not parts or not parts.get("year"):
        return None

    try:
        year = int(parts["year"])
        month = int(parts["month"]) if parts.get("month") is not None else 1
        day = int(parts["day"]) if parts.get("day") is not None else 1
    except (TypeError, ValueError):
        return None

    if year < c.DATE_YEAR_MIN or year > c.DATE_YEAR_MAX:
        return None
    if month < 1 or month > 12:
        return None
    if day < 1 or day > c.DAYS_IN_MONTH[month - 1]:
        return None

    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def parse_iso_date(value: Optional[str]) -> Optional[str]:
    """Validates an ISO date or timestamp string ('2013-04-07', '2013-04-07T00:00:00+00:00')."""
    if not value:
        return None
    m = ISO_DATE_RE.match(str(value))
    if not m:
        return None
    return format_date({"year": m.group(1), "month": m.group(2), "day": m.group(3)})


def year_of(iso_date: Optional[str]) -> Optional[int]:
    return int(iso_date[:4]) if iso_date else None


def map_status(status: Optional[str]) -> Optional[str]:
    """Maps provider status enums to the canonical vocabulary; unknown values pass through."""
    if status is None:
        return None
    if status in c.STATUS_MAP:
        return c.STATUS_MAP[status]
    return c.KITSU_STATUS_MAP.get(status, status)


def strip_html(text: Optional[str]) -> Optional[str]:
    """Removes HTML tags. Entities such as &amp; are left as-is."""
    if not text:
        return None
    stripped = HTML_TAG_RE.sub('', text).strip()
    return stripped or None


def normalize_score(value: Any, scale: int = 100) -> Optional[float]:
    """Converts a provider score to the canonical 0-10 scale."""
    if value is None or value == "":
        return None
    try:
        score = float(value)
    except (TypeError, ValueError):
        return None
    # providers report 0 for unrated entries
    if score == 0:
        return None
    if scale == 100:
        return score / 10
    return score


def unique_names(names: Iterable[Optional[str]]) -> List[str]:
    """Drops blanks and exact duplicates, keeping first-seen order."""
    seen = set()
    result = []
    for name in names:
        if not name:
            continue
        name = name.strip()
        if name and name not in seen:
            seen.add(name)
            result.append(name)
    return result


def _require_id(raw: Any, provider: str) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{provider} record has no usable id: {raw!r}")


# --- AniList ---

def _anilist_rank(media: Dict[str, Any]) -> Optional[int]:
    for ranking in media.get("rankings") or []:
        if ranking.get("type") == "RATED" and ranking.get("allTime", True):
            return ranking.get("rank")
    return None


def _anilist_trailer(media: Dict[str, Any]) -> Dict[str, Any]:
    trailer = media.get("trailer") or {}
    site = trailer.get("site")
    trailer_id = trailer.get("id")
    is_youtube = bool(site) and site.lower() == "youtube" and bool(trailer_id)
    return {
        "trailer_url": f"https://www.youtube.com/watch?v={trailer_id}" if is_youtube else None,
        "trailer_id": trailer_id if is_youtube else None,
        "trailer_site": site,
    }


def _anilist_next_episode(media: Dict[str, Any]) -> Dict[str, Any]:
    nxt = media.get("nextAiringEpisode") or {}
    airing_at = nxt.get("airingAt")
    return {
        "next_episode_date": datetime.fromtimestamp(airing_at, tz=timezone.utc).isoformat() if airing_at else None,
        "next_episode_number": nxt.get("episode"),
    }


def normalize_anilist(media: Dict[str, Any], content_type: str) -> CanonicalRecord:
    """Maps an AniList `Media` object onto the canonical shape."""
    anilist_id = _require_id(media.get("id"), c.PROVIDER_ANILIST)
    titles = media.get("title") or {}
    cover = media.get("coverImage") or {}
    start = media.get("startDate") or {}
    average = media.get("averageScore")

    if content_type == "anime":
        detail = {
            "episodes": media.get("episodes"),
            "aired_from": format_date(media.get("startDate")),
            "aired_to": format_date(media.get("endDate")),
            "season": media.get("season"),
            "status": map_status(media.get("status")),
            "type": media.get("format") or c.DEFAULT_ANIME_TYPE,
        }
        detail.update(_anilist_trailer(media))
        detail.update(_anilist_next_episode(media))
    else:
        detail = {
            "chapters": media.get("chapters"),
            "volumes": media.get("volumes"),
            "published_from": format_date(media.get("startDate")),
            "published_to": format_date(media.get("endDate")),
            "status": map_status(media.get("status")),
            "type": media.get("format") or c.DEFAULT_MANGA_TYPE,
        }

    studios: List[str] = []
    authors: List[str] = []
    if content_type == "anime":
        edges = (media.get("studios") or {}).get("edges") or []
        studios = unique_names(
            (e.get("node") or {}).get("name") for e in edges if e.get("isMain")
        )
    else:
        edges = (media.get("staff") or {}).get("edges") or []
        authors = unique_names(
            ((e.get("node") or {}).get("name") or {}).get("full")
            for e in edges if e.get("role") in c.AUTHOR_ROLES
        )

    secondary = {}
    if media.get("idMal"):
        secondary[c.PROVIDER_JIKAN] = int(media["idMal"])

    return CanonicalRecord(
        provider=c.PROVIDER_ANILIST,
        external_id=anilist_id,
        content_type=content_type,
        title=titles.get("romaji") or titles.get("english") or c.UNKNOWN_TITLE,
        title_english=titles.get("english") or None,
        title_japanese=titles.get("native") or None,
        synopsis=strip_html(media.get("description")),
        image_url=cover.get("extraLarge") or cover.get("large") or cover.get("medium"),
        score=normalize_score(average),
        anilist_score=normalize_score(average),
        rank=_anilist_rank(media),
        popularity=media.get("popularity"),
        favorites=media.get("favourites"),
        members=media.get("popularity"),
        year=media.get("seasonYear") or start.get("year"),
        color_theme=cover.get("color"),
        secondary_ids=secondary,
        detail=detail,
        genres=unique_names(media.get("genres") or []),
        studios=studios,
        authors=authors,
    )


# --- Kitsu ---

def kitsu_genre_names(item: Dict[str, Any], included: List[Dict[str, Any]]) -> List[str]:
    """Resolves the item's genre relationship ids against the side-loaded `included` list."""
    rel = ((item.get("relationships") or {}).get("genres") or {}).get("data") or []
    wanted = {str(g.get("id")) for g in rel}
    names = [
        (inc.get("attributes") or {}).get("name")
        for inc in included
        if inc.get("type") == "genres" and str(inc.get("id")) in wanted
    ]
    return unique_names(names)


def normalize_kitsu(item: Dict[str, Any], content_type: str,
                    included: Optional[List[Dict[str, Any]]] = None) -> CanonicalRecord:
    """Maps a Kitsu JSON:API resource onto the canonical shape."""
    kitsu_id = _require_id(item.get("id"), c.PROVIDER_KITSU)
    attrs = item.get("attributes") or {}
    titles = attrs.get("titles") or {}
    poster = attrs.get("posterImage") or {}
    start = parse_iso_date(attrs.get("startDate"))
    end = parse_iso_date(attrs.get("endDate"))

    if content_type == "anime":
        detail = {
            "episodes": attrs.get("episodeCount"),
            "aired_from": start,
            "aired_to": end,
            "status": map_status(attrs.get("status")),
            "type": attrs.get("subtype"),
        }
    else:
        detail = {
            "chapters": attrs.get("chapterCount"),
            "volumes": attrs.get("volumeCount"),
            "published_from": start,
            "published_to": end,
            "status": map_status(attrs.get("status")),
            "type": attrs.get("subtype"),
        }

    return CanonicalRecord(
        provider=c.PROVIDER_KITSU,
        external_id=kitsu_id,
        content_type=content_type,
        title=attrs.get("canonicalTitle") or c.UNKNOWN_TITLE,
        title_english=titles.get("en") or titles.get("en_jp") or None,
        title_japanese=titles.get("ja_jp") or None,
        synopsis=strip_html(attrs.get("synopsis")),
        image_url=poster.get("large") or poster.get("original"),
        score=normalize_score(attrs.get("averageRating")),
        rank=attrs.get("ratingRank"),
        popularity=attrs.get("popularityRank"),
        favorites=attrs.get("favoritesCount"),
        members=attrs.get("userCount"),
        year=year_of(start),
        detail=detail,
        genres=kitsu_genre_names(item, included or []),
    )


# --- Jikan (MyAnimeList) ---

def normalize_jikan(item: Dict[str, Any], content_type: str) -> CanonicalRecord:
    """Maps a Jikan v4 anime/manga object onto the canonical shape."""
    mal_id = _require_id(item.get("mal_id"), c.PROVIDER_JIKAN)
    images = (item.get("images") or {}).get("jpg") or {}
    window = item.get("aired") if content_type == "anime" else item.get("published")
    window = window or {}
    start = parse_iso_date(window.get("from"))
    end = parse_iso_date(window.get("to"))

    if content_type == "anime":
        detail = {
            "episodes": item.get("episodes"),
            "aired_from": start,
            "aired_to": end,
            "season": item.get("season").upper() if item.get("season") else None,
            "status": map_status(item.get("status")),
            "type": item.get("type") or c.DEFAULT_ANIME_TYPE,
        }
        trailer_id = (item.get("trailer") or {}).get("youtube_id")
        if trailer_id:
            detail.update({
                "trailer_url": f"https://www.youtube.com/watch?v={trailer_id}",
                "trailer_id": trailer_id,
                "trailer_site": "youtube",
            })
    else:
        detail = {
            "chapters": item.get("chapters"),
            "volumes": item.get("volumes"),
            "published_from": start,
            "published_to": end,
            "status": map_status(item.get("status")),
            "type": item.get("type") or c.DEFAULT_MANGA_TYPE,
        }

    return CanonicalRecord(
        provider=c.PROVIDER_JIKAN,
        external_id=mal_id,
        content_type=content_type,
        title=item.get("title") or c.UNKNOWN_TITLE,
        title_english=item.get("title_english") or None,
        title_japanese=item.get("title_japanese") or None,
        synopsis=strip_html(item.get("synopsis")),
        image_url=images.get("large_image_url") or images.get("image_url"),
        score=normalize_score(item.get("score"), scale=10),
        rank=item.get("rank"),
        popularity=item.get("popularity"),
        favorites=item.get("favorites"),
        members=item.get("members"),
        year=item.get("year") or year_of(start),
        detail=detail,
        genres=unique_names(g.get("name") for g in item.get("genres") or []),
        studios=unique_names(s.get("name") for s in item.get("studios") or []) if content_type == "anime" else [],
        authors=unique_names(a.get("name") for a in item.get("authors") or []) if content_type == "manga" else [],
    )


def normalize(record: Dict[str, Any], provider: str, content_type: str,
              included: Optional[List[Dict[str, Any]]] = None) -> CanonicalRecord:
    """Dispatches a raw provider record to the matching normalizer."""
    if content_type not in c.CONTENT_TYPES:
        raise ValidationError(f"Unknown content type: {content_type}")
    if provider == c.PROVIDER_ANILIST:
        return normalize_anilist(record, content_type)
    if provider == c.PROVIDER_KITSU:
        return normalize_kitsu(record, content_type, included)
    if provider == c.PROVIDER_JIKAN:
        return normalize_jikan(record, content_type)
    raise ValidationError(f"Unknown provider: {provider}")
