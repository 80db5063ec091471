import pytest
from unittest.mock import MagicMock

from anisync.anisync.config import setup_config
from anisync.anisync.logging import console
from anisync.anisync.models import CatalogPage
from anisync.anisync.store import CatalogStore


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'catalog.db'}"


@pytest.fixture(autouse=True)
def config(db_url):
    """Fresh global config pointing at a throwaway SQLite database."""
    return setup_config(database_url=db_url)


@pytest.fixture(autouse=True)
def wide_console():
    """Keeps rich tables from wrapping cell text under CliRunner."""
    previous = console.width
    console.width = 200
    yield console
    console.width = previous


@pytest.fixture
def store(db_url):
    store = CatalogStore.from_url(db_url)
    yield store
    store.engine.dispose()


def anilist_media(media_id=16498, romaji="Shingeki no Kyojin", english="Attack on Titan",
                  genres=("Action", "Drama"), **overrides):
    media = {
        "id": media_id,
        "idMal": None,
        "title": {"romaji": romaji, "english": english, "native": "進撃の巨人"},
        "description": "<p>Humanity lives behind <i>walls</i>.</p>",
        "coverImage": {"extraLarge": "https://img/xl.jpg", "large": "https://img/l.jpg", "color": "#e4a15d"},
        "averageScore": 85,
        "popularity": 900000,
        "favourites": 50000,
        "rankings": [
            {"rank": 3, "type": "POPULAR", "allTime": True},
            {"rank": 12, "type": "RATED", "allTime": True},
        ],
        "season": "SPRING",
        "seasonYear": 2013,
        "startDate": {"year": 2013, "month": 4, "day": 7},
        "endDate": {"year": 2013, "month": 9, "day": 29},
        "status": "FINISHED",
        "format": "TV",
        "genres": list(genres),
        "episodes": 25,
        "trailer": {"id": "LHtdKWJdif4", "site": "youtube"},
        "nextAiringEpisode": None,
        "studios": {"edges": [
            {"isMain": True, "node": {"name": "Wit Studio"}},
            {"isMain": False, "node": {"name": "Pony Canyon"}},
        ]},
    }
    media.update(overrides)
    return media


def kitsu_item(kitsu_id="7442", title="Shingeki no Kyojin", english="Attack on Titan",
               genre_ids=("1",), **attr_overrides):
    attributes = {
        "canonicalTitle": title,
        "titles": {"en": english, "ja_jp": "進撃の巨人"},
        "synopsis": "<p>Kitsu synopsis</p>",
        "posterImage": {"large": "https://kitsu/poster.jpg"},
        "averageRating": "84.5",
        "ratingRank": 50,
        "popularityRank": 3,
        "favoritesCount": 1000,
        "userCount": 200000,
        "startDate": "2013-04-07",
        "endDate": "2013-09-28",
        "status": "finished",
        "subtype": "TV",
        "episodeCount": 25,
    }
    attributes.update(attr_overrides)
    return {
        "id": kitsu_id,
        "type": "anime",
        "attributes": attributes,
        "relationships": {"genres": {"data": [{"type": "genres", "id": g} for g in genre_ids]}},
    }


KITSU_GENRES = [
    {"type": "genres", "id": "1", "attributes": {"name": "Action"}},
    {"type": "genres", "id": "2", "attributes": {"name": "Fantasy"}},
]


def page(items, number=1, has_next=True, included=None):
    return CatalogPage(items=list(items), current_page=number, has_next_page=has_next,
                       included=list(included or []))


def paged_client(*pages):
    """Client mock whose fetch_page returns the given pages, then empty pages."""
    client = MagicMock()
    queue = list(pages)

    def fetch_page(content_type, page_num):
        if queue:
            item = queue.pop(0)
            if isinstance(item, Exception):
                raise item
            return item
        return CatalogPage(items=[], current_page=page_num, has_next_page=False)

    client.fetch_page.side_effect = fetch_page
    return client


def kitsu_client(items, included=KITSU_GENRES):
    client = MagicMock()
    client.fetch_recent.return_value = CatalogPage(items=list(items), current_page=1, included=list(included))
    return client
