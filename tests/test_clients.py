from unittest.mock import MagicMock

import pytest
import requests

from anisync.anisync.anilist_api import AniListClient
from anisync.anisync.http_session import create_retry_session, parse_json
from anisync.anisync.jikan_api import JikanClient
from anisync.anisync.kitsu_api import KitsuClient
from anisync.anisync.logging import APIError, ValidationError


def response(payload=None, status=200):
    resp = MagicMock()
    resp.ok = 200 <= status < 300
    resp.status_code = status
    resp.text = "" if payload is None else str(payload)
    if payload is None:
        resp.json.side_effect = ValueError("Expecting value")
    else:
        resp.json.return_value = payload
    return resp


def test_retry_session_mounts_adapters():
    session = create_retry_session(retries=2)
    adapter = session.get_adapter("https://graphql.anilist.co")
    assert adapter.max_retries.total == 2
    assert "AniSync" in session.headers["User-Agent"]


def test_parse_json_errors():
    with pytest.raises(APIError) as exc:
        parse_json(response({"error": "rate limited"}, status=429), "Kitsu")
    assert exc.value.status_code == 429

    with pytest.raises(APIError):
        parse_json(response(None), "Jikan")


class TestAniList:
    def test_fetch_page(self):
        session = MagicMock()
        session.post.return_value = response({"data": {"Page": {
            "pageInfo": {"currentPage": 2, "hasNextPage": True, "lastPage": 400},
            "media": [{"id": 1}, {"id": 2}],
        }}})
        client = AniListClient(per_page=2, session=session)

        result = client.fetch_page("manga", 2)

        assert [m["id"] for m in result.items] == [1, 2]
        assert result.current_page == 2
        assert result.has_next_page is True
        payload = session.post.call_args.kwargs["json"]
        assert "type: MANGA" in payload["query"]
        assert payload["variables"] == {"page": 2, "perPage": 2, "sort": ["POPULARITY_DESC"]}

    def test_graphql_errors_raise(self):
        session = MagicMock()
        session.post.return_value = response({"errors": [{"message": "Too Many Requests."}], "data": None})
        with pytest.raises(APIError, match="Too Many Requests"):
            AniListClient(session=session).fetch_page("anime", 1)

    def test_transport_error_raises(self):
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("offline")
        with pytest.raises(APIError):
            AniListClient(session=session).fetch_page("anime", 1)

    def test_unknown_content_type(self):
        with pytest.raises(ValidationError):
            AniListClient(session=MagicMock()).fetch_page("novel", 1)


class TestKitsu:
    def _page(self, ids, next_link=True, included=()):
        return response({
            "data": [{"id": str(i), "type": "anime"} for i in ids],
            "included": list(included),
            "links": {"next": "https://kitsu.io/next"} if next_link else {},
        })

    def test_walks_offsets_and_merges_included(self):
        genre = {"type": "genres", "id": "1", "attributes": {"name": "Action"}}
        session = MagicMock()
        session.get.side_effect = [
            self._page(range(20), included=[genre]),
            self._page(range(20, 30), included=[genre]),
        ]
        sleep = MagicMock()
        client = KitsuClient(session=session, page_delay=0.5, sleep=sleep)

        result = client.fetch_recent("anime", limit=30, days_back=7)

        assert len(result.items) == 30
        assert result.included == [genre]
        first, second = [call.kwargs["params"] for call in session.get.call_args_list]
        assert first["page[limit]"] == 20
        assert first["page[offset]"] == 0
        assert first["sort"] == "-updatedAt"
        assert first["include"] == "genres"
        assert second["page[limit]"] == 10
        assert second["page[offset]"] == 20
        sleep.assert_called_once_with(0.5)

    def test_stops_on_short_page(self):
        session = MagicMock()
        session.get.return_value = self._page(range(3))
        sleep = MagicMock()

        result = KitsuClient(session=session, sleep=sleep).fetch_recent("manga", limit=50)

        assert len(result.items) == 3
        assert session.get.call_count == 1
        assert session.get.call_args.args[0].endswith("/manga")
        sleep.assert_not_called()

    def test_stops_without_next_link(self):
        session = MagicMock()
        session.get.return_value = self._page(range(20), next_link=False)
        KitsuClient(session=session, sleep=MagicMock()).fetch_recent("anime", limit=60)
        assert session.get.call_count == 1

    def test_http_error_raises(self):
        session = MagicMock()
        session.get.return_value = response({"errors": []}, status=500)
        with pytest.raises(APIError):
            KitsuClient(session=session).fetch_recent("anime")


class TestJikan:
    def test_fetch_page(self):
        session = MagicMock()
        session.get.return_value = response({
            "pagination": {"current_page": 3, "has_next_page": False, "last_visible_page": 3},
            "data": [{"mal_id": 16498}],
        })

        result = JikanClient(session=session).fetch_page("anime", 3)

        assert result.items == [{"mal_id": 16498}]
        assert result.current_page == 3
        assert result.has_next_page is False
        params = session.get.call_args.kwargs["params"]
        assert params == {"page": 3, "limit": 25, "order_by": "popularity"}
