import pytest

from anisync.anisync.logging import ValidationError
from anisync.anisync.normalizer import (
    format_date,
    kitsu_genre_names,
    map_status,
    normalize,
    normalize_anilist,
    normalize_jikan,
    normalize_kitsu,
    normalize_score,
    parse_iso_date,
    strip_html,
    unique_names,
)
from conftest import KITSU_GENRES, anilist_media, kitsu_item


class TestDates:
    def test_full_date(self):
        assert format_date({"year": 2013, "month": 4, "day": 7}) == "2013-04-07"

    def test_year_only_defaults_to_january_first(self):
        assert format_date({"year": 2013}) == "2013-01-01"
        assert format_date({"year": 2013, "month": None, "day": None}) == "2013-01-01"

    def test_out_of_range_year(self):
        assert format_date({"year": 1850, "month": 1, "day": 1}) is None
        assert format_date({"year": 2101}) is None

    def test_bad_month_and_day(self):
        assert format_date({"year": 2013, "month": 13, "day": 1}) is None
        assert format_date({"year": 2013, "month": 4, "day": 31}) is None
        assert format_date({"year": 2013, "month": 1, "day": 0}) is None
        assert format_date({"year": 2013, "month": 0, "day": 5}) is None
        assert format_date({"year": 2013, "month": 4, "day": 0}) is None

    def test_february_29(self):
        assert format_date({"year": 2020, "month": 2, "day": 29}) == "2020-02-29"
        assert format_date({"year": 2021, "month": 2, "day": 29}) is None

    def test_missing_or_garbage(self):
        assert format_date(None) is None
        assert format_date({}) is None
        assert format_date({"year": None}) is None
        assert format_date({"year": "abc"}) is None

    def test_iso_strings(self):
        assert parse_iso_date("2013-04-07") == "2013-04-07"
        assert parse_iso_date("2013-04-07T00:00:00+00:00") == "2013-04-07"
        assert parse_iso_date("1800-01-01") is None
        assert parse_iso_date("not a date") is None
        assert parse_iso_date(None) is None


class TestFieldHelpers:
    def test_status_mapping(self):
        assert map_status("RELEASING") == "Currently Airing"
        assert map_status("FINISHED") == "Finished Airing"
        assert map_status("NOT_YET_RELEASED") == "Not yet aired"
        assert map_status("HIATUS") == "Hiatus"
        assert map_status("CANCELLED") == "Cancelled"
        assert map_status("current") == "Currently Airing"

    def test_unknown_status_passes_through(self):
        assert map_status("Publishing") == "Publishing"
        assert map_status(None) is None

    def test_strip_html_keeps_entities(self):
        assert strip_html("<p>Hello <b>world</b></p> &amp; more  ") == "Hello world &amp; more"
        assert strip_html("<br>") is None
        assert strip_html(None) is None

    def test_scores(self):
        assert normalize_score(85) == 8.5
        assert normalize_score("84.5") == 8.45
        assert normalize_score(8.7, scale=10) == 8.7
        assert normalize_score(None) is None
        assert normalize_score("n/a") is None

    def test_zero_score_means_unrated(self):
        assert normalize_score(0) is None
        assert normalize_score("0") is None
        assert normalize_score(0, scale=10) is None
        assert normalize_anilist(anilist_media(averageScore=0), "anime").score is None

    def test_unique_names(self):
        assert unique_names(["Action", "action", "Action", None, " ", "Drama "]) == ["Action", "action", "Drama"]


class TestAniList:
    def test_anime_record(self):
        record = normalize_anilist(anilist_media(idMal=16498), "anime")

        assert record.provider == "anilist"
        assert record.external_id == 16498
        assert record.title == "Shingeki no Kyojin"
        assert record.title_english == "Attack on Titan"
        assert record.synopsis == "Humanity lives behind walls."
        assert record.image_url == "https://img/xl.jpg"
        assert record.score == 8.5
        assert record.rank == 12
        assert record.year == 2013
        assert record.genres == ["Action", "Drama"]
        assert record.studios == ["Wit Studio"]
        assert record.secondary_ids == {"jikan": 16498}
        assert record.detail["aired_from"] == "2013-04-07"
        assert record.detail["status"] == "Finished Airing"
        assert record.detail["trailer_url"] == "https://www.youtube.com/watch?v=LHtdKWJdif4"

    def test_non_youtube_trailer_has_no_url(self):
        record = normalize_anilist(anilist_media(trailer={"id": "x1", "site": "dailymotion"}), "anime")
        assert record.detail["trailer_url"] is None
        assert record.detail["trailer_site"] == "dailymotion"

    def test_next_airing_episode(self):
        media = anilist_media(nextAiringEpisode={"airingAt": 0, "episode": 3})
        assert normalize_anilist(media, "anime").detail["next_episode_date"] is None

        media = anilist_media(nextAiringEpisode={"airingAt": 1700000000, "episode": 3})
        detail = normalize_anilist(media, "anime").detail
        assert detail["next_episode_date"].startswith("2023-11-14")
        assert detail["next_episode_number"] == 3

    def test_manga_authors_by_role(self):
        media = anilist_media(
            media_id=53390,
            chapters=139,
            volumes=34,
            staff={"edges": [
                {"role": "Story & Art", "node": {"name": {"full": "Hajime Isayama"}}},
                {"role": "Assistant", "node": {"name": {"full": "Someone Else"}}},
            ]},
        )
        record = normalize_anilist(media, "manga")
        assert record.authors == ["Hajime Isayama"]
        assert record.studios == []
        assert record.detail["chapters"] == 139
        assert record.detail["published_from"] == "2013-04-07"

    def test_missing_id_is_rejected(self):
        with pytest.raises(ValidationError):
            normalize_anilist(anilist_media(media_id=None), "anime")


class TestKitsu:
    def test_record(self):
        record = normalize_kitsu(kitsu_item(), "anime", KITSU_GENRES)
        assert record.external_id == 7442
        assert record.score == 8.45
        assert record.rank == 50
        assert record.popularity == 3
        assert record.year == 2013
        assert record.genres == ["Action"]
        assert record.detail["status"] == "Finished Airing"
        assert record.synopsis == "Kitsu synopsis"

    def test_genres_resolved_from_included(self):
        item = kitsu_item(genre_ids=("2", "1", "99"))
        assert kitsu_genre_names(item, KITSU_GENRES) == ["Action", "Fantasy"]

    def test_missing_rating(self):
        record = normalize_kitsu(kitsu_item(averageRating=None), "anime")
        assert record.score is None
        assert record.genres == []


class TestJikan:
    def test_manga_record(self):
        item = {
            "mal_id": 23390,
            "title": "Shingeki no Kyojin",
            "title_english": "Attack on Titan",
            "score": 8.55,
            "rank": 100,
            "status": "Finished",
            "chapters": 141,
            "published": {"from": "2009-09-09T00:00:00+00:00", "to": "2021-04-09T00:00:00+00:00"},
            "images": {"jpg": {"large_image_url": "https://mal/l.jpg"}},
            "genres": [{"name": "Action"}],
            "authors": [{"name": "Isayama, Hajime"}],
        }
        record = normalize_jikan(item, "manga")
        assert record.external_id == 23390
        assert record.score == 8.55
        assert record.year == 2009
        assert record.authors == ["Isayama, Hajime"]
        assert record.detail["published_from"] == "2009-09-09"
        assert record.detail["status"] == "Finished"


def test_dispatch_rejects_unknown_provider_and_type():
    with pytest.raises(ValidationError):
        normalize({"id": 1}, "mangadex", "manga")
    with pytest.raises(ValidationError):
        normalize({"id": 1}, "anilist", "novel")
