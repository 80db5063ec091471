import pytest

from anisync.anisync.db import Title
from anisync.anisync.matcher import classify, find_candidates, normalize_title, similarity
from anisync.anisync.models import MatchDecision
from anisync.anisync.normalizer import normalize_anilist
from conftest import anilist_media


def test_normalize_title():
    assert normalize_title("  Re:Zero -Starting Life-  ") == "re zero starting life"
    assert normalize_title(None) == ""


def test_similarity_bounds():
    assert similarity("Attack on Titan", "attack on titan!") == 1.0
    assert similarity("Attack on Titan", None) == 0.0
    score = similarity("Attack on Titan", "Attack on Titan Season 2")
    assert 0.5 < score < 1.0


@pytest.mark.parametrize("score,expected", [
    (1.0, MatchDecision.CONFIDENT),
    (0.8, MatchDecision.CONFIDENT),
    (0.79, MatchDecision.UNCERTAIN),
    (0.62, MatchDecision.UNCERTAIN),
    (0.5, MatchDecision.UNCERTAIN),
    (0.49, MatchDecision.NEW),
    (None, MatchDecision.NEW),
])
def test_classify_bands(score, expected):
    assert classify(score) is expected


def test_classify_custom_thresholds():
    assert classify(0.75, confident_threshold=0.7, uncertain_threshold=0.4) is MatchDecision.CONFIDENT
    assert classify(0.45, confident_threshold=0.7, uncertain_threshold=0.4) is MatchDecision.UNCERTAIN


def test_find_candidates_best_first_across_variants(store):
    aot, _ = store.create_title(normalize_anilist(anilist_media(), "anime"))
    store.create_title(normalize_anilist(
        anilist_media(media_id=20958, romaji="Shingeki no Kyojin Season 2", english="Attack on Titan Season 2"),
        "anime",
    ))
    store.create_title(normalize_anilist(
        anilist_media(media_id=1, romaji="Cowboy Bebop", english="Cowboy Bebop"), "anime",
    ))

    # Only the English variant matches the stored English title exactly
    candidates = find_candidates(store, "Shingeki", "Attack on Titan", None, content_type="anime",
                                 min_similarity=0.5)

    assert candidates[0].title_id == aot
    assert candidates[0].similarity_score == 1.0
    assert [c.similarity_score for c in candidates] == sorted((c.similarity_score for c in candidates), reverse=True)
    assert all(c.title != "Cowboy Bebop" for c in candidates)


def test_find_candidates_respects_content_type_and_limit(store):
    store.create_title(normalize_anilist(anilist_media(), "manga"))
    assert find_candidates(store, "Shingeki no Kyojin", content_type="anime") == []

    for i in range(7):
        store.create_title(normalize_anilist(anilist_media(media_id=100 + i, romaji=f"Shingeki no Kyojin {i}",
                                                           english=None), "anime"))
    assert len(find_candidates(store, "Shingeki no Kyojin", content_type="anime", limit=5)) == 5


def test_titles_linked_to_other_kitsu_ids_are_excluded(store):
    record = normalize_anilist(anilist_media(), "anime")
    title_id, _ = store.create_title(record)
    with store.transaction() as session:
        session.get(Title, title_id).kitsu_id = 1

    assert find_candidates(store, "Shingeki no Kyojin", content_type="anime", kitsu_id=7442) == []
    assert find_candidates(store, "Shingeki no Kyojin", content_type="anime", kitsu_id=1)[0].title_id == title_id
