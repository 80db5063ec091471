"""
Fuzzy title matching for reconciliation.

Similarity is the best SequenceMatcher ratio between any variant of the
incoming title (romaji, English, Japanese) and any variant of a stored title
of the same content type, after light normalization.
"""

import re
import difflib
import logging
import unicodedata
from typing import Iterable, List, Optional

from . import constants as c
from .models import MatchCandidate, MatchDecision

logger = logging.getLogger(__name__)


def normalize_title(name: Optional[str]) -> str:
    """Case-folds, drops punctuation and collapses whitespace."""
    if not name:
        return ""
    name = unicodedata.normalize("NFKC", name).casefold()
    name = re.sub(r"[^\w\s]", " ", name)
    return re.sub(r"\s+", " ", name).strip()


def similarity(a: Optional[str], b: Optional[str]) -> float:
    """Ratio in [0, 1]; 0.0 when either side is empty."""
    na, nb = normalize_title(a), normalize_title(b)
    if not na or not nb:
        return 0.0
    if na == nb:
        return 1.0
    return difflib.SequenceMatcher(None, na, nb).ratio()


def best_similarity(incoming: Iterable[Optional[str]], stored: Iterable[Optional[str]]) -> float:
    stored = [s for s in stored if s]
    best = 0.0
    for a in incoming:
        if not a:
            continue
        for b in stored:
            best = max(best, similarity(a, b))
            if best == 1.0:
                return best
    return best


def find_candidates(store, title: str, title_english: Optional[str] = None,
                    title_japanese: Optional[str] = None, content_type: str = "anime",
                    limit: int = c.MATCH_CANDIDATE_LIMIT,
                    min_similarity: float = c.MATCH_MIN_SIMILARITY,
                    kitsu_id: Optional[int] = None) -> List[MatchCandidate]:
    """
    Existing titles similar to the incoming one, best first.

    Titles already linked to a different Kitsu id are never candidates.
    Store errors propagate to the caller.
    """
    incoming = [title, title_english, title_japanese]
    rows = store.title_variants(content_type, exclude_kitsu_linked_except=kitsu_id)

    candidates = []
    for title_id, stored_title, stored_english, stored_japanese in rows:
        score = best_similarity(incoming, (stored_title, stored_english, stored_japanese))
        if score >= min_similarity:
            candidates.append(MatchCandidate(
                title_id=title_id,
                title=stored_title,
                similarity_score=round(score, 4),
                title_english=stored_english,
                title_japanese=stored_japanese,
                content_type=content_type,
            ))

    candidates.sort(key=lambda cand: (-cand.similarity_score, cand.title_id))
    logger.debug(f"{len(candidates)} candidates for '{title}' ({content_type})")
    return candidates[:limit]


def classify(score: Optional[float], confident_threshold: float = c.CONFIDENT_MATCH_THRESHOLD,
             uncertain_threshold: float = c.UNCERTAIN_MATCH_THRESHOLD) -> MatchDecision:
    """Maps the best candidate score onto the three-way decision."""
    if score is None:
        return MatchDecision.NEW
    if score >= confident_threshold:
        return MatchDecision.CONFIDENT
    if score >= uncertain_threshold:
        return MatchDecision.UNCERTAIN
    return MatchDecision.NEW
