"""
Pending review queue: admin decisions on uncertain Kitsu matches.

approved -> a new Title (with detail) is created from the pending fields
rejected -> only the decision is recorded
merged   -> the Kitsu id is attached to an existing Title and its empty
            title/synopsis/image fields are backfilled

A decided match is terminal.
"""

import logging
from typing import List, Optional

from sqlalchemy import select

from . import constants as c
from .db import AnimeDetail, MangaDetail, PendingMatch, Title, utcnow
from .logging import ReviewError, ValidationError
from .store import CatalogStore

logger = logging.getLogger(__name__)

BACKFILL_FIELDS = ("title_english", "title_japanese", "synopsis", "image_url")
UNKNOWN_DETAIL = "Unknown"


def list_pending(store: CatalogStore, content_type: Optional[str] = None) -> List[PendingMatch]:
    """Undecided matches, newest first."""
    if content_type is not None and content_type not in c.CONTENT_TYPES:
        raise ValidationError(f"Unknown content type: {content_type}")
    return store.list_pending(content_type)


def _kitsu_owner(session, kitsu_id: int) -> Optional[int]:
    return session.execute(select(Title.id).where(Title.kitsu_id == kitsu_id)).scalar_one_or_none()


def _approve(session, match: PendingMatch) -> int:
    owner = _kitsu_owner(session, match.kitsu_id)
    if owner is not None:
        raise ReviewError(f"Kitsu id {match.kitsu_id} is already linked to title {owner}")

    title = Title(
        kitsu_id=match.kitsu_id,
        content_type=match.content_type,
        title=match.title,
        title_english=match.title_english,
        title_japanese=match.title_japanese,
        synopsis=match.synopsis,
        image_url=match.image_url,
        score=match.score,
        year=match.year,
    )
    session.add(title)
    session.flush()
    detail_cls = AnimeDetail if match.content_type == "anime" else MangaDetail
    session.add(detail_cls(title_id=title.id, status=UNKNOWN_DETAIL, type=UNKNOWN_DETAIL))
    return title.id


def _merge(session, match: PendingMatch, target_title_id: int) -> int:
    target = session.get(Title, target_title_id)
    if target is None:
        raise ReviewError(f"Target title {target_title_id} does not exist")
    if target.content_type != match.content_type:
        raise ReviewError(
            f"Cannot merge {match.content_type} match into {target.content_type} title {target_title_id}"
        )
    owner = _kitsu_owner(session, match.kitsu_id)
    if owner is not None and owner != target.id:
        raise ReviewError(f"Kitsu id {match.kitsu_id} is already linked to title {owner}")
    if target.kitsu_id is not None and target.kitsu_id != match.kitsu_id:
        raise ReviewError(f"Title {target.id} is already linked to Kitsu id {target.kitsu_id}")

    target.kitsu_id = match.kitsu_id
    for name in BACKFILL_FIELDS:
        incoming = getattr(match, name)
        if incoming and not getattr(target, name):
            setattr(target, name, incoming)
    return target.id


def resolve(store: CatalogStore, match_id: int, decision: str,
            target_title_id: Optional[int] = None, reviewed_by: Optional[str] = None) -> PendingMatch:
    """
    Records an admin decision and applies its effect in one transaction.

    Raises ReviewError for unknown matches, already-decided matches and
    merges without a usable target.
    """
    if decision not in c.ADMIN_DECISIONS:
        raise ValidationError(f"Decision must be one of {', '.join(c.ADMIN_DECISIONS)}, got '{decision}'")
    if decision == c.DECISION_MERGED and target_title_id is None:
        raise ReviewError("A merge needs a target title id")

    with store.transaction() as session:
        match = session.get(PendingMatch, match_id)
        if match is None:
            raise ReviewError(f"Pending match {match_id} not found")
        if match.admin_decision is not None:
            raise ReviewError(f"Pending match {match_id} was already {match.admin_decision}")

        if decision == c.DECISION_APPROVED:
            match.resolved_title_id = _approve(session, match)
        elif decision == c.DECISION_MERGED:
            match.resolved_title_id = _merge(session, match, target_title_id)

        match.admin_decision = decision
        match.reviewed_by = reviewed_by
        match.reviewed_at = utcnow()

    logger.info(f"Pending match {match_id} {decision}"
                + (f" -> title {match.resolved_title_id}" if match.resolved_title_id else ""))
    return match
