"""
Kitsu reconciliation.

Recently updated Kitsu records are matched against the catalog: a known
Kitsu id or a confident fuzzy match refreshes the existing title, an
uncertain match goes to the pending review queue, anything else becomes a
new title.
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from . import constants as c
from .config import get_config
from .kitsu_api import KitsuClient
from .logging import AniSyncError, ValidationError
from .matcher import classify, find_candidates
from .models import CanonicalRecord, MatchDecision, ReconcileResult
from .normalizer import normalize
from .store import MUTABLE_TITLE_FIELDS, CatalogStore

logger = logging.getLogger(__name__)

SKIPPED = "skipped"


def process_kitsu_item(store: CatalogStore, record: CanonicalRecord, match_config=None) -> str:
    """
    Applies the match policy to one normalized Kitsu record.

    Returns the action taken: one of the MatchDecision values or "skipped".
    Store and search errors propagate.
    """
    match_config = match_config or get_config().match
    kitsu_id = record.external_id

    title_id = store.find_existing(kitsu_id, c.PROVIDER_KITSU)
    if title_id is not None:
        store.update_title(title_id, record, fields=MUTABLE_TITLE_FIELDS)
        logger.debug(f"Kitsu {kitsu_id} already linked to title {title_id}, refreshed")
        return MatchDecision.CONFIDENT.value

    pending = store.find_pending_for(kitsu_id, record.content_type)
    if pending is not None:
        state = pending.admin_decision or "open"
        logger.debug(f"Kitsu {kitsu_id} has a {state} pending match ({pending.id}), skipping")
        return SKIPPED

    candidates = find_candidates(
        store,
        record.title,
        record.title_english,
        record.title_japanese,
        content_type=record.content_type,
        limit=match_config.candidate_limit,
        min_similarity=match_config.min_similarity,
        kitsu_id=kitsu_id,
    )
    best = candidates[0] if candidates else None
    decision = classify(
        best.similarity_score if best else None,
        match_config.confident_threshold,
        match_config.uncertain_threshold,
    )

    if decision is MatchDecision.CONFIDENT:
        logger.info(f"Confident match ({best.similarity_score:.2f}): '{record.title}' -> '{best.title}'")
        store.update_title(best.title_id, record, fields=MUTABLE_TITLE_FIELDS)
    elif decision is MatchDecision.UNCERTAIN:
        match_id = store.add_pending_match(record, candidates)
        logger.info(
            f"Uncertain match ({best.similarity_score:.2f}): '{record.title}' queued for review as {match_id}"
        )
    else:
        title_id, _ = store.create_title(record)
        logger.info(f"New title {title_id} from Kitsu {kitsu_id}: '{record.title}'")
    return decision.value


def reconcile(content_type: str, limit: int = c.DEFAULT_RECONCILE_LIMIT,
              days_back: int = c.DEFAULT_RECONCILE_DAYS_BACK,
              store: Optional[CatalogStore] = None, client: Optional[KitsuClient] = None) -> ReconcileResult:
    """
    Reconciles Kitsu records updated in the last `days_back` days.

    A failed Kitsu fetch or an unreachable store aborts the run; per-record
    failures are collected in the result.
    """
    if content_type not in c.CONTENT_TYPES:
        raise ValidationError(f"Unknown content type: {content_type}")
    if limit < 1:
        raise ValidationError("limit must be at least 1")

    config = get_config()
    store = store or CatalogStore.from_url(config.database.url, echo=config.database.echo)
    store.ping()
    client = client or KitsuClient.from_config(config.kitsu)

    run_id = store.start_run(content_type, c.OPERATION_RECONCILE)
    result = ReconcileResult(content_type=content_type)
    try:
        page = client.fetch_recent(content_type, limit=limit, days_back=days_back)
    except AniSyncError as e:
        store.finish_run(run_id, c.STATUS_FAILED, 0, str(e))
        raise

    for raw in page.items:
        try:
            record = normalize(raw, c.PROVIDER_KITSU, content_type, page.included)
            action = process_kitsu_item(store, record, config.match)
            result.count(action)
        except (AniSyncError, SQLAlchemyError) as e:
            message = f"Failed to process Kitsu item {raw.get('id')}: {e}"
            logger.warning(message)
            result.errors.append(message)

    store.log_page(run_id, content_type, c.OPERATION_RECONCILE, 1, result.processed_count,
                   c.STATUS_COMPLETED, total_processed=result.processed_count)
    store.finish_run(run_id, c.STATUS_COMPLETED, result.processed_count)
    logger.info(
        f"Kitsu reconciliation of {content_type}: processed={result.processed_count} "
        f"confident={result.confident_matches} uncertain={result.uncertain_matches} "
        f"new={result.new_items} skipped={result.skipped} errors={len(result.errors)}"
    )
    return result
