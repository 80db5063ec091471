"""
CatalogStore: every read and write the pipeline does against the database.

Each public method runs in its own transaction. Creating a title writes the
Title, its detail row and its relations in one transaction, so a failure
never leaves a Title without its detail.
"""

import logging
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple

from sqlalchemy import func, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from . import constants as c
from .db import (
    AnimeDetail,
    ContentSyncStatus,
    MangaDetail,
    PendingMatch,
    SyncLog,
    Title,
    init_db,
    make_engine,
    utcnow,
)
from .logging import StoreError, ValidationError
from .models import CanonicalRecord, MatchCandidate, RelationCounts
from .resolver import ENTITY_KINDS, ensure_entity, ensure_relation, link_record

logger = logging.getLogger(__name__)

# Title columns refreshed when a provider reports newer numbers
MUTABLE_TITLE_FIELDS = ("score", "rank", "popularity")


def _detail_model(content_type: str):
    return AnimeDetail if content_type == "anime" else MangaDetail


def _external_column(provider: str):
    try:
        return getattr(Title, c.EXTERNAL_ID_COLUMNS[provider])
    except KeyError:
        raise ValidationError(f"Unknown provider: {provider}")


class CatalogStore:
    def __init__(self, engine: Engine):
        self.engine = engine
        self.Session = sessionmaker(bind=engine, expire_on_commit=False)

    @classmethod
    def from_url(cls, url: str, echo: bool = False, create: bool = True) -> "CatalogStore":
        store = cls(make_engine(url, echo=echo))
        if create:
            init_db(store.engine)
        return store

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Session scoped to one commit; rolls back on any exception."""
        with self.Session.begin() as session:
            yield session

    def ping(self) -> None:
        """Fails fast with StoreError when the database can't be reached."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise StoreError(f"Cannot reach database: {e}") from e

    # --- Duplicate guard ---

    def find_existing(self, external_id: int, provider: str) -> Optional[int]:
        """Title id holding `external_id` for `provider`, or None."""
        column = _external_column(provider)
        with self.Session() as session:
            return session.execute(select(Title.id).where(column == external_id)).scalar_one_or_none()

    def find_existing_for(self, record: CanonicalRecord) -> Optional[int]:
        """Checks the record's primary id first, then any secondary provider ids."""
        for provider, external_id in record.external_ids.items():
            title_id = self.find_existing(external_id, provider)
            if title_id is not None:
                return title_id
        return None

    # --- Titles ---

    def create_title(self, record: CanonicalRecord) -> Tuple[int, RelationCounts]:
        """Inserts Title + detail + relations atomically. Returns (title_id, relation counts)."""
        with self.transaction() as session:
            title = Title(**record.title_columns())
            for provider, external_id in record.external_ids.items():
                setattr(title, c.EXTERNAL_ID_COLUMNS[provider], external_id)
            session.add(title)
            session.flush()

            detail_cls = _detail_model(record.content_type)
            session.add(detail_cls(title_id=title.id, **record.detail))
            counts = link_record(session, title.id, record)
            logger.debug(f"Inserted title {title.id} ({record.provider}:{record.external_id})")
            return title.id, counts

    def update_title(self, title_id: int, record: CanonicalRecord,
                     fields: Optional[Tuple[str, ...]] = None,
                     link_relations: bool = True) -> RelationCounts:
        """
        Refreshes an existing Title from `record` and attaches the record's ids.

        `fields` limits which title columns are overwritten (all non-null
        columns when omitted). The detail row is upserted.
        """
        with self.transaction() as session:
            title = session.get(Title, title_id)
            if title is None:
                raise StoreError(f"Title {title_id} does not exist")

            columns = record.title_columns()
            columns.pop("content_type")
            for name in fields or tuple(columns):
                value = columns.get(name)
                if value is not None:
                    setattr(title, name, value)

            for provider, external_id in record.external_ids.items():
                column = c.EXTERNAL_ID_COLUMNS[provider]
                if getattr(title, column) is None or provider == record.provider:
                    setattr(title, column, external_id)

            self._upsert_detail(session, title_id, record.content_type, record.detail)
            if link_relations:
                return link_record(session, title_id, record)
            return RelationCounts()

    def _upsert_detail(self, session: Session, title_id: int, content_type: str,
                       values: Dict[str, Any]) -> None:
        detail_cls = _detail_model(content_type)
        detail = session.get(detail_cls, title_id)
        if detail is None:
            session.add(detail_cls(title_id=title_id, **values))
            return
        for name, value in values.items():
            if value is not None:
                setattr(detail, name, value)
        detail.last_sync_check = utcnow()

    def get_title(self, title_id: int) -> Optional[Title]:
        with self.Session() as session:
            return session.get(Title, title_id)

    def count(self, model) -> int:
        with self.Session() as session:
            return session.execute(select(func.count()).select_from(model)).scalar_one()

    def title_variants(self, content_type: str, exclude_kitsu_linked_except: Optional[int] = None):
        """(id, title, english, japanese) rows of one content type, for fuzzy search."""
        stmt = select(Title.id, Title.title, Title.title_english, Title.title_japanese, Title.kitsu_id) \
            .where(Title.content_type == content_type)
        with self.Session() as session:
            rows = session.execute(stmt).all()
        if exclude_kitsu_linked_except is None:
            return [(r.id, r.title, r.title_english, r.title_japanese) for r in rows]
        return [
            (r.id, r.title, r.title_english, r.title_japanese)
            for r in rows
            if r.kitsu_id is None or r.kitsu_id == exclude_kitsu_linked_except
        ]

    # --- Lookup tables ---

    def ensure_entity(self, name: str, kind: str) -> int:
        """Find-or-create a genre/studio/author by exact name."""
        with self.transaction() as session:
            entity_id, _ = ensure_entity(session, name, ENTITY_KINDS[kind])
            return entity_id

    def ensure_relation(self, title_id: int, entity_id: int, kind: str) -> bool:
        with self.transaction() as session:
            return ensure_relation(session, title_id, entity_id, ENTITY_KINDS[kind])

    # --- Pending review queue ---

    def add_pending_match(self, record: CanonicalRecord, candidates: List[MatchCandidate]) -> int:
        with self.transaction() as session:
            pending = PendingMatch(
                kitsu_id=record.external_id,
                content_type=record.content_type,
                title=record.title,
                title_english=record.title_english,
                title_japanese=record.title_japanese,
                synopsis=record.synopsis,
                image_url=record.image_url,
                score=record.score,
                year=record.year,
                potential_matches=[cand.to_dict() for cand in candidates],
                confidence_score=candidates[0].similarity_score if candidates else 0.0,
            )
            session.add(pending)
            session.flush()
            return pending.id

    def find_pending_for(self, kitsu_id: int, content_type: str) -> Optional[PendingMatch]:
        """Most recent pending match (decided or not) for a Kitsu id."""
        stmt = (
            select(PendingMatch)
            .where(PendingMatch.kitsu_id == kitsu_id, PendingMatch.content_type == content_type)
            .order_by(PendingMatch.id.desc())
            .limit(1)
        )
        with self.Session() as session:
            return session.execute(stmt).scalar_one_or_none()

    def get_pending(self, match_id: int) -> Optional[PendingMatch]:
        with self.Session() as session:
            return session.get(PendingMatch, match_id)

    def list_pending(self, content_type: Optional[str] = None) -> List[PendingMatch]:
        stmt = select(PendingMatch).where(PendingMatch.admin_decision.is_(None))
        if content_type:
            stmt = stmt.where(PendingMatch.content_type == content_type)
        stmt = stmt.order_by(PendingMatch.created_at.desc(), PendingMatch.id.desc())
        with self.Session() as session:
            return list(session.execute(stmt).scalars())

    # --- Sync progress ---

    def start_run(self, content_type: str, operation_type: str) -> str:
        run_id = str(uuid.uuid4())
        with self.transaction() as session:
            session.add(ContentSyncStatus(
                run_id=run_id,
                content_type=content_type,
                operation_type=operation_type,
                status=c.STATUS_RUNNING,
            ))
        return run_id

    def log_page(self, run_id: str, content_type: str, operation_type: str, page: int,
                 processed: int, status: str, message: Optional[str] = None,
                 total_processed: Optional[int] = None) -> None:
        """Appends a sync_logs row and advances the run's status row."""
        with self.transaction() as session:
            session.add(SyncLog(
                run_id=run_id,
                content_type=content_type,
                operation_type=operation_type,
                page=page,
                processed=processed,
                status=status,
                message=message,
            ))
            run = session.execute(
                select(ContentSyncStatus).where(ContentSyncStatus.run_id == run_id)
            ).scalar_one_or_none()
            if run is not None:
                run.current_page = page
                if total_processed is not None:
                    run.processed_items = total_processed
                    run.total_items = total_processed

    def finish_run(self, run_id: str, status: str, processed: int,
                   error_message: Optional[str] = None) -> None:
        with self.transaction() as session:
            run = session.execute(
                select(ContentSyncStatus).where(ContentSyncStatus.run_id == run_id)
            ).scalar_one_or_none()
            if run is None:
                return
            run.status = status
            run.processed_items = processed
            run.total_items = processed
            run.completed_at = utcnow()
            run.error_message = error_message

    def last_completed_page(self, content_type: str, operation_type: str) -> Optional[int]:
        """Highest page logged as completed for this content type and operation."""
        stmt = select(func.max(SyncLog.page)).where(
            SyncLog.content_type == content_type,
            SyncLog.operation_type == operation_type,
            SyncLog.status == c.STATUS_COMPLETED,
        )
        with self.Session() as session:
            return session.execute(stmt).scalar_one_or_none()

    def recent_runs(self, limit: int = 10, content_type: Optional[str] = None) -> List[ContentSyncStatus]:
        stmt = select(ContentSyncStatus)
        if content_type:
            stmt = stmt.where(ContentSyncStatus.content_type == content_type)
        stmt = stmt.order_by(ContentSyncStatus.started_at.desc(), ContentSyncStatus.id.desc()).limit(limit)
        with self.Session() as session:
            return list(session.execute(stmt).scalars())
