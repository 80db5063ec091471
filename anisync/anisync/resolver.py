"""
Relationship resolver: find-or-create lookup rows and link them to titles.

Lookup names are unique in the schema, so creation is an insert that does
nothing on conflict followed by a select. Two runs racing on the same genre
both end up with the single row. Join rows use the same on-conflict insert.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from .db import Author, Genre, Studio, TitleAuthor, TitleGenre, TitleStudio
from .logging import StoreError
from .models import CanonicalRecord, RelationCounts

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntityKind:
    name: str
    table: Any
    join_table: Any
    join_column: str
    counter: str


GENRE = EntityKind("genre", Genre, TitleGenre, "genre_id", "genres_created")
STUDIO = EntityKind("studio", Studio, TitleStudio, "studio_id", "studios_created")
AUTHOR = EntityKind("author", Author, TitleAuthor, "author_id", "authors_created")

ENTITY_KINDS = {k.name: k for k in (GENRE, STUDIO, AUTHOR)}


def _insert(session: Session, table: Any):
    """Dialect-specific INSERT that supports ON CONFLICT."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(table)
    if dialect == "sqlite":
        return sqlite.insert(table)
    raise StoreError(f"on-conflict inserts are not supported for dialect '{dialect}'")


def ensure_entity(session: Session, name: str, kind: EntityKind,
                  extra: Optional[Dict[str, Any]] = None) -> Tuple[int, bool]:
    """
    Returns (id, created) for the lookup row called `name`.

    Names match exactly and case-sensitively.
    """
    table = kind.table
    existing = session.execute(select(table.id).where(table.name == name)).scalar_one_or_none()
    if existing is not None:
        return existing, False

    values = {"name": name}
    if extra:
        values.update(extra)
    stmt = _insert(session, table).values(**values).on_conflict_do_nothing(index_elements=["name"])
    created = session.execute(stmt).rowcount == 1

    entity_id = session.execute(select(table.id).where(table.name == name)).scalar_one()
    if created:
        logger.debug(f"Created {kind.name} '{name}' (id={entity_id})")
    return entity_id, created


def ensure_relation(session: Session, title_id: int, entity_id: int, kind: EntityKind) -> bool:
    """Links a title to a lookup row. Returns False if the pair already existed."""
    stmt = (
        _insert(session, kind.join_table)
        .values(**{"title_id": title_id, kind.join_column: entity_id})
        .on_conflict_do_nothing()
    )
    return session.execute(stmt).rowcount == 1


def link_names(session: Session, title_id: int, names: Iterable[str], kind: EntityKind,
               counts: RelationCounts, extra: Optional[Dict[str, Any]] = None) -> None:
    for name in names:
        entity_id, created = ensure_entity(session, name, kind, extra)
        if created:
            setattr(counts, kind.counter, getattr(counts, kind.counter) + 1)
        if ensure_relation(session, title_id, entity_id, kind):
            counts.relationships_created += 1


def link_record(session: Session, title_id: int, record: CanonicalRecord) -> RelationCounts:
    """Resolves genres, studios and authors of `record` onto `title_id`."""
    counts = RelationCounts()
    link_names(session, title_id, record.genres, GENRE, counts, extra={"type": record.content_type})
    link_names(session, title_id, record.studios, STUDIO, counts)
    link_names(session, title_id, record.authors, AUTHOR, counts)
    return counts
