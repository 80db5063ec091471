"""
Relational schema for the normalized catalog.

Titles own their detail row and join rows (cascade delete). Lookup tables
are unique by name so find-or-create can be an insert-on-conflict.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    create_engine,
    event,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, relationship

logger = logging.getLogger(__name__)

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Title(Base):
    __tablename__ = "titles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    anilist_id = Column(Integer, unique=True, nullable=True)
    mal_id = Column(Integer, unique=True, nullable=True)
    kitsu_id = Column(Integer, unique=True, nullable=True)
    content_type = Column(String(10), nullable=False, index=True)

    title = Column(String(512), nullable=False, index=True)
    title_english = Column(String(512), nullable=True)
    title_japanese = Column(String(512), nullable=True)
    synopsis = Column(Text, nullable=True)
    image_url = Column(String(1024), nullable=True)
    score = Column(Float, nullable=True)
    anilist_score = Column(Float, nullable=True)
    rank = Column(Integer, nullable=True)
    popularity = Column(Integer, nullable=True)
    favorites = Column(Integer, nullable=True)
    members = Column(Integer, nullable=True)
    year = Column(Integer, nullable=True)
    color_theme = Column(String(16), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    anime_detail = relationship("AnimeDetail", uselist=False, back_populates="title",
                                cascade="all, delete-orphan", passive_deletes=True)
    manga_detail = relationship("MangaDetail", uselist=False, back_populates="title",
                                cascade="all, delete-orphan", passive_deletes=True)


class AnimeDetail(Base):
    __tablename__ = "anime_details"

    title_id = Column(Integer, ForeignKey("titles.id", ondelete="CASCADE"), primary_key=True)
    episodes = Column(Integer, nullable=True)
    aired_from = Column(String(10), nullable=True)
    aired_to = Column(String(10), nullable=True)
    season = Column(String(16), nullable=True)
    status = Column(String(64), nullable=True)
    type = Column(String(32), nullable=True)
    trailer_url = Column(String(512), nullable=True)
    trailer_id = Column(String(128), nullable=True)
    trailer_site = Column(String(64), nullable=True)
    next_episode_date = Column(String(32), nullable=True)
    next_episode_number = Column(Integer, nullable=True)
    last_sync_check = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    title = relationship("Title", back_populates="anime_detail")


class MangaDetail(Base):
    __tablename__ = "manga_details"

    title_id = Column(Integer, ForeignKey("titles.id", ondelete="CASCADE"), primary_key=True)
    chapters = Column(Integer, nullable=True)
    volumes = Column(Integer, nullable=True)
    published_from = Column(String(10), nullable=True)
    published_to = Column(String(10), nullable=True)
    status = Column(String(64), nullable=True)
    type = Column(String(32), nullable=True)
    last_sync_check = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    title = relationship("Title", back_populates="manga_detail")


class Genre(Base):
    __tablename__ = "genres"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(128), unique=True, nullable=False)
    type = Column(String(10), nullable=True)


class Studio(Base):
    __tablename__ = "studios"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(256), unique=True, nullable=False)


class Author(Base):
    __tablename__ = "authors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(256), unique=True, nullable=False)


class TitleGenre(Base):
    __tablename__ = "title_genres"

    title_id = Column(Integer, ForeignKey("titles.id", ondelete="CASCADE"), primary_key=True)
    genre_id = Column(Integer, ForeignKey("genres.id", ondelete="CASCADE"), primary_key=True)


class TitleStudio(Base):
    __tablename__ = "title_studios"

    title_id = Column(Integer, ForeignKey("titles.id", ondelete="CASCADE"), primary_key=True)
    studio_id = Column(Integer, ForeignKey("studios.id", ondelete="CASCADE"), primary_key=True)


class TitleAuthor(Base):
    __tablename__ = "title_authors"

    title_id = Column(Integer, ForeignKey("titles.id", ondelete="CASCADE"), primary_key=True)
    author_id = Column(Integer, ForeignKey("authors.id", ondelete="CASCADE"), primary_key=True)


class PendingMatch(Base):
    __tablename__ = "pending_matches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    kitsu_id = Column(Integer, nullable=False, index=True)
    content_type = Column(String(10), nullable=False)
    title = Column(String(512), nullable=False)
    title_english = Column(String(512), nullable=True)
    title_japanese = Column(String(512), nullable=True)
    synopsis = Column(Text, nullable=True)
    image_url = Column(String(1024), nullable=True)
    score = Column(Float, nullable=True)
    year = Column(Integer, nullable=True)
    potential_matches = Column(JSON, nullable=False, default=list)
    confidence_score = Column(Float, nullable=False, default=0.0)
    admin_decision = Column(String(16), nullable=True)
    reviewed_by = Column(String(128), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    resolved_title_id = Column(Integer, ForeignKey("titles.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class SyncLog(Base):
    __tablename__ = "sync_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    run_id = Column(String(36), nullable=False, index=True)
    content_type = Column(String(10), nullable=False)
    operation_type = Column(String(32), nullable=False)
    page = Column(Integer, nullable=True)
    processed = Column(Integer, nullable=False, default=0)
    status = Column(String(16), nullable=False)
    message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class ContentSyncStatus(Base):
    __tablename__ = "content_sync_status"

    id = Column(Integer, primary_key=True, autoincrement=True)
    run_id = Column(String(36), nullable=False, unique=True)
    content_type = Column(String(10), nullable=False)
    operation_type = Column(String(32), nullable=False)
    status = Column(String(16), nullable=False)
    processed_items = Column(Integer, nullable=False, default=0)
    total_items = Column(Integer, nullable=False, default=0)
    current_page = Column(Integer, nullable=True)
    started_at = Column(DateTime(timezone=True), default=utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    error_message = Column(Text, nullable=True)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def make_engine(url: str, echo: bool = False) -> Engine:
    """Create an engine; SQLite connections get foreign keys switched on."""
    engine = create_engine(url, echo=echo, future=True)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def init_db(engine: Engine) -> None:
    """Create all tables that don't exist yet."""
    logger.info(f"Creating schema on {engine.url.render_as_string(hide_password=True)}")
    Base.metadata.create_all(engine)


def drop_db(engine: Optional[Engine]) -> None:
    if engine is not None:
        Base.metadata.drop_all(engine)
