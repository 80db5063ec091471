from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional


@dataclass
class CanonicalRecord:
    """
    Provider-independent shape of one catalog entry.

    Produced by the normalizer, consumed by the store. `detail` holds the
    anime_details / manga_details columns for the record's content type.
    """
    provider: str
    external_id: int
    content_type: str
    title: str
    title_english: Optional[str] = None
    title_japanese: Optional[str] = None
    synopsis: Optional[str] = None
    image_url: Optional[str] = None
    score: Optional[float] = None
    anilist_score: Optional[float] = None
    rank: Optional[int] = None
    popularity: Optional[int] = None
    favorites: Optional[int] = None
    members: Optional[int] = None
    year: Optional[int] = None
    color_theme: Optional[str] = None
    # Ids this record also carries for other providers, e.g. AniList idMal
    secondary_ids: Dict[str, int] = field(default_factory=dict)
    detail: Dict[str, Any] = field(default_factory=dict)
    genres: List[str] = field(default_factory=list)
    studios: List[str] = field(default_factory=list)
    authors: List[str] = field(default_factory=list)

    @property
    def external_ids(self) -> Dict[str, int]:
        """All provider ids of this record, primary first."""
        ids = {self.provider: self.external_id}
        for provider, value in self.secondary_ids.items():
            if value is not None and provider not in ids:
                ids[provider] = value
        return ids

    def title_columns(self) -> Dict[str, Any]:
        """Column values for the titles table (without external ids)."""
        return {
            "content_type": self.content_type,
            "title": self.title,
            "title_english": self.title_english,
            "title_japanese": self.title_japanese,
            "synopsis": self.synopsis,
            "image_url": self.image_url,
            "score": self.score,
            "anilist_score": self.anilist_score,
            "rank": self.rank,
            "popularity": self.popularity,
            "favorites": self.favorites,
            "members": self.members,
            "year": self.year,
            "color_theme": self.color_theme,
        }


@dataclass
class CatalogPage:
    """One page of raw provider records plus the provider's pagination metadata."""
    items: List[Dict[str, Any]]
    current_page: int
    has_next_page: bool = False
    last_page: Optional[int] = None
    # JSON:API side-loaded resources (Kitsu `included`)
    included: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return len(self.items) == 0


@dataclass
class MatchCandidate:
    """An existing Title scored against an incoming record."""
    title_id: int
    title: str
    similarity_score: float
    title_english: Optional[str] = None
    title_japanese: Optional[str] = None
    content_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class MatchDecision(str, Enum):
    CONFIDENT = "confident_match"
    UNCERTAIN = "uncertain_match"
    NEW = "new_item"


@dataclass
class RelationCounts:
    """Rows actually created by the relationship resolver."""
    genres_created: int = 0
    studios_created: int = 0
    authors_created: int = 0
    relationships_created: int = 0

    def add(self, other: "RelationCounts") -> None:
        self.genres_created += other.genres_created
        self.studios_created += other.studios_created
        self.authors_created += other.authors_created
        self.relationships_created += other.relationships_created


@dataclass
class SyncResult:
    """Aggregate counters of one sync run."""
    content_type: str
    provider: str
    processed: int = 0
    inserted: int = 0
    updated: int = 0
    errors: int = 0
    pages: int = 0
    error_messages: List[str] = field(default_factory=list)
    relations: RelationCounts = field(default_factory=RelationCounts)
    run_id: Optional[str] = None

    def record_error(self, message: str) -> None:
        self.errors += 1
        self.error_messages.append(message)

    def to_response(self, max_errors: int) -> Dict[str, Any]:
        """Shape returned by the sync trigger surface."""
        return {
            "success": True,
            "contentType": self.content_type,
            "provider": self.provider,
            "totalProcessed": self.processed,
            "totalCreated": self.inserted,
            "totalUpdated": self.updated,
            "pagesProcessed": self.pages,
            "genresCreated": self.relations.genres_created,
            "studiosCreated": self.relations.studios_created,
            "authorsCreated": self.relations.authors_created,
            "relationshipsCreated": self.relations.relationships_created,
            "errors": self.error_messages[:max_errors],
            "errorCount": self.errors,
        }


@dataclass
class ReconcileResult:
    """Aggregate counters of one Kitsu reconciliation run."""
    content_type: str
    processed_count: int = 0
    confident_matches: int = 0
    uncertain_matches: int = 0
    new_items: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)

    def count(self, action: str) -> None:
        if action == MatchDecision.CONFIDENT.value:
            self.confident_matches += 1
        elif action == MatchDecision.UNCERTAIN.value:
            self.uncertain_matches += 1
        elif action == MatchDecision.NEW.value:
            self.new_items += 1
        else:
            self.skipped += 1
        self.processed_count += 1

    def to_response(self, max_errors: int) -> Dict[str, Any]:
        return {
            "success": True,
            "contentType": self.content_type,
            "processedCount": self.processed_count,
            "confidentMatches": self.confident_matches,
            "uncertainMatches": self.uncertain_matches,
            "newItems": self.new_items,
            "skipped": self.skipped,
            "errors": self.errors[:max_errors],
            "errorCount": len(self.errors),
        }
