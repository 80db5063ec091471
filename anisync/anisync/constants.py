"""
Constants used throughout the AniSync pipeline.
"""

# Content types and providers
CONTENT_TYPES = ("anime", "manga")
PROVIDER_ANILIST = "anilist"
PROVIDER_KITSU = "kitsu"
PROVIDER_JIKAN = "jikan"

# Provider -> Title column holding its external id
EXTERNAL_ID_COLUMNS = {
    PROVIDER_ANILIST: "anilist_id",
    PROVIDER_KITSU: "kitsu_id",
    PROVIDER_JIKAN: "mal_id",
}

# AniList
ANILIST_API_URL = "https://graphql.anilist.co"
ANILIST_PER_PAGE = 50
ANILIST_PAGE_DELAY = 0.7  # ~90 req/min budget
ANILIST_SORT = "POPULARITY_DESC"

# Kitsu
KITSU_API_BASE = "https://kitsu.io/api/edge"
KITSU_MAX_PAGE_LIMIT = 20  # Kitsu rejects page[limit] above 20
KITSU_PAGE_DELAY = 0.5
KITSU_JSONAPI_MEDIA_TYPE = "application/vnd.api+json"

# Jikan (MyAnimeList)
JIKAN_BASE_URL = "https://api.jikan.moe/v4"
JIKAN_PER_PAGE = 25
JIKAN_RATE_LIMIT_DELAY = 1.2

# HTTP
HTTP_TIMEOUT_SECONDS = 30
HTTP_USER_AGENT = "AniSync/1.0"
HTTP_RETRY_COUNT = 0  # no retries inside one invocation
HTTP_RETRY_BACKOFF_FACTOR = 0.5

# Sync orchestration
DEFAULT_MAX_PAGES = 10
DEFAULT_START_PAGE = 1
PAGE_ERROR_PAUSE = 1.0
MAX_REPORTED_SYNC_ERRORS = 10
MAX_REPORTED_RECONCILE_ERRORS = 5

# Operation names recorded in sync_logs / content_sync_status
OPERATION_BULK_IMPORT = "bulk_import"
OPERATION_COMPLETE_SYNC = "complete_sync"
OPERATION_RECONCILE = "kitsu_reconcile"

# Fuzzy matching
CONFIDENT_MATCH_THRESHOLD = 0.8
UNCERTAIN_MATCH_THRESHOLD = 0.5
MATCH_CANDIDATE_LIMIT = 5
MATCH_MIN_SIMILARITY = 0.3
DEFAULT_RECONCILE_LIMIT = 20
DEFAULT_RECONCILE_DAYS_BACK = 7

# Date validation
DATE_YEAR_MIN = 1900
DATE_YEAR_MAX = 2100
# Fixed month table, February always allows 29
DAYS_IN_MONTH = (31, 29, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)

# Canonical status vocabulary
STATUS_MAP = {
    "RELEASING": "Currently Airing",
    "FINISHED": "Finished Airing",
    "NOT_YET_RELEASED": "Not yet aired",
    "HIATUS": "Hiatus",
    "CANCELLED": "Cancelled",
}

KITSU_STATUS_MAP = {
    "current": "Currently Airing",
    "finished": "Finished Airing",
    "tba": "Not yet aired",
    "unreleased": "Not yet aired",
    "upcoming": "Not yet aired",
}

# AniList staff roles that become Author rows
AUTHOR_ROLES = {"Story", "Story & Art", "Art"}

DEFAULT_ANIME_TYPE = "TV"
DEFAULT_MANGA_TYPE = "MANGA"
UNKNOWN_TITLE = "Unknown Title"

# Pending review
DECISION_APPROVED = "approved"
DECISION_REJECTED = "rejected"
DECISION_MERGED = "merged"
ADMIN_DECISIONS = (DECISION_APPROVED, DECISION_REJECTED, DECISION_MERGED)

# Sync status values
STATUS_RUNNING = "running"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"
