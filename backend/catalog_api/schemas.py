"""Pydantic models exposed by the Catalog API."""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


SyncJobType = Literal["movies", "tvshows", "genres", "users", "all"]
SyncJobStatus = Literal["idle", "running", "completed", "failed", "paused"]
WatchStatus = Literal["plan_to_watch", "watching", "completed", "dropped"]
MovieSortField = Literal[
    "popularity", "voteAverage", "voteCount", "releaseDate", "title", "runtime", "createdAt"
]
TvShowSortField = Literal[
    "popularity", "voteAverage", "voteCount", "firstAirDate", "name", "createdAt"
]
SortOrder = Literal["asc", "desc"]
ActivityAction = Literal[
    "movie_create",
    "movie_update",
    "movie_delete",
    "movie_availability",
    "tvshow_create",
    "tvshow_update",
    "tvshow_delete",
    "tvshow_availability",
    "tvshow_season_sync",
    "genre_create",
    "genre_update",
    "genre_delete",
    "sync_start",
    "sync_stop",
    "sync_configure",
    "settings_update",
]


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class QueueHealthStatus(CamelModel):
    """Represents Redis queue connectivity status."""

    status: Literal["ok", "error"] = Field(default="ok")
    detail: str | None = Field(
        default=None, description="Optional diagnostic message when the queue is unavailable."
    )


class HealthStatus(CamelModel):
    """Service health payload."""

    status: Literal["ok"] = Field(default="ok")
    version: str = Field(default="0.1.0", description="Semantic version of the API service.")
    database: Literal["ok", "error"] = Field(default="ok")
    queue: QueueHealthStatus = Field(
        default_factory=QueueHealthStatus,
        description="Health information for the background sync queue.",
    )


class GenreRef(CamelModel):
    """Lightweight genre reference embedded in media payloads."""

    id: str
    name: str
    tmdb_id: int | None = None


class WatchProviderModel(CamelModel):
    """Streaming offer attached to a media item."""

    provider_id: int
    provider_name: str
    offer_type: Literal["flatrate", "buy", "rent"] = "flatrate"
    logo_path: str | None = None


class MovieModel(CamelModel):
    """Represents a catalog movie."""

    id: str
    tmdb_id: int | None = None
    imdb_id: str | None = None
    title: str
    original_title: str | None = None
    overview: str = ""
    release_date: date | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None
    runtime: int | None = None
    vote_average: float = 0.0
    vote_count: int = 0
    popularity: float = 0.0
    adult: bool = False
    original_language: str = "en"
    genres: list[GenreRef] = Field(default_factory=list)
    watch_providers: list[WatchProviderModel] = Field(default_factory=list)
    is_available: bool = True
    embed_url: str | None = None
    created_at: datetime
    updated_at: datetime


class MovieCreate(CamelModel):
    """Fields accepted when creating or upserting a movie."""

    tmdb_id: int | None = None
    imdb_id: str | None = None
    title: str = Field(..., min_length=1)
    original_title: str | None = None
    overview: str = ""
    release_date: date | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None
    runtime: int | None = Field(default=None, ge=0)
    vote_average: float = Field(default=0.0, ge=0, le=10)
    vote_count: int = Field(default=0, ge=0)
    popularity: float = Field(default=0.0, ge=0)
    adult: bool = False
    original_language: str = "en"
    genre_ids: list[str] = Field(default_factory=list)
    watch_providers: list[WatchProviderModel] = Field(default_factory=list)
    is_available: bool = True
    embed_url: str | None = None


class MovieUpdate(CamelModel):
    """Subset of movie fields allowed to be updated by admins."""

    imdb_id: str | None = None
    title: str | None = Field(default=None, min_length=1)
    original_title: str | None = None
    overview: str | None = None
    release_date: date | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None
    runtime: int | None = Field(default=None, ge=0)
    vote_average: float | None = Field(default=None, ge=0, le=10)
    vote_count: int | None = Field(default=None, ge=0)
    popularity: float | None = Field(default=None, ge=0)
    genre_ids: list[str] | None = None
    is_available: bool | None = None
    embed_url: str | None = None


class SeasonSummary(CamelModel):
    """Denormalized season summary stored on a TV show."""

    season_number: int
    episode_count: int = 0
    air_date: date | None = None
    name: str | None = None


class TvShowModel(CamelModel):
    """Represents a catalog TV show."""

    id: str
    tmdb_id: int | None = None
    imdb_id: str | None = None
    name: str
    original_name: str | None = None
    overview: str = ""
    first_air_date: date | None = None
    last_air_date: date | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None
    number_of_seasons: int = 1
    number_of_episodes: int = 0
    vote_average: float = 0.0
    vote_count: int = 0
    popularity: float = 0.0
    adult: bool = False
    original_language: str = "en"
    status: str = "Returning Series"
    show_type: str = "Scripted"
    seasons: list[SeasonSummary] = Field(default_factory=list)
    networks: list[dict[str, Any]] = Field(default_factory=list)
    created_by: list[dict[str, Any]] = Field(default_factory=list)
    genres: list[GenreRef] = Field(default_factory=list)
    watch_providers: list[WatchProviderModel] = Field(default_factory=list)
    is_available: bool = True
    embed_url: str | None = None
    created_at: datetime
    updated_at: datetime


class TvShowCreate(CamelModel):
    """Fields accepted when creating or upserting a TV show."""

    tmdb_id: int | None = None
    imdb_id: str | None = None
    name: str = Field(..., min_length=1)
    original_name: str | None = None
    overview: str = ""
    first_air_date: date | None = None
    last_air_date: date | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None
    number_of_seasons: int = Field(default=1, ge=0)
    number_of_episodes: int = Field(default=0, ge=0)
    vote_average: float = Field(default=0.0, ge=0, le=10)
    vote_count: int = Field(default=0, ge=0)
    popularity: float = Field(default=0.0, ge=0)
    adult: bool = False
    original_language: str = "en"
    status: str = "Returning Series"
    show_type: str = "Scripted"
    seasons: list[SeasonSummary] = Field(default_factory=list)
    networks: list[dict[str, Any]] = Field(default_factory=list)
    created_by: list[dict[str, Any]] = Field(default_factory=list)
    genre_ids: list[str] = Field(default_factory=list)
    watch_providers: list[WatchProviderModel] = Field(default_factory=list)
    is_available: bool = True
    embed_url: str | None = None


class TvShowUpdate(CamelModel):
    """Subset of TV show fields allowed to be updated by admins."""

    imdb_id: str | None = None
    name: str | None = Field(default=None, min_length=1)
    original_name: str | None = None
    overview: str | None = None
    first_air_date: date | None = None
    last_air_date: date | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None
    number_of_seasons: int | None = Field(default=None, ge=0)
    number_of_episodes: int | None = Field(default=None, ge=0)
    vote_average: float | None = Field(default=None, ge=0, le=10)
    vote_count: int | None = Field(default=None, ge=0)
    popularity: float | None = Field(default=None, ge=0)
    status: str | None = None
    show_type: str | None = None
    genre_ids: list[str] | None = None
    is_available: bool | None = None
    embed_url: str | None = None


class EpisodeModel(CamelModel):
    """Represents one episode of a TV show."""

    id: str
    tv_show_id: str
    tmdb_id: int | None = None
    season_number: int
    episode_number: int
    name: str
    overview: str = ""
    air_date: date | None = None
    still_path: str | None = None
    vote_average: float = 0.0
    vote_count: int = 0
    runtime: int | None = None
    embed_url: str | None = None
    is_available: bool = True


class EpisodeCreate(CamelModel):
    """Fields accepted when upserting an episode."""

    tmdb_id: int | None = None
    season_number: int = Field(..., ge=0)
    episode_number: int = Field(..., ge=0)
    name: str = Field(..., min_length=1)
    overview: str = ""
    air_date: date | None = None
    still_path: str | None = None
    vote_average: float = 0.0
    vote_count: int = 0
    runtime: int | None = None
    embed_url: str | None = None


class SeasonModel(SeasonSummary):
    """Season summary enriched with the stored episode count."""

    stored_episodes: int = 0


class MovieListModel(CamelModel):
    """Paginated movie listing."""

    items: list[MovieModel]
    total_pages: int
    current_page: int
    total: int


class TvShowListModel(CamelModel):
    """Paginated TV show listing."""

    items: list[TvShowModel]
    total_pages: int
    current_page: int
    total: int


class GenreModel(CamelModel):
    """Represents a genre in the taxonomy."""

    id: str
    tmdb_id: int | None = None
    name: str
    media_type: Literal["movie", "tv"] = "movie"
    movie_count: int = 0
    show_count: int = 0
    created_at: datetime


class GenreCreate(CamelModel):
    """Payload accepted when creating a genre."""

    name: str = Field(..., min_length=1)
    tmdb_id: int | None = None
    media_type: Literal["movie", "tv"] = "movie"


class GenreUpdate(CamelModel):
    """Payload accepted when renaming a genre."""

    name: str | None = Field(default=None, min_length=1)
    media_type: Literal["movie", "tv"] | None = None


class AvailabilityUpdate(CamelModel):
    """Toggle payload for availability endpoints."""

    is_available: bool


class SearchResultsModel(CamelModel):
    """Combined movie and TV show search results."""

    query: str
    movies: list[MovieModel]
    tv_shows: list[TvShowModel]
    total: int


class SearchSuggestion(CamelModel):
    """One entry offered while a user types a search query."""

    type: Literal["movie", "genre"]
    text: str
    value: str


class SearchSuggestionsModel(CamelModel):
    suggestions: list[SearchSuggestion]


class TrendingSearchesModel(CamelModel):
    trending: list[SearchSuggestion]


class StreamingOption(CamelModel):
    """One embed provider variant for a media item."""

    provider: str
    label: str
    url: str


class StreamingModel(CamelModel):
    """Streaming links for a movie, show or episode."""

    media_type: Literal["movie", "tv", "episode"]
    id: str
    title: str
    embed_url: str
    season: int | None = None
    episode: int | None = None
    options: list[StreamingOption] = Field(default_factory=list)


class EmbedRequest(CamelModel):
    """Ad-hoc embed URL generation request."""

    provider: Literal["vidsrc", "vidsrc_to", "godrive", "multiembed"] = "vidsrc"
    media_type: Literal["movie", "tv", "episode"] = "movie"
    imdb_id: str | None = None
    tmdb_id: int | None = None
    season: int | None = Field(default=None, ge=0)
    episode: int | None = Field(default=None, ge=0)
    sub_url: str | None = None
    ds_lang: str | None = None
    autoplay: bool | None = None
    autonext: bool | None = None


class EmbedResponse(CamelModel):
    """Generated embed URL."""

    url: str


class WatchlistCreate(CamelModel):
    """Payload accepted when adding to a watchlist."""

    movie_id: str | None = None
    tv_show_id: str | None = None
    status: WatchStatus = "plan_to_watch"
    rating: int | None = Field(default=None, ge=1, le=5)
    review: str | None = Field(default=None, max_length=1000)


class WatchlistUpdate(CamelModel):
    """Fields a user may change on a watchlist entry."""

    status: WatchStatus | None = None
    rating: int | None = Field(default=None, ge=1, le=5)
    review: str | None = Field(default=None, max_length=1000)
    current_season: int | None = Field(default=None, ge=1)
    current_episode: int | None = Field(default=None, ge=0)


class WatchlistEntryModel(CamelModel):
    """Watchlist entry returned to the owning user."""

    id: str
    user_id: str
    item_type: Literal["movie", "tvshow"]
    movie_id: str | None = None
    tv_show_id: str | None = None
    title: str | None = None
    status: WatchStatus
    rating: int | None = None
    review: str | None = None
    current_season: int = 1
    current_episode: int = 0
    added_at: datetime
    watched_at: datetime | None = None


class HistoryCreate(CamelModel):
    """Playback progress reported by a client."""

    movie_id: str | None = None
    tv_show_id: str | None = None
    season: int = Field(default=0, ge=0)
    episode: int = Field(default=0, ge=0)
    duration: int = Field(..., ge=0)
    last_position: int = Field(default=0, ge=0)
    completed: bool | None = None


class WatchHistoryModel(CamelModel):
    """Persisted playback progress."""

    id: str
    user_id: str
    movie_id: str | None = None
    tv_show_id: str | None = None
    title: str | None = None
    season: int = 0
    episode: int = 0
    duration: int
    last_position: int
    completed: bool
    progress_percent: float = 0.0
    watched_at: datetime


class SyncJobModel(CamelModel):
    """Represents a named sync job and its current run state."""

    id: str
    name: str
    type: SyncJobType
    status: SyncJobStatus
    progress: int = Field(ge=0, le=100)
    description: str = ""
    estimated_time: str = "Unknown"
    is_enabled: bool = True
    items_processed: int = 0
    total_items: int = 0
    success_count: int = 0
    failure_count: int = 0
    error_message: str | None = None
    last_error: datetime | None = None
    last_run: datetime | None = None
    next_run: datetime | None = None
    worker_id: str | None = None
    lease_token: str | None = Field(default=None, exclude=True)
    lease_expires_at: datetime | None = None
    config: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime


class SyncJobUpdate(CamelModel):
    """Fields an admin may reconfigure on a sync job."""

    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    estimated_time: str | None = None
    is_enabled: bool | None = None
    config: dict[str, Any] | None = None


class SyncJobLogCreate(CamelModel):
    """Payload for appending a structured job log entry."""

    level: Literal["debug", "info", "success", "warning", "error"] = Field(default="info")
    message: str = Field(..., min_length=1)
    context: dict[str, Any] | None = Field(default=None)


class SyncJobLogModel(SyncJobLogCreate):
    """Represents a persisted sync job log event."""

    id: int
    job_id: str
    created_at: datetime


class SyncRunRequest(CamelModel):
    """Overrides for a one-shot sync run."""

    movie_categories: list[str] | None = None
    tv_categories: list[str] | None = None
    page_cap: int | None = Field(default=None, ge=1)
    batch_size: int | None = Field(default=None, ge=1, le=50)
    batch_delay: float | None = Field(default=None, ge=0)
    refresh_existing: bool | None = None
    include_genres: bool | None = None


class SyncSummary(CamelModel):
    """Outcome counters for one sync run."""

    status: Literal["completed", "paused", "failed"] = "completed"
    processed: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    embed_urls: int = 0
    genres: int = 0
    job_id: str | None = None
    error_message: str | None = None
    started_at: datetime
    finished_at: datetime | None = None
    duration_seconds: float | None = None


class ScheduleStatus(CamelModel):
    """Recurring sync schedule state."""

    running: bool = False
    cron: str | None = None
    next_run_time: datetime | None = None


class SchedulePreset(CamelModel):
    """Named cron preset accepted by the schedule endpoint."""

    name: str
    cron: str
    description: str


class ScheduleRequest(CamelModel):
    """Start the recurring sync with a preset name or a cron expression."""

    schedule: str = Field(..., min_length=1)
    options: SyncRunRequest | None = None


class SyncStatusModel(CamelModel):
    """Live state of the process-local sync engine."""

    is_running: bool
    current_job_id: str | None = None
    last_summary: SyncSummary | None = None
    schedule: ScheduleStatus


class SyncStatsModel(CamelModel):
    """Aggregate sync job and catalog statistics."""

    total_jobs: int
    status_counts: dict[str, int]
    total_successes: int
    total_failures: int
    last_run: datetime | None = None
    total_movies: int
    total_tv_shows: int
    total_genres: int
    total_episodes: int


class ActivityModel(CamelModel):
    """Represents an audit trail entry."""

    id: int
    admin_id: str
    admin_name: str | None = None
    action: ActivityAction
    resource: str
    resource_id: str | None = None
    description: str
    details: dict[str, Any] = Field(default_factory=dict)
    success: bool = True
    error_message: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    created_at: datetime


class ActivityCreate(CamelModel):
    """Fields recorded when an admin mutation finishes."""

    admin_id: str
    admin_name: str | None = None
    action: ActivityAction
    resource: str
    resource_id: str | None = None
    description: str
    details: dict[str, Any] = Field(default_factory=dict)
    success: bool = True
    error_message: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None


class ActivityListModel(CamelModel):
    """Paginated audit trail listing."""

    items: list[ActivityModel]
    total_pages: int
    current_page: int
    total: int


class DashboardStatsModel(CamelModel):
    """Headline numbers for the admin dashboard."""

    total_movies: int
    available_movies: int
    total_tv_shows: int
    available_tv_shows: int
    total_genres: int
    total_episodes: int
    watchlist_entries: int
    recent_movies: list[MovieModel] = Field(default_factory=list)
    recent_activity: list[ActivityModel] = Field(default_factory=list)


class AdminResponse(CamelModel):
    """Envelope returned by admin mutation endpoints."""

    success: bool = True
    message: str
    data: Any | None = None

    @classmethod
    def ok(cls, message: str, data: Any = None) -> AdminResponse:
        """Wrap ``data`` serialized with camelCase keys."""

        return cls(success=True, message=message, data=_jsonable(data))


class CatalogQueryParams(BaseModel):
    """Query shape shared by the catalog list endpoints and the response cache."""

    model_config = ConfigDict(frozen=True)

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)
    genres: tuple[str, ...] = ()
    year: int | None = None
    min_rating: float | None = None
    min_votes: int | None = None
    search: str | None = None
    provider: str | None = None
    sort_by: str = "popularity"
    order: SortOrder = "desc"
    status: str | None = None
    show_type: str | None = None
    released_after: date | None = None
    released_before: date | None = None

    def normalized(self) -> CatalogQueryParams:
        """Return a copy with case and whitespace folded out of the free-form fields."""

        search = (self.search or "").strip().lower() or None
        provider = (self.provider or "").strip().lower() or None
        genres = tuple(sorted({value.strip().lower() for value in self.genres if value.strip()}))
        return self.model_copy(update={"search": search, "provider": provider, "genres": genres})


def _jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    return value
