"""Fetch-and-upsert pipeline that mirrors TMDB into the catalog store."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime
from typing import Any, Awaitable, Callable, Mapping

from sqlalchemy.engine import Engine

from ..errors import (
    CatalogValidationError,
    DuplicateKeyError,
    NotFoundError,
    SyncAlreadyRunningError,
    UpstreamError,
)
from ..schemas import (
    EpisodeCreate,
    MovieCreate,
    SeasonSummary,
    SyncJobLogCreate,
    SyncJobModel,
    SyncSummary,
    TvShowCreate,
    WatchProviderModel,
)
from ..settings import CatalogSettings
from ..stores.catalog_store import EpisodeStore, MovieStore, TvShowStore
from ..stores.genre_store import GenreStore
from ..stores.sync_job_log_store import SyncJobLogStore
from ..stores.sync_job_store import SyncJobStore
from ..utils.clock import utcnow
from .embed_urls import default_movie_embed_url, default_tv_embed_url, vidsrc_episode_url
from .tmdb_client import MOVIE_CATEGORIES, TV_CATEGORIES, MediaPage, TMDBClient

logger = logging.getLogger(__name__)

PROVIDER_REGION = "US"
OFFER_TYPES = ("flatrate", "buy", "rent")

ClientFactory = Callable[[], TMDBClient]


@dataclass(slots=True)
class SyncOptions:
    """Parameters of one sync run."""

    movie_categories: list[str] = field(default_factory=lambda: ["popular"])
    tv_categories: list[str] = field(default_factory=lambda: ["popular"])
    page_cap: int = 5
    batch_size: int = 10
    batch_delay: float = 1.0
    refresh_existing: bool = False
    include_genres: bool = True
    genre_media_types: list[str] = field(default_factory=lambda: ["movie", "tv"])

    @classmethod
    def from_settings(cls, settings: CatalogSettings) -> SyncOptions:
        return cls(
            movie_categories=list(settings.sync_movie_categories),
            tv_categories=list(settings.sync_tv_categories),
            page_cap=settings.sync_page_cap,
            batch_size=settings.sync_batch_size,
            batch_delay=settings.sync_batch_delay,
            refresh_existing=settings.sync_refresh_existing,
        )

    def with_overrides(self, overrides: Mapping[str, Any]) -> SyncOptions:
        """Return a copy with every non-``None`` known override applied."""

        known = {item.name for item in fields(self)}
        values = {key: value for key, value in overrides.items() if key in known and value is not None}
        return replace(self, **values)

    def for_job(self, job: SyncJobModel) -> SyncOptions:
        """Derive the options for a named job from its type and config blob."""

        config = job.config or {}
        options = self.with_overrides(
            {
                "movie_categories": config.get("movieCategories"),
                "tv_categories": config.get("tvCategories"),
                "page_cap": config.get("pageLimit"),
                "batch_size": config.get("batchSize"),
                "batch_delay": config.get("batchDelay"),
                "refresh_existing": config.get("refreshExisting"),
            }
        )
        genre_media_types = [
            media_type
            for media_type, key in (("movie", "includeMovieGenres"), ("tv", "includeTvGenres"))
            if config.get(key, True)
        ]
        options = replace(options, genre_media_types=genre_media_types)
        if job.type == "movies":
            return replace(options, tv_categories=[], include_genres=False)
        if job.type == "tvshows":
            return replace(options, movie_categories=[], include_genres=False)
        if job.type == "genres":
            return replace(options, movie_categories=[], tv_categories=[], include_genres=True)
        if job.type == "users":
            return replace(options, movie_categories=[], tv_categories=[], include_genres=False)
        return replace(
            options,
            movie_categories=options.movie_categories if config.get("includeMovies", True) else [],
            tv_categories=options.tv_categories if config.get("includeTvShows", True) else [],
            include_genres=bool(config.get("includeGenres", True)),
        )

    def validate(self) -> None:
        """Reject unknown categories and out-of-range limits."""

        unknown = [name for name in self.movie_categories if name not in MOVIE_CATEGORIES]
        unknown += [name for name in self.tv_categories if name not in TV_CATEGORIES]
        if unknown:
            raise CatalogValidationError(f"Unknown sync categories: {', '.join(unknown)}")
        if self.page_cap < 1:
            raise CatalogValidationError("page_cap must be at least 1")
        if not 1 <= self.batch_size <= 50:
            raise CatalogValidationError("batch_size must be between 1 and 50")
        if self.batch_delay < 0:
            raise CatalogValidationError("batch_delay must not be negative")


@dataclass(slots=True)
class _RunState:
    job_id: str | None
    lease_token: str | None = None
    started_at: datetime = field(default_factory=utcnow)
    processed: int = 0
    total_items: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    embed_urls: int = 0
    genres: int = 0
    halted: bool = False
    seen: set[tuple[str, int]] = field(default_factory=set)

    def count(self, outcome: str, *, has_embed: bool = False) -> None:
        if outcome == "created":
            self.created += 1
        elif outcome == "updated":
            self.updated += 1
        elif outcome == "skipped":
            self.skipped += 1
        else:
            self.failed += 1
        if has_embed and outcome in {"created", "updated"}:
            self.embed_urls += 1

    def summary(self, status: str, *, error_message: str | None = None) -> SyncSummary:
        finished = utcnow()
        return SyncSummary(
            status=status,
            processed=self.processed,
            created=self.created,
            updated=self.updated,
            skipped=self.skipped,
            failed=self.failed,
            embed_urls=self.embed_urls,
            genres=self.genres,
            job_id=self.job_id,
            error_message=error_message,
            started_at=self.started_at,
            finished_at=finished,
            duration_seconds=(finished - self.started_at).total_seconds(),
        )


class SyncEngine:
    """Runs one-shot, scheduled and job-driven syncs against TMDB.

    One instance lives per process. ``is_running`` only guards this process;
    named jobs are additionally protected by the lease in ``SyncJobStore``.
    Pausing a job is cooperative: the lease is re-checked at every batch
    boundary and requests already in flight are allowed to finish. A runner
    whose job was paused, or restarted by another runner, stops writing.
    """

    def __init__(
        self,
        *,
        movie_store: MovieStore,
        tv_store: TvShowStore,
        episode_store: EpisodeStore,
        genre_store: GenreStore,
        job_store: SyncJobStore,
        log_store: SyncJobLogStore,
        client_factory: ClientFactory,
        defaults: SyncOptions | None = None,
        worker_id: str | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._movies = movie_store
        self._tv_shows = tv_store
        self._episodes = episode_store
        self._genres = genre_store
        self._jobs = job_store
        self._logs = log_store
        self._client_factory = client_factory
        self._worker_id = worker_id
        self._sleep = sleep
        self.defaults = defaults or SyncOptions()
        self.last_summary: SyncSummary | None = None
        self._oneshot_running = False
        self._running_jobs: set[str] = set()

    @classmethod
    def from_settings(
        cls,
        settings: CatalogSettings,
        engine: Engine,
        *,
        client_factory: ClientFactory,
        worker_id: str | None = None,
    ) -> SyncEngine:
        """Wire an engine to fresh stores on ``engine``; used outside the API process."""

        return cls(
            movie_store=MovieStore(engine),
            tv_store=TvShowStore(engine),
            episode_store=EpisodeStore(engine),
            genre_store=GenreStore(engine),
            job_store=SyncJobStore(engine, lease_seconds=settings.sync_job_lease_seconds),
            log_store=SyncJobLogStore(engine),
            client_factory=client_factory,
            defaults=SyncOptions.from_settings(settings),
            worker_id=worker_id,
        )

    @property
    def is_running(self) -> bool:
        return self._oneshot_running or bool(self._running_jobs)

    @property
    def current_job_id(self) -> str | None:
        return next(iter(sorted(self._running_jobs)), None)

    async def run(self, options: SyncOptions | None = None, *, job_id: str | None = None) -> SyncSummary:
        """Run a one-shot sync and return its summary."""

        if self._oneshot_running:
            raise SyncAlreadyRunningError("A sync run is already in progress")
        self._oneshot_running = True
        try:
            return await self._execute(options or self.defaults, job_id=job_id, job_type="all")
        finally:
            self._oneshot_running = False

    async def run_scheduled(self, options: SyncOptions | None = None) -> SyncSummary | None:
        """Scheduler entry point; skips when a previous run is still going."""

        if self.is_running:
            logger.warning("Skipping scheduled sync because a previous run is still in progress")
            return None
        return await self.run(options)

    async def run_job(self, job_id: str) -> SyncJobModel:
        """Run the named job using its type and stored config."""

        job = self._jobs.require(job_id)
        options = self.defaults.for_job(job)
        await self._execute(options, job_id=job_id, job_type=job.type)
        return self._jobs.require(job_id)

    async def sync_genres(self) -> int:
        """Upsert the movie and TV genre taxonomies; returns the number of genres seen."""

        async with self._client_factory() as client:
            return await self._sync_genres(client, self.defaults.genre_media_types, job_id=None)

    async def sync_season(self, tv_show_id: str, season_number: int) -> SyncSummary:
        """Fetch one season of a stored show and upsert its episodes."""

        show = self._tv_shows.require(tv_show_id)
        if show.tmdb_id is None:
            raise CatalogValidationError("TV show has no TMDB id to sync episodes from")
        run = _RunState(job_id=None)
        async with self._client_factory() as client:
            season = await client.tv_season(show.tmdb_id, season_number)
        for episode in season.get("episodes") or []:
            run.processed += 1
            try:
                payload = episode_payload(episode, show.imdb_id, show.tmdb_id, season_number)
                _, created = self._episodes.upsert(tv_show_id, payload)
            except DuplicateKeyError:
                run.count("skipped")
            except Exception as exc:  # noqa: BLE001 - per-item failures are counted
                logger.warning("Failed to store episode %s of %s: %s", episode.get("id"), tv_show_id, exc)
                run.count("failed")
            else:
                run.count("created" if created else "updated", has_embed=payload.embed_url is not None)
        logger.info(
            "Season %s of %s synced: %s created, %s updated, %s failed",
            season_number,
            tv_show_id,
            run.created,
            run.updated,
            run.failed,
        )
        return run.summary("completed")

    async def _execute(self, options: SyncOptions, *, job_id: str | None, job_type: str) -> SyncSummary:
        options.validate()
        run = _RunState(job_id=job_id)
        if job_id is not None:
            run.lease_token = self._jobs.try_start(job_id, worker_id=self._worker_id).lease_token
            self._running_jobs.add(job_id)
            self._log(job_id, "info", f"Sync started ({job_type})", {"options": _options_context(options)})
        logger.info("Sync started (job=%s, type=%s)", job_id, job_type)

        try:
            if job_type == "users":
                self._log(job_id, "info", "User data has no upstream source; nothing to sync")
            else:
                async with self._client_factory() as client:
                    await self._run_pipeline(client, run, options, job_type)
            if job_id is not None and not run.halted:
                run.halted = not self._jobs.holds_lease(job_id, run.lease_token)
        except Exception as exc:
            logger.exception("Sync failed (job=%s)", job_id)
            summary = run.summary("failed", error_message=str(exc))
            self.last_summary = summary
            if job_id is not None:
                self._jobs.mark_failed(job_id, error_message=str(exc), lease_token=run.lease_token)
                self._log(job_id, "error", "Sync failed", {"error": str(exc)})
            raise
        finally:
            if job_id is not None:
                self._running_jobs.discard(job_id)

        if run.halted:
            summary = run.summary("paused")
            if job_id is not None:
                self._jobs.release(job_id, lease_token=run.lease_token)
                self._log(
                    job_id,
                    "warning",
                    "Sync halted because the job was paused or taken over",
                    _summary_context(summary),
                )
            logger.info("Sync halted (job=%s) after %s items", job_id, run.processed)
        else:
            summary = run.summary("completed")
            if job_id is not None:
                self._jobs.record_progress(
                    job_id,
                    items_processed=run.processed,
                    total_items=max(run.total_items, run.processed),
                    lease_token=run.lease_token,
                )
                self._jobs.mark_completed(job_id, lease_token=run.lease_token)
                self._log(job_id, "success", "Sync completed", _summary_context(summary))
            logger.info(
                "Sync completed (job=%s): %s processed, %s created, %s skipped, %s failed",
                job_id,
                summary.processed,
                summary.created,
                summary.skipped,
                summary.failed,
            )
        self.last_summary = summary
        return summary

    async def _run_pipeline(
        self, client: TMDBClient, run: _RunState, options: SyncOptions, job_type: str
    ) -> None:
        if options.include_genres and options.genre_media_types:
            run.genres = await self._sync_genres(client, options.genre_media_types, job_id=run.job_id)
        genre_map = self._genres.tmdb_map()
        has_media = bool(options.movie_categories or options.tv_categories)
        if has_media and not genre_map:
            run.genres = await self._sync_genres(client, ["movie", "tv"], job_id=run.job_id)
            genre_map = self._genres.tmdb_map()

        for media_type, categories in (
            ("movie", options.movie_categories),
            ("tv", options.tv_categories),
        ):
            if run.halted or not categories:
                continue
            results = await asyncio.gather(
                *(
                    self._sync_category(client, run, media_type, category, options, genre_map)
                    for category in categories
                ),
                return_exceptions=True,
            )
            for result in results:
                if isinstance(result, BaseException):
                    raise result

    async def _sync_genres(
        self, client: TMDBClient, media_types: list[str], *, job_id: str | None
    ) -> int:
        total = 0
        for media_type in media_types:
            for genre in await client.genres(media_type):
                if genre.get("id") is None or not genre.get("name"):
                    continue
                self._genres.upsert_tmdb(int(genre["id"]), str(genre["name"]), media_type)
                total += 1
        self._log(job_id, "info", f"Synced {total} genres", {"mediaTypes": list(media_types)})
        logger.info("Synced %s genres", total)
        return total

    async def _sync_category(
        self,
        client: TMDBClient,
        run: _RunState,
        media_type: str,
        category: str,
        options: SyncOptions,
        genre_map: dict[int, str],
    ) -> None:
        fetch = client.list_movies if media_type == "movie" else client.list_tv_shows
        estimated = False
        page = 1
        while page <= options.page_cap and not run.halted:
            try:
                result: MediaPage = await fetch(category, page)
            except (UpstreamError, NotFoundError) as exc:
                logger.warning("Failed to fetch %s %s page %s: %s", media_type, category, page, exc)
                self._log(run.job_id, "warning", f"Failed to fetch {category} page {page}", {"error": str(exc)})
                page += 1
                continue

            if not result.results:
                break
            if not estimated:
                pages = min(result.total_pages or 1, options.page_cap)
                run.total_items += pages * len(result.results)
                estimated = True

            for start in range(0, len(result.results), options.batch_size):
                batch = result.results[start : start + options.batch_size]
                await asyncio.gather(
                    *(self._process_item(client, run, media_type, item, options, genre_map) for item in batch)
                )
                run.processed += len(batch)
                if run.job_id is not None:
                    self._jobs.record_progress(
                        run.job_id,
                        items_processed=run.processed,
                        total_items=max(run.total_items, run.processed),
                        lease_token=run.lease_token,
                    )
                    if not self._jobs.holds_lease(run.job_id, run.lease_token):
                        run.halted = True
                        return
                if options.batch_delay:
                    await self._sleep(options.batch_delay)

            logger.info(
                "Processed %s %s page %s/%s", media_type, category, page, result.total_pages or page
            )
            self._log(
                run.job_id,
                "info",
                f"Processed {media_type} {category} page {page}",
                {"items": len(result.results), "processed": run.processed},
            )
            if result.total_pages and page >= result.total_pages:
                break
            page += 1

    async def _process_item(
        self,
        client: TMDBClient,
        run: _RunState,
        media_type: str,
        item: dict[str, Any],
        options: SyncOptions,
        genre_map: dict[int, str],
    ) -> None:
        tmdb_id = item.get("id")
        try:
            if tmdb_id is None:
                raise CatalogValidationError("Item summary has no id")
            tmdb_id = int(tmdb_id)
            if (media_type, tmdb_id) in run.seen:
                run.count("skipped")
                return
            run.seen.add((media_type, tmdb_id))
            store = self._movies if media_type == "movie" else self._tv_shows
            if not options.refresh_existing and store.has_tmdb_id(tmdb_id):
                run.count("skipped")
                return
            if media_type == "movie":
                payload = movie_payload(await client.movie_detail(tmdb_id), genre_map)
                _, created = self._movies.upsert(payload)
            else:
                payload = tv_payload(await client.tv_detail(tmdb_id), genre_map)
                _, created = self._tv_shows.upsert(payload)
        except (NotFoundError, DuplicateKeyError) as exc:
            logger.debug("Skipping %s %s: %s", media_type, tmdb_id, exc)
            run.count("skipped")
        except Exception as exc:  # noqa: BLE001 - per-item failures never abort the run
            logger.warning("Failed to sync %s %s: %s", media_type, tmdb_id, exc)
            self._log(run.job_id, "error", f"Error processing {media_type} {tmdb_id}", {"error": str(exc)})
            run.count("failed")
        else:
            run.count("created" if created else "updated", has_embed=payload.embed_url is not None)

    def _log(
        self,
        job_id: str | None,
        level: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        if job_id is None:
            return
        self._logs.append(job_id, SyncJobLogCreate(level=level, message=message, context=context))


def movie_payload(detail: dict[str, Any], genre_map: Mapping[int, str]) -> MovieCreate:
    """Map a TMDB movie detail payload onto the store's create model."""

    title = detail.get("title")
    if not title:
        raise CatalogValidationError(f"Movie {detail.get('id')} has no title")
    tmdb_id = int(detail["id"])
    imdb_id = detail.get("imdb_id") or (detail.get("external_ids") or {}).get("imdb_id")
    return MovieCreate(
        tmdb_id=tmdb_id,
        imdb_id=imdb_id or None,
        title=title,
        original_title=detail.get("original_title") or title,
        overview=detail.get("overview") or "",
        release_date=_parse_date(detail.get("release_date")),
        poster_path=detail.get("poster_path"),
        backdrop_path=detail.get("backdrop_path"),
        runtime=detail.get("runtime") or None,
        vote_average=detail.get("vote_average") or 0.0,
        vote_count=detail.get("vote_count") or 0,
        popularity=detail.get("popularity") or 0.0,
        adult=bool(detail.get("adult")),
        original_language=detail.get("original_language") or "en",
        genre_ids=_resolve_genres(detail, genre_map),
        watch_providers=_watch_providers(detail),
        embed_url=default_movie_embed_url(imdb_id, tmdb_id),
    )


def tv_payload(detail: dict[str, Any], genre_map: Mapping[int, str]) -> TvShowCreate:
    """Map a TMDB TV detail payload onto the store's create model."""

    name = detail.get("name")
    if not name:
        raise CatalogValidationError(f"TV show {detail.get('id')} has no name")
    tmdb_id = int(detail["id"])
    imdb_id = (detail.get("external_ids") or {}).get("imdb_id")
    seasons = [
        SeasonSummary(
            season_number=season.get("season_number") or 0,
            episode_count=season.get("episode_count") or 0,
            air_date=_parse_date(season.get("air_date")),
            name=season.get("name"),
        )
        for season in detail.get("seasons") or []
    ]
    return TvShowCreate(
        tmdb_id=tmdb_id,
        imdb_id=imdb_id or None,
        name=name,
        original_name=detail.get("original_name") or name,
        overview=detail.get("overview") or "",
        first_air_date=_parse_date(detail.get("first_air_date")),
        last_air_date=_parse_date(detail.get("last_air_date")),
        poster_path=detail.get("poster_path"),
        backdrop_path=detail.get("backdrop_path"),
        number_of_seasons=detail.get("number_of_seasons") or 1,
        number_of_episodes=detail.get("number_of_episodes") or 0,
        vote_average=detail.get("vote_average") or 0.0,
        vote_count=detail.get("vote_count") or 0,
        popularity=detail.get("popularity") or 0.0,
        adult=bool(detail.get("adult")),
        original_language=detail.get("original_language") or "en",
        status=detail.get("status") or "Returning Series",
        show_type=detail.get("type") or "Scripted",
        seasons=seasons,
        networks=[
            {"id": network.get("id"), "name": network.get("name"), "logoPath": network.get("logo_path")}
            for network in detail.get("networks") or []
        ],
        created_by=[
            {"id": creator.get("id"), "name": creator.get("name")}
            for creator in detail.get("created_by") or []
        ],
        genre_ids=_resolve_genres(detail, genre_map),
        watch_providers=_watch_providers(detail),
        embed_url=default_tv_embed_url(imdb_id, tmdb_id),
    )


def episode_payload(
    episode: dict[str, Any], imdb_id: str | None, tmdb_id: int | None, season_number: int
) -> EpisodeCreate:
    """Map a TMDB episode onto the store's create model with its embed URL."""

    number = episode.get("episode_number")
    if number is None:
        raise CatalogValidationError("Episode has no episode_number")
    return EpisodeCreate(
        tmdb_id=episode.get("id"),
        season_number=season_number,
        episode_number=int(number),
        name=episode.get("name") or f"Episode {number}",
        overview=episode.get("overview") or "",
        air_date=_parse_date(episode.get("air_date")),
        still_path=episode.get("still_path"),
        vote_average=episode.get("vote_average") or 0.0,
        vote_count=episode.get("vote_count") or 0,
        runtime=episode.get("runtime"),
        embed_url=vidsrc_episode_url(imdb_id, tmdb_id, season_number, int(number), ds_lang="en"),
    )


def _resolve_genres(detail: dict[str, Any], genre_map: Mapping[int, str]) -> list[str]:
    raw = detail.get("genres")
    if raw is None:
        raw = [{"id": genre_id} for genre_id in detail.get("genre_ids") or []]
    return [genre_map[genre["id"]] for genre in raw if genre.get("id") in genre_map]


def _watch_providers(detail: dict[str, Any]) -> list[WatchProviderModel]:
    region = ((detail.get("watch/providers") or {}).get("results") or {}).get(PROVIDER_REGION) or {}
    providers: list[WatchProviderModel] = []
    for offer_type in OFFER_TYPES:
        for provider in region.get(offer_type) or []:
            if provider.get("provider_id") is None:
                continue
            providers.append(
                WatchProviderModel(
                    provider_id=provider["provider_id"],
                    provider_name=provider.get("provider_name") or "",
                    offer_type=offer_type,
                    logo_path=provider.get("logo_path"),
                )
            )
    return providers


def _parse_date(value: Any) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def _options_context(options: SyncOptions) -> dict[str, Any]:
    return {
        "movieCategories": list(options.movie_categories),
        "tvCategories": list(options.tv_categories),
        "pageCap": options.page_cap,
        "batchSize": options.batch_size,
        "batchDelay": options.batch_delay,
        "refreshExisting": options.refresh_existing,
    }


def _summary_context(summary: SyncSummary) -> dict[str, Any]:
    return summary.model_dump(
        mode="json", by_alias=True, include={"processed", "created", "updated", "skipped", "failed"}
    )
