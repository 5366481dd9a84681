"""Catalog store for movies, TV shows and their episodes."""
from __future__ import annotations

from contextlib import contextmanager
from datetime import date
from typing import Any, Generic, Iterable, Iterator, Sequence, TypeVar
from uuid import uuid4

from pydantic import BaseModel
from sqlalchemy import delete, func, or_
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from ..errors import CatalogValidationError, DuplicateKeyError, NotFoundError
from ..models import (
    EpisodeRecord,
    GenreLinkRecord,
    GenreRecord,
    MovieRecord,
    TvShowRecord,
    WatchHistoryRecord,
    WatchlistRecord,
    WatchProviderRecord,
)
from ..schemas import (
    CatalogQueryParams,
    EpisodeCreate,
    EpisodeModel,
    GenreRef,
    MovieModel,
    TvShowModel,
    WatchProviderModel,
)
from ..utils.clock import utcnow

RecordT = TypeVar("RecordT", MovieRecord, TvShowRecord)
ModelT = TypeVar("ModelT", MovieModel, TvShowModel)

LIKE_ESCAPE = "\\"


def like_pattern(term: str) -> str:
    """Build a LIKE pattern matching ``term`` as a literal substring."""

    escaped = (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", f"{LIKE_ESCAPE}%")
        .replace("_", f"{LIKE_ESCAPE}_")
    )
    return f"%{escaped}%"


class _MediaStore(Generic[RecordT, ModelT]):
    """Shared persistence logic for movies and TV shows."""

    record_type: type[RecordT]
    media_type: str
    title_column: str
    original_title_column: str
    date_column: str
    sort_columns: dict[str, str]
    relation_fields = {"genre_ids", "watch_providers"}

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def get(self, item_id: str) -> ModelT | None:
        """Fetch a single item by store identifier."""

        with Session(self._engine) as session:
            record = session.get(self.record_type, item_id)
            return self._to_models(session, [record])[0] if record else None

    def require(self, item_id: str) -> ModelT:
        """Fetch an item or raise ``NotFoundError``."""

        item = self.get(item_id)
        if item is None:
            raise NotFoundError(f"{self._label()} not found")
        return item

    def get_by_tmdb_id(self, tmdb_id: int) -> ModelT | None:
        """Fetch a single item by its TMDB identifier."""

        with Session(self._engine) as session:
            record = session.exec(
                select(self.record_type).where(self.record_type.tmdb_id == tmdb_id)
            ).first()
            return self._to_models(session, [record])[0] if record else None

    def has_tmdb_id(self, tmdb_id: int) -> bool:
        """Return whether an item with the given TMDB identifier is stored."""

        with Session(self._engine) as session:
            found = session.exec(
                select(self.record_type.id).where(self.record_type.tmdb_id == tmdb_id)
            ).first()
            return found is not None

    def upsert(self, payload: BaseModel) -> tuple[ModelT, bool]:
        """Insert or update an item keyed by TMDB id, returning ``(item, created)``."""

        data = self._validated_fields(payload)
        tmdb_id = data.get("tmdb_id")
        with Session(self._engine) as session:
            record = None
            if tmdb_id is not None:
                record = session.exec(
                    select(self.record_type).where(self.record_type.tmdb_id == tmdb_id)
                ).first()
            created = record is None
            if record is None:
                record = self.record_type(id=uuid4().hex, **data)
            else:
                for key, value in data.items():
                    if key != "is_available":
                        setattr(record, key, value)
                record.updated_at = utcnow()
            session.add(record)
            with self._duplicate_guard(session, tmdb_id):
                session.flush()
                self._replace_relations(session, record.id, payload)
                session.commit()
            session.refresh(record)
            return self._to_models(session, [record])[0], created

    def create(self, payload: BaseModel) -> ModelT:
        """Insert a new item, rejecting TMDB id collisions."""

        data = self._validated_fields(payload)
        record = self.record_type(id=uuid4().hex, **data)
        with Session(self._engine) as session:
            session.add(record)
            with self._duplicate_guard(session, data.get("tmdb_id")):
                session.flush()
                self._replace_relations(session, record.id, payload)
                session.commit()
            session.refresh(record)
            return self._to_models(session, [record])[0]

    def update(self, item_id: str, payload: BaseModel) -> ModelT:
        """Apply a partial update to an item."""

        changes = payload.model_dump(exclude_unset=True, exclude=self.relation_fields)
        with Session(self._engine) as session:
            record = session.get(self.record_type, item_id)
            if record is None:
                raise NotFoundError(f"{self._label()} not found")
            for key, value in changes.items():
                if value is None and key == self.title_column:
                    raise CatalogValidationError(f"{self.title_column} cannot be empty")
                setattr(record, key, value)
            record.updated_at = utcnow()
            session.add(record)
            genre_ids = getattr(payload, "genre_ids", None)
            if genre_ids is not None:
                self._replace_genres(session, record.id, genre_ids)
            session.commit()
            session.refresh(record)
            return self._to_models(session, [record])[0]

    def set_availability(self, item_id: str, is_available: bool) -> ModelT:
        """Toggle whether an item is visible to public listings."""

        with Session(self._engine) as session:
            record = session.get(self.record_type, item_id)
            if record is None:
                raise NotFoundError(f"{self._label()} not found")
            record.is_available = is_available
            record.updated_at = utcnow()
            session.add(record)
            session.commit()
            session.refresh(record)
            return self._to_models(session, [record])[0]

    def delete(self, item_id: str) -> ModelT:
        """Hard-delete an item along with the rows that reference it."""

        with Session(self._engine) as session:
            record = session.get(self.record_type, item_id)
            if record is None:
                raise NotFoundError(f"{self._label()} not found")
            model = self._to_models(session, [record])[0]
            self._delete_dependents(session, item_id)
            session.exec(
                delete(GenreLinkRecord)
                .where(GenreLinkRecord.media_type == self.media_type)
                .where(GenreLinkRecord.media_id == item_id)
            )
            session.exec(
                delete(WatchProviderRecord)
                .where(WatchProviderRecord.media_type == self.media_type)
                .where(WatchProviderRecord.media_id == item_id)
            )
            session.delete(record)
            session.commit()
            return model

    def find(
        self,
        params: CatalogQueryParams,
        *,
        genre_ids: Sequence[str] | None = None,
        available_only: bool = True,
    ) -> tuple[list[ModelT], int]:
        """Return one page of items matching the filters plus the total match count."""

        record = self.record_type
        filters: list[Any] = []
        if available_only:
            filters.append(record.is_available.is_(True))
        if genre_ids is not None:
            filters.append(
                record.id.in_(
                    select(GenreLinkRecord.media_id)
                    .where(GenreLinkRecord.media_type == self.media_type)
                    .where(GenreLinkRecord.genre_id.in_(list(genre_ids)))
                )
            )
        date_column = getattr(record, self.date_column)
        if params.year is not None:
            filters.append(date_column >= date(params.year, 1, 1))
            filters.append(date_column <= date(params.year, 12, 31))
        if params.released_after is not None:
            filters.append(date_column >= params.released_after)
        if params.released_before is not None:
            filters.append(date_column <= params.released_before)
        if params.min_rating is not None:
            filters.append(record.vote_average >= params.min_rating)
        if params.min_votes is not None:
            filters.append(record.vote_count >= params.min_votes)
        if params.search:
            pattern = like_pattern(params.search.lower())
            filters.append(
                or_(
                    *(
                        func.lower(getattr(record, column)).like(pattern, escape=LIKE_ESCAPE)
                        for column in (self.title_column, self.original_title_column, "overview")
                    )
                )
            )
        if params.provider:
            filters.append(record.id.in_(self._provider_subquery(params.provider)))
        filters.extend(self._extra_filters(params))

        count_statement = select(func.count()).select_from(record)
        items_statement = select(record)
        for condition in filters:
            count_statement = count_statement.where(condition)
            items_statement = items_statement.where(condition)

        column = getattr(record, self.sort_columns.get(params.sort_by, "popularity"))
        ordering = column.asc() if params.order == "asc" else column.desc()
        items_statement = (
            items_statement.order_by(ordering.nullslast(), record.id)
            .offset((params.page - 1) * params.limit)
            .limit(params.limit)
        )

        with Session(self._engine) as session:
            total = session.exec(count_statement).one()
            records = session.exec(items_statement).all()
            return self._to_models(session, records), int(total)

    def count(self, *, available_only: bool = False) -> int:
        """Return the number of stored items."""

        statement = select(func.count()).select_from(self.record_type)
        if available_only:
            statement = statement.where(self.record_type.is_available.is_(True))
        with Session(self._engine) as session:
            return int(session.exec(statement).one())

    def recent(self, limit: int = 5, *, available_only: bool = False) -> list[ModelT]:
        """Return the most recently created items."""

        statement = select(self.record_type)
        if available_only:
            statement = statement.where(self.record_type.is_available.is_(True))
        statement = statement.order_by(self.record_type.created_at.desc()).limit(limit)
        with Session(self._engine) as session:
            return self._to_models(session, session.exec(statement).all())

    def matching_titles(self, term: str, *, limit: int = 5) -> list[str]:
        """Return titles of available items whose title or original title contains ``term``."""

        pattern = like_pattern(term.lower())
        title = getattr(self.record_type, self.title_column)
        original = getattr(self.record_type, self.original_title_column)
        statement = (
            select(title)
            .where(self.record_type.is_available.is_(True))
            .where(
                or_(
                    func.lower(title).like(pattern, escape=LIKE_ESCAPE),
                    func.lower(original).like(pattern, escape=LIKE_ESCAPE),
                )
            )
            .order_by(self.record_type.popularity.desc(), self.record_type.id)
            .limit(limit)
        )
        with Session(self._engine) as session:
            return list(session.exec(statement).all())

    def _validated_fields(self, payload: BaseModel) -> dict[str, Any]:
        data = payload.model_dump(exclude=self.relation_fields)
        if not data.get(self.title_column):
            raise CatalogValidationError(f"{self._label()} requires a {self.title_column}")
        return data

    @contextmanager
    def _duplicate_guard(self, session: Session, tmdb_id: int | None) -> Iterator[None]:
        """Translate unique TMDB id violations raised by any flush into ``DuplicateKeyError``."""

        try:
            yield
        except IntegrityError as exc:
            session.rollback()
            raise DuplicateKeyError(
                f"{self._label()} with TMDB id {tmdb_id} already exists"
            ) from exc

    def _replace_relations(self, session: Session, item_id: str, payload: BaseModel) -> None:
        self._replace_genres(session, item_id, getattr(payload, "genre_ids", []))
        session.exec(
            delete(WatchProviderRecord)
            .where(WatchProviderRecord.media_type == self.media_type)
            .where(WatchProviderRecord.media_id == item_id)
        )
        providers: Iterable[WatchProviderModel] = getattr(payload, "watch_providers", [])
        for provider in providers:
            session.add(
                WatchProviderRecord(
                    media_type=self.media_type,
                    media_id=item_id,
                    provider_id=provider.provider_id,
                    provider_name=provider.provider_name,
                    offer_type=provider.offer_type,
                    logo_path=provider.logo_path,
                )
            )

    def _replace_genres(self, session: Session, item_id: str, genre_ids: Sequence[str]) -> None:
        ordered = list(dict.fromkeys(genre_ids))
        if ordered:
            known = set(session.exec(select(GenreRecord.id).where(GenreRecord.id.in_(ordered))).all())
            unknown = [genre_id for genre_id in ordered if genre_id not in known]
            if unknown:
                raise CatalogValidationError(f"Unknown genre ids: {', '.join(unknown)}")
        session.exec(
            delete(GenreLinkRecord)
            .where(GenreLinkRecord.media_type == self.media_type)
            .where(GenreLinkRecord.media_id == item_id)
        )
        for position, genre_id in enumerate(ordered):
            session.add(
                GenreLinkRecord(
                    media_type=self.media_type,
                    media_id=item_id,
                    genre_id=genre_id,
                    position=position,
                )
            )

    def _provider_subquery(self, provider: str):
        condition = func.lower(WatchProviderRecord.provider_name) == provider.lower()
        if provider.isdigit():
            condition = or_(condition, WatchProviderRecord.provider_id == int(provider))
        return (
            select(WatchProviderRecord.media_id)
            .where(WatchProviderRecord.media_type == self.media_type)
            .where(condition)
        )

    def _to_models(self, session: Session, records: Sequence[RecordT]) -> list[ModelT]:
        ids = [record.id for record in records]
        genres: dict[str, list[GenreRef]] = {item_id: [] for item_id in ids}
        providers: dict[str, list[WatchProviderModel]] = {item_id: [] for item_id in ids}
        if ids:
            genre_rows = session.exec(
                select(GenreLinkRecord.media_id, GenreRecord)
                .join(GenreRecord, GenreRecord.id == GenreLinkRecord.genre_id)
                .where(GenreLinkRecord.media_type == self.media_type)
                .where(GenreLinkRecord.media_id.in_(ids))
                .order_by(GenreLinkRecord.position)
            ).all()
            for media_id, genre in genre_rows:
                genres[media_id].append(GenreRef(id=genre.id, name=genre.name, tmdb_id=genre.tmdb_id))
            provider_rows = session.exec(
                select(WatchProviderRecord)
                .where(WatchProviderRecord.media_type == self.media_type)
                .where(WatchProviderRecord.media_id.in_(ids))
                .order_by(WatchProviderRecord.id)
            ).all()
            for provider in provider_rows:
                providers[provider.media_id].append(
                    WatchProviderModel(
                        provider_id=provider.provider_id,
                        provider_name=provider.provider_name,
                        offer_type=provider.offer_type,
                        logo_path=provider.logo_path,
                    )
                )
        return [
            self._to_model(record, genres[record.id], providers[record.id]) for record in records
        ]

    def _label(self) -> str:
        return "Movie" if self.media_type == "movie" else "TV show"

    def _extra_filters(self, params: CatalogQueryParams) -> list[Any]:
        return []

    def _delete_dependents(self, session: Session, item_id: str) -> None:
        raise NotImplementedError

    def _to_model(
        self,
        record: RecordT,
        genres: list[GenreRef],
        providers: list[WatchProviderModel],
    ) -> ModelT:
        raise NotImplementedError


class MovieStore(_MediaStore[MovieRecord, MovieModel]):
    """CRUD and listing access for catalog movies."""

    record_type = MovieRecord
    media_type = "movie"
    title_column = "title"
    original_title_column = "original_title"
    date_column = "release_date"
    sort_columns = {
        "popularity": "popularity",
        "voteAverage": "vote_average",
        "voteCount": "vote_count",
        "releaseDate": "release_date",
        "title": "title",
        "runtime": "runtime",
        "createdAt": "created_at",
    }

    def _delete_dependents(self, session: Session, item_id: str) -> None:
        session.exec(delete(WatchlistRecord).where(WatchlistRecord.movie_id == item_id))
        session.exec(delete(WatchHistoryRecord).where(WatchHistoryRecord.movie_id == item_id))

    def _to_model(
        self,
        record: MovieRecord,
        genres: list[GenreRef],
        providers: list[WatchProviderModel],
    ) -> MovieModel:
        return MovieModel(
            id=record.id,
            tmdb_id=record.tmdb_id,
            imdb_id=record.imdb_id,
            title=record.title,
            original_title=record.original_title,
            overview=record.overview,
            release_date=record.release_date,
            poster_path=record.poster_path,
            backdrop_path=record.backdrop_path,
            runtime=record.runtime,
            vote_average=record.vote_average,
            vote_count=record.vote_count,
            popularity=record.popularity,
            adult=record.adult,
            original_language=record.original_language,
            genres=genres,
            watch_providers=providers,
            is_available=record.is_available,
            embed_url=record.embed_url,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class TvShowStore(_MediaStore[TvShowRecord, TvShowModel]):
    """CRUD and listing access for catalog TV shows."""

    record_type = TvShowRecord
    media_type = "tv"
    title_column = "name"
    original_title_column = "original_name"
    date_column = "first_air_date"
    sort_columns = {
        "popularity": "popularity",
        "voteAverage": "vote_average",
        "voteCount": "vote_count",
        "firstAirDate": "first_air_date",
        "name": "name",
        "createdAt": "created_at",
    }

    def _validated_fields(self, payload: BaseModel) -> dict[str, Any]:
        data = super()._validated_fields(payload)
        if "seasons" in data:
            data["seasons"] = [
                {**season, "air_date": season["air_date"].isoformat() if season.get("air_date") else None}
                for season in data["seasons"]
            ]
        return data

    def _extra_filters(self, params: CatalogQueryParams) -> list[Any]:
        filters: list[Any] = []
        if params.status:
            filters.append(func.lower(TvShowRecord.status) == params.status.lower())
        if params.show_type:
            filters.append(func.lower(TvShowRecord.show_type) == params.show_type.lower())
        return filters

    def _delete_dependents(self, session: Session, item_id: str) -> None:
        session.exec(delete(WatchlistRecord).where(WatchlistRecord.tv_show_id == item_id))
        session.exec(delete(WatchHistoryRecord).where(WatchHistoryRecord.tv_show_id == item_id))
        session.exec(delete(EpisodeRecord).where(EpisodeRecord.tv_show_id == item_id))

    def _to_model(
        self,
        record: TvShowRecord,
        genres: list[GenreRef],
        providers: list[WatchProviderModel],
    ) -> TvShowModel:
        return TvShowModel(
            id=record.id,
            tmdb_id=record.tmdb_id,
            imdb_id=record.imdb_id,
            name=record.name,
            original_name=record.original_name,
            overview=record.overview,
            first_air_date=record.first_air_date,
            last_air_date=record.last_air_date,
            poster_path=record.poster_path,
            backdrop_path=record.backdrop_path,
            number_of_seasons=record.number_of_seasons,
            number_of_episodes=record.number_of_episodes,
            vote_average=record.vote_average,
            vote_count=record.vote_count,
            popularity=record.popularity,
            adult=record.adult,
            original_language=record.original_language,
            status=record.status,
            show_type=record.show_type,
            seasons=record.seasons or [],
            networks=record.networks or [],
            created_by=record.created_by or [],
            genres=genres,
            watch_providers=providers,
            is_available=record.is_available,
            embed_url=record.embed_url,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class EpisodeStore:
    """Persistence for episodes keyed by (show, season, episode)."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def upsert(self, tv_show_id: str, payload: EpisodeCreate) -> tuple[EpisodeModel, bool]:
        """Insert or update the episode at the payload's position."""

        data = payload.model_dump()
        with Session(self._engine) as session:
            if session.get(TvShowRecord, tv_show_id) is None:
                raise NotFoundError("TV show not found")
            record = session.exec(
                select(EpisodeRecord)
                .where(EpisodeRecord.tv_show_id == tv_show_id)
                .where(EpisodeRecord.season_number == payload.season_number)
                .where(EpisodeRecord.episode_number == payload.episode_number)
            ).first()
            created = record is None
            if record is None:
                record = EpisodeRecord(id=uuid4().hex, tv_show_id=tv_show_id, **data)
            else:
                for key, value in data.items():
                    setattr(record, key, value)
                record.updated_at = utcnow()
            session.add(record)
            try:
                session.flush()
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise DuplicateKeyError(
                    f"Episode S{payload.season_number}E{payload.episode_number} already exists"
                ) from exc
            session.refresh(record)
            return _episode_to_model(record), created

    def list_for_season(self, tv_show_id: str, season_number: int) -> list[EpisodeModel]:
        """Return the stored episodes of one season in order."""

        statement = (
            select(EpisodeRecord)
            .where(EpisodeRecord.tv_show_id == tv_show_id)
            .where(EpisodeRecord.season_number == season_number)
            .order_by(EpisodeRecord.episode_number)
        )
        with Session(self._engine) as session:
            return [_episode_to_model(record) for record in session.exec(statement).all()]

    def get(self, tv_show_id: str, season_number: int, episode_number: int) -> EpisodeModel | None:
        """Fetch one episode by its position within a show."""

        with Session(self._engine) as session:
            record = session.exec(
                select(EpisodeRecord)
                .where(EpisodeRecord.tv_show_id == tv_show_id)
                .where(EpisodeRecord.season_number == season_number)
                .where(EpisodeRecord.episode_number == episode_number)
            ).first()
            return _episode_to_model(record) if record else None

    def counts_by_season(self, tv_show_id: str) -> dict[int, int]:
        """Return how many episodes are stored for each season of a show."""

        with Session(self._engine) as session:
            rows = session.exec(
                select(EpisodeRecord.season_number, func.count())
                .where(EpisodeRecord.tv_show_id == tv_show_id)
                .group_by(EpisodeRecord.season_number)
            ).all()
        return {season: count for season, count in rows}

    def count(self) -> int:
        """Return the total number of stored episodes."""

        with Session(self._engine) as session:
            return int(session.exec(select(func.count()).select_from(EpisodeRecord)).one())


def _episode_to_model(record: EpisodeRecord) -> EpisodeModel:
    """Convert an episode record into its response model."""

    return EpisodeModel(
        id=record.id,
        tv_show_id=record.tv_show_id,
        tmdb_id=record.tmdb_id,
        season_number=record.season_number,
        episode_number=record.episode_number,
        name=record.name,
        overview=record.overview,
        air_date=record.air_date,
        still_path=record.still_path,
        vote_average=record.vote_average,
        vote_count=record.vote_count,
        runtime=record.runtime,
        embed_url=record.embed_url,
        is_available=record.is_available,
    )
