"""Per-user watchlist and watch history persistence."""
from __future__ import annotations

from typing import Sequence
from uuid import uuid4

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, func, select

from ..errors import CatalogValidationError, DuplicateKeyError, NotFoundError
from ..models import MovieRecord, TvShowRecord, WatchHistoryRecord, WatchlistRecord
from ..schemas import (
    HistoryCreate,
    WatchHistoryModel,
    WatchlistCreate,
    WatchlistEntryModel,
    WatchlistUpdate,
)
from ..utils.clock import utcnow

COMPLETION_THRESHOLD = 0.9


class WatchlistStore:
    """Watchlist entries and playback history scoped to a user id."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def list_entries(
        self,
        user_id: str,
        *,
        status: str | None = None,
        item_type: str | None = None,
    ) -> list[WatchlistEntryModel]:
        """Return a user's watchlist, newest first."""

        statement = select(WatchlistRecord).where(WatchlistRecord.user_id == user_id)
        if status:
            statement = statement.where(WatchlistRecord.status == status)
        if item_type:
            statement = statement.where(WatchlistRecord.item_type == item_type)
        statement = statement.order_by(WatchlistRecord.added_at.desc(), WatchlistRecord.id)
        with Session(self._engine) as session:
            records: Sequence[WatchlistRecord] = session.exec(statement).all()
            return [_entry_to_model(record, _title_for(session, record)) for record in records]

    def add(self, user_id: str, payload: WatchlistCreate) -> WatchlistEntryModel:
        """Add a movie or TV show to a user's watchlist."""

        item_type = _item_type(payload.movie_id, payload.tv_show_id)
        record = WatchlistRecord(
            id=uuid4().hex,
            user_id=user_id,
            movie_id=payload.movie_id,
            tv_show_id=payload.tv_show_id,
            item_type=item_type,
            status=payload.status,
            rating=payload.rating,
            review=payload.review,
            watched_at=utcnow() if payload.status == "completed" else None,
        )
        with Session(self._engine) as session:
            title = _require_target(session, payload.movie_id, payload.tv_show_id)
            session.add(record)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise DuplicateKeyError("Item already in watchlist") from exc
            session.refresh(record)
            return _entry_to_model(record, title)

    def update(self, user_id: str, entry_id: str, payload: WatchlistUpdate) -> WatchlistEntryModel:
        """Change status, rating, review or position of a watchlist entry."""

        with Session(self._engine) as session:
            record = self._owned_entry(session, user_id, entry_id)
            changes = payload.model_dump(exclude_unset=True)
            for key, value in changes.items():
                setattr(record, key, value)
            if changes.get("status") == "completed" and record.watched_at is None:
                record.watched_at = utcnow()
            session.add(record)
            session.commit()
            session.refresh(record)
            return _entry_to_model(record, _title_for(session, record))

    def remove(self, user_id: str, entry_id: str) -> WatchlistEntryModel:
        """Delete a watchlist entry owned by the user."""

        with Session(self._engine) as session:
            record = self._owned_entry(session, user_id, entry_id)
            model = _entry_to_model(record, _title_for(session, record))
            session.delete(record)
            session.commit()
            return model

    def count(self) -> int:
        """Return the number of watchlist entries across all users."""

        with Session(self._engine) as session:
            return int(session.exec(select(func.count()).select_from(WatchlistRecord)).one())

    def record_progress(self, user_id: str, payload: HistoryCreate) -> WatchHistoryModel:
        """Upsert playback progress for a movie or a show episode."""

        _item_type(payload.movie_id, payload.tv_show_id)
        completed = payload.completed
        if completed is None:
            completed = bool(
                payload.duration and payload.last_position >= payload.duration * COMPLETION_THRESHOLD
            )
        season = payload.season if payload.tv_show_id else 0
        episode = payload.episode if payload.tv_show_id else 0
        with Session(self._engine) as session:
            title = _require_target(session, payload.movie_id, payload.tv_show_id)
            record = session.exec(
                select(WatchHistoryRecord)
                .where(WatchHistoryRecord.user_id == user_id)
                .where(WatchHistoryRecord.movie_id == payload.movie_id)
                .where(WatchHistoryRecord.tv_show_id == payload.tv_show_id)
                .where(WatchHistoryRecord.season == season)
                .where(WatchHistoryRecord.episode == episode)
            ).first()
            if record is None:
                record = WatchHistoryRecord(
                    id=uuid4().hex,
                    user_id=user_id,
                    movie_id=payload.movie_id,
                    tv_show_id=payload.tv_show_id,
                    season=season,
                    episode=episode,
                    duration=payload.duration,
                )
            record.duration = payload.duration
            record.last_position = payload.last_position
            record.completed = completed
            record.watched_at = utcnow()
            session.add(record)
            session.commit()
            session.refresh(record)
            return _history_to_model(record, title)

    def list_history(self, user_id: str, *, limit: int = 50) -> list[WatchHistoryModel]:
        """Return a user's playback history, most recent first."""

        statement = (
            select(WatchHistoryRecord)
            .where(WatchHistoryRecord.user_id == user_id)
            .order_by(WatchHistoryRecord.watched_at.desc(), WatchHistoryRecord.id)
            .limit(limit)
        )
        with Session(self._engine) as session:
            records = session.exec(statement).all()
            return [_history_to_model(record, _title_for(session, record)) for record in records]

    def continue_watching(self, user_id: str, *, limit: int = 20) -> list[WatchHistoryModel]:
        """Return started but unfinished items, most recent first."""

        statement = (
            select(WatchHistoryRecord)
            .where(WatchHistoryRecord.user_id == user_id)
            .where(WatchHistoryRecord.completed.is_(False))
            .where(WatchHistoryRecord.last_position > 0)
            .order_by(WatchHistoryRecord.watched_at.desc(), WatchHistoryRecord.id)
            .limit(limit)
        )
        with Session(self._engine) as session:
            records = session.exec(statement).all()
            return [_history_to_model(record, _title_for(session, record)) for record in records]

    @staticmethod
    def _owned_entry(session: Session, user_id: str, entry_id: str) -> WatchlistRecord:
        record = session.get(WatchlistRecord, entry_id)
        if record is None or record.user_id != user_id:
            raise NotFoundError("Watchlist entry not found")
        return record


def _item_type(movie_id: str | None, tv_show_id: str | None) -> str:
    if bool(movie_id) == bool(tv_show_id):
        raise CatalogValidationError("Provide exactly one of movieId or tvShowId")
    return "movie" if movie_id else "tvshow"


def _require_target(session: Session, movie_id: str | None, tv_show_id: str | None) -> str:
    if movie_id:
        movie = session.get(MovieRecord, movie_id)
        if movie is None:
            raise NotFoundError("Movie not found")
        return movie.title
    show = session.get(TvShowRecord, tv_show_id)
    if show is None:
        raise NotFoundError("TV show not found")
    return show.name


def _title_for(session: Session, record: WatchlistRecord | WatchHistoryRecord) -> str | None:
    if record.movie_id:
        movie = session.get(MovieRecord, record.movie_id)
        return movie.title if movie else None
    if record.tv_show_id:
        show = session.get(TvShowRecord, record.tv_show_id)
        return show.name if show else None
    return None


def _entry_to_model(record: WatchlistRecord, title: str | None) -> WatchlistEntryModel:
    """Convert a watchlist record into the response model."""

    return WatchlistEntryModel(
        id=record.id,
        user_id=record.user_id,
        item_type=record.item_type,
        movie_id=record.movie_id,
        tv_show_id=record.tv_show_id,
        title=title,
        status=record.status,
        rating=record.rating,
        review=record.review,
        current_season=record.current_season,
        current_episode=record.current_episode,
        added_at=record.added_at,
        watched_at=record.watched_at,
    )


def _history_to_model(record: WatchHistoryRecord, title: str | None) -> WatchHistoryModel:
    """Convert a history record into the response model."""

    progress = (record.last_position / record.duration * 100) if record.duration else 0.0
    return WatchHistoryModel(
        id=record.id,
        user_id=record.user_id,
        movie_id=record.movie_id,
        tv_show_id=record.tv_show_id,
        title=title,
        season=record.season,
        episode=record.episode,
        duration=record.duration,
        last_position=record.last_position,
        completed=record.completed,
        progress_percent=round(min(progress, 100.0), 1),
        watched_at=record.watched_at,
    )
