"""Genre taxonomy persistence."""
from __future__ import annotations

from typing import Iterable, Sequence
from uuid import uuid4

from sqlalchemy import delete, func, or_
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from ..errors import DuplicateKeyError, GenreInUseError, NotFoundError
from ..models import GenreLinkRecord, GenreRecord
from ..schemas import GenreCreate, GenreModel, GenreUpdate
from .catalog_store import LIKE_ESCAPE, like_pattern


class GenreStore:
    """CRUD interface for genres with reference-count guarded deletes."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def list(self, *, media_type: str | None = None) -> list[GenreModel]:
        """Return every genre ordered by name."""

        statement = select(GenreRecord)
        if media_type:
            statement = statement.where(GenreRecord.media_type == media_type)
        statement = statement.order_by(func.lower(GenreRecord.name), GenreRecord.id)
        with Session(self._engine) as session:
            records: Sequence[GenreRecord] = session.exec(statement).all()
            counts = self._reference_counts(session, [record.id for record in records])
            return [_to_model(record, *counts.get(record.id, (0, 0))) for record in records]

    def get(self, genre_id: str) -> GenreModel | None:
        """Fetch a single genre by store identifier."""

        with Session(self._engine) as session:
            record = session.get(GenreRecord, genre_id)
            if record is None:
                return None
            movie_count, show_count = self._reference_counts(session, [genre_id]).get(
                genre_id, (0, 0)
            )
            return _to_model(record, movie_count, show_count)

    def create(self, payload: GenreCreate) -> GenreModel:
        """Insert a new genre, rejecting duplicate TMDB ids."""

        record = GenreRecord(
            id=uuid4().hex,
            tmdb_id=payload.tmdb_id,
            name=payload.name.strip(),
            media_type=payload.media_type,
        )
        with Session(self._engine) as session:
            session.add(record)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise DuplicateKeyError(
                    f"Genre with TMDB id {payload.tmdb_id} already exists"
                ) from exc
            session.refresh(record)
            return _to_model(record)

    def upsert_tmdb(self, tmdb_id: int, name: str, media_type: str) -> tuple[GenreModel, bool]:
        """Insert or rename the genre with the given TMDB id."""

        with Session(self._engine) as session:
            record = session.exec(
                select(GenreRecord).where(GenreRecord.tmdb_id == tmdb_id)
            ).first()
            created = record is None
            if record is None:
                record = GenreRecord(
                    id=uuid4().hex, tmdb_id=tmdb_id, name=name, media_type=media_type
                )
            else:
                record.name = name
            session.add(record)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise DuplicateKeyError(f"Genre with TMDB id {tmdb_id} already exists") from exc
            session.refresh(record)
            return _to_model(record), created

    def update(self, genre_id: str, payload: GenreUpdate) -> GenreModel:
        """Rename a genre or change its media type."""

        with Session(self._engine) as session:
            record = session.get(GenreRecord, genre_id)
            if record is None:
                raise NotFoundError("Genre not found")
            if payload.name is not None:
                record.name = payload.name.strip()
            if payload.media_type is not None:
                record.media_type = payload.media_type
            session.add(record)
            session.commit()
            session.refresh(record)
            movie_count, show_count = self._reference_counts(session, [genre_id]).get(
                genre_id, (0, 0)
            )
            return _to_model(record, movie_count, show_count)

    def delete(self, genre_id: str) -> GenreModel:
        """Delete a genre that no movie or show references."""

        with Session(self._engine) as session:
            record = session.get(GenreRecord, genre_id)
            if record is None:
                raise NotFoundError("Genre not found")
            movie_count, show_count = self._reference_counts(session, [genre_id]).get(
                genre_id, (0, 0)
            )
            if movie_count or show_count:
                raise GenreInUseError(movie_count, show_count)
            model = _to_model(record)
            session.exec(delete(GenreLinkRecord).where(GenreLinkRecord.genre_id == genre_id))
            session.delete(record)
            session.commit()
            return model

    def reference_counts(self, genre_id: str) -> tuple[int, int]:
        """Return ``(movie_count, show_count)`` for one genre."""

        with Session(self._engine) as session:
            return self._reference_counts(session, [genre_id]).get(genre_id, (0, 0))

    def resolve(self, values: Iterable[str]) -> list[str]:
        """Map store ids or case-insensitive exact names onto genre ids."""

        wanted = [value.strip().lower() for value in values if value and value.strip()]
        if not wanted:
            return []
        statement = select(GenreRecord.id).where(
            or_(GenreRecord.id.in_(wanted), func.lower(GenreRecord.name).in_(wanted))
        )
        with Session(self._engine) as session:
            return sorted(set(session.exec(statement).all()))

    def names(self, *, term: str | None = None, limit: int = 5) -> list[str]:
        """Return distinct genre names in alphabetical order, optionally containing ``term``."""

        statement = select(GenreRecord.name).distinct()
        if term:
            statement = statement.where(
                func.lower(GenreRecord.name).like(like_pattern(term.lower()), escape=LIKE_ESCAPE)
            )
        statement = statement.order_by(GenreRecord.name).limit(limit)
        with Session(self._engine) as session:
            return list(session.exec(statement).all())

    def tmdb_map(self) -> dict[int, str]:
        """Return the TMDB id to store id map used during sync."""

        statement = select(GenreRecord.tmdb_id, GenreRecord.id).where(
            GenreRecord.tmdb_id.is_not(None)
        )
        with Session(self._engine) as session:
            return {tmdb_id: genre_id for tmdb_id, genre_id in session.exec(statement).all()}

    def count(self) -> int:
        """Return the number of stored genres."""

        with Session(self._engine) as session:
            return int(session.exec(select(func.count()).select_from(GenreRecord)).one())

    @staticmethod
    def _reference_counts(session: Session, genre_ids: list[str]) -> dict[str, tuple[int, int]]:
        if not genre_ids:
            return {}
        rows = session.exec(
            select(GenreLinkRecord.genre_id, GenreLinkRecord.media_type, func.count())
            .where(GenreLinkRecord.genre_id.in_(genre_ids))
            .group_by(GenreLinkRecord.genre_id, GenreLinkRecord.media_type)
        ).all()
        counts: dict[str, tuple[int, int]] = {}
        for genre_id, media_type, total in rows:
            movies, shows = counts.get(genre_id, (0, 0))
            if media_type == "movie":
                movies = total
            else:
                shows = total
            counts[genre_id] = (movies, shows)
        return counts


def _to_model(record: GenreRecord, movie_count: int = 0, show_count: int = 0) -> GenreModel:
    """Convert a genre record into the public response model."""

    return GenreModel(
        id=record.id,
        tmdb_id=record.tmdb_id,
        name=record.name,
        media_type=record.media_type,
        movie_count=movie_count,
        show_count=show_count,
        created_at=record.created_at,
    )
