"""Embed URL endpoints."""
from fastapi import APIRouter, Depends, Path

from ..dependencies import get_episode_store, get_movie_store, get_tv_store
from ..errors import MissingIdentifierError, NotFoundError
from ..schemas import EmbedRequest, EmbedResponse, StreamingModel, StreamingOption
from ..services.embed_urls import (
    build_embed_url,
    default_movie_embed_url,
    default_tv_embed_url,
    streaming_options,
    vidsrc_episode_url,
)
from ..stores.catalog_store import EpisodeStore, MovieStore, TvShowStore

router = APIRouter(prefix="/streaming", tags=["streaming"])


def _options(media_type: str, **kwargs) -> list[StreamingOption]:
    return [
        StreamingOption(provider=provider, label=label, url=url)
        for provider, label, url in streaming_options(media_type, **kwargs)
    ]


@router.get("/movies/{movie_id}", response_model=StreamingModel)
def movie_streaming(movie_id: str, store: MovieStore = Depends(get_movie_store)) -> StreamingModel:
    """Return the stored embed URL of a movie plus every provider alternative."""

    movie = store.get(movie_id)
    if movie is None or not movie.is_available:
        raise NotFoundError("Movie not found")
    embed_url = movie.embed_url or default_movie_embed_url(movie.imdb_id, movie.tmdb_id)
    if embed_url is None:
        raise MissingIdentifierError("Movie has neither an IMDb nor a TMDB id")
    return StreamingModel(
        media_type="movie",
        id=movie.id,
        title=movie.title,
        embed_url=embed_url,
        options=_options("movie", imdb_id=movie.imdb_id, tmdb_id=movie.tmdb_id),
    )


@router.get("/tvshows/{tv_show_id}", response_model=StreamingModel)
def tv_show_streaming(tv_show_id: str, store: TvShowStore = Depends(get_tv_store)) -> StreamingModel:
    show = store.get(tv_show_id)
    if show is None or not show.is_available:
        raise NotFoundError("TV show not found")
    embed_url = show.embed_url or default_tv_embed_url(show.imdb_id, show.tmdb_id)
    if embed_url is None:
        raise MissingIdentifierError("TV show has neither an IMDb nor a TMDB id")
    return StreamingModel(
        media_type="tv",
        id=show.id,
        title=show.name,
        embed_url=embed_url,
        options=_options("tv", imdb_id=show.imdb_id, tmdb_id=show.tmdb_id),
    )


@router.get("/tvshows/{tv_show_id}/season/{season}/episode/{episode}", response_model=StreamingModel)
def episode_streaming(
    tv_show_id: str,
    season: int = Path(ge=0),
    episode: int = Path(ge=0),
    store: TvShowStore = Depends(get_tv_store),
    episodes: EpisodeStore = Depends(get_episode_store),
) -> StreamingModel:
    """Return the embed URL of one episode; unsynced episodes get a generated URL."""

    show = store.get(tv_show_id)
    if show is None or not show.is_available:
        raise NotFoundError("TV show not found")
    stored = episodes.get(tv_show_id, season, episode)
    embed_url = stored.embed_url if stored and stored.embed_url else None
    if embed_url is None:
        embed_url = vidsrc_episode_url(show.imdb_id, show.tmdb_id, season, episode, ds_lang="en", autoplay=1)
    title = f"{show.name} S{season:02d}E{episode:02d}"
    if stored is not None:
        title = f"{title} - {stored.name}"
    return StreamingModel(
        media_type="episode",
        id=stored.id if stored else show.id,
        title=title,
        embed_url=embed_url,
        season=season,
        episode=episode,
        options=_options(
            "episode", imdb_id=show.imdb_id, tmdb_id=show.tmdb_id, season=season, episode=episode
        ),
    )


@router.post("/generate", response_model=EmbedResponse)
def generate_embed_url(request: EmbedRequest) -> EmbedResponse:
    """Build an embed URL for arbitrary ids without touching the catalog."""

    url = build_embed_url(
        request.provider,
        request.media_type,
        imdb_id=request.imdb_id,
        tmdb_id=request.tmdb_id,
        season=request.season,
        episode=request.episode,
        sub_url=request.sub_url,
        ds_lang=request.ds_lang,
        autoplay=request.autoplay,
        autonext=request.autonext,
    )
    return EmbedResponse(url=url)
