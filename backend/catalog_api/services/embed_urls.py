"""Embed provider URL builders.

Every function here is pure string templating: no network calls are made and
the providers are never contacted. Each builder accepts an IMDb id, a TMDB id
or both, and raises ``MissingIdentifierError`` when neither is supplied.
"""
from __future__ import annotations

from typing import Literal
from urllib.parse import urlencode

from ..errors import CatalogValidationError, MissingIdentifierError

VIDSRC_BASE_URL = "https://vidsrc-embed.ru"
VIDSRC_TO_BASE_URL = "https://vidsrc.to"
GODRIVE_PLAYER_URL = "https://godriveplayer.com/player.php"
MULTIEMBED_BASE_URL = "https://multiembed.mov"

Provider = Literal["vidsrc", "vidsrc_to", "godrive", "multiembed"]
MediaKind = Literal["movie", "tv", "episode"]

PROVIDER_LABELS: dict[str, str] = {
    "vidsrc": "Vidsrc",
    "vidsrc_to": "Vidsrc.to",
    "godrive": "GoDrive Player",
    "multiembed": "MultiEmbed",
}


def normalize_imdb_id(imdb_id: str | int | None) -> str | None:
    """Return the canonical ``tt``-prefixed form of an IMDb id, or ``None``."""

    if imdb_id is None:
        return None
    value = str(imdb_id).strip()
    if not value:
        return None
    if value[:2].lower() == "tt":
        return f"tt{value[2:]}"
    return f"tt{value}"


def _ids(imdb_id: str | int | None, tmdb_id: str | int | None) -> tuple[str | None, str | None]:
    imdb = normalize_imdb_id(imdb_id)
    tmdb = str(tmdb_id).strip() if tmdb_id is not None and str(tmdb_id).strip() else None
    if imdb is None and tmdb is None:
        raise MissingIdentifierError("Either imdbId or tmdbId is required")
    return imdb, tmdb


def _flag(value: bool | int | None) -> int | None:
    if value is None:
        return None
    return 1 if value else 0


def _require_episode(season: int | None, episode: int | None) -> None:
    if season is None or episode is None:
        raise CatalogValidationError("Season and episode numbers are required")
    if season < 0 or episode < 0:
        raise CatalogValidationError("Season and episode numbers must not be negative")


def _vidsrc(path: str, params: list[tuple[str, object | None]]) -> str:
    query = urlencode([(key, value) for key, value in params if value is not None])
    return f"{VIDSRC_BASE_URL}{path}?{query}"


def vidsrc_movie_url(
    imdb_id: str | int | None = None,
    tmdb_id: str | int | None = None,
    *,
    sub_url: str | None = None,
    ds_lang: str | None = None,
    autoplay: bool | int | None = None,
) -> str:
    """Vidsrc embed URL for a movie."""

    imdb, tmdb = _ids(imdb_id, tmdb_id)
    return _vidsrc(
        "/embed/movie",
        [
            ("imdb", imdb),
            ("tmdb", tmdb),
            ("sub_url", sub_url or None),
            ("ds_lang", ds_lang or None),
            ("autoplay", _flag(autoplay)),
        ],
    )


def vidsrc_tv_url(
    imdb_id: str | int | None = None,
    tmdb_id: str | int | None = None,
    *,
    ds_lang: str | None = None,
) -> str:
    """Vidsrc embed URL for a whole TV show."""

    imdb, tmdb = _ids(imdb_id, tmdb_id)
    return _vidsrc("/embed/tv", [("imdb", imdb), ("tmdb", tmdb), ("ds_lang", ds_lang or None)])


def vidsrc_episode_url(
    imdb_id: str | int | None = None,
    tmdb_id: str | int | None = None,
    season: int | None = None,
    episode: int | None = None,
    *,
    sub_url: str | None = None,
    ds_lang: str | None = None,
    autoplay: bool | int | None = None,
    autonext: bool | int | None = None,
) -> str:
    """Vidsrc embed URL for a single episode."""

    imdb, tmdb = _ids(imdb_id, tmdb_id)
    _require_episode(season, episode)
    return _vidsrc(
        "/embed/tv",
        [
            ("imdb", imdb),
            ("tmdb", tmdb),
            ("season", season),
            ("episode", episode),
            ("sub_url", sub_url or None),
            ("ds_lang", ds_lang or None),
            ("autoplay", _flag(autoplay)),
            ("autonext", _flag(autonext)),
        ],
    )


def vidsrc_to_movie_url(imdb_id: str | int | None = None, tmdb_id: str | int | None = None) -> str:
    """Path-style vidsrc.to URL for a movie; the IMDb id wins when both are known."""

    imdb, tmdb = _ids(imdb_id, tmdb_id)
    return f"{VIDSRC_TO_BASE_URL}/embed/movie/{imdb or tmdb}"


def vidsrc_to_tv_url(
    imdb_id: str | int | None = None,
    tmdb_id: str | int | None = None,
    season: int | None = None,
    episode: int | None = None,
) -> str:
    """Path-style vidsrc.to URL for a show, a season or an episode."""

    imdb, tmdb = _ids(imdb_id, tmdb_id)
    url = f"{VIDSRC_TO_BASE_URL}/embed/tv/{imdb or tmdb}"
    if season is not None:
        url = f"{url}/{season}"
        if episode is not None:
            url = f"{url}/{episode}"
    elif episode is not None:
        raise CatalogValidationError("An episode number requires a season number")
    return url


def godrive_movie_url(imdb_id: str | int | None = None, tmdb_id: str | int | None = None) -> str:
    """GoDrive player URL for a movie."""

    imdb, tmdb = _ids(imdb_id, tmdb_id)
    if imdb:
        return f"{GODRIVE_PLAYER_URL}?{urlencode({'imdb': imdb})}"
    return f"{GODRIVE_PLAYER_URL}?{urlencode({'tmdb': tmdb})}"


def multiembed_movie_url(imdb_id: str | int | None = None, tmdb_id: str | int | None = None) -> str:
    """MultiEmbed URL for a movie."""

    imdb, tmdb = _ids(imdb_id, tmdb_id)
    if imdb:
        return f"{MULTIEMBED_BASE_URL}/?{urlencode({'video_id': imdb})}"
    return f"{MULTIEMBED_BASE_URL}/?{urlencode({'video_id': tmdb, 'tmdb': 1})}"


def multiembed_episode_url(
    imdb_id: str | int | None = None,
    tmdb_id: str | int | None = None,
    season: int | None = None,
    episode: int | None = None,
) -> str:
    """MultiEmbed URL for a single episode."""

    imdb, tmdb = _ids(imdb_id, tmdb_id)
    _require_episode(season, episode)
    if imdb:
        params: dict[str, object] = {"video_id": imdb}
    else:
        params = {"video_id": tmdb, "tmdb": 1}
    params.update({"s": season, "e": episode})
    return f"{MULTIEMBED_BASE_URL}/?{urlencode(params)}"


def build_embed_url(
    provider: Provider,
    media_type: MediaKind,
    *,
    imdb_id: str | int | None = None,
    tmdb_id: str | int | None = None,
    season: int | None = None,
    episode: int | None = None,
    sub_url: str | None = None,
    ds_lang: str | None = None,
    autoplay: bool | int | None = None,
    autonext: bool | int | None = None,
) -> str:
    """Dispatch to the builder for ``provider`` and ``media_type``."""

    if provider == "vidsrc":
        if media_type == "movie":
            return vidsrc_movie_url(
                imdb_id, tmdb_id, sub_url=sub_url, ds_lang=ds_lang, autoplay=autoplay
            )
        if media_type == "tv":
            return vidsrc_tv_url(imdb_id, tmdb_id, ds_lang=ds_lang)
        return vidsrc_episode_url(
            imdb_id,
            tmdb_id,
            season,
            episode,
            sub_url=sub_url,
            ds_lang=ds_lang,
            autoplay=autoplay,
            autonext=autonext,
        )
    if provider == "vidsrc_to":
        if media_type == "movie":
            return vidsrc_to_movie_url(imdb_id, tmdb_id)
        if media_type == "episode":
            _require_episode(season, episode)
        return vidsrc_to_tv_url(imdb_id, tmdb_id, season, episode)
    if provider == "godrive":
        if media_type != "movie":
            raise CatalogValidationError("GoDrive only serves movies")
        return godrive_movie_url(imdb_id, tmdb_id)
    if provider == "multiembed":
        if media_type == "movie":
            return multiembed_movie_url(imdb_id, tmdb_id)
        if media_type == "episode":
            return multiembed_episode_url(imdb_id, tmdb_id, season, episode)
        raise CatalogValidationError("MultiEmbed requires a movie or an episode")
    raise CatalogValidationError(f"Unknown embed provider: {provider}")


def default_movie_embed_url(imdb_id: str | None, tmdb_id: int | None) -> str | None:
    """Embed URL stored on synced movies, or ``None`` when no id is known."""

    try:
        return vidsrc_movie_url(imdb_id, tmdb_id, ds_lang="en", autoplay=1)
    except MissingIdentifierError:
        return None


def default_tv_embed_url(imdb_id: str | None, tmdb_id: int | None) -> str | None:
    """Embed URL stored on synced TV shows, or ``None`` when no id is known."""

    try:
        return vidsrc_tv_url(imdb_id, tmdb_id, ds_lang="en")
    except MissingIdentifierError:
        return None


def streaming_options(
    media_type: MediaKind,
    *,
    imdb_id: str | int | None = None,
    tmdb_id: str | int | None = None,
    season: int | None = None,
    episode: int | None = None,
) -> list[tuple[str, str, str]]:
    """List ``(provider, label, url)`` for every provider variant that can serve the item."""

    options: list[tuple[str, str, str]] = []
    imdb = normalize_imdb_id(imdb_id)
    id_variants = [("IMDB", imdb, None), ("TMDB", None, tmdb_id)]
    defaults = {"ds_lang": "en", "autoplay": 1} if media_type != "tv" else {"ds_lang": "en"}
    options.append(
        (
            "vidsrc",
            PROVIDER_LABELS["vidsrc"],
            build_embed_url(
                "vidsrc",
                media_type,
                imdb_id=imdb,
                tmdb_id=tmdb_id,
                season=season,
                episode=episode,
                **defaults,
            ),
        )
    )
    for provider in ("vidsrc_to", "godrive", "multiembed"):
        if provider == "godrive" and media_type != "movie":
            continue
        if provider == "multiembed" and media_type == "tv":
            continue
        for suffix, variant_imdb, variant_tmdb in id_variants:
            if variant_imdb is None and variant_tmdb is None:
                continue
            url = build_embed_url(
                provider,
                media_type,
                imdb_id=variant_imdb,
                tmdb_id=variant_tmdb,
                season=season,
                episode=episode,
            )
            options.append((provider, f"{PROVIDER_LABELS[provider]} ({suffix})", url))
    return options
