"""TMDB service for searching movies and fetching details and credits.

Every call goes through the read-through cache; only misses reach TMDB, and
those are rate limited.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Literal, Optional

import requests
import tmdbsimple as tmdb
from aiolimiter import AsyncLimiter

from movietracker.core.config import Settings, get_settings
from movietracker.models.media import MovieCredits, MovieSearchResponse, TMDBMovie
from movietracker.services.cache import (
    MOVIE_CREDITS_PREFIX,
    MOVIE_DETAILS_PREFIX,
    POPULAR_MOVIES_PREFIX,
    SEARCH_MOVIES_PREFIX,
    TRENDING_MOVIES_PREFIX,
    ReadThroughCache,
    cache_key,
)

logger = logging.getLogger(__name__)


class TMDBError(Exception):
    """Domain exception for TMDB failures."""

    def __init__(self, message: str, original_exception: Exception = None):
        super().__init__(message)
        self.original_exception = original_exception


class ImageKind(str, Enum):
    """Asset types with their own size tiers."""

    POSTER = "poster"
    BACKDROP = "backdrop"
    PROFILE = "profile"


ImageSize = Literal["small", "medium", "large", "original"]

IMAGE_SIZES: dict[ImageKind, dict[str, str]] = {
    ImageKind.POSTER: {
        "small": "w185",
        "medium": "w342",
        "large": "w500",
        "original": "original",
    },
    ImageKind.BACKDROP: {
        "small": "w300",
        "medium": "w780",
        "large": "w1280",
        "original": "original",
    },
    ImageKind.PROFILE: {
        "small": "w45",
        "medium": "w185",
        "large": "h632",
        "original": "original",
    },
}


def get_image_url(
    path: Optional[str],
    kind: ImageKind = ImageKind.POSTER,
    size: ImageSize = "medium",
    base_url: Optional[str] = None,
) -> Optional[str]:
    """Compose a displayable image URL from a relative TMDB path."""
    if not path:
        return None
    base_url = base_url or get_settings().image_base_url
    return f"{base_url}/{IMAGE_SIZES[ImageKind(kind)][size]}{path}"


def configure_tmdb(settings: Settings) -> None:
    """Apply API key, timeout and proxy settings to tmdbsimple."""
    tmdb.API_KEY = settings.tmdb_api_key
    tmdb.REQUESTS_TIMEOUT = settings.tmdb_request_timeout
    session = requests.Session()
    if settings.proxy:
        session.proxies = {"http": settings.proxy, "https": settings.proxy}
    tmdb.REQUESTS_SESSION = session


def _call_tmdb(description: str, fn: Callable[..., dict], **kwargs: Any) -> dict:
    """Run a blocking tmdbsimple call, wrapping any failure in TMDBError."""
    try:
        return fn(**kwargs)
    except requests.exceptions.RequestException as exc:
        logger.error("TMDB request failed (%s): %s", description, exc)
        raise TMDBError(f"TMDB request failed: {description}", exc) from exc
    except Exception as exc:
        logger.exception("Unexpected TMDB error (%s): %s", description, exc)
        raise TMDBError(f"Unexpected TMDB error: {description}", exc) from exc


def _search_movies_sync(query: str, page: int) -> dict:
    """Search TMDB for movies (synchronous)."""
    search = tmdb.Search()
    return _call_tmdb(
        f"search '{query}' page {page}",
        search.movie,
        query=query,
        page=page,
        include_adult=False,
    )


def _get_movie_details_sync(movie_id: int) -> dict:
    """Fetch full movie details from TMDB (synchronous)."""
    movie_api = tmdb.Movies(movie_id)
    return _call_tmdb(
        f"details for ID {movie_id}",
        movie_api.info,
        append_to_response="videos,images",
    )


def _get_movie_credits_sync(movie_id: int) -> dict:
    """Fetch cast and crew from TMDB (synchronous)."""
    movie_api = tmdb.Movies(movie_id)
    return _call_tmdb(f"credits for ID {movie_id}", movie_api.credits)


def _get_popular_movies_sync(page: int) -> dict:
    movie_api = tmdb.Movies()
    return _call_tmdb(f"popular page {page}", movie_api.popular, page=page)


def _get_trending_movies_sync(page: int) -> dict:
    trending = tmdb.Trending(media_type="movie", time_window="week")
    return _call_tmdb(f"trending page {page}", trending.info, page=page)


class TMDBClient:
    """Async, cached access to the TMDB endpoints the app consumes."""

    def __init__(self, cache: ReadThroughCache, rate_limit: int = 40) -> None:
        self.cache = cache
        self.rate_limiter = AsyncLimiter(rate_limit, 10.0)

    async def _fetch(self, fn: Callable[..., dict], *args: Any) -> dict:
        async with self.rate_limiter:
            return await asyncio.to_thread(fn, *args)

    async def search_movies(self, query: str, page: int = 1) -> MovieSearchResponse:
        """Search movies by title; the cache key uses the lower-cased query."""
        key = cache_key(SEARCH_MOVIES_PREFIX, query.lower(), page)
        data = await self.cache.get_cached_or_fetch(
            key, lambda: self._fetch(_search_movies_sync, query, page)
        )
        return MovieSearchResponse.model_validate(data)

    async def get_movie_details(self, movie_id: int) -> TMDBMovie:
        key = cache_key(MOVIE_DETAILS_PREFIX, movie_id)
        data = await self.cache.get_cached_or_fetch(
            key, lambda: self._fetch(_get_movie_details_sync, movie_id)
        )
        return TMDBMovie.model_validate(data)

    async def get_movie_credits(self, movie_id: int) -> MovieCredits:
        key = cache_key(MOVIE_CREDITS_PREFIX, movie_id)
        data = await self.cache.get_cached_or_fetch(
            key, lambda: self._fetch(_get_movie_credits_sync, movie_id)
        )
        return MovieCredits.model_validate(data)

    async def get_popular_movies(self, page: int = 1) -> MovieSearchResponse:
        key = cache_key(POPULAR_MOVIES_PREFIX, page)
        data = await self.cache.get_cached_or_fetch(
            key, lambda: self._fetch(_get_popular_movies_sync, page)
        )
        return MovieSearchResponse.model_validate(data)

    async def get_trending_movies(self, page: int = 1) -> MovieSearchResponse:
        key = cache_key(TRENDING_MOVIES_PREFIX, page)
        data = await self.cache.get_cached_or_fetch(
            key, lambda: self._fetch(_get_trending_movies_sync, page)
        )
        return MovieSearchResponse.model_validate(data)
