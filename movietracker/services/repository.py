"""Repository for the user's movie collection and named lists.

Both collections are persisted as whole JSON documents under fixed keys.
Every operation loads the full collection, mutates it in memory and writes it
back. Writers to the same collection are serialized with a per-key lock.

Storage faults never escape: reads degrade to an empty collection, writes to
``False``, and the fault is logged. Callers cannot tell "not found" from
"storage fault" by return value alone.
"""

import asyncio
import locale
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from pydantic import TypeAdapter

from movietracker.core.dates import (
    format_runtime,
    is_valid_date_format,
    is_within_days,
    now_ms,
    today_iso,
)
from movietracker.models.media import (
    CollectionStats,
    MovieList,
    NewMovieList,
    UserMovieRecord,
    dump_collection,
    list_collection,
    load_collection,
    movie_collection,
)
from movietracker.stores.base import KeyValueStore, StorageError

logger = logging.getLogger(__name__)

MOVIES_KEY = "@MovieTracker:movies"
LISTS_KEY = "@MovieTracker:lists"


class SortField(str, Enum):
    """Fields the collection can be sorted by."""

    ID = "id"
    TITLE = "title"
    YEAR = "year"
    WATCH_DATE = "watchDate"
    RATING = "rating"
    RUNTIME = "runtime"
    DIRECTOR = "director"
    ADDED_DATE = "addedDate"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class MovieFilter(str, Enum):
    """Subsets of the collection offered to browsing clients."""

    ALL = "all"
    FAVORITES = "favorites"  # rated 4 or 5
    RECENT = "recent"  # watched in the last RECENT_DAYS days
    UNWATCHED = "unwatched"


RECENT_DAYS = 30
FAVORITE_MIN_RATING = 4


def _collate(value: str) -> tuple[str, str]:
    """Case-insensitive collation key; exact text breaks ties."""
    return locale.strxfrm(value.casefold()), value


SORT_KEYS: Dict[SortField, Callable[[UserMovieRecord], Any]] = {
    SortField.ID: lambda m: m.id,
    SortField.RATING: lambda m: m.rating,
    SortField.RUNTIME: lambda m: m.runtime,
    SortField.TITLE: lambda m: _collate(m.title),
    SortField.YEAR: lambda m: _collate(m.year),
    SortField.WATCH_DATE: lambda m: _collate(m.watch_date),
    SortField.DIRECTOR: lambda m: _collate(m.director),
    SortField.ADDED_DATE: lambda m: _collate(m.added_date),
}


def sort_movies(
    movies: List[UserMovieRecord],
    sort_by: SortField = SortField.ADDED_DATE,
    direction: SortDirection = SortDirection.DESC,
) -> List[UserMovieRecord]:
    """Stable sort; records with equal keys keep their relative order."""
    return sorted(
        movies,
        key=SORT_KEYS[SortField(sort_by)],
        reverse=SortDirection(direction) == SortDirection.DESC,
    )


def _watched_recently(movie: UserMovieRecord) -> bool:
    return is_valid_date_format(movie.watch_date) and is_within_days(
        movie.watch_date, RECENT_DAYS
    )


MOVIE_FILTERS: Dict[MovieFilter, Callable[[UserMovieRecord], bool]] = {
    MovieFilter.ALL: lambda m: True,
    MovieFilter.FAVORITES: lambda m: m.rating >= FAVORITE_MIN_RATING,
    MovieFilter.RECENT: _watched_recently,
    MovieFilter.UNWATCHED: lambda m: not m.watch_date,
}


def collection_stats(movies: List[UserMovieRecord]) -> CollectionStats:
    """Totals for the collection; unrated movies are left out of the average."""
    total_watch_time = sum(m.runtime for m in movies if m.runtime)
    ratings = [m.rating for m in movies if m.rating]
    return CollectionStats(
        total_movies=len(movies),
        total_watch_time=total_watch_time,
        formatted_watch_time=format_runtime(total_watch_time),
        average_rating=round(sum(ratings) / len(ratings), 1) if ratings else None,
    )


class MovieRepository:
    """CRUD access to movie records and lists over an injected store."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store
        self._locks: Dict[str, asyncio.Lock] = {
            MOVIES_KEY: asyncio.Lock(),
            LISTS_KEY: asyncio.Lock(),
        }

    # --- Collection I/O ---

    async def _read(self, key: str, adapter: TypeAdapter) -> list:
        """Load a collection; raises StorageError on any fault."""
        try:
            raw = await self.store.get_item(key)
            if not raw:
                return []
            return load_collection(adapter, raw)
        except ValueError as exc:
            raise StorageError(f"Corrupt collection under {key}", exc) from exc
        except Exception as exc:
            raise StorageError(f"Could not read collection under {key}", exc) from exc

    async def _write(self, key: str, adapter: TypeAdapter, items: list) -> None:
        """Replace a collection; raises StorageError on any fault."""
        try:
            await self.store.set_item(key, dump_collection(adapter, items))
        except Exception as exc:
            raise StorageError(f"Could not write collection under {key}", exc) from exc

    async def _load_movies(self) -> List[UserMovieRecord]:
        return await self._read(MOVIES_KEY, movie_collection)

    async def _save_movies(self, movies: List[UserMovieRecord]) -> None:
        await self._write(MOVIES_KEY, movie_collection, movies)

    async def _load_lists(self) -> List[MovieList]:
        return await self._read(LISTS_KEY, list_collection)

    async def _save_lists(self, lists: List[MovieList]) -> None:
        await self._write(LISTS_KEY, list_collection, lists)

    # --- Movies ---

    async def list_movies(
        self,
        sort_by: SortField = SortField.ADDED_DATE,
        direction: SortDirection = SortDirection.DESC,
        movie_filter: MovieFilter = MovieFilter.ALL,
        list_id: Optional[str] = None,
    ) -> List[UserMovieRecord]:
        """Movies sorted by addedDate descending unless told otherwise.

        movie_filter narrows the result; list_id keeps only members of that
        list, and is ignored when no such list exists.
        """
        try:
            movies = await self._load_movies()
        except StorageError as exc:
            logger.error("Error retrieving movies from storage: %s", exc, exc_info=exc)
            return []

        keep = MOVIE_FILTERS[MovieFilter(movie_filter)]
        movies = [m for m in movies if keep(m)]
        if list_id is not None:
            movie_list = await self.get_list_by_id(list_id)
            if movie_list is not None:
                members = set(movie_list.movie_ids)
                movies = [m for m in movies if m.id in members]
        return sort_movies(movies, sort_by, direction)

    async def get_stats(self) -> CollectionStats:
        """Counts, watch time and average rating for the whole collection."""
        try:
            movies = await self._load_movies()
        except StorageError as exc:
            logger.error("Error retrieving movies from storage: %s", exc, exc_info=exc)
            movies = []
        return collection_stats(movies)

    async def add_movie(self, record: UserMovieRecord) -> bool:
        """Append a record stamped with today's addedDate.

        Returns False if a record with the same id already exists.
        """
        async with self._locks[MOVIES_KEY]:
            try:
                movies = await self._load_movies()
                if any(m.id == record.id for m in movies):
                    logger.info("Movie %s already in collection", record.id)
                    return False
                movies.append(record.model_copy(update={"added_date": today_iso()}))
                await self._save_movies(movies)
                return True
            except StorageError as exc:
                logger.error("Error adding movie to storage: %s", exc, exc_info=exc)
                return False

    async def update_movie(self, record: UserMovieRecord) -> bool:
        """Replace the record with the same id wholesale."""
        async with self._locks[MOVIES_KEY]:
            try:
                movies = await self._load_movies()
                for index, existing in enumerate(movies):
                    if existing.id == record.id:
                        movies[index] = record
                        break
                else:
                    return False
                await self._save_movies(movies)
                return True
            except StorageError as exc:
                logger.error("Error updating movie in storage: %s", exc, exc_info=exc)
                return False

    async def remove_movie(self, movie_id: int) -> bool:
        """Delete a movie and strip its id from every list."""
        async with self._locks[MOVIES_KEY]:
            try:
                movies = await self._load_movies()
                remaining = [m for m in movies if m.id != movie_id]
                if len(remaining) == len(movies):
                    return False
                await self._save_movies(remaining)

                async with self._locks[LISTS_KEY]:
                    lists = await self._load_lists()
                    touched = False
                    for movie_list in lists:
                        if movie_id in movie_list.movie_ids:
                            movie_list.movie_ids = [
                                i for i in movie_list.movie_ids if i != movie_id
                            ]
                            touched = True
                    if touched:
                        await self._save_lists(lists)
                return True
            except StorageError as exc:
                logger.error("Error removing movie from storage: %s", exc, exc_info=exc)
                return False

    async def get_movie_by_id(self, movie_id: int) -> Optional[UserMovieRecord]:
        try:
            movies = await self._load_movies()
        except StorageError as exc:
            logger.error(
                "Error retrieving movie ID %s from storage: %s",
                movie_id,
                exc,
                exc_info=exc,
            )
            return None
        return next((m for m in movies if m.id == movie_id), None)

    # --- Lists ---

    async def list_lists(self) -> List[MovieList]:
        try:
            return await self._load_lists()
        except StorageError as exc:
            logger.error("Error retrieving lists from storage: %s", exc, exc_info=exc)
            return []

    async def get_list_by_id(self, list_id: str) -> Optional[MovieList]:
        lists = await self.list_lists()
        return next((lst for lst in lists if lst.id == list_id), None)

    async def get_movies_in_list(self, list_id: str) -> List[UserMovieRecord]:
        """Records of a list in list order; ids with no record are skipped."""
        movie_list = await self.get_list_by_id(list_id)
        if movie_list is None:
            return []
        try:
            by_id = {m.id: m for m in await self._load_movies()}
        except StorageError as exc:
            logger.error("Error retrieving movies from storage: %s", exc, exc_info=exc)
            return []
        return [by_id[i] for i in movie_list.movie_ids if i in by_id]

    async def create_list(self, new_list: NewMovieList) -> Optional[MovieList]:
        """Append a list with a timestamp id; returns it, or None on fault."""
        async with self._locks[LISTS_KEY]:
            try:
                lists = await self._load_lists()
                movie_list = MovieList(
                    **new_list.model_dump(),
                    id=str(now_ms()),
                    created_date=today_iso(),
                )
                lists.append(movie_list)
                await self._save_lists(lists)
                return movie_list
            except StorageError as exc:
                logger.error("Error adding list to storage: %s", exc, exc_info=exc)
                return None

    async def add_list(self, new_list: NewMovieList) -> bool:
        return await self.create_list(new_list) is not None

    async def update_list(self, movie_list: MovieList) -> bool:
        async with self._locks[LISTS_KEY]:
            try:
                lists = await self._load_lists()
                for index, existing in enumerate(lists):
                    if existing.id == movie_list.id:
                        lists[index] = movie_list
                        break
                else:
                    return False
                await self._save_lists(lists)
                return True
            except StorageError as exc:
                logger.error("Error updating list in storage: %s", exc, exc_info=exc)
                return False

    async def remove_list(self, list_id: str) -> bool:
        async with self._locks[LISTS_KEY]:
            try:
                lists = await self._load_lists()
                remaining = [lst for lst in lists if lst.id != list_id]
                if len(remaining) == len(lists):
                    return False
                await self._save_lists(remaining)
                return True
            except StorageError as exc:
                logger.error("Error removing list from storage: %s", exc, exc_info=exc)
                return False

    async def add_movie_to_list(self, movie_id: int, list_id: str) -> bool:
        """Add a movie id to a list. Already present counts as success.

        The movie itself is not checked for existence.
        """
        async with self._locks[LISTS_KEY]:
            try:
                lists = await self._load_lists()
                movie_list = next((lst for lst in lists if lst.id == list_id), None)
                if movie_list is None:
                    return False
                if movie_id in movie_list.movie_ids:
                    return True
                movie_list.movie_ids.append(movie_id)
                await self._save_lists(lists)
                return True
            except StorageError as exc:
                logger.error(
                    "Error adding movie to list in storage: %s", exc, exc_info=exc
                )
                return False

    async def remove_movie_from_list(self, movie_id: int, list_id: str) -> bool:
        async with self._locks[LISTS_KEY]:
            try:
                lists = await self._load_lists()
                movie_list = next((lst for lst in lists if lst.id == list_id), None)
                if movie_list is None or movie_id not in movie_list.movie_ids:
                    return False
                movie_list.movie_ids = [i for i in movie_list.movie_ids if i != movie_id]
                await self._save_lists(lists)
                return True
            except StorageError as exc:
                logger.error(
                    "Error removing movie from list in storage: %s", exc, exc_info=exc
                )
                return False

    # --- Maintenance ---

    async def clear_all_data(self) -> bool:
        """Delete both collections."""
        async with self._locks[MOVIES_KEY], self._locks[LISTS_KEY]:
            try:
                await self.store.remove_item(MOVIES_KEY)
                await self.store.remove_item(LISTS_KEY)
                return True
            except Exception as exc:
                logger.error(
                    "Error clearing all data from storage: %s", exc, exc_info=exc
                )
                return False
