import asyncio
import json
from datetime import date, timedelta

import pytest
from unittest.mock import AsyncMock, patch

from movietracker.models.media import MovieList, NewMovieList, UserMovieRecord
from movietracker.services.repository import (
    LISTS_KEY,
    MOVIES_KEY,
    MovieFilter,
    MovieRepository,
    SortDirection,
    SortField,
)
from movietracker.stores import MemoryStore


def make_movie(movie_id: int, **fields) -> UserMovieRecord:
    values = {"id": movie_id, "title": f"Movie {movie_id}"}
    values.update(fields)
    return UserMovieRecord(**values)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def repository(store):
    return MovieRepository(store)


@pytest.mark.asyncio
async def test_add_movie_rejects_duplicate_id(repository, store):
    """A second add with the same id fails and leaves the collection alone."""
    assert await repository.add_movie(make_movie(603, notes="first")) is True
    before = await store.get_item(MOVIES_KEY)

    assert await repository.add_movie(make_movie(603, notes="second")) is False

    assert await store.get_item(MOVIES_KEY) == before
    movies = await repository.list_movies()
    assert len(movies) == 1
    assert movies[0].notes == "first"


@pytest.mark.asyncio
async def test_add_movie_stamps_added_date(repository):
    with patch(
        "movietracker.services.repository.today_iso", return_value="2024-05-05"
    ):
        await repository.add_movie(make_movie(1, added_date="1999-01-01"))

    movie = await repository.get_movie_by_id(1)
    assert movie.added_date == "2024-05-05"


@pytest.mark.asyncio
async def test_default_sort_is_added_date_desc_and_stable(repository):
    """Ties keep insertion order while the newest date comes first."""
    dates = ["2024-01-01", "2024-01-01", "2024-03-01"]
    with patch("movietracker.services.repository.today_iso", side_effect=dates):
        for movie_id in (10, 20, 30):
            await repository.add_movie(make_movie(movie_id))

    movies = await repository.list_movies()
    assert [m.id for m in movies] == [30, 10, 20]


@pytest.mark.asyncio
async def test_sort_by_numeric_and_string_fields(repository):
    await repository.add_movie(make_movie(1, title="Brazil", rating=3, runtime=142))
    await repository.add_movie(make_movie(2, title="Alien", rating=5, runtime=117))
    await repository.add_movie(make_movie(3, title="Clue", rating=3, runtime=94))

    by_rating = await repository.list_movies(SortField.RATING, SortDirection.DESC)
    assert [m.id for m in by_rating] == [2, 1, 3]

    by_title = await repository.list_movies(SortField.TITLE, SortDirection.ASC)
    assert [m.title for m in by_title] == ["Alien", "Brazil", "Clue"]

    by_runtime = await repository.list_movies("runtime", "asc")
    assert [m.runtime for m in by_runtime] == [94, 117, 142]


@pytest.mark.asyncio
async def test_title_sort_ignores_case(repository):
    await repository.add_movie(make_movie(1, title="Banana"))
    await repository.add_movie(make_movie(2, title="apple"))
    await repository.add_movie(make_movie(3, title="cherry"))

    by_title = await repository.list_movies(SortField.TITLE, SortDirection.ASC)
    assert [m.title for m in by_title] == ["apple", "Banana", "cherry"]


@pytest.mark.asyncio
async def test_update_movie(repository):
    await repository.add_movie(make_movie(5, rating=1))

    updated = (await repository.get_movie_by_id(5)).model_copy(update={"rating": 4})
    assert await repository.update_movie(updated) is True
    assert (await repository.get_movie_by_id(5)).rating == 4

    assert await repository.update_movie(make_movie(999)) is False


@pytest.mark.asyncio
async def test_remove_movie_cascades_to_lists(repository):
    await repository.add_movie(make_movie(1))
    await repository.add_movie(make_movie(2))
    first = await repository.create_list(NewMovieList(name="A", movie_ids=[1, 2]))
    second = await repository.create_list(NewMovieList(name="B", movie_ids=[1]))

    assert await repository.remove_movie(1) is True

    lists = {lst.name: lst for lst in await repository.list_lists()}
    assert lists["A"].movie_ids == [2]
    assert lists["B"].movie_ids == []
    assert first.id in {lst.id for lst in lists.values()}
    assert second.id in {lst.id for lst in lists.values()}
    assert await repository.get_movie_by_id(1) is None


@pytest.mark.asyncio
async def test_remove_unknown_movie_mutates_nothing(repository, store):
    await repository.add_movie(make_movie(1))
    await repository.create_list(NewMovieList(name="A", movie_ids=[1]))
    snapshot = (await store.get_item(MOVIES_KEY), await store.get_item(LISTS_KEY))

    assert await repository.remove_movie(42) is False

    assert (await store.get_item(MOVIES_KEY), await store.get_item(LISTS_KEY)) == snapshot


@pytest.mark.asyncio
async def test_add_list_generates_id_and_created_date(repository):
    with patch(
        "movietracker.services.repository.now_ms", return_value=1700000000000
    ), patch("movietracker.services.repository.today_iso", return_value="2023-11-14"):
        assert await repository.add_list(
            NewMovieList(name="Noir", description="Dark stuff", movie_ids=[3])
        )

    lists = await repository.list_lists()
    assert lists == [
        MovieList(
            id="1700000000000",
            name="Noir",
            description="Dark stuff",
            movie_ids=[3],
            created_date="2023-11-14",
        )
    ]


@pytest.mark.asyncio
async def test_add_movie_to_list_is_idempotent(repository):
    movie_list = await repository.create_list(NewMovieList(name="Watch"))

    assert await repository.add_movie_to_list(7, movie_list.id) is True
    assert await repository.add_movie_to_list(7, movie_list.id) is True

    stored = await repository.get_list_by_id(movie_list.id)
    assert stored.movie_ids == [7]


@pytest.mark.asyncio
async def test_add_movie_to_missing_list(repository):
    assert await repository.add_movie_to_list(7, "nope") is False


@pytest.mark.asyncio
async def test_remove_movie_from_list(repository):
    movie_list = await repository.create_list(NewMovieList(name="L", movie_ids=[1, 2]))

    assert await repository.remove_movie_from_list(1, movie_list.id) is True
    assert (await repository.get_list_by_id(movie_list.id)).movie_ids == [2]

    assert await repository.remove_movie_from_list(1, movie_list.id) is False
    assert await repository.remove_movie_from_list(2, "missing") is False


@pytest.mark.asyncio
async def test_update_and_remove_list(repository):
    movie_list = await repository.create_list(NewMovieList(name="Old"))

    renamed = movie_list.model_copy(update={"name": "New"})
    assert await repository.update_list(renamed) is True
    assert (await repository.get_list_by_id(movie_list.id)).name == "New"

    assert await repository.remove_list(movie_list.id) is True
    assert await repository.remove_list(movie_list.id) is False
    assert await repository.update_list(renamed) is False


@pytest.mark.asyncio
async def test_get_movies_in_list_skips_dangling_ids(repository):
    await repository.add_movie(make_movie(1))
    await repository.add_movie(make_movie(2))
    movie_list = await repository.create_list(
        NewMovieList(name="Mixed", movie_ids=[2, 99, 1])
    )

    movies = await repository.get_movies_in_list(movie_list.id)
    assert [m.id for m in movies] == [2, 1]
    assert await repository.get_movies_in_list("missing") == []


@pytest.mark.asyncio
async def test_clear_all_data(repository, store):
    await repository.add_movie(make_movie(1))
    await repository.create_list(NewMovieList(name="L"))

    assert await repository.clear_all_data() is True

    assert await store.get_item(MOVIES_KEY) is None
    assert await store.get_item(LISTS_KEY) is None
    assert await repository.list_movies() == []


@pytest.mark.asyncio
async def test_corrupt_collection_reads_as_empty(store):
    await store.set_item(MOVIES_KEY, "{not json")
    await store.set_item(LISTS_KEY, json.dumps([{"name": "missing id"}]))
    repository = MovieRepository(store)

    assert await repository.list_movies() == []
    assert await repository.list_lists() == []
    assert await repository.get_movie_by_id(1) is None


@pytest.mark.asyncio
async def test_corrupt_collection_is_not_overwritten(store):
    await store.set_item(MOVIES_KEY, "{not json")
    repository = MovieRepository(store)

    assert await repository.add_movie(make_movie(1)) is False
    assert await store.get_item(MOVIES_KEY) == "{not json"


@pytest.mark.asyncio
async def test_write_fault_returns_false(repository, store):
    with patch.object(
        store, "set_item", new_callable=AsyncMock, side_effect=OSError("disk full")
    ):
        assert await repository.add_movie(make_movie(1)) is False
        assert await repository.add_list(NewMovieList(name="L")) is False

    with patch.object(
        store, "remove_item", new_callable=AsyncMock, side_effect=OSError("locked")
    ):
        assert await repository.clear_all_data() is False


@pytest.mark.asyncio
async def test_read_fault_returns_empty(repository, store):
    with patch.object(
        store, "get_item", new_callable=AsyncMock, side_effect=OSError("unavailable")
    ):
        assert await repository.list_movies() == []
        assert await repository.list_lists() == []
        assert await repository.remove_movie(1) is False


@pytest.mark.asyncio
async def test_filter_favorites_and_unwatched(repository):
    await repository.add_movie(make_movie(1, rating=5, watch_date="2020-01-01"))
    await repository.add_movie(make_movie(2, rating=4))
    await repository.add_movie(make_movie(3, rating=3, watch_date="2020-02-01"))

    favorites = await repository.list_movies(
        SortField.ID, SortDirection.ASC, MovieFilter.FAVORITES
    )
    assert [m.id for m in favorites] == [1, 2]

    unwatched = await repository.list_movies(
        SortField.ID, SortDirection.ASC, MovieFilter.UNWATCHED
    )
    assert [m.id for m in unwatched] == [2]


@pytest.mark.asyncio
async def test_filter_recent_uses_last_thirty_days(repository):
    today = date.today()
    recent = (today - timedelta(days=5)).isoformat()
    old = (today - timedelta(days=45)).isoformat()
    await repository.add_movie(make_movie(1, watch_date=recent))
    await repository.add_movie(make_movie(2, watch_date=old))
    await repository.add_movie(make_movie(3, watch_date="last summer"))

    movies = await repository.list_movies(movie_filter="recent")
    assert [m.id for m in movies] == [1]


@pytest.mark.asyncio
async def test_filter_by_list(repository):
    for movie_id in (1, 2, 3):
        await repository.add_movie(make_movie(movie_id))
    movie_list = await repository.create_list(
        NewMovieList(name="Picks", movie_ids=[3, 1])
    )

    in_list = await repository.list_movies(
        SortField.ID, SortDirection.ASC, list_id=movie_list.id
    )
    assert [m.id for m in in_list] == [1, 3]

    unknown = await repository.list_movies(
        SortField.ID, SortDirection.ASC, list_id="missing"
    )
    assert [m.id for m in unknown] == [1, 2, 3]


@pytest.mark.asyncio
async def test_get_stats(repository):
    await repository.add_movie(make_movie(1, rating=5, runtime=120))
    await repository.add_movie(make_movie(2, rating=4, runtime=16))
    await repository.add_movie(make_movie(3, rating=4))
    await repository.add_movie(make_movie(4))

    stats = await repository.get_stats()
    assert stats.total_movies == 4
    assert stats.total_watch_time == 136
    assert stats.formatted_watch_time == "2h 16m"
    assert stats.average_rating == 4.3


@pytest.mark.asyncio
async def test_get_stats_empty_collection(repository):
    stats = await repository.get_stats()
    assert stats.total_movies == 0
    assert stats.formatted_watch_time == "Unknown"
    assert stats.average_rating is None


class YieldingStore(MemoryStore):
    """Gives up the event loop between every read and write."""

    async def get_item(self, key):
        await asyncio.sleep(0)
        return await super().get_item(key)

    async def set_item(self, key, value):
        await asyncio.sleep(0)
        await super().set_item(key, value)


@pytest.mark.asyncio
async def test_concurrent_adds_all_persist():
    repository = MovieRepository(YieldingStore())

    results = await asyncio.gather(
        *(repository.add_movie(make_movie(movie_id)) for movie_id in range(20))
    )

    assert all(results)
    movies = await repository.list_movies(SortField.ID, SortDirection.ASC)
    assert [m.id for m in movies] == list(range(20))


@pytest.mark.asyncio
async def test_concurrent_list_membership_adds_all_persist():
    repository = MovieRepository(YieldingStore())
    movie_list = await repository.create_list(NewMovieList(name="Queue"))

    await asyncio.gather(
        *(
            repository.add_movie_to_list(movie_id, movie_list.id)
            for movie_id in range(10)
        )
    )

    stored = await repository.get_list_by_id(movie_list.id)
    assert sorted(stored.movie_ids) == list(range(10))
