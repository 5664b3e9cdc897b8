"""Media models for the user's collection and cached TMDB data."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


class StoredModel(BaseModel):
    """Base for models persisted with camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserMovieRecord(StoredModel):
    """A user's personal entry for a movie, keyed by its TMDB id."""

    id: int
    title: str
    year: str = ""
    poster_path: Optional[str] = None
    watch_date: str = ""  # empty means unwatched
    rating: int = Field(0, ge=0, le=5)  # 0 means unrated
    notes: str = ""
    genres: List[str] = []
    director: str = ""
    runtime: int = 0
    added_date: str = ""
    saw_in_theaters: Optional[bool] = None
    recommended_by: Optional[str] = None


class NewMovieList(StoredModel):
    """Fields supplied by the caller when creating a list."""

    name: str
    description: str = ""
    movie_ids: List[int] = []


class MovieList(NewMovieList):
    """A named grouping of movies from the collection."""

    id: str
    created_date: str


class Genre(BaseModel):
    id: int
    name: str


class TMDBMovie(BaseModel):
    """A movie as returned by TMDB search, list and details endpoints."""

    id: int
    title: str = "Unknown"
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None
    release_date: str = ""
    overview: str = ""
    vote_average: float = 0.0
    vote_count: int = 0
    runtime: Optional[int] = None
    genres: Optional[List[Genre]] = None


class MovieSearchResponse(BaseModel):
    """A page of TMDB movie results."""

    page: int = 1
    results: List[TMDBMovie] = []
    total_results: int = 0
    total_pages: int = 0


class CastMember(BaseModel):
    id: int
    name: str
    character: str = ""
    profile_path: Optional[str] = None
    order: int = 0


class CrewMember(BaseModel):
    id: int
    name: str
    job: str = ""
    department: str = ""
    profile_path: Optional[str] = None


class MovieCredits(BaseModel):
    """Cast and crew for a movie."""

    id: int
    cast: List[CastMember] = []
    crew: List[CrewMember] = []

    @property
    def director(self) -> str:
        """Name of the first crew member credited as Director."""
        return next((c.name for c in self.crew if c.job == "Director"), "")


class CollectionStats(StoredModel):
    """Summary numbers for the whole collection."""

    total_movies: int = 0
    total_watch_time: int = 0  # minutes
    formatted_watch_time: str = "Unknown"
    average_rating: Optional[float] = None  # None when nothing is rated


class ImportResult(BaseModel):
    """Outcome of a CSV import: candidate records and per-row errors."""

    imported: List[UserMovieRecord] = []
    errors: List[str] = []


movie_collection = TypeAdapter(List[UserMovieRecord])
list_collection = TypeAdapter(List[MovieList])


def dump_collection(adapter: TypeAdapter, items: list) -> str:
    """Serialize a collection to its persisted JSON form.

    Optional fields that are unset are omitted rather than written as null.
    """
    return adapter.dump_json(items, by_alias=True, exclude_none=True).decode("utf-8")


def load_collection(adapter: TypeAdapter, raw: str) -> list:
    """Parse a persisted collection; raises ValidationError on bad data."""
    return adapter.validate_json(raw)
