"""API routes returning JSON for the movie tracker clients."""

import logging
from typing import Annotated, List

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field

from movietracker.models.media import (
    CollectionStats,
    MovieList,
    MovieSearchResponse,
    NewMovieList,
    StoredModel,
    UserMovieRecord,
)
from movietracker.services.csv_import import build_user_movie, import_movies_from_csv
from movietracker.services.repository import (
    MovieFilter,
    MovieRepository,
    SortDirection,
    SortField,
)
from movietracker.services.tmdb import (
    ImageKind,
    ImageSize,
    TMDBClient,
    TMDBError,
    get_image_url,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def get_repository(request: Request) -> MovieRepository:
    return request.app.state.repository


def get_tmdb_client(request: Request) -> TMDBClient:
    return request.app.state.tmdb_client


Repository = Annotated[MovieRepository, Depends(get_repository)]
Client = Annotated[TMDBClient, Depends(get_tmdb_client)]


class SuccessResponse(BaseModel):
    success: bool


class ImportSummary(BaseModel):
    """Aggregate outcome of a CSV import."""

    imported: int
    added: int
    errors: List[str]
    message: str


class AddFromTMDBRequest(StoredModel):
    """Personal fields supplied when adding a movie found on TMDB."""

    watch_date: str = ""
    rating: int = Field(0, ge=0, le=5)
    notes: str = ""
    saw_in_theaters: bool | None = None
    recommended_by: str | None = None


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "service": "movietracker"}


# --- TMDB ---


@router.get("/search", response_model=MovieSearchResponse)
async def api_search(
    client: Client,
    q: str = Query(..., min_length=1, description="Search query"),
    page: int = Query(1, ge=1),
):
    """Search TMDB for movies."""
    try:
        return await client.search_movies(q, page)
    except TMDBError as exc:
        logger.error("Search failed for '%s': %s", q, exc)
        raise HTTPException(status_code=502, detail="Error searching for movies")


@router.get("/popular", response_model=MovieSearchResponse)
async def api_popular(client: Client, page: int = Query(1, ge=1)):
    try:
        return await client.get_popular_movies(page)
    except TMDBError as exc:
        logger.error("Popular movies failed: %s", exc)
        raise HTTPException(status_code=502, detail="Error loading popular movies")


@router.get("/trending", response_model=MovieSearchResponse)
async def api_trending(client: Client, page: int = Query(1, ge=1)):
    try:
        return await client.get_trending_movies(page)
    except TMDBError as exc:
        logger.error("Trending movies failed: %s", exc)
        raise HTTPException(status_code=502, detail="Error loading trending movies")


# --- Movies ---


@router.get("/movies", response_model=List[UserMovieRecord])
async def list_movies(
    repository: Repository,
    sort_by: SortField = SortField.ADDED_DATE,
    direction: SortDirection = SortDirection.DESC,
    movie_filter: MovieFilter = MovieFilter.ALL,
    list_id: str | None = None,
):
    return await repository.list_movies(sort_by, direction, movie_filter, list_id)


@router.get("/movies/stats", response_model=CollectionStats)
async def movie_stats(repository: Repository):
    """Totals for the collection; declared before /movies/{movie_id}."""
    return await repository.get_stats()


@router.get("/movies/{movie_id}", response_model=UserMovieRecord)
async def get_movie(movie_id: int, repository: Repository):
    movie = await repository.get_movie_by_id(movie_id)
    if movie is None:
        raise HTTPException(status_code=404, detail="Movie not found")
    return movie


@router.get("/movies/{movie_id}/poster")
async def get_movie_poster(
    movie_id: int,
    repository: Repository,
    size: ImageSize = Query("medium"),
):
    """Displayable poster URL for a collection movie (null when it has none)."""
    movie = await repository.get_movie_by_id(movie_id)
    if movie is None:
        raise HTTPException(status_code=404, detail="Movie not found")
    return {"url": get_image_url(movie.poster_path, ImageKind.POSTER, size)}


@router.post("/movies", status_code=201, response_model=SuccessResponse)
async def add_movie(record: UserMovieRecord, repository: Repository):
    if not await repository.add_movie(record):
        raise HTTPException(status_code=409, detail="Movie could not be added")
    return {"success": True}


@router.post(
    "/movies/from-tmdb/{tmdb_id}", status_code=201, response_model=UserMovieRecord
)
async def add_movie_from_tmdb(
    tmdb_id: int,
    body: AddFromTMDBRequest,
    repository: Repository,
    client: Client,
):
    """Build a record from TMDB details and credits, then add it."""
    try:
        details = await client.get_movie_details(tmdb_id)
        credits = await client.get_movie_credits(tmdb_id)
    except TMDBError as exc:
        logger.error("Could not load TMDB data for %s: %s", tmdb_id, exc)
        raise HTTPException(status_code=502, detail="Error loading movie details")

    record = build_user_movie(details, credits, **body.model_dump(exclude_none=True))
    if not await repository.add_movie(record):
        raise HTTPException(status_code=409, detail="Movie could not be added")
    return await repository.get_movie_by_id(tmdb_id)


@router.put("/movies/{movie_id}", response_model=SuccessResponse)
async def update_movie(movie_id: int, record: UserMovieRecord, repository: Repository):
    if record.id != movie_id:
        raise HTTPException(status_code=400, detail="Movie id mismatch")
    if not await repository.update_movie(record):
        raise HTTPException(status_code=404, detail="Movie not found")
    return {"success": True}


@router.delete("/movies/{movie_id}", response_model=SuccessResponse)
async def remove_movie(movie_id: int, repository: Repository):
    if not await repository.remove_movie(movie_id):
        raise HTTPException(status_code=404, detail="Movie not found")
    return {"success": True}


# --- Lists ---


@router.get("/lists", response_model=List[MovieList])
async def list_lists(repository: Repository):
    return await repository.list_lists()


@router.post("/lists", status_code=201, response_model=MovieList)
async def create_list(new_list: NewMovieList, repository: Repository):
    movie_list = await repository.create_list(new_list)
    if movie_list is None:
        raise HTTPException(status_code=500, detail="List could not be created")
    return movie_list


@router.put("/lists/{list_id}", response_model=SuccessResponse)
async def update_list(list_id: str, movie_list: MovieList, repository: Repository):
    if movie_list.id != list_id:
        raise HTTPException(status_code=400, detail="List id mismatch")
    if not await repository.update_list(movie_list):
        raise HTTPException(status_code=404, detail="List not found")
    return {"success": True}


@router.delete("/lists/{list_id}", response_model=SuccessResponse)
async def remove_list(list_id: str, repository: Repository):
    if not await repository.remove_list(list_id):
        raise HTTPException(status_code=404, detail="List not found")
    return {"success": True}


@router.get("/lists/{list_id}/movies", response_model=List[UserMovieRecord])
async def list_movies_in_list(list_id: str, repository: Repository):
    if await repository.get_list_by_id(list_id) is None:
        raise HTTPException(status_code=404, detail="List not found")
    return await repository.get_movies_in_list(list_id)


@router.put("/lists/{list_id}/movies/{movie_id}", response_model=SuccessResponse)
async def add_movie_to_list(list_id: str, movie_id: int, repository: Repository):
    if not await repository.add_movie_to_list(movie_id, list_id):
        raise HTTPException(status_code=404, detail="List not found")
    return {"success": True}


@router.delete("/lists/{list_id}/movies/{movie_id}", response_model=SuccessResponse)
async def remove_movie_from_list(list_id: str, movie_id: int, repository: Repository):
    if not await repository.remove_movie_from_list(movie_id, list_id):
        raise HTTPException(status_code=404, detail="Movie not in list")
    return {"success": True}


# --- Data management ---


@router.post("/import/csv", response_model=ImportSummary)
async def import_csv(request: Request, repository: Repository, client: Client):
    """Import movies from a CSV request body and add them to the collection.

    Records whose id is already in the collection are skipped by add_movie.
    """
    try:
        csv_text = (await request.body()).decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="CSV must be UTF-8 text")

    result = await import_movies_from_csv(csv_text, client)

    added = 0
    for record in result.imported:
        if await repository.add_movie(record):
            added += 1

    message = f"Imported: {len(result.imported)} movies"
    if result.errors:
        message += "\nErrors:\n" + "\n".join(result.errors)

    return ImportSummary(
        imported=len(result.imported),
        added=added,
        errors=result.errors,
        message=message,
    )


@router.delete("/data", response_model=SuccessResponse)
async def clear_all_data(repository: Repository):
    return {"success": await repository.clear_all_data()}
