import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI

from movietracker.api.routes_api import router as api_router
from movietracker.core.config import get_settings
from movietracker.services.cache import ReadThroughCache
from movietracker.services.repository import MovieRepository
from movietracker.services.tmdb import TMDBClient, configure_tmdb
from movietracker.stores import create_store

load_dotenv()


@asynccontextmanager
async def app_lifespan(app: FastAPI):
    """Build the store, cache, TMDB client and repository for the app."""
    settings = get_settings()
    logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO)
    logger = logging.getLogger(__name__)

    configure_tmdb(settings)
    store = create_store(settings.storage_url)
    cache = ReadThroughCache(store, default_ttl=settings.cache_ttl)

    app.state.store = store
    app.state.repository = MovieRepository(store)
    app.state.tmdb_client = TMDBClient(cache, rate_limit=settings.tmdb_rate_limit)
    logger.info("Movie Tracker started with %s store", store.name)
    try:
        yield
    finally:
        try:
            await store.aclose()
        except Exception as e:
            logger.error(f"Error closing store {store.name}: {e}")


app = FastAPI(
    title="Movie Tracker",
    description="Personal movie collection backed by TMDB",
    version="0.1.0",
    lifespan=app_lifespan,
)

app.include_router(api_router, prefix="/api")
