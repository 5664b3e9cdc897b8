"""CSV import: turn rows of titles into candidate collection records.

Each row's title is resolved against TMDB (through the cache): the first
search hit is taken as the match, then its details and credits are fetched.
A failing row adds an error message and never aborts the batch. Nothing is
persisted here; callers feed ``imported`` through ``MovieRepository.add_movie``.
"""

import io
import json
import logging
from typing import Any, Dict, List

import pandas as pd

from movietracker.core.dates import get_release_year, today_iso
from movietracker.models.media import (
    ImportResult,
    MovieCredits,
    TMDBMovie,
    UserMovieRecord,
)
from movietracker.services.tmdb import TMDBClient

logger = logging.getLogger(__name__)

def build_user_movie(
    details: TMDBMovie, credits: MovieCredits, **fields: Any
) -> UserMovieRecord:
    """Create an unrated record from TMDB details and credits.

    Keyword arguments override the defaults (watch_date, rating, notes...).
    """
    values: Dict[str, Any] = {
        "id": details.id,
        "title": details.title,
        "year": get_release_year(details.release_date),
        "poster_path": details.poster_path,
        "watch_date": "",
        "rating": 0,
        "notes": "",
        "genres": [g.name for g in details.genres or []],
        "director": credits.director,
        "runtime": details.runtime or 0,
        "added_date": today_iso(),
    }
    values.update(fields)
    return UserMovieRecord(**values)


def _read_rows(csv_text: str, errors: List[str]) -> List[Dict[str, str]]:
    """Parse header-keyed rows as strings, dropping rows with no content.

    The header row is read as data so its width fixes the column count.
    Rows with more fields than the header are skipped and reported in
    errors instead of being truncated or shifting into an index.
    """

    def skip_bad_line(bad_line: List[str]) -> None:
        errors.append("Malformed row: " + json.dumps(bad_line))
        return None

    try:
        frame = pd.read_csv(
            io.StringIO(csv_text),
            header=None,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            engine="python",
            on_bad_lines=skip_bad_line,
        )
    except pd.errors.EmptyDataError:
        return []

    frame = frame.fillna("")
    frame.columns = [str(c).strip() for c in frame.iloc[0]]
    rows = frame.iloc[1:].to_dict("records")
    return [row for row in rows if any(str(v).strip() for v in row.values())]


async def import_movies_from_csv(csv_text: str, client: TMDBClient) -> ImportResult:
    """Resolve every CSV row to a UserMovieRecord, collecting per-row errors."""
    result = ImportResult()

    try:
        rows = _read_rows(csv_text, result.errors)
    except pd.errors.ParserError as exc:
        logger.error("Could not parse CSV: %s", exc)
        result.errors.append(f"Could not parse CSV: {exc}")
        return result

    for row in rows:
        title = row.get("title", "").strip()
        watch_date = row.get("watchDate", "").strip()
        saw_in_theaters = row.get("sawInTheaters", "").strip().lower() == "true"
        recommended_by = row.get("recommendedBy", "").strip()

        if not title:
            result.errors.append("Missing title in row: " + json.dumps(row))
            continue

        try:
            search = await client.search_movies(title)
            if not search.results:
                result.errors.append(f'No match for "{title}"')
                continue

            match = search.results[0]
            details = await client.get_movie_details(match.id)
            credits = await client.get_movie_credits(match.id)

            result.imported.append(
                build_user_movie(
                    details,
                    credits,
                    watch_date=watch_date,
                    saw_in_theaters=saw_in_theaters,
                    recommended_by=recommended_by,
                )
            )
        except Exception as exc:
            logger.warning("Error importing '%s': %s", title, exc)
            result.errors.append(f'Error importing "{title}": {exc}')

    logger.info(
        "CSV import finished: %d imported, %d errors",
        len(result.imported),
        len(result.errors),
    )
    return result
