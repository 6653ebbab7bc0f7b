"""
Shared fixtures for movie import tests.

Provides a throwaway SQLite database, export row builders, and helpers
for seeding movies with fixed ids.
"""

import csv
import pytest
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from movie_import.config import Config
from movie_import.database import DatabaseManager
from movie_import.loader import BatchLoader
from movie_import.reconciler import DuplicateReconciler
from movie_import.schema import movie_actor_table, movie_genre_table, movie_table
from movie_import.sources import Columns


# =============================================================================
# SAMPLE DATA
# =============================================================================

def make_row(
    title: Optional[str] = "Inception",
    release_date: Optional[str] = "2010-07-16",
    directors: Optional[str] = "Christopher Nolan",
    genres: Optional[str] = "Action;Science Fiction",
    country: Optional[str] = "United States",
    actors: Sequence[Tuple[str, Optional[str]]] = (("Leonardo DiCaprio", "Cobb"),),
    **extra,
) -> dict:
    """Create one export row keyed by the export's column headers."""
    row = {
        Columns.TITLE: title,
        Columns.ORIGINAL_TITLE: None,
        Columns.RELEASE_DATE: release_date,
        Columns.RUNTIME: "148",
        Columns.BUDGET: "160000000",
        Columns.REVENUE: "836800000",
        Columns.OVERVIEW: f"Overview of {title}",
        Columns.STUDIOS: "Warner Bros. Pictures",
        Columns.DIRECTORS: directors,
        Columns.MPA_RATING: "PG-13",
        Columns.COLLECTION: None,
        Columns.POSTER_URL: None,
        Columns.BACKDROP_URL: None,
        Columns.GENRES: genres,
        Columns.COUNTRY: country,
    }
    for slot, (name, character) in enumerate(actors, start=1):
        row[Columns.actor_name(slot)] = name
        row[Columns.actor_character(slot)] = character
    row.update(extra)
    return row


SAMPLE_ROWS = [
    make_row("Inception", "2010-07-16", "Christopher Nolan", "Action;Science Fiction",
             actors=[("Leonardo DiCaprio", "Cobb"), ("Elliot Page", "Ariadne")]),
    make_row("Interstellar", "2014-11-07", "Christopher Nolan", "Adventure;Drama;Science Fiction",
             actors=[("Matthew McConaughey", "Cooper"), ("Anne Hathaway", "Brand")]),
    make_row("Parasite", "2019-05-30", "Bong Joon-ho", "Comedy;Thriller;Drama", "South Korea",
             actors=[("Song Kang-ho", "Kim Ki-taek")]),
    make_row("Mad Max: Fury Road", "2015-05-13", "George Miller", "Action;Adventure", "Australia",
             actors=[("Tom Hardy", "Max Rockatansky"), ("Charlize Theron", "Furiosa")]),
    make_row("The Shape of Water", "2017-12-01", "Guillermo del Toro", "Drama;Fantasy;Romance",
             actors=[("Sally Hawkins", "Elisa Esposito")]),
]


def write_csv(path: Path, rows: List[dict]) -> Path:
    """Write rows to a CSV export with a byte order mark, like spreadsheet exports."""
    fieldnames = []
    for row in rows:
        for key in row:
            if key not in fieldnames:
                fieldnames.append(key)
    with open(path, "w", newline="", encoding="utf-8-sig") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        for row in rows:
            writer.writerow({k: ("" if v is None else v) for k, v in row.items()})
    return path


# =============================================================================
# DATABASE HELPERS
# =============================================================================

def add_movie(db: DatabaseManager, movie_id: int, title: str, release_year: Optional[int]) -> None:
    """Insert a bare movie row with a fixed id."""
    with db.transaction() as conn:
        conn.execute(
            movie_table.insert().values(
                movie_id=movie_id,
                title=title,
                release_year=release_year,
                mpa_rating="NR",
            )
        )


def add_links(db: DatabaseManager, movie_id: int, genre_ids: Iterable[int] = (), actor_ids: Iterable[int] = ()) -> None:
    """Attach junction rows to a movie."""
    with db.transaction() as conn:
        for genre_id in genre_ids:
            conn.execute(movie_genre_table.insert().values(movie_id=movie_id, genre_id=genre_id))
        for actor_id in actor_ids:
            conn.execute(movie_actor_table.insert().values(movie_id=movie_id, actor_id=actor_id))


def movie_ids(db: DatabaseManager) -> List[int]:
    """All movie ids, ascending."""
    return [row[0] for row in db._execute("SELECT movie_id FROM movie ORDER BY movie_id")]


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def config(tmp_path):
    """Config pointing at a fresh SQLite file."""
    return Config(
        database_url=f"sqlite:///{tmp_path / 'movies.db'}",
        batch_size=2,
        min_year=1990,
        max_year=2030,
        show_progress=False,
        project_dir=tmp_path,
        log_dir=tmp_path / "logs",
    )


@pytest.fixture
def db(config):
    """DatabaseManager with all tables created."""
    manager = DatabaseManager(config)
    manager.check_and_create_tables()
    yield manager
    manager.engine.dispose()


@pytest.fixture
def loader(db, config):
    """BatchLoader over the test database."""
    return BatchLoader(db, config)


@pytest.fixture
def reconciler(db, config):
    """DuplicateReconciler over the test database."""
    return DuplicateReconciler(db, config)


@pytest.fixture
def sample_rows():
    """Copy of the sample export rows."""
    return [dict(row) for row in SAMPLE_ROWS]
