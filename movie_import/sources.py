"""
Input adapters for the movie export.

The export is a flat CSV with one column per field and ten positional
actor slots. Slot handling lives here so the rest of the pipeline only
ever sees an ordered list of actor credits.
"""

import csv
from pathlib import Path
from typing import Iterator, List, Mapping, Optional, Union

from .models import ActorCredit


class Columns:
    """Column names used by the movie export."""

    TITLE = "Title"
    ORIGINAL_TITLE = "Original Title"
    RELEASE_DATE = "Release Date"
    RUNTIME = "Runtime (min)"
    BUDGET = "Budget"
    REVENUE = "Revenue"
    OVERVIEW = "Overview"
    STUDIOS = "Studios"
    DIRECTORS = "Directors"
    MPA_RATING = "MPA Rating"
    COLLECTION = "Collection"
    POSTER_URL = "Poster URL"
    BACKDROP_URL = "Backdrop URL"
    GENRES = "Genres"
    COUNTRY = "Country"
    ACTORS = "Actors"  # optional delimited "Name:Character; Name:Character"

    @staticmethod
    def actor_name(slot: int) -> str:
        return f"Actor {slot} Name"

    @staticmethod
    def actor_character(slot: int) -> str:
        return f"Actor {slot} Character"


def _text(value) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def actors_from_slots(row: Mapping, max_slots: int = 10) -> List[ActorCredit]:
    """
    Collect actors from the fixed "Actor N Name" / "Actor N Character" slots.

    Every populated name slot is kept in slot order; empty slots in the
    middle are skipped rather than ending the scan.
    """
    actors = []
    for slot in range(1, max_slots + 1):
        name = _text(row.get(Columns.actor_name(slot)))
        if not name:
            continue
        actors.append(ActorCredit(name=name, character=_text(row.get(Columns.actor_character(slot)))))
    return actors


def parse_actor_list(value, delimiter: str = ";") -> List[ActorCredit]:
    """
    Parse a delimited actor list of any length.

    Items look like "Name" or "Name:Character"; blank items are dropped.
    """
    text = _text(value)
    if not text:
        return []

    actors = []
    for item in text.split(delimiter):
        name, _, character = item.partition(":")
        name = name.strip()
        if name:
            actors.append(ActorCredit(name=name, character=_text(character)))
    return actors


def extract_actors(row: Mapping, max_slots: int = 10, delimiter: str = ";") -> List[ActorCredit]:
    """Actors from the delimited column when present, else from the fixed slots."""
    if _text(row.get(Columns.ACTORS)):
        return parse_actor_list(row[Columns.ACTORS], delimiter)
    return actors_from_slots(row, max_slots)


def read_csv_rows(path: Union[str, Path], encoding: str = "utf-8-sig") -> Iterator[dict]:
    """
    Stream rows of a CSV export as dictionaries keyed by header.

    Args:
        path: CSV file location
        encoding: File encoding; the default strips a UTF-8 byte order mark

    Yields:
        One dict per data row, blank lines skipped
    """
    with open(path, newline="", encoding=encoding) as f:
        reader = csv.DictReader(f)
        for row in reader:
            if not any((v or "").strip() for v in row.values() if isinstance(v, str)):
                continue
            yield row


def count_csv_rows(path: Union[str, Path], encoding: str = "utf-8-sig") -> int:
    """Number of data rows, for progress reporting."""
    return sum(1 for _ in read_csv_rows(path, encoding))
