"""
Row normalizer.

Turns one raw export row into an immutable NormalizedRecord. Numeric
fields that fail to parse become None; only a missing title or a missing
release year rejects the row (SkipRow).
"""

import math
import re
from datetime import date, datetime
from typing import List, Mapping, Optional

from .config import Config
from .exceptions import SkipRow
from .models import (
    DEFAULT_MPA_RATING,
    UNKNOWN_DIRECTOR,
    UNKNOWN_TITLE,
    NormalizedRecord,
)
from .sources import Columns, extract_actors

DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%d %b %Y",
    "%d %B %Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%Y",
)

_LEADING_YEAR = re.compile(r"^(\d{4})-\d{2}-\d{2}")


def clean_text(value) -> Optional[str]:
    """Strip a value; blank or missing becomes None."""
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    value = str(value).strip()
    return value or None


def parse_int(value) -> Optional[int]:
    """
    Parse an integer from raw export text.

    Accepts thousands separators, a leading currency sign and float
    notation ("1.5e8", "120.0"). Anything else becomes None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None

    text = str(value).strip().replace(",", "").lstrip("$")
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return None
    return int(number) if math.isfinite(number) else None


def parse_runtime(value) -> Optional[int]:
    """Runtime in minutes, None when unparseable or negative."""
    minutes = parse_int(value)
    if minutes is None or minutes < 0:
        return None
    return minutes


def parse_money(value) -> Optional[int]:
    """Budget or revenue; zero and negative amounts mean unknown."""
    amount = parse_int(value)
    if amount is None or amount <= 0:
        return None
    return amount


def parse_release_year(value) -> Optional[int]:
    """Year from a date-like value, or None if it can't be read."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (date, datetime)):
        return value.year
    if isinstance(value, (int, float)):
        if not math.isfinite(value) or value != int(value):
            return None
        year = int(value)
        return year if 1 <= year <= 9999 else None

    text = str(value).strip()
    if not text:
        return None

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).year
        except ValueError:
            continue

    try:
        return datetime.fromisoformat(text).year
    except ValueError:
        pass

    match = _LEADING_YEAR.match(text)
    if match:
        return int(match.group(1))

    # "2021.0" style years from spreadsheet exports
    number = parse_int(text)
    if number is not None and 1000 <= number <= 9999:
        return number
    return None


def split_names(value, delimiter: str = ";") -> List[str]:
    """Split a delimited field into trimmed, non-empty, de-duplicated names."""
    text = clean_text(value)
    if not text:
        return []

    names = []
    seen = set()
    for part in text.split(delimiter):
        name = part.strip()
        if name and name not in seen:
            seen.add(name)
            names.append(name)
    return names


def normalize_row(
    row: Mapping,
    genre_delimiter: str = ";",
    max_actor_slots: int = 10,
    default_country: Optional[str] = None,
    allow_untitled: bool = False,
) -> NormalizedRecord:
    """
    Build a NormalizedRecord from one export row.

    Args:
        row: Mapping of export column name to raw value
        genre_delimiter: Separator used in the Genres column
        max_actor_slots: Number of positional actor columns to read
        default_country: Country used when the row has none
        allow_untitled: Use the "Unknown Title" sentinel instead of skipping

    Raises:
        SkipRow: no usable title, or no parseable release year
    """
    title = clean_text(row.get(Columns.TITLE)) or clean_text(row.get(Columns.ORIGINAL_TITLE))
    if not title:
        if not allow_untitled:
            raise SkipRow(SkipRow.MISSING_TITLE)
        title = UNKNOWN_TITLE

    release_year = parse_release_year(row.get(Columns.RELEASE_DATE))
    if release_year is None:
        raise SkipRow(SkipRow.MISSING_YEAR, title)

    return NormalizedRecord(
        title=title,
        release_year=release_year,
        original_title=clean_text(row.get(Columns.ORIGINAL_TITLE)) or title,
        runtime_minutes=parse_runtime(row.get(Columns.RUNTIME)),
        budget=parse_money(row.get(Columns.BUDGET)),
        box_office=parse_money(row.get(Columns.REVENUE)),
        overview=clean_text(row.get(Columns.OVERVIEW)),
        studios=clean_text(row.get(Columns.STUDIOS)),
        collection=clean_text(row.get(Columns.COLLECTION)),
        poster_url=clean_text(row.get(Columns.POSTER_URL)),
        backdrop_url=clean_text(row.get(Columns.BACKDROP_URL)),
        mpa_rating=clean_text(row.get(Columns.MPA_RATING)) or DEFAULT_MPA_RATING,
        director_name=clean_text(row.get(Columns.DIRECTORS)) or UNKNOWN_DIRECTOR,
        country_name=clean_text(row.get(Columns.COUNTRY)) or clean_text(default_country),
        genre_names=tuple(split_names(row.get(Columns.GENRES), genre_delimiter)),
        actors=tuple(extract_actors(row, max_actor_slots, genre_delimiter)),
    )


class RowNormalizer:
    """normalize_row bound to the pipeline configuration."""

    def __init__(self, config: Config, allow_untitled: bool = False):
        self.config = config
        self.allow_untitled = allow_untitled

    def normalize(self, row: Mapping) -> NormalizedRecord:
        return normalize_row(
            row,
            genre_delimiter=self.config.genre_delimiter,
            max_actor_slots=self.config.max_actor_slots,
            default_country=self.config.default_country,
            allow_untitled=self.allow_untitled,
        )
