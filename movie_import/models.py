"""
Data models for the movie import pipeline.

Provides dataclasses for type-safe data handling throughout the pipeline.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


UNKNOWN_TITLE = "Unknown Title"
UNKNOWN_DIRECTOR = "Unknown Director"
DEFAULT_MPA_RATING = "NR"


class ReferenceKind(Enum):
    """Reference tables a movie row points at: (table, id column)."""

    DIRECTOR = ("director", "director_id")
    GENRE = ("genre", "genre_id")
    ACTOR = ("actor", "actor_id")
    COUNTRY = ("country", "country_id")

    @property
    def table(self) -> str:
        return self.value[0]

    @property
    def id_column(self) -> str:
        return self.value[1]

    @property
    def label(self) -> str:
        return self.value[0]


class WriteOutcome(Enum):
    """Result of inserting one reference name."""

    INSERTED = "inserted"
    ALREADY_EXISTS = "already_exists"
    FAILED = "failed"


class ResolutionPolicy(Enum):
    """Which row of a duplicate group survives a clean pass."""

    KEEP_EARLIEST = "earliest"  # smallest movie_id
    KEEP_LATEST = "latest"  # largest movie_id

    @property
    def aggregate(self) -> str:
        return "MIN" if self is ResolutionPolicy.KEEP_EARLIEST else "MAX"


@dataclass(frozen=True)
class ActorCredit:
    """An actor credited on a movie, with the character played."""

    name: str
    character: Optional[str] = None


@dataclass(frozen=True)
class NormalizedRecord:
    """One prospective movie built from a single source row."""

    title: str
    release_year: int
    original_title: Optional[str] = None
    runtime_minutes: Optional[int] = None
    budget: Optional[int] = None
    box_office: Optional[int] = None
    overview: Optional[str] = None
    studios: Optional[str] = None
    collection: Optional[str] = None
    poster_url: Optional[str] = None
    backdrop_url: Optional[str] = None
    mpa_rating: str = DEFAULT_MPA_RATING
    director_name: str = UNKNOWN_DIRECTOR
    country_name: Optional[str] = None
    genre_names: Tuple[str, ...] = ()
    actors: Tuple[ActorCredit, ...] = ()

    @property
    def title_key(self) -> str:
        """Case-insensitive key used by the resume snapshot."""
        return self.title.lower()

    def to_dict(self) -> dict:
        """Convert to dictionary for movie table insertion (without foreign keys)."""
        return {
            "title": self.title,
            "original_title": self.original_title,
            "release_year": self.release_year,
            "runtime_minutes": self.runtime_minutes,
            "budget": self.budget,
            "box_office": self.box_office,
            "overview": self.overview,
            "studios": self.studios,
            "collection": self.collection,
            "poster_url": self.poster_url,
            "backdrop_url": self.backdrop_url,
            "mpa_rating": self.mpa_rating,
        }

    def reference_names(self, kind: ReferenceKind) -> List[str]:
        """Names of the given kind this record links to."""
        if kind is ReferenceKind.DIRECTOR:
            return [self.director_name]
        if kind is ReferenceKind.GENRE:
            return list(self.genre_names)
        if kind is ReferenceKind.ACTOR:
            return [actor.name for actor in self.actors]
        return [self.country_name] if self.country_name else []


@dataclass(frozen=True)
class ReferenceWriteResult:
    """Tagged outcome for a single reference insert."""

    kind: ReferenceKind
    name: str
    outcome: WriteOutcome
    error: Optional[str] = None


@dataclass(frozen=True)
class DuplicateGroup:
    """Movies sharing a (title, release_year) natural key."""

    title: str
    release_year: Optional[int]
    movie_ids: Tuple[int, ...]

    @property
    def count(self) -> int:
        return len(self.movie_ids)

    def display_line(self) -> str:
        ids = ", ".join(str(i) for i in self.movie_ids)
        return f'"{self.title}" ({self.release_year or "?"}): {self.count} entries - IDs: {ids}'


@dataclass
class PipelineStats:
    """Statistics for a load run."""

    processed: int = 0
    inserted: int = 0
    skipped_no_title: int = 0
    skipped_no_year: int = 0
    skipped_year_range: int = 0
    skipped_existing: int = 0
    skipped_errors: int = 0
    errors: int = 0
    batches: int = 0
    failed_batches: int = 0
    genre_links: int = 0
    actor_links: int = 0
    start_offset: int = 0
    next_offset: int = 0
    exhausted: bool = False
    references_created: Dict[str, int] = field(default_factory=dict)
    references_existing: Dict[str, int] = field(default_factory=dict)

    @property
    def skipped(self) -> int:
        """All rows counted as skipped, whatever the reason."""
        return (
            self.skipped_no_title
            + self.skipped_no_year
            + self.skipped_year_range
            + self.skipped_existing
            + self.skipped_errors
        )

    def record_reference(self, result: ReferenceWriteResult) -> None:
        """Count one reference write outcome."""
        label = result.kind.label
        if result.outcome is WriteOutcome.INSERTED:
            self.references_created[label] = self.references_created.get(label, 0) + 1
        elif result.outcome is WriteOutcome.ALREADY_EXISTS:
            self.references_existing[label] = self.references_existing.get(label, 0) + 1

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "processed": self.processed,
            "inserted": self.inserted,
            "skipped": self.skipped,
            "skipped_no_title": self.skipped_no_title,
            "skipped_no_year": self.skipped_no_year,
            "skipped_year_range": self.skipped_year_range,
            "skipped_existing": self.skipped_existing,
            "skipped_errors": self.skipped_errors,
            "errors": self.errors,
            "batches": self.batches,
            "failed_batches": self.failed_batches,
            "genre_links": self.genre_links,
            "actor_links": self.actor_links,
            "references_created": dict(self.references_created),
            "references_existing": dict(self.references_existing),
            "start_offset": self.start_offset,
            "next_offset": self.next_offset,
            "exhausted": self.exhausted,
        }

    def __str__(self) -> str:
        """Human-readable summary."""
        lines = [
            f"Processed: {self.processed}",
            f"Inserted: {self.inserted}",
        ]
        if self.skipped_existing:
            lines.append(f"Skipped (existing): {self.skipped_existing}")
        if self.skipped_no_title:
            lines.append(f"Skipped (no title): {self.skipped_no_title}")
        if self.skipped_no_year:
            lines.append(f"Skipped (no year): {self.skipped_no_year}")
        if self.skipped_year_range:
            lines.append(f"Skipped (year out of range): {self.skipped_year_range}")
        if self.skipped_errors:
            lines.append(f"Skipped (insert failed): {self.skipped_errors}")
        if self.failed_batches:
            lines.append(f"Failed batches: {self.failed_batches} ({self.errors} rows)")
        lines.append(f"Next offset: {self.next_offset}")
        return "\n".join(lines)


@dataclass
class ReconcileResult:
    """Statistics for a duplicate clean pass."""

    policy: ResolutionPolicy = ResolutionPolicy.KEEP_EARLIEST
    dry_run: bool = False
    groups_found: int = 0
    rows_to_remove: int = 0
    rows_removed: int = 0
    links_removed: int = 0
    residual_groups: int = 0
    total_before: int = 0
    total_after: int = 0

    @property
    def clean(self) -> bool:
        """True when no duplicate groups remain."""
        return self.residual_groups == 0

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "policy": self.policy.value,
            "dry_run": self.dry_run,
            "groups_found": self.groups_found,
            "rows_to_remove": self.rows_to_remove,
            "rows_removed": self.rows_removed,
            "links_removed": self.links_removed,
            "residual_groups": self.residual_groups,
            "total_before": self.total_before,
            "total_after": self.total_after,
        }
