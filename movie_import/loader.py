"""
Batch loader.

Runs the import state machine over a row source:

    Start -> LoadExistingTitles -> for each batch:
        Normalize -> Deduplicate -> WriteReferences -> ResolveIds
        -> InsertPrimary -> InsertJunctions
    -> Done

Batches run strictly one after another because each one reads the
reference tables and the title snapshot left behind by the previous one.
"""

from dataclasses import dataclass, field
from itertools import islice
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

from sqlalchemy.exc import SQLAlchemyError

from .config import Config
from .database import DatabaseManager
from .exceptions import PipelineError, SkipRow
from .models import NormalizedRecord, PipelineStats, ReferenceKind
from .normalizer import RowNormalizer
from .references import (
    IdMaps,
    IdentifierResolver,
    ReferenceWriter,
    find_new_reference_names,
    referenced_names,
)
from .utils import Timer, batch_iterator, count_batches, progress_bar, setup_logger


@dataclass
class LoadState:
    """Everything one run mutates. Never shared between runs."""

    seen_titles: Set[str]
    year_bounds: Tuple[int, int]
    stats: PipelineStats = field(default_factory=PipelineStats)


class BatchLoader:
    """
    Load export rows into the normalized schema in fixed-size batches.

    A row is skipped (counted, never raised) when it has no title, no
    parseable year, a year outside the configured bounds, or a title already
    seen in the store or earlier in the run. A movie the store rejects is
    logged and counted as skipped. Reference write or resolution failures
    abort only the batch they happen in.
    """

    def __init__(self, db: DatabaseManager, config: Config):
        self.db = db
        self.config = config
        self.normalizer = RowNormalizer(config)
        self.writer = ReferenceWriter(db, config)
        self.resolver = IdentifierResolver(db)
        self.logger = setup_logger("loader", config.log_dir)

    def start(self, skip_existing: bool = True, start_offset: int = 0) -> LoadState:
        """Create the run state, loading existing titles when resuming."""
        seen_titles = self.db.get_existing_titles() if skip_existing else set()
        if skip_existing:
            self.logger.info(f"Resume snapshot: {len(seen_titles)} existing titles")

        state = LoadState(seen_titles=seen_titles, year_bounds=self.config.year_bounds())
        state.stats.start_offset = start_offset
        state.stats.next_offset = start_offset
        return state

    def run(
        self,
        rows: Iterable[Mapping],
        start_offset: int = 0,
        skip_existing: bool = True,
        limit: Optional[int] = None,
        fail_fast: bool = False,
        total_rows: Optional[int] = None,
    ) -> PipelineStats:
        """
        Import rows, starting at start_offset.

        Args:
            rows: Source rows in file order
            start_offset: Number of leading rows to skip without reading them
            skip_existing: Skip rows whose title is already in the store
            limit: Maximum number of rows to consume in this run
            fail_fast: Re-raise the first batch failure instead of continuing
            total_rows: Row count of the source, for the progress bar

        Returns:
            PipelineStats; next_offset is where a follow-up run should start
        """
        if start_offset < 0:
            raise ValueError("start_offset must not be negative")
        if limit is not None and limit < 1:
            raise ValueError("limit must be at least 1")

        state = self.start(skip_existing=skip_existing, start_offset=start_offset)
        batch_size = self.config.batch_size

        if total_rows is None and hasattr(rows, "__len__"):
            total_rows = len(rows)
        remaining = None
        if total_rows is not None:
            remaining = max(0, total_rows - start_offset)
            if limit is not None:
                remaining = min(remaining, limit)

        stop = start_offset + limit if limit is not None else None
        source = islice(rows, start_offset, stop)
        min_year, max_year = state.year_bounds
        self.logger.info(
            f"Starting import at offset {start_offset} "
            f"(batch size {batch_size}, years {min_year}-{max_year})"
        )

        consumed = 0
        with Timer("Import") as timer:
            for batch in progress_bar(
                batch_iterator(source, batch_size),
                total=count_batches(remaining, batch_size) if remaining is not None else None,
                desc="Batches",
                unit="batch",
                disable=not self.config.show_progress,
            ):
                self.load_batch(batch, state, fail_fast=fail_fast)
                consumed += len(batch)
                state.stats.next_offset = start_offset + consumed

        stats = state.stats
        stats.exhausted = limit is None or consumed < limit
        self.logger.info(f"Import complete:\n{stats}")
        self.logger.info(str(timer))
        return stats

    def load_batch(self, batch: List[Mapping], state: LoadState, fail_fast: bool = False) -> None:
        """Process one batch of raw rows."""
        stats = state.stats
        stats.batches += 1
        batch_number = stats.batches

        records = self.accept_rows(batch, state)
        if not records:
            self.logger.info(f"Batch {batch_number}: nothing to insert")
            return

        inserted_before = stats.inserted
        try:
            id_maps = self.prepare_references(records, state)
        except (PipelineError, SQLAlchemyError) as e:
            stats.failed_batches += 1
            stats.errors += len(records)
            # Let later rows with these titles have another go
            for record in records:
                state.seen_titles.discard(record.title_key)
            self.logger.error(f"Batch {batch_number} aborted ({len(records)} rows): {e}")
            if fail_fast:
                raise
            return

        for record in records:
            self.insert_record(record, id_maps, state)

        self.logger.info(
            f"Batch {batch_number}: +{stats.inserted - inserted_before} movies "
            f"({len(batch) - len(records)} rows skipped before insert)"
        )

    # ============ NORMALIZE + SKIP POLICY ============

    def accept_rows(self, batch: List[Mapping], state: LoadState) -> List[NormalizedRecord]:
        """Normalize rows and apply the skip policy, updating the title snapshot."""
        stats = state.stats
        min_year, max_year = state.year_bounds
        accepted = []

        for row in batch:
            stats.processed += 1
            try:
                record = self.normalizer.normalize(row)
            except SkipRow as e:
                if e.reason == SkipRow.MISSING_TITLE:
                    stats.skipped_no_title += 1
                else:
                    stats.skipped_no_year += 1
                continue

            if not min_year <= record.release_year <= max_year:
                stats.skipped_year_range += 1
                continue

            if record.title_key in state.seen_titles:
                stats.skipped_existing += 1
                continue

            state.seen_titles.add(record.title_key)
            accepted.append(record)

        return accepted

    # ============ DEDUPLICATE + WRITE + RESOLVE ============

    def prepare_references(self, records: List[NormalizedRecord], state: LoadState) -> IdMaps:
        """Make sure every reference name exists, then read back their ids."""
        existing = {kind: self.db.get_reference_names(kind) for kind in ReferenceKind}
        new_names = find_new_reference_names(records, existing)

        for result in self.writer.write_all(new_names):
            state.stats.record_reference(result)

        return self.resolver.resolve_all(referenced_names(records))

    # ============ PRIMARY + JUNCTIONS ============

    def insert_record(self, record: NormalizedRecord, id_maps: IdMaps, state: LoadState) -> None:
        """Insert one movie and its links in a single transaction."""
        stats = state.stats
        try:
            with self.db.transaction() as conn:
                movie_id = self.db.insert_movie(
                    conn,
                    record,
                    director_id=id_maps[ReferenceKind.DIRECTOR][record.director_name],
                    country_id=(
                        id_maps[ReferenceKind.COUNTRY][record.country_name]
                        if record.country_name
                        else None
                    ),
                )
                genre_links, actor_links = self.insert_junctions(conn, movie_id, record, id_maps)
        except SQLAlchemyError as e:
            stats.skipped_errors += 1
            self.logger.warning(f'Failed to insert "{record.title}" ({record.release_year}): {e}')
            return

        stats.inserted += 1
        stats.genre_links += genre_links
        stats.actor_links += actor_links

    def insert_junctions(
        self,
        conn,
        movie_id: int,
        record: NormalizedRecord,
        id_maps: IdMaps,
    ) -> Tuple[int, int]:
        """Link the movie to its genres and actors; repeated pairs are written once."""
        genre_ids: Dict[int, None] = {}
        for name in record.genre_names:
            genre_ids.setdefault(id_maps[ReferenceKind.GENRE][name])

        actor_characters: Dict[int, Optional[str]] = {}
        for actor in record.actors:
            actor_characters.setdefault(id_maps[ReferenceKind.ACTOR][actor.name], actor.character)

        for genre_id in genre_ids:
            self.db.insert_movie_genre(conn, movie_id, genre_id)
        for actor_id, character in actor_characters.items():
            self.db.insert_movie_actor(conn, movie_id, actor_id, character)

        return len(genre_ids), len(actor_characters)
