"""
Movie import pipeline orchestrator.

Main class that coordinates all pipeline operations:
- Schema setup and status
- Batched, resumable import of an export
- Duplicate inspection and clean-up
"""

from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Union

from .config import Config
from .database import DatabaseManager
from .loader import BatchLoader
from .models import DuplicateGroup, PipelineStats, ReconcileResult, ResolutionPolicy
from .reconciler import DuplicateReconciler
from .sources import count_csv_rows, read_csv_rows
from .utils import format_number, setup_logger


class MovieImportPipeline:
    """
    Main orchestrator for all pipeline operations.

    Each method is designed to be:
    - Self-contained (one call per CLI command)
    - Guarded (checks preconditions)
    - Observable (logging, progress bars)
    """

    def __init__(self, db: DatabaseManager, config: Config):
        self.db = db
        self.config = config
        self.logger = setup_logger("pipeline", config.log_dir)
        self._loader = None
        self._reconciler = None

    @property
    def loader(self) -> BatchLoader:
        """Lazy-initialized batch loader."""
        if self._loader is None:
            self._loader = BatchLoader(self.db, self.config)
        return self._loader

    @property
    def reconciler(self) -> DuplicateReconciler:
        """Lazy-initialized duplicate reconciler."""
        if self._reconciler is None:
            self._reconciler = DuplicateReconciler(self.db, self.config)
        return self._reconciler

    # ============ OPERATION 1: RUN (IMPORT) ============

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
        Import rows into the normalized tables.

        GUARDRAIL: Refuses to run while required tables are missing.
        """
        missing = self.db.get_missing_tables()
        if missing:
            raise RuntimeError(
                f"BLOCKED: Missing tables: {', '.join(missing)}\n"
                f"Run setup first."
            )

        return self.loader.run(
            rows,
            start_offset=start_offset,
            skip_existing=skip_existing,
            limit=limit,
            fail_fast=fail_fast,
            total_rows=total_rows,
        )

    def run_csv(self, path: Union[str, Path], **kwargs) -> PipelineStats:
        """Import a CSV export file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Export not found: {path}")

        encoding = self.config.csv_encoding
        total_rows = count_csv_rows(path, encoding) if self.config.show_progress else None
        if total_rows is not None:
            self.logger.info(f"{path.name}: {format_number(total_rows)} rows")

        return self.run(read_csv_rows(path, encoding), total_rows=total_rows, **kwargs)

    # ============ OPERATION 2: CLEAN (DUPLICATES) ============

    def find_duplicates(self, year: Optional[int] = None, limit: Optional[int] = None) -> List[DuplicateGroup]:
        """List duplicate (title, year) groups."""
        return self.reconciler.find_duplicates(year=year, limit=limit)

    def clean(
        self,
        policy: ResolutionPolicy = ResolutionPolicy.KEEP_EARLIEST,
        dry_run: bool = False,
    ) -> ReconcileResult:
        """Collapse duplicate movies to one per (title, year)."""
        return self.reconciler.reconcile(policy=policy, dry_run=dry_run)

    # ============ SETUP & STATUS ============

    def setup_database(self) -> dict:
        """Create any missing tables."""
        return self.db.check_and_create_tables()

    def get_status(self) -> dict:
        """Table counts and duplicate summary."""
        return self.db.get_status()

    def test_connection(self) -> dict:
        """Check the database connection."""
        ok, error = self.db.test_connection()
        return {"db_connected": ok, "db_error": error}
