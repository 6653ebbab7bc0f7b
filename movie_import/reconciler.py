"""
Duplicate reconciler.

Collapses movies sharing (title, release_year) to a single survivor. The
count and the deletes happen in one transaction, so a failure leaves the
table exactly as it was. Assumes nothing else writes movies meanwhile.
"""

import warnings
from typing import List, Optional

from .config import Config
from .database import DatabaseManager
from .exceptions import ReconciliationError, ResidualDuplicateWarning
from .models import DuplicateGroup, ReconcileResult, ResolutionPolicy
from .utils import format_number, setup_logger


class DuplicateReconciler:
    """Remove duplicate movies left behind by non-idempotent imports."""

    def __init__(self, db: DatabaseManager, config: Config):
        self.db = db
        self.logger = setup_logger("reconciler", config.log_dir)

    def find_duplicates(self, year: Optional[int] = None, limit: Optional[int] = None) -> List[DuplicateGroup]:
        """Duplicate groups with their movie ids."""
        return self.db.find_duplicate_groups(year=year, limit=limit)

    def reconcile(
        self,
        policy: ResolutionPolicy = ResolutionPolicy.KEEP_EARLIEST,
        dry_run: bool = False,
    ) -> ReconcileResult:
        """
        Keep one movie per (title, release_year) and delete the rest.

        Args:
            policy: KEEP_EARLIEST keeps the smallest id, KEEP_LATEST the largest
            dry_run: Only count what would be removed

        Returns:
            ReconcileResult with removed counts and residual duplicate groups

        Raises:
            ReconciliationError: the delete transaction failed and was rolled back
        """
        result = ReconcileResult(policy=policy, dry_run=dry_run)
        result.total_before = self.db.get_movie_count()
        result.groups_found = self.db.count_duplicate_groups()

        if result.groups_found == 0:
            self.logger.info("No duplicate movies found")
            result.total_after = result.total_before
            return result

        self.logger.info(
            f"Found {format_number(result.groups_found)} duplicate groups "
            f"(keeping {policy.value} of each)"
        )

        if dry_run:
            with self.db.engine.connect() as conn:
                result.rows_to_remove = self.db.count_excess_movies(conn, policy)
            result.residual_groups = result.groups_found
            result.total_after = result.total_before
            return result

        try:
            with self.db.transaction() as conn:
                result.rows_to_remove = self.db.count_excess_movies(conn, policy)
                result.links_removed = self.db.delete_excess_links(conn, policy)
                removed = self.db.delete_excess_movies(conn, policy)
                if removed != result.rows_to_remove:
                    raise ReconciliationError(
                        f"Expected to remove {result.rows_to_remove} movies, removed {removed}"
                    )
        except ReconciliationError as e:
            self.logger.error(f"{e.message}; rolled back")
            raise
        except Exception as e:
            self.logger.error(f"Duplicate removal failed, rolled back: {e}")
            raise ReconciliationError(f"Duplicate removal rolled back: {e}") from e

        result.rows_removed = removed
        result.total_after = self.db.get_movie_count()
        self.logger.info(
            f"Removed {format_number(removed)} duplicate movies "
            f"and {format_number(result.links_removed)} links"
        )

        result.residual_groups = self.db.count_duplicate_groups()
        if result.residual_groups:
            message = (
                f"{result.residual_groups} duplicate groups remain after a committed clean pass"
            )
            self.logger.warning(message)
            warnings.warn(message, ResidualDuplicateWarning, stacklevel=2)

        return result
