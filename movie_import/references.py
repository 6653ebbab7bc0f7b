"""
Reference entity handling: deduplicate, write, resolve.

Directors, genres, actors and countries are identified by their exact
name. A batch first works out which names are new (pure computation),
then inserts them one by one tolerating duplicates, then re-reads ids
from the store. Ids are never taken from the inserts themselves, since
another writer may have created the same names concurrently.
"""

from typing import Dict, Iterable, List, Mapping, Set

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .config import Config
from .database import DatabaseManager, is_unique_violation
from .exceptions import ReferenceResolutionError, ReferenceWriteError
from .models import NormalizedRecord, ReferenceKind, ReferenceWriteResult, WriteOutcome
from .utils import setup_logger

NameSets = Dict[ReferenceKind, Set[str]]
IdMaps = Dict[ReferenceKind, Dict[str, int]]


def referenced_names(records: Iterable[NormalizedRecord]) -> NameSets:
    """Every reference name used by the records, per kind, exactly as the records carry it."""
    names: NameSets = {kind: set() for kind in ReferenceKind}
    for record in records:
        for kind in ReferenceKind:
            for name in record.reference_names(kind):
                if name:
                    names[kind].add(name)
    return names


def find_new_reference_names(
    records: Iterable[NormalizedRecord],
    existing: Mapping[ReferenceKind, Set[str]],
) -> NameSets:
    """
    Names used by the batch that are not in the existing snapshot.

    Matching is exact and case-sensitive. The result has set semantics, so a
    name used by several records in the batch appears once.
    """
    used = referenced_names(records)
    return {kind: used[kind] - set(existing.get(kind, ())) for kind in ReferenceKind}


class ReferenceWriter:
    """Insert reference names, treating "already exists" as success."""

    def __init__(self, db: DatabaseManager, config: Config):
        self.db = db
        self.logger = setup_logger("references", config.log_dir)

    def write_name(self, kind: ReferenceKind, name: str) -> ReferenceWriteResult:
        """Insert a single name in its own transaction."""
        try:
            with self.db.transaction() as conn:
                self.db.insert_reference_name(conn, kind, name)
        except IntegrityError as e:
            if is_unique_violation(e):
                return ReferenceWriteResult(kind, name, WriteOutcome.ALREADY_EXISTS)
            self.logger.error(f"Integrity error writing {kind.label} '{name}': {e}")
            return ReferenceWriteResult(kind, name, WriteOutcome.FAILED, str(e))
        except SQLAlchemyError as e:
            self.logger.error(f"Error writing {kind.label} '{name}': {e}")
            return ReferenceWriteResult(kind, name, WriteOutcome.FAILED, str(e))

        return ReferenceWriteResult(kind, name, WriteOutcome.INSERTED)

    def write(self, kind: ReferenceKind, names: Iterable[str]) -> List[ReferenceWriteResult]:
        """
        Insert every name, returning one tagged outcome per name.

        Raises:
            ReferenceWriteError: at least one name failed for a reason other
                than already existing
        """
        results = [self.write_name(kind, name) for name in sorted(names)]

        failed = [r.name for r in results if r.outcome is WriteOutcome.FAILED]
        if failed:
            raise ReferenceWriteError(kind.label, failed)

        existing = sum(1 for r in results if r.outcome is WriteOutcome.ALREADY_EXISTS)
        if existing:
            self.logger.info(f"{existing} {kind.label} name(s) already existed (concurrent or stale snapshot)")
        return results

    def write_all(self, new_names: Mapping[ReferenceKind, Iterable[str]]) -> List[ReferenceWriteResult]:
        """Write new names for every kind."""
        results = []
        for kind in ReferenceKind:
            results.extend(self.write(kind, new_names.get(kind, ())))
        return results


class IdentifierResolver:
    """Build name -> id maps from fresh reads of the reference tables."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def resolve(self, kind: ReferenceKind, names: Iterable[str]) -> Dict[str, int]:
        """
        Map each name to its id.

        Raises:
            ReferenceResolutionError: a needed name has no row
        """
        names = set(names)
        if not names:
            return {}

        mapping = self.db.get_reference_ids(kind, names)
        missing = names - mapping.keys()
        if missing:
            raise ReferenceResolutionError(kind.label, missing)
        return mapping

    def resolve_all(self, needed: Mapping[ReferenceKind, Iterable[str]]) -> IdMaps:
        """Resolve every kind; fails on the first kind with a missing name."""
        return {kind: self.resolve(kind, needed.get(kind, ())) for kind in ReferenceKind}
