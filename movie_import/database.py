"""
Database manager for the movie import pipeline.

Handles all database operations including:
- Connection management with SQLAlchemy
- Schema bootstrap for the normalized tables
- Reference name reads/writes and movie/junction inserts
- Duplicate group queries and the transactional duplicate delete
"""

from itertools import groupby
from typing import Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy import bindparam, create_engine, inspect, text
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.exc import IntegrityError

from .config import Config
from .models import DuplicateGroup, NormalizedRecord, ReferenceKind, ResolutionPolicy
from .schema import ALL_TABLES, metadata, movie_table
from .utils import setup_logger

# Names per IN (...) query; stays under SQLite's bound parameter limit
LOOKUP_CHUNK_SIZE = 500

MYSQL_DUPLICATE_ENTRY = 1062
UNIQUE_VIOLATION_SQLSTATE = "23505"


def is_unique_violation(exc: IntegrityError) -> bool:
    """
    Tell a unique/primary key violation apart from other integrity errors.

    Checks the driver error: PostgreSQL SQLSTATE 23505, MySQL errno 1062,
    SQLite UNIQUE/PRIMARY KEY constraint failures.
    """
    orig = getattr(exc, "orig", None)
    if orig is None:
        return False

    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if sqlstate == UNIQUE_VIOLATION_SQLSTATE:
        return True

    args = getattr(orig, "args", ())
    if args and args[0] == MYSQL_DUPLICATE_ENTRY:
        return True

    if getattr(orig, "sqlite_errorname", None) in (
        "SQLITE_CONSTRAINT_UNIQUE",
        "SQLITE_CONSTRAINT_PRIMARYKEY",
    ):
        return True

    message = str(orig)
    return "UNIQUE constraint failed" in message or "Duplicate entry" in message


def _keepers_subquery(policy: ResolutionPolicy) -> str:
    """Ids that survive a clean pass, one per (title, release_year) group."""
    # Wrapped in a derived table so MySQL accepts it inside DELETE FROM movie
    return (
        f"SELECT keep_id FROM ("
        f"SELECT {policy.aggregate}(movie_id) AS keep_id "
        f"FROM movie GROUP BY title, release_year"
        f") AS keepers"
    )


class DatabaseManager:
    """
    Handles all database operations.

    Responsibilities:
    - Connection management with SQLAlchemy
    - Transaction management
    - Reads and writes for reference, movie and junction tables
    - Duplicate detection and removal
    """

    REQUIRED_TABLES = ALL_TABLES

    def __init__(self, config: Config, engine: Optional[Engine] = None):
        self.config = config
        self.engine = engine or self._create_engine()
        self.logger = setup_logger("database", config.log_dir)

    def _create_engine(self) -> Engine:
        """Create SQLAlchemy engine with connection pooling."""
        url = make_url(self.config.get_db_url())
        if url.get_backend_name() == "sqlite":
            return create_engine(url)
        return create_engine(
            url,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,
            pool_recycle=3600,
        )

    def _execute(self, query: str, params: dict = None) -> list:
        """Execute a query and return results."""
        with self.engine.connect() as conn:
            result = conn.execute(text(query), params or {})
            rows = result.fetchall() if result.returns_rows else []
            conn.commit()
            return rows

    def transaction(self):
        """Context manager yielding a connection inside BEGIN ... COMMIT/ROLLBACK."""
        return self.engine.begin()

    def test_connection(self) -> Tuple[bool, Optional[str]]:
        """Run a trivial query. Returns (ok, error message)."""
        try:
            self._execute("SELECT 1")
            return True, None
        except Exception as e:
            return False, str(e)

    # ============ SETUP OPERATIONS ============

    def get_missing_tables(self) -> List[str]:
        """Required tables that don't exist yet."""
        existing = set(inspect(self.engine).get_table_names())
        return [t for t in self.REQUIRED_TABLES if t not in existing]

    def check_and_create_tables(self) -> dict:
        """
        Check which tables exist and create any that are missing.

        Returns:
            {
                "existing": List[str],
                "created": List[str],
                "all_present": bool
            }
        """
        missing = self.get_missing_tables()
        existing = [t for t in self.REQUIRED_TABLES if t not in missing]

        if missing:
            metadata.create_all(
                self.engine,
                tables=[metadata.tables[name] for name in missing],
            )
            for name in missing:
                self.logger.info(f"Created table: {name}")

        return {
            "existing": existing,
            "created": missing,
            "all_present": not self.get_missing_tables(),
        }

    # ============ COUNTS ============

    def get_table_count(self, table: str) -> int:
        """Row count for one of the required tables."""
        if table not in self.REQUIRED_TABLES:
            raise ValueError(f"Unknown table: {table}")
        result = self._execute(f"SELECT COUNT(*) FROM {table}")
        return result[0][0]

    def get_movie_count(self) -> int:
        """Get count of movies."""
        return self.get_table_count("movie")

    def get_status(self) -> dict:
        """Row counts for every table plus the number of duplicate groups."""
        missing = self.get_missing_tables()
        status = {"missing_tables": missing}
        for table in self.REQUIRED_TABLES:
            status[table] = None if table in missing else self.get_table_count(table)
        status["duplicate_groups"] = None if "movie" in missing else self.count_duplicate_groups()
        return status

    # ============ RESUME SNAPSHOT ============

    def get_existing_titles(self) -> Set[str]:
        """All movie titles, lower-cased, for the resume snapshot."""
        result = self._execute("SELECT title FROM movie")
        return {row[0].lower() for row in result if row[0]}

    # ============ REFERENCE TABLE OPERATIONS ============

    def get_reference_names(self, kind: ReferenceKind) -> Set[str]:
        """Every name currently stored for a reference kind."""
        result = self._execute(f"SELECT name FROM {kind.table}")
        return {row[0] for row in result}

    def insert_reference_name(self, conn: Connection, kind: ReferenceKind, name: str) -> None:
        """Insert one reference name. Raises IntegrityError if it already exists."""
        conn.execute(
            text(f"INSERT INTO {kind.table} (name) VALUES (:name)"),
            {"name": name},
        )

    def get_reference_ids(self, kind: ReferenceKind, names: Iterable[str]) -> Dict[str, int]:
        """Fresh name -> id mapping for the given names (missing names are absent)."""
        names = sorted(set(names))
        stmt = text(
            f"SELECT {kind.id_column}, name FROM {kind.table} WHERE name IN :names"
        ).bindparams(bindparam("names", expanding=True))

        mapping: Dict[str, int] = {}
        with self.engine.connect() as conn:
            for i in range(0, len(names), LOOKUP_CHUNK_SIZE):
                chunk = names[i : i + LOOKUP_CHUNK_SIZE]
                for ref_id, name in conn.execute(stmt, {"names": chunk}):
                    mapping[name] = ref_id
        return mapping

    # ============ MOVIE OPERATIONS ============

    def insert_movie(
        self,
        conn: Connection,
        record: NormalizedRecord,
        director_id: Optional[int],
        country_id: Optional[int],
    ) -> int:
        """Insert a movie row and return its store-assigned id."""
        values = record.to_dict()
        values["director_id"] = director_id
        values["country_id"] = country_id
        result = conn.execute(movie_table.insert().values(**values))
        return result.inserted_primary_key[0]

    def insert_movie_genre(self, conn: Connection, movie_id: int, genre_id: int) -> None:
        """Link a movie to a genre."""
        conn.execute(
            text("INSERT INTO movie_genre (movie_id, genre_id) VALUES (:movie_id, :genre_id)"),
            {"movie_id": movie_id, "genre_id": genre_id},
        )

    def insert_movie_actor(
        self,
        conn: Connection,
        movie_id: int,
        actor_id: int,
        character_name: Optional[str],
    ) -> None:
        """Link a movie to an actor with the character played."""
        conn.execute(
            text(
                "INSERT INTO movie_actor (movie_id, actor_id, character_name) "
                "VALUES (:movie_id, :actor_id, :character_name)"
            ),
            {"movie_id": movie_id, "actor_id": actor_id, "character_name": character_name},
        )

    # ============ DUPLICATE OPERATIONS ============

    def find_duplicate_groups(
        self,
        year: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[DuplicateGroup]:
        """
        List (title, release_year) groups with more than one movie.

        Args:
            year: Only report groups for this release year
            limit: Maximum number of groups to return

        Returns:
            Groups ordered by title then year, ids ascending within a group
        """
        year_filter = "WHERE release_year = :year" if year is not None else ""
        result = self._execute(
            f"""SELECT d.title, d.release_year, m.movie_id
                FROM movie m
                JOIN (
                    SELECT title, release_year
                    FROM movie
                    {year_filter}
                    GROUP BY title, release_year
                    HAVING COUNT(*) > 1
                ) d
                  ON m.title = d.title
                 AND (m.release_year = d.release_year
                      OR (m.release_year IS NULL AND d.release_year IS NULL))
                ORDER BY d.title, d.release_year, m.movie_id""",
            {"year": year} if year is not None else {},
        )

        groups = []
        for (title, release_year), rows in groupby(result, key=lambda r: (r[0], r[1])):
            groups.append(DuplicateGroup(title, release_year, tuple(r[2] for r in rows)))
            if limit and len(groups) >= limit:
                break
        return groups

    def count_duplicate_groups(self, conn: Optional[Connection] = None) -> int:
        """Number of (title, release_year) groups with more than one movie."""
        query = """SELECT COUNT(*) FROM (
                       SELECT title, release_year
                       FROM movie
                       GROUP BY title, release_year
                       HAVING COUNT(*) > 1
                   ) AS dup"""
        if conn is not None:
            return conn.execute(text(query)).scalar()
        return self._execute(query)[0][0]

    def count_excess_movies(self, conn: Connection, policy: ResolutionPolicy) -> int:
        """Movies a clean pass with this policy would delete."""
        return conn.execute(
            text(f"SELECT COUNT(*) FROM movie WHERE movie_id NOT IN ({_keepers_subquery(policy)})")
        ).scalar()

    def delete_excess_links(self, conn: Connection, policy: ResolutionPolicy) -> int:
        """Delete junction rows that belong to movies about to be removed."""
        removed = 0
        for table in ("movie_genre", "movie_actor"):
            result = conn.execute(
                text(
                    f"DELETE FROM {table} WHERE movie_id IN ("
                    f"SELECT movie_id FROM movie "
                    f"WHERE movie_id NOT IN ({_keepers_subquery(policy)}))"
                )
            )
            removed += result.rowcount
        return removed

    def delete_excess_movies(self, conn: Connection, policy: ResolutionPolicy) -> int:
        """Delete every movie that is not the survivor of its group."""
        result = conn.execute(
            text(f"DELETE FROM movie WHERE movie_id NOT IN ({_keepers_subquery(policy)})")
        )
        return result.rowcount
