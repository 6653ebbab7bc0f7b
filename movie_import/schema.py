"""
Relational schema for the normalized movie catalog.

Reference tables hold one row per unique name. The movie table links to a
director and a country; genres and actors hang off junction tables.
"""

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    func,
)

metadata = MetaData()

# Binary collation keeps MySQL unique checks case-sensitive, like the deduplicator
MYSQL_OPTIONS = {
    "mysql_engine": "InnoDB",
    "mysql_charset": "utf8mb4",
    "mysql_collate": "utf8mb4_bin",
}


def _reference_table(name: str, id_column: str) -> Table:
    return Table(
        name,
        metadata,
        Column(id_column, Integer, primary_key=True, autoincrement=True),
        Column("name", String(255), nullable=False, unique=True),
        Column("created_at", DateTime, server_default=func.now()),
        **MYSQL_OPTIONS,
    )


director_table = _reference_table("director", "director_id")
genre_table = _reference_table("genre", "genre_id")
actor_table = _reference_table("actor", "actor_id")
country_table = _reference_table("country", "country_id")

movie_table = Table(
    "movie",
    metadata,
    Column("movie_id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(255), nullable=False),
    Column("original_title", String(255)),
    Column("release_year", Integer),
    Column("runtime_minutes", Integer),
    Column("budget", BigInteger),
    Column("box_office", BigInteger),
    Column("overview", Text),
    Column("studios", Text),
    Column("collection", String(255)),
    Column("poster_url", Text),
    Column("backdrop_url", Text),
    Column("mpa_rating", String(16)),
    Column("director_id", Integer, ForeignKey("director.director_id")),
    Column("country_id", Integer, ForeignKey("country.country_id")),
    Column("created_at", DateTime, server_default=func.now()),
    Index("idx_movie_title_year", "title", "release_year"),
    mysql_engine="InnoDB",
    mysql_charset="utf8mb4",
    # Binary collation so duplicate groups compare titles exactly
    mysql_collate="utf8mb4_bin",
)

movie_genre_table = Table(
    "movie_genre",
    metadata,
    Column("movie_id", Integer, ForeignKey("movie.movie_id"), primary_key=True),
    Column("genre_id", Integer, ForeignKey("genre.genre_id"), primary_key=True),
    mysql_engine="InnoDB",
)

movie_actor_table = Table(
    "movie_actor",
    metadata,
    Column("movie_id", Integer, ForeignKey("movie.movie_id"), primary_key=True),
    Column("actor_id", Integer, ForeignKey("actor.actor_id"), primary_key=True),
    Column("character_name", String(255)),
    mysql_engine="InnoDB",
    mysql_charset="utf8mb4",
    mysql_collate="utf8mb4_unicode_ci",
)

# Creation order respects foreign keys
ALL_TABLES = [
    "director",
    "genre",
    "actor",
    "country",
    "movie",
    "movie_genre",
    "movie_actor",
]
