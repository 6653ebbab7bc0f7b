"""
Reference entity tests: deduplication, tolerant writes, id resolution.
"""

import pytest
from sqlalchemy.exc import IntegrityError

from conftest import make_row

from movie_import.database import is_unique_violation
from movie_import.exceptions import ReferenceResolutionError, ReferenceWriteError
from movie_import.models import ReferenceKind, WriteOutcome
from movie_import.normalizer import normalize_row
from movie_import.references import (
    IdentifierResolver,
    ReferenceWriter,
    find_new_reference_names,
    referenced_names,
)


class TestFindNewNames:
    """Deduplication is a pure set difference."""

    def test_names_used_by_several_rows_appear_once(self):
        records = [
            normalize_row(make_row(title="Dune", actors=[("Zendaya", "Chani")])),
            normalize_row(make_row(title="Challengers", actors=[("Zendaya", "Tashi")])),
        ]

        new = find_new_reference_names(records, {})

        assert new[ReferenceKind.ACTOR] == {"Zendaya"}
        assert new[ReferenceKind.DIRECTOR] == {"Christopher Nolan"}
        assert new[ReferenceKind.GENRE] == {"Action", "Science Fiction"}
        assert new[ReferenceKind.COUNTRY] == {"United States"}

    def test_existing_names_are_excluded(self):
        records = [normalize_row(make_row(genres="Drama;Comedy"))]

        new = find_new_reference_names(records, {ReferenceKind.GENRE: {"Drama"}})

        assert new[ReferenceKind.GENRE] == {"Comedy"}

    def test_matching_is_case_sensitive(self):
        records = [normalize_row(make_row(genres="drama"))]

        new = find_new_reference_names(records, {ReferenceKind.GENRE: {"Drama"}})

        assert new[ReferenceKind.GENRE] == {"drama"}

    def test_inputs_are_not_modified(self):
        existing = {ReferenceKind.GENRE: {"Drama"}}
        find_new_reference_names([normalize_row(make_row(genres="Comedy"))], existing)
        assert existing == {ReferenceKind.GENRE: {"Drama"}}

    def test_referenced_names_skips_missing_country(self):
        records = [normalize_row(make_row(country=None))]
        assert referenced_names(records)[ReferenceKind.COUNTRY] == set()


class TestReferenceWriter:
    """Writing an existing name is a success, not an error."""

    def test_insert_then_already_exists(self, db, config):
        writer = ReferenceWriter(db, config)

        first = writer.write(ReferenceKind.GENRE, {"Drama", "Comedy"})
        second = writer.write(ReferenceKind.GENRE, {"Drama"})

        assert [r.outcome for r in first] == [WriteOutcome.INSERTED, WriteOutcome.INSERTED]
        assert second[0].outcome is WriteOutcome.ALREADY_EXISTS
        assert db.get_table_count("genre") == 2

    def test_stale_snapshot_is_tolerated(self, db, config):
        """A name written by someone else after our snapshot was taken."""
        writer = ReferenceWriter(db, config)
        stale_snapshot = {kind: set() for kind in ReferenceKind}
        writer.write(ReferenceKind.ACTOR, {"Zendaya"})

        records = [normalize_row(make_row(actors=[("Zendaya", "MJ")]))]
        new = find_new_reference_names(records, stale_snapshot)
        results = writer.write(ReferenceKind.ACTOR, new[ReferenceKind.ACTOR])

        assert results[0].outcome is WriteOutcome.ALREADY_EXISTS
        assert db.get_table_count("actor") == 1

    def test_names_differing_in_case_are_distinct(self, db, config):
        writer = ReferenceWriter(db, config)

        results = writer.write(ReferenceKind.GENRE, {"Drama", "drama"})

        assert all(r.outcome is WriteOutcome.INSERTED for r in results)
        assert db.get_table_count("genre") == 2

    def test_other_integrity_errors_fail_the_write(self, db, config, monkeypatch):
        writer = ReferenceWriter(db, config)

        def reject(conn, kind, name):
            raise IntegrityError("INSERT", {}, Exception("NOT NULL constraint failed: genre.name"))

        monkeypatch.setattr(db, "insert_reference_name", reject)

        assert writer.write_name(ReferenceKind.GENRE, "Drama").outcome is WriteOutcome.FAILED
        with pytest.raises(ReferenceWriteError) as exc_info:
            writer.write(ReferenceKind.GENRE, {"Drama"})
        assert exc_info.value.details["names"] == ["Drama"]

    def test_write_all_covers_every_kind(self, db, config):
        writer = ReferenceWriter(db, config)

        results = writer.write_all({
            ReferenceKind.DIRECTOR: {"Denis Villeneuve"},
            ReferenceKind.COUNTRY: {"Canada"},
        })

        assert {r.kind for r in results} == {ReferenceKind.DIRECTOR, ReferenceKind.COUNTRY}
        assert db.get_reference_names(ReferenceKind.DIRECTOR) == {"Denis Villeneuve"}


class TestIdentifierResolver:
    """Ids come from a fresh read of the store."""

    def test_resolves_every_name(self, db, config):
        ReferenceWriter(db, config).write(ReferenceKind.ACTOR, {"Zendaya", "Tom Holland"})

        mapping = IdentifierResolver(db).resolve(ReferenceKind.ACTOR, {"Zendaya", "Tom Holland"})

        assert set(mapping) == {"Zendaya", "Tom Holland"}
        assert len(set(mapping.values())) == 2

    def test_missing_name_raises(self, db, config):
        ReferenceWriter(db, config).write(ReferenceKind.GENRE, {"Drama"})

        with pytest.raises(ReferenceResolutionError) as exc_info:
            IdentifierResolver(db).resolve(ReferenceKind.GENRE, {"Drama", "Western"})

        assert exc_info.value.kind == "genre"
        assert exc_info.value.missing == ["Western"]

    def test_empty_names(self, db):
        assert IdentifierResolver(db).resolve(ReferenceKind.GENRE, set()) == {}

    def test_large_lookup_is_chunked(self, db, config):
        names = {f"Actor {i:04d}" for i in range(600)}
        ReferenceWriter(db, config).write(ReferenceKind.ACTOR, names)

        mapping = IdentifierResolver(db).resolve(ReferenceKind.ACTOR, names)

        assert len(mapping) == 600


class TestUniqueViolation:
    """Duplicate-key errors are recognised from the driver error."""

    def test_sqlite_unique_error(self, db):
        with db.transaction() as conn:
            db.insert_reference_name(conn, ReferenceKind.GENRE, "Drama")

        with pytest.raises(IntegrityError) as exc_info:
            with db.transaction() as conn:
                db.insert_reference_name(conn, ReferenceKind.GENRE, "Drama")

        assert is_unique_violation(exc_info.value)

    def test_mysql_duplicate_entry(self):
        orig = Exception(1062, "Duplicate entry 'Drama' for key 'genre.name'")
        assert is_unique_violation(IntegrityError("INSERT", {}, orig))

    def test_not_null_is_not_a_duplicate(self):
        orig = Exception("NOT NULL constraint failed: genre.name")
        assert not is_unique_violation(IntegrityError("INSERT", {}, orig))
