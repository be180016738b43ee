"""Tests for PostgresClient against a live database."""

import psycopg2.errors
import pytest
from psycopg2.extras import Json


class TestResultShapes:

    def test_rows_are_dicts(self, db):
        assert db.execute("SELECT 1 AS num, 'test' AS str") == [{"num": 1, "str": "test"}]

    def test_no_rows(self, db):
        assert db.execute("SELECT 1 WHERE false") == []
        assert db.execute_single("SELECT 1 WHERE false") is None
        assert db.execute_scalar("SELECT 1 WHERE false") is None

    def test_single_and_scalar(self, db):
        assert db.execute_single("SELECT 42 AS answer, 'x' AS other") == {"answer": 42, "other": "x"}
        assert db.execute_scalar("SELECT 42 AS answer, 'x' AS other") == 42

    def test_statement_without_result(self, db):
        assert db.execute("SET LOCAL statement_timeout = 1000") == []

    def test_jsonb_decoded(self, db):
        assert db.execute_scalar("SELECT %s::jsonb", (Json({"status": "SENT"}),)) == {"status": "SENT"}


class TestTransaction:

    def test_commits_on_success(self, clean_db):
        with clean_db.transaction() as tx:
            row = tx.execute_returning(
                "INSERT INTO workspaces (external_subject) VALUES (%s) RETURNING id", ("subject-commit",)
            )[0]
            assert tx.execute_scalar("SELECT count(*) FROM workspaces WHERE id = %s", (row["id"],)) == 1

        assert clean_db.execute_scalar(
            "SELECT count(*) FROM workspaces WHERE external_subject = %s", ("subject-commit",)
        ) == 1

    def test_rolls_back_on_exception(self, clean_db):
        with pytest.raises(RuntimeError):
            with clean_db.transaction() as tx:
                tx.execute("INSERT INTO workspaces (external_subject) VALUES (%s)", ("subject-rollback",))
                raise RuntimeError("abort")

        assert clean_db.execute_scalar(
            "SELECT count(*) FROM workspaces WHERE external_subject = %s", ("subject-rollback",)
        ) == 0

    def test_failed_statement_does_not_poison_the_pool(self, clean_db):
        """After an SQL error the next transaction starts clean."""
        with pytest.raises(psycopg2.errors.UndefinedTable):
            with clean_db.transaction() as tx:
                tx.execute("SELECT * FROM no_such_table")

        assert clean_db.execute_scalar("SELECT 1") == 1
