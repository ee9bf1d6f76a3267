"""Tests for database initialization, connections and transactions."""
import sqlite3
from contextlib import closing

import pytest

from adaptive_quiz.db import from_db_time, get_connection, init_db, to_db_time, transaction
from adaptive_quiz.errors import PersistenceError, ValidationError


def test_init_db_creates_tables(tmp_db):
    init_db(tmp_db)
    conn = get_connection(tmp_db)
    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
    )
    tables = {row[0] for row in cursor.fetchall()}
    expected = {
        "categories", "questions", "answers", "written_response_answers",
        "sr_cards", "sr_review_log", "quiz_answers", "user_attempts",
        "user_question_status", "quiz_sessions",
    }
    assert expected.issubset(tables)
    conn.close()


def test_init_db_is_idempotent(tmp_db):
    init_db(tmp_db)
    init_db(tmp_db)  # should not raise
    conn = get_connection(tmp_db)
    cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
    assert len(cursor.fetchall()) > 0
    conn.close()


def test_init_db_creates_parent_directory(tmp_path):
    db_path = str(tmp_path / "nested" / "dir" / "quiz.db")
    init_db(db_path)
    with closing(get_connection(db_path)) as conn:
        assert conn.execute("SELECT COUNT(*) FROM categories").fetchone()[0] == 0


def test_get_connection_returns_row_factory(tmp_db):
    init_db(tmp_db)
    conn = get_connection(tmp_db)
    conn.execute("INSERT INTO categories (name, description) VALUES ('Maths', 'numbers')")
    row = conn.execute("SELECT name, description FROM categories WHERE name='Maths'").fetchone()
    assert row["name"] == "Maths"
    conn.close()


def test_transaction_commits(tmp_db):
    init_db(tmp_db)
    with closing(get_connection(tmp_db)) as conn:
        with transaction(conn):
            conn.execute("INSERT INTO categories (name) VALUES ('A')")
            conn.execute("INSERT INTO categories (name) VALUES ('B')")
    with closing(get_connection(tmp_db)) as conn:
        assert conn.execute("SELECT COUNT(*) FROM categories").fetchone()[0] == 2


def test_transaction_rolls_back_on_sqlite_error(tmp_db):
    init_db(tmp_db)
    with closing(get_connection(tmp_db)) as conn:
        with pytest.raises(PersistenceError):
            with transaction(conn):
                conn.execute("INSERT INTO categories (name) VALUES ('A')")
                # difficulty outside [1, 5] violates the CHECK constraint
                conn.execute(
                    "INSERT INTO questions (category_id, question_text, difficulty_value) VALUES (1, 'q', 9)"
                )
        assert conn.execute("SELECT COUNT(*) FROM categories").fetchone()[0] == 0


def test_transaction_rolls_back_and_reraises_other_errors(tmp_db):
    init_db(tmp_db)
    with closing(get_connection(tmp_db)) as conn:
        with pytest.raises(ValidationError):
            with transaction(conn):
                conn.execute("INSERT INTO categories (name) VALUES ('A')")
                raise ValidationError("nope")
        assert conn.execute("SELECT COUNT(*) FROM categories").fetchone()[0] == 0
        assert not conn.in_transaction


def test_foreign_keys_enforced(tmp_db):
    init_db(tmp_db)
    with closing(get_connection(tmp_db)) as conn:
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute("INSERT INTO questions (category_id, question_text) VALUES (42, 'orphan')")


def test_time_round_trip():
    value = from_db_time("2026-03-04 12:30:00")
    assert value.hour == 12 and value.minute == 30
    assert to_db_time(value) == "2026-03-04 12:30:00"
    assert from_db_time(None) is None
