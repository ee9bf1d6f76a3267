from contextlib import closing
from datetime import datetime

import pytest

from adaptive_quiz.config import get_settings
from adaptive_quiz.db import get_connection, init_db, transaction
from adaptive_quiz.models import QuestionType
from adaptive_quiz.questions import add_category, add_question


@pytest.fixture(autouse=True)
def fresh_settings():
    """Settings are cached per process; re-read them for every test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_quiz.db")
    return db_path


@pytest.fixture
def now():
    # A Wednesday
    return datetime(2026, 3, 4, 12, 0, 0)


@pytest.fixture
def make_pool(tmp_db):
    """Factory: one multiple-choice question per difficulty in a new category.

    Every question has a correct option "Right" followed by a wrong "Wrong".
    Returns ``(category_id, question_ids)``.
    """
    init_db(tmp_db)

    def _make(difficulties, name="General"):
        with closing(get_connection(tmp_db)) as conn, transaction(conn):
            category_id = add_category(conn, name)
            ids = [
                add_question(
                    conn, category_id, f"{name} question {i}",
                    difficulty_value=d,
                    explanation=f"Explanation {i}",
                    options=[{"text": "Right", "is_correct": True}, {"text": "Wrong"}],
                )
                for i, d in enumerate(difficulties, 1)
            ]
        return category_id, ids

    return _make


@pytest.fixture
def make_written(tmp_db):
    """Factory: a written-response question; returns ``(category_id, question_id)``."""
    init_db(tmp_db)

    def _make(answers, text="What is the capital of France?", difficulty=3.0, category_id=None):
        with closing(get_connection(tmp_db)) as conn, transaction(conn):
            if category_id is None:
                category_id = add_category(conn, "Written")
            qid = add_question(
                conn, category_id, text,
                question_type=QuestionType.WRITTEN_RESPONSE,
                difficulty_value=difficulty,
                acceptable_answers=[{"text": a, "is_primary": i == 0} for i, a in enumerate(answers)],
            )
        return category_id, qid

    return _make


@pytest.fixture
def answer_for():
    """Option id that answers a multiple-choice question right (or wrong)."""
    def _answer(question, correct=True):
        return next(o.id for o in question.options if o.is_correct == correct)
    return _answer
