"""Question difficulty bands and rating-driven drift."""
import sqlite3
from contextlib import closing

from loguru import logger

from adaptive_quiz.db import get_connection, transaction
from adaptive_quiz.errors import ValidationError
from adaptive_quiz.models import Rating
from adaptive_quiz import questions

MIN_DIFFICULTY = 1.0
MAX_DIFFICULTY = 5.0
MAX_STEP = 0.1

RATING_TARGETS = {
    Rating.EASY: 1.0,
    Rating.CHALLENGING: 3.0,
    Rating.HARD: 5.0,
}


def clamp_difficulty(value: float) -> float:
    return max(MIN_DIFFICULTY, min(MAX_DIFFICULTY, value))


def parse_rating(rating) -> Rating:
    try:
        return Rating(rating)
    except ValueError:
        raise ValidationError(f"Unknown difficulty rating: {rating!r}") from None


def adjust(current: float, rating: Rating) -> float:
    """Move ``current`` one small step toward the rating's target value."""
    rating = parse_rating(rating)
    if rating == Rating.UNRATED:
        return current
    target = RATING_TARGETS[rating]
    if current < target:
        new_value = min(target, current + MAX_STEP)
    elif current > target:
        new_value = max(target, current - MAX_STEP)
    else:
        new_value = current
    return clamp_difficulty(new_value)


def apply_rating(conn: sqlite3.Connection, question_id: int, rating: Rating) -> float | None:
    """Drift the stored difficulty of a question; caller owns the transaction.

    Returns the new value, or None when the rating was ``unrated``.
    """
    rating = parse_rating(rating)
    if rating == Rating.UNRATED:
        return None
    current = questions.read_difficulty(conn, question_id)
    new_value = adjust(current, rating)
    if new_value != current:
        questions.update_difficulty(conn, question_id, new_value)
        logger.debug("Question {} difficulty {:.2f} -> {:.2f} ({})", question_id, current, new_value, rating.value)
    return new_value


def rate_question_difficulty(db_path: str, question_id: int, rating: Rating) -> float | None:
    with closing(get_connection(db_path)) as conn:
        with transaction(conn):
            return apply_rating(conn, question_id, rating)
