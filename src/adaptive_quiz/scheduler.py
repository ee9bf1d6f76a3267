"""Per-user review cards scheduled with SM-2."""
import sqlite3
from contextlib import closing
from datetime import datetime, timedelta
from typing import Iterable, Optional

from loguru import logger

from adaptive_quiz.config import get_settings
from adaptive_quiz.db import get_connection, to_db_time, transaction
from adaptive_quiz.locks import user_lock
from adaptive_quiz.models import ReviewCard, ReviewLogEntry
from adaptive_quiz.sm2 import DEFAULT_EASE_FACTOR, sm2_update
from adaptive_quiz import store

MASTERED_INTERVAL_DAYS = 30


def new_card(user_id: int, question_id: int, now: datetime) -> ReviewCard:
    return ReviewCard(
        user_id=user_id,
        question_id=question_id,
        ease_factor=DEFAULT_EASE_FACTOR,
        interval=1,
        repetitions=0,
        next_review_at=now + timedelta(days=1),
    )


def apply_review(card: ReviewCard, quality: int, now: datetime) -> ReviewCard:
    """Return ``card`` advanced by one review of the given quality."""
    updated = sm2_update(
        quality=quality,
        repetitions=card.repetitions,
        ease_factor=card.ease_factor,
        interval=card.interval,
    )
    return ReviewCard(
        id=card.id,
        user_id=card.user_id,
        question_id=card.question_id,
        ease_factor=updated["ease_factor"],
        interval=updated["interval"],
        repetitions=updated["repetitions"],
        next_review_at=now + timedelta(days=updated["interval"]),
        last_reviewed_at=now,
    )


def ensure_card(conn: sqlite3.Connection, user_id: int, question_id: int, now: datetime) -> ReviewCard:
    card = store.get_card(conn, user_id, question_id)
    if card is None:
        card = store.upsert_card(conn, new_card(user_id, question_id, now))
        logger.debug("Created review card for user {} question {}", user_id, question_id)
    return card


def review_in(
    conn: sqlite3.Connection, user_id: int, question_id: int, quality: int, now: datetime
) -> ReviewCard:
    """Review a card on the caller's transaction: update the card and log it."""
    card = ensure_card(conn, user_id, question_id, now)
    reviewed = store.upsert_card(conn, apply_review(card, quality, now))
    store.append_review_log(conn, ReviewLogEntry(
        card_id=reviewed.id,
        user_id=user_id,
        question_id=question_id,
        quality=max(0, min(5, int(quality))),
        ease_factor_after=reviewed.ease_factor,
        interval_after=reviewed.interval,
        reviewed_at=now,
    ))
    logger.debug(
        "Reviewed card {} (q={}): interval={} ease={:.2f} reps={}",
        reviewed.id, quality, reviewed.interval, reviewed.ease_factor, reviewed.repetitions,
    )
    return reviewed


def initialize_card(db_path: str, user_id: int, question_id: int, now: Optional[datetime] = None) -> ReviewCard:
    """Return the user's card for a question, creating it on first encounter."""
    now = now or datetime.now()
    with user_lock(user_id), closing(get_connection(db_path)) as conn:
        with transaction(conn):
            return ensure_card(conn, user_id, question_id, now)


def process_review(
    db_path: str, user_id: int, question_id: int, quality: int, now: Optional[datetime] = None
) -> ReviewCard:
    now = now or datetime.now()
    with user_lock(user_id), closing(get_connection(db_path)) as conn:
        with transaction(conn):
            return review_in(conn, user_id, question_id, quality, now)


def get_due_cards(
    db_path: str,
    user_id: int,
    categories: Optional[Iterable[int]] = None,
    limit: Optional[int] = None,
    now: Optional[datetime] = None,
) -> list[ReviewCard]:
    limit = get_settings().due_card_limit if limit is None else limit
    with closing(get_connection(db_path)) as conn:
        return store.fetch_due_cards(conn, user_id, categories, limit, now or datetime.now())


def get_new_cards(
    db_path: str,
    user_id: int,
    categories: Optional[Iterable[int]] = None,
    limit: Optional[int] = None,
) -> list[int]:
    limit = get_settings().new_card_limit if limit is None else limit
    with closing(get_connection(db_path)) as conn:
        return store.fetch_new_card_candidates(conn, user_id, categories, limit)


def get_user_stats(db_path: str, user_id: int, now: Optional[datetime] = None) -> dict:
    """Spaced repetition overview for a user."""
    now = now or datetime.now()
    stats = {
        "total_cards": 0,
        "cards_due_today": 0,
        "cards_due_tomorrow": 0,
        "cards_due_this_week": 0,
        "average_ease_factor": 0.0,
        "mastered_cards": 0,
    }
    conn = get_connection(db_path)
    row = conn.execute(
        """SELECT COUNT(*) AS total, AVG(ease_factor) AS avg_ease,
            SUM(CASE WHEN next_review <= ? THEN 1 ELSE 0 END) AS today,
            SUM(CASE WHEN next_review > ? AND next_review <= ? THEN 1 ELSE 0 END) AS tomorrow,
            SUM(CASE WHEN next_review > ? AND next_review <= ? THEN 1 ELSE 0 END) AS week,
            SUM(CASE WHEN interval > ? THEN 1 ELSE 0 END) AS mastered
        FROM sr_cards WHERE user_id = ?""",
        (
            to_db_time(now + timedelta(days=1)),
            to_db_time(now + timedelta(days=1)), to_db_time(now + timedelta(days=2)),
            to_db_time(now), to_db_time(now + timedelta(days=7)),
            MASTERED_INTERVAL_DAYS, user_id,
        ),
    ).fetchone()
    conn.close()
    if not row["total"]:
        return stats
    stats.update(
        total_cards=row["total"],
        cards_due_today=row["today"],
        cards_due_tomorrow=row["tomorrow"],
        cards_due_this_week=row["week"],
        average_ease_factor=round(row["avg_ease"], 2),
        mastered_cards=row["mastered"],
    )
    return stats
