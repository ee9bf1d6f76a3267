"""Persistence gateway for cards, logs, attempts and quiz sessions.

Every function takes an open connection so callers can group several
writes into one transaction.
"""
import json
import sqlite3
from datetime import datetime
from typing import Iterable, Optional

from adaptive_quiz.db import from_db_time, placeholders, to_db_time
from adaptive_quiz.models import AnswerLog, Attempt, QuizSession, ReviewCard, ReviewLogEntry


def _row_to_card(row: sqlite3.Row) -> ReviewCard:
    return ReviewCard(
        id=row["id"],
        user_id=row["user_id"],
        question_id=row["question_id"],
        ease_factor=row["ease_factor"],
        interval=row["interval"],
        repetitions=row["repetitions"],
        next_review_at=from_db_time(row["next_review"]),
        last_reviewed_at=from_db_time(row["last_review"]),
    )


def get_card(conn: sqlite3.Connection, user_id: int, question_id: int) -> Optional[ReviewCard]:
    row = conn.execute(
        "SELECT * FROM sr_cards WHERE user_id = ? AND question_id = ?", (user_id, question_id)
    ).fetchone()
    return _row_to_card(row) if row else None


def upsert_card(conn: sqlite3.Connection, card: ReviewCard) -> ReviewCard:
    """Insert or update the card for (user, question) and return it with its id."""
    conn.execute(
        """INSERT INTO sr_cards
        (user_id, question_id, ease_factor, interval, repetitions, next_review, last_review)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(user_id, question_id) DO UPDATE SET
            ease_factor=excluded.ease_factor, interval=excluded.interval,
            repetitions=excluded.repetitions, next_review=excluded.next_review,
            last_review=excluded.last_review""",
        (
            card.user_id, card.question_id, card.ease_factor, card.interval, card.repetitions,
            to_db_time(card.next_review_at),
            to_db_time(card.last_reviewed_at) if card.last_reviewed_at else None,
        ),
    )
    return get_card(conn, card.user_id, card.question_id)


def append_review_log(conn: sqlite3.Connection, entry: ReviewLogEntry) -> int:
    cur = conn.execute(
        """INSERT INTO sr_review_log
        (card_id, user_id, question_id, quality, ease_factor, interval, reviewed_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)""",
        (entry.card_id, entry.user_id, entry.question_id, entry.quality,
         entry.ease_factor_after, entry.interval_after, to_db_time(entry.reviewed_at)),
    )
    return cur.lastrowid


def append_answer_log(conn: sqlite3.Connection, log: AnswerLog) -> int:
    cur = conn.execute(
        """INSERT INTO quiz_answers
        (user_id, question_id, answer_id, written_answer, is_correct, quiz_type, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)""",
        (log.user_id, log.question_id, log.answer_id, log.written_answer,
         int(log.is_correct), log.mode.value, to_db_time(log.created_at)),
    )
    return cur.lastrowid


def append_attempt(conn: sqlite3.Connection, attempt: Attempt) -> int:
    cur = conn.execute(
        """INSERT INTO user_attempts
        (user_id, total_questions, correct_answers, categories, quiz_type, duration_seconds, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)""",
        (attempt.user_id, attempt.total_questions, attempt.correct_answers,
         ",".join(str(c) for c in attempt.categories), attempt.mode.value,
         attempt.duration_seconds, to_db_time(attempt.created_at)),
    )
    return cur.lastrowid


def fetch_due_cards(
    conn: sqlite3.Connection,
    user_id: int,
    categories: Optional[Iterable[int]],
    limit: int,
    now: datetime,
) -> list[ReviewCard]:
    """Cards due at ``now``, most overdue first, then easiest question first."""
    sql = """SELECT c.* FROM sr_cards c
        JOIN questions q ON c.question_id = q.id
        WHERE c.user_id = ? AND c.next_review <= ?"""
    params: list = [user_id, to_db_time(now)]
    categories = list(categories or [])
    if categories:
        sql += f" AND q.category_id IN ({placeholders(categories)})"
        params += categories
    sql += " ORDER BY c.next_review ASC, q.difficulty_value ASC, q.id ASC LIMIT ?"
    params.append(limit)
    return [_row_to_card(row) for row in conn.execute(sql, params).fetchall()]


def fetch_new_card_candidates(
    conn: sqlite3.Connection,
    user_id: int,
    categories: Optional[Iterable[int]],
    limit: int,
) -> list[int]:
    """Ids of questions the user has no card for, easiest first."""
    sql = """SELECT q.id FROM questions q
        WHERE q.id NOT IN (SELECT question_id FROM sr_cards WHERE user_id = ?)"""
    params: list = [user_id]
    categories = list(categories or [])
    if categories:
        sql += f" AND q.category_id IN ({placeholders(categories)})"
        params += categories
    sql += " ORDER BY q.difficulty_value ASC, q.id ASC LIMIT ?"
    params.append(limit)
    return [row["id"] for row in conn.execute(sql, params).fetchall()]


def recently_answered_ids(conn: sqlite3.Connection, user_id: int, since: datetime) -> set[int]:
    rows = conn.execute(
        "SELECT DISTINCT question_id FROM quiz_answers WHERE user_id = ? AND created_at > ?",
        (user_id, to_db_time(since)),
    ).fetchall()
    return {row["question_id"] for row in rows}


def set_question_status(conn: sqlite3.Connection, user_id: int, question_id: int, status: str) -> None:
    conn.execute(
        """INSERT INTO user_question_status (user_id, question_id, status) VALUES (?, ?, ?)
        ON CONFLICT(user_id, question_id) DO UPDATE SET status=excluded.status""",
        (user_id, question_id, status),
    )


def save_session(conn: sqlite3.Connection, session: QuizSession, now: datetime) -> None:
    conn.execute(
        """INSERT INTO quiz_sessions (session_id, user_id, state, updated_at) VALUES (?, ?, ?, ?)
        ON CONFLICT(session_id) DO UPDATE SET state=excluded.state, updated_at=excluded.updated_at""",
        (session.session_id, session.user_id, json.dumps(session.to_dict()), to_db_time(now)),
    )


def load_session(conn: sqlite3.Connection, session_id: str) -> Optional[QuizSession]:
    row = conn.execute(
        "SELECT state FROM quiz_sessions WHERE session_id = ?", (session_id,)
    ).fetchone()
    if row is None:
        return None
    return QuizSession.from_dict(json.loads(row["state"]))


def delete_session(conn: sqlite3.Connection, session_id: str) -> None:
    conn.execute("DELETE FROM quiz_sessions WHERE session_id = ?", (session_id,))
