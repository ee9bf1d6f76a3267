"""Question selection for each quiz mode."""
import math
import random
import sqlite3
from datetime import datetime, timedelta
from typing import Optional

from loguru import logger

from adaptive_quiz.config import get_settings
from adaptive_quiz.difficulty import clamp_difficulty
from adaptive_quiz.models import Question, QuizMode, QuizSession, SessionQuestion
from adaptive_quiz import questions, store


def next_target(difficulty: float, correct: bool, step: Optional[float] = None) -> float:
    """Difficulty to aim for after answering a question of ``difficulty``."""
    step = get_settings().adaptive_step if step is None else step
    return clamp_difficulty(difficulty + step if correct else difficulty - step)


def _spaced_repetition_ids(
    conn: sqlite3.Connection, user_id: int, categories: list[int], count: int, now: datetime
) -> list[int]:
    """Mix due cards and unseen questions, topped up at random from the pool.

    Membership follows scheduling priority; the returned order is shuffled.
    """
    due_limit = math.ceil(round(count * get_settings().due_card_ratio, 9))
    new_limit = count - due_limit

    due = [card.question_id for card in store.fetch_due_cards(conn, user_id, categories, due_limit, now)]
    if len(due) < due_limit:
        new_limit += due_limit - len(due)

    new = store.fetch_new_card_candidates(conn, user_id, categories, new_limit) if new_limit else []
    if len(new) < new_limit and len(due) == due_limit:
        shortfall = new_limit - len(new)
        due = [
            card.question_id
            for card in store.fetch_due_cards(conn, user_id, categories, due_limit + shortfall, now)
        ]

    chosen = due + [qid for qid in new if qid not in due]
    if len(chosen) < count:
        filler = questions.get_by_categories(
            conn, categories, exclude_ids=chosen, limit=count - len(chosen), order="random"
        )
        chosen += [q.id for q in filler]

    random.shuffle(chosen)
    return chosen[:count]


def select_questions(conn: sqlite3.Connection, session: QuizSession, now: datetime) -> list[int]:
    """Initial question ids for a new session, in serving order."""
    count = session.target_question_count
    categories = session.categories
    mode = session.mode

    if mode == QuizMode.QUICK:
        ids = [q.id for q in questions.get_by_categories(conn, categories, limit=count)]
    elif mode == QuizMode.TEST:
        ids = [
            q.id for q in questions.get_by_categories(
                conn, categories, band=session.difficulty_band, limit=count,
            )
        ]
    elif mode == QuizMode.ADAPTIVE:
        ids = [
            q.id for q in questions.get_by_categories(conn, categories, limit=count, order="difficulty")
        ]
    elif mode == QuizMode.SPACED_REPETITION:
        ids = _spaced_repetition_ids(conn, session.user_id, categories, count, now)
    else:
        raise TypeError(f"Unsupported quiz mode: {mode!r}")

    if len(ids) < count:
        logger.warning(
            "Only {} of {} questions available for {} session (categories {})",
            len(ids), count, mode.value, categories,
        )
    return ids


def _resolve_adaptive_slot(conn: sqlite3.Connection, session: QuizSession, now: datetime) -> None:
    target = session.pending_target
    session.pending_target = None
    window = timedelta(hours=get_settings().recent_answer_window_hours)
    exclude = store.recently_answered_ids(conn, session.user_id, now - window)
    exclude.update(
        slot.question_id
        for i, slot in enumerate(session.questions)
        if i != session.current_index
    )
    candidate = questions.closest_to_difficulty(conn, session.categories, target, exclude)
    if candidate is None:
        logger.warning("No unseen question near difficulty {:.1f}; keeping queued question", target)
        return
    session.questions[session.current_index] = SessionQuestion(question_id=candidate.id)
    logger.debug("Adaptive slot {} -> question {} (difficulty {:.2f}, target {:.1f})",
                 session.current_index, candidate.id, candidate.difficulty_value, target)


def select_next(conn: sqlite3.Connection, session: QuizSession, now: datetime) -> Optional[Question]:
    """The question for the session's current slot, or None once it is finished.

    In adaptive mode the slot is re-chosen here, on first request after the
    previous answer, around the difficulty that answer set as the target.
    Mutates ``session``; the caller persists it.
    """
    if session.current_slot is None:
        return None
    if session.mode == QuizMode.ADAPTIVE and session.pending_target is not None:
        _resolve_adaptive_slot(conn, session, now)
    return questions.get_by_id(conn, session.current_slot.question_id)
