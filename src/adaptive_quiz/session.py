"""Quiz session lifecycle: start, serve, answer, rate and complete.

A session moves Initializing -> InProgress -> Completed and never back.
Each call loads the session from the store, works on that copy under the
user's lock and one transaction, and saves it again.
"""
import sqlite3
import uuid
from contextlib import closing
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from loguru import logger

from adaptive_quiz.config import get_settings
from adaptive_quiz.db import get_connection, transaction
from adaptive_quiz.difficulty import apply_rating, parse_rating
from adaptive_quiz.errors import SessionNotFoundError, StaleSubmissionError, ValidationError
from adaptive_quiz.evaluator import evaluate
from adaptive_quiz.locks import user_lock
from adaptive_quiz.models import (
    AnswerLog, Attempt, DifficultyBand, MultipleChoiceQuestion, Question, QuizMode, QuizSession,
    Rating, ReviewCard, SessionQuestion, SessionState, WrittenResponseQuestion,
)
from adaptive_quiz.sm2 import calculate_quality
from adaptive_quiz import questions, scheduler, selector, store

DEFERRED_FEEDBACK_MODES = (QuizMode.TEST, QuizMode.ADAPTIVE)


@dataclass
class AnswerResult:
    index: int
    question_id: int
    is_correct: bool
    show_feedback: bool
    explanation: str
    correct_answer: Optional[str]
    correct_count: int
    current_index: int
    completed: bool


@dataclass
class RatingResult:
    question_id: int
    rating: Rating
    difficulty: Optional[float] = None
    card: Optional[ReviewCard] = None


def _parse_mode(mode) -> QuizMode:
    try:
        return QuizMode(mode)
    except ValueError:
        raise ValidationError(f"Unknown quiz mode: {mode!r}") from None


def _parse_band(band) -> Optional[DifficultyBand]:
    if band is None or band == "":
        return None
    try:
        return DifficultyBand(band)
    except ValueError:
        raise ValidationError(f"Unknown difficulty band: {band!r}") from None


def _parse_categories(categories: Optional[Iterable]) -> list[int]:
    try:
        parsed = sorted({int(c) for c in categories or []})
    except (TypeError, ValueError):
        raise ValidationError("Invalid category selection.") from None
    if not parsed:
        raise ValidationError("Please select at least one category.")
    return parsed


def correct_answer_text(question: Question) -> Optional[str]:
    if isinstance(question, MultipleChoiceQuestion):
        for option in question.options:
            if option.is_correct:
                return option.text
        return None
    if isinstance(question, WrittenResponseQuestion):
        return question.primary_answer
    raise TypeError(f"Unsupported question type: {type(question).__name__}")


def _complete(conn: sqlite3.Connection, session: QuizSession, now: datetime) -> None:
    started = datetime.fromisoformat(session.started_at)
    store.append_attempt(conn, Attempt(
        user_id=session.user_id,
        total_questions=len(session.questions),
        correct_answers=session.correct_count,
        categories=session.categories,
        mode=session.mode,
        duration_seconds=max(0, int((now - started).total_seconds())),
        created_at=now,
    ))
    session.state = SessionState.COMPLETED
    logger.info(
        "Session {} completed: {}/{} correct",
        session.session_id, session.correct_count, len(session.questions),
    )


def _load_owned(conn: sqlite3.Connection, user_id: int, session_id: str) -> QuizSession:
    session = store.load_session(conn, session_id)
    if session is None or session.user_id != user_id:
        raise SessionNotFoundError(session_id)
    return session


def start_session(
    db_path: str,
    user_id: int,
    mode,
    categories: Iterable[int],
    question_count: Optional[int] = None,
    difficulty_band=None,
    now: Optional[datetime] = None,
) -> QuizSession:
    """Create a session and populate its questions.

    Quick quizzes always use the configured fixed size. When the pool holds
    fewer questions than requested the session is simply shorter; an empty
    pool gives a session that is already completed.
    """
    mode = _parse_mode(mode)
    categories = _parse_categories(categories)
    settings = get_settings()
    if mode == QuizMode.QUICK:
        count = settings.quick_question_count
    else:
        count = settings.default_question_count if question_count is None else int(question_count)
    if count < 1:
        raise ValidationError("Number of questions must be at least 1.")
    band = _parse_band(difficulty_band) if mode == QuizMode.TEST else None

    now = now or datetime.now()
    session = QuizSession(
        session_id=uuid.uuid4().hex,
        user_id=user_id,
        mode=mode,
        categories=categories,
        target_question_count=count,
        started_at=now.isoformat(timespec="seconds"),
        difficulty_band=band,
        show_results_at_end=mode in DEFERRED_FEEDBACK_MODES,
    )

    with user_lock(user_id), closing(get_connection(db_path)) as conn:
        with transaction(conn):
            session.questions = [
                SessionQuestion(question_id=qid)
                for qid in selector.select_questions(conn, session, now)
            ]
            session.state = SessionState.IN_PROGRESS
            if not session.questions:
                _complete(conn, session, now)
            store.save_session(conn, session, now)

    logger.info(
        "User {} started {} session {} with {} questions",
        user_id, mode.value, session.session_id, len(session.questions),
    )
    return session


def get_session(db_path: str, user_id: int, session_id: str) -> QuizSession:
    with closing(get_connection(db_path)) as conn:
        return _load_owned(conn, user_id, session_id)


def current_question(
    db_path: str, user_id: int, session_id: str, now: Optional[datetime] = None
) -> Optional[Question]:
    """The question to show next, or None when the session is completed."""
    now = now or datetime.now()
    with user_lock(user_id), closing(get_connection(db_path)) as conn:
        with transaction(conn):
            session = _load_owned(conn, user_id, session_id)
            resolving = session.pending_target is not None
            question = selector.select_next(conn, session, now)
            if resolving:
                store.save_session(conn, session, now)
    return question


def submit_answer(
    db_path: str,
    user_id: int,
    session_id: str,
    index: int,
    submission,
    question_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> AnswerResult:
    """Evaluate and record the answer for slot ``index`` and advance.

    ``index`` must be the session's current position; anything else is a
    stale (for example double-submitted) answer and is rejected untouched.
    The answer log, counters, adaptive lookahead and the final attempt row
    are written in one transaction.
    """
    now = now or datetime.now()
    with user_lock(user_id), closing(get_connection(db_path)) as conn:
        with transaction(conn):
            session = _load_owned(conn, user_id, session_id)
            if session.completed or index != session.current_index:
                raise StaleSubmissionError()

            question = selector.select_next(conn, session, now)
            if question is None:
                raise ValidationError(f"Question {session.current_slot.question_id} no longer exists")
            if question_id is not None and question_id != question.id:
                raise StaleSubmissionError()

            is_correct = evaluate(question, submission)

            slot = session.current_slot
            slot.is_correct = is_correct
            log = AnswerLog(
                user_id=user_id,
                question_id=question.id,
                is_correct=is_correct,
                mode=session.mode,
                created_at=now,
            )
            if isinstance(question, MultipleChoiceQuestion):
                slot.answer_id = log.answer_id = int(submission)
            else:
                slot.written_answer = log.written_answer = submission.strip()
            store.append_answer_log(conn, log)

            if is_correct:
                session.correct_count += 1
            session.current_index += 1

            if session.mode == QuizMode.ADAPTIVE and session.current_slot is not None:
                session.pending_target = selector.next_target(
                    questions.read_difficulty(conn, question.id), is_correct
                )
            if session.current_index == len(session.questions):
                _complete(conn, session, now)
            store.save_session(conn, session, now)

    logger.debug(
        "User {} answered question {} in session {}: {}",
        user_id, question.id, session_id, "correct" if is_correct else "incorrect",
    )
    return AnswerResult(
        index=index,
        question_id=question.id,
        is_correct=is_correct,
        show_feedback=not session.show_results_at_end,
        explanation=question.explanation,
        correct_answer=correct_answer_text(question),
        correct_count=session.correct_count,
        current_index=session.current_index,
        completed=session.completed,
    )


def rate_question(
    db_path: str,
    user_id: int,
    session_id: str,
    index: int,
    rating=Rating.UNRATED,
    time_factor: float = 1.0,
    now: Optional[datetime] = None,
) -> RatingResult:
    """Record the learner's difficulty rating for an answered slot.

    A real rating drifts the question's shared difficulty; ``unrated``
    leaves it alone. Spaced-repetition sessions review the card either way.
    Each slot can be rated once.
    """
    rating = parse_rating(rating)
    now = now or datetime.now()
    with user_lock(user_id), closing(get_connection(db_path)) as conn:
        with transaction(conn):
            session = _load_owned(conn, user_id, session_id)
            if index < 0 or index >= session.current_index:
                raise ValidationError("Only answered questions can be rated.")
            slot = session.questions[index]
            if slot.rated:
                raise StaleSubmissionError("Question was already rated")

            result = RatingResult(question_id=slot.question_id, rating=rating)
            if rating != Rating.UNRATED:
                store.set_question_status(conn, user_id, slot.question_id, rating.value)
                result.difficulty = apply_rating(conn, slot.question_id, rating)
                slot.rating = rating.value
            if session.mode == QuizMode.SPACED_REPETITION:
                quality = calculate_quality(bool(slot.is_correct), time_factor)
                result.card = scheduler.review_in(conn, user_id, slot.question_id, quality, now)
            slot.rated = True
            store.save_session(conn, session, now)
    return result


def summarize(session: QuizSession) -> dict:
    total = len(session.questions)
    return {
        "session_id": session.session_id,
        "mode": session.mode.value,
        "total_questions": total,
        "answered": session.current_index,
        "correct_answers": session.correct_count,
        "accuracy": round(session.correct_count / total * 100, 1) if total else 0.0,
        "completed": session.completed,
        "results": [
            {
                "question_id": slot.question_id,
                "is_correct": slot.is_correct,
                "rating": slot.rating,
            }
            for slot in session.questions[:session.current_index]
        ],
    }


def discard_session(db_path: str, user_id: int, session_id: str) -> None:
    with user_lock(user_id), closing(get_connection(db_path)) as conn:
        with transaction(conn):
            _load_owned(conn, user_id, session_id)
            store.delete_session(conn, session_id)
