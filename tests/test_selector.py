# tests/test_selector.py
from contextlib import closing
from datetime import timedelta

import pytest

from adaptive_quiz.db import get_connection
from adaptive_quiz.models import DifficultyBand, QuizMode, QuizSession, ReviewCard
from adaptive_quiz.selector import next_target, select_questions
from adaptive_quiz import store


def _session(mode, categories, count, band=None, user_id=1):
    return QuizSession(
        session_id="s1", user_id=user_id, mode=mode, categories=categories,
        target_question_count=count, started_at="2026-03-04T12:00:00", difficulty_band=band,
    )


def _due(conn, question_ids, now, user_id=1):
    for qid in question_ids:
        store.upsert_card(conn, ReviewCard(
            user_id=user_id, question_id=qid, next_review_at=now - timedelta(hours=1),
        ))


def test_next_target_steps_and_clamps():
    assert next_target(3.0, True) == pytest.approx(3.5)
    assert next_target(3.0, False) == pytest.approx(2.5)
    assert next_target(4.8, True) == 5.0
    assert next_target(1.2, False) == 1.0
    assert next_target(3.0, True, step=0.25) == pytest.approx(3.25)


def test_quick_mode_draws_requested_count(make_pool, tmp_db, now):
    category_id, ids = make_pool([3.0] * 15)
    with closing(get_connection(tmp_db)) as conn:
        chosen = select_questions(conn, _session(QuizMode.QUICK, [category_id], 10), now)
    assert len(chosen) == 10
    assert len(set(chosen)) == 10
    assert set(chosen) <= set(ids)


def test_short_pool_gives_shorter_session(make_pool, tmp_db, now):
    category_id, ids = make_pool([3.0] * 3)
    with closing(get_connection(tmp_db)) as conn:
        chosen = select_questions(conn, _session(QuizMode.QUICK, [category_id], 10), now)
    assert sorted(chosen) == sorted(ids)


def test_test_mode_respects_band(make_pool, tmp_db, now):
    category_id, ids = make_pool([1.0, 1.5, 2.5, 3.0, 4.5, 5.0])
    with closing(get_connection(tmp_db)) as conn:
        chosen = select_questions(
            conn, _session(QuizMode.TEST, [category_id], 10, band=DifficultyBand.HARD), now,
        )
    assert sorted(chosen) == [ids[4], ids[5]]


def test_adaptive_mode_starts_easy(make_pool, tmp_db, now):
    category_id, ids = make_pool([4.0, 2.0, 5.0, 1.0])
    with closing(get_connection(tmp_db)) as conn:
        chosen = select_questions(conn, _session(QuizMode.ADAPTIVE, [category_id], 2), now)
    assert chosen == [ids[3], ids[1]]


def test_spaced_repetition_mixes_due_and_new(make_pool, tmp_db, now):
    due_category, due_ids = make_pool([4.5] * 4, name="Due")
    new_category, new_ids = make_pool([1.0 + i * 0.1 for i in range(20)], name="New")
    with closing(get_connection(tmp_db)) as conn:
        _due(conn, due_ids, now)
        session = _session(QuizMode.SPACED_REPETITION, [due_category, new_category], 10)
        chosen = select_questions(conn, session, now)
    assert len(chosen) == 10
    # all four due cards plus the six easiest unseen questions
    assert set(chosen) == set(due_ids) | set(new_ids[:6])


def test_spaced_repetition_fills_with_due_when_new_run_out(make_pool, tmp_db, now):
    category_id, ids = make_pool([3.0] * 13)
    with closing(get_connection(tmp_db)) as conn:
        _due(conn, ids[:12], now)
        chosen = select_questions(conn, _session(QuizMode.SPACED_REPETITION, [category_id], 10), now)
    assert len(chosen) == 10
    assert ids[12] in chosen


def test_spaced_repetition_tops_up_from_pool(make_pool, tmp_db, now):
    category_id, ids = make_pool([3.0] * 5)
    with closing(get_connection(tmp_db)) as conn:
        # cards exist but none are due and none are new
        for qid in ids:
            store.upsert_card(conn, ReviewCard(user_id=1, question_id=qid, next_review_at=now + timedelta(days=3)))
        chosen = select_questions(conn, _session(QuizMode.SPACED_REPETITION, [category_id], 4), now)
    assert len(chosen) == 4
    assert set(chosen) <= set(ids)


def test_unsupported_mode(make_pool, tmp_db, now):
    category_id, _ = make_pool([3.0])
    session = _session(QuizMode.QUICK, [category_id], 1)
    session.mode = "bogus"
    with closing(get_connection(tmp_db)) as conn:
        with pytest.raises(TypeError):
            select_questions(conn, session, now)
