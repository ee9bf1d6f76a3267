# tests/test_scheduler.py
from contextlib import closing
from datetime import timedelta

import pytest

from adaptive_quiz.db import get_connection
from adaptive_quiz.models import ReviewCard
from adaptive_quiz.scheduler import (
    apply_review, get_due_cards, get_new_cards, get_user_stats, initialize_card, new_card,
    process_review,
)
from adaptive_quiz import store


def _put_card(db_path, user_id, question_id, next_review_at, **fields):
    with closing(get_connection(db_path)) as conn:
        return store.upsert_card(conn, ReviewCard(
            user_id=user_id, question_id=question_id, next_review_at=next_review_at, **fields,
        ))


def test_new_card_is_due_tomorrow(now):
    card = new_card(1, 2, now)
    assert card.interval == 1
    assert card.ease_factor == 2.5
    assert card.repetitions == 0
    assert card.next_review_at == now + timedelta(days=1)


def test_initialize_card_is_idempotent(make_pool, tmp_db, now):
    _, (qid,) = make_pool([3.0])
    first = initialize_card(tmp_db, 1, qid, now=now)
    second = initialize_card(tmp_db, 1, qid, now=now + timedelta(days=3))
    assert first.id == second.id
    assert second.next_review_at == now + timedelta(days=1)
    with closing(get_connection(tmp_db)) as conn:
        assert conn.execute("SELECT COUNT(*) FROM sr_cards").fetchone()[0] == 1


def test_apply_review_schedules_from_now(now):
    card = ReviewCard(user_id=1, question_id=2, next_review_at=now, repetitions=2, interval=6)
    reviewed = apply_review(card, 4, now)
    assert reviewed.interval == 15
    assert reviewed.repetitions == 3
    assert reviewed.next_review_at == now + timedelta(days=15)
    assert reviewed.last_reviewed_at == now
    # pure
    assert card.interval == 6


def test_process_review_updates_card_and_logs(make_pool, tmp_db, now):
    _, (qid,) = make_pool([3.0])
    card = process_review(tmp_db, 1, qid, 5, now=now)
    assert card.repetitions == 1
    assert card.interval == 1
    assert card.ease_factor == pytest.approx(2.6)
    assert card.next_review_at == now + timedelta(days=1)

    card = process_review(tmp_db, 1, qid, 5, now=now + timedelta(days=1))
    assert card.interval == 6
    card = process_review(tmp_db, 1, qid, 1, now=now + timedelta(days=7))
    assert card.repetitions == 0
    assert card.interval == 1

    with closing(get_connection(tmp_db)) as conn:
        log = conn.execute("SELECT quality, interval FROM sr_review_log ORDER BY id").fetchall()
    assert [(r["quality"], r["interval"]) for r in log] == [(5, 1), (5, 6), (1, 1)]


def test_cards_are_per_user(make_pool, tmp_db, now):
    _, (qid,) = make_pool([3.0])
    a = process_review(tmp_db, 1, qid, 5, now=now)
    b = initialize_card(tmp_db, 2, qid, now=now)
    assert a.id != b.id
    assert b.repetitions == 0


def test_get_due_cards_orders_by_due_date_then_difficulty(make_pool, tmp_db, now):
    category_id, ids = make_pool([4.0, 2.0, 3.0, 1.0])
    _put_card(tmp_db, 1, ids[0], now - timedelta(days=2))
    _put_card(tmp_db, 1, ids[1], now - timedelta(days=1))
    _put_card(tmp_db, 1, ids[2], now - timedelta(days=1))
    _put_card(tmp_db, 1, ids[3], now + timedelta(days=1))
    due = get_due_cards(tmp_db, 1, [category_id], now=now)
    assert [c.question_id for c in due] == [ids[0], ids[1], ids[2]]
    assert len(get_due_cards(tmp_db, 1, limit=2, now=now)) == 2
    assert get_due_cards(tmp_db, 2, now=now) == []


def test_get_due_cards_filters_categories(make_pool, tmp_db, now):
    cat_a, (qa,) = make_pool([3.0], name="A")
    cat_b, (qb,) = make_pool([3.0], name="B")
    _put_card(tmp_db, 1, qa, now - timedelta(hours=1))
    _put_card(tmp_db, 1, qb, now - timedelta(hours=1))
    assert [c.question_id for c in get_due_cards(tmp_db, 1, [cat_b], now=now)] == [qb]


def test_get_new_cards_skips_carded_questions(make_pool, tmp_db, now):
    category_id, ids = make_pool([3.0, 1.0, 2.0, 4.0])
    initialize_card(tmp_db, 1, ids[1], now=now)
    assert get_new_cards(tmp_db, 1, [category_id]) == [ids[2], ids[0], ids[3]]
    assert get_new_cards(tmp_db, 1, [category_id], limit=1) == [ids[2]]
    assert get_new_cards(tmp_db, 2, [category_id], limit=1) == [ids[1]]


def test_get_user_stats_empty(make_pool, tmp_db, now):
    make_pool([3.0])
    stats = get_user_stats(tmp_db, 1, now=now)
    assert stats["total_cards"] == 0
    assert stats["average_ease_factor"] == 0.0


def test_get_user_stats_buckets(make_pool, tmp_db, now):
    _, ids = make_pool([3.0] * 5)
    _put_card(tmp_db, 1, ids[0], now - timedelta(days=1), ease_factor=2.0)
    _put_card(tmp_db, 1, ids[1], now + timedelta(hours=12), ease_factor=3.0)
    _put_card(tmp_db, 1, ids[2], now + timedelta(days=1, hours=6))
    _put_card(tmp_db, 1, ids[3], now + timedelta(days=5))
    _put_card(tmp_db, 1, ids[4], now + timedelta(days=40), interval=40)
    stats = get_user_stats(tmp_db, 1, now=now)
    assert stats["total_cards"] == 5
    assert stats["cards_due_today"] == 2
    assert stats["cards_due_tomorrow"] == 1
    assert stats["cards_due_this_week"] == 3
    assert stats["mastered_cards"] == 1
    assert stats["average_ease_factor"] == 2.5
