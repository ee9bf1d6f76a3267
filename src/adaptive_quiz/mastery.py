"""Mastery score: answer volume x accuracy x difficulty multiplier.

Derived on demand from the answer log; nothing here is stored.
"""
from datetime import date, datetime, time, timedelta
from typing import Optional

from adaptive_quiz.db import get_connection, to_db_time
from adaptive_quiz.sm2 import round_half_up


def compute_score(total: int, correct: int, avg_difficulty: Optional[float]) -> int:
    if not total:
        return 0
    accuracy = correct / total
    return round_half_up(total * accuracy * max(1.0, avg_difficulty or 0.0))


def display_score(score: int) -> int:
    """Score rounded to the nearest hundred, for leaderboards."""
    return round_half_up(score / 100) * 100


def period_stats(db_path: str, user_id: int, start: datetime, end: datetime) -> dict:
    conn = get_connection(db_path)
    row = conn.execute(
        """SELECT COUNT(qa.id) AS total, SUM(qa.is_correct) AS correct,
            AVG(q.difficulty_value) AS avg_difficulty
        FROM quiz_answers qa
        JOIN questions q ON qa.question_id = q.id
        WHERE qa.user_id = ? AND qa.created_at BETWEEN ? AND ?""",
        (user_id, to_db_time(start), to_db_time(end)),
    ).fetchone()
    conn.close()
    total = row["total"] or 0
    correct = row["correct"] or 0
    avg_difficulty = row["avg_difficulty"] or 0.0
    return {
        "total_questions": total,
        "correct_answers": correct,
        "accuracy": round(correct / total * 100, 1) if total else 0.0,
        "avg_difficulty": round(avg_difficulty, 2),
        "mastery_score": compute_score(total, correct, avg_difficulty),
    }


def mastery_score(db_path: str, user_id: int, start: datetime, end: datetime) -> int:
    return period_stats(db_path, user_id, start, end)["mastery_score"]


def week_bounds(today: date, weeks_ago: int = 0) -> tuple[datetime, datetime]:
    """Monday 00:00:00 to Sunday 23:59:59 of the week ``weeks_ago`` weeks back."""
    monday = today - timedelta(days=today.weekday(), weeks=weeks_ago)
    sunday = monday + timedelta(days=6)
    return datetime.combine(monday, time.min), datetime.combine(sunday, time(23, 59, 59))


def weekly_performance(
    db_path: str, user_id: int, weeks_ago: int = 0, today: Optional[date] = None
) -> dict:
    start, end = week_bounds(today or date.today(), weeks_ago)
    stats = period_stats(db_path, user_id, start, end)
    stats["date_range"] = f"{start:%b %d} - {end:%b %d, %Y}"
    return stats


def compare_weekly_performance(db_path: str, user_id: int, today: Optional[date] = None) -> dict:
    return {
        "current": weekly_performance(db_path, user_id, 0, today),
        "previous": weekly_performance(db_path, user_id, 1, today),
    }
