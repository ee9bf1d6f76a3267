"""Attempt history and per-category performance for a user."""
from adaptive_quiz.db import get_connection


def get_user_history(db_path: str, user_id: int, limit: int = 5) -> list[dict]:
    """Most recent attempts first, with category names resolved."""
    conn = get_connection(db_path)
    attempts = conn.execute(
        """SELECT * FROM user_attempts WHERE user_id = ?
        ORDER BY created_at DESC, id DESC LIMIT ?""",
        (user_id, limit),
    ).fetchall()
    names = {row["id"]: row["name"] for row in conn.execute("SELECT id, name FROM categories")}
    conn.close()
    history = []
    for a in attempts:
        category_ids = [int(c) for c in a["categories"].split(",") if c]
        history.append({
            "attempt_id": a["id"],
            "mode": a["quiz_type"],
            "total_questions": a["total_questions"],
            "correct_answers": a["correct_answers"],
            "score": round(a["correct_answers"] / a["total_questions"] * 100, 1) if a["total_questions"] else 0.0,
            "duration_seconds": a["duration_seconds"],
            "category_names": ", ".join(names[c] for c in category_ids if c in names),
            "created_at": a["created_at"],
        })
    return history


def get_category_performance(db_path: str, user_id: int) -> list[dict]:
    """Accuracy per category, best first."""
    conn = get_connection(db_path)
    rows = conn.execute(
        """SELECT c.id, c.name, COUNT(qa.id) AS total, SUM(qa.is_correct) AS correct
        FROM quiz_answers qa
        JOIN questions q ON qa.question_id = q.id
        JOIN categories c ON q.category_id = c.id
        WHERE qa.user_id = ?
        GROUP BY c.id
        ORDER BY (CAST(correct AS REAL) / total) DESC, c.id""",
        (user_id,),
    ).fetchall()
    conn.close()
    return [
        {
            "category_id": r["id"],
            "category_name": r["name"],
            "total": r["total"],
            "correct": r["correct"],
            "percentage": round((r["correct"] / r["total"]) * 100, 1),
        }
        for r in rows
    ]


def get_weak_categories(db_path: str, user_id: int, threshold: float = 70.0) -> list[dict]:
    """Categories scoring below threshold, worst first."""
    weak = [c for c in get_category_performance(db_path, user_id) if c["percentage"] < threshold]
    return sorted(weak, key=lambda c: c["percentage"])
