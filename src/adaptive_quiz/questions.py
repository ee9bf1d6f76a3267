"""Question repository: lookups by id, category and difficulty."""
import sqlite3
from typing import Iterable, Optional

from adaptive_quiz.db import placeholders
from adaptive_quiz.errors import ValidationError
from adaptive_quiz.models import (
    AcceptableAnswer, AnswerOption, DifficultyBand, MultipleChoiceQuestion, Question,
    QuestionType, WrittenResponseQuestion,
)

ORDER_CLAUSES = {
    "random": "RANDOM()",
    "difficulty": "q.difficulty_value ASC, q.id ASC",
    "natural": "q.id ASC",
}


def _hydrate(conn: sqlite3.Connection, row: sqlite3.Row) -> Question:
    common = dict(
        id=row["id"],
        category_id=row["category_id"],
        text=row["question_text"],
        explanation=row["explanation"] or "",
        image_path=row["image_path"],
        difficulty_value=row["difficulty_value"],
    )
    if row["question_type"] == QuestionType.WRITTEN_RESPONSE.value:
        answers = conn.execute(
            "SELECT * FROM written_response_answers WHERE question_id = ? ORDER BY id",
            (row["id"],),
        ).fetchall()
        return WrittenResponseQuestion(
            **common,
            acceptable_answers=[
                AcceptableAnswer(a["id"], a["question_id"], a["answer_text"], bool(a["is_primary"]))
                for a in answers
            ],
        )
    options = conn.execute(
        "SELECT * FROM answers WHERE question_id = ? ORDER BY id", (row["id"],)
    ).fetchall()
    return MultipleChoiceQuestion(
        **common,
        options=[
            AnswerOption(o["id"], o["question_id"], o["answer_text"], bool(o["is_correct"]))
            for o in options
        ],
    )


def get_by_id(conn: sqlite3.Connection, question_id: int) -> Optional[Question]:
    row = conn.execute("SELECT * FROM questions WHERE id = ?", (question_id,)).fetchone()
    return _hydrate(conn, row) if row else None


def get_many(conn: sqlite3.Connection, ids: list[int]) -> list[Question]:
    """Fetch questions keeping the order of ``ids``; unknown ids are dropped."""
    if not ids:
        return []
    rows = conn.execute(
        f"SELECT * FROM questions WHERE id IN ({placeholders(ids)})", list(ids)
    ).fetchall()
    by_id = {row["id"]: row for row in rows}
    return [_hydrate(conn, by_id[i]) for i in ids if i in by_id]


def get_by_categories(
    conn: sqlite3.Connection,
    category_ids: Iterable[int],
    band: Optional[DifficultyBand] = None,
    exclude_ids: Iterable[int] = (),
    limit: Optional[int] = None,
    order: str = "random",
) -> list[Question]:
    category_ids = list(category_ids)
    exclude_ids = list(exclude_ids)
    if not category_ids:
        return []
    sql = f"SELECT * FROM questions q WHERE q.category_id IN ({placeholders(category_ids)})"
    params: list = list(category_ids)
    if band is not None:
        low, high = DifficultyBand(band).bounds
        sql += " AND q.difficulty_value BETWEEN ? AND ?"
        params += [low, high]
    if exclude_ids:
        sql += f" AND q.id NOT IN ({placeholders(exclude_ids)})"
        params += exclude_ids
    sql += f" ORDER BY {ORDER_CLAUSES[order]}"
    if limit is not None:
        sql += " LIMIT ?"
        params.append(limit)
    rows = conn.execute(sql, params).fetchall()
    return [_hydrate(conn, row) for row in rows]


def closest_to_difficulty(
    conn: sqlite3.Connection,
    category_ids: Iterable[int],
    target: float,
    exclude_ids: Iterable[int] = (),
) -> Optional[Question]:
    """Question whose difficulty is nearest ``target``; ties go to the lowest id."""
    category_ids = list(category_ids)
    exclude_ids = list(exclude_ids)
    if not category_ids:
        return None
    sql = f"""SELECT q.*, ABS(q.difficulty_value - ?) AS diff_distance
        FROM questions q
        WHERE q.category_id IN ({placeholders(category_ids)})"""
    params: list = [target, *category_ids]
    if exclude_ids:
        sql += f" AND q.id NOT IN ({placeholders(exclude_ids)})"
        params += exclude_ids
    sql += " ORDER BY diff_distance ASC, q.id ASC LIMIT 1"
    row = conn.execute(sql, params).fetchone()
    return _hydrate(conn, row) if row else None


def read_difficulty(conn: sqlite3.Connection, question_id: int) -> float:
    row = conn.execute(
        "SELECT difficulty_value FROM questions WHERE id = ?", (question_id,)
    ).fetchone()
    if row is None:
        raise ValidationError(f"Unknown question: {question_id}")
    return float(row["difficulty_value"])


def update_difficulty(conn: sqlite3.Connection, question_id: int, new_value: float) -> None:
    new_value = max(1.0, min(5.0, new_value))
    conn.execute(
        "UPDATE questions SET difficulty_value = ?, version = version + 1 WHERE id = ?",
        (new_value, question_id),
    )


def add_category(conn: sqlite3.Connection, name: str, description: str = "") -> int:
    cur = conn.execute(
        "INSERT INTO categories (name, description) VALUES (?, ?)", (name, description)
    )
    return cur.lastrowid


def add_question(
    conn: sqlite3.Connection,
    category_id: int,
    text: str,
    question_type: QuestionType = QuestionType.MULTIPLE_CHOICE,
    difficulty_value: float = 3.0,
    explanation: str = "",
    image_path: Optional[str] = None,
    options: Iterable[dict] = (),
    acceptable_answers: Iterable[dict] = (),
) -> int:
    """Insert a question with its options or acceptable answers.

    ``options`` items are ``{"text", "is_correct"}`` dicts, and
    ``acceptable_answers`` items are ``{"text", "is_primary"}`` dicts.
    """
    question_type = QuestionType(question_type)
    cur = conn.execute(
        """INSERT INTO questions
        (category_id, question_text, explanation, image_path, question_type, difficulty_value)
        VALUES (?, ?, ?, ?, ?, ?)""",
        (category_id, text, explanation, image_path, question_type.value,
         max(1.0, min(5.0, difficulty_value))),
    )
    question_id = cur.lastrowid
    if question_type == QuestionType.MULTIPLE_CHOICE:
        for option in options:
            conn.execute(
                "INSERT INTO answers (question_id, answer_text, is_correct) VALUES (?, ?, ?)",
                (question_id, option["text"], int(option.get("is_correct", False))),
            )
    else:
        for answer in acceptable_answers:
            conn.execute(
                "INSERT INTO written_response_answers (question_id, answer_text, is_primary) VALUES (?, ?, ?)",
                (question_id, answer["text"], int(answer.get("is_primary", False))),
            )
    return question_id


def list_categories(conn: sqlite3.Connection) -> list[dict]:
    """All categories with their question counts."""
    rows = conn.execute(
        """SELECT c.id, c.name, c.description, COUNT(q.id) AS question_count
        FROM categories c LEFT JOIN questions q ON q.category_id = c.id
        GROUP BY c.id ORDER BY c.id"""
    ).fetchall()
    return [dict(r) for r in rows]
