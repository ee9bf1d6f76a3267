"""Seed the database with a small sample question pool."""
from contextlib import closing

from adaptive_quiz.db import get_connection, transaction
from adaptive_quiz.models import QuestionType
from adaptive_quiz.questions import add_category, add_question


def _mc(text, correct, wrong, difficulty, explanation=""):
    options = [{"text": correct, "is_correct": True}] + [{"text": w} for w in wrong]
    return {
        "type": QuestionType.MULTIPLE_CHOICE, "text": text, "options": options,
        "difficulty": difficulty, "explanation": explanation,
    }


def _written(text, answers, difficulty, explanation=""):
    accepted = [{"text": a, "is_primary": i == 0} for i, a in enumerate(answers)]
    return {
        "type": QuestionType.WRITTEN_RESPONSE, "text": text, "answers": accepted,
        "difficulty": difficulty, "explanation": explanation,
    }


SAMPLE_POOL = {
    "Geography": [
        _written("What is the capital of France?", ["Paris"], 1.2),
        _mc("Which river flows through Cairo?", "Nile", ["Danube", "Amazon", "Tigris"], 1.8),
        _written("What is the largest ocean on Earth?", ["Pacific Ocean", "Pacific"], 2.0),
        _mc("Which country has the most natural lakes?", "Canada", ["Russia", "Finland", "Brazil"], 3.4,
            "Canada holds more than half of the world's natural lakes."),
        _written("What is the capital of Australia?", ["Canberra"], 3.6,
                 "Sydney is larger, but Canberra is the capital."),
        _mc("Lake Baikal is located in which country?", "Russia", ["Mongolia", "China", "Kazakhstan"], 4.2),
    ],
    "Science": [
        _written("What gas do plants absorb from the air?", ["Carbon dioxide", "CO2"], 1.5),
        _mc("What is the chemical symbol for gold?", "Au", ["Ag", "Gd", "Go"], 2.2),
        _mc("How many bones are in the adult human body?", "206", ["201", "212", "198"], 3.0),
        _written("Which planet has the shortest day?", ["Jupiter"], 3.8),
        _mc("Which particle carries the electromagnetic force?", "Photon", ["Gluon", "W boson", "Neutrino"], 4.4),
        _written("What is the powerhouse of the cell?", ["Mitochondria", "Mitochondrion"], 1.4),
    ],
    "History": [
        _mc("In which year did the Berlin Wall fall?", "1989", ["1991", "1987", "1985"], 2.0),
        _written("Who was the first person to walk on the Moon?", ["Neil Armstrong", "Armstrong"], 1.6),
        _mc("Which empire built Machu Picchu?", "Inca", ["Aztec", "Maya", "Olmec"], 2.6),
        _written("Which city was formerly called Byzantium?", ["Istanbul", "Constantinople"], 3.9),
        _mc("The Treaty of Westphalia was signed in which year?", "1648", ["1618", "1713", "1555"], 4.6),
    ],
}


def is_seeded(db_path: str) -> bool:
    """Check whether the database already holds categories."""
    conn = get_connection(db_path)
    count = conn.execute("SELECT COUNT(*) FROM categories").fetchone()[0]
    conn.close()
    return count > 0


def seed_all(db_path: str) -> None:
    """Insert the sample pool once; a seeded database is left untouched."""
    if is_seeded(db_path):
        return
    with closing(get_connection(db_path)) as conn:
        with transaction(conn):
            for category, items in SAMPLE_POOL.items():
                category_id = add_category(conn, category)
                for item in items:
                    add_question(
                        conn,
                        category_id,
                        item["text"],
                        question_type=item["type"],
                        difficulty_value=item["difficulty"],
                        explanation=item["explanation"],
                        options=item.get("options", ()),
                        acceptable_answers=item.get("answers", ()),
                    )
