"""Seed the database with certifications, subjects, and a starter question bank."""
import json
from pathlib import Path

from exam_tutor.db import get_connection
from exam_tutor.models import Question
from exam_tutor.quiz import save_question

CONTENT_DIR = Path(__file__).parent / "content"


def is_seeded(db_path: str) -> bool:
    """Check whether the database has already been seeded with certifications."""
    conn = get_connection(db_path)
    count = conn.execute("SELECT COUNT(*) FROM certifications").fetchone()[0]
    conn.close()
    return count > 0


def seed_certifications(db_path: str) -> None:
    """Insert certifications and their subjects, in exam order, from certifications.json."""
    data = json.loads((CONTENT_DIR / "certifications.json").read_text(encoding="utf-8"))
    conn = get_connection(db_path)
    for cert in data["certifications"]:
        conn.execute(
            "INSERT OR IGNORE INTO certifications (name, description) VALUES (?, ?)",
            (cert["name"], cert["description"]),
        )
        for position, subject in enumerate(cert["subjects"]):
            conn.execute(
                "INSERT OR IGNORE INTO subjects (certification, name, position) VALUES (?, ?, ?)",
                (cert["name"], subject, position),
            )
    conn.commit()
    conn.close()


def seed_questions(db_path: str) -> None:
    """Insert the starter questions from questions.json."""
    data = json.loads((CONTENT_DIR / "questions.json").read_text(encoding="utf-8"))
    for q in data["questions"]:
        save_question(db_path, Question(
            id=0,
            subject=q["subject"],
            certification=q["certification"],
            question_text=q["question_text"],
            options=q["options"],
            answer_index=q["answer_index"],
            year=q.get("year"),
            explanation=q.get("explanation", ""),
            topic_category=q.get("topic_category"),
            difficulty_level=q.get("difficulty_level"),
            problem_type=q.get("problem_type"),
        ))


def seed_all(db_path: str) -> None:
    """Run all seed functions in order."""
    if is_seeded(db_path):
        return
    seed_certifications(db_path)
    seed_questions(db_path)


def get_certifications(db_path: str) -> list[str]:
    conn = get_connection(db_path)
    rows = conn.execute("SELECT name FROM certifications ORDER BY rowid").fetchall()
    conn.close()
    return [r["name"] for r in rows]


def get_subjects_by_certification(db_path: str, certification: str) -> list[str]:
    conn = get_connection(db_path)
    rows = conn.execute(
        "SELECT name FROM subjects WHERE certification = ? ORDER BY position",
        (certification,),
    ).fetchall()
    conn.close()
    return [r["name"] for r in rows]
