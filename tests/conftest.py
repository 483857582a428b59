import pytest

from exam_tutor.db import init_db
from exam_tutor.models import Question
from exam_tutor.quiz import save_question


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_tutor.db")
    return db_path


@pytest.fixture
def bank_db(tmp_db):
    """An initialized database with a small, predictable question bank."""
    init_db(tmp_db)
    for subject, count in (("회로이론", 12), ("전력공학", 8)):
        for n in range(count):
            add_question(tmp_db, subject=subject, text=f"{subject} 문제 {n + 1}")
    return tmp_db


def add_question(db_path, subject="회로이론", certification="전기기사", text="문제", answer_index=0, **kwargs):
    return save_question(db_path, Question(
        id=0,
        subject=subject,
        certification=certification,
        question_text=text,
        options=["1", "2", "3", "4"],
        answer_index=answer_index,
        **kwargs,
    ))
