"""Question bank access, answer recording and quiz assembly."""
import json
import logging
import random
from datetime import datetime
from typing import Optional

from exam_tutor.db import get_connection
from exam_tutor.models import DailyStats, Question
from exam_tutor.schemas import MalformedPayload, decode_solve_input, decode_structure

logger = logging.getLogger(__name__)

MIN_READING_QUESTIONS = 5
QUESTIONS_PER_SUBJECT = 20


def _row_to_question(row) -> Question:
    structure = None
    if row["structure_analysis"]:
        structure = decode_structure(json.loads(row["structure_analysis"]))
    solve_input = None
    if row["solve_input"]:
        try:
            solve_input = decode_solve_input(json.loads(row["solve_input"]))
        except MalformedPayload:
            logger.warning("Question %s has an undecodable solve input", row["id"])
    return Question(
        id=row["id"],
        subject=row["subject"],
        certification=row["certification"],
        question_text=row["question_text"],
        options=json.loads(row["options"]),
        answer_index=row["answer_index"],
        year=row["year"],
        exam_session=row["exam_session"],
        question_number=row["question_number"],
        explanation=row["explanation"] or "",
        topic_category=row["topic_category"],
        difficulty_level=row["difficulty_level"],
        problem_type=row["problem_type"],
        problem_class=row["problem_class"],
        structure_analysis=structure,
        solve_input=solve_input,
        diagram_url=row["diagram_url"],
        ingestion_job_id=row["ingestion_job_id"],
    )


def _build_filter(subject=None, certification=None, year=None, topic=None) -> tuple[str, list]:
    clauses, params = [], []
    for column, value in (
        ("subject", subject), ("certification", certification),
        ("year", year), ("topic_category", topic),
    ):
        if value is not None:
            clauses.append(f"{column} = ?")
            params.append(value)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    return where, params


def load_questions(
    db_path: str,
    subject: Optional[str] = None,
    certification: Optional[str] = None,
    year: Optional[int] = None,
    topic: Optional[str] = None,
    limit: Optional[int] = None,
    shuffle: bool = False,
    exclude_ids=(),
) -> list[Question]:
    """Load questions matching the filter, optionally in random order."""
    where, params = _build_filter(subject, certification, year, topic)
    exclude_ids = list(exclude_ids)
    if exclude_ids:
        placeholders = ", ".join("?" for _ in exclude_ids)
        where += (" AND " if where else "WHERE ") + f"id NOT IN ({placeholders})"
        params.extend(exclude_ids)
    order = "ORDER BY RANDOM()" if shuffle else "ORDER BY id"
    sql = f"SELECT * FROM questions {where} {order}"
    if limit is not None:
        sql += " LIMIT ?"
        params.append(limit)
    conn = get_connection(db_path)
    rows = conn.execute(sql, params).fetchall()
    conn.close()
    return [_row_to_question(r) for r in rows]


def get_question_by_id(db_path: str, question_id: int) -> Question | None:
    conn = get_connection(db_path)
    row = conn.execute("SELECT * FROM questions WHERE id = ?", (question_id,)).fetchone()
    conn.close()
    return _row_to_question(row) if row else None


def get_total_question_count(db_path: str, certification: Optional[str] = None) -> int:
    where, params = _build_filter(certification=certification)
    conn = get_connection(db_path)
    count = conn.execute(f"SELECT COUNT(*) FROM questions {where}", params).fetchone()[0]
    conn.close()
    return count


def save_question(db_path: str, question: Question) -> int:
    """Insert a question and return its new id. ``question.id`` is ignored."""
    structure = question.structure_analysis
    solve_input = question.solve_input
    conn = get_connection(db_path)
    cursor = conn.execute(
        """INSERT INTO questions
        (subject, certification, year, exam_session, question_number, question_text, options,
         answer_index, explanation, topic_category, difficulty_level, problem_type, problem_class,
         structure_analysis, solve_input, diagram_url, ingestion_job_id)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            question.subject, question.certification, question.year, question.exam_session,
            question.question_number, question.question_text,
            json.dumps(question.options, ensure_ascii=False), question.answer_index,
            question.explanation, question.topic_category, question.difficulty_level,
            question.problem_type,
            question.problem_class,
            structure.model_dump_json() if structure is not None else None,
            solve_input.model_dump_json() if solve_input is not None else None,
            question.diagram_url, question.ingestion_job_id,
        ),
    )
    conn.commit()
    question_id = cursor.lastrowid
    conn.close()
    return question_id


def update_question(db_path: str, question: Question) -> None:
    """Overwrite an existing question's editable fields."""
    structure = question.structure_analysis
    solve_input = question.solve_input
    conn = get_connection(db_path)
    cursor = conn.execute(
        """UPDATE questions SET
        subject = ?, certification = ?, year = ?, exam_session = ?, question_number = ?,
        question_text = ?, options = ?, answer_index = ?, explanation = ?, topic_category = ?,
        difficulty_level = ?, problem_type = ?, problem_class = ?, structure_analysis = ?,
        solve_input = ?, diagram_url = ?
        WHERE id = ?""",
        (
            question.subject, question.certification, question.year, question.exam_session,
            question.question_number, question.question_text,
            json.dumps(question.options, ensure_ascii=False), question.answer_index,
            question.explanation, question.topic_category, question.difficulty_level,
            question.problem_type, question.problem_class,
            structure.model_dump_json() if structure is not None else None,
            solve_input.model_dump_json() if solve_input is not None else None,
            question.diagram_url, question.id,
        ),
    )
    conn.commit()
    conn.close()
    if cursor.rowcount == 0:
        raise LookupError(f"Question {question.id} does not exist")


def delete_question(db_path: str, question_id: int) -> None:
    """Delete a question along with its answer history and wrong-answer entries."""
    conn = get_connection(db_path)
    conn.execute("DELETE FROM wrong_answers WHERE question_id = ?", (question_id,))
    conn.execute("DELETE FROM quiz_results WHERE question_id = ?", (question_id,))
    cursor = conn.execute("DELETE FROM questions WHERE id = ?", (question_id,))
    if cursor.rowcount == 0:
        conn.rollback()
        conn.close()
        raise LookupError(f"Question {question_id} does not exist")
    conn.commit()
    conn.close()
    logger.info("Deleted question %s", question_id)


def find_duplicate_texts(db_path: str, texts) -> set[str]:
    """The subset of ``texts`` already present in the bank as question text."""
    texts = list(dict.fromkeys(texts))
    if not texts:
        return set()
    placeholders = ", ".join("?" for _ in texts)
    conn = get_connection(db_path)
    rows = conn.execute(
        f"SELECT DISTINCT question_text FROM questions WHERE question_text IN ({placeholders})",
        texts,
    ).fetchall()
    conn.close()
    return {r["question_text"] for r in rows}


def record_quiz_answer(db_path: str, user_id: str, question_id: int, answer_index: int) -> bool:
    """Record an answer. A wrong answer is added to (or bumped in) the wrong-answer list."""
    from exam_tutor.review import upsert_wrong_answer

    conn = get_connection(db_path)
    question = conn.execute(
        "SELECT answer_index FROM questions WHERE id = ?", (question_id,)
    ).fetchone()
    if question is None:
        conn.close()
        raise LookupError(f"Question {question_id} does not exist")
    is_correct = answer_index == question["answer_index"]
    conn.execute(
        """INSERT INTO quiz_results (user_id, question_id, user_answer_index, is_correct, answered_at)
        VALUES (?, ?, ?, ?, ?)""",
        (user_id, question_id, answer_index, int(is_correct), datetime.now().isoformat()),
    )
    conn.commit()
    conn.close()
    if not is_correct:
        upsert_wrong_answer(db_path, user_id, question_id)
    return is_correct


def build_reading_session(
    db_path: str, daily_stats: DailyStats, subject: str, certification: str
) -> list[Question]:
    """Random new-concept questions for today's subject, never fewer than five."""
    count = max(daily_stats.new_count, MIN_READING_QUESTIONS)
    questions = load_questions(
        db_path, subject=subject, certification=certification, limit=count, shuffle=True
    )
    logger.debug("Reading session for %s: %d/%d questions", subject, len(questions), count)
    return questions


def build_phase1_quiz(
    db_path: str, subject: str, certification: str, count: int = QUESTIONS_PER_SUBJECT
) -> list[Question]:
    return load_questions(
        db_path, subject=subject, certification=certification, limit=count, shuffle=True
    )


def generate_mock_exam(
    db_path: str, certification: str, subjects: list[str], per_subject: int = QUESTIONS_PER_SUBJECT
) -> list[Question]:
    """Full mock exam: up to ``per_subject`` random questions per subject, subjects mixed."""
    questions = []
    for subject in subjects:
        questions.extend(load_questions(
            db_path, subject=subject, certification=certification, limit=per_subject, shuffle=True
        ))
    random.shuffle(questions)
    return questions
