"""Wrong-answer tracking and review session assembly."""
import logging
from datetime import datetime
from typing import Optional

from exam_tutor.db import get_connection
from exam_tutor.models import DailyStats, ReviewSession, WrongAnswer
from exam_tutor.quiz import get_question_by_id, load_questions

logger = logging.getLogger(__name__)


class NoQuestionsAvailable(Exception):
    """Neither wrong answers nor fallback questions could fill a review session."""


def list_wrong_answers(db_path: str, user_id: str) -> list[WrongAnswer]:
    """Wrong answers for a user, most-missed first (ties keep insertion order)."""
    conn = get_connection(db_path)
    rows = conn.execute(
        """SELECT id, question_id, added_date, wrong_count FROM wrong_answers
        WHERE user_id = ?
        ORDER BY wrong_count DESC, id ASC""",
        (user_id,),
    ).fetchall()
    conn.close()
    return [
        WrongAnswer(
            record_id=r["id"],
            question_id=r["question_id"],
            added_date=r["added_date"],
            wrong_count=r["wrong_count"],
        )
        for r in rows
    ]


def upsert_wrong_answer(db_path: str, user_id: str, question_id: int) -> None:
    """Add a wrong answer, or bump its count if the user already missed it.

    The increment happens inside a single statement so concurrent misses of
    the same question cannot lose an update.
    """
    conn = get_connection(db_path)
    conn.execute(
        """INSERT INTO wrong_answers (user_id, question_id, added_date, wrong_count)
        VALUES (?, ?, ?, 1)
        ON CONFLICT(user_id, question_id) DO UPDATE SET wrong_count = wrong_count + 1""",
        (user_id, question_id, datetime.now().isoformat()),
    )
    conn.commit()
    conn.close()


def remove_wrong_answer(db_path: str, user_id: str, question_id: int) -> None:
    conn = get_connection(db_path)
    conn.execute(
        "DELETE FROM wrong_answers WHERE user_id = ? AND question_id = ?",
        (user_id, question_id),
    )
    conn.commit()
    conn.close()


def get_due_review_counts(wrong_answers: list[WrongAnswer], now: Optional[datetime] = None) -> dict:
    """Bucket wrong answers by age: 30+ days old, and 7 to 30 days old."""
    now = now or datetime.now()
    seven = thirty = 0
    for wa in wrong_answers:
        age_days = (now - datetime.fromisoformat(wa.added_date)).total_seconds() / 86400
        if age_days >= 30:
            thirty += 1
        elif age_days >= 7:
            seven += 1
    return {"seven": seven, "thirty": thirty}


def build_review_session(
    db_path: str,
    user_id: str,
    daily_stats: DailyStats,
    fallback_subject: str,
    certification: str,
) -> ReviewSession:
    """Assemble today's review: wrong answers first, then reinforcement questions.

    Up to ``daily_stats.review_count`` of the user's most-missed questions are
    taken. If that falls short of the quota, random questions from
    ``fallback_subject`` that are not already in the session fill the gap.

    Raises:
        NoQuestionsAvailable: if the session would be empty.
    """
    target = daily_stats.review_count
    questions = []
    for wa in list_wrong_answers(db_path, user_id)[:target]:
        question = get_question_by_id(db_path, wa.question_id)
        if question:
            questions.append(question)
    wrong_count = len(questions)

    if len(questions) < target:
        extras = load_questions(
            db_path,
            subject=fallback_subject,
            certification=certification,
            limit=target - len(questions),
            shuffle=True,
            exclude_ids=[q.id for q in questions],
        )
        questions.extend(extras)

    if not questions:
        raise NoQuestionsAvailable(
            f"No wrong answers and no {fallback_subject} questions to review"
        )

    logger.debug(
        "Review session for %s: %d wrong answers, %d reinforcement",
        user_id, wrong_count, len(questions) - wrong_count,
    )
    return ReviewSession(
        questions=questions,
        wrong_answer_count=wrong_count,
        reinforced=len(questions) > wrong_count,
    )
