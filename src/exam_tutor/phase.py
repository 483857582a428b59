"""Phase 1 mastery tracking and the Phase 2 mock-exam gate.

A subject is ready for Phase 2 once its three most recent Phase 1 quizzes
all scored at least 70%. Readiness is always derived from the stored
history, so a new weak result can close the gate again.
"""
import logging
from datetime import datetime
from typing import Optional

from exam_tutor.db import get_connection
from exam_tutor.models import PhaseHistoryEntry, PhaseStatus

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 5
READY_STREAK = 3
READY_ACCURACY = 70.0


def is_ready(history: list[PhaseHistoryEntry]) -> bool:
    recent = history[:READY_STREAK]
    return len(recent) == READY_STREAK and all(e.accuracy >= READY_ACCURACY for e in recent)


def record_phase1_result(
    status: Optional[PhaseStatus],
    accuracy: float,
    total_questions: int,
    correct_count: int,
    timestamp: str,
) -> PhaseStatus:
    """Return the subject's status with this result prepended."""
    entry = PhaseHistoryEntry(
        accuracy=accuracy,
        total_questions=total_questions,
        correct_count=correct_count,
        timestamp=timestamp,
    )
    previous = status.history if status else []
    history = [entry] + previous[:HISTORY_LIMIT - 1]
    return PhaseStatus(history=history, ready=is_ready(history))


def can_start_phase2(all_subjects: list[str], phase_statuses: dict[str, PhaseStatus]) -> bool:
    """Phase 2 opens only when every subject of the certification is ready."""
    if not all_subjects:
        return False
    return all(
        subject in phase_statuses and phase_statuses[subject].ready
        for subject in all_subjects
    )


def load_phase_statuses(db_path: str, user_id: str) -> dict[str, PhaseStatus]:
    conn = get_connection(db_path)
    rows = conn.execute(
        """SELECT subject, accuracy, total_questions, correct_count, recorded_at
        FROM phase_history WHERE user_id = ?
        ORDER BY recorded_at DESC, id DESC""",
        (user_id,),
    ).fetchall()
    conn.close()
    histories: dict[str, list[PhaseHistoryEntry]] = {}
    for r in rows:
        history = histories.setdefault(r["subject"], [])
        if len(history) < HISTORY_LIMIT:
            history.append(PhaseHistoryEntry(
                accuracy=r["accuracy"],
                total_questions=r["total_questions"],
                correct_count=r["correct_count"],
                timestamp=r["recorded_at"],
            ))
    return {
        subject: PhaseStatus(history=history, ready=is_ready(history))
        for subject, history in histories.items()
    }


def save_phase_result(
    db_path: str,
    user_id: str,
    subject: str,
    total_questions: int,
    correct_count: int,
    timestamp: Optional[str] = None,
) -> PhaseStatus:
    """Persist a finished Phase 1 quiz and return the subject's updated status."""
    if total_questions <= 0:
        raise ValueError("A Phase 1 result needs at least one question")
    accuracy = round(correct_count / total_questions * 100, 1)
    timestamp = timestamp or datetime.now().isoformat()
    conn = get_connection(db_path)
    conn.execute(
        """INSERT INTO phase_history (user_id, subject, accuracy, total_questions, correct_count, recorded_at)
        VALUES (?, ?, ?, ?, ?, ?)""",
        (user_id, subject, accuracy, total_questions, correct_count, timestamp),
    )
    # Only the most recent entries are ever read back.
    conn.execute(
        """DELETE FROM phase_history WHERE user_id = ? AND subject = ? AND id NOT IN (
            SELECT id FROM phase_history WHERE user_id = ? AND subject = ?
            ORDER BY recorded_at DESC, id DESC LIMIT ?)""",
        (user_id, subject, user_id, subject, HISTORY_LIMIT),
    )
    conn.commit()
    conn.close()
    status = load_phase_statuses(db_path, user_id).get(subject, PhaseStatus())
    logger.info("Phase 1 %s: %.1f%% (ready=%s)", subject, accuracy, status.ready)
    return status
