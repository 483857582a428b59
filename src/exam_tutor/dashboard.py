"""Learning progress statistics and Phase 2 readiness insights."""
from exam_tutor.db import get_connection
from exam_tutor.models import PhaseStatus
from exam_tutor.phase import READY_ACCURACY


def get_readiness_label(score: float) -> str:
    if score >= 80:
        return "READY"
    elif score >= READY_ACCURACY:
        return "LIKELY"
    elif score >= 50:
        return "NEEDS WORK"
    return "NOT READY"


def get_readiness_color(score: float) -> str:
    if score >= 80:
        return "green"
    elif score >= READY_ACCURACY:
        return "yellow"
    elif score >= 50:
        return "dark_orange"
    return "red"


def get_learning_progress(db_path: str, user_id: str, certification: str, subjects: list[str]) -> dict:
    """Per-subject accuracy and coverage for one certification."""
    conn = get_connection(db_path)
    subject_stats = []
    for subject in subjects:
        total_count = conn.execute(
            "SELECT COUNT(*) FROM questions WHERE certification = ? AND subject = ?",
            (certification, subject),
        ).fetchone()[0]
        row = conn.execute(
            """SELECT COUNT(*) as attempts, SUM(r.is_correct) as correct,
                COUNT(DISTINCT r.question_id) as solved
            FROM quiz_results r JOIN questions q ON r.question_id = q.id
            WHERE r.user_id = ? AND q.certification = ? AND q.subject = ?""",
            (user_id, certification, subject),
        ).fetchone()
        attempts = row["attempts"]
        correct = row["correct"] or 0
        subject_stats.append({
            "subject": subject,
            "correct": correct,
            "total": attempts,
            "accuracy": round(correct / attempts * 100, 1) if attempts else 0.0,
            "solved_count": row["solved"],
            "total_count": total_count,
        })
    wrong_total = conn.execute(
        """SELECT COUNT(*) FROM wrong_answers w JOIN questions q ON w.question_id = q.id
        WHERE w.user_id = ? AND q.certification = ?""",
        (user_id, certification),
    ).fetchone()[0]
    conn.close()

    solved = sum(s["solved_count"] for s in subject_stats)
    total = sum(s["total_count"] for s in subject_stats)
    correct = sum(s["correct"] for s in subject_stats)
    attempts = sum(s["total"] for s in subject_stats)
    return {
        "total_questions": total,
        "solved_questions": solved,
        "completion_rate": round(solved / total * 100, 1) if total else 0.0,
        "accuracy": round(correct / attempts * 100, 1) if attempts else 0.0,
        "subject_stats": subject_stats,
        "total_wrong_answers": wrong_total,
    }


def get_phase_insights(subjects: list[str], phase_statuses: dict[str, PhaseStatus]) -> list[dict]:
    insights = []
    for subject in subjects:
        status = phase_statuses.get(subject)
        latest = status.history[0].accuracy if status and status.history else None
        ready = bool(status and status.ready)
        if ready:
            message = f"{subject} 오답률 {100 - latest:.1f}% 입니다. 다음 과목이나 CBT 모의고사를 진행해 보세요."
        else:
            message = (
                f"{subject} 최근 정확도 {latest or 0:.1f}%. "
                f"{READY_ACCURACY:.0f}% 이상을 3회 연속 달성하면 Phase 2가 열립니다."
            )
        insights.append({"subject": subject, "ready": ready, "latest_accuracy": latest, "message": message})
    return insights


def get_next_locked_subject(subjects: list[str], phase_statuses: dict[str, PhaseStatus]) -> str | None:
    for subject in subjects:
        status = phase_statuses.get(subject)
        if not (status and status.ready):
            return subject
    return None
