"""Study plan management, daily quotas and routine progress tracking."""
import json
import logging
import math
from datetime import date, datetime
from typing import Optional

from exam_tutor.db import get_connection
from exam_tutor.models import COURSE_DAYS, DailyStats, DailyStudyLog, StudyPlan

logger = logging.getLogger(__name__)

REPETITION_COEFFICIENT = 3.0
LEARNING_CUTOFF = 0.8
NEW_RATIO = 0.6
REVIEW_RATIO = 0.4
MIN_REVIEW_COUNT = 10
MOCK_DAY_INTERVAL = 7

DEFAULT_USER_ID = "local"
DEFAULT_CERTIFICATION = "전기기사"


class InvalidStudyPlan(ValueError):
    """A stored study plan violates its own invariants."""


def get_setting(db_path: str, key: str, default: str = None) -> str | None:
    conn = get_connection(db_path)
    row = conn.execute("SELECT value FROM user_settings WHERE key = ?", (key,)).fetchone()
    conn.close()
    return row["value"] if row else default


def set_setting(db_path: str, key: str, value: str) -> None:
    conn = get_connection(db_path)
    conn.execute(
        "INSERT INTO user_settings (key, value) VALUES (?, ?) ON CONFLICT(key) DO UPDATE SET value=?",
        (key, value, value),
    )
    conn.commit()
    conn.close()


def get_user_id(db_path: str) -> str:
    return get_setting(db_path, "user_id", DEFAULT_USER_ID)


def get_selected_certification(db_path: str) -> str:
    return get_setting(db_path, "selected_certification", DEFAULT_CERTIFICATION)


def set_selected_certification(db_path: str, certification: str) -> None:
    set_setting(db_path, "selected_certification", certification)


def get_total_days(course_type: str) -> int:
    try:
        return COURSE_DAYS[course_type]
    except KeyError:
        raise InvalidStudyPlan(f"Unknown course type: {course_type!r}") from None


def validate_study_plan(plan: StudyPlan) -> StudyPlan:
    """Reject plans that break the day-range or status invariants."""
    total = get_total_days(plan.course_type)
    if not 1 <= plan.current_day <= total:
        raise InvalidStudyPlan(
            f"Plan {plan.id}: current_day {plan.current_day} outside 1..{total}"
        )
    if plan.status not in ("active", "completed", "abandoned"):
        raise InvalidStudyPlan(f"Plan {plan.id}: unknown status {plan.status!r}")
    return plan


def compute_daily_quota(total_questions: int, plan_days: int, current_day: int) -> DailyStats:
    """Today's new-concept and review question counts.

    Capacity is sized so every question is seen about REPETITION_COEFFICIENT
    times over the course. Until 80% of the course has passed it is split
    60/40 between new and review; after that the whole day is review.
    Review never drops below MIN_REVIEW_COUNT.
    """
    daily_capacity = math.ceil(total_questions * REPETITION_COEFFICIENT / plan_days)
    progress = current_day / plan_days
    if progress < LEARNING_CUTOFF:
        new_count = math.ceil(daily_capacity * NEW_RATIO)
        review_count = math.floor(daily_capacity * REVIEW_RATIO)
    else:
        new_count = 0
        review_count = daily_capacity
    return DailyStats(
        new_count=max(0, new_count),
        review_count=max(MIN_REVIEW_COUNT, review_count),
    )


def get_routine_stage(plan: StudyPlan) -> str:
    """'learning' for the first 80% of the course, 'final' after."""
    return "learning" if plan.current_day / plan.total_days < LEARNING_CUTOFF else "final"


def is_mock_day(day_number: int) -> bool:
    return day_number % MOCK_DAY_INTERVAL == 0


def _row_to_plan(row) -> StudyPlan:
    return StudyPlan(
        id=row["id"],
        user_id=row["user_id"],
        certification=row["certification"],
        course_type=row["course_type"],
        start_date=row["start_date"],
        current_day=row["current_day"],
        status=row["status"],
    )


def get_study_plan(db_path: str, plan_id: int) -> StudyPlan | None:
    conn = get_connection(db_path)
    row = conn.execute("SELECT * FROM study_plans WHERE id = ?", (plan_id,)).fetchone()
    conn.close()
    return validate_study_plan(_row_to_plan(row)) if row else None


def get_active_study_plan(db_path: str, user_id: str, certification: str) -> StudyPlan | None:
    conn = get_connection(db_path)
    row = conn.execute(
        """SELECT * FROM study_plans
        WHERE user_id = ? AND certification = ? AND status = 'active'
        ORDER BY id DESC LIMIT 1""",
        (user_id, certification),
    ).fetchone()
    conn.close()
    return validate_study_plan(_row_to_plan(row)) if row else None


def abandon_study_plan(db_path: str, plan_id: int) -> None:
    """Reset: the plan and its logs are kept, only its status changes."""
    conn = get_connection(db_path)
    conn.execute(
        "UPDATE study_plans SET status = 'abandoned' WHERE id = ? AND status = 'active'",
        (plan_id,),
    )
    conn.commit()
    conn.close()


def create_study_plan(db_path: str, user_id: str, course_type: str, certification: str) -> StudyPlan:
    """Start a new course, abandoning any active plan for the same certification."""
    get_total_days(course_type)
    existing = get_active_study_plan(db_path, user_id, certification)
    if existing:
        logger.info("Abandoning plan %s before starting a new %s course", existing.id, course_type)
        abandon_study_plan(db_path, existing.id)
    conn = get_connection(db_path)
    cursor = conn.execute(
        """INSERT INTO study_plans (user_id, certification, course_type, start_date, current_day, status)
        VALUES (?, ?, ?, ?, 1, 'active')""",
        (user_id, certification, course_type, date.today().isoformat()),
    )
    conn.commit()
    plan_id = cursor.lastrowid
    conn.close()
    return get_study_plan(db_path, plan_id)


def _row_to_log(row) -> DailyStudyLog:
    return DailyStudyLog(
        id=row["id"],
        plan_id=row["plan_id"],
        day_number=row["day_number"],
        target_subjects=json.loads(row["target_subjects"]),
        completed_reading=bool(row["completed_reading"]),
        completed_review=bool(row["completed_review"]),
        completed_mock=bool(row["completed_mock"]),
        reading_question_ids=json.loads(row["reading_question_ids"]),
        review_question_ids=json.loads(row["review_question_ids"]),
        reading_target_count=row["reading_target_count"],
        review_target_count=row["review_target_count"],
        completed_at=row["completed_at"],
    )


def get_daily_log(db_path: str, plan_id: int, day_number: int) -> DailyStudyLog | None:
    conn = get_connection(db_path)
    row = conn.execute(
        "SELECT * FROM daily_study_logs WHERE plan_id = ? AND day_number = ?",
        (plan_id, day_number),
    ).fetchone()
    conn.close()
    return _row_to_log(row) if row else None


def ensure_daily_log(
    db_path: str,
    plan_id: int,
    day_number: int,
    all_subjects: list[str],
    stats: Optional[DailyStats] = None,
) -> DailyStudyLog:
    """Return the log for this plan/day, creating it on first visit.

    The day's subject rotates through ``all_subjects`` in order.
    """
    existing = get_daily_log(db_path, plan_id, day_number)
    if existing:
        return existing
    if not all_subjects:
        raise ValueError("Cannot schedule a day without subjects")
    subject = all_subjects[(day_number - 1) % len(all_subjects)]
    conn = get_connection(db_path)
    conn.execute(
        """INSERT OR IGNORE INTO daily_study_logs
        (plan_id, day_number, target_subjects, reading_target_count, review_target_count)
        VALUES (?, ?, ?, ?, ?)""",
        (
            plan_id, day_number, json.dumps([subject], ensure_ascii=False),
            stats.new_count if stats else None,
            stats.review_count if stats else None,
        ),
    )
    conn.commit()
    conn.close()
    logger.info("Created day %d log for plan %s: %s", day_number, plan_id, subject)
    return get_daily_log(db_path, plan_id, day_number)


def complete_routine_task(
    db_path: str, log_id: int, task: str, question_ids: list[int] = ()
) -> None:
    """Mark today's reading, review or mock session as done."""
    columns = {
        "reading": ("completed_reading", "reading_question_ids"),
        "review": ("completed_review", "review_question_ids"),
        "mock": ("completed_mock", None),
    }
    flag, ids_column = columns[task]
    conn = get_connection(db_path)
    if ids_column:
        conn.execute(
            f"UPDATE daily_study_logs SET {flag} = 1, {ids_column} = ? WHERE id = ?",
            (json.dumps(list(question_ids)), log_id),
        )
    else:
        conn.execute(f"UPDATE daily_study_logs SET {flag} = 1 WHERE id = ?", (log_id,))
    conn.commit()
    conn.close()


def is_day_complete(log: DailyStudyLog, stats: DailyStats) -> bool:
    """Review must be done; reading only counts when today has new questions."""
    return (log.completed_reading or stats.new_count == 0) and log.completed_review


def advance_day(db_path: str, plan_id: int, current_day: int) -> StudyPlan:
    """Close out ``current_day`` and move the plan to the next day.

    Past the last day the plan is marked completed and the day counter stays
    on the last day. A stale ``current_day`` leaves the plan untouched.
    """
    plan = get_study_plan(db_path, plan_id)
    if plan is None:
        raise LookupError(f"Study plan {plan_id} does not exist")
    conn = get_connection(db_path)
    conn.execute(
        "UPDATE daily_study_logs SET completed_at = ? WHERE plan_id = ? AND day_number = ? AND completed_at IS NULL",
        (datetime.now().isoformat(), plan_id, current_day),
    )
    if current_day + 1 > plan.total_days:
        cursor = conn.execute(
            "UPDATE study_plans SET status = 'completed' WHERE id = ? AND current_day = ? AND status = 'active'",
            (plan_id, current_day),
        )
    else:
        cursor = conn.execute(
            "UPDATE study_plans SET current_day = ? WHERE id = ? AND current_day = ? AND status = 'active'",
            (current_day + 1, plan_id, current_day),
        )
    conn.commit()
    conn.close()
    if cursor.rowcount == 0:
        logger.warning("Plan %s was not on day %d; nothing advanced", plan_id, current_day)
    return get_study_plan(db_path, plan_id)


def get_completed_days(db_path: str, plan_id: int) -> int:
    conn = get_connection(db_path)
    count = conn.execute(
        "SELECT COUNT(*) FROM daily_study_logs WHERE plan_id = ? AND completed_at IS NOT NULL",
        (plan_id,),
    ).fetchone()[0]
    conn.close()
    return count
