# tests/test_study.py
import pytest

from exam_tutor.db import init_db, get_connection
from exam_tutor.models import DailyStats, StudyPlan
from exam_tutor.study import (
    InvalidStudyPlan, abandon_study_plan, advance_day, complete_routine_task,
    compute_daily_quota, create_study_plan, ensure_daily_log, get_active_study_plan,
    get_completed_days, get_daily_log, get_routine_stage, get_selected_certification,
    get_setting, get_study_plan, get_total_days, is_day_complete, is_mock_day,
    set_selected_certification, set_setting, validate_study_plan,
)

SUBJECTS = ["전기자기학", "전력공학", "전기기기", "회로이론 및 제어공학", "전기설비기술기준"]


def test_quota_learning_phase():
    stats = compute_daily_quota(1000, 60, 1)
    # capacity = ceil(3000 / 60) = 50
    assert stats == DailyStats(new_count=30, review_count=20)


def test_quota_learning_phase_rounding():
    stats = compute_daily_quota(1000, 90, 10)
    # capacity = ceil(33.3) = 34 -> ceil(20.4), floor(13.6)
    assert stats == DailyStats(new_count=21, review_count=13)


def test_quota_final_phase_is_all_review():
    assert compute_daily_quota(1000, 60, 48) == DailyStats(new_count=0, review_count=50)
    assert compute_daily_quota(1000, 90, 72) == DailyStats(new_count=0, review_count=34)


def test_quota_day_before_cutoff_still_learning():
    assert compute_daily_quota(1000, 60, 47).new_count > 0


def test_quota_review_floor_with_small_bank():
    assert compute_daily_quota(0, 60, 1) == DailyStats(new_count=0, review_count=10)
    assert compute_daily_quota(20, 90, 5) == DailyStats(new_count=1, review_count=10)


def test_quota_invariants_hold_across_courses():
    for total in (0, 1, 7, 50, 333, 1000, 5000):
        for plan_days in (60, 90):
            for day in range(1, plan_days + 1):
                stats = compute_daily_quota(total, plan_days, day)
                assert stats.review_count >= 10
                assert stats.new_count >= 0
                if day / plan_days >= 0.8:
                    assert stats.new_count == 0


def test_quota_is_deterministic():
    assert compute_daily_quota(777, 90, 33) == compute_daily_quota(777, 90, 33)


def test_get_total_days():
    assert get_total_days("60_day") == 60
    assert get_total_days("90_day") == 90
    with pytest.raises(InvalidStudyPlan):
        get_total_days("30_day")


def test_validate_study_plan_rejects_out_of_range_day():
    plan = StudyPlan(id=1, user_id="u", certification="전기기사", course_type="60_day",
                     start_date="2026-01-01", current_day=61)
    with pytest.raises(InvalidStudyPlan):
        validate_study_plan(plan)
    plan.current_day = 0
    with pytest.raises(InvalidStudyPlan):
        validate_study_plan(plan)


def test_get_study_plan_validates_stored_rows(tmp_db):
    init_db(tmp_db)
    plan = create_study_plan(tmp_db, "u", "60_day", "전기기사")
    conn = get_connection(tmp_db)
    conn.execute("UPDATE study_plans SET current_day = 99 WHERE id = ?", (plan.id,))
    conn.commit()
    conn.close()
    with pytest.raises(InvalidStudyPlan):
        get_study_plan(tmp_db, plan.id)


def test_create_study_plan(tmp_db):
    init_db(tmp_db)
    plan = create_study_plan(tmp_db, "u", "90_day", "전기기사")
    assert plan.current_day == 1
    assert plan.status == "active"
    assert plan.total_days == 90
    assert get_active_study_plan(tmp_db, "u", "전기기사").id == plan.id


def test_create_study_plan_abandons_previous(tmp_db):
    init_db(tmp_db)
    old = create_study_plan(tmp_db, "u", "60_day", "전기기사")
    new = create_study_plan(tmp_db, "u", "90_day", "전기기사")
    assert get_study_plan(tmp_db, old.id).status == "abandoned"
    assert get_active_study_plan(tmp_db, "u", "전기기사").id == new.id


def test_plans_are_per_certification(tmp_db):
    init_db(tmp_db)
    elec = create_study_plan(tmp_db, "u", "60_day", "전기기사")
    create_study_plan(tmp_db, "u", "60_day", "신재생에너지발전설비기사(태양광)")
    assert get_study_plan(tmp_db, elec.id).status == "active"


def test_abandon_keeps_plan_and_logs(tmp_db):
    init_db(tmp_db)
    plan = create_study_plan(tmp_db, "u", "60_day", "전기기사")
    ensure_daily_log(tmp_db, plan.id, 1, SUBJECTS)
    abandon_study_plan(tmp_db, plan.id)
    assert get_study_plan(tmp_db, plan.id).status == "abandoned"
    assert get_daily_log(tmp_db, plan.id, 1) is not None
    assert get_active_study_plan(tmp_db, "u", "전기기사") is None


def test_ensure_daily_log_creates_on_first_visit(tmp_db):
    init_db(tmp_db)
    plan = create_study_plan(tmp_db, "u", "60_day", "전기기사")
    log = ensure_daily_log(tmp_db, plan.id, 1, SUBJECTS, DailyStats(new_count=30, review_count=20))
    assert log.target_subjects == ["전기자기학"]
    assert log.completed_reading is False
    assert log.completed_review is False
    assert log.reading_target_count == 30
    assert log.review_target_count == 20


def test_ensure_daily_log_is_idempotent(tmp_db):
    init_db(tmp_db)
    plan = create_study_plan(tmp_db, "u", "60_day", "전기기사")
    first = ensure_daily_log(tmp_db, plan.id, 3, SUBJECTS)
    second = ensure_daily_log(tmp_db, plan.id, 3, SUBJECTS)
    assert first.id == second.id
    assert first.target_subjects == second.target_subjects
    conn = get_connection(tmp_db)
    count = conn.execute(
        "SELECT COUNT(*) FROM daily_study_logs WHERE plan_id = ? AND day_number = 3", (plan.id,)
    ).fetchone()[0]
    conn.close()
    assert count == 1


def test_ensure_daily_log_keeps_existing_progress(tmp_db):
    init_db(tmp_db)
    plan = create_study_plan(tmp_db, "u", "60_day", "전기기사")
    log = ensure_daily_log(tmp_db, plan.id, 1, SUBJECTS)
    complete_routine_task(tmp_db, log.id, "reading", [4, 5])
    again = ensure_daily_log(tmp_db, plan.id, 1, SUBJECTS)
    assert again.completed_reading is True
    assert again.reading_question_ids == [4, 5]


def test_subject_rotation_is_deterministic(tmp_db):
    init_db(tmp_db)
    plan = create_study_plan(tmp_db, "u", "60_day", "전기기사")
    for day in range(1, 13):
        log = ensure_daily_log(tmp_db, plan.id, day, SUBJECTS)
        assert log.target_subjects == [SUBJECTS[(day - 1) % len(SUBJECTS)]]


def test_ensure_daily_log_needs_subjects(tmp_db):
    init_db(tmp_db)
    plan = create_study_plan(tmp_db, "u", "60_day", "전기기사")
    with pytest.raises(ValueError):
        ensure_daily_log(tmp_db, plan.id, 1, [])


def test_complete_routine_task_review(tmp_db):
    init_db(tmp_db)
    plan = create_study_plan(tmp_db, "u", "60_day", "전기기사")
    log = ensure_daily_log(tmp_db, plan.id, 1, SUBJECTS)
    complete_routine_task(tmp_db, log.id, "review", [1, 2, 3])
    log = get_daily_log(tmp_db, plan.id, 1)
    assert log.completed_review is True
    assert log.review_question_ids == [1, 2, 3]
    assert log.completed_reading is False


def test_complete_routine_task_mock(tmp_db):
    init_db(tmp_db)
    plan = create_study_plan(tmp_db, "u", "60_day", "전기기사")
    log = ensure_daily_log(tmp_db, plan.id, 7, SUBJECTS)
    complete_routine_task(tmp_db, log.id, "mock")
    assert get_daily_log(tmp_db, plan.id, 7).completed_mock is True


def test_is_day_complete():
    from exam_tutor.models import DailyStudyLog
    log = DailyStudyLog(id=1, plan_id=1, day_number=1, target_subjects=["전력공학"], completed_review=True)
    assert not is_day_complete(log, DailyStats(new_count=5, review_count=10))
    # No new questions in the final phase: review alone completes the day
    assert is_day_complete(log, DailyStats(new_count=0, review_count=10))
    log.completed_reading = True
    assert is_day_complete(log, DailyStats(new_count=5, review_count=10))


def test_advance_day(tmp_db):
    init_db(tmp_db)
    plan = create_study_plan(tmp_db, "u", "60_day", "전기기사")
    ensure_daily_log(tmp_db, plan.id, 1, SUBJECTS)
    plan = advance_day(tmp_db, plan.id, 1)
    assert plan.current_day == 2
    assert plan.status == "active"
    assert get_daily_log(tmp_db, plan.id, 1).completed_at is not None
    assert get_completed_days(tmp_db, plan.id) == 1


def test_advance_day_stale_day_is_ignored(tmp_db):
    init_db(tmp_db)
    plan = create_study_plan(tmp_db, "u", "60_day", "전기기사")
    advance_day(tmp_db, plan.id, 1)
    plan = advance_day(tmp_db, plan.id, 1)  # duplicate submit
    assert plan.current_day == 2


def test_advance_past_last_day_completes_plan(tmp_db):
    init_db(tmp_db)
    plan = create_study_plan(tmp_db, "u", "60_day", "전기기사")
    conn = get_connection(tmp_db)
    conn.execute("UPDATE study_plans SET current_day = 60 WHERE id = ?", (plan.id,))
    conn.commit()
    conn.close()
    plan = advance_day(tmp_db, plan.id, 60)
    assert plan.status == "completed"
    assert plan.current_day == 60
    assert get_active_study_plan(tmp_db, "u", "전기기사") is None


def test_advance_day_unknown_plan(tmp_db):
    init_db(tmp_db)
    with pytest.raises(LookupError):
        advance_day(tmp_db, 42, 1)


def test_routine_stage():
    plan = StudyPlan(id=1, user_id="u", certification="전기기사", course_type="60_day",
                     start_date="2026-01-01", current_day=47)
    assert get_routine_stage(plan) == "learning"
    plan.current_day = 48
    assert get_routine_stage(plan) == "final"


def test_is_mock_day():
    assert is_mock_day(7)
    assert is_mock_day(14)
    assert not is_mock_day(1)
    assert not is_mock_day(13)


def test_get_set_setting(tmp_db):
    """Settings can be stored and retrieved."""
    init_db(tmp_db)
    assert get_setting(tmp_db, "test_key") is None
    assert get_setting(tmp_db, "test_key", "default") == "default"
    set_setting(tmp_db, "test_key", "value1")
    assert get_setting(tmp_db, "test_key") == "value1"
    set_setting(tmp_db, "test_key", "value2")  # upsert
    assert get_setting(tmp_db, "test_key") == "value2"


def test_selected_certification(tmp_db):
    init_db(tmp_db)
    assert get_selected_certification(tmp_db) == "전기기사"
    set_selected_certification(tmp_db, "신재생에너지발전설비기사(태양광)")
    assert get_selected_certification(tmp_db) == "신재생에너지발전설비기사(태양광)"
