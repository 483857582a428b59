"""Tests for database initialization and connection management."""
import sqlite3

import pytest

from exam_tutor.db import init_db, get_connection


def test_init_db_creates_tables(tmp_db):
    init_db(tmp_db)
    conn = get_connection(tmp_db)
    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
    )
    tables = {row[0] for row in cursor.fetchall()}
    expected = {
        "certifications", "subjects", "questions", "quiz_results", "wrong_answers",
        "study_plans", "daily_study_logs", "phase_history", "ingestion_jobs", "user_settings",
    }
    assert expected.issubset(tables)
    conn.close()


def test_init_db_is_idempotent(tmp_db):
    init_db(tmp_db)
    init_db(tmp_db)  # should not raise
    conn = get_connection(tmp_db)
    cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
    assert len(cursor.fetchall()) > 0
    conn.close()


def test_get_connection_returns_row_factory(tmp_db):
    init_db(tmp_db)
    conn = get_connection(tmp_db)
    conn.execute("INSERT INTO user_settings (key, value) VALUES ('test', 'val')")
    row = conn.execute("SELECT key, value FROM user_settings WHERE key='test'").fetchone()
    assert row["key"] == "test"
    conn.close()


def test_daily_log_unique_per_plan_day(tmp_db):
    init_db(tmp_db)
    conn = get_connection(tmp_db)
    conn.execute(
        "INSERT INTO study_plans (user_id, certification, course_type, start_date) VALUES ('u', '전기기사', '60_day', '2026-01-01')"
    )
    conn.execute("INSERT INTO daily_study_logs (plan_id, day_number) VALUES (1, 1)")
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute("INSERT INTO daily_study_logs (plan_id, day_number) VALUES (1, 1)")
    conn.close()


def test_ingestion_job_status_is_constrained(tmp_db):
    init_db(tmp_db)
    conn = get_connection(tmp_db)
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute(
            "INSERT INTO ingestion_jobs (created_at, updated_at, status) VALUES ('x', 'x', 'BOGUS')"
        )
    conn.close()
