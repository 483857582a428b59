"""Database initialization and connection management."""
import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = str(Path.home() / ".exam_tutor" / "tutor.db")

SCHEMA = """
CREATE TABLE IF NOT EXISTS certifications (
    name TEXT PRIMARY KEY,
    description TEXT
);

CREATE TABLE IF NOT EXISTS subjects (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    certification TEXT NOT NULL REFERENCES certifications(name),
    name TEXT NOT NULL,
    position INTEGER NOT NULL,
    UNIQUE(certification, name)
);

CREATE TABLE IF NOT EXISTS ingestion_jobs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'RECEIVED' CHECK (status IN (
        'RECEIVED', 'STRUCTURED', 'CLASSIFIED', 'SOLVED',
        'VERIFIED', 'FAILED', 'NEEDS_REVIEW'
    )),
    certification TEXT,
    subject TEXT,
    year INTEGER,
    exam_session INTEGER,
    source TEXT,
    request_payload TEXT,
    structure_analysis TEXT,
    verification_summary TEXT,
    failure_reason TEXT
);

CREATE TABLE IF NOT EXISTS questions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    subject TEXT NOT NULL,
    certification TEXT NOT NULL,
    year INTEGER,
    exam_session INTEGER,
    question_number INTEGER,
    question_text TEXT NOT NULL,
    options TEXT NOT NULL DEFAULT '[]',
    answer_index INTEGER NOT NULL,
    explanation TEXT,
    topic_category TEXT,
    difficulty_level TEXT,
    problem_type TEXT,
    problem_class TEXT,
    structure_analysis TEXT,
    solve_input TEXT,
    diagram_url TEXT,
    ingestion_job_id INTEGER REFERENCES ingestion_jobs(id)
);

CREATE TABLE IF NOT EXISTS quiz_results (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    question_id INTEGER NOT NULL REFERENCES questions(id),
    user_answer_index INTEGER NOT NULL,
    is_correct INTEGER NOT NULL,
    answered_at TEXT
);

CREATE TABLE IF NOT EXISTS wrong_answers (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    question_id INTEGER NOT NULL REFERENCES questions(id),
    added_date TEXT NOT NULL,
    wrong_count INTEGER NOT NULL DEFAULT 1,
    UNIQUE(user_id, question_id)
);

CREATE TABLE IF NOT EXISTS study_plans (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    certification TEXT NOT NULL,
    course_type TEXT NOT NULL CHECK (course_type IN ('60_day', '90_day')),
    start_date TEXT NOT NULL,
    current_day INTEGER NOT NULL DEFAULT 1,
    status TEXT NOT NULL DEFAULT 'active' CHECK (status IN ('active', 'completed', 'abandoned'))
);

CREATE TABLE IF NOT EXISTS daily_study_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    plan_id INTEGER NOT NULL REFERENCES study_plans(id),
    day_number INTEGER NOT NULL,
    target_subjects TEXT NOT NULL DEFAULT '[]',
    completed_reading INTEGER DEFAULT 0,
    completed_review INTEGER DEFAULT 0,
    completed_mock INTEGER DEFAULT 0,
    reading_question_ids TEXT NOT NULL DEFAULT '[]',
    review_question_ids TEXT NOT NULL DEFAULT '[]',
    reading_target_count INTEGER,
    review_target_count INTEGER,
    completed_at TEXT,
    UNIQUE(plan_id, day_number)
);

CREATE TABLE IF NOT EXISTS phase_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    subject TEXT NOT NULL,
    accuracy REAL NOT NULL,
    total_questions INTEGER NOT NULL,
    correct_count INTEGER NOT NULL,
    recorded_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS user_settings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    key TEXT NOT NULL UNIQUE,
    value TEXT
);

CREATE INDEX IF NOT EXISTS idx_questions_cert_subject ON questions(certification, subject);
CREATE INDEX IF NOT EXISTS idx_ingestion_jobs_status ON ingestion_jobs(status);
CREATE INDEX IF NOT EXISTS idx_phase_history_user_subject ON phase_history(user_id, subject);
"""


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Return a SQLite connection with row factory and foreign keys enabled."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(db_path: str = DEFAULT_DB_PATH) -> None:
    """Initialize the database, creating all tables if they don't exist."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(db_path)
    conn.executescript(SCHEMA)
    conn.commit()
    conn.close()
