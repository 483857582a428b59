"""Import of AI-extracted questions and ingestion job tracking.

An extraction file is a JSON or YAML list of questions as returned by the
extraction service. Each one is classified, verified and saved; the batch is
recorded as an ingestion job whose status tells reviewers whether it needs a
human look.
"""
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from exam_tutor.classifier import run_structure_classification
from exam_tutor.db import get_connection
from exam_tutor.models import Question
from exam_tutor.quiz import find_duplicate_texts, save_question
from exam_tutor.schemas import MalformedPayload, decode_structure
from exam_tutor.verification import DIAGRAM_PROBLEM_TYPES, summarize_verification, verify_solve_input

logger = logging.getLogger(__name__)

JOB_STATUSES = (
    "RECEIVED", "STRUCTURED", "CLASSIFIED", "SOLVED", "VERIFIED", "FAILED", "NEEDS_REVIEW",
)


def read_extraction_file(file_path: str) -> list[dict]:
    path = Path(file_path)
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if suffix in (".yaml", ".yml"):
        import yaml
        data = yaml.safe_load(text)
    else:
        data = json.loads(text)
    if isinstance(data, dict):
        data = data.get("questions", [])
    if not isinstance(data, list):
        raise MalformedPayload(f"{path.name}: expected a list of questions")
    return data


def build_ingestion_payload(
    certification: Optional[str],
    subject: str,
    year: Optional[int],
    exam_session: Optional[int],
    mode: str,
    questions: list[Question],
    verification_summary: Optional[dict] = None,
) -> dict:
    """Job record for a batch: NEEDS_REVIEW if anything is unclassified or incomplete."""
    diagram_count = sum(1 for q in questions if q.problem_type in DIAGRAM_PROBLEM_TYPES)
    unknown_count = sum(1 for q in questions if q.problem_type == "unknown")
    needs_review = (verification_summary or {}).get("needs_review_count", 0) > 0
    if unknown_count:
        failure_reason = "UNKNOWN_PROBLEM_CLASS"
    elif needs_review:
        failure_reason = "SOLVE_INPUT_INCOMPLETE"
    else:
        failure_reason = None
    structure_analysis = [
        {
            "questionIndex": index,
            "questionNumber": q.question_number,
            "problemClass": q.problem_class,
            "diagramType": q.structure_analysis.diagram_type.value if q.structure_analysis else None,
            "givenValues": q.structure_analysis.given_values if q.structure_analysis else None,
            "unknowns": q.structure_analysis.unknowns if q.structure_analysis else None,
        }
        for index, q in enumerate(questions)
    ]
    return {
        "certification": certification,
        "subject": subject,
        "year": year,
        "exam_session": exam_session,
        "source": mode,
        "request_payload": {
            "questionCount": len(questions),
            "diagramCount": diagram_count,
            "unknownCount": unknown_count,
        },
        "structure_analysis": structure_analysis,
        "verification_summary": verification_summary,
        "failure_reason": failure_reason,
        "status": "NEEDS_REVIEW" if unknown_count or needs_review else "CLASSIFIED",
    }


def _dump(value) -> Optional[str]:
    return json.dumps(value, ensure_ascii=False) if value is not None else None


def create_ingestion_job(db_path: str, payload: dict) -> int:
    status = payload.get("status", "RECEIVED")
    if status not in JOB_STATUSES:
        raise ValueError(f"Unknown ingestion status: {status}")
    now = datetime.now().isoformat()
    conn = get_connection(db_path)
    cursor = conn.execute(
        """INSERT INTO ingestion_jobs
        (created_at, updated_at, status, certification, subject, year, exam_session, source,
         request_payload, structure_analysis, verification_summary, failure_reason)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            now, now, status, payload.get("certification"), payload.get("subject"),
            payload.get("year"), payload.get("exam_session"), payload.get("source"),
            _dump(payload.get("request_payload")), _dump(payload.get("structure_analysis")),
            _dump(payload.get("verification_summary")), payload.get("failure_reason"),
        ),
    )
    conn.commit()
    job_id = cursor.lastrowid
    conn.close()
    logger.info("Ingestion job %d created with status %s", job_id, status)
    return job_id


def _row_to_job(row) -> dict:
    job = dict(row)
    for key in ("request_payload", "structure_analysis", "verification_summary"):
        if job[key] is not None:
            job[key] = json.loads(job[key])
    return job


def get_ingestion_job(db_path: str, job_id: int) -> dict | None:
    conn = get_connection(db_path)
    row = conn.execute("SELECT * FROM ingestion_jobs WHERE id = ?", (job_id,)).fetchone()
    conn.close()
    return _row_to_job(row) if row else None


def list_ingestion_jobs(db_path: str, status: Optional[str] = None) -> list[dict]:
    conn = get_connection(db_path)
    if status:
        rows = conn.execute(
            "SELECT * FROM ingestion_jobs WHERE status = ? ORDER BY created_at DESC, id DESC", (status,)
        ).fetchall()
    else:
        rows = conn.execute("SELECT * FROM ingestion_jobs ORDER BY created_at DESC, id DESC").fetchall()
    conn.close()
    return [_row_to_job(r) for r in rows]


def update_ingestion_job_status(
    db_path: str, job_id: int, status: str, failure_reason: Optional[str] = None
) -> None:
    if status not in JOB_STATUSES:
        raise ValueError(f"Unknown ingestion status: {status}")
    conn = get_connection(db_path)
    conn.execute(
        "UPDATE ingestion_jobs SET status = ?, failure_reason = ?, updated_at = ? WHERE id = ?",
        (status, failure_reason, datetime.now().isoformat(), job_id),
    )
    conn.commit()
    conn.close()


def prepare_question(
    raw: dict, certification: str, subject: str, year: Optional[int], exam_session: Optional[int]
) -> Question:
    """Turn one extracted question into a classified Question (not yet saved)."""
    question = Question(
        id=0,
        subject=raw.get("subject") or subject,
        certification=certification,
        question_text=raw.get("question_text", ""),
        options=list(raw.get("options", [])),
        answer_index=int(raw.get("answer_index", 0)),
        year=raw.get("year", year),
        exam_session=raw.get("exam_session", exam_session),
        question_number=raw.get("question_number"),
        explanation=raw.get("explanation") or "",
        topic_category=raw.get("topic_category"),
        difficulty_level=raw.get("difficulty_level"),
        problem_type=raw.get("problem_type"),
        diagram_url=raw.get("diagram_url"),
    )
    if raw.get("structure_analysis") is None:
        return question
    try:
        structure = decode_structure(raw["structure_analysis"])
    except MalformedPayload as e:
        logger.warning("Dropping malformed structure for question %s: %s", question.question_number, e)
        return question
    normalized, problem_class, solve_input = run_structure_classification(question.question_text, structure)
    question.structure_analysis = normalized
    question.problem_class = problem_class.value
    question.solve_input = solve_input
    return question


def import_extraction_file(
    db_path: str,
    file_path: str,
    certification: str,
    subject: str,
    year: Optional[int] = None,
    exam_session: Optional[int] = None,
) -> dict:
    """Classify, verify and save every new question in an extraction file.

    Questions whose text is already in the bank, or repeated earlier in the
    same file, are skipped and reported as duplicates.
    """
    raw_questions = read_extraction_file(file_path)
    seen = find_duplicate_texts(db_path, (raw.get("question_text", "") for raw in raw_questions))
    fresh, duplicates = [], []
    for raw in raw_questions:
        text = raw.get("question_text", "")
        if text in seen:
            duplicates.append(raw.get("question_number"))
            continue
        seen.add(text)
        fresh.append(raw)
    if duplicates:
        logger.info("Skipping %d duplicate questions from %s", len(duplicates), Path(file_path).name)
    questions = [
        prepare_question(raw, certification, subject, year, exam_session) for raw in fresh
    ]
    summary = summarize_verification(questions)
    mode = "image" if any(q.diagram_url for q in questions) else "txt"
    payload = build_ingestion_payload(certification, subject, year, exam_session, mode, questions, summary)
    job_id = create_ingestion_job(db_path, payload)
    question_ids = []
    for q in questions:
        q.ingestion_job_id = job_id
        question_ids.append(save_question(db_path, q))
    flagged = [
        q.question_number for q in questions if not verify_solve_input(q).verified
    ]
    return {
        "filename": Path(file_path).name,
        "job_id": job_id,
        "status": payload["status"],
        "question_ids": question_ids,
        "verified_count": summary["verified_count"],
        "needs_review_count": summary["needs_review_count"],
        "flagged_question_numbers": flagged,
        "duplicate_question_numbers": duplicates,
    }
