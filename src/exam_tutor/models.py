"""Data classes for the tutor domain model."""
from dataclasses import dataclass, field
from typing import Optional

from exam_tutor.schemas import QuestionStructureAnalysis

COURSE_DAYS = {"60_day": 60, "90_day": 90}


@dataclass
class Question:
    id: int
    subject: str
    certification: str
    question_text: str
    options: list[str]
    answer_index: int
    year: Optional[int] = None
    exam_session: Optional[int] = None
    question_number: Optional[int] = None
    explanation: str = ""
    topic_category: Optional[str] = None
    difficulty_level: Optional[str] = None
    problem_type: Optional[str] = None
    problem_class: Optional[str] = None
    structure_analysis: Optional[QuestionStructureAnalysis] = None
    solve_input: Optional[object] = None  # one of the StructuredSolveInput variants
    diagram_url: Optional[str] = None
    ingestion_job_id: Optional[int] = None


@dataclass
class StudyPlan:
    id: int
    user_id: str
    certification: str
    course_type: str
    start_date: str
    current_day: int = 1
    status: str = "active"

    @property
    def total_days(self) -> int:
        return COURSE_DAYS[self.course_type]


@dataclass
class DailyStudyLog:
    id: int
    plan_id: int
    day_number: int
    target_subjects: list[str]
    completed_reading: bool = False
    completed_review: bool = False
    completed_mock: bool = False
    reading_question_ids: list[int] = field(default_factory=list)
    review_question_ids: list[int] = field(default_factory=list)
    reading_target_count: Optional[int] = None
    review_target_count: Optional[int] = None
    completed_at: Optional[str] = None


@dataclass(frozen=True)
class DailyStats:
    new_count: int
    review_count: int

    @property
    def total(self) -> int:
        return self.new_count + self.review_count


@dataclass
class WrongAnswer:
    record_id: int
    question_id: int
    added_date: str
    wrong_count: int = 1


@dataclass(frozen=True)
class PhaseHistoryEntry:
    accuracy: float
    total_questions: int
    correct_count: int
    timestamp: str


@dataclass
class PhaseStatus:
    history: list[PhaseHistoryEntry] = field(default_factory=list)  # newest first
    ready: bool = False


@dataclass
class ReviewSession:
    questions: list[Question]
    wrong_answer_count: int
    reinforced: bool = False


@dataclass(frozen=True)
class VerificationResult:
    status: str  # VERIFIED | NEEDS_REVIEW
    reason: Optional[str] = None

    @property
    def verified(self) -> bool:
        return self.status == "VERIFIED"
