"""Completeness checks on classified questions before they enter the bank."""
from collections import Counter

from exam_tutor.models import Question, VerificationResult
from exam_tutor.schemas import ProblemClass

VERIFIED = "VERIFIED"
NEEDS_REVIEW = "NEEDS_REVIEW"

DIAGRAM_PROBLEM_TYPES = ("diagram", "table_graph")


def _needs_review(reason: str) -> VerificationResult:
    return VerificationResult(status=NEEDS_REVIEW, reason=reason)


def _check_circuit(solve_input) -> VerificationResult:
    if solve_input.type != ProblemClass.CIRCUIT_SERIES_PARALLEL.value:
        return _needs_review("CIRCUIT_INPUT_INCOMPLETE")
    battery = solve_input.battery
    # Zero volts or zero strings is as unusable as a missing value.
    if not (battery.voltage and battery.capacity
            and solve_input.series_per_string and solve_input.parallel_strings):
        return _needs_review("CIRCUIT_INPUT_INCOMPLETE")
    return VerificationResult(status=VERIFIED)


def _check_flux(solve_input) -> VerificationResult:
    if solve_input.type != ProblemClass.FLUX_SOLID_ANGLE.value:
        return _needs_review("FLUX_INPUT_INCOMPLETE")
    if not (solve_input.angles.theta1 and solve_input.angles.theta2 and solve_input.time):
        return _needs_review("FLUX_INPUT_INCOMPLETE")
    return VerificationResult(status=VERIFIED)


def _check_geometry(solve_input) -> VerificationResult:
    if solve_input.type != ProblemClass.GEOMETRY_PROJECTION.value or not solve_input.raw_tokens:
        return _needs_review("GEOMETRY_INPUT_INCOMPLETE")
    return VerificationResult(status=VERIFIED)


CLASS_CHECKS = {
    ProblemClass.CIRCUIT_SERIES_PARALLEL.value: _check_circuit,
    ProblemClass.FLUX_SOLID_ANGLE.value: _check_flux,
    ProblemClass.GEOMETRY_PROJECTION.value: _check_geometry,
}


def verify_solve_input(question: Question) -> VerificationResult:
    if not question.problem_class:
        if question.problem_type in DIAGRAM_PROBLEM_TYPES:
            return _needs_review("STRUCTURE_MISSING")
        return VerificationResult(status=VERIFIED)

    if question.solve_input is None:
        return _needs_review("SOLVE_INPUT_MISSING")

    check = CLASS_CHECKS.get(question.problem_class)
    if check is None:
        return _needs_review("UNKNOWN_PROBLEM_CLASS")
    return check(question.solve_input)


def summarize_verification(questions: list[Question]) -> dict:
    """Counts of verified and needs-review questions, with reasons tallied."""
    results = [verify_solve_input(q) for q in questions]
    reasons = Counter(r.reason for r in results if not r.verified)
    return {
        "verified_count": sum(1 for r in results if r.verified),
        "needs_review_count": sum(1 for r in results if not r.verified),
        "reasons": dict(reasons),
    }
