"""Rule-based problem classification and solve-input extraction.

The AI's own ``diagram_type`` is only a fallback: keyword rules over the
question text and diagram elements decide the class, checked in the order
of DIAGRAM_TYPE_RULES so the first matching rule wins.
"""
import re
from typing import Callable, Optional

from exam_tutor.schemas import (
    BatteryInput, CircuitSolveInput, DiagramType, FluxAngles, FluxSolveInput,
    GeometrySolveInput, ProblemClass, QuestionStructureAnalysis, UnknownSolveInput,
)

FLUX_KEYWORDS = ("자속", "자극", "유기", "기전력", "입체각", "θ", "theta")
CIRCUIT_KEYWORDS = ("회로", "직렬", "병렬", "저항", "전압", "전류")
GEOMETRY_KEYWORDS = ("투영", "면적", "도형", "기하", "평면")


def mentions_any(keywords) -> Callable[[str], bool]:
    def predicate(text: str) -> bool:
        return any(keyword in text for keyword in keywords)
    return predicate


DIAGRAM_TYPE_RULES: list[tuple[Callable[[str], bool], DiagramType]] = [
    (mentions_any(FLUX_KEYWORDS), DiagramType.FLUX),
    (mentions_any(CIRCUIT_KEYWORDS), DiagramType.CIRCUIT),
    (mentions_any(GEOMETRY_KEYWORDS), DiagramType.GEOMETRY),
]

PROBLEM_CLASS_BY_DIAGRAM = {
    DiagramType.CIRCUIT: ProblemClass.CIRCUIT_SERIES_PARALLEL,
    DiagramType.FLUX: ProblemClass.FLUX_SOLID_ANGLE,
    DiagramType.GEOMETRY: ProblemClass.GEOMETRY_PROJECTION,
    DiagramType.UNKNOWN: ProblemClass.UNKNOWN,
}

VOLTAGE_PATTERNS = [re.compile(r"([0-9]+(?:\.[0-9]+)?)\s*(k?V|볼트)", re.IGNORECASE)]
CAPACITY_PATTERNS = [re.compile(r"([0-9]+(?:\.[0-9]+)?)\s*(m?Ah)", re.IGNORECASE)]
SERIES_PATTERN = re.compile(r"(?:직렬|series)\s*([0-9]{1,2})", re.IGNORECASE)
PARALLEL_PATTERN = re.compile(r"(?:병렬|parallel)\s*([0-9]{1,2})", re.IGNORECASE)


def _classification_text(structure: QuestionStructureAnalysis) -> str:
    return f"{structure.question_text_raw} {' '.join(structure.diagram_elements)}".lower()


def resolve_diagram_type(structure: QuestionStructureAnalysis) -> DiagramType:
    text = _classification_text(structure)
    for predicate, diagram_type in DIAGRAM_TYPE_RULES:
        if predicate(text):
            return diagram_type
    return structure.diagram_type or DiagramType.UNKNOWN


def classify_problem_class(structure: QuestionStructureAnalysis) -> ProblemClass:
    return PROBLEM_CLASS_BY_DIAGRAM[resolve_diagram_type(structure)]


def parse_number_with_unit(tokens: list[str], patterns) -> Optional[float]:
    """First number followed by a matching unit, scanning tokens in order."""
    for token in tokens:
        for pattern in patterns:
            match = pattern.search(token)
            if match:
                return float(match.group(1))
    return None


def count_series_parallel(text: str) -> tuple[Optional[int], Optional[int]]:
    normalized = re.sub(r"\s+", " ", text)
    series = SERIES_PATTERN.search(normalized)
    parallel = PARALLEL_PATTERN.search(normalized)
    return (
        int(series.group(1)) if series else None,
        int(parallel.group(1)) if parallel else None,
    )


def _find_token(tokens: list[str], *needles: str) -> Optional[str]:
    # Case-insensitive substring match; needles are tried in order.
    for needle in needles:
        for token in tokens:
            if needle in token.lower():
                return token
    return None


def build_solve_input(
    structure: QuestionStructureAnalysis, problem_class: ProblemClass, question_text: str
):
    """Pull the class-specific fields out of the structure's given values.

    Fields that cannot be found are left as None; ``raw_tokens`` always keeps
    the original tokens.
    """
    tokens = list(structure.given_values)

    if problem_class == ProblemClass.CIRCUIT_SERIES_PARALLEL:
        series, parallel = count_series_parallel(question_text or "")
        return CircuitSolveInput(
            battery=BatteryInput(
                voltage=parse_number_with_unit(tokens, VOLTAGE_PATTERNS),
                capacity=parse_number_with_unit(tokens, CAPACITY_PATTERNS),
            ),
            series_per_string=series,
            parallel_strings=parallel,
            raw_tokens=tokens,
        )

    if problem_class == ProblemClass.FLUX_SOLID_ANGLE:
        # TODO: replace the letter-'d' position match with real distance-variable detection.
        return FluxSolveInput(
            monopole_strength=_find_token(tokens, "m", "자극"),
            loop_radius=_find_token(tokens, "a", "반지름"),
            positions=[token for token in tokens if "d" in token.lower()],
            angles=FluxAngles(
                theta1=_find_token(tokens, "θ1", "theta1", "각1"),
                theta2=_find_token(tokens, "θ2", "theta2", "각2"),
            ),
            time=_find_token(tokens, "t", "시간"),
            raw_tokens=tokens,
        )

    if problem_class == ProblemClass.GEOMETRY_PROJECTION:
        return GeometrySolveInput(raw_tokens=tokens)

    return UnknownSolveInput(raw_tokens=tokens)


def run_structure_classification(question_text: str, structure: QuestionStructureAnalysis):
    """Classify a question and extract its solve input.

    Returns:
        (normalized_structure, problem_class, solve_input), where the
        normalized structure carries the rule-derived diagram_type.
    """
    normalized = structure.model_copy(update={"diagram_type": resolve_diagram_type(structure)})
    problem_class = classify_problem_class(normalized)
    solve_input = build_solve_input(normalized, problem_class, question_text)
    return normalized, problem_class, solve_input
