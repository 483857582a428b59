# tests/test_classifier.py
from exam_tutor.classifier import (
    CAPACITY_PATTERNS, VOLTAGE_PATTERNS, build_solve_input, classify_problem_class,
    count_series_parallel, parse_number_with_unit, resolve_diagram_type,
    run_structure_classification,
)
from exam_tutor.schemas import (
    CircuitSolveInput, DiagramType, FluxSolveInput, GeometrySolveInput, ProblemClass,
    QuestionStructureAnalysis, UnknownSolveInput,
)


def _structure(text="", elements=(), given=(), diagram_type="UNKNOWN"):
    return QuestionStructureAnalysis(
        question_text_raw=text,
        has_diagram=bool(elements),
        diagram_type=diagram_type,
        diagram_elements=list(elements),
        given_values=list(given),
    )


def test_flux_keyword_wins_over_circuit():
    structure = _structure("자속이 회로에 유도된다", diagram_type="CIRCUIT")
    assert classify_problem_class(structure) == ProblemClass.FLUX_SOLID_ANGLE


def test_circuit_keywords():
    assert classify_problem_class(_structure("저항 3개를 병렬로 연결")) == ProblemClass.CIRCUIT_SERIES_PARALLEL


def test_geometry_keywords():
    assert classify_problem_class(_structure("평면에 투영된 면적")) == ProblemClass.GEOMETRY_PROJECTION


def test_diagram_elements_are_considered():
    structure = _structure("그림과 같을 때 값을 구하시오", elements=["battery", "직렬 연결"])
    assert resolve_diagram_type(structure) == DiagramType.CIRCUIT


def test_falls_back_to_ai_diagram_type():
    structure = _structure("다음 값을 구하시오", diagram_type="GEOMETRY")
    assert resolve_diagram_type(structure) == DiagramType.GEOMETRY
    assert classify_problem_class(structure) == ProblemClass.GEOMETRY_PROJECTION


def test_no_signal_is_unknown():
    assert classify_problem_class(_structure("다음 중 옳은 것은?")) == ProblemClass.UNKNOWN


def test_theta_keyword_is_case_insensitive():
    assert resolve_diagram_type(_structure("Find THETA at t")) == DiagramType.FLUX


def test_parse_number_with_unit():
    assert parse_number_with_unit(["전지 12V", "100Ah"], VOLTAGE_PATTERNS) == 12.0
    assert parse_number_with_unit(["전지 12V", "100Ah"], CAPACITY_PATTERNS) == 100.0
    assert parse_number_with_unit(["1.5 kV"], VOLTAGE_PATTERNS) == 1.5
    assert parse_number_with_unit(["220 볼트"], VOLTAGE_PATTERNS) == 220.0
    assert parse_number_with_unit(["저항 5Ω"], VOLTAGE_PATTERNS) is None


def test_count_series_parallel():
    assert count_series_parallel("축전지를 직렬 4개씩 병렬 3줄로 연결") == (4, 3)
    assert count_series_parallel("series 12, parallel 2") == (12, 2)
    assert count_series_parallel("직렬로 연결") == (None, None)


def test_circuit_solve_input():
    structure = _structure(given=["12V", "200Ah"])
    solve_input = build_solve_input(
        structure, ProblemClass.CIRCUIT_SERIES_PARALLEL, "직렬 4 병렬 2로 구성된 축전지"
    )
    assert isinstance(solve_input, CircuitSolveInput)
    assert solve_input.battery.voltage == 12.0
    assert solve_input.battery.capacity == 200.0
    assert solve_input.series_per_string == 4
    assert solve_input.parallel_strings == 2
    assert solve_input.raw_tokens == ["12V", "200Ah"]


def test_circuit_solve_input_missing_values():
    solve_input = build_solve_input(_structure(given=["5Ω"]), ProblemClass.CIRCUIT_SERIES_PARALLEL, "")
    assert solve_input.battery.voltage is None
    assert solve_input.series_per_string is None


def test_flux_solve_input():
    given = ["m = 4π Wb", "a = 0.1 m", "θ1 = 30°", "θ2 = 60°", "t = 2 s", "d = 0.2 m"]
    solve_input = build_solve_input(_structure(given=given), ProblemClass.FLUX_SOLID_ANGLE, "")
    assert isinstance(solve_input, FluxSolveInput)
    assert solve_input.monopole_strength == "m = 4π Wb"
    assert solve_input.loop_radius == "a = 0.1 m"
    assert solve_input.angles.theta1 == "θ1 = 30°"
    assert solve_input.angles.theta2 == "θ2 = 60°"
    assert solve_input.time == "t = 2 s"
    assert solve_input.positions == ["d = 0.2 m"]
    assert solve_input.raw_tokens == given


def test_flux_solve_input_without_angles():
    solve_input = build_solve_input(_structure(given=["m = 1 Wb"]), ProblemClass.FLUX_SOLID_ANGLE, "")
    assert solve_input.angles.theta1 is None
    assert solve_input.time is None


def test_geometry_and_unknown_keep_tokens():
    geometry = build_solve_input(_structure(given=["r = 3"]), ProblemClass.GEOMETRY_PROJECTION, "")
    unknown = build_solve_input(_structure(given=["x"]), ProblemClass.UNKNOWN, "")
    assert isinstance(geometry, GeometrySolveInput)
    assert geometry.raw_tokens == ["r = 3"]
    assert isinstance(unknown, UnknownSolveInput)
    assert unknown.raw_tokens == ["x"]


def test_run_structure_classification_normalizes_diagram_type():
    structure = _structure("자속 변화에 의한 기전력", given=["θ1 = 30°"], diagram_type="CIRCUIT")
    normalized, problem_class, solve_input = run_structure_classification("자속 문제", structure)
    assert normalized.diagram_type == DiagramType.FLUX
    assert structure.diagram_type == DiagramType.CIRCUIT  # input untouched
    assert problem_class == ProblemClass.FLUX_SOLID_ANGLE
    assert solve_input.type == "FLUX_SOLID_ANGLE"
