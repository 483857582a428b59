"""Validated shapes for AI extraction payloads.

The extraction service returns loosely shaped JSON. Everything crossing that
boundary is decoded here into pydantic models: a ``QuestionStructureAnalysis``
per question, and a ``StructuredSolveInput`` variant keyed by ``type``.

Usage:
    structure = decode_structure(payload["structure_analysis"])
    solve_input = decode_solve_input(row["solve_input"])
"""
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator


class MalformedPayload(ValueError):
    """An AI payload could not be decoded into the expected shape."""


class DiagramType(str, Enum):
    CIRCUIT = "CIRCUIT"
    GEOMETRY = "GEOMETRY"
    FLUX = "FLUX"
    UNKNOWN = "UNKNOWN"


class ProblemClass(str, Enum):
    CIRCUIT_SERIES_PARALLEL = "CIRCUIT_SERIES_PARALLEL"
    FLUX_SOLID_ANGLE = "FLUX_SOLID_ANGLE"
    GEOMETRY_PROJECTION = "GEOMETRY_PROJECTION"
    UNKNOWN = "UNKNOWN"


def _as_token_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, (str, int, float)):
        return [str(value)]
    if isinstance(value, list):
        return [str(item) for item in value if item is not None]
    return value


class QuestionStructureAnalysis(BaseModel):
    model_config = ConfigDict(extra="ignore")

    question_text_raw: str = ""
    has_diagram: bool = False
    diagram_type: DiagramType = DiagramType.UNKNOWN
    diagram_elements: list[str] = Field(default_factory=list)
    unknowns: list[str] = Field(default_factory=list)
    given_values: list[str] = Field(default_factory=list)

    @field_validator("question_text_raw", mode="before")
    @classmethod
    def _text_or_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("diagram_type", mode="before")
    @classmethod
    def _normalize_diagram_type(cls, value: Any) -> Any:
        # Unrecognized labels from the model are treated as UNKNOWN.
        if value is None:
            return DiagramType.UNKNOWN
        if isinstance(value, str):
            label = value.strip().upper()
            return label if label in DiagramType.__members__ else DiagramType.UNKNOWN
        return value

    @field_validator("diagram_elements", "unknowns", "given_values", mode="before")
    @classmethod
    def _coerce_tokens(cls, value: Any) -> Any:
        return _as_token_list(value)


class BatteryInput(BaseModel):
    voltage: Optional[float] = None
    capacity: Optional[float] = None


class CircuitSolveInput(BaseModel):
    type: Literal["CIRCUIT_SERIES_PARALLEL"] = "CIRCUIT_SERIES_PARALLEL"
    battery: BatteryInput = Field(default_factory=BatteryInput)
    series_per_string: Optional[int] = None
    parallel_strings: Optional[int] = None
    raw_tokens: list[str] = Field(default_factory=list)


class FluxAngles(BaseModel):
    theta1: Optional[str] = None
    theta2: Optional[str] = None


class FluxSolveInput(BaseModel):
    type: Literal["FLUX_SOLID_ANGLE"] = "FLUX_SOLID_ANGLE"
    monopole_strength: Optional[str] = None
    loop_radius: Optional[str] = None
    positions: list[str] = Field(default_factory=list)
    angles: FluxAngles = Field(default_factory=FluxAngles)
    time: Optional[str] = None
    raw_tokens: list[str] = Field(default_factory=list)


class GeometrySolveInput(BaseModel):
    type: Literal["GEOMETRY_PROJECTION"] = "GEOMETRY_PROJECTION"
    raw_tokens: list[str] = Field(default_factory=list)


class UnknownSolveInput(BaseModel):
    type: Literal["UNKNOWN"] = "UNKNOWN"
    raw_tokens: list[str] = Field(default_factory=list)


StructuredSolveInput = Annotated[
    Union[CircuitSolveInput, FluxSolveInput, GeometrySolveInput, UnknownSolveInput],
    Field(discriminator="type"),
]

_solve_input_adapter = TypeAdapter(StructuredSolveInput)


def decode_structure(payload: Any) -> QuestionStructureAnalysis:
    """Decode a raw structure analysis dict, raising MalformedPayload on bad shapes."""
    if isinstance(payload, QuestionStructureAnalysis):
        return payload
    if not isinstance(payload, dict):
        raise MalformedPayload(f"structure analysis must be an object, got {type(payload).__name__}")
    try:
        return QuestionStructureAnalysis.model_validate(payload)
    except ValidationError as e:
        raise MalformedPayload(str(e)) from e


def decode_solve_input(payload: Any):
    """Decode a raw solve input dict into its tagged variant."""
    if isinstance(payload, (CircuitSolveInput, FluxSolveInput, GeometrySolveInput, UnknownSolveInput)):
        return payload
    try:
        return _solve_input_adapter.validate_python(payload)
    except ValidationError as e:
        raise MalformedPayload(str(e)) from e
