"""Parsed request models for MultiBuild.

Structured form of a free-text build request, produced by the InputAgent
and held by the workflow engine as the current request.
"""

from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field


class BuildType(str, Enum):
    """Category of structure being planned."""

    WALL = "wall"
    GARDEN_WALL = "garden_wall"
    PIZZA_OVEN = "pizza_oven"
    FIRE_PIT = "fire_pit"
    FOUNDATION = "foundation"
    STRUCTURE = "structure"
    UNKNOWN = "unknown"


class Urgency(str, Enum):
    """How soon the user wants to build."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ExperienceLevel(str, Enum):
    """Self-reported building experience."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    EXPERT = "expert"


class QualityOption(str, Enum):
    """Pizza-oven configurator tiers."""

    SCHNELL = "schnell"
    GUENSTIG = "günstig"
    PREMIUM = "premium"


class QuestionType(str, Enum):
    """Kind of clarifying question."""

    DIMENSIONS = "dimensions"
    MATERIALS = "materials"
    BUDGET = "budget"
    EXPERIENCE = "experience"
    CLARIFICATION = "clarification"


class Dimensions(BaseModel):
    """Partial dimensions in meters. Any subset may be absent."""

    length: Optional[float] = Field(default=None, ge=0)
    width: Optional[float] = Field(default=None, ge=0)
    height: Optional[float] = Field(default=None, ge=0)
    diameter: Optional[float] = Field(default=None, ge=0)

    def is_empty(self) -> bool:
        return all(
            value is None
            for value in (self.length, self.width, self.height, self.diameter)
        )

    def merged_with(self, newer: "Dimensions") -> "Dimensions":
        """Return a copy where values present in ``newer`` win."""
        return Dimensions(
            length=newer.length if newer.length is not None else self.length,
            width=newer.width if newer.width is not None else self.width,
            height=newer.height if newer.height is not None else self.height,
            diameter=newer.diameter if newer.diameter is not None else self.diameter,
        )


class ParsedRequest(BaseModel):
    """Output of the text parser.

    ``materials`` and ``constraints`` are keyword sets kept as sorted lists
    so the model serializes deterministically.
    """

    build_type: BuildType = Field(
        default=BuildType.UNKNOWN,
        alias="buildType",
        description="Detected build type"
    )
    dimensions: Dimensions = Field(
        default_factory=Dimensions,
        description="Detected dimensions in meters"
    )
    materials: List[str] = Field(
        default_factory=list,
        description="Material preference keywords"
    )
    constraints: List[str] = Field(
        default_factory=list,
        description="Constraint tags: budget, time, space, weather, insulation"
    )
    confidence: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Parse certainty (0-1)"
    )
    urgency: Urgency = Field(default=Urgency.LOW)
    budget: Optional[float] = Field(default=None, ge=0)
    experience: Optional[ExperienceLevel] = Field(default=None)
    area_sqm: Optional[float] = Field(
        default=None,
        alias="areaSqm",
        ge=0,
        description="Footprint area stated directly (qm, sqm, m²)"
    )
    quality_option: Optional[QualityOption] = Field(
        default=None,
        alias="qualityOption",
        description="schnell / günstig / premium tier"
    )
    source_text: str = Field(
        default="",
        alias="sourceText",
        description="Text the request was parsed from"
    )

    class Config:
        populate_by_name = True
        use_enum_values = True
        validate_default = True

    @property
    def has_dimensions(self) -> bool:
        return not self.dimensions.is_empty() or self.area_sqm is not None

    def summary(self) -> str:
        """One-line human readable description."""
        parts = [self.build_type.replace("_", " ")]
        dims = self.dimensions
        if dims.diameter is not None:
            parts.append(f"Ø{dims.diameter:g}m")
        measured = [v for v in (dims.length, dims.width, dims.height) if v is not None]
        if measured:
            parts.append(" x ".join(f"{v:g}m" for v in measured))
        if self.area_sqm is not None:
            parts.append(f"{self.area_sqm:g} m²")
        if self.experience:
            parts.append(f"{self.experience} builder")
        if self.budget is not None:
            parts.append(f"budget €{self.budget:,.0f}")
        return ", ".join(parts)


class Question(BaseModel):
    """Clarifying question surfaced to the user."""

    type: QuestionType
    text: str
    required: bool = False
    suggestions: List[str] = Field(default_factory=list)

    class Config:
        populate_by_name = True
        use_enum_values = True
