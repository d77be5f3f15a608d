"""Blueprint models for MultiBuild.

Pydantic models for the multi-phase construction plan produced by the
PlanningAgent. A blueprint belongs to one conversation session and is
replaced (not merged) on re-planning.
"""

from enum import Enum
from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, Field, field_validator

from models.material_calculation import MaterialCalculationItem


class Difficulty(str, Enum):
    """Bucketed difficulty of a build."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class SafetyPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class BuildPhase(BaseModel):
    """A stage of physical building work."""

    id: str
    name: str
    description: str
    order: int = Field(ge=1)
    duration: str = Field(description="Human readable duration, e.g. '6 hours'")
    estimated_hours: float = Field(alias="estimatedHours", ge=0)
    materials: List[MaterialCalculationItem] = Field(default_factory=list)
    tools: List[str] = Field(default_factory=list)
    weather_dependent: bool = Field(default=False, alias="weatherDependent")
    skill_level: Difficulty = Field(default=Difficulty.BEGINNER, alias="skillLevel")
    safety_priority: SafetyPriority = Field(default=SafetyPriority.MEDIUM, alias="safetyPriority")

    class Config:
        populate_by_name = True
        use_enum_values = True


class SafetyGuideline(BaseModel):
    category: str
    title: str
    description: str
    severity: SafetyPriority = SafetyPriority.MEDIUM
    equipment: List[str] = Field(default_factory=list)

    class Config:
        use_enum_values = True


class QualityCheck(BaseModel):
    phase: str
    checkpoint: str
    criteria: List[str] = Field(default_factory=list)
    tools: List[str] = Field(default_factory=list)


class DetailedStep(BaseModel):
    """A numbered instruction within a build phase."""

    phase_id: str = Field(alias="phaseId")
    step_number: int = Field(alias="stepNumber", ge=1)
    title: str
    instructions: str
    estimated_minutes: int = Field(alias="estimatedMinutes", ge=0)
    tips: List[str] = Field(default_factory=list)

    class Config:
        populate_by_name = True


class TroubleshootingEntry(BaseModel):
    issue: str
    symptoms: List[str] = Field(default_factory=list)
    solutions: List[str] = Field(default_factory=list)
    prevention: str = ""


class DifficultyAssessment(BaseModel):
    """Suitability of a build for a given experience level."""

    difficulty: Difficulty
    suitable: bool
    recommendation: str

    class Config:
        use_enum_values = True


class EnhancedBlueprint(BaseModel):
    """The construction plan.

    Phase ``order`` values form a contiguous ascending sequence from 1.
    """

    id: str
    build_type: str = Field(alias="buildType")
    title: str
    template_id: str = Field(alias="templateId")
    experience_level: str = Field(default="intermediate", alias="experienceLevel")
    dimensions: dict = Field(default_factory=dict)
    phases: List[BuildPhase] = Field(default_factory=list)
    materials: List[MaterialCalculationItem] = Field(default_factory=list)
    total_cost: float = Field(default=0.0, alias="totalCost")
    estimated_time: str = Field(default="", alias="estimatedTime")
    estimated_hours: float = Field(default=0.0, alias="estimatedHours")
    difficulty: Difficulty = Difficulty.INTERMEDIATE
    difficulty_score: int = Field(default=0, alias="difficultyScore")
    difficulty_assessment: Optional[DifficultyAssessment] = Field(default=None, alias="difficultyAssessment")
    safety_guidelines: List[SafetyGuideline] = Field(default_factory=list, alias="safetyGuidelines")
    quality_checks: List[QualityCheck] = Field(default_factory=list, alias="qualityChecks")
    detailed_steps: List[DetailedStep] = Field(default_factory=list, alias="detailedSteps")
    troubleshooting: List[TroubleshootingEntry] = Field(default_factory=list)
    tools: List[str] = Field(default_factory=list)
    permits: List[str] = Field(default_factory=list)
    weather_considerations: List[str] = Field(default_factory=list, alias="weatherConsiderations")
    maintenance_schedule: List[str] = Field(default_factory=list, alias="maintenanceSchedule")
    created_at: datetime = Field(default_factory=datetime.utcnow, alias="createdAt")

    class Config:
        populate_by_name = True
        use_enum_values = True

    @field_validator("phases")
    @classmethod
    def _phases_contiguous(cls, phases: List[BuildPhase]) -> List[BuildPhase]:
        expected = list(range(1, len(phases) + 1))
        if [phase.order for phase in phases] != expected:
            raise ValueError("phase order must be contiguous starting at 1")
        return phases
