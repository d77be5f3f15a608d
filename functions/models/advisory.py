"""AI advisory models for MultiBuild."""

from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field


class AdvisorySource(str, Enum):
    AI = "ai"
    FALLBACK = "fallback"


class AdvisoryInsights(BaseModel):
    """Structured fields extracted from advisory free text.

    Every field may be empty: extraction is best-effort.
    """

    alternatives: List[str] = Field(default_factory=list)
    tips: List[str] = Field(default_factory=list)
    safety_warnings: List[str] = Field(default_factory=list, alias="safetyWarnings")
    quality_improvements: List[str] = Field(default_factory=list, alias="qualityImprovements")
    time_optimizations: List[str] = Field(default_factory=list, alias="timeOptimizations")
    risk_factors: List[str] = Field(default_factory=list, alias="riskFactors")
    complexity_rating: Optional[int] = Field(default=None, alias="complexityRating", ge=1, le=10)
    difficulty_assessment: Optional[str] = Field(default=None, alias="difficultyAssessment")
    cost_savings: float = Field(default=0.0, alias="costSavings", ge=0, description="Estimated EUR savings")

    class Config:
        populate_by_name = True


class AdvisoryAnalysis(BaseModel):
    """Result of a project analysis, AI generated or fallback."""

    response: str
    insights: AdvisoryInsights = Field(default_factory=AdvisoryInsights)
    source: AdvisorySource = AdvisorySource.FALLBACK
    tokens_used: int = Field(default=0, alias="tokensUsed")

    class Config:
        populate_by_name = True
        use_enum_values = True
        validate_default = True
