"""Recommendation models for MultiBuild."""

from typing import List, Optional
from pydantic import BaseModel, Field

from models.catalog import EnhancedMaterial
from models.material_calculation import MaterialCalculationItem


class RecommendationContext(BaseModel):
    """What the user cares about when comparing alternatives."""

    build_type: str = Field(alias="buildType")
    budget: Optional[float] = None
    prioritize_cost: bool = Field(default=False, alias="prioritizeCost")
    prioritize_quality: bool = Field(default=False, alias="prioritizeQuality")
    user_experience: Optional[str] = Field(default=None, alias="userExperience")

    class Config:
        populate_by_name = True


class AlternativeSuggestion(BaseModel):
    material: EnhancedMaterial
    reason: str
    cost_difference: float = Field(alias="costDifference", description="Per-unit price delta vs original")
    quality_improvement: Optional[str] = Field(default=None, alias="qualityImprovement")
    compatibility_score: float = Field(alias="compatibilityScore", ge=0.0, le=1.0)

    class Config:
        populate_by_name = True


class MaterialRecommendation(BaseModel):
    original: MaterialCalculationItem
    alternatives: List[AlternativeSuggestion] = Field(default_factory=list)


class CostOptimization(BaseModel):
    """Cheapest qualifying swap per material and the resulting savings."""

    total_savings: float = Field(default=0.0, alias="totalSavings")
    recommendations: List[str] = Field(default_factory=list)
    alternative_materials: List[AlternativeSuggestion] = Field(
        default_factory=list,
        alias="alternativeMaterials"
    )
    target_budget: Optional[float] = Field(default=None, alias="targetBudget")
    projected_total: float = Field(default=0.0, alias="projectedTotal")
    within_budget: Optional[bool] = Field(default=None, alias="withinBudget")

    class Config:
        populate_by_name = True
