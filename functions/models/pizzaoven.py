"""Pizza-oven configurator models for MultiBuild.

Tiered (schnell / günstig / premium) component pricing that scales with
the oven footprint.
"""

from typing import List, Optional
from pydantic import BaseModel, Field

from models.parsed_request import QualityOption


class RequirementsInput(BaseModel):
    """Request body of ``POST /calculate``."""

    area_sqm: float = Field(default=1.5, description="Oven footprint in m²")
    material_preference: Optional[str] = None
    quality_option: QualityOption = QualityOption.GUENSTIG

    class Config:
        use_enum_values = True
        validate_default = True


class ComponentCalculation(BaseModel):
    name: str
    amount: int = Field(ge=0)
    price_per_unit: float = Field(ge=0)
    total_price: float = Field(ge=0)


class CalculationResult(BaseModel):
    components: List[ComponentCalculation] = Field(default_factory=list)
    total_cost: float = 0.0
    quality_option: str


class ImagePrompt(BaseModel):
    """Prompt for an image generation API."""

    description: str
    style: str
    details: List[str] = Field(default_factory=list)


class ShoppingList(BaseModel):
    """Final configurator output."""

    project: str = "Pizzaofen"
    area_sqm: float
    quality_option: str
    components: List[ComponentCalculation] = Field(default_factory=list)
    total_cost: float = 0.0
    estimated_build_time: str
    image_prompt: ImagePrompt
    image_url: Optional[str] = None
