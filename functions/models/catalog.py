"""Catalog models for MultiBuild.

Immutable reference data: purchasable materials and per-build-type
calculation rules.
"""

from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, field_validator


ALL_BUILD_TYPES = "all"


class MaterialCategory(str, Enum):
    """Catalog category of a material."""

    BRICK = "brick"
    MORTAR = "mortar"
    TOOL = "tool"
    ACCESSORY = "accessory"
    FOUNDATION = "foundation"
    INSULATION = "insulation"


class MaterialSpecifications(BaseModel):
    """Optional physical/performance attributes."""

    dimensions: Optional[str] = None
    weight: Optional[str] = None
    coverage: Optional[str] = None
    strength: Optional[str] = None
    heat_resistance: Optional[str] = Field(default=None, alias="heatResistance")
    water_resistance: Optional[str] = Field(default=None, alias="waterResistance")

    class Config:
        populate_by_name = True
        frozen = True


class EnhancedMaterial(BaseModel):
    """Catalog entry.

    ``alternatives`` may reference ids that are not in the catalog; those are
    dropped silently at lookup time.
    """

    id: str
    name: str
    category: MaterialCategory
    price: float = Field(ge=0, description="Price per unit in EUR")
    unit: str
    description: str = ""
    specifications: MaterialSpecifications = Field(default_factory=MaterialSpecifications)
    compatibility: List[str] = Field(
        default_factory=list,
        description="Build types this material suits, or 'all'"
    )
    alternatives: List[str] = Field(default_factory=list)
    in_stock: bool = Field(default=True, alias="inStock")
    supplier: Optional[str] = None
    lead_time: Optional[str] = Field(default=None, alias="leadTime")

    class Config:
        populate_by_name = True
        use_enum_values = True
        frozen = True

    def is_compatible_with(self, build_type: str) -> bool:
        return ALL_BUILD_TYPES in self.compatibility or build_type in self.compatibility


class CalculationRule(BaseModel):
    """Per-build-type quantity coefficients."""

    bricks_per_sqm: Optional[float] = Field(default=None, alias="bricksPerSqm", ge=0)
    mortar_per_sqm: Optional[float] = Field(default=None, alias="mortarPerSqm", ge=0)
    insulation_per_sqm: Optional[float] = Field(default=None, alias="insulationPerSqm", ge=0)
    foundation_per_cubic_meter: Optional[float] = Field(
        default=None, alias="foundationPerCubicMeter", ge=0
    )
    waste_factor: float = Field(default=1.1, alias="wasteFactor")
    required_tools: List[str] = Field(default_factory=list, alias="requiredTools")
    additional_materials: Dict[str, float] = Field(
        default_factory=dict,
        alias="additionalMaterials",
        description="material id -> fixed quantity"
    )

    class Config:
        populate_by_name = True
        frozen = True

    @field_validator("waste_factor")
    @classmethod
    def _waste_factor_at_least_one(cls, value: float) -> float:
        if value < 1.0:
            raise ValueError("waste_factor must be >= 1.0")
        return value
