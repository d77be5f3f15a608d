"""Material calculation models for MultiBuild.

A MaterialCalculation is recomputed whenever build type or dimensions
change; it is replaced wholesale, never edited.
"""

from typing import Dict, List
from pydantic import BaseModel, Field

from models.catalog import EnhancedMaterial


class QuantityBreakdown(BaseModel):
    """Transparent split of a scaled quantity."""

    base_quantity: int = Field(alias="baseQuantity", ge=0)
    waste_quantity: int = Field(alias="wasteQuantity", ge=0)
    final_quantity: int = Field(alias="finalQuantity", ge=0)

    class Config:
        populate_by_name = True


class MaterialCalculationItem(BaseModel):
    """One line of a material calculation."""

    material: EnhancedMaterial
    quantity: int = Field(ge=0)
    total_cost: float = Field(alias="totalCost", ge=0)
    waste_included: bool = Field(default=False, alias="wasteIncluded")
    notes: str = ""

    class Config:
        populate_by_name = True


class MaterialCalculation(BaseModel):
    """Quantities and cost for a build."""

    materials: List[MaterialCalculationItem] = Field(default_factory=list)
    total_cost: float = Field(default=0.0, alias="totalCost")
    delivery_time: str = Field(default="1-2 days", alias="deliveryTime")
    waste_factor_applied: float = Field(default=1.0, alias="wasteFactorApplied")
    build_type: str = Field(alias="buildType")
    surface_area: float = Field(default=0.0, alias="surfaceArea")
    volume: float = 0.0
    estimated_quantities: Dict[str, QuantityBreakdown] = Field(
        default_factory=dict,
        alias="estimatedQuantities"
    )

    class Config:
        populate_by_name = True

    def item_for(self, material_id: str):
        for item in self.materials:
            if item.material.id == material_id:
                return item
        return None
