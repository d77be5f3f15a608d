"""Catalog Service for MultiBuild.

Mock material catalog, per-build-type calculation rules and the material
quantity calculator built on top of them.
"""

import math
import re
from typing import Any, Dict, List, Optional

import structlog

from config.errors import CalculationRulesError
from models.catalog import CalculationRule, EnhancedMaterial, MaterialCategory
from models.material_calculation import (
    MaterialCalculation,
    MaterialCalculationItem,
    QuantityBreakdown,
)
from models.parsed_request import BuildType, Dimensions

logger = structlog.get_logger()

DEFAULT_FOUNDATION_DEPTH = 0.3
DEFAULT_DELIVERY_TIME = "1-2 days"
HIGH_HEAT_BUILD_TYPES = frozenset({BuildType.PIZZA_OVEN.value, BuildType.FIRE_PIT.value})

_LEAD_TIME_PATTERN = re.compile(r"(\d+)-?(\d+)?\s*days?")


# =============================================================================
# MOCK DATA - MATERIALS
# =============================================================================

MOCK_MATERIALS: List[Dict[str, Any]] = [
    # Bricks
    {
        "id": "brick-standard-clay",
        "name": "Standard Clay Brick",
        "category": "brick",
        "price": 0.65,
        "unit": "piece",
        "description": "Solid clay brick for general walling",
        "specifications": {"dimensions": "215x102.5x65mm", "weight": "2.3kg", "strength": "20 N/mm²", "waterResistance": "Medium"},
        "compatibility": ["wall", "garden_wall", "structure"],
        "alternatives": ["brick-engineering-class-b", "brick-facing-premium"],
        "inStock": True,
        "supplier": "Ziegelwerk Nord",
        "leadTime": "1-2 days",
    },
    {
        "id": "brick-engineering-class-b",
        "name": "Engineering Brick Class B",
        "category": "brick",
        "price": 0.95,
        "unit": "piece",
        "description": "Dense, low absorption brick for damp and load-bearing courses",
        "specifications": {"dimensions": "215x102.5x65mm", "weight": "3.0kg", "strength": "75 N/mm²", "waterResistance": "High"},
        "compatibility": ["wall", "garden_wall", "structure", "foundation"],
        "alternatives": ["brick-standard-clay"],
        "inStock": True,
        "supplier": "Ziegelwerk Nord",
        "leadTime": "2-4 days",
    },
    {
        "id": "brick-facing-premium",
        "name": "Premium Facing Brick",
        "category": "brick",
        "price": 1.20,
        "unit": "piece",
        "description": "Premium handmade facing brick with textured finish",
        "specifications": {"dimensions": "215x102.5x65mm", "weight": "2.4kg", "strength": "35 N/mm²", "waterResistance": "Medium"},
        "compatibility": ["wall", "garden_wall", "structure"],
        "alternatives": ["brick-standard-clay"],
        "inStock": True,
        "supplier": "Klinker Manufaktur",
        "leadTime": "5-7 days",
    },
    {
        "id": "brick-concrete-block",
        "name": "Concrete Block",
        "category": "brick",
        "price": 1.10,
        "unit": "piece",
        "description": "Hollow concrete block for quick structural walls",
        "specifications": {"dimensions": "440x215x100mm", "weight": "10kg", "strength": "7.3 N/mm²"},
        "compatibility": ["wall", "structure", "foundation"],
        "alternatives": [],
        "inStock": True,
        "supplier": "Baustoff Union",
        "leadTime": "1-2 days",
    },
    {
        "id": "brick-firebrick-standard",
        "name": "Standard Firebrick",
        "category": "brick",
        "price": 2.80,
        "unit": "piece",
        "description": "Refractory firebrick for ovens and fire pits",
        "specifications": {"dimensions": "230x114x64mm", "weight": "3.4kg", "strength": "30 N/mm²", "heatResistance": "1200°C"},
        "compatibility": ["pizza_oven", "fire_pit"],
        "alternatives": ["brick-firebrick-premium", "brick-firebrick-discontinued"],
        "inStock": True,
        "supplier": "Feuerfest Handel",
        "leadTime": "3-5 days",
    },
    {
        "id": "brick-firebrick-premium",
        "name": "Premium High-Alumina Firebrick",
        "category": "brick",
        "price": 4.20,
        "unit": "piece",
        "description": "Premium high-alumina firebrick with superior heat retention",
        "specifications": {"dimensions": "230x114x64mm", "weight": "3.8kg", "strength": "45 N/mm²", "heatResistance": "1400°C"},
        "compatibility": ["pizza_oven", "fire_pit"],
        "alternatives": ["brick-firebrick-standard"],
        "inStock": True,
        "supplier": "Feuerfest Handel",
        "leadTime": "5-7 days",
    },
    # Mortar
    {
        "id": "mortar-standard-general",
        "name": "General Purpose Mortar",
        "category": "mortar",
        "price": 6.50,
        "unit": "25kg bag",
        "description": "Ready-mixed cement mortar for general brickwork",
        "specifications": {"coverage": "approx. 30 bricks per bag", "strength": "M4"},
        "compatibility": ["wall", "garden_wall", "structure", "foundation"],
        "alternatives": ["mortar-waterproof", "mortar-lime"],
        "inStock": True,
        "supplier": "Baustoff Union",
        "leadTime": "1-2 days",
    },
    {
        "id": "mortar-waterproof",
        "name": "Waterproof Mortar",
        "category": "mortar",
        "price": 9.80,
        "unit": "25kg bag",
        "description": "Water-repellent mortar for exposed outdoor walls",
        "specifications": {"coverage": "approx. 28 bricks per bag", "strength": "M6", "waterResistance": "High"},
        "compatibility": ["wall", "garden_wall", "foundation"],
        "alternatives": ["mortar-standard-general", "mortar-lime"],
        "inStock": True,
        "supplier": "Baustoff Union",
        "leadTime": "2-3 days",
    },
    {
        "id": "mortar-lime",
        "name": "Natural Hydraulic Lime Mortar",
        "category": "mortar",
        "price": 8.20,
        "unit": "25kg bag",
        "description": "Breathable lime mortar for garden and heritage walls",
        "specifications": {"coverage": "approx. 30 bricks per bag", "strength": "M2", "waterResistance": "Medium"},
        "compatibility": ["wall", "garden_wall"],
        "alternatives": ["mortar-waterproof"],
        "inStock": True,
        "supplier": "Kalkwerk Süd",
        "leadTime": "2-3 days",
    },
    {
        "id": "mortar-refractory",
        "name": "Refractory Mortar",
        "category": "mortar",
        "price": 18.50,
        "unit": "10kg bucket",
        "description": "Heat-resistant mortar for firebrick joints",
        "specifications": {"coverage": "approx. 40 firebricks per bucket", "heatResistance": "1300°C"},
        "compatibility": ["pizza_oven", "fire_pit"],
        "alternatives": ["mortar-refractory-premium"],
        "inStock": True,
        "supplier": "Feuerfest Handel",
        "leadTime": "3-5 days",
    },
    {
        "id": "mortar-refractory-premium",
        "name": "Premium Refractory Cement",
        "category": "mortar",
        "price": 26.00,
        "unit": "10kg bucket",
        "description": "Premium castable refractory cement for dome builds",
        "specifications": {"heatResistance": "1500°C"},
        "compatibility": ["pizza_oven"],
        "alternatives": ["mortar-refractory"],
        "inStock": True,
        "supplier": "Feuerfest Handel",
        "leadTime": "5-7 days",
    },
    # Foundation
    {
        "id": "foundation-concrete-standard",
        "name": "Ready-Mix Concrete C25/30",
        "category": "foundation",
        "price": 145.00,
        "unit": "m³",
        "description": "Standard ready-mix concrete for strip and slab foundations",
        "specifications": {"strength": "25 N/mm²"},
        "compatibility": ["foundation", "wall", "garden_wall", "structure", "pizza_oven", "fire_pit"],
        "alternatives": ["foundation-concrete-rapid"],
        "inStock": True,
        "supplier": "Betonwerk Mitte",
        "leadTime": "2-3 days",
    },
    {
        "id": "foundation-concrete-rapid",
        "name": "Rapid-Set Concrete",
        "category": "foundation",
        "price": 175.00,
        "unit": "m³",
        "description": "Fast curing concrete, load-bearing after 24 hours",
        "specifications": {"strength": "30 N/mm²"},
        "compatibility": ["foundation", "structure"],
        "alternatives": ["foundation-concrete-standard"],
        "inStock": True,
        "supplier": "Betonwerk Mitte",
        "leadTime": "1-2 days",
    },
    {
        "id": "foundation-rebar-mesh",
        "name": "Rebar Mesh A142",
        "category": "foundation",
        "price": 34.90,
        "unit": "sheet",
        "description": "Steel reinforcement mesh, 2.4m x 1.2m",
        "specifications": {"dimensions": "2400x1200mm"},
        "compatibility": ["foundation", "structure", "pizza_oven"],
        "alternatives": [],
        "inStock": True,
        "supplier": "Stahlhandel West",
        "leadTime": "2-4 days",
    },
    # Insulation
    {
        "id": "insulation-ceramic-blanket",
        "name": "Ceramic Fibre Blanket",
        "category": "insulation",
        "price": 32.50,
        "unit": "m²",
        "description": "25mm ceramic fibre blanket for oven domes",
        "specifications": {"heatResistance": "1260°C"},
        "compatibility": ["pizza_oven"],
        "alternatives": ["insulation-calcium-silicate-board"],
        "inStock": True,
        "supplier": "Feuerfest Handel",
        "leadTime": "3-5 days",
    },
    {
        "id": "insulation-calcium-silicate-board",
        "name": "Calcium Silicate Board",
        "category": "insulation",
        "price": 24.90,
        "unit": "m²",
        "description": "Rigid insulation board for oven floors and hearths",
        "specifications": {"heatResistance": "1000°C"},
        "compatibility": ["pizza_oven", "fire_pit"],
        "alternatives": ["insulation-ceramic-blanket"],
        "inStock": True,
        "supplier": "Feuerfest Handel",
        "leadTime": "3-5 days",
    },
    # Accessories
    {
        "id": "accessory-oven-door",
        "name": "Cast Iron Oven Door",
        "category": "accessory",
        "price": 89.00,
        "unit": "piece",
        "description": "Insulated cast iron door with thermometer",
        "specifications": {"heatResistance": "600°C"},
        "compatibility": ["pizza_oven"],
        "alternatives": [],
        "inStock": True,
        "supplier": "Ofenbau Direkt",
        "leadTime": "5-7 days",
    },
    {
        "id": "accessory-chimney-flue",
        "name": "Stainless Chimney Flue",
        "category": "accessory",
        "price": 65.00,
        "unit": "piece",
        "description": "1m stainless steel flue pipe with cap",
        "specifications": {"heatResistance": "800°C"},
        "compatibility": ["pizza_oven"],
        "alternatives": [],
        "inStock": True,
        "supplier": "Ofenbau Direkt",
        "leadTime": "3-5 days",
    },
    {
        "id": "accessory-fire-grate",
        "name": "Steel Fire Grate",
        "category": "accessory",
        "price": 45.00,
        "unit": "piece",
        "description": "Heavy steel grate for fire pits",
        "specifications": {"heatResistance": "900°C"},
        "compatibility": ["fire_pit"],
        "alternatives": [],
        "inStock": True,
        "supplier": "Ofenbau Direkt",
        "leadTime": "2-3 days",
    },
    {
        "id": "accessory-dpc-membrane",
        "name": "Damp Proof Course Roll",
        "category": "accessory",
        "price": 14.90,
        "unit": "roll",
        "description": "112.5mm x 30m polyethylene damp proof course",
        "specifications": {"waterResistance": "High"},
        "compatibility": ["wall", "garden_wall", "structure"],
        "alternatives": [],
        "inStock": True,
        "supplier": "Baustoff Union",
        "leadTime": "1-2 days",
    },
    {
        "id": "accessory-wall-coping",
        "name": "Concrete Coping Stone",
        "category": "accessory",
        "price": 6.40,
        "unit": "piece",
        "description": "600mm twice-weathered coping for wall tops",
        "specifications": {"waterResistance": "High"},
        "compatibility": ["garden_wall", "wall"],
        "alternatives": [],
        "inStock": True,
        "supplier": "Baustoff Union",
        "leadTime": "2-3 days",
    },
    # Tools
    {
        "id": "tool-trowel-professional",
        "name": "Professional Brick Trowel",
        "category": "tool",
        "price": 24.90,
        "unit": "piece",
        "description": "Forged steel 11 inch brick trowel",
        "specifications": {},
        "compatibility": ["all"],
        "alternatives": ["tool-trowel-basic"],
        "inStock": True,
        "supplier": "ProTools GmbH",
        "leadTime": "1-2 days",
    },
    {
        "id": "tool-trowel-basic",
        "name": "Basic Brick Trowel",
        "category": "tool",
        "price": 8.90,
        "unit": "piece",
        "description": "Pressed steel trowel for occasional use",
        "specifications": {},
        "compatibility": ["all"],
        "alternatives": ["tool-trowel-professional"],
        "inStock": True,
        "supplier": "Baumarkt Direkt",
        "leadTime": "1-2 days",
    },
    {
        "id": "tool-spirit-level",
        "name": "Spirit Level 1200mm",
        "category": "tool",
        "price": 19.90,
        "unit": "piece",
        "description": "Aluminium spirit level with three vials",
        "specifications": {},
        "compatibility": ["all"],
        "alternatives": [],
        "inStock": True,
        "supplier": "ProTools GmbH",
        "leadTime": "1-2 days",
    },
    {
        "id": "tool-rubber-mallet",
        "name": "Rubber Mallet",
        "category": "tool",
        "price": 12.50,
        "unit": "piece",
        "description": "Rubber mallet for bedding bricks and blocks",
        "specifications": {},
        "compatibility": ["all"],
        "alternatives": [],
        "inStock": True,
        "supplier": "Baumarkt Direkt",
        "leadTime": "1-2 days",
    },
    {
        "id": "tool-brick-hammer",
        "name": "Brick Hammer and Bolster Set",
        "category": "tool",
        "price": 18.90,
        "unit": "set",
        "description": "Brick hammer with 100mm bolster chisel",
        "specifications": {},
        "compatibility": ["wall", "garden_wall", "structure", "fire_pit"],
        "alternatives": [],
        "inStock": True,
        "supplier": "ProTools GmbH",
        "leadTime": "1-2 days",
    },
    {
        "id": "tool-angle-grinder",
        "name": "Angle Grinder with Diamond Disc",
        "category": "tool",
        "price": 79.00,
        "unit": "piece",
        "description": "125mm angle grinder for cutting firebricks",
        "specifications": {},
        "compatibility": ["pizza_oven", "fire_pit", "structure"],
        "alternatives": [],
        "inStock": True,
        "supplier": "ProTools GmbH",
        "leadTime": "2-3 days",
    },
    {
        "id": "tool-shovel",
        "name": "Digging Shovel",
        "category": "tool",
        "price": 22.00,
        "unit": "piece",
        "description": "Square-mouth shovel for excavation and mixing",
        "specifications": {},
        "compatibility": ["all"],
        "alternatives": [],
        "inStock": True,
        "supplier": "Baumarkt Direkt",
        "leadTime": "1-2 days",
    },
    {
        "id": "tool-concrete-mixer-rental",
        "name": "Concrete Mixer (daily hire)",
        "category": "tool",
        "price": 45.00,
        "unit": "day",
        "description": "130 litre electric mixer, daily rental",
        "specifications": {},
        "compatibility": ["foundation", "structure"],
        "alternatives": [],
        "inStock": True,
        "supplier": "Mietpark Mitte",
        "leadTime": "1 day",
    },
]


# =============================================================================
# MOCK DATA - CALCULATION RULES
# =============================================================================

CALCULATION_RULES: Dict[str, Dict[str, Any]] = {
    "wall": {
        "bricksPerSqm": 60,
        "mortarPerSqm": 0.5,
        "wasteFactor": 1.1,
        "requiredTools": ["tool-trowel-professional", "tool-spirit-level", "tool-rubber-mallet"],
        "additionalMaterials": {"accessory-dpc-membrane": 1},
    },
    "garden_wall": {
        "bricksPerSqm": 60,
        "mortarPerSqm": 0.6,
        "wasteFactor": 1.1,
        "requiredTools": ["tool-trowel-professional", "tool-spirit-level", "tool-brick-hammer"],
        "additionalMaterials": {"accessory-dpc-membrane": 1, "accessory-wall-coping": 4},
    },
    "pizza_oven": {
        "bricksPerSqm": 45,
        "mortarPerSqm": 0.8,
        "insulationPerSqm": 1.2,
        "wasteFactor": 1.15,
        "requiredTools": ["tool-trowel-professional", "tool-angle-grinder", "tool-spirit-level"],
        "additionalMaterials": {"accessory-oven-door": 1, "accessory-chimney-flue": 1},
    },
    "fire_pit": {
        "bricksPerSqm": 50,
        "mortarPerSqm": 0.6,
        "wasteFactor": 1.1,
        "requiredTools": ["tool-trowel-professional", "tool-rubber-mallet", "tool-brick-hammer"],
        "additionalMaterials": {"accessory-fire-grate": 1},
    },
    "foundation": {
        "foundationPerCubicMeter": 1.0,
        "wasteFactor": 1.05,
        "requiredTools": ["tool-shovel", "tool-concrete-mixer-rental", "tool-spirit-level"],
        "additionalMaterials": {"foundation-rebar-mesh": 2},
    },
    "structure": {
        "bricksPerSqm": 60,
        "mortarPerSqm": 0.5,
        "wasteFactor": 1.1,
        "requiredTools": ["tool-trowel-professional", "tool-spirit-level", "tool-brick-hammer"],
        "additionalMaterials": {"accessory-dpc-membrane": 2},
    },
}


# =============================================================================
# MOCK DATA - PIZZA OVEN CONFIGURATOR
# =============================================================================

PIZZAOVEN_CATALOG: Dict[str, Any] = {
    "project": "Pizzaofen",
    "requirements": {
        "min_area_sqm": 1.2,
        "max_area_sqm": 2.5,
        "base_area_sqm": 1.5,
    },
    "components": [
        {
            "name": "Schamottsteine",
            "unit": "Stück",
            "options": {
                "günstig": {"amount": 40, "price_per_unit": 1.60},
                "schnell": {"amount": 40, "price_per_unit": 2.10},
                "premium": {"amount": 45, "price_per_unit": 3.20},
            },
        },
        {
            "name": "Schamottmörtel",
            "unit": "Sack",
            "options": {
                "günstig": {"amount": 3, "price_per_unit": 8.50},
                "schnell": {"amount": 3, "price_per_unit": 12.90},
                "premium": {"amount": 4, "price_per_unit": 16.50},
            },
        },
        {
            "name": "Isolierplatten",
            "unit": "Platte",
            "options": {
                "günstig": {"amount": 2, "price_per_unit": 14.00},
                "schnell": {"amount": 2, "price_per_unit": 18.00},
                "premium": {"amount": 3, "price_per_unit": 24.90},
            },
        },
        {
            "name": "Ofentür",
            "unit": "Stück",
            "options": {
                "günstig": {"amount": 1, "price_per_unit": 29.00},
                "schnell": {"amount": 1, "price_per_unit": 35.00},
                "premium": {"amount": 1, "price_per_unit": 79.00},
            },
        },
    ],
}


def extract_max_days(lead_time: str) -> int:
    """Upper bound in days of a lead time like '3-5 days' (1 if absent)."""
    match = _LEAD_TIME_PATTERN.search(lead_time or "")
    if match:
        return int(match.group(2) or match.group(1))
    return 1


def calculate_surface_area(build_type: str, dimensions: Dimensions) -> float:
    """Brickwork surface area in m² for a build type."""
    length = dimensions.length or 0.0
    width = dimensions.width or 0.0
    height = dimensions.height or 0.0
    diameter = dimensions.diameter or 0.0

    if build_type in (BuildType.WALL.value, BuildType.GARDEN_WALL.value):
        return length * height
    if build_type == BuildType.PIZZA_OVEN.value:
        if diameter > 0:
            # Hemispherical dome approximation
            return math.pi * (diameter / 2) ** 2 * 2
        return length * width * 1.5
    if build_type == BuildType.FIRE_PIT.value:
        if diameter > 0:
            return math.pi * diameter * height
        return (length + width) * 2 * height
    if build_type == BuildType.STRUCTURE.value:
        return 2 * (length * height + width * height)
    return length * height or width * height or 0.0


def calculate_volume(dimensions: Dimensions) -> float:
    """Foundation volume in m³; depth defaults to 0.3 m."""
    depth = dimensions.height or DEFAULT_FOUNDATION_DEPTH
    if dimensions.diameter:
        radius = dimensions.diameter / 2
        return math.pi * radius ** 2 * depth
    return (dimensions.length or 0.0) * (dimensions.width or 0.0) * depth


class CatalogService:
    """Material catalog lookups and quantity calculation.

    Catalog content is immutable reference data; pass ``materials`` and
    ``rules`` to run against a different catalog.
    """

    def __init__(
        self,
        materials: Optional[List[Dict[str, Any]]] = None,
        rules: Optional[Dict[str, Dict[str, Any]]] = None,
    ):
        raw_materials = MOCK_MATERIALS if materials is None else materials
        raw_rules = CALCULATION_RULES if rules is None else rules

        self.materials: List[EnhancedMaterial] = [
            EnhancedMaterial.model_validate(item) for item in raw_materials
        ]
        self.rules: Dict[str, CalculationRule] = {
            build_type: CalculationRule.model_validate(rule)
            for build_type, rule in raw_rules.items()
        }
        self._by_id: Dict[str, EnhancedMaterial] = {m.id: m for m in self.materials}

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def get_material_by_id(self, material_id: str) -> Optional[EnhancedMaterial]:
        return self._by_id.get(material_id)

    def search_by_build_type(self, build_type: str) -> List[EnhancedMaterial]:
        return [m for m in self.materials if m.is_compatible_with(build_type)]

    def search_by_category(self, category: str) -> List[EnhancedMaterial]:
        category = category.value if isinstance(category, MaterialCategory) else category
        return [m for m in self.materials if m.category == category]

    def search_materials(self, query: str) -> List[EnhancedMaterial]:
        """Case-insensitive match on name, description or category."""
        needle = query.lower()
        return [
            m for m in self.materials
            if needle in m.name.lower()
            or needle in m.description.lower()
            or needle in m.category.lower()
        ]

    def get_alternatives(self, material_id: str) -> List[EnhancedMaterial]:
        """Resolve a material's declared alternatives, dropping unknown ids."""
        material = self.get_material_by_id(material_id)
        if material is None:
            return []
        resolved = []
        for alt_id in material.alternatives:
            alternative = self.get_material_by_id(alt_id)
            if alternative is None:
                logger.debug("dangling_alternative", material_id=material_id, alternative_id=alt_id)
                continue
            resolved.append(alternative)
        return resolved

    def has_rules(self, build_type: str) -> bool:
        return build_type in self.rules

    def get_catalog_stats(self) -> Dict[str, Any]:
        categories = list(dict.fromkeys(m.category for m in self.materials))
        build_types = list(dict.fromkeys(bt for m in self.materials for bt in m.compatibility))
        return {
            "totalMaterials": len(self.materials),
            "categories": categories,
            "buildTypes": build_types,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Raw catalog content for the materials endpoint."""
        return {
            "materials": [m.model_dump(by_alias=True) for m in self.materials],
            "calculationRules": {
                build_type: rule.model_dump(by_alias=True, exclude_none=True)
                for build_type, rule in self.rules.items()
            },
            "pizzaoven": PIZZAOVEN_CATALOG,
            "stats": self.get_catalog_stats(),
        }

    # -------------------------------------------------------------------------
    # Calculation
    # -------------------------------------------------------------------------

    def calculate_material_needs(
        self,
        build_type: str,
        dimensions: Optional[Dimensions] = None,
    ) -> MaterialCalculation:
        """Quantities and cost for ``build_type`` at ``dimensions``.

        Raises:
            CalculationRulesError: If the build type has no rules entry.
        """
        rules = self.rules.get(build_type)
        if rules is None:
            raise CalculationRulesError(build_type)

        dimensions = dimensions or Dimensions()
        surface_area = calculate_surface_area(build_type, dimensions)
        volume = calculate_volume(dimensions)

        items: List[MaterialCalculationItem] = []
        quantities: Dict[str, QuantityBreakdown] = {}

        scaled = [
            (rules.bricks_per_sqm, surface_area, self._select_primary_brick(build_type)),
            (rules.mortar_per_sqm, surface_area, self._select_primary_mortar(build_type)),
            (rules.insulation_per_sqm, surface_area, self._select_insulation(build_type)),
            (rules.foundation_per_cubic_meter, volume, self._select_primary_concrete()),
        ]
        for coefficient, measure, material in scaled:
            if not coefficient or measure <= 0 or material is None:
                continue
            base = math.ceil(round(coefficient * measure, 6))
            waste = math.ceil(round(base * (rules.waste_factor - 1), 6))
            final = base + waste
            items.append(MaterialCalculationItem(
                material=material,
                quantity=final,
                total_cost=round(final * material.price, 2),
                waste_included=True,
                notes=f"{base} base + {waste} waste allowance",
            ))
            quantities[material.id] = QuantityBreakdown(
                base_quantity=base, waste_quantity=waste, final_quantity=final
            )

        for material_id, fixed_quantity in rules.additional_materials.items():
            material = self.get_material_by_id(material_id)
            if material is None:
                continue
            final = math.ceil(round(fixed_quantity * rules.waste_factor, 6))
            items.append(MaterialCalculationItem(
                material=material,
                quantity=final,
                total_cost=round(final * material.price, 2),
                waste_included=True,
                notes="Additional material requirement",
            ))
            quantities[material_id] = QuantityBreakdown(
                base_quantity=math.ceil(fixed_quantity),
                waste_quantity=max(final - math.ceil(fixed_quantity), 0),
                final_quantity=final,
            )

        for tool_id in rules.required_tools:
            tool = self.get_material_by_id(tool_id)
            if tool is None:
                continue
            items.append(MaterialCalculationItem(
                material=tool,
                quantity=1,
                total_cost=tool.price,
                waste_included=False,
                notes="Essential tool for construction",
            ))
            quantities[tool_id] = QuantityBreakdown(base_quantity=1, waste_quantity=0, final_quantity=1)

        total_cost = round(sum(item.total_cost for item in items), 2)

        logger.info(
            "materials_calculated",
            build_type=build_type,
            surface_area=round(surface_area, 3),
            volume=round(volume, 3),
            line_items=len(items),
            total_cost=total_cost,
        )

        return MaterialCalculation(
            materials=items,
            total_cost=total_cost,
            delivery_time=self._max_lead_time(items),
            waste_factor_applied=rules.waste_factor,
            build_type=build_type,
            surface_area=surface_area,
            volume=volume,
            estimated_quantities=quantities,
        )

    def _compatible_in_category(self, category: str, build_type: str) -> List[EnhancedMaterial]:
        return [
            m for m in self.materials
            if m.category == category and m.is_compatible_with(build_type)
        ]

    @staticmethod
    def _prefer(candidates: List[EnhancedMaterial], marker: str) -> Optional[EnhancedMaterial]:
        for material in candidates:
            if marker in material.id:
                return material
        return candidates[0] if candidates else None

    def _select_primary_brick(self, build_type: str) -> Optional[EnhancedMaterial]:
        bricks = self._compatible_in_category(MaterialCategory.BRICK.value, build_type)
        if build_type in HIGH_HEAT_BUILD_TYPES:
            return self._prefer(bricks, "firebrick")
        return self._prefer(bricks, "standard")

    def _select_primary_mortar(self, build_type: str) -> Optional[EnhancedMaterial]:
        mortars = self._compatible_in_category(MaterialCategory.MORTAR.value, build_type)
        if build_type in HIGH_HEAT_BUILD_TYPES:
            return self._prefer(mortars, "refractory")
        if build_type == BuildType.GARDEN_WALL.value:
            return self._prefer(mortars, "waterproof")
        return self._prefer(mortars, "standard")

    def _select_insulation(self, build_type: str) -> Optional[EnhancedMaterial]:
        insulation = self._compatible_in_category(MaterialCategory.INSULATION.value, build_type)
        return insulation[0] if insulation else None

    def _select_primary_concrete(self) -> Optional[EnhancedMaterial]:
        for material in self.materials:
            if material.category == MaterialCategory.FOUNDATION.value and "concrete-standard" in material.id:
                return material
        return None

    @staticmethod
    def _max_lead_time(items: List[MaterialCalculationItem]) -> str:
        lead_times = [item.material.lead_time for item in items if item.material.lead_time]
        if not lead_times:
            return DEFAULT_DELIVERY_TIME
        longest = lead_times[0]
        for lead_time in lead_times[1:]:
            if extract_max_days(lead_time) > extract_max_days(longest):
                longest = lead_time
        return longest
