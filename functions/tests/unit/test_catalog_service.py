"""Unit tests for the material catalog and quantity calculator."""

import math

import pytest

from config.errors import CalculationRulesError
from models.parsed_request import Dimensions
from services.catalog_service import (
    CALCULATION_RULES,
    calculate_surface_area,
    calculate_volume,
    extract_max_days,
)


DIMENSIONS_BY_TYPE = {
    "wall": Dimensions(length=3, width=0.2, height=2),
    "garden_wall": Dimensions(length=4, width=0.3, height=1.2),
    "pizza_oven": Dimensions(length=1.2, width=1.2, height=1.0),
    "fire_pit": Dimensions(diameter=1.0, height=0.4),
    "foundation": Dimensions(length=3, width=3, height=0.3),
    "structure": Dimensions(length=2, width=2, height=2),
}


class TestLookups:
    """Tests for catalog lookups."""

    def test_get_material_by_id(self, catalog):
        material = catalog.get_material_by_id("brick-firebrick-standard")

        assert material is not None
        assert material.category == "brick"
        assert catalog.get_material_by_id("does-not-exist") is None

    def test_dangling_alternatives_dropped(self, catalog):
        """Test unknown alternative ids are skipped silently."""
        alternatives = catalog.get_alternatives("brick-firebrick-standard")

        assert [m.id for m in alternatives] == ["brick-firebrick-premium"]

    def test_search_by_build_type_includes_universal_tools(self, catalog):
        ids = {m.id for m in catalog.search_by_build_type("pizza_oven")}

        assert "tool-trowel-basic" in ids
        assert "brick-firebrick-standard" in ids
        assert "brick-standard-clay" not in ids

    def test_search_materials(self, catalog):
        results = catalog.search_materials("mortar")

        assert results
        assert all(m.category == "mortar" or "mortar" in m.name.lower() or "mortar" in m.description.lower()
                   for m in results)

    def test_catalog_stats(self, catalog):
        stats = catalog.get_catalog_stats()

        assert stats["totalMaterials"] == len(catalog.materials)
        assert "insulation" in stats["categories"]

    def test_has_rules(self, catalog):
        assert catalog.has_rules("pizza_oven")
        assert not catalog.has_rules("unknown")


class TestCalculation:
    """Tests for CatalogService.calculate_material_needs."""

    @pytest.mark.parametrize("build_type", sorted(CALCULATION_RULES))
    def test_waste_never_negative(self, catalog, build_type):
        """Test final = base + ceil(base x (waste - 1)) for every scaled material."""
        calculation = catalog.calculate_material_needs(build_type, DIMENSIONS_BY_TYPE[build_type])
        waste_factor = CALCULATION_RULES[build_type]["wasteFactor"]

        assert calculation.materials
        for item in calculation.materials:
            breakdown = calculation.estimated_quantities[item.material.id]
            assert breakdown.final_quantity >= breakdown.base_quantity
            assert breakdown.final_quantity == item.quantity
            if item.notes and "waste allowance" in item.notes:
                expected_waste = math.ceil(round(breakdown.base_quantity * (waste_factor - 1), 6))
                assert breakdown.waste_quantity == expected_waste

    def test_pizza_oven_quantities(self, catalog):
        calculation = catalog.calculate_material_needs("pizza_oven", Dimensions(length=1, width=1, height=1))

        bricks = calculation.item_for("brick-firebrick-standard")
        # 1 x 1 x 1.5 = 1.5 m2 at 45 bricks/m2 -> 68 base, 11 waste
        assert calculation.surface_area == pytest.approx(1.5)
        assert bricks.quantity == 79
        assert bricks.total_cost == pytest.approx(round(79 * 2.80, 2))
        assert calculation.item_for("mortar-refractory") is not None
        assert calculation.item_for("accessory-oven-door").quantity == 2

    def test_garden_wall_uses_waterproof_mortar(self, catalog):
        calculation = catalog.calculate_material_needs("garden_wall", DIMENSIONS_BY_TYPE["garden_wall"])

        assert calculation.item_for("mortar-waterproof") is not None
        assert calculation.item_for("brick-standard-clay") is not None

    def test_total_is_sum_of_lines(self, catalog):
        calculation = catalog.calculate_material_needs("wall", DIMENSIONS_BY_TYPE["wall"])

        assert calculation.total_cost == pytest.approx(sum(i.total_cost for i in calculation.materials))

    def test_tools_have_no_waste(self, catalog):
        calculation = catalog.calculate_material_needs("wall", DIMENSIONS_BY_TYPE["wall"])

        tools = [i for i in calculation.materials if i.material.category == "tool"]
        assert len(tools) == 3
        assert all(i.quantity == 1 and not i.waste_included for i in tools)

    def test_delivery_time_is_longest_lead_time(self, catalog):
        calculation = catalog.calculate_material_needs("pizza_oven", DIMENSIONS_BY_TYPE["pizza_oven"])

        longest = max(extract_max_days(i.material.lead_time) for i in calculation.materials)
        assert extract_max_days(calculation.delivery_time) == longest

    def test_unknown_build_type_raises(self, catalog):
        with pytest.raises(CalculationRulesError) as exc_info:
            catalog.calculate_material_needs("unknown", Dimensions(length=1))

        assert exc_info.value.build_type == "unknown"


class TestGeometry:
    """Tests for area and volume helpers."""

    def test_wall_area_is_length_by_height(self):
        assert calculate_surface_area("wall", Dimensions(length=3, width=0.2, height=2)) == pytest.approx(6)

    def test_round_fire_pit(self):
        area = calculate_surface_area("fire_pit", Dimensions(diameter=1.0, height=0.4))

        assert area == pytest.approx(math.pi * 0.4)

    def test_volume_default_depth(self):
        assert calculate_volume(Dimensions(length=2, width=2)) == pytest.approx(1.2)

    def test_extract_max_days(self):
        assert extract_max_days("3-5 days") == 5
        assert extract_max_days("1 day") == 1
        assert extract_max_days("") == 1
