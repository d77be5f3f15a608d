"""Unit tests for the pizza oven configurator agents."""

import pytest

from agents.pizzaoven_agents import (
    PREVIEW_IMAGE_URL,
    CalculationAgent,
    ImageAgent,
    RequirementsAgent,
    run_demo,
)
from config.errors import ValidationError
from models.pizzaoven import RequirementsInput


class TestRequirementsAgent:
    """Tests for RequirementsAgent.validate_requirements."""

    def test_defaults(self):
        requirements = RequirementsAgent().validate_requirements({})

        assert requirements.area_sqm == 1.5
        assert requirements.quality_option == "günstig"

    def test_numeric_string_area(self):
        requirements = RequirementsAgent().validate_requirements({"area_sqm": "2.0", "quality_option": "premium"})

        assert requirements.area_sqm == 2.0
        assert requirements.quality_option == "premium"

    @pytest.mark.parametrize("area", [1.19, 2.51, 0])
    def test_area_out_of_range_rejected(self, area):
        """Test areas outside 1.2-2.5 qm are rejected, never clamped."""
        with pytest.raises(ValidationError) as exc_info:
            RequirementsAgent().validate_requirements({"area_sqm": area})

        assert exc_info.value.field == "area_sqm"

    def test_bounds_inclusive(self):
        agent = RequirementsAgent()

        assert agent.validate_requirements({"area_sqm": 1.2}).area_sqm == 1.2
        assert agent.validate_requirements({"area_sqm": 2.5}).area_sqm == 2.5

    def test_unknown_quality_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            RequirementsAgent().validate_requirements({"quality_option": "luxury"})

        assert exc_info.value.field == "quality_option"
        assert exc_info.value.details["allowed"] == ["schnell", "günstig", "premium"]

    @pytest.mark.parametrize("area", ["nan", float("nan"), float("inf"), "-inf"])
    def test_non_finite_area_rejected(self, area):
        with pytest.raises(ValidationError) as exc_info:
            RequirementsAgent().validate_requirements({"area_sqm": area})

        assert exc_info.value.field == "area_sqm"

    def test_non_numeric_area_rejected(self):
        with pytest.raises(ValidationError):
            RequirementsAgent().validate_requirements({"area_sqm": "big"})


class TestCalculationAgent:
    """Tests for CalculationAgent.calculate_materials."""

    def test_baseline_guenstig(self):
        result = CalculationAgent().calculate_materials(RequirementsInput(area_sqm=1.5, quality_option="günstig"))

        amounts = {c.name: c.amount for c in result.components}
        assert amounts == {"Schamottsteine": 40, "Schamottmörtel": 3, "Isolierplatten": 2, "Ofentür": 1}
        # 40 x 1.60 + 3 x 8.50 + 2 x 14.00 + 29.00
        assert result.total_cost == pytest.approx(146.5)

    def test_amounts_scale_up_and_round_up(self):
        result = CalculationAgent().calculate_materials(RequirementsInput(area_sqm=1.8, quality_option="günstig"))

        amounts = {c.name: c.amount for c in result.components}
        assert amounts == {"Schamottsteine": 48, "Schamottmörtel": 4, "Isolierplatten": 3, "Ofentür": 2}
        assert result.total_cost == pytest.approx(210.8)

    def test_smallest_oven(self):
        result = CalculationAgent().calculate_materials(RequirementsInput(area_sqm=1.2, quality_option="günstig"))

        assert result.components[0].amount == 32
        assert result.total_cost == pytest.approx(133.7)

    def test_premium_tier(self):
        result = CalculationAgent().calculate_materials(RequirementsInput(area_sqm=1.5, quality_option="premium"))

        assert result.total_cost == pytest.approx(363.7)
        assert result.quality_option == "premium"

    def test_total_is_sum_of_components(self):
        result = CalculationAgent().calculate_materials(RequirementsInput(area_sqm=2.3, quality_option="schnell"))

        assert result.total_cost == pytest.approx(sum(c.total_price for c in result.components))
        for component in result.components:
            assert component.total_price == pytest.approx(component.amount * component.price_per_unit)


class TestImageAgent:
    def test_prompt_size_and_style(self):
        requirements = RequirementsInput(area_sqm=2.2, quality_option="premium")
        calculation = CalculationAgent().calculate_materials(requirements)

        prompt = ImageAgent().generate_image_prompt(requirements, calculation)

        assert prompt.description.startswith("Ein großer luxuriöser")
        assert prompt.style == "photorealistic, professional architecture"
        assert "Fläche: 2.2 Quadratmeter" in prompt.details

    def test_compact_oven(self):
        requirements = RequirementsInput(area_sqm=1.5)
        calculation = CalculationAgent().calculate_materials(requirements)

        prompt = ImageAgent().generate_image_prompt(requirements, calculation)

        assert "kompakter" in prompt.description
        assert "40 Schamottsteine" in prompt.details
        assert ImageAgent().generate_image_url(prompt) == PREVIEW_IMAGE_URL


class TestRunDemo:
    def test_pipeline(self):
        shopping_list = run_demo({"area_sqm": 1.5, "quality_option": "schnell"})

        assert shopping_list.project == "Pizzaofen"
        assert shopping_list.estimated_build_time == "2-3 Tage"
        assert len(shopping_list.components) == 4
        assert shopping_list.image_url == PREVIEW_IMAGE_URL

    def test_invalid_input_raises(self):
        with pytest.raises(ValidationError):
            run_demo({"area_sqm": 3.0})
