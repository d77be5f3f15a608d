"""Unit tests for the PlanningAgent blueprint builder."""

import pytest

from agents.planning_agent import (
    PlanningAgent,
    bucket_difficulty,
    resolve_dimensions,
    select_template,
    size_factor,
)
from config.errors import PlanningError
from models.parsed_request import Dimensions, ParsedRequest


@pytest.fixture
def planner(catalog):
    return PlanningAgent(catalog)


class TestTemplateSelection:
    """Tests for select_template and dimension defaults."""

    def test_exact_match(self):
        assert select_template("pizza_oven") == "pizza_oven"
        assert select_template("fire_pit") == "fire_pit"

    def test_family_fallback(self):
        assert select_template("wall") == "garden_wall"

    def test_generic_fallback(self):
        assert select_template("structure") == "generic"
        assert select_template("unknown") == "generic"

    def test_area_becomes_square_footprint(self):
        parsed = ParsedRequest(build_type="pizza_oven", area_sqm=2.25)

        dims = resolve_dimensions(parsed)

        assert dims.length == 1.5
        assert dims.width == 1.5
        assert dims.height == 1.0

    def test_default_heights(self):
        assert resolve_dimensions(ParsedRequest(build_type="foundation")).height == 0.3
        assert resolve_dimensions(ParsedRequest(build_type="structure")).height == 2.0

    def test_size_factor_and_buckets(self):
        assert size_factor(4) == 1.0
        assert size_factor(6) == 1.2
        assert size_factor(25) == 1.6
        assert bucket_difficulty(2) == "beginner"
        assert bucket_difficulty(4) == "intermediate"
        assert bucket_difficulty(5) == "advanced"


class TestCreateBlueprint:
    """Tests for PlanningAgent.create_blueprint."""

    def test_pizza_oven_blueprint(self, planner, pizza_oven_request):
        blueprint = planner.create_blueprint(pizza_oven_request)

        assert blueprint.id.startswith("blueprint-")
        assert blueprint.title == "Wood-Fired Pizza Oven"
        assert blueprint.template_id == "pizza_oven"
        assert [p.order for p in blueprint.phases] == [1, 2, 3, 4]
        assert blueprint.total_cost == pytest.approx(sum(i.total_cost for i in blueprint.materials))
        assert blueprint.estimated_hours > 0
        assert blueprint.detailed_steps
        assert blueprint.estimated_time.endswith("days")

    def test_beginner_pizza_oven_not_suitable(self, planner):
        parsed = ParsedRequest(
            build_type="pizza_oven",
            dimensions=Dimensions(length=1, width=1),
            experience="beginner",
            confidence=0.9,
        )

        blueprint = planner.create_blueprint(parsed)

        # base 3 + material 1 + beginner 1
        assert blueprint.difficulty_score == 5
        assert blueprint.difficulty == "advanced"
        assert blueprint.difficulty_assessment.suitable is False
        # 17 template hours x 1.5 for a beginner
        assert blueprint.estimated_hours == pytest.approx(25.5)
        assert blueprint.estimated_time == "4-5 days"

    def test_expert_is_faster(self, planner, pizza_oven_request):
        beginner = planner.create_blueprint(pizza_oven_request)
        expert = planner.create_blueprint(pizza_oven_request.model_copy(update={"experience": "expert"}))

        assert expert.estimated_hours < beginner.estimated_hours
        assert expert.difficulty == "intermediate"

    def test_fire_builds_get_fire_guidance(self, planner, pizza_oven_request):
        blueprint = planner.create_blueprint(pizza_oven_request)

        titles = {g.title for g in blueprint.safety_guidelines}
        assert {"Personal Protective Equipment", "Fire Safety", "Fire Brick Handling"} <= titles
        assert "Clean ash and debris after each use" in blueprint.maintenance_schedule
        assert any("fire regulations" in permit for permit in blueprint.permits)

    def test_beginner_troubleshooting_suggests_help(self, planner, pizza_oven_request):
        blueprint = planner.create_blueprint(pizza_oven_request)

        assert blueprint.troubleshooting
        for entry in blueprint.troubleshooting:
            assert all(s.endswith("(consider professional help if unsure)") for s in entry.solutions)

    def test_garden_wall_blueprint(self, planner, garden_wall_request):
        blueprint = planner.create_blueprint(garden_wall_request)

        titles = {g.title for g in blueprint.safety_guidelines}
        assert "Working at Height" in titles
        assert "Fire Safety" not in titles
        assert blueprint.difficulty == "intermediate"
        assert any(permit.startswith("Foundation work") for permit in blueprint.permits)

    def test_tall_structure_needs_permit(self, planner):
        parsed = ParsedRequest(build_type="structure", dimensions=Dimensions(length=2, width=2))

        blueprint = planner.create_blueprint(parsed)

        assert blueprint.template_id == "generic"
        assert blueprint.title == "Structure"
        assert any("building permit" in permit for permit in blueprint.permits)

    def test_wall_uses_garden_wall_phases(self, planner):
        parsed = ParsedRequest(build_type="wall", dimensions=Dimensions(length=3, width=0.2, height=1))

        blueprint = planner.create_blueprint(parsed)

        assert blueprint.template_id == "garden_wall"
        assert blueprint.title == "Wall"
        assert blueprint.phases[2].name == "Wall Construction"

    def test_phase_materials_by_category(self, planner, pizza_oven_request):
        blueprint = planner.create_blueprint(pizza_oven_request)

        phase_ids = {item.material.id for phase in blueprint.phases for item in phase.materials}
        assert phase_ids <= {item.material.id for item in blueprint.materials}

    def test_unknown_build_type_raises_planning_error(self, planner):
        with pytest.raises(PlanningError) as exc_info:
            planner.create_blueprint(ParsedRequest(build_type="unknown", dimensions=Dimensions(length=1)))

        assert exc_info.value.build_type == "unknown"


class TestDifficultyAssessment:
    """Tests for PlanningAgent.get_difficulty_assessment."""

    def test_simple_build_suitable_for_beginner(self, planner):
        assessment = planner.get_difficulty_assessment("foundation", "beginner")

        assert assessment.suitable is True

    def test_defaults_to_intermediate(self, planner):
        assessment = planner.get_difficulty_assessment("garden_wall")

        assert assessment.difficulty == "beginner"
        assert assessment.suitable is True
