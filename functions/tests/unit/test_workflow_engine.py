"""Unit tests for the WorkflowEngine conversation state machine."""

import json
from unittest.mock import MagicMock

import pytest
import pytest_asyncio

from agents.workflow_engine import WorkflowEngine, classify_intent, is_open_question
from config.errors import (
    ErrorCategory,
    ErrorCode,
    PlanningError,
    SessionNotFoundError,
    ValidationError,
    WorkflowError,
)
from models.workflow import WorkflowPhase, WorkflowState
from services.catalog_service import MOCK_MATERIALS, CatalogService
from services.session_store import encode_state

PIZZA_MESSAGE = "I want to build a pizza oven 1m x 1m, I'm a beginner"

# Firebrick and refractory mortar with pricier upgrades only; a single insulation
FIRE_ONLY_IDS = {
    "brick-firebrick-standard",
    "brick-firebrick-premium",
    "mortar-refractory",
    "mortar-refractory-premium",
    "insulation-ceramic-blanket",
}


@pytest_asyncio.fixture
async def interactive_engine(engine_factory):
    """Engine that has finished planning a beginner pizza oven."""
    engine = await engine_factory()
    await engine.process_message(PIZZA_MESSAGE)
    return engine


class TestPipeline:
    """Tests for automatic phase advancement."""

    @pytest.mark.asyncio
    async def test_pizza_oven_without_key_reaches_interactive(self, engine_factory):
        """Test a confident request runs planning and materials in one message."""
        engine = await engine_factory()

        response = await engine.process_message(PIZZA_MESSAGE)

        assert response.transitions == ["planning", "materials", "interactive"]
        assert response.phase == "interactive"
        assert response.agent == "catalog"
        assert response.error_category is None
        assert "blueprint" in response.data
        assert "materials" in response.data
        assert "**Recommendation:**" in response.message

        state = engine.get_state()
        assert state.blueprint.difficulty == "advanced"
        assert state.blueprint.estimated_time == "4-5 days"
        assert state.materials.total_cost > 0
        assert state.ai_analysis is None

    @pytest.mark.asyncio
    async def test_auto_advance_disabled_stops_in_planning(self, engine_factory):
        engine = await engine_factory(auto_advance=False)

        first = await engine.process_message(PIZZA_MESSAGE)
        second = await engine.process_message("ok")

        assert first.transitions == ["planning"]
        assert first.phase == "planning"
        assert second.transitions == ["materials"]
        assert engine.state.blueprint is not None

    @pytest.mark.asyncio
    async def test_one_exchange_per_message(self, engine_factory):
        engine = await engine_factory()

        await engine.process_message(PIZZA_MESSAGE)

        history = engine.state.conversation_history
        assert engine.state.message_count == 1
        assert [m.type for m in history] == ["user", "agent"]
        assert history[0].content == PIZZA_MESSAGE
        assert history[1].data["transitions"] == ["planning", "materials", "interactive"]

    @pytest.mark.asyncio
    async def test_history_is_bounded(self, engine_factory):
        engine = await engine_factory(history_limit=4)

        for text in ("hello there", "still thinking", "no idea yet"):
            await engine.process_message(text)

        assert engine.state.message_count == 3
        assert len(engine.state.conversation_history) == 4
        assert engine.state.conversation_history[0].content == "still thinking"

    @pytest.mark.asyncio
    async def test_empty_message_rejected(self, engine_factory):
        engine = await engine_factory()

        with pytest.raises(ValidationError):
            await engine.process_message("   ")

        assert engine.state.message_count == 0


class TestClarification:
    """Tests for the clarification loop."""

    @pytest.mark.asyncio
    async def test_vague_request_asks_for_dimensions(self, engine_factory):
        engine = await engine_factory()

        response = await engine.process_message("hello there")

        assert response.phase == "clarification"
        assert response.data["currentQuestion"]["type"] == "dimensions"
        assert engine.state.asked_questions == ["dimensions"]
        assert response.suggestions

    @pytest.mark.asyncio
    async def test_answers_merge_until_confident(self, engine_factory):
        engine = await engine_factory()

        await engine.process_message("hello there")
        second = await engine.process_message("a garden wall 4m long and 1m high")
        third = await engine.process_message("intermediate")

        assert second.phase == "clarification"
        assert second.data["currentQuestion"]["type"] == "experience"
        assert engine.state.asked_questions == ["dimensions", "experience"]
        assert third.transitions == ["planning", "materials", "interactive"]
        parsed = engine.state.parsed_request
        assert parsed.build_type == "garden_wall"
        assert parsed.dimensions.length == 4
        assert parsed.experience == "intermediate"

    @pytest.mark.asyncio
    async def test_new_project_from_interactive(self, interactive_engine):
        response = await interactive_engine.process_message("Actually, new project: a fire pit 1m diameter")

        assert response.transitions[0] == "input"
        assert response.phase == "clarification"
        assert interactive_engine.state.parsed_request.build_type == "fire_pit"
        assert interactive_engine.state.blueprint is None

    @pytest.mark.asyncio
    async def test_explicit_build_of_other_type_starts_over(self, interactive_engine):
        response = await interactive_engine.process_message("Now I want to build a fire pit")

        assert response.transitions[0] == "input"
        assert interactive_engine.state.parsed_request.build_type == "fire_pit"
        assert interactive_engine.state.blueprint is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("message", [
        "Can I use something else instead of the refractory mortar?",
        "How do I build the base?",
        "Should the base sit on a concrete slab?",
    ])
    async def test_follow_up_questions_keep_the_plan(self, interactive_engine, message):
        """Test questions about the current plan never discard it."""
        blueprint = interactive_engine.state.blueprint

        response = await interactive_engine.process_message(message)

        assert response.phase == "interactive"
        assert "input" not in response.transitions
        assert interactive_engine.state.parsed_request.build_type == "pizza_oven"
        assert interactive_engine.state.blueprint == blueprint
        assert interactive_engine.state.materials is not None

    @pytest.mark.asyncio
    async def test_plan_without_dimensions_says_defaults_were_assumed(self, engine_factory):
        engine = await engine_factory()

        first = await engine.process_message("I want to build a garden wall")
        second = await engine.process_message("I'm a beginner with a budget of 500 euros")

        assert first.data["currentQuestion"]["type"] == "dimensions"
        assert second.transitions == ["planning", "materials", "interactive"]
        assert second.data["assumedDimensions"] is True
        assert "assumed typical dimensions" in second.message
        assert engine.state.blueprint is not None


class TestInteractive:
    """Tests for follow-up questions once a plan exists."""

    @pytest.mark.asyncio
    async def test_cheaper_alternatives_only_save_money(self, interactive_engine):
        response = await interactive_engine.process_message("Show me cheaper alternatives")

        assert response.data["intent"] == "alternatives"
        assert response.data["cheaperOnly"] is True
        assert response.data["recommendations"]
        for rec in response.data["recommendations"]:
            assert rec["alternatives"]
            assert all(alt["costDifference"] < 0 for alt in rec["alternatives"])
        assert "cheaper alternatives" in response.message

    @pytest.mark.asyncio
    async def test_no_cheaper_material_returns_empty_list(self, engine_factory):
        """Test cheaper alternatives are an empty answer, not an error, when only upgrades exist."""
        materials = [m for m in MOCK_MATERIALS if m["id"] in FIRE_ONLY_IDS]
        rules = {"pizza_oven": {"bricksPerSqm": 45, "mortarPerSqm": 0.8, "insulationPerSqm": 1.2, "wasteFactor": 1.15}}
        engine = await engine_factory(catalog=CatalogService(materials=materials, rules=rules))
        await engine.process_message(PIZZA_MESSAGE)

        response = await engine.process_message("Show me cheaper alternatives")

        assert response.data["recommendations"] == []
        assert response.data["cheaperOnly"] is True
        assert response.error_category is None
        assert response.phase == "interactive"
        assert "no cheaper alternatives" in response.message

        upgrades = await engine.process_message("What alternatives do I have?")
        assert upgrades.data["recommendations"]

    @pytest.mark.asyncio
    async def test_alternatives_include_upgrades(self, interactive_engine):
        response = await interactive_engine.process_message("What alternatives do I have for the bricks?")

        assert response.data["cheaperOnly"] is False
        differences = [alt["costDifference"] for rec in response.data["recommendations"] for alt in rec["alternatives"]]
        assert any(diff > 0 for diff in differences)

    @pytest.mark.asyncio
    async def test_cost_question(self, interactive_engine):
        response = await interactive_engine.process_message("How can I reduce the cost?")

        assert response.data["intent"] == "cost"
        assert response.data["costOptimization"]["totalSavings"] > 0
        assert response.data["currentCost"] == pytest.approx(interactive_engine.state.materials.total_cost)
        assert response.phase == "interactive"

    @pytest.mark.asyncio
    async def test_safety_question(self, interactive_engine):
        response = await interactive_engine.process_message("What safety measures do I need?")

        assert response.data["intent"] == "safety"
        assert response.data["criticalCount"] >= 2
        assert "Fire Safety" in response.message

    @pytest.mark.asyncio
    async def test_time_question(self, interactive_engine):
        response = await interactive_engine.process_message("How long will it take?")

        assert response.data["intent"] == "time"
        assert response.data["estimatedTime"] == "4-5 days"
        assert "For beginners" in response.message

    @pytest.mark.asyncio
    async def test_general_message_without_key_shows_help(self, interactive_engine):
        response = await interactive_engine.process_message("Should I use clay for the hearth?")

        assert response.data["intent"] == "general"
        assert response.data["helpOptions"] is True
        assert response.suggestions


class TestAdvisory:
    """Tests for the AI analysis phase."""

    @pytest.mark.asyncio
    async def test_ai_analysis_runs_when_configured(self, engine_factory, advisory_service, mock_chat_openai):
        engine = await engine_factory(advisory=advisory_service)

        response = await engine.process_message(PIZZA_MESSAGE)

        assert response.transitions == ["planning", "materials", "ai_analysis", "interactive"]
        assert response.agent == "advisory"
        assert "**AI Expert Analysis:**" in response.message
        analysis = engine.state.ai_analysis
        assert analysis.source == "ai"
        assert analysis.insights.complexity_rating == 6
        assert analysis.tokens_used == 120
        mock_chat_openai.ainvoke.assert_called_once()

    @pytest.mark.asyncio
    async def test_ai_failure_uses_fallback(self, engine_factory, advisory_service, mock_chat_openai):
        mock_chat_openai.ainvoke.side_effect = Exception("Connection timed out")
        engine = await engine_factory(advisory=advisory_service)

        response = await engine.process_message(PIZZA_MESSAGE)

        assert response.phase == "interactive"
        assert response.error_category is None
        assert "AI insights are unavailable right now" in response.message
        assert engine.state.ai_analysis.source == "fallback"

    @pytest.mark.asyncio
    async def test_open_question_gets_expert_advice(self, engine_factory, advisory_service):
        engine = await engine_factory(advisory=advisory_service)
        await engine.process_message(PIZZA_MESSAGE)

        response = await engine.process_message("Should I use clay for the hearth?")

        assert response.agent == "advisory"
        assert response.data["expertAdvice"] is True
        assert "reclaimed fire bricks" in response.message


class TestErrors:
    """Tests for error rollback and planning failures."""

    @pytest.mark.asyncio
    async def test_unexpected_error_rolls_back(self, engine_factory):
        planner = MagicMock()
        planner.create_blueprint.side_effect = RuntimeError("boom")
        engine = await engine_factory(planning_agent=planner)

        response = await engine.process_message(PIZZA_MESSAGE)

        assert response.error_category == ErrorCategory.OTHER
        assert response.transitions == []
        assert response.phase == "input"
        assert response.data == {"error": True}
        assert engine.state.parsed_request is None
        assert engine.state.last_error == "boom"
        assert engine.state.message_count == 1

    @pytest.mark.asyncio
    async def test_network_error_category(self, engine_factory):
        planner = MagicMock()
        planner.create_blueprint.side_effect = ConnectionError("connection refused")
        engine = await engine_factory(planning_agent=planner)

        response = await engine.process_message(PIZZA_MESSAGE)

        assert response.error_category == ErrorCategory.NETWORK
        assert "couldn't reach" in response.message

    @pytest.mark.asyncio
    async def test_planning_failure_returns_to_input(self, engine_factory):
        planner = MagicMock()
        planner.create_blueprint.side_effect = PlanningError("Failed to create blueprint", build_type="pizza_oven")
        engine = await engine_factory(planning_agent=planner)

        response = await engine.process_message(PIZZA_MESSAGE)

        assert response.transitions == ["planning", "input"]
        assert response.phase == "input"
        assert response.data["planningFailed"] is True
        assert response.error_category is None
        assert engine.state.parsed_request is None
        assert engine.get_session_info().last_error == "Failed to create blueprint"

    @pytest.mark.asyncio
    async def test_last_error_cleared_by_next_message(self, engine_factory):
        planner = MagicMock()
        planner.create_blueprint.side_effect = RuntimeError("boom")
        engine = await engine_factory(planning_agent=planner)
        await engine.process_message(PIZZA_MESSAGE)

        await engine.process_message("hello there")

        assert engine.state.last_error is None

    @pytest.mark.asyncio
    async def test_invalid_transition_raises(self, engine_factory):
        engine = await engine_factory()

        with pytest.raises(WorkflowError) as exc_info:
            engine._transition(WorkflowPhase.INTERACTIVE)

        assert exc_info.value.code == ErrorCode.INVALID_TRANSITION


class TestPersistence:
    """Tests for session restore and reset."""

    @pytest.mark.asyncio
    async def test_resume_current_session(self, engine_factory):
        first = await engine_factory()
        await first.process_message(PIZZA_MESSAGE)

        resumed = await engine_factory()

        assert resumed.session_id == first.session_id
        assert resumed.state.phase == "interactive"
        assert resumed.state.blueprint is not None
        assert resumed.state.message_count == 1

    @pytest.mark.asyncio
    async def test_last_write_wins(self, engine_factory):
        a = await engine_factory(session_id="shared")
        b = await engine_factory(session_id="shared")

        await a.process_message(PIZZA_MESSAGE)
        await b.process_message("hello there")

        reloaded = await engine_factory(session_id="shared")
        assert reloaded.state.phase == "clarification"
        assert reloaded.state.conversation_history[0].content == "hello there"

    @pytest.mark.asyncio
    async def test_legacy_phase_restored_as_interactive(self, engine_factory, memory_store):
        payload = encode_state(WorkflowState(session_id="legacy"))
        payload["state"]["phase"] = "review"
        memory_store.put_raw("legacy", json.dumps(payload))

        engine = await engine_factory(session_id="legacy")

        assert engine.state.phase == "interactive"

    @pytest.mark.asyncio
    async def test_unknown_phase_restored_as_input(self, engine_factory, memory_store):
        payload = encode_state(WorkflowState(session_id="odd"))
        payload["state"]["phase"] = "bogus"
        memory_store.put_raw("odd", json.dumps(payload))

        engine = await engine_factory(session_id="odd")

        assert engine.state.phase == "input"

    @pytest.mark.asyncio
    async def test_corrupt_session_starts_fresh(self, engine_factory, memory_store):
        memory_store.put_raw("broken", "{not json")

        engine = await engine_factory(session_id="broken")

        assert engine.session_id == "broken"
        assert engine.state.message_count == 0
        assert engine.state.phase == "input"

    @pytest.mark.asyncio
    async def test_reset_session(self, interactive_engine, memory_store):
        old_id = interactive_engine.session_id

        info = await interactive_engine.reset_session()

        assert info.session_id != old_id
        assert info.phase == "input"
        assert info.message_count == 0
        assert info.has_blueprint is False
        assert await memory_store.get_current_session_id() == info.session_id
        with pytest.raises(SessionNotFoundError):
            await memory_store.get(old_id)

    @pytest.mark.asyncio
    async def test_session_info(self, interactive_engine):
        info = interactive_engine.get_session_info()

        assert info.phase == "interactive"
        assert info.has_api_key is False
        assert info.has_blueprint is True
        assert info.has_materials is True
        assert info.build_type == "pizza_oven"

    @pytest.mark.asyncio
    async def test_set_api_key(self, interactive_engine):
        interactive_engine.set_api_key("gsk-test")
        assert interactive_engine.get_session_info().has_api_key is True

        interactive_engine.set_api_key(None)
        assert interactive_engine.get_session_info().has_api_key is False


class TestIntentClassification:
    @pytest.mark.parametrize("message,intent", [
        ("Show me cheaper alternatives", "alternatives"),
        ("How can I reduce the cost?", "cost"),
        ("What safety measures do I need?", "safety"),
        ("How long will it take?", "time"),
        ("Any tips to improve the build?", "recommendations"),
        ("thanks", "general"),
    ])
    def test_classify_intent(self, message, intent):
        assert classify_intent(message) == intent

    def test_open_question(self):
        assert is_open_question("Should I use clay?")
        assert is_open_question("how thick should the walls be")
        assert not is_open_question("thanks")


def test_engine_accepts_explicit_state(memory_store):
    engine = WorkflowEngine(WorkflowState(session_id="explicit"), memory_store)

    assert engine.session_id == "explicit"
    assert engine.get_state().phase == "input"
