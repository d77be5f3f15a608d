"""MultiBuild agents.

This package contains the conversation components:
- InputAgent (free-text parsing and clarifying questions)
- PlanningAgent (phased blueprints)
- RecommendationEngine (material alternatives and cost optimization)
- WorkflowEngine (phase state machine over a session)
- Pizza oven configurator agents
"""

from agents.input_agent import InputAgent
from agents.planning_agent import PlanningAgent
from agents.recommendation_engine import RecommendationEngine
from agents.workflow_engine import WorkflowEngine

__all__ = ["InputAgent", "PlanningAgent", "RecommendationEngine", "WorkflowEngine"]
