"""MultiBuild - Cloud Functions.

This package contains the Python Cloud Functions for the MultiBuild
masonry build planner.

Architecture:
- InputAgent, PlanningAgent, RecommendationEngine: deterministic planning core
- AdvisoryService: optional LLM analysis with static fallback
- WorkflowEngine: phase state machine persisted through a SessionStore
"""

__version__ = "1.0.0"
