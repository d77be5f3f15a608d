"""Agent Cards Registry for MultiBuild.

Metadata for the agents behind each conversation phase. The workflow
engine tags every reply with the agent that produced it.
"""

from typing import Dict, Any

from models.workflow import WorkflowPhase

AGENT_CARDS: Dict[str, Dict[str, Any]] = {
    "input": {
        "name": "MultiBuild Input Agent",
        "description": "Parses free-text project descriptions into build type, dimensions and preferences",
        "version": "1.0.0",
        "capabilities": ["text-parsing", "dimension-extraction", "clarifying-questions"],
        "phases": [WorkflowPhase.INPUT.value, WorkflowPhase.CLARIFICATION.value],
    },
    "planning": {
        "name": "MultiBuild Planning Agent",
        "description": "Creates phased construction blueprints with safety, permits and troubleshooting",
        "version": "1.0.0",
        "capabilities": ["blueprint-generation", "difficulty-assessment", "safety-guidelines"],
        "phases": [WorkflowPhase.PLANNING.value],
    },
    "catalog": {
        "name": "MultiBuild Catalog Agent",
        "description": "Calculates material quantities, waste and cost from the catalog rules",
        "version": "1.0.0",
        "capabilities": ["material-calculation", "delivery-estimation", "catalog-lookup"],
        "phases": [WorkflowPhase.MATERIALS.value],
    },
    "advisory": {
        "name": "MultiBuild AI Advisory",
        "description": "LLM project analysis and expert answers with static fallback content",
        "version": "1.0.0",
        "capabilities": ["project-analysis", "expert-advice"],
        "phases": [WorkflowPhase.AI_ANALYSIS.value],
    },
    "assistant": {
        "name": "MultiBuild Project Assistant",
        "description": "Answers follow-up questions about alternatives, cost, safety and time",
        "version": "1.0.0",
        "capabilities": ["recommendations", "cost-optimization", "follow-up-questions"],
        "phases": [WorkflowPhase.INTERACTIVE.value],
    },
}

PHASE_AGENTS: Dict[str, str] = {
    phase: agent_name
    for agent_name, card in AGENT_CARDS.items()
    for phase in card["phases"]
}


def get_agent_for_phase(phase: str) -> str:
    """Name of the agent that answers in ``phase``."""
    return PHASE_AGENTS.get(phase, "input")
