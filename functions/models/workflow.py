"""Workflow models for MultiBuild.

Conversation phases, the transition table between them, chat messages and
the persisted per-session WorkflowState.
"""

from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional
from datetime import datetime
from pydantic import BaseModel, Field, field_validator

from models.advisory import AdvisoryAnalysis
from models.blueprint import EnhancedBlueprint
from models.material_calculation import MaterialCalculation
from models.parsed_request import ParsedRequest, Question
from models.recommendation import MaterialRecommendation


class WorkflowPhase(str, Enum):
    """Stage of the conversation state machine."""

    INPUT = "input"
    CLARIFICATION = "clarification"
    PLANNING = "planning"
    MATERIALS = "materials"
    AI_ANALYSIS = "ai_analysis"
    INTERACTIVE = "interactive"


# Phases that run without waiting for user input
AUTOMATIC_PHASES: FrozenSet[str] = frozenset({
    WorkflowPhase.PLANNING.value,
    WorkflowPhase.MATERIALS.value,
    WorkflowPhase.AI_ANALYSIS.value,
})

ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    WorkflowPhase.INPUT.value: frozenset({
        WorkflowPhase.INPUT.value,
        WorkflowPhase.CLARIFICATION.value,
        WorkflowPhase.PLANNING.value,
    }),
    WorkflowPhase.CLARIFICATION.value: frozenset({
        WorkflowPhase.INPUT.value,
        WorkflowPhase.CLARIFICATION.value,
        WorkflowPhase.PLANNING.value,
    }),
    WorkflowPhase.PLANNING.value: frozenset({
        WorkflowPhase.MATERIALS.value,
        WorkflowPhase.INPUT.value,
    }),
    WorkflowPhase.MATERIALS.value: frozenset({
        WorkflowPhase.AI_ANALYSIS.value,
        WorkflowPhase.INTERACTIVE.value,
    }),
    WorkflowPhase.AI_ANALYSIS.value: frozenset({
        WorkflowPhase.INTERACTIVE.value,
    }),
    WorkflowPhase.INTERACTIVE.value: frozenset({
        WorkflowPhase.INTERACTIVE.value,
        WorkflowPhase.INPUT.value,
    }),
}

# Phase names written by older clients
LEGACY_PHASES: Dict[str, str] = {
    "review": WorkflowPhase.INTERACTIVE.value,
    "complete": WorkflowPhase.INTERACTIVE.value,
}


def normalize_phase(raw: Any) -> str:
    """Map a stored phase onto the closed enumeration.

    Legacy terminal phases become ``interactive``; anything else that is not
    recognized becomes ``input``.
    """
    value = raw.value if isinstance(raw, WorkflowPhase) else str(raw or "")
    if value in ALLOWED_TRANSITIONS:
        return value
    return LEGACY_PHASES.get(value, WorkflowPhase.INPUT.value)


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


class MessageType(str, Enum):
    USER = "user"
    AGENT = "agent"


class ChatMessage(BaseModel):
    """One entry of the conversation history."""

    id: str
    type: MessageType
    content: str
    agent: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    data: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        use_enum_values = True


class AgentResponse(BaseModel):
    """Reply produced for one processed user message."""

    agent: str
    message: str
    phase: WorkflowPhase
    suggestions: List[str] = Field(default_factory=list)
    transitions: List[str] = Field(
        default_factory=list,
        description="Phases entered while handling the message, in order"
    )
    data: Dict[str, Any] = Field(default_factory=dict)
    error_category: Optional[str] = Field(default=None, alias="errorCategory")

    class Config:
        populate_by_name = True
        use_enum_values = True


class WorkflowState(BaseModel):
    """Everything the engine knows about one conversation session."""

    session_id: str = Field(alias="sessionId")
    phase: WorkflowPhase = WorkflowPhase.INPUT
    message_count: int = Field(default=0, alias="messageCount", ge=0)
    parsed_request: Optional[ParsedRequest] = Field(default=None, alias="parsedRequest")
    pending_questions: List[Question] = Field(default_factory=list, alias="pendingQuestions")
    asked_questions: List[str] = Field(
        default_factory=list,
        alias="askedQuestions",
        description="Question types already surfaced for the current request"
    )
    blueprint: Optional[EnhancedBlueprint] = None
    materials: Optional[MaterialCalculation] = None
    recommendations: List[MaterialRecommendation] = Field(default_factory=list)
    conversation_history: List[ChatMessage] = Field(default_factory=list, alias="conversationHistory")
    ai_analysis: Optional[AdvisoryAnalysis] = Field(default=None, alias="aiAnalysis")
    last_error: Optional[str] = Field(default=None, alias="lastError")
    created_at: datetime = Field(default_factory=datetime.utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=datetime.utcnow, alias="updatedAt")

    class Config:
        populate_by_name = True
        use_enum_values = True
        validate_default = True

    @field_validator("phase", mode="before")
    @classmethod
    def _normalize_phase(cls, value: Any) -> str:
        return normalize_phase(value)

    def append_message(self, message: ChatMessage, limit: int) -> None:
        """Append to history, keeping only the most recent ``limit`` entries."""
        self.conversation_history.append(message)
        if len(self.conversation_history) > limit:
            del self.conversation_history[: len(self.conversation_history) - limit]

    def clear_project(self) -> None:
        """Drop everything derived from the current request."""
        self.parsed_request = None
        self.pending_questions = []
        self.asked_questions = []
        self.blueprint = None
        self.materials = None
        self.recommendations = []
        self.ai_analysis = None


class SessionInfo(BaseModel):
    """Summary exposed to clients."""

    session_id: str = Field(alias="sessionId")
    phase: str
    message_count: int = Field(alias="messageCount")
    has_api_key: bool = Field(alias="hasApiKey")
    has_blueprint: bool = Field(alias="hasBlueprint")
    has_materials: bool = Field(alias="hasMaterials")
    build_type: Optional[str] = Field(default=None, alias="buildType")
    last_error: Optional[str] = Field(default=None, alias="lastError")

    class Config:
        populate_by_name = True
