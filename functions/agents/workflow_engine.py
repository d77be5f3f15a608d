"""Workflow Engine for MultiBuild.

Drives one conversation session through the phase state machine:

    input -> clarification <-> input -> planning -> materials
          -> (ai_analysis) -> interactive

Automatic phases (planning, materials, ai_analysis) run back to back within
a single user message unless auto-advance is disabled. Every processed
message appends exactly one user and one agent message to the history and
persists the session. Errors are caught at the top: the state is restored
to its pre-message snapshot and the user gets an apology tagged with a
coarse error category.
"""

import re
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog

from agents.agent_cards import get_agent_for_phase
from agents.input_agent import InputAgent
from agents.planning_agent import PlanningAgent, resolve_dimensions
from agents.recommendation_engine import RecommendationEngine
from config.errors import (
    CalculationRulesError,
    ErrorCategory,
    ErrorCode,
    PlanningError,
    SessionStoreError,
    ValidationError,
    WorkflowError,
    classify_error,
)
from config.settings import settings
from models.advisory import AdvisoryAnalysis
from models.material_calculation import MaterialCalculationItem
from models.parsed_request import BuildType, ExperienceLevel, ParsedRequest, Question
from models.recommendation import MaterialRecommendation, RecommendationContext
from models.workflow import (
    AUTOMATIC_PHASES,
    AgentResponse,
    ChatMessage,
    MessageType,
    SessionInfo,
    WorkflowPhase,
    WorkflowState,
    can_transition,
)
from services.advisory_service import AdvisoryService
from services.catalog_service import CatalogService
from services.session_store import SessionStore, generate_session_id, get_session_store
from utils.agent_logger import log_agent_output, log_phase_transition, log_session_start, log_workflow_error

logger = structlog.get_logger()

# Upper bound on automatic stages per message
MAX_AUTOMATIC_STEPS = 6

NEW_PROJECT_PHRASES = ("new project", "start over", "start again", "neues projekt")
EXPLICIT_BUILD = r"\b(?:build|construct|make|bauen)\s+(?:me\s+)?(?:a|an|another|einen|eine)\s+(?:new\s+|small\s+|large\s+|big\s+)?{}"
CHEAPER_PATTERN = re.compile(r"\b(cheap|cheaper|cheapest|less expensive|save|saving|budget|günstig)", re.IGNORECASE)
QUESTION_START = re.compile(
    r"^\s*(how|what|why|when|where|which|who|can|could|should|would|is|are|do|does|will|wie|was|warum|kann)\b",
    re.IGNORECASE,
)

INTENT_KEYWORDS: List[tuple] = [
    ("alternatives", ("alternative", "different", "change", "instead", "substitut", "swap", "replace")),
    ("cost", ("cost", "cheap", "budget", "price", "expensive", "save", "money", "kosten")),
    ("safety", ("safety", "safe", "risk", "danger", "hazard", "protect", "sicherheit")),
    ("time", ("time", "faster", "schedule", "how long", "duration", "quick", "days")),
    ("recommendations", ("recommend", "suggest", "advice", "tip", "improve", "better")),
]

BUILDABLE_TYPES = [bt.value for bt in BuildType if bt != BuildType.UNKNOWN]


@dataclass
class StageReply:
    """Output of one phase handler."""

    agent: str
    message: str
    suggestions: List[str] = field(default_factory=list)
    data: Dict[str, Any] = field(default_factory=dict)


def classify_intent(message: str) -> str:
    """Route an interactive message to a responder by keyword scan."""
    lower = message.lower()
    for intent, keywords in INTENT_KEYWORDS:
        if any(re.search(rf"\b{re.escape(kw)}", lower) for kw in keywords):
            return intent
    return "general"


def is_open_question(message: str) -> bool:
    return message.rstrip().endswith("?") or bool(QUESTION_START.match(message))


def _label(build_type: Optional[str]) -> str:
    if not build_type or build_type == BuildType.UNKNOWN.value:
        return "project"
    return build_type.replace("_", " ")


def _money(value: float) -> str:
    return f"€{value:,.2f}"


def _dump(model) -> Dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)


class WorkflowEngine:
    """Conversation engine for one session.

    Construct with ``await WorkflowEngine.create(...)`` to restore persisted
    state; the plain constructor takes an explicit state.
    """

    def __init__(
        self,
        state: WorkflowState,
        store: SessionStore,
        advisory: Optional[AdvisoryService] = None,
        catalog: Optional[CatalogService] = None,
        input_agent: Optional[InputAgent] = None,
        planning_agent: Optional[PlanningAgent] = None,
        recommender: Optional[RecommendationEngine] = None,
        auto_advance: Optional[bool] = None,
        history_limit: Optional[int] = None,
        confidence_threshold: Optional[float] = None,
    ):
        self.state = state
        self.store = store
        self.advisory = advisory or AdvisoryService()
        self.catalog = catalog or CatalogService()
        self.input_agent = input_agent or InputAgent()
        self.planning_agent = planning_agent or PlanningAgent(self.catalog)
        self.recommender = recommender or RecommendationEngine(self.catalog)
        self.auto_advance = settings.auto_advance if auto_advance is None else auto_advance
        self.history_limit = history_limit or settings.session_history_limit
        self.confidence_threshold = (
            settings.confidence_threshold if confidence_threshold is None else confidence_threshold
        )
        self._transitions: List[str] = []

        self._handlers: Dict[str, Callable[[str], Awaitable[StageReply]]] = {
            WorkflowPhase.INPUT.value: self._handle_input,
            WorkflowPhase.CLARIFICATION.value: self._handle_input,
            WorkflowPhase.PLANNING.value: self._handle_planning,
            WorkflowPhase.MATERIALS.value: self._handle_materials,
            WorkflowPhase.AI_ANALYSIS.value: self._handle_ai_analysis,
            WorkflowPhase.INTERACTIVE.value: self._handle_interactive,
        }

    @classmethod
    async def create(
        cls,
        session_id: Optional[str] = None,
        store: Optional[SessionStore] = None,
        api_key: Optional[str] = None,
        advisory: Optional[AdvisoryService] = None,
        **kwargs,
    ) -> "WorkflowEngine":
        """Restore a session, or start a new one.

        Without ``session_id`` the store's current session is resumed. A
        missing or undecodable stored session starts fresh under the same id.
        """
        store = store or get_session_store()
        restored = False

        if session_id is None:
            try:
                session_id = await store.get_current_session_id()
            except SessionStoreError as e:
                logger.warning("current_session_unavailable", error=e.message)
        session_id = session_id or generate_session_id()

        try:
            state = await store.get(session_id)
            restored = True
        except SessionStoreError as e:
            if e.code not in (ErrorCode.SESSION_NOT_FOUND, ErrorCode.SESSION_CORRUPT):
                logger.error("session_restore_failed", session_id=session_id, error=e.message)
            elif e.code == ErrorCode.SESSION_CORRUPT:
                logger.warning("session_corrupt_discarded", session_id=session_id, error=e.message)
            state = WorkflowState(session_id=session_id)

        engine = cls(state, store, advisory=advisory or AdvisoryService(api_key=api_key), **kwargs)
        try:
            await store.set_current_session_id(session_id)
        except SessionStoreError as e:
            logger.warning("current_session_not_saved", session_id=session_id, error=e.message)

        log_session_start(session_id, state.phase, restored, engine.advisory.is_configured)
        return engine

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    @property
    def session_id(self) -> str:
        return self.state.session_id

    async def process_message(self, message: str) -> AgentResponse:
        """Handle one user message and persist the session.

        Raises:
            ValidationError: If the message is empty. Nothing is recorded.
        """
        text = (message or "").strip()
        if not text:
            raise ValidationError("Message must not be empty", field="message")

        snapshot = self.state.model_copy(deep=True)
        start_phase = self.state.phase
        self._transitions = []
        error_category = None

        self.state.last_error = None
        try:
            reply = await self._run(text)
        except Exception as e:
            error_category = classify_error(e)
            log_workflow_error(self.session_id, start_phase, str(e), error_category, self._transitions)
            self.state = snapshot
            self.state.last_error = str(e)
            self._transitions = []
            reply = StageReply(
                agent=get_agent_for_phase(self.state.phase),
                message=self._apology(error_category),
                data={"error": True},
            )
        else:
            if reply.data:
                log_agent_output(reply.agent, self.session_id, reply.data)

        self._record_exchange(text, reply)
        await self._save()

        response = AgentResponse(
            agent=reply.agent,
            message=reply.message,
            phase=self.state.phase,
            suggestions=reply.suggestions,
            transitions=list(self._transitions),
            data=reply.data,
            error_category=error_category,
        )
        logger.info(
            "message_processed",
            session_id=self.session_id,
            from_phase=start_phase,
            to_phase=self.state.phase,
            transitions=self._transitions,
            error_category=error_category,
        )
        return response

    async def reset_session(self) -> SessionInfo:
        """Drop the current session and start a new one."""
        old_session_id = self.session_id
        try:
            await self.store.delete(old_session_id)
        except SessionStoreError as e:
            logger.warning("session_delete_failed", session_id=old_session_id, error=e.message)

        self.state = WorkflowState(session_id=generate_session_id())
        self.advisory.clear_history()
        await self._save()
        logger.info("session_reset", old_session_id=old_session_id, session_id=self.session_id)
        return self.get_session_info()

    def set_api_key(self, api_key: Optional[str]) -> None:
        """Swap the advisory credential. ``None`` falls back to the environment key."""
        self.advisory = AdvisoryService(api_key=api_key)
        logger.info("api_key_updated", session_id=self.session_id, configured=self.advisory.is_configured)

    def get_session_info(self) -> SessionInfo:
        parsed = self.state.parsed_request
        return SessionInfo(
            session_id=self.session_id,
            phase=self.state.phase,
            message_count=self.state.message_count,
            has_api_key=self.advisory.is_configured,
            has_blueprint=self.state.blueprint is not None,
            has_materials=self.state.materials is not None,
            build_type=parsed.build_type if parsed else None,
            last_error=self.state.last_error,
        )

    def get_state(self) -> WorkflowState:
        """Copy of the current state."""
        return self.state.model_copy(deep=True)

    # -------------------------------------------------------------------------
    # Orchestration
    # -------------------------------------------------------------------------

    async def _run(self, text: str) -> StageReply:
        replies = [await self._handlers[self.state.phase](text)]

        steps = 0
        while self.auto_advance and self.state.phase in AUTOMATIC_PHASES:
            if steps >= MAX_AUTOMATIC_STEPS:
                raise WorkflowError(
                    code=ErrorCode.WORKFLOW_ERROR,
                    message="Too many automatic phase steps for one message",
                    phase=self.state.phase,
                )
            replies.append(await self._handlers[self.state.phase](text))
            steps += 1

        return self._combine(replies)

    @staticmethod
    def _combine(replies: List[StageReply]) -> StageReply:
        if len(replies) == 1:
            return replies[0]
        data: Dict[str, Any] = {}
        for reply in replies:
            data.update(reply.data)
        suggestions = next((r.suggestions for r in reversed(replies) if r.suggestions), [])
        return StageReply(
            agent=replies[-1].agent,
            message="\n\n".join(r.message for r in replies if r.message),
            suggestions=suggestions,
            data=data,
        )

    def _transition(self, target: WorkflowPhase, reason: str = "") -> None:
        current = self.state.phase
        if not can_transition(current, target.value):
            raise WorkflowError(
                code=ErrorCode.INVALID_TRANSITION,
                message=f"Cannot move from {current} to {target.value}",
                phase=current,
            )
        if current == target.value:
            return
        self.state.phase = target.value
        self._transitions.append(target.value)
        log_phase_transition(self.session_id, current, target.value, reason)

    def _record_exchange(self, text: str, reply: StageReply) -> None:
        now = datetime.utcnow()
        stamp = int(time.time() * 1000)
        self.state.message_count += 1
        self.state.append_message(
            ChatMessage(id=f"user-{stamp}-{self.state.message_count}", type=MessageType.USER, content=text, timestamp=now),
            self.history_limit,
        )
        self.state.append_message(
            ChatMessage(
                id=f"agent-{stamp}-{self.state.message_count}",
                type=MessageType.AGENT,
                content=reply.message,
                agent=reply.agent,
                timestamp=now,
                data={"phase": self.state.phase, "transitions": list(self._transitions)},
            ),
            self.history_limit,
        )
        self.state.updated_at = now

    async def _save(self) -> None:
        try:
            await self.store.put(self.session_id, self.state)
            await self.store.set_current_session_id(self.session_id)
        except SessionStoreError as e:
            logger.error("session_save_failed", session_id=self.session_id, error=e.message)

    @staticmethod
    def _apology(category: str) -> str:
        if category == ErrorCategory.NETWORK:
            return ("I'm sorry, I couldn't reach one of my services. Please check your connection "
                    "and send your message again.")
        if category == ErrorCategory.CREDENTIAL:
            return ("I'm sorry, the AI service rejected the configured API key. Please check the key "
                    "in your settings, or continue without AI insights.")
        return ("I'm sorry, something went wrong while handling your message. Nothing was lost, "
                "please try again or rephrase your request.")

    # -------------------------------------------------------------------------
    # Input and clarification
    # -------------------------------------------------------------------------

    def _mentions_new_project(self, text: str, current_type: Optional[str]) -> bool:
        lower = text.lower()
        if any(phrase in lower for phrase in NEW_PROJECT_PHRASES):
            return True
        fresh = self.input_agent.parse(text)
        known = BuildType.UNKNOWN.value
        if fresh.build_type == known or current_type in (None, known) or fresh.build_type == current_type:
            return False
        if fresh.has_dimensions:
            return True
        # A bare mention ("the base", "the wall") is a question about the current plan
        keyword = self.input_agent.match_build_keyword(lower)
        return keyword is not None and re.search(EXPLICIT_BUILD.format(re.escape(keyword)), lower) is not None

    async def _handle_input(self, text: str) -> StageReply:
        previous = self.state.parsed_request
        clarifying = self.state.phase == WorkflowPhase.CLARIFICATION.value and previous is not None

        if clarifying and not self._mentions_new_project(text, previous.build_type):
            parsed = self.input_agent.merge(previous, text)
        else:
            parsed = self.input_agent.parse(text)
            self.state.asked_questions = []

        self.state.parsed_request = parsed
        questions = self.input_agent.generate_clarifying_questions(parsed, self.state.asked_questions)
        self.state.pending_questions = questions
        required = [q for q in questions if q.required]
        label = _label(parsed.build_type)

        logger.info(
            "request_parsed",
            session_id=self.session_id,
            build_type=parsed.build_type,
            confidence=parsed.confidence,
            questions=[q.type for q in questions],
        )

        if parsed.confidence >= self.confidence_threshold and not required:
            self._transition(WorkflowPhase.PLANNING, "confident parse")
            return self._with_assumed_dimensions(parsed, StageReply(
                agent="input",
                message=f"Perfect! I understand you want to build a {label} ({parsed.summary()}). "
                        "Let me create a plan for you.",
                data={"parsedRequest": _dump(parsed), "readyForPlanning": True},
            ))

        if questions:
            question = questions[0]
            self.state.asked_questions.append(question.type)
            self._transition(WorkflowPhase.CLARIFICATION, f"asking {question.type}")
            return StageReply(
                agent="input",
                message=self._clarification_message(parsed, question),
                suggestions=list(question.suggestions),
                data={
                    "parsedRequest": _dump(parsed),
                    "currentQuestion": _dump(question),
                    "pendingQuestions": [_dump(q) for q in questions],
                },
            )

        self._transition(WorkflowPhase.PLANNING, "partial information")
        return self._with_assumed_dimensions(parsed, StageReply(
            agent="input",
            message=f"I have some information about your {label}. "
                    "Let me create a plan based on what I understand.",
            data={"parsedRequest": _dump(parsed), "partialInfo": True},
        ))

    @staticmethod
    def _with_assumed_dimensions(parsed: ParsedRequest, reply: StageReply) -> StageReply:
        """Flag plans built on template dimensions so the figures read as placeholders."""
        if parsed.has_dimensions:
            return reply
        reply.message += (f" You haven't given dimensions yet, so I've assumed typical dimensions for a "
                          f"{_label(parsed.build_type)}. Quantities and costs are placeholders until you "
                          "tell me the real size.")
        reply.data["assumedDimensions"] = True
        return reply

    @staticmethod
    def _clarification_message(parsed: ParsedRequest, question: Question) -> str:
        parts = []
        if parsed.build_type != BuildType.UNKNOWN.value:
            parts.append(f"Great! I understand you want to build a {_label(parsed.build_type)}.")
        dims = parsed.dimensions
        if dims.length and dims.width:
            height = f" x {dims.height:g}m" if dims.height else ""
            parts.append(f"I see you mentioned {dims.length:g}m x {dims.width:g}m{height}.")
        if parsed.materials:
            parts.append(f"You mentioned {', '.join(parsed.materials)} as materials.")
        intro = " ".join(parts)
        return f"{intro}\n\n{question.text}" if intro else question.text

    # -------------------------------------------------------------------------
    # Automatic phases
    # -------------------------------------------------------------------------

    async def _handle_planning(self, text: str) -> StageReply:
        parsed = self.state.parsed_request
        if parsed is None:
            self._transition(WorkflowPhase.INPUT, "no parsed request")
            return await self._handle_input(text)

        try:
            blueprint = self.planning_agent.create_blueprint(parsed)
        except PlanningError as e:
            self.state.last_error = e.message
            self.state.clear_project()
            self._transition(WorkflowPhase.INPUT, "planning failed")
            return StageReply(
                agent="planning",
                message=f"I couldn't create a plan for your {_label(e.build_type)} yet. I can plan "
                        f"{', '.join(_label(bt) + 's' for bt in BUILDABLE_TYPES)}. Tell me which one "
                        "you'd like to build and its rough dimensions.",
                suggestions=["Pizza oven 1m x 1m", "Garden wall 4m long, 1m high", "Fire pit 1m diameter"],
                data={"planningFailed": True},
            )

        self.state.blueprint = blueprint
        self._transition(WorkflowPhase.MATERIALS, "blueprint created")

        assessment = blueprint.difficulty_assessment
        lines = [
            f"I've created a blueprint for your {_label(parsed.build_type)}.",
            "",
            "**Project Assessment:**",
            f"• Difficulty: {blueprint.difficulty}",
            f"• Estimated Time: {blueprint.estimated_time} ({blueprint.estimated_hours:g} working hours)",
            f"• Estimated Cost: {_money(blueprint.total_cost)}",
            f"• Phases: {', '.join(phase.name for phase in blueprint.phases)}",
            f"• {len(blueprint.detailed_steps)} steps, {len(blueprint.safety_guidelines)} safety guidelines, "
            f"{len(blueprint.quality_checks)} quality checks",
        ]
        if assessment is not None and not assessment.suitable:
            lines += ["", f"**Recommendation:** {assessment.recommendation}"]
        return StageReply(agent="planning", message="\n".join(lines), data={"blueprint": _dump(blueprint)})

    async def _handle_materials(self, text: str) -> StageReply:
        parsed = self.state.parsed_request
        blueprint = self.state.blueprint
        if parsed is None or blueprint is None:
            self._transition(WorkflowPhase.INTERACTIVE, "no blueprint")
            return StageReply(
                agent="catalog",
                message="I couldn't find a plan to calculate materials for. "
                        "Tell me what you'd like to build to start a new plan.",
            )

        try:
            calculation = self.catalog.calculate_material_needs(parsed.build_type, resolve_dimensions(parsed))
        except CalculationRulesError as e:
            self.state.last_error = e.message
            self._transition(WorkflowPhase.INTERACTIVE, "material calculation failed")
            return StageReply(
                agent="catalog",
                message=f"I couldn't calculate a detailed material list, but the plan estimate of "
                        f"{_money(blueprint.total_cost)} still applies. {self._help_text(parsed)}",
                data={"materialsUnavailable": True},
            )

        self.state.materials = calculation
        self.state.recommendations = self.recommender.get_recommendations(
            calculation.materials, self._recommendation_context(parsed)
        )

        lines = [f"**Materials** (delivery {calculation.delivery_time}):"]
        for item in sorted(calculation.materials, key=lambda i: i.total_cost, reverse=True)[:6]:
            lines.append(f"• {item.quantity} {item.material.unit} {item.material.name}: {_money(item.total_cost)}")
        lines.append(f"Total material cost: {_money(calculation.total_cost)} "
                     f"(includes {round((calculation.waste_factor_applied - 1) * 100):g}% waste)")

        if self.advisory.is_configured:
            self._transition(WorkflowPhase.AI_ANALYSIS, "advisory configured")
        else:
            self._transition(WorkflowPhase.INTERACTIVE, "advisory not configured")
            lines += ["", self._help_text(parsed)]

        return StageReply(
            agent="catalog",
            message="\n".join(lines),
            suggestions=self._interactive_suggestions(),
            data={
                "materials": _dump(calculation),
                "recommendations": [_dump(r) for r in self.state.recommendations],
            },
        )

    async def _handle_ai_analysis(self, text: str) -> StageReply:
        parsed = self.state.parsed_request
        if parsed is None:
            self._transition(WorkflowPhase.INTERACTIVE, "no parsed request")
            return StageReply(agent="advisory", message="Tell me what you'd like to build to start a new plan.")

        try:
            analysis = await self.advisory.analyze_project(
                parsed, self.state.blueprint, self.state.materials, self.state.conversation_history
            )
            intro = "**AI Expert Analysis:**"
        except Exception as e:
            category = classify_error(e)
            logger.warning("ai_analysis_unavailable", session_id=self.session_id, category=category, error=str(e))
            analysis = self.advisory.fallback_analysis(parsed, self.state.blueprint, self.state.materials)
            intro = "AI insights are unavailable right now, so here is some general guidance:"

        self.state.ai_analysis = analysis
        self._transition(WorkflowPhase.INTERACTIVE, f"analysis from {analysis.source}")

        return StageReply(
            agent="advisory",
            message="\n".join([intro, self._format_insights(analysis), "", self._help_text(parsed)]),
            suggestions=self._interactive_suggestions(),
            data={"aiAnalysis": _dump(analysis)},
        )

    @staticmethod
    def _format_insights(analysis: AdvisoryAnalysis) -> str:
        insights = analysis.insights
        lines = []
        if insights.alternatives:
            lines.append("Material suggestions:")
            lines += [f"• {alt}" for alt in insights.alternatives[:2]]
        if insights.tips:
            lines.append("Expert tips:")
            lines += [f"• {tip}" for tip in insights.tips[:2]]
        if insights.cost_savings:
            lines.append(f"Potential savings: {_money(insights.cost_savings)}")
        if not lines:
            lines.append(analysis.response)
        return "\n".join(lines)

    # -------------------------------------------------------------------------
    # Interactive
    # -------------------------------------------------------------------------

    async def _handle_interactive(self, text: str) -> StageReply:
        parsed = self.state.parsed_request
        current_type = parsed.build_type if parsed else None

        if self._mentions_new_project(text, current_type):
            self.state.clear_project()
            self._transition(WorkflowPhase.INPUT, "new project")
            return await self._handle_input(text)
        if parsed is None or self.state.blueprint is None:
            self._transition(WorkflowPhase.INPUT, "no active plan")
            return await self._handle_input(text)

        intent = classify_intent(text)
        logger.info("interactive_intent", session_id=self.session_id, intent=intent)
        responders = {
            "alternatives": self._respond_alternatives,
            "cost": self._respond_cost,
            "safety": self._respond_safety,
            "time": self._respond_time,
            "recommendations": self._respond_recommendations,
            "general": self._respond_general,
        }
        reply = await responders[intent](text, parsed)
        reply.data.setdefault("intent", intent)
        return reply

    def _line_items(self) -> List[MaterialCalculationItem]:
        if self.state.materials is not None:
            return self.state.materials.materials
        return self.state.blueprint.materials if self.state.blueprint else []

    @staticmethod
    def _recommendation_context(parsed: ParsedRequest, prioritize_cost: bool = False) -> RecommendationContext:
        return RecommendationContext(
            build_type=parsed.build_type,
            budget=parsed.budget,
            prioritize_cost=prioritize_cost,
            user_experience=parsed.experience,
        )

    async def _respond_alternatives(self, text: str, parsed: ParsedRequest) -> StageReply:
        cheaper = bool(CHEAPER_PATTERN.search(text))
        recommendations = self.recommender.get_recommendations(
            self._line_items(), self._recommendation_context(parsed, prioritize_cost=cheaper)
        )
        if cheaper:
            recommendations = [
                MaterialRecommendation(
                    original=rec.original,
                    alternatives=[alt for alt in rec.alternatives if alt.cost_difference < 0],
                )
                for rec in recommendations
            ]
            recommendations = [rec for rec in recommendations if rec.alternatives]

        label = _label(parsed.build_type)
        if recommendations:
            kind = "cheaper alternatives" if cheaper else "alternatives"
            lines = [f"Here are {kind} for your {label}:", ""]
            for rec in recommendations:
                lines.append(f"**{rec.original.material.name}** ({_money(rec.original.material.price)}/{rec.original.material.unit}):")
                for alt in rec.alternatives[:2]:
                    lines.append(f"• {alt.material.name}: {alt.reason}")
            message = "\n".join(lines)
        elif cheaper:
            message = (f"Your {label} already uses the cheapest compatible materials in the catalog, "
                       "so there are no cheaper alternatives to suggest.")
        else:
            message = f"The current materials are already well suited to your {label}."

        return StageReply(
            agent="assistant",
            message=message,
            data={
                "recommendations": [_dump(rec) for rec in recommendations],
                "cheaperOnly": cheaper,
            },
        )

    async def _respond_cost(self, text: str, parsed: ParsedRequest) -> StageReply:
        items = self._line_items()
        optimization = self.recommender.get_cost_optimizations(items, parsed.budget, parsed.build_type)
        total = sum(item.total_cost for item in items) or self.state.blueprint.total_cost

        lines = [f"**Cost overview for your {_label(parsed.build_type)}:**", f"Current total: {_money(total)}", ""]
        if items and total:
            lines.append("Highest cost items:")
            for item in sorted(items, key=lambda i: i.total_cost, reverse=True)[:3]:
                lines.append(f"• {item.material.name}: {_money(item.total_cost)} ({item.total_cost / total * 100:.1f}%)")
            lines.append("")
        if optimization.recommendations:
            lines.append(f"Switching materials could save {_money(optimization.total_savings)}:")
            lines += [f"• {rec}" for rec in optimization.recommendations]
        else:
            lines.append("No cheaper compatible materials are available in the catalog.")
        if optimization.within_budget is not None:
            verdict = "fits" if optimization.within_budget else "is still above"
            lines.append(f"The optimized total of {_money(optimization.projected_total)} {verdict} "
                         f"your budget of {_money(parsed.budget)}.")
        lines += ["", "Other ways to save: buy in bulk, compare local suppliers and watch for seasonal sales."]

        return StageReply(
            agent="assistant",
            message="\n".join(lines),
            data={"costOptimization": _dump(optimization), "currentCost": round(total, 2)},
        )

    async def _respond_safety(self, text: str, parsed: ParsedRequest) -> StageReply:
        guidelines = self.state.blueprint.safety_guidelines
        critical = [g for g in guidelines if g.severity == "critical"]
        important = [g for g in guidelines if g.severity == "high"]

        lines = [f"**Safety guidelines for your {_label(parsed.build_type)}:**", ""]
        if critical:
            lines.append("Critical:")
            lines += [f"• {g.title}: {g.description}" for g in critical]
        if important:
            lines.append("Important:")
            lines += [f"• {g.title}: {g.description}" for g in important[:3]]
        lines += [
            "",
            "General reminders:",
            "• Wear appropriate protective equipment",
            "• Keep a first aid kit on site",
            "• Don't work alone on heavy or complex tasks",
        ]
        return StageReply(
            agent="assistant",
            message="\n".join(lines),
            data={"safetyGuidelines": [_dump(g) for g in guidelines], "criticalCount": len(critical)},
        )

    async def _respond_time(self, text: str, parsed: ParsedRequest) -> StageReply:
        blueprint = self.state.blueprint
        lines = [
            f"**Schedule for your {_label(parsed.build_type)}:**",
            f"Estimated time: {blueprint.estimated_time} ({blueprint.estimated_hours:g} working hours)",
            "",
        ]
        lines += [f"{phase.order}. {phase.name}: {phase.duration}" for phase in blueprint.phases]
        weather_phases = [phase.name for phase in blueprint.phases if phase.weather_dependent]
        if weather_phases:
            lines.append(f"Plan dry weather for: {', '.join(weather_phases)}")
        lines += [
            "",
            "Time-saving strategies:",
            "• Have all materials delivered before you start",
            "• Prepare tools before each phase",
            "• Allow proper curing times, they cannot be shortened safely",
        ]
        if parsed.experience == ExperienceLevel.BEGINNER.value:
            lines += ["", "For beginners: quality matters more than speed, so spread the work over more days."]
        return StageReply(
            agent="assistant",
            message="\n".join(lines),
            data={"estimatedTime": blueprint.estimated_time, "estimatedHours": blueprint.estimated_hours},
        )

    async def _respond_recommendations(self, text: str, parsed: ParsedRequest) -> StageReply:
        lines = [f"**Recommendations for your {_label(parsed.build_type)}:**"]
        for rec in self.state.recommendations[:3]:
            best = rec.alternatives[0]
            lines.append(f"• {rec.original.material.name} → {best.material.name}: {best.reason}")
        analysis = self.state.ai_analysis
        if analysis is not None and analysis.insights.tips:
            lines.append("Tips:")
            lines += [f"• {tip}" for tip in analysis.insights.tips[:3]]
        assessment = self.state.blueprint.difficulty_assessment
        if assessment is not None:
            lines.append(f"• {assessment.recommendation}")
        return StageReply(
            agent="assistant",
            message="\n".join(lines),
            data={"recommendations": [_dump(rec) for rec in self.state.recommendations]},
        )

    async def _respond_general(self, text: str, parsed: ParsedRequest) -> StageReply:
        if is_open_question(text) and self.advisory.is_configured:
            try:
                answer = await self.advisory.provide_expert_advice(
                    text, parsed, self.state.blueprint, self.state.materials
                )
                return StageReply(agent="advisory", message=answer, data={"expertAdvice": True})
            except Exception as e:
                logger.warning("expert_advice_unavailable", session_id=self.session_id, error=str(e))
                return StageReply(
                    agent="assistant",
                    message=self.advisory.fallback_advice(text),
                    data={"expertAdvice": False},
                )

        return StageReply(
            agent="assistant",
            message=self._help_text(parsed),
            suggestions=self._interactive_suggestions(),
            data={"helpOptions": True},
        )

    @staticmethod
    def _help_text(parsed: ParsedRequest) -> str:
        return (f"Your {_label(parsed.build_type)} plan is ready. You can ask me about cheaper "
                "alternatives, cost, safety or the schedule, or describe a new project to start over.")

    @staticmethod
    def _interactive_suggestions() -> List[str]:
        return ["Show cheaper alternatives", "How can I reduce the cost?", "What safety gear do I need?",
                "How long will it take?"]
