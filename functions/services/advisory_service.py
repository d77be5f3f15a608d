"""AI advisory service for MultiBuild.

Sends project context to the LLM for a free-text analysis or an answer to an
open question. Remote failures raise AdvisoryError; callers use
``fallback_analysis`` / ``fallback_advice`` instead. Structured insights are
pulled out of the free text by ``parse_advisory_text``.
"""

import json
import re
from typing import List, Optional

import structlog
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from config.errors import AdvisoryError, ErrorCode, MultiBuildError
from models.advisory import AdvisoryAnalysis, AdvisoryInsights, AdvisorySource
from models.blueprint import EnhancedBlueprint
from models.material_calculation import MaterialCalculation
from models.parsed_request import ParsedRequest
from models.workflow import ChatMessage, MessageType
from services.llm_service import LLMService

logger = structlog.get_logger()

HISTORY_LIMIT = 20
ADVICE_HISTORY_WINDOW = 10
ADVICE_MAX_TOKENS = 768

ANALYSIS_SYSTEM_PROMPT = """You are an expert construction assistant for masonry projects. You specialize in:

1. MATERIAL OPTIMIZATION: analyzing material lists, suggesting cost-effective alternatives and quality improvements
2. CONSTRUCTION EXPERTISE: professional advice, safety guidelines and best practices
3. PROJECT ANALYSIS: complexity, risk factors and time optimizations
4. TROUBLESHOOTING: solving construction problems and preventing them

Expertise: bricklaying, foundations, pizza ovens, fire pits, garden walls and small structures.

Structure your answer in sections for material optimization, construction advice and project analysis.
Use "-" bullet points inside each section. Always prioritize safety and practicality and consider
the builder's experience level."""

ADVICE_SYSTEM_PROMPT = """You are an expert construction advisor giving specific, practical advice for masonry projects.
Always put safety first, give actionable real-world advice, tailor it to the builder's skill level,
consider the budget and keep construction quality high. Answer clearly and concisely."""


def _format_money(value: float) -> str:
    return f"€{value:.2f}"


def _project_lines(parsed: ParsedRequest) -> List[str]:
    return [
        f"- Build Type: {parsed.build_type.replace('_', ' ')}",
        f"- Experience Level: {parsed.experience or 'Not specified'}",
        f"- Dimensions: {json.dumps(parsed.dimensions.model_dump(exclude_none=True))}",
        f"- Material Preferences: {', '.join(parsed.materials) or 'None specified'}",
        f"- Constraints: {', '.join(parsed.constraints) or 'None specified'}",
        f"- Budget: {_format_money(parsed.budget) if parsed.budget else 'Not specified'}",
        f"- Urgency: {parsed.urgency or 'Not specified'}",
    ]


def build_analysis_prompt(
    parsed: ParsedRequest,
    blueprint: Optional[EnhancedBlueprint],
    materials: Optional[MaterialCalculation],
    history: Optional[List[ChatMessage]] = None,
) -> str:
    """User prompt for a full project analysis."""
    sections = ["CONSTRUCTION PROJECT ANALYSIS REQUEST", "", "PROJECT DETAILS:", *_project_lines(parsed), ""]

    if blueprint is not None:
        sections += [
            "CURRENT BLUEPRINT:",
            f"- Difficulty: {blueprint.difficulty}",
            f"- Estimated Time: {blueprint.estimated_time}",
            f"- Total Cost: {_format_money(blueprint.total_cost)}",
            f"- Phases: {len(blueprint.phases)}",
            f"- Safety Guidelines: {len(blueprint.safety_guidelines)}",
            "",
        ]

    if materials is not None:
        sections += [
            "MATERIAL ANALYSIS:",
            f"- Total Materials: {len(materials.materials)}",
            f"- Total Cost: {_format_money(materials.total_cost)}",
            f"- Waste Factor: {materials.waste_factor_applied}",
            f"- Delivery Time: {materials.delivery_time}",
            "",
            "KEY MATERIALS:",
        ]
        for item in materials.materials[:5]:
            sections.append(
                f"- {item.material.name}: {item.quantity} {item.material.unit} @ "
                f"{_format_money(item.material.price)} each (Total: {_format_money(item.total_cost)})"
            )
        sections.append("")

    user_turns = [m.content for m in (history or []) if m.type == MessageType.USER.value][-3:]
    if user_turns:
        sections += ["RECENT USER MESSAGES:", *[f"- {turn}" for turn in user_turns], ""]

    sections += [
        "ANALYSIS REQUEST:",
        "1. MATERIAL OPTIMIZATION: alternatives that reduce cost, quality improvements within budget",
        "2. CONSTRUCTION ADVICE: expert tips, safety warnings, difficulty for the builder's experience",
        "3. PROJECT ANALYSIS: complexity rating (1-10), time optimizations, risk factors",
        "",
        "Provide specific, actionable recommendations.",
    ]
    return "\n".join(sections)


def build_advice_prompt(
    question: str,
    parsed: Optional[ParsedRequest] = None,
    blueprint: Optional[EnhancedBlueprint] = None,
    materials: Optional[MaterialCalculation] = None,
) -> str:
    sections = [f"EXPERT ADVICE REQUEST: {question}", ""]
    if parsed is not None:
        sections += ["PROJECT CONTEXT:", *_project_lines(parsed), ""]
    if blueprint is not None:
        sections += [
            "CURRENT PLAN:",
            f"- Difficulty: {blueprint.difficulty}",
            f"- Duration: {blueprint.estimated_time}",
            f"- Cost: {_format_money(blueprint.total_cost)}",
            f"- Phases: {', '.join(phase.name for phase in blueprint.phases)}",
            "",
        ]
    if materials is not None:
        names = ", ".join(f"{item.quantity} x {item.material.name}" for item in materials.materials[:8])
        sections += ["MATERIALS:", f"- {names}", ""]
    sections.append("Please provide expert advice addressing this question specifically.")
    return "\n".join(sections)


# =============================================================================
# FREE-TEXT PARSING
# =============================================================================

_BULLET = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+")
_COMPLEXITY = re.compile(r"complexity[^\d\n]{0,40}(\d+)", re.IGNORECASE)
_SAVINGS = re.compile(r"sav(?:e|ing|ings)[^\d\n]{0,30}€?\s?(\d+(?:[.,]\d+)?)", re.IGNORECASE)
_DIFFICULTY = re.compile(r"difficulty.*?\b(beginner|intermediate|advanced|expert)\b", re.IGNORECASE)


def _clean(line: str) -> str:
    return _BULLET.sub("", line).strip().strip("*").strip()


def _section_bullets(lines: List[str], markers: tuple, limit: int) -> List[str]:
    """Bullets following a line that mentions one of ``markers``, up to a blank line."""
    found = []
    in_section = False
    for line in lines:
        lowered = line.lower()
        if any(marker in lowered for marker in markers):
            in_section = True
        if in_section and _BULLET.match(line):
            cleaned = _clean(line)
            if cleaned:
                found.append(cleaned)
        if in_section and not line.strip():
            in_section = False
    return found[:limit]


def _matching_lines(lines: List[str], markers: tuple, limit: int) -> List[str]:
    found = []
    for line in lines:
        if any(marker in line.lower() for marker in markers):
            cleaned = _clean(line)
            if cleaned:
                found.append(cleaned)
    return found[:limit]


def parse_advisory_text(text: str, materials: Optional[MaterialCalculation] = None) -> AdvisoryInsights:
    """Best-effort extraction of structured insights from advisory free text.

    Never raises: text that cannot be parsed yields empty fields.
    """
    try:
        lines = (text or "").splitlines()
        complexity = None
        match = _COMPLEXITY.search(text or "")
        if match:
            complexity = min(max(int(match.group(1)), 1), 10)

        cost_savings = 0.0
        match = _SAVINGS.search(text or "")
        if match:
            cost_savings = float(match.group(1).replace(",", "."))
        elif materials is not None:
            cost_savings = round(materials.total_cost * 0.1)

        difficulty = _DIFFICULTY.search(text or "")
        return AdvisoryInsights(
            alternatives=_section_bullets(lines, ("alternative", "substitute"), 5),
            tips=_section_bullets(lines, ("tip", "advice", "recommend"), 5),
            safety_warnings=_matching_lines(lines, ("safety", "warning", "caution"), 3),
            quality_improvements=_matching_lines(lines, ("quality", "improve", "better"), 3),
            time_optimizations=_matching_lines(lines, ("time", "faster", "quicker"), 3),
            risk_factors=_matching_lines(lines, ("risk", "problem", "issue"), 3),
            complexity_rating=complexity,
            difficulty_assessment=difficulty.group(1).lower() if difficulty else None,
            cost_savings=cost_savings,
        )
    except Exception as e:
        logger.warning("advisory_text_unparsed", error=str(e))
        return AdvisoryInsights()


class AdvisoryService:
    """Remote AI advisory with deterministic fallback content.

    Keeps its own rolling history of the last 20 turns so follow-up
    questions see earlier answers.
    """

    def __init__(self, llm: Optional[LLMService] = None, api_key: Optional[str] = None):
        self.llm = llm or LLMService(api_key=api_key)
        self._history: List[BaseMessage] = []

    @property
    def is_configured(self) -> bool:
        return self.llm.is_configured

    @property
    def history(self) -> List[BaseMessage]:
        return list(self._history)

    def clear_history(self) -> None:
        self._history = []

    async def analyze_project(
        self,
        parsed: ParsedRequest,
        blueprint: Optional[EnhancedBlueprint] = None,
        materials: Optional[MaterialCalculation] = None,
        history: Optional[List[ChatMessage]] = None,
    ) -> AdvisoryAnalysis:
        """Ask the LLM for a project analysis.

        Raises:
            AdvisoryError: If the advisory is unconfigured or the call fails.
        """
        prompt = build_analysis_prompt(parsed, blueprint, materials, history)
        messages = [SystemMessage(content=ANALYSIS_SYSTEM_PROMPT), *self._history, HumanMessage(content=prompt)]
        result = await self._call(messages, operation="analyze_project")

        self._remember(prompt, result["content"])
        insights = parse_advisory_text(result["content"], materials)
        logger.info(
            "advisory_analysis_complete",
            build_type=parsed.build_type,
            tokens_used=result["tokens_used"],
            complexity=insights.complexity_rating,
        )
        return AdvisoryAnalysis(
            response=result["content"],
            insights=insights,
            source=AdvisorySource.AI,
            tokens_used=result["tokens_used"],
        )

    async def provide_expert_advice(
        self,
        question: str,
        parsed: Optional[ParsedRequest] = None,
        blueprint: Optional[EnhancedBlueprint] = None,
        materials: Optional[MaterialCalculation] = None,
    ) -> str:
        """Free-text answer to ``question`` given the project context.

        Raises:
            AdvisoryError: If the advisory is unconfigured or the call fails.
        """
        prompt = build_advice_prompt(question, parsed, blueprint, materials)
        messages = [
            SystemMessage(content=ADVICE_SYSTEM_PROMPT),
            *self._history[-ADVICE_HISTORY_WINDOW:],
            HumanMessage(content=prompt),
        ]
        result = await self._call(messages, operation="provide_expert_advice", max_tokens=ADVICE_MAX_TOKENS)
        self._remember(prompt, result["content"])
        return result["content"]

    async def _call(self, messages: List[BaseMessage], operation: str, max_tokens: Optional[int] = None):
        if not self.is_configured:
            raise AdvisoryError(
                code=ErrorCode.LLM_NOT_CONFIGURED,
                message="AI advisory is not configured",
                details={"operation": operation},
            )
        try:
            return await self.llm.generate(messages, max_tokens=max_tokens)
        except MultiBuildError as e:
            logger.warning("advisory_call_failed", operation=operation, code=e.code, error=e.message)
            raise AdvisoryError(code=e.code, message=e.message, details=e.details)

    def _remember(self, prompt: str, response: str) -> None:
        self._history.extend([HumanMessage(content=prompt), AIMessage(content=response)])
        if len(self._history) > HISTORY_LIMIT:
            self._history = self._history[-HISTORY_LIMIT:]

    # -------------------------------------------------------------------------
    # Fallbacks
    # -------------------------------------------------------------------------

    @staticmethod
    def fallback_analysis(
        parsed: ParsedRequest,
        blueprint: Optional[EnhancedBlueprint] = None,
        materials: Optional[MaterialCalculation] = None,
    ) -> AdvisoryAnalysis:
        """Static analysis used when the AI advisory is absent or failed."""
        project = parsed.build_type.replace("_", " ")
        level = parsed.experience or "your"
        response = (
            f"I've reviewed your {project} project. AI insights are unavailable right now, so here is "
            "general guidance: plan each phase carefully, put safety first and use quality materials. "
            "Consider consulting local professionals for complex parts of the build."
        )
        insights = AdvisoryInsights(
            alternatives=[
                "Consider local suppliers for better pricing",
                "Buy materials in bulk for discounts",
                "Check for seasonal sales on construction materials",
            ],
            tips=[
                "Take your time with measurements and planning",
                "Always check local building codes before starting",
                "Consider weather conditions when scheduling work",
            ],
            safety_warnings=[
                "Wear appropriate safety equipment",
                "Check for underground utilities before digging",
                "Ensure proper ventilation when cutting or mixing materials",
            ],
            quality_improvements=[
                "Use weather-resistant materials for outdoor projects",
                "Consider premium options for high-stress areas",
            ],
            time_optimizations=[
                "Prepare all materials in advance",
                "Work during optimal weather conditions",
                "Consider working in phases",
            ],
            risk_factors=[
                "Weather delays may extend timeline",
                "Material availability may vary",
                "Skill level may affect completion time",
            ],
            complexity_rating=5,
            difficulty_assessment=f"This project is suitable for {level} level",
            cost_savings=round(materials.total_cost * 0.05) if materials is not None else 0.0,
        )
        return AdvisoryAnalysis(response=response, insights=insights, source=AdvisorySource.FALLBACK)

    @staticmethod
    def fallback_advice(question: str) -> str:
        return (
            f'I understand your question about "{question}". AI assistance is unavailable right now, '
            "so here are some general recommendations:\n\n"
            "1. **Safety First**: always prioritize safety on site\n"
            "2. **Professional Consultation**: ask a local professional about specific technical questions\n"
            "3. **Quality Materials**: use materials suited to your project and local conditions\n"
            "4. **Proper Planning**: plan each phase carefully before starting it\n"
            "5. **Building Codes**: check local building codes and regulations"
        )
