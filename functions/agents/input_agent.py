"""Input Agent for MultiBuild.

Turns a free-text build request into a ParsedRequest using keyword tables
and regular expressions, and decides which clarifying questions to ask.
Parsing is deterministic and never raises: a missing field is the only
signal that something was not understood.
"""

import re
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import structlog

from models.parsed_request import (
    BuildType,
    Dimensions,
    ExperienceLevel,
    ParsedRequest,
    QualityOption,
    Question,
    QuestionType,
    Urgency,
)

logger = structlog.get_logger()

MAX_QUESTIONS = 2
CLARIFICATION_CONFIDENCE = 0.7
BUDGET_QUESTION_CONFIDENCE = 0.6


# =============================================================================
# KEYWORD TABLES
# =============================================================================

# Ordered: specific phrases before the generic words they contain.
BUILD_TYPE_KEYWORDS: List[Tuple[str, BuildType]] = [
    ("pizza oven", BuildType.PIZZA_OVEN),
    ("pizzaofen", BuildType.PIZZA_OVEN),
    ("garden wall", BuildType.GARDEN_WALL),
    ("gartenmauer", BuildType.GARDEN_WALL),
    ("retaining wall", BuildType.WALL),
    ("brick wall", BuildType.WALL),
    ("fire pit", BuildType.FIRE_PIT),
    ("firepit", BuildType.FIRE_PIT),
    ("feuerstelle", BuildType.FIRE_PIT),
    ("oven", BuildType.PIZZA_OVEN),
    ("ofen", BuildType.PIZZA_OVEN),
    ("pizza", BuildType.PIZZA_OVEN),
    ("wall", BuildType.WALL),
    ("mauer", BuildType.WALL),
    ("foundation", BuildType.FOUNDATION),
    ("fundament", BuildType.FOUNDATION),
    ("structure", BuildType.STRUCTURE),
    ("building", BuildType.STRUCTURE),
    ("shed", BuildType.STRUCTURE),
    ("concrete base", BuildType.FOUNDATION),
    ("slab", BuildType.FOUNDATION),
]

STRONG_BUILD_KEYWORDS = frozenset({"pizza oven", "pizzaofen", "oven", "ofen"})
CONSTRUCTION_VERBS = ("build", "construct", "make", "bauen", "errichten")

MATERIAL_KEYWORDS: Dict[str, Sequence[str]] = {
    "brick": ("brick", "ziegel"),
    "firebrick": ("firebrick", "fire brick", "refractory brick", "schamott", "schamottstein"),
    "concrete": ("concrete", "cement", "beton"),
    "mortar": ("mortar", "mörtel"),
    "stone": ("stone", "natural stone", "naturstein"),
    "clay": ("clay", "lehm"),
}

CONSTRAINT_KEYWORDS: Dict[str, Sequence[str]] = {
    "budget": ("cheap", "budget", "affordable", "low cost", "günstig"),
    "time": ("quick", "fast", "urgent", "asap", "schnell"),
    "space": ("small space", "limited space", "compact"),
    "weather": ("outdoor", "weatherproof", "rain resistant"),
    "insulation": ("insulated", "insulation", "heat resistant"),
}

URGENCY_KEYWORDS: List[Tuple[Urgency, Sequence[str]]] = [
    (Urgency.HIGH, ("urgent", "asap", "quickly", "fast", "rush")),
    (Urgency.MEDIUM, ("soon", "next week", "this month")),
]

EXPERIENCE_KEYWORDS: List[Tuple[ExperienceLevel, Sequence[str]]] = [
    (ExperienceLevel.BEGINNER, ("beginner", "first time", "never built", "new to", "anfänger")),
    (ExperienceLevel.EXPERT, ("expert", "professional", "experienced", "many times", "profi")),
    (ExperienceLevel.INTERMEDIATE, ("some experience", "intermediate", "few times")),
]

QUALITY_KEYWORDS: List[Tuple[QualityOption, Sequence[str]]] = [
    (QualityOption.PREMIUM, ("premium", "luxus", "hochwertig")),
    (QualityOption.SCHNELL, ("schnell",)),
    (QualityOption.GUENSTIG, ("günstig", "guenstig", "billig")),
]

DIMENSION_SUGGESTIONS: Dict[str, List[str]] = {
    BuildType.PIZZA_OVEN.value: ["1m x 1m x 0.5m", "1.2m x 1.2m x 0.6m", "80cm x 80cm x 40cm"],
    BuildType.WALL.value: ["3m x 2m x 0.2m", "5m x 1.5m x 0.15m", "2m x 1m x 0.1m"],
    BuildType.GARDEN_WALL.value: ["2m x 1m x 0.2m", "4m x 1.2m x 0.15m", "1.5m x 0.8m x 0.1m"],
    BuildType.FIRE_PIT.value: ["1m diameter x 0.3m high", "1.2m diameter x 0.4m high", "80cm diameter x 25cm high"],
    BuildType.FOUNDATION.value: ["3m x 3m x 0.3m", "4m x 2m x 0.4m", "2m x 2m x 0.25m"],
    BuildType.STRUCTURE.value: ["2m x 2m x 2m", "3m x 2m x 2.5m", "1.5m x 1.5m x 2m"],
}


# =============================================================================
# PATTERNS
# =============================================================================

_NUM = r"(\d+(?:[.,]\d+)?)"
_UNIT = r"\s*(mm|cm|m(?:eters?|etres?)?)?(?![a-z])"
_SEP = r"\s*(?:[x×*]|by)\s*"

DIMENSIONS_3D = re.compile(_NUM + _UNIT + _SEP + _NUM + _UNIT + _SEP + _NUM + _UNIT, re.IGNORECASE)
DIMENSIONS_2D = re.compile(_NUM + _UNIT + _SEP + _NUM + _UNIT, re.IGNORECASE)
SINGLE_DIMENSIONS: List[Tuple[str, re.Pattern]] = [
    ("width", re.compile(_NUM + _UNIT + r"\s*(?:wide|width|breit)", re.IGNORECASE)),
    ("height", re.compile(_NUM + _UNIT + r"\s*(?:high|height|tall|hoch)", re.IGNORECASE)),
    ("length", re.compile(_NUM + _UNIT + r"\s*(?:long|length|lang)", re.IGNORECASE)),
    ("diameter", re.compile(_NUM + _UNIT + r"\s*(?:in\s+)?(?:diameter|across|durchmesser)", re.IGNORECASE)),
    ("diameter", re.compile(r"(?:diameter|durchmesser)\s*(?:of\s*)?" + _NUM + _UNIT, re.IGNORECASE)),
]

AREA_PATTERN = re.compile(
    _NUM + r"\s*(?:qm|m²|m2|sqm|sq\.?\s?m|quadratmeter|square\s+met(?:er|re)s?)(?![a-z])",
    re.IGNORECASE,
)

_AMOUNT = r"(\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?)"
BUDGET_PATTERNS = [
    re.compile(r"€\s*" + _AMOUNT),
    re.compile(_AMOUNT + r"\s*€"),
    re.compile(_AMOUNT + r"\s*(?:euros?|eur)\b", re.IGNORECASE),
    re.compile(r"\beur\s*" + _AMOUNT, re.IGNORECASE),
]


def _keyword_pattern(keyword: str) -> re.Pattern:
    return re.compile(r"\b" + re.escape(keyword) + r"s?\b")


_BUILD_TYPE_PATTERNS = [(keyword, _keyword_pattern(keyword), bt) for keyword, bt in BUILD_TYPE_KEYWORDS]


def _contains(lower_text: str, keywords: Iterable[str]) -> bool:
    return any(_keyword_pattern(keyword).search(lower_text) for keyword in keywords)


def _to_meters(value: str, unit: Optional[str]) -> float:
    number = float(value.replace(",", "."))
    unit = (unit or "").lower()
    if unit == "cm":
        number /= 100
    elif unit == "mm":
        number /= 1000
    return round(number, 4)


class InputAgent:
    """Rule-based parser for build requests."""

    def parse(self, text: str) -> ParsedRequest:
        """Parse free text into a ParsedRequest."""
        text = text or ""
        lower = text.lower()

        build_type, keyword = self._extract_build_type(lower)
        dimensions = self._extract_dimensions(text)
        area = self._extract_area(text)
        materials = self._extract_materials(lower)

        parsed = ParsedRequest(
            build_type=build_type,
            dimensions=dimensions,
            materials=materials,
            constraints=self._extract_constraints(lower),
            confidence=self._score_confidence(
                text,
                keyword,
                has_dimensions=not dimensions.is_empty() or area is not None,
                has_materials=bool(materials),
            ),
            urgency=self._extract_urgency(lower),
            budget=self._extract_budget(text),
            experience=self._extract_experience(lower),
            area_sqm=area,
            quality_option=self._extract_quality(lower),
            source_text=text,
        )

        logger.debug(
            "request_parsed",
            build_type=parsed.build_type,
            confidence=parsed.confidence,
            has_dimensions=parsed.has_dimensions,
        )
        return parsed

    def merge(self, previous: Optional[ParsedRequest], text: str) -> ParsedRequest:
        """Fold a clarification answer into the request being clarified.

        Values found in the answer win, keyword sets are unioned and the
        confidence is recomputed from the accumulated text. An answer that
        names a different known build type starts a new request instead.
        """
        update = self.parse(text)
        if previous is None:
            return update

        known = BuildType.UNKNOWN.value
        if update.build_type != known and previous.build_type != known and update.build_type != previous.build_type:
            logger.info(
                "build_type_changed",
                previous=previous.build_type,
                new=update.build_type,
            )
            return update

        combined_text = f"{previous.source_text}\n{text}".strip()
        build_type = update.build_type if update.build_type != known else previous.build_type
        dimensions = previous.dimensions.merged_with(update.dimensions)
        area = update.area_sqm if update.area_sqm is not None else previous.area_sqm
        materials = sorted(set(previous.materials) | set(update.materials))
        _, keyword = self._extract_build_type(combined_text.lower())

        return ParsedRequest(
            build_type=build_type,
            dimensions=dimensions,
            materials=materials,
            constraints=sorted(set(previous.constraints) | set(update.constraints)),
            confidence=self._score_confidence(
                combined_text,
                keyword,
                has_dimensions=not dimensions.is_empty() or area is not None,
                has_materials=bool(materials),
            ),
            urgency=update.urgency if update.urgency != Urgency.LOW.value else previous.urgency,
            budget=update.budget if update.budget is not None else previous.budget,
            experience=update.experience or previous.experience,
            area_sqm=area,
            quality_option=update.quality_option or previous.quality_option,
            source_text=combined_text,
        )

    def generate_clarifying_questions(
        self,
        parsed: ParsedRequest,
        asked: Iterable[str] = (),
    ) -> List[Question]:
        """Up to two questions in priority order.

        Question types listed in ``asked`` were already put to the user for
        this request and are not repeated.
        """
        asked = set(asked)
        questions: List[Question] = []

        if not parsed.has_dimensions:
            questions.append(Question(
                type=QuestionType.DIMENSIONS,
                text='What are the dimensions you need? Please specify length, width, and height '
                     'in meters (e.g., "2m x 1.5m x 0.8m").',
                required=True,
                suggestions=self.get_dimension_suggestions(parsed.build_type),
            ))

        if parsed.confidence < CLARIFICATION_CONFIDENCE and parsed.build_type == BuildType.UNKNOWN.value:
            questions.append(Question(
                type=QuestionType.CLARIFICATION,
                text="I want to make sure I understand correctly. Can you describe what you want "
                     "to build in more detail?",
                required=True,
                suggestions=["Garden wall", "Pizza oven", "Fire pit", "Foundation", "Retaining wall"],
            ))

        if not parsed.experience:
            questions.append(Question(
                type=QuestionType.EXPERIENCE,
                text="What's your experience level with construction projects?",
                required=False,
                suggestions=["Beginner - first time", "Intermediate - some experience", "Expert - very experienced"],
            ))

        if parsed.budget is None and parsed.confidence > BUDGET_QUESTION_CONFIDENCE:
            questions.append(Question(
                type=QuestionType.BUDGET,
                text="Do you have a budget range in mind for this project?",
                required=False,
                suggestions=["Under €500", "€500-€1000", "€1000-€2000", "Over €2000"],
            ))

        return [q for q in questions if q.type not in asked][:MAX_QUESTIONS]

    @staticmethod
    def get_dimension_suggestions(build_type: str) -> List[str]:
        return list(DIMENSION_SUGGESTIONS.get(build_type, ["Please specify your dimensions"]))

    # -------------------------------------------------------------------------
    # Extraction
    # -------------------------------------------------------------------------

    def match_build_keyword(self, lower: str) -> Optional[str]:
        """Build-type keyword found in lowercased text, if any."""
        return self._extract_build_type(lower)[1]

    def _extract_build_type(self, lower: str) -> Tuple[BuildType, Optional[str]]:
        for keyword, pattern, build_type in _BUILD_TYPE_PATTERNS:
            if pattern.search(lower):
                return build_type, keyword
        return BuildType.UNKNOWN, None

    def _extract_dimensions(self, text: str) -> Dimensions:
        values: Dict[str, float] = {}

        match = DIMENSIONS_3D.search(text)
        if match:
            values["length"] = _to_meters(match.group(1), match.group(2))
            values["width"] = _to_meters(match.group(3), match.group(4))
            values["height"] = _to_meters(match.group(5), match.group(6))
        else:
            match = DIMENSIONS_2D.search(text)
            if match:
                values["length"] = _to_meters(match.group(1), match.group(2))
                values["width"] = _to_meters(match.group(3), match.group(4))

        for slot, pattern in SINGLE_DIMENSIONS:
            if slot in values:
                continue
            single = pattern.search(text)
            if single:
                values[slot] = _to_meters(single.group(1), single.group(2))

        return Dimensions(**values)

    def _extract_area(self, text: str) -> Optional[float]:
        match = AREA_PATTERN.search(text)
        if match:
            return float(match.group(1).replace(",", "."))
        return None

    def _extract_materials(self, lower: str) -> List[str]:
        return [name for name, keywords in MATERIAL_KEYWORDS.items() if _contains(lower, keywords)]

    def _extract_constraints(self, lower: str) -> List[str]:
        return [name for name, keywords in CONSTRAINT_KEYWORDS.items() if _contains(lower, keywords)]

    def _extract_urgency(self, lower: str) -> Urgency:
        for urgency, keywords in URGENCY_KEYWORDS:
            if _contains(lower, keywords):
                return urgency
        return Urgency.LOW

    def _extract_budget(self, text: str) -> Optional[float]:
        for pattern in BUDGET_PATTERNS:
            match = pattern.search(text)
            if match:
                return float(match.group(1).replace(",", ""))
        return None

    def _extract_experience(self, lower: str) -> Optional[ExperienceLevel]:
        for level, keywords in EXPERIENCE_KEYWORDS:
            if _contains(lower, keywords):
                return level
        return None

    def _extract_quality(self, lower: str) -> Optional[QualityOption]:
        for option, keywords in QUALITY_KEYWORDS:
            if _contains(lower, keywords):
                return option
        return None

    def _score_confidence(
        self,
        text: str,
        keyword: Optional[str],
        has_dimensions: bool,
        has_materials: bool,
    ) -> float:
        lower = text.lower()
        confidence = 0.0

        if keyword in STRONG_BUILD_KEYWORDS:
            confidence += 0.4
        elif keyword is not None:
            confidence += 0.3
        elif _contains(lower, CONSTRUCTION_VERBS):
            confidence += 0.1

        if has_dimensions:
            confidence += 0.3
        if has_materials:
            confidence += 0.2
        if len(text) > 50:
            confidence += 0.1
        if len(text.split()) > 10:
            confidence += 0.1

        return round(min(max(confidence, 0.0), 1.0), 2)
