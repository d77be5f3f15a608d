"""Planning Agent for MultiBuild.

Builds an EnhancedBlueprint for a parsed request: phases from a build-type
template scaled by experience and project size, a difficulty rating, safety
guidelines, quality checks, permits, maintenance and troubleshooting.
Costs come from the CatalogService.
"""

import math
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

import structlog

from config.errors import CalculationRulesError, PlanningError
from models.blueprint import (
    BuildPhase,
    DetailedStep,
    Difficulty,
    DifficultyAssessment,
    EnhancedBlueprint,
    QualityCheck,
    SafetyGuideline,
    SafetyPriority,
    TroubleshootingEntry,
)
from models.material_calculation import MaterialCalculation, MaterialCalculationItem
from models.parsed_request import BuildType, Dimensions, ExperienceLevel, ParsedRequest
from services.catalog_service import CatalogService, HIGH_HEAT_BUILD_TYPES

logger = structlog.get_logger()

GENERIC_TEMPLATE = "generic"
PERMIT_HEIGHT_THRESHOLD = 2.0
WORKING_HOURS_PER_DAY = 6

EXPERIENCE_MULTIPLIERS: Dict[str, float] = {
    ExperienceLevel.BEGINNER.value: 1.5,
    ExperienceLevel.INTERMEDIATE.value: 1.0,
    ExperienceLevel.EXPERT.value: 0.75,
}

# (area threshold in m², duration factor), checked largest first
SIZE_FACTORS: List[Tuple[float, float]] = [(20.0, 1.6), (10.0, 1.4), (5.0, 1.2)]

DEFAULT_HEIGHTS: Dict[str, float] = {
    BuildType.FOUNDATION.value: 0.3,
    BuildType.FIRE_PIT.value: 0.4,
    BuildType.STRUCTURE.value: 2.0,
}


# =============================================================================
# TEMPLATES
# =============================================================================

PHASE_TEMPLATES: Dict[str, Dict[str, Any]] = {
    "pizza_oven": {
        "title": "Wood-Fired Pizza Oven",
        "base_difficulty": 3,
        "material_complexity": 1,
        "phases": [
            {
                "name": "Foundation Preparation",
                "description": "Excavate, compact a gravel bed and pour a level concrete slab",
                "hours": 3,
                "tools": ["shovel", "spirit level", "measuring tape"],
                "categories": ["foundation"],
                "weather_dependent": True,
                "skill_level": "intermediate",
                "safety_priority": "medium",
                "steps": [
                    ("Mark out the footprint", "Peg and string the slab outline 20cm larger than the oven base."),
                    ("Excavate and compact", "Dig 15cm down, add gravel and compact it in layers."),
                    ("Pour the slab", "Pour concrete, screed it level and let it cure for at least 3 days."),
                ],
            },
            {
                "name": "Base Construction",
                "description": "Build the insulated hearth platform",
                "hours": 4,
                "tools": ["trowel", "spirit level", "rubber mallet"],
                "categories": ["insulation"],
                "weather_dependent": False,
                "skill_level": "intermediate",
                "safety_priority": "high",
                "steps": [
                    ("Lay the insulation board", "Bed the insulation boards on the slab with tight joints."),
                    ("Set the hearth bricks", "Lay firebricks flat on a thin refractory bed, checking level across the hearth."),
                ],
            },
            {
                "name": "Dome Construction",
                "description": "Build the oven dome and entrance arch in firebrick",
                "hours": 7,
                "tools": ["trowel", "angle grinder", "brick hammer"],
                "categories": ["brick", "mortar"],
                "weather_dependent": False,
                "skill_level": "advanced",
                "safety_priority": "high",
                "steps": [
                    ("Build the entrance arch", "Form the arch over a timber former at about 63% of the dome height."),
                    ("Raise the dome courses", "Lay each course with thin refractory joints, cutting bricks to keep the curve."),
                    ("Close the crown", "Fit the keystone bricks and let the mortar set before removing formers."),
                ],
            },
            {
                "name": "Insulation & Finishing",
                "description": "Wrap the dome in insulation, fit door and flue, then run curing fires",
                "hours": 3,
                "tools": ["trowel", "brush"],
                "categories": ["accessory"],
                "weather_dependent": True,
                "skill_level": "intermediate",
                "safety_priority": "medium",
                "steps": [
                    ("Insulate the dome", "Wrap the dome in ceramic blanket and render over it."),
                    ("Fit door and flue", "Install the flue above the entrance and test the door fit."),
                    ("Cure the oven", "Run five days of small fires, increasing the size each day."),
                ],
            },
        ],
    },
    "garden_wall": {
        "title": "Garden Wall",
        "base_difficulty": 2,
        "material_complexity": 0,
        "phases": [
            {
                "name": "Foundation Digging",
                "description": "Dig the foundation trench to the required depth",
                "hours": 3,
                "tools": ["shovel", "pickaxe", "measuring tape"],
                "categories": [],
                "weather_dependent": True,
                "skill_level": "beginner",
                "safety_priority": "medium",
                "steps": [
                    ("Set out the line", "Mark the wall line with pegs and string."),
                    ("Dig the trench", "Dig a trench twice the wall thickness wide and at least 30cm deep."),
                ],
            },
            {
                "name": "Foundation Laying",
                "description": "Pour and level the concrete strip footing",
                "hours": 3,
                "tools": ["trowel", "spirit level", "mixing bucket"],
                "categories": ["foundation"],
                "weather_dependent": True,
                "skill_level": "intermediate",
                "safety_priority": "high",
                "steps": [
                    ("Pour the footing", "Pour concrete into the trench and tamp it level."),
                    ("Let it cure", "Keep the footing damp and wait at least 48 hours before building."),
                ],
            },
            {
                "name": "Wall Construction",
                "description": "Lay bricks course by course with consistent mortar joints",
                "hours": 6,
                "tools": ["trowel", "spirit level", "string line", "brick hammer"],
                "categories": ["brick", "mortar"],
                "weather_dependent": True,
                "skill_level": "intermediate",
                "safety_priority": "medium",
                "steps": [
                    ("Lay the first course", "Bed the damp proof course and lay the first course dead level."),
                    ("Build up the corners", "Raise the ends first and run a string line between them."),
                    ("Fill the courses", "Lay the remaining bricks with 10mm joints, checking plumb every few courses."),
                ],
            },
            {
                "name": "Pointing & Finishing",
                "description": "Finish the mortar joints, fit coping and clean the wall",
                "hours": 2,
                "tools": ["pointing trowel", "brush", "sponge"],
                "categories": ["accessory"],
                "weather_dependent": False,
                "skill_level": "beginner",
                "safety_priority": "low",
                "steps": [
                    ("Point the joints", "Tool the joints once the mortar is thumbprint hard."),
                    ("Fit the coping", "Bed the coping stones on mortar to shed rain off the wall."),
                ],
            },
        ],
    },
    "fire_pit": {
        "title": "Brick Fire Pit",
        "base_difficulty": 2,
        "material_complexity": 1,
        "phases": [
            {
                "name": "Site Preparation",
                "description": "Clear and level the ground away from buildings and trees",
                "hours": 2,
                "tools": ["shovel", "spirit level", "measuring tape"],
                "categories": [],
                "weather_dependent": True,
                "skill_level": "beginner",
                "safety_priority": "high",
                "steps": [
                    ("Choose the spot", "Keep at least 3m clearance from buildings, fences and overhanging branches."),
                    ("Level the base", "Remove turf and compact a level gravel bed."),
                ],
            },
            {
                "name": "Ring Construction",
                "description": "Lay the firebrick ring with refractory mortar",
                "hours": 4,
                "tools": ["trowel", "rubber mallet", "brick hammer"],
                "categories": ["brick", "mortar"],
                "weather_dependent": False,
                "skill_level": "intermediate",
                "safety_priority": "high",
                "steps": [
                    ("Lay the first ring", "Set the first ring of firebricks on a refractory mortar bed."),
                    ("Build up the walls", "Stagger the joints on each course and keep the ring round."),
                ],
            },
            {
                "name": "Finishing",
                "description": "Fit the grate and run a first small fire",
                "hours": 1,
                "tools": ["brush"],
                "categories": ["accessory"],
                "weather_dependent": False,
                "skill_level": "beginner",
                "safety_priority": "medium",
                "steps": [
                    ("Fit the grate", "Place the steel grate so air can reach the fire from below."),
                ],
            },
        ],
    },
    "foundation": {
        "title": "Concrete Foundation",
        "base_difficulty": 2,
        "material_complexity": 0,
        "phases": [
            {
                "name": "Excavation",
                "description": "Excavate to depth and compact the sub-base",
                "hours": 4,
                "tools": ["shovel", "measuring tape"],
                "categories": [],
                "weather_dependent": True,
                "skill_level": "beginner",
                "safety_priority": "high",
                "steps": [
                    ("Locate services", "Check for buried cables and pipes before digging."),
                    ("Dig and compact", "Excavate to the planned depth and compact the bottom."),
                ],
            },
            {
                "name": "Formwork & Reinforcement",
                "description": "Set formwork and lay the reinforcement mesh",
                "hours": 3,
                "tools": ["spirit level", "measuring tape"],
                "categories": [],
                "weather_dependent": False,
                "skill_level": "intermediate",
                "safety_priority": "medium",
                "steps": [
                    ("Set the formwork", "Fix boards around the excavation with their tops level."),
                    ("Place the mesh", "Lay the rebar mesh on spacers so it sits in the middle of the slab."),
                ],
            },
            {
                "name": "Pouring & Curing",
                "description": "Pour, level and cure the concrete",
                "hours": 5,
                "tools": ["concrete mixer", "screed board", "spirit level"],
                "categories": ["foundation"],
                "weather_dependent": True,
                "skill_level": "intermediate",
                "safety_priority": "high",
                "steps": [
                    ("Pour the concrete", "Pour in one go and work it into the corners."),
                    ("Screed and cure", "Screed level, cover with sheeting and keep damp for 7 days."),
                ],
            },
        ],
    },
    GENERIC_TEMPLATE: {
        "title": "Masonry Project",
        "base_difficulty": 1,
        "material_complexity": 0,
        "phases": [
            {
                "name": "Preparation",
                "description": "Prepare materials and work area",
                "hours": 2,
                "tools": ["measuring tape", "spirit level"],
                "categories": ["foundation"],
                "weather_dependent": False,
                "skill_level": "beginner",
                "safety_priority": "medium",
                "steps": [
                    ("Set out the work", "Measure and mark the outline of the build."),
                    ("Stage materials", "Stack bricks and mortar close to the work area on a dry base."),
                ],
            },
            {
                "name": "Construction",
                "description": "Main construction phase",
                "hours": 5,
                "tools": ["trowel", "brick hammer", "spirit level"],
                "categories": ["brick", "mortar", "insulation"],
                "weather_dependent": True,
                "skill_level": "intermediate",
                "safety_priority": "high",
                "steps": [
                    ("Lay the courses", "Lay bricks course by course, checking level and plumb as you go."),
                ],
            },
            {
                "name": "Finishing",
                "description": "Final touches and cleanup",
                "hours": 2,
                "tools": ["brush", "sponge"],
                "categories": ["accessory"],
                "weather_dependent": False,
                "skill_level": "beginner",
                "safety_priority": "low",
                "steps": [
                    ("Clean down", "Brush off mortar smears before they harden and clear the site."),
                ],
            },
        ],
    },
}

TROUBLESHOOTING: Dict[str, List[Dict[str, Any]]] = {
    "pizza_oven": [
        {
            "issue": "Dome cracks after firing",
            "symptoms": ["Hairline cracks in the render", "Smoke escaping through the dome"],
            "solutions": ["Fill hairline cracks with refractory mortar", "Run longer, smaller curing fires"],
            "prevention": "Cure the oven slowly over several days before the first full fire",
        },
        {
            "issue": "Oven does not hold heat",
            "symptoms": ["Floor cools within an hour", "Outside of dome gets hot"],
            "solutions": ["Add insulation over the dome", "Check the hearth insulation layer"],
            "prevention": "Use at least 50mm of insulation under the hearth and over the dome",
        },
    ],
    "fire_pit": [
        {
            "issue": "Bricks spalling",
            "symptoms": ["Brick faces flaking", "Popping sounds during fires"],
            "solutions": ["Replace damaged bricks with firebrick", "Keep the pit covered when not in use"],
            "prevention": "Use firebrick for the inner ring and keep it dry",
        },
    ],
    "garden_wall": [
        {
            "issue": "White staining on bricks",
            "symptoms": ["White powdery deposits after rain"],
            "solutions": ["Brush off when dry", "Fit coping to keep water out of the wall"],
            "prevention": "Protect fresh brickwork from rain and use a damp proof course",
        },
        {
            "issue": "Wall leaning",
            "symptoms": ["Wall out of plumb", "Cracks along mortar joints"],
            "solutions": ["Stop building and check the footing", "Rebuild the affected courses"],
            "prevention": "Check plumb every three to four courses",
        },
    ],
    "foundation": [
        {
            "issue": "Surface cracking",
            "symptoms": ["Fine cracks across the slab"],
            "solutions": ["Seal fine cracks", "Check for settlement if cracks widen"],
            "prevention": "Keep the concrete damp while curing and avoid pouring in frost",
        },
    ],
    GENERIC_TEMPLATE: [
        {
            "issue": "Uneven courses",
            "symptoms": ["Visible steps along the top", "Spirit level bubble off centre"],
            "solutions": ["Adjust joint thickness on the next courses", "Relay bricks while mortar is soft"],
            "prevention": "Use a string line and check level on every course",
        },
    ],
}

WEATHER_CONSIDERATIONS = [
    "Avoid construction during rain or extreme temperatures",
    "Allow proper curing time in dry conditions",
    "Protect work from frost during winter months",
]

BASE_MAINTENANCE = [
    "Inspect mortar joints annually",
    "Clear vegetation growth",
    "Repoint damaged joints as needed",
]

FIRE_MAINTENANCE = [
    "Clean ash and debris after each use",
    "Let the fire burn out completely and check for hot embers",
    "Inspect firebricks for cracks annually",
]


def select_template(build_type: str) -> str:
    """Template key for a build type.

    Exact match first, then a same-family template sharing a prefix or a
    name token (``wall`` -> ``garden_wall``), then the generic template.
    """
    if build_type in PHASE_TEMPLATES:
        return build_type
    if not build_type or build_type == BuildType.UNKNOWN.value:
        return GENERIC_TEMPLATE

    for key in PHASE_TEMPLATES:
        if key == GENERIC_TEMPLATE:
            continue
        if key.startswith(build_type) or build_type.startswith(key):
            return key

    tokens = set(build_type.split("_"))
    for key in PHASE_TEMPLATES:
        if key != GENERIC_TEMPLATE and tokens & set(key.split("_")):
            return key
    return GENERIC_TEMPLATE


def resolve_dimensions(parsed: ParsedRequest) -> Dimensions:
    """Fill missing dimensions with build-type defaults.

    A stated area (``1.5 qm``) becomes a square footprint when length and
    width are both missing.
    """
    dims = parsed.dimensions
    length, width = dims.length, dims.width
    if length is None and width is None and parsed.area_sqm:
        side = round(math.sqrt(parsed.area_sqm), 3)
        length = width = side
    height = dims.height
    if height is None:
        height = DEFAULT_HEIGHTS.get(parsed.build_type, 1.0)
    return Dimensions(
        length=length if length is not None else 1.0,
        width=width if width is not None else 1.0,
        height=height,
        diameter=dims.diameter,
    )


def size_factor(area: float) -> float:
    for threshold, factor in SIZE_FACTORS:
        if area > threshold:
            return factor
    return 1.0


def bucket_difficulty(score: int) -> Difficulty:
    if score <= 2:
        return Difficulty.BEGINNER
    if score <= 4:
        return Difficulty.INTERMEDIATE
    return Difficulty.ADVANCED


def _format_hours(hours: float) -> str:
    rounded = round(hours * 2) / 2
    if rounded == 1:
        return "1 hour"
    return f"{rounded:g} hours"


class PlanningAgent:
    """Creates construction blueprints from parsed requests."""

    def __init__(self, catalog: Optional[CatalogService] = None):
        self.catalog = catalog or CatalogService()

    def create_blueprint(self, parsed: ParsedRequest) -> EnhancedBlueprint:
        """Build a blueprint for ``parsed``.

        Raises:
            PlanningError: If materials cannot be calculated for the build type.
        """
        build_type = parsed.build_type
        experience = parsed.experience or ExperienceLevel.INTERMEDIATE.value
        template_id = select_template(build_type)
        template = PHASE_TEMPLATES[template_id]
        dimensions = resolve_dimensions(parsed)

        try:
            calculation = self.catalog.calculate_material_needs(build_type, dimensions)
        except CalculationRulesError as e:
            logger.warning("blueprint_calculation_failed", build_type=build_type, error=e.message)
            raise PlanningError(
                f"Failed to create blueprint: {e.message}",
                build_type=build_type,
                details=e.details,
            )

        area = calculation.surface_area or (dimensions.length or 0.0) * (dimensions.width or 0.0)
        duration_factor = EXPERIENCE_MULTIPLIERS.get(experience, 1.0) * size_factor(area)

        phases = self._create_phases(template, calculation, duration_factor)
        total_hours = sum(phase.estimated_hours for phase in phases)
        score = self._difficulty_score(template, area, dimensions, experience)
        difficulty = bucket_difficulty(score)

        blueprint = EnhancedBlueprint(
            id=f"blueprint-{uuid4().hex[:12]}",
            build_type=build_type,
            title=template["title"] if template_id == build_type else build_type.replace("_", " ").title(),
            template_id=template_id,
            experience_level=experience,
            dimensions=dimensions.model_dump(exclude_none=True),
            phases=phases,
            materials=calculation.materials,
            total_cost=calculation.total_cost,
            estimated_time=self._estimated_time(total_hours),
            estimated_hours=round(total_hours, 1),
            difficulty=difficulty,
            difficulty_score=score,
            difficulty_assessment=self._assess(difficulty, experience),
            safety_guidelines=self._safety_guidelines(build_type, template_id, dimensions, experience),
            quality_checks=self._quality_checks(build_type, phases),
            detailed_steps=self._detailed_steps(template, phases),
            troubleshooting=self._troubleshooting(template_id, experience),
            tools=self._tools(phases),
            permits=self._permits(build_type, template, dimensions),
            weather_considerations=list(WEATHER_CONSIDERATIONS),
            maintenance_schedule=self._maintenance(build_type),
        )

        logger.info(
            "blueprint_created",
            blueprint_id=blueprint.id,
            build_type=build_type,
            template_id=template_id,
            phases=len(phases),
            difficulty=blueprint.difficulty,
            total_cost=blueprint.total_cost,
        )
        return blueprint

    def get_difficulty_assessment(self, build_type: str, experience: Optional[str] = None) -> DifficultyAssessment:
        """Suitability of a build type at its default size for an experience level."""
        experience = experience or ExperienceLevel.INTERMEDIATE.value
        template = PHASE_TEMPLATES[select_template(build_type)]
        dimensions = resolve_dimensions(ParsedRequest(build_type=build_type))
        area = (dimensions.length or 0.0) * (dimensions.width or 0.0)
        score = self._difficulty_score(template, area, dimensions, experience)
        return self._assess(bucket_difficulty(score), experience)

    # -------------------------------------------------------------------------
    # Phases
    # -------------------------------------------------------------------------

    def _create_phases(
        self,
        template: Dict[str, Any],
        calculation: MaterialCalculation,
        duration_factor: float,
    ) -> List[BuildPhase]:
        phases = []
        for index, phase_def in enumerate(template["phases"], start=1):
            hours = round(phase_def["hours"] * duration_factor, 1)
            phase_materials: List[MaterialCalculationItem] = [
                item for item in calculation.materials
                if item.material.category in phase_def["categories"]
            ]
            phases.append(BuildPhase(
                id=f"phase-{index}",
                name=phase_def["name"],
                description=phase_def["description"],
                order=index,
                duration=_format_hours(hours),
                estimated_hours=hours,
                materials=phase_materials,
                tools=list(phase_def["tools"]),
                weather_dependent=phase_def["weather_dependent"],
                skill_level=phase_def["skill_level"],
                safety_priority=phase_def["safety_priority"],
            ))
        return phases

    def _detailed_steps(self, template: Dict[str, Any], phases: List[BuildPhase]) -> List[DetailedStep]:
        steps = []
        for phase_def, phase in zip(template["phases"], phases):
            per_step = int(phase.estimated_hours * 60 / max(len(phase_def["steps"]), 1))
            for number, (title, instructions) in enumerate(phase_def["steps"], start=1):
                steps.append(DetailedStep(
                    phase_id=phase.id,
                    step_number=number,
                    title=title,
                    instructions=instructions,
                    estimated_minutes=per_step,
                ))
        return steps

    @staticmethod
    def _estimated_time(total_hours: float) -> str:
        days_low = max(1, math.ceil(total_hours / (WORKING_HOURS_PER_DAY + 2)))
        days_high = max(1, math.ceil(total_hours / WORKING_HOURS_PER_DAY))
        if days_low == days_high:
            return "1 day" if days_low == 1 else f"{days_low} days"
        return f"{days_low}-{days_high} days"

    # -------------------------------------------------------------------------
    # Difficulty
    # -------------------------------------------------------------------------

    def _difficulty_score(
        self,
        template: Dict[str, Any],
        area: float,
        dimensions: Dimensions,
        experience: str,
    ) -> int:
        score = template["base_difficulty"]
        if area > 10:
            score += 2
        elif area > 5:
            score += 1
        height = dimensions.height or 0.0
        if height >= PERMIT_HEIGHT_THRESHOLD:
            score += 2
        elif height > 1.2:
            score += 1
        score += template["material_complexity"]
        if experience == ExperienceLevel.EXPERT.value:
            score -= 1
        elif experience == ExperienceLevel.BEGINNER.value:
            score += 1
        return max(score, 0)

    @staticmethod
    def _assess(difficulty: str, experience: str) -> DifficultyAssessment:
        difficulty = Difficulty(difficulty)
        if difficulty == Difficulty.ADVANCED and experience == ExperienceLevel.BEGINNER.value:
            return DifficultyAssessment(
                difficulty=difficulty,
                suitable=False,
                recommendation="This is an advanced build for a first project. Consider working with "
                               "an experienced builder or starting with a smaller practice piece.",
            )
        if difficulty == Difficulty.ADVANCED:
            return DifficultyAssessment(
                difficulty=difficulty,
                suitable=True,
                recommendation="Challenging build. Plan extra time for the critical phases.",
            )
        return DifficultyAssessment(
            difficulty=difficulty,
            suitable=True,
            recommendation="Suitable for your experience level. Follow the phases in order.",
        )

    # -------------------------------------------------------------------------
    # Guidance
    # -------------------------------------------------------------------------

    def _safety_guidelines(
        self,
        build_type: str,
        template_id: str,
        dimensions: Dimensions,
        experience: str,
    ) -> List[SafetyGuideline]:
        guidelines = [
            SafetyGuideline(
                category="PPE",
                title="Personal Protective Equipment",
                description="Always wear safety glasses, work gloves, and closed-toe shoes",
                severity=SafetyPriority.CRITICAL,
                equipment=["safety glasses", "work gloves", "safety boots"],
            ),
            SafetyGuideline(
                category="Tools",
                title="Tool Safety",
                description="Inspect all tools before use and keep them clean and sharp",
                severity=SafetyPriority.MEDIUM,
            ),
            SafetyGuideline(
                category="Lifting",
                title="Manual Handling",
                description="Lift bricks and bags with a straight back and share heavy loads",
                severity=SafetyPriority.MEDIUM,
            ),
        ]

        if build_type in HIGH_HEAT_BUILD_TYPES:
            guidelines.append(SafetyGuideline(
                category="Fire",
                title="Fire Safety",
                description="Keep a fire extinguisher and bucket of sand nearby and never leave a fire unattended",
                severity=SafetyPriority.CRITICAL,
                equipment=["fire extinguisher", "heat-resistant gloves"],
            ))
            guidelines.append(SafetyGuideline(
                category="Materials",
                title="Fire Brick Handling",
                description="Fire bricks are heavy and can be sharp. Wear a dust mask when cutting them",
                severity=SafetyPriority.HIGH,
                equipment=["dust mask", "ear protection"],
            ))
        if template_id == "foundation" or build_type == BuildType.FOUNDATION.value:
            guidelines.append(SafetyGuideline(
                category="Excavation",
                title="Excavation Safety",
                description="Check for buried services before digging and keep trench edges clear",
                severity=SafetyPriority.HIGH,
            ))
        if (dimensions.height or 0.0) > 1.2:
            guidelines.append(SafetyGuideline(
                category="Height",
                title="Working at Height",
                description="Use a stable work platform instead of ladders and brace tall walls while the mortar sets",
                severity=SafetyPriority.HIGH,
            ))

        if experience == ExperienceLevel.BEGINNER.value:
            guidelines.append(SafetyGuideline(
                category="Experience",
                title="Work With a Helper",
                description="Have a second person on site and practise techniques on a small test piece first",
                severity=SafetyPriority.MEDIUM,
            ))
        elif experience == ExperienceLevel.EXPERT.value:
            guidelines.append(SafetyGuideline(
                category="Experience",
                title="Pace the Work",
                description="Do not skip curing times to finish faster",
                severity=SafetyPriority.LOW,
            ))
        return guidelines

    def _quality_checks(self, build_type: str, phases: List[BuildPhase]) -> List[QualityCheck]:
        checks = [
            QualityCheck(
                phase=phases[0].name,
                checkpoint="Base level",
                criteria=["Base is level within 3mm over 1m", "Base is fully cured before loading"],
                tools=["spirit level"],
            ),
            QualityCheck(
                phase=phases[min(1, len(phases) - 1)].name,
                checkpoint="Alignment",
                criteria=["Vertical alignment checked every 3-4 courses", "Joints are a consistent 10mm"],
                tools=["spirit level", "string line"],
            ),
        ]
        if build_type in HIGH_HEAT_BUILD_TYPES:
            checks.append(QualityCheck(
                phase=phases[-1].name,
                checkpoint="Curing fires",
                criteria=["No new cracks after each curing fire", "Mortar fully dry before the first full fire"],
                tools=["thermometer"],
            ))
        return checks

    def _troubleshooting(self, template_id: str, experience: str) -> List[TroubleshootingEntry]:
        entries = TROUBLESHOOTING.get(template_id) or TROUBLESHOOTING[GENERIC_TEMPLATE]
        beginner = experience == ExperienceLevel.BEGINNER.value
        result = []
        for entry in entries:
            solutions = list(entry["solutions"])
            if beginner:
                solutions = [f"{solution} (consider professional help if unsure)" for solution in solutions]
            result.append(TroubleshootingEntry(
                issue=entry["issue"],
                symptoms=list(entry["symptoms"]),
                solutions=solutions,
                prevention=entry["prevention"],
            ))
        return result

    @staticmethod
    def _tools(phases: List[BuildPhase]) -> List[str]:
        tools: List[str] = []
        for phase in phases:
            for tool in phase.tools:
                if tool not in tools:
                    tools.append(tool)
        return tools

    @staticmethod
    def _permits(build_type: str, template: Dict[str, Any], dimensions: Dimensions) -> List[str]:
        permits = []
        if (dimensions.height or 0.0) >= PERMIT_HEIGHT_THRESHOLD:
            permits.append("Structures 2m or taller usually need a building permit. Check with your local authority")
        has_foundation_work = build_type == BuildType.FOUNDATION.value or any(
            "foundation" in phase["name"].lower() for phase in template["phases"]
        )
        if has_foundation_work:
            permits.append("Foundation work: check ground conditions and locate underground utilities before digging")
        if build_type in HIGH_HEAT_BUILD_TYPES:
            permits.append("Check local fire regulations and distance rules for permanent fire installations")
        if not permits:
            permits.append("Check local building codes and regulations")
        return permits

    @staticmethod
    def _maintenance(build_type: str) -> List[str]:
        schedule = list(BASE_MAINTENANCE)
        if build_type in HIGH_HEAT_BUILD_TYPES:
            schedule.extend(FIRE_MAINTENANCE)
        return schedule
