"""Pizza oven configurator agents for MultiBuild.

Four small agents run in sequence: requirements validation, tiered
component calculation, image prompt generation and the final shopping
list. Component amounts scale linearly with the footprint relative to the
1.5 m² baseline and are rounded up.
"""

import math
from typing import Any, Dict, Optional

import structlog

from config.errors import ValidationError
from models.parsed_request import QualityOption
from models.pizzaoven import (
    CalculationResult,
    ComponentCalculation,
    ImagePrompt,
    RequirementsInput,
    ShoppingList,
)
from services.catalog_service import PIZZAOVEN_CATALOG

logger = structlog.get_logger()

QUALITY_OPTIONS = tuple(option.value for option in QualityOption)
DEFAULT_AREA_SQM = 1.5
DEFAULT_QUALITY = QualityOption.GUENSTIG.value

BUILD_TIMES: Dict[str, str] = {
    QualityOption.SCHNELL.value: "2-3 Tage",
    QualityOption.GUENSTIG.value: "3-5 Tage",
    QualityOption.PREMIUM.value: "5-7 Tage",
}

QUALITY_DESCRIPTIONS: Dict[str, str] = {
    QualityOption.SCHNELL.value: "moderner, effizienter Pizzaofen mit schlankem Design",
    QualityOption.GUENSTIG.value: "traditioneller, rustikaler Pizzaofen im Garten",
    QualityOption.PREMIUM.value: "luxuriöser, professioneller Pizzaofen mit eleganten Steinarbeiten",
}

QUALITY_STYLES: Dict[str, str] = {
    QualityOption.SCHNELL.value: "modern, clean design",
    QualityOption.GUENSTIG.value: "rustic, traditional style",
    QualityOption.PREMIUM.value: "photorealistic, professional architecture",
}

PREVIEW_IMAGE_URL = (
    "https://images.unsplash.com/photo-1513475382585-d06e58bcb0e0"
    "?ixlib=rb-4.0.3&auto=format&fit=crop&w=800&q=80"
)


class RequirementsAgent:
    """Fills defaults and validates configurator input."""

    def __init__(self, catalog: Optional[Dict[str, Any]] = None):
        self.catalog = catalog or PIZZAOVEN_CATALOG

    def validate_requirements(self, data: Optional[Dict[str, Any]] = None) -> RequirementsInput:
        """Validate raw input.

        Raises:
            ValidationError: Unknown quality tier, non-numeric area or an
                area outside the allowed range. Values are never clamped.
        """
        data = data or {}
        limits = self.catalog["requirements"]

        quality = data.get("quality_option") or DEFAULT_QUALITY
        if quality not in QUALITY_OPTIONS:
            raise ValidationError(
                f"Ungültige Qualitätsoption: {quality}. Erlaubt: {', '.join(QUALITY_OPTIONS)}",
                field="quality_option",
                details={"allowed": list(QUALITY_OPTIONS)},
            )

        raw_area = data.get("area_sqm")
        if raw_area is None or raw_area == "":
            area = DEFAULT_AREA_SQM
        else:
            try:
                area = float(raw_area)
            except (TypeError, ValueError):
                raise ValidationError("area_sqm muss eine Zahl sein", field="area_sqm")
            if not math.isfinite(area):
                raise ValidationError("area_sqm muss eine endliche Zahl sein", field="area_sqm")

        if area < limits["min_area_sqm"]:
            raise ValidationError(
                f"Mindestfläche: {limits['min_area_sqm']} qm",
                field="area_sqm",
                details={"min": limits["min_area_sqm"], "max": limits["max_area_sqm"]},
            )
        if area > limits["max_area_sqm"]:
            raise ValidationError(
                f"Maximale Fläche: {limits['max_area_sqm']} qm",
                field="area_sqm",
                details={"min": limits["min_area_sqm"], "max": limits["max_area_sqm"]},
            )

        logger.info("pizzaoven_requirements_validated", area_sqm=area, quality_option=quality)
        return RequirementsInput(
            area_sqm=area,
            material_preference=data.get("material_preference"),
            quality_option=quality,
        )


class CalculationAgent:
    """Scales tier component amounts to the requested footprint."""

    def __init__(self, catalog: Optional[Dict[str, Any]] = None):
        self.catalog = catalog or PIZZAOVEN_CATALOG

    def calculate_materials(self, requirements: RequirementsInput) -> CalculationResult:
        base_area = self.catalog["requirements"].get("base_area_sqm", DEFAULT_AREA_SQM)
        scale = requirements.area_sqm / base_area
        components = []

        for component in self.catalog["components"]:
            option = component["options"][requirements.quality_option]
            amount = math.ceil(round(option["amount"] * scale, 6))
            components.append(ComponentCalculation(
                name=component["name"],
                amount=amount,
                price_per_unit=option["price_per_unit"],
                total_price=round(amount * option["price_per_unit"], 2),
            ))

        total_cost = round(sum(c.total_price for c in components), 2)
        logger.info(
            "pizzaoven_materials_calculated",
            quality_option=requirements.quality_option,
            area_sqm=requirements.area_sqm,
            total_cost=total_cost,
            components_count=len(components),
        )
        return CalculationResult(
            components=components,
            total_cost=total_cost,
            quality_option=requirements.quality_option,
        )


class ImageAgent:
    """Builds an image-API prompt describing the configured oven."""

    def generate_image_prompt(
        self,
        requirements: RequirementsInput,
        calculation: CalculationResult,
    ) -> ImagePrompt:
        area = requirements.area_sqm
        quality = requirements.quality_option
        if area > 2.0:
            size = "großer"
        elif area > 1.5:
            size = "mittelgroßer"
        else:
            size = "kompakter"

        bricks = next((c.amount for c in calculation.components if c.name == "Schamottsteine"), 0)
        return ImagePrompt(
            description=f"Ein {size} {QUALITY_DESCRIPTIONS[quality]} aus Schamottsteinen",
            style=QUALITY_STYLES[quality],
            details=[
                f"Fläche: {area:g} Quadratmeter",
                f"{bricks} Schamottsteine",
                f"Qualitätsstufe: {quality}",
                "Gartenumgebung, natürliches Licht",
            ],
        )

    def generate_image_url(self, prompt: ImagePrompt) -> str:
        # Static preview until an image API is wired in
        return PREVIEW_IMAGE_URL


class SummaryAgent:
    def generate_shopping_list(
        self,
        requirements: RequirementsInput,
        calculation: CalculationResult,
        image_prompt: ImagePrompt,
        image_url: Optional[str] = None,
    ) -> ShoppingList:
        return ShoppingList(
            project=PIZZAOVEN_CATALOG["project"],
            area_sqm=requirements.area_sqm,
            quality_option=calculation.quality_option,
            components=calculation.components,
            total_cost=calculation.total_cost,
            estimated_build_time=BUILD_TIMES[calculation.quality_option],
            image_prompt=image_prompt,
            image_url=image_url,
        )


def run_demo(data: Optional[Dict[str, Any]] = None) -> ShoppingList:
    """Run all four configurator agents in order.

    Raises:
        ValidationError: If the requirements are invalid.
    """
    requirements = RequirementsAgent().validate_requirements(data)
    calculation = CalculationAgent().calculate_materials(requirements)

    image_agent = ImageAgent()
    prompt = image_agent.generate_image_prompt(requirements, calculation)
    image_url = image_agent.generate_image_url(prompt)

    shopping_list = SummaryAgent().generate_shopping_list(requirements, calculation, prompt, image_url)
    logger.info(
        "pizzaoven_demo_complete",
        quality_option=shopping_list.quality_option,
        total_cost=shopping_list.total_cost,
        build_time=shopping_list.estimated_build_time,
    )
    return shopping_list
