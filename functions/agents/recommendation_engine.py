"""Recommendation Engine for MultiBuild.

Suggests alternative materials for calculated line items and derives cost
optimizations from them.
"""

import re
from typing import List, Optional

import structlog

from models.catalog import EnhancedMaterial, MaterialCategory
from models.material_calculation import MaterialCalculationItem
from models.parsed_request import ExperienceLevel
from models.recommendation import (
    AlternativeSuggestion,
    CostOptimization,
    MaterialRecommendation,
    RecommendationContext,
)
from services.catalog_service import CatalogService, HIGH_HEAT_BUILD_TYPES, extract_max_days

logger = structlog.get_logger()

MIN_COMPATIBILITY = 0.5
MAX_ALTERNATIVES = 3
BALANCED_COST_PENALTY = 0.01

_LEADING_NUMBER = re.compile(r"(\d+(?:\.\d+)?)")


def _spec_number(value: Optional[str]) -> Optional[float]:
    """First number in a specification string ('1200°C' -> 1200, 'M4' -> 4)."""
    if not value:
        return None
    match = _LEADING_NUMBER.search(value)
    return float(match.group(1)) if match else None


class RecommendationEngine:
    """Scores catalog alternatives against a recommendation context."""

    def __init__(self, catalog: Optional[CatalogService] = None):
        self.catalog = catalog or CatalogService()

    def get_recommendations(
        self,
        items: List[MaterialCalculationItem],
        context: RecommendationContext,
    ) -> List[MaterialRecommendation]:
        """Up to three scored alternatives for every line item that has any."""
        recommendations = []
        for item in items:
            alternatives = self._find_alternatives(item.material, context)
            if alternatives:
                recommendations.append(MaterialRecommendation(
                    original=item,
                    alternatives=alternatives[:MAX_ALTERNATIVES],
                ))

        logger.debug(
            "recommendations_generated",
            build_type=context.build_type,
            items=len(items),
            recommendations=len(recommendations),
        )
        return recommendations

    def get_cost_optimizations(
        self,
        items: List[MaterialCalculationItem],
        target_budget: Optional[float] = None,
        build_type: str = "general",
    ) -> CostOptimization:
        """Cheapest qualifying alternative per line item and the total saved.

        Savings are weighted by each line's quantity.
        """
        context = RecommendationContext(
            build_type=build_type,
            budget=target_budget,
            prioritize_cost=True,
        )
        recommendations = self.get_recommendations(items, context)

        total_savings = 0.0
        messages: List[str] = []
        chosen: List[AlternativeSuggestion] = []
        for rec in recommendations:
            cheaper = [alt for alt in rec.alternatives if alt.cost_difference < 0]
            if not cheaper:
                continue
            best = min(cheaper, key=lambda alt: alt.cost_difference)
            line_savings = round(abs(best.cost_difference) * rec.original.quantity, 2)
            total_savings += line_savings
            chosen.append(best)
            messages.append(
                f"Switch {rec.original.material.name} to {best.material.name} ({best.reason})"
            )

        total_savings = round(total_savings, 2)
        current_total = sum(item.total_cost for item in items)
        projected_total = round(max(current_total - total_savings, 0.0), 2)
        within_budget = projected_total <= target_budget if target_budget is not None else None

        logger.info(
            "cost_optimizations_calculated",
            build_type=build_type,
            total_savings=total_savings,
            projected_total=projected_total,
            within_budget=within_budget,
        )
        return CostOptimization(
            total_savings=total_savings,
            recommendations=messages,
            alternative_materials=chosen,
            target_budget=target_budget,
            projected_total=projected_total,
            within_budget=within_budget,
        )

    # -------------------------------------------------------------------------
    # Candidates and scoring
    # -------------------------------------------------------------------------

    def _find_alternatives(
        self,
        material: EnhancedMaterial,
        context: RecommendationContext,
    ) -> List[AlternativeSuggestion]:
        candidates = list(self.catalog.get_alternatives(material.id))
        candidates.extend(
            m for m in self.catalog.search_by_category(material.category)
            if m.id != material.id and m.is_compatible_with(context.build_type)
        )

        seen = set()
        unique = []
        for candidate in candidates:
            if candidate.id in seen:
                continue
            seen.add(candidate.id)
            unique.append(candidate)

        scored = [self._score_alternative(material, candidate, context) for candidate in unique]
        scored = [s for s in scored if s.compatibility_score > MIN_COMPATIBILITY]
        scored.sort(key=lambda s: self._rank_key(s, context))
        return scored

    def _score_alternative(
        self,
        original: EnhancedMaterial,
        alternative: EnhancedMaterial,
        context: RecommendationContext,
    ) -> AlternativeSuggestion:
        cost_difference = round(alternative.price - original.price, 2)
        quality_improvement = None

        if cost_difference < 0:
            reason = f"Save €{abs(cost_difference):.2f} per unit"
        elif cost_difference > 0:
            reason = f"Premium option (+€{cost_difference:.2f})"
            quality_improvement = self._quality_improvement(original, alternative) or None
        else:
            reason = "Same price, different specifications"

        benefits = self._specific_benefits(original, alternative, context)
        if benefits:
            reason += f" - {benefits}"

        return AlternativeSuggestion(
            material=alternative,
            reason=reason,
            cost_difference=cost_difference,
            quality_improvement=quality_improvement,
            compatibility_score=self._compatibility_score(alternative, context),
        )

    @staticmethod
    def _compatibility_score(material: EnhancedMaterial, context: RecommendationContext) -> float:
        score = 0.0
        if material.is_compatible_with(context.build_type):
            score += 0.8
        if context.budget and context.prioritize_cost:
            score += 0.2 if material.price < context.budget * 0.1 else -0.2
        if (
            context.user_experience == ExperienceLevel.BEGINNER.value
            and material.category == MaterialCategory.TOOL.value
        ):
            score += 0.1
        if context.build_type in HIGH_HEAT_BUILD_TYPES and material.specifications.heat_resistance:
            score += 0.2
        return round(min(max(score, 0.0), 1.0), 2)

    @staticmethod
    def _rank_key(suggestion: AlternativeSuggestion, context: RecommendationContext):
        if context.prioritize_cost:
            return suggestion.cost_difference
        if context.prioritize_quality:
            return -suggestion.compatibility_score
        return -(suggestion.compatibility_score - abs(suggestion.cost_difference) * BALANCED_COST_PENALTY)

    @staticmethod
    def _quality_improvement(original: EnhancedMaterial, alternative: EnhancedMaterial) -> str:
        improvements = []
        orig_spec = original.specifications
        alt_spec = alternative.specifications

        orig_strength, alt_strength = _spec_number(orig_spec.strength), _spec_number(alt_spec.strength)
        if orig_strength is not None and alt_strength is not None and alt_strength > orig_strength:
            improvements.append("Higher strength")

        orig_heat, alt_heat = _spec_number(orig_spec.heat_resistance), _spec_number(alt_spec.heat_resistance)
        if orig_heat is not None and alt_heat is not None and alt_heat > orig_heat:
            improvements.append("Better heat resistance")

        if alt_spec.water_resistance == "High" and orig_spec.water_resistance != "High":
            improvements.append("Improved water resistance")

        if "premium" in alternative.description.lower():
            improvements.append("Premium quality")
        return ", ".join(improvements)

    @staticmethod
    def _specific_benefits(
        original: EnhancedMaterial,
        alternative: EnhancedMaterial,
        context: RecommendationContext,
    ) -> str:
        benefits = []
        if alternative.lead_time and original.lead_time:
            if extract_max_days(alternative.lead_time) < extract_max_days(original.lead_time):
                benefits.append("Faster delivery")
        if alternative.supplier and alternative.supplier != original.supplier:
            benefits.append(f"Available from {alternative.supplier}")
        if context.build_type == "garden_wall" and "waterproof" in alternative.id:
            benefits.append("Better for outdoor use")
        if context.build_type in HIGH_HEAT_BUILD_TYPES and "fire" in alternative.id:
            benefits.append("Designed for high temperatures")
        return ", ".join(benefits)
