from typing import Dict, List, Tuple

from src.analysis.domain.analysis_models import Conflict, FrameworkRecommendation
from src.analysis.domain.framework_profiles import NEGOTIATE_COMPROMISES
from src.core.context.engine_context import EngineContext
from src.dilemma.domain.dilemma_models import Dilemma
from src.resolution.domain.resolution_models import (
    DetailLevel,
    HybridAnalysis,
    Resolution,
    StrategyName,
)

HIGH_SCORE = 7.0


def _preview(elements: List[str], limit: int = 2) -> str:
    shown = "; ".join(elements[:limit])
    return shown + ("..." if len(elements) > limit else "")


class HybridResolver:
    """
    Combines the reasoning of two specific opposed frameworks.

    Each side's justification is split into sentences and tagged by keyword
    category; one side is applied as a filter or lens over the other and the
    surviving action is recommended. If a side has no tagged sentence the
    resolver returns a blended fallback instead of raising.
    """

    def __init__(self, context: EngineContext):
        self.context = context
        self.classifier = context.classifier

    def resolve(
        self,
        strategy: StrategyName,
        conflict: Conflict,
        dilemma: Dilemma,
        recommendations: Dict[str, FrameworkRecommendation],
    ) -> Resolution:
        if strategy == StrategyName.DUTY_BOUNDED_UTILITARIANISM:
            return self._duty_bounded(conflict, dilemma, recommendations)
        if strategy == StrategyName.VIRTUE_GUIDED_CONSEQUENTIALISM:
            return self._virtue_guided(conflict, dilemma, recommendations)
        if strategy == StrategyName.CARE_BASED_JUSTICE:
            return self._care_based(conflict, dilemma, recommendations)
        raise ValueError(f"Not a hybrid strategy: {strategy.value}")

    # --- Helpers ---

    def _pair(
        self,
        conflict: Conflict,
        recommendations: Dict[str, FrameworkRecommendation],
        primary: str,
        secondary: str,
    ) -> Tuple[FrameworkRecommendation, FrameworkRecommendation]:
        missing = [fw for fw in (primary, secondary) if fw not in recommendations]
        if missing:
            raise KeyError(f"Conflict {conflict.id} lacks recommendations for {', '.join(missing)}")
        return recommendations[primary], recommendations[secondary]

    def _number(self, dilemma: Dilemma, canonical: str) -> float:
        value, _ = self.context.parameter_mapping.lookup(dilemma, canonical)
        return value if value is not None else 0.0

    def _fallback(
        self,
        strategy: StrategyName,
        conflict: Conflict,
        first: FrameworkRecommendation,
        second: FrameworkRecommendation,
        description: str,
    ) -> Resolution:
        label = strategy.value.replace("_", " ")
        reasoning = (
            f"This {label} approach attempts to resolve the conflict by {description}. "
            f"The reasoning of {first.framework} and {second.framework} could not be split into "
            f"comparable elements, so both perspectives are blended with equal weight."
        )
        return Resolution(
            conflict_id=conflict.id,
            strategy=strategy,
            weights={first.framework: 0.5, second.framework: 0.5},
            recommended_action=first.recommended_action,
            reasoning=reasoning,
            detail_level=DetailLevel.MEDIUM,
            hybrid=HybridAnalysis(name=strategy.value, fallback_used=True),
        )

    # --- Duty-bounded utilitarianism ---

    def _duty_bounded(self, conflict, dilemma, recommendations) -> Resolution:
        strategy = StrategyName.DUTY_BOUNDED_UTILITARIANISM
        duty, util = self._pair(conflict, recommendations, "deontology", "utilitarian")
        constraints = self.classifier.tag_sentences(duty.justification, "duty")
        utilities = self.classifier.tag_sentences(util.justification, "utility")
        if not constraints or not utilities:
            return self._fallback(strategy, conflict, duty, util, "combining moral constraints with utility calculations")

        # Utility claims that do not themselves invoke a duty survive the constraint filter
        permissible = [u for u in utilities if not self.classifier.category_hits(u, "duty")]
        urgency = self.context.signals.max_urgency
        if urgency > HIGH_SCORE or not permissible:
            action = duty.recommended_action
            weights = {duty.framework: 0.7, util.framework: 0.3}
            rule = f"respect for persons: urgency {urgency:g} makes the moral constraint binding"
        else:
            action = util.recommended_action
            weights = {util.framework: 0.7, duty.framework: 0.3}
            rule = "utility is pursued within the limits the duties allow"

        reasoning = (
            f"Moral constraints identified: {_preview(constraints)} "
            f"Utility considerations identified: {_preview(utilities)} "
            f"Applying the constraints to the utility calculation: {rule}. "
            f"The duty-bounded utilitarian approach recommends {action}."
        )
        return Resolution(
            conflict_id=conflict.id,
            strategy=strategy,
            weights=weights,
            recommended_action=action,
            reasoning=reasoning,
            detail_level=DetailLevel.HIGH,
            hybrid=HybridAnalysis(
                name=strategy.value,
                primary_elements=constraints,
                secondary_elements=utilities,
                filtered_elements=permissible,
                decisive_rule=rule,
            ),
        )

    # --- Virtue-guided consequentialism ---

    def _virtue_guided(self, conflict, dilemma, recommendations) -> Resolution:
        strategy = StrategyName.VIRTUE_GUIDED_CONSEQUENTIALISM
        virtue, util = self._pair(conflict, recommendations, "virtue_ethics", "utilitarian")
        virtues = self.classifier.tag_sentences(virtue.justification, "virtue")
        consequences = self.classifier.tag_sentences(util.justification, "consequence")
        if not virtues or not consequences:
            return self._fallback(strategy, conflict, virtue, util, "judging consequences through virtues")

        aligned = [
            c for c in consequences
            if self.classifier.category_hits(c, "virtue") or any(
                self.classifier.category_hits(v, "consequence") for v in virtues
            )
        ]
        opinion = self._number(dilemma, "public_opinion")
        benefit_a = self._number(dilemma, "benefit_per_person_option_a")
        benefit_b = self._number(dilemma, "benefit_per_person_option_b")

        if benefit_a == benefit_b:
            action = self.context.action_mapper.to_dilemma_action(NEGOTIATE_COMPROMISES)
            weights = {virtue.framework: 0.6, util.framework: 0.4}
            rule = "moderation: equal benefits leave no decisive outcome, so negotiation is the virtuous course"
        elif opinion > HIGH_SCORE:
            action = util.recommended_action
            weights = {util.framework: 0.6, virtue.framework: 0.4}
            rule = f"courage: strong public support ({opinion:g}) favours the decisive, higher-benefit option"
        elif aligned:
            action = util.recommended_action
            weights = {util.framework: 0.6, virtue.framework: 0.4}
            rule = "the expected consequences are consistent with the virtues identified"
        else:
            action = virtue.recommended_action
            weights = {virtue.framework: 0.6, util.framework: 0.4}
            rule = "practical wisdom: the consequences do not express the virtues identified"

        reasoning = (
            f"Virtues identified: {_preview(virtues)} "
            f"Consequences identified: {_preview(consequences)} "
            f"Evaluating consequences through the virtues: {rule}. "
            f"The virtue-guided consequentialist approach recommends {action}."
        )
        return Resolution(
            conflict_id=conflict.id,
            strategy=strategy,
            weights=weights,
            recommended_action=action,
            reasoning=reasoning,
            detail_level=DetailLevel.HIGH,
            hybrid=HybridAnalysis(
                name=strategy.value,
                primary_elements=virtues,
                secondary_elements=consequences,
                filtered_elements=aligned,
                decisive_rule=rule,
            ),
        )

    # --- Care-based justice ---

    def _care_based(self, conflict, dilemma, recommendations) -> Resolution:
        strategy = StrategyName.CARE_BASED_JUSTICE
        # Clinical overrides pair care_ethics with whichever framework opposes it
        partners = [p for p in conflict.participants if p != "care_ethics"]
        partner = "justice" if "justice" in partners or not partners else partners[0]
        care, justice = self._pair(conflict, recommendations, "care_ethics", partner)
        considerations = self.classifier.tag_sentences(care.justification, "care")
        principles = self.classifier.tag_sentences(justice.justification, "justice")
        if not considerations or not principles:
            return self._fallback(strategy, conflict, care, justice, "integrating care considerations with justice principles")

        importance = self._number(dilemma, "specialized_care_importance")
        pop_a = self._number(dilemma, "population_served_option_a")
        pop_b = self._number(dilemma, "population_served_option_b")

        if importance > HIGH_SCORE:
            action = care.recommended_action
            weights = {care.framework: 0.7, justice.framework: 0.3}
            rule = f"vulnerability: specialized care importance {importance:g} puts particular needs first"
        elif pop_a > 0 and pop_b > 0:
            action = justice.recommended_action
            weights = {justice.framework: 0.7, care.framework: 0.3}
            rule = "fair distribution: both options serve people, so impartial allocation governs"
        else:
            action = self.context.action_mapper.to_dilemma_action(NEGOTIATE_COMPROMISES)
            weights = {care.framework: 0.5, justice.framework: 0.5}
            rule = "neither care needs nor distribution dominate, so a negotiated arrangement is sought"

        reasoning = (
            f"Care considerations identified: {_preview(considerations)} "
            f"Justice principles identified: {_preview(principles)} "
            f"Integrating care with justice: {rule}. "
            f"The care-based justice approach recommends {action}."
        )
        return Resolution(
            conflict_id=conflict.id,
            strategy=strategy,
            weights=weights,
            recommended_action=action,
            reasoning=reasoning,
            detail_level=DetailLevel.HIGH,
            hybrid=HybridAnalysis(
                name=strategy.value,
                primary_elements=considerations,
                secondary_elements=principles,
                decisive_rule=rule,
            ),
        )
