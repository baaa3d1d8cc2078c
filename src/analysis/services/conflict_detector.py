import logging
from itertools import combinations
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

from src.analysis.domain.analysis_models import (
    CompromiseArea,
    Conflict,
    ConflictKind,
    ConflictNature,
    DetectionResult,
    FrameworkRecommendation,
    Interaction,
)
from src.analysis.domain.framework_profiles import profile_for
from src.core.context.engine_context import EngineContext
from src.dilemma.domain.dilemma_models import Dilemma

logger = logging.getLogger(__name__)


FRAMEWORK_DISTANCES: Dict[FrozenSet[str], float] = {
    frozenset({"utilitarian", "deontology"}): 0.7,
    frozenset({"utilitarian", "virtue_ethics"}): 0.5,
    frozenset({"utilitarian", "care_ethics"}): 0.6,
    frozenset({"utilitarian", "justice"}): 0.3,
    frozenset({"deontology", "virtue_ethics"}): 0.4,
    frozenset({"deontology", "care_ethics"}): 0.6,
    frozenset({"deontology", "justice"}): 0.4,
    frozenset({"virtue_ethics", "care_ethics"}): 0.3,
    frozenset({"virtue_ethics", "justice"}): 0.5,
    frozenset({"care_ethics", "justice"}): 0.5,
}
DEFAULT_DISTANCE = 0.5

# Pairs whose disagreement is about foundational values regardless of wording.
VALUE_PAIRS = (
    frozenset({"utilitarian", "deontology"}),
    frozenset({"care_ethics", "justice"}),
)

HYBRID_SUGGESTIONS: Dict[FrozenSet[str], Tuple[str, str]] = {
    frozenset({"utilitarian", "deontology"}): (
        "duty_bounded_utilitarianism",
        "Maximize benefit within the limits set by moral duties",
    ),
    frozenset({"utilitarian", "virtue_ethics"}): (
        "virtue_guided_consequentialism",
        "Pursue good outcomes through virtuous means",
    ),
    frozenset({"care_ethics", "justice"}): (
        "care_based_justice",
        "Fair distribution that attends to relationships and particular needs",
    ),
}

COMMON_TERMS = (
    "benefit", "harm", "duty", "right", "virtue", "care", "relationship",
    "fair", "justice", "population", "distribution", "urgency",
)

# Shared vocabulary categories, in priority order, and the nature each implies
NATURE_CATEGORIES = ("core_value", "quantitative")
NATURE_BY_CATEGORY = {
    "core_value": ConflictNature.VALUE,
    "quantitative": ConflictNature.FACTUAL,
}

VALUE_ADJUSTMENT = 0.1
META_ETHICAL_ADJUSTMENT = 0.05
CONSENSUS_STRENGTH = 0.8


def framework_distance(first: str, second: str) -> float:
    return FRAMEWORK_DISTANCES.get(frozenset({first, second}), DEFAULT_DISTANCE)


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


class ConflictDetector:
    """
    Pure read over framework recommendations.
    Produces pairwise, multi-framework and stakeholder conflicts plus
    agreement interactions; records are never modified after creation.
    """

    def __init__(self, context: EngineContext):
        self.context = context
        self.classifier = context.classifier
        self.config = context.config

    def detect(self, dilemma: Dilemma, recommendations: Sequence[FrameworkRecommendation]) -> DetectionResult:
        conflicts: List[Conflict] = []
        interactions: List[Interaction] = []

        # 1. Pairwise framework conflicts and agreements
        for first, second in combinations(recommendations, 2):
            if first.recommended_action != second.recommended_action:
                conflicts.append(self._framework_conflict(first, second))
            else:
                interactions.append(self._agreement(first, second))

        # 2. Multi-framework split or consensus
        multi, consensus = self._multi_framework(recommendations)
        if multi is not None:
            conflicts.append(multi)
        if consensus is not None:
            interactions.append(consensus)

        # 3. Stakeholder conflicts
        conflicts.extend(self._stakeholder_conflicts(dilemma))

        kept = [c for c in conflicts if c.severity >= self.config.min_conflict_severity]
        if len(kept) != len(conflicts):
            logger.info(f"Dropped {len(conflicts) - len(kept)} conflicts below minimum severity")

        return DetectionResult(
            conflicts=kept,
            interactions=interactions,
            insights=self._insights(kept, interactions),
        )

    # --- Pairwise ---

    def classify_nature(self, first: FrameworkRecommendation, second: FrameworkRecommendation) -> ConflictNature:
        if frozenset({first.framework, second.framework}) in VALUE_PAIRS:
            return ConflictNature.VALUE
        shared = self.classifier.keywords(first.justification) & self.classifier.keywords(second.justification)
        category = self.classifier.classify(" ".join(sorted(shared)), NATURE_CATEGORIES)
        return NATURE_BY_CATEGORY.get(category, ConflictNature.METHODOLOGICAL)

    def contextual_distance(self, first: str, second: str) -> float:
        distance = framework_distance(first, second)
        pair = frozenset({first, second})
        signals = self.context.signals
        if pair == frozenset({"utilitarian", "deontology"}) and signals.life_critical:
            distance += 0.1
        if pair == frozenset({"care_ethics", "justice"}) and signals.vulnerable:
            distance += 0.1
        return min(1.0, distance)

    def _framework_conflict(self, first: FrameworkRecommendation, second: FrameworkRecommendation) -> Conflict:
        nature = self.classify_nature(first, second)
        requires_meta = frozenset({first.framework, second.framework}) in VALUE_PAIRS
        distance = self.contextual_distance(first.framework, second.framework)

        adjustment = 0.0
        if nature == ConflictNature.VALUE:
            adjustment += VALUE_ADJUSTMENT
        if requires_meta:
            adjustment += META_ETHICAL_ADJUSTMENT
        severity = round(_clamp(self.config.severity.medium + distance * 0.3 + adjustment), 4)

        phrase_a = profile_for(first.framework).conflict_phrase
        phrase_b = profile_for(second.framework).conflict_phrase
        return Conflict(
            id=f"fc-{first.framework}-{second.framework}",
            kind=ConflictKind.FRAMEWORK,
            participants=(first.framework, second.framework),
            severity=severity,
            description=f"Conflict between {phrase_a} and {phrase_b}",
            nature=nature,
            requires_meta_ethical=requires_meta,
            compromise_areas=self._compromise_areas(first, second),
            actions={
                first.framework: first.recommended_action,
                second.framework: second.recommended_action,
            },
        )

    def _compromise_areas(self, first: FrameworkRecommendation, second: FrameworkRecommendation) -> List[CompromiseArea]:
        text_a = first.justification.lower()
        text_b = second.justification.lower()
        areas = [
            CompromiseArea(
                kind="shared_concern",
                term=term,
                description=f"Both frameworks consider {term}",
            )
            for term in COMMON_TERMS
            if term in text_a and term in text_b
        ]
        if areas:
            return areas
        hybrid = HYBRID_SUGGESTIONS.get(frozenset({first.framework, second.framework}))
        if hybrid is None:
            return []
        return [CompromiseArea(kind="hybrid_approach", term=hybrid[0], description=hybrid[1])]

    # --- Agreement ---

    def justification_similarity(self, first: FrameworkRecommendation, second: FrameworkRecommendation) -> float:
        words_a = self.classifier.keywords(first.justification)
        words_b = self.classifier.keywords(second.justification)
        union = words_a | words_b
        jaccard = len(words_a & words_b) / len(union) if union else 0.0
        shared_sensitive = set(first.sensitive_parameters) & set(second.sensitive_parameters)
        return round(_clamp(jaccard + 0.1 * len(shared_sensitive)), 4)

    def _shared_dimensions(self, first: FrameworkRecommendation, second: FrameworkRecommendation) -> List[str]:
        dimensions = list(profile_for(first.framework).dimensions)
        dimensions += [d for d in profile_for(second.framework).dimensions if d not in dimensions]
        text_a = first.justification.lower()
        text_b = second.justification.lower()
        return [d for d in dimensions if d in text_a and d in text_b]

    def _agreement(self, first: FrameworkRecommendation, second: FrameworkRecommendation) -> Interaction:
        distance = framework_distance(first.framework, second.framework)
        similarity = self.justification_similarity(first, second)
        if similarity > 0.7:
            kind = "strong_reinforcement"
        elif similarity > 0.4:
            kind = "moderate_reinforcement"
        else:
            kind = "complementary_perspectives"
        return Interaction(
            kind="agreement",
            participants=(first.framework, second.framework),
            strength=round(_clamp(1.0 - distance * 0.5), 4),
            similarity=similarity,
            interaction_type=kind,
            shared_dimensions=self._shared_dimensions(first, second),
            action=first.recommended_action,
            description=(
                f"{first.framework} and {second.framework} both recommend "
                f"{first.recommended_action} ({kind.replace('_', ' ')})"
            ),
        )

    # --- Multi-framework ---

    def _multi_framework(
        self, recommendations: Sequence[FrameworkRecommendation]
    ) -> Tuple[Optional[Conflict], Optional[Interaction]]:
        total = len(recommendations)
        if total < 3:
            return None, None

        groups: Dict[str, List[str]] = {}
        for rec in recommendations:
            groups.setdefault(rec.recommended_action, []).append(rec.framework)

        if len(groups) == 1:
            action, members = next(iter(groups.items()))
            return None, Interaction(
                kind="consensus",
                participants=tuple(members),
                strength=CONSENSUS_STRENGTH,
                similarity=1.0,
                interaction_type="multi_framework_consensus",
                action=action,
                description=f"All {len(members)} frameworks recommend {action}",
            )

        largest = max(len(m) for m in groups.values())
        severity = _clamp(self.config.severity.medium + 0.1 * (len(groups) - 1) + 0.3 * (1 - largest / total))
        conflict = Conflict(
            id="mfc-1",
            kind=ConflictKind.MULTI_FRAMEWORK,
            participants=tuple(rec.framework for rec in recommendations),
            severity=round(severity, 4),
            description=f"{total} frameworks split across {len(groups)} actions",
            actions={rec.framework: rec.recommended_action for rec in recommendations},
            action_groups={k: list(v) for k, v in groups.items()},
            patterns=self._patterns(groups),
        )
        return conflict, None

    @staticmethod
    def _patterns(groups: Dict[str, List[str]]) -> List[str]:
        position = {fw: action for action, members in groups.items() for fw in members}
        patterns: List[str] = []

        def split(a: str, b: str) -> bool:
            return a in position and b in position and position[a] != position[b]

        if split("utilitarian", "deontology"):
            patterns.append("consequentialist_divide")
        if split("care_ethics", "justice"):
            patterns.append("care_justice_tension")
        if split("utilitarian", "virtue_ethics"):
            patterns.append("character_outcome_tension")
        for members in groups.values():
            if len(members) == 1:
                patterns.append(f"isolated_{members[0]}")
        return patterns

    # --- Stakeholders ---

    def _stakeholder_conflicts(self, dilemma: Dilemma) -> List[Conflict]:
        conflicts: List[Conflict] = []
        for first, second in combinations(dilemma.stakeholders, 2):
            shared = sorted(first.concerns & second.concerns)
            if not shared:
                continue
            conflicts.append(
                Conflict(
                    id=f"sc-{first.id}-{second.id}",
                    kind=ConflictKind.STAKEHOLDER,
                    participants=(first.id, second.id),
                    severity=self.config.stakeholder_conflict_severity,
                    description=(
                        f"Conflicting interests between {first.name} and {second.name} "
                        f"regarding {', '.join(shared)}"
                    ),
                    shared_concerns=shared,
                )
            )
        return conflicts

    # --- Insights ---

    @staticmethod
    def _insights(conflicts: Sequence[Conflict], interactions: Sequence[Interaction]) -> List[str]:
        insights: List[str] = []
        for item in interactions:
            if item.interaction_type == "strong_reinforcement":
                insights.append(
                    f"strong_ethical_convergence: {item.participants[0]} and {item.participants[1]} "
                    f"reinforce each other on {item.action}"
                )
            elif item.interaction_type == "multi_framework_consensus":
                insights.append(f"broad_consensus: {len(item.participants)} frameworks agree on {item.action}")
        for conflict in conflicts:
            for pattern in conflict.patterns:
                if not pattern.startswith("isolated_"):
                    insights.append(f"{pattern}: frameworks split on {conflict.description}")
        return insights
