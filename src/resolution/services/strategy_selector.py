from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional

from src.analysis.domain.analysis_models import Conflict, ConflictKind
from src.core.context.engine_context import EngineContext
from src.dilemma.domain.dilemma_models import Dilemma
from src.resolution.domain.resolution_models import DetailLevel, StrategyName, StrategyProfile
from src.resolution.services.contextual_weighting import contextual_weights, rule_priority

BASE_SCORE = 0.3

_F = ConflictKind.FRAMEWORK
_M = ConflictKind.MULTI_FRAMEWORK
_S = ConflictKind.STAKEHOLDER

# Registry order is the tie-break order after framework_balancing.
STRATEGY_REGISTRY: List[StrategyProfile] = [
    StrategyProfile(StrategyName.FRAMEWORK_BALANCING, frozenset({_F, _M}), DetailLevel.MEDIUM,
                    "Weigh both frameworks by contextual importance"),
    StrategyProfile(StrategyName.PRINCIPLED_PRIORITY, frozenset({_F}), DetailLevel.MEDIUM,
                    "Give precedence to the framework the context makes decisive"),
    StrategyProfile(StrategyName.COMPROMISE, frozenset({_F, _S}), DetailLevel.MEDIUM,
                    "Find a middle path both perspectives can accept"),
    StrategyProfile(StrategyName.PROCEDURAL, frozenset({_F, _S, _M}), DetailLevel.LOW,
                    "Defer to a fair decision procedure"),
    StrategyProfile(StrategyName.META_ETHICAL, frozenset({_F, _M}), DetailLevel.HIGH,
                    "Examine the theoretical foundations behind the disagreement"),
    StrategyProfile(StrategyName.MULTI_FRAMEWORK_INTEGRATION, frozenset({_M}), DetailLevel.HIGH,
                    "Aggregate context-weighted votes across all frameworks"),
    StrategyProfile(StrategyName.CASUISTRY, frozenset({_F, _M, _S}), DetailLevel.HIGH,
                    "Reason from similar precedent cases"),
    StrategyProfile(StrategyName.STAKEHOLDER_COMPROMISE, frozenset({_S}), DetailLevel.MEDIUM,
                    "Balance the shared concerns of competing stakeholders"),
    StrategyProfile(StrategyName.REFLECTIVE_EQUILIBRIUM, frozenset({_F, _M}), DetailLevel.HIGH,
                    "Revise judgments and principles until they cohere"),
    StrategyProfile(StrategyName.PLURALISTIC_INTEGRATION, frozenset({_F, _M}), DetailLevel.HIGH,
                    "Keep the partial insight of every framework without forcing one answer"),
    StrategyProfile(StrategyName.STAKEHOLDER_CVAR, frozenset({_S}), DetailLevel.HIGH,
                    "Protect the worst-affected stakeholders (conditional value at risk)"),
]

HYBRID_PROFILES: Dict[StrategyName, StrategyProfile] = {
    name: StrategyProfile(name, frozenset({_F}), DetailLevel.HIGH, "Hybrid of two opposed frameworks")
    for name in (
        StrategyName.DUTY_BOUNDED_UTILITARIANISM,
        StrategyName.VIRTUE_GUIDED_CONSEQUENTIALISM,
        StrategyName.CARE_BASED_JUSTICE,
    )
}

# Opposing-framework pairs resolved by a dedicated hybrid, checked before scoring.
HYBRID_OVERRIDES: Dict[FrozenSet[str], StrategyName] = {
    frozenset({"utilitarian", "deontology"}): StrategyName.DUTY_BOUNDED_UTILITARIANISM,
    frozenset({"utilitarian", "virtue_ethics"}): StrategyName.VIRTUE_GUIDED_CONSEQUENTIALISM,
    frozenset({"care_ethics", "justice"}): StrategyName.CARE_BASED_JUSTICE,
}


def profile_for_strategy(name: StrategyName) -> Optional[StrategyProfile]:
    for profile in STRATEGY_REGISTRY:
        if profile.name == name:
            return profile
    return HYBRID_PROFILES.get(name)


@dataclass(frozen=True)
class StrategySelection:
    strategy: StrategyName
    scores: Dict[StrategyName, float] = field(default_factory=dict)
    override: bool = False


class StrategySelector:
    """
    Deterministic strategy choice for a conflict.
    Hybrid overrides are checked first, then the clinical override that
    sends any care_ethics pair in a medical dilemma to care-based justice.
    Otherwise every applicable strategy starts at 0.3 and accumulates bonuses
    from conflict and context features; severity bands come from EngineConfig.
    """

    def __init__(self, context: EngineContext, use_hybrid_overrides: bool = True):
        self.context = context
        self.use_hybrid_overrides = use_hybrid_overrides

    def select(self, conflict: Conflict, dilemma: Dilemma) -> StrategyName:
        return self.explain(conflict, dilemma).strategy

    def explain(self, conflict: Conflict, dilemma: Dilemma) -> StrategySelection:
        if self.use_hybrid_overrides and conflict.kind == ConflictKind.FRAMEWORK:
            hybrid = HYBRID_OVERRIDES.get(frozenset(conflict.participants))
            if hybrid is not None:
                return StrategySelection(strategy=hybrid, override=True)
            # Clinical settings read care disagreements through care-based justice
            if self.context.signals.medical and "care_ethics" in conflict.participants:
                return StrategySelection(strategy=StrategyName.CARE_BASED_JUSTICE, override=True)

        scores = self.score_all(conflict, dilemma)
        if not scores:
            return StrategySelection(strategy=StrategyName.PROCEDURAL, scores={})

        best = max(scores.values())
        winners = [name for name, score in scores.items() if abs(score - best) < 1e-9]
        if len(winners) > 1 and StrategyName.FRAMEWORK_BALANCING in winners:
            chosen = StrategyName.FRAMEWORK_BALANCING
        else:
            chosen = winners[0]
        return StrategySelection(strategy=chosen, scores=scores)

    def score_all(self, conflict: Conflict, dilemma: Dilemma) -> Dict[StrategyName, float]:
        return {
            profile.name: round(self.score(profile.name, conflict, dilemma), 4)
            for profile in STRATEGY_REGISTRY
            if conflict.kind in profile.applicable_kinds
        }

    def score(self, name: StrategyName, conflict: Conflict, dilemma: Dilemma) -> float:
        signals = self.context.signals
        bands = self.context.config.severity
        severity = conflict.severity
        score = BASE_SCORE

        if name == StrategyName.FRAMEWORK_BALANCING:
            if conflict.kind == ConflictKind.FRAMEWORK and self._weight_gap(conflict, dilemma) < 0.2:
                score += 0.3
            if bands.low <= severity < bands.high:
                score += 0.2
            if signals.stakeholder_count > 1:
                score += 0.2
        elif name == StrategyName.PRINCIPLED_PRIORITY:
            if self._weight_gap(conflict, dilemma) >= 0.3:
                score += 0.3
            if severity >= bands.high:
                score += 0.2
            if rule_priority(signals) in conflict.participants:
                score += 0.2
        elif name == StrategyName.COMPROMISE:
            if severity < bands.compromise:
                score += 0.2
        elif name == StrategyName.PROCEDURAL:
            if signals.institutional_process:
                score += 0.3
        elif name == StrategyName.META_ETHICAL:
            if conflict.requires_meta_ethical or signals.theory_reference:
                score += 0.3
            if severity > bands.critical:
                score += 0.2
        elif name == StrategyName.MULTI_FRAMEWORK_INTEGRATION:
            if len(conflict.participants) >= 3:
                score += 0.4
            if conflict.majority_action() is not None:
                score += 0.2
        elif name == StrategyName.CASUISTRY:
            if signals.precedent_reference:
                score += 0.3
        elif name == StrategyName.STAKEHOLDER_COMPROMISE:
            if conflict.kind == ConflictKind.STAKEHOLDER:
                score += 0.3
        elif name == StrategyName.REFLECTIVE_EQUILIBRIUM:
            if severity > bands.high:
                score += 0.2
        elif name == StrategyName.PLURALISTIC_INTEGRATION:
            groups = [m for m in conflict.action_groups.values() if m]
            if conflict.kind == ConflictKind.MULTI_FRAMEWORK and len(groups) >= 2:
                score += 0.3
        elif name == StrategyName.STAKEHOLDER_CVAR:
            if self._vulnerable_participants(conflict, dilemma):
                score += 0.4
        return score

    def _weight_gap(self, conflict: Conflict, dilemma: Dilemma) -> float:
        if conflict.kind == ConflictKind.STAKEHOLDER or len(conflict.participants) < 2:
            return 0.0
        weights = contextual_weights(
            conflict.participants, dilemma, self.context.signals, self.context.parameter_mapping
        )
        values = sorted(weights.values(), reverse=True)
        return values[0] - values[1]

    def _vulnerable_participants(self, conflict: Conflict, dilemma: Dilemma) -> List[str]:
        vulnerable = set(self.context.signals.vulnerable_stakeholders)
        return [s.id for s in dilemma.stakeholders if s.name in vulnerable and s.id in conflict.participants]
