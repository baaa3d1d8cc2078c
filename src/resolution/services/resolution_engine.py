import logging
import math
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Sequence

from src.analysis.domain.analysis_models import (
    AnalysisWarning,
    Conflict,
    ConflictKind,
    FrameworkRecommendation,
    WarningKind,
)
from src.analysis.domain.framework_profiles import NEGOTIATE_COMPROMISES, profile_for
from src.core.context.engine_context import EngineContext
from src.core.domain.exceptions import ResolutionFailure
from src.dilemma.domain.dilemma_models import Dilemma
from src.resolution.domain.precedent_models import PrecedentMatch
from src.resolution.domain.resolution_models import (
    HYBRID_STRATEGIES,
    CvarAssessment,
    DetailLevel,
    Resolution,
    StrategyName,
)
from src.resolution.services.contextual_weighting import (
    contextual_weights,
    normalized_urgency,
    priority_framework,
)
from src.resolution.services.hybrid_resolver import HybridResolver
from src.resolution.services.precedent_lookup import PrecedentLookup
from src.resolution.services.strategy_selector import StrategySelector, profile_for_strategy
from src.resolution.services.weight_normalizer import normalize_weights

logger = logging.getLogger(__name__)

Resolver = Callable[[Conflict, Dilemma, Dict[str, FrameworkRecommendation]], Resolution]

COMMON_THEMES = (
    ("resource", "fair allocation of limited resources"),
    ("vulnerable", "special provisions for vulnerable populations"),
    ("privacy", "balancing individual rights with collective safety"),
    ("autonomy", "respect for individual autonomy"),
    ("consent", "informed consent mechanisms"),
)

FRAMEWORK_INSIGHTS = {
    "utilitarian": "Attention to consequences and maximizing overall welfare",
    "deontology": "Respect for individual rights, dignity, and moral duties",
    "care_ethics": "Importance of caring relationships and contextual responses",
    "virtue_ethics": "Development of virtuous character and practical wisdom",
    "justice": "Fair distribution of benefits and burdens",
}

# Reflective equilibrium: support gap, as a share of total, below which judgments stay unresolved
EQUILIBRIUM_MARGIN = 0.1

# Stakeholder CVaR
CVAR_TAIL = 0.2
CVAR_CONFIDENCE = 0.8
CVAR_UNINFORMED_CONFIDENCE = 0.4
DEFAULT_EXPOSURE = 0.5
VULNERABLE_EXPOSURE = 0.8


def common_theme(precedents: Sequence[PrecedentMatch]) -> str:
    text = " ".join(f"{p.title} {p.resolution_summary}" for p in precedents).lower()
    themes = [phrase for keyword, phrase in COMMON_THEMES if keyword in text]
    if not themes:
        return "balancing competing interests"
    return " and ".join(themes[:2])


class ResolutionEngine:
    """
    Applies a selected strategy to a conflict.

    Every resolver is a pure function of (conflict, dilemma, recommendations)
    returning raw weights; weights are normalized in one place before the
    resolution leaves the engine. Resolver errors become a low-detail
    fallback resolution and never abort other conflicts.
    """

    def __init__(
        self,
        context: EngineContext,
        precedent_lookup: Optional[PrecedentLookup] = None,
        hybrid_resolver: Optional[HybridResolver] = None,
    ):
        self.context = context
        self.config = context.config
        self.precedent_lookup = precedent_lookup or PrecedentLookup(
            context.precedent_source,
            timeout_seconds=context.profile.limits.precedent_timeout_seconds,
            top_k=context.config.precedent_top_k,
            runtime_logger=context.logger,
        )
        self.hybrid_resolver = hybrid_resolver or HybridResolver(context)
        self._resolvers: Dict[StrategyName, Resolver] = {
            StrategyName.FRAMEWORK_BALANCING: self._framework_balancing,
            StrategyName.PRINCIPLED_PRIORITY: self._principled_priority,
            StrategyName.COMPROMISE: self._compromise,
            StrategyName.PROCEDURAL: self._procedural,
            StrategyName.META_ETHICAL: self._meta_ethical,
            StrategyName.STAKEHOLDER_COMPROMISE: self._stakeholder_compromise,
            StrategyName.MULTI_FRAMEWORK_INTEGRATION: self._multi_framework_integration,
            StrategyName.CASUISTRY: self._casuistry,
            StrategyName.REFLECTIVE_EQUILIBRIUM: self._reflective_equilibrium,
            StrategyName.PLURALISTIC_INTEGRATION: self._pluralistic_integration,
            StrategyName.STAKEHOLDER_CVAR: self._stakeholder_cvar,
        }
        for name in HYBRID_STRATEGIES:
            self._resolvers[name] = self._hybrid(name)

        missing = [s for s in StrategyName if s != StrategyName.FALLBACK and s not in self._resolvers]
        if missing:
            raise RuntimeError(f"No resolver registered for: {', '.join(m.value for m in missing)}")

    # --- Public API ---

    def resolve(
        self,
        strategy: StrategyName,
        conflict: Conflict,
        dilemma: Dilemma,
        recommendations: Sequence[FrameworkRecommendation],
    ) -> Resolution:
        by_framework = {r.framework: r for r in recommendations}
        try:
            raw = self._resolvers[strategy](conflict, dilemma, by_framework)
        except Exception as e:
            failure = ResolutionFailure(conflict.id, strategy.value, e)
            logger.warning(f"{failure}; using fallback resolution")
            self.context.logger.emit(
                event_type="RESOLUTION_FAILED",
                level=logging.WARNING,
                conflict_id=conflict.id,
                strategy=strategy.value,
                error=str(e),
            )
            return self._fallback(conflict, by_framework, failure)
        return self._finalize(raw)

    def submit(
        self,
        executor: ThreadPoolExecutor,
        strategy: StrategyName,
        conflict: Conflict,
        dilemma: Dilemma,
        recommendations: Sequence[FrameworkRecommendation],
    ) -> Future:
        """Schedules a resolution; the casuistry lookup inside it carries its own deadline."""
        return executor.submit(self.resolve, strategy, conflict, dilemma, recommendations)

    def resolve_all(
        self,
        conflicts: Sequence[Conflict],
        dilemma: Dilemma,
        recommendations: Sequence[FrameworkRecommendation],
        selector: StrategySelector,
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> List[Resolution]:
        strategies = []
        for conflict in conflicts:
            selection = selector.explain(conflict, dilemma)
            self.context.logger.emit(
                event_type="STRATEGY_SELECTED",
                conflict_id=conflict.id,
                strategy=selection.strategy.value,
                override=selection.override,
            )
            strategies.append(selection.strategy)

        if executor is None:
            return [
                self.resolve(strategy, conflict, dilemma, recommendations)
                for strategy, conflict in zip(strategies, conflicts)
            ]

        futures = [
            self.submit(executor, strategy, conflict, dilemma, recommendations)
            for strategy, conflict in zip(strategies, conflicts)
        ]
        # Recombined in conflict order
        return [f.result() for f in futures]

    # --- Finalization ---

    def _finalize(self, resolution: Resolution) -> Resolution:
        normalized = normalize_weights(
            resolution.weights,
            floor=self.config.weight_floor,
            precision=self.config.weight_precision,
        )
        profile = profile_for_strategy(resolution.strategy)
        detail = profile.detail_level if profile else resolution.detail_level
        return replace(
            resolution,
            weights=normalized.weights,
            original_weights=normalized.original,
            detail_level=detail,
        )

    def _fallback(
        self,
        conflict: Conflict,
        recommendations: Dict[str, FrameworkRecommendation],
        failure: ResolutionFailure,
    ) -> Resolution:
        participants = list(conflict.participants) or list(recommendations.keys())
        action = conflict.actions.get(participants[0]) if participants else None
        if action is None:
            action = self._compromise_action()
        normalized = normalize_weights(
            {p: 1.0 for p in participants},
            floor=self.config.weight_floor,
            precision=self.config.weight_precision,
        )
        return Resolution(
            conflict_id=conflict.id,
            strategy=StrategyName.FALLBACK,
            weights=normalized.weights,
            original_weights=normalized.original,
            recommended_action=action,
            reasoning=f"Resolution fell back to equal weighting: {failure}",
            detail_level=DetailLevel.LOW,
            error=str(failure),
        )

    # --- Helpers ---

    def _compromise_action(self) -> str:
        return self.context.action_mapper.to_dilemma_action(NEGOTIATE_COMPROMISES)

    def _weights_for(self, conflict: Conflict, dilemma: Dilemma) -> Dict[str, float]:
        return contextual_weights(
            conflict.participants, dilemma, self.context.signals, self.context.parameter_mapping
        )

    @staticmethod
    def _equal(conflict: Conflict) -> Dict[str, float]:
        return {p: 1.0 for p in conflict.participants}

    def _agreed_action(self, conflict: Conflict) -> str:
        majority = conflict.majority_action()
        return majority or self._compromise_action()

    # --- Resolvers ---

    def _framework_balancing(self, conflict, dilemma, recommendations) -> Resolution:
        if conflict.kind != ConflictKind.FRAMEWORK or len(conflict.participants) != 2:
            return self._balance_many(conflict, dilemma)

        first, second = conflict.participants
        signals = self.context.signals
        weight = 0.5 + (conflict.severity - 0.5) * 0.4

        def shift(target, amount: float) -> float:
            targets = (target,) if isinstance(target, str) else tuple(target)
            if first in targets:
                return amount
            if second in targets:
                return -amount
            return 0.0

        adjustments = []
        if signals.life_critical:
            adjustments.append(("life at stake", shift("deontology", 0.1)))
        if signals.max_urgency > 8:
            adjustments.append(("high urgency", shift("utilitarian", 0.1)))
        if signals.vulnerable_stakeholders:
            adjustments.append(("vulnerable stakeholders", shift("care_ethics", 0.15)))
        if signals.migration:
            adjustments.append(("migration context", shift(("justice", "care_ethics"), 0.1)))
        if signals.resource_scarcity:
            adjustments.append(("resource constraints", shift("utilitarian", 0.1)))
        for _, amount in adjustments:
            weight += amount

        weight = max(self.config.weight_floor, min(self.config.weight_ceiling, weight))
        weights = {first: weight, second: 1.0 - weight}
        heavier = first if weights[first] >= weights[second] else second
        applied = ", ".join(name for name, amount in adjustments if amount) or "no contextual adjustment"
        return Resolution(
            conflict_id=conflict.id,
            strategy=StrategyName.FRAMEWORK_BALANCING,
            weights=weights,
            recommended_action=conflict.actions.get(heavier),
            reasoning=(
                f"Balancing {first} ({weights[first]:.2f}) against {second} ({weights[second]:.2f}) "
                f"at severity {conflict.severity:.2f}; adjustments: {applied}. "
                f"{heavier} carries more weight, so its recommendation is followed."
            ),
        )

    def _balance_many(self, conflict: Conflict, dilemma: Dilemma) -> Resolution:
        raw = self._weights_for(conflict, dilemma)
        weights = {
            fw: max(self.config.weight_floor, min(self.config.weight_ceiling, w))
            for fw, w in raw.items()
        }
        support: Dict[str, float] = {}
        for fw, w in weights.items():
            action = conflict.actions.get(fw)
            if action is not None:
                support[action] = support.get(action, 0.0) + w
        action = max(support, key=lambda a: support[a]) if support else self._compromise_action()
        return Resolution(
            conflict_id=conflict.id,
            strategy=StrategyName.FRAMEWORK_BALANCING,
            weights=weights,
            recommended_action=action,
            reasoning=(
                f"Balancing {len(weights)} frameworks by contextual importance; "
                f"{action} has the greatest combined weight ({support.get(action, 0.0):.2f})."
            ),
        )

    def _principled_priority(self, conflict, dilemma, recommendations) -> Resolution:
        participants = list(conflict.participants)
        priority = priority_framework(
            participants, dilemma, self.context.signals, self.context.parameter_mapping
        )
        priority_weight = max(0.7, min(0.9, 0.7 + 0.2 * conflict.severity))
        others = [p for p in participants if p != priority]
        weights = {priority: priority_weight}
        for other in others:
            weights[other] = (1.0 - priority_weight) / len(others)
        return Resolution(
            conflict_id=conflict.id,
            strategy=StrategyName.PRINCIPLED_PRIORITY,
            weights=weights,
            recommended_action=conflict.actions.get(priority),
            reasoning=(
                f"The context gives {priority} precedence ({profile_for(priority).methodology} reasoning); "
                f"it receives {priority_weight:.2f} of the weight and its recommendation is adopted."
            ),
            priority_framework=priority,
        )

    def _compromise(self, conflict, dilemma, recommendations) -> Resolution:
        terms = [area.term for area in conflict.compromise_areas]
        if terms:
            proposal = f"Build the agreement around shared concerns: {', '.join(terms)}."
        else:
            proposal = "Combine the strongest elements of each position in a negotiated arrangement."
        return Resolution(
            conflict_id=conflict.id,
            strategy=StrategyName.COMPROMISE,
            weights=self._equal(conflict),
            recommended_action=self._agreed_action(conflict),
            reasoning=f"Neither perspective dominates; a compromise treats {', '.join(conflict.participants)} equally.",
            compromise_proposal=proposal,
        )

    def _procedural(self, conflict, dilemma, recommendations) -> Resolution:
        voices = [s.name for s in dilemma.stakeholders] or list(conflict.participants)
        return Resolution(
            conflict_id=conflict.id,
            strategy=StrategyName.PROCEDURAL,
            weights=self._equal(conflict),
            recommended_action=self._agreed_action(conflict),
            reasoning="The disagreement is settled by a fair procedure rather than by ranking the positions.",
            procedural_proposal=(
                f"Convene a transparent review in which {', '.join(voices)} are heard "
                f"before a decision on {conflict.description.lower() or conflict.id}."
            ),
        )

    def _meta_ethical(self, conflict, dilemma, recommendations) -> Resolution:
        parts = [f"{p} ({profile_for(p).methodology})" for p in conflict.participants]
        nature = conflict.nature.value if conflict.nature else "structural"
        return Resolution(
            conflict_id=conflict.id,
            strategy=StrategyName.META_ETHICAL,
            weights=self._equal(conflict),
            recommended_action=self._agreed_action(conflict),
            reasoning="The conflict reflects different theoretical foundations, which are examined before acting.",
            meta_analysis=(
                f"This is a {nature} disagreement between {' and '.join(parts)}. "
                f"Their standards of justification differ, so no framework can overrule the other on its own terms."
            ),
        )

    def _stakeholder_compromise(self, conflict, dilemma, recommendations) -> Resolution:
        influence = {s.id: s.influence for s in dilemma.stakeholders}
        weights = {p: max(0.0, influence.get(p, 0.5)) for p in conflict.participants}
        concerns = ", ".join(conflict.shared_concerns) or "their shared concerns"
        return Resolution(
            conflict_id=conflict.id,
            strategy=StrategyName.STAKEHOLDER_COMPROMISE,
            weights=weights,
            recommended_action=self._compromise_action(),
            reasoning=f"Stakeholders are weighted by influence and asked to negotiate over {concerns}.",
            compromise_proposal=f"Address {concerns} jointly, in proportion to each party's stake.",
        )

    def _multi_framework_integration(self, conflict, dilemma, recommendations) -> Resolution:
        signals = self.context.signals
        vote_weights = {fw: 1.0 for fw in conflict.participants}

        def bump(framework: str, amount: float) -> None:
            if framework in vote_weights:
                vote_weights[framework] += amount

        if signals.vulnerable:
            bump("care_ethics", 0.5)
            bump("justice", 0.3)
        if signals.life_critical or normalized_urgency(signals) > 0.7:
            bump("deontology", 0.4)
            bump("utilitarian", 0.3)
        if signals.community:
            bump("virtue_ethics", 0.4)
            bump("care_ethics", 0.2)
        if signals.resource_scarcity:
            bump("utilitarian", 0.4)
            bump("justice", 0.3)

        votes: Dict[str, float] = {}
        for fw in conflict.participants:
            action = conflict.actions.get(fw)
            if action is None and fw in recommendations:
                action = recommendations[fw].recommended_action
            if action is not None:
                votes[action] = votes.get(action, 0.0) + vote_weights[fw]
        if not votes:
            raise ValueError(f"Conflict {conflict.id} carries no framework actions to integrate")

        group_sizes = {a: len(m) for a, m in conflict.action_groups.items()}
        winner = max(votes, key=lambda a: (votes[a], group_sizes.get(a, 0)))
        total = sum(votes.values())
        majority = [fw for fw in conflict.participants if conflict.actions.get(fw) == winner]
        minority = [fw for fw in conflict.participants if fw not in majority]
        confidence = round(votes[winner] / total, 4) if total else 0.0
        return Resolution(
            conflict_id=conflict.id,
            strategy=StrategyName.MULTI_FRAMEWORK_INTEGRATION,
            weights=dict(vote_weights),
            recommended_action=winner,
            reasoning=(
                f"Context-weighted votes across {len(conflict.participants)} frameworks favour {winner} "
                f"({votes[winner]:.2f} of {total:.2f}); supported by {', '.join(majority)}"
                + (f", opposed by {', '.join(minority)}." if minority else ".")
            ),
            confidence=confidence,
            majority_frameworks=majority,
            minority_frameworks=minority,
        )

    def _casuistry(self, conflict, dilemma, recommendations) -> Resolution:
        outcome = self.precedent_lookup.fetch(dilemma, self.config.precedent_min_similarity)
        precedents = outcome.matches
        top = precedents[0] if precedents else None

        action = conflict.majority_action()
        favoured = None
        if action is None and top is not None:
            favoured = next((fw for fw in top.favored_frameworks if fw in conflict.actions), None)
            if favoured is not None:
                action = conflict.actions[favoured]
        if action is None:
            action = conflict.actions.get(conflict.participants[0]) if conflict.actions else None
        if action is None:
            action = self._compromise_action()

        weights = {p: (2.0 if top and p in top.favored_frameworks else 1.0) for p in conflict.participants}
        listing = "; ".join(f"{p.title} ({p.similarity:.0%})" for p in precedents)
        source_note = f" Fallback precedents used: {outcome.reason}." if outcome.used_fallback else ""
        return Resolution(
            conflict_id=conflict.id,
            strategy=StrategyName.CASUISTRY,
            weights=weights,
            recommended_action=action,
            reasoning=(
                f"Similar cases ({listing}) point to {common_theme(precedents)}; "
                f"recommended action {action}.{source_note}"
            ),
            confidence=top.similarity if top else None,
            precedent_cases=list(precedents),
        )

    def _reflective_equilibrium(self, conflict, dilemma, recommendations) -> Resolution:
        weights = self._weights_for(conflict, dilemma)
        judgments = []
        support: Dict[str, float] = {}
        for fw, w in weights.items():
            action = conflict.actions.get(fw)
            if action is None and fw in recommendations:
                action = recommendations[fw].recommended_action
            if action is None:
                continue
            judgments.append(f"{fw}: {action}")
            support[action] = support.get(action, 0.0) + w

        ranked = sorted(support.items(), key=lambda kv: kv[1], reverse=True)
        total = sum(support.values())
        confidence = None
        if not ranked:
            action = self._compromise_action()
            outcome = "no initial judgment survives, so the revised principles are applied through negotiation"
        elif len(ranked) > 1 and ranked[0][1] - ranked[1][1] < EQUILIBRIUM_MARGIN * total:
            action = self._compromise_action()
            outcome = f"{ranked[0][0]} and {ranked[1][0]} remain in tension, so no single judgment is kept"
        else:
            action = ranked[0][0]
            confidence = round(ranked[0][1] / total, 4)
            outcome = f"{action} coheres best with the revised principles ({ranked[0][1]:.2f} of {total:.2f})"

        return Resolution(
            conflict_id=conflict.id,
            strategy=StrategyName.REFLECTIVE_EQUILIBRIUM,
            weights=weights,
            recommended_action=action,
            reasoning=(
                f"Initial judgments ({'; '.join(judgments) or 'none'}) are adjusted against general "
                f"principles until they cohere: {outcome}."
            ),
            confidence=confidence,
            revised_principles=self._revised_principles(conflict),
        )

    def _revised_principles(self, conflict: Conflict) -> List[str]:
        participants = set(conflict.participants)
        principles = []
        if "utilitarian" in participants:
            principle = "Context-sensitive application of utilitarian principles"
            if self.context.signals.vulnerable:
                principle += " with priority for vulnerable groups"
            principles.append(principle)
        if {"deontology", "utilitarian"} <= participants:
            principles.append("Recognition of both duty-based and consequence-based ethical considerations")
        if "care_ethics" in participants or "justice" in participants:
            principles.append("Fair treatment that stays responsive to particular relationships and needs")
        principles.append("Balance between individual autonomy and collective welfare")
        return principles

    def _pluralistic_integration(self, conflict, dilemma, recommendations) -> Resolution:
        insights = []
        for fw in conflict.participants:
            action = conflict.actions.get(fw)
            if action is None and fw in recommendations:
                action = recommendations[fw].recommended_action
            insights.append({
                "framework": fw,
                "action": action or "",
                "insight": FRAMEWORK_INSIGHTS.get(fw, f"The {fw} perspective"),
            })
        action = self._agreed_action(conflict)
        return Resolution(
            conflict_id=conflict.id,
            strategy=StrategyName.PLURALISTIC_INTEGRATION,
            weights=self._equal(conflict),
            recommended_action=action,
            reasoning=(
                f"Each of {', '.join(conflict.participants)} captures part of the moral picture; "
                f"their insights are kept side by side and {action} is the course they can jointly support."
            ),
            ethical_insights=insights,
        )

    def _stakeholder_cvar(self, conflict, dilemma, recommendations) -> Resolution:
        stakeholders = list(dilemma.stakeholders)
        actions = [a.id for a in dilemma.possible_actions] or list(dict.fromkeys(conflict.actions.values()))
        if not actions:
            actions = [self._compromise_action()]
        if not stakeholders:
            return Resolution(
                conflict_id=conflict.id,
                strategy=StrategyName.STAKEHOLDER_CVAR,
                weights=self._equal(conflict),
                recommended_action=actions[0],
                reasoning="No stakeholder information is available, so the tail-risk analysis cannot rank the actions.",
                confidence=CVAR_UNINFORMED_CONFIDENCE,
            )

        vulnerable = set(self.context.signals.vulnerable_stakeholders)
        assessments = []
        for action in actions:
            impacts = sorted(
                (self._impact(dilemma, action, s.id, s.name in vulnerable), s.id) for s in stakeholders
            )
            tail = impacts[:max(1, math.ceil(len(impacts) * CVAR_TAIL))]
            assessments.append(CvarAssessment(
                action=action,
                value=round(sum(v for v, _ in tail) / len(tail), 4),
                worst_affected=[sid for _, sid in tail],
            ))

        best = assessments[0]
        for assessment in assessments[1:]:
            if assessment.value > best.value:
                best = assessment
        protected = set(best.worst_affected)
        return Resolution(
            conflict_id=conflict.id,
            strategy=StrategyName.STAKEHOLDER_CVAR,
            weights={p: (2.0 if p in protected else 1.0) for p in conflict.participants},
            recommended_action=best.action,
            reasoning=(
                f"Conditional value at risk over the worst-affected {CVAR_TAIL:.0%} of stakeholders favours "
                f"{best.action} ({best.value:.2f}); it protects {', '.join(best.worst_affected)}."
            ),
            confidence=CVAR_CONFIDENCE,
            cvar_analysis=assessments,
        )

    @staticmethod
    def _impact(dilemma: Dilemma, action: str, stakeholder_id: str, vulnerable: bool) -> float:
        stated = dilemma.impacts.get(action, {})
        if stakeholder_id in stated:
            return stated[stakeholder_id]
        # Unstated impacts: harm grows with vulnerability
        vulnerability = VULNERABLE_EXPOSURE if vulnerable else DEFAULT_EXPOSURE
        return 0.5 - vulnerability * DEFAULT_EXPOSURE

    def _hybrid(self, strategy: StrategyName) -> Resolver:
        def resolve(conflict, dilemma, recommendations) -> Resolution:
            return self.hybrid_resolver.resolve(strategy, conflict, dilemma, recommendations)
        return resolve


def failure_warnings(resolutions: Sequence[Resolution]) -> List[AnalysisWarning]:
    return [
        AnalysisWarning(kind=WarningKind.RESOLUTION_FAILURE, message=r.error or "resolution failed")
        for r in resolutions
        if r.strategy == StrategyName.FALLBACK
    ]
