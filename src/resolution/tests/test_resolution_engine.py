import threading
from typing import List

from src.analysis.domain.analysis_models import Conflict, ConflictKind, FrameworkRecommendation
from src.core.config.runtime_profile import RuntimeProfile
from src.core.context.engine_context import EngineContext
from src.dilemma.domain.dilemma_models import Dilemma, Parameter, PossibleAction, Stakeholder
from src.resolution.domain.precedent_models import FALLBACK_PRECEDENTS, PrecedentMatch
from src.resolution.domain.resolution_models import CvarAssessment, DetailLevel, StrategyName
from src.resolution.interfaces.precedent_source import PrecedentSource, StaticPrecedentSource
from src.resolution.services.hybrid_resolver import HybridResolver
from src.resolution.services.precedent_lookup import PrecedentLookup
from src.resolution.services.resolution_engine import ResolutionEngine, failure_warnings
from src.resolution.services.strategy_selector import StrategySelector


# --- Mocks ---

class SlowPrecedentSource(PrecedentSource):
    def __init__(self):
        self.release = threading.Event()

    def find_similar(self, dilemma, min_similarity) -> List[PrecedentMatch]:
        self.release.wait(timeout=2.0)
        return []


class ExplodingHybridResolver(HybridResolver):
    def resolve(self, strategy, conflict, dilemma, recommendations):
        raise RuntimeError("hybrid exploded")


# --- Helpers ---

def make_context(dilemma: Dilemma, **kwargs) -> EngineContext:
    return EngineContext.for_dilemma(dilemma, profile=RuntimeProfile.test(), **kwargs)


def rec(framework: str, action: str, justification: str = "") -> FrameworkRecommendation:
    return FrameworkRecommendation(framework=framework, recommended_action=action, justification=justification)


def pair_conflict(first: str, second: str, severity: float = 0.55) -> Conflict:
    return Conflict(
        id=f"fc-{first}-{second}",
        kind=ConflictKind.FRAMEWORK,
        participants=(first, second),
        severity=severity,
        actions={first: "approve_option_a", second: "approve_option_b"},
    )


def assert_weight_invariant(weights):
    assert abs(sum(weights.values()) - 1.0) < 1e-6
    if len(weights) > 1:
        assert all(w >= 0.15 - 1e-9 for w in weights.values())


# --- Tests ---

def test_framework_balancing_follows_heavier_framework():
    dilemma = Dilemma(id="d1")
    engine = ResolutionEngine(make_context(dilemma))
    conflict = pair_conflict("utilitarian", "justice", 0.55)

    resolution = engine.resolve(StrategyName.FRAMEWORK_BALANCING, conflict, dilemma, [])

    # 0.5 + (0.55 - 0.5) * 0.4
    assert resolution.weights == {"utilitarian": 0.52, "justice": 0.48}
    assert resolution.recommended_action == "approve_option_a"
    assert resolution.detail_level == DetailLevel.MEDIUM
    assert resolution.original_weights["utilitarian"] > resolution.original_weights["justice"]


def test_framework_balancing_vulnerable_shifts_towards_care():
    dilemma = Dilemma(id="d1", stakeholders=[Stakeholder("kids", "Children in care")])
    engine = ResolutionEngine(make_context(dilemma))
    conflict = pair_conflict("justice", "care_ethics", 0.5)

    resolution = engine.resolve(StrategyName.FRAMEWORK_BALANCING, conflict, dilemma, [])

    assert resolution.weights == {"justice": 0.35, "care_ethics": 0.65}
    assert resolution.recommended_action == "approve_option_b"


def test_principled_priority_uses_contextual_rules():
    dilemma = Dilemma(id="d1", stakeholders=[Stakeholder("elderly", "Elderly patients")])
    engine = ResolutionEngine(make_context(dilemma))
    conflict = pair_conflict("justice", "care_ethics", 0.6)

    resolution = engine.resolve(StrategyName.PRINCIPLED_PRIORITY, conflict, dilemma, [])

    assert resolution.priority_framework == "care_ethics"
    assert resolution.weights == {"care_ethics": 0.82, "justice": 0.18}
    assert resolution.recommended_action == "approve_option_b"


def test_multi_framework_integration_keeps_majority():
    dilemma = Dilemma(id="d1")
    engine = ResolutionEngine(make_context(dilemma))
    conflict = Conflict(
        id="mfc-1",
        kind=ConflictKind.MULTI_FRAMEWORK,
        participants=("utilitarian", "justice", "deontology", "care_ethics"),
        severity=0.675,
        actions={
            "utilitarian": "approve_option_a",
            "justice": "approve_option_a",
            "deontology": "approve_option_a",
            "care_ethics": "approve_option_b",
        },
        action_groups={
            "approve_option_a": ["utilitarian", "justice", "deontology"],
            "approve_option_b": ["care_ethics"],
        },
    )

    resolution = engine.resolve(StrategyName.MULTI_FRAMEWORK_INTEGRATION, conflict, dilemma, [])

    assert resolution.recommended_action == "approve_option_a"
    assert resolution.majority_frameworks == ["utilitarian", "justice", "deontology"]
    assert resolution.minority_frameworks == ["care_ethics"]
    assert resolution.confidence == 0.75
    assert_weight_invariant(resolution.weights)


def test_casuistry_falls_back_when_lookup_times_out():
    dilemma = Dilemma(id="d1")
    source = SlowPrecedentSource()
    context = make_context(dilemma, precedent_source=source)
    lookup = PrecedentLookup(source, timeout_seconds=0.05, runtime_logger=context.logger)
    engine = ResolutionEngine(context, precedent_lookup=lookup)
    try:
        resolution = engine.resolve(StrategyName.CASUISTRY, pair_conflict("care_ethics", "justice"), dilemma, [])
    finally:
        source.release.set()
        lookup.shutdown()

    assert resolution.strategy == StrategyName.CASUISTRY
    assert resolution.recommended_action == "approve_option_a"
    assert [p.id for p in resolution.precedent_cases] == [p.id for p in FALLBACK_PRECEDENTS]
    assert resolution.confidence == FALLBACK_PRECEDENTS[0].similarity
    assert "Fallback precedents used" in resolution.reasoning


def test_casuistry_uses_matching_precedents():
    dilemma = Dilemma(
        id="d1",
        title="Scarce resources allocation",
        description="Distribution of limited ventilators with fairness concerns",
    )
    engine = ResolutionEngine(make_context(dilemma, precedent_source=StaticPrecedentSource()))

    resolution = engine.resolve(StrategyName.CASUISTRY, pair_conflict("deontology", "justice"), dilemma, [])

    assert resolution.precedent_cases[0].id == "precedent_resource_allocation_1"
    # justice is favoured by the top precedent
    assert resolution.recommended_action == "approve_option_b"
    assert resolution.weights["justice"] > resolution.weights["deontology"]


def test_resolver_failure_becomes_fallback():
    dilemma = Dilemma(id="d1")
    context = make_context(dilemma)
    engine = ResolutionEngine(context, hybrid_resolver=ExplodingHybridResolver(context))

    resolution = engine.resolve(
        StrategyName.DUTY_BOUNDED_UTILITARIANISM, pair_conflict("utilitarian", "deontology"), dilemma, []
    )

    assert resolution.strategy == StrategyName.FALLBACK
    assert resolution.detail_level == DetailLevel.LOW
    assert resolution.weights == {"utilitarian": 0.5, "deontology": 0.5}
    assert resolution.recommended_action == "approve_option_a"
    assert "hybrid exploded" in resolution.error
    assert failure_warnings([resolution])[0].message == resolution.error


def test_duty_bounded_hybrid_prefers_duty_under_urgency():
    dilemma = Dilemma(id="d1", parameters={"urgency_option_a": Parameter(9.0), "urgency_option_b": Parameter(2.0)})
    engine = ResolutionEngine(make_context(dilemma))
    recommendations = [
        rec("utilitarian", "approve_option_b", "Option B has higher total benefit for the population."),
        rec("deontology", "approve_option_a", "Option A presents a stronger moral obligation."),
    ]
    conflict = Conflict(
        id="fc-utilitarian-deontology",
        kind=ConflictKind.FRAMEWORK,
        participants=("utilitarian", "deontology"),
        severity=0.86,
        actions={"utilitarian": "approve_option_b", "deontology": "approve_option_a"},
    )

    resolution = engine.resolve(StrategyName.DUTY_BOUNDED_UTILITARIANISM, conflict, dilemma, recommendations)

    assert resolution.recommended_action == "approve_option_a"
    assert resolution.weights == {"deontology": 0.7, "utilitarian": 0.3}
    assert resolution.hybrid.primary_elements
    assert not resolution.hybrid.fallback_used


def test_hybrid_without_tagged_sentences_blends():
    dilemma = Dilemma(id="d1")
    engine = ResolutionEngine(make_context(dilemma))
    recommendations = [rec("care_ethics", "approve_option_a", "Unrelated."), rec("justice", "approve_option_b", "Nothing.")]

    resolution = engine.resolve(
        StrategyName.CARE_BASED_JUSTICE, pair_conflict("care_ethics", "justice"), dilemma, recommendations
    )

    assert resolution.strategy == StrategyName.CARE_BASED_JUSTICE
    assert resolution.hybrid.fallback_used
    assert resolution.weights == {"care_ethics": 0.5, "justice": 0.5}


def test_every_strategy_respects_weight_invariant():
    dilemma = Dilemma(id="d1", stakeholders=[Stakeholder("a", "Residents", influence=0.05)])
    engine = ResolutionEngine(make_context(dilemma))
    # Hybrids only apply to their own framework pair
    pairs = {
        StrategyName.DUTY_BOUNDED_UTILITARIANISM: ("utilitarian", "deontology"),
        StrategyName.VIRTUE_GUIDED_CONSEQUENTIALISM: ("utilitarian", "virtue_ethics"),
        StrategyName.CARE_BASED_JUSTICE: ("care_ethics", "justice"),
    }

    for strategy in StrategyName:
        if strategy == StrategyName.FALLBACK:
            continue
        first, second = pairs.get(strategy, ("utilitarian", "justice"))
        conflict = pair_conflict(first, second, 0.95)
        recommendations = [rec(first, "approve_option_a"), rec(second, "approve_option_b")]

        resolution = engine.resolve(strategy, conflict, dilemma, recommendations)

        assert resolution.strategy == strategy
        assert resolution.error is None
        assert resolution.recommended_action is not None
        assert_weight_invariant(resolution.weights)
    engine.precedent_lookup.shutdown()


def test_resolve_all_preserves_conflict_order():
    dilemma = Dilemma(id="d1")
    context = make_context(dilemma)
    engine = ResolutionEngine(context)
    conflicts = [
        pair_conflict("utilitarian", "justice", 0.55),
        pair_conflict("care_ethics", "justice", 0.7),
        pair_conflict("deontology", "virtue_ethics", 0.6),
    ]

    resolutions = engine.resolve_all(conflicts, dilemma, [], StrategySelector(context))

    assert [r.conflict_id for r in resolutions] == [c.id for c in conflicts]
    engine.precedent_lookup.shutdown()


def test_reflective_equilibrium_keeps_the_coherent_judgment():
    dilemma = Dilemma(id="d1", parameters={"population_served_option_a": Parameter(10.0)})
    engine = ResolutionEngine(make_context(dilemma))

    resolution = engine.resolve(
        StrategyName.REFLECTIVE_EQUILIBRIUM, pair_conflict("utilitarian", "justice", 0.8), dilemma, []
    )

    # utilitarian 0.7 against justice 0.5
    assert resolution.recommended_action == "approve_option_a"
    assert resolution.confidence == 0.5833
    assert resolution.weights["utilitarian"] > resolution.weights["justice"]
    assert resolution.revised_principles[0] == "Context-sensitive application of utilitarian principles"
    assert resolution.revised_principles[-1] == "Balance between individual autonomy and collective welfare"
    assert resolution.detail_level == DetailLevel.HIGH
    assert "revised_principles" in resolution.to_payload()


def test_reflective_equilibrium_negotiates_when_judgments_stay_in_tension():
    dilemma = Dilemma(id="d1")
    engine = ResolutionEngine(make_context(dilemma))

    resolution = engine.resolve(
        StrategyName.REFLECTIVE_EQUILIBRIUM, pair_conflict("utilitarian", "deontology", 0.8), dilemma, []
    )

    assert resolution.recommended_action == "negotiate_compromises"
    assert resolution.confidence is None
    assert "Recognition of both duty-based and consequence-based ethical considerations" in resolution.revised_principles


def test_pluralistic_integration_records_each_insight():
    dilemma = Dilemma(id="d1")
    engine = ResolutionEngine(make_context(dilemma))

    resolution = engine.resolve(
        StrategyName.PLURALISTIC_INTEGRATION, pair_conflict("care_ethics", "justice"), dilemma, []
    )

    assert resolution.recommended_action == "negotiate_compromises"
    assert resolution.weights == {"care_ethics": 0.5, "justice": 0.5}
    assert resolution.ethical_insights == [
        {
            "framework": "care_ethics",
            "action": "approve_option_a",
            "insight": "Importance of caring relationships and contextual responses",
        },
        {
            "framework": "justice",
            "action": "approve_option_b",
            "insight": "Fair distribution of benefits and burdens",
        },
    ]


def test_stakeholder_cvar_protects_the_worst_affected():
    dilemma = Dilemma(
        id="d1",
        stakeholders=[Stakeholder("residents", "Elderly residents"), Stakeholder("board", "Health Board")],
        possible_actions=[PossibleAction("approve_option_a"), PossibleAction("approve_option_b")],
        impacts={
            "approve_option_a": {"residents": -0.6, "board": 0.4},
            "approve_option_b": {"residents": -0.1, "board": -0.2},
        },
    )
    engine = ResolutionEngine(make_context(dilemma))
    conflict = Conflict(
        id="sc-residents-board",
        kind=ConflictKind.STAKEHOLDER,
        participants=("residents", "board"),
        severity=0.6,
    )

    resolution = engine.resolve(StrategyName.STAKEHOLDER_CVAR, conflict, dilemma, [])

    assert resolution.recommended_action == "approve_option_b"
    assert resolution.confidence == 0.8
    assert resolution.cvar_analysis == [
        CvarAssessment("approve_option_a", -0.6, ["residents"]),
        CvarAssessment("approve_option_b", -0.2, ["board"]),
    ]
    assert resolution.weights["board"] > resolution.weights["residents"]
    assert_weight_invariant(resolution.weights)


def test_stakeholder_cvar_without_stakeholders_is_uninformed():
    dilemma = Dilemma(id="d1")
    engine = ResolutionEngine(make_context(dilemma))

    resolution = engine.resolve(StrategyName.STAKEHOLDER_CVAR, pair_conflict("utilitarian", "justice"), dilemma, [])

    assert resolution.recommended_action == "approve_option_a"
    assert resolution.confidence == 0.4
    assert resolution.cvar_analysis == []


def test_care_based_justice_pairs_care_with_its_opponent_in_clinics():
    dilemma = Dilemma(id="d1", title="Hospital ventilator triage")
    context = make_context(dilemma)
    engine = ResolutionEngine(context)
    conflict = pair_conflict("care_ethics", "deontology", 0.6)
    recommendations = [rec("care_ethics", "approve_option_a", "Unrelated."), rec("deontology", "approve_option_b", "Nothing.")]

    strategy = StrategySelector(context).select(conflict, dilemma)
    resolution = engine.resolve(strategy, conflict, dilemma, recommendations)

    assert strategy == StrategyName.CARE_BASED_JUSTICE
    assert resolution.strategy == StrategyName.CARE_BASED_JUSTICE
    assert resolution.weights == {"care_ethics": 0.5, "deontology": 0.5}
    engine.precedent_lookup.shutdown()
