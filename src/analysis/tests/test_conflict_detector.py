from itertools import combinations

from src.analysis.domain.analysis_models import ConflictKind, ConflictNature, FrameworkRecommendation
from src.analysis.interfaces.text_classifier import KeywordTextClassifier
from src.analysis.services.conflict_detector import ConflictDetector
from src.core.config.engine_config import EngineConfig, SeverityThresholds
from src.core.config.runtime_profile import RuntimeProfile
from src.core.context.engine_context import EngineContext
from src.dilemma.domain.dilemma_models import ContextualFactor, Dilemma, Stakeholder


# --- Helpers ---

def rec(framework: str, action: str, justification: str = "") -> FrameworkRecommendation:
    return FrameworkRecommendation(
        framework=framework,
        recommended_action=action,
        justification=justification or f"{framework} reasoning.",
    )


def detector_for(dilemma: Dilemma, config: EngineConfig = None) -> ConflictDetector:
    return ConflictDetector(EngineContext.for_dilemma(dilemma, config=config, profile=RuntimeProfile.test()))


# --- Tests ---

def test_pairwise_value_conflict_severity():
    dilemma = Dilemma(id="d1")
    result = detector_for(dilemma).detect(dilemma, [
        rec("utilitarian", "approve_option_a"),
        rec("deontology", "approve_option_b"),
    ])

    conflict = result.conflicts[0]
    assert conflict.id == "fc-utilitarian-deontology"
    assert conflict.kind == ConflictKind.FRAMEWORK
    assert conflict.nature == ConflictNature.VALUE
    assert conflict.requires_meta_ethical
    # 0.5 + 0.7*0.3 + 0.1 value + 0.05 meta-ethical
    assert abs(conflict.severity - 0.86) < 1e-9
    assert conflict.compromise_areas[0].term == "duty_bounded_utilitarianism"


def test_life_at_stake_widens_distance():
    dilemma = Dilemma(id="d1", contextual_factors=[ContextualFactor("life_at_stake", 0.9)])
    result = detector_for(dilemma).detect(dilemma, [
        rec("utilitarian", "approve_option_a"),
        rec("deontology", "approve_option_b"),
    ])
    assert abs(result.conflicts[0].severity - 0.89) < 1e-9


def test_severity_stays_within_bounds_for_every_pair():
    frameworks = ["utilitarian", "justice", "deontology", "care_ethics", "virtue_ethics"]
    dilemma = Dilemma(
        id="d1",
        contextual_factors=[ContextualFactor("life_at_stake", 1.0), ContextualFactor("vulnerable groups")],
    )
    detector = detector_for(dilemma)

    for first, second in combinations(frameworks, 2):
        result = detector.detect(dilemma, [
            rec(first, "approve_option_a", "Duty and fair benefit matter."),
            rec(second, "approve_option_b", "Duty and fair benefit matter."),
        ])
        for conflict in result.conflicts:
            assert 0.0 <= conflict.severity <= 1.0


def test_shared_terms_become_compromise_areas():
    dilemma = Dilemma(id="d1")
    result = detector_for(dilemma).detect(dilemma, [
        rec("utilitarian", "approve_option_a", "Total benefit for the population is higher."),
        rec("justice", "approve_option_b", "A fair distribution of benefit across the population."),
    ])
    terms = [a.term for a in result.conflicts[0].compromise_areas]
    assert terms == ["benefit", "population"]


def test_agreement_produces_interaction_not_conflict():
    dilemma = Dilemma(id="d1")
    result = detector_for(dilemma).detect(dilemma, [
        rec("utilitarian", "approve_option_a", "Greater total benefit."),
        rec("justice", "approve_option_a", "Greater total benefit."),
    ])

    assert result.conflicts == []
    interaction = result.interactions[0]
    assert interaction.kind == "agreement"
    assert interaction.interaction_type == "strong_reinforcement"
    assert abs(interaction.strength - 0.85) < 1e-9
    assert any(i.startswith("strong_ethical_convergence") for i in result.insights)


def test_multi_framework_split_groups_and_patterns():
    dilemma = Dilemma(id="d1")
    result = detector_for(dilemma).detect(dilemma, [
        rec("utilitarian", "approve_option_a"),
        rec("justice", "approve_option_a"),
        rec("deontology", "approve_option_a"),
        rec("care_ethics", "approve_option_b"),
    ])

    multi = [c for c in result.conflicts if c.kind == ConflictKind.MULTI_FRAMEWORK][0]
    assert multi.id == "mfc-1"
    assert {k: len(v) for k, v in multi.action_groups.items()} == {"approve_option_a": 3, "approve_option_b": 1}
    assert multi.majority_action() == "approve_option_a"
    assert "care_justice_tension" in multi.patterns
    assert "isolated_care_ethics" in multi.patterns
    # 0.5 + 0.1*(2-1) + 0.3*(1-3/4)
    assert abs(multi.severity - 0.675) < 1e-9


def test_unanimous_frameworks_form_consensus():
    dilemma = Dilemma(id="d1")
    result = detector_for(dilemma).detect(dilemma, [
        rec("utilitarian", "approve_option_a"),
        rec("justice", "approve_option_a"),
        rec("deontology", "approve_option_a"),
    ])
    consensus = [i for i in result.interactions if i.kind == "consensus"]
    assert result.conflicts == []
    assert consensus[0].strength == 0.8


def test_stakeholders_with_shared_concerns_conflict():
    dilemma = Dilemma(
        id="d1",
        stakeholders=[
            Stakeholder("board", "Health Board", frozenset({"budget", "access"})),
            Stakeholder("public", "General Public", frozenset({"access"})),
            Stakeholder("press", "Local Press", frozenset({"transparency"})),
        ],
    )
    result = detector_for(dilemma).detect(dilemma, [])

    assert [c.id for c in result.conflicts] == ["sc-board-public"]
    assert result.conflicts[0].severity == 0.6
    assert result.conflicts[0].shared_concerns == ["access"]


def test_minimum_severity_filters_conflicts():
    dilemma = Dilemma(id="d1")
    result = detector_for(dilemma, EngineConfig(min_conflict_severity=0.9)).detect(dilemma, [
        rec("utilitarian", "approve_option_a"),
        rec("justice", "approve_option_b"),
    ])
    assert result.conflicts == []


def test_nature_follows_shared_vocabulary():
    dilemma = Dilemma(id="d1")
    detector = detector_for(dilemma)

    factual = detector.classify_nature(
        rec("utilitarian", "approve_option_a", "Serves the larger population."),
        rec("justice", "approve_option_b", "The population is unevenly covered."),
    )
    value = detector.classify_nature(
        rec("utilitarian", "approve_option_a", "Fairness requires counting everyone."),
        rec("justice", "approve_option_b", "Fairness demands equal shares."),
    )
    methodological = detector.classify_nature(
        rec("utilitarian", "approve_option_a"),
        rec("justice", "approve_option_b"),
    )

    assert factual == ConflictNature.FACTUAL
    assert value == ConflictNature.VALUE
    assert methodological == ConflictNature.METHODOLOGICAL


def test_classifier_respects_category_priority():
    classifier = KeywordTextClassifier()

    assert classifier.classify("fair population", ("quantitative", "core_value")) == "quantitative"
    assert classifier.classify("fair population", ("core_value", "quantitative")) == "core_value"
    assert classifier.classify("nothing relevant here") == "general"


def test_base_severity_comes_from_config():
    dilemma = Dilemma(id="d1")
    config = EngineConfig(severity=SeverityThresholds(medium=0.4))
    result = detector_for(dilemma, config).detect(dilemma, [
        rec("utilitarian", "approve_option_a"),
        rec("deontology", "approve_option_b"),
    ])

    # 0.4 + 0.7*0.3 + 0.1 value + 0.05 meta-ethical
    assert abs(result.conflicts[0].severity - 0.76) < 1e-9
