from typing import Dict

import pytest

from src.analysis.domain.analysis_models import WarningKind
from src.analysis.services.framework_evaluator import FrameworkEvaluator
from src.analysis.services.sensitivity_analyzer import SensitivityAnalyzer
from src.core.config.runtime_profile import RuntimeProfile
from src.core.context.engine_context import EngineContext
from src.core.domain.exceptions import MissingParameter, UnknownFramework
from src.dilemma.domain.dilemma_models import Dilemma, Parameter


# --- Helpers ---

def make_dilemma(values: Dict[str, float], dilemma_id: str = "test_dilemma") -> Dilemma:
    return Dilemma(
        id=dilemma_id,
        frameworks=["utilitarian", "justice", "deontology", "care_ethics", "virtue_ethics"],
        parameters={name: Parameter(float(v)) for name, v in values.items()},
    )


def make_evaluator(dilemma: Dilemma, strict: bool = False) -> FrameworkEvaluator:
    return FrameworkEvaluator(EngineContext.for_dilemma(dilemma, profile=RuntimeProfile.test()), strict=strict)


SCENARIO_ONE = {
    "population_served_option_a": 100,
    "benefit_per_person_option_a": 2,
    "population_served_option_b": 50,
    "benefit_per_person_option_b": 5,
}


# --- Tests ---

def test_utilitarian_prefers_greater_total_benefit():
    dilemma = make_dilemma(SCENARIO_ONE)

    rec = make_evaluator(dilemma).evaluate(dilemma, "utilitarian")

    assert rec.recommended_action == "approve_option_b"
    assert "250 vs 200" in rec.justification
    assert rec.warnings == []


def test_deontology_equal_zero_urgency_negotiates_with_warning():
    dilemma = make_dilemma({"urgency_option_a": 0, "urgency_option_b": 0})

    rec = make_evaluator(dilemma).evaluate(dilemma, "deontology")

    assert rec.recommended_action == "negotiate_compromises"
    assert [w.kind for w in rec.warnings] == [WarningKind.DEGENERATE_COMPARISON]


def test_justice_follows_population_served():
    dilemma = make_dilemma({"population_served_option_a": 80, "population_served_option_b": 20})
    rec = make_evaluator(dilemma).evaluate(dilemma, "justice")
    assert rec.recommended_action == "approve_option_a"
    assert "4.0x" in rec.justification


def test_care_and_virtue_rules():
    dilemma = make_dilemma({
        "deportation_risk": 2,
        "specialized_care_importance": 9,
        "public_opinion": 3,
        "urgency_option_b": 8,
    })
    evaluator = make_evaluator(dilemma)

    # care > 7 favours option A; virtue balance (9+3)/2 = 6, urgency 8 favours courage
    assert evaluator.recommend_action(dilemma, "care_ethics") == "approve_option_a"
    assert evaluator.recommend_action(dilemma, "virtue_ethics") == "approve_option_b"


def test_missing_parameter_reads_zero_and_warns():
    dilemma = make_dilemma({"population_served_option_a": 10})

    rec = make_evaluator(dilemma).evaluate(dilemma, "justice")

    assert rec.recommended_action == "approve_option_a"
    missing = [w for w in rec.warnings if w.kind == WarningKind.MISSING_PARAMETER]
    assert missing[0].parameter == "population_served_option_b"
    assert missing[0].framework == "justice"


def test_strict_mode_raises_missing_parameter():
    dilemma = make_dilemma({})
    with pytest.raises(MissingParameter):
        make_evaluator(dilemma, strict=True).evaluate(dilemma, "justice")


def test_unknown_framework_raises():
    dilemma = make_dilemma(SCENARIO_ONE)
    with pytest.raises(UnknownFramework):
        make_evaluator(dilemma).evaluate(dilemma, "astrology")


def test_actions_are_mapped_into_dilemma_vocabulary():
    dilemma = make_dilemma({
        "humanitarian_benefit": 6,
        "bipartisan_value": 4,
        "public_opinion": 7,
        "political_benefit": 5,
    }, dilemma_id="trump_border_security_dilemma_2025")

    # 6*4 = 24 against 7*5 = 35
    rec = make_evaluator(dilemma).evaluate(dilemma, "utilitarian")

    assert rec.recommended_action == "support_bill"


def test_evaluation_is_deterministic():
    dilemma = make_dilemma(SCENARIO_ONE)
    evaluator = make_evaluator(dilemma)

    first = [evaluator.evaluate(dilemma, fw) for fw in dilemma.frameworks]
    second = [evaluator.evaluate(dilemma, fw) for fw in dilemma.frameworks]

    assert first == second


def test_reported_thresholds_flip_the_recommendation():
    dilemma = make_dilemma(SCENARIO_ONE)
    evaluator = make_evaluator(dilemma)
    analyzer = SensitivityAnalyzer(evaluator)

    report = analyzer.analyze(dilemma, "utilitarian")

    assert report.thresholds
    for name, threshold in report.thresholds.items():
        assert 0.0 <= threshold.sensitivity_score <= 1.0
        for value in (threshold.decrease_threshold, threshold.increase_threshold):
            if value is None:
                continue
            flipped = evaluator.recommend_action(dilemma.with_parameter(name, value), "utilitarian")
            assert flipped != threshold.base_action
    # Search steps never touch the input snapshot
    assert dilemma.parameters["population_served_option_a"].value == 100.0


def test_near_threshold_parameter_is_sensitive():
    values = dict(SCENARIO_ONE, benefit_per_person_option_b=4.1)
    dilemma = make_dilemma(values)
    analyzer = SensitivityAnalyzer(make_evaluator(dilemma))

    report = analyzer.analyze(dilemma, "utilitarian")
    threshold = report.thresholds["population_served_option_a"]

    assert "population_served_option_a" in report.sensitive_parameters
    assert threshold.decrease_threshold is None
    assert 102.5 < threshold.increase_threshold < 104
    assert threshold.action_at_increase == "approve_option_a"
    assert threshold.sensitivity_score > 0.8


def test_insensitive_parameter_yields_no_threshold():
    dilemma = make_dilemma({"population_served_option_a": 100, "population_served_option_b": 10})
    analyzer = SensitivityAnalyzer(make_evaluator(dilemma))

    # Halving or growing by half never reverses a 10x gap
    assert analyzer.analyze_parameter(dilemma, "justice", "population_served_option_a", "approve_option_a") is None


def test_negative_parameter_thresholds_keep_their_direction():
    dilemma = make_dilemma({"urgency_option_a": -10, "urgency_option_b": -12})
    analyzer = SensitivityAnalyzer(make_evaluator(dilemma))

    threshold = analyzer.analyze_parameter(dilemma, "deontology", "urgency_option_a", "approve_option_a")

    # Raising a to -5 keeps it ahead of b; lowering it towards -15 overtakes b
    assert threshold.increase_threshold is None
    assert -15.0 <= threshold.decrease_threshold <= -12.0
    assert threshold.action_at_decrease in ("approve_option_b", "negotiate_compromises")
