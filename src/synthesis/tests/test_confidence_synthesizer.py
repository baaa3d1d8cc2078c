from src.analysis.domain.analysis_models import (
    AnalysisWarning,
    Conflict,
    ConflictKind,
    FrameworkRecommendation,
    Threshold,
    WarningKind,
)
from src.dilemma.domain.dilemma_models import Dilemma
from src.dilemma.domain.validation_report import ValidationReport
from src.resolution.domain.resolution_models import Resolution, StrategyName
from src.synthesis.services.confidence_synthesizer import ConfidenceSynthesizer


# --- Helpers ---

def rec(framework: str, action: str, thresholds=None, sensitive=None) -> FrameworkRecommendation:
    return FrameworkRecommendation(
        framework=framework,
        recommended_action=action,
        justification="",
        thresholds=thresholds or {},
        sensitive_parameters=sensitive or [],
    )


def threshold(original: float, increase: float, action: str = "approve_option_a") -> Threshold:
    return Threshold(
        original_value=original,
        decrease_threshold=None,
        increase_threshold=increase,
        sensitivity_score=0.9,
        base_action="approve_option_b",
        action_at_increase=action,
    )


def resolution(conflict_id: str, strategy: StrategyName, action: str) -> Resolution:
    return Resolution(
        conflict_id=conflict_id,
        strategy=strategy,
        weights={},
        recommended_action=action,
        reasoning="",
    )


DILEMMA = Dilemma(id="d1", title="Clinic funding")


# --- Tests ---

def test_unanimous_clean_analysis_reaches_full_confidence():
    recs = [rec("utilitarian", "approve_option_a"), rec("justice", "approve_option_a")]

    final = ConfidenceSynthesizer().synthesize(DILEMMA, recs, [], [], ValidationReport())

    assert final.action == "approve_option_a"
    assert final.confidence == 1.0
    assert all(v == 1.0 for v in final.confidence_factors.values())
    assert final.supporting_frameworks == ["utilitarian", "justice"]
    assert final.opposing_frameworks == []


def test_confidence_below_one_when_any_factor_drops():
    recs = [rec("utilitarian", "approve_option_a"), rec("justice", "approve_option_a")]
    warnings = [AnalysisWarning(WarningKind.MISSING_PARAMETER, "missing", "justice", "x")]

    final = ConfidenceSynthesizer().synthesize(DILEMMA, recs, [], [], ValidationReport(), warnings)

    assert final.confidence_factors["validation_quality"] == 0.95
    assert 0.0 <= final.confidence < 1.0


def test_majority_vote_and_factor_values():
    recs = [
        rec("utilitarian", "approve_option_a"),
        rec("justice", "approve_option_a"),
        rec("deontology", "approve_option_b"),
        rec("care_ethics", "negotiate_compromises"),
    ]
    validation = ValidationReport(issues=["bad"], warnings=["w1", "w2"])

    final = ConfidenceSynthesizer().synthesize(DILEMMA, recs, [], [], validation)

    assert final.action == "approve_option_a"
    assert final.opposing_frameworks == ["deontology", "care_ethics"]
    assert final.confidence_factors["framework_agreement"] == 0.5
    assert final.confidence_factors["framework_diversity"] == 0.8
    # 1 - 0.05*2 - 0.1*1
    assert final.confidence_factors["validation_quality"] == 0.8
    expected = (0.4 * 0.5 + 0.1 * 0.8 + 0.2 * 0.8 + 0.3 * 1.0) / 1.0
    assert abs(final.confidence - expected) < 1e-9


def test_tie_goes_to_first_seen_action():
    recs = [rec("deontology", "approve_option_b"), rec("utilitarian", "approve_option_a")]
    final = ConfidenceSynthesizer().synthesize(DILEMMA, recs, [], [])
    assert final.action == "approve_option_b"


def test_integration_of_most_severe_conflict_overrides_vote():
    recs = [
        rec("utilitarian", "approve_option_a"),
        rec("justice", "approve_option_a"),
        rec("care_ethics", "approve_option_b"),
    ]
    conflicts = [
        Conflict("mfc-1", ConflictKind.MULTI_FRAMEWORK, ("utilitarian", "justice", "care_ethics"), 0.8),
        Conflict("fc-utilitarian-care_ethics", ConflictKind.FRAMEWORK, ("utilitarian", "care_ethics"), 0.6),
    ]
    resolutions = [
        resolution("mfc-1", StrategyName.MULTI_FRAMEWORK_INTEGRATION, "approve_option_b"),
        resolution("fc-utilitarian-care_ethics", StrategyName.FRAMEWORK_BALANCING, "approve_option_a"),
    ]

    final = ConfidenceSynthesizer().synthesize(DILEMMA, recs, conflicts, resolutions)

    assert final.action == "approve_option_b"
    assert final.supporting_frameworks == ["care_ethics"]
    assert "Multi-framework integration" in final.reasoning


def test_integration_does_not_override_when_less_severe():
    recs = [rec("utilitarian", "approve_option_a"), rec("justice", "approve_option_a"), rec("care_ethics", "approve_option_b")]
    conflicts = [
        Conflict("mfc-1", ConflictKind.MULTI_FRAMEWORK, ("utilitarian", "justice", "care_ethics"), 0.5),
        Conflict("fc-x", ConflictKind.FRAMEWORK, ("utilitarian", "care_ethics"), 0.9),
    ]
    resolutions = [
        resolution("mfc-1", StrategyName.MULTI_FRAMEWORK_INTEGRATION, "approve_option_b"),
        resolution("fc-x", StrategyName.FRAMEWORK_BALANCING, "approve_option_b"),
    ]

    final = ConfidenceSynthesizer().synthesize(DILEMMA, recs, conflicts, resolutions)

    assert final.action == "approve_option_a"


def test_parameter_stability_and_critical_parameters():
    near = threshold(100.0, 102.0)
    far = threshold(10.0, 14.0)
    recs = [
        rec("utilitarian", "approve_option_b", {"pop_a": near, "benefit_a": far}, ["pop_a"]),
        rec("justice", "approve_option_b", {"pop_a": threshold(100.0, 110.0)}),
    ]

    synthesizer = ConfidenceSynthesizer()
    final = synthesizer.synthesize(DILEMMA, recs, [], [])

    stability = final.confidence_factors["parameter_stability"]
    assert 0.09 < stability < 0.1
    ranked = [(p.framework, p.parameter) for p in final.critical_parameters]
    assert ranked == [("utilitarian", "pop_a"), ("justice", "pop_a"), ("utilitarian", "benefit_a")]
    assert final.critical_parameters[0].threshold == 102.0
    assert final.critical_parameters[0].resulting_action == "approve_option_a"
    assert final.critical_parameters[0].significance.startswith("Highly sensitive")


def test_critical_parameters_are_capped():
    thresholds = {f"p{i}": threshold(100.0, 100.0 + i + 1) for i in range(10)}
    final = ConfidenceSynthesizer().synthesize(DILEMMA, [rec("utilitarian", "approve_option_b", thresholds)], [], [])
    assert len(final.critical_parameters) == 6
    assert [p.parameter for p in final.critical_parameters] == [f"p{i}" for i in range(6)]


def test_empty_recommendations_yield_no_action():
    final = ConfidenceSynthesizer().synthesize(DILEMMA, [], [], [])
    assert final.action is None
    assert 0.0 <= final.confidence <= 1.0


def test_missing_parameter_lowers_validation_quality_once():
    recs = [rec("utilitarian", "approve_option_a"), rec("justice", "approve_option_a")]
    validation = ValidationReport(
        warnings=["Parameter x is missing (required by utilitarian, justice)"],
        missing_parameters=["x"],
    )
    warnings = [
        AnalysisWarning(WarningKind.MISSING_PARAMETER, "missing", "utilitarian", "x"),
        AnalysisWarning(WarningKind.MISSING_PARAMETER, "missing", "justice", "x"),
        AnalysisWarning(WarningKind.MISSING_PARAMETER, "missing", "utilitarian", "y"),
        AnalysisWarning(WarningKind.MISSING_PARAMETER, "missing", "justice", "y"),
    ]

    final = ConfidenceSynthesizer().synthesize(DILEMMA, recs, [], [], validation, warnings)

    # x once from the validator, y once from the evaluators
    assert final.confidence_factors["validation_quality"] == 0.9
