import math
from typing import Dict, List, Optional, Sequence, Tuple

from src.analysis.domain.analysis_models import AnalysisWarning, Conflict, FrameworkRecommendation, WarningKind
from src.core.config.engine_config import EngineConfig
from src.dilemma.domain.dilemma_models import Dilemma
from src.dilemma.domain.validation_report import ValidationReport
from src.resolution.domain.resolution_models import Resolution, StrategyName
from src.synthesis.domain.synthesis_models import CriticalParameter, FinalRecommendation


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


class ConfidenceSynthesizer:
    """
    Combines framework recommendations and conflict resolutions into one
    final recommendation with a confidence score and its contributing factors.

    Confidence is a weighted mean of four factors in [0, 1]:
    framework agreement, framework diversity, validation quality and
    parameter stability. It reaches 1.0 only when every factor does.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()

    def synthesize(
        self,
        dilemma: Dilemma,
        recommendations: Sequence[FrameworkRecommendation],
        conflicts: Sequence[Conflict],
        resolutions: Sequence[Resolution],
        validation: Optional[ValidationReport] = None,
        warnings: Optional[Sequence[AnalysisWarning]] = None,
    ) -> FinalRecommendation:
        validation = validation or ValidationReport()
        warnings = list(warnings or [])

        action, override = self._final_action(recommendations, conflicts, resolutions)
        supporting = [r.framework for r in recommendations if r.recommended_action == action]
        opposing = [r.framework for r in recommendations if r.recommended_action != action]

        factors = {
            "framework_agreement": self.framework_agreement(recommendations, action),
            "framework_diversity": self.framework_diversity(recommendations),
            "validation_quality": self.validation_quality(validation, warnings),
            "parameter_stability": self.parameter_stability(recommendations),
        }
        confidence = self.combine(factors)
        critical = self.critical_parameters(recommendations)
        strategies = [r.strategy.value for r in resolutions]

        return FinalRecommendation(
            action=action,
            confidence=confidence,
            confidence_factors={k: round(v, 4) for k, v in factors.items()},
            supporting_frameworks=supporting,
            opposing_frameworks=opposing,
            critical_parameters=critical,
            reasoning=self._reasoning(dilemma, action, supporting, opposing, strategies, override, confidence),
            strategies_applied=strategies,
        )

    # --- Action ---

    def _final_action(
        self,
        recommendations: Sequence[FrameworkRecommendation],
        conflicts: Sequence[Conflict],
        resolutions: Sequence[Resolution],
    ) -> Tuple[Optional[str], bool]:
        severity = {c.id: c.severity for c in conflicts}
        resolved = [r for r in resolutions if r.conflict_id in severity]
        if resolved:
            top = max(severity[r.conflict_id] for r in resolved)
            for r in resolved:
                if (
                    r.strategy == StrategyName.MULTI_FRAMEWORK_INTEGRATION
                    and r.recommended_action is not None
                    and severity[r.conflict_id] >= top
                ):
                    return r.recommended_action, True

        counts: Dict[str, int] = {}
        for rec in recommendations:
            counts[rec.recommended_action] = counts.get(rec.recommended_action, 0) + 1
        if not counts:
            return None, False
        # dicts keep first-seen order, and max() keeps the first of equal counts
        return max(counts, key=lambda a: counts[a]), False

    # --- Factors ---

    @staticmethod
    def framework_agreement(recommendations: Sequence[FrameworkRecommendation], action: Optional[str]) -> float:
        if not recommendations:
            return 0.0
        matching = sum(1 for r in recommendations if r.recommended_action == action)
        return matching / len(recommendations)

    @staticmethod
    def framework_diversity(recommendations: Sequence[FrameworkRecommendation]) -> float:
        distinct = len({r.recommended_action for r in recommendations})
        return max(0.0, 1.0 - 0.1 * max(0, distinct - 1))

    @staticmethod
    def validation_quality(validation: ValidationReport, warnings: Sequence[AnalysisWarning]) -> float:
        # A missing parameter counts once, whether the validator or an evaluator reported it
        missing = set(validation.missing_parameters)
        runtime = 0
        for warning in warnings:
            if warning.kind == WarningKind.MISSING_PARAMETER and warning.parameter:
                if warning.parameter in missing:
                    continue
                missing.add(warning.parameter)
            runtime += 1
        warning_count = len(validation.warnings) + runtime
        penalty = min(0.3, 0.05 * warning_count) + min(0.5, 0.1 * len(validation.issues))
        return _clamp(1.0 - penalty)

    def parameter_stability(self, recommendations: Sequence[FrameworkRecommendation]) -> float:
        stabilities = []
        for rec in recommendations:
            for name in rec.sensitive_parameters:
                threshold = rec.thresholds.get(name)
                if threshold is None:
                    continue
                distances = threshold.distances()
                if distances:
                    stabilities.append(math.tanh(self.config.proximity_scale * min(distances.values())))
        if not stabilities:
            return 1.0
        return sum(stabilities) / len(stabilities)

    def combine(self, factors: Dict[str, float]) -> float:
        weights = self.config.confidence_weights
        total = sum(weights.get(k, 0.0) for k in factors)
        if total <= 0:
            return 0.0
        weighted = sum(_clamp(v) * weights.get(k, 0.0) for k, v in factors.items())
        return _clamp(weighted / total)

    # --- Critical parameters ---

    def critical_parameters(self, recommendations: Sequence[FrameworkRecommendation]) -> List[CriticalParameter]:
        found: List[CriticalParameter] = []
        for rec in recommendations:
            for name, threshold in rec.thresholds.items():
                for direction, distance in threshold.distances().items():
                    value = threshold.decrease_threshold if direction == "decrease" else threshold.increase_threshold
                    result = threshold.action_at_decrease if direction == "decrease" else threshold.action_at_increase
                    closeness = math.tanh(self.config.proximity_scale * distance)
                    found.append(CriticalParameter(
                        parameter=name,
                        framework=rec.framework,
                        direction=direction,
                        original_value=threshold.original_value,
                        threshold=value,
                        resulting_action=result,
                        proximity=round(closeness, 4),
                        significance=self._significance(name, rec.framework, direction, distance, result),
                    ))
        found.sort(key=lambda p: (p.proximity, p.parameter, p.framework, p.direction))
        return found[: self.config.max_critical_parameters]

    @staticmethod
    def _significance(name: str, framework: str, direction: str, distance: float, result: Optional[str]) -> str:
        if distance < 0.1:
            level = "Highly sensitive"
        elif distance < 0.3:
            level = "Moderately sensitive"
        else:
            level = "Stable"
        verb = "decrease" if direction == "decrease" else "increase"
        return (
            f"{level}: a {distance:.0%} {verb} in {name} changes the {framework} "
            f"recommendation to {result}."
        )

    # --- Narrative ---

    @staticmethod
    def _reasoning(
        dilemma: Dilemma,
        action: Optional[str],
        supporting: List[str],
        opposing: List[str],
        strategies: List[str],
        override: bool,
        confidence: float,
    ) -> str:
        if action is None:
            return f"No framework produced a recommendation for {dilemma.title or dilemma.id}."
        parts = []
        if override:
            parts.append(f"Multi-framework integration of the most severe conflict selects {action}.")
        else:
            parts.append(f"The majority of frameworks recommend {action}.")
        if supporting:
            parts.append(f"Supported by {', '.join(supporting)}.")
        if opposing:
            parts.append(f"Opposed by {', '.join(opposing)}.")
        if strategies:
            parts.append(f"Conflicts were resolved using {', '.join(sorted(set(strategies)))}.")
        parts.append(f"Overall confidence is {confidence:.2f}.")
        return " ".join(parts)
