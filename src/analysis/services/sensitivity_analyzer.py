import math
from dataclasses import dataclass
from typing import Dict, Optional

from src.analysis.domain.analysis_models import SensitivityReport, Threshold
from src.analysis.services.framework_evaluator import FrameworkEvaluator
from src.core.config.engine_config import EngineConfig
from src.dilemma.domain.dilemma_models import Dilemma


@dataclass(frozen=True)
class DirectionResult:
    threshold: float
    action: str


def proximity(relative_distance: float, scale: float = 5.0) -> float:
    """Saturating distance measure in [0, 1): 0 at the threshold, towards 1 far from it."""
    return math.tanh(scale * max(0.0, relative_distance))


class SensitivityAnalyzer:
    """
    Locates, per numeric parameter, the value at which a framework's
    recommendation flips.

    Every search step evaluates an independent copy of the dilemma
    (Dilemma.with_parameter); the input snapshot is never modified.
    Reported thresholds are re-evaluated and always produce an action that
    differs from the baseline.
    """

    def __init__(self, evaluator: FrameworkEvaluator, config: Optional[EngineConfig] = None):
        self.evaluator = evaluator
        self.config = config or evaluator.context.config

    def analyze(self, dilemma: Dilemma, framework: str) -> SensitivityReport:
        base_action = self.evaluator.recommend_action(dilemma, framework)
        thresholds: Dict[str, Threshold] = {}
        for name in dilemma.numeric_parameters():
            threshold = self.analyze_parameter(dilemma, framework, name, base_action)
            if threshold is not None:
                thresholds[name] = threshold
        return self.build_report(thresholds)

    def build_report(self, thresholds: Dict[str, Threshold]) -> SensitivityReport:
        sensitive = [
            name for name, t in thresholds.items()
            if t.sensitivity_score > self.config.sensitivity_cutoff
        ]
        sensitive.sort(key=lambda n: (-thresholds[n].sensitivity_score, n))
        return SensitivityReport(sensitive_parameters=sensitive, thresholds=dict(thresholds))

    def analyze_parameter(
        self,
        dilemma: Dilemma,
        framework: str,
        name: str,
        base_action: str,
    ) -> Optional[Threshold]:
        param = dilemma.parameter(name)
        if param is None or not param.is_numeric:
            return None
        value = float(param.value)

        decrease = self._search(dilemma, framework, name, value, base_action, increase=False)
        increase = self._search(dilemma, framework, name, value, base_action, increase=True)
        if decrease is None and increase is None:
            return None

        score = self.sensitivity_score(value, decrease, increase)
        return Threshold(
            original_value=value,
            decrease_threshold=decrease.threshold if decrease else None,
            increase_threshold=increase.threshold if increase else None,
            sensitivity_score=score,
            base_action=base_action,
            action_at_decrease=decrease.action if decrease else None,
            action_at_increase=increase.action if increase else None,
            description=self._describe(name, base_action, decrease, increase),
        )

    def sensitivity_score(
        self,
        value: float,
        decrease: Optional[DirectionResult],
        increase: Optional[DirectionResult],
    ) -> float:
        scale = max(abs(value), 0.1)
        scores = []
        for found in (decrease, increase):
            if found is None:
                continue
            relative = abs(found.threshold - value) / scale
            scores.append(1.0 - proximity(relative, self.config.proximity_scale))
        if not scores:
            return 0.0
        return round(min(1.0, max(0.0, max(scores))), 4)

    def _search(
        self,
        dilemma: Dilemma,
        framework: str,
        name: str,
        value: float,
        base_action: str,
        increase: bool,
    ) -> Optional[DirectionResult]:
        cfg = self.config
        ratio = cfg.coarse_test_ratio
        # Offset by |value| so negative values still move in the named direction
        offset = abs(value) * ratio
        bound = value + offset if increase else value - offset
        if bound == value:
            return None

        # 1. Coarse test at the extreme
        bound_action = self._action_at(dilemma, framework, name, bound)
        if bound_action == base_action:
            return None

        # 2. Binary search; `flipped` always holds a value whose action differs from base
        step = max(abs(value) * cfg.step_ratio, cfg.min_step)
        kept, flipped = value, bound
        flipped_action = bound_action
        iterations = 0
        while abs(flipped - kept) > step * cfg.convergence_ratio and iterations < cfg.max_search_iterations:
            mid = (kept + flipped) / 2
            mid_action = self._action_at(dilemma, framework, name, mid)
            if mid_action == base_action:
                kept = mid
            else:
                flipped, flipped_action = mid, mid_action
            iterations += 1

        # 3. Verify the rounded boundary still flips
        rounded = round(flipped, 2)
        if rounded != flipped:
            rounded_action = self._action_at(dilemma, framework, name, rounded)
            if rounded_action != base_action:
                return DirectionResult(threshold=rounded, action=rounded_action)
        return DirectionResult(threshold=flipped, action=flipped_action)

    def _action_at(self, dilemma: Dilemma, framework: str, name: str, value: float) -> str:
        return self.evaluator.recommend_action(dilemma.with_parameter(name, value), framework)

    @staticmethod
    def _describe(
        name: str,
        base_action: str,
        decrease: Optional[DirectionResult],
        increase: Optional[DirectionResult],
    ) -> str:
        parts = []
        if decrease is not None:
            parts.append(f"decreasing to {decrease.threshold:g} changes {base_action} to {decrease.action}")
        if increase is not None:
            parts.append(f"increasing to {increase.threshold:g} changes {base_action} to {increase.action}")
        return f"{name}: " + "; ".join(parts)
