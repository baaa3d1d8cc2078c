from dataclasses import dataclass, field
from typing import Dict, Tuple

from src.analysis.domain.framework_profiles import DEFAULT_FRAMEWORKS
from src.config.settings import ReaSettings


@dataclass(frozen=True)
class SeverityThresholds:
    """
    Conflict severity bands. `medium` is the base severity of a detected
    conflict; the others gate strategy applicability scores.
    """
    low: float = 0.3
    medium: float = 0.5
    compromise: float = 0.6
    high: float = 0.7
    critical: float = 0.8


@dataclass(frozen=True)
class EngineConfig:
    """
    Algorithm constants shared by every pipeline stage.
    """
    default_frameworks: Tuple[str, ...] = DEFAULT_FRAMEWORKS
    severity: SeverityThresholds = field(default_factory=SeverityThresholds)
    min_conflict_severity: float = 0.3
    stakeholder_conflict_severity: float = 0.6

    # Sensitivity search
    coarse_test_ratio: float = 0.5
    step_ratio: float = 0.1
    min_step: float = 1.0
    convergence_ratio: float = 0.1
    max_search_iterations: int = 10
    sensitivity_cutoff: float = 0.3
    proximity_scale: float = 5.0

    # Weights
    weight_floor: float = 0.15
    weight_ceiling: float = 0.85
    weight_precision: int = 2

    # Precedents
    precedent_min_similarity: float = 0.2
    precedent_top_k: int = 3

    # Confidence
    confidence_weights: Dict[str, float] = field(default_factory=lambda: {
        "framework_agreement": 0.4,
        "framework_diversity": 0.1,
        "validation_quality": 0.2,
        "parameter_stability": 0.3,
    })
    max_critical_parameters: int = 6

    @classmethod
    def from_settings(cls, settings: ReaSettings) -> "EngineConfig":
        return cls(
            min_conflict_severity=float(settings.REA_MIN_CONFLICT_SEVERITY),
            weight_floor=float(settings.REA_WEIGHT_FLOOR),
        )
