from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class WarningKind(Enum):
    MISSING_PARAMETER = "missing_parameter"
    DEGENERATE_COMPARISON = "degenerate_comparison"
    RESOLUTION_FAILURE = "resolution_failure"


@dataclass(frozen=True)
class AnalysisWarning:
    kind: WarningKind
    message: str
    framework: Optional[str] = None
    parameter: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "framework": self.framework,
            "parameter": self.parameter,
        }


@dataclass(frozen=True)
class Threshold:
    original_value: float
    decrease_threshold: Optional[float]
    increase_threshold: Optional[float]
    sensitivity_score: float
    base_action: str
    action_at_decrease: Optional[str] = None
    action_at_increase: Optional[str] = None
    description: str = ""

    def distances(self) -> Dict[str, float]:
        """Relative distance to each discovered threshold, keyed by direction."""
        scale = max(abs(self.original_value), 0.1)
        found: Dict[str, float] = {}
        if self.decrease_threshold is not None:
            found["decrease"] = abs(self.original_value - self.decrease_threshold) / scale
        if self.increase_threshold is not None:
            found["increase"] = abs(self.increase_threshold - self.original_value) / scale
        return found

    def to_payload(self) -> Dict[str, Any]:
        return {
            "original_value": self.original_value,
            "decrease_threshold": self.decrease_threshold,
            "increase_threshold": self.increase_threshold,
            "sensitivity_score": self.sensitivity_score,
            "base_action": self.base_action,
            "action_at_decrease": self.action_at_decrease,
            "action_at_increase": self.action_at_increase,
            "description": self.description,
        }


@dataclass(frozen=True)
class SensitivityReport:
    sensitive_parameters: List[str] = field(default_factory=list)
    thresholds: Dict[str, Threshold] = field(default_factory=dict)


@dataclass(frozen=True)
class FrameworkRecommendation:
    framework: str
    recommended_action: str
    justification: str
    sensitive_parameters: List[str] = field(default_factory=list)
    thresholds: Dict[str, Threshold] = field(default_factory=dict)
    warnings: List[AnalysisWarning] = field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "framework": self.framework,
            "recommended_action": self.recommended_action,
            "justification": self.justification,
            "sensitive_parameters": list(self.sensitive_parameters),
            "thresholds": {k: v.to_payload() for k, v in self.thresholds.items()},
        }


class ConflictKind(Enum):
    FRAMEWORK = "framework"
    MULTI_FRAMEWORK = "multi_framework"
    STAKEHOLDER = "stakeholder"


class ConflictNature(Enum):
    VALUE = "value"
    FACTUAL = "factual"
    METHODOLOGICAL = "methodological"


@dataclass(frozen=True)
class CompromiseArea:
    kind: str
    term: str
    description: str


@dataclass(frozen=True)
class Conflict:
    id: str
    kind: ConflictKind
    participants: Tuple[str, ...]
    severity: float
    description: str = ""
    nature: Optional[ConflictNature] = None
    requires_meta_ethical: bool = False
    compromise_areas: List[CompromiseArea] = field(default_factory=list)
    actions: Dict[str, str] = field(default_factory=dict)
    action_groups: Dict[str, List[str]] = field(default_factory=dict)
    patterns: List[str] = field(default_factory=list)
    shared_concerns: List[str] = field(default_factory=list)

    def majority_action(self) -> Optional[str]:
        if not self.action_groups:
            return None
        ranked = sorted(self.action_groups.items(), key=lambda kv: len(kv[1]), reverse=True)
        if len(ranked) > 1 and len(ranked[0][1]) == len(ranked[1][1]):
            return None
        return ranked[0][0]

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "participants": list(self.participants),
            "severity": self.severity,
            "description": self.description,
            "nature": self.nature.value if self.nature else None,
            "requires_meta_ethical": self.requires_meta_ethical,
            "compromise_areas": [
                {"kind": a.kind, "term": a.term, "description": a.description}
                for a in self.compromise_areas
            ],
            "actions": dict(self.actions),
            "action_groups": {k: list(v) for k, v in self.action_groups.items()},
            "patterns": list(self.patterns),
            "shared_concerns": list(self.shared_concerns),
        }


@dataclass(frozen=True)
class Interaction:
    kind: str
    participants: Tuple[str, ...]
    strength: float
    similarity: float = 0.0
    interaction_type: str = ""
    shared_dimensions: List[str] = field(default_factory=list)
    action: Optional[str] = None
    description: str = ""

    def to_payload(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "participants": list(self.participants),
            "strength": self.strength,
            "similarity": self.similarity,
            "interaction_type": self.interaction_type,
            "shared_dimensions": list(self.shared_dimensions),
            "action": self.action,
            "description": self.description,
        }


@dataclass(frozen=True)
class DetectionResult:
    conflicts: List[Conflict] = field(default_factory=list)
    interactions: List[Interaction] = field(default_factory=list)
    insights: List[str] = field(default_factory=list)
