from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from src.analysis.domain.analysis_models import ConflictKind
from src.resolution.domain.precedent_models import PrecedentMatch
from src.resolution.services.weight_normalizer import ORIGINAL_WEIGHTS_KEY


class StrategyName(Enum):
    FRAMEWORK_BALANCING = "framework_balancing"
    PRINCIPLED_PRIORITY = "principled_priority"
    COMPROMISE = "compromise"
    PROCEDURAL = "procedural"
    META_ETHICAL = "meta_ethical"
    MULTI_FRAMEWORK_INTEGRATION = "multi_framework_integration"
    CASUISTRY = "casuistry"
    STAKEHOLDER_COMPROMISE = "stakeholder_compromise"
    REFLECTIVE_EQUILIBRIUM = "reflective_equilibrium"
    PLURALISTIC_INTEGRATION = "pluralistic_integration"
    STAKEHOLDER_CVAR = "stakeholder_cvar"
    DUTY_BOUNDED_UTILITARIANISM = "duty_bounded_utilitarianism"
    VIRTUE_GUIDED_CONSEQUENTIALISM = "virtue_guided_consequentialism"
    CARE_BASED_JUSTICE = "care_based_justice"
    FALLBACK = "fallback"


HYBRID_STRATEGIES: FrozenSet[StrategyName] = frozenset({
    StrategyName.DUTY_BOUNDED_UTILITARIANISM,
    StrategyName.VIRTUE_GUIDED_CONSEQUENTIALISM,
    StrategyName.CARE_BASED_JUSTICE,
})


class DetailLevel(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class StrategyProfile:
    name: StrategyName
    applicable_kinds: FrozenSet[ConflictKind]
    detail_level: DetailLevel
    description: str = ""


@dataclass(frozen=True)
class HybridAnalysis:
    name: str
    primary_elements: List[str] = field(default_factory=list)
    secondary_elements: List[str] = field(default_factory=list)
    filtered_elements: List[str] = field(default_factory=list)
    decisive_rule: str = ""
    fallback_used: bool = False


@dataclass(frozen=True)
class CvarAssessment:
    """Mean impact over the worst-affected tail of stakeholders for one action."""
    action: str
    value: float
    worst_affected: List[str] = field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "value": self.value,
            "worst_affected": list(self.worst_affected),
        }


@dataclass(frozen=True)
class Resolution:
    conflict_id: str
    strategy: StrategyName
    weights: Dict[str, float]
    recommended_action: Optional[str]
    reasoning: str
    detail_level: DetailLevel = DetailLevel.MEDIUM
    original_weights: Dict[str, float] = field(default_factory=dict)
    confidence: Optional[float] = None
    priority_framework: Optional[str] = None
    precedent_cases: List[PrecedentMatch] = field(default_factory=list)
    compromise_proposal: Optional[str] = None
    procedural_proposal: Optional[str] = None
    meta_analysis: Optional[str] = None
    majority_frameworks: List[str] = field(default_factory=list)
    minority_frameworks: List[str] = field(default_factory=list)
    hybrid: Optional[HybridAnalysis] = None
    revised_principles: List[str] = field(default_factory=list)
    ethical_insights: List[Dict[str, str]] = field(default_factory=list)
    cvar_analysis: List[CvarAssessment] = field(default_factory=list)
    error: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "conflict_id": self.conflict_id,
            "strategy": self.strategy.value,
            "weights": dict(self.weights),
            ORIGINAL_WEIGHTS_KEY: dict(self.original_weights),
            "recommended_action": self.recommended_action,
            "reasoning": self.reasoning,
            "detail_level": self.detail_level.value,
            "confidence": self.confidence,
        }
        optional = {
            "priority_framework": self.priority_framework,
            "compromise_proposal": self.compromise_proposal,
            "procedural_proposal": self.procedural_proposal,
            "meta_analysis": self.meta_analysis,
            "error": self.error,
        }
        payload.update({k: v for k, v in optional.items() if v is not None})
        if self.precedent_cases:
            payload["precedent_cases"] = [p.to_payload() for p in self.precedent_cases]
        if self.majority_frameworks or self.minority_frameworks:
            payload["majority_frameworks"] = list(self.majority_frameworks)
            payload["minority_frameworks"] = list(self.minority_frameworks)
        if self.revised_principles:
            payload["revised_principles"] = list(self.revised_principles)
        if self.ethical_insights:
            payload["ethical_insights"] = [dict(i) for i in self.ethical_insights]
        if self.cvar_analysis:
            payload["cvar_analysis"] = [c.to_payload() for c in self.cvar_analysis]
        if self.hybrid is not None:
            payload["hybrid"] = {
                "name": self.hybrid.name,
                "primary_elements": list(self.hybrid.primary_elements),
                "secondary_elements": list(self.hybrid.secondary_elements),
                "filtered_elements": list(self.hybrid.filtered_elements),
                "decisive_rule": self.hybrid.decisive_rule,
                "fallback_used": self.hybrid.fallback_used,
            }
        return payload
