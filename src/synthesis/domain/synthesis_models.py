from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class CriticalParameter:
    parameter: str
    framework: str
    direction: str
    original_value: float
    threshold: float
    resulting_action: Optional[str]
    proximity: float
    significance: str = ""

    def to_payload(self) -> Dict[str, Any]:
        return {
            "parameter": self.parameter,
            "framework": self.framework,
            "direction": self.direction,
            "original_value": self.original_value,
            "threshold": self.threshold,
            "resulting_action": self.resulting_action,
            "proximity": self.proximity,
            "significance": self.significance,
        }


@dataclass(frozen=True)
class FinalRecommendation:
    action: Optional[str]
    confidence: float
    confidence_factors: Dict[str, float] = field(default_factory=dict)
    supporting_frameworks: List[str] = field(default_factory=list)
    opposing_frameworks: List[str] = field(default_factory=list)
    critical_parameters: List[CriticalParameter] = field(default_factory=list)
    reasoning: str = ""
    strategies_applied: List[str] = field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "confidence": self.confidence,
            "confidence_factors": dict(self.confidence_factors),
            "supporting_frameworks": list(self.supporting_frameworks),
            "opposing_frameworks": list(self.opposing_frameworks),
            "critical_parameters": [p.to_payload() for p in self.critical_parameters],
            "reasoning": self.reasoning,
            "strategies_applied": list(self.strategies_applied),
        }
