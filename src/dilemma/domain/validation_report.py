from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass(frozen=True)
class ValidationReport:
    issues: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    missing_parameters: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.issues

    def to_payload(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "issues": list(self.issues),
            "warnings": list(self.warnings),
            "missing_parameters": list(self.missing_parameters),
        }
