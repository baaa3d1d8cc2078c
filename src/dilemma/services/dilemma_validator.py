from typing import Dict, List, Optional

from src.analysis.domain.framework_profiles import is_known_framework, profile_for
from src.dilemma.domain.dilemma_models import Dilemma
from src.dilemma.domain.validation_report import ValidationReport
from src.dilemma.services.parameter_mapping import ParameterMapping


def _in_unit_range(value) -> bool:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False
    return 0.0 <= number <= 1.0


class DilemmaValidator:
    """
    Schema checks run before any framework is evaluated.

    Issues are critical and stop the pipeline when it runs fail-fast;
    warnings only lower the validation quality of the final confidence.
    """

    def __init__(self, mapping: Optional[ParameterMapping] = None):
        self._mapping = mapping

    def validate(self, dilemma: Dilemma) -> ValidationReport:
        issues: List[str] = []
        warnings: List[str] = []
        missing: Dict[str, List[str]] = {}
        mapping = self._mapping or ParameterMapping.for_dilemma(dilemma)

        if not dilemma.id:
            issues.append("Dilemma is missing an id")
        if not dilemma.frameworks:
            issues.append("Dilemma names no frameworks to evaluate")

        for framework in dilemma.frameworks:
            if not is_known_framework(framework):
                issues.append(f"Unknown framework: {framework}")
                continue
            for canonical in profile_for(framework).required_parameters:
                name = mapping.resolve_name(canonical)
                param = dilemma.parameter(name) or dilemma.parameter(canonical)
                if param is None:
                    needed_by = missing.setdefault(name, [])
                    if framework not in needed_by:
                        needed_by.append(framework)
                elif not param.is_numeric:
                    issues.append(f"{framework} requires numeric parameter {name}, got {param.value!r}")

        # One warning per parameter, however many frameworks need it
        for name, frameworks in missing.items():
            warnings.append(f"Parameter {name} is missing (required by {', '.join(frameworks)})")

        for stakeholder in dilemma.stakeholders:
            if not _in_unit_range(stakeholder.influence):
                warnings.append(f"Stakeholder {stakeholder.id} influence {stakeholder.influence} is outside [0, 1]")

        for factor in dilemma.contextual_factors:
            if factor.relevance is not None and not _in_unit_range(factor.relevance):
                warnings.append(f"Contextual factor {factor.factor} relevance {factor.relevance} is outside [0, 1]")

        return ValidationReport(
            issues=list(dict.fromkeys(issues)),
            warnings=warnings,
            missing_parameters=list(missing),
        )
