from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from src.analysis.domain.analysis_models import (
    AnalysisWarning,
    FrameworkRecommendation,
    WarningKind,
)
from src.analysis.domain.framework_profiles import (
    APPROVE_OPTION_A,
    APPROVE_OPTION_B,
    NEGOTIATE_COMPROMISES,
    Framework,
)
from src.core.context.engine_context import EngineContext
from src.core.domain.exceptions import DegenerateComparison, MissingParameter, UnknownFramework
from src.dilemma.domain.dilemma_models import Dilemma


# Rule cut-offs on the 0..10 scales used by care and virtue parameters.
HIGH_SCORE = 7.0


@dataclass(frozen=True)
class FrameworkDecision:
    action: str
    justification: str
    warnings: List[AnalysisWarning] = field(default_factory=list)


def _fmt(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


def _ratio_text(a: float, b: float) -> str:
    high, low = max(a, b), min(a, b)
    if low == 0:
        return "∞"
    return f"{high / low:.1f}"


def comparison_text(a: float, b: float, metric: str, equal_clause: str, higher_clause: str) -> str:
    if a == b:
        return f"Equal {metric} values ({_fmt(a)} vs {_fmt(b)}) {equal_clause}."
    higher = "A" if a > b else "B"
    return (
        f"Option {higher} has {_ratio_text(a, b)}x higher {metric} "
        f"({_fmt(max(a, b))} vs {_fmt(min(a, b))}) {higher_clause}."
    )


class FrameworkEvaluator:
    """
    Deterministic per-framework rule evaluation.
    Pure function of (dilemma, framework): missing parameters read as 0 and
    degenerate comparisons break toward a fixed option, both recorded as
    warnings. With strict=True they raise instead.
    """

    def __init__(self, context: EngineContext, strict: bool = False):
        self.context = context
        self.strict = strict
        self._rules: Dict[Framework, Callable[[Dilemma, List[AnalysisWarning]], Tuple[str, str]]] = {
            Framework.UTILITARIAN: self._utilitarian,
            Framework.JUSTICE: self._justice,
            Framework.DEONTOLOGY: self._deontology,
            Framework.CARE_ETHICS: self._care_ethics,
            Framework.VIRTUE_ETHICS: self._virtue_ethics,
        }

    def evaluate(self, dilemma: Dilemma, framework: str) -> FrameworkRecommendation:
        decision = self.decide(dilemma, framework)
        return FrameworkRecommendation(
            framework=framework,
            recommended_action=decision.action,
            justification=decision.justification,
            warnings=list(decision.warnings),
        )

    def recommend_action(self, dilemma: Dilemma, framework: str) -> str:
        return self.decide(dilemma, framework).action

    def decide(self, dilemma: Dilemma, framework: str) -> FrameworkDecision:
        try:
            key = Framework(framework)
        except ValueError:
            raise UnknownFramework(f"Unsupported framework: {framework}")

        warnings: List[AnalysisWarning] = []
        internal_action, justification = self._rules[key](dilemma, warnings)
        action = self.context.action_mapper.to_dilemma_action(internal_action)
        return FrameworkDecision(action=action, justification=justification, warnings=warnings)

    # --- Parameter access ---

    def _read(self, dilemma: Dilemma, framework: Framework, canonical: str, warnings: List[AnalysisWarning]) -> float:
        value, resolved = self.context.parameter_mapping.lookup(dilemma, canonical)
        if value is not None:
            return value
        self._warn(
            warnings,
            MissingParameter(f"{framework.value}: parameter '{resolved}' missing or non-numeric, using 0"),
            WarningKind.MISSING_PARAMETER,
            framework,
            resolved,
        )
        return 0.0

    def _warn(
        self,
        warnings: List[AnalysisWarning],
        error: Exception,
        kind: WarningKind,
        framework: Framework,
        parameter: Optional[str] = None,
    ) -> None:
        if self.strict:
            raise error
        warnings.append(
            AnalysisWarning(kind=kind, message=str(error), framework=framework.value, parameter=parameter)
        )

    def _degenerate(self, warnings: List[AnalysisWarning], framework: Framework, message: str) -> None:
        self._warn(warnings, DegenerateComparison(message), WarningKind.DEGENERATE_COMPARISON, framework)

    # --- Rules ---

    def _utilitarian(self, dilemma: Dilemma, warnings: List[AnalysisWarning]) -> Tuple[str, str]:
        fw = Framework.UTILITARIAN
        pop_a = self._read(dilemma, fw, "population_served_option_a", warnings)
        ben_a = self._read(dilemma, fw, "benefit_per_person_option_a", warnings)
        pop_b = self._read(dilemma, fw, "population_served_option_b", warnings)
        ben_b = self._read(dilemma, fw, "benefit_per_person_option_b", warnings)

        total_a = pop_a * ben_a
        total_b = pop_b * ben_b
        text = comparison_text(
            total_a, total_b, "total benefit",
            "lead to a default recommendation based on secondary considerations",
            "indicating greater overall benefit",
        )

        if total_a == 0 and total_b == 0:
            self._degenerate(warnings, fw, "Both options have zero total benefit; defaulting to option A")
            return APPROVE_OPTION_A, text + " Defaulting to option A."

        return (APPROVE_OPTION_A if total_a > total_b else APPROVE_OPTION_B), text

    def _justice(self, dilemma: Dilemma, warnings: List[AnalysisWarning]) -> Tuple[str, str]:
        fw = Framework.JUSTICE
        pop_a = self._read(dilemma, fw, "population_served_option_a", warnings)
        pop_b = self._read(dilemma, fw, "population_served_option_b", warnings)
        text = comparison_text(
            pop_a, pop_b, "population served",
            "shift the focus to fair process rather than outcomes",
            "serving more people fairly",
        )

        if pop_a == 0 and pop_b == 0:
            self._degenerate(warnings, fw, "Both options serve zero people; defaulting to option A")
            return APPROVE_OPTION_A, text + " Defaulting to option A."

        return (APPROVE_OPTION_A if pop_a > pop_b else APPROVE_OPTION_B), text

    def _deontology(self, dilemma: Dilemma, warnings: List[AnalysisWarning]) -> Tuple[str, str]:
        fw = Framework.DEONTOLOGY
        urgency_a = self._read(dilemma, fw, "urgency_option_a", warnings)
        urgency_b = self._read(dilemma, fw, "urgency_option_b", warnings)
        text = comparison_text(
            urgency_a, urgency_b, "urgency",
            "require deliberation to fulfill competing moral duties",
            "presenting stronger moral obligation",
        )

        if urgency_a == 0 and urgency_b == 0:
            self._degenerate(warnings, fw, "Both options have zero urgency; negotiating compromises")
        if urgency_a > urgency_b:
            return APPROVE_OPTION_A, text
        if urgency_b > urgency_a:
            return APPROVE_OPTION_B, text
        return NEGOTIATE_COMPROMISES, text

    def _care_ethics(self, dilemma: Dilemma, warnings: List[AnalysisWarning]) -> Tuple[str, str]:
        fw = Framework.CARE_ETHICS
        risk = self._read(dilemma, fw, "deportation_risk", warnings)
        care = self._read(dilemma, fw, "specialized_care_importance", warnings)

        if risk == 0 and care == 0:
            self._degenerate(warnings, fw, "No care signal (risk and care importance are zero); negotiating compromises")

        if risk > HIGH_SCORE:
            return NEGOTIATE_COMPROMISES, (
                f"High deportation risk ({_fmt(risk)}) threatens critical care relationships; "
                f"negotiation protects the people most exposed."
            )
        if care > HIGH_SCORE:
            return APPROVE_OPTION_A, (
                f"Specialized care importance ({_fmt(care)}) shows option A supporting critical care relationships."
            )
        return NEGOTIATE_COMPROMISES, (
            f"Moderate care signals (risk {_fmt(risk)}, care importance {_fmt(care)}) "
            f"suggest a balanced approach to care relationships."
        )

    def _virtue_ethics(self, dilemma: Dilemma, warnings: List[AnalysisWarning]) -> Tuple[str, str]:
        fw = Framework.VIRTUE_ETHICS
        care = self._read(dilemma, fw, "specialized_care_importance", warnings)
        opinion = self._read(dilemma, fw, "public_opinion", warnings)
        urgency_b = self._read(dilemma, fw, "urgency_option_b", warnings)

        if care == 0 and opinion == 0 and urgency_b == 0:
            self._degenerate(warnings, fw, "No virtue signal (care, opinion and urgency are zero); negotiating compromises")

        balance = (care + opinion) / 2
        if balance > HIGH_SCORE:
            return NEGOTIATE_COMPROMISES, (
                f"Character virtues of compassion and practical wisdom suggest negotiation "
                f"(virtue balance {_fmt(balance)})."
            )
        if urgency_b > HIGH_SCORE:
            return APPROVE_OPTION_B, (
                f"Virtue of courage suggests taking decisive action in urgent situations "
                f"(urgency {_fmt(urgency_b)})."
            )
        return NEGOTIATE_COMPROMISES, (
            "Character virtues of compassion and practical wisdom suggest negotiation."
        )
