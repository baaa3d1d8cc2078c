from dataclasses import dataclass, field, replace
from typing import Any, Dict, FrozenSet, List, Optional, Union


ParameterValue = Union[float, str]


@dataclass(frozen=True)
class Parameter:
    value: ParameterValue
    description: str = ""

    @property
    def is_numeric(self) -> bool:
        return isinstance(self.value, (int, float)) and not isinstance(self.value, bool)


@dataclass(frozen=True)
class Stakeholder:
    id: str
    name: str
    concerns: FrozenSet[str] = field(default_factory=frozenset)
    influence: float = 0.5


@dataclass(frozen=True)
class ContextualFactor:
    factor: str
    value: Any = None
    relevance: Any = None
    explanation: str = ""


@dataclass(frozen=True)
class PossibleAction:
    id: str
    description: str = ""


@dataclass(frozen=True)
class Dilemma:
    """
    Immutable snapshot of a decision scenario.
    Threshold search derives trial copies through with_parameter(); the
    original snapshot is never modified.
    """
    id: str
    title: str = ""
    description: str = ""
    parameters: Dict[str, Parameter] = field(default_factory=dict)
    stakeholders: List[Stakeholder] = field(default_factory=list)
    frameworks: List[str] = field(default_factory=list)
    contextual_factors: List[ContextualFactor] = field(default_factory=list)
    possible_actions: List[PossibleAction] = field(default_factory=list)
    parameter_mapping: Dict[str, str] = field(default_factory=dict)
    action_mapping: Dict[str, str] = field(default_factory=dict)
    # action -> stakeholder id -> impact (negative is harm)
    impacts: Dict[str, Dict[str, float]] = field(default_factory=dict)

    def parameter(self, name: str) -> Optional[Parameter]:
        return self.parameters.get(name)

    def numeric_parameters(self) -> Dict[str, float]:
        return {
            name: float(param.value)
            for name, param in self.parameters.items()
            if param.is_numeric
        }

    def with_parameter(self, name: str, value: ParameterValue) -> "Dilemma":
        current = self.parameters.get(name)
        description = current.description if current else ""
        parameters = dict(self.parameters)
        parameters[name] = Parameter(value=value, description=description)
        return replace(self, parameters=parameters)

    def factor(self, name: str) -> Optional[ContextualFactor]:
        wanted = name.lower()
        for item in self.contextual_factors:
            if item.factor.lower() == wanted:
                return item
        return None

    def text_corpus(self) -> str:
        chunks = [self.title, self.description]
        chunks.extend(f.factor for f in self.contextual_factors)
        chunks.extend(f.explanation for f in self.contextual_factors)
        chunks.extend(str(f.value) for f in self.contextual_factors if isinstance(f.value, str))
        return " ".join(c for c in chunks if c).lower()


def _first(payload: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in payload and payload[key] is not None:
            return payload[key]
    return default


def _as_list(raw: Any) -> List[Any]:
    if isinstance(raw, str):
        return [raw]
    if isinstance(raw, list):
        return raw
    return []


def _as_mapping(raw: Any) -> Dict[str, str]:
    if not isinstance(raw, dict):
        return {}
    return {str(k): str(v) for k, v in raw.items() if not isinstance(v, (dict, list))}


def _as_impacts(raw: Any) -> Dict[str, Dict[str, float]]:
    if not isinstance(raw, dict):
        return {}
    impacts: Dict[str, Dict[str, float]] = {}
    for action, per_stakeholder in raw.items():
        if not isinstance(per_stakeholder, dict):
            continue
        values = {}
        for stakeholder_id, impact in per_stakeholder.items():
            if isinstance(impact, dict):
                impact = impact.get("value")
            if isinstance(impact, (int, float)) and not isinstance(impact, bool):
                values[str(stakeholder_id)] = float(impact)
        impacts[str(action)] = values
    return impacts


def _coerce_value(raw: Any) -> ParameterValue:
    if isinstance(raw, bool):
        return str(raw).lower()
    if isinstance(raw, (int, float)):
        return float(raw)
    return str(raw)


def parameter_from_payload(raw: Any) -> Parameter:
    if isinstance(raw, dict):
        return Parameter(
            value=_coerce_value(raw.get("value", 0)),
            description=str(raw.get("description", "")),
        )
    return Parameter(value=_coerce_value(raw))


def stakeholder_from_payload(payload: Dict[str, Any], index: int) -> Stakeholder:
    concerns = _as_list(_first(payload, "concerns", "interests", default=[]))
    try:
        influence = float(payload.get("influence", 0.5))
    except (TypeError, ValueError):
        influence = 0.5
    name = str(payload.get("name", payload.get("id", f"stakeholder_{index}")))
    return Stakeholder(
        id=str(payload.get("id", name)),
        name=name,
        concerns=frozenset(str(c).lower() for c in concerns if not isinstance(c, (dict, list))),
        influence=influence,
    )


def contextual_factor_from_payload(payload: Any) -> Optional[ContextualFactor]:
    if isinstance(payload, str):
        return ContextualFactor(factor=payload)
    if not isinstance(payload, dict):
        return None
    return ContextualFactor(
        factor=str(payload.get("factor", payload.get("name", ""))),
        value=payload.get("value"),
        relevance=payload.get("relevance"),
        explanation=str(payload.get("explanation", "")),
    )


def possible_action_from_payload(payload: Any) -> Optional[PossibleAction]:
    if isinstance(payload, str):
        return PossibleAction(id=payload)
    if not isinstance(payload, dict):
        return None
    return PossibleAction(
        id=str(payload.get("id", payload.get("action", ""))),
        description=str(payload.get("description", "")),
    )


def dilemma_from_payload(payload: Dict[str, Any]) -> Dilemma:
    """
    Lenient parser: nested values of the wrong shape are dropped rather
    than rejected, and the validator reports what is left missing.
    """
    raw_parameters = payload.get("parameters") or {}
    if not isinstance(raw_parameters, dict):
        raw_parameters = {}

    stakeholders = _as_list(_first(payload, "stakeholders", default=[]))
    factors = _as_list(_first(payload, "contextual_factors", "contextualFactors", default=[]))
    actions = _as_list(_first(payload, "possible_actions", "possibleActions", default=[]))
    frameworks = _as_list(payload.get("frameworks"))

    action_mapping = _first(payload, "action_mapping", "actionMapping", default={})
    if isinstance(action_mapping, dict) and "framework_to_dilemma" in action_mapping:
        action_mapping = action_mapping["framework_to_dilemma"]

    parsed_factors = [contextual_factor_from_payload(f) for f in factors]
    parsed_actions = [possible_action_from_payload(a) for a in actions]
    return Dilemma(
        id=str(payload.get("id", "")),
        title=str(payload.get("title", "")),
        description=str(payload.get("description", "")),
        parameters={str(k): parameter_from_payload(v) for k, v in raw_parameters.items()},
        stakeholders=[stakeholder_from_payload(s, i) for i, s in enumerate(stakeholders) if isinstance(s, dict)],
        frameworks=[str(f).strip().lower() for f in frameworks if isinstance(f, str)],
        contextual_factors=[f for f in parsed_factors if f is not None],
        possible_actions=[a for a in parsed_actions if a is not None],
        parameter_mapping=_as_mapping(_first(payload, "parameter_mapping", "parameterMapping", default={})),
        action_mapping=_as_mapping(action_mapping),
        impacts=_as_impacts(payload.get("impacts")),
    )
