from typing import Dict, Iterable, Optional, Sequence

from src.dilemma.domain.dilemma_models import Dilemma
from src.dilemma.services.context_signals import ContextSignals
from src.dilemma.services.parameter_mapping import ParameterMapping


BASE_WEIGHT = 0.5

UTILITARIAN_PARAMS = ("population_served", "people_affected", "total_benefit")
DEONTOLOGY_PARAMS = ("rights_violation", "moral_duty", "legal_requirement")
VIRTUE_PARAMS = ("integrity", "character", "virtue", "public_opinion")
JUSTICE_PARAMS = ("fairness", "equity", "equality", "discrimination")
MARGINALIZED_MARKERS = ("marginal", "minorit", "disadvantag")


def _has_parameter(names: Iterable[str], markers: Sequence[str]) -> bool:
    return any(m in name for name in names for m in markers)


def _parameter_names(dilemma: Dilemma, mapping: Optional[ParameterMapping]) -> set:
    names = set(dilemma.parameters.keys())
    if mapping is not None:
        for name in list(names):
            names.update(mapping.canonical_names_for(name))
    return names


def normalized_urgency(signals: ContextSignals) -> float:
    # Urgency parameters are authored either on 0..1 or on 0..10.
    if signals.max_urgency > 1.0:
        return min(1.0, signals.max_urgency / 10.0)
    return signals.max_urgency


def contextual_weight(
    framework: str,
    dilemma: Dilemma,
    signals: ContextSignals,
    mapping: Optional[ParameterMapping] = None,
) -> float:
    names = _parameter_names(dilemma, mapping)
    weight = BASE_WEIGHT

    if framework == "utilitarian":
        if _has_parameter(names, UTILITARIAN_PARAMS):
            weight += 0.2
    elif framework == "deontology":
        if _has_parameter(names, DEONTOLOGY_PARAMS):
            weight += 0.2
        if normalized_urgency(signals) > 0.7:
            weight += 0.1
    elif framework == "care_ethics":
        if signals.vulnerable_stakeholders:
            weight += 0.3
    elif framework == "virtue_ethics":
        if _has_parameter(names, VIRTUE_PARAMS):
            weight += 0.2
    elif framework == "justice":
        if _has_parameter(names, JUSTICE_PARAMS):
            weight += 0.2
        stakeholder_text = " ".join(s.name.lower() for s in dilemma.stakeholders)
        if any(m in stakeholder_text for m in MARGINALIZED_MARKERS):
            weight += 0.2

    return round(min(1.0, weight), 4)


def contextual_weights(
    frameworks: Iterable[str],
    dilemma: Dilemma,
    signals: ContextSignals,
    mapping: Optional[ParameterMapping] = None,
) -> Dict[str, float]:
    return {fw: contextual_weight(fw, dilemma, signals, mapping) for fw in frameworks}


def rule_priority(signals: ContextSignals) -> Optional[str]:
    """
    Framework favoured by hard contextual rules, in precedence order:
    life at stake, vulnerable populations, high urgency.
    """
    if signals.life_critical:
        return "deontology"
    if signals.vulnerable:
        return "care_ethics"
    if signals.max_urgency > 7:
        return "utilitarian"
    return None


def priority_framework(
    participants: Sequence[str],
    dilemma: Dilemma,
    signals: ContextSignals,
    mapping: Optional[ParameterMapping] = None,
) -> str:
    ruled = rule_priority(signals)
    if ruled in participants:
        return ruled
    weights = contextual_weights(participants, dilemma, signals, mapping)
    # max() keeps the first participant on ties
    return max(participants, key=lambda fw: weights[fw])
