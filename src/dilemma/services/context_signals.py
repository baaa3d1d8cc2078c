import re
from dataclasses import dataclass, field
from typing import List, Optional

from src.dilemma.domain.dilemma_models import Dilemma
from src.dilemma.services.parameter_mapping import ParameterMapping


VULNERABLE_MARKERS = ("vulnerab", "migrant", "patient", "child", "elderly", "refugee", "marginal", "minorit", "disadvantag")
MIGRATION_MARKERS = ("migra", "immigra", "deport", "border", "asylum")
RESOURCE_MARKERS = ("resource", "scarc", "allocation", "budget", "shortage")
COMMUNITY_MARKERS = ("community", "public_trust", "social_cohesion")
INSTITUTION_MARKERS = ("institution", "process", "procedur", "policy", "legal", "committee", "legislat")
PRECEDENT_MARKERS = ("precedent", "similar case", "prior case", "past case", "case law")
THEORY_MARKERS = ("theory", "theoretical", "meta-ethic", "metaethic")
MEDICAL_PARAMETERS = (
    "life_at_stake", "quality_of_life", "treatment_success",
    "patient_capacity", "medical_resources", "triage_score",
)
MEDICAL_TERMS = re.compile(r"\b(medical|health|patient|hospital|treatment|diagnos|care|doctor|nurse|therap|clinic)")


def _mentions(text: str, markers) -> bool:
    return any(m in text for m in markers)


@dataclass(frozen=True)
class ContextSignals:
    """
    Boolean and numeric cues read from contextual factors and stakeholders.
    Computed once per dilemma and shared by detection, selection and resolution.
    """
    life_at_stake: float = 0.0
    max_urgency: float = 0.0
    vulnerable: bool = False
    vulnerable_stakeholders: List[str] = field(default_factory=list)
    migration: bool = False
    resource_scarcity: bool = False
    community: bool = False
    institutional_process: bool = False
    precedent_reference: bool = False
    theory_reference: bool = False
    stakeholder_count: int = 0
    medical: bool = False

    @property
    def life_critical(self) -> bool:
        return self.life_at_stake > 0.5


def _numeric_factor(dilemma: Dilemma, name: str) -> float:
    factor = dilemma.factor(name)
    if factor is not None:
        for candidate in (factor.value, factor.relevance):
            if isinstance(candidate, (int, float)) and not isinstance(candidate, bool):
                return float(candidate)
    param = dilemma.parameter(name)
    if param is not None and param.is_numeric:
        return float(param.value)
    return 0.0


def _factor_text(dilemma: Dilemma) -> str:
    chunks = []
    for f in dilemma.contextual_factors:
        chunks.append(f.factor)
        chunks.append(f.explanation)
        if isinstance(f.value, str):
            chunks.append(f.value)
    return " ".join(c for c in chunks if c).lower()


def is_medical(dilemma: Dilemma) -> bool:
    if any(name in dilemma.parameters for name in MEDICAL_PARAMETERS):
        return True
    return MEDICAL_TERMS.search(dilemma.text_corpus()) is not None


def read_signals(dilemma: Dilemma, mapping: Optional[ParameterMapping] = None) -> ContextSignals:
    mapping = mapping or ParameterMapping.for_dilemma(dilemma)
    factor_text = _factor_text(dilemma)

    urgencies = []
    for canonical in ("urgency_option_a", "urgency_option_b", "urgency"):
        value, _ = mapping.lookup(dilemma, canonical)
        if value is not None:
            urgencies.append(value)

    vulnerable_stakeholders = []
    for s in dilemma.stakeholders:
        text = " ".join([s.name, s.id] + sorted(s.concerns)).lower()
        if _mentions(text, VULNERABLE_MARKERS):
            vulnerable_stakeholders.append(s.name)

    return ContextSignals(
        life_at_stake=_numeric_factor(dilemma, "life_at_stake"),
        max_urgency=max(urgencies) if urgencies else 0.0,
        vulnerable=bool(vulnerable_stakeholders) or _mentions(factor_text, ("vulnerab",)),
        vulnerable_stakeholders=vulnerable_stakeholders,
        migration=_mentions(factor_text, MIGRATION_MARKERS),
        resource_scarcity=_mentions(factor_text, RESOURCE_MARKERS),
        community=_mentions(factor_text, COMMUNITY_MARKERS),
        institutional_process=_mentions(factor_text, INSTITUTION_MARKERS),
        precedent_reference=_mentions(factor_text, PRECEDENT_MARKERS),
        theory_reference=_mentions(factor_text, THEORY_MARKERS),
        stakeholder_count=len(dilemma.stakeholders),
        medical=is_medical(dilemma),
    )
