from typing import Dict, Optional, Tuple

from src.dilemma.domain.dilemma_models import Dilemma


# Canonical framework parameter name -> dilemma parameter name, keyed by dilemma id.
BUILTIN_PARAMETER_TABLES: Dict[str, Dict[str, str]] = {
    "trump_border_security_dilemma_2025": {
        "population_served_option_a": "humanitarian_benefit",
        "benefit_per_person_option_a": "bipartisan_value",
        "population_served_option_b": "public_opinion",
        "benefit_per_person_option_b": "political_benefit",
        "urgency_option_a": "base_alienation",
        "urgency_option_b": "deportation_expansion",
        "deportation_risk": "deportation_expansion",
        "specialized_care_importance": "humanitarian_benefit",
    },
}


class ParameterMapping:
    """
    Resolves the canonical parameter names used by framework rules against a
    dilemma's own parameter vocabulary.
    """

    def __init__(self, aliases: Optional[Dict[str, str]] = None):
        self._aliases = dict(aliases or {})

    @classmethod
    def for_dilemma(cls, dilemma: Dilemma) -> "ParameterMapping":
        aliases = dict(BUILTIN_PARAMETER_TABLES.get(dilemma.id, {}))
        aliases.update(dilemma.parameter_mapping)
        return cls(aliases)

    def resolve_name(self, canonical: str) -> str:
        return self._aliases.get(canonical, canonical)

    def canonical_names_for(self, dilemma_name: str) -> Tuple[str, ...]:
        names = tuple(k for k, v in self._aliases.items() if v == dilemma_name)
        return names or (dilemma_name,)

    def lookup(self, dilemma: Dilemma, canonical: str) -> Tuple[Optional[float], str]:
        """
        Returns (numeric value or None when missing/non-numeric, resolved name).
        """
        name = self.resolve_name(canonical)
        param = dilemma.parameter(name)
        if param is None and name != canonical:
            name = canonical
            param = dilemma.parameter(canonical)
        if param is None or not param.is_numeric:
            return None, name
        return float(param.value), name
