from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Tuple


class Framework(Enum):
    UTILITARIAN = "utilitarian"
    DEONTOLOGY = "deontology"
    VIRTUE_ETHICS = "virtue_ethics"
    CARE_ETHICS = "care_ethics"
    JUSTICE = "justice"


# Framework-internal action vocabulary. Dilemma-specific ids are produced by
# the action mapper.
APPROVE_OPTION_A = "approve_option_a"
APPROVE_OPTION_B = "approve_option_b"
NEGOTIATE_COMPROMISES = "negotiate_compromises"
NO_ACTION = "no_action"

DEFAULT_FRAMEWORKS: Tuple[str, ...] = (
    Framework.UTILITARIAN.value,
    Framework.JUSTICE.value,
    Framework.DEONTOLOGY.value,
    Framework.CARE_ETHICS.value,
    Framework.VIRTUE_ETHICS.value,
)


@dataclass(frozen=True)
class FrameworkProfile:
    name: str
    methodology: str
    core_values: List[str] = field(default_factory=list)
    dimensions: List[str] = field(default_factory=list)
    required_parameters: List[str] = field(default_factory=list)
    conflict_phrase: str = ""


FRAMEWORK_PROFILES: Dict[str, FrameworkProfile] = {
    Framework.UTILITARIAN.value: FrameworkProfile(
        name=Framework.UTILITARIAN.value,
        methodology="consequentialist",
        core_values=["welfare", "utility", "outcomes"],
        dimensions=["consequences", "benefit", "harm", "utility", "welfare"],
        required_parameters=[
            "population_served_option_a",
            "benefit_per_person_option_a",
            "population_served_option_b",
            "benefit_per_person_option_b",
        ],
        conflict_phrase="maximizing overall benefit",
    ),
    Framework.DEONTOLOGY.value: FrameworkProfile(
        name=Framework.DEONTOLOGY.value,
        methodology="rule-based",
        core_values=["duty", "rights", "obligation"],
        dimensions=["duty", "rights", "autonomy", "dignity", "principles"],
        required_parameters=["urgency_option_a", "urgency_option_b"],
        conflict_phrase="respecting individual rights and duties",
    ),
    Framework.VIRTUE_ETHICS.value: FrameworkProfile(
        name=Framework.VIRTUE_ETHICS.value,
        methodology="character-based",
        core_values=["character", "virtue", "wisdom"],
        dimensions=["character", "virtue", "excellence", "flourishing", "wisdom"],
        required_parameters=["specialized_care_importance", "public_opinion", "urgency_option_b"],
        conflict_phrase="cultivating virtuous character",
    ),
    Framework.CARE_ETHICS.value: FrameworkProfile(
        name=Framework.CARE_ETHICS.value,
        methodology="relational",
        core_values=["care", "relationships", "compassion"],
        dimensions=["care", "relationships", "vulnerability", "context", "needs"],
        required_parameters=["deportation_risk", "specialized_care_importance"],
        conflict_phrase="maintaining caring relationships and contextual care",
    ),
    Framework.JUSTICE.value: FrameworkProfile(
        name=Framework.JUSTICE.value,
        methodology="fairness-based",
        core_values=["fairness", "equality", "impartiality"],
        dimensions=["fairness", "equality", "distribution", "impartiality", "desert"],
        required_parameters=["population_served_option_a", "population_served_option_b"],
        conflict_phrase="ensuring fair distribution and impartial treatment",
    ),
}


def profile_for(framework: str) -> FrameworkProfile:
    profile = FRAMEWORK_PROFILES.get(framework)
    if profile is None:
        return FrameworkProfile(name=framework, methodology="unspecified", conflict_phrase=framework)
    return profile


def is_known_framework(framework: str) -> bool:
    return framework in FRAMEWORK_PROFILES
