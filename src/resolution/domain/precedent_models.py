from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass(frozen=True)
class Precedent:
    id: str
    title: str
    description: str
    dimensions: List[str] = field(default_factory=list)
    keywords: List[str] = field(default_factory=list)
    outcome: str = ""
    reasoning: str = ""
    favored_frameworks: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class PrecedentMatch:
    id: str
    title: str
    similarity: float
    resolution_summary: str
    favored_frameworks: List[str] = field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "similarity": self.similarity,
            "resolution_summary": self.resolution_summary,
            "favored_frameworks": list(self.favored_frameworks),
        }


def precedent_from_payload(payload: Dict[str, Any]) -> Precedent:
    return Precedent(
        id=str(payload.get("id", "")),
        title=str(payload.get("title", "")),
        description=str(payload.get("description", "")),
        dimensions=[str(d) for d in payload.get("dimensions") or payload.get("ethical_dimensions") or []],
        keywords=[str(k) for k in payload.get("keywords") or payload.get("similarity_keywords") or []],
        outcome=str(payload.get("outcome", "")),
        reasoning=str(payload.get("reasoning", "")),
        favored_frameworks=[str(f) for f in payload.get("favored_frameworks") or []],
    )


def match_from_payload(payload: Dict[str, Any]) -> PrecedentMatch:
    return PrecedentMatch(
        id=str(payload.get("id", payload.get("caseId", ""))),
        title=str(payload.get("title", "")),
        similarity=float(payload.get("similarity", 0.0)),
        resolution_summary=str(payload.get("resolution_summary", payload.get("resolution", ""))),
        favored_frameworks=[str(f) for f in payload.get("favored_frameworks") or []],
    )


BUILTIN_PRECEDENTS: List[Precedent] = [
    Precedent(
        id="precedent_medical_autonomy_1",
        title="Patient Autonomy vs. Medical Benefit",
        description="Case involving patient refusal of life-saving treatment based on personal beliefs",
        dimensions=["autonomy", "beneficence", "medical_ethics"],
        keywords=["medical", "autonomy", "treatment", "refusal", "beliefs"],
        outcome="respect_autonomy",
        reasoning="Respect for patient autonomy was prioritized over medical benefit in this case.",
        favored_frameworks=["deontology"],
    ),
    Precedent(
        id="precedent_resource_allocation_1",
        title="Limited Resource Allocation",
        description="Case involving fair distribution of limited medical resources",
        dimensions=["justice", "utility", "fairness"],
        keywords=["resources", "allocation", "scarcity", "distribution", "fairness"],
        outcome="utilitarian_distribution",
        reasoning="Utilitarian principles were applied to maximize overall benefit.",
        favored_frameworks=["utilitarian", "justice"],
    ),
    Precedent(
        id="precedent_privacy_security_1",
        title="Privacy vs. Security",
        description="Case involving surveillance and privacy concerns",
        dimensions=["privacy", "security", "rights"],
        keywords=["privacy", "security", "surveillance", "rights", "balance"],
        outcome="balanced_approach",
        reasoning="A balanced approach respecting privacy while maintaining necessary security was adopted.",
        favored_frameworks=[],
    ),
]

# Returned when a lookup times out, fails, or finds nothing above the cutoff.
FALLBACK_PRECEDENTS: List[PrecedentMatch] = [
    PrecedentMatch(
        id="case-2022-17",
        title="Community Health Resource Allocation",
        similarity=0.82,
        resolution_summary="Balanced access with special provisions for vulnerable populations",
        favored_frameworks=["care_ethics", "justice"],
    ),
    PrecedentMatch(
        id="case-2021-09",
        title="Healthcare Privacy vs. Public Health",
        similarity=0.74,
        resolution_summary="Tiered information sharing with consent mechanisms",
        favored_frameworks=["deontology"],
    ),
]
