from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from src.dilemma.domain.dilemma_models import Dilemma
from src.resolution.domain.precedent_models import BUILTIN_PRECEDENTS, Precedent, PrecedentMatch


class PrecedentSource(ABC):
    """
    Read-only ranked lookup of past cases similar to a dilemma.
    """

    @abstractmethod
    def find_similar(self, dilemma: Dilemma, min_similarity: float) -> List[PrecedentMatch]:
        pass


def dilemma_search_text(dilemma: Dilemma) -> str:
    chunks = [dilemma.title, dilemma.description]
    chunks.extend(f.factor for f in dilemma.contextual_factors)
    chunks.extend(f.explanation for f in dilemma.contextual_factors)
    chunks.extend(dilemma.parameters.keys())
    for stakeholder in dilemma.stakeholders:
        chunks.append(stakeholder.name)
        chunks.extend(stakeholder.concerns)
    return " ".join(c for c in chunks if c).lower().replace("_", " ")


def precedent_similarity(precedent: Precedent, dilemma: Dilemma) -> float:
    """
    0.1 per precedent keyword found in the dilemma text, plus 0.15 per
    shared ethical dimension, capped at 1.0.
    """
    corpus = dilemma_search_text(dilemma)
    score = 0.0
    for keyword in precedent.keywords:
        if keyword.lower() in corpus:
            score += 0.1
    for dimension in precedent.dimensions:
        if dimension.lower().replace("_", " ") in corpus:
            score += 0.15
    return round(min(1.0, score), 4)


def rank_precedents(
    precedents: Iterable[Precedent],
    dilemma: Dilemma,
    min_similarity: float,
    limit: Optional[int] = None,
) -> List[PrecedentMatch]:
    matches: List[PrecedentMatch] = []
    for precedent in precedents:
        similarity = precedent_similarity(precedent, dilemma)
        if similarity < min_similarity:
            continue
        matches.append(
            PrecedentMatch(
                id=precedent.id,
                title=precedent.title,
                similarity=similarity,
                resolution_summary=precedent.reasoning,
                favored_frameworks=list(precedent.favored_frameworks),
            )
        )
    matches.sort(key=lambda m: (-m.similarity, m.id))
    return matches[:limit] if limit else matches


class StaticPrecedentSource(PrecedentSource):
    def __init__(self, precedents: Optional[List[Precedent]] = None):
        self._precedents = list(precedents if precedents is not None else BUILTIN_PRECEDENTS)

    def find_similar(self, dilemma: Dilemma, min_similarity: float) -> List[PrecedentMatch]:
        return rank_precedents(self._precedents, dilemma, min_similarity)
