import re
from abc import ABC, abstractmethod
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple


STOPWORDS = frozenset({
    "the", "and", "for", "with", "that", "this", "from", "are", "was", "has", "have",
    "not", "but", "its", "into", "than", "more", "less", "option", "vs", "which", "their",
})

# Category -> keyword stems. A token matches a stem when it starts with it.
CATEGORY_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "core_value": (
        "duty", "right", "obligat", "virtue", "character", "care", "caring", "relationship",
        "fair", "justice", "dignity", "autonomy", "compassion", "wisdom", "integrity", "moral",
    ),
    "quantitative": (
        "population", "benefit", "total", "higher", "ratio", "number", "people", "served",
        "urgency", "risk", "percent", "count",
    ),
    "duty": ("duty", "duties", "obligat", "must", "right", "moral", "principle", "constraint", "urgen"),
    "utility": ("benefit", "welfare", "total", "population", "outcome", "greater", "maximi", "utility"),
    "virtue": ("virtue", "character", "courage", "compassion", "wisdom", "integrity", "prudence", "moderation"),
    "consequence": ("result", "outcome", "lead", "benefit", "harm", "impact", "effect", "consequen"),
    "care": ("care", "caring", "relationship", "vulnerab", "needs", "compassion", "support"),
    "justice": ("fair", "justice", "equal", "distribut", "served", "impartial", "equit"),
}

_TOKEN = re.compile(r"[a-z][a-z_]+")
_SENTENCE = re.compile(r"(?<=[.!?;])\s+")


class TextClassifier(ABC):
    """
    Heuristic text scoring used for conflict nature and hybrid reasoning.
    Implementations are expected to produce false positives and negatives;
    downstream stages bound their impact (sensitivity cutoff, action re-checks).
    """

    @abstractmethod
    def classify(self, text: str, categories: Optional[Sequence[str]] = None) -> str:
        """First of `categories` (in priority order) with a keyword hit, else "general"."""
        pass

    @abstractmethod
    def keywords(self, text: str) -> FrozenSet[str]:
        pass

    @abstractmethod
    def category_hits(self, text: str, category: str) -> FrozenSet[str]:
        pass

    def tag_sentences(self, text: str, category: str) -> List[str]:
        return [s for s in split_sentences(text) if self.category_hits(s, category)]


def split_sentences(text: str) -> List[str]:
    return [s.strip() for s in _SENTENCE.split(text or "") if s.strip()]


class KeywordTextClassifier(TextClassifier):
    def __init__(self, categories: Optional[Dict[str, Tuple[str, ...]]] = None):
        self._categories = dict(categories or CATEGORY_KEYWORDS)

    def keywords(self, text: str) -> FrozenSet[str]:
        tokens = _TOKEN.findall((text or "").lower())
        return frozenset(t for t in tokens if len(t) > 2 and t not in STOPWORDS)

    def category_hits(self, text: str, category: str) -> FrozenSet[str]:
        stems = self._categories.get(category, ())
        return frozenset(
            token for token in self.keywords(text)
            if any(token.startswith(stem) for stem in stems)
        )

    def classify(self, text: str, categories: Optional[Sequence[str]] = None) -> str:
        for category in categories or tuple(self._categories):
            if self.category_hits(text, category):
                return category
        return "general"
