from dataclasses import dataclass, field
from typing import Dict

ORIGINAL_WEIGHTS_KEY = "_original_weights"


@dataclass(frozen=True)
class NormalizedWeights:
    weights: Dict[str, float] = field(default_factory=dict)
    original: Dict[str, float] = field(default_factory=dict)


def _apply_floor(normalized: Dict[str, float], floor: float) -> Dict[str, float]:
    result = dict(normalized)
    pinned: Dict[str, float] = {}
    while True:
        free = {k: v for k, v in result.items() if k not in pinned}
        below = [k for k, v in free.items() if v < floor]
        if not below:
            return result
        for key in below:
            pinned[key] = floor
        remaining = 1.0 - floor * len(pinned)
        free = {k: v for k, v in result.items() if k not in pinned}
        free_total = sum(free.values())
        for key, value in free.items():
            result[key] = remaining * (value / free_total) if free_total > 0 else remaining / len(free)
        result.update(pinned)


def normalize_weights(raw: Dict[str, float], floor: float = 0.15, precision: int = 2) -> NormalizedWeights:
    """
    Ratio-preserving normalization to a sum of 1.0.

    Weights below `floor` are lifted to it and the difference is taken
    proportionally from the others. Values are rounded to `precision`
    decimals and the rounding residual is assigned to the largest weight,
    so the result still sums to 1.0.
    """
    original = {k: float(v) for k, v in raw.items()}
    if not original:
        return NormalizedWeights(weights={}, original=original)
    if len(original) == 1:
        only = next(iter(original))
        return NormalizedWeights(weights={only: 1.0}, original=original)

    positive = {k: max(0.0, v) for k, v in original.items()}
    total = sum(positive.values())
    if total <= 0:
        normalized = {k: 1.0 / len(positive) for k in positive}
    else:
        normalized = {k: v / total for k, v in positive.items()}

    # The floor cannot exceed an equal share
    effective_floor = min(floor, 1.0 / len(normalized))
    floored = _apply_floor(normalized, effective_floor)

    rounded = {k: round(v, precision) for k, v in floored.items()}
    residual = 1.0 - sum(rounded.values())
    if abs(residual) > 1e-12:
        largest = max(rounded, key=lambda k: (rounded[k], k))
        rounded[largest] = round(rounded[largest] + residual, precision + 6)
    return NormalizedWeights(weights=rounded, original=original)
