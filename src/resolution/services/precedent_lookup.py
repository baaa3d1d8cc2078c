import logging
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from typing import List, Optional

from src.core.domain.exceptions import PrecedentLookupError
from src.dilemma.domain.dilemma_models import Dilemma
from src.execution.logging.structured_runtime_logger import StructuredRuntimeLogger
from src.resolution.domain.precedent_models import FALLBACK_PRECEDENTS, PrecedentMatch
from src.resolution.interfaces.precedent_source import PrecedentSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PrecedentLookupOutcome:
    matches: List[PrecedentMatch] = field(default_factory=list)
    used_fallback: bool = False
    reason: str = ""


class PrecedentLookup:
    """
    Runs precedent queries on a dedicated pool with a deadline.
    A timeout, a source error or an empty answer yields the static fallback
    set; the caller never sees an exception.
    """

    def __init__(
        self,
        source: PrecedentSource,
        timeout_seconds: float = 2.0,
        top_k: int = 3,
        executor: Optional[ThreadPoolExecutor] = None,
        runtime_logger: Optional[StructuredRuntimeLogger] = None,
    ):
        self.source = source
        self.timeout_seconds = timeout_seconds
        self.top_k = top_k
        self._executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="rea-precedent")
        self._owns_executor = executor is None
        self.runtime_logger = runtime_logger or StructuredRuntimeLogger()

    def submit(self, dilemma: Dilemma, min_similarity: float) -> Future:
        return self._executor.submit(self.source.find_similar, dilemma, min_similarity)

    def fetch(self, dilemma: Dilemma, min_similarity: float) -> PrecedentLookupOutcome:
        future = self.submit(dilemma, min_similarity)
        try:
            matches = future.result(timeout=self.timeout_seconds)
        except FutureTimeout:
            future.cancel()
            self.runtime_logger.emit(
                event_type="PRECEDENT_LOOKUP_TIMEOUT",
                level=logging.WARNING,
                timeout_seconds=self.timeout_seconds,
            )
            return self._fallback(f"lookup exceeded {self.timeout_seconds:g}s deadline")
        except PrecedentLookupError as e:
            logger.warning(f"Precedent lookup failed: {e}")
            return self._fallback(f"lookup failed: {e}")
        except Exception as e:
            logger.warning(f"Precedent source raised unexpectedly: {e}")
            return self._fallback(f"lookup failed: {e}")

        ranked = [m for m in matches if m.similarity >= min_similarity][: self.top_k]
        if not ranked:
            return self._fallback("no precedent above the similarity cutoff")
        return PrecedentLookupOutcome(matches=ranked)

    def shutdown(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

    def _fallback(self, reason: str) -> PrecedentLookupOutcome:
        return PrecedentLookupOutcome(
            matches=list(FALLBACK_PRECEDENTS[: self.top_k]),
            used_fallback=True,
            reason=reason,
        )
