import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional


class StructuredRuntimeLogger:
    """
    JSON-lines logger for pipeline, resolver and API paths.
    Fields bound at construction (e.g. dilemma_id) are added to every event.
    A disabled logger drops every event; bound copies inherit the flag.
    """

    def __init__(self, logger: Optional[logging.Logger] = None, enabled: bool = True, **bound: Any):
        self._logger = logger or logging.getLogger("rea.runtime")
        self.enabled = enabled
        self._bound: Dict[str, Any] = dict(bound)

    def bind(self, **fields: Any) -> "StructuredRuntimeLogger":
        merged = dict(self._bound)
        merged.update(fields)
        return StructuredRuntimeLogger(self._logger, self.enabled, **merged)

    def silenced(self) -> "StructuredRuntimeLogger":
        return StructuredRuntimeLogger(self._logger, False, **self._bound)

    def emit(self, event_type: str, level: int = logging.INFO, **fields: Any) -> None:
        if not self.enabled:
            return
        payload: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": event_type,
        }
        payload.update(self._bound)
        payload.update(fields)
        self._logger.log(level, json.dumps(payload, default=str, ensure_ascii=True))
