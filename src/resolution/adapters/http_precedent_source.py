import json
import logging
from typing import Any, Dict, List

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from src.core.domain.exceptions import PrecedentLookupError
from src.dilemma.domain.dilemma_models import Dilemma
from src.resolution.domain.precedent_models import PrecedentMatch, match_from_payload
from src.resolution.interfaces.precedent_source import PrecedentSource

logger = logging.getLogger(__name__)


class HttpPrecedentSource(PrecedentSource):
    """
    Client for a remote precedent service.
    Handles retries and normalizes transport errors to PrecedentLookupError.
    """

    SIMILAR_PATH = "/precedents/similar"

    def __init__(self, base_url: str, max_retries: int = 2, timeout: float = 2.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = self._create_session(max_retries)

    def _create_session(self, max_retries: int) -> requests.Session:
        session = requests.Session()
        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=0.2,
            status_forcelist=[500, 502, 503, 504],
            allowed_methods=["POST"]
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("https://", adapter)
        session.mount("http://", adapter)
        return session

    def find_similar(self, dilemma: Dilemma, min_similarity: float) -> List[PrecedentMatch]:
        payload = {
            "dilemma": self._describe(dilemma),
            "min_similarity": min_similarity,
        }
        url = f"{self.base_url}{self.SIMILAR_PATH}"
        try:
            response = self.session.post(url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            logger.warning(f"Precedent service network error: {e}")
            raise PrecedentLookupError(f"Request failed: {str(e)}") from e
        except json.JSONDecodeError as e:
            logger.warning(f"Precedent service invalid JSON: {e}")
            raise PrecedentLookupError("Invalid JSON response") from e

        rows = data.get("matches", []) if isinstance(data, dict) else []
        matches = [match_from_payload(dict(row)) for row in rows if isinstance(row, dict)]
        matches = [m for m in matches if m.similarity >= min_similarity]
        matches.sort(key=lambda m: (-m.similarity, m.id))
        return matches

    @staticmethod
    def _describe(dilemma: Dilemma) -> Dict[str, Any]:
        return {
            "id": dilemma.id,
            "title": dilemma.title,
            "description": dilemma.description,
            "parameters": sorted(dilemma.parameters.keys()),
            "contextual_factors": [f.factor for f in dilemma.contextual_factors],
            "stakeholders": [s.name for s in dilemma.stakeholders],
        }
