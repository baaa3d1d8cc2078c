import json
from pathlib import Path
from typing import Any, Dict, List

from src.dilemma.domain.dilemma_models import Dilemma, dilemma_from_payload


class DilemmaLoader:
    """
    Loads dilemma definitions from disk.
    """

    def __init__(self, path: str = "config/dilemmas/sample_dilemma.json"):
        self.path = Path(path)

    def load(self) -> Dilemma:
        if not self.path.exists():
            raise FileNotFoundError(f"Dilemma file not found: {self.path}")
        return dilemma_from_payload(self._read_json(self.path))

    def load_all(self) -> List[Dilemma]:
        """Loads every *.json file when the path is a directory, sorted by file name."""
        if self.path.is_file():
            return [self.load()]
        if not self.path.is_dir():
            return []
        return [dilemma_from_payload(self._read_json(p)) for p in sorted(self.path.glob("*.json"))]

    @staticmethod
    def _read_json(path: Path) -> Dict[str, Any]:
        with path.open("r", encoding="utf-8") as f:
            payload = json.load(f)
        if not isinstance(payload, dict):
            raise ValueError(f"Dilemma file {path} must contain a JSON object")
        return payload
