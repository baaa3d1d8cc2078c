from abc import ABC, abstractmethod
from typing import Dict, Optional

from src.analysis.domain.framework_profiles import (
    APPROVE_OPTION_A,
    APPROVE_OPTION_B,
    NO_ACTION,
)
from src.dilemma.domain.dilemma_models import Dilemma


class ActionMapper(ABC):
    """
    Translates between framework-internal action ids and the action ids a
    dilemma declares.
    """

    @abstractmethod
    def to_dilemma_action(self, framework_action: str) -> str:
        pass

    @abstractmethod
    def to_framework_action(self, dilemma_action: str) -> str:
        pass


class IdentityActionMapper(ActionMapper):
    def to_dilemma_action(self, framework_action: str) -> str:
        return framework_action

    def to_framework_action(self, dilemma_action: str) -> str:
        return dilemma_action


class TableActionMapper(ActionMapper):
    def __init__(self, framework_to_dilemma: Dict[str, str]):
        self._forward = dict(framework_to_dilemma)
        self._inverse = {v: k for k, v in self._forward.items()}

    def to_dilemma_action(self, framework_action: str) -> str:
        return self._forward.get(framework_action, framework_action)

    def to_framework_action(self, dilemma_action: str) -> str:
        return self._inverse.get(dilemma_action, dilemma_action)


# Known dilemma vocabularies, keyed by dilemma id.
BUILTIN_ACTION_TABLES: Dict[str, Dict[str, str]] = {
    "trump_border_security_dilemma_2025": {
        APPROVE_OPTION_A: "oppose_bill",
        APPROVE_OPTION_B: "support_bill",
        NO_ACTION: "negotiate_compromises",
    },
}


def action_mapper_for(dilemma: Dilemma, override: Optional[Dict[str, str]] = None) -> ActionMapper:
    table = override or dilemma.action_mapping or BUILTIN_ACTION_TABLES.get(dilemma.id)
    if not table:
        return IdentityActionMapper()
    return TableActionMapper(table)
