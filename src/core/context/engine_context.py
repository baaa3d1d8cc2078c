from dataclasses import dataclass, field
from typing import Optional

from src.analysis.interfaces.text_classifier import KeywordTextClassifier, TextClassifier
from src.core.config.engine_config import EngineConfig
from src.core.config.runtime_profile import RuntimeProfile
from src.dilemma.domain.dilemma_models import Dilemma
from src.dilemma.interfaces.action_mapper import ActionMapper, action_mapper_for
from src.dilemma.services.context_signals import ContextSignals, read_signals
from src.dilemma.services.parameter_mapping import ParameterMapping
from src.execution.logging.structured_runtime_logger import StructuredRuntimeLogger
from src.resolution.interfaces.precedent_source import PrecedentSource, StaticPrecedentSource


@dataclass(frozen=True)
class EngineContext:
    """
    Per-invocation collaborators threaded through every stage.
    Built once for a dilemma and discarded with the result.
    """
    config: EngineConfig
    profile: RuntimeProfile
    action_mapper: ActionMapper
    parameter_mapping: ParameterMapping
    classifier: TextClassifier
    precedent_source: PrecedentSource
    signals: ContextSignals = field(default_factory=ContextSignals)
    logger: StructuredRuntimeLogger = field(default_factory=StructuredRuntimeLogger)

    @classmethod
    def for_dilemma(
        cls,
        dilemma: Dilemma,
        config: Optional[EngineConfig] = None,
        profile: Optional[RuntimeProfile] = None,
        classifier: Optional[TextClassifier] = None,
        precedent_source: Optional[PrecedentSource] = None,
        logger: Optional[StructuredRuntimeLogger] = None,
        action_mapper: Optional[ActionMapper] = None,
    ) -> "EngineContext":
        profile = profile or RuntimeProfile.dev()
        base_logger = logger or StructuredRuntimeLogger()
        if not profile.enable_telemetry:
            base_logger = base_logger.silenced()
        parameter_mapping = ParameterMapping.for_dilemma(dilemma)
        return cls(
            config=config or EngineConfig(),
            profile=profile,
            action_mapper=action_mapper or action_mapper_for(dilemma),
            parameter_mapping=parameter_mapping,
            classifier=classifier or KeywordTextClassifier(),
            precedent_source=precedent_source or StaticPrecedentSource(),
            signals=read_signals(dilemma, parameter_mapping),
            logger=base_logger.bind(dilemma_id=dilemma.id),
        )
