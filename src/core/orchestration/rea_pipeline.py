import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from src.analysis.domain.analysis_models import (
    AnalysisWarning,
    Conflict,
    FrameworkRecommendation,
    Interaction,
    Threshold,
)
from src.analysis.domain.framework_profiles import is_known_framework
from src.analysis.interfaces.text_classifier import TextClassifier
from src.analysis.services.conflict_detector import ConflictDetector
from src.analysis.services.framework_evaluator import FrameworkEvaluator
from src.analysis.services.sensitivity_analyzer import SensitivityAnalyzer
from src.config.settings import ReaSettings
from src.core.config.engine_config import EngineConfig
from src.core.config.runtime_profile import RuntimeProfile
from src.core.context.engine_context import EngineContext
from src.core.domain.exceptions import ValidationFailure
from src.dilemma.domain.dilemma_models import Dilemma
from src.dilemma.domain.validation_report import ValidationReport
from src.dilemma.services.dilemma_validator import DilemmaValidator
from src.execution.logging.structured_runtime_logger import StructuredRuntimeLogger
from src.resolution.adapters.http_precedent_source import HttpPrecedentSource
from src.resolution.domain.resolution_models import Resolution
from src.resolution.interfaces.precedent_source import PrecedentSource
from src.resolution.services.precedent_lookup import PrecedentLookup
from src.resolution.services.resolution_engine import ResolutionEngine, failure_warnings
from src.resolution.services.strategy_selector import StrategySelector
from src.resolution.store.sql_precedent_store import SqlPrecedentStore
from src.synthesis.domain.synthesis_models import FinalRecommendation
from src.synthesis.services.confidence_synthesizer import ConfidenceSynthesizer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisResult:
    dilemma_id: str
    recommendations: List[FrameworkRecommendation] = field(default_factory=list)
    conflicts: List[Conflict] = field(default_factory=list)
    interactions: List[Interaction] = field(default_factory=list)
    resolutions: List[Resolution] = field(default_factory=list)
    final_recommendation: Optional[FinalRecommendation] = None
    warnings: List[AnalysisWarning] = field(default_factory=list)
    validation: ValidationReport = field(default_factory=ValidationReport)
    insights: List[str] = field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "dilemma_id": self.dilemma_id,
            "framework_recommendations": {r.framework: r.to_payload() for r in self.recommendations},
            "conflicts": [c.to_payload() for c in self.conflicts],
            "interactions": [i.to_payload() for i in self.interactions],
            "resolutions": [r.to_payload() for r in self.resolutions],
            "final_recommendation": (
                self.final_recommendation.to_payload() if self.final_recommendation else None
            ),
            "warnings": [w.to_payload() for w in self.warnings],
            "validation": self.validation.to_payload(),
            "insights": list(self.insights),
        }


def precedent_source_from_settings(settings: ReaSettings) -> PrecedentSource:
    """Remote service when REA_PRECEDENT_URL is set, otherwise the sqlalchemy store."""
    if settings.REA_PRECEDENT_URL:
        return HttpPrecedentSource(
            settings.REA_PRECEDENT_URL,
            timeout=float(settings.REA_PRECEDENT_TIMEOUT_SECONDS),
        )
    return SqlPrecedentStore.from_dsn(settings.REA_PRECEDENT_DSN)


class ReaPipeline:
    """
    End-to-end analysis of one dilemma:
    validate -> evaluate + sensitivity (parallel) -> detect -> resolve (parallel) -> synthesize.

    Stages share nothing mutable; every run builds its own EngineContext and
    the input dilemma is never modified.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        profile: Optional[RuntimeProfile] = None,
        precedent_source: Optional[PrecedentSource] = None,
        classifier: Optional[TextClassifier] = None,
        validator: Optional[DilemmaValidator] = None,
        structured_logger: Optional[StructuredRuntimeLogger] = None,
    ):
        self.config = config or EngineConfig()
        self.profile = profile or RuntimeProfile.dev()
        self.precedent_source = precedent_source
        self.classifier = classifier
        self.validator = validator or DilemmaValidator()
        self.structured_logger = structured_logger or StructuredRuntimeLogger()

    @classmethod
    def from_settings(cls, settings: ReaSettings) -> "ReaPipeline":
        return cls(
            config=EngineConfig.from_settings(settings),
            profile=RuntimeProfile.from_settings(settings),
            precedent_source=precedent_source_from_settings(settings),
        )

    def run(self, dilemma: Dilemma) -> AnalysisResult:
        context = EngineContext.for_dilemma(
            dilemma,
            config=self.config,
            profile=self.profile,
            classifier=self.classifier,
            precedent_source=self.precedent_source,
            logger=self.structured_logger,
        )
        context.logger.emit(event_type="PIPELINE_STARTED", frameworks=list(dilemma.frameworks))

        validation = self.validator.validate(dilemma)
        if validation.issues and self.profile.fail_fast:
            context.logger.emit(
                event_type="PIPELINE_COMPLETED",
                level=logging.WARNING,
                status="invalid",
                issues=validation.issues,
            )
            raise ValidationFailure(validation.issues)

        frameworks = self._frameworks_for(dilemma)
        workers = max(1, self.profile.limits.worker_count)
        lookup = PrecedentLookup(
            context.precedent_source,
            timeout_seconds=self.profile.limits.precedent_timeout_seconds,
            top_k=self.config.precedent_top_k,
            runtime_logger=context.logger,
        )
        try:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="rea-worker") as executor:
                recommendations = self._evaluate_all(context, dilemma, frameworks, executor)

                detection = ConflictDetector(context).detect(dilemma, recommendations)
                context.logger.emit(
                    event_type="CONFLICTS_DETECTED",
                    count=len(detection.conflicts),
                    conflict_ids=[c.id for c in detection.conflicts],
                )

                engine = ResolutionEngine(context, precedent_lookup=lookup)
                resolutions = engine.resolve_all(
                    detection.conflicts,
                    dilemma,
                    recommendations,
                    StrategySelector(context),
                    executor=executor,
                )
        finally:
            lookup.shutdown()

        warnings: List[AnalysisWarning] = [w for r in recommendations for w in r.warnings]
        warnings.extend(failure_warnings(resolutions))

        final = ConfidenceSynthesizer(self.config).synthesize(
            dilemma,
            recommendations,
            detection.conflicts,
            resolutions,
            validation=validation,
            warnings=warnings,
        )
        context.logger.emit(
            event_type="PIPELINE_COMPLETED",
            status="ok",
            action=final.action,
            confidence=round(final.confidence, 4),
            conflicts=len(detection.conflicts),
            warnings=len(warnings),
        )
        return AnalysisResult(
            dilemma_id=dilemma.id,
            recommendations=recommendations,
            conflicts=list(detection.conflicts),
            interactions=list(detection.interactions),
            resolutions=resolutions,
            final_recommendation=final,
            warnings=warnings,
            validation=validation,
            insights=list(detection.insights),
        )

    # --- Stages ---

    def _frameworks_for(self, dilemma: Dilemma) -> List[str]:
        requested = list(dict.fromkeys(dilemma.frameworks)) or list(self.config.default_frameworks)
        known = [fw for fw in requested if is_known_framework(fw)]
        for fw in requested:
            if fw not in known:
                logger.warning(f"Skipping unknown framework {fw} for dilemma {dilemma.id}")
        return known

    def _evaluate_all(
        self,
        context: EngineContext,
        dilemma: Dilemma,
        frameworks: List[str],
        executor: ThreadPoolExecutor,
    ) -> List[FrameworkRecommendation]:
        evaluator = FrameworkEvaluator(context)
        analyzer = SensitivityAnalyzer(evaluator, self.config)

        base_futures = [executor.submit(evaluator.evaluate, dilemma, fw) for fw in frameworks]
        base = [f.result() for f in base_futures]

        # One task per (framework, parameter) so no worker waits on another
        parameters = list(dilemma.numeric_parameters())
        threshold_futures: List[Tuple[int, str, Future]] = []
        for index, rec in enumerate(base):
            for name in parameters:
                threshold_futures.append((
                    index,
                    name,
                    executor.submit(analyzer.analyze_parameter, dilemma, rec.framework, name, rec.recommended_action),
                ))

        thresholds: List[Dict[str, Threshold]] = [{} for _ in base]
        for index, name, future in threshold_futures:
            found = future.result()
            if found is not None:
                thresholds[index][name] = found

        recommendations = []
        for rec, found in zip(base, thresholds):
            report = analyzer.build_report(found)
            merged = replace(rec, sensitive_parameters=report.sensitive_parameters, thresholds=report.thresholds)
            context.logger.emit(
                event_type="FRAMEWORK_EVALUATED",
                framework=merged.framework,
                action=merged.recommended_action,
                sensitive_parameters=merged.sensitive_parameters,
                warnings=len(merged.warnings),
            )
            recommendations.append(merged)
        return recommendations
