import logging
import sys

from src.config.settings import settings
from src.core.config.runtime_profile import RuntimeProfile
from src.core.domain.exceptions import ValidationFailure
from src.core.orchestration.rea_pipeline import ReaPipeline, precedent_source_from_settings
from src.dilemma.services.dilemma_loader import DilemmaLoader


def main(path: str = "config/dilemmas"):
    logging.basicConfig(level=getattr(logging, settings.REA_LOG_LEVEL.upper(), logging.INFO))
    print("Initializing DEV environment...")

    # 1. Infrastructure
    pipeline = ReaPipeline(
        profile=RuntimeProfile.dev(),
        precedent_source=precedent_source_from_settings(settings),
    )

    # 2. Dilemmas
    dilemmas = DilemmaLoader(path).load_all()
    if not dilemmas:
        print(f"No dilemmas found under {path}")
        return

    # 3. Analyze
    for dilemma in dilemmas:
        print(f"\n=== {dilemma.title or dilemma.id} ===")
        try:
            result = pipeline.run(dilemma)
        except ValidationFailure as e:
            print(f"Rejected: {'; '.join(e.issues)}")
            continue

        for rec in result.recommendations:
            sensitive = ", ".join(rec.sensitive_parameters) or "none"
            print(f"  {rec.framework:<14} -> {rec.recommended_action} (sensitive: {sensitive})")
        for resolution in result.resolutions:
            print(f"  [{resolution.conflict_id}] {resolution.strategy.value}: {resolution.recommended_action}")

        final = result.final_recommendation
        print(f"Final: {final.action} (confidence {final.confidence:.2f})")
        for param in final.critical_parameters:
            print(f"  critical: {param.significance}")

    print("\nDev run complete.")


if __name__ == "__main__":
    main(*sys.argv[1:2])
