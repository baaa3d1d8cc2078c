from dataclasses import dataclass, field
from enum import Enum

from src.config.settings import ReaSettings


class Environment(Enum):
    DEV = "DEV"
    TEST = "TEST"
    PROD = "PROD"


@dataclass(frozen=True)
class ExecutionLimits:
    worker_count: int = 4
    precedent_timeout_seconds: float = 2.0


@dataclass(frozen=True)
class RuntimeProfile:
    """
    Configuration profile for a pipeline run.
    Controls parallelism, deadlines and failure handling.
    Does NOT affect recommendation logic.
    """
    env: Environment
    limits: ExecutionLimits = field(default_factory=ExecutionLimits)

    # Behavior flags
    fail_fast: bool = True
    enable_telemetry: bool = True

    @classmethod
    def dev(cls) -> 'RuntimeProfile':
        return cls(
            env=Environment.DEV,
            limits=ExecutionLimits(worker_count=4, precedent_timeout_seconds=5.0),
            fail_fast=True,
            enable_telemetry=True,
        )

    @classmethod
    def test(cls) -> 'RuntimeProfile':
        return cls(
            env=Environment.TEST,
            limits=ExecutionLimits(worker_count=2, precedent_timeout_seconds=0.5),
            fail_fast=True,
            enable_telemetry=False,
        )

    @classmethod
    def prod(cls) -> 'RuntimeProfile':
        return cls(
            env=Environment.PROD,
            limits=ExecutionLimits(worker_count=8, precedent_timeout_seconds=2.0),
            fail_fast=False,  # Report validation issues, keep evaluating
            enable_telemetry=True,
        )

    @classmethod
    def from_settings(cls, settings: ReaSettings) -> 'RuntimeProfile':
        return cls(
            env=Environment.PROD,
            limits=ExecutionLimits(
                worker_count=max(1, int(settings.REA_WORKER_COUNT)),
                precedent_timeout_seconds=float(settings.REA_PRECEDENT_TIMEOUT_SECONDS),
            ),
            fail_fast=bool(settings.REA_FAIL_FAST),
            enable_telemetry=bool(settings.REA_ENABLE_TELEMETRY),
        )
