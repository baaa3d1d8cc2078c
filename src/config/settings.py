import os
from typing import Optional

from pydantic_settings import BaseSettings


class ReaSettings(BaseSettings):
    # Precedent storage (sqlalchemy URL, in-memory sqlite by default)
    REA_PRECEDENT_DSN: str = os.getenv("REA_PRECEDENT_DSN", "sqlite://")
    REA_PRECEDENT_URL: Optional[str] = os.getenv("REA_PRECEDENT_URL") or None
    REA_PRECEDENT_TIMEOUT_SECONDS: float = float(os.getenv("REA_PRECEDENT_TIMEOUT_SECONDS", "2.0"))

    # Worker pool
    REA_WORKER_COUNT: int = int(os.getenv("REA_WORKER_COUNT", str(min(8, os.cpu_count() or 1))))

    # Engine constants
    REA_MIN_CONFLICT_SEVERITY: float = float(os.getenv("REA_MIN_CONFLICT_SEVERITY", "0.3"))
    REA_WEIGHT_FLOOR: float = float(os.getenv("REA_WEIGHT_FLOOR", "0.15"))
    REA_FAIL_FAST: bool = os.getenv("REA_FAIL_FAST", "true").lower() in ("1", "true", "yes")

    REA_LOG_LEVEL: str = os.getenv("REA_LOG_LEVEL", "INFO")
    REA_ENABLE_TELEMETRY: bool = os.getenv("REA_ENABLE_TELEMETRY", "true").lower() in ("1", "true", "yes")


settings = ReaSettings()
