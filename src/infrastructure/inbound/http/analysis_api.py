import asyncio
import json
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
import uvicorn

from src.config.settings import settings
from src.core.domain.exceptions import ValidationFailure
from src.core.orchestration.rea_pipeline import ReaPipeline
from src.dilemma.domain.dilemma_models import dilemma_from_payload
from src.execution.logging.structured_runtime_logger import StructuredRuntimeLogger

app = FastAPI(title="REA conflict-resolution engine")

# Dependencies (Injected in real app)
pipeline: Optional[ReaPipeline] = None
runtime_logger = StructuredRuntimeLogger()


def setup_dependencies(
    rea_pipeline: Optional[ReaPipeline] = None,
    logger: Optional[StructuredRuntimeLogger] = None,
):
    global pipeline, runtime_logger
    runtime_logger = logger or StructuredRuntimeLogger()
    pipeline = rea_pipeline or ReaPipeline.from_settings(settings)


def _pipeline() -> ReaPipeline:
    if pipeline is None:
        setup_dependencies()
    return pipeline


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.post("/analyze")
async def analyze(request: Request):
    # 1. Parse Body
    try:
        payload = json.loads(await request.body())
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Dilemma payload must be a JSON object")

    try:
        dilemma = dilemma_from_payload(payload)
    except (TypeError, ValueError) as e:
        runtime_logger.emit(event_type="ANALYZE_REJECTED", status="malformed", error=str(e))
        raise HTTPException(status_code=400, detail=f"Malformed dilemma payload: {e}")

    # 2. Run analysis; the pipeline blocks on worker threads and precedent deadlines
    try:
        result = await asyncio.to_thread(_pipeline().run, dilemma)
    except ValidationFailure as e:
        runtime_logger.emit(event_type="ANALYZE_REJECTED", status="invalid", dilemma_id=dilemma.id, issues=e.issues)
        raise HTTPException(status_code=422, detail={"issues": e.issues})

    runtime_logger.emit(
        event_type="ANALYZE_OK",
        status="ok",
        dilemma_id=dilemma.id,
        action=result.final_recommendation.action if result.final_recommendation else None,
    )
    return result.to_payload()


def run_server(host="0.0.0.0", port=8000):
    uvicorn.run(app, host=host, port=port)
