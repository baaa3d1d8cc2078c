import asyncio
import json
from pathlib import Path

import pytest

fastapi = pytest.importorskip("fastapi")
from fastapi.testclient import TestClient

from src.core.config.runtime_profile import RuntimeProfile
from src.core.orchestration.rea_pipeline import AnalysisResult, ReaPipeline
from src.infrastructure.inbound.http.analysis_api import app, setup_dependencies
from src.resolution.interfaces.precedent_source import StaticPrecedentSource

SAMPLE = Path(__file__).resolve().parents[3] / "config" / "dilemmas" / "sample_dilemma.json"


def _client():
    setup_dependencies(
        rea_pipeline=ReaPipeline(profile=RuntimeProfile.test(), precedent_source=StaticPrecedentSource()),
    )
    return TestClient(app)


def _payload() -> dict:
    with open(SAMPLE, "r", encoding="utf-8") as f:
        return json.load(f)


def test_health():
    response = _client().get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_analyze_returns_full_result():
    response = _client().post("/analyze", json=_payload())

    assert response.status_code == 200
    body = response.json()
    assert body["dilemma_id"] == "community_clinic_allocation"
    assert set(body["framework_recommendations"]) == {
        "utilitarian", "justice", "deontology", "care_ethics", "virtue_ethics",
    }
    assert 0.0 <= body["final_recommendation"]["confidence"] <= 1.0
    for resolution in body["resolutions"]:
        assert abs(sum(resolution["weights"].values()) - 1.0) < 1e-6
        assert "_original_weights" in resolution


def test_analyze_rejects_invalid_dilemma():
    payload = _payload()
    payload["id"] = ""

    response = _client().post("/analyze", json=payload)

    assert response.status_code == 422
    assert "Dilemma is missing an id" in response.json()["detail"]["issues"]


def test_analyze_rejects_malformed_body():
    client = _client()

    bad_json = client.post("/analyze", content=b"{not json", headers={"content-type": "application/json"})
    not_object = client.post("/analyze", json=[1, 2, 3])

    assert bad_json.status_code == 400
    assert not_object.status_code == 400


def test_analyze_tolerates_wrongly_shaped_nested_values():
    client = _client()

    bad_concerns = _payload()
    bad_concerns["stakeholders"] = [{"id": "a", "concerns": 5}, "not-a-stakeholder"]
    list_mapping = _payload()
    list_mapping["parameter_mapping"] = ["x"]
    list_mapping["contextual_factors"] = [7, None, {"factor": "scarcity"}]
    list_mapping["possible_actions"] = [{"id": "approve_option_a"}, 3]

    concerns_response = client.post("/analyze", json=bad_concerns)
    mapping_response = client.post("/analyze", json=list_mapping)

    assert concerns_response.status_code == 200
    assert mapping_response.status_code == 200
    assert mapping_response.json()["dilemma_id"] == "community_clinic_allocation"


def test_analyze_rejects_unusable_nested_values_without_server_error():
    payload = _payload()
    payload["frameworks"] = 12
    payload["parameters"] = "everything"

    response = _client().post("/analyze", json=payload)

    assert response.status_code == 422
    assert "Dilemma names no frameworks to evaluate" in response.json()["detail"]["issues"]


class ThreadRecordingPipeline(ReaPipeline):
    """Records whether run() was called with an event loop active in its thread."""

    def __init__(self):
        super().__init__(profile=RuntimeProfile.test(), precedent_source=StaticPrecedentSource())
        self.ran_on_event_loop = None

    def run(self, dilemma):
        try:
            asyncio.get_running_loop()
            self.ran_on_event_loop = True
        except RuntimeError:
            self.ran_on_event_loop = False
        return AnalysisResult(dilemma_id=dilemma.id)


def test_analyze_runs_pipeline_off_the_event_loop():
    recording = ThreadRecordingPipeline()
    setup_dependencies(rea_pipeline=recording)

    response = TestClient(app).post("/analyze", json=_payload())

    assert response.status_code == 200
    assert response.json()["final_recommendation"] is None
    assert recording.ran_on_event_loop is False
