"""Tests for the FastAPI service mode."""

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from docsync.orchestrator import StageResult, UnknownDocumentError
from docsync.service import create_app


class _StubOrchestrator:
    def __init__(self) -> None:
        self.run_calls: list[dict[str, object]] = []
        self.validated_calls: list[dict[str, object]] = []

    def run_all(self, path: str, *, stages: list[str] | None = None) -> dict[str, StageResult]:
        self.run_calls.append({"path": path, "stages": stages})
        if not Path(path).is_dir():
            raise FileNotFoundError(f"Repository path not found: {path}")
        if stages and "bogus" in stages:
            raise ValueError("Unknown stage(s): bogus")
        report = Path(path) / "context_for_llms" / "CODE_POINTERS.json"
        return {
            "pointers": StageResult("pointers", {}, report, {"documents": 2, "pointers": 3}),
            "coverage": StageResult("coverage", {}, None, {"coverage_percentage": 0.4}),
        }

    def mark_validated(
        self, path: str, document: str, *, sources: list[str] | None = None
    ) -> list[str]:
        self.validated_calls.append({"path": path, "document": document, "sources": sources})
        if document != "api.md":
            raise UnknownDocumentError(f"{document} has no pointers in CODE_POINTERS.json")
        return sources or ["src/a.ts", "src/b.ts"]


@pytest.fixture
def orchestrator() -> _StubOrchestrator:
    return _StubOrchestrator()


@pytest.fixture
def client(orchestrator: _StubOrchestrator) -> TestClient:
    return TestClient(create_app(lambda: orchestrator))


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_run_endpoint_returns_stage_summaries(
    client: TestClient, orchestrator: _StubOrchestrator, tmp_path: Path
) -> None:
    response = client.post("/run", json={"path": str(tmp_path), "stages": ["coverage"]})

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert [stage["stage"] for stage in data["stages"]] == ["pointers", "coverage"]
    assert data["stages"][0]["report_path"].endswith("CODE_POINTERS.json")
    assert data["stages"][0]["summary"] == {"documents": 2, "pointers": 3}
    assert data["stages"][1]["report_path"] is None
    assert orchestrator.run_calls == [{"path": str(tmp_path), "stages": ["coverage"]}]


def test_run_endpoint_missing_repository_is_404(client: TestClient, tmp_path: Path) -> None:
    response = client.post("/run", json={"path": str(tmp_path / "missing")})

    assert response.status_code == 404
    assert "Repository path not found" in response.json()["detail"]


def test_run_endpoint_unknown_stage_is_400(client: TestClient, tmp_path: Path) -> None:
    response = client.post("/run", json={"path": str(tmp_path), "stages": ["bogus"]})

    assert response.status_code == 400
    assert response.json() == {"detail": "Unknown stage(s): bogus"}


def test_validated_endpoint_marks_pointers(client: TestClient, orchestrator: _StubOrchestrator) -> None:
    response = client.post("/validated", json={"path": "/repo", "document": "api.md", "sources": ["src/a.ts"]})

    assert response.status_code == 200
    assert response.json() == {"document": "api.md", "marked": ["src/a.ts"]}
    assert orchestrator.validated_calls == [
        {"path": "/repo", "document": "api.md", "sources": ["src/a.ts"]}
    ]


def test_validated_endpoint_unknown_document_is_404(client: TestClient) -> None:
    response = client.post("/validated", json={"path": "/repo", "document": "ghost.md"})

    assert response.status_code == 404
    assert response.json() == {"detail": "ghost.md has no pointers in CODE_POINTERS.json"}
