"""Pytest configuration and fixtures."""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from app.services.document import DocumentRenderer
from app.services.pipeline import TranscriptionPipeline, get_pipeline
from app.services.storage import ArtifactStore
from tests.fakes import FakeSegmenter, FakeTranscriber


@pytest.fixture(name="store")
def store_fixture(tmp_path: Path) -> ArtifactStore:
    """Artifact store rooted in a temporary directory."""
    store = ArtifactStore(tmp_path / "uploads", tmp_path / "chunks", tmp_path / "documents")
    store.ensure_directories()
    return store


@pytest.fixture(name="segmenter")
def segmenter_fixture() -> FakeSegmenter:
    return FakeSegmenter()


@pytest.fixture(name="transcriber")
def transcriber_fixture() -> FakeTranscriber:
    return FakeTranscriber()


@pytest.fixture(name="pipeline")
def pipeline_fixture(
    store: ArtifactStore, segmenter: FakeSegmenter, transcriber: FakeTranscriber
) -> TranscriptionPipeline:
    return TranscriptionPipeline(store, segmenter, transcriber, DocumentRenderer(store))


@pytest.fixture(name="client")
def client_fixture(store: ArtifactStore, pipeline: TranscriptionPipeline, monkeypatch: pytest.MonkeyPatch):
    """Test client wired to the temporary store and fake pipeline, rate limiting disabled."""
    from app.rate_limit import limiter
    from main import app

    # the lifespan and every router resolve the singleton store
    monkeypatch.setattr("app.services.storage._artifact_store", store)
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    limiter.enabled = False
    with TestClient(app) as c:
        yield c
    limiter.enabled = True
    app.dependency_overrides.clear()
