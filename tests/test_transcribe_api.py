"""Tests for the streaming transcription endpoint."""

import io

import pytest
from fastapi.testclient import TestClient

from app.client import stream_transcription
from app.config import get_settings
from app.schemas.progress import Complete, Error, ProgressDecoder, check_stream
from tests.fakes import FakeSegmenter, FakeTranscriber


@pytest.fixture(name="segmenter")
def segmenter_fixture() -> FakeSegmenter:
    """Split anything above 1 KB so small test uploads exercise segmentation."""
    return FakeSegmenter(threshold_bytes=1024, parts=3)


def post_audio(client: TestClient, size: int, filename: str = "meeting.mp3", content_type: str = "audio/mpeg"):
    return client.post(
        "/api/transcribe",
        files={"audio": (filename, io.BytesIO(b"\x00" * size), content_type)},
    )


def decode(response) -> list:
    decoder = ProgressDecoder()
    return decoder.feed(response.content) + decoder.close()


class TestTranscribeEndpoint:
    def test_small_upload(self, client: TestClient):
        """A file under the threshold is transcribed whole."""
        response = post_audio(client, 512)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/x-ndjson")
        events = decode(response)
        assert [e.status for e in events] == ["split_complete", "transcribing", "complete"]
        assert events[0].chunk_count == 1
        assert events[1].progress == 100
        check_stream(events)

    def test_split_upload(self, client: TestClient):
        response = post_audio(client, 4096)

        events = decode(response)

        assert [e.status for e in events] == [
            "splitting",
            "split_complete",
            "transcribing",
            "transcribing",
            "transcribing",
            "complete",
        ]
        assert [e.progress for e in events if e.status == "transcribing"] == [33, 67, 100]
        complete = events[-1]
        assert isinstance(complete, Complete)
        assert complete.transcription == "text-chunk_000 text-chunk_001 text-chunk_002"
        assert complete.pdf_filename == "meeting.pdf"

    def test_every_line_is_json(self, client: TestClient):
        response = post_audio(client, 4096)

        lines = response.text.split("\n")

        assert lines[-1] == ""
        assert all(line.startswith("{") and line.endswith("}") for line in lines[:-1])

    def test_failing_part_ends_stream_with_error(self, client: TestClient, transcriber: FakeTranscriber):
        transcriber.fail_on = 2
        transcriber.status = 400
        transcriber.body = "Invalid file format."

        response = post_audio(client, 4096)

        assert response.status_code == 200
        events = decode(response)
        assert isinstance(events[-1], Error)
        assert "part 2 of 3" in events[-1].message
        assert "Invalid file format." in events[-1].message
        assert len(transcriber.calls) == 2
        check_stream(events)

    def test_artifacts_available_after_run(self, client: TestClient):
        post_audio(client, 4096)

        uploads = client.get("/api/uploads").json()
        groups = client.get("/api/chunks").json()
        documents = client.get("/api/documents").json()

        assert uploads["count"] == 1
        assert uploads["items"][0]["name"].endswith("-meeting.mp3")
        assert groups["count"] == 1
        members = client.get(f"/api/chunks/{groups['items'][0]['name']}/files").json()
        assert members["count"] == 3
        assert [d["name"] for d in documents["items"]] == ["meeting.pdf"]

    def test_dotted_filename_artifacts_are_manageable(self, client: TestClient):
        """Every artifact a run creates can be downloaded and deleted by name."""
        events = decode(post_audio(client, 4096, filename="take..two.mp3"))
        pdf_filename = events[-1].pdf_filename
        upload_name = client.get("/api/uploads").json()["items"][0]["name"]
        group_name = client.get("/api/chunks").json()["items"][0]["name"]

        assert pdf_filename == "take.two.pdf"
        assert ".." not in upload_name
        assert ".." not in group_name
        assert client.get(f"/api/documents/{pdf_filename}").status_code == 200
        assert client.get(f"/api/chunks/{group_name}/files").json()["count"] == 3
        assert client.delete(f"/api/documents/{pdf_filename}").status_code == 200
        assert client.delete(f"/api/uploads/{upload_name}").status_code == 200
        assert client.delete(f"/api/chunks/{group_name}").status_code == 200

    def test_client_helper_streams_events(self, client: TestClient, tmp_path):
        path = tmp_path / "interview.mp3"
        path.write_bytes(b"\x00" * 4096)

        events = list(stream_transcription(client, path))

        assert events[0].status == "splitting"
        assert isinstance(events[-1], Complete)
        assert events[-1].pdf_filename == "interview.pdf"


class TestTranscribeValidation:
    def test_missing_file(self, client: TestClient):
        response = client.post("/api/transcribe")

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "No file received"}

    def test_wrong_field_name(self, client: TestClient):
        response = client.post("/api/transcribe", files={"file": ("memo.mp3", io.BytesIO(b"\x00"), "audio/mpeg")})

        assert response.status_code == 400

    def test_unsupported_extension(self, client: TestClient):
        response = post_audio(client, 100, filename="setup.exe", content_type="application/octet-stream")

        assert response.status_code == 400
        assert "Unsupported file type" in response.json()["error"]
        assert client.get("/api/uploads").json()["count"] == 0

    def test_upload_over_ceiling(self, client: TestClient, transcriber: FakeTranscriber, monkeypatch):
        monkeypatch.setattr(get_settings(), "MAX_UPLOAD_SIZE_MB", 0)

        response = post_audio(client, 2048)

        assert response.status_code == 413
        assert response.json()["success"] is False
        assert transcriber.calls == []
        assert client.get("/api/uploads").json()["count"] == 0

    def test_client_helper_raises_on_rejection(self, client: TestClient, tmp_path):
        import httpx

        path = tmp_path / "notes.txt"
        path.write_text("not audio")

        with pytest.raises(httpx.HTTPStatusError):
            list(stream_transcription(client, path))


class TestHealth:
    def test_health(self, client: TestClient):
        response = client.get("/api/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
