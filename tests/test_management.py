"""Tests for the artifact listing and deletion endpoints."""

import os
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from app.services.document import DocumentRenderer
from app.services.storage import ArtifactStore, Collection


def put(store: ArtifactStore, collection: Collection, name: str, data: bytes = b"abc", mtime: float | None = None) -> Path:
    path = store.root(collection) / name
    path.write_bytes(data)
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


def snapshot(store: ArtifactStore) -> set[Path]:
    return {p for root in store.roots.values() for p in root.rglob("*")}


class TestListing:
    @pytest.mark.parametrize("collection", ["uploads", "chunks", "documents"])
    def test_empty_collection(self, collection: str, client: TestClient):
        response = client.get(f"/api/{collection}")

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "count": 0,
            "totalSize": 0,
            "totalSizeFormatted": "0 Bytes",
            "items": [],
        }

    def test_upload_listing_shape(self, client: TestClient, store: ArtifactStore):
        put(store, Collection.UPLOADS, "old.mp3", b"x" * 1536, mtime=1_600_000_000)
        put(store, Collection.UPLOADS, "new.mp3", b"x" * 10, mtime=1_700_000_000)

        body = client.get("/api/uploads").json()

        assert body["count"] == 2
        assert body["totalSize"] == 1546
        assert [item["name"] for item in body["items"]] == ["new.mp3", "old.mp3"]
        item = body["items"][1]
        assert item["size"] == 1536
        assert item["sizeFormatted"] == "1.5 KB"
        assert set(item) == {"name", "size", "sizeFormatted", "createdAt", "modifiedAt"}

    def test_chunk_groups_and_members(self, client: TestClient, store: ArtifactStore):
        group = store.create_group("meeting")
        (group / "chunk_001.mp3").write_bytes(b"bb")
        (group / "chunk_000.mp3").write_bytes(b"aaa")

        listing = client.get("/api/chunks").json()
        members = client.get(f"/api/chunks/{group.name}/files").json()
        download = client.get(f"/api/chunks/{group.name}/files/chunk_001.mp3")

        assert listing["items"][0]["name"] == group.name
        assert listing["items"][0]["size"] == 5
        assert members["group"] == group.name
        assert [m["name"] for m in members["items"]] == ["chunk_000.mp3", "chunk_001.mp3"]
        assert download.status_code == 200
        assert download.content == b"bb"

    def test_missing_chunk_folder(self, client: TestClient):
        response = client.get("/api/chunks/nope/files")

        assert response.status_code == 404
        assert response.json()["success"] is False


class TestDocuments:
    def test_download_document(self, client: TestClient, store: ArtifactStore):
        DocumentRenderer(store).render("hola", "memo.mp3", "memo")

        response = client.get("/api/documents/memo.pdf")

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.content.startswith(b"%PDF")

    def test_non_pdf_name_rejected(self, client: TestClient, store: ArtifactStore):
        put(store, Collection.DOCUMENTS, "notes.txt")

        response = client.get("/api/documents/notes.txt")

        assert response.status_code == 400

    def test_missing_document(self, client: TestClient):
        response = client.get("/api/documents/ghost.pdf")

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "ghost.pdf not found"}


class TestDeletion:
    def test_delete_upload(self, client: TestClient, store: ArtifactStore):
        path = put(store, Collection.UPLOADS, "memo.mp3")

        response = client.delete("/api/uploads/memo.mp3")

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert not path.exists()

    def test_delete_chunk_folder(self, client: TestClient, store: ArtifactStore):
        group = store.create_group("meeting")
        (group / "chunk_000.mp3").write_bytes(b"a")

        response = client.delete(f"/api/chunks/{group.name}")

        assert response.status_code == 200
        assert not group.exists()

    def test_delete_missing(self, client: TestClient):
        response = client.delete("/api/uploads/ghost.mp3")

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "ghost.mp3 not found"}

    @pytest.mark.parametrize(
        "raw_path",
        [
            "/api/uploads/a..b.mp3",
            "/api/uploads/sub/file.mp3",
            "/api/uploads/a%5Cb.mp3",
            "/api/uploads/..%2Fsecret",
            "/api/documents/..%2F..%2Fmain.py",
        ],
    )
    def test_unsafe_names_rejected(self, raw_path: str, client: TestClient, store: ArtifactStore, tmp_path: Path):
        (tmp_path / "secret").write_text("keep me")
        put(store, Collection.UPLOADS, "a..b.mp3")
        sub = store.root(Collection.UPLOADS) / "sub"
        sub.mkdir()
        (sub / "file.mp3").write_bytes(b"x")
        before = snapshot(store)

        response = client.delete(raw_path)

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Invalid file name"}
        assert snapshot(store) == before
        assert (tmp_path / "secret").exists()

    def test_delete_all_empty(self, client: TestClient):
        response = client.delete("/api/documents")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["count"] == 0
        assert body["failed"] == 0

    def test_delete_all(self, client: TestClient, store: ArtifactStore):
        for name in ("a.mp3", "b.mp3", "c.mp3"):
            put(store, Collection.UPLOADS, name)

        body = client.delete("/api/uploads").json()

        assert body["count"] == 3
        assert body["message"] == "3 files deleted"
        assert client.get("/api/uploads").json()["count"] == 0

    def test_collections_are_independent(self, client: TestClient, store: ArtifactStore):
        put(store, Collection.UPLOADS, "memo.mp3")
        DocumentRenderer(store).render("hola", "memo.mp3", "memo")

        client.delete("/api/uploads")

        assert client.get("/api/documents").json()["count"] == 1


class TestUnknownRoutes:
    def test_unknown_route_uses_error_shape(self, client: TestClient):
        response = client.get("/api/nothing-here")

        assert response.status_code == 404
        assert response.json()["success"] is False
