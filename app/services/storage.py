"""Filesystem-backed artifact store: uploads, segment groups, rendered documents."""

import logging
import os
import re
import shutil
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from fastapi import UploadFile

from app.config import get_settings
from app.exceptions import InvalidInput, NotFound, StorageFailure, UploadTooLarge

logger = logging.getLogger("splitscribe")

ALLOWED_EXTENSIONS = {".mp3", ".m4a", ".mp4", ".wav", ".webm", ".ogg", ".flac", ".aac", ".opus"}
ALLOWED_MIME_TYPES = {
    "audio/mpeg",
    "audio/mp4",
    "audio/x-m4a",
    "audio/wav",
    "audio/x-wav",
    "audio/webm",
    "audio/ogg",
    "audio/flac",
    "audio/x-flac",
    "audio/aac",
    "video/mp4",  # phone voice memos are often shared as mp4
    "application/octet-stream",
}
DOCUMENT_EXTENSION = ".pdf"
SEGMENT_NAME_PATTERN = re.compile(r"^chunk_\d+\.\w+$")

_UNSAFE_CHARS = re.compile(r"[^\w.\- ]")
_DOT_RUNS = re.compile(r"\.{2,}")


class Collection(str, Enum):
    """The three independent artifact collections."""

    UPLOADS = "uploads"
    CHUNKS = "chunks"
    DOCUMENTS = "documents"


@dataclass
class ArtifactInfo:
    """Listing entry for one stored artifact."""

    name: str
    size: int
    created_at: datetime
    modified_at: datetime


@dataclass
class StoredUpload:
    """An upload persisted in the uploads collection."""

    name: str
    path: Path
    original_filename: str
    size: int

    @property
    def base_name(self) -> str:
        """Stem of the original filename; segment groups and documents are named from it."""
        return Path(self.original_filename).stem or "audio"


def format_bytes(size: int, decimals: int = 2) -> str:
    """Human readable byte count, e.g. ``1.5 MB``."""
    if size == 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB", "TB"]
    value = float(size)
    idx = 0
    while value >= 1024 and idx < len(units) - 1:
        value /= 1024
        idx += 1
    text = f"{value:.{max(decimals, 0)}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return f"{text} {units[idx]}"


def safe_filename(filename: str) -> str:
    """Strip directory components and unsafe characters from a client-supplied name."""
    name = Path(filename.replace("\\", "/")).name
    name = _UNSAFE_CHARS.sub("_", name)
    # stored names must pass validate_name
    name = _DOT_RUNS.sub(".", name).strip(" .")
    return name or "audio"


def validate_name(name: str) -> str:
    """Reject artifact identities that could escape their collection directory."""
    if not name or ".." in name or "/" in name or "\\" in name:
        raise InvalidInput("Invalid file name")
    return name


def _timestamps(stat: os.stat_result) -> tuple[datetime, datetime]:
    created = getattr(stat, "st_birthtime", None) or stat.st_ctime
    return (
        datetime.fromtimestamp(created, tz=timezone.utc),
        datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
    )


class ArtifactStore:
    """CRUD and enumeration over the uploads, chunks and documents directories."""

    def __init__(self, upload_dir: str | Path, chunks_dir: str | Path, documents_dir: str | Path) -> None:
        self.roots = {
            Collection.UPLOADS: Path(upload_dir),
            Collection.CHUNKS: Path(chunks_dir),
            Collection.DOCUMENTS: Path(documents_dir),
        }

    def ensure_directories(self) -> None:
        """Create all collection directories."""
        for collection, root in self.roots.items():
            root.mkdir(parents=True, exist_ok=True)
            logger.info("Storage directory %s ready at %s", collection.value, root)

    def root(self, collection: Collection) -> Path:
        return self.roots[collection]

    # --- uploads ---

    def validate_upload_metadata(self, filename: str, content_type: str | None) -> None:
        """Validate upload file metadata (extension + MIME). Raises InvalidInput."""
        ext = Path(filename).suffix.lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise InvalidInput(f"Unsupported file type '{ext}'. Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}")

        # Relaxed: some browsers send generic or video types for audio
        if content_type and content_type not in ALLOWED_MIME_TYPES and not content_type.startswith("audio/"):
            raise InvalidInput(f"Invalid content type '{content_type}'. Must be an audio file.")

    async def store_upload(self, upload: UploadFile, max_bytes: int | None = None) -> StoredUpload:
        """Stream an uploaded file to disk with size limit.

        Raises UploadTooLarge if the file exceeds ``max_bytes``; the partial file is removed.
        """
        if max_bytes is None:
            max_bytes = get_settings().max_upload_bytes
        original = safe_filename(upload.filename or "audio.bin")
        stored_name = f"{uuid.uuid4().hex[:12]}-{original}"
        upload_dir = self.root(Collection.UPLOADS)
        upload_dir.mkdir(parents=True, exist_ok=True)

        file_path = upload_dir / stored_name
        file_size = 0
        chunk_size = 1024 * 64  # 64KB chunks

        try:
            with open(file_path, "wb") as f:
                while True:
                    chunk = await upload.read(chunk_size)
                    if not chunk:
                        break
                    file_size += len(chunk)
                    if file_size > max_bytes:
                        raise UploadTooLarge(
                            f"File too large (over {max_bytes // (1024 * 1024)}MB). "
                            f"Maximum: {max_bytes // (1024 * 1024)}MB"
                        )
                    f.write(chunk)
        except UploadTooLarge:
            file_path.unlink(missing_ok=True)
            raise
        except OSError as e:
            file_path.unlink(missing_ok=True)
            raise StorageFailure(f"Could not store upload: {e}") from e

        logger.info("Stored upload %s (%s)", stored_name, format_bytes(file_size))
        return StoredUpload(name=stored_name, path=file_path, original_filename=original, size=file_size)

    # --- segment groups ---

    def create_group(self, base_name: str) -> Path:
        """Create a fresh, uniquely named segment group directory for one run."""
        stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
        group_name = f"{safe_filename(base_name)}_{stamp}_{uuid.uuid4().hex[:6]}"
        group_dir = self.root(Collection.CHUNKS) / group_name
        try:
            group_dir.mkdir(parents=True, exist_ok=False)
        except OSError as e:
            raise StorageFailure(f"Could not create chunk folder: {e}") from e
        return group_dir

    def list_group_members(self, group: str) -> list[ArtifactInfo]:
        """List the segment files of a group in segment order."""
        group_dir = self._existing(Collection.CHUNKS, group)
        if not group_dir.is_dir():
            raise NotFound(f"Chunk folder {group} not found")
        members = [info for info in self._scan(group_dir, dirs=False) if SEGMENT_NAME_PATTERN.match(info.name)]
        return sorted(members, key=lambda info: info.name)

    def group_member_path(self, group: str, name: str) -> Path:
        group_dir = self._existing(Collection.CHUNKS, group)
        path = group_dir / validate_name(name)
        if not path.is_file():
            raise NotFound(f"Chunk {name} not found in {group}")
        return path

    # --- documents ---

    def document_path(self, base_name: str) -> Path:
        """Deterministic document location for an upload base name; re-runs overwrite it."""
        documents_dir = self.root(Collection.DOCUMENTS)
        documents_dir.mkdir(parents=True, exist_ok=True)
        return documents_dir / f"{safe_filename(base_name)}{DOCUMENT_EXTENSION}"

    def get_document(self, name: str) -> Path:
        validate_name(name)
        if not name.lower().endswith(DOCUMENT_EXTENSION):
            raise InvalidInput(f"Document name must end in {DOCUMENT_EXTENSION}")
        path = self._existing(Collection.DOCUMENTS, name)
        if not path.is_file():
            raise NotFound(f"Document {name} not found")
        return path

    # --- generic collection operations ---

    def list_items(self, collection: Collection) -> list[ArtifactInfo]:
        """List a collection, newest modified first."""
        root = self.root(collection)
        try:
            root.mkdir(parents=True, exist_ok=True)
            items = list(self._scan(root, dirs=collection is Collection.CHUNKS))
        except OSError as e:
            raise StorageFailure(f"Error listing {collection.value}: {e}") from e
        items.sort(key=lambda info: info.modified_at, reverse=True)
        return items

    def delete_item(self, collection: Collection, name: str) -> None:
        path = self._existing(collection, name)
        try:
            if path.is_dir():
                shutil.rmtree(path)
            else:
                path.unlink()
        except FileNotFoundError:
            raise NotFound(f"{name} not found") from None
        except OSError as e:
            raise StorageFailure(f"Error deleting {name}: {e}") from e
        logger.info("Deleted %s/%s", collection.value, name)

    def delete_all(self, collection: Collection) -> tuple[int, int]:
        """Delete every item of a collection. Returns (deleted, failed)."""
        root = self.root(collection)
        if not root.exists():
            return 0, 0
        deleted = failed = 0
        for entry in sorted(root.iterdir()):
            try:
                self.delete_item(collection, entry.name)
                deleted += 1
            except NotFound:
                continue
            except StorageFailure as e:
                logger.warning("Could not delete %s/%s: %s", collection.value, entry.name, e)
                failed += 1
        logger.info("%d items deleted from %s (%d failed)", deleted, collection.value, failed)
        return deleted, failed

    def _existing(self, collection: Collection, name: str) -> Path:
        path = self.root(collection) / validate_name(name)
        if not path.exists():
            raise NotFound(f"{name} not found")
        return path

    def _scan(self, directory: Path, dirs: bool):
        try:
            entries = list(directory.iterdir())
        except FileNotFoundError:
            return
        for entry in entries:
            try:
                if entry.is_dir() != dirs:
                    continue
                stat = entry.stat()
                size = self._dir_size(entry) if dirs else stat.st_size
            except FileNotFoundError:
                # removed while listing
                continue
            created, modified = _timestamps(stat)
            yield ArtifactInfo(name=entry.name, size=size, created_at=created, modified_at=modified)

    @staticmethod
    def _dir_size(directory: Path) -> int:
        total = 0
        for child in directory.iterdir():
            try:
                if child.is_file():
                    total += child.stat().st_size
            except FileNotFoundError:
                continue
        return total


_artifact_store: ArtifactStore | None = None


def get_artifact_store() -> ArtifactStore:
    """Get singleton artifact store instance."""
    global _artifact_store
    if _artifact_store is None:
        settings = get_settings()
        _artifact_store = ArtifactStore(settings.UPLOAD_DIR, settings.CHUNKS_DIR, settings.DOCUMENTS_DIR)
    return _artifact_store
